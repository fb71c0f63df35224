"""Envelope: the single unit exchanged on the panel <-> host channel.

Wire shape (one structured record per message, no framing):

    {
        "type": "loadConfig",
        "payload": {...},
        "correlationId": "req_3f9a1c2b7d4e",
        "timestamp": "2024-01-15T10:30:00+00:00"
    }

Failed responses from the host carry an ``error`` field instead of (or
next to) ``payload``. Older hosts spell the correlation field ``requestId``;
it is accepted on input and always written as ``correlationId``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .messages import MessageType, payload_model_for


def new_correlation_id() -> str:
    """Generate a fresh opaque correlation ID."""
    return f"req_{uuid.uuid4().hex[:12]}"


def _now() -> str:
    return datetime.now(UTC).isoformat()


class Envelope(BaseModel):
    """A message travelling between panel and host.

    - ``type`` names the message kind (a ``MessageType`` value on the wire)
    - ``payload`` is opaque here; each kind owns its schema
    - ``correlation_id`` links requests, responses and echoes
    - ``timestamp`` is advisory only, never used for ordering
    - ``error`` is set only on failed responses

    Fields the host adds beyond these are preserved.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str
    payload: Any = None
    correlation_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("correlationId", "requestId", "correlation_id"),
    )
    timestamp: str | float | None = Field(default_factory=_now)
    error: Any = None

    @field_validator("type", mode="before")
    @classmethod
    def _enum_to_value(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value

    @classmethod
    def create(
        cls,
        message_type: MessageType | str,
        payload: Any = None,
        correlation_id: str | None = None,
    ) -> Envelope:
        """Factory method for outbound envelopes."""
        return cls(type=message_type, payload=payload, correlation_id=correlation_id)

    @classmethod
    def from_wire(cls, record: Any) -> Envelope:
        """Parse a raw inbound record.

        Raises:
            pydantic.ValidationError: If the record is not an envelope
        """
        return cls.model_validate(record)

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the wire record (camelCase, unset optionals omitted)."""
        record: dict[str, Any] = {"type": self.type}
        if self.payload is not None or "payload" in self.model_fields_set:
            record["payload"] = self.payload
        if self.correlation_id is not None:
            record["correlationId"] = self.correlation_id
        if self.timestamp is not None:
            record["timestamp"] = self.timestamp
        if self.error is not None:
            record["error"] = self.error
        if self.model_extra:
            record.update(self.model_extra)
        return record

    def with_fresh_timestamp(self) -> Envelope:
        """Copy of this envelope stamped with the current time."""
        return self.model_copy(update={"timestamp": _now()})

    def is_correlated(self) -> bool:
        return self.correlation_id is not None

    def has_error(self) -> bool:
        return self.error is not None

    def message_type(self) -> MessageType | None:
        """The enum member for ``type``, or None for kinds outside the set."""
        try:
            return MessageType(self.type)
        except ValueError:
            return None

    def response_value(self) -> Any:
        """Extract the success value from a response envelope.

        The host's canonical reply carries a ``payload`` field. Replies
        without one are returned whole, minus the correlation ID.
        """
        if "payload" in self.model_fields_set:
            return self.payload
        record = self.to_wire()
        record.pop("correlationId", None)
        return record

    def typed_payload(self) -> Any:
        """Validate ``payload`` against the model registered for ``type``.

        Kinds without a registered model, and non-dict payloads, are
        returned unchanged.

        Raises:
            pydantic.ValidationError: If the payload does not fit the model
        """
        model = payload_model_for(self.type)
        if model is None or not isinstance(self.payload, dict):
            return self.payload
        return model.model_validate(self.payload)
