"""Error taxonomy for the panel <-> host messaging core.

Callers of ``RequestOrchestrator.call()`` receive one of these when a call
settles as a failure. ``notify()`` never raises them; failures are recorded
in ``last_error`` instead.
"""

from __future__ import annotations

from typing import Any


class BridgeError(Exception):
    """Base class for all messaging core errors."""

    pass


class ChannelUnavailableError(BridgeError):
    """Raised by a raw channel when the remote end is not attached or closed."""

    pass


class SendFailureError(BridgeError):
    """The transport adapter could not hand a write to the channel."""

    def __init__(self, message: str, type_name: str | None = None) -> None:
        super().__init__(message)
        self.type_name = type_name


class CallTimeoutError(BridgeError, TimeoutError):
    """Every attempt of a call elapsed without a response from the host."""

    def __init__(self, type_name: str, timeout: float, attempts: int) -> None:
        super().__init__(
            f"{type_name} request timeout after {timeout:g}s ({attempts} attempt(s))"
        )
        self.type_name = type_name
        self.timeout = timeout
        self.attempts = attempts


class RemoteError(BridgeError):
    """The host answered a call with an explicit error field."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    @classmethod
    def from_field(cls, error: Any) -> RemoteError:
        """Build from the raw ``error`` field of a response envelope.

        Hosts send either a plain string or ``{"message", "code", "details"}``.
        """
        if isinstance(error, dict):
            message = error.get("message") or error.get("error") or str(error)
            return cls(str(message), code=error.get("code"), details=error.get("details"))
        return cls(str(error))


class UnknownMessageTypeError(BridgeError, ValueError):
    """A message type string is not part of the closed protocol set."""

    pass
