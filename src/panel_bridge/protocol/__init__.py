"""Wire protocol for the panel <-> host channel.

Key concepts:
- Envelope: one structured record per message
- MessageType: the closed set of message kinds shared with the host
- Payload models: per-kind schemas checked at the transport boundary
"""

from .envelope import Envelope, new_correlation_id
from .messages import (
    PAYLOAD_MODELS,
    PROTOCOL_VERSION,
    MessageType,
    Payload,
    coerce_message_type,
    encode_payload,
    payload_model_for,
)

__all__ = [
    "Envelope",
    "new_correlation_id",
    "MessageType",
    "Payload",
    "PAYLOAD_MODELS",
    "PROTOCOL_VERSION",
    "coerce_message_type",
    "encode_payload",
    "payload_model_for",
]
