"""panel-bridge: RPC core for a host-embedded UI panel.

Turns a single unordered, fire-and-forget postMessage-style channel into:
- fire-and-forget notifications
- correlated request/response calls with timeout and bounded retry
- typed event subscriptions
- suppression of our own messages reflected back by the host
"""

from .bus import ALL, EventBus
from .client import PanelClient
from .config import BridgeConfig
from .correlation import CallState, CorrelationTable, PendingCall
from .echo import EchoFilter
from .errors import (
    BridgeError,
    CallTimeoutError,
    ChannelUnavailableError,
    RemoteError,
    SendFailureError,
    UnknownMessageTypeError,
)
from .observable import Observable
from .orchestrator import RequestOrchestrator
from .protocol import Envelope, MessageType
from .transport import LoopbackChannel, RawChannel, StdioChannel, TransportAdapter

__version__ = "0.1.0"

__all__ = [
    "ALL",
    "BridgeConfig",
    "BridgeError",
    "CallState",
    "CallTimeoutError",
    "ChannelUnavailableError",
    "CorrelationTable",
    "EchoFilter",
    "Envelope",
    "EventBus",
    "LoopbackChannel",
    "MessageType",
    "Observable",
    "PanelClient",
    "PendingCall",
    "RawChannel",
    "RemoteError",
    "RequestOrchestrator",
    "SendFailureError",
    "StdioChannel",
    "TransportAdapter",
    "UnknownMessageTypeError",
]
