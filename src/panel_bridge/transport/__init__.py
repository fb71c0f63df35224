"""Transport layer: the single raw channel and its envelope adapter.

Channel implementations:
- LoopbackChannel - in-memory, scriptable host (tests, development)
- StdioChannel - newline-delimited JSON over asyncio streams / subprocess
- WebSocketChannel - Starlette websocket peer

Note: websocket is imported separately so the core does not need
Starlette at import time.
Use: from panel_bridge.transport.websocket import WebSocketChannel
"""

from .base import RawChannel, TransportAdapter
from .loopback import LoopbackChannel, LoopbackHost
from .stdio import StdioChannel

__all__ = [
    "RawChannel",
    "TransportAdapter",
    "LoopbackChannel",
    "LoopbackHost",
    "StdioChannel",
]
