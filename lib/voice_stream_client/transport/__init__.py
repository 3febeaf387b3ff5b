"""Transport layer: WebSocket connection and reconnection policy."""

from .connection import (
    NORMAL_CLOSURE,
    ConnectionController,
    default_connect,
    describe_close_code,
)
from .reconnect import ReconnectContext, ReconnectPolicy

__all__ = [
    "NORMAL_CLOSURE",
    "ConnectionController",
    "ReconnectContext",
    "ReconnectPolicy",
    "default_connect",
    "describe_close_code",
]
