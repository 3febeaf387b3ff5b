"""Core types and abstractions for the voice stream client."""

from .errors import RecognizerError
from .types import (
    AudioPort,
    AudioRoute,
    CaptureBuffer,
    CaptureFormat,
    ConnectionState,
    PlaybackBuffer,
    RouteChange,
    RouteChangeReason,
    TriggerEvent,
    TriggerType,
)

__all__ = [
    "AudioPort",
    "AudioRoute",
    "CaptureBuffer",
    "CaptureFormat",
    "ConnectionState",
    "PlaybackBuffer",
    "RecognizerError",
    "RouteChange",
    "RouteChangeReason",
    "TriggerEvent",
    "TriggerType",
]
