"""Voice Stream Client - resilient bidirectional audio streaming over WebSocket

Reusable client infrastructure for realtime voice sessions. It has no
dependency on app-specific logic; applications wire in their own capture,
playback and speech recognizer implementations.

Components:
- transport: WebSocket connection with bounded exponential reconnect
- audio: frame codec, device interfaces and the gated AudioPipeline
- text: transcript window and voice-trigger phrase matching
- asr: streaming recognizer interface
- session: highlight bookmark side channel

Usage:
    from lib.voice_stream_client import ClientConfig, ConnectionController, AudioPipeline
"""

__version__ = "0.1.0"

from .audio import AudioPipeline
from .config import ClientConfig
from .core import ConnectionState, RecognizerError, TriggerEvent, TriggerType
from .session import SessionSignal
from .text import PhraseConfig, PhraseMatcher
from .transport import ConnectionController, ReconnectPolicy

__all__ = [
    "AudioPipeline",
    "ClientConfig",
    "ConnectionController",
    "ConnectionState",
    "PhraseConfig",
    "PhraseMatcher",
    "ReconnectPolicy",
    "RecognizerError",
    "SessionSignal",
    "TriggerEvent",
    "TriggerType",
]
