"""
Configuration for the voice stream client.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from .text.phrase_matcher import PhraseConfig
from .transport.reconnect import ReconnectPolicy

ENV_WS_URL = "VOICE_WS_URL"
ENV_SESSION_ID = "VOICE_SESSION_ID"
ENV_MAX_RECONNECT_ATTEMPTS = "VOICE_MAX_RECONNECT_ATTEMPTS"
ENV_NOTIFICATION_SOUND = "VOICE_NOTIFICATION_SOUND"


@dataclass
class ClientConfig:
    """
    Configuration for one streaming client.

    Only `ws_url` is required; everything else has working defaults.
    """
    ws_url: str
    session_id: Optional[str] = None

    # Reconnection
    reconnect: ReconnectPolicy = field(default_factory=ReconnectPolicy)

    # WebSocket options (passed to websockets.connect)
    open_timeout: float = 10.0
    ping_interval: Optional[float] = 20.0
    ping_timeout: Optional[float] = 20.0
    max_message_bytes: int = 2 ** 20

    # Buffering
    outbound_queue_size: int = 64  # Frames waiting for the socket
    capture_queue_size: int = 32  # Mic buffers waiting for the event loop

    # Audio
    playback_sample_rate: int = 24000  # Server audio is PCM16 mono @ 24kHz
    capture_block_size: int = 1024  # Frames per captured buffer

    # Voice triggers
    phrases: PhraseConfig = field(default_factory=PhraseConfig)
    benign_recognizer_codes: Tuple[str, ...] = ("cancelled", "no_speech")
    recognizer_restart_delay: float = 1.0  # After a non-benign recognizer error

    # Highlight side channel
    bookmark_path: str = "/api/bookmark"
    bookmark_timeout: float = 30.0
    notification_sound_path: Optional[str] = None

    # Logging cadence for high-rate paths
    capture_log_interval: int = 500
    playback_log_interval: int = 100

    def __post_init__(self):
        if not self.ws_url:
            raise ValueError("ws_url is required")
        scheme = urlsplit(self.ws_url).scheme.lower()
        if scheme not in ("ws", "wss"):
            raise ValueError(f"ws_url must use ws:// or wss://, got '{self.ws_url}'")

    def ws_options(self) -> Dict[str, Any]:
        """Keyword arguments for websockets.connect."""
        return {
            "open_timeout": self.open_timeout,
            "ping_interval": self.ping_interval,
            "ping_timeout": self.ping_timeout,
            "max_size": self.max_message_bytes,
        }

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> "ClientConfig":
        """
        Build a config from environment variables.

        Reads VOICE_WS_URL, VOICE_SESSION_ID, VOICE_MAX_RECONNECT_ATTEMPTS and
        VOICE_NOTIFICATION_SOUND. Keyword overrides that are not None win
        over the environment.

        Raises:
            ValueError: If no URL is configured or a value is malformed
        """
        env = os.environ if environ is None else environ
        overrides = {k: v for k, v in overrides.items() if v is not None}

        values: Dict[str, Any] = {
            "ws_url": (env.get(ENV_WS_URL) or "").strip(),
            "session_id": (env.get(ENV_SESSION_ID) or "").strip() or None,
            "notification_sound_path": (env.get(ENV_NOTIFICATION_SOUND) or "").strip() or None,
        }

        max_attempts = (env.get(ENV_MAX_RECONNECT_ATTEMPTS) or "").strip()
        if max_attempts:
            try:
                values["reconnect"] = ReconnectPolicy(max_attempts=int(max_attempts))
            except ValueError:
                raise ValueError(
                    f"{ENV_MAX_RECONNECT_ATTEMPTS} must be an integer, got '{max_attempts}'"
                )

        values.update(overrides)
        return cls(**values)
