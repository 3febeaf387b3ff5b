"""
Core types and data structures for the voice stream client.

These types are shared by the transport, audio and text components so that
every layer speaks the same vocabulary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np


class ConnectionState(Enum):
    """Lifecycle state of the streaming connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class TriggerType(Enum):
    """Voice triggers detected in the transcript window."""
    STOP = "stop"            # Turns realtime streaming off
    WAKE = "wake"            # Turns realtime streaming on
    HIGHLIGHT = "highlight"  # Bookmarks the current moment


@dataclass(frozen=True)
class TriggerEvent:
    """A phrase match produced by the PhraseMatcher."""
    type: TriggerType
    phrase: str
    window: str = ""


@dataclass(frozen=True)
class CaptureFormat:
    """Format of the microphone buffers (native hardware format)."""
    sample_rate: float
    channels: int = 1


@dataclass
class CaptureBuffer:
    """
    One buffer delivered by the microphone.

    Samples are float32 mono, as produced by the capture hardware.
    """
    samples: np.ndarray
    sample_rate: float
    channels: int = 1

    @property
    def frame_length(self) -> int:
        """Number of frames in the buffer."""
        return int(len(self.samples))

    @property
    def format(self) -> CaptureFormat:
        return CaptureFormat(sample_rate=self.sample_rate, channels=self.channels)


@dataclass
class PlaybackBuffer:
    """
    PCM buffer ready to be scheduled on the output device.

    Server audio is 16-bit mono at 24kHz; notification sounds keep the
    sample rate of their source file.
    """
    samples: np.ndarray
    sample_rate: int = 24000
    channels: int = 1

    @property
    def frame_count(self) -> int:
        return int(len(self.samples) // max(self.channels, 1))

    @property
    def duration_s(self) -> float:
        """Playback duration in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / float(self.sample_rate)


class RouteChangeReason(Enum):
    """Why the audio route changed."""
    UNKNOWN = "unknown"
    NEW_DEVICE_AVAILABLE = "new_device_available"
    OLD_DEVICE_UNAVAILABLE = "old_device_unavailable"
    CATEGORY_CHANGE = "category_change"
    OVERRIDE = "override"
    WAKE_FROM_SLEEP = "wake_from_sleep"
    NO_SUITABLE_ROUTE = "no_suitable_route"
    ROUTE_CONFIGURATION_CHANGE = "route_configuration_change"


@dataclass(frozen=True)
class AudioPort:
    """An input or output device in the current route."""
    name: str
    port_type: str = "unknown"


@dataclass
class AudioRoute:
    """Current input/output devices."""
    inputs: List[AudioPort] = field(default_factory=list)
    outputs: List[AudioPort] = field(default_factory=list)

    def describe(self) -> str:
        def _join(ports: List[AudioPort]) -> str:
            return ", ".join(f"{p.name} ({p.port_type})" for p in ports) or "none"
        return f"inputs=[{_join(self.inputs)}] outputs=[{_join(self.outputs)}]"


@dataclass(frozen=True)
class RouteChange:
    """A route change notification from the audio session."""
    reason: RouteChangeReason
    route: Optional[AudioRoute] = None
