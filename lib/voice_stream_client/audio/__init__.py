"""Audio framing, device interfaces and the gated streaming pipeline.

The sounddevice adapters live in `audio.sounddevice_io` and are imported
explicitly, so the rest of the package works without PortAudio.
"""

from .base import AudioSessionConfigurator, CaptureSource, PlaybackSink
from .codec import (
    PLAYBACK_SAMPLE_RATE,
    decode_capture_frame,
    decode_playback_frame,
    encode_capture_frame,
    load_notification_sound,
)
from .pipeline import AudioPipeline

__all__ = [
    "PLAYBACK_SAMPLE_RATE",
    "AudioPipeline",
    "AudioSessionConfigurator",
    "CaptureSource",
    "PlaybackSink",
    "decode_capture_frame",
    "decode_playback_frame",
    "encode_capture_frame",
    "load_notification_sound",
]
