"""
Wire framing for audio frames.

Outbound: float32 mono capture samples → little-endian float32 bytes.
Inbound:  little-endian PCM16 mono bytes → PlaybackBuffer (24kHz).

Pure functions only; no I/O.
"""

import logging
import wave
from pathlib import Path
from typing import Union

import numpy as np

from ..core.types import CaptureBuffer, PlaybackBuffer

logger = logging.getLogger(__name__)

PLAYBACK_SAMPLE_RATE = 24000
PCM16_BYTES_PER_SAMPLE = 2

_FLOAT32_LE = np.dtype("<f4")
_INT16_LE = np.dtype("<i2")


def encode_capture_frame(buffer: Union[CaptureBuffer, np.ndarray]) -> bytes:
    """
    Convert a capture buffer to wire bytes.

    Args:
        buffer: CaptureBuffer or raw float samples (first channel is used
            for multi-channel arrays)

    Returns:
        Little-endian float32 bytes, 4 bytes per frame
    """
    samples = buffer.samples if isinstance(buffer, CaptureBuffer) else buffer
    samples = np.asarray(samples)
    if samples.ndim > 1:
        samples = samples[:, 0]
    return samples.astype(_FLOAT32_LE, copy=False).tobytes()


def decode_capture_frame(data: bytes) -> np.ndarray:
    """Inverse of encode_capture_frame (used by servers and tests)."""
    usable = len(data) - (len(data) % _FLOAT32_LE.itemsize)
    return np.frombuffer(data[:usable], dtype=_FLOAT32_LE).astype(np.float32)


def decode_playback_frame(
    data: bytes,
    sample_rate: int = PLAYBACK_SAMPLE_RATE,
) -> PlaybackBuffer:
    """
    Interpret an inbound binary frame as a playback buffer.

    A trailing odd byte cannot form a sample and is dropped.

    Args:
        data: PCM16LE mono bytes
        sample_rate: Sample rate of the server audio

    Returns:
        PlaybackBuffer with int16 samples
    """
    usable = len(data) - (len(data) % PCM16_BYTES_PER_SAMPLE)
    if usable != len(data):
        logger.debug(f"Dropping {len(data) - usable} trailing byte(s) from playback frame")
    samples = np.frombuffer(data[:usable], dtype=_INT16_LE).astype(np.int16)
    return PlaybackBuffer(samples=samples, sample_rate=sample_rate, channels=1)


def pcm16_to_float32(samples: np.ndarray) -> np.ndarray:
    """Scale int16 samples to float32 in [-1.0, 1.0)."""
    return (np.asarray(samples, dtype=np.int16).astype(np.float32) / 32768.0)


def resample_linear(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """
    Resample mono audio with linear interpolation.

    Good enough for short notification sounds; not meant for speech.
    """
    samples = np.asarray(samples, dtype=np.float32)
    if source_rate == target_rate or len(samples) == 0:
        return samples
    duration = len(samples) / float(source_rate)
    target_length = max(int(round(duration * target_rate)), 1)
    source_positions = np.arange(len(samples), dtype=np.float64)
    target_positions = np.linspace(0, len(samples) - 1, target_length)
    return np.interp(target_positions, source_positions, samples).astype(np.float32)


def load_notification_sound(path: Union[str, Path]) -> PlaybackBuffer:
    """
    Load a 16-bit PCM WAV file as a mono playback buffer.

    Multi-channel files are downmixed by averaging channels.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a 16-bit PCM WAV
    """
    path = Path(path)
    try:
        with wave.open(str(path), "rb") as wav:
            sample_width = wav.getsampwidth()
            channels = wav.getnchannels()
            sample_rate = wav.getframerate()
            raw = wav.readframes(wav.getnframes())
    except wave.Error as e:
        raise ValueError(f"Invalid WAV file {path.name}: {e}") from e

    if sample_width != PCM16_BYTES_PER_SAMPLE:
        raise ValueError(
            f"Unsupported sample width {sample_width * 8} bits in {path.name} (expected 16)"
        )

    samples = np.frombuffer(raw, dtype=_INT16_LE)
    if channels > 1:
        samples = samples.reshape(-1, channels).mean(axis=1)
    samples = samples.astype(np.int16)

    buffer = PlaybackBuffer(samples=samples, sample_rate=sample_rate, channels=1)
    logger.info(
        f"🔔 Loaded {path.name}: {sample_rate} Hz, {channels} ch, "
        f"{buffer.frame_count} frames ({buffer.duration_s:.2f}s)"
    )
    return buffer
