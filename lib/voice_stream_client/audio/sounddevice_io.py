"""
PortAudio adapters (via sounddevice) for capture, playback and the device session.

- SoundDeviceCapture: float32 mono InputStream at the device's native rate
- SoundDevicePlayback: float32 mono OutputStream fed from a scheduled queue
- SoundDeviceSession: logs devices; PortAudio has no route notifications
"""

import logging
import threading
from collections import deque
from typing import Deque, Optional

import numpy as np
import sounddevice as sd

from ..core.types import AudioPort, AudioRoute, CaptureBuffer, PlaybackBuffer
from .base import AudioSessionConfigurator, CaptureCallback, CaptureSource, PlaybackSink
from .codec import PLAYBACK_SAMPLE_RATE, pcm16_to_float32, resample_linear

logger = logging.getLogger(__name__)


class SoundDeviceCapture(CaptureSource):
    """Microphone capture on the default (or given) input device."""

    def __init__(
        self,
        device: Optional[int] = None,
        block_size: int = 1024,
        sample_rate: Optional[float] = None,
    ):
        """
        Args:
            device: PortAudio device index (None = system default)
            block_size: Frames per delivered buffer
            sample_rate: Capture rate (None = device default rate)
        """
        self.device = device
        self.block_size = block_size
        self.sample_rate = sample_rate
        self._stream: Optional[sd.InputStream] = None
        self._callback: Optional[CaptureCallback] = None

    def start(self, callback: CaptureCallback) -> None:
        if self._stream is not None:
            return

        if self.sample_rate is None:
            info = sd.query_devices(self.device, "input")
            self.sample_rate = float(info["default_samplerate"])

        self._callback = callback
        self._stream = sd.InputStream(
            device=self.device,
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self.block_size,
            callback=self._audio_callback,
        )
        self._stream.start()
        logger.info(
            f"🎙️ Microphone started: {self.sample_rate:g} Hz, {self.block_size} frames per buffer"
        )

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        self._callback = None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"⚠️ Failed to close input stream: {e}")
        logger.info("⏹️ Microphone stopped")

    def _audio_callback(self, indata, frames, time_info, status):
        if status:
            logger.debug(f"Input status: {status}")
        callback = self._callback
        if callback is None:
            return
        callback(CaptureBuffer(samples=indata[:, 0].copy(), sample_rate=self.sample_rate))


class SoundDevicePlayback(PlaybackSink):
    """
    Speaker output with a FIFO of scheduled buffers.

    schedule() appends under a lock; the PortAudio callback drains the
    queue and pads with silence when it runs dry.
    """

    def __init__(self, device: Optional[int] = None, sample_rate: int = PLAYBACK_SAMPLE_RATE):
        self.device = device
        self.sample_rate = sample_rate
        self._stream: Optional[sd.OutputStream] = None
        self._queue: Deque[np.ndarray] = deque()
        self._current = np.zeros(0, dtype=np.float32)
        self._lock = threading.Lock()

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.OutputStream(
            device=self.device,
            samplerate=self.sample_rate,
            channels=1,
            dtype="float32",
            callback=self._audio_callback,
        )
        self._stream.start()
        logger.info(f"▶️ Playback started: {self.sample_rate} Hz mono")

    def schedule(self, buffer: PlaybackBuffer) -> None:
        samples = buffer.samples
        if samples.dtype == np.int16:
            samples = pcm16_to_float32(samples)
        samples = resample_linear(samples, buffer.sample_rate, self.sample_rate)
        with self._lock:
            self._queue.append(samples)

    def stop(self) -> None:
        stream, self._stream = self._stream, None
        with self._lock:
            self._queue.clear()
            self._current = np.zeros(0, dtype=np.float32)
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning(f"⚠️ Failed to close output stream: {e}")
        logger.info("⏹️ Playback stopped")

    def _audio_callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug(f"Output status: {status}")
        out = outdata[:, 0]
        filled = 0
        with self._lock:
            while filled < frames:
                if len(self._current) == 0:
                    if not self._queue:
                        break
                    self._current = self._queue.popleft()
                    continue
                take = min(frames - filled, len(self._current))
                out[filled:filled + take] = self._current[:take]
                self._current = self._current[take:]
                filled += take
        out[filled:] = 0.0


class SoundDeviceSession(AudioSessionConfigurator):
    """
    Default-device session.

    PortAudio has no device-change notifications, so this session never
    emits route changes by itself. Whoever learns of a device change (a
    platform hook, a hot-plug monitor) reports it with notify_route_change(),
    which reaches the client's route listener and triggers reconfiguration
    on OLD_DEVICE_UNAVAILABLE.
    """

    def configure(self) -> None:
        logger.info(f"🔧 Audio route: {self.current_route().describe()}")

    def current_route(self) -> AudioRoute:
        inputs, outputs = [], []
        default_in, default_out = sd.default.device
        try:
            if default_in is not None and default_in >= 0:
                info = sd.query_devices(default_in)
                inputs.append(AudioPort(name=info["name"], port_type="input"))
            if default_out is not None and default_out >= 0:
                info = sd.query_devices(default_out)
                outputs.append(AudioPort(name=info["name"], port_type="output"))
        except sd.PortAudioError as e:
            logger.warning(f"⚠️ Could not query audio devices: {e}")
        return AudioRoute(inputs=inputs, outputs=outputs)
