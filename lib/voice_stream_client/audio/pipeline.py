"""
Audio pipeline: binds capture, playback and recognition to the connection.

    mic ──▶ recognizer (always)
        └─▶ encode ──▶ connection.send (gate ON only)

    socket ──▶ decode ──▶ playback (gate ON only)

    transcript ──▶ PhraseMatcher ──▶ gate toggle / trigger listeners

The gate (`is_realtime_ai_on`) only changes through voice triggers or
set_gate(). Capture and recognizer callbacks may arrive on other threads;
they are handed to the event loop with call_soon_threadsafe and processed
there, so all pipeline state is touched from one thread only.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Callable, Iterable, List, Optional, Union

from ..asr.base import BaseStreamingRecognizer
from ..core.errors import RecognizerError
from ..core.types import CaptureBuffer, CaptureFormat, TriggerEvent, TriggerType
from ..text.phrase_matcher import PhraseMatcher
from ..transport.connection import ConnectionController
from .base import PlaybackSink
from .codec import PLAYBACK_SAMPLE_RATE, decode_playback_frame, encode_capture_frame

logger = logging.getLogger(__name__)

TriggerListener = Callable[[TriggerEvent], None]


class AudioPipeline:
    """
    Gated bridge between audio I/O and the streaming connection.

    Example:
        pipeline = AudioPipeline(controller, recognizer, playback=speaker)
        pipeline.on_trigger(lambda event: print(event.type))
        await pipeline.start()

        mic.start(pipeline.submit_capture)  # audio thread → loop
    """

    def __init__(
        self,
        connection: ConnectionController,
        recognizer: BaseStreamingRecognizer,
        playback: Optional[PlaybackSink] = None,
        matcher: Optional[PhraseMatcher] = None,
        *,
        playback_sample_rate: int = PLAYBACK_SAMPLE_RATE,
        capture_queue_size: int = 32,
        benign_recognizer_codes: Iterable[str] = ("cancelled", "no_speech"),
        recognizer_restart_delay: float = 1.0,
        capture_log_interval: int = 500,
        playback_log_interval: int = 100,
    ):
        """
        Initialize the pipeline.

        Args:
            connection: Controller audio frames are sent through
            recognizer: Streaming recognizer fed with every captured buffer
            playback: Output for server audio (None drops it)
            matcher: Phrase matcher (default phrases when None)
            playback_sample_rate: Sample rate of inbound PCM16 frames
            capture_queue_size: Buffers held between audio thread and loop
            benign_recognizer_codes: Recognizer error codes to ignore
            recognizer_restart_delay: Wait before restarting after an error
            capture_log_interval: Log every N-th captured buffer
            playback_log_interval: Log every N-th played buffer
        """
        self.connection = connection
        self.recognizer = recognizer
        self.playback = playback
        self.matcher = matcher or PhraseMatcher()

        self.playback_sample_rate = playback_sample_rate
        self.capture_queue_size = capture_queue_size
        self.benign_recognizer_codes = tuple(benign_recognizer_codes)
        self.recognizer_restart_delay = recognizer_restart_delay
        self.capture_log_interval = max(capture_log_interval, 1)
        self.playback_log_interval = max(playback_log_interval, 1)

        self._gate_on = False
        self._running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._capture_queue: Optional[asyncio.Queue] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._restart_task: Optional[asyncio.Task] = None
        self._restart_pending = False  # Trigger fired, recognizer not yet restarted
        self._trigger_listeners: List[TriggerListener] = []
        self._last_capture_format: Optional[CaptureFormat] = None

        # Counters
        self.capture_buffer_count = 0
        self.capture_dropped = 0
        self.playback_buffer_count = 0
        self.inbound_dropped = 0
        self.recognizer_restarts = 0

    # ------------------------------------------------------------------
    # Gate
    # ------------------------------------------------------------------

    @property
    def is_realtime_ai_on(self) -> bool:
        return self._gate_on

    @property
    def is_running(self) -> bool:
        return self._running

    def set_gate(self, on: bool, reason: str) -> bool:
        """
        Turn realtime streaming on or off.

        Returns:
            True if the gate changed, False if it was already in that state
        """
        if self._gate_on == on:
            return False
        self._gate_on = on
        logger.info(f"🧠 Realtime AI set to {'ON' if on else 'OFF'} ({reason})")
        return True

    def on_trigger(self, listener: TriggerListener) -> None:
        """Register a listener for every matched trigger."""
        if listener not in self._trigger_listeners:
            self._trigger_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to inbound frames, start the capture pump and the recognizer."""
        if self._running:
            logger.warning("⚠️ Audio pipeline already running")
            return

        self._loop = asyncio.get_running_loop()
        self._capture_queue = asyncio.Queue(maxsize=self.capture_queue_size)
        self._running = True
        self.capture_buffer_count = 0
        self.playback_buffer_count = 0
        self._last_capture_format = None

        self.connection.on_message(self.handle_inbound)
        self._pump_task = asyncio.create_task(self._pump_captures(self._capture_queue))
        await self._start_recognizer()
        logger.info(
            f"✅ Audio pipeline started (recognizer: {self.recognizer.get_name()}, "
            f"playback: {self.playback.get_name() if self.playback else 'none'})"
        )

    async def stop(self) -> None:
        """Stop recognition, drop queued buffers and turn the gate off."""
        if not self._running:
            return
        self._running = False
        self.connection.remove_message_handler(self.handle_inbound)

        tasks = [t for t in (self._pump_task, self._restart_task) if t is not None and not t.done()]
        self._pump_task = None
        self._restart_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task

        self._restart_pending = False

        await self._stop_recognizer(clear_state=True)
        self.set_gate(False, "pipeline stopped")
        self._capture_queue = None
        self._loop = None
        logger.info("✅ Audio pipeline stopped")

    # ------------------------------------------------------------------
    # Thread-safe entry points (audio / recognizer threads)
    # ------------------------------------------------------------------

    def submit_capture(self, buffer: CaptureBuffer) -> None:
        """Hand a captured buffer to the event loop. Never blocks or raises."""
        loop = self._loop
        if loop is None or not self._running:
            return
        try:
            loop.call_soon_threadsafe(self._enqueue_capture, buffer)
        except RuntimeError:
            # Loop already closed during shutdown
            pass

    def submit_transcript(self, text: str) -> None:
        """Hand a recognizer transcript to the event loop."""
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self.handle_transcript, text)
        except RuntimeError:
            pass

    def submit_recognizer_error(self, error: Exception) -> None:
        """Hand a recognizer error to the event loop."""
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self.handle_recognizer_error, error)
        except RuntimeError:
            pass

    def _enqueue_capture(self, buffer: CaptureBuffer) -> None:
        queue = self._capture_queue
        if queue is None:
            return
        if queue.full():
            # Keep the freshest audio
            with suppress(asyncio.QueueEmpty):
                queue.get_nowait()
            self.capture_dropped += 1
            if self.capture_dropped == 1 or self.capture_dropped % 100 == 0:
                logger.warning(f"⚠️ Capture queue full, dropped {self.capture_dropped} buffer(s)")
        queue.put_nowait(buffer)

    async def _pump_captures(self, queue: asyncio.Queue) -> None:
        while True:
            buffer = await queue.get()
            self.handle_capture(buffer)

    # ------------------------------------------------------------------
    # Event-loop handlers
    # ------------------------------------------------------------------

    def handle_capture(self, buffer: CaptureBuffer) -> None:
        """Feed the recognizer and, when the gate is on, send the frame."""
        try:
            self.capture_buffer_count += 1
            count = self.capture_buffer_count
            periodic = count == 1 or count % self.capture_log_interval == 0
            self._log_format_change(buffer)

            try:
                self.recognizer.append(buffer)
            except Exception as e:
                logger.error(f"❌ Recognizer rejected buffer #{count}: {e}")

            if self._gate_on:
                frame = encode_capture_frame(buffer)
                if periodic:
                    logger.info(
                        f"🎙️ Realtime AI ON, sending audio (buffer #{count}: "
                        f"{len(frame)} bytes, {buffer.frame_length} frames @ {buffer.sample_rate:g} Hz)"
                    )
                self.connection.send(frame)
            elif periodic:
                logger.info(f"🚫 Realtime AI OFF, not sending audio (buffer #{count})")

        except Exception as e:
            logger.error(f"❌ Capture handling failed: {e}")

    def handle_inbound(self, message: Union[bytes, str]) -> None:
        """Route one inbound frame: audio to playback, text to the log."""
        if isinstance(message, str):
            suffix = "..." if len(message) > 200 else ""
            logger.info(f"📥 Received text: {message[:200]}{suffix}")
            return

        if not self._gate_on:
            self.inbound_dropped += 1
            logger.debug(f"Realtime AI OFF, dropping {len(message)} bytes of server audio")
            return

        try:
            buffer = decode_playback_frame(bytes(message), self.playback_sample_rate)
            self.playback_buffer_count += 1
            count = self.playback_buffer_count
            if count == 1 or count % self.playback_log_interval == 0:
                logger.info(
                    f"🔊 Received from server (buffer #{count}): {len(message)} bytes, "
                    f"{buffer.frame_count} frames, {buffer.duration_s:.3f}s"
                )
            if self.playback is not None:
                self.playback.schedule(buffer)
        except Exception as e:
            logger.error(f"❌ Failed to schedule server audio: {e}")

    def handle_transcript(self, text: str) -> Optional[TriggerEvent]:
        """
        Run one transcript update through the phrase matcher.

        Transcripts are ignored after stop() and between a trigger and the
        end of the recognizer restart it scheduled, so partial results
        already queued from the old pass cannot fire a second time.

        Returns:
            The trigger that fired, or None
        """
        if not self._running:
            return None
        if self._restart_pending:
            logger.debug(f"Ignoring transcript from the previous recognition pass: '{text}'")
            return None

        event = self.matcher.process(text, gate_on=self._gate_on)
        if event is None:
            return None

        if event.type is TriggerType.STOP:
            self.set_gate(False, "stop phrase detected")
        elif event.type is TriggerType.WAKE:
            self.set_gate(True, "wake phrase detected")
        elif event.type is TriggerType.HIGHLIGHT:
            logger.info("📌 Highlight detected")

        for listener in list(self._trigger_listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"❌ Trigger listener failed: {e}")

        # Fresh recognition pass so the same utterance cannot fire again
        self._restart_pending = True
        self._schedule_recognizer_restart()
        return event

    def handle_recognizer_error(self, error: Exception) -> None:
        """Ignore expected cancellation errors, restart on anything else."""
        if isinstance(error, RecognizerError) and error.is_benign(self.benign_recognizer_codes):
            logger.debug(f"Ignoring expected recognizer error: {error}")
            return

        logger.error(f"❌ Speech recognition error: {error}")
        if self._running:
            self._schedule_recognizer_restart(self.recognizer_restart_delay)

    # ------------------------------------------------------------------
    # Recognizer control
    # ------------------------------------------------------------------

    def _schedule_recognizer_restart(self, delay: float = 0.0) -> None:
        if self._restart_task is not None and not self._restart_task.done():
            return
        self._restart_task = asyncio.get_running_loop().create_task(self._restart_recognizer(delay))

    async def _restart_recognizer(self, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await self._stop_recognizer(clear_state=True)
            if self._running:
                self.recognizer_restarts += 1
                await self._start_recognizer()
        finally:
            self._restart_pending = False

    async def _start_recognizer(self) -> None:
        try:
            await self.recognizer.start(self.submit_transcript, self.submit_recognizer_error)
        except Exception as e:
            logger.error(f"❌ Failed to start speech recognition: {e}")

    async def _stop_recognizer(self, clear_state: bool) -> None:
        try:
            await self.recognizer.stop()
        except Exception as e:
            logger.error(f"❌ Failed to stop speech recognition: {e}")
        if clear_state:
            self.matcher.clear()

    def _log_format_change(self, buffer: CaptureBuffer) -> None:
        current = buffer.format
        if current == self._last_capture_format:
            return
        logger.info(
            f"📤 Capture format changed: {current.sample_rate:g} Hz, {current.channels} ch, "
            f"{buffer.frame_length} frames per buffer"
        )
        self._last_capture_format = current
