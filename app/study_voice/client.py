"""Study voice client: wires the framework components into one session.

    StudyVoiceClient
      ├── ConnectionController  (socket, handshake, reconnect)
      ├── AudioPipeline         (mic → socket, socket → speaker, triggers)
      └── SessionSignal         (highlight → notification + bookmark POST)
"""

import asyncio
import logging
import random
from typing import Optional

from lib.voice_stream_client.asr import BaseStreamingRecognizer
from lib.voice_stream_client.audio import (
    AudioPipeline,
    AudioSessionConfigurator,
    CaptureSource,
    PlaybackSink,
    load_notification_sound,
)
from lib.voice_stream_client.config import ClientConfig
from lib.voice_stream_client.core import (
    ConnectionState,
    PlaybackBuffer,
    RouteChange,
    RouteChangeReason,
    TriggerEvent,
    TriggerType,
)
from lib.voice_stream_client.session import SessionSignal
from lib.voice_stream_client.text import PhraseMatcher
from lib.voice_stream_client.transport import ConnectionController
from lib.voice_stream_client.transport.connection import ConnectFactory, SleepFunction, StateListener

logger = logging.getLogger(__name__)


class StudyVoiceClient:
    """
    One realtime voice session against a streaming server.

    Example:
        client = StudyVoiceClient(config, capture=mic, playback=speaker,
                                  recognizer=recognizer)
        await client.start()
        ...
        await client.stop()
    """

    def __init__(
        self,
        config: ClientConfig,
        capture: CaptureSource,
        playback: PlaybackSink,
        recognizer: BaseStreamingRecognizer,
        audio_session: Optional[AudioSessionConfigurator] = None,
        *,
        connect_factory: Optional[ConnectFactory] = None,
        sleep: Optional[SleepFunction] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.capture = capture
        self.playback = playback
        self.recognizer = recognizer
        self.audio_session = audio_session

        self.connection = ConnectionController(
            config.ws_url,
            session_id=config.session_id,
            policy=config.reconnect,
            connect_factory=connect_factory,
            ws_options=config.ws_options(),
            outbound_queue_size=config.outbound_queue_size,
            sleep=sleep,
            rng=rng,
        )
        self.pipeline = AudioPipeline(
            self.connection,
            recognizer,
            playback=playback,
            matcher=PhraseMatcher(config.phrases),
            playback_sample_rate=config.playback_sample_rate,
            capture_queue_size=config.capture_queue_size,
            benign_recognizer_codes=config.benign_recognizer_codes,
            recognizer_restart_delay=config.recognizer_restart_delay,
            capture_log_interval=config.capture_log_interval,
            playback_log_interval=config.playback_log_interval,
        )
        self.signal = SessionSignal(
            config.ws_url,
            config.session_id,
            playback=playback,
            notification=self._load_notification(config.notification_sound_path),
            path=config.bookmark_path,
            timeout=config.bookmark_timeout,
        )
        self.pipeline.on_trigger(self._on_trigger)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._running = False
        self.route_changes = 0

    @property
    def state(self) -> ConnectionState:
        return self.connection.state

    @property
    def is_realtime_ai_on(self) -> bool:
        return self.pipeline.is_realtime_ai_on

    @property
    def is_running(self) -> bool:
        return self._running

    def on_state_change(self, listener: StateListener) -> None:
        self.connection.on_state_change(listener)

    async def start(self) -> None:
        """Start recognition, connect, then start capture and playback."""
        if self._running:
            logger.warning("⚠️ Client already running")
            return
        self._running = True
        self._loop = asyncio.get_running_loop()
        logger.info(f"🚀 Starting voice client (session: {self.config.session_id or 'none'})")

        if self.audio_session is not None:
            try:
                self.audio_session.configure()
            except Exception as e:
                logger.error(f"❌ Failed to configure audio session: {e}")
            self.audio_session.add_route_change_listener(self._on_route_change)

        await self.pipeline.start()
        await self.connection.start()

        self.capture.start(self.pipeline.submit_capture)
        self.playback.start()
        logger.info(f"✅ Voice client started (state: {self.state.value})")

    async def stop(self) -> None:
        """Stop audio, recognition and the connection. Idempotent."""
        if not self._running:
            return
        self._running = False
        logger.info("⏹️ Stopping voice client...")

        try:
            self.capture.stop()
        except Exception as e:
            logger.error(f"❌ Failed to stop capture: {e}")
        try:
            self.playback.stop()
        except Exception as e:
            logger.error(f"❌ Failed to stop playback: {e}")

        await self.pipeline.stop()
        await self.connection.stop()
        await self.signal.close()

        if self.audio_session is not None:
            self.audio_session.remove_route_change_listener(self._on_route_change)
        self._loop = None
        logger.info("✅ Voice client stopped")

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_trigger(self, event: TriggerEvent) -> None:
        if event.type is TriggerType.HIGHLIGHT:
            self.signal.fire()

    def _on_route_change(self, change: RouteChange) -> None:
        # May arrive on a device thread
        loop = self._loop
        if loop is None:
            return
        try:
            loop.call_soon_threadsafe(self.handle_route_change, change)
        except RuntimeError:
            pass

    def handle_route_change(self, change: RouteChange) -> None:
        """Log the new route; reconfigure when the active device went away."""
        self.route_changes += 1
        route = change.route
        if route is None and self.audio_session is not None:
            route = self.audio_session.current_route()
        logger.info(
            f"🔀 Audio route changed ({change.reason.value}): "
            f"{route.describe() if route else 'unknown'}"
        )

        if change.reason is RouteChangeReason.OLD_DEVICE_UNAVAILABLE and self.audio_session is not None:
            logger.info("🔧 Previous device unavailable, reconfiguring audio session")
            try:
                self.audio_session.configure()
            except Exception as e:
                logger.error(f"❌ Failed to reconfigure audio session: {e}")

    @staticmethod
    def _load_notification(path: Optional[str]) -> Optional[PlaybackBuffer]:
        if not path:
            return None
        try:
            return load_notification_sound(path)
        except (OSError, ValueError) as e:
            logger.error(f"❌ Failed to load notification sound {path}: {e}")
            return None
