"""
Shared pytest fixtures.

Provides fakes for every collaborator the client talks to:
- FakeWebSocket / FakeConnector: in-memory sockets for the controller
- instant / blocking sleep: control reconnect backoff timing
- FakeRecognizer, RecordingPlayback, FakeCapture, FakeAudioSession
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
import pytest
from websockets.exceptions import ConnectionClosedError
from websockets.frames import Close

sys.path.insert(0, str(Path(__file__).parent.parent))

from lib.voice_stream_client.asr import BaseStreamingRecognizer
from lib.voice_stream_client.audio import AudioSessionConfigurator, CaptureSource, PlaybackSink
from lib.voice_stream_client.core import AudioPort, AudioRoute, CaptureBuffer


def make_connection_closed(code: Optional[int] = 1006, reason: str = "") -> ConnectionClosedError:
    """Build the exception the websockets client raises when the peer goes away."""
    rcvd = None if code in (None, 1006) else Close(code, reason)
    return ConnectionClosedError(rcvd, None)


class FakeWebSocket:
    """In-memory socket with a scripted inbound queue."""

    def __init__(self):
        self.sent: List[Any] = []
        self.close_calls: List[tuple] = []
        self.fail_sends = False
        self.close_gate: Optional[asyncio.Event] = None
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, message):
        if self.fail_sends:
            raise make_connection_closed(1006)
        self.sent.append(message)

    async def recv(self):
        item = await self._incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self, code: int = 1000, reason: str = ""):
        self.close_calls.append((code, reason))
        if self.close_gate is not None:
            await self.close_gate.wait()

    def feed(self, message):
        """Queue an inbound frame."""
        self._incoming.put_nowait(message)

    def drop(self, code: Optional[int] = 1006, reason: str = ""):
        """Make the next recv() fail as if the peer closed the socket."""
        self._incoming.put_nowait(make_connection_closed(code, reason))


class FakeConnector:
    """Connect factory returning FakeWebSockets, optionally failing."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.sockets: List[FakeWebSocket] = []
        self.fail_next = 0
        self.fail_always = False
        self.open_gate: Optional[asyncio.Event] = None

    async def __call__(self, url, **options):
        self.calls.append((url, options))
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.fail_always or self.fail_next > 0:
            self.fail_next = max(self.fail_next - 1, 0)
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def last(self) -> FakeWebSocket:
        return self.sockets[-1]


class InstantSleep:
    """Records backoff delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


class BlockingSleep:
    """Records backoff delays and waits until release()."""

    def __init__(self):
        self.delays: List[float] = []
        self._event: Optional[asyncio.Event] = None

    async def __call__(self, delay):
        self.delays.append(delay)
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def release(self):
        if self._event is not None:
            self._event.set()
            self._event = None


class FakeRecognizer(BaseStreamingRecognizer):
    """Recognizer driven by the test through emit() / fail()."""

    def __init__(self):
        super().__init__()
        self.starts = 0
        self.stops = 0
        self.appended: List[CaptureBuffer] = []
        self.raise_on_append = False
        self._on_transcript = None
        self._on_error = None

    async def start(self, on_transcript, on_error):
        self.starts += 1
        self._on_transcript = on_transcript
        self._on_error = on_error

    def append(self, buffer):
        if self.raise_on_append:
            raise RuntimeError("recognizer busy")
        self.appended.append(buffer)

    async def stop(self):
        self.stops += 1

    def emit(self, text: str):
        self._on_transcript(text)

    def fail(self, error: Exception):
        self._on_error(error)


class RecordingPlayback(PlaybackSink):
    def __init__(self):
        self.started = 0
        self.stopped = 0
        self.scheduled = []

    def start(self):
        self.started += 1

    def schedule(self, buffer):
        self.scheduled.append(buffer)

    def stop(self):
        self.stopped += 1


class FakeCapture(CaptureSource):
    def __init__(self):
        self.callback = None
        self.stopped = 0

    def start(self, callback):
        self.callback = callback

    def stop(self):
        self.stopped += 1
        self.callback = None


class FakeAudioSession(AudioSessionConfigurator):
    def __init__(self):
        super().__init__()
        self.configured = 0

    def configure(self):
        self.configured += 1

    def current_route(self):
        return AudioRoute(inputs=[AudioPort("Built-in Mic", "mic")], outputs=[AudioPort("Speaker", "speaker")])

    @property
    def listener_count(self) -> int:
        return len(self._route_listeners)


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def instant_sleep():
    return InstantSleep()


@pytest.fixture
def blocking_sleep():
    return BlockingSleep()


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def playback():
    return RecordingPlayback()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def audio_session():
    return FakeAudioSession()


@pytest.fixture
def capture_buffer():
    """1024 frames of a 440Hz tone at 48kHz."""
    t = np.arange(1024, dtype=np.float32) / 48000.0
    samples = (0.25 * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)
    return CaptureBuffer(samples=samples, sample_rate=48000.0)


@pytest.fixture
def wait_until():
    """Poll a condition while letting the event loop run."""

    async def _wait_until(predicate, timeout: float = 2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.001)

    return _wait_until


@pytest.fixture
def settle():
    """Let pending callbacks and tasks run."""

    async def _settle(rounds: int = 20):
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _settle
