"""
Unit tests for the StudyVoiceClient facade.
"""

import json
import struct
import threading
import wave

import pytest

from app.study_voice import StudyVoiceClient
from lib.voice_stream_client.config import ClientConfig
from lib.voice_stream_client.core import ConnectionState, RouteChange, RouteChangeReason, TriggerType


@pytest.fixture
def config():
    return ClientConfig(ws_url="ws://voice.test:7863/ws", session_id="abc")


@pytest.fixture
def make_client(config, capture, playback, recognizer, audio_session, connector, blocking_sleep):
    clients = []

    def _make(cfg=None):
        client = StudyVoiceClient(
            cfg or config,
            capture=capture,
            playback=playback,
            recognizer=recognizer,
            audio_session=audio_session,
            connect_factory=connector,
            sleep=blocking_sleep,
        )
        clients.append(client)
        return client

    yield _make


class TestLifecycle:
    async def test_start_wires_everything(self, make_client, capture, playback, recognizer, audio_session, connector, wait_until):
        client = make_client()

        await client.start()

        assert client.state is ConnectionState.CONNECTED
        assert audio_session.configured == 1
        assert audio_session.listener_count == 1
        assert recognizer.starts == 1
        assert capture.callback == client.pipeline.submit_capture
        assert playback.started == 1
        await wait_until(lambda: connector.last.sent)
        assert json.loads(connector.last.sent[0]) == {"type": "start_session", "session_id": "abc"}
        await client.stop()

    async def test_ws_options_from_config(self, make_client, connector):
        client = make_client()
        await client.start()

        assert connector.calls[0][1]["max_size"] == 2 ** 20
        await client.stop()

    async def test_stop_is_idempotent(self, make_client, capture, playback, audio_session, connector):
        client = make_client()
        await client.start()
        socket = connector.last

        await client.stop()
        await client.stop()

        assert capture.stopped == 1
        assert playback.stopped == 1
        assert audio_session.listener_count == 0
        assert socket.close_calls == [(1000, "client stop")]
        assert client.state is ConnectionState.DISCONNECTED
        assert client.is_realtime_ai_on is False

    async def test_state_listener(self, make_client):
        client = make_client()
        states = []
        client.on_state_change(lambda old, new: states.append(new))

        await client.start()
        await client.stop()

        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.DISCONNECTED,
        ]


class TestVoiceFlow:
    async def test_wake_streams_mic_audio(self, make_client, capture, recognizer, connector, capture_buffer, wait_until):
        client = make_client()
        await client.start()
        socket = connector.last

        recognizer.emit("hey luna")
        await wait_until(lambda: client.is_realtime_ai_on)
        capture.callback(capture_buffer)
        await wait_until(lambda: any(isinstance(frame, bytes) for frame in socket.sent))

        audio = [frame for frame in socket.sent if isinstance(frame, bytes)]
        assert len(audio[0]) == 4 * capture_buffer.frame_length
        await client.stop()

    async def test_highlight_fires_signal(self, make_client, monkeypatch):
        client = make_client()
        fired = []
        monkeypatch.setattr(client.signal, "fire", lambda: fired.append(True))
        await client.start()

        event = client.pipeline.handle_transcript("highlight")

        assert event.type is TriggerType.HIGHLIGHT
        assert fired == [True]
        await client.stop()

    async def test_other_triggers_do_not_fire_signal(self, make_client, monkeypatch):
        client = make_client()
        fired = []
        monkeypatch.setattr(client.signal, "fire", lambda: fired.append(True))
        await client.start()

        client.pipeline.handle_transcript("hey luna")

        assert fired == []
        await client.stop()

    def test_bookmark_url_follows_socket(self, make_client):
        client = make_client()
        assert client.signal.url == "http://voice.test:7863/api/bookmark"


class TestRouteChanges:
    async def test_old_device_unavailable_reconfigures(self, make_client, audio_session):
        client = make_client()
        await client.start()

        client.handle_route_change(RouteChange(RouteChangeReason.OLD_DEVICE_UNAVAILABLE))

        assert audio_session.configured == 2
        assert client.state is ConnectionState.CONNECTED
        await client.stop()

    async def test_other_reasons_only_log(self, make_client, audio_session):
        client = make_client()
        await client.start()

        client.handle_route_change(RouteChange(RouteChangeReason.NEW_DEVICE_AVAILABLE))

        assert audio_session.configured == 1
        assert client.route_changes == 1
        await client.stop()

    async def test_route_change_from_device_thread(self, make_client, audio_session, wait_until):
        client = make_client()
        await client.start()

        worker = threading.Thread(
            target=audio_session.notify_route_change,
            args=(RouteChange(RouteChangeReason.OLD_DEVICE_UNAVAILABLE),),
        )
        worker.start()
        worker.join()
        await wait_until(lambda: audio_session.configured == 2)

        assert client.state is ConnectionState.CONNECTED
        await client.stop()


class TestNotificationSound:
    def test_loads_configured_sound(self, make_client, tmp_path):
        path = tmp_path / "chime.wav"
        with wave.open(str(path), "wb") as wav:
            wav.setnchannels(1)
            wav.setsampwidth(2)
            wav.setframerate(22050)
            wav.writeframes(struct.pack("<3h", 1, 2, 3))

        client = make_client(ClientConfig(ws_url="ws://h/ws", notification_sound_path=str(path)))

        assert client.signal.notification.samples.tolist() == [1, 2, 3]

    def test_missing_sound_is_logged(self, make_client, tmp_path):
        client = make_client(
            ClientConfig(ws_url="ws://h/ws", notification_sound_path=str(tmp_path / "missing.wav"))
        )

        assert client.signal.notification is None
