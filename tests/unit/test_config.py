"""
Unit tests for client configuration.
"""

import pytest

from lib.voice_stream_client.config import ClientConfig


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig(ws_url="ws://localhost:7863/ws")

        assert config.session_id is None
        assert config.reconnect.max_attempts == 10
        assert config.reconnect.base_delay == 1.0
        assert config.reconnect.max_delay == 30.0
        assert config.playback_sample_rate == 24000
        assert config.phrases.stop_phrases == ("thank you",)
        assert config.bookmark_timeout == 30.0

    @pytest.mark.parametrize("url", ["", "http://localhost/ws", "localhost:7863"])
    def test_rejects_non_websocket_urls(self, url):
        with pytest.raises(ValueError):
            ClientConfig(ws_url=url)

    def test_accepts_wss(self):
        assert ClientConfig(ws_url="wss://voice.example.com/ws").ws_url.startswith("wss://")

    def test_ws_options(self):
        config = ClientConfig(ws_url="ws://h/ws", open_timeout=3.0, max_message_bytes=1024)

        assert config.ws_options() == {
            "open_timeout": 3.0,
            "ping_interval": 20.0,
            "ping_timeout": 20.0,
            "max_size": 1024,
        }


class TestFromEnv:
    def test_reads_environment(self):
        env = {
            "VOICE_WS_URL": "ws://voice.test/ws",
            "VOICE_SESSION_ID": "abc",
            "VOICE_MAX_RECONNECT_ATTEMPTS": "3",
            "VOICE_NOTIFICATION_SOUND": "/tmp/chime.wav",
        }

        config = ClientConfig.from_env(env)

        assert config.ws_url == "ws://voice.test/ws"
        assert config.session_id == "abc"
        assert config.reconnect.max_attempts == 3
        assert config.notification_sound_path == "/tmp/chime.wav"

    def test_overrides_win(self):
        env = {"VOICE_WS_URL": "ws://env/ws", "VOICE_SESSION_ID": "env"}

        config = ClientConfig.from_env(env, ws_url="ws://flag/ws", session_id="flag")

        assert config.ws_url == "ws://flag/ws"
        assert config.session_id == "flag"

    def test_none_overrides_are_ignored(self):
        config = ClientConfig.from_env({"VOICE_WS_URL": "ws://env/ws"}, ws_url=None, session_id=None)

        assert config.ws_url == "ws://env/ws"
        assert config.session_id is None

    def test_blank_session_is_none(self):
        config = ClientConfig.from_env({"VOICE_WS_URL": "ws://env/ws", "VOICE_SESSION_ID": "  "})
        assert config.session_id is None

    def test_missing_url(self):
        with pytest.raises(ValueError, match="ws_url"):
            ClientConfig.from_env({})

    def test_bad_attempt_count(self):
        env = {"VOICE_WS_URL": "ws://env/ws", "VOICE_MAX_RECONNECT_ATTEMPTS": "many"}

        with pytest.raises(ValueError, match="VOICE_MAX_RECONNECT_ATTEMPTS"):
            ClientConfig.from_env(env)

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("VOICE_WS_URL", "ws://os-env/ws")
        monkeypatch.delenv("VOICE_SESSION_ID", raising=False)

        assert ClientConfig.from_env().ws_url == "ws://os-env/ws"
