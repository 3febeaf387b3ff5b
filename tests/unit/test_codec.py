"""
Unit tests for audio frame encoding and decoding.
"""

import struct
import wave

import numpy as np
import pytest

from lib.voice_stream_client.audio.codec import (
    PLAYBACK_SAMPLE_RATE,
    decode_capture_frame,
    decode_playback_frame,
    encode_capture_frame,
    load_notification_sound,
    pcm16_to_float32,
    resample_linear,
)
from lib.voice_stream_client.core import CaptureBuffer


def _write_wav(path, samples, sample_rate=16000, channels=1, sample_width=2):
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(channels)
        wav.setsampwidth(sample_width)
        wav.setframerate(sample_rate)
        wav.writeframes(samples)


class TestCaptureFraming:
    """Outbound float32 framing."""

    def test_encodes_little_endian_float32(self):
        buffer = CaptureBuffer(samples=np.array([0.5, -1.0], dtype=np.float32), sample_rate=48000)

        frame = encode_capture_frame(buffer)

        assert frame == struct.pack("<2f", 0.5, -1.0)

    def test_frame_is_four_bytes_per_frame(self, capture_buffer):
        frame = encode_capture_frame(capture_buffer)
        assert len(frame) == 4 * capture_buffer.frame_length

    def test_multichannel_array_uses_first_channel(self):
        stereo = np.array([[0.1, 0.9], [0.2, 0.8]], dtype=np.float32)

        decoded = decode_capture_frame(encode_capture_frame(stereo))

        np.testing.assert_allclose(decoded, [0.1, 0.2], rtol=1e-6)

    def test_float64_input_is_narrowed(self):
        frame = encode_capture_frame(np.array([0.25], dtype=np.float64))
        assert frame == struct.pack("<f", 0.25)


class TestPlaybackFraming:
    """Inbound PCM16 framing."""

    def test_decodes_little_endian_int16(self):
        buffer = decode_playback_frame(b"\x01\x00\xff\x7f\x00\x80")

        assert buffer.samples.tolist() == [1, 32767, -32768]
        assert buffer.sample_rate == PLAYBACK_SAMPLE_RATE
        assert buffer.channels == 1

    def test_trailing_odd_byte_is_dropped(self):
        buffer = decode_playback_frame(b"\x01\x00\x02")
        assert buffer.frame_count == 1

    def test_empty_frame(self):
        buffer = decode_playback_frame(b"")
        assert buffer.frame_count == 0
        assert buffer.duration_s == 0.0

    def test_duration(self):
        buffer = decode_playback_frame(b"\x00\x00" * 2400)
        assert buffer.duration_s == pytest.approx(0.1)

    def test_pcm16_to_float32_range(self):
        converted = pcm16_to_float32(np.array([-32768, 0, 16384], dtype=np.int16))
        np.testing.assert_allclose(converted, [-1.0, 0.0, 0.5])
        assert converted.dtype == np.float32


class TestResample:
    def test_same_rate_is_identity(self):
        samples = np.array([0.1, 0.2, 0.3], dtype=np.float32)
        np.testing.assert_array_equal(resample_linear(samples, 24000, 24000), samples)

    def test_upsample_doubles_length(self):
        samples = np.linspace(-1, 1, 100).astype(np.float32)
        out = resample_linear(samples, 12000, 24000)
        assert len(out) == 200
        assert out[0] == pytest.approx(-1.0)
        assert out[-1] == pytest.approx(1.0)


class TestNotificationSound:
    def test_loads_mono_wav(self, tmp_path):
        path = tmp_path / "chime.wav"
        _write_wav(path, struct.pack("<4h", 0, 1000, -1000, 0), sample_rate=44100)

        buffer = load_notification_sound(path)

        assert buffer.samples.tolist() == [0, 1000, -1000, 0]
        assert buffer.sample_rate == 44100
        assert buffer.channels == 1

    def test_downmixes_stereo(self, tmp_path):
        path = tmp_path / "stereo.wav"
        _write_wav(path, struct.pack("<4h", 100, 300, -200, -400), channels=2)

        buffer = load_notification_sound(path)

        assert buffer.samples.tolist() == [200, -300]

    def test_rejects_8_bit(self, tmp_path):
        path = tmp_path / "8bit.wav"
        _write_wav(path, bytes([128, 200, 50]), sample_width=1)

        with pytest.raises(ValueError, match="expected 16"):
            load_notification_sound(path)

    def test_rejects_non_wav(self, tmp_path):
        path = tmp_path / "not.wav"
        path.write_bytes(b"definitely not a riff file")

        with pytest.raises(ValueError):
            load_notification_sound(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_notification_sound(tmp_path / "missing.wav")
