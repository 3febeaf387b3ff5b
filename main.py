"""
Study Voice Client

Streams microphone audio to a realtime voice server over WebSocket and plays
the server's audio back:
- Say "hey luna" to start streaming, "thank you" to stop
- Say "highlight" to bookmark the current moment
- Drops are retried with exponential backoff (10 attempts)

Usage:
    python main.py --url ws://localhost:7863/ws --session-id abc

Configuration can also come from the environment (or a .env file):
    VOICE_WS_URL, VOICE_SESSION_ID, VOICE_MAX_RECONNECT_ATTEMPTS,
    VOICE_NOTIFICATION_SOUND, LOG_LEVEL
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_project_root = Path(__file__).parent
env_path = _project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)
    print(f"✅ Loaded environment from {env_path}")

from app.study_voice import ConsoleRecognizer, StudyVoiceClient
from lib.voice_stream_client.config import ClientConfig

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Realtime voice streaming client")
    parser.add_argument("--url", help="WebSocket endpoint (default: $VOICE_WS_URL)")
    parser.add_argument("--session-id", help="Session id sent in start_session (default: $VOICE_SESSION_ID)")
    parser.add_argument("--notification-sound", help="16-bit WAV played on highlight")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser.parse_args(argv)


async def run(config: ClientConfig) -> None:
    # PortAudio is only needed when actually running against devices
    from lib.voice_stream_client.audio.sounddevice_io import (
        SoundDeviceCapture,
        SoundDevicePlayback,
        SoundDeviceSession,
    )

    client = StudyVoiceClient(
        config,
        capture=SoundDeviceCapture(block_size=config.capture_block_size),
        playback=SoundDevicePlayback(sample_rate=config.playback_sample_rate),
        recognizer=ConsoleRecognizer(),
        audio_session=SoundDeviceSession(),
    )

    await client.start()
    try:
        # Runs until Ctrl-C
        await asyncio.Event().wait()
    finally:
        await client.stop()


def main(argv=None) -> int:
    args = parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        config = ClientConfig.from_env(
            ws_url=args.url,
            session_id=args.session_id,
            notification_sound_path=args.notification_sound,
        )
    except ValueError as e:
        logger.error(f"❌ Invalid configuration: {e}")
        return 2

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("👋 Interrupted, exiting")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
