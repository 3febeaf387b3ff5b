"""Console recognizer for demo purposes.

Treats each line typed on stdin as speech, so voice triggers can be tried
without a speech engine. In production, wrap a real streaming recognizer
in a BaseStreamingRecognizer subclass instead.
"""

import logging
import sys
import threading
from typing import Optional, TextIO

from lib.voice_stream_client.asr import BaseStreamingRecognizer, RecognizerConfig
from lib.voice_stream_client.asr.base import ErrorCallback, TranscriptCallback
from lib.voice_stream_client.core import CaptureBuffer

logger = logging.getLogger(__name__)


class ConsoleRecognizer(BaseStreamingRecognizer):
    """
    Typed-text stand-in for a streaming recognizer.

    Lines accumulate into the current utterance, like partial results of a
    real recognizer. stop() ends the utterance; the next start() begins a
    new one. Audio passed to append() is ignored.
    """

    def __init__(self, config: Optional[RecognizerConfig] = None, stream: Optional[TextIO] = None):
        super().__init__(config)
        self.stream = stream or sys.stdin
        self._lock = threading.Lock()
        self._on_transcript: Optional[TranscriptCallback] = None
        self._utterance = ""
        self._reader: Optional[threading.Thread] = None
        logger.warning("⚠️  Using ConsoleRecognizer - type phrases on stdin to trigger actions")

    async def start(self, on_transcript: TranscriptCallback, on_error: ErrorCallback) -> None:
        with self._lock:
            self._on_transcript = on_transcript
            self._utterance = ""
        if self._reader is None:
            self._reader = threading.Thread(target=self._read_lines, name="console-recognizer", daemon=True)
            self._reader.start()

    def append(self, buffer: CaptureBuffer) -> None:
        pass

    async def stop(self) -> None:
        with self._lock:
            self._on_transcript = None
            self._utterance = ""

    def feed(self, line: str) -> None:
        """Extend the current utterance with one line of text."""
        line = line.strip()
        if not line:
            return
        with self._lock:
            callback = self._on_transcript
            if callback is None:
                return
            self._utterance = f"{self._utterance} {line}".strip()
            text = self._utterance
        logger.info(f"📝 Heard: {text}")
        callback(text)

    def _read_lines(self) -> None:
        for line in self.stream:
            self.feed(line)
        logger.info("Console input closed")
