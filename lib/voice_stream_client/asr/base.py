"""
Base class for streaming speech recognizers.

The client treats recognition as a black box that turns captured audio into
progressively-extended transcripts of the current utterance. Implementations
wrap a platform or cloud recognizer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.errors import RecognizerError
from ..core.types import CaptureBuffer

TranscriptCallback = Callable[[str], None]
ErrorCallback = Callable[[RecognizerError], None]


@dataclass
class RecognizerConfig:
    """Configuration for streaming recognizers."""
    language: str = "en-US"  # Locale identifier
    partial_results: bool = True  # Report partial transcripts
    on_device: bool = False  # Prefer on-device recognition when supported


class BaseStreamingRecognizer(ABC):
    """
    Abstract base class for streaming recognizers.

    Lifecycle: start() → append() for every captured buffer → stop().
    After stop(), start() begins a fresh recognition pass.

    Callbacks may fire from any thread; the AudioPipeline hands them back
    to the event loop.

    Example:
        class MyRecognizer(BaseStreamingRecognizer):
            async def start(self, on_transcript, on_error):
                self._on_transcript = on_transcript

            def append(self, buffer):
                text = self._engine.feed(buffer.samples)
                if text:
                    self._on_transcript(text)

            async def stop(self):
                self._on_transcript = None
    """

    def __init__(self, config: Optional[RecognizerConfig] = None):
        """
        Initialize recognizer.

        Args:
            config: Optional recognizer configuration
        """
        self.config = config or RecognizerConfig()

    @abstractmethod
    async def start(self, on_transcript: TranscriptCallback, on_error: ErrorCallback) -> None:
        """
        Begin a recognition pass.

        Args:
            on_transcript: Called with the full transcript of the current
                utterance each time it grows
            on_error: Called with a RecognizerError; errors raised by a
                deliberate stop() should use a benign code ("cancelled",
                "no_speech")
        """
        pass

    @abstractmethod
    def append(self, buffer: CaptureBuffer) -> None:
        """
        Feed one captured buffer. Must not block.

        Args:
            buffer: Microphone buffer in its native format
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """End the current recognition pass. Safe to call when not started."""
        pass

    def get_name(self) -> str:
        """
        Get the recognizer name.

        Returns:
            Human-readable recognizer name
        """
        return self.__class__.__name__
