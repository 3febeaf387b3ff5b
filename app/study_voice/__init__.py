"""Study voice client application (facade + console recognizer)."""

from .client import StudyVoiceClient
from .console_recognizer import ConsoleRecognizer

__all__ = ["ConsoleRecognizer", "StudyVoiceClient"]
