"""
Phrase matcher for voice triggers.

Turns progressively-extended recognizer transcripts into discrete trigger
events (stop / wake / highlight).

A recognizer re-emits the whole utterance on every partial result:

    "hey"  →  "hey lu"  →  "hey luna"

Only the new words of each update are appended to a bounded word window,
so a phrase that spans several partial results is still detected, and the
window stays small however long the utterance runs.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

from ..core.types import TriggerEvent, TriggerType

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """
    Canonicalize transcript text for matching.

    Lowercases, maps every non-alphanumeric character to a space and
    collapses runs of spaces.

    Example:
        >>> normalize_text("Hello!!  World")
        'hello world'
    """
    cleaned = "".join(ch if ch.isalnum() else " " for ch in text.lower())
    return " ".join(cleaned.split())


@dataclass
class PhraseConfig:
    """Trigger phrases (already normalized) and window size."""
    stop_phrases: Tuple[str, ...] = ("thank you",)
    wake_phrases: Tuple[str, ...] = ("hey luma", "hey lu na", "hey luna")
    highlight_phrases: Tuple[str, ...] = ("highlight", "high light", "high five")

    # Maximum words kept in the sliding window
    max_recent_words: int = 50


@dataclass
class TranscriptWindow:
    """Sliding window over the words of the current recognition pass."""
    max_words: int = 50
    last_normalized_text: str = ""
    recent_words: Deque[str] = field(default_factory=deque)

    def __post_init__(self):
        self.recent_words = deque(self.recent_words, maxlen=self.max_words)

    @property
    def words(self) -> List[str]:
        return list(self.recent_words)

    @property
    def text(self) -> str:
        return " ".join(self.recent_words)

    def replace(self, normalized: str) -> None:
        self.recent_words.clear()
        self.recent_words.extend(normalized.split())

    def clear(self) -> None:
        self.last_normalized_text = ""
        self.recent_words.clear()


class PhraseMatcher:
    """
    Detects trigger phrases in a stream of transcripts.

    Priority within one update (first match wins):
        1. stop phrase, whatever the gate state
        2. wake phrase, only while the gate is off
        3. highlight phrase, only while the gate is off

    Every match clears the window. The caller is expected to restart the
    recognizer so the same utterance cannot trigger twice.

    Example:
        matcher = PhraseMatcher()
        event = matcher.process("Hey Luna!", gate_on=False)
        # TriggerEvent(type=TriggerType.WAKE, phrase="hey luna", ...)
    """

    def __init__(self, config: Optional[PhraseConfig] = None):
        self.config = config or PhraseConfig()
        self.window = TranscriptWindow(max_words=self.config.max_recent_words)

    @property
    def recent_words(self) -> List[str]:
        return self.window.words

    @property
    def last_normalized_text(self) -> str:
        return self.window.last_normalized_text

    def append_transcript(self, normalized: str) -> None:
        """
        Merge a normalized transcript into the window.

        If the text extends the previous transcript, only the appended
        words are added; otherwise the recognizer restarted and the whole
        text replaces the window.
        """
        previous = self.window.last_normalized_text

        if not previous:
            self.window.replace(normalized)
        elif normalized.startswith(previous):
            delta_words = normalized[len(previous):].split()
            if delta_words:
                self.window.recent_words.extend(delta_words)
        else:
            self.window.replace(normalized)

        self.window.last_normalized_text = normalized

    def evaluate(self, gate_on: bool) -> Optional[TriggerEvent]:
        """Check the current window for a trigger phrase."""
        window = self.window.text

        phrase = self._find(self.config.stop_phrases, window)
        if phrase:
            return TriggerEvent(type=TriggerType.STOP, phrase=phrase, window=window)

        if gate_on:
            return None

        phrase = self._find(self.config.wake_phrases, window)
        if phrase:
            return TriggerEvent(type=TriggerType.WAKE, phrase=phrase, window=window)

        phrase = self._find(self.config.highlight_phrases, window)
        if phrase:
            return TriggerEvent(type=TriggerType.HIGHLIGHT, phrase=phrase, window=window)

        return None

    def process(self, text: str, gate_on: bool) -> Optional[TriggerEvent]:
        """
        Feed one recognizer update and evaluate triggers.

        Args:
            text: Raw transcript of the current utterance
            gate_on: Whether realtime streaming is currently on

        Returns:
            The matched trigger, or None
        """
        normalized = normalize_text(text)
        if not normalized:
            return None

        self.append_transcript(normalized)
        logger.debug(
            f"📝 Transcription: raw='{text}' norm='{normalized}' window='{self.window.text}'"
        )

        event = self.evaluate(gate_on)
        if event is not None:
            logger.info(f"🎯 {event.type.value} phrase '{event.phrase}' detected")
            self.clear()
        return event

    def clear(self) -> None:
        """Forget the current recognition pass."""
        self.window.clear()

    @staticmethod
    def _find(phrases: Tuple[str, ...], window: str) -> Optional[str]:
        for phrase in phrases:
            if phrase and phrase in window:
                return phrase
        return None
