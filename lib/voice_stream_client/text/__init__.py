"""Transcript processing for voice triggers."""

from .phrase_matcher import PhraseConfig, PhraseMatcher, TranscriptWindow, normalize_text

__all__ = ["PhraseConfig", "PhraseMatcher", "TranscriptWindow", "normalize_text"]
