"""Streaming speech recognizer interface."""

from .base import BaseStreamingRecognizer, RecognizerConfig

__all__ = ["BaseStreamingRecognizer", "RecognizerConfig"]
