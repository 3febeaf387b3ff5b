"""Error types for the voice stream client."""

from typing import Iterable


class RecognizerError(Exception):
    """
    Error reported by a streaming speech recognizer.

    Attributes:
        code: Provider-neutral error code (e.g. "cancelled", "no_speech")
        message: Human-readable description
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(f"{code}: {message}" if message else code)
        self.code = code
        self.message = message

    def is_benign(self, benign_codes: Iterable[str]) -> bool:
        """Check if this error is expected after a deliberate stop."""
        return self.code in set(benign_codes)
