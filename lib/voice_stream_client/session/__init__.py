"""Session side channels (highlight bookmarks)."""

from .bookmark import DEFAULT_BOOKMARK_PATH, SessionSignal, derive_bookmark_url

__all__ = ["DEFAULT_BOOKMARK_PATH", "SessionSignal", "derive_bookmark_url"]
