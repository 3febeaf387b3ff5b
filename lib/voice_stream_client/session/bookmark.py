"""
Highlight side channel.

When the user says a highlight phrase, the client:
- plays a short notification sound on the local output (not via the socket)
- POSTs {"type": "bookmark", "session_id": ...} to the server's REST API

Both are best-effort: failures are logged and never touch streaming state.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from ..audio.base import PlaybackSink
from ..core.types import PlaybackBuffer

logger = logging.getLogger(__name__)

DEFAULT_BOOKMARK_PATH = "/api/bookmark"

_SCHEME_MAP = {"ws": "http", "wss": "https"}


def derive_bookmark_url(ws_url: str, path: str = DEFAULT_BOOKMARK_PATH) -> Optional[str]:
    """
    Map the socket URL to the REST endpoint on the same host.

    Example:
        >>> derive_bookmark_url("wss://example.com:8443/ws?token=x")
        'https://example.com:8443/api/bookmark'

    Returns:
        The endpoint URL, or None if the socket URL has no host
    """
    parts = urlsplit(ws_url)
    if not parts.netloc:
        return None
    scheme = parts.scheme.lower()
    scheme = _SCHEME_MAP.get(scheme, scheme)
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class SessionSignal:
    """
    Fire-and-forget bookmark signal for highlight triggers.

    Example:
        signal = SessionSignal("ws://host:7863/ws", session_id="abc",
                               playback=speaker, notification=chime)
        signal.fire()  # returns immediately
    """

    def __init__(
        self,
        ws_url: str,
        session_id: Optional[str] = None,
        *,
        playback: Optional[PlaybackSink] = None,
        notification: Optional[PlaybackBuffer] = None,
        path: str = DEFAULT_BOOKMARK_PATH,
        timeout: float = 30.0,
    ):
        """
        Initialize the signal.

        Args:
            ws_url: Socket URL the REST endpoint is derived from
            session_id: Included in the payload when present
            playback: Output the notification sound is scheduled on
            notification: Notification sound (None disables it)
            path: REST path on the socket's host
            timeout: Total request timeout in seconds
        """
        self.url = derive_bookmark_url(ws_url, path)
        self.session_id = session_id
        self.playback = playback
        self.notification = notification
        self.timeout = timeout

        self._pending: Set[asyncio.Task] = set()
        self.sent_count = 0
        self.failed_count = 0

    def build_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": "bookmark"}
        if self.session_id:
            payload["session_id"] = self.session_id
        return payload

    def fire(self) -> Optional[asyncio.Task]:
        """
        Play the notification and start the POST in the background.

        Must be called from the event loop.

        Returns:
            The request task, or None if no valid endpoint exists
        """
        self.play_notification()

        if self.url is None:
            logger.warning("⚠️ Highlight URL invalid")
            return None

        task = asyncio.create_task(self.send_bookmark())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    def play_notification(self) -> bool:
        """Schedule the notification sound on the local output."""
        if self.playback is None or self.notification is None:
            logger.warning("⚠️ Notification buffer not loaded")
            return False

        try:
            self.playback.schedule(self.notification)
        except Exception as e:
            logger.error(f"❌ Failed to play bookmark notification: {e}")
            return False

        logger.info("🔔 Playing bookmark notification on the same output as server audio")
        return True

    async def send_bookmark(self) -> bool:
        """
        POST the bookmark payload.

        Returns:
            True on a 2xx response, False otherwise (never raises)
        """
        if self.url is None:
            return False

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.url,
                    json=self.build_payload(),
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if 200 <= response.status < 300:
                        self.sent_count += 1
                        logger.info("✅ Highlight signal sent")
                        return True

                    error_text = await response.text()
                    logger.error(
                        f"❌ Highlight request failed with status {response.status}: {error_text[:200]}"
                    )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"❌ Highlight request failed: {e}")

        self.failed_count += 1
        return False

    async def close(self) -> None:
        """Cancel requests still in flight."""
        pending = list(self._pending)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._pending.clear()
