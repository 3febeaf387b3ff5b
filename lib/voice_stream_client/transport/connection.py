"""
WebSocket connection controller.

Owns one logical connection to the streaming endpoint and hides
disconnect/retry churn behind a stable contract:

    controller.state          → ConnectionState
    controller.send(frame)    → bool, never blocks, never raises
    controller.on_message(fn) → fn(frame) for every inbound frame

State machine:

    DISCONNECTED ──start()──▶ CONNECTING ──open──▶ CONNECTED
         ▲                        ▲                    │ error / abnormal close
         │                        │ backoff fires      ▼
         └── stop() / budget ◀── RECONNECTING ◀────────┘

All state lives on the asyncio event loop. Every connection carries a
generation number; tasks and callbacks from an older generation (for
example after stop()) are ignored.
"""

import asyncio
import json
import logging
import random
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

import websockets
from websockets.exceptions import ConnectionClosed

from ..core.types import ConnectionState
from .reconnect import ReconnectContext, ReconnectPolicy

logger = logging.getLogger(__name__)

Frame = Union[bytes, str]
MessageHandler = Callable[[Frame], None]
StateListener = Callable[[ConnectionState, ConnectionState], None]
ConnectFactory = Callable[..., Awaitable[Any]]
SleepFunction = Callable[[float], Awaitable[None]]

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006

CLOSE_CODE_NAMES: Dict[int, str] = {
    1000: "Normal closure",
    1001: "Going away",
    1002: "Protocol error",
    1003: "Unsupported data",
    1005: "No status received",
    1006: "Abnormal closure",
    1007: "Invalid frame payload",
    1008: "Policy violation",
    1009: "Message too big",
    1010: "Mandatory extension missing",
    1011: "Internal server error",
    1015: "TLS handshake failure",
}


def describe_close_code(code: Optional[int]) -> str:
    """Human-readable name for a WebSocket close code."""
    if code is None:
        return CLOSE_CODE_NAMES[ABNORMAL_CLOSURE]
    return CLOSE_CODE_NAMES.get(code, "Unknown")


async def default_connect(url: str, **options: Any) -> Any:
    """Open a WebSocket with the `websockets` asyncio client."""
    return await websockets.connect(url, **options)


class ConnectionController:
    """
    Resilient WebSocket client connection.

    Sends are fire-and-forget: frames offered while not connected are
    dropped, and frames still queued when the connection drops are lost.
    Stale live audio is worth less than fresh audio.

    Example:
        controller = ConnectionController("ws://host:7863/ws", session_id="abc")
        controller.on_message(lambda frame: print(len(frame)))
        await controller.start()

        controller.send(b"\\x00" * 4096)

        await controller.stop()
    """

    def __init__(
        self,
        url: str,
        session_id: Optional[str] = None,
        policy: Optional[ReconnectPolicy] = None,
        *,
        connect_factory: Optional[ConnectFactory] = None,
        ws_options: Optional[Dict[str, Any]] = None,
        outbound_queue_size: int = 64,
        sleep: Optional[SleepFunction] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the controller. Nothing is opened until start().

        Args:
            url: ws:// or wss:// endpoint
            session_id: Sent in the start_session handshake when present
            policy: Backoff parameters
            connect_factory: Coroutine function (url, **options) → socket
            ws_options: Extra keyword arguments for the connect factory
            outbound_queue_size: Frames buffered ahead of the socket
            sleep: Backoff sleep (injectable for tests)
            rng: Random source for jitter
        """
        if not url:
            raise ValueError("WebSocket URL is required")

        self.url = url
        self.session_id = session_id
        self.context = ReconnectContext(policy=policy or ReconnectPolicy())

        self._connect = connect_factory or default_connect
        self._ws_options = dict(ws_options or {})
        self._outbound_queue_size = outbound_queue_size
        self._sleep = sleep or asyncio.sleep
        self._rng = rng

        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._generation = 0
        self._outbound: Optional[asyncio.Queue] = None
        self._send_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        self._stopping = False

        self._message_handlers: List[MessageHandler] = []
        self._state_listeners: List[StateListener] = []

        # Counters
        self.frames_sent = 0
        self.frames_dropped = 0
        self.messages_received = 0
        self.last_reconnect_delay: Optional[float] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self.context.attempts

    @property
    def should_reconnect(self) -> bool:
        return self.context.should_reconnect

    def on_message(self, handler: MessageHandler) -> None:
        """Register a handler for inbound frames (bytes or str)."""
        if handler not in self._message_handlers:
            self._message_handlers.append(handler)

    def remove_message_handler(self, handler: MessageHandler) -> None:
        if handler in self._message_handlers:
            self._message_handlers.remove(handler)

    def on_state_change(self, listener: StateListener) -> None:
        """Register a listener called with (old_state, new_state)."""
        if listener not in self._state_listeners:
            self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._state_listeners:
            self._state_listeners.remove(listener)

    async def start(self) -> None:
        """
        Enable reconnection and open the socket.

        Resets the attempt counter. If the first open fails, a reconnect is
        scheduled and start() returns; failures never raise.
        """
        logger.info(f"▶️ Starting connection to {self.url}")
        self.context.should_reconnect = True
        self.context.reset()

        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.warning(f"⚠️ Already {self._state.value}, skipping connection attempt")
            return

        pending = self._reconnect_task
        self._reconnect_task = None
        if pending is not None and not pending.done():
            pending.cancel()

        await self._open()

    async def stop(self) -> None:
        """
        Close the connection and disable reconnection.

        Idempotent. A call made while another stop() is running returns
        immediately.
        """
        if self._stopping:
            logger.debug("Stop already in progress, ignoring")
            return

        self._stopping = True
        try:
            logger.info("⏹️ Stopping connection...")
            self.context.should_reconnect = False
            self._generation += 1
            current = asyncio.current_task()

            pending: List[asyncio.Task] = []
            for task in (self._reconnect_task, self._send_task, self._receive_task):
                if task is not None and task is not current and not task.done():
                    task.cancel()
                    pending.append(task)
            self._reconnect_task = None
            self._send_task = None
            self._receive_task = None

            for task in pending:
                with suppress(asyncio.CancelledError):
                    await task

            ws, self._ws = self._ws, None
            self._outbound = None
            if ws is not None:
                try:
                    await ws.close(code=NORMAL_CLOSURE, reason="client stop")
                except Exception as e:
                    logger.warning(f"⚠️ Error while closing WebSocket: {e}")

            self._set_state(ConnectionState.DISCONNECTED)
            logger.info("✅ Connection stopped")
        finally:
            self._stopping = False

    def send(self, frame: Frame) -> bool:
        """
        Offer a frame for transmission.

        Must be called from the event loop thread. Never blocks and never
        raises.

        Args:
            frame: bytes for a binary frame, str for a text frame

        Returns:
            True if queued, False if dropped
        """
        if self._state is not ConnectionState.CONNECTED or self._outbound is None:
            self.frames_dropped += 1
            if isinstance(frame, str):
                logger.warning(f"⚠️ Cannot send text, not connected (state: {self._state.value})")
            return False

        try:
            self._outbound.put_nowait(frame)
        except asyncio.QueueFull:
            self.frames_dropped += 1
            logger.debug(f"Outbound queue full ({self._outbound_queue_size}), dropping frame")
            return False
        return True

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        old_state = self._state
        if old_state is new_state:
            return
        self._state = new_state
        logger.info(f"🔄 Connection state changed: {old_state.value} → {new_state.value}")

        for listener in list(self._state_listeners):
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.error(f"❌ State listener failed: {e}")

    async def _open(self) -> None:
        self._generation += 1
        generation = self._generation

        self._set_state(ConnectionState.CONNECTING)
        logger.info(
            f"🔌 Connecting to WebSocket... "
            f"(attempt {self.context.attempts + 1}/{self.context.max_attempts + 1})"
        )

        try:
            ws = await self._connect(self.url, **self._ws_options)
        except Exception as e:
            logger.error(f"❌ Failed to open WebSocket: {e}")
            self._handle_connection_lost(e, generation)
            return

        if generation != self._generation:
            # stop() ran while the socket was opening
            logger.info("Socket opened after stop, closing it")
            await self._close_quietly(ws)
            return

        self._ws = ws
        self._outbound = asyncio.Queue(maxsize=self._outbound_queue_size)
        self._set_state(ConnectionState.CONNECTED)
        self.context.reset()
        logger.info("✅ WebSocket connection established")

        self._send_task = asyncio.create_task(self._send_loop(ws, self._outbound, generation))
        self._receive_task = asyncio.create_task(self._receive_loop(ws, generation))

        self._send_handshake()

    def _send_handshake(self) -> None:
        if not self.session_id:
            logger.warning("⚠️ No session_id provided, skipping start_session message")
            return

        try:
            payload = json.dumps({"type": "start_session", "session_id": self.session_id})
        except (TypeError, ValueError) as e:
            logger.error(f"❌ Failed to encode start_session message: {e}")
            return

        if self.send(payload):
            logger.info(f"📨 start_session queued for session {self.session_id} ({len(payload)} chars)")

    def _handle_connection_lost(self, error: Optional[BaseException], generation: int) -> None:
        """Single failure path for open, send, receive and close errors."""
        if generation != self._generation:
            logger.debug("Ignoring connection loss from a stale connection")
            return

        # Invalidate the lost connection's tasks and callbacks
        self._generation += 1

        ws, self._ws = self._ws, None
        self._outbound = None

        current = asyncio.current_task()
        for task in (self._send_task, self._receive_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._send_task = None
        self._receive_task = None

        if ws is not None:
            close_task = asyncio.create_task(self._close_quietly(ws))
            self._background.add(close_task)
            close_task.add_done_callback(self._background.discard)

        logger.error(f"❌ Connection lost: {error}")

        if self.context.should_reconnect:
            self._schedule_reconnect()
        else:
            self._set_state(ConnectionState.DISCONNECTED)

    def _schedule_reconnect(self) -> None:
        if not self.context.should_reconnect:
            logger.info("🚫 Reconnection disabled, not scheduling reconnect")
            self._set_state(ConnectionState.DISCONNECTED)
            return

        if self.context.exhausted:
            logger.critical(
                f"❌ Max reconnection attempts ({self.context.max_attempts}) reached, giving up"
            )
            self.context.should_reconnect = False
            self._set_state(ConnectionState.DISCONNECTED)
            return

        delay = self.context.next_delay(self._rng)
        self.last_reconnect_delay = delay
        self._set_state(ConnectionState.RECONNECTING)
        logger.info(
            f"⏱️ Scheduling reconnect in {delay:.1f}s "
            f"(attempt {self.context.attempts}/{self.context.max_attempts})"
        )

        previous = self._reconnect_task
        if previous is not None and previous is not asyncio.current_task() and not previous.done():
            previous.cancel()
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay, self._generation))

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await self._sleep(delay)
        if generation != self._generation or not self.context.should_reconnect:
            return
        await self._open()

    async def _close_quietly(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing lost socket: {e}")

    # ------------------------------------------------------------------
    # I/O loops
    # ------------------------------------------------------------------

    async def _send_loop(self, ws: Any, queue: asyncio.Queue, generation: int) -> None:
        """Drain the outbound queue in order through one socket."""
        while True:
            frame = await queue.get()
            try:
                await ws.send(frame)
            except Exception as e:
                kind = "text" if isinstance(frame, str) else "binary"
                logger.error(f"❌ Send {kind} failed ({len(frame)} bytes): {e}")
                self._handle_connection_lost(e, generation)
                return
            self.frames_sent += 1

    async def _receive_loop(self, ws: Any, generation: int) -> None:
        """One pending receive at a time; re-arm only while still connected."""
        while self._state is ConnectionState.CONNECTED and generation == self._generation:
            try:
                message = await ws.recv()
            except ConnectionClosed as e:
                code = e.rcvd.code if e.rcvd is not None else None
                reason = (e.rcvd.reason if e.rcvd is not None else "") or "none"
                logger.warning(
                    f"🔴 WebSocket closed with code: {code} ({describe_close_code(code)}), "
                    f"reason: {reason}"
                )
                self._handle_connection_lost(e, generation)
                return
            except Exception as e:
                logger.error(f"❌ Receive failed: {e}")
                self._handle_connection_lost(e, generation)
                return

            self.messages_received += 1
            self._dispatch(message)

    def _dispatch(self, message: Frame) -> None:
        for handler in list(self._message_handlers):
            try:
                handler(message)
            except Exception as e:
                logger.error(f"❌ Message handler failed: {e}")
