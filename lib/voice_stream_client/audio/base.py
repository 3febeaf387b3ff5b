"""
Base classes for the platform audio collaborators.

The client never talks to audio hardware directly. It depends on three
narrow interfaces that platform adapters implement:

- CaptureSource: delivers microphone buffers on an audio thread
- PlaybackSink: accepts PCM buffers for scheduled playback
- AudioSessionConfigurator: process-wide audio session (route, devices)
"""

from abc import ABC, abstractmethod
from typing import Callable, List

from ..core.types import AudioRoute, CaptureBuffer, PlaybackBuffer, RouteChange

CaptureCallback = Callable[[CaptureBuffer], None]
RouteChangeListener = Callable[[RouteChange], None]


class CaptureSource(ABC):
    """
    Abstract microphone source.

    Implementations call the callback from their own (real-time) thread.
    The callback never blocks and never raises.

    Example:
        class MyMic(CaptureSource):
            def start(self, callback):
                self._callback = callback

            def stop(self):
                self._callback = None
    """

    @abstractmethod
    def start(self, callback: CaptureCallback) -> None:
        """
        Begin delivering buffers.

        Args:
            callback: Called once per captured buffer
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering buffers. Safe to call more than once."""
        pass

    def get_name(self) -> str:
        return self.__class__.__name__


class PlaybackSink(ABC):
    """Abstract speaker output accepting scheduled PCM buffers."""

    @abstractmethod
    def start(self) -> None:
        """Start the output device."""
        pass

    @abstractmethod
    def schedule(self, buffer: PlaybackBuffer) -> None:
        """
        Queue a buffer for playback after previously scheduled buffers.

        Must not block.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop output and drop anything still queued."""
        pass

    def get_name(self) -> str:
        return self.__class__.__name__


class AudioSessionConfigurator(ABC):
    """
    Process-wide audio session.

    Route changes are delivered asynchronously to registered listeners and
    must not tear down the streaming connection.
    """

    def __init__(self):
        self._route_listeners: List[RouteChangeListener] = []

    @abstractmethod
    def configure(self) -> None:
        """(Re)apply the session configuration (category, preferred devices)."""
        pass

    @abstractmethod
    def current_route(self) -> AudioRoute:
        """Get the devices currently in use."""
        pass

    def add_route_change_listener(self, listener: RouteChangeListener) -> None:
        if listener not in self._route_listeners:
            self._route_listeners.append(listener)

    def remove_route_change_listener(self, listener: RouteChangeListener) -> None:
        if listener in self._route_listeners:
            self._route_listeners.remove(listener)

    def notify_route_change(self, change: RouteChange) -> None:
        """Deliver a route change to every listener."""
        for listener in list(self._route_listeners):
            listener(change)
