"""Module observer: minimal pub/sub used by hosts to publish workspace change events."""
#
# PURPOSE:
# A host exposes one Signal per change kind (file created, document opened, ...).
# Subscribers get back a Subscription handle and detach by disposing it, so a
# detector can drop exactly the listeners it attached and nothing else.
#

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class Subscription:
    """Disposable handle returned by Signal.connect()."""

    def __init__(self, signal: "Signal", callback: Callable[..., Any]):
        self._signal = signal
        self._callback = callback
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._signal.disconnect(self._callback)


class Signal:
    """
    A simple pure-Python signal implementation.
    """

    def __init__(self, name: str = "signal"):
        self.name = name
        self._observers: List[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> Subscription:
        """Subscribe a callback function."""
        if callback not in self._observers:
            self._observers.append(callback)
        return Subscription(self, callback)

    def disconnect(self, callback: Callable[..., Any]) -> None:
        """Unsubscribe a callback function."""
        if callback in self._observers:
            self._observers.remove(callback)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def emit(self, *args, **kwargs) -> None:
        """Notify all subscribers."""
        # Copy so a callback may dispose its own subscription mid-emit
        for callback in list(self._observers):
            try:
                callback(*args, **kwargs)
            except Exception as e:
                # Prevent one subscriber from breaking the loop
                logger.warning("[Signal:%s] Error in observer callback: %s", self.name, e)
