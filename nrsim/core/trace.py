"""
Observer registration for simulation trace events.
"""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)


class TraceSource:
    """
    A named category of trace events with explicitly connected callbacks.

    Callbacks run synchronously, in connection order, each time the source
    fires.
    """

    def __init__(self, name: str):
        self.name = name
        self._callbacks: List[Callable] = []

    def connect(self, callback: Callable):
        """Register a callback for this trace source"""
        if not callable(callback):
            raise TypeError(f"Trace callback for '{self.name}' must be callable")
        self._callbacks.append(callback)
        logger.debug(f"Connected {callback!r} to trace source '{self.name}'")

    def disconnect(self, callback: Callable):
        """Remove a previously connected callback. No-op if not connected."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def __call__(self, *args, **kwargs):
        for callback in list(self._callbacks):
            callback(*args, **kwargs)

    def __len__(self):
        return len(self._callbacks)
