"""Downstream "configuration changed" signalling.

The signal is a placeholder: it carries no information about what changed.
Consumers react by recomputing their whole state from the cache.
"""
from __future__ import annotations

import datetime
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable


@dataclass(frozen=True)
class ConfigurationChanged:
    """Opaque change signal; do not inspect its fields to decide what to do."""

    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )


class ChangeNotifier:
    """Fan-out of change signals to a queue and optional callbacks.

    Parameters
    ----------
    maxsize:
        Bound of the internal queue; 0 means unbounded.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: queue.Queue[ConfigurationChanged] = queue.Queue(maxsize=maxsize)
        self._listeners: list[Callable[[ConfigurationChanged], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[ConfigurationChanged], None]) -> None:
        """Register *listener* to be called for every emitted signal."""
        with self._lock:
            self._listeners.append(listener)

    def notify(self) -> ConfigurationChanged:
        """Emit one change signal and return it."""
        event = ConfigurationChanged()
        self._queue.put(event)
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(event)
        return event

    def get(self, timeout: float | None = None) -> ConfigurationChanged:
        """Block until a signal is available and return it.

        Raises
        ------
        queue.Empty
            If *timeout* elapses first.
        """
        return self._queue.get(timeout=timeout)

    def drain(self) -> list[ConfigurationChanged]:
        """Return and remove every pending signal without blocking."""
        events: list[ConfigurationChanged] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def pending(self) -> int:
        """Return the approximate number of undelivered signals."""
        return self._queue.qsize()
