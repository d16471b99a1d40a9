"""Tick scheduler — drives a :class:`TimerStore` with a periodic tick.

The scheduler watches ``(is_running, duration)`` on the store.  While the
countdown runs it keeps exactly one pump thread alive that dispatches a
``tick`` intent every ``duration`` milliseconds; when the countdown stops
the pump is cancelled before the store lock is released.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import TracebackType
from typing import Callable, Optional

from countdown.core.timer import TimerState, TimerStore, tick

logger = logging.getLogger(__name__)

_JOIN_TIMEOUT = 2.0


@dataclass
class _Pump:
    """One armed periodic resource."""

    duration: int
    cancelled: threading.Event = field(default_factory=threading.Event)
    thread: Optional[threading.Thread] = None


class TickScheduler:
    """Arms and disarms a periodic tick pump from the store's state.

    Idle until the store reports ``is_running``; then Armed with the
    store's ``duration``.  A duration change while running cancels the
    pump and arms a new one.  Use as a context manager to guarantee the
    pump is cancelled on every exit path.
    """

    def __init__(self, store: TimerStore) -> None:
        self._store = store
        self._pump: Optional[_Pump] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -- public interface ----------------------------------------------------

    @property
    def is_armed(self) -> bool:
        return self._pump is not None

    @property
    def armed_duration(self) -> Optional[int]:
        """Period of the active pump in milliseconds, or ``None`` when idle."""
        pump = self._pump
        return pump.duration if pump is not None else None

    def attach(self) -> TickScheduler:
        """Start observing the store and sync to its current state."""
        with self._store.locked() as state:
            if self._unsubscribe is None:
                self._unsubscribe = self._store.subscribe(self._observe)
            self._observe(state)
        return self

    def close(self) -> None:
        """Stop observing and cancel the active pump, if any."""
        with self._store.locked():
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            pump = self._disarm()
        # Join outside the lock: the pump may be waiting on it.
        if pump is not None:
            self._join(pump)

    def __enter__(self) -> TickScheduler:
        return self.attach()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- private helpers -----------------------------------------------------

    def _observe(self, state: TimerState) -> None:
        """Store listener; always runs with the store lock held."""
        if not state.is_running:
            self._disarm()
        elif self._pump is None or self._pump.duration != state.duration:
            self._disarm()
            self._arm(state.duration)

    def _arm(self, duration: int) -> None:
        pump = _Pump(duration=duration)
        pump.thread = threading.Thread(
            target=self._run,
            args=(pump,),
            daemon=True,
            name=f"countdown-tick-{duration}ms",
        )
        pump.thread.start()
        # Armed only once the thread is running.
        self._pump = pump
        logger.info("Tick pump armed: every %dms", duration)

    def _disarm(self) -> Optional[_Pump]:
        pump = self._pump
        if pump is None:
            return None
        pump.cancelled.set()
        self._pump = None
        logger.info("Tick pump disarmed (%dms)", pump.duration)
        return pump

    def _run(self, pump: _Pump) -> None:
        """Pump thread loop. One tick per elapsed period until cancelled."""
        period = min(pump.duration / 1000.0, threading.TIMEOUT_MAX)
        while not pump.cancelled.wait(period):
            with self._store.locked():
                # A stop may have been applied while we waited for the lock.
                if pump.cancelled.is_set():
                    break
                logger.debug("Tick after %dms", pump.duration)
                self._store.apply(tick())

    @staticmethod
    def _join(pump: _Pump) -> None:
        thread = pump.thread
        if thread is None or thread is threading.current_thread():
            return
        thread.join(_JOIN_TIMEOUT)
        if thread.is_alive():
            logger.warning("Tick pump thread %s did not exit", thread.name)
