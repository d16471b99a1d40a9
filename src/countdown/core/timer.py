"""Timer core — countdown state, intents, and the store that applies them."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_START_TIME = 10
DEFAULT_DURATION = 1000  # milliseconds


@dataclass(frozen=True)
class TimerState:
    """Immutable snapshot of the countdown.

    ``start_time`` and ``current_time`` are whole units (seconds in the
    CLI, but the core does not care).  ``duration`` is the tick period in
    milliseconds.
    """

    is_running: bool = False
    start_time: int = DEFAULT_START_TIME
    current_time: int = DEFAULT_START_TIME
    duration: int = DEFAULT_DURATION

    @property
    def is_resetted(self) -> bool:
        return self.current_time == self.start_time

    @property
    def is_done(self) -> bool:
        return self.current_time == 0

    # -- control enablement --------------------------------------------------

    @property
    def can_stop(self) -> bool:
        return self.is_running

    @property
    def can_reset(self) -> bool:
        return not self.is_running and not self.is_resetted

    @property
    def can_start(self) -> bool:
        return not self.is_running and not self.is_done

    @property
    def can_configure(self) -> bool:
        """Duration and start time may only be submitted while stopped."""
        return not self.is_running


class IntentKind(Enum):
    """Names of the requests a store understands."""

    RESET = "reset"
    START = "start"
    STOP = "stop"
    TICK = "tick"
    SET_DURATION = "set_duration"
    SET_START_TIME = "set_start_time"


@dataclass(frozen=True)
class Intent:
    """A request to transition state.  ``value`` is only used by the setters."""

    kind: IntentKind
    value: Optional[int] = None

    def __str__(self) -> str:
        if self.value is None:
            return self.kind.value
        return f"{self.kind.value}({self.value})"


def reset() -> Intent:
    return Intent(IntentKind.RESET)


def start() -> Intent:
    return Intent(IntentKind.START)


def stop() -> Intent:
    return Intent(IntentKind.STOP)


def tick() -> Intent:
    return Intent(IntentKind.TICK)


def set_duration(duration: int) -> Intent:
    return Intent(IntentKind.SET_DURATION, duration)


def set_start_time(start_time: int) -> Intent:
    return Intent(IntentKind.SET_START_TIME, start_time)


def transition(state: TimerState, intent: Intent) -> TimerState:
    """Return the state that results from applying *intent* to *state*.

    Pure and total: payloads are expected to have been validated by the
    caller, and a tick on a finished countdown returns *state* unchanged.
    """
    kind = intent.kind
    if kind is IntentKind.RESET:
        return replace(state, current_time=state.start_time, is_running=False)
    if kind is IntentKind.START:
        return replace(state, is_running=True)
    if kind is IntentKind.STOP:
        return replace(state, is_running=False)
    if kind is IntentKind.TICK:
        if state.current_time <= 0:
            return state
        remaining = state.current_time - 1
        return replace(
            state,
            current_time=remaining,
            is_running=state.is_running and remaining > 0,
        )
    if kind is IntentKind.SET_DURATION:
        return replace(state, duration=intent.value)
    if kind is IntentKind.SET_START_TIME:
        return replace(state, start_time=intent.value, current_time=intent.value)
    return state


Listener = Callable[[TimerState], None]


class TimerStore:
    """Owns the canonical :class:`TimerState` and applies intents to it.

    Every :meth:`apply` runs under a re-entrant lock, so transitions never
    interleave, and listeners are notified synchronously before the lock
    is released.  Listeners may therefore dispatch further intents from
    inside a notification.
    """

    def __init__(self, initial: TimerState | None = None) -> None:
        self._state: TimerState = initial if initial is not None else TimerState()
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    # -- public interface ----------------------------------------------------

    @property
    def state(self) -> TimerState:
        """Return the current snapshot."""
        return self._state

    def apply(self, intent: Intent) -> TimerState:
        """Apply *intent*, notify listeners, and return the new state."""
        with self._lock:
            previous = self._state
            self._state = transition(previous, intent)
            logger.debug("%s: %s -> %s", intent, previous, self._state)
            self._notify(self._state)
            return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return a callable that unregisters it."""
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

    @contextmanager
    def locked(self) -> Iterator[TimerState]:
        """Hold the store lock so a check and an :meth:`apply` are atomic."""
        with self._lock:
            yield self._state

    def close(self) -> None:
        """Drop every listener.  State stays readable and applicable."""
        with self._lock:
            self._listeners.clear()

    # -- private helpers -----------------------------------------------------

    def _notify(self, state: TimerState) -> None:
        # Copy so listeners may unsubscribe while being notified.
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, state)
