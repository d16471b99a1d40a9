"""CLI entry point for countdown.

Uses Click to expose the ``countdown`` command group.  This module is the
input boundary: raw text is parsed here and only well-typed integers are
dispatched to the store.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Callable, Optional

import click

import countdown
from countdown.cli.render import controls, render
from countdown.core.scheduler import TickScheduler
from countdown.core.timer import (
    DEFAULT_DURATION,
    DEFAULT_START_TIME,
    Intent,
    TimerState,
    TimerStore,
    reset,
    set_duration,
    set_start_time,
    start,
    stop,
)

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

_SHELL_HELP = """\
Commands:
  start              start counting down
  stop               stop counting down
  reset              rewind to the start time
  duration <ms>      set the tick period and reset
  start-time <n>     set the start time and reset
  status             show the timer and enabled controls
  help               show this message
  quit               leave the shell"""


def parse_whole_number(text: str) -> Optional[int]:
    """Parse user-entered *text* as a non-negative integer.

    Returns ``None`` for anything that is not plain decimal digits
    (optionally with a leading ``+``), so callers can refuse to dispatch.
    """
    stripped = text.strip()
    if stripped.startswith("+"):
        stripped = stripped[1:]
    if not stripped.isascii() or not stripped.isdigit():
        return None
    return int(stripped)


def _configured_store(start_time: int, duration: int) -> TimerStore:
    store = TimerStore()
    store.apply(set_duration(duration))
    store.apply(set_start_time(start_time))
    store.apply(reset())
    return store


_start_time_option = click.option(
    "--start-time",
    type=click.IntRange(min=0),
    default=DEFAULT_START_TIME,
    envvar="COUNTDOWN_START_TIME",
    show_default=True,
    help="Number to count down from.",
)
_duration_option = click.option(
    "--duration",
    type=click.IntRange(min=1),
    default=DEFAULT_DURATION,
    envvar="COUNTDOWN_DURATION",
    show_default=True,
    help="Tick period in milliseconds.",
)


@click.group()
@click.version_option(version=countdown.__version__, prog_name="countdown")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="COUNTDOWN_LOG_LEVEL",
    show_default=True,
    help="Logging verbosity.",
)
def cli(log_level: str) -> None:
    """countdown: a terminal countdown timer."""
    logging.basicConfig(level=log_level.upper(), format=_LOG_FORMAT)


@cli.command()
@_start_time_option
@_duration_option
def run(start_time: int, duration: int) -> None:
    """Count down once from START_TIME and exit at zero."""
    store = _configured_store(start_time, duration)
    if store.state.is_done:
        click.echo("Nothing to count down", err=True)
        sys.exit(1)

    finished = threading.Event()

    def on_change(state: TimerState) -> None:
        click.echo(render(state))
        if not state.is_running:
            finished.set()

    store.subscribe(on_change)
    click.echo(render(store.state))
    try:
        with TickScheduler(store):
            store.apply(start())
            # Short waits keep the main thread responsive to Ctrl-C.
            while not finished.wait(0.1):
                pass
    except KeyboardInterrupt:
        store.apply(stop())
        click.echo("Interrupted", err=True)
        sys.exit(130)
    finally:
        store.close()


@cli.command()
@_start_time_option
@_duration_option
def shell(start_time: int, duration: int) -> None:
    """Control a countdown interactively from stdin."""
    store = _configured_store(start_time, duration)
    store.subscribe(lambda state: click.echo(render(state)))
    stdin = sys.stdin

    click.echo(render(store.state))
    click.echo(controls(store.state))
    try:
        with TickScheduler(store):
            while True:
                click.echo("> ", nl=False)
                line = stdin.readline()
                if not line:
                    click.echo()
                    break
                if not _handle(store, line):
                    break
    finally:
        store.close()


def _handle(store: TimerStore, line: str) -> bool:
    """Execute one shell *line*.  Returns ``False`` when the shell should exit."""
    words = line.split()
    if not words:
        return True
    command, args = words[0].lower(), words[1:]

    if command in ("quit", "exit"):
        return False
    if command == "help":
        click.echo(_SHELL_HELP)
    elif command == "status":
        state = store.state
        click.echo(render(state))
        click.echo(controls(state))
    elif command == "start":
        _dispatch_control(store, "start", lambda s: s.can_start, start)
    elif command == "stop":
        _dispatch_control(store, "stop", lambda s: s.can_stop, stop)
    elif command == "reset":
        _dispatch_control(store, "reset", lambda s: s.can_reset, reset)
    elif command in ("duration", "start-time"):
        _dispatch_setting(store, command, " ".join(args))
    else:
        click.echo(f"Unknown command: {command} (try 'help')", err=True)
    return True


def _dispatch_control(
    store: TimerStore,
    name: str,
    enabled: Callable[[TimerState], bool],
    make_intent: Callable[[], Intent],
) -> None:
    # Check and apply under one lock so a tick cannot slip in between.
    with store.locked() as state:
        if not enabled(state):
            click.echo(f"{name} is disabled", err=True)
            return
        store.apply(make_intent())


def _dispatch_setting(store: TimerStore, name: str, text: str) -> None:
    value = parse_whole_number(text)
    if value is None:
        click.echo(f"Not a number: {text!r}", err=True)
        return
    if name == "duration" and value == 0:
        click.echo("Duration must be positive", err=True)
        return

    intent = set_duration(value) if name == "duration" else set_start_time(value)
    with store.locked() as state:
        if not state.can_configure:
            click.echo(f"{name} is disabled", err=True)
            return
        store.apply(intent)
        store.apply(reset())
    logger.info("%s set to %d", name, value)
