"""Terminal rendering of a :class:`TimerState`."""

from __future__ import annotations

import click

from countdown.core.timer import TimerState

PALETTE = ("magenta", "bright_green", "red", "cyan")


def color_for(current_time: int) -> str:
    """Return the palette color for *current_time*, cycling through PALETTE."""
    return PALETTE[current_time % len(PALETTE)]


def render(state: TimerState) -> str:
    """Return a one-line view of *state*, dimmed while stopped."""
    if state.is_running:
        label = "running"
    elif state.is_done:
        label = "done"
    else:
        label = "stopped"
    face = click.style(
        f"( {state.current_time} )",
        fg=color_for(state.current_time),
        bold=True,
        dim=not state.is_running,
    )
    return f"{face}  {label}"


def controls(state: TimerState) -> str:
    """List the controls that are currently enabled."""
    enabled = [
        name
        for name, allowed in (
            ("start", state.can_start),
            ("stop", state.can_stop),
            ("reset", state.can_reset),
            ("duration", state.can_configure),
            ("start-time", state.can_configure),
        )
        if allowed
    ]
    return "enabled: " + (", ".join(enabled) if enabled else "none")
