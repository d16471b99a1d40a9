"""countdown: a countdown timer with a periodic tick scheduler."""

__version__ = "0.1.0"
