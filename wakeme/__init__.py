"""WakeMe Travel: wake-up calls before you reach your stop."""

__version__ = "0.1.0"
