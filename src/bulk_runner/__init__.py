"""Background bulk operation engine with pause, resume and stop."""

__version__ = "0.1.0"
