"""Synchronized lyrics lookup, scoring and word-level timing."""

__version__ = "0.1.0"
