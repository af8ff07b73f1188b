"""Utility functions and helpers."""

from .clock import Clock, isoformat, utc_now

__all__ = [
    "Clock",
    "isoformat",
    "utc_now",
]
