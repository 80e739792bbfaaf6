"""Offline caching engine for video lessons."""

__version__ = "1.0.0"
