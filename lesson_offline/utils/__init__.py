"""
Shared helpers for formatting and cooperative cancellation.
"""

from .cancellation import CancellationToken
from .formatting import format_duration, format_size, format_timestamp

__all__ = ["CancellationToken", "format_duration", "format_size", "format_timestamp"]
