"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import datetime

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_size(bytes_size: int, decimals: int = 2) -> str:
    """
    Formats bytes into a human-readable size string (e.g., '145.3 MB').

    Trailing zeros are dropped, so exactly one mebibyte renders as '1 MB'.
    """
    if bytes_size <= 0:
        return "0 B"
    decimals = max(decimals, 0)
    value = float(bytes_size)
    i = 0
    while value >= 1024 and i < len(SIZE_UNITS) - 1:
        value /= 1024
        i += 1
    text = f"{value:.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[i]}"


def format_timestamp(epoch_ms: int) -> str:
    """Formats an epoch timestamp in milliseconds as local date and time."""
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M")


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds into a human-readable string (e.g., '2h 34m 12s').
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)
