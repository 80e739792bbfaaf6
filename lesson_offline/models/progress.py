"""
Transient progress reports emitted while a resource is being retrieved.
"""

from dataclasses import dataclass


def compute_percent(loaded: int, total: int) -> int:
    """Rounds half up like a browser would, never exceeding 100."""
    if total <= 0:
        return 0
    return min(100, int(loaded * 100 / total + 0.5))


@dataclass(frozen=True)
class FetchProgress:
    """Byte-level progress of a single fetch."""

    loaded: int
    total: int
    percent: int


@dataclass(frozen=True)
class DownloadProgress(FetchProgress):
    """Fetch progress tagged with the lesson it belongs to."""

    video_id: int = 0

    @classmethod
    def from_fetch(cls, video_id: int, progress: FetchProgress) -> "DownloadProgress":
        return cls(
            loaded=progress.loaded,
            total=progress.total,
            percent=progress.percent,
            video_id=video_id,
        )
