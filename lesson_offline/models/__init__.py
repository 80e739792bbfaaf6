"""
Data Models Layer.

This package contains the models that define the core data structures used
throughout the application, such as configuration, cached lesson records, and
progress reports.
"""

from .config import OfflineConfig
from .progress import DownloadProgress, FetchProgress
from .video import CachedBlob, VideoMetadata, make_record_key

__all__ = [
    "CachedBlob",
    "DownloadProgress",
    "FetchProgress",
    "OfflineConfig",
    "VideoMetadata",
    "make_record_key",
]
