"""
Core engine for caching lessons offline.

The `DownloadOrchestrator` coordinates the fetcher and both stores; the
`OfflineContext` owns the store handles it works with.
"""

from .context import OfflineContext
from .download_manager import DownloadOrchestrator

__all__ = ["DownloadOrchestrator", "OfflineContext"]
