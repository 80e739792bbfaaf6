"""
Read-only probe of the local storage capacity available for offline lessons.
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageInfo:
    """Capacity figures for the volume that holds the data directory."""

    usage: int
    quota: int
    available: int
    usage_percent: float


class QuotaProbe:
    """Answers capacity questions without touching any stored data."""

    def __init__(self, data_dir_path: Path, safety_margin: float = 0.10):
        """
        Args:
            data_dir_path: Directory whose filesystem is measured.
            safety_margin: Fraction of the available space kept in reserve.
        """
        self.data_dir = data_dir_path
        self.safety_margin = safety_margin

    def _probe_path(self) -> Path:
        # The data directory may not exist yet; measure its nearest existing parent.
        path = self.data_dir
        while not path.exists() and path != path.parent:
            path = path.parent
        return path

    def _estimate_sync(self) -> StorageInfo:
        # 'free' excludes blocks reserved for root.
        total, used, available = shutil.disk_usage(self._probe_path())
        usage_percent = (used / total) * 100 if total > 0 else 0.0
        return StorageInfo(
            usage=used,
            quota=total,
            available=available,
            usage_percent=usage_percent,
        )

    async def get_storage_info(self) -> StorageInfo | None:
        """
        Measures the storage volume. Returns None when no estimate can be made.
        """
        try:
            return await asyncio.to_thread(self._estimate_sync)
        except OSError as e:
            log.warning(f"Storage estimate unavailable for '{self.data_dir}': {e}")
            return None

    async def has_enough_space(self, required_bytes: int) -> bool:
        """
        Checks whether required_bytes fit while keeping the safety margin free.
        Assumes there is room when the volume cannot be measured.
        """
        info = await self.get_storage_info()
        if info is None:
            return True
        safe_available = info.available * (1 - self.safety_margin)
        return safe_available >= required_bytes
