"""
Holds the process-wide store handles shared by every download and query.
"""

import logging
from pathlib import Path

from lesson_offline.media.fetcher import ProgressiveFetcher
from lesson_offline.models.config import OfflineConfig
from lesson_offline.storage.blob_cache import BlobCache
from lesson_offline.storage.metadata_store import MetadataStore
from lesson_offline.storage.playback import PlaybackHandles
from lesson_offline.storage.quota import QuotaProbe

log = logging.getLogger(__name__)


class OfflineContext:
    """
    Created once at process start and passed to the orchestrator, instead of
    keeping cache and database handles in module globals.

    Usage:
        async with OfflineContext.from_config(config) as context:
            orchestrator = DownloadOrchestrator(context)
    """

    def __init__(
        self,
        blob_cache: BlobCache,
        metadata_store: MetadataStore,
        quota_probe: QuotaProbe,
        fetcher: ProgressiveFetcher,
        playback: PlaybackHandles,
    ):
        self.blob_cache = blob_cache
        self.metadata_store = metadata_store
        self.quota_probe = quota_probe
        self.fetcher = fetcher
        self.playback = playback

    @classmethod
    def from_config(cls, config: OfflineConfig) -> "OfflineContext":
        data_dir = config.resolved_data_dir
        fetcher = ProgressiveFetcher(
            max_connections=config.max_connections,
            chunk_size=config.chunk_size,
            max_attempts=config.max_attempts,
            base_delay=config.base_delay,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
        )
        return cls.from_data_dir(
            data_dir,
            namespace=config.cache_namespace,
            safety_margin=config.space_safety_margin,
            fetcher=fetcher,
        )

    @classmethod
    def from_data_dir(
        cls,
        data_dir: Path,
        namespace: str = "lesson-videos-v1",
        safety_margin: float = 0.10,
        fetcher: ProgressiveFetcher | None = None,
    ) -> "OfflineContext":
        return cls(
            blob_cache=BlobCache(data_dir, namespace),
            metadata_store=MetadataStore(data_dir),
            quota_probe=QuotaProbe(data_dir, safety_margin),
            fetcher=fetcher or ProgressiveFetcher(),
            playback=PlaybackHandles(data_dir),
        )

    async def open(self) -> None:
        """Opens both stores. Raises StorageError if either is unusable."""
        await self.blob_cache.open()
        await self.metadata_store.open()
        log.debug("Offline context opened.")

    async def close(self, revoke_handles: bool = True) -> None:
        """Revokes outstanding playback handles and closes the network pool."""
        if revoke_handles:
            await self.playback.revoke_all()
        await self.fetcher.close()
        log.debug("Offline context closed.")

    async def __aenter__(self) -> "OfflineContext":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
