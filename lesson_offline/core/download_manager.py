"""
The main orchestrator for caching lessons offline and answering queries about them.
"""

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable

from rich.markup import escape

from lesson_offline.exceptions import (
    AuxiliaryFetchError,
    DownloadCancelledError,
    LessonOfflineError,
)
from lesson_offline.models.progress import DownloadProgress, FetchProgress
from lesson_offline.models.video import VideoMetadata, make_record_key
from lesson_offline.utils.cancellation import CancellationToken
from lesson_offline.utils.formatting import format_size

from .context import OfflineContext

log = logging.getLogger(__name__)

DownloadProgressCallback = Callable[[DownloadProgress], None]


class DownloadOrchestrator:
    """
    Drives a lesson download through the fetcher into both stores.

    The video is the primary asset: if it cannot be fetched or cached, the whole
    download fails and no metadata is written. Subtitles and the thumbnail are
    best-effort; their failures are logged and the download still succeeds.
    Metadata is the source of truth for whether a lesson is downloaded.
    """

    def __init__(self, context: OfflineContext, max_locks: int = 1000):
        self.context = context
        self.blob_cache = context.blob_cache
        self.metadata_store = context.metadata_store
        self.fetcher = context.fetcher
        self._video_locks: OrderedDict[int, asyncio.Lock] = OrderedDict()
        self._max_locks = max_locks
        self._video_lock_main = asyncio.Lock()

    async def _get_video_lock(self, video_id: int) -> asyncio.Lock:
        """Gets or creates the lock serializing writes for one video id."""
        async with self._video_lock_main:
            if video_id in self._video_locks:
                self._video_locks.move_to_end(video_id)
                return self._video_locks[video_id]

            lock = asyncio.Lock()
            self._video_locks[video_id] = lock

            # Evict the oldest idle locks once over the limit
            if len(self._video_locks) > self._max_locks:
                for key in list(self._video_locks):
                    if len(self._video_locks) <= self._max_locks:
                        break
                    if not self._video_locks[key].locked():
                        del self._video_locks[key]

            return lock

    async def download(
        self,
        video_id: int,
        title: str,
        video_url: str,
        subtitle_urls: list[str],
        thumbnail_url: str | None = None,
        on_progress: DownloadProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> VideoMetadata:
        """
        Caches a lesson and commits its metadata record.

        Steps run strictly in order: video, subtitles, thumbnail, metadata.
        Concurrent calls for the same video_id wait for each other.

        Raises:
            NetworkFetchError: If the video cannot be retrieved.
            StorageError: If the video or the metadata cannot be persisted.
            DownloadCancelledError: If cancel_token fires; blobs written by this
                call are removed again.
        """
        lock = await self._get_video_lock(video_id)
        async with lock:
            written: list[str] = []
            try:
                return await self._download_locked(
                    video_id,
                    title,
                    video_url,
                    subtitle_urls,
                    thumbnail_url,
                    on_progress,
                    cancel_token,
                    written,
                )
            except (DownloadCancelledError, asyncio.CancelledError):
                # Blobs still referenced by an earlier complete download stay.
                existing = await self.metadata_store.get(make_record_key(video_id))
                keep = set(existing.locators) if existing else set()
                partial = [locator for locator in written if locator not in keep]
                log.info(
                    f"[yellow]Download of video {video_id} cancelled, "
                    f"removing {len(partial)} partial blobs.[/yellow]"
                )
                for locator in partial:
                    try:
                        await self.blob_cache.delete(locator)
                    except LessonOfflineError as e:
                        log.warning(f"Could not remove partial blob '{locator}': {e}")
                raise

    async def _download_locked(
        self,
        video_id: int,
        title: str,
        video_url: str,
        subtitle_urls: list[str],
        thumbnail_url: str | None,
        on_progress: DownloadProgressCallback | None,
        cancel_token: CancellationToken | None,
        written: list[str],
    ) -> VideoMetadata:
        def relay(progress: FetchProgress) -> None:
            on_progress(DownloadProgress.from_fetch(video_id, progress))

        log.info(f"Downloading video {video_id} '{escape(title)}'")
        video = await self.fetcher.fetch_resource(
            video_url, relay if on_progress else None, cancel_token
        )
        if cancel_token:
            cancel_token.raise_if_cancelled()
        await self.blob_cache.put(video_url, video.data, video.content_type)
        written.append(video_url)
        total_size = video.size

        for subtitle_url in subtitle_urls:
            total_size += await self._cache_auxiliary(
                subtitle_url, "subtitle", cancel_token, written
            )

        if thumbnail_url:
            total_size += await self._cache_auxiliary(
                thumbnail_url, "thumbnail", cancel_token, written
            )

        if cancel_token:
            cancel_token.raise_if_cancelled()

        metadata = VideoMetadata.create(
            video_id=video_id,
            title=title,
            video_url=video_url,
            subtitle_urls=subtitle_urls,
            thumbnail_url=thumbnail_url,
            size=total_size,
        )
        await self.metadata_store.put(metadata)
        log.info(
            f"[green]✓ Video {video_id} available offline "
            f"({format_size(total_size)}).[/green]"
        )
        return metadata

    async def _cache_auxiliary(
        self,
        url: str,
        kind: str,
        cancel_token: CancellationToken | None,
        written: list[str],
    ) -> int:
        """Fetches and caches a best-effort asset. Returns the bytes cached."""
        try:
            resource = await self.fetcher.fetch_resource(url, cancel_token=cancel_token)
            await self.blob_cache.put(url, resource.data, resource.content_type)
        except DownloadCancelledError:
            raise
        except Exception as e:
            error = AuxiliaryFetchError(url, e)
            log.warning(f"[yellow]⚠ Skipping {kind}: {escape(str(error))}[/yellow]")
            return 0
        written.append(url)
        return resource.size

    async def delete_downloaded_video(self, video_id: int) -> None:
        """
        Removes a lesson: video blob, subtitle blobs, thumbnail blob, and finally
        the metadata record. Does nothing if the lesson is not downloaded.
        """
        lock = await self._get_video_lock(video_id)
        async with lock:
            metadata = await self.metadata_store.get(make_record_key(video_id))
            if metadata is None:
                return
            await self._delete_locked(metadata)

    async def _delete_locked(self, metadata: VideoMetadata) -> None:
        """Deletes a lesson's blobs and record. The caller holds its video lock."""
        await self.blob_cache.delete(metadata.video_url)
        for subtitle_url in metadata.subtitle_urls:
            await self.blob_cache.delete(subtitle_url)
        if metadata.thumbnail_url:
            await self.blob_cache.delete(metadata.thumbnail_url)

        await self.metadata_store.delete(metadata.id)
        log.info(f"Deleted offline copy of video {metadata.video_id}.")

    async def clear_all_downloads(self) -> None:
        """Deletes the whole blob namespace, then empties the metadata table."""
        await self.blob_cache.delete_all()
        await self.metadata_store.clear()
        log.info("All offline downloads cleared.")

    async def get_all_downloaded_videos(self) -> list[VideoMetadata]:
        return await self.metadata_store.get_all()

    async def get_downloaded_video(self, video_id: int) -> VideoMetadata | None:
        return await self.metadata_store.get(make_record_key(video_id))

    async def is_video_downloaded(self, video_id: int) -> bool:
        return await self.get_downloaded_video(video_id) is not None

    async def get_cached_video_url(self, video_url: str) -> str | None:
        """
        Returns a local 'file://' handle for a cached resource, or None on a cache
        miss or any read failure. Release it with revoke_cached_url().
        """
        try:
            blob = await self.blob_cache.get_entry(video_url)
            if blob is None:
                return None
            return await self.context.playback.create(blob)
        except (LessonOfflineError, OSError) as e:
            log.error(f"Failed to get cached video '{video_url}': {e}")
            return None

    async def revoke_cached_url(self, handle: str) -> bool:
        return await self.context.playback.revoke(handle)

    async def revoke_all_cached_urls(self) -> int:
        return await self.context.playback.revoke_all()

    async def get_total_download_size(self) -> int:
        """Sum of the recorded sizes of every downloaded lesson."""
        videos = await self.get_all_downloaded_videos()
        return sum(video.size for video in videos)

    async def get_formatted_total_download_size(self) -> str:
        return format_size(await self.get_total_download_size())

    async def get_cache_size(self) -> int:
        """Bytes physically held by the blob cache, which may differ from the total."""
        return await self.blob_cache.size()

    async def verify_downloaded_video(self, video_id: int) -> list[str] | None:
        """
        Lists the locators recorded for a lesson whose blobs are missing.
        Returns None if the lesson is not downloaded.
        """
        metadata = await self.get_downloaded_video(video_id)
        if metadata is None:
            return None
        missing = []
        for locator in metadata.locators:
            if not await self.blob_cache.has(locator):
                missing.append(locator)
        return missing

    async def repair_downloaded_video(self, video_id: int) -> VideoMetadata | None:
        """
        Reconciles a lesson whose blobs went missing.

        A missing video drops the whole entry, since the lesson is unplayable.
        Missing subtitles or thumbnail are fetched again on a best-effort basis,
        and the recorded size is recomputed from the blobs actually present.
        Returns the (possibly updated) record, or None if there is none left.
        """
        lock = await self._get_video_lock(video_id)
        async with lock:
            metadata = await self.get_downloaded_video(video_id)
            if metadata is None:
                return None
            missing = [
                locator
                for locator in metadata.locators
                if not await self.blob_cache.has(locator)
            ]
            if not missing:
                return metadata

            if metadata.video_url in missing:
                log.warning(
                    f"[yellow]Video blob for {video_id} is missing, dropping the entry."
                    "[/yellow]"
                )
                await self._delete_locked(metadata)
                return None

            written: list[str] = []
            for locator in missing:
                kind = "thumbnail" if locator == metadata.thumbnail_url else "subtitle"
                await self._cache_auxiliary(locator, kind, None, written)
            if not written:
                return metadata

            total_size = 0
            for locator in metadata.locators:
                total_size += await self.blob_cache.entry_size(locator) or 0
            updated = metadata.model_copy(update={"size": total_size})
            await self.metadata_store.put(updated)
            log.info(f"Recovered {len(written)} missing assets for video {video_id}.")
            return updated
