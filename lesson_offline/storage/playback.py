"""
Materializes cached blobs as local files that a media player can open, and
revokes them when they are no longer needed.
"""

import asyncio
import logging
import mimetypes
import os
import uuid
from pathlib import Path
from urllib.parse import urlparse

import aiofiles

from lesson_offline.models.video import CachedBlob

log = logging.getLogger(__name__)


class PlaybackHandles:
    """
    Tracks the playback files handed out as 'file://' URIs.

    Each call to create() yields a fresh handle, even for the same blob, so one
    consumer revoking its handle never breaks another.
    """

    def __init__(self, data_dir_path: Path):
        self.playback_dir = data_dir_path / "playback"
        self._handles: dict[str, Path] = {}

    @staticmethod
    def _guess_suffix(blob: CachedBlob) -> str:
        if blob.content_type:
            mime = blob.content_type.split(";", 1)[0].strip()
            if suffix := mimetypes.guess_extension(mime):
                return suffix
        return Path(urlparse(blob.locator).path).suffix

    async def create(self, blob: CachedBlob) -> str:
        """Writes the blob to a playback file and returns its URI."""
        await asyncio.to_thread(self.playback_dir.mkdir, parents=True, exist_ok=True)
        path = self.playback_dir / f"{uuid.uuid4().hex}{self._guess_suffix(blob)}"
        async with aiofiles.open(path, "wb") as f:
            await f.write(blob.data)
        handle = path.resolve().as_uri()
        self._handles[handle] = path
        return handle

    async def revoke(self, handle: str) -> bool:
        """Deletes the file behind a handle. Unknown handles are ignored."""
        path = self._handles.pop(handle, None)
        if path is None:
            return False
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning(f"Could not remove playback file '{path.name}': {e}")
        return True

    async def revoke_all(self) -> int:
        handles = list(self._handles)
        for handle in handles:
            await self.revoke(handle)
        if handles:
            log.debug(f"Revoked {len(handles)} playback handles.")
        return len(handles)

    def __contains__(self, handle: str) -> bool:
        return handle in self._handles

    def __len__(self) -> int:
        return len(self._handles)
