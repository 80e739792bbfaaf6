"""
A content-addressable, file-based blob cache mapping resource locators (URLs) to
their raw bytes.
"""

import asyncio
import hashlib
import json
import logging
import os
import shutil
import time
import uuid
from pathlib import Path

import aiofiles

from lesson_offline.exceptions import StorageError
from lesson_offline.models.video import CachedBlob

log = logging.getLogger(__name__)


class BlobCache:
    """
    Stores each blob as '<sha256>.bin' with a '<sha256>.json' sidecar holding the
    original locator and content type, inside one namespace directory.

    Locators are used exactly as given: no normalization is applied, so two URLs
    that differ only in a query parameter are two distinct entries.
    """

    DATA_SUFFIX = ".bin"
    META_SUFFIX = ".json"

    def __init__(self, data_dir_path: Path, namespace: str):
        """
        Initializes the blob cache.

        Args:
            data_dir_path: The application data directory.
            namespace: Name of the blob namespace; deleting it evicts every blob.
        """
        self.namespace = namespace
        self.cache_dir = data_dir_path / "blobs" / namespace

    async def open(self) -> None:
        """Creates the namespace directory if it doesn't exist."""
        try:
            await asyncio.to_thread(self.cache_dir.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Failed to open blob cache at '{self.cache_dir}': {e}"
            ) from e

    def _get_paths(self, locator: str) -> tuple[Path, Path]:
        """Generates the data and sidecar paths for a given locator."""
        hashed_key = hashlib.sha256(locator.encode("utf-8")).hexdigest()
        return (
            self.cache_dir / f"{hashed_key}{self.DATA_SUFFIX}",
            self.cache_dir / f"{hashed_key}{self.META_SUFFIX}",
        )

    async def _write_atomic(self, path: Path, payload: bytes) -> None:
        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(payload)
            await asyncio.to_thread(os.replace, tmp_path, path)
        finally:
            if tmp_path.exists():
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass

    async def put(
        self, locator: str, data: bytes, content_type: str | None = None
    ) -> None:
        """
        Saves a blob under its locator, replacing any existing entry.

        Raises:
            StorageError: If the blob cannot be written.
        """
        data_path, meta_path = self._get_paths(locator)
        sidecar = {
            "locator": locator,
            "content_type": content_type,
            "size": len(data),
            "stored_at": time.time(),
        }
        try:
            await asyncio.to_thread(self.cache_dir.mkdir, parents=True, exist_ok=True)
            await self._write_atomic(data_path, data)
            await self._write_atomic(meta_path, json.dumps(sidecar).encode("utf-8"))
        except OSError as e:
            raise StorageError(f"Blob cache write failed for '{locator}': {e}") from e
        log.debug(f"Cached {len(data)} bytes for '{locator}'")

    async def get_entry(self, locator: str) -> CachedBlob | None:
        """
        Retrieves a blob and its sidecar information. Returns None if the locator
        is not cached.

        Raises:
            StorageError: If the blob exists but cannot be read.
        """
        data_path, meta_path = self._get_paths(locator)
        try:
            async with aiofiles.open(data_path, "rb") as f:
                data = await f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Blob cache read failed for '{locator}': {e}") from e

        content_type = None
        stored_at = 0.0
        try:
            async with aiofiles.open(meta_path, encoding="utf-8") as f:
                sidecar = json.loads(await f.read())
            content_type = sidecar.get("content_type")
            stored_at = sidecar.get("stored_at", 0.0)
        except (OSError, json.JSONDecodeError) as e:
            log.debug(f"Blob sidecar unreadable for '{locator}': {e}")

        return CachedBlob(
            locator=locator, data=data, content_type=content_type, stored_at=stored_at
        )

    async def get(self, locator: str) -> bytes | None:
        """Retrieves the raw bytes for a locator, or None if it is not cached."""
        entry = await self.get_entry(locator)
        return entry.data if entry else None

    async def has(self, locator: str) -> bool:
        data_path, _ = self._get_paths(locator)
        return await asyncio.to_thread(data_path.is_file)

    def _entry_size_sync(self, locator: str) -> int | None:
        data_path, _ = self._get_paths(locator)
        try:
            return data_path.stat().st_size
        except FileNotFoundError:
            return None

    async def entry_size(self, locator: str) -> int | None:
        """Returns the stored size of one blob, or None if it is not cached."""
        try:
            return await asyncio.to_thread(self._entry_size_sync, locator)
        except OSError as e:
            raise StorageError(f"Blob cache stat failed for '{locator}': {e}") from e

    def _delete_sync(self, locator: str) -> bool:
        data_path, meta_path = self._get_paths(locator)
        existed = data_path.exists()
        data_path.unlink(missing_ok=True)
        meta_path.unlink(missing_ok=True)
        return existed

    async def delete(self, locator: str) -> bool:
        """Removes a blob. Returns True if something was actually deleted."""
        try:
            return await asyncio.to_thread(self._delete_sync, locator)
        except OSError as e:
            raise StorageError(f"Blob cache delete failed for '{locator}': {e}") from e

    def _delete_all_sync(self) -> int:
        if not self.cache_dir.exists():
            return 0
        count = sum(1 for _ in self.cache_dir.glob(f"*{self.DATA_SUFFIX}"))
        shutil.rmtree(self.cache_dir)
        return count

    async def delete_all(self) -> bool:
        """
        Deletes the whole namespace. It is recreated lazily on the next write.

        Raises:
            StorageError: If the namespace directory cannot be removed.
        """
        log.info("Clearing all cached blobs...")
        try:
            removed = await asyncio.to_thread(self._delete_all_sync)
        except OSError as e:
            raise StorageError(f"Failed to clear blob cache: {e}") from e
        log.debug(f"Blob cache namespace '{self.namespace}': removed {removed} blobs.")
        return True

    def _keys_sync(self) -> list[str]:
        locators = []
        if not self.cache_dir.exists():
            return locators
        for meta_file in self.cache_dir.glob(f"*{self.META_SUFFIX}"):
            try:
                with open(meta_file, encoding="utf-8") as f:
                    locators.append(json.load(f)["locator"])
            except (OSError, json.JSONDecodeError, KeyError) as e:
                log.warning(f"Skipping unreadable blob sidecar {meta_file.name}: {e}")
        return sorted(locators)

    async def keys(self) -> list[str]:
        """Lists the locators of every cached blob."""
        return await asyncio.to_thread(self._keys_sync)

    def _size_sync(self) -> int:
        total = 0
        if not self.cache_dir.exists():
            return total
        for data_file in self.cache_dir.glob(f"*{self.DATA_SUFFIX}"):
            try:
                total += data_file.stat().st_size
            except OSError:
                continue
        return total

    async def size(self) -> int:
        """Returns the number of bytes physically held by the namespace."""
        return await asyncio.to_thread(self._size_sync)
