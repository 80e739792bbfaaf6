"""
Manages the SQLite database that records which lessons are available offline.
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path

from lesson_offline.exceptions import StorageError
from lesson_offline.models.video import VideoMetadata

log = logging.getLogger(__name__)

_COLUMNS = (
    "id, video_id, title, video_url, thumbnail_url, subtitle_urls, size, downloaded_at"
)


class MetadataStore:
    """
    A thread-offloaded SQLite table of VideoMetadata records keyed by 'video-<id>'.

    Every failure of the underlying database surfaces as StorageError; nothing is
    swallowed here, so callers decide how to react.
    """

    DB_FILENAME = "offline_downloads.sqlite"

    def __init__(self, data_dir_path: Path, pool_size: int = 5):
        self.db_path = data_dir_path / self.DB_FILENAME
        self._pool_size = pool_size
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._opened = False

    def _get_connection(self) -> sqlite3.Connection:
        """Gets a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            return conn
        except sqlite3.Error as e:
            log.error(f"Failed to connect to metadata database: {e}")
            raise StorageError(
                f"Could not open metadata database at '{self.db_path}': {e}"
            ) from e

    def _initialize_db(self) -> None:
        """Creates the database file and table if they don't exist."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Could not create metadata directory '{self.db_path.parent}': {e}"
            ) from e
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS videos (
                        id TEXT PRIMARY KEY NOT NULL,
                        video_id INTEGER NOT NULL,
                        title TEXT NOT NULL,
                        video_url TEXT NOT NULL,
                        thumbnail_url TEXT,
                        subtitle_urls TEXT NOT NULL DEFAULT '[]',
                        size INTEGER NOT NULL DEFAULT 0,
                        downloaded_at INTEGER NOT NULL
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_downloaded_at ON"
                    " videos(downloaded_at);"
                )
        except sqlite3.Error as e:
            raise StorageError(
                f"Failed to initialize metadata database at '{self.db_path}': {e}"
            ) from e
        finally:
            conn.close()

    async def open(self) -> None:
        """Opens (and if needed creates) the database."""
        if self._opened:
            return
        await asyncio.to_thread(self._initialize_db)
        self._opened = True
        log.debug(f"Metadata store ready at '{self.db_path}'")

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        if not self._opened:
            await self.open()
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    def _execute_sync(self, operation: str, query: str, params: tuple = ()):
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(query, params)
                return cursor.fetchall()
        except sqlite3.Error as e:
            log.error(f"Metadata {operation} failed: {e}")
            raise StorageError(f"Metadata {operation} failed: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: tuple) -> VideoMetadata:
        (
            key,
            video_id,
            title,
            video_url,
            thumbnail_url,
            subtitle_urls,
            size,
            downloaded_at,
        ) = row
        return VideoMetadata(
            id=key,
            video_id=video_id,
            title=title,
            video_url=video_url,
            thumbnail_url=thumbnail_url,
            subtitle_urls=json.loads(subtitle_urls or "[]"),
            size=size,
            downloaded_at=downloaded_at,
        )

    async def put(self, record: VideoMetadata) -> None:
        """Inserts a record, replacing any existing one with the same id."""
        params = (
            record.id,
            record.video_id,
            record.title,
            record.video_url,
            record.thumbnail_url,
            json.dumps(record.subtitle_urls),
            record.size,
            record.downloaded_at,
        )
        await self._run_in_executor(
            self._execute_sync,
            "put",
            f"INSERT OR REPLACE INTO videos ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            params,
        )

    async def get(self, key: str) -> VideoMetadata | None:
        """Looks up a record by id. Returns None if it doesn't exist."""
        rows = await self._run_in_executor(
            self._execute_sync,
            "get",
            f"SELECT {_COLUMNS} FROM videos WHERE id = ?",  # noqa: S608
            (key,),
        )
        return self._row_to_record(rows[0]) if rows else None

    async def get_all(self) -> list[VideoMetadata]:
        """Returns every record, most recently downloaded first."""
        rows = await self._run_in_executor(
            self._execute_sync,
            "get_all",
            f"SELECT {_COLUMNS} FROM videos ORDER BY downloaded_at DESC, id",  # noqa: S608
        )
        return [self._row_to_record(row) for row in rows]

    async def delete(self, key: str) -> None:
        await self._run_in_executor(
            self._execute_sync, "delete", "DELETE FROM videos WHERE id = ?", (key,)
        )

    async def clear(self) -> None:
        """Removes every record from the table."""
        await self._run_in_executor(self._execute_sync, "clear", "DELETE FROM videos")
        log.debug("Metadata table cleared.")

    def _vacuum_sync(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute("VACUUM;")
            conn.execute("ANALYZE;")
            conn.commit()
        except sqlite3.Error as e:
            log.error(f"Database vacuum failed: {e}")
            raise StorageError(f"Database vacuum failed: {e}") from e
        finally:
            conn.close()
        log.info("Metadata database optimized successfully.")

    async def vacuum(self) -> None:
        """Optimizes the database file by rebuilding it."""
        await self._run_in_executor(self._vacuum_sync)
