"""
Handles the low-level retrieval of lesson resources over HTTP, reassembling the
response into an in-memory blob while reporting byte-level progress.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

import aiohttp

from lesson_offline.exceptions import NetworkFetchError
from lesson_offline.models.progress import FetchProgress, compute_percent
from lesson_offline.utils.cancellation import CancellationToken

log = logging.getLogger(__name__)

ProgressCallback = Callable[[FetchProgress], None]


@dataclass
class FetchedResource:
    """The full body of a response together with its declared content type."""

    url: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


class ProgressiveFetcher:
    """A resource fetcher with retry logic for transport failures."""

    DEFAULT_CHUNK_SIZE = 131072  # 128 KB

    def __init__(
        self,
        max_connections: int = 4,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        connect_timeout: float = 15.0,
        read_timeout: float = 90.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.max_connections = max_connections
        self.chunk_size = chunk_size
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Gets or creates the pooled aiohttp ClientSession used for every fetch."""
        async with self._session_lock:
            if self._session and not self._session.closed:
                return self._session

            connector = aiohttp.TCPConnector(
                limit=self.max_connections * 2,
                limit_per_host=self.max_connections,
                ttl_dns_cache=600,  # 10 minutes
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            timeout = aiohttp.ClientTimeout(
                total=None,
                sock_connect=self.connect_timeout,
                sock_read=self.read_timeout,
            )
            self._session = aiohttp.ClientSession(connector=connector, timeout=timeout)
            self._owns_session = True
            log.debug(
                f"Created fetch pool with limit_per_host={self.max_connections}"
            )
            return self._session

    async def close(self) -> None:
        """Closes the pooled session if this fetcher created it."""
        async with self._session_lock:
            if self._owns_session and self._session and not self._session.closed:
                await self._session.close()
                log.debug("Fetcher connection pool closed.")
            self._session = None

    async def fetch(
        self,
        url: str,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> bytes:
        """Retrieves a resource and returns its raw bytes."""
        resource = await self.fetch_resource(url, on_progress, cancel_token)
        return resource.data

    async def fetch_resource(
        self,
        url: str,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FetchedResource:
        """
        Retrieves a resource, reading the body incrementally when progress was
        requested and the server declared a Content-Length.

        Raises:
            NetworkFetchError: On a non-success status or a transport failure.
            DownloadCancelledError: When the cancellation token fires.
        """
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            progress_reported = False

            def relay(progress: FetchProgress) -> None:
                nonlocal progress_reported
                progress_reported = True
                on_progress(progress)

            try:
                return await self._fetch_once(
                    url, relay if on_progress else None, cancel_token
                )
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                if progress_reported:
                    break
                log.debug(
                    f"Fetch attempt {attempt}/{self.max_attempts} for '{url}' "
                    f"failed: {e!r}. Retrying..."
                )
                if attempt < self.max_attempts:
                    if cancel_token:
                        cancel_token.raise_if_cancelled()
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise NetworkFetchError(url, reason=str(last_exception) or repr(last_exception))

    async def _fetch_once(
        self,
        url: str,
        on_progress: ProgressCallback | None,
        cancel_token: CancellationToken | None,
    ) -> FetchedResource:
        if cancel_token:
            cancel_token.raise_if_cancelled()

        session = await self._get_session()
        async with session.get(url, allow_redirects=True) as response:
            if not 200 <= response.status < 300:
                raise NetworkFetchError(url, status=response.status)

            content_type = response.headers.get("Content-Type")
            total = int(response.headers.get("Content-Length", 0) or 0)

            if not on_progress or not total:
                data = await response.read()
                if cancel_token:
                    cancel_token.raise_if_cancelled()
                return FetchedResource(url, data, content_type)

            chunks: list[bytes] = []
            loaded = 0
            async for chunk in response.content.iter_chunked(self.chunk_size):
                if cancel_token:
                    cancel_token.raise_if_cancelled()
                chunks.append(chunk)
                loaded += len(chunk)
                on_progress(
                    FetchProgress(
                        loaded=loaded,
                        total=total,
                        percent=compute_percent(loaded, total),
                    )
                )

            if cancel_token:
                cancel_token.raise_if_cancelled()
            return FetchedResource(url, b"".join(chunks), content_type)
