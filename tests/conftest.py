"""Test configuration and fixtures"""

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from lesson_offline.core import DownloadOrchestrator, OfflineContext
from lesson_offline.exceptions import NetworkFetchError
from lesson_offline.media.fetcher import FetchedResource, ProgressiveFetcher
from lesson_offline.models.progress import FetchProgress, compute_percent

UNREACHABLE_URL = "http://127.0.0.1:9/unreachable.vtt"


@dataclass
class FakeResource:
    body: bytes = b""
    status: int = 200
    content_type: str = "application/octet-stream"
    chunks: int = 1
    send_length: bool = True


@dataclass
class FakeCDN:
    """Serves canned resources from an in-process aiohttp server."""

    server: TestServer | None = None
    resources: dict[str, FakeResource] = field(default_factory=dict)
    hits: Counter = field(default_factory=Counter)

    def add(self, path: str, body: bytes = b"", **kwargs) -> str:
        self.resources[path] = FakeResource(body=body, **kwargs)
        return self.url(path)

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))

    async def handle(self, request: web.Request) -> web.StreamResponse:
        self.hits[request.path] += 1
        resource = self.resources.get(request.path)
        if resource is None:
            return web.Response(status=404)
        if resource.status != 200:
            return web.Response(status=resource.status)

        response = web.StreamResponse(
            status=200, headers={"Content-Type": resource.content_type}
        )
        if resource.send_length:
            response.content_length = len(resource.body)
        else:
            response.enable_chunked_encoding()
        await response.prepare(request)

        step = max(1, len(resource.body) // resource.chunks)
        for start in range(0, len(resource.body), step):
            await response.write(resource.body[start : start + step])
            await asyncio.sleep(0.01)
        await response.write_eof()
        return response


@pytest.fixture
async def cdn():
    fake = FakeCDN()
    app = web.Application()
    app.router.add_get("/{tail:.*}", fake.handle)
    server = TestServer(app)
    await server.start_server()
    fake.server = server
    yield fake
    await server.close()


@pytest.fixture
def unreachable_url() -> str:
    return UNREACHABLE_URL


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
async def fetcher():
    instance = ProgressiveFetcher(chunk_size=250, max_attempts=2, base_delay=0)
    yield instance
    await instance.close()


@pytest.fixture
async def context(data_dir, fetcher):
    instance = OfflineContext.from_data_dir(data_dir, fetcher=fetcher)
    await instance.open()
    yield instance
    await instance.close()


@pytest.fixture
def orchestrator(context) -> DownloadOrchestrator:
    return DownloadOrchestrator(context)


class StubFetcher:
    """
    Stands in for ProgressiveFetcher where a test needs to control timing or
    observe call order instead of going through HTTP.
    """

    def __init__(self, payloads: dict[str, bytes], delay: float = 0.0):
        self.payloads = payloads
        self.delay = delay
        self.events: list[str] = []
        self.on_fetch = None

    async def fetch_resource(self, url, on_progress=None, cancel_token=None):
        self.events.append(f"start {url}")
        if self.on_fetch:
            self.on_fetch(url)
        if cancel_token:
            cancel_token.raise_if_cancelled()
        await asyncio.sleep(self.delay)
        if url not in self.payloads:
            self.events.append(f"fail {url}")
            raise NetworkFetchError(url, status=404)
        data = self.payloads[url]
        if on_progress:
            on_progress(
                FetchProgress(len(data), len(data), compute_percent(len(data), len(data)))
            )
        self.events.append(f"end {url}")
        return FetchedResource(url, data, "application/octet-stream")

    async def fetch(self, url, on_progress=None, cancel_token=None):
        return (await self.fetch_resource(url, on_progress, cancel_token)).data

    async def close(self):
        pass


@pytest.fixture
def stub_payloads() -> dict[str, bytes]:
    return {
        "https://x/v7.mp4": b"v" * 1000,
        "https://x/v7.en.vtt": b"s" * 20,
        "https://x/v7.jpg": b"t" * 50,
    }


@pytest.fixture
async def stub_context(data_dir, stub_payloads):
    instance = OfflineContext.from_data_dir(
        data_dir, fetcher=StubFetcher(stub_payloads, delay=0.01)
    )
    await instance.open()
    yield instance
    await instance.close()
