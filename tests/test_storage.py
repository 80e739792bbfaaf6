"""Tests for the blob cache, metadata store and quota probe"""

from collections import namedtuple

import pytest

from lesson_offline.exceptions import StorageError
from lesson_offline.models.video import VideoMetadata
from lesson_offline.storage.blob_cache import BlobCache
from lesson_offline.storage.metadata_store import MetadataStore
from lesson_offline.storage.quota import QuotaProbe

DiskUsage = namedtuple("DiskUsage", "total used free")


@pytest.fixture
async def blob_cache(data_dir):
    cache = BlobCache(data_dir, "test-namespace")
    await cache.open()
    return cache


@pytest.fixture
async def metadata_store(data_dir):
    store = MetadataStore(data_dir)
    await store.open()
    return store


def make_record(video_id: int, size: int = 100, downloaded_at: int = 1_000) -> VideoMetadata:
    record = VideoMetadata.create(
        video_id=video_id,
        title=f"Lesson {video_id}",
        video_url=f"https://x/v{video_id}.mp4",
        subtitle_urls=[f"https://x/v{video_id}.en.vtt", f"https://x/v{video_id}.zh.vtt"],
        thumbnail_url=None,
        size=size,
    )
    return record.model_copy(update={"downloaded_at": downloaded_at})


class TestBlobCache:
    async def test_put_and_get(self, blob_cache):
        await blob_cache.put("https://x/a.mp4", b"video-bytes", "video/mp4")

        assert await blob_cache.get("https://x/a.mp4") == b"video-bytes"
        entry = await blob_cache.get_entry("https://x/a.mp4")
        assert entry.content_type == "video/mp4"
        assert entry.size == len(b"video-bytes")

    async def test_get_missing_returns_none(self, blob_cache):
        assert await blob_cache.get("https://x/nothing.mp4") is None
        assert await blob_cache.get_entry("https://x/nothing.mp4") is None
        assert not await blob_cache.has("https://x/nothing.mp4")

    async def test_put_overwrites(self, blob_cache):
        await blob_cache.put("https://x/a.vtt", b"old")
        await blob_cache.put("https://x/a.vtt", b"new")

        assert await blob_cache.get("https://x/a.vtt") == b"new"
        assert await blob_cache.keys() == ["https://x/a.vtt"]

    async def test_locators_are_not_normalized(self, blob_cache):
        await blob_cache.put("https://x/a.mp4?sig=1", b"one")
        await blob_cache.put("https://x/a.mp4?sig=2", b"two")

        assert await blob_cache.get("https://x/a.mp4?sig=1") == b"one"
        assert await blob_cache.get("https://x/a.mp4?sig=2") == b"two"
        assert await blob_cache.get("https://x/a.mp4") is None

    async def test_delete(self, blob_cache):
        await blob_cache.put("https://x/a.jpg", b"img")

        assert await blob_cache.delete("https://x/a.jpg") is True
        assert await blob_cache.get("https://x/a.jpg") is None
        assert await blob_cache.delete("https://x/a.jpg") is False

    async def test_entry_size(self, blob_cache):
        await blob_cache.put("https://x/a.vtt", b"s" * 42)

        assert await blob_cache.entry_size("https://x/a.vtt") == 42
        assert await blob_cache.entry_size("https://x/b.vtt") is None

    async def test_delete_all_then_reuse(self, blob_cache):
        await blob_cache.put("https://x/a.mp4", b"a" * 10)
        await blob_cache.put("https://x/b.mp4", b"b" * 20)
        assert await blob_cache.size() == 30

        assert await blob_cache.delete_all() is True
        assert await blob_cache.keys() == []
        assert await blob_cache.size() == 0

        await blob_cache.put("https://x/c.mp4", b"c")
        assert await blob_cache.get("https://x/c.mp4") == b"c"


class TestMetadataStore:
    async def test_put_and_get(self, metadata_store):
        record = make_record(7)
        await metadata_store.put(record)

        loaded = await metadata_store.get("video-7")
        assert loaded == record
        assert loaded.subtitle_urls == ["https://x/v7.en.vtt", "https://x/v7.zh.vtt"]
        assert loaded.thumbnail_url is None

    async def test_get_missing(self, metadata_store):
        assert await metadata_store.get("video-404") is None

    async def test_put_replaces_same_key(self, metadata_store):
        await metadata_store.put(make_record(7, size=100))
        await metadata_store.put(make_record(7, size=999))

        records = await metadata_store.get_all()
        assert len(records) == 1
        assert records[0].size == 999

    async def test_get_all_newest_first(self, metadata_store):
        await metadata_store.put(make_record(1, downloaded_at=1_000))
        await metadata_store.put(make_record(2, downloaded_at=3_000))
        await metadata_store.put(make_record(3, downloaded_at=2_000))

        records = await metadata_store.get_all()
        assert [r.video_id for r in records] == [2, 3, 1]

    async def test_delete_and_clear(self, metadata_store):
        await metadata_store.put(make_record(1))
        await metadata_store.put(make_record(2))

        await metadata_store.delete("video-1")
        assert await metadata_store.get("video-1") is None
        assert await metadata_store.get("video-2") is not None

        await metadata_store.clear()
        assert await metadata_store.get_all() == []

    async def test_vacuum(self, metadata_store):
        await metadata_store.put(make_record(1))
        await metadata_store.vacuum()
        assert await metadata_store.get("video-1") is not None

    async def test_unopenable_database_raises_storage_error(self, data_dir):
        # A directory where the database file should be
        (data_dir / MetadataStore.DB_FILENAME).mkdir(parents=True)
        store = MetadataStore(data_dir)

        with pytest.raises(StorageError):
            await store.open()


class TestQuotaProbe:
    async def test_reports_volume_usage(self, data_dir, monkeypatch):
        monkeypatch.setattr(
            "lesson_offline.storage.quota.shutil.disk_usage",
            lambda path: DiskUsage(1000, 400, 600),
        )
        probe = QuotaProbe(data_dir)

        info = await probe.get_storage_info()

        assert info.quota == 1000
        assert info.usage == 400
        assert info.available == 600
        assert info.usage_percent == pytest.approx(40.0)

    async def test_keeps_safety_margin(self, data_dir, monkeypatch):
        monkeypatch.setattr(
            "lesson_offline.storage.quota.shutil.disk_usage",
            lambda path: DiskUsage(1000, 400, 600),
        )
        probe = QuotaProbe(data_dir, safety_margin=0.10)

        assert await probe.has_enough_space(540) is True
        assert await probe.has_enough_space(541) is False

    async def test_permissive_when_unavailable(self, data_dir, monkeypatch):
        def broken(path):
            raise OSError("no statvfs here")

        monkeypatch.setattr("lesson_offline.storage.quota.shutil.disk_usage", broken)
        probe = QuotaProbe(data_dir)

        assert await probe.get_storage_info() is None
        assert await probe.has_enough_space(10**15) is True

    async def test_measures_real_volume(self, data_dir):
        probe = QuotaProbe(data_dir)

        info = await probe.get_storage_info()

        assert info is not None
        assert info.quota >= info.available >= 0
        assert await probe.has_enough_space(10**18) is False

    async def test_reserved_blocks_are_not_available(self, data_dir, monkeypatch):
        monkeypatch.setattr(
            "lesson_offline.storage.quota.shutil.disk_usage",
            lambda path: DiskUsage(1000, 400, 500),
        )
        probe = QuotaProbe(data_dir, safety_margin=0.10)

        info = await probe.get_storage_info()

        assert info.available == 500
        assert await probe.has_enough_space(450) is True
        assert await probe.has_enough_space(451) is False
