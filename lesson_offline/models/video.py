"""
Records describing cached lessons and the blobs that back them.
"""

import time
from dataclasses import dataclass

from pydantic import BaseModel, Field


def make_record_key(video_id: int) -> str:
    """Builds the metadata key for a catalog video id."""
    return f"video-{video_id}"


class VideoMetadata(BaseModel):
    """Summary record persisted once a lesson's video has been cached."""

    id: str
    video_id: int
    title: str
    video_url: str
    thumbnail_url: str | None = None
    subtitle_urls: list[str] = Field(default_factory=list)
    size: int = 0
    downloaded_at: int = Field(default_factory=lambda: int(time.time() * 1000))

    @classmethod
    def create(
        cls,
        video_id: int,
        title: str,
        video_url: str,
        subtitle_urls: list[str],
        thumbnail_url: str | None,
        size: int,
    ) -> "VideoMetadata":
        return cls(
            id=make_record_key(video_id),
            video_id=video_id,
            title=title,
            video_url=video_url,
            thumbnail_url=thumbnail_url,
            subtitle_urls=list(subtitle_urls),
            size=size,
        )

    @property
    def locators(self) -> list[str]:
        """All blob cache keys this record refers to, video first."""
        urls = [self.video_url, *self.subtitle_urls]
        if self.thumbnail_url:
            urls.append(self.thumbnail_url)
        return urls


@dataclass
class CachedBlob:
    """A blob read back from the cache, with its sidecar information."""

    locator: str
    data: bytes
    content_type: str | None = None
    stored_at: float = 0.0

    @property
    def size(self) -> int:
        return len(self.data)
