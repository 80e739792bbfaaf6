"""
Media Retrieval Layer.

This package is responsible for fetching lesson resources (videos, subtitles,
thumbnails) over the network with progress reporting.
"""

from .fetcher import FetchedResource, ProgressiveFetcher

__all__ = ["FetchedResource", "ProgressiveFetcher"]
