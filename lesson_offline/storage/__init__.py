"""
Storage Layer.

This package handles all data persistence: configuration files, the blob cache
holding lesson resources, the metadata database, and the capacity probe.
"""

from .blob_cache import BlobCache
from .config_manager import ConfigManager
from .metadata_store import MetadataStore
from .quota import QuotaProbe, StorageInfo

__all__ = ["BlobCache", "ConfigManager", "MetadataStore", "QuotaProbe", "StorageInfo"]
