"""
Storage for the Hyper SDK.

Storage location resolution and the in-memory corestore.
"""

from hyper_sdk.storage.backends import StorageBackend, StorageKind, resolve_storage
from hyper_sdk.storage.corestore import MemoryCore, MemoryCorestore

__all__ = ["StorageBackend", "StorageKind", "resolve_storage", "MemoryCore", "MemoryCorestore"]
