"""
Storage location resolution.

The `storage` option accepts several shapes:

- False: ephemeral, in-memory storage
- a string starting with '.', '/' or '\\': a filesystem path
- any other string: an application name, stored under the user data dir
- any other object: an explicit backend handed to the corestore as is
"""

import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class StorageKind(Enum):
    """Kinds of storage location."""
    MEMORY = "memory"        # Nothing survives the process
    PATH = "path"            # Explicit directory
    APPLICATION = "app"      # Named directory under the user data dir
    CUSTOM = "custom"        # Caller-supplied backend object


@dataclass(frozen=True)
class StorageBackend:
    """Resolved storage location."""
    kind: StorageKind
    location: Optional[Path] = None
    backend: Any = None

    @property
    def persistent(self) -> bool:
        return self.kind is not StorageKind.MEMORY


def user_data_dir(app_name: str) -> Path:
    """Per-user data directory for an application name."""
    if sys.platform == "win32":
        base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / app_name


def is_path_storage(storage: Any) -> bool:
    return isinstance(storage, str) and storage.startswith((".", "/", "\\"))


def resolve_storage(storage: Any) -> StorageBackend:
    """
    Resolve a `storage` option.

    Args:
        storage: False, a path, an application name, or a backend object

    Returns:
        StorageBackend describing where cores should live
    """
    if storage is False or storage is None:
        return StorageBackend(kind=StorageKind.MEMORY)

    if is_path_storage(storage):
        return StorageBackend(kind=StorageKind.PATH, location=Path(storage))

    if isinstance(storage, str):
        return StorageBackend(kind=StorageKind.APPLICATION, location=user_data_dir(storage))

    return StorageBackend(kind=StorageKind.CUSTOM, backend=storage)
