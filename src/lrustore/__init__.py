from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from lrustore.entry import Entry
from lrustore.errors import (
    LruStoreConfigError,
    LruStoreError,
    LruStoreNotFoundError,
    LruStoreSaveError,
)
from lrustore.registry import (
    Registry,
    destroy_repository,
    get_default_registry,
    open_repository,
    set_default_registry,
)
from lrustore.repository import Repository
from lrustore.validation import purge_invalid, validate_entry, validate_repository


def _package_version() -> str:
    try:
        return version("lrustore")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = [
    "Entry",
    "LruStoreConfigError",
    "LruStoreError",
    "LruStoreNotFoundError",
    "LruStoreSaveError",
    "Registry",
    "Repository",
    "__version__",
    "destroy_repository",
    "get_default_registry",
    "open_repository",
    "purge_invalid",
    "set_default_registry",
    "validate_entry",
    "validate_repository",
]
