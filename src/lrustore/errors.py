"""lrustore exception hierarchy.

Keep this module small and dependency-free: it is imported broadly across the
project and by tests.
"""


class LruStoreError(Exception):
    """Base exception for all lrustore errors."""


class LruStoreConfigError(LruStoreError):
    """Raised for invalid configuration, options or repository names."""


class LruStoreSaveError(LruStoreError):
    """Raised when an explicit save cannot write the repository to disk."""


class LruStoreNotFoundError(LruStoreError):
    """Raised when an operation requires a persisted repository that does not exist."""
