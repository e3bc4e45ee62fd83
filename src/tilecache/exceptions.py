"""
Exceptions raised inside the tile storage cache.

None of these are meant to reach the page: the manager catches them and
degrades to "caching disabled".
"""


class TileCacheError(Exception):
    """Base exception for all tilecache errors."""


class StorageUnavailable(TileCacheError):
    """Raised when a storage tier is disabled or refuses an operation."""


class StorageQuotaExceeded(StorageUnavailable):
    """Raised when a storage tier has no room left for a value."""


class MalformedKey(TileCacheError, ValueError):
    """Raised when a stored key does not have the expected timestamp-key shape."""


class ConsentNotGiven(TileCacheError):
    """Raised internally when an operation needs consent the user has not given."""
