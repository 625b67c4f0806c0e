"""Exception types for quota_cache.

Only ``UnknownNamespaceError`` reaches callers; the others are raised by
storage and quota backends and absorbed into logged warnings.
"""

from __future__ import annotations


class QuotaCacheError(Exception):
    """Base class for quota_cache errors."""


class StorageAreaError(QuotaCacheError):
    """A storage area rejected a read or write (quota exceeded, I/O failure)."""

    def __init__(self, area: str, message: str) -> None:
        self.area = area
        super().__init__(f"[{area}] {message}")


class QuotaUnavailable(QuotaCacheError):
    """A quota source cannot produce a budget in the current environment."""


class UnknownNamespaceError(QuotaCacheError, KeyError):
    """No configuration exists for the requested namespace kind."""
