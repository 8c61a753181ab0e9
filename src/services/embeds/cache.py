# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-memory cache of signed embed URLs.

Signed URLs are short-lived, so every entry carries its expiry and is
treated as expired a little before the real deadline to leave room for
the iframe to load. Expired entries are dropped when read and swept in
bulk once the cache grows past a threshold.

Keys are built from the provider, the resource id and the canonical JSON
of the filters, so two requests with the same filters in a different
key order share an entry.

Example:
    cache = get_embed_cache()
    key = EmbedCache.make_key("metabase", "12", {"date_from": "2024-01-01"})

    entry = cache.get(key)
    if entry is None:
        entry = cache.set(key, cache.build_entry(key, url=signed_url))
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Optional

from src.core.config.settings import EmbedCacheSettings, get_settings
from src.domains.analytics.filter_sync import serialize_filters
from src.utils.datetime import Clock, ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Module-level state
_embed_cache: Optional["EmbedCache"] = None


@dataclass(frozen=True)
class EmbedCacheKey:
    """Cache key for one signed embed.

    Attributes:
        provider: Analytics provider name.
        resource_id: Dashboard, insight or question id.
        filters_hash: Canonical JSON of the filters.
    """

    provider: str
    resource_id: str
    filters_hash: str


@dataclass(frozen=True)
class EmbedCacheEntry:
    """A cached signed embed.

    Entries are never mutated; refreshing replaces the entry.
    """

    key: EmbedCacheKey
    url: str
    iframe_url: str
    expires_at: datetime
    token: str | None = None
    cached_at: datetime | None = None


class EmbedCache:
    """Process-local TTL cache of signed embed URLs.

    Attributes:
        ttl_seconds: Lifetime used when the backend reports no expiry.
        early_expiry_seconds: Safety margin before the real expiry.
        sweep_threshold: Size above which expired entries are swept on write.
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        early_expiry_seconds: int = 60,
        sweep_threshold: int = 50,
        clock: Clock = utc_now,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.early_expiry_seconds = early_expiry_seconds
        self.sweep_threshold = sweep_threshold
        self._clock = clock
        self._entries: dict[EmbedCacheKey, EmbedCacheEntry] = {}

    @classmethod
    def from_settings(cls, settings: EmbedCacheSettings, clock: Clock = utc_now) -> "EmbedCache":
        return cls(
            ttl_seconds=settings.ttl_seconds,
            early_expiry_seconds=settings.early_expiry_seconds,
            sweep_threshold=settings.sweep_threshold,
            clock=clock,
        )

    @staticmethod
    def make_key(
        provider: str,
        resource_id: str | int,
        filters: Mapping[str, Any] | None = None,
    ) -> EmbedCacheKey:
        """Build the cache key for an embed request."""
        return EmbedCacheKey(
            provider=str(getattr(provider, "value", provider)),
            resource_id=str(resource_id),
            filters_hash=serialize_filters(filters or {}),
        )

    def build_entry(
        self,
        key: EmbedCacheKey,
        url: str,
        iframe_url: str | None = None,
        token: str | None = None,
        expires_at: datetime | None = None,
    ) -> EmbedCacheEntry:
        """Create an entry, defaulting the expiry to now plus the TTL."""
        if expires_at is None:
            expires_at = self._clock() + timedelta(seconds=self.ttl_seconds)
        return EmbedCacheEntry(
            key=key,
            url=url,
            iframe_url=iframe_url or url,
            token=token,
            expires_at=ensure_utc(expires_at),
        )

    def is_valid(self, entry: EmbedCacheEntry, now: datetime | None = None) -> bool:
        """Whether ``entry`` is still usable at ``now``."""
        current = now or self._clock()
        return current < entry.expires_at - timedelta(seconds=self.early_expiry_seconds)

    def get(self, key: EmbedCacheKey) -> EmbedCacheEntry | None:
        """Get a valid entry, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if not self.is_valid(entry):
            del self._entries[key]
            logger.debug("Embed cache entry expired: %s/%s", key.provider, key.resource_id)
            return None

        return entry

    def set(self, key: EmbedCacheKey, entry: EmbedCacheEntry) -> EmbedCacheEntry:
        """Store ``entry`` under ``key``, stamping the cache time.

        Returns:
            The stored entry.
        """
        stored = replace(entry, key=key, cached_at=self._clock())
        self._entries[key] = stored

        if len(self._entries) > self.sweep_threshold:
            self.sweep()

        return stored

    def sweep(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self.is_valid(entry, now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("Swept %d expired embed cache entries", len(expired))
        return len(expired)

    def invalidate(self, key: EmbedCacheKey) -> bool:
        """Remove one entry. Returns True if it was cached."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def get_embed_cache() -> EmbedCache:
    """Get the process-wide embed cache, creating it on first use."""
    global _embed_cache

    if _embed_cache is None:
        _embed_cache = EmbedCache.from_settings(get_settings().embed_cache)
    return _embed_cache


def reset_embed_cache() -> None:
    """Drop the process-wide embed cache.

    The next :func:`get_embed_cache` call builds a fresh one from the
    current settings.
    """
    global _embed_cache
    _embed_cache = None
