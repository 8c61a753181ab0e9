# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Signed analytics embeds.

Components:
- EmbedCache: Process-local TTL cache of signed iframe URLs
- EmbedFetcher: Cache-first loading through the provider dispatch table
- EmbedResult: Load outcome rendered as an iframe or a notice
"""

from src.services.embeds.cache import (
    EmbedCache,
    EmbedCacheEntry,
    EmbedCacheKey,
    get_embed_cache,
    reset_embed_cache,
)
from src.services.embeds.fetcher import (
    EMBED_PROVIDERS,
    EmbedFetcher,
    EmbedProvider,
    EmbedRequest,
    EmbedResult,
    EmbedStatus,
)

__all__ = [
    # Cache
    "EmbedCache",
    "EmbedCacheKey",
    "EmbedCacheEntry",
    "get_embed_cache",
    "reset_embed_cache",
    # Fetcher
    "EMBED_PROVIDERS",
    "EmbedProvider",
    "EmbedRequest",
    "EmbedResult",
    "EmbedStatus",
    "EmbedFetcher",
]
