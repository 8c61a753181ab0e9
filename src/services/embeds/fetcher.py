# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Embed fetchers for hosted analytics dashboards.

Each provider has an entry in a dispatch table describing how to build
the mint request body and which backend endpoint signs it. The fetcher
checks the embed cache first, mints on a miss and turns every failure
into an :class:`EmbedResult` so one broken dashboard never breaks the
page around it.

Example:
    fetcher = EmbedFetcher(client)
    result = await fetcher.load(
        EmbedRequest(
            provider=AnalyticsPlatform.METABASE,
            resource_type="dashboard",
            resource_id="12",
            filters=adapter.get_platform_filters(AnalyticsPlatform.METABASE),
        )
    )
    html = result.render()
"""

import html
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.domains.analytics.models import AnalyticsPlatform
from src.services.analytics_api.client import AnalyticsAPIClient
from src.services.analytics_api.exceptions import AnalyticsError, is_not_configured
from src.services.analytics_api.schemas import EmbedResponse
from src.services.embeds.cache import EmbedCache, EmbedCacheEntry, EmbedCacheKey, get_embed_cache

logger = logging.getLogger(__name__)

DEFAULT_EMBED_HEIGHT = 600


@dataclass(frozen=True)
class EmbedRequest:
    """A dashboard, insight or question to embed.

    Attributes:
        provider: Analytics provider hosting the resource.
        resource_type: ``insight`` or ``dashboard`` for PostHog,
            ``dashboard`` or ``question`` for Metabase.
        resource_id: Provider id of the resource.
        question_id: Metabase question id, when it differs from resource_id.
        filters: Platform filters sent with the mint request.
        height: Iframe height in pixels.
        title: Iframe title.
    """

    provider: AnalyticsPlatform
    resource_id: str
    resource_type: str = "dashboard"
    question_id: str | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)
    height: int = DEFAULT_EMBED_HEIGHT
    title: str = "Analytics"

    def __post_init__(self) -> None:
        provider = EMBED_PROVIDERS.get(AnalyticsPlatform(self.provider))
        if provider is None:
            raise ValueError(f"Embedding is not supported for provider: {self.provider}")
        if self.resource_type not in provider.resource_types:
            raise ValueError(
                f"Invalid resource type for {provider.label}: {self.resource_type} "
                f"(expected one of {', '.join(provider.resource_types)})"
            )

    @property
    def target_id(self) -> str:
        """Id of the resource actually signed."""
        if self.resource_type == "question" and self.question_id:
            return self.question_id
        return self.resource_id


# ========== Provider dispatch ==========


MintCall = Callable[[AnalyticsAPIClient, dict[str, Any]], Awaitable[EmbedResponse]]


@dataclass(frozen=True)
class EmbedProvider:
    """How one provider's embeds are requested.

    Attributes:
        label: Display name used in notices.
        resource_types: Accepted resource types.
        build_body: Builds the mint request body.
        mint: Calls the backend mint endpoint.
    """

    label: str
    resource_types: tuple[str, ...]
    build_body: Callable[[EmbedRequest, bool], dict[str, Any]]
    mint: MintCall


def build_posthog_body(request: EmbedRequest, refresh: bool) -> dict[str, Any]:
    id_key = "insightId" if request.resource_type == "insight" else "dashboardId"
    filters = dict(request.filters)
    return {
        id_key: request.resource_id,
        "filters": filters,
        "parameters": filters,
        "refresh": refresh,
    }


def build_metabase_body(request: EmbedRequest, refresh: bool) -> dict[str, Any]:
    """Metabase ids are numeric; dashboards and questions are signed separately."""
    id_key = "questionId" if request.resource_type == "question" else "dashboardId"
    target_id = request.target_id
    try:
        numeric_id = int(target_id)
    except ValueError as e:
        raise ValueError(f"Metabase {request.resource_type} id must be numeric: {target_id}") from e

    filters = dict(request.filters)
    return {
        id_key: numeric_id,
        "filters": filters,
        "parameters": filters,
        "refresh": refresh,
    }


EMBED_PROVIDERS: dict[AnalyticsPlatform, EmbedProvider] = {
    AnalyticsPlatform.POSTHOG: EmbedProvider(
        label="PostHog",
        resource_types=("insight", "dashboard"),
        build_body=build_posthog_body,
        mint=lambda client, body: client.mint_posthog_embed(body),
    ),
    AnalyticsPlatform.METABASE: EmbedProvider(
        label="Metabase",
        resource_types=("dashboard", "question"),
        build_body=build_metabase_body,
        mint=lambda client, body: client.mint_metabase_embed(body),
    ),
}


# ========== Results ==========


class EmbedStatus(str, Enum):
    LOADED = "loaded"
    ERROR = "error"
    NOT_CONFIGURED = "not_configured"


@dataclass
class EmbedResult:
    """Outcome of loading one embed.

    Attributes:
        request: The request that produced this result.
        status: Load outcome.
        entry: Signed embed for loaded results.
        error: Error message for failed results.
        from_cache: True when served without a backend call.
    """

    request: EmbedRequest
    status: EmbedStatus
    entry: EmbedCacheEntry | None = None
    error: str | None = None
    from_cache: bool = False

    @property
    def is_loaded(self) -> bool:
        return self.status == EmbedStatus.LOADED

    @property
    def url(self) -> str | None:
        return self.entry.iframe_url if self.entry else None

    def render(self) -> str:
        """Render the result as an HTML fragment."""
        if self.status == EmbedStatus.LOADED and self.entry is not None:
            return (
                f'<iframe src="{html.escape(self.entry.iframe_url)}" width="100%" '
                f'height="{int(self.request.height)}" frameborder="0" '
                f'title="{html.escape(self.request.title)}"></iframe>'
            )

        if self.status == EmbedStatus.NOT_CONFIGURED:
            label = EMBED_PROVIDERS[AnalyticsPlatform(self.request.provider)].label
            return (
                '<div class="analytics-notice" role="status">'
                f"<p><strong>{html.escape(label)} Integration Not Configured</strong></p>"
                "<p>Advanced analytics dashboards require additional setup. "
                "Contact your administrator to enable this feature.</p>"
                "</div>"
            )

        return (
            '<div class="analytics-error" role="alert">'
            f"Failed to load analytics: {html.escape(self.error or 'Unknown error')}"
            "</div>"
        )


# ========== Fetcher ==========


class EmbedFetcher:
    """Loads signed embeds through the cache.

    Concurrent loads of the same embed are not deduplicated; each miss
    mints its own URL and the last write wins.
    """

    def __init__(
        self,
        client: AnalyticsAPIClient,
        cache: EmbedCache | None = None,
    ) -> None:
        self._client = client
        self._cache = cache if cache is not None else get_embed_cache()

    @property
    def cache(self) -> EmbedCache:
        return self._cache

    def cache_key(self, request: EmbedRequest) -> EmbedCacheKey:
        # Ids are only unique within a resource type.
        return EmbedCache.make_key(
            request.provider,
            f"{request.resource_type}:{request.target_id}",
            request.filters,
        )

    async def load(self, request: EmbedRequest, refresh: bool = False) -> EmbedResult:
        """Load an embed, serving a valid cached URL unless ``refresh`` is set.

        Args:
            request: Embed to load.
            refresh: Bypass the cache and ask the provider for fresh data.

        Returns:
            EmbedResult; failures are reported in the result, not raised.
        """
        key = self.cache_key(request)

        if not refresh:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Embed cache hit: %s/%s", key.provider, key.resource_id)
                return EmbedResult(
                    request=request,
                    status=EmbedStatus.LOADED,
                    entry=cached,
                    from_cache=True,
                )

        provider = EMBED_PROVIDERS[AnalyticsPlatform(request.provider)]
        try:
            body = provider.build_body(request, refresh)
            response = await provider.mint(self._client, body)
        except (AnalyticsError, ValueError) as e:
            message = getattr(e, "message", None) or str(e)
            status = EmbedStatus.NOT_CONFIGURED if is_not_configured(message) else EmbedStatus.ERROR
            logger.warning(
                "Failed to load %s embed %s: %s",
                provider.label,
                request.target_id,
                message,
            )
            return EmbedResult(request=request, status=status, error=message)

        entry = self._cache.set(
            key,
            self._cache.build_entry(
                key,
                url=response.url,
                iframe_url=response.embed_url,
                token=response.token,
                expires_at=response.expires_at,
            ),
        )
        logger.info("Minted %s embed: %s", provider.label, request.target_id)
        return EmbedResult(request=request, status=EmbedStatus.LOADED, entry=entry)

    async def refresh(self, request: EmbedRequest) -> EmbedResult:
        """Mint a fresh embed, replacing any cached one."""
        return await self.load(request, refresh=True)
