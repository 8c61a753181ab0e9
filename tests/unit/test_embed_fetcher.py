# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for embed fetchers."""

import json
from datetime import timedelta

import httpx
import pytest

from src.domains.analytics.models import AnalyticsPlatform
from src.services.embeds.cache import EmbedCache
from src.services.embeds.fetcher import EmbedFetcher, EmbedRequest, EmbedStatus

FILTERS = {"date_from": "2024-01-01", "date_to": "2024-01-31", "course_ids": ["c1", "c2"]}


@pytest.fixture
def cache(clock) -> EmbedCache:
    return EmbedCache(clock=clock)


@pytest.fixture
def minted(clock):
    """Mock backend that mints a new URL per request and records bodies."""
    bodies: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append((request.url.path, body))
        expires_at = (clock.now + timedelta(hours=1)).isoformat()
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {
                    "url": f"https://embed.example/{len(bodies)}",
                    "iframeUrl": f"https://embed.example/{len(bodies)}#bordered=true",
                    "expiresAt": expires_at,
                },
            },
        )

    return handler, bodies


class TestEmbedRequest:
    """Tests for request validation."""

    def test_rejects_unknown_resource_type(self) -> None:
        with pytest.raises(ValueError, match="Invalid resource type"):
            EmbedRequest(provider=AnalyticsPlatform.POSTHOG, resource_id="abc", resource_type="question")

    def test_rejects_provider_without_embeds(self) -> None:
        with pytest.raises(ValueError, match="not supported"):
            EmbedRequest(provider=AnalyticsPlatform.MIXPANEL, resource_id="abc")


class TestEmbedFetcher:
    """Tests for EmbedFetcher."""

    @pytest.mark.asyncio
    async def test_posthog_insight_body(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, bodies = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)

        result = await fetcher.load(
            EmbedRequest(
                provider=AnalyticsPlatform.POSTHOG,
                resource_type="insight",
                resource_id="abc",
                filters=FILTERS,
            )
        )

        assert result.status == EmbedStatus.LOADED
        assert result.url == "https://embed.example/1#bordered=true"
        assert bodies == [
            (
                "/api/analytics/posthog/embed",
                {"insightId": "abc", "filters": FILTERS, "parameters": FILTERS, "refresh": False},
            )
        ]

    @pytest.mark.asyncio
    async def test_metabase_ids_sent_as_integers(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, bodies = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)

        await fetcher.load(EmbedRequest(provider=AnalyticsPlatform.METABASE, resource_id="12"))
        await fetcher.load(
            EmbedRequest(
                provider=AnalyticsPlatform.METABASE,
                resource_type="question",
                resource_id="12",
                question_id="34",
            )
        )

        assert bodies[0][0] == "/api/analytics/metabase/embed"
        assert bodies[0][1]["dashboardId"] == 12
        assert bodies[1][1]["questionId"] == 34
        assert "dashboardId" not in bodies[1][1]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_backend(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, bodies = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)
        request = EmbedRequest(provider=AnalyticsPlatform.METABASE, resource_id="12", filters=FILTERS)

        first = await fetcher.load(request)
        second = await fetcher.load(request)

        assert len(bodies) == 1
        assert second.from_cache is True
        assert second.url == first.url

    @pytest.mark.asyncio
    async def test_resource_types_cached_separately(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, bodies = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)
        insight = EmbedRequest(provider=AnalyticsPlatform.POSTHOG, resource_id="5", resource_type="insight")
        dashboard = EmbedRequest(provider=AnalyticsPlatform.POSTHOG, resource_id="5", resource_type="dashboard")

        first = await fetcher.load(insight)
        second = await fetcher.load(dashboard)

        assert len(bodies) == 2
        assert second.from_cache is False
        assert second.url != first.url
        assert fetcher.cache_key(insight) != fetcher.cache_key(dashboard)

    @pytest.mark.asyncio
    async def test_refresh_bypasses_cache(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, bodies = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)
        request = EmbedRequest(provider=AnalyticsPlatform.METABASE, resource_id="12")

        await fetcher.load(request)
        refreshed = await fetcher.refresh(request)

        assert len(bodies) == 2
        assert bodies[1][1]["refresh"] is True
        assert refreshed.url == "https://embed.example/2#bordered=true"
        assert cache.get(fetcher.cache_key(request)).iframe_url == refreshed.url

    @pytest.mark.asyncio
    async def test_missing_expiry_cached_for_ttl(self, make_api_client, cache: EmbedCache, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "data": {"url": "u", "iframeUrl": "u", "expiresAt": ""}})

        fetcher = EmbedFetcher(make_api_client(handler), cache)

        result = await fetcher.load(EmbedRequest(provider=AnalyticsPlatform.METABASE, resource_id="12"))

        assert result.entry.expires_at == clock.now + timedelta(seconds=300)

    @pytest.mark.asyncio
    async def test_not_configured_result(self, make_api_client, cache: EmbedCache) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"success": False, "error": "Metabase is not configured"})

        fetcher = EmbedFetcher(make_api_client(handler), cache)

        result = await fetcher.load(EmbedRequest(provider=AnalyticsPlatform.METABASE, resource_id="12"))

        assert result.status == EmbedStatus.NOT_CONFIGURED
        assert "Metabase Integration Not Configured" in result.render()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_error_result(self, make_api_client, cache: EmbedCache) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"success": False, "error": "Signing failed"})

        fetcher = EmbedFetcher(make_api_client(handler), cache)

        result = await fetcher.load(EmbedRequest(provider=AnalyticsPlatform.POSTHOG, resource_id="abc"))

        assert result.status == EmbedStatus.ERROR
        assert result.render().startswith('<div class="analytics-error"')
        assert "Failed to load analytics: " in result.render()
        assert "Signing failed" in result.error

    @pytest.mark.asyncio
    async def test_non_numeric_metabase_id_is_error(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, bodies = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)

        result = await fetcher.load(EmbedRequest(provider=AnalyticsPlatform.METABASE, resource_id="sales"))

        assert result.status == EmbedStatus.ERROR
        assert bodies == []

    @pytest.mark.asyncio
    async def test_loaded_result_renders_iframe(self, make_api_client, cache: EmbedCache, minted) -> None:
        handler, _ = minted
        fetcher = EmbedFetcher(make_api_client(handler), cache)

        result = await fetcher.load(
            EmbedRequest(provider=AnalyticsPlatform.POSTHOG, resource_id="abc", height=400, title="Revenue")
        )

        html = result.render()
        assert html.startswith('<iframe src="https://embed.example/1#bordered=true"')
        assert 'height="400"' in html
        assert 'title="Revenue"' in html
