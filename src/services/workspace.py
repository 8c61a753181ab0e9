# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics workspace.

One instructor analytics page session: the shared filter store, filter
sync, signed embeds, exports, payment confirmation and session tracking,
all built from :class:`Settings` and torn down together.

Example:
    async with AnalyticsWorkspace(instructor_id="user_123") as workspace:
        workspace.store.set_global_filters({"course_ids": ["c1", "c2"]})
        result = await workspace.load_embed(AnalyticsPlatform.METABASE, "12")
        html = result.render()
"""

import asyncio
import logging
import webbrowser
from collections.abc import Mapping
from typing import Any

import httpx

from src.core.config.settings import Settings, get_settings
from src.domains.analytics.filter_sync import FilterSyncAdapter
from src.domains.analytics.models import AnalyticsPlatform
from src.domains.analytics.store import GlobalFilterStore
from src.domains.analytics.url_state import URLStateManager
from src.services.analytics_api.client import AnalyticsAPIClient
from src.services.analytics_api.schemas import ExportFormat, ExportOptions, ExportType
from src.services.embeds.cache import EmbedCache, get_embed_cache
from src.services.embeds.fetcher import EmbedFetcher, EmbedRequest, EmbedResult
from src.services.exports.client import ExportJobClient, ExportOutcome, Opener
from src.services.payments.poller import PaymentOutcome, PaymentStatusPoller
from src.services.sessions.reporter import SessionReporter, create_session_reporter
from src.services.sessions.tracker import SessionRecord, SessionTracker
from src.utils.datetime import Clock, utc_now
from src.utils.logging import bind_context, clear_context
from src.utils.polling import Sleep

logger = logging.getLogger(__name__)

# Filter vocabulary used for each export family
_EXPORT_PLATFORMS = {
    ExportType.POSTHOG: AnalyticsPlatform.POSTHOG,
    ExportType.VIDEO: AnalyticsPlatform.POSTHOG,
}


class AnalyticsWorkspace:
    """Every analytics service for one page session.

    Attributes:
        settings: Application settings.
        store: Shared filter store.
        filter_sync: Platform filter adapter bound to the store.
        url_state: URL mirror of the filters.
        client: Backend client.
        embeds: Signed embed fetcher.
        exports: Export job client.
        payments: Payment confirmation poller.
        sessions: Session tracker.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        instructor_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: EmbedCache | None = None,
        reporter: SessionReporter | None = None,
        opener: Opener = webbrowser.open_new_tab,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        user_agent: str | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.instructor_id = instructor_id
        if instructor_id:
            bind_context(instructor_id=instructor_id)

        self.store = GlobalFilterStore(clock=clock)
        self.filter_sync = FilterSyncAdapter(self.store, instructor_id=instructor_id)
        self.url_state = URLStateManager()

        self.client = AnalyticsAPIClient.from_settings(self.settings, transport=transport)
        self.embeds = EmbedFetcher(self.client, cache if cache is not None else get_embed_cache())
        self.exports = ExportJobClient.from_settings(self.client, self.settings.export, opener=opener, sleep=sleep)
        self.payments = PaymentStatusPoller.from_settings(self.client, self.settings.payment, sleep=sleep)
        self.sessions = SessionTracker.from_settings(
            reporter or create_session_reporter(self.settings.posthog),
            self.settings.session,
            clock=clock,
            sleep=sleep,
            user_agent=user_agent,
        )

    async def __aenter__(self) -> "AnalyticsWorkspace":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ========== Embeds ==========

    def embed_request(
        self,
        provider: AnalyticsPlatform,
        resource_id: str,
        resource_type: str = "dashboard",
        question_id: str | None = None,
        extra_filters: Mapping[str, Any] | None = None,
        title: str = "Analytics",
        height: int | None = None,
    ) -> EmbedRequest:
        """Build an embed request carrying the current platform filters."""
        return EmbedRequest(
            provider=provider,
            resource_id=resource_id,
            resource_type=resource_type,
            question_id=question_id,
            filters=self.filter_sync.get_platform_filters(provider, extra_filters),
            title=title,
            height=height or self.settings.embed_cache.default_height,
        )

    async def load_embed(
        self,
        provider: AnalyticsPlatform,
        resource_id: str,
        refresh: bool = False,
        **request_options: Any,
    ) -> EmbedResult:
        """Load an embed for the current filters."""
        request = self.embed_request(provider, resource_id, **request_options)
        return await self.embeds.load(request, refresh=refresh)

    async def refresh_embed(self, provider: AnalyticsPlatform, resource_id: str, **request_options: Any) -> EmbedResult:
        return await self.load_embed(provider, resource_id, refresh=True, **request_options)

    # ========== Exports ==========

    def export_options(
        self,
        export_type: ExportType,
        export_format: ExportFormat,
        resource_id: str | None = None,
        async_: bool = True,
    ) -> ExportOptions:
        """Build export options carrying the current filters."""
        platform = _EXPORT_PLATFORMS.get(export_type, AnalyticsPlatform.METABASE)
        return ExportOptions(
            type=export_type,
            format=export_format,
            resource_id=resource_id,
            filters=self.filter_sync.get_platform_filters(platform),
            async_=async_,
        )

    async def export_report(
        self,
        export_type: ExportType,
        export_format: ExportFormat,
        resource_id: str | None = None,
        async_: bool = True,
    ) -> ExportOutcome:
        """Export a report for the current filters."""
        return await self.exports.export(self.export_options(export_type, export_format, resource_id, async_))

    # ========== Payments ==========

    async def confirm_payment(self, course_id: str, payment_id_param: str | None = None) -> PaymentOutcome:
        """Confirm the payment for a course after checkout."""
        return await self.payments.poll_course(course_id, payment_id_param)

    # ========== Sessions ==========

    async def start_session(self, user_id: str, url: str | None = None, referrer: str | None = None) -> SessionRecord | None:
        """Open a tracked session unless session tracking is disabled."""
        if not self.settings.session.enabled:
            return None
        return await self.sessions.start(user_id, url=url, referrer=referrer)

    # ========== URL state ==========

    def sync_url(self, url: str | None = None, replace: bool = False) -> str:
        """Mirror the current filters into the page URL."""
        return self.url_state.update_url(self.store.snapshot(), url=url, replace=replace)

    def load_filters_from_url(self, url: str) -> None:
        """Apply filters found in ``url`` to the store."""
        patch = self.url_state.load_from_url(url)
        if patch:
            self.store.set_global_filters(patch)

    # ========== Teardown ==========

    async def aclose(self) -> None:
        """Close the session, stop background work and release the client."""
        await self.sessions.aclose("unmount")
        self.exports.cancel()
        self.filter_sync.close()
        await self.client.aclose()
        clear_context()
        logger.debug("Analytics workspace closed")
