# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Time is injected everywhere: ``FakeClock`` stands in for the wall clock
and ``FakeSleep`` advances it instead of waiting, so polling loops and
session timers run instantly.
"""

import asyncio
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from src.core.config.settings import clear_settings_cache
from src.services.analytics_api.client import AnalyticsAPIClient
from src.services.embeds.cache import reset_embed_cache


# =============================================================================
# Time Fixtures
# =============================================================================


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeSleep:
    """Sleep replacement that records delays and advances a clock.

    Each call yields to the event loop once so other tasks can run.
    """

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)
        await asyncio.sleep(0)


@pytest.fixture
def start_time() -> datetime:
    return datetime(2024, 1, 31, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(start_time: datetime) -> FakeClock:
    return FakeClock(start_time)


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


# =============================================================================
# HTTP Fixtures
# =============================================================================


Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def make_api_client() -> Generator[Callable[[Handler], AnalyticsAPIClient], None, None]:
    """Build AnalyticsAPIClient instances backed by an httpx.MockTransport."""

    def factory(handler: Handler) -> AnalyticsAPIClient:
        return AnalyticsAPIClient(
            base_url="https://gamelearn.test",
            headers={"Authorization": "Bearer test-token"},
            transport=httpx.MockTransport(handler),
        )

    yield factory


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _reset_singletons() -> Generator[None, None, None]:
    clear_settings_cache()
    reset_embed_cache()
    yield
    clear_settings_cache()
    reset_embed_cache()


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
