# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for URL state mirroring."""

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlsplit

import pytest

from src.domains.analytics.models import ComparisonConfig, DatePreset, DateRange, GlobalFilters
from src.domains.analytics.store import GlobalFilterStore
from src.domains.analytics.url_state import URLStateManager

BASE_URL = "https://gamelearn.example/instructor/analytics?tab=revenue"


@pytest.fixture
def filters() -> GlobalFilters:
    return GlobalFilters(
        course_ids=["c1", "c2"],
        date_range=DateRange(
            start=datetime(2024, 1, 1, tzinfo=timezone.utc),
            end=datetime(2024, 1, 31, tzinfo=timezone.utc),
            preset=DatePreset.CUSTOM,
        ),
        include_archived=True,
        comparison=ComparisonConfig(enabled=True, baseline_course_id="c1", comparison_course_ids=["c2"]),
        custom_filters={"region": "emea"},
    )


def query_of(url: str) -> dict[str, list[str]]:
    return parse_qs(urlsplit(url).query)


class TestSerialization:
    """Tests for query parameter serialization."""

    def test_serialize_to_query(self, filters: GlobalFilters) -> None:
        params = URLStateManager().serialize_to_query(filters)

        assert params == {
            "courseIds": "c1,c2",
            "dateFrom": "2024-01-01",
            "dateTo": "2024-01-31",
            "datePreset": "custom",
            "includeArchived": "true",
            "comparisonEnabled": "true",
            "baselineCourseId": "c1",
            "comparisonCourseIds": "c2",
            "customFilters": '{"region":"emea"}',
        }

    def test_defaults_are_omitted(self) -> None:
        params = URLStateManager().serialize_to_query(GlobalFilters())

        assert set(params) == {"dateFrom", "dateTo", "datePreset"}

    def test_query_applies_back_to_store(self, filters: GlobalFilters) -> None:
        manager = URLStateManager()
        store = GlobalFilterStore()

        store.set_global_filters(manager.deserialize_from_query(manager.serialize_to_query(filters)))

        assert store.filters.course_ids == ("c1", "c2")
        assert store.filters.date_range == filters.date_range
        assert store.filters.include_archived is True
        assert store.filters.comparison == filters.comparison
        assert store.filters.custom_filters == {"region": "emea"}

    def test_invalid_dates_ignored(self) -> None:
        patch = URLStateManager().deserialize_from_query({"dateFrom": "yesterday", "dateTo": "2024-01-31"})

        assert "date_range" not in patch

    def test_missing_preset_defaults_to_custom(self) -> None:
        patch = URLStateManager().deserialize_from_query({"dateFrom": "2024-01-01", "dateTo": "2024-01-31"})

        assert patch["date_range"]["preset"] == DatePreset.CUSTOM


class TestURLHandling:
    """Tests for URL updates and history."""

    def test_update_url_preserves_other_params(self, filters: GlobalFilters) -> None:
        manager = URLStateManager(current_url=BASE_URL)

        url = manager.update_url(filters)

        query = query_of(url)
        assert query["tab"] == ["revenue"]
        assert query["courseIds"] == ["c1,c2"]
        assert manager.current_url == url

    def test_load_from_url(self, filters: GlobalFilters) -> None:
        manager = URLStateManager()
        url = manager.update_url(filters, url=BASE_URL)

        patch = URLStateManager().load_from_url(url)

        assert patch["course_ids"] == ["c1", "c2"]
        assert patch["include_archived"] is True

    def test_clear_url_keeps_unrelated_params(self, filters: GlobalFilters) -> None:
        manager = URLStateManager(current_url=BASE_URL)
        manager.update_url(filters)

        cleared = manager.clear_url()

        assert query_of(cleared) == {"tab": ["revenue"]}

    def test_history_back_and_forward(self) -> None:
        manager = URLStateManager(current_url=BASE_URL)
        first = manager.update_url(GlobalFilters(course_ids=["c1"]))
        second = manager.update_url(GlobalFilters(course_ids=["c2"]))

        assert manager.can_go_back() is True
        assert manager.go_back() == first
        assert manager.can_go_forward() is True
        assert manager.go_forward() == second
        assert manager.go_forward() is None

    def test_replace_does_not_push_history(self) -> None:
        manager = URLStateManager(current_url=BASE_URL)
        manager.update_url(GlobalFilters(course_ids=["c1"]))

        manager.update_url(GlobalFilters(course_ids=["c2"]), replace=True)

        assert manager.can_go_back() is False

    def test_push_after_back_drops_forward_entries(self) -> None:
        manager = URLStateManager(current_url=BASE_URL)
        manager.update_url(GlobalFilters(course_ids=["c1"]))
        manager.update_url(GlobalFilters(course_ids=["c2"]))
        manager.go_back()

        manager.update_url(GlobalFilters(course_ids=["c3"]))

        assert manager.can_go_forward() is False

    def test_history_is_bounded(self) -> None:
        manager = URLStateManager(current_url=BASE_URL, max_history_size=3)
        for index in range(5):
            manager.update_url(GlobalFilters(course_ids=[f"c{index}"]))

        steps = 0
        while manager.go_back() is not None:
            steps += 1

        assert steps == 2
        assert query_of(manager.current_url)["courseIds"] == ["c2"]
