# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics filter domain.

This module provides the filter state shared by every embedded
dashboard:
- Canonical filter models (courses, date range, comparison, real-time)
- The observable filter store
- Per-platform filter translation
- URL query parameter mirroring

Usage:
    from src.domains.analytics import FilterSyncAdapter, GlobalFilterStore

    store = GlobalFilterStore()
    adapter = FilterSyncAdapter(store, instructor_id="user_123")

    store.set_global_filters({"course_ids": ["c1", "c2"]})
    params = adapter.get_platform_filters(AnalyticsPlatform.METABASE)
"""

from src.domains.analytics.filter_sync import (
    FilterSyncAdapter,
    FilterSyncService,
    PlatformFilterMapping,
    are_filters_equal,
    create_default_filter_sync,
    deserialize_filters,
    filter_sync_service,
    merge_filters,
    serialize_filters,
)
from src.domains.analytics.models import (
    AnalyticsPlatform,
    ComparisonConfig,
    DatePreset,
    DateRange,
    GlobalFilters,
    RealTimeConfig,
    SelectionMode,
)
from src.domains.analytics.store import GlobalFilterStore
from src.domains.analytics.url_state import URLStateManager

__all__ = [
    # Models
    "AnalyticsPlatform",
    "DatePreset",
    "DateRange",
    "ComparisonConfig",
    "RealTimeConfig",
    "SelectionMode",
    "GlobalFilters",
    # Store
    "GlobalFilterStore",
    # Filter sync
    "PlatformFilterMapping",
    "FilterSyncService",
    "FilterSyncAdapter",
    "filter_sync_service",
    "create_default_filter_sync",
    "merge_filters",
    "serialize_filters",
    "deserialize_filters",
    "are_filters_equal",
    # URL state
    "URLStateManager",
]
