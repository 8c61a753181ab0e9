# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Filter synchronization across analytics platforms.

Every embedded dashboard reads the same :class:`GlobalFilters`, but each
provider names its filters differently. This module keeps one mapping per
platform in a registry and translates the canonical filters on demand.

The registry follows the converter registry pattern:
1. PlatformFilterMapping: one platform's translation rules
2. FilterSyncService: registry looked up by platform
3. FilterSyncAdapter: binds a GlobalFilterStore to the registry and adds
   the instructor scoping filter

Usage:
    from src.domains.analytics.filter_sync import FilterSyncAdapter

    adapter = FilterSyncAdapter(store, instructor_id="user_123")
    params = adapter.get_platform_filters(AnalyticsPlatform.METABASE)
    # {"date_from": "2024-01-01", "date_to": "2024-01-31", ...}
"""

import json
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.domains.analytics.models import AnalyticsPlatform, GlobalFilters
from src.domains.analytics.store import GlobalFilterStore
from src.utils.datetime import format_date, format_iso, parse_iso

logger = logging.getLogger(__name__)

FilterMapper = Callable[[GlobalFilters], dict[str, Any]]
FiltersChangedCallback = Callable[[AnalyticsPlatform, dict[str, Any]], None]

INSTRUCTOR_FILTER_KEY = "instructor_id"

_ISO_DATETIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")


@dataclass(frozen=True)
class PlatformFilterMapping:
    """Translation rules for one analytics platform.

    Attributes:
        platform: Platform the mapping belongs to.
        map_filters: Function turning canonical filters into platform filters.
    """

    platform: AnalyticsPlatform
    map_filters: FilterMapper


def _date_mapper(start_key: str, end_key: str) -> FilterMapper:
    """Build a mapper using the given date keys and the shared layout."""

    def map_filters(filters: GlobalFilters) -> dict[str, Any]:
        mapped: dict[str, Any] = {}

        date_range = filters.date_range
        mapped[start_key] = format_date(date_range.start)
        mapped[end_key] = format_date(date_range.end)

        if filters.course_ids:
            mapped["course_ids"] = list(filters.course_ids)

        mapped["include_archived"] = filters.include_archived

        for key, value in filters.custom_filters.items():
            mapped[key] = value

        return mapped

    return map_filters


def map_posthog_filters(filters: GlobalFilters) -> dict[str, Any]:
    """PostHog filters: date keys plus a native event-property filter."""
    mapped = _date_mapper("date_from", "date_to")(filters)

    if filters.course_ids:
        properties = [
            {
                "key": "course_id",
                "value": list(filters.course_ids),
                "operator": "exact",
                "type": "event",
            }
        ]
        existing = mapped.get("properties")
        if isinstance(existing, list):
            properties = properties + existing
        mapped["properties"] = properties

    return mapped


class FilterSyncService:
    """Registry of platform filter mappings.

    Attributes:
        _mappings: Mapping per registered platform.
    """

    def __init__(self, mappings: list[PlatformFilterMapping] | None = None) -> None:
        self._mappings: dict[AnalyticsPlatform, PlatformFilterMapping] = {}
        for mapping in mappings or []:
            self.register_mapping(mapping)

    def register_mapping(self, mapping: PlatformFilterMapping) -> None:
        """Register or replace the mapping for a platform."""
        self._mappings[mapping.platform] = mapping

    def get_platform_mapping(
        self,
        platform: AnalyticsPlatform,
    ) -> PlatformFilterMapping | None:
        """Get the mapping for a platform, if registered."""
        try:
            return self._mappings.get(AnalyticsPlatform(platform))
        except ValueError:
            return None

    def get_all_platforms(self) -> list[AnalyticsPlatform]:
        """List registered platforms in registration order."""
        return list(self._mappings)

    def get_mapped_filters(
        self,
        platform: AnalyticsPlatform,
        filters: GlobalFilters,
    ) -> dict[str, Any]:
        """Translate canonical filters for a platform.

        Args:
            platform: Target platform.
            filters: Canonical filters.

        Returns:
            Platform filters, or an empty dict for unregistered platforms.
        """
        mapping = self.get_platform_mapping(platform)
        if mapping is None:
            logger.warning("No filter mapping registered for platform: %s", platform)
            return {}

        return mapping.map_filters(filters)


def create_default_filter_sync() -> FilterSyncService:
    """Create a registry with the built-in platform mappings."""
    return FilterSyncService(
        [
            PlatformFilterMapping(
                AnalyticsPlatform.METABASE,
                _date_mapper("date_from", "date_to"),
            ),
            PlatformFilterMapping(AnalyticsPlatform.POSTHOG, map_posthog_filters),
            PlatformFilterMapping(
                AnalyticsPlatform.MIXPANEL,
                _date_mapper("from_date", "to_date"),
            ),
            PlatformFilterMapping(
                AnalyticsPlatform.GOOGLE_ANALYTICS,
                _date_mapper("start_date", "end_date"),
            ),
        ]
    )


filter_sync_service = create_default_filter_sync()


class FilterSyncAdapter:
    """Keeps platform filters in step with a :class:`GlobalFilterStore`.

    The adapter reads the store on demand and pushes freshly mapped filters
    for every registered platform to its listeners whenever the store
    changes.

    Attributes:
        instructor_id: Subject used to scope instructor views, if any.
    """

    def __init__(
        self,
        store: GlobalFilterStore,
        service: FilterSyncService | None = None,
        instructor_id: str | None = None,
    ) -> None:
        """Initialize the adapter and subscribe to the store.

        Args:
            store: Filter store to follow.
            service: Mapping registry. Defaults to the module registry.
            instructor_id: Subject merged into every platform payload.
        """
        self._store = store
        self._service = service or filter_sync_service
        self.instructor_id = instructor_id
        self._listeners: list[FiltersChangedCallback] = []
        self._unsubscribe: Callable[[], bool] | None = store.subscribe(self._on_store_change)

    def get_platform_filters(
        self,
        platform: AnalyticsPlatform,
        extra: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Map the current filters for ``platform``.

        Args:
            platform: Target platform.
            extra: Caller-supplied filters merged last.

        Returns:
            Platform filters including the instructor scope.
        """
        mapped = self._service.get_mapped_filters(platform, self._store.snapshot())
        if self.instructor_id:
            mapped[INSTRUCTOR_FILTER_KEY] = self.instructor_id
        if extra:
            mapped = merge_filters(mapped, dict(extra))
        return mapped

    def add_listener(self, callback: FiltersChangedCallback) -> Callable[[], None]:
        """Register a callback receiving ``(platform, filters)`` on change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def sync_to_all_platforms(self) -> None:
        """Push the current filters to every listener for every platform."""
        for platform in self._service.get_all_platforms():
            mapped = self.get_platform_filters(platform)
            for listener in list(self._listeners):
                try:
                    listener(platform, mapped)
                except Exception as e:
                    logger.error(
                        "Filter listener failed for %s: %s",
                        platform.value,
                        str(e),
                        exc_info=True,
                    )

    def close(self) -> None:
        """Stop following the store."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._listeners.clear()

    def _on_store_change(self, filters: GlobalFilters) -> None:
        if self._listeners:
            self.sync_to_all_platforms()


# ========== Filter helpers ==========


def merge_filters(
    base_filters: Mapping[str, Any],
    additional_filters: Mapping[str, Any],
) -> dict[str, Any]:
    """Shallow-merge two filter mappings; the second wins."""
    return {**base_filters, **additional_filters}


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def serialize_filters(filters: Mapping[str, Any]) -> str:
    """Serialize filters to canonical JSON.

    Keys are sorted and datetimes rendered as ISO strings so equal filters
    always produce the same string.
    """
    return json.dumps(
        filters,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def deserialize_filters(serialized: str) -> dict[str, Any]:
    """Parse serialized filters, turning ISO datetime strings back into datetimes.

    Malformed input yields an empty dict.
    """
    try:
        parsed = json.loads(serialized)
    except (TypeError, json.JSONDecodeError):
        logger.debug("Ignoring malformed serialized filters")
        return {}

    if not isinstance(parsed, dict):
        return {}

    for key, value in parsed.items():
        if isinstance(value, str) and _ISO_DATETIME.match(value):
            try:
                parsed[key] = parse_iso(value)
            except ValueError:
                pass

    return parsed


def are_filters_equal(
    filters1: Mapping[str, Any],
    filters2: Mapping[str, Any],
) -> bool:
    """Compare two filter mappings by their canonical serialization."""
    return serialize_filters(filters1) == serialize_filters(filters2)
