# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""URL state for analytics filters.

Filters are mirrored into the page URL so a dashboard view can be shared
or bookmarked. The manager owns the analytics query parameters, leaves
any other parameter untouched and keeps a bounded undo/redo history of
pushed URLs.
"""

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from src.domains.analytics.filter_sync import deserialize_filters, serialize_filters
from src.domains.analytics.models import DatePreset, GlobalFilters
from src.utils.datetime import format_date, parse_iso

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_SIZE = 10

FILTER_PARAMS = (
    "courseIds",
    "dateFrom",
    "dateTo",
    "datePreset",
    "includeArchived",
    "comparisonEnabled",
    "baselineCourseId",
    "comparisonCourseIds",
    "customFilters",
)


def _split_ids(value: str) -> list[str]:
    return [item for item in value.split(",") if item]


class URLStateManager:
    """Serializes filters into URL query parameters.

    Attributes:
        current_url: URL after the last update, load or navigation.
        max_history_size: Number of pushed URLs kept for undo/redo.
    """

    def __init__(
        self,
        current_url: str = "",
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
    ) -> None:
        self.current_url = current_url
        self.max_history_size = max_history_size
        self._history: list[str] = []
        self._index = -1

    # ========== Serialization ==========

    def serialize_to_query(self, filters: GlobalFilters) -> dict[str, str]:
        """Build the analytics query parameters for ``filters``.

        Defaults (no courses, archived excluded, comparison off, no custom
        filters) are omitted.
        """
        params: dict[str, str] = {}

        if filters.course_ids:
            params["courseIds"] = ",".join(filters.course_ids)

        date_range = filters.date_range
        params["dateFrom"] = format_date(date_range.start)
        params["dateTo"] = format_date(date_range.end)
        if date_range.preset is not None:
            params["datePreset"] = date_range.preset.value

        if filters.include_archived:
            params["includeArchived"] = "true"

        comparison = filters.comparison
        if comparison.enabled:
            params["comparisonEnabled"] = "true"
            if comparison.baseline_course_id:
                params["baselineCourseId"] = comparison.baseline_course_id
            if comparison.comparison_course_ids:
                params["comparisonCourseIds"] = ",".join(comparison.comparison_course_ids)

        if filters.custom_filters:
            params["customFilters"] = serialize_filters(filters.custom_filters)

        return params

    def deserialize_from_query(self, params: Mapping[str, str]) -> dict[str, Any]:
        """Read a partial filter patch from query parameters.

        The result can be passed straight to
        ``GlobalFilterStore.set_global_filters``. Unparseable dates are
        ignored.
        """
        patch: dict[str, Any] = {}

        course_ids = params.get("courseIds")
        if course_ids:
            patch["course_ids"] = _split_ids(course_ids)

        date_from = params.get("dateFrom")
        date_to = params.get("dateTo")
        if date_from and date_to:
            try:
                start = parse_iso(date_from)
                end = parse_iso(date_to)
            except ValueError:
                logger.debug("Ignoring invalid date range in URL: %s..%s", date_from, date_to)
            else:
                preset = params.get("datePreset")
                try:
                    preset_value = DatePreset(preset) if preset else DatePreset.CUSTOM
                except ValueError:
                    preset_value = DatePreset.CUSTOM
                patch["date_range"] = {"start": start, "end": end, "preset": preset_value}

        if params.get("includeArchived") == "true":
            patch["include_archived"] = True

        if params.get("comparisonEnabled") == "true":
            comparison_ids = params.get("comparisonCourseIds")
            patch["comparison"] = {
                "enabled": True,
                "baseline_course_id": params.get("baselineCourseId") or None,
                "comparison_course_ids": _split_ids(comparison_ids) if comparison_ids else [],
            }

        custom_filters = params.get("customFilters")
        if custom_filters:
            patch["custom_filters"] = deserialize_filters(custom_filters)

        return patch

    # ========== URL handling ==========

    def update_url(
        self,
        filters: GlobalFilters,
        url: str | None = None,
        replace: bool = False,
    ) -> str:
        """Write ``filters`` into ``url`` (default: the current URL).

        Args:
            filters: Filters to mirror.
            url: Base URL. Its non-analytics parameters are preserved.
            replace: When False the new URL is pushed onto the history.

        Returns:
            The new URL.
        """
        new_url = self._with_params(url if url is not None else self.current_url, self.serialize_to_query(filters))
        self.current_url = new_url
        if not replace:
            self._add_to_history(new_url)
        return new_url

    def load_from_url(self, url: str | None = None) -> dict[str, Any]:
        """Read a filter patch from ``url`` (default: the current URL)."""
        if url is not None:
            self.current_url = url
        target = self.current_url
        if not target:
            return {}
        return self.deserialize_from_query(dict(parse_qsl(urlsplit(target).query)))

    def clear_url(self, url: str | None = None) -> str:
        """Remove every analytics parameter and return the resulting URL."""
        self.current_url = self._with_params(url if url is not None else self.current_url, {})
        return self.current_url

    # ========== History ==========

    def can_go_back(self) -> bool:
        return self._index > 0

    def can_go_forward(self) -> bool:
        return self._index < len(self._history) - 1

    def go_back(self) -> str | None:
        """Step back through pushed URLs; returns the URL or None at the start."""
        if not self.can_go_back():
            return None
        self._index -= 1
        self.current_url = self._history[self._index]
        return self.current_url

    def go_forward(self) -> str | None:
        """Step forward through pushed URLs; returns the URL or None at the end."""
        if not self.can_go_forward():
            return None
        self._index += 1
        self.current_url = self._history[self._index]
        return self.current_url

    def _add_to_history(self, url: str) -> None:
        # A push after going back drops the forward entries
        del self._history[self._index + 1 :]
        self._history.append(url)
        self._index = len(self._history) - 1

        if len(self._history) > self.max_history_size:
            self._history.pop(0)
            self._index -= 1

    @staticmethod
    def _with_params(url: str, params: Mapping[str, str]) -> str:
        parts = urlsplit(url)
        kept = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key not in FILTER_PARAMS]
        query = urlencode(kept + list(params.items()))
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
