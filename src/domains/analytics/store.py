# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Global filter store.

The store is the single source of truth for the filters shared by every
dashboard embed on an analytics page. It holds an immutable
:class:`GlobalFilters` snapshot, changes it only through its setters and
notifies subscribers synchronously after each change.

Subscribers are plain callables receiving the new snapshot. A subscriber
that raises is logged and skipped; the remaining subscribers still run.

Example:
    store = GlobalFilterStore()
    unsubscribe = store.subscribe(lambda filters: print(filters.course_ids))

    store.set_global_filters({"course_ids": ["c1", "c2"]})
    store.set_comparison(enabled=True, baseline_course_id="c1")

    unsubscribe()
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from src.domains.analytics.models import ComparisonConfig, GlobalFilters, RealTimeConfig
from src.utils.datetime import Clock, utc_now

logger = logging.getLogger(__name__)

FilterSubscriber = Callable[[GlobalFilters], None]


class GlobalFilterStore:
    """Observable holder of the current :class:`GlobalFilters`.

    Attributes:
        _filters: Current snapshot.
        _subscribers: Callbacks notified after every change.
    """

    def __init__(
        self,
        initial: GlobalFilters | None = None,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the store.

        Args:
            initial: Starting snapshot. Defaults to ``GlobalFilters()``.
            clock: Time source for real-time refresh stamps.
        """
        self._clock = clock
        self._filters = initial or GlobalFilters()
        self._subscribers: list[FilterSubscriber] = []

    @property
    def filters(self) -> GlobalFilters:
        """Current filter snapshot."""
        return self._filters

    def snapshot(self) -> GlobalFilters:
        """Return the current filter snapshot."""
        return self._filters

    # ========== Subscriptions ==========

    def subscribe(self, callback: FilterSubscriber) -> Callable[[], bool]:
        """Register a callback for filter changes.

        Args:
            callback: Called with the new snapshot after each change.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)
        return lambda: self.unsubscribe(callback)

    def unsubscribe(self, callback: FilterSubscriber) -> bool:
        """Remove a previously registered callback.

        Returns:
            True if the callback was registered, False otherwise.
        """
        try:
            self._subscribers.remove(callback)
            return True
        except ValueError:
            return False

    @property
    def subscriber_count(self) -> int:
        """Number of active subscribers."""
        return len(self._subscribers)

    # ========== Mutations ==========

    def set_global_filters(self, patch: Mapping[str, Any]) -> GlobalFilters:
        """Shallow-merge ``patch`` into the current filters.

        Nested values (date range, comparison, real-time) replace the
        current value as a whole and may be given as models or mappings.

        Args:
            patch: Partial filters keyed by GlobalFilters field name.

        Returns:
            The new snapshot.

        Raises:
            ValueError: If the patch names an unknown field.
        """
        unknown = set(patch) - set(GlobalFilters.model_fields)
        if unknown:
            raise ValueError(f"Unknown filter fields: {', '.join(sorted(unknown))}")

        merged = dict(self._filters)
        merged.update(patch)
        return self._replace(GlobalFilters.model_validate(merged))

    def set_comparison(self, **changes: Any) -> GlobalFilters:
        """Merge changes into the comparison settings.

        Turning comparison off clears the baseline and the comparison list.

        Args:
            **changes: ComparisonConfig fields to change.

        Returns:
            The new snapshot.
        """
        merged = self._filters.comparison.model_dump()
        merged.update(changes)

        if not merged["enabled"]:
            merged["baseline_course_id"] = None
            merged["comparison_course_ids"] = ()

        return self.set_global_filters({"comparison": ComparisonConfig.model_validate(merged)})

    def set_real_time(self, enabled: bool | None = None) -> GlobalFilters:
        """Enable, disable or toggle real-time refresh.

        Args:
            enabled: New state; None toggles the current state.

        Returns:
            The new snapshot.
        """
        current = self._filters.real_time
        is_enabled = (not current.enabled) if enabled is None else enabled
        real_time = current.model_dump()
        real_time["enabled"] = is_enabled
        if not is_enabled:
            real_time["last_updated"] = None
        return self.set_global_filters({"real_time": RealTimeConfig.model_validate(real_time)})

    def set_real_time_interval(self, seconds: int) -> GlobalFilters:
        """Change the refresh interval (floored at 15 seconds)."""
        real_time = self._filters.real_time.model_dump()
        real_time["interval_seconds"] = seconds
        return self.set_global_filters({"real_time": RealTimeConfig.model_validate(real_time)})

    def mark_real_time_refreshed(self) -> GlobalFilters:
        """Stamp the last real-time refresh with the current time."""
        real_time = self._filters.real_time.model_dump()
        real_time["last_updated"] = self._clock()
        return self.set_global_filters({"real_time": RealTimeConfig.model_validate(real_time)})

    def reset(self) -> GlobalFilters:
        """Restore default filters and notify subscribers."""
        return self._replace(GlobalFilters())

    def _replace(self, filters: GlobalFilters) -> GlobalFilters:
        self._filters = filters
        self._notify(filters)
        return filters

    def _notify(self, filters: GlobalFilters) -> None:
        # Copy so callbacks may unsubscribe while being notified
        for callback in list(self._subscribers):
            try:
                callback(filters)
            except Exception as e:
                logger.error(
                    "Filter subscriber %r failed: %s",
                    callback,
                    str(e),
                    exc_info=True,
                )
