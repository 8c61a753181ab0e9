# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data models for the analytics filter domain.

This module defines Pydantic models and enums for:
- The canonical filter set shared by every embedded dashboard
- Date ranges and presets
- Course comparison configuration
- Real-time refresh configuration

All models are frozen. The filter store replaces snapshots instead of
mutating them, so a snapshot handed to a subscriber never changes.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from src.utils.datetime import days_ago, ensure_utc, utc_now

MIN_REAL_TIME_INTERVAL_SECONDS = 15
DEFAULT_RANGE_DAYS = 30


class AnalyticsPlatform(str, Enum):
    """Analytics providers with a filter vocabulary."""

    METABASE = "metabase"
    POSTHOG = "posthog"
    MIXPANEL = "mixpanel"
    GOOGLE_ANALYTICS = "google-analytics"


class DatePreset(str, Enum):
    """Named date range presets offered by the date picker."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    YEAR_TO_DATE = "ytd"
    CUSTOM = "custom"


class SelectionMode(str, Enum):
    """Course selector mode."""

    SINGLE = "single"
    MULTI = "multi"


def _unique(values: Any) -> tuple[str, ...]:
    """Drop duplicates keeping first occurrence order."""
    seen: dict[str, None] = {}
    for value in values or ():
        if value:
            seen.setdefault(str(value), None)
    return tuple(seen)


class DateRange(BaseModel):
    """Inclusive reporting window.

    Attributes:
        start: Window start (UTC).
        end: Window end (UTC).
        preset: Preset the window was picked from, if any.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    preset: DatePreset | None = None

    @field_validator("start", "end")
    @classmethod
    def to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def last_days(
        cls,
        days: int = DEFAULT_RANGE_DAYS,
        now: datetime | None = None,
        preset: DatePreset | None = DatePreset.LAST_30_DAYS,
    ) -> "DateRange":
        """Build a window ending now and starting ``days`` earlier."""
        end = now or utc_now()
        return cls(start=days_ago(days, end), end=end, preset=preset)


class ComparisonConfig(BaseModel):
    """Course comparison settings.

    The baseline course never appears in the comparison list; a baseline
    present in the incoming list is dropped from it.

    Attributes:
        enabled: Whether comparison mode is on.
        baseline_course_id: Course the others are compared against.
        comparison_course_ids: Courses compared with the baseline.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    baseline_course_id: str | None = None
    comparison_course_ids: tuple[str, ...] = ()

    @field_validator("comparison_course_ids", mode="before")
    @classmethod
    def drop_baseline(cls, value: Any, info: ValidationInfo) -> tuple[str, ...]:
        baseline = info.data.get("baseline_course_id")
        return tuple(course_id for course_id in _unique(value) if course_id != baseline)


class RealTimeConfig(BaseModel):
    """Automatic dashboard refresh settings.

    Attributes:
        enabled: Whether dashboards refresh on a timer.
        interval_seconds: Refresh interval, never below 15 seconds.
        last_updated: When dashboards were last refreshed.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    interval_seconds: int = 60
    last_updated: datetime | None = None

    @field_validator("interval_seconds")
    @classmethod
    def clamp_interval(cls, value: int) -> int:
        return max(MIN_REAL_TIME_INTERVAL_SECONDS, value)


class GlobalFilters(BaseModel):
    """Canonical filter set shared by every dashboard embed.

    Attributes:
        course_ids: Selected courses, ordered, without duplicates.
        date_range: Reporting window.
        include_archived: Whether archived courses are included.
        comparison: Course comparison settings.
        custom_filters: Free-form extra filters passed through as-is.
        selection_mode: Course selector mode.
        real_time: Automatic refresh settings.
    """

    model_config = ConfigDict(frozen=True)

    course_ids: tuple[str, ...] = ()
    date_range: DateRange = Field(default_factory=DateRange.last_days)
    include_archived: bool = False
    comparison: ComparisonConfig = Field(default_factory=ComparisonConfig)
    custom_filters: dict[str, Any] = Field(default_factory=dict)
    selection_mode: SelectionMode = SelectionMode.MULTI
    real_time: RealTimeConfig = Field(default_factory=RealTimeConfig)

    @field_validator("course_ids", mode="before")
    @classmethod
    def dedupe_course_ids(cls, value: Any) -> tuple[str, ...]:
        return _unique(value)
