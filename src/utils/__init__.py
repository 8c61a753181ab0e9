# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
- polling: Bounded, cancellable polling loops
"""

from src.utils.datetime import (
    Clock,
    days_ago,
    ensure_utc,
    format_date,
    format_iso,
    parse_iso,
    seconds_between,
    utc_now,
)
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging
from src.utils.polling import PollResult, poll_until, start_polling

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "Clock",
    "utc_now",
    "ensure_utc",
    "days_ago",
    "format_date",
    "format_iso",
    "parse_iso",
    "seconds_between",
    # Polling
    "PollResult",
    "poll_until",
    "start_polling",
]
