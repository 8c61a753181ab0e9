# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the GameLearn analytics orchestrator.

Settings are Pydantic models loaded from environment variables, one
subsettings class per concern with its own env prefix.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from src.core.config.settings import (
    AnalyticsAPISettings,
    EmbedCacheSettings,
    ExportSettings,
    PaymentSettings,
    PostHogSettings,
    SessionSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "AnalyticsAPISettings",
    "EmbedCacheSettings",
    "ExportSettings",
    "PaymentSettings",
    "SessionSettings",
    "PostHogSettings",
]
