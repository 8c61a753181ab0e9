# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session tracking.

Components:
- SessionTracker: Session lifecycle, activity pings and inactivity watchdog
- PostHogSessionReporter: Sends session events through the PostHog SDK
- LoggingSessionReporter: Logs session events when PostHog is not configured
"""

from src.services.sessions.reporter import (
    APPLICATION,
    SESSION_ACTIVITY,
    SESSION_ENDED,
    SESSION_STARTED,
    LoggingSessionReporter,
    PostHogSessionReporter,
    SessionReporter,
    create_session_reporter,
    get_device_type,
)
from src.services.sessions.tracker import SessionRecord, SessionTracker

__all__ = [
    # Events
    "APPLICATION",
    "SESSION_STARTED",
    "SESSION_ACTIVITY",
    "SESSION_ENDED",
    # Reporters
    "SessionReporter",
    "PostHogSessionReporter",
    "LoggingSessionReporter",
    "create_session_reporter",
    "get_device_type",
    # Tracker
    "SessionRecord",
    "SessionTracker",
]
