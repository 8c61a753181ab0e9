# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session event reporters.

The session tracker hands its events to a reporter. The PostHog reporter
sends them through the official SDK; the logging reporter is used when no
PostHog project key is configured.
"""

import hashlib
import logging
import re
from typing import Any, Protocol

from posthog import Posthog

from src.core.config.settings import PostHogSettings

logger = logging.getLogger(__name__)

APPLICATION = "gamelearn-analytics"

SESSION_STARTED = "session_started"
SESSION_ACTIVITY = "session_activity"
SESSION_ENDED = "session_ended"

_TABLET_UA = re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.IGNORECASE)
_MOBILE_UA = re.compile(
    r"Mobile|iP(hone|od)|Android|BlackBerry|IEMobile|Kindle|Silk-Accelerated|(hpw|web)OS|Opera M(obi|ini)"
)


def get_device_type(user_agent: str | None) -> str:
    """Classify a user agent as ``tablet``, ``mobile`` or ``desktop``."""
    if not user_agent:
        return "desktop"
    if _TABLET_UA.search(user_agent):
        return "tablet"
    if _MOBILE_UA.search(user_agent):
        return "mobile"
    return "desktop"


def hash_for_analytics(value: str) -> str:
    """SHA-256 hex digest used to keep raw ids out of event names."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def distinct_id_for(user_id: str) -> str:
    return f"user_{user_id}"


class SessionReporter(Protocol):
    """Receives session lifecycle events."""

    def report(self, event: str, user_id: str, properties: dict[str, Any]) -> None: ...

    def flush(self) -> None: ...


class LoggingSessionReporter:
    """Writes session events to the log."""

    def report(self, event: str, user_id: str, properties: dict[str, Any]) -> None:
        logger.info("Session event %s for %s: %s", event, distinct_id_for(user_id), properties)

    def flush(self) -> None:
        pass


class PostHogSessionReporter:
    """Sends session events to PostHog.

    All events carry a global ``application`` property for filtering.

    Attributes:
        client: PostHog SDK client.
    """

    def __init__(self, client: Posthog) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, settings: PostHogSettings) -> "PostHogSessionReporter":
        """Create a reporter for the configured project.

        Raises:
            ValueError: If no project API key is configured.
        """
        if not settings.is_configured:
            raise ValueError("PostHog API key not configured")
        return cls(Posthog(settings.api_key.get_secret_value(), host=settings.host))

    def report(self, event: str, user_id: str, properties: dict[str, Any]) -> None:
        self.client.capture(
            event=event,
            distinct_id=distinct_id_for(user_id),
            properties={"application": APPLICATION, **properties},
        )

    def flush(self) -> None:
        """Send queued events; call before the process exits."""
        self.client.flush()

    def shutdown(self) -> None:
        self.client.shutdown()


def create_session_reporter(settings: PostHogSettings) -> SessionReporter:
    """Build the PostHog reporter when configured, else the logging one."""
    if settings.is_configured:
        return PostHogSessionReporter.from_settings(settings)

    logger.debug("PostHog not configured; session events go to the log")
    return LoggingSessionReporter()
