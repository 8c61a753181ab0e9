# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session tracking.

A session opens when an authenticated user arrives and closes exactly
once: on unmount, on unload, or after a long stretch without input. While
it is open the tracker sends a periodic activity ping and a watchdog
checks idle time.

Both background loops are asyncio tasks driven by an injectable clock and
sleep, and closing the session cancels them.

Example:
    tracker = SessionTracker(reporter, user_agent=request_user_agent)
    await tracker.start("user_123", url="https://gamelearn.example/instructor/analytics")

    tracker.record_activity()
    tracker.on_navigation("/instructor/analytics/revenue")

    tracker.close("unload")
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.core.config.settings import SessionSettings
from src.services.sessions.reporter import (
    SESSION_ACTIVITY,
    SESSION_ENDED,
    SESSION_STARTED,
    SessionReporter,
    get_device_type,
    hash_for_analytics,
)
from src.utils.datetime import Clock, format_iso, seconds_between, utc_now
from src.utils.polling import Sleep

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    """One tracked session.

    Attributes:
        session_id: Opaque session id.
        user_id: Authenticated user.
        started_at: When the session opened.
        last_activity_at: Last user input, visibility change or navigation.
        page_views: Pages seen in this session, counting the first.
        current_page: Path of the page being viewed.
        ended_at: When the session closed.
        end_reason: Why the session closed.
    """

    session_id: str
    user_id: str
    started_at: datetime
    last_activity_at: datetime
    page_views: int = 1
    current_page: str | None = None
    ended_at: datetime | None = None
    end_reason: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.ended_at is not None


def make_session_id(user_id: str, now: datetime) -> str:
    return f"session_{int(now.timestamp() * 1000)}_{hash_for_analytics(user_id)[:16]}"


class SessionTracker:
    """Tracks one user session at a time.

    Attributes:
        activity_interval: Seconds between activity pings.
        inactivity_threshold: Idle seconds after which the session closes.
        inactivity_check_interval: Seconds between idle checks.
    """

    def __init__(
        self,
        reporter: SessionReporter,
        activity_interval: float = 300.0,
        inactivity_threshold: float = 1800.0,
        inactivity_check_interval: float = 60.0,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        user_agent: str | None = None,
    ) -> None:
        self._reporter = reporter
        self.activity_interval = activity_interval
        self.inactivity_threshold = inactivity_threshold
        self.inactivity_check_interval = inactivity_check_interval
        self._clock = clock
        self._sleep = sleep
        self._user_agent = user_agent
        self._record: SessionRecord | None = None
        self._tasks: list[asyncio.Task[None]] = []

    @classmethod
    def from_settings(
        cls,
        reporter: SessionReporter,
        settings: SessionSettings,
        clock: Clock = utc_now,
        sleep: Sleep = asyncio.sleep,
        user_agent: str | None = None,
    ) -> "SessionTracker":
        return cls(
            reporter,
            activity_interval=settings.activity_interval_seconds,
            inactivity_threshold=settings.inactivity_threshold_seconds,
            inactivity_check_interval=settings.inactivity_check_seconds,
            clock=clock,
            sleep=sleep,
            user_agent=user_agent,
        )

    @property
    def record(self) -> SessionRecord | None:
        """Current or last session."""
        return self._record

    @property
    def is_active(self) -> bool:
        return self._record is not None and not self._record.is_closed

    # ========== Lifecycle ==========

    async def start(
        self,
        user_id: str,
        url: str | None = None,
        referrer: str | None = None,
    ) -> SessionRecord:
        """Open a session for ``user_id`` and start the background loops.

        Starting while a session is open returns the open session.
        """
        if self.is_active:
            return self._record

        now = self._clock()
        record = SessionRecord(
            session_id=make_session_id(user_id, now),
            user_id=user_id,
            started_at=now,
            last_activity_at=now,
            current_page=url,
        )
        self._record = record

        self._report(
            SESSION_STARTED,
            {
                "timestamp": format_iso(now),
                "user_agent": self._user_agent,
                "referrer": referrer,
                "url": url,
                "device_type": get_device_type(self._user_agent),
            },
        )

        self._tasks = [
            asyncio.create_task(self._activity_loop(), name=f"session-activity-{record.session_id}"),
            asyncio.create_task(self._inactivity_loop(), name=f"session-watchdog-{record.session_id}"),
        ]
        logger.info("Session started: %s", record.session_id)
        return record

    def close(self, reason: str = "closed") -> float | None:
        """Close the open session.

        Args:
            reason: Why the session ends (``unmount``, ``unload``, ``inactivity``).

        Returns:
            Session duration in seconds, or None if no session was open.
        """
        record = self._record
        if record is None or record.is_closed:
            return None

        now = self._clock()
        record.ended_at = now
        record.end_reason = reason
        duration = seconds_between(record.started_at, now)

        self._cancel_tasks()
        self._report(
            SESSION_ENDED,
            {
                "duration_seconds": duration,
                "timestamp": format_iso(now),
                "page_count": record.page_views,
                "reason": reason,
            },
        )
        self._flush()

        logger.info("Session ended: %s after %.0fs (%s)", record.session_id, duration, reason)
        return duration

    async def aclose(self, reason: str = "closed") -> float | None:
        """Close the session and wait for its loops to finish."""
        tasks = list(self._tasks)
        duration = self.close(reason)
        current = asyncio.current_task()
        pending = [task for task in tasks if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        return duration

    # ========== Activity ==========

    def record_activity(self) -> None:
        """Note user input (mouse, keyboard, scroll or touch)."""
        if self.is_active:
            self._record.last_activity_at = self._clock()

    def on_visibility_change(self, hidden: bool) -> None:
        """Handle the tab being hidden or shown.

        Hiding the tab sends an activity ping; it never closes the session.
        """
        if not self.is_active:
            return
        self.record_activity()
        if hidden:
            self.send_activity()

    def on_navigation(self, path: str | None = None) -> None:
        """Count a page view."""
        if not self.is_active:
            return
        self._record.page_views += 1
        if path is not None:
            self._record.current_page = path
        self.record_activity()

    def send_activity(self) -> None:
        """Report that the session is still alive."""
        if not self.is_active:
            return
        self._report(
            SESSION_ACTIVITY,
            {
                "timestamp": format_iso(self._clock()),
                "current_page": self._record.current_page,
            },
        )

    def idle_seconds(self) -> float:
        if self._record is None:
            return 0.0
        return seconds_between(self._record.last_activity_at, self._clock())

    def check_inactivity(self) -> bool:
        """Close the session once the inactivity threshold has passed.

        Returns:
            True if the session was closed by this check.
        """
        if not self.is_active:
            return False
        if self.idle_seconds() < self.inactivity_threshold:
            return False
        self.close("inactivity")
        return True

    # ========== Internals ==========

    async def _activity_loop(self) -> None:
        while self.is_active:
            await self._sleep(self.activity_interval)
            self.send_activity()

    async def _inactivity_loop(self) -> None:
        while self.is_active:
            await self._sleep(self.inactivity_check_interval)
            if self.check_inactivity():
                return

    def _cancel_tasks(self) -> None:
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None

        # The watchdog closes the session from inside its own task
        for task in self._tasks:
            if task is not current and not task.done():
                task.cancel()
        self._tasks = []

    def _report(self, event: str, properties: dict[str, Any]) -> None:
        record = self._record
        try:
            self._reporter.report(
                event,
                record.user_id,
                {"session_id": record.session_id, **properties},
            )
        except Exception as e:
            logger.error("Failed to report %s for %s: %s", event, record.session_id, str(e), exc_info=True)

    def _flush(self) -> None:
        try:
            self._reporter.flush()
        except Exception as e:
            logger.error("Failed to flush session events: %s", str(e), exc_info=True)
