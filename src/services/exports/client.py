# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Export job client.

Report exports run as server-side jobs. The client submits a job, polls
its status once per second until it completes or fails, and opens the
download URL exactly once when the file is ready. Polling is capped so a
job stuck on the server cannot keep a loop alive forever.

Example:
    exports = ExportJobClient(api_client)
    outcome = await exports.export(
        ExportOptions(type=ExportType.METABASE, format=ExportFormat.CSV, resource_id="12")
    )
    if outcome.status == ExportOutcomeStatus.FAILED:
        print(outcome.error)
"""

import asyncio
import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from src.core.config.settings import ExportSettings
from src.services.analytics_api.client import AnalyticsAPIClient
from src.services.analytics_api.exceptions import AnalyticsError
from src.services.analytics_api.schemas import (
    ExportJob,
    ExportJobRecord,
    ExportOptions,
    ExportStatus,
)
from src.utils.polling import Sleep, poll_until

logger = logging.getLogger(__name__)

Opener = Callable[[str], Any]
ProgressCallback = Callable[[ExportJob], None]


class ExportOutcomeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    ERROR = "error"


@dataclass
class ExportOutcome:
    """How an export ended.

    Attributes:
        job_id: Export job id (None for synchronous exports).
        status: Final outcome.
        job: Last job state seen, if any.
        download_url: File URL for completed exports.
        error: Failure message.
        attempts: Status checks performed.
        opened: Whether the download URL was handed to the opener.
    """

    job_id: str | None
    status: ExportOutcomeStatus
    job: ExportJob | None = None
    download_url: str | None = None
    error: str | None = None
    attempts: int = 0
    opened: bool = False


class ExportJobClient:
    """Submits export jobs and follows them to completion.

    Attributes:
        poll_interval: Delay between status checks in seconds.
        max_poll_attempts: Status checks before giving up.
    """

    def __init__(
        self,
        client: AnalyticsAPIClient,
        opener: Opener = webbrowser.open_new_tab,
        poll_interval: float = 1.0,
        max_poll_attempts: int = 300,
        sleep: Sleep = asyncio.sleep,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Initialize the export client.

        Args:
            client: Backend client.
            opener: Called with the download URL of a completed export.
            poll_interval: Delay between status checks in seconds.
            max_poll_attempts: Status checks before giving up.
            sleep: Sleep coroutine, injectable for tests.
            on_progress: Optional callback receiving every polled job state.
        """
        self._client = client
        self._opener = opener
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._sleep = sleep
        self._on_progress = on_progress
        self._watches: dict[str, asyncio.Task[ExportOutcome]] = {}

    @classmethod
    def from_settings(
        cls,
        client: AnalyticsAPIClient,
        settings: ExportSettings,
        opener: Opener = webbrowser.open_new_tab,
        sleep: Sleep = asyncio.sleep,
    ) -> "ExportJobClient":
        return cls(
            client,
            opener=opener,
            poll_interval=settings.poll_interval_seconds,
            max_poll_attempts=settings.max_poll_attempts,
            sleep=sleep,
        )

    # ========== Submission ==========

    async def start_export(self, options: ExportOptions) -> str:
        """Submit an asynchronous export job.

        Returns:
            The job id.

        Raises:
            ValueError: If ``options`` asks for a synchronous export.
            AnalyticsError: If the backend rejects the request.
        """
        if not options.async_:
            raise ValueError("Synchronous exports are served by export_now()")

        submission = await self._client.start_export(options)
        return submission.job_id

    async def export_now(self, options: ExportOptions) -> str:
        """Run a synchronous export and open its file.

        The backend waits for the job and answers with the file URL.

        Returns:
            The download URL.

        Raises:
            AnalyticsError: If the backend rejects the request or the job fails.
        """
        submission = await self._client.start_export(options.model_copy(update={"async_": False}))
        self._open(submission.download_url)
        return submission.download_url

    async def export(self, options: ExportOptions) -> ExportOutcome:
        """Export end to end, reporting every failure in the outcome."""
        if not options.async_:
            try:
                url = await self.export_now(options)
            except AnalyticsError as e:
                return ExportOutcome(job_id=None, status=ExportOutcomeStatus.ERROR, error=e.message)
            return ExportOutcome(
                job_id=None,
                status=ExportOutcomeStatus.COMPLETED,
                download_url=url,
                opened=True,
            )

        try:
            job_id = await self.start_export(options)
        except AnalyticsError as e:
            logger.error("Failed to start export: %s", e.message)
            return ExportOutcome(job_id=None, status=ExportOutcomeStatus.ERROR, error=e.message)

        return await self.poll_status(job_id)

    # ========== Polling ==========

    async def poll_status(self, job_id: str) -> ExportOutcome:
        """Poll a job until it completes, fails or the attempt cap is hit.

        A completed job with a download URL is opened exactly once. A
        failed job is never opened.
        """

        async def check() -> ExportJob:
            return await self._client.get_export_status(job_id)

        try:
            result = await poll_until(
                check=check,
                is_terminal=lambda job: job.status.is_terminal,
                interval=self.poll_interval,
                max_attempts=self.max_poll_attempts,
                sleep=self._sleep,
                on_value=self._on_progress,
            )
        except AnalyticsError as e:
            logger.error("Export status check failed for %s: %s", job_id, e.message)
            return ExportOutcome(job_id=job_id, status=ExportOutcomeStatus.ERROR, error=e.message)

        job = result.value
        outcome = ExportOutcome(job_id=job_id, status=ExportOutcomeStatus.TIMED_OUT, job=job, attempts=result.attempts)

        if result.exhausted:
            outcome.error = f"Export did not finish after {result.attempts} status checks"
            logger.warning("Export %s timed out in status %s", job_id, job.status.value)
            return outcome

        if job.status == ExportStatus.FAILED:
            outcome.status = ExportOutcomeStatus.FAILED
            outcome.error = job.error or "Export failed"
            logger.error("Export %s failed: %s", job_id, outcome.error)
            return outcome

        outcome.status = ExportOutcomeStatus.COMPLETED
        outcome.download_url = job.download_url
        if job.download_url:
            self._open(job.download_url)
            outcome.opened = True
        else:
            logger.warning("Export %s completed without a download URL", job_id)

        return outcome

    def watch(self, job_id: str) -> "asyncio.Task[ExportOutcome]":
        """Poll a job in the background.

        Returns:
            The polling task; ``task.cancel()`` or :meth:`cancel` stops it.
            A job already being watched returns its running task.
        """
        existing = self._watches.get(job_id)
        if existing is not None and not existing.done():
            logger.debug("Export %s already watched", job_id)
            return existing

        task = asyncio.create_task(self.poll_status(job_id), name=f"export-poll-{job_id}")
        self._watches[job_id] = task
        task.add_done_callback(lambda _: self._forget(job_id, task))
        return task

    def cancel(self, job_id: str | None = None) -> int:
        """Cancel the watch for ``job_id``, or every watch when omitted.

        Returns:
            Number of tasks cancelled.
        """
        if job_id is not None:
            tasks = [self._watches[job_id]] if job_id in self._watches else []
        else:
            tasks = list(self._watches.values())

        cancelled = 0
        for task in tasks:
            if task.cancel():
                cancelled += 1
        return cancelled

    @property
    def active_watches(self) -> list[str]:
        return [job_id for job_id, task in self._watches.items() if not task.done()]

    # ========== Job history ==========

    async def list_jobs(self) -> list[ExportJobRecord]:
        """List persisted export jobs, newest first."""
        return await self._client.list_export_jobs()

    async def delete_job(self, job_id: str) -> str:
        """Delete a persisted export job; returns the backend message."""
        return await self._client.delete_export_job(job_id)

    def download_job(self, job: ExportJobRecord) -> bool:
        """Open the file of a completed persisted job.

        Returns:
            True if the file was opened.
        """
        if job.status != ExportStatus.COMPLETED or not job.file_url:
            return False
        self._open(job.file_url)
        return True

    def _open(self, url: str) -> None:
        logger.info("Opening export download: %s", url)
        self._opener(url)

    def _forget(self, job_id: str, task: "asyncio.Task[ExportOutcome]") -> None:
        if self._watches.get(job_id) is task:
            del self._watches[job_id]
