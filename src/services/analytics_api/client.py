# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Async HTTP client for the GameLearn analytics backend.

The backend signs embed URLs, runs export jobs and proxies payment
verification. Every endpoint answers JSON and reports failures either
with a non-2xx status or with ``{"success": false, "error": "..."}``.

Example:
    async with AnalyticsAPIClient.from_settings(get_settings()) as client:
        embed = await client.mint_metabase_embed({"dashboardId": 12})
        job_id = (await client.start_export(options)).job_id
        job = await client.get_export_status(job_id)
"""

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from src.core.config.settings import Settings
from src.services.analytics_api.exceptions import (
    AnalyticsAPIError,
    AnalyticsConnectionError,
    IntegrationNotConfiguredError,
    ResponseShapeError,
    is_not_configured,
)
from src.services.analytics_api.schemas import (
    EmbedResponse,
    ExportJob,
    ExportJobRecord,
    ExportOptions,
    ExportSubmission,
    PaymentStatus,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

POSTHOG_EMBED_PATH = "/api/analytics/posthog/embed"
METABASE_EMBED_PATH = "/api/analytics/metabase/embed"
EXPORT_PATH = "/api/analytics/export"
EXPORT_JOBS_PATH = "/api/analytics/export/jobs"
PAYMENT_STATUS_PATH = "/api/payments/status"


class AnalyticsAPIClient:
    """Async HTTP client for the analytics backend.

    Attributes:
        base_url: Backend root URL.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Backend root URL.
            headers: Extra headers sent with every request (auth).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                **(headers or {}),
            },
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "AnalyticsAPIClient":
        """Create a client from application settings."""
        api = settings.analytics_api
        return cls(
            base_url=api.base_url,
            headers=api.auth_headers,
            timeout=api.timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "AnalyticsAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ========== Embeds ==========

    async def mint_posthog_embed(self, body: dict[str, Any]) -> EmbedResponse:
        """Mint a signed PostHog insight or dashboard URL."""
        data = await self._request("POST", POSTHOG_EMBED_PATH, "Mint PostHog embed", json=body)
        return self._parse(EmbedResponse, self._unwrap(data), "Mint PostHog embed")

    async def mint_metabase_embed(self, body: dict[str, Any]) -> EmbedResponse:
        """Mint a signed Metabase dashboard or question URL."""
        data = await self._request("POST", METABASE_EMBED_PATH, "Mint Metabase embed", json=body)
        return self._parse(EmbedResponse, self._unwrap(data), "Mint Metabase embed")

    # ========== Exports ==========

    async def start_export(self, options: ExportOptions) -> ExportSubmission:
        """Submit an export request.

        Returns:
            The job id in asynchronous mode, the download URL otherwise.
        """
        data = await self._request("POST", EXPORT_PATH, "Start export", json=options.to_payload())
        submission = self._parse(ExportSubmission, data, "Start export")

        if options.async_ and not submission.job_id:
            raise ResponseShapeError("Export response has no jobId", operation="Start export")
        if not options.async_ and not submission.download_url:
            raise ResponseShapeError("Export response has no downloadUrl", operation="Start export")

        logger.info(
            "Export submitted: type=%s, format=%s, job_id=%s",
            options.type.value,
            options.format.value,
            submission.job_id,
        )
        return submission

    async def get_export_status(self, job_id: str) -> ExportJob:
        """Get the current state of an export job."""
        data = await self._request(
            "GET",
            EXPORT_PATH,
            "Get export status",
            params={"jobId": job_id},
        )
        return self._parse(ExportJob, data.get("job"), "Get export status")

    async def list_export_jobs(self) -> list[ExportJobRecord]:
        """List the caller's persisted export jobs, newest first."""
        data = await self._request("GET", EXPORT_JOBS_PATH, "List export jobs")
        jobs = data.get("jobs")
        if not isinstance(jobs, list):
            raise ResponseShapeError("Export jobs response has no jobs list", operation="List export jobs")
        return [self._parse(ExportJobRecord, job, "List export jobs") for job in jobs]

    async def delete_export_job(self, job_id: str) -> str:
        """Delete a persisted export job.

        Returns:
            The backend confirmation message.
        """
        data = await self._request(
            "DELETE",
            f"{EXPORT_JOBS_PATH}/{quote(job_id, safe='')}",
            "Delete export job",
        )
        logger.info("Deleted export job: %s", job_id)
        return str(data.get("message") or "")

    # ========== Payments ==========

    async def get_payment_status(self, payment_id: str) -> PaymentStatus:
        """Verify a payment with the payment provider."""
        data = await self._request(
            "GET",
            f"{PAYMENT_STATUS_PATH}/{quote(payment_id, safe='')}",
            "Get payment status",
        )
        return self._parse(PaymentStatus, self._unwrap(data), "Get payment status")

    # ========== Internals ==========

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and return the decoded JSON body.

        Raises:
            AnalyticsConnectionError: If the backend cannot be reached.
            IntegrationNotConfiguredError: If the provider is not configured.
            AnalyticsAPIError: For error statuses or ``success: false``.
            ResponseShapeError: If the body is not a JSON object.
        """
        logger.debug("%s: %s %s", operation, method, path)

        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.RequestError as e:
            logger.error("Connection error to analytics backend: %s", e)
            raise AnalyticsConnectionError(
                f"{operation} failed: analytics backend not reachable: {e}",
            ) from e

        return self._handle_response(response, operation)

    def _handle_response(self, response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_success and isinstance(data, dict) and data.get("success", True) is not False:
            return data

        if response.is_success and not isinstance(data, dict):
            raise ResponseShapeError(
                f"{operation} returned a non-object body",
                operation=operation,
                details={"body": response.text[:200]},
            )

        error_detail = self._error_detail(data) or response.text or response.reason_phrase
        message = f"{operation} failed: {error_detail}"

        logger.warning("%s failed with status %d: %s", operation, response.status_code, error_detail)

        error_cls = IntegrationNotConfiguredError if is_not_configured(error_detail) else AnalyticsAPIError
        raise error_cls(
            message,
            status_code=response.status_code,
            response_body=response.text,
        )

    @staticmethod
    def _error_detail(data: Any) -> str | None:
        if not isinstance(data, dict):
            return None
        for key in ("error", "message", "detail"):
            value = data.get(key)
            if value:
                return str(value)
        return None

    @staticmethod
    def _unwrap(data: dict[str, Any]) -> Any:
        """Strip the ``{success, data}`` envelope when present."""
        if "data" in data:
            return data["data"]
        return data

    @staticmethod
    def _parse(model: type[ModelT], data: Any, operation: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ResponseShapeError(
                f"{operation} returned an unexpected payload",
                operation=operation,
                details={"errors": e.errors(include_url=False)},
            ) from e
