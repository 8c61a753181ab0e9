# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request and response models for the analytics backend.

The backend speaks camelCase JSON; models accept both the camelCase
aliases and the snake_case field names.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.utils.datetime import parse_iso


class CamelModel(BaseModel):
    """Base for backend payloads keyed by camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _empty_to_none(value: Any) -> Any:
    if isinstance(value, str):
        return parse_iso(value)
    return value


# ========== Embeds ==========


class EmbedResponse(CamelModel):
    """Signed embed returned by the mint endpoints.

    Attributes:
        url: Signed dashboard URL.
        iframe_url: URL to put in the iframe; falls back to ``url``.
        token: Signed token, when the provider exposes it.
        expires_at: When the signature expires; None if not reported.
    """

    url: str
    iframe_url: str | None = Field(default=None, alias="iframeUrl")
    token: str | None = None
    expires_at: datetime | None = Field(default=None, alias="expiresAt")

    @field_validator("expires_at", mode="before")
    @classmethod
    def parse_expiry(cls, value: Any) -> Any:
        return _empty_to_none(value)

    @property
    def embed_url(self) -> str:
        return self.iframe_url or self.url


# ========== Exports ==========


class ExportType(str, Enum):
    POSTHOG = "posthog"
    METABASE = "metabase"
    REVENUE = "revenue"
    VIDEO = "video"
    PERFORMANCE = "performance"


class ExportFormat(str, Enum):
    CSV = "csv"
    PDF = "pdf"
    JSON = "json"
    XLSX = "xlsx"


class ExportStatus(str, Enum):
    """Server-side export job state.

    Jobs move ``pending -> processing -> completed | failed``.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportStatus.COMPLETED, ExportStatus.FAILED)


class ExportOptions(CamelModel):
    """Export request.

    Attributes:
        type: Report family to export.
        format: Output file format.
        resource_id: Dashboard or insight to export, if any.
        filters: Filters applied to the export.
        async_: When False the backend answers with the download URL.
    """

    type: ExportType
    format: ExportFormat
    resource_id: str | None = Field(default=None, alias="resourceId")
    filters: dict[str, Any] = Field(default_factory=dict)
    async_: bool = Field(default=True, alias="async")

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON body for ``POST /api/analytics/export``."""
        payload: dict[str, Any] = {
            "type": self.type.value,
            "format": self.format.value,
            "filters": self.filters,
            "async": self.async_,
        }
        if self.resource_id:
            payload["resourceId"] = self.resource_id
        return payload


class ExportSubmission(CamelModel):
    """Answer to an export request: a job id, or a URL in synchronous mode."""

    job_id: str | None = Field(default=None, alias="jobId")
    download_url: str | None = Field(default=None, alias="downloadUrl")
    status: str | None = None
    message: str | None = None


class ExportJob(CamelModel):
    """Live state of an export job as reported by the status endpoint."""

    id: str
    status: ExportStatus
    progress: int = Field(default=0, ge=0, le=100)
    download_url: str | None = Field(default=None, alias="downloadUrl")
    error: str | None = None


class ExportJobRecord(CamelModel):
    """Persisted export job as listed by the jobs endpoint."""

    id: str
    type: ExportType
    format: ExportFormat
    status: ExportStatus
    progress: int = Field(default=0, ge=0, le=100)
    file_url: str | None = Field(default=None, alias="fileUrl")
    file_size: int | None = Field(default=None, alias="fileSize")
    error: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    @field_validator("type", "format", "status", mode="before")
    @classmethod
    def lowercase(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


# ========== Payments ==========


class PaymentStatusValue(str, Enum):
    """Payment states reported by the payment provider."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PROCESSING = "processing"
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"


class PaymentCustomer(CamelModel):
    name: str | None = None
    email: str | None = None
    phone_number: str | None = Field(default=None, alias="phoneNumber")


class PaymentStatus(CamelModel):
    """Payment verification result.

    ``status`` is kept as the raw provider string; states outside
    :class:`PaymentStatusValue` are treated as failures by the poller.
    """

    payment_id: str = Field(alias="paymentId")
    status: str
    amount: float | None = None
    currency: str | None = None
    customer: PaymentCustomer | None = None
    payment_method: str | None = Field(default=None, alias="paymentMethod")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("created_at", mode="before")
    @classmethod
    def parse_created_at(cls, value: Any) -> Any:
        return _empty_to_none(value)
