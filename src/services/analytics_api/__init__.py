# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics backend client.

This module provides the HTTP client for the GameLearn backend endpoints
that sign embed URLs, run report exports and verify payments.

Components:
- AnalyticsAPIClient: Async httpx client for every backend endpoint
- Schemas: Typed request and response models
- Exceptions: Error hierarchy raised by the client

Example:
    from src.services.analytics_api import AnalyticsAPIClient

    async with AnalyticsAPIClient(base_url="https://gamelearn.example") as client:
        embed = await client.mint_posthog_embed({"insightId": "abc"})
"""

from src.services.analytics_api.client import AnalyticsAPIClient
from src.services.analytics_api.exceptions import (
    AnalyticsAPIError,
    AnalyticsConnectionError,
    AnalyticsError,
    IntegrationNotConfiguredError,
    ResponseShapeError,
    is_not_configured,
)
from src.services.analytics_api.schemas import (
    EmbedResponse,
    ExportFormat,
    ExportJob,
    ExportJobRecord,
    ExportOptions,
    ExportStatus,
    ExportSubmission,
    ExportType,
    PaymentCustomer,
    PaymentStatus,
    PaymentStatusValue,
)

__all__ = [
    # Client
    "AnalyticsAPIClient",
    # Exceptions
    "AnalyticsError",
    "AnalyticsAPIError",
    "AnalyticsConnectionError",
    "IntegrationNotConfiguredError",
    "ResponseShapeError",
    "is_not_configured",
    # Schemas
    "EmbedResponse",
    "ExportType",
    "ExportFormat",
    "ExportStatus",
    "ExportOptions",
    "ExportSubmission",
    "ExportJob",
    "ExportJobRecord",
    "PaymentStatusValue",
    "PaymentCustomer",
    "PaymentStatus",
]
