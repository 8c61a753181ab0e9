# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the analytics backend client.

This module defines the exception hierarchy for backend calls:
- AnalyticsError: Base exception for all analytics errors
- AnalyticsAPIError: Error responses from the backend
- IntegrationNotConfiguredError: Provider integration missing on the backend
- AnalyticsConnectionError: Backend unreachable or request timed out
- ResponseShapeError: Response body does not match the expected shape
"""

NOT_CONFIGURED_MARKER = "not configured"


class AnalyticsError(Exception):
    """Base exception for all analytics errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class AnalyticsAPIError(AnalyticsError):
    """Error response from the analytics backend.

    Raised for non-2xx responses and for bodies reporting
    ``success: false``.

    Attributes:
        status_code: HTTP status code, if a response was received.
        response_body: Raw response body if available.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
        details: dict | None = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return string representation with status code."""
        base = self.message
        if self.status_code:
            base = f"[{self.status_code}] {base}"
        if self.details:
            base = f"{base} - Details: {self.details}"
        return base


class IntegrationNotConfiguredError(AnalyticsAPIError):
    """The backend has no credentials for the requested provider."""


class AnalyticsConnectionError(AnalyticsAPIError):
    """The backend could not be reached."""


class ResponseShapeError(AnalyticsError):
    """Response body did not validate against the expected model.

    Attributes:
        operation: Client operation that received the response.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict | None = None,
    ):
        self.operation = operation
        super().__init__(message, details)


def is_not_configured(message: str | None) -> bool:
    """Whether an error message reports a missing provider integration."""
    return bool(message) and NOT_CONFIGURED_MARKER in message.lower()
