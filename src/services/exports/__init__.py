# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Report export jobs."""

from src.services.exports.client import (
    ExportJobClient,
    ExportOutcome,
    ExportOutcomeStatus,
)

__all__ = [
    "ExportJobClient",
    "ExportOutcome",
    "ExportOutcomeStatus",
]
