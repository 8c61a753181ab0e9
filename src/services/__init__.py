# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Service layer for the analytics orchestrator.

Services:
    analytics_api: HTTP client for the GameLearn backend.
    embeds: Signed embed cache and fetchers.
    exports: Report export jobs.
    payments: Payment confirmation polling.
    sessions: Session tracking and reporting.
    workspace: Composition of all services for one analytics page.
"""
