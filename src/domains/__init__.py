# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain layer for the analytics orchestrator.

Domains:
    analytics: Shared dashboard filters, platform filter mapping and URL state.
"""
