# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the analytics orchestrator.

This package contains shared infrastructure:
- config: Application configuration and settings
"""
