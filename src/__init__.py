"""GameLearn analytics orchestrator.

Client-side orchestration for the instructor analytics area: shared
dashboard filters, signed embed URLs, report exports, payment
confirmation and session tracking.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
