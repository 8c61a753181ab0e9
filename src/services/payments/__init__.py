# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment confirmation.

Components:
- PendingPaymentStore: Local record of the payment started at checkout
- PaymentStatusPoller: Bounded verification polling after checkout
"""

from src.services.payments.poller import (
    MAX_ATTEMPTS,
    PaymentOutcome,
    PaymentState,
    PaymentStatusPoller,
    resolve_payment_id,
    state_for_status,
)
from src.services.payments.storage import (
    PENDING_PAYMENT_KEY,
    PendingPayment,
    PendingPaymentStore,
)

__all__ = [
    # Storage
    "PENDING_PAYMENT_KEY",
    "PendingPayment",
    "PendingPaymentStore",
    # Poller
    "MAX_ATTEMPTS",
    "PaymentState",
    "PaymentOutcome",
    "PaymentStatusPoller",
    "resolve_payment_id",
    "state_for_status",
]
