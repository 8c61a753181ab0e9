# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment confirmation polling.

After checkout the buyer lands on a confirmation page while the payment
provider may still be settling the charge. The poller verifies the
payment right away and then every few seconds, for a bounded number of
checks. A payment still unsettled when the checks run out is reported as
processing, never as failed, because the provider may confirm it later.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from src.core.config.settings import PaymentSettings
from src.services.analytics_api.client import AnalyticsAPIClient
from src.services.analytics_api.exceptions import AnalyticsError
from src.services.analytics_api.schemas import PaymentStatus, PaymentStatusValue
from src.services.payments.storage import PendingPayment, PendingPaymentStore
from src.utils.polling import Sleep, poll_until

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
POLL_INTERVAL_SECONDS = 3.0


class PaymentState(str, Enum):
    """Confirmation page state."""

    CHECKING = "checking"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    NOT_FOUND = "not_found"


_PENDING_STATUSES = (
    PaymentStatusValue.PROCESSING,
    PaymentStatusValue.REQUIRES_PAYMENT_METHOD,
)


def state_for_status(status: str) -> PaymentState:
    """Map a provider payment status to a confirmation state."""
    if status == PaymentStatusValue.SUCCEEDED:
        return PaymentState.SUCCESS
    if status in _PENDING_STATUSES:
        return PaymentState.PROCESSING
    return PaymentState.FAILED


@dataclass
class PaymentOutcome:
    """Result of confirming a payment.

    Attributes:
        payment_id: Payment that was verified, if any.
        state: Final confirmation state.
        details: Last verification result.
        error: Verification error message.
        attempts: Verifications performed.
    """

    payment_id: str | None
    state: PaymentState
    details: PaymentStatus | None = None
    error: str | None = None
    attempts: int = 0


@dataclass
class _Check:
    state: PaymentState
    details: PaymentStatus | None = None
    error: str | None = None


def resolve_payment_id(
    store: PendingPaymentStore,
    course_id: str,
    payment_id_param: str | None = None,
) -> tuple[str | None, PendingPayment | None]:
    """Pick the payment to verify for a course.

    A stored pending record for the same course wins over the URL
    parameter.

    Returns:
        The payment id (or None) and the matching pending record (or None).
    """
    pending = store.load(course_id=course_id)
    if pending is not None:
        return pending.payment_id, pending
    return payment_id_param or None, None


class PaymentStatusPoller:
    """Verifies a payment until it settles or the checks run out.

    Attributes:
        poll_interval: Delay between verifications in seconds.
        max_attempts: Verifications before settling on processing.
    """

    def __init__(
        self,
        client: AnalyticsAPIClient,
        store: PendingPaymentStore | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._store = store
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        client: AnalyticsAPIClient,
        settings: PaymentSettings,
        sleep: Sleep = asyncio.sleep,
    ) -> "PaymentStatusPoller":
        return cls(
            client,
            store=PendingPaymentStore(settings.pending_store_path),
            poll_interval=settings.poll_interval_seconds,
            max_attempts=settings.max_attempts,
            sleep=sleep,
        )

    async def poll(self, payment_id: str | None) -> PaymentOutcome:
        """Confirm ``payment_id``.

        Returns:
            PaymentOutcome. Success clears the pending record.
        """
        if not payment_id:
            return PaymentOutcome(payment_id=None, state=PaymentState.NOT_FOUND)

        result = await poll_until(
            check=lambda: self._verify(payment_id),
            is_terminal=lambda check: check.state in (PaymentState.SUCCESS, PaymentState.FAILED),
            interval=self.poll_interval,
            max_attempts=self.max_attempts,
            sleep=self._sleep,
        )
        check = result.value

        if check.state == PaymentState.SUCCESS and self._store is not None:
            self._store.clear()

        logger.info(
            "Payment %s settled as %s after %d checks",
            payment_id,
            check.state.value,
            result.attempts,
        )
        return PaymentOutcome(
            payment_id=payment_id,
            state=check.state,
            details=check.details,
            error=check.error,
            attempts=result.attempts,
        )

    async def poll_course(self, course_id: str, payment_id_param: str | None = None) -> PaymentOutcome:
        """Confirm the payment for ``course_id`` using the pending record first."""
        if self._store is not None:
            payment_id, _ = resolve_payment_id(self._store, course_id, payment_id_param)
        else:
            payment_id = payment_id_param
        return await self.poll(payment_id)

    def start(self, payment_id: str | None) -> "asyncio.Task[PaymentOutcome]":
        """Poll in the background; cancel the returned task to stop."""
        return asyncio.create_task(self.poll(payment_id), name=f"payment-poll-{payment_id}")

    async def _verify(self, payment_id: str) -> _Check:
        try:
            details = await self._client.get_payment_status(payment_id)
        except AnalyticsError as e:
            logger.error("Payment verification failed for %s: %s", payment_id, e.message)
            return _Check(state=PaymentState.FAILED, error=e.message)

        return _Check(state=state_for_status(details.status), details=details)
