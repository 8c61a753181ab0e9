# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Local store for the pending payment record.

Before redirecting to checkout, the purchase flow remembers which payment
belongs to which course. The record lives in a small JSON key-value file
standing in for browser local storage, under the fixed key
``pending_payment``. Unreadable data is logged and treated as absent.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError

from src.services.analytics_api.schemas import CamelModel, PaymentCustomer
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Storage key for the pending payment record
PENDING_PAYMENT_KEY = "pending_payment"


class PendingPayment(CamelModel):
    """Payment started by the purchase flow and not yet confirmed.

    Attributes:
        payment_id: Provider payment id.
        course_id: Course being purchased.
        course_title: Course title, for the confirmation page.
        return_url: Where the provider sends the buyer back.
        customer: Buyer details.
        session_id: Checkout session id.
        timestamp: When the payment was started.
    """

    payment_id: str = Field(alias="paymentId")
    course_id: str = Field(alias="courseId")
    course_title: str | None = Field(default=None, alias="courseTitle")
    return_url: str | None = Field(default=None, alias="returnUrl")
    customer: PaymentCustomer | None = None
    session_id: str | None = Field(default=None, alias="sessionId")
    timestamp: datetime = Field(default_factory=utc_now)


class PendingPaymentStore:
    """JSON file holding the pending payment record.

    Attributes:
        path: Location of the key-value file.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def save(self, payment: PendingPayment) -> None:
        """Remember ``payment``, replacing any previous record."""
        data = self._read_all()
        data[PENDING_PAYMENT_KEY] = payment.model_dump(mode="json", by_alias=True)
        self._write_all(data)
        logger.info("Saved pending payment %s for course %s", payment.payment_id, payment.course_id)

    def load(self, course_id: str | None = None) -> PendingPayment | None:
        """Load the pending record.

        Args:
            course_id: When given, a record for another course is ignored.

        Returns:
            The record, or None when absent, unreadable or for another course.
        """
        raw = self._read_all().get(PENDING_PAYMENT_KEY)
        if raw is None:
            return None

        try:
            payment = PendingPayment.model_validate(raw)
        except ValidationError as e:
            logger.warning("Unable to parse pending payment record: %s", e)
            return None

        if course_id is not None and payment.course_id != course_id:
            return None
        return payment

    def clear(self) -> None:
        """Forget the pending record."""
        data = self._read_all()
        if data.pop(PENDING_PAYMENT_KEY, None) is not None:
            self._write_all(data)
            logger.debug("Cleared pending payment record")

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unable to read local storage %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed local storage file: %s", self.path)
            return {}
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
