# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for payment confirmation polling."""

from pathlib import Path

import httpx
import pytest

from src.services.payments import (
    PaymentState,
    PaymentStatusPoller,
    PendingPayment,
    PendingPaymentStore,
    resolve_payment_id,
    state_for_status,
)


def payment_handler(statuses: list[str], paths: list[str]):
    """Backend reporting ``statuses`` in order; the last one repeats."""

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        status = statuses[min(len(paths), len(statuses)) - 1]
        return httpx.Response(
            200,
            json={"success": True, "data": {"paymentId": "pay_1", "status": status, "amount": 49.0}},
        )

    return handler


@pytest.fixture
def store(tmp_path: Path) -> PendingPaymentStore:
    return PendingPaymentStore(tmp_path / "local_storage.json")


class TestStateMapping:
    """Tests for provider status mapping."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("succeeded", PaymentState.SUCCESS),
            ("processing", PaymentState.PROCESSING),
            ("requires_payment_method", PaymentState.PROCESSING),
            ("failed", PaymentState.FAILED),
            ("cancelled", PaymentState.FAILED),
            ("refunded", PaymentState.FAILED),
        ],
    )
    def test_state_for_status(self, status: str, expected: PaymentState) -> None:
        assert state_for_status(status) == expected


class TestPaymentStatusPoller:
    """Tests for PaymentStatusPoller."""

    @pytest.mark.asyncio
    async def test_unsettled_payment_stays_processing(self, make_api_client, fake_sleep) -> None:
        paths: list[str] = []
        poller = PaymentStatusPoller(make_api_client(payment_handler(["processing"], paths)), sleep=fake_sleep)

        outcome = await poller.poll("pay_1")

        assert outcome.state == PaymentState.PROCESSING
        assert outcome.attempts == 5
        assert len(paths) == 5
        assert fake_sleep.calls == [3.0, 3.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_success_stops_polling_and_clears_record(
        self, make_api_client, fake_sleep, store: PendingPaymentStore
    ) -> None:
        store.save(PendingPayment(payment_id="pay_1", course_id="course-1"))
        paths: list[str] = []
        poller = PaymentStatusPoller(
            make_api_client(payment_handler(["processing", "succeeded"], paths)),
            store=store,
            sleep=fake_sleep,
        )

        outcome = await poller.poll("pay_1")

        assert outcome.state == PaymentState.SUCCESS
        assert outcome.details.amount == 49.0
        assert paths == ["/api/payments/status/pay_1", "/api/payments/status/pay_1"]
        assert store.load() is None

    @pytest.mark.asyncio
    async def test_failed_payment_keeps_record(self, make_api_client, fake_sleep, store: PendingPaymentStore) -> None:
        store.save(PendingPayment(payment_id="pay_1", course_id="course-1"))
        poller = PaymentStatusPoller(
            make_api_client(payment_handler(["cancelled"], [])),
            store=store,
            sleep=fake_sleep,
        )

        outcome = await poller.poll("pay_1")

        assert outcome.state == PaymentState.FAILED
        assert outcome.attempts == 1
        assert store.load() is not None

    @pytest.mark.asyncio
    async def test_verification_error_is_failed(self, make_api_client, fake_sleep) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"success": False, "error": "Provider unavailable"})

        poller = PaymentStatusPoller(make_api_client(handler), sleep=fake_sleep)

        outcome = await poller.poll("pay_1")

        assert outcome.state == PaymentState.FAILED
        assert "Provider unavailable" in outcome.error
        assert fake_sleep.calls == []

    @pytest.mark.asyncio
    async def test_missing_payment_id_not_found(self, make_api_client, fake_sleep) -> None:
        paths: list[str] = []
        poller = PaymentStatusPoller(make_api_client(payment_handler(["succeeded"], paths)), sleep=fake_sleep)

        outcome = await poller.poll(None)

        assert outcome.state == PaymentState.NOT_FOUND
        assert paths == []

    @pytest.mark.asyncio
    async def test_poll_course_prefers_pending_record(
        self, make_api_client, fake_sleep, store: PendingPaymentStore
    ) -> None:
        store.save(PendingPayment(payment_id="pay_stored", course_id="course-1"))
        paths: list[str] = []
        poller = PaymentStatusPoller(
            make_api_client(payment_handler(["succeeded"], paths)),
            store=store,
            sleep=fake_sleep,
        )

        await poller.poll_course("course-1", payment_id_param="pay_param")

        assert paths == ["/api/payments/status/pay_stored"]

    @pytest.mark.asyncio
    async def test_start_returns_task(self, make_api_client, fake_sleep) -> None:
        poller = PaymentStatusPoller(make_api_client(payment_handler(["succeeded"], [])), sleep=fake_sleep)

        outcome = await poller.start("pay_1")

        assert outcome.state == PaymentState.SUCCESS


class TestResolvePaymentId:
    """Tests for picking the payment to verify."""

    def test_record_for_same_course_wins(self, store: PendingPaymentStore) -> None:
        store.save(PendingPayment(payment_id="pay_stored", course_id="course-1"))

        payment_id, pending = resolve_payment_id(store, "course-1", "pay_param")

        assert payment_id == "pay_stored"
        assert pending.course_id == "course-1"

    def test_record_for_other_course_ignored(self, store: PendingPaymentStore) -> None:
        store.save(PendingPayment(payment_id="pay_stored", course_id="course-2"))

        assert resolve_payment_id(store, "course-1", "pay_param") == ("pay_param", None)

    def test_nothing_available(self, store: PendingPaymentStore) -> None:
        assert resolve_payment_id(store, "course-1", "") == (None, None)
