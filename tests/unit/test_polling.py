# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for bounded polling loops."""

import asyncio

import pytest

from src.utils.polling import poll_until, start_polling


def counter(values: list[str]):
    """Check function returning ``values`` in order, repeating the last."""
    calls: list[str] = []

    async def check() -> str:
        value = values[min(len(calls), len(values) - 1)]
        calls.append(value)
        return value

    return check, calls


class TestPollUntil:
    """Tests for poll_until."""

    @pytest.mark.asyncio
    async def test_first_check_is_immediate(self, fake_sleep) -> None:
        check, calls = counter(["done"])

        result = await poll_until(check, lambda value: value == "done", interval=1.0, max_attempts=3, sleep=fake_sleep)

        assert result.value == "done"
        assert result.attempts == 1
        assert result.exhausted is False
        assert fake_sleep.calls == []

    @pytest.mark.asyncio
    async def test_stops_at_terminal_value(self, fake_sleep) -> None:
        check, calls = counter(["wait", "wait", "done", "never"])
        seen: list[str] = []

        result = await poll_until(
            check,
            lambda value: value == "done",
            interval=2.0,
            max_attempts=10,
            sleep=fake_sleep,
            on_value=seen.append,
        )

        assert result.attempts == 3
        assert calls == ["wait", "wait", "done"]
        assert seen == calls
        assert fake_sleep.calls == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_after_cap(self, fake_sleep) -> None:
        check, calls = counter(["wait"])

        result = await poll_until(check, lambda value: value == "done", interval=1.0, max_attempts=4, sleep=fake_sleep)

        assert result.exhausted is True
        assert result.attempts == 4
        assert len(calls) == 4
        assert len(fake_sleep.calls) == 3

    @pytest.mark.asyncio
    async def test_rejects_zero_attempts(self, fake_sleep) -> None:
        check, _ = counter(["done"])

        with pytest.raises(ValueError, match="max_attempts"):
            await poll_until(check, lambda value: True, interval=1.0, max_attempts=0, sleep=fake_sleep)

    @pytest.mark.asyncio
    async def test_check_errors_propagate(self, fake_sleep) -> None:
        async def check() -> str:
            raise RuntimeError("backend down")

        with pytest.raises(RuntimeError, match="backend down"):
            await poll_until(check, lambda value: True, interval=1.0, max_attempts=3, sleep=fake_sleep)


class TestStartPolling:
    """Tests for start_polling."""

    @pytest.mark.asyncio
    async def test_task_result(self, fake_sleep) -> None:
        check, _ = counter(["wait", "done"])

        task = start_polling(check, lambda value: value == "done", interval=1.0, max_attempts=5, sleep=fake_sleep, name="poll")

        result = await task
        assert task.get_name() == "poll"
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_cancel_stops_loop(self) -> None:
        check, calls = counter(["wait"])

        async def parked(delay: float) -> None:
            await asyncio.Event().wait()

        task = start_polling(check, lambda value: False, interval=1.0, max_attempts=100, sleep=parked)
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert calls == ["wait"]
