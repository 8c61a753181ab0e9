# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bounded polling loops.

Export jobs and payment confirmations are both "ask the backend again
after a fixed delay until a terminal answer arrives" loops. This module
holds the loop once, with an attempt cap, and runs it as an
``asyncio.Task`` so callers cancel it with ``task.cancel()``.

Example:
    result = await poll_until(
        check=lambda: client.get_export_status(job_id),
        is_terminal=lambda job: job.status.is_terminal,
        interval=1.0,
        max_attempts=300,
    )
    if result.exhausted:
        ...
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class PollResult(Generic[T]):
    """Outcome of a polling loop.

    Attributes:
        value: The last value returned by the check.
        attempts: Number of checks performed.
        exhausted: True when the cap was reached without a terminal value.
    """

    value: T
    attempts: int
    exhausted: bool = False


async def poll_until(
    check: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    interval: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
    on_value: Callable[[T], None] | None = None,
) -> PollResult[T]:
    """Run ``check`` until it returns a terminal value or the cap is hit.

    The first check runs immediately; each later check waits ``interval``
    seconds. No check runs after a terminal value is seen.

    Args:
        check: Coroutine function returning the current value.
        is_terminal: Predicate that ends the loop.
        interval: Delay between checks in seconds.
        max_attempts: Maximum number of checks (at least 1).
        sleep: Sleep coroutine, injectable for tests.
        on_value: Optional callback receiving every value, terminal or not.

    Returns:
        PollResult with the last value and attempt count.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempts = 0
    while True:
        value = await check()
        attempts += 1

        if on_value is not None:
            on_value(value)

        if is_terminal(value):
            return PollResult(value=value, attempts=attempts)

        if attempts >= max_attempts:
            logger.warning("Polling gave up after %d attempts", attempts)
            return PollResult(value=value, attempts=attempts, exhausted=True)

        await sleep(interval)


def start_polling(
    check: Callable[[], Awaitable[T]],
    is_terminal: Callable[[T], bool],
    interval: float,
    max_attempts: int,
    sleep: Sleep = asyncio.sleep,
    on_value: Callable[[T], None] | None = None,
    name: str | None = None,
) -> "asyncio.Task[PollResult[T]]":
    """Schedule :func:`poll_until` as a task on the running loop.

    Returns:
        The task. Cancelling it stops the loop at its next await.
    """
    return asyncio.create_task(
        poll_until(
            check=check,
            is_terminal=is_terminal,
            interval=interval,
            max_attempts=max_attempts,
            sleep=sleep,
            on_value=on_value,
        ),
        name=name,
    )
