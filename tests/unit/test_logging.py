# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for logging setup."""

import json
import logging
from collections.abc import Generator

import pytest
import structlog

from src.core.config.settings import Settings
from src.utils import logging as app_logging
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Detach the application handler and context after each test."""
    yield
    if app_logging._handler is not None:
        logging.getLogger().removeHandler(app_logging._handler)
        app_logging._handler = None
    clear_context()
    structlog.reset_defaults()


def production_settings() -> Settings:
    return Settings(
        environment="production",
        debug=False,
        log_level="WARNING",
        analytics_api={"base_url": "https://gamelearn.example"},
    )


def app_formatter() -> structlog.stdlib.ProcessorFormatter:
    return app_logging._handler.formatter


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_sets_package_and_library_levels(self) -> None:
        setup_logging(Settings(log_level="INFO"))

        assert logging.getLogger("src").level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("posthog").level == logging.WARNING

    def test_production_renders_json(self) -> None:
        setup_logging(production_settings())

        assert isinstance(app_formatter().processors[-1], structlog.processors.JSONRenderer)

    def test_development_renders_console(self) -> None:
        setup_logging(Settings(environment="development"))

        assert isinstance(app_formatter().processors[-1], structlog.dev.ConsoleRenderer)

    def test_repeated_setup_keeps_one_handler(self) -> None:
        setup_logging(Settings(environment="development"))
        setup_logging(Settings(environment="development"))

        handlers = [
            handler
            for handler in logging.getLogger().handlers
            if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
        ]
        assert handlers == [app_logging._handler]


class TestLogContext:
    """Tests for context binding."""

    def test_bind_and_clear_context(self) -> None:
        bind_context(instructor_id="inst-1")

        assert structlog.contextvars.get_contextvars() == {"instructor_id": "inst-1"}

        clear_context()

        assert structlog.contextvars.get_contextvars() == {}

    def test_stdlib_records_carry_bound_context(self, capsys) -> None:
        setup_logging(production_settings())
        bind_context(instructor_id="inst-1")

        logging.getLogger("src.services.embeds.fetcher").warning("Minted %s embed: %s", "PostHog", "5")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "Minted PostHog embed: 5"
        assert record["instructor_id"] == "inst-1"
        assert record["level"] == "warning"
        assert record["logger"] == "src.services.embeds.fetcher"

    def test_get_logger_returns_bound_logger(self) -> None:
        logger = get_logger(__name__)

        assert hasattr(logger, "info")
