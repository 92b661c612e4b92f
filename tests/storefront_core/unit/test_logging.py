from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Protocol, cast

import pytest
import structlog

from storefront_core.logging import (
    _build_service_tagger,
    configure_structlog,
    get_log_level_value,
    log_exception,
    log_info,
    log_warning,
)
from tests.storefront_core.support.fakes import FakeLogger


def _configured_renderer() -> object:
    root_handler = logging.getLogger().handlers[0]
    formatter = root_handler.formatter
    assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
    return formatter.processors[-1]


def test_get_log_level_value_maps_known_levels() -> None:
    assert get_log_level_value("debug") == logging.DEBUG
    assert get_log_level_value("INFO") == logging.INFO
    assert get_log_level_value(" warning ") == logging.WARNING
    assert get_log_level_value("ERROR") == logging.ERROR
    assert get_log_level_value("critical") == logging.CRITICAL


def test_get_log_level_value_rejects_unknown_level() -> None:
    with pytest.raises(ValueError, match="log_level must be one of"):
        get_log_level_value("TRACE")


def test_configure_structlog_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    first_logger = configure_structlog(log_level="INFO", service="storefront")
    second_logger = configure_structlog(log_level="DEBUG", service="storefront")

    assert len(logging.getLogger().handlers) == 1
    assert logging.getLogger().level == logging.DEBUG
    assert first_logger is not None
    assert second_logger is not None


def test_configure_structlog_uses_console_renderer_for_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: True, raising=False)

    configure_structlog(log_level="INFO")
    renderer = _configured_renderer()

    assert isinstance(renderer, structlog.dev.ConsoleRenderer)


def test_configure_structlog_uses_json_renderer_for_non_tty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(sys.stderr, "isatty", lambda: False, raising=False)

    configure_structlog(log_level="INFO")
    renderer = _configured_renderer()

    assert isinstance(renderer, structlog.processors.JSONRenderer)


class _CaptureHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class _RecordWithStructuredFields(Protocol):
    breaker: str
    failures: int


@pytest.mark.parametrize(
    ("log_fn", "level"),
    [
        (log_info, "info"),
        (log_warning, "warning"),
        (log_exception, "exception"),
    ],
)
def test_structured_log_helpers_forward_keyword_fields(
    log_fn: Callable[..., None],
    level: str,
) -> None:
    logger = FakeLogger()

    log_fn(logger, "circuit_breaker.opened", breaker="svc", failures=3)

    assert logger.calls == [
        (
            level,
            "circuit_breaker.opened",
            {"breaker": "svc", "failures": 3},
        )
    ]


def test_structured_log_helpers_support_stdlib_logger_extra() -> None:
    logger = logging.getLogger("tests.storefront_core.logging.helpers")
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(logging.INFO)
    handler = _CaptureHandler()
    logger.addHandler(handler)

    log_info(logger, "circuit_breaker.closed", breaker="svc", failures=0)

    assert len(handler.records) == 1
    record = handler.records[0]
    typed_record = cast(_RecordWithStructuredFields, record)
    assert record.getMessage() == "circuit_breaker.closed"
    assert typed_record.breaker == "svc"
    assert typed_record.failures == 0


def test_service_tagger_is_noop_without_service() -> None:
    processor = _build_service_tagger(None)
    event_dict: structlog.typing.EventDict = {"event": "test"}

    merged = processor(None, "info", event_dict)

    assert merged is event_dict
    assert merged == {"event": "test"}


def test_service_tagger_does_not_override_explicit_service() -> None:
    processor = _build_service_tagger("storefront")

    tagged = processor(None, "info", {"event": "test"})
    explicit = processor(None, "info", {"event": "test", "service": "checkout"})

    assert tagged == {"event": "test", "service": "storefront"}
    assert explicit == {"event": "test", "service": "checkout"}
