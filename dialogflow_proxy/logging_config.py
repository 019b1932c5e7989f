"""Structured JSON logging.

Usage:
    configure_logging(level="INFO", service_name="dialogflow-proxy")
    logger = logging.getLogger(__name__)
    logger.info("detect_intent_sent", extra={"session_id": "abc"})

Every record gets ``service`` and ``correlation_id`` fields. The correlation
id lives in a ContextVar so it follows the request across ``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
import uuid
from contextvars import ContextVar, Token
from typing import Callable

from pythonjsonlogger.json import JsonFormatter

LOG_FIELDS = ("asctime", "levelname", "name", "message", "correlation_id", "service")

FIELD_RENAME_MAP = {
    "levelname": "level",
    "name": "logger",
}

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None = None) -> Token[str]:
    """Bind a correlation id to the current context, generating one if empty."""
    return _correlation_id.set(correlation_id or str(uuid.uuid4()))


def reset_correlation_id(token: Token[str]) -> None:
    _correlation_id.reset(token)


class CorrelationIdFilter(logging.Filter):
    """Injects correlation_id and service into each record.

    A correlation_id passed explicitly through ``extra`` is preserved.
    """

    def __init__(
        self,
        service_name: str,
        correlation_id_getter: Callable[[], str] | None = None,
    ) -> None:
        super().__init__()
        self._service_name = service_name
        self._get_correlation_id = correlation_id_getter or get_correlation_id

    def filter(self, record: logging.LogRecord) -> bool:
        existing = getattr(record, "correlation_id", None)
        record.correlation_id = existing if existing else self._get_correlation_id()
        record.service = self._service_name
        return True


def create_json_formatter() -> JsonFormatter:
    format_string = " ".join(f"%({field})s" for field in LOG_FIELDS)
    return JsonFormatter(format_string, rename_fields=FIELD_RENAME_MAP)


def configure_logging(level: str = "INFO", service_name: str = "dialogflow-proxy") -> None:
    """Install a single JSON stream handler on the root logger.

    Raises:
        ValueError: if the level is not a standard logging level name.
    """
    level_upper = level.upper()
    if level_upper not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid log level: {level}")

    handler = logging.StreamHandler()
    handler.setLevel(level_upper)
    handler.setFormatter(create_json_formatter())
    handler.addFilter(CorrelationIdFilter(service_name))

    root = logging.getLogger()
    root.setLevel(level_upper)
    # Replace existing handlers so uvicorn reloads do not duplicate output.
    root.handlers = [handler]
