"""
Structured logging for the API, the gateway and the CLI.

Keyword arguments passed to a logger call become structured fields:

    logger.info("Order updated", order_id=12, state="lista")

Production writes one JSON object per line; development writes a short
colored line with the fields appended as key=value pairs.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pos_shared.config.settings import settings

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def _fields(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "fields", None) or {}


class JsonFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = _fields(record)
        if fields:
            payload["fields"] = fields
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            payload["at"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        return json.dumps(payload, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Compact colored output for local runs."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "35",
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "0")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"\033[{color}m{clock} {record.levelname[:4]}\033[0m {record.name} - {record.getMessage()}"

        fields = _fields(record)
        if fields:
            line += "  " + " ".join(f"{key}={value!r}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose extra keyword arguments are attached to the record as `fields`."""

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1, **fields):  # type: ignore[override]
        extra = dict(extra or {})
        extra["fields"] = fields
        # One extra frame: this override sits between the caller and logging
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


# Must run before any module calls get_logger()
logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler. Called once per process."""
    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter() if settings.environment == "production" else ConsoleFormatter()
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_email(email: str | None) -> str:
    """'cajero@bar.pe' -> 'ca***@bar.pe'. Login failures never log full addresses."""
    if not email or "@" not in email:
        return "<sin-email>" if not email else "***"
    local, _, domain = email.partition("@")
    return f"{local[:2] if len(local) > 2 else local[:1]}***@{domain}"


rest_api_logger = get_logger("pos_api")
ws_gateway_logger = get_logger("pos_gateway")
orders_logger = get_logger("pos_api.orders")
billing_logger = get_logger("pos_api.billing")
auth_logger = get_logger("pos_api.auth")
