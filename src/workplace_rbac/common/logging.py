"""Structured logging for the RBAC service.

Event names are dotted (``rbac.grants.replace.success``) and context travels in
``extra``. The request id bound by the middleware is stamped on every record.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from workplace_rbac.settings import Settings

_request_id: ContextVar[str | None] = ContextVar("workplace_rbac_request_id", default=None)

# Identity fields lead the console line so grep on a tenant or actor stays easy.
_IDENTITY_KEYS = ("workplace_id", "role_id", "user_id", "actor")

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "correlation_id",
    "color_message",
}

_THIRD_PARTY = ("uvicorn", "uvicorn.error", "alembic")
_SQL_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def bind_request_context(request_id: str | None) -> None:
    _request_id.set(request_id)


def clear_request_context() -> None:
    _request_id.set(None)


def current_request_id() -> str | None:
    return _request_id.get()


def log_context(
    *,
    workplace_id: str | None = None,
    role_id: str | None = None,
    user_id: str | None = None,
    actor: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build an ``extra`` mapping, dropping identifiers that are not known."""

    identity = dict(zip(_IDENTITY_KEYS, (workplace_id, role_id, user_id, actor), strict=True))
    context = {key: str(value) for key, value in identity.items() if value is not None}
    context.update(extra)
    return context


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED and not key.startswith("_")
    }


def _timestamp(record: logging.LogRecord) -> str:
    moment = datetime.fromtimestamp(record.created, tz=UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z"


class ConsoleLogFormatter(logging.Formatter):
    """One line per record: ``<ts> <level> <logger> [cid=<id>] <event> k=v ...``."""

    def format(self, record: logging.LogRecord) -> str:
        extras = _extras(record)
        ordered = [key for key in _IDENTITY_KEYS if key in extras]
        ordered += sorted(key for key in extras if key not in _IDENTITY_KEYS)
        fields = " ".join(
            f"{key}={'null' if extras[key] is None else extras[key]}" for key in ordered
        )

        line = (
            f"{_timestamp(record)} {record.levelname:<5} {record.name} "
            f"[cid={_request_id.get() or '-'}] {record.getMessage()}"
        )
        if fields:
            line = f"{line} {fields}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "service": "workplace-rbac",
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": _request_id.get() or "-",
            **_extras(record),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


def setup_logging(settings: Settings) -> None:
    """Install one stream handler on the root logger.

    Safe to call repeatedly; the app factory and the CLI both call it.
    """

    handler = logging.StreamHandler()
    handler.setFormatter(
        JsonLogFormatter() if settings.log_format == "json" else ConsoleLogFormatter()
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)

    for name in _THIRD_PARTY:
        third_party = logging.getLogger(name)
        third_party.handlers.clear()
        third_party.propagate = True
        third_party.setLevel(logging.NOTSET)

    # RequestContextMiddleware already logs each request.
    logging.getLogger("uvicorn.access").disabled = True

    sql_level = settings.database_log_level or "WARNING"
    for name in _SQL_LOGGERS:
        logging.getLogger(name).setLevel(sql_level)


__all__ = [
    "ConsoleLogFormatter",
    "JsonLogFormatter",
    "bind_request_context",
    "clear_request_context",
    "current_request_id",
    "log_context",
    "setup_logging",
]
