"""Structured logging configuration for LabBoard.

Environment variables:
    LB_LOG_FORMAT  -- ``json`` for one JSON object per line, ``text`` for human-readable (default).
    LB_LOG_LEVEL   -- Python log level name (default: ``INFO``).

Request lines carry the request fields below; authorization and
authentication events on ``labboard.audit`` also carry the audit fields.
"""

from __future__ import annotations

import logging
import os
import traceback

#: LogRecord attributes promoted to top-level JSON fields when present.
REQUEST_FIELDS: tuple[str, ...] = (
    "request_id",
    "path",
    "method",
    "status_code",
    "duration_ms",
    "user_id",
)
AUDIT_FIELDS: tuple[str, ...] = ("event_category", "action", "operation", "reason", "resource_id")

#: Third-party loggers that are only useful when debugging.
_CHATTY_LOGGERS: tuple[str, ...] = ("botocore", "boto3", "urllib3", "aiosqlite")

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _is_json_mode() -> bool:
    return os.environ.get("LB_LOG_FORMAT", "text").lower() == "json"


def _get_log_level() -> int:
    """Numeric level from LB_LOG_LEVEL; unknown names fall back to INFO."""
    numeric = getattr(logging, os.environ.get("LB_LOG_LEVEL", "INFO").upper(), None)
    return numeric if isinstance(numeric, int) else logging.INFO


class StructuredJsonFormatter(logging.Formatter):
    """Render records as JSON through ``pythonjsonlogger``.

    Request and audit fields set via ``extra=`` are emitted only when they
    have a value, and an exception is written as a ``traceback`` list
    instead of free-form text.
    """

    def __init__(self) -> None:
        super().__init__()
        from pythonjsonlogger.json import JsonFormatter

        self._inner = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        for key in REQUEST_FIELDS + AUDIT_FIELDS:
            if key in record.__dict__ and record.__dict__[key] is None:
                delattr(record, key)

        if record.exc_info and record.exc_info[1] is not None:
            record.traceback = traceback.format_exception(*record.exc_info)
            record.exc_info = None
            record.exc_text = None

        return self._inner.format(record)


def setup_logging() -> None:
    """Point the root logger at stderr using LB_LOG_FORMAT and LB_LOG_LEVEL."""
    level = _get_log_level()
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(StructuredJsonFormatter() if _is_json_mode() else logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def log_startup_info(storage_backend: str, directory: str) -> None:
    """One structured line describing how this process is wired."""
    import labboard

    logging.getLogger("labboard").info(
        "LabBoard started",
        extra={
            "version": labboard.__version__,
            "storage_backend": storage_backend,
            "directory": directory,
            "auth_provider": os.environ.get("LB_AUTH_PROVIDER", "jwt"),
            "groups_claim": os.environ.get("LB_GROUPS_CLAIM", "cognito:groups"),
            "rate_limit_config": os.environ.get("LB_RATE_LIMIT", "none"),
        },
    )
