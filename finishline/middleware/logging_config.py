"""
Logging setup for FinishLine.

Production writes one JSON object per line; development and tests get a short
coloured line. ``LOG_LEVEL`` overrides the level.

Every record emitted while a request is active carries ``request_id`` and
``user_id`` (see RequestContextFilter), so a review and the blocking cascade
it triggers can be followed through one id. Services may add ``cr_id`` /
``wbs_element_id`` through ``extra=``.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

CONTEXT_FIELDS = (
    "request_id",
    "user_id",
    "cr_id",
    "wbs_element_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "flask_limiter")


class RequestContextFilter(logging.Filter):
    """Copy the current request id and acting user onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = request.headers.get("X-User-Id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(
            (key, getattr(record, key))
            for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     finishline.x: message [12ms] (req=abc cr=4)``"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        tags = [
            f"{label}={getattr(record, key)}"
            for key, label in (("request_id", "req"), ("cr_id", "cr"))
            if getattr(record, key, None)
        ]
        if tags:
            line += f" ({' '.join(tags)})"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger for ``app``."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    # Replaced, not appended: create_app may run more than once per process
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "json" if production else "readable")
