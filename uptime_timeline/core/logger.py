"""JSON logging for the timeline service.

One formatter renders every record (including structured ``extra`` fields)
as a single JSON line; a redacting filter scrubs sensitive keys and
messages. ``get_logger`` configures lazily so library callers and tests get
sane output without calling ``configure_logging`` first.
"""

from __future__ import annotations

import json
import logging
import os
import socket
import traceback
from datetime import datetime, timezone
from typing import Iterable

from .config import settings

_configured = False

# LogRecord attributes that are not user supplied ``extra`` fields
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class SensitiveDataFilter:
    def __init__(self, patterns: Iterable[str]):
        self.patterns = [p.lower() for p in patterns]

    def filter(self, data: dict) -> dict:
        out = {}
        for k, v in data.items():
            lk = k.lower()
            if any(p in lk for p in self.patterns):
                out[k] = "[REDACTED]"
            elif isinstance(v, dict):
                out[k] = self.filter(v)
            else:
                out[k] = v
        return out


class CustomJsonFormatter(logging.Formatter):
    def __init__(
        self,
        service: str,
        environment: str,
        redaction_patterns: Iterable[str],
    ):
        super().__init__()
        self.hostname = socket.gethostname()
        self.pid = os.getpid()
        self.service_name = service
        self.environment = environment
        self.sensitive_filter = SensitiveDataFilter(redaction_patterns)

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "hostname": self.hostname,
            "pid": self.pid,
        }
        for k, v in record.__dict__.items():
            if k not in _RESERVED and not k.startswith("_"):
                data[k] = v
        if record.exc_info:
            data["exception"] = self.format_exception(record.exc_info)
        data = self.sensitive_filter.filter(data)
        return json.dumps(data, default=str)

    @staticmethod
    def format_exception(exc_info):
        et, ev, tb = exc_info
        return {
            "type": et.__name__,
            "message": str(ev),
            "stack": traceback.format_tb(tb),
        }


class RedactingFilter(logging.Filter):
    def __init__(self, patterns: Iterable[str]):
        super().__init__()
        self.patterns = [p.lower() for p in patterns]

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        msg = record.getMessage().lower()
        if any(p in msg for p in self.patterns):
            record.msg = "[REDACTED SENSITIVE LOG CONTENT]"
            record.args = ()
        return True


def configure_logging(
    level: str | None = None,
    environment: str | None = None,
    redaction_patterns: Iterable[str] | None = None,
    force: bool = False,
) -> logging.Logger:
    """Install the JSON handler on the root logger (idempotent unless forced)."""
    global _configured
    root = logging.getLogger()
    if _configured and not force:
        return root

    patterns = list(
        settings.app_log_redaction_patterns
        if redaction_patterns is None
        else redaction_patterns
    )
    handler = logging.StreamHandler()
    handler.setFormatter(
        CustomJsonFormatter(
            service=settings.otel_service_name,
            environment=environment or settings.app_environment,
            redaction_patterns=patterns,
        )
    )
    handler.addFilter(RedactingFilter(patterns))
    root.handlers = [handler]
    log_level = level or settings.app_log_level
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    _configured = True
    return root


def is_configured() -> bool:
    return _configured


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
