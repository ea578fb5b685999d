"""Structured logging configuration with session ID tracking."""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import Settings, get_settings


# Context variable for the active SUT session
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def __init__(self, include_location: bool = False):
        super().__init__()
        self.include_location = include_location

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = session_id_var.get()
        if session_id:
            log_data["session_id"] = session_id

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_location:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for local runs."""

    def format(self, record: logging.LogRecord) -> str:
        session_id = session_id_var.get()
        sid = f"[{session_id[:8]}] " if session_id else ""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        base = f"{timestamp} {record.levelname:8} {sid}{record.name}: {record.getMessage()}"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


class SensitiveDataFilter(logging.Filter):
    """Filter key material from logs."""

    SENSITIVE_KEYS = {
        "privatekey",
        "private_key",
        "operator_account_private_key",
        "secret",
        "authorization",
    }

    # DER prefixes of ED25519 and ECDSA(secp256k1) private keys
    DER_PRIVATE_KEY = re.compile(
        r"(302e020100300506032b657004220420"
        r"|3030020100300706052b8104000a04220420"
        r"|30540201010420)[0-9a-f]+",
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True

    def redact(self, text: str) -> str:
        lowered = text.lower()
        for key in self.SENSITIVE_KEYS:
            if key in lowered:
                text = self._redact_value(text, key)
        return self.DER_PRIVATE_KEY.sub("[REDACTED]", text)

    def _redact_value(self, text: str, key: str) -> str:
        """Redact values after sensitive keys."""
        # Match "key=value", "key: value", "'key': 'value'" and camelCase suffixes
        patterns = [
            rf"({key}\s*[=:]\s*)[^\s,}}\]]+",
            rf"({key}['\"]\s*:\s*)[^\s,}}\]]+",
        ]
        for pattern in patterns:
            text = re.sub(pattern, r"\1[REDACTED]", text, flags=re.IGNORECASE)
        return text


def setup_logging(settings: Settings | None = None) -> None:
    """Configure harness logging."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if settings.log_format == "json":
        handler.setFormatter(
            StructuredFormatter(include_location=settings.log_level == "DEBUG")
        )
    else:
        handler.setFormatter(TextFormatter())

    handler.addFilter(SensitiveDataFilter())

    root_logger.addHandler(handler)

    # Request-level chatter from the HTTP and gRPC stacks
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("grpc").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the tck prefix."""
    return logging.getLogger(f"tck.{name}")
