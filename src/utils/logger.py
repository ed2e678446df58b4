"""Logging for the Chef Synthesis Service.

One module-level ``logger`` shared by the pipeline, gateway and HTTP layer.
Environment switches:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_TYPE: text, json (default: text)

Pipeline records carry context through ``extra=``: ``request_id`` ties together
the records of one invocation and ``credential`` is the pool ordinal in use.
Secrets are never passed here; use ``Credential.masked`` in messages.
"""

import json
import logging
import os
import sys
from typing import Any

# Optional record attributes copied into formatted output, in this order
CONTEXT_FIELDS = ("request_id", "credential")


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class RichTextFormatter(logging.Formatter):
    """Colored single-line records with a level icon, for terminals.

    Context renders as a bracketed prefix, e.g. ``[3f9c01ab22de cred#1]``.
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    ICONS = {
        "DEBUG": "🔍",
        "INFO": "ℹ️",
        "WARNING": "⚠️",
        "ERROR": "❌",
        "CRITICAL": "🔥",
    }

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        context = _context(record)
        tags = []
        if "request_id" in context:
            tags.append(str(context["request_id"]))
        if "credential" in context:
            tags.append(f"cred#{context['credential']}")
        prefix = f"[{' '.join(tags)}] " if tags else ""

        line = (
            f"{self.COLORS.get(level, '')}{self.ICONS.get(level, '')} "
            f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} {level:<8} {record.name:<20} "
            f"{prefix}{record.getMessage()}{self.RESET}"
        )
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, attaching a stdout handler on first use.

    Level and format come from LOG_LEVEL and LOG_TYPE; an unknown level falls
    back to INFO. Later calls return the already configured logger untouched.
    """
    instance = logging.getLogger(name)
    if instance.handlers:
        return instance

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    use_json = os.getenv("LOG_TYPE", "text").lower() == "json"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if use_json else RichTextFormatter())

    instance.setLevel(level)
    instance.addHandler(handler)
    return instance


logger = get_logger("chef_synthesis")

# SDK request lines and AFC notices stay out of the service log
for _noisy in ("google.genai", "httpx"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
