"""
Structured JSON logging for the import pipeline.

Every log line is one JSON object on stdout:

    {"timestamp": "...Z", "level": "INFO", "channel": "import",
     "message": "...", "context": {"request_id": "...", "module_code": "..."},
     "extra": {"rows_read": 42}}

Channels:
- http:   request lifecycle and error responses
- db:     upsert statements (DEBUG)
- parser: export decoding and section detection
- import: reconciliation progress and per-row warnings

LOG_LEVEL sets the default level. A channel can be overridden on its own,
e.g. LOG_LEVEL_DB=DEBUG to trace every upsert.
"""

import logging
import json
import os
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Optional

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOGGER_PREFIX = "attendance"

CHANNELS = ["http", "db", "parser", "import"]


def channel_level(channel: str) -> int:
    name = os.getenv(f"LOG_LEVEL_{channel.upper()}", LOG_LEVEL).upper()
    return getattr(logging, name, logging.INFO)


class StructuredJsonFormatter(logging.Formatter):
    """Render a record as a single JSON line; tracebacks go under "exception"."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "channel": getattr(record, "channel", record.name.rsplit(".", 1)[-1]),
            "message": record.getMessage(),
            "context": {"request_id": request_id_var.get(""), **getattr(record, "context", {})},
            "extra": getattr(record, "extra_data", {}),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging() -> logging.Logger:
    """Install the JSON handler on the root logger and set channel levels."""
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(channel_level("root"))
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        get_logger(channel).setLevel(channel_level(channel))

    return root_logger


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: Optional[dict] = None, extra_data: Optional[dict] = None,
                     exc_info: bool = False):
    """
    Emit a structured log entry.

    Args:
        logger: Channel logger from get_logger()
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        message: Human-readable message
        context: Business identifiers (module_code, intake, year, session_id)
        extra_data: Measurements and details (duration_ms, rows_read, line)
        exc_info: Attach the active exception's traceback
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        exc_info=exc_info,
        extra={
            "channel": logger.name.rsplit(".", 1)[-1],
            "context": context or {},
            "extra_data": extra_data or {},
        },
    )


def generate_request_id(incoming: Optional[str] = None) -> str:
    """Reuse a caller-supplied request id when it is sane, else mint a UUID."""
    incoming = (incoming or "").strip()
    if incoming and len(incoming) <= 64 and incoming.isprintable():
        return incoming
    return str(uuid.uuid4())
