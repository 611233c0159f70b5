"""Logging setup for guidearr processes.

Modules log through ``logging.getLogger(__name__)`` with a bracketed tag
(``[SD]``, ``[SYNC]``, ...). Records emitted during a guide update carry
the guide source id and the sync phase as record attributes, passed with
``extra=sync_fields(...)``; both formatters below render them.

Environment variables:
    LOG_LEVEL: console level name (default: INFO)
    LOG_DIR: directory for the rotating log files (default: ./logs)
    LOG_FORMAT: "text" or "json" (default: text)
"""

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE = "guidearr.log"
ERROR_LOG_FILE = "guidearr_errors.log"
MAX_LOG_BYTES = 10 * 1024 * 1024

# Record attributes describing the guide update a record belongs to
SYNC_FIELDS = ("guide_source_id", "sync_phase")

_configured = False


def sync_fields(guide_source_id: int, phase: str | None = None) -> dict:
    """`extra=` mapping tying a log record to a guide update."""
    fields = {"guide_source_id": guide_source_id}
    if phase:
        fields["sync_phase"] = phase
    return fields


def _record_sync_fields(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in SYNC_FIELDS
        if getattr(record, name, None) is not None
    }


class SyncTextFormatter(logging.Formatter):
    """Plain text lines, suffixed with the guide update they belong to."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = _record_sync_fields(record)
        if not fields:
            return line
        suffix = " ".join(f"{name}={value}" for name, value in fields.items())
        # Keep tracebacks last so the context stays on the message line
        head, newline, rest = line.partition("\n")
        return f"{head} ({suffix}){newline}{rest}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        data.update(_record_sync_fields(record))
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def _rotating_handler(
    path: Path, level: int, backups: int, formatter: logging.Formatter
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path, maxBytes=MAX_LOG_BYTES, backupCount=backups, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str | None = None,
    log_dir: str | Path | None = None,
    use_json: bool | None = None,
) -> None:
    """Attach console and rotating file handlers to the root logger.

    Only the first call has an effect. Arguments override the LOG_LEVEL,
    LOG_DIR and LOG_FORMAT environment variables. The main log file always
    receives DEBUG; a second file keeps errors only.
    """
    global _configured
    if _configured:
        return

    level_name = (log_level or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    directory = Path(log_dir or os.getenv("LOG_DIR") or "logs")
    if use_json is None:
        use_json = os.getenv("LOG_FORMAT", "text").lower() == "json"

    directory.mkdir(parents=True, exist_ok=True)
    formatter = JSONFormatter() if use_json else SyncTextFormatter()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.addHandler(console)
    root.addHandler(_rotating_handler(directory / LOG_FILE, logging.DEBUG, 5, formatter))
    root.addHandler(_rotating_handler(directory / ERROR_LOG_FILE, logging.ERROR, 3, formatter))

    # Per-request chatter from the HTTP stack
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True

    from guidearr.config import VERSION

    logging.getLogger("guidearr").info(
        "[STARTUP] guidearr %s logging at %s to %s (%s)",
        VERSION,
        logging.getLevelName(level),
        directory,
        "json" if use_json else "text",
    )
