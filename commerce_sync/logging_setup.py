"""Structured JSON logging to console and a size-capped file."""

from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict


LOGGER_NAME = "commerce_sync"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: value for key, value in record.__dict__.items() if key not in STANDARD_ATTRS})

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=True, default=_json_default)


class TruncatingFileHandler(logging.FileHandler):
    """File handler that drops the oldest lines once the file grows past ``max_bytes``."""

    def __init__(self, filename: str | Path, max_bytes: int) -> None:
        super().__init__(filename, mode="a", encoding="utf-8", delay=False)
        self.max_bytes = max_bytes

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        self._truncate_if_needed()

    def _truncate_if_needed(self) -> None:
        if self.max_bytes <= 0 or self.stream is None:
            return
        try:
            self.stream.flush()
            if os.path.getsize(self.baseFilename) <= self.max_bytes:
                return
        except (OSError, ValueError):
            return

        # the file may have been removed or rotated away since the size check
        try:
            with open(self.baseFilename, "rb+") as handle:
                size = handle.seek(0, os.SEEK_END)
                if size <= self.max_bytes:
                    return
                handle.seek(size - self.max_bytes)
                data = handle.read()
                # keep whole lines only
                newline_index = data.find(b"\n")
                if newline_index != -1:
                    data = data[newline_index + 1 :]
                handle.seek(0)
                handle.write(data)
                handle.truncate()
        except OSError:
            return


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(str(item) for item in value)
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


class MergeExtraAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        merged = dict(self.extra)
        merged.update(kwargs.get("extra", {}))
        kwargs["extra"] = merged
        return msg, kwargs


def setup_logging(log_file: str, level: str, run_id: str, max_bytes: int = DEFAULT_MAX_BYTES) -> logging.LoggerAdapter:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = JsonFormatter()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = TruncatingFileHandler(log_path, max_bytes=max_bytes)
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return MergeExtraAdapter(logger, {"runId": run_id})
