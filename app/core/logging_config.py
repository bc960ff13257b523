"""Log formatting and root logger setup."""

from __future__ import annotations

from datetime import datetime
from datetime import timezone
import json
import logging
import sys
from typing import Any

from app.core.config import ApiSettings


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON line, merging ``extra_fields``."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_entry.update(extra_fields)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def configure_logging(settings: ApiSettings) -> None:
    """Install a single stdout handler on the root logger."""
    level = getattr(logging, settings.log_level.strip().upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if settings.log_format.strip().lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    root.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
