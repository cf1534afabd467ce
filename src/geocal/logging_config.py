"""
Logging setup for geocal.

Library modules only create module loggers; the command line (or the host
application) calls `setup_logging` once to attach a handler.
"""

import json
import logging
import sys
from typing import Any, Dict, Optional


class JSONFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure the root logger once.

    Level precedence:
      - explicit `level` arg
      - Settings.log_level (GEOCAL_LOG_LEVEL)
      - INFO
    """
    root = logging.getLogger()
    if getattr(root, "_geocal_configured", False):
        if level:
            root.setLevel(_level_from_name(level))
        return

    if level is None or log_format is None:
        from geocal.config import get_settings
        settings = get_settings()
        level = level or settings.log_level
        log_format = log_format or settings.log_format

    root.setLevel(_level_from_name(level))
    root._geocal_configured = True  # type: ignore[attr-defined]
    if root.handlers:
        # The host application already routes log records.
        return

    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root.addHandler(handler)


def _level_from_name(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO