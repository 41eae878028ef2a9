from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Optional


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line:
      { "t": 1760000000000, "lvl": "INFO", "name": "gallery.server", "msg": "text", "extra": {...} }
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(time.time() * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        # log.info("...", extra={"extra": {...}})
        if hasattr(record, "extra") and isinstance(record.extra, dict):  # type: ignore[attr-defined]
            payload["extra"] = record.extra  # type: ignore[attr-defined]
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once with JSON output on stdout.
    Level precedence: explicit `level`, then env LOG_LEVEL, then INFO.
    """
    root = logging.getLogger()
    if getattr(root, "_gallery_configured", False):
        return

    lvl = getattr(logging, (level or os.environ.get("LOG_LEVEL") or "INFO").upper(), None)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(lvl)
    root._gallery_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Module logger; makes sure the root logger is configured."""
    setup_logging()
    return logging.getLogger(name)
