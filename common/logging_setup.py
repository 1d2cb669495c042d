from __future__ import annotations

import logging
import os
import sys
import json
from typing import Any, Dict, Optional


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line, stamped with the record's own creation time:
      {"t": 1760870000123, "lvl": "ERROR", "name": "fontl.server", "msg": "...",
       "path": "/srv/fonts/Arial.ttf.fontl.json", "extra": {...}, "exc_type": "OSError"}

    A `path` key in `extra` is promoted to the top level.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "t": int(record.created * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        ctx = getattr(record, "extra", None)
        if isinstance(ctx, dict) and ctx:
            ctx = dict(ctx)
            path = ctx.pop("path", None)
            if path:
                payload["path"] = str(path)
            if ctx:
                payload["extra"] = ctx
        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_type"] = record.exc_info[0].__name__
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _resolve_level(level: Optional[str]) -> int:
    lvl_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = logging.getLevelName(lvl_name)
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Configure root logger once with JSON formatting on stdout.
    Level precedence:
      - explicit `level` arg
      - env LOG_LEVEL (e.g., DEBUG/INFO/WARNING/ERROR)
      - default INFO

    A later call with an explicit `level` only adjusts the level; `force=True`
    reinstalls the handler.
    """
    root = logging.getLogger()
    if getattr(root, "_fontl_configured", False) and not force:  # idempotent
        if level:
            root.setLevel(_resolve_level(level))
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))
    root._fontl_configured = True  # type: ignore[attr-defined]


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; ensures root is configured."""
    setup_logging()
    return logging.getLogger(name)
