import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# attached per call via `extra=` or by the bot middlewares
CONTEXT_FIELDS = ("corr_id", "tg_id", "update_id", "actor", "ref_id")

# aiogram logs every handled update at INFO
NOISY_LOGGERS = {"aiogram.event": logging.WARNING, "aiohttp.access": logging.WARNING}


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, msg, context fields, exc."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created, tz=timezone.utc)
        out: dict[str, Any] = {
            "ts": ts.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        out.update({k: getattr(record, k) for k in CONTEXT_FIELDS if hasattr(record, k)})
        if record.exc_info:
            out["exc"] = self.formatException(record.exc_info)
        return json.dumps(out, ensure_ascii=False, default=str)


def setup_logging() -> None:
    """JSON logs to stdout. LOG_FORMAT=plain switches to a readable line format for local runs."""
    handler = logging.StreamHandler(sys.stdout)
    if os.getenv("LOG_FORMAT", "json").strip().lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(os.getenv("LOG_LEVEL", "INFO").strip().upper())

    for name, level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
