"""
Logging setup for the statebook CLI and library modules.

`configure_logging` installs one stderr handler on the root logger, so
command payloads on stdout stay machine-readable. With `LOG_JSON=true` each
line is a JSON object carrying the fields passed through `extra=`, e.g. the
dispatcher's per-invocation line:

    {"level": "INFO", "logger": "statebook.dispatcher", "message": "invoke succeeded",
     "function": "readPicture", "status": 200, "duration_ms": 0.41}
"""

from __future__ import annotations

import json
import logging
import logging.config
from typing import Any, Dict, Optional

# Attribute names present on every LogRecord; the rest came in through `extra=`.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}


def _json_formatter(record: logging.LogRecord) -> str:
    payload: Dict[str, Any] = {
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    payload.update(
        (key, value) for key, value in vars(record).items() if key not in _STANDARD_ATTRS
    )
    if record.exc_info:
        payload["exc_info"] = logging.Formatter().formatException(record.exc_info)
    # Stored values are bytes; fall back to str() for anything json can't encode.
    return json.dumps(payload, default=str)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        return _json_formatter(record)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Route all statebook logging to stderr at `level`.

    Loggers created before the call (module-level `get_logger`) keep working.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_logs else "console",
                    "level": level,
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {"handlers": ["stderr"], "level": level},
        }
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
