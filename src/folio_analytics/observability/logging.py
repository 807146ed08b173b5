"""
Logging setup for analytics jobs and the command line.

Records emitted through :class:`CalculationLogger` carry ``calculation`` and
``scope_id`` attributes; the JSON formatter lifts those (and an error
``reason``) into top-level keys so log pipelines can filter on them.
"""

from __future__ import annotations

import json
import logging
import logging.config
from collections.abc import Mapping, MutableMapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

PACKAGE_LOGGER = "folio_analytics"
RECORD_FIELDS = ("calculation", "scope_id", "reason")
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in RECORD_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = str(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


class CalculationLogger(logging.LoggerAdapter):
    """Binds ``calculation``/``scope_id`` to every record of one logger."""

    def __init__(self, logger: logging.Logger, calculation: str, scope_id: Any = None) -> None:
        super().__init__(logger, {"calculation": calculation, "scope_id": scope_id})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def _file_handler(log_file: str, formatter: str) -> dict[str, Any]:
    path = Path(log_file).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(path),
        "maxBytes": 5 * 1024 * 1024,
        "backupCount": 3,
        "formatter": formatter,
        "encoding": "utf-8",
    }


def configure_logging(
    level: str | int = "INFO",
    *,
    json_format: bool = False,
    log_file: str | None = None,
    quiet: Mapping[str, str] | None = None,
) -> None:
    """
    Route the package's logs to stderr (and optionally a rotating file).

    ``quiet`` maps other logger names to a minimum level, e.g. to silence a
    chatty dependency while debugging the calculators.
    """
    formatter = "json" if json_format else "text"
    handlers: dict[str, dict[str, Any]] = {
        "console": {"class": "logging.StreamHandler", "formatter": formatter, "stream": "ext://sys.stderr"},
    }
    if log_file:
        handlers["file"] = _file_handler(log_file, formatter)

    loggers: dict[str, dict[str, Any]] = {PACKAGE_LOGGER: {"level": level}}
    for name, minimum in (quiet or {}).items():
        loggers[name] = {"level": minimum}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonLogFormatter},
                "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%dT%H:%M:%S%z"},
            },
            "handlers": handlers,
            "loggers": loggers,
            "root": {"level": level, "handlers": list(handlers)},
        }
    )
