"""Logging setup for the CLI and for unattended batch runs.

Modules log through ``logging.getLogger(__name__)``; this module only wires
handlers onto the ``bylaw_search`` logger. Interactive use gets a rich
console handler, cron/batch use gets one JSON object per line.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

import litellm
from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "bylaw_search"

# Attributes present on every LogRecord; anything else came in via extra=.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render a record (plus any ``extra=`` fields) as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    level: int | str = logging.INFO,
    *,
    json_lines: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Install a single handler on the package logger and return it.

    Calling this again replaces the previous handler rather than stacking
    a second one.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if json_lines:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    # LiteLLM is chatty at INFO; keep it to warnings unless debugging.
    litellm.suppress_debug_info = True
    logging.getLogger("LiteLLM").setLevel(
        logging.DEBUG if logger.level <= logging.DEBUG else logging.WARNING
    )
    return logger
