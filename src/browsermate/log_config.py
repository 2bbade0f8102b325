"""Logging setup for BrowserMate.

Modules log through `logging.getLogger(__name__)`; this module only wires the
root logger once, either human-readable or as JSON lines.
"""

from __future__ import annotations

import json
import logging
import sys
import time

_HANDLER_NAME = "browsermate"


class StructuredFormatter(logging.Formatter):
    """JSON log formatter. Fields: ts, level, logger, msg, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", structured: bool = False) -> None:
    """Configure the root logger.

    Calling this again replaces the previously installed handler instead of
    stacking a second one.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    # stderr: stdout carries the MCP stdio transport
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        )
    root.addHandler(handler)
