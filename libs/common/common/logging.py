"""
Structured logging configuration.

Call ``setup_logging()`` once at tool startup.  Logs go to stderr so the
report printed on stdout can be piped untouched.
"""

from __future__ import annotations

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from common.config import env


class _RunIdFilter(logging.Filter):
    """Inject run_id from contextvars into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        from common.run_context import get_run_id

        record.run_id = get_run_id() or "-"  # type: ignore[attr-defined]
        return True


def setup_logging(
    tool_name: str = "k6-tools",
    level: str | None = None,
    fmt: str | None = None,
) -> None:
    level = level or env("LOG_LEVEL", "INFO")
    fmt = fmt or env("LOG_FORMAT", "text")

    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stderr)

    if fmt == "json":
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(run_id)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s (%(run_id)s) %(message)s")

    handler.setFormatter(formatter)
    handler.addFilter(_RunIdFilter())

    root.handlers.clear()
    root.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger(tool_name).debug("Logging initialised", extra={"tool": tool_name})
