"""
Shared error types and the CLI exit-code mapping.

Every tool wraps its ``main`` with :func:`run_cli` so all failures end the
process the same way: one logged line and a distinct exit code per failure
class.

    0  success
    1  generic failure (e.g. an orchestrator phase failed)
    2  usage error (argparse, invalid configuration value)
    3  I/O error
    4  parse failure
    5  external tool failure (k6, InfluxDB, Grafana)
  130  interrupted
"""

from __future__ import annotations

import logging
from typing import Callable

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_IO = 3
EXIT_PARSE = 4
EXIT_EXTERNAL = 5

logger = logging.getLogger("common.errors")


# ── Base errors ────────────────────────────────────────────────────────

class ToolError(Exception):
    """Generic tool failure."""

    exit_code = EXIT_FAILURE

    def __init__(self, detail: str = "Tool failed"):
        super().__init__(detail)
        self.detail = detail


class FileAccessError(ToolError):
    """File missing, unreadable, or output directory unwritable."""

    exit_code = EXIT_IO

    def __init__(self, detail: str = "File access failed"):
        super().__init__(detail)


class ConfigError(ToolError):
    """Environment variable or flag holds a value of the wrong type."""

    exit_code = EXIT_USAGE

    def __init__(self, detail: str = "Invalid configuration"):
        super().__init__(detail)


class ParseError(ToolError):
    """Input document is not valid k6 output."""

    exit_code = EXIT_PARSE

    def __init__(self, detail: str = "Could not parse input"):
        super().__init__(detail)


class EmptyInputError(ToolError):
    """No values / samples / endpoints to work with."""

    exit_code = EXIT_OK

    def __init__(self, detail: str = "No data"):
        super().__init__(detail)


class ExternalToolError(ToolError):
    """k6 missing from PATH or exited non-zero."""

    exit_code = EXIT_EXTERNAL

    def __init__(self, detail: str = "External tool failed"):
        super().__init__(detail)


# ── CLI wrapper ────────────────────────────────────────────────────────

def run_cli(main: Callable[[], int]) -> int:
    """Run *main* and translate tool errors into exit codes."""
    try:
        return main()
    except EmptyInputError as exc:
        logger.warning("%s", exc.detail)
        return exc.exit_code
    except ToolError as exc:
        logger.error("%s", exc.detail)
        return exc.exit_code
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    except Exception:
        logger.exception("Unhandled exception")
        return EXIT_FAILURE
