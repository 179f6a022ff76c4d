"""Common utilities shared across all k6 tools."""

from common.errors import (
    ConfigError,
    EmptyInputError,
    ExternalToolError,
    FileAccessError,
    ParseError,
    ToolError,
    run_cli,
)
from common.logging import setup_logging
from common.run_context import get_run_id, set_run_id

__all__ = [
    "ConfigError",
    "EmptyInputError",
    "ExternalToolError",
    "FileAccessError",
    "ParseError",
    "ToolError",
    "get_run_id",
    "run_cli",
    "set_run_id",
    "setup_logging",
]
