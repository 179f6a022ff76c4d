"""
Run-ID context.

Every tool invocation gets an id (the k6 result timestamp when one exists,
otherwise a short UUID) stored in a context variable so that every log line
of that run can be correlated.
"""

from __future__ import annotations

import contextvars
import uuid

_run_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="")


def get_run_id() -> str:
    return _run_id_ctx.get("")


def set_run_id(value: str | None = None) -> str:
    run_id = value or uuid.uuid4().hex[:12]
    _run_id_ctx.set(run_id)
    return run_id
