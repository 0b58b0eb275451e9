"""Per-request context utilities."""
from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx_var: ContextVar[str | None] = ContextVar("user_id", default=None)


def get_request_id() -> str | None:
    """Return the current request id if available."""
    return request_id_ctx_var.get()


def get_user_id() -> str | None:
    return user_id_ctx_var.get()


@contextmanager
def bound_user(user_id: str) -> Iterator[None]:
    """Attach user_id to log records emitted inside the block."""
    token = user_id_ctx_var.set(user_id)
    try:
        yield
    finally:
        user_id_ctx_var.reset(token)
