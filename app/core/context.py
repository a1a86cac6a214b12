"""Request id propagation for logs, traces and diagnostics record names."""
from __future__ import annotations

import re
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator
from uuid import uuid4

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)

# Request ids end up in diagnostics file names, so only simple tokens are honoured.
_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def get_request_id() -> str | None:
    return request_id_ctx_var.get()


def new_request_id() -> str:
    return uuid4().hex


def sanitize_request_id(candidate: str | None) -> str:
    """Keep a caller-supplied id when it is a simple token, otherwise mint one."""
    if candidate and _SAFE_REQUEST_ID.match(candidate):
        return candidate
    return new_request_id()


@contextmanager
def request_scope(request_id: str | None = None) -> Iterator[str]:
    """
    Bind a request id for the duration of the block.

    An already-bound id is reused when none is given, so generation started
    inside an HTTP request keeps the id the middleware assigned.
    """
    bound = request_id or get_request_id() or new_request_id()
    token = request_id_ctx_var.set(bound)
    try:
        yield bound
    finally:
        request_id_ctx_var.reset(token)
