"""Request-scoped ambient values (demo mode and friends).

Each inbound request runs in its own asyncio task, and every task starts from
a copy of the caller's ``contextvars`` context, so a frame pushed for one
request is never visible to a sibling request.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any


DEMO_MODE_KEY = "demo_mode"

_current_context: ContextVar[dict[str, Any] | None] = ContextVar("homehub_request_context", default=None)


@contextmanager
def request_context(values: Mapping[str, Any] | None = None) -> Iterator[dict[str, Any]]:
    frame = dict(values or {})
    token = _current_context.set(frame)
    try:
        yield frame
    finally:
        _current_context.reset(token)


def run_with_context(values: Mapping[str, Any] | None, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run ``fn`` inside a new frame.

    Coroutine functions get an awaitable back; the frame stays pushed until
    that awaitable finishes.
    """
    if inspect.iscoroutinefunction(fn):

        async def _runner() -> Any:
            with request_context(values):
                return await fn(*args, **kwargs)

        return _runner()

    with request_context(values):
        return fn(*args, **kwargs)


def get_context() -> dict[str, Any] | None:
    return _current_context.get()


def is_demo_mode() -> bool:
    context = _current_context.get()
    if not context:
        return False
    return bool(context.get(DEMO_MODE_KEY, False))


def parse_demo_header(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in {"true", "1"}
