"""
Composable enrichment of :class:`~scim_page_adapter.adapters.base.AdapterError` values.

Each modifier is a plain function taking an error (or ``None``) and returning
the enriched error. Modifiers never mutate their input, and every modifier
passes ``None`` through untouched so they can be chained blindly.
"""

from __future__ import annotations

from functools import reduce
from typing import Callable, Optional

import httpx

from .base import AdapterError

ErrorModifier = Callable[[Optional[AdapterError]], Optional[AdapterError]]

REQUEST_TIMEOUT_MESSAGE = "Request exceeded configured timeout of {timeout} seconds. Please increase the request timeout."


def is_timeout(exc: Optional[BaseException]) -> bool:
    """Return ``True`` when ``exc`` (or anything in its cause chain) is a deadline expiry."""

    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
            return True
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return False


def append_message(error: AdapterError, suffix: str) -> AdapterError:
    if not error.message:
        return error.with_message(suffix)
    return error.with_message(f"{error.message} {suffix}")


def with_request_timeout_message(request_error: Optional[BaseException], timeout: int) -> ErrorModifier:
    """Append the timeout hint when ``request_error`` was caused by the request deadline."""

    def modifier(error: Optional[AdapterError]) -> Optional[AdapterError]:
        if error is None or not is_timeout(request_error):
            return error
        return append_message(error, REQUEST_TIMEOUT_MESSAGE.format(timeout=timeout))

    return modifier


def update_error(error: Optional[AdapterError], *modifiers: ErrorModifier) -> Optional[AdapterError]:
    """Apply ``modifiers`` in order. With no modifiers the error is returned as-is."""

    return reduce(lambda current, modifier: modifier(current), modifiers, error)


__all__ = [
    "ErrorModifier",
    "REQUEST_TIMEOUT_MESSAGE",
    "append_message",
    "is_timeout",
    "update_error",
    "with_request_timeout_message",
]
