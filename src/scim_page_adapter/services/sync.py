"""
Full-sync walker built on top of a page adapter.

Adapters never retry. This module is the caller that decides on backoff: it
walks pages from the request's cursor until the adapter reports an empty
``next_cursor``, retrying only rejections that carry a ``Retry-After`` hint.
Tenacity drives the retry loop; the wait honours the hint and falls back to
exponential backoff when the hint cannot be parsed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from logging import LoggerAdapter
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..adapters.base import AdapterError, Page, PageAdapter, Request, Response
from ..core.logging import get_logger, log_progress

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MAX_WAIT = 60.0


class SyncError(RuntimeError):
    """Raised when a full sync cannot continue."""

    def __init__(self, message: str, *, error: Optional[AdapterError] = None, cursor: str = "") -> None:
        super().__init__(message)
        self.error = error
        self.cursor = cursor


class _RetryableRejection(Exception):
    def __init__(self, error: AdapterError) -> None:
        super().__init__(error.message)
        self.error = error


def parse_retry_after(value: Optional[str], *, now: Optional[datetime] = None) -> Optional[float]:
    """Return the delay in seconds encoded by a ``Retry-After`` value, if any."""

    if not value:
        return None
    text = value.strip()
    if text.isdigit():
        return float(text)
    try:
        moment = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    return max(0.0, (moment - current).total_seconds())


def _cursor_value(cursor: str) -> Optional[int]:
    return int(cursor) if cursor.isdigit() else None


@dataclass(slots=True)
class SyncWalker:
    """
    Walk every page of one entity.

    Parameters
    ----------
    adapter:
        Page adapter to query.
    max_attempts:
        Attempts per page for rejections carrying a retry hint.
    max_wait:
        Upper bound in seconds for a single backoff wait.
    sleep:
        Sleep function used between attempts.
    """

    adapter: PageAdapter[Any]
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    max_wait: float = DEFAULT_MAX_WAIT
    sleep: Callable[[float], None] = time.sleep
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1.")
        self.logger = get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def _wait(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        if isinstance(exc, _RetryableRejection):
            hinted = parse_retry_after(exc.error.retry_after)
            if hinted is not None:
                return min(hinted, self.max_wait)
        return wait_exponential(multiplier=1, min=1, max=self.max_wait)(retry_state)

    def _fetch(self, request: Request[Any]) -> Page:
        retrying = Retrying(
            retry=retry_if_exception_type(_RetryableRejection),
            wait=self._wait,
            stop=stop_after_attempt(self.max_attempts),
            sleep=self.sleep,
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    response: Response = self.adapter.get_page(request)
                    if response.error is not None:
                        if response.error.retry_after:
                            log_progress(
                                self.logger,
                                "Page request rejected, backing off",
                                status="retrying",
                                extra={
                                    "entity": request.entity.external_id,
                                    "cursor": request.cursor or None,
                                    "attempt": attempt.retry_state.attempt_number,
                                    "retry_after": response.error.retry_after,
                                },
                            )
                            raise _RetryableRejection(response.error)
                        raise SyncError(response.error.message, error=response.error, cursor=request.cursor)
                    return response.page or Page()
        except _RetryableRejection as exc:
            raise SyncError(
                f"Giving up after {self.max_attempts} attempts: {exc.error.message}",
                error=exc.error,
                cursor=request.cursor,
            ) from exc
        raise SyncError("Page request produced no result.", cursor=request.cursor)  # pragma: no cover

    def iter_pages(self, request: Request[Any]) -> Iterator[Page]:
        """Yield pages until the adapter returns an empty ``next_cursor``."""

        current = request
        while True:
            page = self._fetch(current)
            yield page
            if not page.next_cursor:
                return
            previous = _cursor_value(current.cursor or "1")
            following = _cursor_value(page.next_cursor)
            if page.next_cursor == current.cursor or (previous is not None and following is not None and following <= previous):
                raise SyncError(
                    f"Cursor did not advance: '{current.cursor}' -> '{page.next_cursor}'.",
                    cursor=current.cursor,
                )
            current = replace(current, cursor=page.next_cursor)


@dataclass(slots=True)
class SyncSummary:
    pages: int = 0
    objects: List[Mapping[str, Any]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"pages": self.pages, "object_count": len(self.objects)}


def iter_pages(adapter: PageAdapter[Any], request: Request[Any], **options: Any) -> Iterator[Page]:
    """Shorthand for ``SyncWalker(adapter, **options).iter_pages(request)``."""

    return SyncWalker(adapter, **options).iter_pages(request)


def sync_all(adapter: PageAdapter[Any], request: Request[Any], **options: Any) -> SyncSummary:
    """Walk every page and collect all objects."""

    summary = SyncSummary()
    for page in iter_pages(adapter, request, **options):
        summary.pages += 1
        summary.objects.extend(page.objects)
    return summary
