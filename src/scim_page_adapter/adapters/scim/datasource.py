"""
HTTPX implementation of :class:`~scim_page_adapter.adapters.scim.client.SCIMClient`.

One page fetch is exactly one ``GET`` bounded by the request's deadline. Any
HTTP status is reported back to the caller; only a 2xx body is read and
decoded into objects plus the next cursor.
"""

from __future__ import annotations

import json
import socket
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import suppress
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from ...core.logging import get_logger
from ..base import AdapterError, ErrorCode
from ..errors import update_error, with_request_timeout_message
from ..http import build_http_client
from .client import DatasourceResponse, Request
from .endpoint import generate_url

SCIM_MEDIA_TYPE = "application/scim+json"
_STREAM_EVENTS = frozenset({"connection.connect_tcp.complete", "connection.start_tls.complete"})


@dataclass(frozen=True, slots=True)
class ListResponse:
    """The SCIM ``ListResponse`` envelope fields used for paging."""

    resources: List[Dict[str, Any]]
    total_results: int
    start_index: int
    items_per_page: int

    @classmethod
    def from_payload(cls, payload: Any) -> "ListResponse":
        if not isinstance(payload, Mapping):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        resources = payload.get("Resources")
        if resources is None:
            resources = []
        if not isinstance(resources, list):
            raise ValueError("field Resources must be a list of objects")
        # null entries carry no attributes; drop them rather than fail the page.
        resources = [item for item in resources if item is not None]
        if not all(isinstance(item, dict) for item in resources):
            raise ValueError("field Resources must be a list of objects")
        return cls(
            resources=resources,
            total_results=_int_field(payload, "totalResults"),
            start_index=_int_field(payload, "startIndex"),
            items_per_page=_int_field(payload, "itemsPerPage"),
        )


def _int_field(payload: Mapping[str, Any], key: str) -> int:
    value = payload.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key} must be an integer, got {value!r}")
    return value


def parse_response(body: bytes | str, page_size: int) -> Tuple[List[Dict[str, Any]], str]:
    """
    Decode a SCIM list response and compute the next cursor.

    The next cursor is ``startIndex + itemsPerPage`` while that index is still
    within ``totalResults``; otherwise it is ``""`` and the sync is complete.
    """

    try:
        envelope = ListResponse.from_payload(json.loads(body))
    except (ValueError, UnicodeDecodeError) as exc:
        raise AdapterError(f"Failed to unmarshal the datasource response: {exc}.", code=ErrorCode.INTERNAL) from exc

    if envelope.items_per_page > page_size:
        raise AdapterError(
            f"SCIM SoR returned more than the requested page size: {envelope.items_per_page}.",
            code=ErrorCode.DATASOURCE_FAILED,
        )

    next_start_index = envelope.start_index + envelope.items_per_page
    next_cursor = str(next_start_index) if next_start_index <= envelope.total_results else ""
    return envelope.resources, next_cursor


def _request_failed(url: str, exc: BaseException, timeout: int) -> AdapterError:
    reason = (str(exc) or type(exc).__name__).rstrip(".")
    error = AdapterError(f'Failed to execute SCIM request: GET "{url}": {reason}.', code=ErrorCode.INTERNAL)
    return update_error(error, with_request_timeout_message(exc, timeout))


def _body_read_failed(exc: BaseException, timeout: int) -> AdapterError:
    error = AdapterError("Failed to read response body.", code=ErrorCode.DATASOURCE_FAILED)
    return update_error(error, with_request_timeout_message(exc, timeout))


def _shutdown(stream: Any) -> None:
    sock = stream.get_extra_info("socket")
    if sock is None:
        return
    # Already closed by the peer or by the worker.
    with suppress(OSError):
        sock.shutdown(socket.SHUT_RDWR)


class _Exchange:
    """
    Network streams of one in-flight exchange.

    Streams are collected from the connection trace (new connections) and from
    the response (pooled connections) so an expired deadline can cut the
    socket under a worker blocked in ``send`` or in the body read.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._streams: List[Any] = []
        self._aborted = False
        self.headers_received = False

    def trace(self, event_name: str, info: Mapping[str, Any]) -> None:
        if event_name in _STREAM_EVENTS:
            self.track(info.get("return_value"))

    def track(self, stream: Any) -> None:
        if stream is None:
            return
        with self._lock:
            self._streams.append(stream)
            aborted = self._aborted
        if aborted:
            _shutdown(stream)

    def abort(self) -> None:
        with self._lock:
            self._aborted = True
            streams = list(self._streams)
        for stream in streams:
            _shutdown(stream)


@dataclass(slots=True)
class Datasource:
    """
    SCIM client backed by a shared :class:`httpx.Client`.

    The HTTP client and the worker pool are the only state and are safe for
    concurrent use, so one instance can serve every page fetch. Each exchange
    runs on a worker so the caller can give up once ``request_timeout_seconds``
    has elapsed, however slowly the server trickles bytes.
    """

    client: httpx.Client = field(default_factory=build_http_client)
    executor: ThreadPoolExecutor = field(default_factory=lambda: ThreadPoolExecutor(thread_name_prefix="scim-datasource"), repr=False)
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def __enter__(self) -> "Datasource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the worker pool and the connection pool."""

        self.executor.shutdown(wait=False, cancel_futures=True)
        self.client.close()

    def get_page(self, request: Request) -> DatasourceResponse:
        url = generate_url(
            request.base_url,
            request.entity_external_id,
            request.page_size,
            request.cursor,
            request.query_params,
        )
        timeout = request.request_timeout_seconds
        context = {"entity": request.entity_external_id, "cursor": request.cursor or None, "method": "GET", "url": url}
        exchange = _Exchange()

        try:
            http_request = self.client.build_request(
                "GET",
                url,
                headers={"Accept": SCIM_MEDIA_TYPE, "Authorization": request.authorization_header},
                timeout=httpx.Timeout(float(timeout)),
                extensions={"trace": exchange.trace},
            )
        except (httpx.InvalidURL, ValueError) as exc:
            raise AdapterError("Failed to create HTTP request to datasource.", code=ErrorCode.INTERNAL) from exc

        self.logger.debug("SCIM request", extra=context)
        future = self.executor.submit(self._exchange, http_request, exchange, request.page_size, url, timeout, context)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            exchange.abort()
            future.cancel()
            self.logger.warning("SCIM request deadline exceeded", extra={**context, "error": "context deadline exceeded"})
            if exchange.headers_received:
                raise _body_read_failed(exc, timeout) from exc
            raise _request_failed(url, TimeoutError("context deadline exceeded"), timeout) from exc

    def _exchange(
        self,
        http_request: httpx.Request,
        exchange: _Exchange,
        page_size: int,
        url: str,
        timeout: int,
        context: Mapping[str, Any],
    ) -> DatasourceResponse:
        try:
            response = self.client.send(http_request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            error = _request_failed(url, exc, timeout)
            self.logger.warning("SCIM request failed", extra={**context, "error": error.message})
            raise error from exc

        try:
            exchange.headers_received = True
            exchange.track(response.extensions.get("network_stream"))
            result = DatasourceResponse(
                status_code=response.status_code,
                retry_after=response.headers.get("Retry-After") or None,
            )
            self.logger.debug(
                "SCIM response",
                extra={**context, "status_code": result.status_code, "retry_after": result.retry_after},
            )
            if not result.ok:
                return result

            try:
                body = response.read()
            except httpx.HTTPError as exc:
                raise _body_read_failed(exc, timeout) from exc
        finally:
            response.close()

        result.objects, result.next_cursor = parse_response(body, page_size)
        return result


def build_datasource(*, timeout: float, user_agent: Optional[str] = None) -> Datasource:
    """Return a :class:`Datasource` with its own HTTP client. Call :meth:`Datasource.close` when done."""

    return Datasource(client=build_http_client(timeout, user_agent))
