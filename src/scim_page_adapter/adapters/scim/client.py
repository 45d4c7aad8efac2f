"""Datasource-facing request and response types for SCIM page fetches."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from .config import QueryParams


@dataclass(frozen=True, slots=True)
class Request:
    """
    A request to a SCIM system of record.

    Attributes
    ----------
    base_url:
        Datasource root including scheme, e.g. ``https://scim.example.com/v2``.
    authorization_header:
        Value sent in the ``Authorization`` header.
    page_size:
        Maximum number of resources to return.
    entity_external_id:
        Resource name on the server (``Users``, ``Groups``).
    cursor:
        Start index of the page, as returned for the previous page. Empty for
        the first page.
    query_params:
        Optional filter and sort parameters.
    request_timeout_seconds:
        Deadline for the whole exchange.
    """

    base_url: str
    authorization_header: str
    page_size: int
    entity_external_id: str
    request_timeout_seconds: int
    cursor: str = ""
    query_params: QueryParams = field(default_factory=QueryParams)


@dataclass(slots=True)
class DatasourceResponse:
    """
    Outcome of an exchange that reached the server.

    ``objects`` and ``next_cursor`` are only populated for 2xx statuses.
    """

    status_code: int
    retry_after: Optional[str] = None
    objects: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class SCIMClient(Protocol):
    """Anything able to fetch one page of raw SCIM resources."""

    def get_page(self, request: Request) -> DatasourceResponse:
        """
        Return the server's response for ``request``.

        Non-2xx statuses are returned, not raised. Transport and decoding
        failures raise :class:`~scim_page_adapter.adapters.base.AdapterError`.
        """
