"""
SCIM 2.0 page adapter.

:meth:`Adapter.get_page` is the single operation exposed to the ingestion
host. It validates the request, resolves address, configuration and
credentials, asks the :class:`~scim_page_adapter.adapters.scim.client.SCIMClient`
for one page, and turns the outcome into a :class:`~scim_page_adapter.adapters.base.Response`.
A response holds either every converted object of the page or an error,
never both.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from logging import LoggerAdapter
from typing import Optional

from ...config import set_missing_common_config_defaults
from ...core.logging import bind, get_logger
from ..auth import resolve_authorization_header
from ..base import AdapterError, ErrorCode, Page, Response
from ..base import Request as PageRequest
from ..convert import ConversionError, convert_json_objects
from .client import Request, SCIMClient
from .config import Config
from .datasource import Datasource
from .validation import validate_get_page_request

SECURE_SCHEME = "https://"
ADAPTER_TYPE = "SCIM2.0-1.0.0"

_SCHEME_PREFIX = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")


def normalize_address(address: str) -> str:
    """Prefix ``https://`` unless ``address`` already names a scheme."""

    if _SCHEME_PREFIX.match(address):
        return address
    return SECURE_SCHEME + address


def http_error(status_code: int, retry_after: Optional[str] = None) -> Optional[AdapterError]:
    """Return the error for a non-2xx status, or ``None`` for success statuses."""

    if 200 <= status_code < 300:
        return None
    return AdapterError(
        f"Datasource rejected request, returned status code: {status_code}.",
        code=ErrorCode.INTERNAL,
        retry_after=retry_after,
    )


@dataclass(slots=True)
class Adapter:
    """Page adapter querying SCIM 2.0 ``/Users``, ``/Groups`` and similar list endpoints."""

    client: SCIMClient = field(default_factory=Datasource)
    logger: LoggerAdapter = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.logger = get_logger(__name__, extra={"adapter": ADAPTER_TYPE})

    def get_page(self, request: PageRequest[Config]) -> Response:
        try:
            validate_get_page_request(request)
        except AdapterError as exc:
            self.logger.warning("Rejected page request", extra={"entity": request.entity.external_id, "error_code": exc.code.value})
            return Response.from_error(exc)
        return self.request_page_from_datasource(request)

    def request_page_from_datasource(self, request: PageRequest[Config]) -> Response:
        """Fetch and convert one page. Assumes ``request`` passed validation."""

        config = request.config or Config()
        common = set_missing_common_config_defaults(config.common)
        entity_id = request.entity.external_id
        logger = bind(self.logger, entity=entity_id, cursor=request.cursor or None, page_size=request.page_size)

        try:
            authorization_header = resolve_authorization_header(request.auth)
        except AdapterError as exc:
            return Response.from_error(exc)

        datasource_request = Request(
            base_url=normalize_address(request.address),
            authorization_header=authorization_header,
            page_size=request.page_size,
            entity_external_id=entity_id,
            cursor=request.cursor,
            query_params=config.query_params_for(entity_id),
            request_timeout_seconds=common.request_timeout_seconds,
        )

        try:
            result = self.client.get_page(datasource_request)
        except AdapterError as exc:
            logger.warning("Page request failed", extra={"error_code": exc.code.value})
            return Response.from_error(exc)
        except Exception as exc:  # pragma: no cover - third-party clients may raise anything
            logger.exception("Unexpected SCIM client failure")
            return Response.from_error(AdapterError(f"Failed to execute SCIM request: {exc}.", code=ErrorCode.INTERNAL))

        status_error = http_error(result.status_code, result.retry_after)
        if status_error is not None:
            logger.warning(
                "Datasource rejected page request",
                extra={"status_code": result.status_code, "retry_after": result.retry_after},
            )
            return Response.from_error(status_error)

        try:
            objects = convert_json_objects(
                request.entity,
                result.objects,
                local_time_zone_offset=common.local_time_zone_offset,
            )
        except ConversionError as exc:
            return Response.from_error(
                AdapterError(f"Failed to convert SCIM response objects to JSON: {str(exc).rstrip('.')}.", code=ErrorCode.INTERNAL),
            )

        logger.debug("Fetched page", extra={"object_count": len(objects), "next_cursor": result.next_cursor or None})
        return Response.from_page(Page(objects=objects, next_cursor=result.next_cursor))
