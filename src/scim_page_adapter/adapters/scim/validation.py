"""Pre-flight checks run before any datasource request is made."""

from __future__ import annotations

from ...config import ConfigError
from ..base import AdapterError, ErrorCode, Request
from .config import Config

INSECURE_SCHEME = "http://"


def validate_get_page_request(request: Request[Config]) -> None:
    """
    Raise :class:`AdapterError` when ``request`` cannot be served.

    The check performs no I/O. SCIM servers may use either Basic or an opaque
    ``Authorization`` value, so either is accepted.
    """

    if request.address.lower().startswith(INSECURE_SCHEME):
        raise _invalid("The provided HTTP protocol is not supported.")

    auth = request.auth
    if auth is None or (not auth.http_authorization and auth.basic is None):
        raise _invalid("SCIM auth is missing required credentials.")

    if auth.basic is not None and (not auth.basic.username or not auth.basic.password):
        raise _invalid("One of username or password required for basic auth is empty.")

    if request.page_size <= 0:
        raise _invalid(f"Page size must be greater than 0, got {request.page_size}.")

    if request.config is not None and request.config.common is not None:
        try:
            request.config.common.validate()
        except ConfigError as exc:
            raise _invalid(str(exc)) from exc


def _invalid(message: str) -> AdapterError:
    return AdapterError(message, code=ErrorCode.INVALID_DATASOURCE_CONFIG)
