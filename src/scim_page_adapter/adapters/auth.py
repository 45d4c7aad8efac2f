"""Authorization header helpers."""

from __future__ import annotations

import base64
from typing import Optional

from .base import AdapterError, DatasourceAuthCredentials, ErrorCode


def basic_auth_header(username: str, password: str) -> str:
    """Return an HTTP Basic ``Authorization`` value for the given credential pair."""

    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


def resolve_authorization_header(auth: Optional[DatasourceAuthCredentials]) -> str:
    """
    Pick the ``Authorization`` value sent to the datasource.

    Basic credentials take precedence over an opaque HTTP authorization value.
    """

    if auth is not None and auth.basic is not None:
        return basic_auth_header(auth.basic.username, auth.basic.password)
    if auth is not None and auth.http_authorization:
        return auth.http_authorization
    raise AdapterError("No valid credentials provided.", code=ErrorCode.DATASOURCE_AUTHENTICATION_FAILED)
