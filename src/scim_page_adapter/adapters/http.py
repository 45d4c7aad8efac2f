"""
Shared HTTPX transport for datasource clients.

A single :class:`httpx.Client` is built per process and handed to every
datasource. The client is safe for concurrent use and owns the connection
pool; per-request deadlines are applied by the datasource, not here.
"""

from __future__ import annotations

from typing import Optional

import httpx

DEFAULT_TIMEOUT = 30.0
DEFAULT_USER_AGENT = "scim-page-adapter"


def build_http_client(
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: Optional[str] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    Build the HTTPX client used for datasource requests.

    Parameters
    ----------
    timeout:
        Upper bound in seconds for any request that does not set its own timeout.
    user_agent:
        ``User-Agent`` header applied to every request. Falls back to
        :data:`DEFAULT_USER_AGENT` when empty.
    transport:
        Optional transport override, mainly for tests.
    """

    return httpx.Client(
        timeout=timeout,
        headers={"User-Agent": user_agent or DEFAULT_USER_AGENT},
        transport=transport,
        follow_redirects=False,
    )
