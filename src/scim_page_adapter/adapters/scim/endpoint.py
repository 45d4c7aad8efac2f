"""SCIM list endpoint URL construction."""

from __future__ import annotations

from urllib.parse import quote_plus

from .config import QueryParams

FIRST_START_INDEX = "1"


def generate_url(
    base_url: str,
    entity_external_id: str,
    page_size: int,
    start_index: str,
    query_params: QueryParams,
) -> str:
    """
    Return the URL of one page of SCIM resources.

    Parameters are emitted in a fixed order (``startIndex``, ``count``,
    ``filter``, ``sortBy``, ``sortOrder``) so identical inputs always yield the
    same string. An empty ``start_index`` requests the first page.
    """

    parts = [
        f"startIndex={start_index or FIRST_START_INDEX}",
        f"count={page_size}",
    ]
    if query_params.filter:
        parts.append(f"filter={quote_plus(query_params.filter, safe='')}")
    if query_params.sort_by:
        parts.append(f"sortBy={query_params.sort_by}")
    if query_params.ascending is not None:
        parts.append("sortOrder=ascending" if query_params.ascending else "sortOrder=descending")

    return f"{base_url}/{entity_external_id}?{'&'.join(parts)}"
