"""
Registry of page adapters keyed by adapter type.

The ingestion host addresses adapters by a versioned type name such as
``SCIM2.0-1.0.0``. The registry owns that mapping and dispatches page
requests, answering unknown types with an ``INVALID_DATASOURCE_CONFIG``
error instead of raising.
"""

from __future__ import annotations

from typing import Any, Iterator, List, MutableMapping, Optional

from ..adapters.base import AdapterError, ErrorCode, PageAdapter, Request, Response


class AdapterRegistry:
    """In-memory mapping of adapter type names to adapters."""

    def __init__(self) -> None:
        self._entries: MutableMapping[str, PageAdapter[Any]] = {}

    def register(self, adapter_type: str, adapter: PageAdapter[Any]) -> None:
        """Register ``adapter`` under ``adapter_type``. Duplicate names are rejected."""

        if not adapter_type:
            raise ValueError("Adapter type must be a non-empty string.")
        if adapter_type in self._entries:
            raise ValueError(f"Adapter type '{adapter_type}' is already registered.")
        self._entries[adapter_type] = adapter

    def get(self, adapter_type: str) -> Optional[PageAdapter[Any]]:
        return self._entries.get(adapter_type)

    def types(self) -> List[str]:
        return sorted(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.types())

    def __len__(self) -> int:
        return len(self._entries)

    def get_page(self, adapter_type: str, request: Request[Any]) -> Response:
        """Dispatch ``request`` to the adapter registered as ``adapter_type``."""

        adapter = self.get(adapter_type)
        if adapter is None:
            return Response.from_error(
                AdapterError(f"Adapter type '{adapter_type}' is not supported.", code=ErrorCode.INVALID_DATASOURCE_CONFIG),
            )
        return adapter.get_page(request)


def build_default_registry(*, timeout: float, user_agent: Optional[str] = None) -> AdapterRegistry:
    """Return a registry with the SCIM adapter registered under its type name."""

    from ..adapters.scim import ADAPTER_TYPE, Adapter, build_datasource

    registry = AdapterRegistry()
    registry.register(ADAPTER_TYPE, Adapter(client=build_datasource(timeout=timeout, user_agent=user_agent)))
    return registry


__all__ = ["AdapterRegistry", "build_default_registry"]
