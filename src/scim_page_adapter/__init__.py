"""
SCIM 2.0 page adapter.

The :mod:`scim_page_adapter.adapters.scim` package exposes :class:`Adapter`,
which fetches one page of SCIM resources per call and returns converted
objects plus the cursor of the next page. Import ``Adapter`` for the main
host-facing surface and :mod:`scim_page_adapter.services.sync` to walk a
full sync.
"""

from .adapters import (
    AdapterError,
    AttributeConfig,
    AttributeType,
    BasicAuthCredentials,
    DatasourceAuthCredentials,
    EntityConfig,
    ErrorCode,
    Page,
    Request,
    Response,
)
from .adapters.scim import Adapter, Config, Datasource, QueryParams

__version__ = "1.0.0"

__all__ = [
    "Adapter",
    "AdapterError",
    "AttributeConfig",
    "AttributeType",
    "BasicAuthCredentials",
    "Config",
    "Datasource",
    "DatasourceAuthCredentials",
    "EntityConfig",
    "ErrorCode",
    "Page",
    "QueryParams",
    "Request",
    "Response",
    "__version__",
]
