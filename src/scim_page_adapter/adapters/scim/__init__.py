"""
SCIM 2.0 page adapter.

SCIM offers no dedicated endpoint for group membership. Groups carry a
``members`` list and users a ``groups`` list, neither of them paginated. Group
member lists grow with the user base while a user's group list stays small,
so membership is ingested from the ``groups`` child entity of ``Users`` and
the ``members`` attribute of ``Groups`` is best left out of the entity schema.
"""

from .adapter import ADAPTER_TYPE, Adapter, http_error, normalize_address
from .client import DatasourceResponse, Request, SCIMClient
from .config import Config, QueryParams, load_config
from .datasource import Datasource, ListResponse, build_datasource, parse_response
from .endpoint import generate_url
from .validation import validate_get_page_request

__all__ = [
    "ADAPTER_TYPE",
    "Adapter",
    "Config",
    "Datasource",
    "DatasourceResponse",
    "ListResponse",
    "QueryParams",
    "Request",
    "SCIMClient",
    "build_datasource",
    "generate_url",
    "http_error",
    "load_config",
    "normalize_address",
    "parse_response",
    "validate_get_page_request",
]
