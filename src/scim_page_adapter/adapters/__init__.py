"""
Page adapters and the types they share with the ingestion host.

Concrete adapters live in subpackages keyed by protocol. Each adapter exposes a
single deterministic ``get_page`` operation; walking a full sync and backing
off on rejected requests is left to callers such as
:mod:`scim_page_adapter.services.sync`.
"""

from .base import (
    AdapterError,
    AttributeConfig,
    AttributeType,
    BasicAuthCredentials,
    DatasourceAuthCredentials,
    EntityConfig,
    ErrorCode,
    Page,
    PageAdapter,
    Request,
    Response,
)
from .convert import ConversionError, convert_json_objects
from .errors import update_error, with_request_timeout_message

__all__ = [
    "AdapterError",
    "AttributeConfig",
    "AttributeType",
    "BasicAuthCredentials",
    "ConversionError",
    "DatasourceAuthCredentials",
    "EntityConfig",
    "ErrorCode",
    "Page",
    "PageAdapter",
    "Request",
    "Response",
    "convert_json_objects",
    "update_error",
    "with_request_timeout_message",
]
