"""
Host-facing types shared by page adapters.

An adapter receives a :class:`Request` describing the datasource address,
credentials, entity schema, and paging position, and always answers with a
:class:`Response` that carries either a :class:`Page` or an
:class:`AdapterError`. Adapters never let exceptions escape to the host; the
error taxonomy in :class:`ErrorCode` is the only failure channel.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, List, Mapping, Optional, Protocol, Sequence, TypeVar

ConfigT = TypeVar("ConfigT")


class ErrorCode(str, Enum):
    """Stable failure categories reported to the ingestion host."""

    INVALID_DATASOURCE_CONFIG = "invalid_datasource_config"
    DATASOURCE_AUTHENTICATION_FAILED = "datasource_authentication_failed"
    INTERNAL = "internal"
    DATASOURCE_FAILED = "datasource_failed"


class AdapterError(RuntimeError):
    """
    Structured failure raised inside an adapter and returned to the host.

    Parameters
    ----------
    message:
        Human-readable description. Status codes and offending values are
        embedded verbatim so operators can diagnose failures from logs alone.
    code:
        Failure category.
    retry_after:
        Raw ``Retry-After`` header value when the datasource supplied one.
    """

    def __init__(self, message: str, *, code: ErrorCode = ErrorCode.INTERNAL, retry_after: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.retry_after = retry_after

    def with_message(self, message: str) -> "AdapterError":
        """Return a copy carrying ``message`` while keeping code and hints."""

        clone = type(self)(message, code=self.code, retry_after=self.retry_after)
        clone.__cause__ = self.__cause__
        return clone

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AdapterError):
            return NotImplemented
        return (self.code, self.message, self.retry_after) == (other.code, other.message, other.retry_after)

    def __hash__(self) -> int:
        return hash((self.code, self.message, self.retry_after))

    def __repr__(self) -> str:
        return f"AdapterError(code={self.code.value!r}, message={self.message!r})"


class AttributeType(str, Enum):
    """Value types an entity attribute can be coerced into."""

    STRING = "string"
    BOOL = "bool"
    INT64 = "int64"
    DOUBLE = "double"
    DATETIME = "datetime"
    DURATION = "duration"


@dataclass(frozen=True, slots=True)
class AttributeConfig:
    """Schema entry for a single attribute of an entity."""

    external_id: str
    type: AttributeType = AttributeType.STRING
    list: bool = False
    unique_id: bool = False


@dataclass(frozen=True, slots=True)
class EntityConfig:
    """
    Schema of the entity being ingested.

    ``external_id`` doubles as the resource name on the datasource (``Users``,
    ``Groups``). Child entities describe lists of nested objects such as a
    user's ``emails`` or ``groups``.
    """

    external_id: str
    attributes: Sequence[AttributeConfig] = field(default_factory=tuple)
    child_entities: Sequence["EntityConfig"] = field(default_factory=tuple)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "EntityConfig":
        """
        Build a schema from ``{"externalId", "attributes", "childEntities"}``.

        Attributes are mappings with ``externalId``, ``type``, ``list`` and
        ``uniqueId`` keys; child entities nest the same structure.
        """

        if not isinstance(payload, Mapping) or not payload.get("externalId"):
            raise ValueError("Entity schema must be a mapping with an externalId.")
        attributes = []
        for raw in payload.get("attributes") or ():
            if not isinstance(raw, Mapping) or not raw.get("externalId"):
                raise ValueError(f"Invalid attribute in entity '{payload['externalId']}': {raw!r}")
            attributes.append(
                AttributeConfig(
                    external_id=str(raw["externalId"]),
                    type=AttributeType(str(raw.get("type", AttributeType.STRING.value))),
                    list=bool(raw.get("list", False)),
                    unique_id=bool(raw.get("uniqueId", False)),
                )
            )
        children = tuple(cls.from_mapping(child) for child in payload.get("childEntities") or ())
        return cls(external_id=str(payload["externalId"]), attributes=tuple(attributes), child_entities=children)


@dataclass(frozen=True, slots=True)
class BasicAuthCredentials:
    username: str
    password: str


@dataclass(frozen=True, slots=True)
class DatasourceAuthCredentials:
    """Already-resolved credentials. Either member may be absent."""

    basic: Optional[BasicAuthCredentials] = None
    http_authorization: str = ""


@dataclass(frozen=True, slots=True)
class Request(Generic[ConfigT]):
    """
    A single page fetch issued by the host.

    Attributes
    ----------
    address:
        Datasource address, with or without an ``https://`` prefix.
    auth:
        Credentials for the datasource, if any.
    entity:
        Entity schema; its ``external_id`` selects the remote resource.
    page_size:
        Maximum number of objects to return.
    cursor:
        Continuation token from the previous page. Empty for the first page.
    config:
        Adapter-specific configuration.
    """

    address: str
    entity: EntityConfig
    page_size: int
    auth: Optional[DatasourceAuthCredentials] = None
    cursor: str = ""
    config: Optional[ConfigT] = None


@dataclass(frozen=True, slots=True)
class Page:
    """Converted objects and the cursor of the following page (``""`` when done)."""

    objects: List[Mapping[str, Any]] = field(default_factory=list)
    next_cursor: str = ""


@dataclass(frozen=True, slots=True)
class Response:
    """Exactly one of ``page`` or ``error`` is set."""

    page: Optional[Page] = None
    error: Optional[AdapterError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @classmethod
    def from_page(cls, page: Page) -> "Response":
        return cls(page=page)

    @classmethod
    def from_error(cls, error: AdapterError) -> "Response":
        return cls(error=error)


class PageAdapter(Protocol[ConfigT]):
    """Protocol implemented by every page adapter the host can register."""

    def get_page(self, request: Request[ConfigT]) -> Response:
        """Fetch one page of objects for ``request``."""
