"""
SCIM adapter configuration.

Example payload accepted by :meth:`Config.from_mapping`::

    {
        "requestTimeoutSeconds": 10,
        "localTimeZoneOffset": 43200,
        "queryParams": {
            "Users": {"filter": "userType eq \\"Employee\\"", "sortBy": "userName", "ascending": true},
            "Groups": {"filter": "displayName eq \\"Admins\\""}
        }
    }
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from ...config import CommonConfig, ConfigError


@dataclass(frozen=True, slots=True)
class QueryParams:
    """
    Optional SCIM list query parameters for one entity.

    ``ascending`` is tri-state: ``None`` leaves the sort order to the server.
    """

    filter: Optional[str] = None
    sort_by: Optional[str] = None
    ascending: Optional[bool] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "QueryParams":
        ascending = payload.get("ascending")
        if ascending is not None and not isinstance(ascending, bool):
            raise ConfigError(f"queryParams.ascending must be a boolean, got {ascending!r}.")
        return cls(
            filter=_optional_str(payload.get("filter")),
            sort_by=_optional_str(payload.get("sortBy", payload.get("sort_by"))),
            ascending=ascending,
        )


@dataclass(frozen=True, slots=True)
class Config:
    """Per-request configuration of the SCIM adapter."""

    common: Optional[CommonConfig] = None
    query_params: Mapping[str, QueryParams] = field(default_factory=dict)

    def query_params_for(self, entity_external_id: str) -> QueryParams:
        return self.query_params.get(entity_external_id) or QueryParams()

    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, Any]]) -> "Config":
        if not payload:
            return cls()
        if not isinstance(payload, Mapping):
            raise ConfigError(f"Adapter configuration must be a mapping, got {type(payload).__name__}.")

        raw_params = payload.get("queryParams", payload.get("query_params")) or {}
        if not isinstance(raw_params, Mapping):
            raise ConfigError("queryParams must map entity names to query parameters.")
        query_params = {}
        for entity, params in raw_params.items():
            if not isinstance(params, Mapping):
                raise ConfigError(f"queryParams.{entity} must be a mapping.")
            query_params[str(entity)] = QueryParams.from_mapping(params)

        common = CommonConfig.from_mapping(payload)
        common.validate()
        return cls(common=common, query_params=query_params)


def load_config(path: Path | str) -> Config:
    """Read adapter configuration from a JSON or YAML file."""

    location = Path(path)
    if not location.is_file():
        raise ConfigError(f"Configuration file '{location}' does not exist.")

    text = location.read_text(encoding="utf-8")
    try:
        if location.suffix.lower() == ".json":
            payload = json.loads(text)
        else:
            payload = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse '{location}': {exc}") from exc

    return Config.from_mapping(payload)


def _optional_str(value: object | None) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None
