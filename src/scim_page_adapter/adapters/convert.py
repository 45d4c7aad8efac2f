"""
Conversion of raw JSON objects into typed objects described by an entity schema.

Only attributes declared on the :class:`~scim_page_adapter.adapters.base.EntityConfig`
are kept. Attribute names beginning with ``$`` are JSONPath-style lookups
(``$.meta.created``, ``$.emails[0].value``,
``$["urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"].employeeNumber``);
any other name is a top-level key. Child entities are lists of nested objects
converted recursively with their own schema. Missing attributes are omitted,
except those flagged ``unique_id``, whose absence fails the conversion.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .base import AttributeConfig, AttributeType, EntityConfig

PathToken = Union[str, int]

_PATH_TOKEN = re.compile(r"""\.([^.\[\]]+)|\[(\d+)\]|\[["']([^"']+)["']\]""")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_MISSING = object()


class ConversionError(ValueError):
    """Raised when a raw value cannot be coerced into its declared type."""


def parse_attribute_path(name: str) -> List[PathToken]:
    """Split a ``$``-prefixed attribute name into keys and list indexes."""

    if not name.startswith("$"):
        return [name]
    remainder = name[1:]
    tokens: List[PathToken] = []
    position = 0
    while position < len(remainder):
        match = _PATH_TOKEN.match(remainder, position)
        if match is None:
            raise ConversionError(f"Invalid attribute path '{name}'.")
        key, index, quoted = match.groups()
        tokens.append(int(index) if index is not None else (key if key is not None else quoted))
        position = match.end()
    if not tokens:
        raise ConversionError(f"Invalid attribute path '{name}'.")
    return tokens


def _lookup(payload: Mapping[str, Any], tokens: Sequence[PathToken]) -> Any:
    current: Any = payload
    for token in tokens:
        if isinstance(token, int):
            if not isinstance(current, list) or token >= len(current):
                return _MISSING
            current = current[token]
        else:
            if not isinstance(current, Mapping) or token not in current:
                return _MISSING
            current = current[token]
    return current


def parse_datetime(value: str, local_offset: timezone) -> datetime:
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ConversionError(f"'{value}' is not a valid date-time.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_offset)
    return parsed.astimezone(timezone.utc)


def parse_duration(value: Any) -> timedelta:
    """Parse seconds (number) or a duration string such as ``1h30m`` or ``250ms``."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return timedelta(seconds=value)
    if not isinstance(value, str) or not value:
        raise ConversionError(f"{value!r} is not a valid duration.")
    text = value.strip()
    sign = -1 if text.startswith("-") else 1
    text = text.lstrip("+-")
    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    if position != len(text) or not text:
        raise ConversionError(f"'{value}' is not a valid duration.")
    return timedelta(seconds=sign * total)


def _coerce(value: Any, attribute_type: AttributeType, local_offset: timezone) -> Any:
    if attribute_type is AttributeType.STRING:
        if isinstance(value, str):
            return value
    elif attribute_type is AttributeType.BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in {"true", "false"}:
            return value.lower() == "true"
    elif attribute_type is AttributeType.INT64:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
    elif attribute_type is AttributeType.DOUBLE:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif attribute_type is AttributeType.DATETIME:
        if isinstance(value, str):
            return parse_datetime(value, local_offset)
    elif attribute_type is AttributeType.DURATION:
        return parse_duration(value)
    raise ConversionError(f"{value!r} cannot be converted to {attribute_type.value}.")


def _convert_attribute(attribute: AttributeConfig, value: Any, local_offset: timezone) -> Any:
    try:
        if attribute.list:
            items = value if isinstance(value, list) else [value]
            return [_coerce(item, attribute.type, local_offset) for item in items if item is not None]
        if isinstance(value, list):
            raise ConversionError(f"expected a single {attribute.type.value} value, got a list.")
        return _coerce(value, attribute.type, local_offset)
    except ConversionError as exc:
        raise ConversionError(f"attribute '{attribute.external_id}': {exc}") from exc


def convert_json_object(entity: EntityConfig, payload: Mapping[str, Any], local_offset: timezone) -> Dict[str, Any]:
    converted: Dict[str, Any] = {}
    for attribute in entity.attributes:
        value = _lookup(payload, parse_attribute_path(attribute.external_id))
        if value is _MISSING or value is None:
            if attribute.unique_id:
                raise ConversionError(f"object of entity '{entity.external_id}' is missing its unique id attribute '{attribute.external_id}'.")
            continue
        converted[attribute.external_id] = _convert_attribute(attribute, value, local_offset)

    for child in entity.child_entities:
        value = _lookup(payload, parse_attribute_path(child.external_id))
        if value is _MISSING or value is None:
            continue
        if not isinstance(value, list) or not all(isinstance(item, Mapping) for item in value):
            raise ConversionError(f"child entity '{child.external_id}' must be a list of objects.")
        children = [convert_json_object(child, item, local_offset) for item in value]
        if children:
            converted[child.external_id] = children
    return converted


def convert_json_objects(
    entity: EntityConfig,
    objects: Iterable[Mapping[str, Any]],
    *,
    local_time_zone_offset: Optional[int] = 0,
) -> List[Dict[str, Any]]:
    """
    Convert raw datasource objects using ``entity``'s attribute schema.

    Parameters
    ----------
    entity:
        Schema selecting and typing the attributes to keep.
    objects:
        Raw JSON objects as decoded from the datasource.
    local_time_zone_offset:
        Seconds east of UTC assumed for date-times without zone information.
    """

    local_offset = timezone(timedelta(seconds=local_time_zone_offset or 0))
    return [convert_json_object(entity, payload, local_offset) for payload in objects]
