"""
Logging helpers for the page adapters.

Modules obtain loggers through :func:`get_logger`, which returns a
:class:`logging.LoggerAdapter` carrying structured context (entity, cursor,
tags). :class:`StructuredLogFormatter` renders that context as ``key=value``
pairs after the message so a single page fetch can be followed across
components. Credentials must never be passed as extras.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from copy import copy
from logging import Logger, LoggerAdapter
from typing import Any, Iterable, Mapping, MutableMapping, Optional, Sequence

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_LEVEL = "INFO"
_ENV_LEVEL = "SCIM_ADAPTER_LOG_LEVEL"
_ENV_COLOR = "SCIM_ADAPTER_LOG_COLOR"

# Extras printed first, in this order; everything else follows alphabetically.
_EXTRA_FOCUS_ORDER: Sequence[str] = (
    "adapter",
    "entity",
    "cursor",
    "page_size",
    "method",
    "url",
    "status_code",
    "retry_after",
    "object_count",
    "next_cursor",
    "error_code",
    "attempt",
    "tags",
)

_LEVEL_STYLES = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[95m",
}
_RESET = "\033[0m"

_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

_configured = False


def _resolve_level(level: Optional[int | str]) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv(_ENV_LEVEL) or DEFAULT_LEVEL).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _supports_color(stream: Any) -> bool:
    preference = (os.getenv(_ENV_COLOR) or "auto").strip().lower()
    if preference in {"1", "true", "yes", "on"}:
        return True
    if preference in {"0", "false", "no", "off"}:
        return False
    return hasattr(stream, "isatty") and bool(stream.isatty())


def _iter_extras(record: logging.LogRecord) -> Iterable[tuple[str, Any]]:
    payload = {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS and not key.startswith("_") and value is not None}
    for key in _EXTRA_FOCUS_ORDER:
        if key in payload:
            yield key, payload.pop(key)
    for key in sorted(payload):
        yield key, payload[key]


def _format_extra_value(value: Any) -> str:
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + ", ".join(_format_extra_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, float):
        return f"{value:.4g}"
    if isinstance(value, str) and (not value or " " in value):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class StructuredLogFormatter(logging.Formatter):
    """Formatter appending structured extras, optionally colourising the level."""

    def __init__(self, *, use_color: bool = False) -> None:
        super().__init__(DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        working = copy(record)
        if self.use_color:
            style = _LEVEL_STYLES.get(working.levelname.upper())
            if style:
                working.levelname = f"{style}{working.levelname}{_RESET}"
        base = super().format(working)
        extras = " ".join(f"{key}={_format_extra_value(value)}" for key, value in _iter_extras(record))
        return f"{base} | {extras}" if extras else base


def configure_logging(level: Optional[int | str] = None, *, force: bool = False) -> None:
    """
    Install a stderr handler with :class:`StructuredLogFormatter` on the root logger.

    Only the first call has an effect unless ``force`` is set. The level falls
    back to ``SCIM_ADAPTER_LOG_LEVEL`` and then ``INFO``.
    """

    global _configured
    if _configured and not force:
        return
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(_resolve_level(level))
    handler.setFormatter(StructuredLogFormatter(use_color=_supports_color(handler.stream)))
    logging.basicConfig(level=_resolve_level(level), handlers=[handler], force=force)
    _configured = True


def get_logger(
    name: str,
    *,
    tags: Optional[Sequence[str]] = None,
    extra: Optional[Mapping[str, object]] = None,
) -> LoggerAdapter:
    """
    Return a :class:`logging.LoggerAdapter` for ``name`` bound to ``extra``.

    Parameters
    ----------
    name:
        Logger namespace, typically ``__name__``.
    tags:
        Optional observability tags recorded with every entry.
    extra:
        Structured context recorded with every entry. ``None`` values are dropped.
    """

    bound: MutableMapping[str, object] = {}
    if tags:
        bound["tags"] = tuple(tags)
    if extra:
        bound.update({key: value for key, value in extra.items() if value is not None})
    return _ContextAdapter(logging.getLogger(name), bound)


class _ContextAdapter(LoggerAdapter):
    """Adapter merging bound context with per-call ``extra`` instead of replacing it."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        merged = dict(self.extra or {})
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = merged
        return msg, kwargs


def bind(logger: LoggerAdapter, **context: object) -> LoggerAdapter:
    """Return a child adapter with ``context`` added; ``logger`` itself is left untouched."""

    merged = dict(logger.extra or {})
    merged.update({key: value for key, value in context.items() if value is not None})
    return _ContextAdapter(logger.logger, merged)


def log_progress(
    logger: LoggerAdapter | Logger,
    message: str,
    *,
    status: Optional[str] = None,
    level: int = logging.INFO,
    extra: Optional[Mapping[str, object]] = None,
) -> None:
    """Emit ``message`` with a ``status`` marker and optional structured extras."""

    payload: MutableMapping[str, object] = dict(extra or {})
    if status:
        payload["status"] = status
    logger.log(level, message, extra=payload or None)
