"""
Configuration shared by every adapter plus local secret loading.

:class:`CommonConfig` holds the settings the host may pass on each page
request. Missing values are filled from module constants at call time via
:func:`set_missing_common_config_defaults`; nothing here is mutated globally.

Secrets for local runs (the CLI) are loaded from TOML. The lookup order is:

1. Explicit ``SCIM_ADAPTER_SECRETS_PATH`` environment variable.
2. ``.secrets/secret.toml`` relative to the working directory.
3. ``.secrets/secrets.toml`` relative to the working directory.

A ``[scim]`` table may provide ``address``, ``username``, ``password`` and
``authorization``.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

DEFAULT_REQUEST_TIMEOUT = 10
MIN_REQUEST_TIMEOUT = 1
MAX_REQUEST_TIMEOUT = 600
MIN_LOCAL_TIME_ZONE_OFFSET = -12 * 3600
MAX_LOCAL_TIME_ZONE_OFFSET = 14 * 3600

_ENV_SECRETS_PATH = "SCIM_ADAPTER_SECRETS_PATH"


class ConfigError(ValueError):
    """Raised when adapter configuration is malformed or out of range."""


@dataclass(frozen=True, slots=True)
class CommonConfig:
    """
    Configuration common to all adapters.

    Attributes
    ----------
    request_timeout_seconds:
        Deadline for each datasource request. ``None`` means "use the default".
    local_time_zone_offset:
        Seconds east of UTC applied to date-time values that carry no zone.
    """

    request_timeout_seconds: Optional[int] = None
    local_time_zone_offset: int = 0

    def validate(self) -> None:
        timeout = self.request_timeout_seconds
        if timeout is not None and not MIN_REQUEST_TIMEOUT <= timeout <= MAX_REQUEST_TIMEOUT:
            raise ConfigError(f"requestTimeoutSeconds must be between {MIN_REQUEST_TIMEOUT} and {MAX_REQUEST_TIMEOUT}, got {timeout}.")
        offset = self.local_time_zone_offset
        if not MIN_LOCAL_TIME_ZONE_OFFSET <= offset <= MAX_LOCAL_TIME_ZONE_OFFSET:
            raise ConfigError(f"localTimeZoneOffset must be between {MIN_LOCAL_TIME_ZONE_OFFSET} and {MAX_LOCAL_TIME_ZONE_OFFSET}, got {offset}.")

    @classmethod
    def from_mapping(cls, payload: Optional[Mapping[str, Any]]) -> "CommonConfig":
        """Build from a camelCase mapping (``requestTimeoutSeconds``, ``localTimeZoneOffset``)."""

        if not payload:
            return cls()
        timeout = payload.get("requestTimeoutSeconds", payload.get("request_timeout_seconds"))
        offset = payload.get("localTimeZoneOffset", payload.get("local_time_zone_offset", 0))
        return cls(
            request_timeout_seconds=_optional_int(timeout, "requestTimeoutSeconds"),
            local_time_zone_offset=_optional_int(offset, "localTimeZoneOffset") or 0,
        )


def set_missing_common_config_defaults(config: Optional[CommonConfig]) -> CommonConfig:
    """Return ``config`` with defaults filled in. ``None`` yields a default config."""

    if config is None:
        config = CommonConfig()
    if config.request_timeout_seconds is None:
        config = replace(config, request_timeout_seconds=DEFAULT_REQUEST_TIMEOUT)
    return config


def _optional_int(value: Any, key: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ConfigError(f"{key} must be an integer, got {value!r}.")
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}.") from exc


@dataclass(frozen=True, slots=True)
class SCIMSecrets:
    """Datasource address and credentials read from the secrets file."""

    address: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    authorization: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SecretsBundle:
    source_path: Optional[Path]
    data: Dict[str, Any]
    scim: SCIMSecrets


def _candidate_paths() -> Iterable[Path]:
    env_override = os.getenv(_ENV_SECRETS_PATH)
    if env_override:
        yield Path(env_override).expanduser()
    secrets_dir = Path.cwd() / ".secrets"
    for filename in ("secret.toml", "secrets.toml"):
        yield secrets_dir / filename


def _extract_scim_secrets(raw: Mapping[str, Any]) -> SCIMSecrets:
    section = raw.get("scim", {})
    if not isinstance(section, Mapping):
        section = {}

    def _extract(key: str) -> Optional[str]:
        value = section.get(key)
        return value if isinstance(value, str) and value else None

    return SCIMSecrets(
        address=_extract("address"),
        username=_extract("username"),
        password=_extract("password"),
        authorization=_extract("authorization"),
    )


def load_secrets(strict: bool = False) -> SecretsBundle:
    """
    Load secrets from the first existing candidate path.

    Parameters
    ----------
    strict:
        When ``True`` raise ``FileNotFoundError`` if no secrets file exists.
    """

    for path in _candidate_paths():
        if path.is_file():
            with path.open("rb") as handle:
                data = tomllib.load(handle)
            return SecretsBundle(source_path=path, data=data, scim=_extract_scim_secrets(data))

    if strict:
        raise FileNotFoundError(f"No secrets file found. Configure {_ENV_SECRETS_PATH} or .secrets/secret.toml.")

    return SecretsBundle(source_path=None, data={}, scim=SCIMSecrets())
