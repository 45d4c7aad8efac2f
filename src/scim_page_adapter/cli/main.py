"""
Typer application for exercising the SCIM page adapter by hand.

Commands:

- ``url``: print the list endpoint URL for a page without calling it.
- ``fetch-page``: fetch and print a single page, exactly as the host would.
- ``sync``: walk every page of an entity, backing off on rejected requests.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml

from ..adapters.base import (
    AdapterError,
    AttributeConfig,
    AttributeType,
    BasicAuthCredentials,
    DatasourceAuthCredentials,
    EntityConfig,
    Request,
)
from ..adapters.scim import Adapter, Config, build_datasource, generate_url, load_config, normalize_address
from ..adapters.scim.config import QueryParams
from ..config import CommonConfig, ConfigError, load_secrets
from ..core.logging import configure_logging, get_logger
from ..services.sync import SyncError, SyncWalker

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Fetch pages of SCIM 2.0 resources through the page adapter.",
)

_DEFAULT_ATTRIBUTES = ("id",)
_TYPE_SUFFIX = re.compile(r"[a-z0-9]+(\[\])?")


@dataclass(slots=True)
class _Settings:
    log_level: Optional[str] = None
    user_agent: Optional[str] = None


def _parse_attribute(spec: str) -> AttributeConfig:
    """Parse ``name``, ``name:type`` or ``name:type[]`` into an attribute schema."""

    name, type_spec = spec, ""
    head, separator, tail = spec.rpartition(":")
    if separator and head and _TYPE_SUFFIX.fullmatch(tail):
        name, type_spec = head, tail
    is_list = type_spec.endswith("[]")
    type_name = type_spec[:-2] if is_list else type_spec
    try:
        attribute_type = AttributeType(type_name or AttributeType.STRING.value)
    except ValueError as exc:
        choices = ", ".join(item.value for item in AttributeType)
        raise typer.BadParameter(f"Unknown attribute type '{type_name}' in '{spec}'. Choose from: {choices}.") from exc
    return AttributeConfig(external_id=name, type=attribute_type, list=is_list)


def _load_entity(entity: str, attributes: Optional[List[str]], schema: Optional[Path]) -> EntityConfig:
    if schema is not None:
        try:
            payload = yaml.safe_load(schema.read_text(encoding="utf-8"))
            return EntityConfig.from_mapping(payload)
        except (OSError, yaml.YAMLError, ValueError) as exc:
            raise typer.BadParameter(f"Failed to load entity schema '{schema}': {exc}") from exc
    specs = attributes or list(_DEFAULT_ATTRIBUTES)
    return EntityConfig(external_id=entity, attributes=tuple(_parse_attribute(item) for item in specs))


def _load_adapter_config(config_file: Optional[Path], timeout: Optional[int]) -> Config:
    try:
        config = load_config(config_file) if config_file else Config()
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if timeout is None:
        return config
    common = config.common or CommonConfig()
    return Config(
        common=CommonConfig(request_timeout_seconds=timeout, local_time_zone_offset=common.local_time_zone_offset),
        query_params=config.query_params,
    )


def _resolve_auth(username: Optional[str], password: Optional[str], authorization: Optional[str]) -> Optional[DatasourceAuthCredentials]:
    secrets = load_secrets(strict=False).scim
    username = username or secrets.username
    password = password or secrets.password
    authorization = authorization or secrets.authorization
    basic = BasicAuthCredentials(username=username or "", password=password or "") if (username or password) else None
    if basic is None and not authorization:
        return None
    return DatasourceAuthCredentials(basic=basic, http_authorization=authorization or "")


def _resolve_address(address: Optional[str]) -> str:
    resolved = address or load_secrets(strict=False).scim.address
    if not resolved:
        raise typer.BadParameter("Provide --address or set [scim].address in the secrets file.")
    return resolved


def _render(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2, default=str)


def _echo_error(error: AdapterError) -> None:
    typer.echo(f"Error [{error.code.value}]: {error.message}", err=True)
    if error.retry_after:
        typer.echo(f"Retry-After: {error.retry_after}", err=True)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (defaults to SCIM_ADAPTER_LOG_LEVEL or INFO)."),
    user_agent: Optional[str] = typer.Option(None, "--user-agent", help="User-Agent header sent to the datasource."),
) -> None:
    configure_logging(log_level, force=log_level is not None)
    ctx.obj = _Settings(log_level=log_level, user_agent=user_agent)


def _settings(ctx: typer.Context) -> _Settings:
    return ctx.obj if isinstance(ctx.obj, _Settings) else _Settings()


@app.command("url")
def url_command(
    entity: str = typer.Option("Users", "--entity", "-e", help="SCIM resource name."),
    address: Optional[str] = typer.Option(None, "--address", help="Datasource address."),
    page_size: int = typer.Option(100, "--page-size", "-n", min=1, help="Resources per page."),
    cursor: str = typer.Option("", "--cursor", "-c", help="Start index of the page."),
    filter_expr: Optional[str] = typer.Option(None, "--filter", help="SCIM filter expression."),
    sort_by: Optional[str] = typer.Option(None, "--sort-by", help="Attribute to sort by."),
    ascending: Optional[bool] = typer.Option(None, "--ascending/--descending", help="Sort order."),
) -> None:
    """Print the URL a page request would call."""

    params = QueryParams(filter=filter_expr, sort_by=sort_by, ascending=ascending)
    typer.echo(generate_url(normalize_address(_resolve_address(address)), entity, page_size, cursor, params))


@app.command("fetch-page")
def fetch_page(
    ctx: typer.Context,
    entity: str = typer.Option("Users", "--entity", "-e", help="SCIM resource name."),
    address: Optional[str] = typer.Option(None, "--address", help="Datasource address."),
    page_size: int = typer.Option(100, "--page-size", "-n", help="Resources per page."),
    cursor: str = typer.Option("", "--cursor", "-c", help="Cursor returned by the previous page."),
    attribute: Optional[List[str]] = typer.Option(None, "--attribute", "-a", help="Attribute as name[:type][[]]; repeatable."),
    schema: Optional[Path] = typer.Option(None, "--schema", help="YAML/JSON entity schema file."),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Adapter configuration (JSON or YAML)."),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Request timeout in seconds."),
    username: Optional[str] = typer.Option(None, "--username", help="Basic auth username."),
    password: Optional[str] = typer.Option(None, "--password", help="Basic auth password."),
    authorization: Optional[str] = typer.Option(None, "--authorization", help="Raw Authorization header value."),
) -> None:
    """Fetch a single page and print it as JSON."""

    adapter, request = _prepare(ctx, entity, address, page_size, cursor, attribute, schema, config_file, timeout, username, password, authorization)
    response = adapter.get_page(request)
    if response.error is not None or response.page is None:
        _echo_error(response.error or AdapterError("Adapter returned neither a page nor an error."))
        raise typer.Exit(code=1)
    typer.echo(_render({"objects": response.page.objects, "nextCursor": response.page.next_cursor}))


@app.command("sync")
def sync_command(
    ctx: typer.Context,
    entity: str = typer.Option("Users", "--entity", "-e", help="SCIM resource name."),
    address: Optional[str] = typer.Option(None, "--address", help="Datasource address."),
    page_size: int = typer.Option(100, "--page-size", "-n", help="Resources per page."),
    attribute: Optional[List[str]] = typer.Option(None, "--attribute", "-a", help="Attribute as name[:type][[]]; repeatable."),
    schema: Optional[Path] = typer.Option(None, "--schema", help="YAML/JSON entity schema file."),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Adapter configuration (JSON or YAML)."),
    timeout: Optional[int] = typer.Option(None, "--timeout", help="Request timeout in seconds."),
    username: Optional[str] = typer.Option(None, "--username", help="Basic auth username."),
    password: Optional[str] = typer.Option(None, "--password", help="Basic auth password."),
    authorization: Optional[str] = typer.Option(None, "--authorization", help="Raw Authorization header value."),
    max_attempts: int = typer.Option(3, "--max-attempts", min=1, help="Attempts per page when the datasource asks to retry later."),
    json_lines: bool = typer.Option(False, "--jsonl", help="Print one JSON object per line instead of page summaries."),
) -> None:
    """Walk every page of an entity from the first cursor."""

    adapter, request = _prepare(ctx, entity, address, page_size, "", attribute, schema, config_file, timeout, username, password, authorization)
    logger = get_logger(__name__, extra={"entity": request.entity.external_id})
    walker = SyncWalker(adapter, max_attempts=max_attempts)
    pages = 0
    objects = 0
    try:
        for page in walker.iter_pages(request):
            pages += 1
            objects += len(page.objects)
            if json_lines:
                for item in page.objects:
                    typer.echo(json.dumps(item, ensure_ascii=False, default=str))
            else:
                typer.echo(f"page {pages}: {len(page.objects)} objects, next cursor: {page.next_cursor or '-'}")
    except SyncError as exc:
        logger.error("Sync aborted", extra={"cursor": exc.cursor or None, "error_code": exc.error.code.value if exc.error else None})
        typer.echo(f"Sync failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Synced {objects} objects in {pages} pages.", err=json_lines)


def _prepare(
    ctx: typer.Context,
    entity: str,
    address: Optional[str],
    page_size: int,
    cursor: str,
    attributes: Optional[List[str]],
    schema: Optional[Path],
    config_file: Optional[Path],
    timeout: Optional[int],
    username: Optional[str],
    password: Optional[str],
    authorization: Optional[str],
) -> tuple[Adapter, Request[Config]]:
    settings = _settings(ctx)
    config = _load_adapter_config(config_file, timeout)
    entity_config = _load_entity(entity, attributes, schema)
    request: Request[Config] = Request(
        address=_resolve_address(address),
        entity=entity_config,
        page_size=page_size,
        auth=_resolve_auth(username, password, authorization),
        cursor=cursor,
        config=config,
    )
    client_timeout = float((config.common.request_timeout_seconds if config.common else None) or 30)
    datasource = build_datasource(timeout=client_timeout, user_agent=settings.user_agent)
    ctx.call_on_close(datasource.close)
    return Adapter(client=datasource), request


if __name__ == "__main__":  # pragma: no cover
    app()
