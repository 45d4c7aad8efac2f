from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Optional

import httpx
import pytest
from typer.testing import CliRunner

from scim_page_adapter.adapters.base import (
    AttributeConfig,
    AttributeType,
    BasicAuthCredentials,
    DatasourceAuthCredentials,
    EntityConfig,
)
from scim_page_adapter.adapters.scim import Datasource
from scim_page_adapter.adapters.http import build_http_client

BASE_URL = "https://scim.test"
TEST_USERNAME = "mockuser"
TEST_PASSWORD = "mockpassword"

_USERS: List[Dict[str, object]] = [
    {"id": "2819c223-7f76-453a-919d-413861904646", "userName": "Alex"},
    {"id": "c75ad752-64ae-4823-840d-ffa80929976c", "userName": "Bacong"},
    {"id": "e2be737c-61f5-4abe-8797-1e816b15cec8", "userName": "Carol"},
    {"id": "89fa657e-3ef5-49e3-bb34-b3255e04a8bb", "userName": "David"},
    {
        "schemas": [
            "urn:ietf:params:scim:schemas:core:2.0:User",
            "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User",
        ],
        "id": "2819c223-7f76-453a-919d-413861904000",
        "externalId": "701984",
        "userName": "bjensen@example.com",
        "name": {"familyName": "Jensen", "givenName": "Barbara"},
        "active": True,
        "emails": [
            {"value": "bjensen@example.com", "display": "bjensen@example.com", "type": "work", "primary": True},
            {"value": "babs@jensen.org", "type": "home"},
        ],
        "groups": [
            {"value": "e9e30dba-f08f-4109-8486-d5c6a331660a", "display": "Tour Guides"},
            {"value": "fc348aa8-3835-40eb-a20b-c726e15c55b5", "display": "Employees"},
        ],
        "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User": {"employeeNumber": "701984"},
        "meta": {"resourceType": "User", "created": "2010-01-23T04:56:22Z"},
    },
]

_GROUPS: List[Dict[str, object]] = [
    {"id": "fc348aa8-3835-40eb-a20b-c726e15c55b5", "displayName": "Employees"},
    {"id": "71ddacd2-a8e7-49b8-a5db-ae50d0a5bfd7", "displayName": "US Employees"},
    {"id": "6c5bb468-14b2-4183-baf2-06d523e03bd3", "displayName": "Admins"},
    {"id": "a2d6bd75-1be0-4a3c-a6c7-b5cc1d3e3b29", "displayName": "Contractors"},
    {
        "id": "e9e30dba-f08f-4109-8486-d5c6a331660a",
        "displayName": "Tour Guides",
        "meta": {"resourceType": "Group", "created": "2010-01-23T04:56:22Z"},
        "members": [
            {"value": "2819c223-7f76-453a-919d-413861904646", "type": "User"},
            {"value": "6c5bb468-14b2-4183-baf2-06d523e03bd3", "type": "Group"},
        ],
    },
]

_RESOURCES = {"/Users": _USERS, "/Groups": _GROUPS}


def list_response(resources: List[Dict[str, object]], *, total: int, start: int, items: Optional[int] = None) -> Dict[str, object]:
    return {
        "schemas": ["urn:ietf:params:scim:api:messages:2.0:ListResponse"],
        "totalResults": total,
        "startIndex": start,
        "itemsPerPage": len(resources) if items is None else items,
        "Resources": resources,
    }


def scim_handler(request: httpx.Request) -> httpx.Response:
    """Mock SCIM server. Special start indexes trigger failures."""

    start = int(request.url.params.get("startIndex", "1"))
    count = int(request.url.params.get("count", "100"))
    if start == 400:
        return httpx.Response(400, json={"detail": "bad request"})
    if start == 429:
        return httpx.Response(429, headers={"Retry-After": "7"}, json={"detail": "slow down"})
    if start == 408:
        raise httpx.ReadTimeout("timed out", request=request)
    if start == 500:
        return httpx.Response(200, content=b"{not json")
    if start == 600:
        return httpx.Response(200, json=list_response(_USERS[:3], total=5, start=1, items=count + 1))

    resources = _RESOURCES.get(request.url.path)
    if resources is None:
        return httpx.Response(404, json={"detail": "not found"})
    page = resources[start - 1 : start - 1 + count]
    return httpx.Response(200, json=list_response(page, total=len(resources), start=start))


@pytest.fixture()
def requests_seen() -> List[httpx.Request]:
    return []


@pytest.fixture()
def make_transport(requests_seen) -> Callable[..., httpx.MockTransport]:
    def factory(handler: Callable[[httpx.Request], httpx.Response] = scim_handler) -> httpx.MockTransport:
        def recording(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        return httpx.MockTransport(recording)

    return factory


@pytest.fixture()
def datasource(make_transport) -> Iterator[Datasource]:
    with Datasource(client=build_http_client(transport=make_transport())) as source:
        yield source


@pytest.fixture()
def basic_auth() -> DatasourceAuthCredentials:
    return DatasourceAuthCredentials(basic=BasicAuthCredentials(username=TEST_USERNAME, password=TEST_PASSWORD))


@pytest.fixture()
def user_entity() -> EntityConfig:
    return EntityConfig(
        external_id="Users",
        attributes=(
            AttributeConfig(external_id="id", unique_id=True),
            AttributeConfig(external_id="userName"),
        ),
        child_entities=(
            EntityConfig(
                external_id="emails",
                attributes=(
                    AttributeConfig(external_id="value"),
                    AttributeConfig(external_id="type"),
                    AttributeConfig(external_id="primary", type=AttributeType.BOOL),
                ),
            ),
        ),
    )


@pytest.fixture()
def group_entity() -> EntityConfig:
    return EntityConfig(
        external_id="Groups",
        attributes=(
            AttributeConfig(external_id="id", unique_id=True),
            AttributeConfig(external_id="displayName"),
            AttributeConfig(external_id="$.meta.created", type=AttributeType.DATETIME),
        ),
        child_entities=(
            EntityConfig(
                external_id="members",
                attributes=(
                    AttributeConfig(external_id="value"),
                    AttributeConfig(external_id="type"),
                ),
            ),
        ),
    )


@pytest.fixture()
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def envelope() -> Callable[..., Dict[str, object]]:
    return list_response


@pytest.fixture()
def base_url() -> str:
    return BASE_URL
