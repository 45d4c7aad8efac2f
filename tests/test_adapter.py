from __future__ import annotations

from datetime import datetime, timezone
from typing import List

import pytest

from scim_page_adapter.adapters.base import (
    AdapterError,
    AttributeConfig,
    AttributeType,
    BasicAuthCredentials,
    DatasourceAuthCredentials,
    EntityConfig,
    ErrorCode,
    Page,
    Request,
)
from scim_page_adapter.adapters.scim import Adapter, Config, DatasourceResponse, QueryParams, http_error, normalize_address
from scim_page_adapter.adapters.scim.client import Request as DatasourceRequest
from scim_page_adapter.config import CommonConfig


class StubClient:
    """Records datasource requests and replays a canned response."""

    def __init__(self, response=None, error=None):
        self.response = response or DatasourceResponse(status_code=200)
        self.error = error
        self.requests: List[DatasourceRequest] = []

    def get_page(self, request: DatasourceRequest) -> DatasourceResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


def _page_request(entity, auth, *, address="scim.test", page_size=2, cursor="", config=None) -> Request[Config]:
    return Request(address=address, entity=entity, page_size=page_size, auth=auth, cursor=cursor, config=config)


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("example.com", "https://example.com"),
        ("https://example.com", "https://example.com"),
        ("HTTPS://example.com/v2", "HTTPS://example.com/v2"),
        ("http://example.com", "http://example.com"),
    ],
)
def test_normalize_address(address, expected):
    assert normalize_address(address) == expected
    assert normalize_address(normalize_address(address)) == expected


def test_http_error_maps_only_non_success_statuses():
    assert http_error(200) is None
    assert http_error(204) is None

    error = http_error(503, "120")
    assert error.code is ErrorCode.INTERNAL
    assert error.message == "Datasource rejected request, returned status code: 503."
    assert error.retry_after == "120"


def test_get_page_first_page_of_users(datasource, basic_auth, user_entity):
    response = Adapter(client=datasource).get_page(_page_request(user_entity, basic_auth))

    assert response.success
    assert response.page == Page(
        objects=[
            {"id": "2819c223-7f76-453a-919d-413861904646", "userName": "Alex"},
            {"id": "c75ad752-64ae-4823-840d-ffa80929976c", "userName": "Bacong"},
        ],
        next_cursor="3",
    )


def test_get_page_last_page_of_users(datasource, basic_auth, user_entity):
    response = Adapter(client=datasource).get_page(_page_request(user_entity, basic_auth, cursor="5"))

    assert response.page.next_cursor == ""
    assert response.page.objects == [
        {
            "id": "2819c223-7f76-453a-919d-413861904000",
            "userName": "bjensen@example.com",
            "emails": [
                {"value": "bjensen@example.com", "type": "work", "primary": True},
                {"value": "babs@jensen.org", "type": "home"},
            ],
        }
    ]


def test_get_page_converts_group_attributes(datasource, basic_auth, group_entity):
    response = Adapter(client=datasource).get_page(_page_request(group_entity, basic_auth, cursor="5"))

    [group] = response.page.objects
    assert group["displayName"] == "Tour Guides"
    assert group["$.meta.created"] == datetime(2010, 1, 23, 4, 56, 22, tzinfo=timezone.utc)
    assert group["members"] == [
        {"value": "2819c223-7f76-453a-919d-413861904646", "type": "User"},
        {"value": "6c5bb468-14b2-4183-baf2-06d523e03bd3", "type": "Group"},
    ]


def test_get_page_reads_extension_attributes(datasource, basic_auth):
    entity = EntityConfig(
        external_id="Users",
        attributes=(
            AttributeConfig(external_id="id", unique_id=True),
            AttributeConfig(external_id='$["urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"].employeeNumber'),
            AttributeConfig(external_id="$.name.givenName"),
            AttributeConfig(external_id="active", type=AttributeType.BOOL),
        ),
    )

    response = Adapter(client=datasource).get_page(_page_request(entity, basic_auth, cursor="5"))

    [user] = response.page.objects
    assert user['$["urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"].employeeNumber'] == "701984"
    assert user["$.name.givenName"] == "Barbara"
    assert user["active"] is True


def test_get_page_walks_all_pages(datasource, basic_auth, user_entity):
    adapter = Adapter(client=datasource)
    cursor = ""
    names = []
    while True:
        response = adapter.get_page(_page_request(user_entity, basic_auth, cursor=cursor))
        names.extend(item["userName"] for item in response.page.objects)
        cursor = response.page.next_cursor
        if not cursor:
            break

    assert names == ["Alex", "Bacong", "Carol", "David", "bjensen@example.com"]


def test_get_page_status_400_is_internal_error(datasource, basic_auth, user_entity):
    response = Adapter(client=datasource).get_page(_page_request(user_entity, basic_auth, address="example.com", cursor="400"))

    assert response.page is None
    assert response.error == AdapterError("Datasource rejected request, returned status code: 400.", code=ErrorCode.INTERNAL)


def test_get_page_status_429_keeps_retry_after(datasource, basic_auth, user_entity):
    response = Adapter(client=datasource).get_page(_page_request(user_entity, basic_auth, cursor="429"))

    assert response.error.retry_after == "7"
    assert "429" in response.error.message


def test_get_page_timeout_message(datasource, basic_auth, user_entity):
    config = Config(common=CommonConfig(request_timeout_seconds=1))

    response = Adapter(client=datasource).get_page(_page_request(user_entity, basic_auth, cursor="408", config=config))

    assert response.error.code is ErrorCode.INTERNAL
    assert response.error.message.endswith("Request exceeded configured timeout of 1 seconds. Please increase the request timeout.")


def test_get_page_page_size_overflow(datasource, basic_auth, user_entity):
    response = Adapter(client=datasource).get_page(_page_request(user_entity, basic_auth, cursor="600"))

    assert response.error.code is ErrorCode.DATASOURCE_FAILED
    assert "3" in response.error.message


def test_get_page_rejects_insecure_address_without_network(basic_auth, user_entity):
    client = StubClient()

    response = Adapter(client=client).get_page(_page_request(user_entity, basic_auth, address="http://scim.test"))

    assert response.error.code is ErrorCode.INVALID_DATASOURCE_CONFIG
    assert response.error.message == "The provided HTTP protocol is not supported."
    assert client.requests == []


def test_get_page_without_credentials(user_entity):
    client = StubClient()

    response = Adapter(client=client).get_page(_page_request(user_entity, None))

    assert response.error.code is ErrorCode.INVALID_DATASOURCE_CONFIG
    assert client.requests == []


def test_get_page_basic_auth_takes_precedence(user_entity):
    client = StubClient()
    auth = DatasourceAuthCredentials(
        basic=BasicAuthCredentials(username="mockuser", password="mockpassword"),
        http_authorization="Bearer abc",
    )

    Adapter(client=client).get_page(_page_request(user_entity, auth))

    assert client.requests[0].authorization_header == "Basic bW9ja3VzZXI6bW9ja3Bhc3N3b3Jk"


def test_get_page_uses_opaque_authorization(user_entity):
    client = StubClient()

    Adapter(client=client).get_page(_page_request(user_entity, DatasourceAuthCredentials(http_authorization="Bearer abc")))

    assert client.requests[0].authorization_header == "Bearer abc"


def test_get_page_builds_datasource_request(basic_auth, user_entity):
    client = StubClient()
    config = Config(query_params={"Users": QueryParams(filter='userName sw "A"', ascending=True)})

    Adapter(client=client).get_page(_page_request(user_entity, basic_auth, cursor="3", config=config))

    [sent] = client.requests
    assert sent.base_url == "https://scim.test"
    assert sent.entity_external_id == "Users"
    assert sent.cursor == "3"
    assert sent.page_size == 2
    assert sent.request_timeout_seconds == 10
    assert sent.query_params == QueryParams(filter='userName sw "A"', ascending=True)


def test_get_page_ignores_query_params_of_other_entities(basic_auth, group_entity):
    client = StubClient()
    config = Config(query_params={"Users": QueryParams(filter='userName sw "A"')})

    Adapter(client=client).get_page(_page_request(group_entity, basic_auth, config=config))

    assert client.requests[0].query_params == QueryParams()


def test_get_page_returns_client_errors(basic_auth, user_entity):
    error = AdapterError("Failed to read response body.", code=ErrorCode.DATASOURCE_FAILED)

    response = Adapter(client=StubClient(error=error)).get_page(_page_request(user_entity, basic_auth))

    assert response.page is None
    assert response.error is error


def test_get_page_reports_conversion_failures(basic_auth):
    entity = EntityConfig(external_id="Users", attributes=(AttributeConfig(external_id="active", type=AttributeType.INT64),))
    client = StubClient(DatasourceResponse(status_code=200, objects=[{"active": "yes"}]))

    response = Adapter(client=client).get_page(_page_request(entity, basic_auth))

    assert response.error.code is ErrorCode.INTERNAL
    assert response.error.message.startswith("Failed to convert SCIM response objects to JSON: ")


def test_get_page_applies_local_time_zone_offset(basic_auth):
    entity = EntityConfig(external_id="Users", attributes=(AttributeConfig(external_id="lastLogin", type=AttributeType.DATETIME),))
    client = StubClient(DatasourceResponse(status_code=200, objects=[{"lastLogin": "2024-03-01T12:00:00"}]))
    config = Config(common=CommonConfig(local_time_zone_offset=3600))

    response = Adapter(client=client).get_page(_page_request(entity, basic_auth, config=config))

    assert response.page.objects == [{"lastLogin": datetime(2024, 3, 1, 11, 0, tzinfo=timezone.utc)}]


def test_get_page_rejects_objects_without_unique_id(basic_auth, user_entity):
    client = StubClient(DatasourceResponse(status_code=200, objects=[{"id": "1", "userName": "alex"}, {"userName": "ghost"}]))

    response = Adapter(client=client).get_page(_page_request(user_entity, basic_auth))

    assert response.page is None
    assert response.error == AdapterError(
        "Failed to convert SCIM response objects to JSON: object of entity 'Users' is missing its unique id attribute 'id'.",
        code=ErrorCode.INTERNAL,
    )
