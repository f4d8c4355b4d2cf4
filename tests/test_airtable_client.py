from __future__ import annotations

import json

import httpx
import pytest

from auto_archive.airtable.client import AirtableApiError, AirtableClient


def _client(handler, **kwargs) -> tuple[AirtableClient, list[float]]:
    sleeps: list[float] = []
    client = AirtableClient(
        "patSecret",
        api_url="https://api.test",
        min_request_interval_seconds=0,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
        **kwargs,
    )
    return client, sleeps


def test_request_sends_bearer_token_and_json_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "app123", "tables": [{"id": "tbl1"}]})

    client, _ = _client(handler)
    data = client.create_base("Archive 2024_01", "wsp1", [{"name": "Orders", "fields": []}])

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v0/meta/bases"
    assert request.headers["Authorization"] == "Bearer patSecret"
    assert json.loads(request.content) == {
        "name": "Archive 2024_01",
        "workspaceId": "wsp1",
        "tables": [{"name": "Orders", "fields": []}],
    }
    assert data["id"] == "app123"


def test_list_records_follows_offset() -> None:
    pages = {
        None: {"records": [{"id": "rec1"}, {"id": "rec2"}], "offset": "itr2"},
        "itr2": {"records": [{"id": "rec3"}]},
    }
    seen_params: list[dict[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        seen_params.append(params)
        return httpx.Response(200, json=pages[params.get("offset")])

    client, _ = _client(handler)
    records = client.list_records("app1", "My Table", filter_formula="NOT({Archived})")

    assert [r["id"] for r in records] == ["rec1", "rec2", "rec3"]
    assert seen_params[0] == {"pageSize": "100", "filterByFormula": "NOT({Archived})"}
    assert seen_params[1]["offset"] == "itr2"


def test_table_names_are_quoted_as_one_segment() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.decode())
        return httpx.Response(200, json={"records": []})

    client, _ = _client(handler)
    client.create_records("app1", "Sales/2024", [{"Name": "x"}])

    assert paths[0].startswith("/v0/app1/Sales%2F2024")


def test_retries_rate_limit_using_retry_after() -> None:
    responses = iter(
        [
            httpx.Response(429, headers={"Retry-After": "3"}, json={"errors": []}),
            httpx.Response(200, json={"tables": [{"id": "tbl1", "name": "Orders"}]}),
        ]
    )

    client, sleeps = _client(lambda request: next(responses))
    tables = client.list_tables("app1")

    assert tables == [{"id": "tbl1", "name": "Orders"}]
    assert sleeps == [3.0]


def test_retries_server_errors_with_backoff_then_raises() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, json={"error": {"type": "SERVICE_UNAVAILABLE"}})

    client, sleeps = _client(handler, max_retries=2)

    with pytest.raises(AirtableApiError) as excinfo:
        client.list_tables("app1")

    assert calls["count"] == 3
    assert sleeps == [1.0, 2.0]
    assert excinfo.value.status_code == 503
    assert "SERVICE_UNAVAILABLE" in str(excinfo.value)


def test_client_errors_are_not_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(
            422,
            json={"error": {"type": "INVALID_REQUEST_UNKNOWN", "message": "Bad field"}},
        )

    client, sleeps = _client(handler)

    with pytest.raises(AirtableApiError) as excinfo:
        client.update_records("app1", "tbl1", [{"id": "rec1", "fields": {}}])

    assert calls["count"] == 1
    assert sleeps == []
    assert excinfo.value.retryable is False
    assert str(excinfo.value) == (
        "PATCH /v0/app1/tbl1 returned HTTP 422 INVALID_REQUEST_UNKNOWN: Bad field"
    )


def test_transport_errors_are_retried() -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"id": "fld1"})

    client, sleeps = _client(handler)
    data = client.create_field("app1", "tbl1", "Archived", "checkbox", {"icon": "check"})

    assert data == {"id": "fld1"}
    assert sleeps == [1.0]


def test_non_object_response_is_rejected() -> None:
    client, _ = _client(lambda request: httpx.Response(200, json=["unexpected"]))

    with pytest.raises(AirtableApiError, match="expected an object"):
        client.list_tables("app1")


def test_empty_response_decodes_to_empty_mapping() -> None:
    client, _ = _client(lambda request: httpx.Response(200))
    assert client.request("DELETE", "/v0/app1/tbl1") == {}


def test_requests_are_throttled() -> None:
    sleeps: list[float] = []
    client = AirtableClient(
        "patSecret",
        api_url="https://api.test",
        min_request_interval_seconds=5.0,
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        sleep=sleeps.append,
    )

    with client:
        client.request("GET", "/v0/meta/bases")
        client.request("GET", "/v0/meta/bases")

    assert len(sleeps) == 1
    assert 0 < sleeps[0] <= 5.0
