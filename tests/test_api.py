import json
from typing import Any, Callable, List

import httpx
import pytest

from syncthing_cli.api import SyncthingClient
from syncthing_cli.errors import RequestError, ResponseError


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    api_key: str = "test-key",
) -> SyncthingClient:
    return SyncthingClient(api_key, "http://test/", transport=httpx.MockTransport(handler))


def _recording(requests: List[httpx.Request], body: Any = None, status: int = 200):
    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    return _handler


def test_status() -> None:
    requests: List[httpx.Request] = []
    with _client(_recording(requests, {"alloc": 12345678, "sys": 23456789, "uptime": 3600})) as client:
        result = client.status()

    assert result["uptime"] == 3600
    assert requests[0].method == "GET"
    assert requests[0].url.path == "/rest/system/status"
    assert requests[0].headers["X-API-Key"] == "test-key"


@pytest.mark.parametrize(
    "call,method,path",
    [
        (lambda c: c.status(), "GET", "/rest/system/status"),
        (lambda c: c.version(), "GET", "/rest/system/version"),
        (lambda c: c.connections(), "GET", "/rest/system/connections"),
        (lambda c: c.errors(), "GET", "/rest/system/error"),
        (lambda c: c.clear_errors(), "POST", "/rest/system/error/clear"),
        (lambda c: c.restart(), "POST", "/rest/system/restart"),
        (lambda c: c.shutdown(), "POST", "/rest/system/shutdown"),
        (lambda c: c.config(), "GET", "/rest/config"),
        (lambda c: c.config_folders(), "GET", "/rest/config/folders"),
        (lambda c: c.config_devices(), "GET", "/rest/config/devices"),
        (lambda c: c.folder_status("abcd-1234"), "GET", "/rest/db/status"),
        (lambda c: c.completion(), "GET", "/rest/db/completion"),
        (lambda c: c.need("abcd-1234"), "GET", "/rest/db/need"),
        (lambda c: c.scan(), "POST", "/rest/db/scan"),
        (lambda c: c.folder_stats(), "GET", "/rest/stats/folder"),
        (lambda c: c.device_stats(), "GET", "/rest/stats/device"),
        (lambda c: c.pending_devices(), "GET", "/rest/cluster/pending/devices"),
        (lambda c: c.pending_folders(), "GET", "/rest/cluster/pending/folders"),
        (lambda c: c.folder_errors("abcd-1234"), "GET", "/rest/folder/errors"),
        (lambda c: c.events(), "GET", "/rest/events"),
    ],
)
def test_every_endpoint_sends_api_key(call, method: str, path: str) -> None:
    requests: List[httpx.Request] = []
    with _client(_recording(requests, {}), api_key="secret") as client:
        call(client)

    assert len(requests) == 1
    assert requests[0].method == method
    assert requests[0].url.path == path
    assert requests[0].headers["X-API-Key"] == "secret"


def test_folder_status_is_parameterized_by_folder_id() -> None:
    requests: List[httpx.Request] = []
    with _client(_recording(requests, {"state": "idle"})) as client:
        assert client.folder_status("my folder")["state"] == "idle"

    assert requests[0].url.params["folder"] == "my folder"


def test_scan_all_sends_no_folder_and_accepts_empty_body() -> None:
    requests: List[httpx.Request] = []
    with _client(_recording(requests)) as client:
        assert client.scan() is None

    assert "folder" not in requests[0].url.params


def test_scan_folder_with_sub_path() -> None:
    requests: List[httpx.Request] = []
    with _client(_recording(requests)) as client:
        client.scan("docs", sub="reports/2024")

    assert requests[0].url.params["folder"] == "docs"
    assert requests[0].url.params["sub"] == "reports/2024"


def test_events_query_parameters() -> None:
    requests: List[httpx.Request] = []
    with _client(_recording(requests, [])) as client:
        client.events(since=10, limit=5, event_types=["StateChanged", "FolderSummary"], wait=2)

    params = requests[0].url.params
    assert params["since"] == "10"
    assert params["limit"] == "5"
    assert params["events"] == "StateChanged,FolderSummary"
    assert params["timeout"] == "2"


def test_api_error_surfaces_response_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="Unauthorized")

    with _client(_handler, api_key="bad-key") as client:
        with pytest.raises(ResponseError) as excinfo:
            client.status()

    assert excinfo.value.status_code == 401
    assert "401" in str(excinfo.value)


def test_malformed_json_surfaces_response_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"{not json", headers={"Content-Type": "application/json"})

    with _client(_handler) as client:
        with pytest.raises(ResponseError, match="Failed to parse"):
            client.version()


def test_connection_failure_surfaces_request_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(_handler) as client:
        with pytest.raises(RequestError, match="Cannot connect"):
            client.status()


def test_timeout_surfaces_request_error() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with _client(_handler) as client:
        with pytest.raises(RequestError, match="timed out"):
            client.status()


def test_failure_does_not_alter_earlier_results() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/rest/system/status":
            return httpx.Response(200, json={"uptime": 42})
        return httpx.Response(500, text="boom")

    with _client(_handler) as client:
        status = client.status()
        snapshot = json.dumps(status)
        with pytest.raises(ResponseError):
            client.version()

    assert json.dumps(status) == snapshot
    assert status == {"uptime": 42}
