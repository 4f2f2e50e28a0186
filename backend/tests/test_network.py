from __future__ import annotations

import asyncio
import json
import socket

import httpx
import pytest

from uptimecore.config import settings
from uptimecore.errors import DistributedDispatchError, UnsupportedMonitorTypeError
from uptimecore.models import Monitor
from uptimecore.services.network import NETWORK_ERROR, PING_ERROR, NetworkService
from uptimecore.utils import messages


def _monitor(**kwargs) -> Monitor:
    kwargs.setdefault("id", 1)
    kwargs.setdefault("name", "Website")
    kwargs.setdefault("type", "http")
    kwargs.setdefault("url", "http://example.test/health")
    return Monitor(**kwargs)


def _service(handler) -> NetworkService:
    return NetworkService(transport=httpx.MockTransport(handler))


def _json(body, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=body)


def _text(body: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=body, headers={"Content-Type": "text/plain"})


@pytest.mark.asyncio
async def test_http_without_expected_value_is_up() -> None:
    service = _service(lambda request: _text("hello"))
    result = await service.get_status(_monitor())

    assert result.status is True
    assert result.code == 200
    assert result.message == "OK"
    assert result.payload == "hello"
    assert result.response_time >= 0


@pytest.mark.asyncio
async def test_http_sends_bearer_secret() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization", "")
        return _text("ok")

    await _service(handler).request_http(_monitor(secret="s3cret"))
    assert seen["auth"] == "Bearer s3cret"


@pytest.mark.asyncio
async def test_http_error_status_keeps_status_code() -> None:
    result = await _service(lambda request: _text("missing", 404)).request_http(_monitor())

    assert result.status is False
    assert result.code == 404
    assert result.message == "Not Found"


@pytest.mark.asyncio
async def test_http_transport_error_uses_network_error_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _service(handler).request_http(_monitor())

    assert result.status is False
    assert result.code == NETWORK_ERROR
    assert result.message == messages.HTTP_NETWORK_ERROR
    assert result.response_time is not None


@pytest.mark.asyncio
async def test_http_include_match() -> None:
    service = _service(lambda request: _text("status: ok, version 2"))

    matched = await service.request_http(_monitor(expected_value="status: ok", match_method="include"))
    assert matched.status is True
    assert matched.message == messages.HTTP_MATCH_SUCCESS

    exact = await service.request_http(_monitor(expected_value="status: ok", match_method="equal"))
    assert exact.status is False
    assert exact.code == 200
    assert exact.message == messages.HTTP_MATCH_FAIL


@pytest.mark.asyncio
async def test_http_regex_match() -> None:
    service = _service(lambda request: _text("build 1234 deployed"))

    result = await service.request_http(_monitor(expected_value=r"build \d+", match_method="regex"))
    assert result.status is True

    invalid = await service.request_http(_monitor(expected_value="build (", match_method="regex"))
    assert invalid.status is False
    assert invalid.message == messages.HTTP_MATCH_FAIL


@pytest.mark.asyncio
async def test_json_path_requires_json_response() -> None:
    service = _service(lambda request: _text("up"))
    result = await service.request_http(_monitor(json_path="data.status", expected_value="up"))

    assert result.status is False
    assert result.message == messages.HTTP_NOT_JSON


@pytest.mark.asyncio
async def test_json_path_extraction() -> None:
    service = _service(lambda request: _json({"data": {"status": "up", "workers": {"a": 1}}}))

    result = await service.request_http(_monitor(json_path="data.status", expected_value="up"))
    assert result.status is True
    assert result.payload == {"data": {"status": "up", "workers": {"a": 1}}}

    nested = await service.request_http(_monitor(json_path="data.workers", expected_value='{"a":1}'))
    assert nested.status is True


@pytest.mark.asyncio
async def test_json_path_empty_result() -> None:
    service = _service(lambda request: _json({"data": {}}))
    result = await service.request_http(_monitor(json_path="data.status", expected_value="up"))

    assert result.status is False
    assert result.message == messages.HTTP_EMPTY_RESULT


@pytest.mark.asyncio
async def test_pagespeed_requests_audit_for_monitor_url() -> None:
    seen: list[httpx.URL] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return _json({"lighthouseResult": {}})

    monitor = _monitor(type="pagespeed", url="https://example.test/?a=1")
    result = await _service(handler).get_status(monitor)

    assert result.status is True
    assert seen[0].host == "pagespeedonline.googleapis.com"
    assert seen[0].params["url"] == "https://example.test/?a=1"
    assert sorted(seen[0].params.get_list("category")) == ["accessibility", "best-practices", "performance", "seo"]


@pytest.mark.asyncio
async def test_unsupported_type_raises() -> None:
    with pytest.raises(UnsupportedMonitorTypeError, match="Unsupported type: smtp"):
        await NetworkService().get_status(_monitor(type="smtp"))


class _FakeProcess:
    def __init__(self, returncode: int, stdout: bytes) -> None:
        self.returncode = returncode
        self._stdout = stdout

    async def communicate(self):
        return self._stdout, b""


@pytest.mark.asyncio
async def test_ping_success(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_exec(*args, **kwargs):
        assert args[:3] == ("ping", "-c", "1")
        return _FakeProcess(0, b"64 bytes from 10.0.0.1: icmp_seq=1 ttl=57 time=14.2 ms\n")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    result = await NetworkService().get_status(_monitor(type="ping", url="10.0.0.1"))

    assert result.status is True
    assert result.code == 200
    assert result.message == messages.PING_SUCCESS
    assert result.payload["time"] == 14.2


@pytest.mark.asyncio
async def test_ping_unreachable_host_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_exec(*args, **kwargs):
        return _FakeProcess(1, b"1 packets transmitted, 0 received\n")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    result = await NetworkService().request_ping(_monitor(type="ping", url="10.0.0.2"))

    assert result.status is False


@pytest.mark.asyncio
async def test_ping_error_uses_ping_error_code(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_exec(*args, **kwargs):
        raise FileNotFoundError("ping")

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    result = await NetworkService().request_ping(_monitor(type="ping", url="10.0.0.3"))

    assert result.status is False
    assert result.code == PING_ERROR
    assert result.message == messages.PING_FAIL


@pytest.mark.asyncio
async def test_port_open() -> None:
    async def on_connect(reader, writer):
        writer.close()

    server = await asyncio.start_server(on_connect, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        result = await NetworkService().get_status(_monitor(type="port", url="127.0.0.1", port=port))
    finally:
        server.close()
        await server.wait_closed()

    assert result.status is True
    assert result.code == 200
    assert result.message == messages.PORT_SUCCESS


@pytest.mark.asyncio
async def test_port_closed() -> None:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    result = await NetworkService().request_port(_monitor(type="port", url="127.0.0.1", port=port))

    assert result.status is False
    assert result.code == NETWORK_ERROR
    assert result.message == messages.PORT_FAIL


def _docker_service(handler) -> NetworkService:
    return NetworkService(docker_transport=httpx.MockTransport(handler))


CONTAINERS = [
    {"Id": "abc123def456", "Names": ["/web"]},
    {"Id": "fff000", "Names": ["/worker"]},
]


@pytest.mark.asyncio
async def test_docker_running_container() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/containers/json":
            return _json(CONTAINERS)
        assert request.url.path == "/containers/abc123def456/json"
        return _json({"State": {"Status": "running", "Running": True}})

    service = _docker_service(handler)

    by_name = await service.get_status(_monitor(type="docker", url="web"))
    assert by_name.status is True
    assert by_name.code == 200
    assert by_name.payload == {"Status": "running", "Running": True}

    by_id = await service.request_docker(_monitor(type="docker", url="abc123"))
    assert by_id.status is True


@pytest.mark.asyncio
async def test_docker_stopped_container_is_down() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/containers/json":
            return _json(CONTAINERS)
        return _json({"State": {"Status": "exited"}})

    result = await _docker_service(handler).request_docker(_monitor(type="docker", url="worker"))
    assert result.status is False
    assert result.code == 200


@pytest.mark.asyncio
async def test_docker_container_not_found() -> None:
    result = await _docker_service(lambda request: _json(CONTAINERS)).request_docker(
        _monitor(type="docker", url="db")
    )

    assert result.status is False
    assert result.code == 404
    assert result.message == messages.DOCKER_NOT_FOUND


@pytest.mark.asyncio
async def test_docker_inspect_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/containers/json":
            return _json(CONTAINERS)
        return _json({"message": "server error"}, 500)

    result = await _docker_service(handler).request_docker(_monitor(type="docker", url="web"))
    assert result.status is False
    assert result.code == 500
    assert result.message == "server error"


@pytest.mark.asyncio
async def test_docker_socket_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no socket", request=request)

    result = await _docker_service(handler).request_docker(_monitor(type="docker", url="web"))
    assert result.status is False
    assert result.code == NETWORK_ERROR
    assert result.message == messages.DOCKER_FAIL


@pytest.mark.asyncio
async def test_distributed_dispatch(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "distributed_api_key", "probe-key")
    monkeypatch.setattr(settings, "callback_url", "https://core.example.test")
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-checkmate-key")
        seen["body"] = json.loads(request.content)
        return _json({"success": True})

    monitor = _monitor(id=7, type="distributed_http", url="https://site.test")
    result = await _service(handler).get_status(monitor)

    assert result is None
    assert seen["url"] == settings.distributed_endpoint
    assert seen["key"] == "probe-key"
    assert seen["body"] == {
        "id": 7,
        "url": "https://site.test",
        "callback": "https://core.example.test/api/v1/distributed-uptime/callback",
    }


@pytest.mark.asyncio
async def test_distributed_dispatch_rejected() -> None:
    service = _service(lambda request: _json({"success": False, "message": "quota exceeded"}))

    with pytest.raises(DistributedDispatchError, match="quota exceeded"):
        await service.request_distributed_http(_monitor(type="distributed_http"))


@pytest.mark.asyncio
async def test_distributed_dispatch_http_error() -> None:
    service = _service(lambda request: _json({"error": "unauthorized"}, 401))

    with pytest.raises(DistributedDispatchError):
        await service.request_distributed_http(_monitor(type="distributed_http"))


@pytest.mark.asyncio
async def test_webhook_success_and_failure() -> None:
    sent: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        if request.url.host == "broken.test":
            return _text("nope", 500)
        return _json({"ok": True})

    service = _service(handler)

    ok = await service.request_webhook("slack", "https://hooks.test/x", {"text": "hi"})
    assert ok.status is True
    assert ok.code == 200
    assert ok.type == "webhook"

    failed = await service.request_webhook("slack", "https://broken.test/x", {"text": "hi"})
    assert failed.status is False
    assert failed.code == 500
    assert failed.payload == "nope"
    assert sent == [{"text": "hi"}, {"text": "hi"}]


@pytest.mark.asyncio
async def test_webhook_network_error_never_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    result = await _service(handler).request_webhook("discord", "https://hooks.test/y", {"content": "x"})
    assert result.status is False
    assert result.code == NETWORK_ERROR


class _HungProcess:
    returncode = None

    def __init__(self) -> None:
        self.killed = False
        self.reaped = False

    async def communicate(self):
        await asyncio.Event().wait()

    def kill(self) -> None:
        self.killed = True

    async def wait(self) -> int:
        self.reaped = True
        return -9


@pytest.mark.asyncio
async def test_ping_timeout_kills_child_process(monkeypatch: pytest.MonkeyPatch) -> None:
    proc = _HungProcess()

    async def fake_exec(*args, **kwargs):
        return proc

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    # communicate() gets a zero-second budget
    monkeypatch.setattr(settings, "ping_timeout", -5)
    result = await NetworkService().request_ping(_monitor(type="ping", url="10.0.0.4"))

    assert result.status is False
    assert result.code == PING_ERROR
    assert proc.killed is True
    assert proc.reaped is True


@pytest.mark.asyncio
async def test_integral_float_matches_integer_text() -> None:
    service = _service(lambda request: _json({"v": 2.0, "ratio": 0.5}))

    whole = await service.request_http(_monitor(json_path="v", expected_value="2"))
    assert whole.status is True
    assert whole.message == messages.HTTP_MATCH_SUCCESS

    fraction = await service.request_http(_monitor(json_path="ratio", expected_value="0.5"))
    assert fraction.status is True
