"""
Provider gateway tests over httpx.MockTransport, plus one against a local
slow-streaming HTTP server.
"""
import asyncio
import json
import time

import httpx
import pytest

from fonepay_tester.config import Settings
from fonepay_tester.exceptions import GatewayError
from fonepay_tester.models.calls import CallCategory
from fonepay_tester.models.transactions import Environment
from fonepay_tester.services.provider_gateway import (
    QR_GENERATE_PATH,
    STATUS_CHECK_PATH,
    EndpointKind,
    ProviderGateway,
    categorize_url,
)

QR_PAYLOAD = {
    "amount": "100.50",
    "remarks1": "Test Transaction",
    "remarks2": "API Test",
    "prn": "test-abc123",
    "merchantCode": "fonepay123",
    "dataValidation": "AB" * 64,
    "username": "bijayk",
    "password": "password",
}


class TestEndpointResolution:

    def test_resolves_environment_and_path(self, make_gateway):
        gateway = make_gateway(lambda request: httpx.Response(200))

        assert gateway.resolve_url(EndpointKind.QR_GENERATE, Environment.SANDBOX) == (
            "https://uat-new-merchant-api.fonepay.com/api" + QR_GENERATE_PATH
        )
        assert gateway.resolve_url(EndpointKind.STATUS_CHECK, Environment.PRODUCTION) == (
            "https://merchantapi.fonepay.com/api" + STATUS_CHECK_PATH
        )

    def test_default_timeout_is_30_seconds(self, make_gateway):
        assert make_gateway(lambda request: httpx.Response(200)).timeout == 30

    @pytest.mark.parametrize("url, category", [
        ("https://merchantapi.fonepay.com/api" + QR_GENERATE_PATH, CallCategory.QR_GENERATION),
        ("https://merchantapi.fonepay.com/api" + STATUS_CHECK_PATH, CallCategory.STATUS_CHECK),
        ("https://merchantapi.fonepay.com/api/merchant/other", CallCategory.OTHER),
    ])
    def test_categorize_url(self, url, category):
        assert categorize_url(url) == category


@pytest.mark.asyncio
async def test_success_returns_response_and_records_call(make_gateway, recorder):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "thirdpartyQrWebSocketUrl": "wss://relay.test/x"})

    gateway = make_gateway(handler)
    response = await gateway.send(EndpointKind.QR_GENERATE, QR_PAYLOAD, Environment.SANDBOX)

    assert response.status == 200
    assert response.body["thirdpartyQrWebSocketUrl"] == "wss://relay.test/x"
    assert seen["method"] == "POST"
    assert seen["content_type"] == "application/json"
    assert list(seen["body"]) == list(QR_PAYLOAD)

    records = recorder.query()
    assert len(records) == 1
    record = records[0]
    assert record.category == CallCategory.QR_GENERATION
    assert record.http_status == 200
    assert record.request_body == QR_PAYLOAD
    assert record.response_body["success"] is True
    assert record.error is None
    assert record.duration_ms >= 0


@pytest.mark.asyncio
async def test_timeout_surfaces_gateway_error_and_one_record(make_gateway, recorder):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    gateway = make_gateway(handler)

    with pytest.raises(GatewayError) as exc_info:
        await gateway.send(EndpointKind.STATUS_CHECK, {"prn": "test-abc123"}, Environment.SANDBOX)

    assert exc_info.value.kind == GatewayError.TIMEOUT
    assert exc_info.value.status_code == 504

    records = recorder.query()
    assert len(records) == 1
    assert records[0].category == CallCategory.STATUS_CHECK
    assert records[0].http_status == 0
    assert records[0].error["kind"] == "TIMEOUT"


@pytest.mark.asyncio
async def test_network_failure(make_gateway, recorder):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = make_gateway(handler)

    with pytest.raises(GatewayError) as exc_info:
        await gateway.send(EndpointKind.QR_GENERATE, QR_PAYLOAD, Environment.PRODUCTION)

    assert exc_info.value.kind == GatewayError.NETWORK
    assert exc_info.value.status is None
    assert recorder.count() == 1


@pytest.mark.asyncio
async def test_non_2xx_carries_provider_status_and_body(make_gateway, recorder):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "Invalid data validation"})

    gateway = make_gateway(handler)

    with pytest.raises(GatewayError) as exc_info:
        await gateway.send(EndpointKind.QR_GENERATE, QR_PAYLOAD, Environment.SANDBOX)

    error = exc_info.value
    assert error.kind == GatewayError.HTTP
    assert error.status == 400
    assert error.body == {"message": "Invalid data validation"}
    assert error.to_dict()["details"]["status"] == 400

    record = recorder.query()[0]
    assert record.http_status == 400
    assert record.response_body == {"message": "Invalid data validation"}
    assert record.error["kind"] == "HTTP"


@pytest.mark.asyncio
async def test_non_json_body_kept_as_text(make_gateway):
    gateway = make_gateway(lambda request: httpx.Response(200, text="OK"))

    response = await gateway.send(EndpointKind.STATUS_CHECK, {"prn": "p"}, Environment.SANDBOX)

    assert response.body == "OK"


@pytest.mark.asyncio
async def test_records_in_completion_order(make_gateway, recorder):
    gateway = make_gateway(lambda request: httpx.Response(200, json={}))

    await gateway.send(EndpointKind.QR_GENERATE, QR_PAYLOAD, Environment.SANDBOX)
    await gateway.send(EndpointKind.STATUS_CHECK, {"prn": "p"}, Environment.SANDBOX)

    assert [r.category for r in recorder.query()] == [
        CallCategory.STATUS_CHECK,
        CallCategory.QR_GENERATION,
    ]


async def _serve_slow_chunked(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    """HTTP/1.1 handler that answers 200 but trickles the body one byte at a time."""
    await reader.readuntil(b"\r\n\r\n")
    writer.write(
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: application/json\r\n"
        b"Transfer-Encoding: chunked\r\n\r\n"
    )
    try:
        for byte in b'{"success": true}':
            writer.write(b"1\r\n" + bytes([byte]) + b"\r\n")
            await writer.drain()
            await asyncio.sleep(0.3)
        writer.write(b"0\r\n\r\n")
        await writer.drain()
    except (ConnectionError, asyncio.CancelledError):
        pass
    finally:
        writer.close()


@pytest.mark.asyncio
async def test_timeout_bounds_whole_exchange_not_each_read(recorder):
    server = await asyncio.start_server(_serve_slow_chunked, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    gateway = ProviderGateway(recorder, settings=Settings(), timeout=1.0)
    url = f"http://127.0.0.1:{port}{STATUS_CHECK_PATH}"

    started = time.perf_counter()
    try:
        with pytest.raises(GatewayError) as exc_info:
            await gateway.post(url, {"prn": "test-abc123"})
        elapsed = time.perf_counter() - started
    finally:
        await gateway.aclose()
        server.close()

    assert exc_info.value.kind == GatewayError.TIMEOUT
    assert elapsed < 2.0

    records = recorder.query()
    assert len(records) == 1
    assert records[0].http_status == 0
    assert records[0].error["kind"] == "TIMEOUT"
