from __future__ import annotations

import json

import httpx
import pytest

from paybridge.integrations.functions import (
    DownstreamPermanent,
    DownstreamTransient,
    FunctionsClient,
    classify_response,
)


def _client(handler) -> FunctionsClient:
    return FunctionsClient(
        base_url="https://functions.example.com/functions/v1",
        service_key="service-key",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_invoke_success_sends_auth_and_body():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "id": "abc"})

    client = _client(handler)
    result = client.invoke("notify-payment-webhook", {"order_id": "o-1"})
    client.close()

    assert result.ok
    assert result.data == {"success": True, "id": "abc"}
    assert seen[0].url.path == "/functions/v1/notify-payment-webhook"
    assert seen[0].headers["authorization"] == "Bearer service-key"
    assert json.loads(seen[0].content) == {"order_id": "o-1"}


def test_html_bad_gateway_is_transient():
    html = "<!DOCTYPE html><html><body>502 Bad Gateway</body></html>"
    client = _client(lambda request: httpx.Response(502, text=html, headers={"content-type": "text/html"}))
    result = client.invoke("generate-lyrics-for-approval")

    assert isinstance(result.error, DownstreamTransient)
    assert result.error.retryable
    assert result.error.is_html
    assert result.error.status == 502


def test_client_error_is_permanent():
    client = _client(lambda request: httpx.Response(404, json={"error": "Order not found"}))
    result = client.invoke("generate-lyrics-for-approval")

    assert isinstance(result.error, DownstreamPermanent)
    assert not result.error.retryable
    assert result.error.message == "Order not found"
    assert result.data == {"error": "Order not found"}


def test_server_error_is_transient():
    client = _client(lambda request: httpx.Response(500, json={"message": "boom"}))
    result = client.invoke("x")
    assert isinstance(result.error, DownstreamTransient)
    assert result.error.message == "boom"


def test_malformed_success_body_is_transient():
    client = _client(lambda request: httpx.Response(200, text="{not json"))
    result = client.invoke("x")
    assert isinstance(result.error, DownstreamTransient)
    assert not result.error.is_html


def test_empty_success_body():
    result = classify_response(httpx.Response(200, text=""))
    assert result.ok
    assert result.data is None


@pytest.mark.parametrize(
    "exc",
    [httpx.ReadTimeout("timed out"), httpx.ConnectError("connection refused")],
)
def test_transport_failures_are_transient(exc):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc

    result = _client(handler).invoke("x")
    assert isinstance(result.error, DownstreamTransient)
    assert result.data is None
