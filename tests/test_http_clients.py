"""Tests for the payment gateway HTTP client."""

import json
from decimal import Decimal

import httpx
import pytest

from storefront.domain.exceptions import PaymentCaptureError, PaymentInitiationError
from storefront.domain.models import OrderItem
from storefront.infrastructure.http_clients import HTTPPaymentGatewayClient

ITEMS = [OrderItem(product_id="p1", title="Kurta", price=Decimal("19.99"), quantity=2)]


def gateway_with(handler):
    """Client wired to a mock transport; the token endpoint always succeeds."""
    requests = []

    def route(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/v1/oauth2/token":
            return httpx.Response(200, json={"access_token": "token-1"})
        return handler(request)

    client = HTTPPaymentGatewayClient(
        "https://api.gateway.test/", "client", "secret", transport=httpx.MockTransport(route)
    )
    return client, requests


class TestCreatePaymentIntent:
    async def test_success(self):
        def handler(request):
            return httpx.Response(201, json={
                "id": "PAY-1",
                "links": [
                    {"rel": "self", "href": "https://api.gateway.test/v1/payments/payment/PAY-1"},
                    {"rel": "approval_url", "href": "https://gateway.test/approve?token=EC-1"},
                ],
            })

        client, requests = gateway_with(handler)

        intent = await client.create_payment_intent(ITEMS, Decimal("39.98"), "https://r", "https://c")

        assert intent.payment_id == "PAY-1"
        assert intent.approval_url == "https://gateway.test/approve?token=EC-1"
        body = json.loads(requests[1].content)
        assert requests[1].headers["Authorization"] == "Bearer token-1"
        assert body["transactions"][0]["amount"] == {"currency": "USD", "total": "39.98"}
        assert body["transactions"][0]["item_list"]["items"][0]["price"] == "19.99"
        assert body["redirect_urls"] == {"return_url": "https://r", "cancel_url": "https://c"}

    async def test_rejected(self):
        client, _ = gateway_with(lambda request: httpx.Response(400, json={"name": "VALIDATION_ERROR"}))

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")

    async def test_missing_approval_url(self):
        client, _ = gateway_with(lambda request: httpx.Response(201, json={"id": "PAY-1", "links": []}))

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")

    async def test_response_without_payment_id(self):
        def handler(request):
            return httpx.Response(201, json={
                "links": [{"rel": "approval_url", "href": "https://gateway.test/approve?token=EC-1"}],
            })

        client, _ = gateway_with(handler)

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")

    async def test_response_is_not_json(self):
        client, _ = gateway_with(lambda request: httpx.Response(201, text="<html>Created</html>"))

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")

    async def test_token_response_without_access_token(self):
        def route(request):
            return httpx.Response(200, json={"token_type": "Bearer"})

        client = HTTPPaymentGatewayClient("https://api.gateway.test", "c", "s", transport=httpx.MockTransport(route))

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        client, _ = gateway_with(handler)

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")

    async def test_auth_failure(self):
        def route(request):
            return httpx.Response(401, json={"error": "invalid_client"})

        client = HTTPPaymentGatewayClient("https://api.gateway.test", "c", "s", transport=httpx.MockTransport(route))

        with pytest.raises(PaymentInitiationError):
            await client.create_payment_intent(ITEMS, Decimal("39.98"), "r", "c")


class TestConfirmCapture:
    async def test_success(self):
        client, requests = gateway_with(lambda request: httpx.Response(200, json={"state": "approved"}))

        await client.confirm_capture("PAY-1", "PAYER-1")

        assert requests[1].url.path == "/v1/payments/payment/PAY-1/execute"
        assert json.loads(requests[1].content) == {"payer_id": "PAYER-1"}

    async def test_already_done_counts_as_success(self):
        client, _ = gateway_with(lambda request: httpx.Response(400, json={"name": "PAYMENT_ALREADY_DONE"}))

        await client.confirm_capture("PAY-1", "PAYER-1")

    async def test_failed_state(self):
        client, _ = gateway_with(lambda request: httpx.Response(200, json={"state": "failed"}))

        with pytest.raises(PaymentCaptureError):
            await client.confirm_capture("PAY-1", "PAYER-1")

    async def test_server_error(self):
        client, _ = gateway_with(lambda request: httpx.Response(500, json={"name": "INTERNAL_SERVICE_ERROR"}))

        with pytest.raises(PaymentCaptureError):
            await client.confirm_capture("PAY-1", "PAYER-1")

    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client, _ = gateway_with(handler)

        with pytest.raises(PaymentCaptureError):
            await client.confirm_capture("PAY-1", "PAYER-1")

    async def test_html_error_page(self):
        client, _ = gateway_with(lambda request: httpx.Response(400, text="<html>Bad Request</html>"))

        with pytest.raises(PaymentCaptureError):
            await client.confirm_capture("PAY-1", "PAYER-1")

    async def test_success_body_is_not_json(self):
        client, _ = gateway_with(lambda request: httpx.Response(200, text="ok"))

        with pytest.raises(PaymentCaptureError):
            await client.confirm_capture("PAY-1", "PAYER-1")
