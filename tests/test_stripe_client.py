from urllib.parse import parse_qs

import httpx
import pytest

from scoopops.errors import UpstreamProviderError
from scoopops.services.payments.stripe_client import StripeClient, to_cents


def _client(handler) -> StripeClient:
    return StripeClient(api_key="sk_test", base_url="https://stripe.test/v1", transport=httpx.MockTransport(handler))


def _form(request: httpx.Request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode(), keep_blank_values=True).items()}


def test_to_cents_rounds():
    assert to_cents(35.0) == 3500
    assert to_cents(19.999) == 2000


@pytest.mark.asyncio
async def test_charge_creates_confirmed_payment_intent():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["idempotency"] = request.headers.get("Idempotency-Key")
        seen["form"] = _form(request)
        return httpx.Response(200, json={"id": "pi_123", "status": "succeeded"})

    result = await _client(handler).charge(35.0, "cus_1", "Proration invoice inv-1")

    assert result.id == "pi_123"
    assert result.status == "succeeded"
    assert seen["path"] == "/v1/payment_intents"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["idempotency"]
    assert seen["form"]["amount"] == "3500"
    assert seen["form"]["customer"] == "cus_1"
    assert seen["form"]["confirm"] == "true"


@pytest.mark.asyncio
async def test_pause_and_resume_toggle_collection():
    forms = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/subscriptions/sub_1"
        forms.append(_form(request))
        return httpx.Response(200, json={"id": "sub_1", "status": "active"})

    client = _client(handler)
    await client.pause("sub_1")
    await client.resume("sub_1")

    assert forms[0] == {"pause_collection[behavior]": "void"}
    assert forms[1] == {"pause_collection": ""}


@pytest.mark.asyncio
async def test_create_subscription():
    def handler(request: httpx.Request) -> httpx.Response:
        form = _form(request)
        assert form["items[0][price]"] == "price_weekly"
        return httpx.Response(200, json={"id": "sub_9", "status": "incomplete"})

    result = await _client(handler).create_subscription("cus_1", "price_weekly")

    assert result.id == "sub_9"


@pytest.mark.asyncio
async def test_error_response_raises_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={"error": {"message": "Your card was declined."}})

    with pytest.raises(UpstreamProviderError) as exc_info:
        await _client(handler).charge(10.0, "cus_1", "test")

    assert exc_info.value.status_code == 402
    assert "declined" in str(exc_info.value)


@pytest.mark.asyncio
async def test_transport_error_raises_upstream_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamProviderError):
        await _client(handler).pause("sub_1")
