"""Stripe REST client for charges and subscription lifecycle calls."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from ...config import settings
from ...errors import UpstreamProviderError

PROVIDER = "stripe"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PaymentResult:
    id: str
    status: str


class PaymentProvider(Protocol):
    async def charge(self, amount: float, customer_ref: str, description: str) -> PaymentResult: ...

    async def create_subscription(self, customer_ref: str, price_ref: str) -> PaymentResult: ...

    async def pause(self, subscription_ref: str) -> PaymentResult: ...

    async def resume(self, subscription_ref: str) -> PaymentResult: ...


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


class StripeClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.stripe_api_key
        if not self.api_key:
            raise ValueError("Stripe API key is not configured.")
        self.base_url = (base_url or settings.stripe_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.stripe_timeout_seconds
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", data=data, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Stripe {method} {path} failed: {e}")
            raise UpstreamProviderError(PROVIDER, f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message") or response.text
            except ValueError:
                message = response.text
            logger.error(f"Stripe {method} {path} returned {response.status_code}: {message}")
            raise UpstreamProviderError(PROVIDER, message, status_code=response.status_code)
        return response.json()

    @staticmethod
    def _result(payload: dict) -> PaymentResult:
        return PaymentResult(id=str(payload.get("id", "")), status=str(payload.get("status", "unknown")))

    async def charge(self, amount: float, customer_ref: str, description: str) -> PaymentResult:
        """Charge the customer's default payment method immediately."""
        payload = await self._request(
            "POST",
            "/payment_intents",
            data={
                "amount": to_cents(amount),
                "currency": settings.stripe_currency,
                "customer": customer_ref,
                "description": description,
                "confirm": "true",
                "off_session": "true",
            },
            idempotency_key=str(uuid.uuid4()),
        )
        return self._result(payload)

    async def create_subscription(self, customer_ref: str, price_ref: str) -> PaymentResult:
        payload = await self._request(
            "POST",
            "/subscriptions",
            data={
                "customer": customer_ref,
                "items[0][price]": price_ref,
                "payment_behavior": "default_incomplete",
                "metadata[service_type]": "recurring_cleanup",
            },
        )
        return self._result(payload)

    async def pause(self, subscription_ref: str) -> PaymentResult:
        payload = await self._request(
            "POST",
            f"/subscriptions/{subscription_ref}",
            data={"pause_collection[behavior]": "void"},
        )
        return self._result(payload)

    async def resume(self, subscription_ref: str) -> PaymentResult:
        payload = await self._request(
            "POST",
            f"/subscriptions/{subscription_ref}",
            data={"pause_collection": ""},
        )
        return self._result(payload)
