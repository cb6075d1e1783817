"""Payment gateway client (Stripe).

The Stripe SDK is synchronous; calls run in a worker thread and are bounded
by ``asyncio.wait_for`` so a slow gateway surfaces as UpstreamUnavailable.
"""

from __future__ import annotations

import asyncio
import json
from functools import partial
from typing import Any, Callable, Protocol

import stripe
import structlog

from gcbulkedit.errors import InvalidInput, SignatureInvalid, UpstreamUnavailable

logger = structlog.get_logger()


class PaymentGateway(Protocol):
    """Operations the ledger needs from the payment provider."""

    async def create_customer(self, email: str) -> str: ...

    async def create_checkout_session(
        self, customer_id: str, success_url: str, cancel_url: str
    ) -> str: ...

    async def list_active_subscriptions(self, customer_id: str) -> list[str]: ...

    async def cancel_subscription(self, subscription_id: str) -> None: ...

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]: ...


class StripeGateway:
    """Stripe-backed payment gateway."""

    def __init__(
        self,
        api_key: str | None,
        webhook_secret: str | None,
        price_id: str,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._price_id = price_id
        self._timeout = timeout

    async def _call(
        self, operation: str, func: Callable[..., Any], *args: Any, **params: Any
    ) -> Any:
        if not self._api_key:
            raise UpstreamUnavailable("Payment gateway is not configured")

        try:
            return await asyncio.wait_for(
                asyncio.to_thread(partial(func, *args, api_key=self._api_key, **params)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Stripe call timed out", operation=operation, timeout=self._timeout)
            raise UpstreamUnavailable("Payment gateway timed out") from e
        except stripe.StripeError as e:
            logger.error("Stripe call failed", operation=operation, error=str(e))
            raise UpstreamUnavailable("Payment gateway request failed") from e

    async def create_customer(self, email: str) -> str:
        """Create a gateway customer and return its id."""
        customer = await self._call("create_customer", stripe.Customer.create, email=email)
        logger.info("Created Stripe customer", customer_id=customer.id)
        return customer.id

    async def create_checkout_session(
        self, customer_id: str, success_url: str, cancel_url: str
    ) -> str:
        """Create a subscription-mode hosted checkout and return its URL."""
        session = await self._call(
            "create_checkout_session",
            stripe.checkout.Session.create,
            mode="subscription",
            line_items=[{"price": self._price_id, "quantity": 1}],
            customer=customer_id,
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return session.url

    async def list_active_subscriptions(self, customer_id: str) -> list[str]:
        """Ids of the customer's active subscriptions."""
        subscriptions = await self._call(
            "list_subscriptions",
            stripe.Subscription.list,
            customer=customer_id,
            status="active",
        )
        return [subscription.id for subscription in subscriptions.data]

    async def cancel_subscription(self, subscription_id: str) -> None:
        """Cancel a subscription immediately."""
        await self._call("cancel_subscription", stripe.Subscription.cancel, subscription_id)

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """
        Verify a webhook payload and parse it.

        Verification runs over the raw bytes before any JSON parsing.
        """
        if not self._webhook_secret:
            raise SignatureInvalid("Webhook secret is not configured")
        if not signature:
            raise SignatureInvalid("Missing Stripe-Signature header")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self._webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalid(f"Webhook signature verification failed: {e}") from e
        except UnicodeDecodeError as e:
            raise SignatureInvalid("Webhook payload is not UTF-8") from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise InvalidInput("Webhook payload is not valid JSON") from e
        if not isinstance(event, dict):
            raise InvalidInput("Webhook payload is not an event object")

        return event
