"""Stripe webhook receiver.

The signature is verified over the raw request body before the payload is
parsed. Once verified, every event is acknowledged so the gateway stops
redelivering it, including event types that are not handled here.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Header, Request

from gcbulkedit.dependencies import Gateway, Ledger
from gcbulkedit.errors import InvalidInput, LedgerError
from gcbulkedit.models import WebhookAck

logger = structlog.get_logger()

router = APIRouter(tags=["webhook"])

CHECKOUT_COMPLETED = "checkout.session.completed"


async def handle_checkout_completed(event: dict[str, Any], ledger) -> None:
    data = event.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    if not isinstance(session, dict):
        logger.warning("Checkout event without a session object", event_id=event.get("id"))
        return

    mode = session.get("mode")
    if mode is not None and mode != "subscription":
        logger.info("Ignoring non-subscription checkout", event_id=event.get("id"), mode=mode)
        return

    customer_id = session.get("customer")
    if not customer_id:
        logger.warning("Checkout completed without a customer", event_id=event.get("id"))
        return

    await ledger.activate_subscription(customer_id)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Stripe webhook",
)
async def webhook(
    request: Request,
    ledger: Ledger,
    gateway: Gateway,
    stripe_signature: str | None = Header(None),
) -> WebhookAck:
    body = await request.body()

    # Raises SignatureInvalid (400) before anything is parsed or written
    try:
        event = gateway.construct_event(body, stripe_signature)
    except InvalidInput as e:
        logger.warning("Ignoring malformed webhook payload", error=e.message)
        return WebhookAck(received=True)

    event_type = event.get("type")
    log = logger.bind(event_id=event.get("id"), event_type=event_type)

    if event_type == CHECKOUT_COMPLETED:
        try:
            await handle_checkout_completed(event, ledger)
        except LedgerError as e:
            log.error("Failed to apply webhook event", error=e.message)
    else:
        log.debug("Unhandled webhook event type")

    return WebhookAck(received=True)
