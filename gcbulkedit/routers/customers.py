"""Checkout, identity and free-action quota endpoints used by the extension."""

from fastapi import APIRouter, Query

from gcbulkedit.dependencies import Ledger
from gcbulkedit.models import (
    ActionCheckResponse,
    ActionRequest,
    ActionStatusResponse,
    CheckoutResponse,
    ConsumeActionsResponse,
    EmailRequest,
    LinkEmailRequest,
    OperationResult,
    ResolveCustomerResponse,
    SubscriptionStatus,
)

router = APIRouter(tags=["customers"])


@router.post(
    "/create-checkout",
    response_model=CheckoutResponse,
    summary="Start a subscription checkout",
    description="Resolve (or create) the customer for an email and return a hosted checkout URL.",
)
async def create_checkout(body: EmailRequest, ledger: Ledger) -> CheckoutResponse:
    url = await ledger.create_checkout(body.email)
    return CheckoutResponse(url=url)


@router.post(
    "/resolve-customer",
    response_model=ResolveCustomerResponse,
    response_model_exclude_none=True,
    summary="Look up the customer for an email",
)
async def resolve_customer(body: EmailRequest, ledger: Ledger) -> ResolveCustomerResponse:
    """Look up without creating."""
    customer = await ledger.lookup(body.email)
    if customer is None:
        return ResolveCustomerResponse(found=False)

    return ResolveCustomerResponse(
        found=True,
        customer_id=customer.customer_id,
        subscribed=customer.subscription_status,
        free_actions_remaining=ledger.remaining(customer),
    )


@router.get(
    "/check-subscription",
    response_model=SubscriptionStatus,
    summary="Subscription status by customer id",
)
async def check_subscription(
    ledger: Ledger,
    customer_id: str | None = Query(None),
) -> SubscriptionStatus:
    status = await ledger.check_subscription(customer_id)
    return SubscriptionStatus(
        subscribed=status.subscribed,
        free_actions_remaining=status.free_actions_remaining,
    )


@router.post(
    "/check-action",
    response_model=ActionCheckResponse,
    response_model_exclude_none=True,
    summary="Dry-run eligibility check",
    description="Creates the customer on first sight but never consumes free actions.",
)
async def check_action(body: ActionRequest, ledger: Ledger) -> ActionCheckResponse:
    check = await ledger.check_action(body.email, body.action_count)
    return ActionCheckResponse(
        allowed=check.allowed,
        subscribed=check.subscribed,
        free_actions_remaining=check.free_actions_remaining,
        message=check.message,
    )


@router.post(
    "/consume-actions",
    response_model=ConsumeActionsResponse,
    summary="Consume free actions",
)
async def consume_actions(body: ActionRequest, ledger: Ledger) -> ConsumeActionsResponse:
    status = await ledger.consume_actions(body.email, body.action_count)
    return ConsumeActionsResponse(
        success=True,
        subscribed=status.subscribed,
        free_actions_remaining=status.free_actions_remaining,
    )


@router.get(
    "/action-status",
    response_model=ActionStatusResponse,
    summary="Quota preview",
)
async def action_status(
    ledger: Ledger,
    email: str | None = Query(None),
) -> ActionStatusResponse:
    status = await ledger.action_status(email)
    return ActionStatusResponse(
        subscribed=status.subscribed,
        free_actions_remaining=status.free_actions_remaining,
        can_perform_action=status.can_perform_action,
    )


@router.post(
    "/unsubscribe",
    response_model=OperationResult,
    response_model_exclude_none=True,
    summary="Cancel the subscription for an email",
)
async def unsubscribe(body: EmailRequest, ledger: Ledger) -> OperationResult:
    message = await ledger.unsubscribe(body.email)
    return OperationResult(success=True, message=message)


@router.post(
    "/link-email",
    response_model=OperationResult,
    response_model_exclude_none=True,
    summary="Link an email alias to a customer",
)
async def link_email(body: LinkEmailRequest, ledger: Ledger) -> OperationResult:
    """``success`` is false when the alias was already linked to this customer."""
    added = await ledger.link_email(body.customer_id, body.new_email)
    return OperationResult(success=added)
