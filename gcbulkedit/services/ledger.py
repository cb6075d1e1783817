"""Customer identity and free-action quota ledger.

Maps email aliases to one payment identity and tracks the subscription flag
and the free-action balance. State machine per customer:

| Transition              | Trigger                  | Effect                           |
|-------------------------|--------------------------|----------------------------------|
| FREE(n) -> SUBSCRIBED   | checkout completed event | subscription_status = true       |
| SUBSCRIBED -> FREE(n)   | unsubscribe request      | subscription_status = false      |
| FREE(n) -> FREE(n - k)  | consume k actions        | floor at zero                    |
| SUBSCRIBED -> SUBSCRIBED| consume k actions        | only last_action_at moves        |
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import structlog

from gcbulkedit.errors import InvalidInput, NotFound, UpstreamUnavailable
from gcbulkedit.models import CustomerRecord
from gcbulkedit.services.gateway import PaymentGateway
from gcbulkedit.services.store import RedisCustomerStore

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")
# Gateway ids are word characters; a ":" would address another store key.
CUSTOMER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

SUBSCRIBE_MESSAGE = "No free actions remaining. Please subscribe to continue."
NO_SUBSCRIPTION_MESSAGE = "No active subscription"


def normalize_email(raw: str | None) -> str:
    """Trim and lower-case an email, rejecting anything not shaped like local@domain."""
    if raw is None or not isinstance(raw, str):
        raise InvalidInput("Email required")
    email = raw.strip().lower()
    if not email:
        raise InvalidInput("Email required")
    if not EMAIL_PATTERN.match(email):
        raise InvalidInput("Invalid email address")
    return email


def _require_customer_id(customer_id: str | None) -> str:
    if not customer_id:
        raise InvalidInput("Customer ID required")
    if not isinstance(customer_id, str) or not CUSTOMER_ID_PATTERN.match(customer_id):
        raise InvalidInput("Invalid customer ID")
    return customer_id


def _require_count(count: int) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise InvalidInput("action_count must be a positive integer")
    return count


@dataclass(frozen=True)
class ActionCheck:
    """Outcome of a dry-run eligibility check."""

    allowed: bool
    subscribed: bool
    free_actions_remaining: int
    message: str | None = None


@dataclass(frozen=True)
class QuotaStatus:
    """Subscription flag and the resolved free-action balance."""

    subscribed: bool
    free_actions_remaining: int

    @property
    def can_perform_action(self) -> bool:
        return self.subscribed or self.free_actions_remaining > 0


class CustomerLedger:
    """Identity resolution, quota consumption and subscription transitions."""

    def __init__(
        self,
        store: RedisCustomerStore,
        gateway: PaymentGateway,
        free_actions_limit: int,
        plan: str | None = None,
        public_base_url: str = "https://gcbulkedit.dev",
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._limit = free_actions_limit
        self._plan = plan
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def free_actions_limit(self) -> int:
        return self._limit

    def remaining(self, record: CustomerRecord | None) -> int:
        """Resolved free-action balance; an unset balance means the full quota."""
        if record is None or record.free_actions_remaining is None:
            return self._limit
        return max(0, record.free_actions_remaining)

    def status_of(self, record: CustomerRecord | None) -> QuotaStatus:
        if record is None:
            return QuotaStatus(subscribed=False, free_actions_remaining=self._limit)
        return QuotaStatus(
            subscribed=record.subscription_status,
            free_actions_remaining=self.remaining(record),
        )

    # ============ Identity ============

    async def lookup(self, email: str | None) -> CustomerRecord | None:
        """Find the customer owning an email without creating one."""
        return await self._store.find_by_email(normalize_email(email))

    async def resolve(self, email: str | None) -> CustomerRecord:
        """
        Return the customer for an email, creating one on first sight.

        A new identity is requested from the gateway and then inserted with an
        atomic email claim. When a concurrent request wins the claim, the
        lookup is retried and the winner's record is returned.
        """
        normalized = normalize_email(email)

        customer = await self._store.find_by_email(normalized)
        if customer is not None:
            return customer

        customer_id = await self._gateway.create_customer(normalized)
        record = CustomerRecord(
            customer_id=customer_id,
            emails={normalized},
            subscription_status=False,
            free_actions_remaining=self._limit,
            plan=self._plan,
            created_at=datetime.now(UTC),
        )

        if await self._store.insert(record):
            logger.info("Inserted new customer", customer_id=customer_id)
            return record

        logger.warning(
            "Concurrent first-time resolve; discarding gateway customer",
            orphaned_customer_id=customer_id,
        )
        customer = await self._store.find_by_email(normalized)
        if customer is None:
            raise UpstreamUnavailable("Customer record could not be resolved")
        return customer

    async def link_email(self, customer_id: str | None, new_email: str | None) -> bool:
        """
        Attach an email alias to an existing customer.

        Returns True if the alias was added, False if it was already linked to
        this customer. Raises ConflictError if another customer owns it.
        """
        if not customer_id or not new_email:
            raise InvalidInput("Missing data")
        _require_customer_id(customer_id)
        normalized = normalize_email(new_email)

        if await self._store.get(customer_id) is None:
            raise NotFound("Customer not found")

        added = await self._store.add_email(customer_id, normalized)
        if added:
            logger.info("Linked email to customer", customer_id=customer_id)
        return added

    # ============ Quota ============

    async def check_subscription(self, customer_id: str | None) -> QuotaStatus:
        """Subscription flag and balance by gateway id; unknown ids look fresh."""
        _require_customer_id(customer_id)
        return self.status_of(await self._store.get(customer_id))

    async def check_action(self, email: str | None, action_count: int = 1) -> ActionCheck:
        """Dry-run: may this customer perform ``action_count`` actions? Never consumes."""
        _require_count(action_count)
        customer = await self.resolve(email)
        status = self.status_of(customer)

        if status.subscribed:
            return ActionCheck(True, True, status.free_actions_remaining)
        if status.free_actions_remaining >= action_count:
            return ActionCheck(True, False, status.free_actions_remaining)
        return ActionCheck(False, False, status.free_actions_remaining, SUBSCRIBE_MESSAGE)

    async def consume_actions(self, email: str | None, action_count: int = 1) -> QuotaStatus:
        """Consume free actions for an existing customer, flooring at zero."""
        _require_count(action_count)
        customer = await self.lookup(email)
        if customer is None:
            raise NotFound("Customer not found")

        result = await self._store.consume(
            customer.customer_id, action_count, self._limit, datetime.now(UTC)
        )
        if result is None:
            raise NotFound("Customer not found")

        subscribed, remaining = result
        return QuotaStatus(subscribed=subscribed, free_actions_remaining=remaining)

    async def action_status(self, email: str | None) -> QuotaStatus:
        """Read-only quota preview; unknown emails are previewed as fresh customers."""
        return self.status_of(await self.lookup(email))

    # ============ Subscription ============

    async def create_checkout(self, email: str | None) -> str:
        """Resolve the customer and open a hosted subscription checkout."""
        customer = await self.resolve(email)
        return await self._gateway.create_checkout_session(
            customer.customer_id,
            success_url=f"{self._public_base_url}/payment-success?customer_id={customer.customer_id}",
            cancel_url=f"{self._public_base_url}/payment-cancel",
        )

    async def activate_subscription(self, customer_id: str) -> bool:
        """
        Mark an existing customer subscribed. Idempotent.

        Never creates a record; returns False if the customer is unknown.
        """
        _require_customer_id(customer_id)
        updated = await self._store.set_subscription(customer_id, True)
        if updated:
            logger.info("Customer subscription marked active", customer_id=customer_id)
        else:
            logger.warning("Subscription event for unknown customer", customer_id=customer_id)
        return updated

    async def unsubscribe(self, email: str | None) -> str | None:
        """
        Cancel the customer's gateway subscriptions and clear the local flag.

        Gateway failures are logged; the local flag is cleared regardless and
        the free-action balance is preserved. Returns an informational message.
        """
        customer = await self.lookup(email)
        if customer is None:
            raise NotFound("Customer not found")

        if not customer.subscription_status:
            return NO_SUBSCRIPTION_MESSAGE

        try:
            for subscription_id in await self._gateway.list_active_subscriptions(
                customer.customer_id
            ):
                await self._gateway.cancel_subscription(subscription_id)
        except UpstreamUnavailable as e:
            logger.error(
                "Gateway cancellation failed; clearing local subscription anyway",
                customer_id=customer.customer_id,
                error=e.message,
            )

        await self._store.set_subscription(customer.customer_id, False)
        logger.info("Unsubscribed customer", customer_id=customer.customer_id)
        return None

    # ============ Preferences ============

    async def get_preferences(self, email: str | None) -> dict[str, Any]:
        customer = await self.lookup(email)
        return customer.preferences if customer is not None else {}

    async def set_preferences(self, email: str | None, preferences: dict[str, Any]) -> None:
        customer = await self.lookup(email)
        if customer is None or not await self._store.set_preferences(
            customer.customer_id, preferences
        ):
            raise NotFound("Customer not found")
