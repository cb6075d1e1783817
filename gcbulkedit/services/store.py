"""Redis-backed customer store.

Layout (all keys under the configured prefix):

- ``customer:<id>``         hash with the scalar customer fields
- ``customer:<id>:emails``  set of normalized emails
- ``email:<email>``         unique index, value is the owning customer id

Every mutation is a single atomic Redis operation: ``SET NX`` for claiming an
email, ``SADD`` for set-union, and Lua scripts for conditional updates.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from gcbulkedit.config import Settings
from gcbulkedit.errors import ConflictError, UpstreamUnavailable
from gcbulkedit.models import CustomerRecord

logger = structlog.get_logger()

# KEYS[1] customer hash; ARGV[1] count, ARGV[2] default limit, ARGV[3] timestamp.
# Returns nil for a missing customer, else {subscribed, remaining}.
CONSUME_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return nil
end
redis.call('HSET', KEYS[1], 'last_action_at', ARGV[3])
local subscribed = redis.call('HGET', KEYS[1], 'subscription_status')
local remaining = tonumber(redis.call('HGET', KEYS[1], 'free_actions_remaining'))
if remaining == nil then
  remaining = tonumber(ARGV[2])
end
if subscribed == '1' then
  return {1, remaining}
end
remaining = math.max(0, remaining - tonumber(ARGV[1]))
redis.call('HSET', KEYS[1], 'free_actions_remaining', remaining)
return {0, remaining}
"""

# KEYS[1] customer hash; ARGV[1] field, ARGV[2] value. Never creates the hash.
SET_IF_EXISTS_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
redis.call('HSET', KEYS[1], ARGV[1], ARGV[2])
return 1
"""


def create_redis(settings: Settings) -> Redis:
    """Redis client from settings, with socket timeouts bounding every call."""
    return Redis.from_url(
        str(settings.redis_url),
        decode_responses=True,
        socket_timeout=settings.redis_timeout_seconds,
        socket_connect_timeout=settings.redis_timeout_seconds,
    )


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class RedisCustomerStore:
    """Customer documents and the email uniqueness index."""

    def __init__(self, redis: Redis, prefix: str = "gcbe", timeout: float = 5.0) -> None:
        self._redis = redis
        self._prefix = prefix
        self._timeout = timeout
        self._consume = redis.register_script(CONSUME_SCRIPT)
        self._set_if_exists = redis.register_script(SET_IF_EXISTS_SCRIPT)

    # ---------- keys ----------

    def _customer_key(self, customer_id: str) -> str:
        return f"{self._prefix}:customer:{customer_id}"

    def _emails_key(self, customer_id: str) -> str:
        return f"{self._prefix}:customer:{customer_id}:emails"

    def _email_key(self, email: str) -> str:
        return f"{self._prefix}:email:{email}"

    async def _call(self, operation: str, awaitable: Any) -> Any:
        """Await a Redis call with a bounded timeout, mapping failures."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            logger.error("Customer store call failed", operation=operation, error=str(e))
            raise UpstreamUnavailable("Customer store unavailable") from e

    # ---------- reads ----------

    async def get(self, customer_id: str) -> CustomerRecord | None:
        """Load a customer by gateway id."""
        data = await self._call("hgetall", self._redis.hgetall(self._customer_key(customer_id)))
        if not data:
            return None
        emails = await self._call("smembers", self._redis.smembers(self._emails_key(customer_id)))

        remaining = data.get("free_actions_remaining")
        return CustomerRecord(
            customer_id=data.get("customer_id", customer_id),
            emails=set(emails),
            subscription_status=data.get("subscription_status") == "1",
            free_actions_remaining=int(remaining) if remaining is not None else None,
            plan=data.get("plan") or None,
            created_at=_parse_datetime(data.get("created_at")),
            last_action_at=_parse_datetime(data.get("last_action_at")),
            preferences=json.loads(data["preferences"]) if data.get("preferences") else {},
        )

    async def owner_of(self, email: str) -> str | None:
        """Return the customer id that owns a normalized email."""
        return await self._call("get", self._redis.get(self._email_key(email)))

    async def find_by_email(self, email: str) -> CustomerRecord | None:
        """Load the customer owning a normalized email."""
        customer_id = await self.owner_of(email)
        if customer_id is None:
            return None
        return await self.get(customer_id)

    # ---------- writes ----------

    async def insert(self, record: CustomerRecord) -> bool:
        """
        Insert a new customer and claim its emails.

        The customer document is written first, then each email is claimed with
        ``SET NX``. If any claim is lost to a concurrent insert, the draft
        document and the claims already made are removed and False is returned;
        the caller should look the email up again.
        """
        mapping: dict[str, str] = {
            "customer_id": record.customer_id,
            "subscription_status": "1" if record.subscription_status else "0",
            "plan": record.plan or "",
            "preferences": json.dumps(record.preferences),
        }
        if record.free_actions_remaining is not None:
            mapping["free_actions_remaining"] = str(record.free_actions_remaining)
        if record.created_at is not None:
            mapping["created_at"] = record.created_at.isoformat()

        customer_key = self._customer_key(record.customer_id)
        emails_key = self._emails_key(record.customer_id)
        await self._call("hset", self._redis.hset(customer_key, mapping=mapping))
        await self._call("sadd", self._redis.sadd(emails_key, *record.emails))

        claimed: list[str] = []
        for email in sorted(record.emails):
            won = await self._call(
                "set_nx", self._redis.set(self._email_key(email), record.customer_id, nx=True)
            )
            if not won:
                logger.info(
                    "Lost email claim to concurrent insert",
                    customer_id=record.customer_id,
                    email=email,
                )
                keys = [customer_key, emails_key, *(self._email_key(e) for e in claimed)]
                await self._call("delete", self._redis.delete(*keys))
                return False
            claimed.append(email)

        return True

    async def add_email(self, customer_id: str, email: str) -> bool:
        """
        Link an email to a customer.

        Returns True when the email was newly linked, False when it already
        belonged to this customer. Raises ConflictError if another customer
        owns it.
        """
        won = await self._call(
            "set_nx", self._redis.set(self._email_key(email), customer_id, nx=True)
        )
        if not won:
            owner = await self.owner_of(email)
            if owner != customer_id:
                raise ConflictError("Email is already linked to another customer")
            # Repair a partially written link
            await self._call("sadd", self._redis.sadd(self._emails_key(customer_id), email))
            return False

        await self._call("sadd", self._redis.sadd(self._emails_key(customer_id), email))
        return True

    async def consume(
        self, customer_id: str, count: int, default_limit: int, now: datetime
    ) -> tuple[bool, int] | None:
        """
        Atomically consume free actions, flooring the balance at zero.

        Subscribed customers keep their balance; only ``last_action_at`` moves.
        Returns ``(subscribed, remaining)`` or None if the customer is missing.
        """
        result = await self._call(
            "consume",
            self._consume(
                keys=[self._customer_key(customer_id)],
                args=[count, default_limit, now.isoformat()],
            ),
        )
        if result is None:
            return None
        subscribed, remaining = result
        return bool(int(subscribed)), int(remaining)

    async def set_subscription(self, customer_id: str, active: bool) -> bool:
        """Set the subscription flag on an existing customer. False if missing."""
        updated = await self._call(
            "set_subscription",
            self._set_if_exists(
                keys=[self._customer_key(customer_id)],
                args=["subscription_status", "1" if active else "0"],
            ),
        )
        return bool(int(updated))

    async def set_preferences(self, customer_id: str, preferences: dict[str, Any]) -> bool:
        """Replace the preferences blob on an existing customer. False if missing."""
        updated = await self._call(
            "set_preferences",
            self._set_if_exists(
                keys=[self._customer_key(customer_id)],
                args=["preferences", json.dumps(preferences)],
            ),
        )
        return bool(int(updated))

    async def ping(self) -> bool:
        """Check store connectivity."""
        return bool(await self._call("ping", self._redis.ping()))
