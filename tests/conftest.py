"""Pytest configuration and fixtures."""

import asyncio
import hashlib
import hmac
import json
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from gcbulkedit.config import Settings
from gcbulkedit.errors import UpstreamUnavailable
from gcbulkedit.main import create_app
from gcbulkedit.services import store as store_mod
from gcbulkedit.services.gateway import StripeGateway
from gcbulkedit.services.ledger import CustomerLedger
from gcbulkedit.services.store import RedisCustomerStore

WEBHOOK_SECRET = "whsec_test_secret"
FREE_LIMIT = 50


class FakeScript:
    def __init__(self, handler):
        self._handler = handler

    async def __call__(self, keys=None, args=None, client=None):
        await asyncio.sleep(0)
        return self._handler(keys or [], args or [])


class FakeRedis:
    """In-memory stand-in for the Redis commands the stores use.

    Every command yields to the event loop first so concurrent callers
    interleave; scripts run without yielding, like real Lua scripts.
    """

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.closed = False

    def _exists(self, key):
        return key in self.strings or key in self.hashes or key in self.sets or key in self.zsets

    async def get(self, key):
        await asyncio.sleep(0)
        return self.strings.get(key)

    async def set(self, key, value, nx=False):
        await asyncio.sleep(0)
        if nx and key in self.strings:
            return None
        self.strings[key] = str(value)
        return True

    async def delete(self, *keys):
        await asyncio.sleep(0)
        removed = 0
        for key in keys:
            for space in (self.strings, self.hashes, self.sets, self.zsets):
                if space.pop(key, None) is not None:
                    removed += 1
        return removed

    async def hset(self, key, *args, mapping=None):
        await asyncio.sleep(0)
        h = self.hashes.setdefault(key, {})
        if mapping:
            h.update({k: str(v) for k, v in mapping.items()})
        if len(args) >= 2:
            h[str(args[0])] = str(args[1])
        return True

    async def hgetall(self, key):
        await asyncio.sleep(0)
        return dict(self.hashes.get(key, {}))

    async def sadd(self, key, *values):
        await asyncio.sleep(0)
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(values)
        return len(s) - before

    async def smembers(self, key):
        await asyncio.sleep(0)
        return set(self.sets.get(key, set()))

    async def zadd(self, key, mapping):
        await asyncio.sleep(0)
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def zrevrange(self, key, start, end):
        await asyncio.sleep(0)
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1], reverse=True)
        members = [member for member, _ in ordered]
        return members[start:] if end == -1 else members[start : end + 1]

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True

    # ---------- scripts ----------

    def register_script(self, source):
        handlers = {
            store_mod.CONSUME_SCRIPT: self._consume,
            store_mod.SET_IF_EXISTS_SCRIPT: self._set_if_exists,
        }
        return FakeScript(handlers[source])

    def _consume(self, keys, args):
        h = self.hashes.get(keys[0])
        if h is None:
            return None
        count, default_limit, now = int(args[0]), int(args[1]), str(args[2])
        h["last_action_at"] = now
        remaining = int(h.get("free_actions_remaining", default_limit))
        if h.get("subscription_status") == "1":
            return [1, remaining]
        remaining = max(0, remaining - count)
        h["free_actions_remaining"] = str(remaining)
        return [0, remaining]

    def _set_if_exists(self, keys, args):
        h = self.hashes.get(keys[0])
        if h is None:
            return 0
        h[str(args[0])] = str(args[1])
        return 1

    # ---------- helpers ----------

    def seed_customer(
        self,
        customer_id,
        *emails,
        remaining=None,
        subscribed=False,
        prefix="gcbe",
    ):
        """Write a customer document directly, as an older deployment would have."""
        h = {
            "customer_id": customer_id,
            "subscription_status": "1" if subscribed else "0",
            "plan": "price_test",
        }
        if remaining is not None:
            h["free_actions_remaining"] = str(remaining)
        self.hashes[f"{prefix}:customer:{customer_id}"] = h
        self.sets[f"{prefix}:customer:{customer_id}:emails"] = set(emails)
        for email in emails:
            self.strings[f"{prefix}:email:{email}"] = customer_id

    def customer_hashes(self, prefix="gcbe"):
        return {k: v for k, v in self.hashes.items() if k.startswith(f"{prefix}:customer:")}


class FakeGateway(StripeGateway):
    """Stripe gateway with in-memory customers; webhook verification is real."""

    def __init__(self, webhook_secret: str | None = WEBHOOK_SECRET):
        super().__init__(api_key=None, webhook_secret=webhook_secret, price_id="price_test")
        self.customers: list[str] = []
        self.active_subscriptions: dict[str, list[str]] = {}
        self.cancelled: list[str] = []
        self.checkouts: list[dict] = []
        self.fail_cancellation = False

    async def create_customer(self, email: str) -> str:
        await asyncio.sleep(0)
        self.customers.append(email)
        return f"cus_{len(self.customers)}"

    async def create_checkout_session(self, customer_id, success_url, cancel_url):
        self.checkouts.append(
            {"customer": customer_id, "success_url": success_url, "cancel_url": cancel_url}
        )
        return f"https://checkout.stripe.test/c/{customer_id}"

    async def list_active_subscriptions(self, customer_id):
        return list(self.active_subscriptions.get(customer_id, []))

    async def cancel_subscription(self, subscription_id):
        if self.fail_cancellation:
            raise UpstreamUnavailable("Payment gateway request failed")
        self.cancelled.append(subscription_id)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode()
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_completed_event(customer_id: str, event_id: str = "evt_1", mode="subscription") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_test", "customer": customer_id, "mode": mode}},
        }
    ).encode()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store(fake_redis) -> RedisCustomerStore:
    return RedisCustomerStore(fake_redis, prefix="gcbe")


@pytest.fixture
def ledger(store, gateway) -> CustomerLedger:
    return CustomerLedger(store, gateway, free_actions_limit=FREE_LIMIT, plan="price_test")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        free_actions_limit=FREE_LIMIT,
        prometheus_enabled=False,
        static_dir=tmp_path / "public",
        stripe_webhook_secret=SecretStr(WEBHOOK_SECRET),
        stripe_price_id="price_test",
        public_base_url="https://gcbulkedit.test",
    )


@pytest.fixture
def client(settings, fake_redis, gateway) -> Iterator[TestClient]:
    app = create_app(settings, redis=fake_redis, gateway=gateway)
    with TestClient(app) as test_client:
        yield test_client
