"""Pydantic models for stored documents, API requests and responses."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


# ============ Stored documents ============


class CustomerRecord(BaseModel):
    """One customer per payment identity."""

    customer_id: str
    emails: set[str] = Field(default_factory=set)
    subscription_status: bool = False
    free_actions_remaining: int | None = None  # None means "never set"
    plan: str | None = None
    created_at: datetime | None = None
    last_action_at: datetime | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)


class BlogPost(BaseModel):
    """Blog post document."""

    slug: str = Field(..., min_length=1, max_length=200)
    title: str
    date: date
    description: str = ""
    content: str = ""


class BlogPostSummary(BaseModel):
    """Blog post listing entry (no body)."""

    slug: str
    title: str
    date: date
    description: str = ""


# ============ Requests ============


class EmailRequest(BaseModel):
    """Request carrying a single email address."""

    email: str | None = None


class ActionRequest(BaseModel):
    """Eligibility check / consumption request."""

    email: str | None = None
    action_count: int = Field(default=1, ge=1)


class LinkEmailRequest(BaseModel):
    """Attach an additional email alias to an existing customer."""

    customer_id: str | None = None
    new_email: str | None = None


class PreferencesUpdate(BaseModel):
    """Replace the stored UI settings blob for a customer."""

    email: str | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)


# ============ Responses ============


class CheckoutResponse(BaseModel):
    """Hosted checkout redirect target."""

    url: str


class ResolveCustomerResponse(BaseModel):
    """Identity lookup result."""

    found: bool
    customer_id: str | None = None
    subscribed: bool | None = None
    free_actions_remaining: int | None = None


class SubscriptionStatus(BaseModel):
    """Subscription flag and remaining quota."""

    subscribed: bool
    free_actions_remaining: int


class ActionCheckResponse(BaseModel):
    """Dry-run eligibility result."""

    allowed: bool
    subscribed: bool
    free_actions_remaining: int
    message: str | None = None


class ConsumeActionsResponse(BaseModel):
    """Result of consuming free actions."""

    success: bool
    subscribed: bool
    free_actions_remaining: int


class ActionStatusResponse(BaseModel):
    """Read-only quota preview."""

    subscribed: bool
    free_actions_remaining: int
    can_perform_action: bool


class OperationResult(BaseModel):
    """Generic success flag with an optional note."""

    success: bool
    message: str | None = None


class PreferencesResponse(BaseModel):
    """Stored UI settings blob."""

    preferences: dict[str, Any] = Field(default_factory=dict)


class WebhookAck(BaseModel):
    """Webhook acknowledgement."""

    received: bool = True


class HealthCheck(BaseModel):
    """Health check response."""

    status: str
    version: str
    environment: str
    redis: str
