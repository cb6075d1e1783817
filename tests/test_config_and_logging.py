from gcbulkedit.config import Environment, Settings
from gcbulkedit.utils.logging import add_service_info, filter_sensitive_data


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.free_actions_limit == 100
    assert settings.environment == Environment.DEVELOPMENT
    assert settings.stripe_webhook_secret is None
    assert not settings.is_production


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("FREE_ACTIONS_LIMIT", "50")
    monkeypatch.setenv("STRIPE_PRICE_ID", "price_other")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_abc")
    monkeypatch.setenv("ENVIRONMENT", "production")

    settings = Settings(_env_file=None)
    assert settings.free_actions_limit == 50
    assert settings.stripe_price_id == "price_other"
    assert settings.stripe_webhook_secret.get_secret_value() == "whsec_abc"
    assert settings.is_production


def test_sensitive_values_are_masked():
    event = filter_sensitive_data(
        None,
        "info",
        {
            "event": "Stripe call failed",
            "stripe_signature": "t=1700000000,v1=abcdef0123456789",
            "webhook_secret": "short",
            "customer_id": "cus_1",
        },
    )
    assert event["stripe_signature"] == "t=17...6789"
    assert event["webhook_secret"] == "***REDACTED***"
    assert event["customer_id"] == "cus_1"


def test_service_info_added():
    event = add_service_info(None, "info", {"event": "x"})
    assert event["service"] == "gcbulkedit-api"
    assert event["version"] == "0.1.0"


def test_customer_emails_keep_only_domain():
    event = filter_sensitive_data(
        None,
        "info",
        {
            "event": "Lost email claim to concurrent insert",
            "email": "alice@example.com",
            "emails": {"bob@x.com", "alice@example.com"},
            "new_email": "not-an-email",
        },
    )
    assert event["email"] == "a***@example.com"
    assert event["emails"] == ["a***@example.com", "b***@x.com"]
    assert event["new_email"] == "***REDACTED***"
    assert event["event"] == "Lost email claim to concurrent insert"
