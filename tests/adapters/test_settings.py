from __future__ import annotations

import pytest

from storefront_checkout.config import Settings


def test_defaults_without_environment() -> None:
    settings = Settings.from_env({})

    assert settings.database_url is None
    assert settings.stripe_api_key is None
    assert settings.currency == "USD"
    assert settings.gateway_timeout_seconds == 10.0
    assert settings.notification_timeout_seconds == 5.0
    assert settings.settlement_claim_ttl_seconds == 120
    assert settings.log_json is True
    assert settings.port == 8000


def test_reads_prefixed_variables() -> None:
    settings = Settings.from_env(
        {
            "CHECKOUT_DATABASE_URL": "sqlite+aiosqlite:///checkout.db",
            "CHECKOUT_CURRENCY": "eur",
            "CHECKOUT_GATEWAY_TIMEOUT_SECONDS": "2.5",
            "CHECKOUT_LOG_JSON": "false",
            "CHECKOUT_LOG_LEVEL": "debug",
            "CHECKOUT_PORT": "9000",
            "DATABASE_URL": "ignored",
        }
    )

    assert settings.database_url == "sqlite+aiosqlite:///checkout.db"
    assert settings.currency == "EUR"
    assert settings.gateway_timeout_seconds == 2.5
    assert settings.log_json is False
    assert settings.log_level == "DEBUG"
    assert settings.port == 9000


def test_blank_values_fall_back_to_defaults() -> None:
    assert Settings.from_env({"CHECKOUT_STRIPE_API_KEY": "  "}).stripe_api_key is None


@pytest.mark.parametrize(
    "env",
    [
        {"CHECKOUT_GATEWAY_TIMEOUT_SECONDS": "soon"},
        {"CHECKOUT_GATEWAY_TIMEOUT_SECONDS": "0"},
        {"CHECKOUT_SETTLEMENT_CLAIM_TTL_SECONDS": "1.5"},
        {"CHECKOUT_PORT": "-1"},
        {"CHECKOUT_LOG_JSON": "maybe"},
    ],
)
def test_invalid_values_raise(env: dict[str, str]) -> None:
    with pytest.raises(ValueError):
        Settings.from_env(env)
