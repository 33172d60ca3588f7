from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

_PREFIX = "CHECKOUT_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None
    currency: str = "USD"
    gateway_timeout_seconds: float = 10.0
    notification_timeout_seconds: float = 5.0
    settlement_claim_ttl_seconds: int = 120
    stripe_api_key: str | None = None
    stripe_api_base: str = "https://api.stripe.com"
    mail_sender: str = "orders@example.com"
    log_level: str = "INFO"
    log_json: bool = True
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(_PREFIX + name)
            if value is None or not value.strip():
                return None
            return value.strip()

        defaults = cls()
        return cls(
            database_url=get("DATABASE_URL"),
            currency=(get("CURRENCY") or defaults.currency).upper(),
            gateway_timeout_seconds=_positive_float(
                "GATEWAY_TIMEOUT_SECONDS", get("GATEWAY_TIMEOUT_SECONDS"),
                defaults.gateway_timeout_seconds,
            ),
            notification_timeout_seconds=_positive_float(
                "NOTIFICATION_TIMEOUT_SECONDS", get("NOTIFICATION_TIMEOUT_SECONDS"),
                defaults.notification_timeout_seconds,
            ),
            settlement_claim_ttl_seconds=_positive_int(
                "SETTLEMENT_CLAIM_TTL_SECONDS", get("SETTLEMENT_CLAIM_TTL_SECONDS"),
                defaults.settlement_claim_ttl_seconds,
            ),
            stripe_api_key=get("STRIPE_API_KEY"),
            stripe_api_base=get("STRIPE_API_BASE") or defaults.stripe_api_base,
            mail_sender=get("MAIL_SENDER") or defaults.mail_sender,
            log_level=(get("LOG_LEVEL") or defaults.log_level).upper(),
            log_json=_flag("LOG_JSON", get("LOG_JSON"), defaults.log_json),
            host=get("HOST") or defaults.host,
            port=_positive_int("PORT", get("PORT"), defaults.port),
        )


def _positive_float(name: str, raw: str | None, default: float) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{_PREFIX}{name} must be > 0, got {raw!r}")
    return value


def _positive_int(name: str, raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{_PREFIX}{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{_PREFIX}{name} must be > 0, got {raw!r}")
    return value


def _flag(name: str, raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    if raw.lower() in _TRUE:
        return True
    if raw.lower() in _FALSE:
        return False
    raise ValueError(f"{_PREFIX}{name} must be a boolean, got {raw!r}")
