"""
Configuration — environment-driven, immutable.

    settings = Settings.from_env()
    testing = settings.with_(environment="testing", vat_rate=Decimal("0.15"))
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal


# Environments where the gateway IP allow-list is not enforced.
LOCAL_ENVIRONMENTS = frozenset({"development", "testing"})


def _flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _csv(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    """All runtime configuration, read once at startup."""

    database_url: str = "sqlite+aiosqlite:///./storefront.db"
    environment: str = "development"
    log_level: str = "INFO"

    # Auth
    jwt_secret: str = "change-me"
    admin_jwt_secret: str = "change-me"
    token_ttl_hours: int = 24

    # PayFast
    payfast_merchant_id: str | None = None
    payfast_merchant_key: str | None = None
    payfast_passphrase: str | None = None
    payfast_mode: str = "sandbox"
    payfast_return_url: str | None = None
    payfast_verify_server: bool = False
    payfast_verify_timeout: float = 10.0
    trust_proxy: bool = False

    # Pricing
    vat_rate: Decimal = Decimal("0.15")

    # URLs
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:8000"
    cors_origins: tuple[str, ...] = field(default=("http://localhost:3000",))

    # Inventory
    low_stock_threshold: int = 10

    @classmethod
    def from_env(cls) -> Settings:
        jwt_secret = os.getenv("JWT_SECRET", "change-me")
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./storefront.db"),
            environment=os.getenv("ENVIRONMENT", "development").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            jwt_secret=jwt_secret,
            admin_jwt_secret=os.getenv("ADMIN_JWT_SECRET") or jwt_secret,
            token_ttl_hours=int(os.getenv("TOKEN_TTL_HOURS", "24")),
            payfast_merchant_id=os.getenv("PAYFAST_MERCHANT_ID") or None,
            payfast_merchant_key=os.getenv("PAYFAST_MERCHANT_KEY") or None,
            payfast_passphrase=os.getenv("PAYFAST_PASSPHRASE") or None,
            payfast_mode=os.getenv("PAYFAST_MODE", "sandbox").lower(),
            payfast_return_url=os.getenv("PAYFAST_RETURN_URL") or None,
            payfast_verify_server=_flag("PAYFAST_VERIFY_SERVER"),
            payfast_verify_timeout=float(os.getenv("PAYFAST_VERIFY_TIMEOUT", "10")),
            trust_proxy=_flag("TRUST_PROXY"),
            vat_rate=Decimal(os.getenv("VAT_RATE", "0.15")),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
            backend_url=os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/"),
            cors_origins=_csv("CORS_ORIGINS", "http://localhost:3000"),
            low_stock_threshold=int(os.getenv("LOW_STOCK_THRESHOLD", "10")),
        )

    def with_(self, **changes: object) -> Settings:
        """Copy with overrides."""
        return replace(self, **changes)  # type: ignore[arg-type]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def enforce_gateway_ips(self) -> bool:
        return self.environment not in LOCAL_ENVIRONMENTS

    @property
    def payfast_live(self) -> bool:
        return self.payfast_mode == "live"


__all__ = ("Settings", "LOCAL_ENVIRONMENTS")
