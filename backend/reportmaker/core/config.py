from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger("reportmaker.core.config")

# Load .env.local then .env into os.environ before Settings is instantiated.
# override=False so values already present in the environment (CI, Cloud Run) win.
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_ENV_LOCAL = _PROJECT_ROOT / ".env.local"
_ENV_FILE = _PROJECT_ROOT / ".env"

if _ENV_LOCAL.exists():
    load_dotenv(_ENV_LOCAL, override=False)
    log.info("[config] Loaded .env.local from %s", _ENV_LOCAL)
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE, override=False)
    log.info("[config] Loaded .env from %s", _ENV_FILE)

_PROD_ENVS = {"prod", "production", "stage", "staging"}
_DEV_ENVS = {"dev", "development", "local", "test", "testing"}

_DEV_JWT_SECRET = "dev-jwt-secret-change-me"


class Settings(BaseSettings):
    # --- Core Infrastructure ---
    APP_ENV: str = Field(
        default="dev",
        validation_alias=AliasChoices("APP_ENV", "ENV", "PYTHON_ENV"),
    )
    DATABASE_URL: str = "sqlite:///./reportmaker.db"
    BUSINESS_NAME: str = "Inspection Report Maker"

    # --- Auth provider (JWTs minted by the hosted identity service) ---
    AUTH_JWT_SECRET: str = _DEV_JWT_SECRET
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: Optional[str] = None

    # --- Stripe Billing ---
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PRICE_PREMIUM: str = ""
    STRIPE_PRICE_SUPER: str = ""

    # --- Photos (bucket and credentials are read by infrastructure.s3 / storage) ---
    SIGNED_URL_TTL_SECONDS: int = 60 * 60
    PHOTO_MAX_DIMENSION: int = 1600

    # --- Application Behavior ---
    APP_BASE_URL: str = "http://localhost:3000"
    CORS_ALLOWED_ORIGINS: str = "http://127.0.0.1:3000,http://localhost:3000"
    # Testing aid only: forces every request's plan outside production.
    PLAN_OVERRIDE: Optional[str] = None
    SENTRY_DSN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=(str(_ENV_LOCAL), str(_ENV_FILE)),
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return (self.APP_ENV or "dev").strip().lower() in _PROD_ENVS

    @property
    def is_dev_mode(self) -> bool:
        return (self.APP_ENV or "dev").strip().lower() in _DEV_ENVS

    @property
    def cors_allowed_origin_list(self) -> list[str]:
        raw = (self.CORS_ALLOWED_ORIGINS or "").replace(";", ",")
        seen: set[str] = set()
        merged: list[str] = []
        for origin in raw.split(","):
            cleaned = origin.strip().rstrip("/")
            if cleaned and cleaned not in seen:
                seen.add(cleaned)
                merged.append(cleaned)
        return merged

    @property
    def price_to_plan(self) -> dict[str, str]:
        """Stripe price id -> plan key for the prices configured in this environment."""
        mapping: dict[str, str] = {}
        if self.STRIPE_PRICE_PREMIUM:
            mapping[self.STRIPE_PRICE_PREMIUM] = "premium"
        if self.STRIPE_PRICE_SUPER:
            mapping[self.STRIPE_PRICE_SUPER] = "super"
        return mapping

    @model_validator(mode="after")
    def _validate_and_warn(self):
        optional_keys = [
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
            "STRIPE_PRICE_PREMIUM",
            "STRIPE_PRICE_SUPER",
        ]
        missing_optional = [key for key in optional_keys if not (getattr(self, key, "") or "").strip()]
        if missing_optional:
            log.warning(
                "Missing/placeholder secrets%s: %s",
                " (dev allowed)" if self.is_dev_mode else "",
                ", ".join(sorted(missing_optional)),
            )

        if self.is_production:
            if not self.AUTH_JWT_SECRET or self.AUTH_JWT_SECRET == _DEV_JWT_SECRET:
                raise ValueError("AUTH_JWT_SECRET must be configured for production deployments")
            if self.DATABASE_URL.startswith("sqlite"):
                raise ValueError("DATABASE_URL must point at PostgreSQL for production deployments")
        return self


settings = Settings()
