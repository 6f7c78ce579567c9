# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string; sqlite works for local runs)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (product image uploads)
      - PAYSTACK_SECRET_KEY (payment gateway; without it checkout still
        creates orders but returns a payment warning)
    """

    PROJECT_NAME: str = "Hijab World API"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str

    # Supabase (auth + storage)
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_STORAGE_BUCKET: str = "assets"

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Payment gateway (Paystack)
    PAYSTACK_SECRET_KEY: str | None = None
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYMENT_CURRENCY: str = "NGN"
    PAYMENT_TIMEOUT_SECONDS: float = 15.0
    # Extra attempts on the verify path only; initialize is never retried
    PAYMENT_VERIFY_RETRIES: int = 2

    # Checkout pricing rules
    SHIPPING_FEE: float = 0.0
    # 1.0 keeps the current "tax equals subtotal" rule
    TAX_RATE: float = 1.0
    DEFAULT_COUNTRY: str = "Nigeria"

    # Shown to customers when the payment link cannot be issued
    SUPPORT_EMAIL: str = "support@hijabworld.com"
    SUPPORT_PHONE: str = "+234-XXX-XXXX-XXX"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
