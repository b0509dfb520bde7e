from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "eventplan"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/eventplan.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Actor tokens
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Payments
    PAYMENT_ENV: str = "sandbox"  # "sandbox" or "production"
    PAYMENT_CURRENCY: str = "XAF"
    SANDBOX_CURRENCY: str = "EUR"
    PHONE_COUNTRY_CODE: str = "242"

    # Polling bounds for the payment flow
    PAYMENT_POLL_INTERVAL_SECONDS: float = 3.0
    PAYMENT_POLL_TIMEOUT_SECONDS: float = 120.0
    PAYMENT_POLL_MAX_ERRORS: int = 3

    # Pending payments older than this are given up on by the worker
    PAYMENT_ABANDON_AFTER_HOURS: int = 24

    # Entitlement snapshots
    ENTITLEMENTS_CACHE_TTL_SECONDS: int = 300
    ENTITLEMENTS_CACHE_MAXSIZE: int = 1024

    # MTN Mobile Money (collection API)
    mtn_base_url: str = "https://sandbox.momodeveloper.mtn.com"
    mtn_subscription_key: str = ""
    mtn_api_user: str = ""
    mtn_api_key: str = ""
    mtn_target_environment: str = "sandbox"

    # Airtel Money
    airtel_base_url: str = "https://openapiuat.airtel.africa"
    airtel_client_id: str = ""
    airtel_client_secret: str = ""
    airtel_country: str = "CG"
    airtel_currency: str = "XAF"

    # Provider callbacks are signed with HMAC-SHA256 over the raw body
    payment_callback_secret: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def is_sandbox(self) -> bool:
        return self.PAYMENT_ENV == "sandbox"

    @property
    def billing_currency(self) -> str:
        return self.SANDBOX_CURRENCY if self.is_sandbox else self.PAYMENT_CURRENCY


settings = Settings()
