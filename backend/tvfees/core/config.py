from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "tvfees"
    version: str = "0.1.0"
    DEBUG: bool = False
    APP_DATABASE_DSN: str = "sqlite:////tmp/tvfees.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Identity provider tokens
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Fee defaults
    DEFAULT_YEARLY_FEE: Decimal = Decimal("1000")
    WIRE_CHARGE_PER_METER: Decimal = Decimal("5")
    LATE_FEE_PERCENT: Decimal = Decimal("10")
    CURRENCY: str = "INR"

    # Redirect channel (payment-app deep link)
    REDIRECT_SCHEME: str = "upi"
    PAYEE_ID: str = "tvchannel@upi"
    PAYEE_NAME: str = "Local TV Channel"
    MERCHANT_CATEGORY_CODE: str = "4899"  # cable and pay television services

    # Receipts
    RECEIPT_PREFIX: str = "RCP"
    RECEIPT_SEQUENCE_WIDTH: int = 3

    # Event delivery
    EVENT_WEBHOOK_URL: str = ""
    EVENT_WEBHOOK_SECRET: str = "whsec_default_secret"
    EVENT_MAX_ATTEMPTS: int = 5

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def event_delivery_enabled(self) -> bool:
        return bool(self.EVENT_WEBHOOK_URL)


settings = Settings()
