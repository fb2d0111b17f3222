from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "tipflow"
    version: str = "0.1.0"
    APP_DOMAIN: str = "example.com"
    APP_DATABASE_DSN: str = "sqlite:////tmp/tipflow.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Operator endpoints (batch generation/processing). Empty disables the check.
    OPERATOR_API_KEY: str = ""

    CURRENCY: str = "KES"

    # Commission
    DEFAULT_COMMISSION_RATE: Decimal = Decimal("10")
    MAX_COMMISSION_RATE: Decimal = Decimal("100")

    # Settlement
    SETTLEMENT_AMOUNT_TOLERANCE: Decimal = Decimal("0.01")

    # Payout aggregation
    PAYOUT_MINIMUM_AMOUNT: Decimal = Decimal("100")
    PAYOUT_CARRY_FORWARD: bool = True
    PAYOUT_NOTIFICATION_DAYS: int = 3

    # Disbursement
    DISBURSEMENT_MAX_WORKERS: int = 8
    DISBURSEMENT_STALE_AFTER_MINUTES: int = 60
    RAIL_MAX_ATTEMPTS: int = 3
    RAIL_RETRY_BACKOFF_SECONDS: float = 0.5
    RAIL_TIMEOUT_SECONDS: float = 30.0

    # M-Pesa B2C (bulk mobile money)
    mpesa_environment: str = "sandbox"  # "sandbox" or "production"
    mpesa_consumer_key: str = ""
    mpesa_consumer_secret: str = ""
    mpesa_b2c_shortcode: str = ""
    mpesa_initiator_name: str = ""
    mpesa_security_credential: str = ""
    mpesa_b2c_result_url: str = ""
    mpesa_b2c_timeout_url: str = ""

    # Bank transfer provider
    bank_transfer_base_url: str = "https://api.sandbox.pesawise.xyz"
    bank_transfer_api_key: str = ""
    bank_transfer_callback_url: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"


settings = Settings()
