from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://tradesfinder:tradesfinder_dev@db:5432/tradesfinder"
    SQL_ECHO: bool = False

    # Security
    SECRET_KEY: str = "dev-secret-key-not-for-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    AUTH_COOKIE_NAME: str = "tf_access_token"
    ALLOWED_ORIGINS: str = "*"

    # Stripe
    STRIPE_SECRET_KEY: str = "mock_stripe_key"
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PRO_PRICE_ID: str = "price_mock_pro"
    STRIPE_PREMIUM_PRICE_ID: str = "price_mock_premium"

    # SendGrid
    SENDGRID_API_KEY: str = "mock_sendgrid_key"
    FROM_EMAIL: str = "noreply@tradesfinder.co.uk"

    # Marketplace rules
    JOB_EXPIRY_DAYS: int = 30
    BAD_PAYER_EXPIRY_DAYS: int = 730

    # App
    APP_ENV: str = "development"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
