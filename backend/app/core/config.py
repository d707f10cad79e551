from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    ENV: str = "prod"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./vaultkeeper.db"

    JWT_SECRET: str = "CHANGE_ME"
    JWT_ACCESS_MINUTES: int = 60

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_POOL_RECYCLE_SECONDS: int = 1800

    ALLOWED_HOSTS: str = "localhost,127.0.0.1"
    SECURITY_HEADERS_ENABLED: bool = True

    # Payment webhooks (PayPal + Stripe)
    PAYMENTS_REQUIRE_WEBHOOK_SIGNATURE: bool = False
    PAYMENTS_HTTP_TIMEOUT_SECONDS: float = 20.0

    PAYPAL_CLIENT_ID: str | None = None
    PAYPAL_CLIENT_SECRET: str | None = None
    PAYPAL_WEBHOOK_ID: str | None = None  # habilita la verificacion de firma
    PAYPAL_API_BASE_URL: str = "https://api.paypal.com"

    STRIPE_WEBHOOK_SECRET: str | None = None  # habilita la verificacion de firma
    STRIPE_WEBHOOK_MAX_AGE_SECONDS: int = 300

    # Chat announcements
    CHAT_PLATFORM: str = "vaultkeeper"
    CHAT_SYSTEM_USERNAME: str = "System"

settings = Settings()
