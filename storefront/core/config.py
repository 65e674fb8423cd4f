"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings exposed via dependency injection throughout the app."""

    # Read .env with BOM tolerance; case-sensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=True,
    )

    APP_NAME: str = "Storefront API"
    ENV: str = "dev"  # dev | staging | prod
    DEBUG: bool = False
    LOG_LEVEL: str | None = None  # defaults to DEBUG when DEBUG is on, else INFO
    LOG_JSON: bool = True
    # Key rate limits and audit rows by X-Forwarded-For; only behind a trusted proxy.
    TRUST_PROXY_HEADERS: bool = False

    # JWT
    SECRET_KEY: str  # set via env/.env
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    JWT_ISSUER: str = "storefront-api"
    JWT_AUDIENCE: str = "storefront-clients"

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # DB
    DB_URL: str | None = None  # full URL, overrides the DB_* parts
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "storefront"
    DB_PASSWORD: str = ""  # set via env/.env
    DB_NAME: str = "storefront"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_CREATE_ALL: bool = True

    # Worker thread limits for blocking calls (bcrypt, object storage).
    SECURITY_MAX_CONCURRENCY: int = 4
    STORAGE_MAX_CONCURRENCY: int = 8

    # Declared request bodies above this are rejected with 413. Base64 images
    # inflate by a third, so this sits well above MAX_IMAGE_BYTES.
    MAX_REQUEST_BYTES: int = 40 * 1024 * 1024
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024  # 5 MB
    MAX_PRODUCT_IMAGES: int = 5

    # Object storage (S3 compatible)
    STORAGE_ENDPOINT: str | None = None
    STORAGE_ACCESS_KEY: str | None = None
    STORAGE_SECRET_KEY: str | None = None
    STORAGE_BUCKET: str = "storefront"
    STORAGE_REGION: str = "auto"
    STORAGE_PRESIGN_EXPIRES_SEC: int = 3600

    # AbacatePay
    ABACATE_PAY_URL: str = "https://api.abacatepay.com"
    ABACATE_PAY_API_KEY: str = ""
    ABACATE_PAY_WEBHOOK_SECRET: str = ""
    ABACATE_PAY_RETURN_URL: str = "http://localhost:5173/billing"
    ABACATE_PAY_COUPONS: list[str] = Field(default_factory=lambda: ["RRFULLSTACKDEVS"])
    ABACATE_PAY_TIMEOUT_SEC: float = 30.0

    # Rate limits, see storefront.core.rate_limit.limiter for syntax.
    AUTH_RATE: str = "10/minute"
    PUBLIC_EVENT_RATE: str = "120/minute"

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )


settings = Settings()
