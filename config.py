"""Configuration for the PharmaCare backend."""

from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service configuration.

    All settings can be overridden via environment variables.
    """

    # Service configuration
    SERVICE_NAME: str = Field(default="pharmacare-api")
    PORT: int = Field(default=8000, ge=1, le=65535)
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    PUBLIC_BASE_URL: Optional[str] = Field(default=None)

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    DATABASE_NAME: Optional[str] = Field(default=None)

    # Billing
    TAX_RATE: Decimal = Field(default=Decimal("0.05"), ge=0)
    BILL_HISTORY_LIMIT: int = Field(default=50, ge=1)

    # Dashboard thresholds
    EXPIRY_WARNING_DAYS: int = Field(default=30, ge=0)
    LOW_STOCK_THRESHOLD: int = Field(default=10, ge=1)

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(
        default="change-me-in-production-with-at-least-32-chars"
    )
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=12 * 60, ge=1)
    RESET_TOKEN_EXPIRE_MINUTES: int = Field(default=15, ge=1)
    PASSWORD_HASH_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Default admin account created on startup
    ADMIN_USERNAME: str = Field(default="admin")
    ADMIN_EMAIL: str = Field(default="admin@pharmacy.com")
    ADMIN_PASSWORD: str = Field(default="admin123")

    # CORS
    CORS_ORIGINS: str = Field(default="*")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def base_url(self) -> str:
        return self.PUBLIC_BASE_URL or f"http://localhost:{self.PORT}"


settings = Settings()
