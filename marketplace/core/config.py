from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import List, Optional


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "Marketplace API"
    API_V1_STR: str = "/api/v1"

    # Database
    DATABASE_URL: str

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Environment
    ENVIRONMENT: str = "development"
    ENV: Optional[str] = Field(default=None)

    DEBUG: bool = False

    # Monitoring (Optional - Add to .env for production)
    SENTRY_DSN: str = ""

    # Celery & Redis (Task Queue)
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Admin bootstrap
    DEFAULT_ADMIN_EMAIL: str = "admin@marketplace.local"
    DEFAULT_ADMIN_PASSWORD: str = ""

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True

    # Ratings
    RATING_RECONCILE_HOUR: int = 3  # UTC hour for the nightly summary reconciliation

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        return value.lower().strip()

    @field_validator("RATING_RECONCILE_HOUR")
    @classmethod
    def validate_reconcile_hour(cls, value: int) -> int:
        if not 0 <= value <= 23:
            raise ValueError("RATING_RECONCILE_HOUR must be between 0 and 23")
        return value

    @model_validator(mode="after")
    def validate_production_secrets(self):
        if self.ENVIRONMENT == "production":
            normalized_secret = (self.SECRET_KEY or "").strip()
            if len(normalized_secret) < 32 or "your-secret-key-here" in normalized_secret.lower():
                raise ValueError("SECRET_KEY must be at least 32 chars and not use placeholders in production")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()
