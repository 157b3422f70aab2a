"""
Application Configuration
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings read from the environment (and an optional ``.env`` file).
    """

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_CONFIG_PATH: str = Field(
        default="logging.yml", description="Optional YAML dictConfig file"
    )
    APP_VERSION: str = Field(default="1.0.0", description="Reported by /health")

    # ===== AWS collaborators =====
    AWS_REGION: str = Field(default="us-east-1")
    S3_BUCKET_NAME: str = Field(default="", description="Bucket holding uploads")
    COGNITO_USER_POOL_ID: str = Field(default="", description="Token issuer pool")
    COGNITO_CLIENT_ID: str = Field(
        default="", description="Expected audience; empty disables the check"
    )

    # ===== Database =====
    DATABASE_URL: str = Field(default="", description="libpq DSN for local development")
    DB_SECRET_NAME: str = Field(
        default="", description="Secrets Manager secret with the RDS credentials"
    )
    DB_SSL: bool = Field(default=False, description="Require TLS to the database")
    DB_MIN_CONNECTIONS: int = Field(default=1, ge=1)
    DB_MAX_CONNECTIONS: int = Field(default=10, ge=1)
    DB_CONNECT_TIMEOUT_SECONDS: int = Field(default=5, ge=1)

    # ===== CORS =====
    CORS_ALLOW_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    # ===== Rate limiting =====
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=100, ge=1)
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, ge=1)
    IP_RATE_LIMIT_MAX_REQUESTS: int = Field(
        default=300, ge=1, description="Per source IP, applied before authentication"
    )
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: float = Field(default=300.0, gt=0)
    RATE_LIMIT_IDLE_SECONDS: float = Field(
        default=3600.0, gt=0, description="Buckets idle this long are dropped"
    )

    # ===== Response cache =====
    CACHE_TTL_SECONDS: int = Field(default=60, ge=1)
    CACHE_SWEEP_INTERVAL_SECONDS: float = Field(default=60.0, gt=0)

    # ===== Files =====
    MAX_UPLOAD_BYTES: int = Field(default=50 * 1024 * 1024, ge=1)
    PRESIGNED_URL_EXPIRES_SECONDS: int = Field(default=3600, ge=1)
    PRESIGNED_URL_MAX_EXPIRES_SECONDS: int = Field(default=604800, ge=1)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
