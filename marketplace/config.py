"""
Configuration management using Pydantic settings.
Handles database URL, JWT secrets, KYC review simulation and upload limits.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import List
from decimal import Decimal
from functools import lru_cache
import os


DEFAULT_DATABASE_URL = "postgresql+asyncpg://postgres:postgres@db:5432/token_marketplace"


class Settings(BaseSettings):
    """Application settings with Docker environment variable support."""

    # Application configuration
    app_name: str = "Tokenized Property Marketplace"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False
    testing: bool = False

    # Database configuration - Docker-compatible defaults
    database_url: str = DEFAULT_DATABASE_URL

    # Individual database components for flexibility
    postgres_db: str = "token_marketplace"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "db"
    postgres_port: int = 5432

    # JWT configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30
    jwt_refresh_token_expire_days: int = 7

    # Object storage configuration
    upload_dir: str = "./uploads"
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_image_types: List[str] = ["image/jpeg", "image/png", "image/webp"]
    allowed_document_types: List[str] = ["application/pdf", "image/jpeg", "image/png", "image/webp"]

    # API configuration
    api_v1_prefix: str = "/api/v1"
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8080", "http://localhost:5173"]

    # Pagination defaults
    max_page_size: int = 100

    # Simulated KYC review: pending requests are approved after a fixed delay.
    # Placeholder for a real review pipeline, not a policy.
    kyc_auto_approve: bool = True
    kyc_auto_approve_delay_seconds: float = 2.0

    # Stub wallet used for the purchase funds check
    mock_wallet_balance: Decimal = Decimal("1000000.00")

    # Accounts granted the admin role at sign-up
    admin_emails: List[str] = []

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v, info):
        """Build database URL from components if not provided directly."""
        if not v or v == DEFAULT_DATABASE_URL:
            user = os.getenv("POSTGRES_USER", "postgres")
            password = os.getenv("POSTGRES_PASSWORD", "postgres")
            host = os.getenv("POSTGRES_HOST", "db")
            port = os.getenv("POSTGRES_PORT", "5432")
            db = os.getenv("POSTGRES_DB", "token_marketplace")
            return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        # Ensure async driver is used
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        if v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def validate_jwt_secret_key(cls, v):
        """Validate JWT secret key strength."""
        if not v:
            raise ValueError("JWT_SECRET_KEY is required")
        if len(v) < 32 and v != "your-secret-key-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "testing", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of: {allowed_envs}")
        return v

    @field_validator("kyc_auto_approve_delay_seconds")
    @classmethod
    def validate_auto_approve_delay(cls, v):
        if v < 0:
            raise ValueError("KYC auto-approval delay cannot be negative")
        return v

    @field_validator("admin_emails")
    @classmethod
    def normalize_admin_emails(cls, v):
        return [email.lower().strip() for email in v]

    @field_validator("upload_dir", mode="before")
    @classmethod
    def create_upload_directories(cls, v):
        """Ensure upload directory exists."""
        if v and not os.path.exists(v):
            os.makedirs(v, exist_ok=True)
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing" or self.testing

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one instance of settings throughout the app lifecycle.
    """
    return Settings()


# Global settings instance
settings = get_settings()
