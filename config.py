"""
Configuration Management for ClipShare API
==========================================

This module handles all application configuration using the Settings pattern
with Pydantic. This approach provides:

1. **Environment Variable Support**: Easy deployment configuration
2. **Validation**: Catches configuration errors at startup
3. **Type Safety**: IDE support and runtime validation
4. **Defaults**: Sensible defaults for development

Design Pattern: Singleton-like Settings
We use a cached function to ensure we only load settings once,
but still allow for easy testing with different configurations.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with CLIPSHARE_ to avoid conflicts.
    Example: CLIPSHARE_MONGODB_URI=mongodb://localhost:27017

    Priority order (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values defined here
    """

    model_config = SettingsConfigDict(
        env_prefix="CLIPSHARE_",  # All env vars start with CLIPSHARE_
        env_file=".env",  # Load from .env file if present
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =================================================================
    # Runtime Environment
    # =================================================================
    environment: str = Field(
        default="development",
        description="""
        Deployment environment: 'development' or 'production'.

        In production, auth cookies are sent with the Secure flag.
        """
    )

    # =================================================================
    # API Server Configuration
    # =================================================================
    api_host: str = Field(default="0.0.0.0", description="Host interface for uvicorn")
    api_port: int = Field(default=8000, description="Port for uvicorn")
    api_debug: bool = Field(
        default=False,
        description="Expose internal error details in 500 responses"
    )

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="Origins allowed to call the API with credentials"
    )
    cors_allow_credentials: bool = Field(
        default=True,
        description="Allow cookies on cross-origin requests (needed for auth cookies)"
    )

    # =================================================================
    # Document Store (MongoDB)
    # =================================================================
    mongodb_uri: str = Field(
        default="",
        description="""
        MongoDB connection URI, e.g. mongodb://localhost:27017

        Empty string = in-memory store (development only, data is lost on exit).
        """
    )

    mongodb_db: str = Field(
        default="clipshare",
        description="MongoDB database name"
    )

    # =================================================================
    # Token Configuration
    # =================================================================
    access_token_secret: str = Field(
        default="dev-access-token-secret",
        description="Signing secret for access tokens. MUST be overridden in production."
    )

    access_token_expire_minutes: int = Field(
        default=15,
        gt=0,
        description="Access token lifetime in minutes"
    )

    refresh_token_secret: str = Field(
        default="dev-refresh-token-secret",
        description="""
        Signing secret for refresh tokens. MUST be overridden in production.

        Kept separate from the access secret so an access token can never
        be presented as a refresh token.
        """
    )

    refresh_token_expire_days: int = Field(
        default=10,
        gt=0,
        description="Refresh token lifetime in days"
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )

    # =================================================================
    # Remote Asset Store (Cloudinary)
    # =================================================================
    cloudinary_cloud_name: Optional[str] = Field(default=None, description="Cloudinary cloud name")
    cloudinary_api_key: Optional[str] = Field(default=None, description="Cloudinary API key")
    cloudinary_api_secret: Optional[str] = Field(default=None, description="Cloudinary API secret")

    cloudinary_folder: Optional[str] = Field(
        default=None,
        description="Optional folder prefix for uploaded assets"
    )

    # =================================================================
    # Upload Staging
    # =================================================================
    temp_upload_dir: str = Field(
        default="./public/temp",
        description="Directory where multipart uploads are staged before forwarding"
    )

    max_upload_size_mb: int = Field(
        default=5,
        gt=0,
        description="Maximum size of a single uploaded file"
    )

    allowed_image_formats: list[str] = Field(
        default=[".jpg", ".jpeg", ".png", ".gif", ".webp"],
        description="File extensions accepted for avatar and cover images"
    )

    # =================================================================
    # Logging Configuration
    # =================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Python logging format string"
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached singleton).

    Using lru_cache ensures we only parse environment variables once.

    For testing, you can clear the cache:
        get_settings.cache_clear()

    Returns:
        Settings: Application settings instance
    """
    return Settings()


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a Settings instance with custom values for testing.

    This factory function allows tests to easily create Settings
    with specific values without affecting the global settings.

    Example:
        settings = get_settings_for_testing(
            environment="production",
            max_upload_size_mb=1
        )

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: New Settings instance with overrides applied
    """
    return Settings(**overrides)
