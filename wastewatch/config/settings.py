"""
Configuration settings for the WasteWatch API using Pydantic Settings.

All configuration is read from environment variables (or a local .env file)
with validation and typed defaults.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.

    Uses Pydantic Settings to load and validate configuration from
    environment variables with proper type checking and defaults.
    """

    # PostgreSQL
    postgres_host: str = Field(
        default="localhost",
        alias="POSTGRES_HOST",
        description="PostgreSQL server host"
    )
    postgres_port: int = Field(
        default=5432,
        alias="POSTGRES_PORT",
        description="PostgreSQL server port"
    )
    postgres_database: str = Field(
        default="wastewatch",
        alias="POSTGRES_DATABASE",
        description="PostgreSQL database name"
    )
    postgres_user: str = Field(
        default="wastewatch",
        alias="POSTGRES_USER",
        description="PostgreSQL user"
    )
    postgres_password: str = Field(
        default="wastewatch",
        alias="POSTGRES_PASSWORD",
        description="PostgreSQL password"
    )
    postgres_pool_max_size: int = Field(
        default=10,
        alias="POSTGRES_POOL_MAX_SIZE",
        description="Maximum number of pooled connections"
    )
    database_auto_create: bool = Field(
        default=True,
        alias="DATABASE_AUTO_CREATE",
        description="Create missing tables on application startup"
    )

    # Authentication
    jwt_secret_key: str = Field(
        default="change-me-in-production",
        alias="JWT_SECRET_KEY",
        description="Secret used to sign bearer tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        alias="JWT_ALGORITHM",
        description="JWT signing algorithm"
    )
    jwt_expire_hours: int = Field(
        default=24 * 30,
        alias="JWT_EXPIRE_HOURS",
        description="Token lifetime in hours"
    )
    authority_registration_code: Optional[str] = Field(
        default=None,
        alias="AUTHORITY_REGISTRATION_CODE",
        description="Code required to register with the authority role (unset = not required)"
    )

    # Uploaded images
    upload_dir: Path = Field(
        default=Path("uploads"),
        alias="UPLOAD_DIR",
        description="Directory where normalized report images are stored"
    )
    upload_url_prefix: str = Field(
        default="/uploads",
        alias="UPLOAD_URL_PREFIX",
        description="URL path under which stored images are served"
    )
    max_upload_size_mb: int = Field(
        default=5,
        alias="MAX_UPLOAD_SIZE_MB",
        description="Maximum size of a single uploaded image"
    )
    max_images_per_request: int = Field(
        default=5,
        alias="MAX_IMAGES_PER_REQUEST",
        description="Maximum number of images accepted in one request"
    )
    image_max_dimension: int = Field(
        default=1200,
        alias="IMAGE_MAX_DIMENSION",
        description="Stored images are shrunk to fit inside this square"
    )
    image_jpeg_quality: int = Field(
        default=80,
        alias="IMAGE_JPEG_QUALITY",
        description="JPEG quality used for stored images"
    )

    # Roboflow waste detection
    roboflow_api_key: Optional[str] = Field(
        default=None,
        alias="ROBOFLOW_API_KEY",
        description="Roboflow API key (required for waste detection)"
    )
    roboflow_model_id: str = Field(
        default="waste-hsysm",
        alias="ROBOFLOW_MODEL_ID",
        description="Roboflow model identifier"
    )
    roboflow_version: str = Field(
        default="4",
        alias="ROBOFLOW_VERSION",
        description="Roboflow model version"
    )
    roboflow_api_url: str = Field(
        default="https://serverless.roboflow.com",
        alias="ROBOFLOW_API_URL",
        description="Roboflow inference endpoint base URL"
    )
    roboflow_confidence: int = Field(
        default=25,
        alias="ROBOFLOW_CONFIDENCE",
        description="Minimum prediction confidence (percent)"
    )
    roboflow_overlap: int = Field(
        default=30,
        alias="ROBOFLOW_OVERLAP",
        description="Maximum prediction overlap (percent)"
    )
    roboflow_timeout_seconds: float = Field(
        default=60.0,
        alias="ROBOFLOW_TIMEOUT_SECONDS",
        description="Transport timeout for a detection request"
    )

    # API server
    client_url: str = Field(
        default="http://localhost:5173",
        alias="CLIENT_URL",
        description="Front-end origin allowed by CORS"
    )
    wastewatch_host: str = Field(
        default="0.0.0.0",
        alias="WASTEWATCH_HOST",
        description="API server host"
    )
    wastewatch_port: int = Field(
        default=5000,
        alias="WASTEWATCH_PORT",
        description="API server port"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary, hiding secrets."""
        data = self.model_dump()
        for key in ("postgres_password", "jwt_secret_key", "roboflow_api_key"):
            if data.get(key):
                data[key] = "***"
        return data


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Validated Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset global settings (useful for testing)."""
    global _settings
    _settings = None
