"""
Centralized configuration management.

All application configuration is loaded and validated here.
"""
import os
import logging
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

STYLE_DETECTORS = ("filename-hash",)


class Settings(BaseModel):
    """Application settings with validation."""

    # Upload limits
    max_file_size_mb: int = Field(default=50, ge=1, le=1000, description="Maximum data file size in MB")
    max_image_size_mb: int = Field(default=10, ge=1, le=100, description="Maximum reference image size in MB")
    max_dataset_rows: int = Field(default=5000, ge=100, le=100000, description="Rows classified and embedded in specs")

    # Rate limiting
    rate_limit_per_minute: int = Field(default=10, ge=1, le=1000, description="Analyze requests per minute per IP")

    # Request timeout
    request_timeout_seconds: int = Field(default=300, ge=1, le=3600, description="Seconds before a request is answered with 504")

    # CORS
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated CORS origins"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    # Upload content limits
    max_file_rows: int = Field(default=1000000, ge=1000, description="Rows accepted in an upload")
    max_file_columns: int = Field(default=1000, ge=10, description="Columns accepted in an upload")
    max_cell_size_bytes: int = Field(default=100000, ge=1000, description="Longest accepted text cell")

    # Reference image analysis
    style_detector: str = Field(default="filename-hash", description="Style detector backend")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @field_validator('style_detector')
    @classmethod
    def validate_style_detector(cls, v: str) -> str:
        if v.lower() not in STYLE_DETECTORS:
            raise ValueError(f"STYLE_DETECTOR must be one of {list(STYLE_DETECTORS)}, got '{v}'")
        return v.lower()

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def max_image_size_bytes(self) -> int:
        return self.max_image_size_mb * 1024 * 1024

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Each field reads the upper-cased variable of the same name
        (MAX_FILE_SIZE_MB, STYLE_DETECTOR, ...); unset variables keep the
        field default. Values are strings and pydantic coerces them.
        """
        overrides = {
            name: os.environ[name.upper()]
            for name in cls.model_fields
            if name.upper() in os.environ
        }
        return cls(**overrides)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Settings singleton, built from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        logger.info("Configuration loaded and validated successfully")
    return _settings


def reload_settings() -> Settings:
    """Drop the cached settings and rebuild them from the environment."""
    global _settings
    _settings = None
    return get_settings()
