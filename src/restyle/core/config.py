"""Configuration management for Restyle.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the RESTYLE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (RESTYLE_* prefix)
2. .env file in the project root
3. Default values defined in RestyleConfig

The Gemini API key is additionally read from the conventional
``GEMINI_API_KEY`` variable.

Example .env file:
    GEMINI_API_KEY=your-key
    RESTYLE_OUTPUTS_DIR=outputs
    RESTYLE_MAX_CONCURRENCY=4
    RESTYLE_REQUEST_TIMEOUT=90

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.

Usage Example
-------------
    from restyle.core.config import config

    print(config.outputs_dir)
    print(config.max_concurrency)
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STYLES = [
    "Oil Painting",
    "Water colours",
    "Crayons",
    "Impressionism",
    "Renaissance",
    "Pop Art",
    "Baroque",
    "Romanticism",
    "Neoclassicism",
]


class RestyleConfig(BaseSettings):
    """Main configuration for Restyle.

    Attributes
    ----------
    Service Settings:
        gemini_api_key : str | None
            API key for the Gemini image model
        gemini_model : str
            Gemini model used for style transformations

    Orchestration Settings:
        max_concurrency : int
            Maximum number of service calls in flight at once
        max_attempts : int
            Attempts per (image, style) unit before it is reported as failed
        backoff_base : float
            Delay in seconds before the second attempt; doubles afterwards
        request_timeout : float | None
            Deadline in seconds for a single attempt (None = no deadline)

    Upload Limits:
        max_upload_bytes : int
            Maximum size of one uploaded image
        max_images : int
            Maximum number of images per submission

    Paths:
        outputs_dir : Path
            Root of the session gallery (created automatically)

    Server Settings:
        server_host, server_port, log_level

    Notes
    -----
    - To modify config, set environment variables and restart the application
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RESTYLE_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Service settings
    gemini_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("RESTYLE_GEMINI_API_KEY", "GEMINI_API_KEY"),
        description="API key for the Gemini image model",
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini model used for style transformations",
    )

    # Orchestration settings
    max_concurrency: int = Field(
        default=4,
        description="Maximum number of concurrent service calls",
        ge=1,
        le=64,
    )
    max_attempts: int = Field(
        default=3,
        description="Attempts per unit before it is reported as failed",
        ge=1,
        le=10,
    )
    backoff_base: float = Field(
        default=1.0,
        description="Seconds to wait before the second attempt (doubles afterwards)",
        ge=0.0,
    )
    request_timeout: float | None = Field(
        default=None,
        description="Deadline in seconds for a single attempt (None = no deadline)",
        gt=0.0,
    )

    # Upload limits
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Maximum size of one uploaded image in bytes",
        ge=1,
    )
    max_images: int = Field(
        default=20,
        description="Maximum number of images per submission",
        ge=1,
    )
    default_styles: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STYLES),
        description="Styles preselected by the frontend",
    )

    # Paths
    outputs_dir: Path = Field(
        default=Path("outputs"),
        description="Directory holding one subdirectory per session",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root logging level for the entry points",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the outputs directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.outputs_dir.mkdir(parents=True, exist_ok=True)


# Global configuration instance
# It loads values from environment variables (RESTYLE_* prefix) and .env file.
config = RestyleConfig()
