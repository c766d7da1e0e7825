"""Application settings for the ClimbScan service.

Settings are read from ``CS_``-prefixed environment variables and an
optional ``.env`` file in the working directory. ``get_settings`` caches a
single instance for the process; ``get_settings_override`` builds an
isolated instance for tests and alternate deployments.
"""

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ClimbScan runtime settings.

    Attributes:
        app_name: Display name used as the API title.
        app_version: Version string reported by the health endpoints.
        debug: Enables human-readable logs and API docs.
        testing: Marks the instance as a test instance (enables API docs).
        log_level: Root log level name.
        cors_origins: Origins allowed by the CORS middleware.
        api_key: Optional key required in ``X-API-Key``; empty means open.
        gemini_api_key: Credential for the Gemini API.
        gemini_model: Model name used for route analysis.
        gemini_timeout_seconds: Per-request timeout for the analysis call.
        camera_source: OpenCV device index or stream URL.
        camera_width: Preferred capture width in pixels.
        camera_height: Preferred capture height in pixels.
        jpeg_quality: JPEG quality (1-100) used for captured snapshots.
        max_upload_size_mb: Size limit for images posted to the API.
        allowed_image_types: MIME types accepted by the upload endpoints.
        rate_limit_analyze: Max stateless analyze requests per IP per
            minute; 0 disables the limit.
    """

    model_config = SettingsConfigDict(
        env_prefix="CS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "climbscan"
    app_version: str = "0.1.0"
    debug: bool = False
    testing: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    api_key: str = ""

    gemini_api_key: str = ""
    gemini_model: str = "gemini-3-flash-preview"
    gemini_timeout_seconds: float = Field(default=60.0, gt=0)

    camera_source: int | str = 0
    camera_width: int = Field(default=1920, gt=0)
    camera_height: int = Field(default=1080, gt=0)
    jpeg_quality: int = Field(default=90, ge=1, le=100)

    max_upload_size_mb: int = Field(default=10, gt=0)
    allowed_image_types: list[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/png"]
    )
    rate_limit_analyze: int = Field(default=10, ge=0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name.

        Args:
            v: Log level name in any case.

        Returns:
            Upper-cased level name.

        Raises:
            ValueError: If the name is not a standard logging level.
        """
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level '{v}'")
        return level

    @field_validator("camera_source", mode="before")
    @classmethod
    def coerce_camera_source(cls, v: Any) -> int | str:
        """Treat purely numeric sources as device indices."""
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip())
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached process-wide settings.

    Returns:
        Settings loaded from the environment on first call.
    """
    return Settings()


def get_settings_override(overrides: dict[str, Any]) -> Settings:
    """Build a fresh Settings instance with explicit overrides.

    Environment variables still apply to fields not named in
    ``overrides``. The cached instance from :func:`get_settings` is left
    untouched.

    Args:
        overrides: Field values taking precedence over the environment.

    Returns:
        A new, uncached Settings instance.

    Example:
        >>> settings = get_settings_override({"testing": True, "debug": True})
        >>> settings.testing
        True
    """
    return Settings(**overrides)
