"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CACHE_NAMESPACE = "lesson-videos-v1"
DEFAULT_ESTIMATED_SIZE = 50 * 1024 * 1024  # 50 MB


class OfflineConfig(BaseModel):
    """A validated configuration model for the application."""

    # Storage Settings
    data_dir: str = ""
    cache_namespace: str = DEFAULT_CACHE_NAMESPACE
    space_safety_margin: float = 0.10
    default_estimated_size: int = DEFAULT_ESTIMATED_SIZE

    # Network Settings
    max_connections: int = 4
    chunk_size: int = 131072  # 128 KB
    max_attempts: int = 3
    base_delay: float = 1.5
    connect_timeout: float = 15.0
    read_timeout: float = 90.0

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("cache_namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """The namespace becomes a directory name, so it must be a single segment."""
        if not v:
            raise ValueError("Cache namespace cannot be empty.")
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(
                "Cache namespace must be a plain name without path separators."
            )
        return v

    @field_validator("space_safety_margin")
    @classmethod
    def validate_margin(cls, v: float) -> float:
        if v < 0 or v >= 1:
            raise ValueError("Space safety margin must be in the range [0, 1).")
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        """Ensures a reasonable connection pool size."""
        if v < 1 or v > 32:
            raise ValueError("Max connections must be between 1 and 32.")
        return v

    @field_validator("chunk_size")
    @classmethod
    def validate_chunk_size(cls, v: int) -> int:
        if v < 1024 or v > 8 * 1024 * 1024:
            raise ValueError("Chunk size must be between 1 KB and 8 MB.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("default_estimated_size")
    @classmethod
    def validate_estimated_size(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Default estimated size cannot be negative.")
        return v

    @model_validator(mode="after")
    def validate_timeouts(self) -> "OfflineConfig":
        """Checks that network timings are usable."""
        if self.base_delay < 0:
            raise ValueError("Base delay cannot be negative.")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("Timeouts must be positive numbers of seconds.")
        return self

    @property
    def resolved_data_dir(self) -> Path:
        """The data directory, defaulting to the configuration directory."""
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path(self.config_path)

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
