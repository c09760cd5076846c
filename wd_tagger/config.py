"""
Configuration management for the WD tagger.
"""

import os
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MODEL_REPO = "SmilingWolf/wd-swinv2-tagger-v3"


def _default_workers() -> int:
    return min(8, os.cpu_count() or 4)


class Settings(BaseSettings):
    """Application settings with validation."""

    model_config = SettingsConfigDict(
        env_prefix="WD_TAGGER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # Model Configuration
    model_repo: str = Field(default=DEFAULT_MODEL_REPO)
    model_cache_dir: Optional[str] = Field(default=None)
    use_gpu: bool = Field(default=True)

    # Tagging Configuration
    general_threshold: float = Field(default=0.35, ge=0.0, le=1.0)
    character_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    general_mcut: bool = Field(default=False)
    character_mcut: bool = Field(default=False)

    # Processing Configuration
    batch_size: int = Field(default=16, gt=0)
    preprocess_workers: int = Field(default_factory=_default_workers, gt=0)
    input_dir: str = Field(default="images")

    # Logging Configuration
    log_level: str = Field(default="INFO")

    @field_validator("model_repo")
    @classmethod
    def validate_model_repo(cls, v):
        """Ensure the model repository looks like "owner/name"."""
        v = v.strip()
        if v.count("/") != 1 or not all(v.split("/")):
            raise ValueError("WD_TAGGER_MODEL_REPO must be of the form 'owner/name'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure the log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"WD_TAGGER_LOG_LEVEL must be one of: {valid_levels}")
        return v.upper()


# Global settings instance
settings = Settings()
