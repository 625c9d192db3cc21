"""SDK configuration using Pydantic Settings.

Configuration is loaded from environment variables prefixed with
``RULES_SDK_``. Every compiler entry point also accepts explicit overrides,
so the module-level ``settings`` only supplies defaults.
"""

import os
from enum import Enum

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    SDK settings with type validation.

    Configuration is loaded from environment variables, with support
    for an env file when ``ENV_FILE`` points at one.
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="RULES_SDK_", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    log_level: str = "INFO"
    structured_logs: bool = False

    # Reference resolution: unknown FC:/TR:/GV: names fail the compile.
    # Disabling restores the legacy behavior of binding them to ID 0.
    strict_references: bool = True

    # Unknown declared argument types fail the compile. Disabling skips the
    # argument while still counting its positional index.
    strict_types: bool = True

    # Parser limits
    max_expression_length: int = Field(default=4096, gt=0)
    max_nesting_depth: int = Field(default=64, gt=0)

    @field_validator("app_env", mode="before")
    @classmethod
    def validate_app_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        """Validate and parse app_env to AppEnvironment enum."""
        if isinstance(v, AppEnvironment):
            return v
        try:
            return AppEnvironment(v.lower())
        except ValueError:
            raise ValueError(
                f"app_env must be one of {[e.value for e in AppEnvironment]}, got '{v}'"
            )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level to an uppercase logging level name."""
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"log_level must be a standard logging level, got '{v}'")
        return level

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Lenient reference and type handling is a local/test convenience only."""
        if self.app_env == AppEnvironment.PROD:
            if not self.strict_references:
                raise ValueError("RULES_SDK_STRICT_REFERENCES cannot be disabled in production")
            if not self.strict_types:
                raise ValueError("RULES_SDK_STRICT_TYPES cannot be disabled in production")
        return self


settings = Settings()
