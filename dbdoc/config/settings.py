"""
Application Settings
===================

Compiler settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

SUPPORTED_DIALECTS = ("postgres", "mysql", "snowflake", "mongodb")


class Settings(BaseSettings):
    """Main compiler settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(
        default="DBDoc Compiler", description="Compiler name stamped into report.json"
    )
    app_version: str = Field(
        default="1.0.0", description="Compiler version stamped into report.json"
    )
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(
        default=None, description="Optional rotating log file; console only when unset"
    )

    # Compilation Configuration
    project_fallback_name: str = Field(
        default="unnamed_project", description="Project name used when the document has none"
    )
    default_dialects: List[str] = Field(
        default=list(SUPPORTED_DIALECTS), description="Dialects rendered when none are requested"
    )
    erd_include_overview: bool = Field(
        default=False, description="Also emit erd_all.mmd covering every table"
    )
    strict_redeclarations: bool = Field(
        default=False, description="Report redeclared tables as errors instead of warnings"
    )
    generate_docs: bool = Field(
        default=True, description="Render documentation.json and the static HTML site"
    )

    # Output Configuration
    output_dir: Path = Field(default=Path("./artifacts"), description="Artifact output directory")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("default_dialects", mode="before")
    @classmethod
    def parse_default_dialects(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse dialects from a comma-separated string or list and reject unknown names."""
        if isinstance(v, str):
            v = [item.strip() for item in v.split(",") if item.strip()]
        dialects = [item.lower() for item in v]
        unknown = [item for item in dialects if item not in SUPPORTED_DIALECTS]
        if unknown:
            raise ValueError(f"Unsupported dialects {unknown}; expected any of {SUPPORTED_DIALECTS}")
        return dialects

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="DBDOC_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
