"""
Configuration management for the Location Tracker backend.

This module provides centralized configuration loading and validation using
Pydantic settings. Values come from environment variables or .env files.

Covers:
- Elasticsearch connection and the locations index name
- Device identification strategy for ingestion
- The query endpoint feature flag
- Sender/recipient addresses and the device for the scheduled summaries
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DeviceIdStrategy(str, Enum):
    """Where the ingestion endpoint reads the device identifier from."""
    BODY = "body"
    HEADER = "header"
    API_KEY = "api_key"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file
    overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    return (".env", env_file_map.get(environment, ".env.development"))


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Everything the HTTP handlers need has a usable default so the API can
    start locally against a development Elasticsearch. The summary job
    settings (device_id, sender_email, recipient_email) are checked when a
    job runs rather than at start-up.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Service identity reported by the health endpoint
    service_name: str = Field(default="LocationTracker API")
    service_version: str = Field(default="1.0.0")

    # Elasticsearch Configuration
    elastic_endpoint: str = Field(
        default="http://localhost:9200",
        description="Elasticsearch endpoint URL"
    )
    elastic_api_key: Optional[str] = Field(
        default=None,
        description="Elasticsearch API key for authentication"
    )
    elastic_request_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Elasticsearch request timeout in seconds"
    )
    locations_index: str = Field(
        default="locations",
        description="Index holding one document per location observation"
    )

    # Device identification
    device_id: Optional[str] = Field(
        default=None,
        description="Device whose locations the scheduled summaries report on"
    )
    device_id_strategy: DeviceIdStrategy = Field(
        default=DeviceIdStrategy.BODY,
        description="Where ingestion reads the device id: body, header or api_key"
    )
    api_key_device_map: Dict[str, str] = Field(
        default_factory=dict,
        description="API key to device id mapping used by the api_key strategy"
    )

    # Feature flags
    query_endpoint_enabled: bool = Field(
        default=False,
        description="Serve GET /locations instead of answering 501"
    )

    # Summary email configuration
    sender_email: Optional[str] = Field(default=None)
    recipient_email: Optional[str] = Field(default=None)
    aws_region: str = Field(default="us-east-1")
    summary_utc_offset_hours: int = Field(
        default=-8,
        ge=-12,
        le=14,
        description="Fixed civil time zone used to window and label summaries"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("elastic_endpoint")
    @classmethod
    def validate_elastic_endpoint(cls, v: str) -> str:
        """Validate that elastic_endpoint is a non-empty HTTP/HTTPS URL."""
        if not v or not v.strip():
            raise ValueError("elastic_endpoint cannot be empty")
        v = v.strip().strip('"')
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("elastic_endpoint must be a valid HTTP/HTTPS URL")
        return v

    @field_validator("elastic_api_key", "device_id", "sender_email", "recipient_email")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().strip('"')
        return v or None

    @field_validator("locations_index")
    @classmethod
    def validate_locations_index(cls, v: str) -> str:
        """Elasticsearch index names must be lowercase and non-empty."""
        v = v.strip()
        if not v:
            raise ValueError("locations_index cannot be empty")
        if v != v.lower():
            raise ValueError("locations_index must be lowercase")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """Validate CORS origins format and reject wildcard patterns."""
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact client domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin)
        return validated_origins


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Create Settings for a specific environment.

    Detects the environment from the ENVIRONMENT variable (if not provided)
    and loads the matching environment-specific .env file on top of .env.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [env_file for env_file in env_files if Path(env_file).exists()]
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        # Extract field-level errors from Pydantic ValidationError
        if hasattr(e, "errors"):
            for error in e.errors():
                field_name = ".".join(str(loc) for loc in error.get("loc", []))
                if error.get("type", "") == "missing":
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error.get("msg", str(error))

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() reloads."""
    global _settings_cache
    _settings_cache = None


def validate_startup(settings: Optional[Settings] = None) -> None:
    """
    Validate settings at application startup.

    Production deployments must authenticate to Elasticsearch. Email
    addresses, when configured, must be well formed.

    Raises:
        ConfigurationError: If any setting is missing or invalid.
    """
    settings = settings or get_settings()

    missing_fields = []
    validation_errors = {}

    if settings.environment == Environment.PRODUCTION and not settings.elastic_api_key:
        missing_fields.append("elastic_api_key")

    for field_name in ("sender_email", "recipient_email"):
        value = getattr(settings, field_name)
        if value and not EMAIL_PATTERN.match(value):
            validation_errors[field_name] = f"Not a valid email address: {value}"

    if settings.device_id_strategy == DeviceIdStrategy.API_KEY and not settings.api_key_device_map:
        validation_errors["api_key_device_map"] = (
            "api_key_device_map must not be empty when device_id_strategy is 'api_key'"
        )

    if missing_fields or validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            missing_fields=missing_fields,
            invalid_fields=validation_errors
        )
