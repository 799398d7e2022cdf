"""Copilot configuration using pydantic-settings.

This module defines the CopilotSettings class that reads configuration
from environment variables with the COPILOT_ prefix. Settings are loaded
once at startup and never mutated afterwards; a missing secret or agent
credential is fatal and surfaces as a ConfigurationError.
"""

from enum import Enum
from typing import Optional

from pydantic import ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.copilot.errors import ConfigurationError


class DeliveryPolicy(str, Enum):
    """How repeated deliveries of the same webhook are treated.

    Attributes:
        REPROCESS: Every delivery is processed. The pipeline keeps no state.
        DEDUPLICATE: A delivery id already seen within the TTL is ignored.
    """

    REPROCESS = "reprocess"
    DEDUPLICATE = "deduplicate"


class CopilotSettings(BaseSettings):
    """Triage copilot configuration from environment variables.

    All environment variables are prefixed with COPILOT_
    (e.g., COPILOT_LINEAR_WEBHOOK_SECRET).

    Required fields (must be set via environment variables):
    - linear_webhook_secret: Shared secret for webhook HMAC signatures
    - manager_api_key: Linear API key used by the coordinating agent
    - bug_api_key, feature_api_key, improvement_api_key: Linear API keys
      for the three specialist agents
    """

    model_config = SettingsConfigDict(
        env_prefix="COPILOT_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # Linear Configuration
    # -------------------------------------------------------------------------
    # Shared secret used to sign webhook bodies
    linear_webhook_secret: str

    # One Linear API key per agent role
    manager_api_key: str
    bug_api_key: str
    feature_api_key: str
    improvement_api_key: str

    # GraphQL endpoint of the Linear API
    linear_api_url: str = "https://api.linear.app/graphql"

    # -------------------------------------------------------------------------
    # LLM Configuration
    # -------------------------------------------------------------------------
    # OpenAI-compatible endpoint used by the agent team
    llm_url: str = "https://api.openai.com/v1"

    llm_model: str = "gpt-4"

    llm_api_key: Optional[str] = None

    # Upper bound on tool-calling rounds per agent
    agent_max_steps: int = 5

    # -------------------------------------------------------------------------
    # Delivery Handling
    # -------------------------------------------------------------------------
    delivery_policy: DeliveryPolicy = DeliveryPolicy.REPROCESS

    # How long a delivery id is remembered under the deduplicate policy
    delivery_ttl_seconds: int = 3600

    # -------------------------------------------------------------------------
    # External State Store (not used by the webhook pipeline)
    # -------------------------------------------------------------------------
    upstash_redis_url: Optional[str] = None
    upstash_redis_token: Optional[str] = None

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 8080

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator(
        "linear_webhook_secret",
        "manager_api_key",
        "bug_api_key",
        "feature_api_key",
        "improvement_api_key",
    )
    @classmethod
    def validate_not_empty(cls, v: str, info: ValidationInfo) -> str:
        """Validate that secrets and credentials are not empty."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("linear_api_url", "llm_url")
    @classmethod
    def validate_url(cls, v: str, info: ValidationInfo) -> str:
        """Validate that endpoint URLs use an HTTP scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"{info.field_name} must start with http:// or https://")
        return v

    @field_validator("agent_max_steps", "delivery_ttl_seconds")
    @classmethod
    def validate_positive(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


def get_settings() -> CopilotSettings:
    """Create and return a CopilotSettings instance.

    Reads configuration from the environment. Missing or invalid
    required values are reported together in a single error.

    Returns:
        CopilotSettings: Configured settings instance.

    Raises:
        ConfigurationError: If required fields are missing or invalid.
    """
    try:
        return CopilotSettings()
    except ValidationError as e:
        fields = [
            ".".join(str(part) for part in error["loc"]) for error in e.errors()
        ]
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(fields)}",
            missing=fields,
        ) from e
