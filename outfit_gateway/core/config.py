"""Configuration management for the outfit rating gateway.

This module handles all configuration aspects of the gateway including:
- Environment variable loading and validation using Pydantic
- Per-provider settings (CLI subscription, Azure OpenAI, Clarifai)
- The single "active provider" selector
- Storage root and image fetching settings
- Fail-fast detection of missing provider fields

Provider credentials are held as ``SecretStr`` so they never render in
logs, reprs or error messages.
"""

from functools import lru_cache
from pathlib import Path
from typing import ClassVar, List, Optional, Tuple
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from enum import Enum


class EnvironmentType(str, Enum):
    """Environment types for configuration management"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ProviderName(str, Enum):
    """Closed set of supported AI providers."""
    CLAUDE = "claude"
    AZURE = "azure"
    CLARIFAI = "clarifai"


class ProviderSettings(BaseSettings):
    """Base class for provider settings with a required-field check."""

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    def missing_fields(self) -> List[str]:
        """Names of required fields that are unset or blank."""
        missing = []
        for name in self.REQUIRED_FIELDS:
            value = getattr(self, name)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(self.model_config.get("env_prefix", "") + name)
        return missing


class ClaudeCLISettings(ProviderSettings):
    """Subscription CLI provider. Authentication lives in the CLI login state."""

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("BINARY", "MODEL")

    BINARY: str = "claude"
    MODEL: str = "claude-sonnet-4-5-20250929"
    # None disables the login-state file check (e.g. keychain-backed logins)
    CREDENTIALS_PATH: Optional[Path] = Path("~/.claude/.credentials.json")
    TIMEOUT_SECONDS: float = 120.0

    model_config = SettingsConfigDict(
        env_prefix="CLAUDE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


class AzureOpenAISettings(ProviderSettings):
    """Azure OpenAI managed-cloud provider."""

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "ENDPOINT", "API_KEY", "API_VERSION", "DEPLOYMENT_ID"
    )

    ENDPOINT: Optional[str] = None
    API_KEY: Optional[SecretStr] = None
    API_VERSION: Optional[str] = "2025-03-01-preview"
    DEPLOYMENT_ID: Optional[str] = None
    TEMPERATURE: float = 0.7
    MAX_OUTPUT_TOKENS: int = 2000

    model_config = SettingsConfigDict(
        env_prefix="AZURE_OPENAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


class ClarifaiSettings(ProviderSettings):
    """Clarifai perception API provider."""

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "PAT", "USER_ID", "APP_ID", "MODEL_ID"
    )

    PAT: Optional[SecretStr] = None
    USER_ID: Optional[str] = None
    APP_ID: Optional[str] = None
    MODEL_ID: Optional[str] = None
    MODEL_VERSION_ID: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="CLARIFAI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main gateway settings"""

    # Basic application settings
    APP_NAME: str = "OutfitGateway"
    DEBUG: bool = False
    ENVIRONMENT: EnvironmentType = EnvironmentType.DEVELOPMENT

    # Provider selection. Kept as a plain string so an unknown name is
    # reported by the gateway instead of failing settings load.
    AI_PROVIDER: Optional[str] = ProviderName.CLARIFAI.value

    # Storage
    STORAGE_ROOT: Path = Path(".")
    STORAGE_URL_MARKER: str = "/v3/"

    # Image fetching
    IMAGE_FETCH_TIMEOUT_SECONDS: float = 30.0

    # Few-shot feedback
    FEW_SHOT_GOOD_LIMIT: int = 2
    FEW_SHOT_BAD_LIMIT: int = 1

    # Provider settings
    CLAUDE: ClaudeCLISettings = Field(default_factory=ClaudeCLISettings)
    AZURE: AzureOpenAISettings = Field(default_factory=AzureOpenAISettings)
    CLARIFAI: ClarifaiSettings = Field(default_factory=ClarifaiSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()
