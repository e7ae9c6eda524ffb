"""
Configuration Management for Lumina

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration (receipt analysis and insights)."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class StorageSettings(BaseSettings):
    """Durable storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LUMINA_STORAGE_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path("./data"),
        description="Directory holding the ledger blob and audit log"
    )
    state_key: str = Field(
        default="lumina_data_v2",
        min_length=1,
        description="Fixed identifier of the serialized ledger blob"
    )
    draft_key: str = Field(
        default="lumina_transaction_draft",
        min_length=1,
        description="Identifier of the entry form's unsaved draft"
    )
    audit_log_name: str = Field(
        default="audit.jsonl",
        description="File name of the append-only audit log"
    )

    @field_validator('state_key', 'draft_key')
    @classmethod
    def validate_state_key(cls, v: str) -> str:
        """The key becomes a file name, so path separators are not allowed."""
        if "/" in v or "\\" in v:
            raise ValueError(f"Storage keys must be plain names, got {v!r}")
        return v

    @property
    def state_path(self) -> Path:
        return self.data_dir / f"{self.state_key}.json"

    @property
    def draft_path(self) -> Path:
        return self.data_dir / f"{self.draft_key}.json"

    @property
    def audit_log_path(self) -> Path:
        return self.data_dir / self.audit_log_name


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Dashboard
    budget_warning_percent: int = Field(
        default=90,
        ge=1,
        le=100,
        description="Budget utilization above this percent is flagged"
    )
    top_categories_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many categories the spending breakdown shows"
    )
    insight_transaction_limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="How many recent transactions are sent for insights"
    )

    # Receipt uploads
    max_receipt_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum receipt image size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_receipt_size_bytes(self) -> int:
        """Get max receipt size in bytes."""
        return self.max_receipt_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so that a missing Gemini key
    # does not prevent the ledger itself from starting.

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("gemini", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
