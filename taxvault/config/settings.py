"""
Configuration Management for TaxVault

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, but it is only read
by the component factory. Services receive their values (the encryption
password, limits, the storage root) through their constructors and never
reach back into settings from deep call paths.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_MIME_TYPES = ",".join([
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
])


class EncryptionSettings(BaseSettings):
    """File encryption configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ENCRYPTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    password: SecretStr = Field(
        ...,
        description="Shared secret all stored files are encrypted with"
    )

    # scrypt cost parameters. The defaults are the ones Node's crypto.scrypt
    # uses, so envelopes written by the previous backend stay readable.
    scrypt_n: int = Field(
        default=16384,
        ge=2,
        description="scrypt CPU/memory cost (power of two)"
    )
    scrypt_r: int = Field(
        default=8,
        ge=1,
        description="scrypt block size"
    )
    scrypt_p: int = Field(
        default=1,
        ge=1,
        description="scrypt parallelization"
    )

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: SecretStr) -> SecretStr:
        """An empty secret would silently encrypt everything with no key material."""
        if not v.get_secret_value():
            raise ValueError("Encryption password must not be empty")
        return v

    @field_validator('scrypt_n')
    @classmethod
    def validate_scrypt_n(cls, v: int) -> int:
        if v & (v - 1):
            raise ValueError(f"scrypt_n must be a power of two, got {v}")
        return v


class StorageSettings(BaseSettings):
    """Blob store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    upload_dir: Path = Field(
        default=Path("./uploads"),
        description="Root directory; every owner gets a subdirectory"
    )
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum upload file size in MB"
    )
    allowed_mime_types: str = Field(
        default=DEFAULT_ALLOWED_MIME_TYPES,
        description="Comma-separated list of accepted MIME types"
    )

    @property
    def allowed_mime_types_set(self) -> frozenset[str]:
        """Get allowed MIME types as a set."""
        return frozenset(
            mime.strip().lower()
            for mime in self.allowed_mime_types.split(",")
            if mime.strip()
        )

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


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

    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Sub-settings are loaded lazily so a missing encryption password
    # only fails the components that need it.

    @property
    def encryption(self) -> EncryptionSettings:
        return EncryptionSettings()

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

    for name in ("encryption", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            # pydantic's ValidationError is a ValueError
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
