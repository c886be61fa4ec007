"""Runtime configuration read from environment variables.

Secrets (Square access token, webhook signature key) may also live in SSM
Parameter Store; see ``SquareService`` for the env-first, SSM-second lookup.

Usage:
    from donations.config import get_settings

    settings = get_settings()
    if settings.is_production:
        ...
"""

import logging
from functools import lru_cache
from typing import Annotated, Any

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from donations.models.enums import (
    BlobBackend,
    SignatureMode,
    SquareEnvironment,
    TotalsStrategy,
    WritePolicy,
)

logger = logging.getLogger(__name__)

PRODUCTION_ENVIRONMENTS = {"prod", "production"}


def _parse_statuses(value: str) -> frozenset[str]:
    """Parse a comma-separated status list; upper-case, keep non-empty."""
    return frozenset(status.strip().upper() for status in value.split(",") if status.strip())


class ConfigError(Exception):
    """Raised when the environment holds an invalid configuration."""

    pass


class Settings(BaseSettings):
    """Validated application settings.

    Each field is read from the upper-cased environment variable of the same
    name (``BLOB_BACKEND``, ``ADMIN_TOKEN``...); ``signature_mode`` reads
    ``WEBHOOK_SIGNATURE_MODE``. Empty variables count as unset.
    """

    model_config = SettingsConfigDict(frozen=True, env_ignore_empty=True)

    environment: str = Field(default="dev", description="Deployment environment (dev, prod)")

    # Square
    square_environment: SquareEnvironment = SquareEnvironment.SANDBOX
    square_access_token: str | None = None
    square_location_id: str | None = None
    square_webhook_signature_key: str | None = None
    square_webhook_url: str | None = None
    square_currency: str = "CAD"
    square_api_version: str = "2024-10-17"
    secrets_from_ssm: bool = Field(
        default=True, description="Fall back to SSM Parameter Store for unset Square secrets"
    )

    # Webhook ingestion
    signature_mode: SignatureMode = Field(
        default=SignatureMode.STRICT,
        validation_alias=AliasChoices("WEBHOOK_SIGNATURE_MODE", "signature_mode"),
    )
    # Comma-separated in the environment (COMPLETED,APPROVED)
    countable_payment_statuses: Annotated[frozenset[str], NoDecode] = frozenset({"COMPLETED"})

    # Storage
    blob_backend: BlobBackend = BlobBackend.S3
    blob_bucket: str | None = None
    blob_local_dir: str = ".data/blobs"
    blob_prefix: str = "donations"
    totals_strategy: TotalsStrategy = TotalsStrategy.SNAPSHOT
    totals_cache_ttl_seconds: float = Field(default=0.0, ge=0)
    donation_write_policy: WritePolicy = WritePolicy.OVERWRITE

    # Surfaces
    admin_token: str | None = None
    teams_file: str | None = None
    public_base_url: str | None = None

    @field_validator(
        "square_access_token",
        "square_location_id",
        "square_webhook_signature_key",
        "square_webhook_url",
        "blob_bucket",
        "admin_token",
        "teams_file",
        "public_base_url",
        mode="before",
    )
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator(
        "square_environment",
        "signature_mode",
        "blob_backend",
        "totals_strategy",
        "donation_write_policy",
        mode="before",
    )
    @classmethod
    def _lower_enum_value(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("square_currency", mode="before")
    @classmethod
    def _upper_currency(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("countable_payment_statuses", mode="before")
    @classmethod
    def _split_statuses(cls, value: Any) -> Any:
        return _parse_statuses(value) if isinstance(value, str) else value

    @field_validator("blob_prefix", mode="before")
    @classmethod
    def _strip_prefix_slashes(cls, value: Any) -> Any:
        return value.strip().strip("/") if isinstance(value, str) else value

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS

    @model_validator(mode="after")
    def _check_production_safety(self) -> "Settings":
        if self.is_production and self.signature_mode is SignatureMode.PERMISSIVE:
            raise ValueError("WEBHOOK_SIGNATURE_MODE=permissive is not allowed in production")
        if self.blob_backend is BlobBackend.S3 and not self.blob_bucket and self.is_production:
            raise ValueError("BLOB_BUCKET is required for the s3 blob backend in production")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "Settings":
        """Build settings from environment variables.

        Args:
            **overrides: Field values that take precedence over the environment

        Returns:
            Validated Settings

        Raises:
            ConfigError: If a value is missing or invalid.
        """
        try:
            settings = cls(**overrides)
        except ValidationError as e:
            raise ConfigError(f"Invalid environment configuration:\n{e}") from e

        if settings.signature_mode is SignatureMode.PERMISSIVE:
            logger.warning(
                "Webhook signature mode is PERMISSIVE (environment=%s); "
                "unsigned deliveries will be processed",
                settings.environment,
            )
        return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the shared Settings instance (singleton pattern).

    Returns:
        Settings: Validated settings from the process environment.
    """
    return Settings.from_env()


def reset_settings() -> None:
    """Clear cached settings (for testing only)."""
    get_settings.cache_clear()
