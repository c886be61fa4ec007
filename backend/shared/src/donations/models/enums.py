"""Enumeration types for donation data models and configuration."""

from enum import Enum


class SignatureMode(str, Enum):
    """How the webhook handler treats unauthenticated deliveries."""

    STRICT = "strict"
    PERMISSIVE = "permissive"  # Local development only


class BlobBackend(str, Enum):
    """Blob storage backends."""

    S3 = "s3"
    LOCAL = "local"


class TotalsStrategy(str, Enum):
    """How team totals are maintained."""

    SNAPSHOT = "snapshot"  # Incrementally maintained totals.json
    SCAN = "scan"  # Recomputed from payment records on every read


class WritePolicy(str, Enum):
    """Donation record write policy for repeated payment ids."""

    OVERWRITE = "overwrite"
    CREATE_IF_ABSENT = "create_if_absent"


class SquareEnvironment(str, Enum):
    """Square API environments."""

    SANDBOX = "sandbox"
    PRODUCTION = "production"


class WebhookOutcome(str, Enum):
    """Result of processing a webhook delivery."""

    STORED = "stored"
    IGNORED = "ignored"
    SKIPPED = "skipped"
    REJECTED = "rejected"
    ERROR = "error"
