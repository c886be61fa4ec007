"""SSM Parameter Store access for Square secrets.

Secrets are looked up under ``/fundraiser/<environment>/square/<name>``
when they are not set directly in the environment.
"""

from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from donations.utils.logging import get_logger

logger = get_logger(__name__)

PARAMETER_ROOT = "/fundraiser"


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""

    pass


def square_parameter_name(environment: str, name: str) -> str:
    """Full parameter path for a Square secret.

    >>> square_parameter_name("dev", "access_token")
    '/fundraiser/dev/square/access_token'
    """
    return f"{PARAMETER_ROOT}/{environment}/square/{name}"


class SSMService:
    """Decrypting, caching reader for SecureString parameters.

    Usage:
        ssm = get_ssm_service()
        token = ssm.get_parameter(square_parameter_name("dev", "access_token"))
    """

    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self, client: object | None = None) -> None:
        self._client = client or boto3.client("ssm")

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a decrypted parameter value.

        Args:
            name: Full parameter path
            use_cache: Whether to return a previously fetched value

        Returns:
            The parameter value.

        Raises:
            SSMServiceError: If the parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)  # type: ignore[attr-defined]
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMServiceError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {e}") from e
        except BotoCoreError as e:
            raise SSMServiceError(f"Failed to retrieve SSM parameter {name}: {e}") from e

        value: str = response["Parameter"]["Value"]
        self._cache[name] = value
        return value

    @classmethod
    def clear_cache(cls) -> None:
        cls._cache.clear()


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance (singleton pattern)."""
    return SSMService()


def reset_ssm_service() -> None:
    """Drop the cached client and values (for testing only)."""
    SSMService.clear_cache()
    get_ssm_service.cache_clear()
