"""
Client configuration.

`StorageConfig` carries account credentials and endpoint settings. It can be
built directly or loaded from `STORAGECORE_*` environment variables.
"""

from __future__ import annotations

import base64
import binascii
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator

from .exceptions import ConfigurationError

DEFAULT_API_VERSION = "2017-11-09"
DEFAULT_ENDPOINT_SUFFIX = "core.windows.net"
DEFAULT_SERVICE = "queue"
DEFAULT_TIMEOUT = 30.0

ENV_PREFIX = "STORAGECORE_"


def _maybe_load_dotenv(
    *, load_dotenv: bool, dotenv_path: str | Path | None = None, override: bool = False
) -> None:
    if not load_dotenv:
        return
    try:
        import dotenv  # pyright: ignore[reportMissingImports]
    except ImportError as exc:
        raise ImportError(
            "Optional .env support requires python-dotenv; install `storagecore[cli]`."
        ) from exc
    dotenv.load_dotenv(dotenv_path=dotenv_path, override=override)


class StorageConfig(BaseModel):
    """Account, endpoint and transport settings shared by every request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    account_name: str | None = None
    access_key: SecretStr | None = None
    service: str = DEFAULT_SERVICE
    endpoint: str | None = None
    secondary_endpoint: str | None = None
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str | None = None

    @field_validator("access_key")
    @classmethod
    def _check_access_key(cls, value: SecretStr | None) -> SecretStr | None:
        if value is None:
            return None
        try:
            base64.b64decode(value.get_secret_value(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("access_key must be base64 encoded") from e
        return value

    @field_validator("timeout")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be > 0")
        return value

    @field_validator("endpoint", "secondary_endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str | None) -> str | None:
        return value.rstrip("/") if value else value

    @property
    def primary_endpoint(self) -> str:
        if self.endpoint:
            return self.endpoint
        if not self.account_name:
            raise ConfigurationError("Either endpoint or account_name must be configured")
        return f"https://{self.account_name}.{self.service}.{self.endpoint_suffix}"

    @property
    def effective_secondary_endpoint(self) -> str | None:
        """Secondary (read-access geo-replica) endpoint, when one can be derived."""
        if self.secondary_endpoint:
            return self.secondary_endpoint
        if self.endpoint or not self.account_name:
            return None
        return f"https://{self.account_name}-secondary.{self.service}.{self.endpoint_suffix}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.account_name) and self.access_key is not None

    @classmethod
    def from_env(
        cls,
        *,
        load_dotenv: bool = False,
        dotenv_path: str | Path | None = None,
        **overrides: Any,
    ) -> StorageConfig:
        """
        Build a config from `STORAGECORE_*` environment variables.

        Explicit keyword overrides that are not None take precedence over the
        environment.

        Args:
            load_dotenv: Load a `.env` file first (requires python-dotenv)
            dotenv_path: Path of the `.env` file (default: search from cwd)
        """
        _maybe_load_dotenv(load_dotenv=load_dotenv, dotenv_path=dotenv_path)

        values: dict[str, Any] = {}
        for name in (
            "account_name",
            "access_key",
            "service",
            "endpoint",
            "secondary_endpoint",
            "endpoint_suffix",
            "api_version",
            "timeout",
        ):
            raw = os.getenv(ENV_PREFIX + name.upper(), "").strip()
            if raw:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
