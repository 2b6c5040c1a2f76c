from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import ValidationError

from storagecore import SignedService, StorageConfig
from storagecore.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    NotFoundError,
    ServerError,
    SigningError,
    StorageError,
    TransportError,
)
from storagecore.policies import LocationMode, Policies
from storagecore.retry import ExponentialRetry

from .errors import CLIError
from .logging import set_redaction_secret
from .results import CommandMeta, CommandResult, ErrorInfo

OutputFormat = Literal["table", "json"]


@dataclass
class CLIContext:
    output: OutputFormat
    quiet: bool
    verbosity: int
    dotenv: bool
    env_file: Path
    account_name: str | None
    access_key_file: str | None
    endpoint: str | None
    secondary_endpoint: str | None
    anonymous: bool
    timeout: float | None
    max_retries: int
    location_mode: LocationMode

    _config: StorageConfig | None = None
    _service: SignedService | None = None

    def _read_access_key(self) -> str | None:
        if self.access_key_file is None:
            return None
        if self.access_key_file == "-":
            key = sys.stdin.read().strip()
            source = "stdin"
        else:
            path = Path(self.access_key_file)
            key = path.read_text(encoding="utf-8").strip()
            source = str(path)
        if not key:
            raise CLIError.usage(f"Empty access key from {source}")
        return key

    def resolve_config(self) -> StorageConfig:
        if self._config is not None:
            return self._config
        if self.max_retries < 0:
            raise CLIError.usage("--max-retries must be >= 0.")
        try:
            self._config = StorageConfig.from_env(
                load_dotenv=self.dotenv,
                dotenv_path=self.env_file,
                account_name=self.account_name,
                access_key=self._read_access_key(),
                endpoint=self.endpoint,
                secondary_endpoint=self.secondary_endpoint,
                timeout=self.timeout,
            )
        except ImportError as exc:
            raise CLIError.usage(str(exc)) from exc
        except ValidationError as exc:
            raise CLIError.usage(
                f"Invalid configuration: {exc.errors()[0]['msg']}",
                error_type="config_error",
            ) from exc
        if self._config.access_key is not None:
            set_redaction_secret(self._config.access_key.get_secret_value())
        return self._config

    def get_service(self) -> SignedService:
        if self._service is not None:
            return self._service

        config = self.resolve_config()
        service = SignedService(
            config,
            anonymous=self.anonymous,
            policies=Policies(location_mode=self.location_mode),
            log_requests=self.verbosity >= 2,
        )
        if self.max_retries > 0:
            try:
                retry = ExponentialRetry(
                    retry_count=self.max_retries,
                    location_mode=self.location_mode,
                    primary_endpoint=config.primary_endpoint,
                    secondary_endpoint=config.effective_secondary_endpoint,
                )
            except ValueError as exc:
                service.close()
                raise CLIError.usage(str(exc)) from exc
            service.with_filter(retry)
        self._service = service
        return service

    def close(self) -> None:
        if self._service is not None:
            self._service.close()
            self._service = None


def exit_code_for_exception(exc: Exception) -> int:
    if isinstance(exc, CLIError):
        return exc.exit_code
    if isinstance(exc, ConfigurationError):
        return 2
    if isinstance(exc, (SigningError, AuthenticationError, AuthorizationError)):
        return 3
    if isinstance(exc, NotFoundError):
        return 4
    if isinstance(exc, (ServerError, TransportError)):
        return 5
    return 1


def error_info_for_exception(exc: Exception) -> ErrorInfo:
    if isinstance(exc, CLIError):
        return ErrorInfo(type=exc.error_type, message=exc.message, details=exc.details)
    if isinstance(exc, StorageError):
        return ErrorInfo(
            type=exc.__class__.__name__,
            message=exc.message,
            status_code=exc.status_code,
            error_code=exc.error_code,
        )
    return ErrorInfo(type=exc.__class__.__name__, message=str(exc))


def build_result(
    *,
    ok: bool,
    command: str,
    started_at: float,
    data: Any | None,
    warnings: list[str],
    attempts: int | None = None,
    error: ErrorInfo | None = None,
) -> CommandResult:
    duration_ms = int(max(0.0, (time.time() - started_at) * 1000))
    return CommandResult(
        ok=ok,
        command=command,
        data=data,
        warnings=warnings,
        meta=CommandMeta(duration_ms=duration_ms, attempts=attempts),
        error=error,
    )
