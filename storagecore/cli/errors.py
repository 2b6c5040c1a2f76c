from __future__ import annotations

from typing import Any

USAGE_EXIT_CODE = 2


class CLIError(Exception):
    """An error reported to the user with a specific exit code."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int = 1,
        error_type: str = "error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code
        self.error_type = error_type
        self.details = details

    @classmethod
    def usage(cls, message: str, *, error_type: str = "usage_error") -> CLIError:
        """Bad flags, missing credentials or invalid configuration (exit code 2)."""
        return cls(message, exit_code=USAGE_EXIT_CODE, error_type=error_type)

    def __str__(self) -> str:
        return self.message
