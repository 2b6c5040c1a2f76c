from __future__ import annotations

import json
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rich.console import Console
from rich.table import Table

from .click_compat import click
from .context import CLIContext, build_result, error_info_for_exception, exit_code_for_exception
from .results import CommandResult


@dataclass(frozen=True, slots=True)
class CommandOutput:
    data: Any | None = None
    warnings: list[str] | None = None
    attempts: int | None = None
    exit_code: int = 0


def _emit_json(result: CommandResult) -> None:
    payload = result.model_dump(by_alias=True, mode="json", exclude_none=True)
    sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")


def _render_table(result: CommandResult, *, quiet: bool) -> None:
    stdout = Console(file=sys.stdout, force_terminal=False, soft_wrap=True)
    stderr = Console(file=sys.stderr, force_terminal=False, soft_wrap=True)
    if not quiet:
        for w in result.warnings:
            stderr.print(f"Warning: {w}")

    if result.error is not None:
        err = result.error
        line = f"Error: {err.message}"
        if err.status_code is not None:
            line += f" (status {err.status_code})"
        if err.error_code:
            line += f" [{err.error_code}]"
        stderr.print(line, markup=False)
        return

    data = result.data
    if not isinstance(data, dict):
        if data is not None:
            stdout.print(str(data), markup=False)
        return

    table = Table(show_header=False, box=None)
    table.add_column("key", style="bold")
    table.add_column("value", overflow="fold")
    body: str | None = None
    for key, value in data.items():
        if key == "body":
            body = value
            continue
        if isinstance(value, dict):
            value = "\n".join(f"{k}: {v}" for k, v in value.items())
        table.add_row(key, str(value))
    stdout.print(table)
    if body:
        stdout.print(body, markup=False)


def emit_result(ctx: CLIContext, result: CommandResult) -> None:
    if ctx.output == "json":
        _emit_json(result)
        return
    _render_table(result, quiet=ctx.quiet)


CommandFn = Callable[[CLIContext, list[str]], CommandOutput]


def run_command(ctx: CLIContext, *, command: str, fn: CommandFn) -> None:
    started = time.time()
    warnings: list[str] = []
    try:
        out = fn(ctx, warnings)
        result = build_result(
            ok=True,
            command=command,
            started_at=started,
            data=out.data,
            warnings=(out.warnings or warnings),
            attempts=out.attempts,
        )
        emit_result(ctx, result)
        raise click.exceptions.Exit(out.exit_code)
    except click.exceptions.Exit:
        raise
    except Exception as exc:
        code = exit_code_for_exception(exc)
        result = build_result(
            ok=False,
            command=command,
            started_at=started,
            data=None,
            warnings=warnings,
            error=error_info_for_exception(exc),
        )
        emit_result(ctx, result)
        raise click.exceptions.Exit(code) from exc
