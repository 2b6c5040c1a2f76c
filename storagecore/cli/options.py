from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from .click_compat import click
from .context import CLIContext

F = TypeVar("F", bound=Callable[..., object])


def _set_json(ctx: click.Context, _param: click.Parameter, value: bool) -> bool:
    if not value:
        return value
    obj = ctx.obj
    if isinstance(obj, CLIContext):
        obj.output = "json"
    return value


def output_options(fn: F) -> F:
    fn = click.option(
        "--json",
        is_flag=True,
        help="Emit a JSON result instead of a table.",
        callback=_set_json,
        expose_value=False,
    )(fn)
    return fn


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, header_value = value.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"Expected 'name:value', got {value!r}")
    return name.strip(), header_value.strip()


def parse_headers(
    _ctx: click.Context, _param: click.Parameter, values: tuple[str, ...]
) -> list[tuple[str, str]]:
    return [_parse_header(v) for v in values]


def request_options(fn: F) -> F:
    fn = click.option(
        "-H",
        "--header",
        "headers",
        multiple=True,
        callback=parse_headers,
        help="Extra request header as 'name:value' (repeatable).",
    )(fn)
    fn = click.argument("path", type=str)(fn)
    fn = click.argument("method", type=str)(fn)
    return fn
