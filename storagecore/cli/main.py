from __future__ import annotations

from pathlib import Path

import storagecore
from storagecore.policies import LocationMode

from .click_compat import RichGroup, click
from .context import CLIContext
from .logging import configure_logging, restore_logging


@click.group(
    name="storagecore",
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
    cls=RichGroup,
)
@click.option(
    "--output",
    type=click.Choice(["table", "json"]),
    default="table",
)
@click.option("--json", "json_flag", is_flag=True, help="Alias for --output json.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress non-essential stderr output.")
@click.option("-v", "verbose", count=True, help="Increase verbosity (-v, -vv).")
@click.option("--dotenv/--no-dotenv", default=False, help="Opt-in .env loading.")
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False),
    default=".env",
)
@click.option("--account", "account_name", type=str, default=None, help="Storage account name.")
@click.option(
    "--access-key-file",
    type=str,
    default=None,
    help="Read the access key from file (or '-' for stdin).",
)
@click.option("--endpoint", type=str, default=None, help="Override the primary endpoint URL.")
@click.option(
    "--secondary-endpoint",
    type=str,
    default=None,
    help="Override the secondary endpoint URL.",
)
@click.option(
    "--anonymous",
    is_flag=True,
    help="Send requests without signing them (public access only).",
)
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds.")
@click.option(
    "--max-retries",
    type=int,
    default=3,
    show_default=True,
    help="Maximum retries for transient failures (0 disables retries).",
)
@click.option(
    "--location-mode",
    type=click.Choice([m.value for m in LocationMode]),
    default=LocationMode.PRIMARY_ONLY.value,
    show_default=True,
    help="Which endpoints to use, and in what order on retry.",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None)
@click.version_option(version=storagecore.__version__, prog_name="storagecore")
@click.pass_context
def cli(
    click_ctx: click.Context,
    *,
    output: str,
    json_flag: bool,
    quiet: bool,
    verbose: int,
    dotenv: bool,
    env_file: str,
    account_name: str | None,
    access_key_file: str | None,
    endpoint: str | None,
    secondary_endpoint: str | None,
    anonymous: bool,
    timeout: float | None,
    max_retries: int,
    location_mode: str,
    log_file: str | None,
) -> None:
    if click_ctx.invoked_subcommand is None:
        # No args: show help; no network calls.
        click.echo(click_ctx.get_help())
        raise click.exceptions.Exit(0)

    out = "json" if json_flag else output

    click_ctx.obj = CLIContext(
        output=out,  # type: ignore[arg-type]
        quiet=quiet,
        verbosity=verbose,
        dotenv=dotenv,
        env_file=Path(env_file),
        account_name=account_name,
        access_key_file=access_key_file,
        endpoint=endpoint,
        secondary_endpoint=secondary_endpoint,
        anonymous=anonymous,
        timeout=timeout,
        max_retries=max_retries,
        location_mode=LocationMode(location_mode),
    )

    click_ctx.call_on_close(click_ctx.obj.close)

    previous_logging = configure_logging(
        verbosity=verbose,
        log_file=Path(log_file) if log_file else None,
    )
    click_ctx.call_on_close(lambda: restore_logging(previous_logging))


# Register commands
from .commands.request_cmd import request_cmd as _request_cmd  # noqa: E402
from .commands.sign_cmd import sign_cmd as _sign_cmd  # noqa: E402
from .commands.version_cmd import version_cmd as _version_cmd  # noqa: E402

cli.add_command(_version_cmd)
cli.add_command(_request_cmd)
cli.add_command(_sign_cmd)
