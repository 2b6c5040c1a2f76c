from __future__ import annotations

import time

from storagecore.auth import SharedKeyLiteSigner, SharedKeySigner, Signer, format_date
from storagecore.policies import Policies
from storagecore.service import FilteredService

from ..click_compat import RichCommand, click
from ..context import CLIContext
from ..errors import CLIError
from ..options import output_options, request_options
from ..runner import CommandOutput, run_command

_SCHEMES: dict[str, type[Signer]] = {
    "shared-key": SharedKeySigner,
    "shared-key-lite": SharedKeyLiteSigner,
}


@click.command(name="sign", cls=RichCommand)
@request_options
@click.option(
    "--scheme",
    type=click.Choice(sorted(_SCHEMES)),
    default="shared-key",
    show_default=True,
)
@click.option("--date", "date", type=str, default=None, help="Fixed x-ms-date value.")
@output_options
@click.pass_obj
def sign_cmd(
    ctx: CLIContext,
    *,
    method: str,
    path: str,
    headers: list[tuple[str, str]],
    scheme: str,
    date: str | None,
) -> None:
    """Show the string-to-sign and Authorization header (no network access)."""

    def fn(ctx: CLIContext, warnings: list[str]) -> CommandOutput:
        config = ctx.resolve_config()
        if not config.has_credentials:
            raise CLIError.usage(
                "Missing account credentials. Set STORAGECORE_ACCOUNT_NAME and "
                "STORAGECORE_ACCESS_KEY, or use --account/--access-key-file.",
            )
        signer = _SCHEMES[scheme].from_config(config)
        policies = Policies(location_mode=ctx.location_mode)
        with FilteredService(config, policies=policies) as service:
            req = service.build_request(method, path, None, dict(headers) or None, {})
        req.headers["x-ms-date"] = date or format_date(time.time())
        signer.sign(req)
        return CommandOutput(
            data={
                "uri": req.uri,
                "stringToSign": signer.string_to_sign(req),
                "authorization": req.headers["Authorization"],
            },
            warnings=warnings,
        )

    run_command(ctx, command="sign", fn=fn)
