from __future__ import annotations

from typing import BinaryIO

from ..click_compat import RichCommand, click
from ..context import CLIContext
from ..errors import CLIError
from ..options import output_options, request_options
from ..runner import CommandOutput, run_command


@click.command(name="request", cls=RichCommand)
@request_options
@click.option("--data", "data", type=str, default=None, help="Request body (UTF-8 text).")
@click.option(
    "--data-file",
    type=click.File("rb"),
    default=None,
    help="Read the request body from a file ('-' for stdin).",
)
@output_options
@click.pass_obj
def request_cmd(
    ctx: CLIContext,
    *,
    method: str,
    path: str,
    headers: list[tuple[str, str]],
    data: str | None,
    data_file: BinaryIO | None,
) -> None:
    """Send a signed request through the full filter chain (with retries)."""

    def fn(ctx: CLIContext, warnings: list[str]) -> CommandOutput:
        if data is not None and data_file is not None:
            raise CLIError.usage("Use either --data or --data-file, not both.")
        body: bytes | str | None = data
        if data_file is not None:
            body = data_file.read()

        service = ctx.get_service()
        if service.anonymous:
            warnings.append("Sending unauthenticated request (--anonymous).")
        response = service.call(method, path, body=body, headers=dict(headers) or None)
        return CommandOutput(
            data={
                "status": response.status_code,
                "requestId": response.context.get("request_id"),
                "headers": dict(response.headers),
                "body": response.text,
            },
            warnings=warnings,
            attempts=response.context.get("retry_count", 0) + 1,
        )

    run_command(ctx, command="request", fn=fn)
