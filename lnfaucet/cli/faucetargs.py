import asyncio
import click
import sys
from pydantic import ValidationError

from lnfaucet.cli.faucetcli import (
    build_faucet,
    close_one_channel,
    run_server,
    sweep_once,
    wipe_channels,
)
from lnfaucet.faucet.closer import ChannelCloseError
from lnfaucet.ln.requesthandlers import InvalidChannelPoint
from lnfaucet.settings import Settings


def ln_backend_options(f):
    """--rest-host/--permissions-file-path/--cert-file-path for every command"""
    options = [
        click.option(
            "--rest-host",
            "rest_host",
            type=str,
            default=None,
            help="node REST endpoint, e.g. https://localhost:8080"
        ),
        click.option(
            "--permissions-file-path",
            "permissions_file_path",
            type=click.Path(exists=True, dir_okay=False),
            default=None,
            help="path to the node's macaroon"
        ),
        click.option(
            "--cert-file-path",
            "cert_file_path",
            type=click.Path(exists=True, dir_okay=False),
            default=None,
            help="path to the node's tls cert"
        ),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def format_errors(exc: ValidationError) -> str:
    """one line per bad setting, named the way it is set in .env"""
    lines = ["Configuration error:"]
    for err in exc.errors():
        field = ".".join(str(x) for x in err["loc"]) or "settings"
        lines.append(f"  {field} ({field.upper()}): {err['msg']}")
    return "\n".join(lines)


def load_settings(ctx: click.Context, **kwargs) -> Settings:
    # only hand pydantic the CLI values that were given, .env/defaults fill
    # in the rest
    init = {k: v for k, v in kwargs.items() if v is not None}
    log_level = (ctx.obj or {}).get("log_level")
    if log_level is not None:
        init["log_level"] = log_level
    try:
        return Settings(**init)
    except ValidationError as e:
        click.secho(format_errors(e), fg="red", err=True)
        sys.exit(1)


# --- serve subcommand -----------
@click.command("serve", help="Run the faucet HTTP API and the zombie channel sweeper")
@ln_backend_options
@click.option(
    "--host",
    "bind_host",
    type=str,
    default=None,
    help="address to listen on for http"
)
@click.option(
    "--port",
    "bind_port",
    type=int,
    default=None,
    help="port to listen on for http"
)
@click.option(
    "--network",
    "network",
    type=str,
    default=None,
    help="the network the faucet runs on, shown to users"
)
@click.option(
    "--min-channel-size",
    "min_channel_size",
    type=int,
    default=None,
    help="smallest channel the faucet opens, in atoms"
)
@click.option(
    "--max-channel-size",
    "max_channel_size",
    type=int,
    default=None,
    help="largest channel the faucet opens, in atoms"
)
@click.pass_context
def serveargs(ctx, **kwargs):
    settings = load_settings(ctx, **kwargs)
    try:
        run_server(settings)
    except KeyboardInterrupt:
        click.echo("\nShutdown complete.", err=True)
        sys.exit(0)


# --- admin subcommands -----------
@click.command("wipe-chans", help="Close all faucet channels and exit")
@ln_backend_options
@click.pass_context
def wipechansargs(ctx, **kwargs):
    """
    cooperative close for active channels, force close for inactive ones.
    exits non-zero if any channel could not be closed
    """
    settings = load_settings(ctx, **kwargs)
    faucet = build_faucet(settings)
    try:
        all_closed = asyncio.run(wipe_channels(faucet))
    except Exception as e:
        click.secho(f"Failed to close channels: {e}", fg="red", err=True)
        sys.exit(1)
    if not all_closed:
        sys.exit(1)


@click.command("close-chan", help="Close a single channel given as <txid>:<index>")
@click.argument("channel_point", type=str)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="force close instead of a cooperative close"
)
@ln_backend_options
@click.pass_context
def closechanargs(ctx, channel_point, force, **kwargs):
    settings = load_settings(ctx, **kwargs)
    faucet = build_faucet(settings)
    try:
        txid = asyncio.run(close_one_channel(faucet, channel_point, force))
    except (InvalidChannelPoint, ChannelCloseError) as e:
        click.secho(str(e), fg="red", err=True)
        sys.exit(1)
    click.echo(f"closing txid: {txid}")


@click.command("sweep", help="Run one zombie channel sweep now")
@ln_backend_options
@click.pass_context
def sweepargs(ctx, **kwargs):
    settings = load_settings(ctx, **kwargs)
    faucet = build_faucet(settings)
    report = asyncio.run(sweep_once(faucet))
    if report is None or report.error_message:
        click.secho("Zombie sweep failed, see log", fg="red", err=True)
        sys.exit(1)
    click.echo(f"cutoff: {report.cutoff.isoformat()}")
    for channel_point in report.closed:
        click.echo(f"closed: {channel_point}")
    for channel_point in report.failed:
        click.echo(f"failed: {channel_point}")
    for channel_point in report.skipped:
        click.echo(f"skipped: {channel_point}")
