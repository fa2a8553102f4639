import click
import sys
from pydantic import ValidationError

from lnfaucet.cli.faucetargs import (
    closechanargs,
    format_errors,
    serveargs,
    sweepargs,
    wipechansargs,
)
from lnfaucet.cli.logger import LoggerSetup
from lnfaucet.settings import FaucetSettings, LogLevel

LOG_LEVELS = [lvl.value.lower() for lvl in LogLevel]


@click.group(
    context_settings={
        "help_option_names": ["-h", "--help"],
        "max_content_width": 120,
        "terminal_width": 120,
    }
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="logging level, e.g. DEBUG, info, WaRnInG, etc. [default: from "
    ".env or info]",
)
@click.pass_context
def cli(ctx, log_level):
    """
    lnfaucet: hands out payment channels and closes zombie channels
    """
    ctx.ensure_object(dict)
    level_enum = LogLevel[log_level.upper()] if log_level else None
    if level_enum is None:
        try:
            level_enum = FaucetSettings().log_level
        except ValidationError as e:
            click.secho(format_errors(e), fg="red", err=True)
            sys.exit(1)
    LoggerSetup(level_enum).setup_logging()
    ctx.obj["log_level"] = level_enum


def register_commands(group: click.Group):
    group.add_command(serveargs)
    group.add_command(wipechansargs)
    group.add_command(closechanargs)
    group.add_command(sweepargs)


def main():
    register_commands(cli)
    cli()


if __name__ == "__main__":
    main()
