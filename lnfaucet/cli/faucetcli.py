import click
import logging
import uvicorn

from lnfaucet.api.app import create_app
from lnfaucet.faucet.orchestrator import LightningFaucet
from lnfaucet.ln.lnd import LndBackend
from lnfaucet.settings import Settings

logger = logging.getLogger(name=__name__)


def build_faucet(settings: Settings) -> LightningFaucet:
    if settings.permissions_file_path is None:
        raise click.UsageError(
            "Missing required parameter (either via CLI or .env): "
            "--permissions-file-path"
        )
    ln_backend = LndBackend(
        rest_host=settings.rest_host.unicode_string(),
        permissions_file_path=settings.permissions_file_path.as_posix(),
        cert_file_path=settings.cert_file_path.as_posix()
        if settings.cert_file_path
        else None,
    )
    return LightningFaucet(
        ln_backend=ln_backend,
        network=settings.network,
        policy=settings,
    )


def run_server(settings: Settings) -> None:
    faucet = build_faucet(settings)
    app = create_app(faucet)
    logger.info(
        f"serving faucet for {settings.network} on "
        f"{settings.bind_host}:{settings.bind_port}")
    uvicorn.run(
        app,
        host=settings.bind_host,
        port=settings.bind_port,
        log_level=settings.log_level.value.lower(),
    )


async def wipe_channels(faucet: LightningFaucet) -> bool:
    """close everything, True when every close went through"""
    try:
        results = await faucet.close_all_channels()
    finally:
        await faucet.shutdown()

    for result in results:
        if result.closed:
            click.echo(f"{result.channel_point} closing txid: {result.closing_txid}"
                       f"{' (force)' if result.force else ''}")
        else:
            click.secho(f"{result.channel_point} failed: {result.error_message}", fg="red")
    if not results:
        click.echo("No open channels")
    return all(result.closed for result in results)


async def close_one_channel(
        faucet: LightningFaucet,
        channel_point: str,
        force: bool) -> str:
    try:
        return await faucet.close_channel(channel_point, force=force)
    finally:
        await faucet.shutdown()


async def sweep_once(faucet: LightningFaucet):
    try:
        return await faucet.sweep_zombies()
    finally:
        await faucet.shutdown()
