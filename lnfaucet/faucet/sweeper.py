import asyncio
import contextlib
import logging
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel, Field
from typing import List, Optional

from lnfaucet.faucet.closer import ChannelCloseError, ChannelCloser
from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import (
    ChannelPoint,
    ChannelRecord,
    InvalidChannelPoint,
)

logger = logging.getLogger(name=__name__)

DEFAULT_ZOMBIE_AGE = timedelta(hours=48)
DEFAULT_SWEEP_INTERVAL = timedelta(hours=1)


class SweepReport(BaseModel):
    cutoff: datetime
    closed: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None


def is_zombie(
        channel: ChannelRecord,
        last_seen: datetime,
        cutoff: datetime) -> bool:
    """
    a zombie is inactive AND its peer hasn't been seen since the cutoff,
    neither condition closes a channel on its own
    """
    return not channel.active and last_seen < cutoff


class ZombieSweeper:
    """
    Periodically force closes channels whose peer has gone away.

    One task does all the work: a sweep right away at start, then one per
    interval. Sweeps never overlap. If a sweep runs past the next tick that
    tick is served as soon as it finishes and any further missed ticks are
    dropped.
    """
    def __init__(
            self,
            ln_backend: NodeBase,
            closer: ChannelCloser,
            zombie_age: timedelta = DEFAULT_ZOMBIE_AGE,
            sweep_interval: timedelta = DEFAULT_SWEEP_INTERVAL):
        self.ln_backend = ln_backend
        self.closer = closer
        self.zombie_age = zombie_age
        self.sweep_interval = sweep_interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self, cutoff: datetime) -> SweepReport:
        report = SweepReport(cutoff=cutoff)
        open_channels = await self.ln_backend.list_channels()
        if open_channels.error_message:
            logger.error(f'unable to fetch open channels: {open_channels.error_message}')
            report.error_message = open_channels.error_message
            return report

        for channel in open_channels.channels:
            try:
                last_seen = await self.ln_backend.get_peer_last_seen(channel.remote_pubkey)
            except Exception as e:
                logger.error(f'unable to get node info for {channel.remote_pubkey}: {e}')
                report.skipped.append(channel.channel_point)
                continue
            if last_seen.error_message or last_seen.last_seen is None:
                logger.error(
                    f'unable to get node info for {channel.remote_pubkey}: '
                    f'{last_seen.error_message}')
                report.skipped.append(channel.channel_point)
                continue

            if not is_zombie(channel, last_seen.last_seen, cutoff):
                continue

            logger.info(
                f'ChannelPoint({channel.channel_point}) is a zombie, '
                f'last seen: {last_seen.last_seen.isoformat()}')

            try:
                chan_point = ChannelPoint.from_str(channel.channel_point)
            except InvalidChannelPoint as e:
                logger.error(f'unable to get chan point: {e}')
                report.skipped.append(channel.channel_point)
                continue

            try:
                txid = await self.closer.close(chan_point, force=True)
            except ChannelCloseError as e:
                logger.error(f'unable to close zombie chan: {e}')
                report.failed.append(channel.channel_point)
                continue

            logger.info(f'closed zombie chan, txid: {txid}')
            report.closed.append(channel.channel_point)

        return report

    async def run_once(self) -> Optional[SweepReport]:
        cutoff = datetime.now(timezone.utc) - self.zombie_age
        try:
            return await self.sweep(cutoff)
        except Exception as e:
            logger.exception(f'zombie sweep failed: {e}')
            return None

    async def _run(self):
        logger.info('zombie chan sweeper active')
        loop = asyncio.get_running_loop()
        interval = self.sweep_interval.total_seconds()

        # catch up on anything that turned into a zombie while we were down
        await self.run_once()

        next_tick = loop.time() + interval
        while True:
            delay = next_tick - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)

            # coalesce every tick that went by while the last sweep was busy
            missed = max(0, int((loop.time() - next_tick) // interval))
            next_tick += (missed + 1) * interval

            logger.info('Performing zombie channel sweep!')
            await self.run_once()

    def start(self):
        if not self.running:
            self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info('zombie chan sweeper stopped')
