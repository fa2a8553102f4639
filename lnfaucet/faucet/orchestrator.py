import asyncio
import logging
from datetime import timedelta
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from lnfaucet.faucet.closer import ChannelCloseError, ChannelCloser, force_for
from lnfaucet.faucet.opener import ChannelOpener
from lnfaucet.faucet.outcome import SubmissionOutcome
from lnfaucet.faucet.sweeper import SweepReport, ZombieSweeper
from lnfaucet.faucet.validator import FundingPolicyValidator
from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import (
    ChannelPoint,
    ChannelRecord,
    ErrorMessageMixin,
    InvalidChannelPoint,
    PendingChannel,
)
from lnfaucet.settings import ATOMS_PER_COIN, PolicySettings

logger = logging.getLogger(name=__name__)

GIT_COMMIT_MARKER = 'commit='
GIT_HASH_LEN = 40


class FaucetError(Exception):
    pass


class HomeState(BaseModel):
    """what the faucet page shows: funds, identity and channels"""
    num_coins: float
    git_commit_hash: str = ''
    node_addr: str = ''
    num_confs: int
    network: str
    active_channels: List[ChannelRecord] = Field(default_factory=list)
    pending_channels: List[PendingChannel] = Field(default_factory=list)


class FundingSubmission(BaseModel):
    outcome: SubmissionOutcome
    message: str = ''
    channel_txid: Optional[str] = None
    form_fields: Dict[str, str] = Field(default_factory=dict)


class CloseChannelResult(ErrorMessageMixin):
    channel_point: str
    force: bool
    closing_txid: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self.closing_txid is not None


def parse_git_commit(version: str) -> str:
    """
    the daemon's version string ends with commit=<hash> when it was built
    from a git checkout
    """
    p = version.rfind(GIT_COMMIT_MARKER)
    if p > -1 and len(version) - p - len(GIT_COMMIT_MARKER) >= GIT_HASH_LEN:
        return version[-GIT_HASH_LEN:].replace("'", "")
    return ''


class LightningFaucet:
    """
    Hands out channels to whoever asks, one per peer, and tidies up channels
    whose peers have disappeared.
    """
    def __init__(
            self,
            ln_backend: NodeBase,
            network: str,
            policy: Optional[PolicySettings] = None):
        self.ln_backend = ln_backend
        self.network = network
        self.policy = policy if policy else PolicySettings()
        self.validator = FundingPolicyValidator(
            ln_backend=ln_backend,
            min_channel_size=self.policy.min_channel_size,
            max_channel_size=self.policy.max_channel_size,
        )
        self.opener = ChannelOpener(ln_backend=ln_backend)
        self.closer = ChannelCloser(ln_backend=ln_backend)
        self.sweeper = ZombieSweeper(
            ln_backend=ln_backend,
            closer=self.closer,
            zombie_age=timedelta(hours=self.policy.zombie_age_hours),
            sweep_interval=timedelta(minutes=self.policy.sweep_interval_minutes),
        )

    # ------------------------------------------
    # start/stop
    # ------------------------------------------

    def start(self) -> None:
        """launch the zombie sweeper, must be called with a running loop"""
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()

    async def shutdown(self) -> None:
        await self.stop()
        await self.ln_backend.close_rest_client()

    # ------------------------------------------
    # state
    # ------------------------------------------

    async def fetch_home_state(self) -> HomeState:
        node_info, active_channels, pending_channels, wallet_balance = await asyncio.gather(
            self.ln_backend.get_node_info(),
            self.ln_backend.list_channels(),
            self.ln_backend.pending_channels(),
            self.ln_backend.get_wallet_balance(),
        )
        for name, resp in (
                ('GetInfo', node_info),
                ('ListChannels', active_channels),
                ('PendingChannels', pending_channels),
                ('WalletBalance', wallet_balance)):
            if resp.error_message:
                logger.error(f'rpc {name} failed: {resp.error_message}')
                raise FaucetError(f'rpc {name} failed: {resp.error_message}')

        node_addr = ''
        if not node_info.uris:
            logger.warning(
                'node info did not include a URI, external_ip config of the '
                'node is probably not set')
        else:
            node_addr = node_info.uris[0]

        return HomeState(
            num_coins=wallet_balance.confirmed_balance / ATOMS_PER_COIN,
            git_commit_hash=parse_git_commit(node_info.version),
            node_addr=node_addr,
            num_confs=self.policy.num_confs,
            network=self.network,
            active_channels=active_channels.channels,
            pending_channels=pending_channels.pending_open_channels,
        )

    # ------------------------------------------
    # funding
    # ------------------------------------------

    async def submit_funding_request(
            self,
            node: str,
            amt: str,
            bal: str) -> FundingSubmission:
        form_fields = {'node': node, 'amt': amt, 'bal': bal}
        validated = await self.validator.validate(node=node, amt=amt, bal=bal)
        if not validated.is_valid:
            logger.info(f'rejected funding request for {node!r}: {validated.outcome.value}')
            return self._submission(validated.outcome, form_fields)

        opened = await self.opener.open(validated.request)
        return self._submission(
            opened.outcome,
            form_fields,
            channel_txid=opened.funding_txid)

    def _submission(
            self,
            outcome: SubmissionOutcome,
            form_fields: Dict[str, str],
            channel_txid: Optional[str] = None) -> FundingSubmission:
        return FundingSubmission(
            outcome=outcome,
            message=outcome.message(min_channel_size=self.policy.min_channel_size),
            channel_txid=channel_txid,
            form_fields=form_fields,
        )

    # ------------------------------------------
    # closing
    # ------------------------------------------

    async def close_channel(self, channel_point: str, force: bool = False) -> str:
        """
        administrative close of a single channel, raises InvalidChannelPoint
        or ChannelCloseError
        """
        chan_point = ChannelPoint.from_str(channel_point)
        logger.info(f'Attempting to close channel: {chan_point} (force={force})')
        closing_txid = await self.closer.close(chan_point, force=force)
        logger.info(f'closing txid: {closing_txid}')
        return closing_txid

    async def close_all_channels(self) -> List[CloseChannelResult]:
        """
        close every open channel, cooperatively when active and by force
        otherwise. one failed channel doesn't stop the rest
        """
        open_channels = await self.ln_backend.list_channels()
        if open_channels.error_message:
            raise FaucetError(f'unable to fetch open channels: {open_channels.error_message}')

        results = []
        for channel in open_channels.channels:
            logger.info(f'Attempting to close channel: {channel.channel_point}')
            force_close = force_for(channel)
            if force_close:
                logger.info('Attempting force close')
            result = CloseChannelResult(
                channel_point=channel.channel_point,
                force=force_close)

            try:
                chan_point = ChannelPoint.from_str(channel.channel_point)
                result.closing_txid = await self.closer.close(chan_point, force=force_close)
            except (InvalidChannelPoint, ChannelCloseError) as e:
                logger.error(f'unable to close channel: {e}')
                result.error_message = str(e)
            else:
                logger.info(f'closing txid: {result.closing_txid}')
            results.append(result)

        return results

    async def sweep_zombies(self) -> Optional[SweepReport]:
        """one sweep now, outside the schedule"""
        return await self.sweeper.run_once()
