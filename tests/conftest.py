import base64
import pytest
from datetime import datetime, timedelta, timezone

from lnfaucet.faucet.orchestrator import LightningFaucet
from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import (
    ChannelCloseResponse,
    ChannelOpenResponse,
    ChannelRecord,
    ChannelState,
    ListChannelsResponse,
    ListPeersResponse,
    NodeInfoResponse,
    NodeLastSeenResponse,
    Peer,
    PendingChannel,
    PendingChannelsResponse,
    WalletBalanceResponse,
)
from lnfaucet.settings import PolicySettings

PEER_PUBKEY = '02' + 'ab' * 32
OTHER_PUBKEY = '03' + 'cd' * 32
FAUCET_PUBKEY = '02' + '11' * 32

FUNDING_TXID_RAW = bytes(range(32))
FUNDING_TXID_B64 = base64.b64encode(FUNDING_TXID_RAW).decode()
FUNDING_TXID = FUNDING_TXID_RAW[::-1].hex()

CLOSING_TXID_RAW = bytes(range(100, 132))
CLOSING_TXID_B64 = base64.b64encode(CLOSING_TXID_RAW).decode()
CLOSING_TXID = CLOSING_TXID_RAW[::-1].hex()

GIT_HASH = 'f' * 40


def chan_point(n: int, index: int = 0) -> str:
    return f'{n:064x}:{index}'


def make_channel(
        n: int,
        remote_pubkey: str = PEER_PUBKEY,
        active: bool = False,
        channel_point: str = None) -> ChannelRecord:
    return ChannelRecord(
        channel_point=channel_point or chan_point(n),
        remote_pubkey=remote_pubkey,
        active=active,
        capacity=1000000,
    )


def hours_ago(hours: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=hours)


class FakeLnBackend(NodeBase):
    """in-memory node, `failing` holds the names of calls that error out"""

    def __init__(self):
        self.node_info = NodeInfoResponse(
            version=f'0.18.0-beta commit={GIT_HASH}',
            uris=[f'{FAUCET_PUBKEY}@10.0.0.9:9735'],
            pubkey=FAUCET_PUBKEY,
            alias='faucet',
        )
        self.peers = []
        self.channels = []
        self.pending = []
        self.confirmed_balance = 250000000
        self.last_seen = {}
        self.open_response = ChannelOpenResponse(
            channel_state=ChannelState.PENDING,
            txid_bytes=FUNDING_TXID_B64,
            output_index=0,
        )
        self.close_responses = {}
        self.failing = set()
        self.calls = []
        self.closed_client = False

    def _error(self, name):
        return f'{name} unavailable' if name in self.failing else None

    async def get_node_info(self):
        self.calls.append(('get_node_info',))
        err = self._error('get_node_info')
        return NodeInfoResponse(error_message=err) if err else self.node_info

    async def list_peers(self):
        self.calls.append(('list_peers',))
        err = self._error('list_peers')
        if err:
            return ListPeersResponse(error_message=err)
        return ListPeersResponse(peers=[Peer(pubkey=p) for p in self.peers])

    async def list_channels(self):
        self.calls.append(('list_channels',))
        err = self._error('list_channels')
        if err:
            return ListChannelsResponse(error_message=err)
        return ListChannelsResponse(channels=list(self.channels))

    async def pending_channels(self):
        self.calls.append(('pending_channels',))
        err = self._error('pending_channels')
        if err:
            return PendingChannelsResponse(error_message=err)
        return PendingChannelsResponse(pending_open_channels=[
            PendingChannel(remote_node_pub=p) for p in self.pending])

    async def get_wallet_balance(self):
        self.calls.append(('get_wallet_balance',))
        err = self._error('get_wallet_balance')
        if err:
            return WalletBalanceResponse(error_message=err)
        return WalletBalanceResponse(
            total_balance=self.confirmed_balance,
            confirmed_balance=self.confirmed_balance)

    async def get_peer_last_seen(self, pubkey):
        self.calls.append(('get_peer_last_seen', pubkey))
        seen = self.last_seen.get(pubkey)
        if isinstance(seen, Exception):
            raise seen
        if seen is None:
            return NodeLastSeenResponse(
                pubkey=pubkey,
                error_message=f'no node announcement for {pubkey}')
        return NodeLastSeenResponse(pubkey=pubkey, last_seen=seen)

    async def open_channel(self, request):
        self.calls.append(('open_channel', request))
        if isinstance(self.open_response, Exception):
            raise self.open_response
        return self.open_response

    async def close_channel(self, channel_point, force=False):
        self.calls.append(('close_channel', str(channel_point), force))
        resp = self.close_responses.get(str(channel_point))
        if isinstance(resp, Exception):
            raise resp
        if resp is None:
            resp = ChannelCloseResponse(
                channel_state=ChannelState.PENDING,
                txid_bytes=CLOSING_TXID_B64,
                output_index=0,
            )
        return resp

    async def close_rest_client(self):
        self.closed_client = True

    def calls_named(self, name):
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def ln_backend():
    return FakeLnBackend()


@pytest.fixture
def policy():
    return PolicySettings()


@pytest.fixture
def faucet(ln_backend, policy):
    return LightningFaucet(
        ln_backend=ln_backend,
        network='testnet',
        policy=policy,
    )
