import logging
import re
from decimal import Decimal, InvalidOperation, Overflow
from pydantic import BaseModel
from typing import Optional

from lnfaucet.faucet.outcome import SubmissionOutcome
from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import FundingRequest
from lnfaucet.settings import (
    ATOMS_PER_COIN,
    DEFAULT_MAX_CHANNEL_SIZE,
    DEFAULT_MIN_CHANNEL_SIZE,
)

logger = logging.getLogger(name=__name__)
HEX_RE = re.compile(r"^(?:[0-9A-Fa-f]{2})+$")


class ValidatedFundingRequest(BaseModel):
    outcome: SubmissionOutcome
    request: Optional[FundingRequest] = None

    @property
    def is_valid(self) -> bool:
        return self.outcome.ok


def parse_pubkey(node_pubkey: str) -> Optional[bytes]:
    """raw key bytes, or None when the input is not non-empty hex"""
    if not node_pubkey or not HEX_RE.fullmatch(node_pubkey):
        return None
    return bytes.fromhex(node_pubkey)


def parse_amount(amount: str) -> Optional[Decimal]:
    """
    a finite decimal coin amount that still fits once scaled to atoms, or
    None. digit group underscores are not numbers here
    """
    try:
        if '_' in amount:
            return None
        value = Decimal(amount.strip())
    except (InvalidOperation, AttributeError, TypeError):
        return None
    if not value.is_finite():
        return None
    try:
        to_atoms(value)
    except (Overflow, InvalidOperation):
        return None
    return value


def to_atoms(amount: Decimal) -> int:
    # truncates toward zero
    return int(amount * ATOMS_PER_COIN)


def check_channel_size(
        chan_size: int,
        push_amt: int,
        min_channel_size: int = DEFAULT_MIN_CHANNEL_SIZE,
        max_channel_size: int = DEFAULT_MAX_CHANNEL_SIZE) -> SubmissionOutcome:
    """
    both bounds are allowed sizes. the push has to leave something on our
    side of the channel
    """
    if chan_size < min_channel_size:
        return SubmissionOutcome.CHANNEL_TOO_SMALL
    if chan_size > max_channel_size:
        return SubmissionOutcome.CHANNEL_TOO_LARGE
    if push_amt >= chan_size:
        return SubmissionOutcome.PUSH_AMOUNT_INVALID
    return SubmissionOutcome.NONE


def check_amounts(
        amt: str,
        bal: str,
        min_channel_size: int = DEFAULT_MIN_CHANNEL_SIZE,
        max_channel_size: int = DEFAULT_MAX_CHANNEL_SIZE) -> SubmissionOutcome:
    chan_size = parse_amount(amt)
    if chan_size is None:
        return SubmissionOutcome.AMOUNT_NOT_NUMERIC
    push_amt = parse_amount(bal)
    if push_amt is None:
        return SubmissionOutcome.PUSH_AMOUNT_INVALID
    return check_channel_size(
        chan_size=to_atoms(chan_size),
        push_amt=to_atoms(push_amt),
        min_channel_size=min_channel_size,
        max_channel_size=max_channel_size,
    )


class FundingPolicyValidator:
    """
    Decides whether a funding form may go ahead. Checks run in a fixed
    order and stop at the first failure:

    1) pubkey is hex
    2) no open channel with the peer (one channel per peer)
    3) no pending channel with the peer
    4) peer is connected to us
    5) amounts are numbers
    6) channel size within [min, max]
    7) push below the channel size

    The node lookups in 2-4 fail open: when the node can't answer, the check
    reads as "no channel" / "no pending channel" / "not connected" and the
    error is only logged.
    """
    def __init__(
            self,
            ln_backend: NodeBase,
            min_channel_size: int = DEFAULT_MIN_CHANNEL_SIZE,
            max_channel_size: int = DEFAULT_MAX_CHANNEL_SIZE):
        self.ln_backend = ln_backend
        self.min_channel_size = min_channel_size
        self.max_channel_size = max_channel_size

    async def channel_exists_with_node(self, node_pubkey: str) -> bool:
        resp = await self.ln_backend.list_channels()
        if resp.error_message:
            logger.warning(f'could not check open channels, assuming none: {resp.error_message}')
            return False
        return any(
            chan.remote_pubkey.lower() == node_pubkey
            for chan in resp.channels)

    async def pending_channel_exists_with_node(self, node_pubkey: str) -> bool:
        resp = await self.ln_backend.pending_channels()
        if resp.error_message:
            logger.warning(f'could not check pending channels, assuming none: {resp.error_message}')
            return False
        return any(
            chan.remote_node_pub.lower() == node_pubkey
            for chan in resp.pending_open_channels)

    async def connected_to_node(self, node_pubkey: str) -> bool:
        resp = await self.ln_backend.list_peers()
        if resp.error_message:
            logger.warning(f'could not list peers, assuming not connected: {resp.error_message}')
            return False
        return any(peer.pubkey.lower() == node_pubkey for peer in resp.peers)

    async def validate(
            self,
            node: str,
            amt: str,
            bal: str) -> ValidatedFundingRequest:
        node_pubkey = parse_pubkey(node)
        if node_pubkey is None:
            return ValidatedFundingRequest(outcome=SubmissionOutcome.INVALID_ADDRESS)
        node_pubkey_hex = node_pubkey.hex()

        if await self.channel_exists_with_node(node_pubkey_hex):
            return ValidatedFundingRequest(outcome=SubmissionOutcome.CHANNEL_ALREADY_EXISTS)

        if await self.pending_channel_exists_with_node(node_pubkey_hex):
            return ValidatedFundingRequest(outcome=SubmissionOutcome.PENDING_CHANNEL_ALREADY_EXISTS)

        if not await self.connected_to_node(node_pubkey_hex):
            return ValidatedFundingRequest(outcome=SubmissionOutcome.PEER_NOT_CONNECTED)

        outcome = check_amounts(
            amt=amt,
            bal=bal,
            min_channel_size=self.min_channel_size,
            max_channel_size=self.max_channel_size,
        )
        if not outcome.ok:
            return ValidatedFundingRequest(outcome=outcome)

        return ValidatedFundingRequest(
            outcome=SubmissionOutcome.NONE,
            request=FundingRequest(
                node_pubkey=node_pubkey,
                local_funding_amount=to_atoms(parse_amount(amt)),
                push_amount=to_atoms(parse_amount(bal)),
            )
        )
