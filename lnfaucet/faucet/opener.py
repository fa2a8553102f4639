import logging
from pydantic import BaseModel
from typing import Optional

from lnfaucet.faucet.outcome import SubmissionOutcome
from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import FundingRequest

logger = logging.getLogger(name=__name__)


class ChannelOpenResult(BaseModel):
    outcome: SubmissionOutcome
    funding_txid: Optional[str] = None
    output_index: Optional[int] = None


class ChannelOpener:
    """
    Drives one funding request to the point where the daemon reports the
    channel as pending.

    Not idempotent: once the daemon has broadcast the funding tx there is no
    undo, and a failure reported after the broadcast may still leave a
    channel behind. Nothing here retries; the duplicate channel checks catch
    that case on the next request.
    """
    def __init__(self, ln_backend: NodeBase):
        self.ln_backend = ln_backend

    async def open(self, request: FundingRequest) -> ChannelOpenResult:
        logger.info(
            f'attempting to create channel with {request.pubkey_hex}, '
            f'local_funding_amount={request.local_funding_amount} '
            f'push_amount={request.push_amount}')
        try:
            update = await self.ln_backend.open_channel(request)
        except Exception as e:
            logger.error(f'opening channel stream failed: {e}')
            return ChannelOpenResult(outcome=SubmissionOutcome.OPEN_FAILED)

        if update.error_message:
            logger.error(f'channel update failed: {update.error_message}')
            return ChannelOpenResult(outcome=SubmissionOutcome.OPEN_FAILED)

        if not update.pending or not update.txid_hex:
            logger.error(f'expected a pending channel update, got {update.channel_state.value}')
            return ChannelOpenResult(outcome=SubmissionOutcome.OPEN_FAILED)

        logger.info(f'channel created with txid: {update.txid_hex}')
        return ChannelOpenResult(
            outcome=SubmissionOutcome.NONE,
            funding_txid=update.txid_hex,
            output_index=update.output_index,
        )
