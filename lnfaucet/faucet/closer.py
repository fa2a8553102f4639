import logging

from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import ChannelPoint, ChannelRecord

logger = logging.getLogger(name=__name__)


class ChannelCloseError(Exception):
    def __init__(self, channel_point: ChannelPoint, reason: str):
        self.channel_point = channel_point
        self.reason = reason
        super().__init__(f'unable to close channel {channel_point}: {reason}')


def force_for(channel: ChannelRecord) -> bool:
    """an inactive channel can't be closed cooperatively"""
    return not channel.active


class ChannelCloser:
    """
    Closes one channel and waits until the closing tx has been broadcast.

    The channel's state is not re-checked first. Closing a channel that is
    already closing succeeds or fails however the daemon decides.
    """
    def __init__(self, ln_backend: NodeBase):
        self.ln_backend = ln_backend

    async def close(self, channel_point: ChannelPoint, force: bool = False) -> str:
        """closing txid, or ChannelCloseError"""
        try:
            update = await self.ln_backend.close_channel(channel_point, force=force)
        except Exception as e:
            raise ChannelCloseError(channel_point, f'unable to start channel close: {e}') from e

        if update.error_message:
            raise ChannelCloseError(channel_point, update.error_message)

        if not update.pending or not update.txid_hex:
            raise ChannelCloseError(
                channel_point,
                f"didn't get a pending update, got {update.channel_state.value}")

        return update.txid_hex
