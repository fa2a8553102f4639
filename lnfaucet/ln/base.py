from abc import ABC, abstractmethod
from typing import Coroutine

from lnfaucet.ln.requesthandlers import (
    ChannelCloseResponse,
    ChannelOpenResponse,
    ChannelPoint,
    FundingRequest,
    ListChannelsResponse,
    ListPeersResponse,
    NodeInfoResponse,
    NodeLastSeenResponse,
    PendingChannelsResponse,
    WalletBalanceResponse,
)


class NodeBase(ABC):
    """
    what the faucet needs from a channel daemon. failures come back in the
    response's error_message, nothing is retried here.

    calls carry no read timeout: a daemon that never answers leaves the
    awaiting task suspended
    """

    @abstractmethod
    def get_node_info(self) -> Coroutine[None, None, NodeInfoResponse]:
        pass

    @abstractmethod
    def list_peers(self) -> Coroutine[None, None, ListPeersResponse]:
        pass

    @abstractmethod
    def list_channels(self) -> Coroutine[None, None, ListChannelsResponse]:
        pass

    @abstractmethod
    def pending_channels(self) -> Coroutine[None, None, PendingChannelsResponse]:
        pass

    @abstractmethod
    def get_wallet_balance(self) -> Coroutine[None, None, WalletBalanceResponse]:
        pass

    @abstractmethod
    def get_peer_last_seen(
            self,
            pubkey: str) -> Coroutine[None, None, NodeLastSeenResponse]:
        pass

    @abstractmethod
    def open_channel(
            self,
            request: FundingRequest) -> Coroutine[None, None, ChannelOpenResponse]:
        """first update of the open stream, the rest is discarded"""
        pass

    @abstractmethod
    def close_channel(
            self,
            channel_point: ChannelPoint,
            force: bool = False) -> Coroutine[None, None, ChannelCloseResponse]:
        """first update of the close stream, the rest is discarded"""
        pass

    @abstractmethod
    def close_rest_client(self) -> Coroutine[None, None, None]:
        pass
