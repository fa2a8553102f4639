import base64
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional

CHANNEL_POINT_RE = re.compile(r"^([0-9A-Fa-f]{64}):([0-9]+)$")
MAX_OUTPUT_INDEX = 2**32 - 1


class ErrorMessageMixin(BaseModel):
    error_message: Optional[str] = None


class InvalidChannelPoint(ValueError):
    pass


def txid_from_bytes(txid_bytes: str) -> str:
    """
    lnd's REST gateway hands out hashes as base64 of the internal byte order,
    the familiar txid is the byte-reversed hex
    """
    raw = base64.b64decode(txid_bytes)
    return raw[::-1].hex()


@dataclass(frozen=True)
class ChannelPoint:
    """funding outpoint, canonical form is <txid>:<output index>"""
    txid: str
    output_index: int

    @classmethod
    def from_str(cls, channel_point: str) -> "ChannelPoint":
        match = CHANNEL_POINT_RE.fullmatch(channel_point or '')
        if not match:
            raise InvalidChannelPoint(
                f'malformed channel point {channel_point!r}, '
                'expected <64-hex-txid>:<index>')
        output_index = int(match.group(2))
        if output_index > MAX_OUTPUT_INDEX:
            raise InvalidChannelPoint(
                f'output index {output_index} out of range in {channel_point!r}')
        return cls(txid=match.group(1).lower(), output_index=output_index)

    @property
    def funding_txid_bytes(self) -> bytes:
        return bytes.fromhex(self.txid)[::-1]

    def __str__(self) -> str:
        return f'{self.txid}:{self.output_index}'


class FundingRequest(BaseModel):
    """
    one funding attempt, amounts in atoms. built per request and dropped after
    the open attempt
    """
    node_pubkey: bytes
    local_funding_amount: int
    push_amount: int = 0

    @property
    def pubkey_hex(self) -> str:
        return self.node_pubkey.hex()

    @property
    def pubkey_base64(self) -> str:
        return base64.b64encode(self.node_pubkey).decode()


class Peer(BaseModel):
    pubkey: str
    address: Optional[str] = None


class ChannelRecord(BaseModel):
    """an open channel as reported by the node"""
    channel_point: str
    remote_pubkey: str
    active: bool = False
    capacity: int = 0
    local_balance: int = 0
    remote_balance: int = 0


class PendingChannel(BaseModel):
    remote_node_pub: str
    channel_point: Optional[str] = None
    capacity: int = 0


class NodeInfoResponse(ErrorMessageMixin):
    version: str = ''
    uris: List[str] = Field(default_factory=list)
    pubkey: str = ''
    alias: str = ''


class ListPeersResponse(ErrorMessageMixin):
    peers: List[Peer] = Field(default_factory=list)


class ListChannelsResponse(ErrorMessageMixin):
    channels: List[ChannelRecord] = Field(default_factory=list)


class PendingChannelsResponse(ErrorMessageMixin):
    pending_open_channels: List[PendingChannel] = Field(default_factory=list)


class WalletBalanceResponse(ErrorMessageMixin):
    total_balance: int = 0
    confirmed_balance: int = 0
    unconfirmed_balance: int = 0


class NodeLastSeenResponse(ErrorMessageMixin):
    pubkey: str
    last_seen: Optional[datetime] = None


class ChannelState(str, Enum):
    PENDING = 'PENDING'
    OPEN = 'OPEN'
    CLOSED = 'CLOSED'
    UNKNOWN = 'UNKNOWN'


class ChannelUpdateResponse(ErrorMessageMixin):
    """first update read off an open or close stream"""
    channel_state: ChannelState
    txid_bytes: Optional[str] = None
    txid_hex: Optional[str] = Field(default=None)
    output_index: Optional[int] = None

    @model_validator(mode="after")
    def compute_txid_hex(self):
        if self.txid_bytes and not self.txid_hex:
            object.__setattr__(self, "txid_hex", txid_from_bytes(self.txid_bytes))
        return self

    @property
    def pending(self) -> bool:
        return self.channel_state == ChannelState.PENDING


class ChannelOpenResponse(ChannelUpdateResponse):
    pass


class ChannelCloseResponse(ChannelUpdateResponse):
    pass
