import httpx
import json
import logging
import ssl
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from lnfaucet.ln.base import NodeBase
from lnfaucet.ln.requesthandlers import (
    ChannelCloseResponse,
    ChannelOpenResponse,
    ChannelPoint,
    ChannelRecord,
    ChannelState,
    FundingRequest,
    ListChannelsResponse,
    ListPeersResponse,
    NodeInfoResponse,
    NodeLastSeenResponse,
    PendingChannel,
    PendingChannelsResponse,
    Peer,
    WalletBalanceResponse,
)

logger = logging.getLogger(name=__name__)


class LndBackend(NodeBase):
    def __init__(
            self,
            rest_host: str,
            permissions_file_path: str,
            cert_file_path: Optional[str] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None):

        self.rest_host = rest_host
        self.macaroon_path = permissions_file_path
        with open(self.macaroon_path, 'rb') as f:
            self.macaroon = f.read().hex()
        self.headers = {'Grpc-Metadata-macaroon': self.macaroon}
        self.cert_path = cert_file_path
        verify = ssl.create_default_context(cafile=self.cert_path) \
            if self.cert_path \
            else True
        # only the connect phase is bounded, reads wait on the daemon
        timeout = httpx.Timeout(None, connect=5.0)
        self.http_client = httpx.AsyncClient(
            base_url=self.rest_host,
            verify=verify,
            headers=self.headers,
            timeout=timeout,
            transport=transport,
        )

    async def close_rest_client(self) -> None:
        try:
            await self.http_client.aclose()
        except RuntimeError as e:
            logger.error(f"Could not close rest client: {e}")

    @staticmethod
    def _error_text(r: httpx.Response) -> str:
        try:
            data = r.json()
        except ValueError:
            return r.text[:200]
        if isinstance(data, dict):
            err = data.get('error')
            if isinstance(err, dict) and err.get('message'):
                return err['message']
            if data.get('message'):
                return data['message']
        return r.text[:200]

    async def _get_json(
            self,
            endpoint: str,
            what: str,
            **kwargs) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        try:
            r = await self.http_client.get(endpoint, **kwargs)
        except httpx.HTTPError as e:
            msg = f'failed to {what}: {e}'
            logger.error(msg)
            return None, msg

        if r.is_error:
            msg = f'failed to {what}: {self._error_text(r)}'
            logger.error(msg)
            return None, msg

        try:
            return r.json(), None
        except ValueError:
            msg = f'failed to {what}: response was not json'
            logger.error(msg)
            return None, msg

    async def _first_stream_update(
            self,
            method: str,
            endpoint: str,
            what: str,
            **kwargs) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """
        read the first meaningful `result` off a json-lines stream. leaving
        the stream context closes the response, so whatever the daemon sends
        afterwards is dropped
        """
        try:
            async with self.http_client.stream(method, endpoint, **kwargs) as r:
                if r.is_error:
                    await r.aread()
                    msg = f'failed to {what}: {self._error_text(r)}'
                    logger.error(msg)
                    return None, msg

                async for json_line in r.aiter_lines():
                    if not json_line.strip():
                        continue
                    try:
                        line = json.loads(json_line)
                    except json.JSONDecodeError:
                        logger.error(f'undecodable {what} stream line: {json_line[:200]}')
                        continue
                    if not line:
                        logger.debug(f'{what} response line empty, maybe lag')
                        continue

                    if line.get('error'):
                        err = line['error']
                        message = err.get('message', err) \
                            if isinstance(err, dict) \
                            else err
                        msg = f'failed to {what}: {message}'
                        logger.error(msg)
                        return None, msg

                    result = line.get('result')
                    if result:
                        return result, None

        except httpx.HTTPError as e:
            msg = f'failed to {what}: {e}'
            logger.error(msg)
            return None, msg

        msg = f'{what} stream closed before any update'
        logger.error(msg)
        return None, msg

    async def get_node_info(self) -> NodeInfoResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/get-info/

        /lnrpc.Lightning/GetInfo
        """
        data, err = await self._get_json('/v1/getinfo', 'get node info')
        if err:
            return NodeInfoResponse(error_message=err)

        return NodeInfoResponse(
            version=data.get('version', ''),
            uris=data.get('uris') or [],
            pubkey=data.get('identity_pubkey', ''),
            alias=data.get('alias', ''),
        )

    async def list_peers(self) -> ListPeersResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/list-peers/

        /lnrpc.Lightning/ListPeers
        """
        data, err = await self._get_json('/v1/peers', 'list peers')
        if err:
            return ListPeersResponse(error_message=err)

        peers = [
            Peer(pubkey=peer.get('pub_key', ''), address=peer.get('address'))
            for peer in data.get('peers') or []
        ]
        return ListPeersResponse(peers=peers)

    async def list_channels(self) -> ListChannelsResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/list-channels/

        /lnrpc.Lightning/ListChannels
        """
        data, err = await self._get_json('/v1/channels', 'list channels')
        if err:
            return ListChannelsResponse(error_message=err)

        channels = list()
        for line in data.get('channels') or []:
            channels.append(ChannelRecord(
                channel_point=line.get('channel_point', ''),
                remote_pubkey=line.get('remote_pubkey', ''),
                active=line.get('active', False),
                capacity=line.get('capacity', 0),
                local_balance=line.get('local_balance', 0),
                remote_balance=line.get('remote_balance', 0),
            ))
        return ListChannelsResponse(channels=channels)

    async def pending_channels(self) -> PendingChannelsResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/pending-channels/

        /lnrpc.Lightning/PendingChannels
        """
        data, err = await self._get_json('/v1/channels/pending', 'list pending channels')
        if err:
            return PendingChannelsResponse(error_message=err)

        pending = list()
        for line in data.get('pending_open_channels') or []:
            channel = line.get('channel') or {}
            pending.append(PendingChannel(
                remote_node_pub=channel.get('remote_node_pub', ''),
                channel_point=channel.get('channel_point'),
                capacity=channel.get('capacity', 0),
            ))
        return PendingChannelsResponse(pending_open_channels=pending)

    async def get_wallet_balance(self) -> WalletBalanceResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/wallet-balance/

        /lnrpc.Lightning/WalletBalance
        """
        data, err = await self._get_json('/v1/balance/blockchain', 'get wallet balance')
        if err:
            return WalletBalanceResponse(error_message=err)

        return WalletBalanceResponse(
            total_balance=data.get('total_balance', 0),
            confirmed_balance=data.get('confirmed_balance', 0),
            unconfirmed_balance=data.get('unconfirmed_balance', 0),
        )

    async def get_peer_last_seen(self, pubkey: str) -> NodeLastSeenResponse:
        """
        last time the peer announced itself to the graph

        https://lightning.engineering/api-docs/api/lnd/lightning/get-node-info/

        /lnrpc.Lightning/GetNodeInfo
        """
        data, err = await self._get_json(
            f'/v1/graph/node/{pubkey}',
            f'get node info for {pubkey}',
            params={'include_channels': False})
        if err:
            return NodeLastSeenResponse(pubkey=pubkey, error_message=err)

        node = data.get('node')
        if not node:
            msg = f'no node announcement for {pubkey}'
            logger.error(msg)
            return NodeLastSeenResponse(pubkey=pubkey, error_message=msg)

        last_update = int(node.get('last_update') or 0)
        return NodeLastSeenResponse(
            pubkey=pubkey,
            last_seen=datetime.fromtimestamp(last_update, tz=timezone.utc),
        )

    async def open_channel(self, request: FundingRequest) -> ChannelOpenResponse:
        """
        * requires the peer to already be connected
        https://lightning.engineering/api-docs/api/lnd/lightning/open-channel/

        /lnrpc.Lightning/OpenChannel
        """
        data = {
            'node_pubkey': request.pubkey_base64,
            'local_funding_amount': str(request.local_funding_amount),
            'push_sat': str(request.push_amount),
        }
        chan_state, err = await self._first_stream_update(
            "POST",
            '/v1/channels/stream',
            'open channel',
            json=data,
        )
        if err:
            return ChannelOpenResponse(
                channel_state=ChannelState.UNKNOWN,
                error_message=err
            )

        if chan_state.get('chan_pending'):
            pending_state = chan_state.get('chan_pending')
            return ChannelOpenResponse(
                channel_state=ChannelState.PENDING,
                txid_bytes=pending_state.get('txid'),
                output_index=pending_state.get('output_index', 0)
            )

        if chan_state.get('chan_open'):
            open_state = chan_state\
                .get('chan_open')\
                .get('channel_point', {})
            return ChannelOpenResponse(
                channel_state=ChannelState.OPEN,
                txid_bytes=open_state.get('funding_txid_bytes'),
                output_index=open_state.get('output_index', 0)
            )

        msg = f'unexpected channel open update: {list(chan_state)}'
        logger.error(msg)
        return ChannelOpenResponse(
            channel_state=ChannelState.UNKNOWN,
            error_message=msg
        )

    async def close_channel(
            self,
            channel_point: ChannelPoint,
            force: bool = False) -> ChannelCloseResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/close-channel/

        /lnrpc.Lightning/CloseChannel
        """
        endpoint = f'/v1/channels/{channel_point.txid}/{channel_point.output_index}'
        close_state, err = await self._first_stream_update(
            "DELETE",
            endpoint,
            f'close channel {channel_point}',
            params={'force': 'true' if force else 'false'},
        )
        if err:
            return ChannelCloseResponse(
                channel_state=ChannelState.UNKNOWN,
                error_message=err
            )

        if close_state.get('close_pending'):
            pending_state = close_state.get('close_pending')
            return ChannelCloseResponse(
                channel_state=ChannelState.PENDING,
                txid_bytes=pending_state.get('txid'),
                output_index=pending_state.get('output_index', 0)
            )

        if close_state.get('chan_close'):
            return ChannelCloseResponse(
                channel_state=ChannelState.CLOSED,
                txid_bytes=close_state.get('chan_close').get('closing_txid'),
            )

        msg = f'unexpected channel close update: {list(close_state)}'
        logger.error(msg)
        return ChannelCloseResponse(
            channel_state=ChannelState.UNKNOWN,
            error_message=msg
        )
