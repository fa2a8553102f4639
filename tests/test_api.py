import pytest
from fastapi.testclient import TestClient

from conftest import FUNDING_TXID, OTHER_PUBKEY, PEER_PUBKEY, chan_point, make_channel
from lnfaucet.api.app import create_app


@pytest.fixture
def client(faucet):
    with TestClient(create_app(faucet)) as client:
        yield client


def test_home_state(client, ln_backend):
    ln_backend.channels = [make_channel(1, active=True)]
    ln_backend.pending = [OTHER_PUBKEY]

    response = client.get("/")

    assert response.status_code == 200
    body = response.json()
    assert body["num_coins"] == 2.5
    assert body["network"] == "testnet"
    assert body["num_confs"] == 3
    assert [c["channel_point"] for c in body["active_channels"]] == [chan_point(1)]
    assert [c["remote_node_pub"] for c in body["pending_channels"]] == [OTHER_PUBKEY]


def test_home_state_failure(client, ln_backend):
    ln_backend.failing = {"get_wallet_balance"}

    response = client.get("/")

    assert response.status_code == 500
    assert response.json()["detail"] == "unable to render home page"


def test_request_channel(client, ln_backend):
    ln_backend.peers = [PEER_PUBKEY]

    response = client.post("/channels", json={"node": PEER_PUBKEY, "amt": "5", "bal": "1"})

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "none"
    assert body["channel_txid"] == FUNDING_TXID
    assert body["state"]["network"] == "testnet"


def test_rejection_is_not_an_http_error(client, ln_backend):
    response = client.post("/channels", json={"node": "nope", "amt": "5", "bal": "1"})

    assert response.status_code == 200
    body = response.json()
    assert body["outcome"] == "invalid-address"
    assert body["message"] == "Not a valid public key"
    assert body["channel_txid"] is None
    assert body["form_fields"] == {"node": "nope", "amt": "5", "bal": "1"}


def test_request_channel_without_state(client, ln_backend):
    ln_backend.failing = {"get_node_info"}

    response = client.post("/channels", json={"node": "nope"})

    assert response.status_code == 200
    assert response.json()["state"] is None


def test_lifespan_runs_sweeper(faucet, ln_backend):
    with TestClient(create_app(faucet)):
        assert faucet.sweeper.running
    assert not faucet.sweeper.running
    assert ln_backend.closed_client


def test_huge_amount_is_an_outcome(client, ln_backend):
    ln_backend.peers = [PEER_PUBKEY]

    response = client.post("/channels", json={"node": PEER_PUBKEY, "amt": "1e1000000", "bal": "1"})

    assert response.status_code == 200
    assert response.json()["outcome"] == "amount-not-numeric"
