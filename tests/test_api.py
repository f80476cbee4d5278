"""
HTTP API tests against a fake chain
"""
import pytest
from fastapi.testclient import TestClient

from sommstats.accounting import COMMUNITY_POOL_KEY, STAKING_KEY
from sommstats.cache import CacheFeed
from sommstats.main import build_services, create_app
from tests.conftest import FOUNDATION, NODE_A, NODE_B, VESTING, raw_auction, raw_bid


@pytest.fixture
def services(settings, chain, no_sleep_retry):
    return build_services(settings, chain.client, no_sleep_retry)


@pytest.fixture
def client(services):
    """Client without lifespan: no startup sweep, no poll loops."""
    return TestClient(create_app(services=services))


# =============================================================================
# Circulating supply
# =============================================================================

def test_circulating_supply_subtracts_non_circulating(client, services):
    """Test that circulating supply is total minus every non-circulating balance"""
    services.store.merge(
        CacheFeed.BALANCES,
        {FOUNDATION: 100, STAKING_KEY: 50, COMMUNITY_POOL_KEY: 20, VESTING: 10},
        ttl_seconds=60,
    )

    response = client.get("/v1/circulating-supply")
    assert response.status_code == 200
    assert response.json() == {"circulating_supply": 820}


def test_circulating_supply_scales_to_whole_tokens(client, services):
    """Test that the result is divided down by the base-unit exponent"""
    services.settings.base_unit_exponent = 1
    services.store.merge(
        CacheFeed.BALANCES,
        {FOUNDATION: 100, STAKING_KEY: 50, COMMUNITY_POOL_KEY: 20, VESTING: 5},
        ttl_seconds=60,
    )

    assert client.get("/v1/circulating-supply").json() == {"circulating_supply": 82}


def test_circulating_supply_503_until_every_balance_known(client, services):
    """Test that a missing balance returns a bare 503"""
    services.store.merge(
        CacheFeed.BALANCES,
        {FOUNDATION: 100, STAKING_KEY: 50, COMMUNITY_POOL_KEY: 20},
        ttl_seconds=60,
    )

    response = client.get("/v1/circulating-supply")
    assert response.status_code == 503
    assert response.content == b""


def test_circulating_supply_500_on_overflowing_balances(client, services):
    """Test that balances above total supply return a bare 500"""
    services.store.merge(
        CacheFeed.BALANCES,
        {FOUNDATION: 900, STAKING_KEY: 50, COMMUNITY_POOL_KEY: 20, VESTING: 100},
        ttl_seconds=60,
    )

    response = client.get("/v1/circulating-supply")
    assert response.status_code == 500
    assert response.content == b""


def test_stale_balances_are_still_served(client, services):
    """Test that stale balances still answer the supply endpoint"""
    services.store.merge(
        CacheFeed.BALANCES,
        {FOUNDATION: 100, STAKING_KEY: 50, COMMUNITY_POOL_KEY: 20, VESTING: 10},
        ttl_seconds=0,
    )
    assert services.store.is_stale(CacheFeed.BALANCES)

    assert client.get("/v1/circulating-supply").json() == {"circulating_supply": 820}


# =============================================================================
# Auctions
# =============================================================================

def test_active_auctions_fetched_on_first_read(client, chain):
    """Test that /v1/auctions/active refreshes once when stale"""
    response = client.get("/v1/auctions/active")

    assert response.status_code == 200
    auctions = response.json()["auctions"]
    assert [a["id"] for a in auctions] == [1]
    assert auctions[0]["fee_token"]["contract_address"] == "0xabc"
    assert auctions[0]["remaining_supply"] == 600
    assert len(chain.calls_to("query_active_auctions")) == 1

    client.get("/v1/auctions/active")
    assert len(chain.calls_to("query_active_auctions")) == 1


def test_ended_auctions(client, chain):
    """Test that /v1/auctions/ended fills an empty cache"""
    response = client.get("/v1/auctions/ended")
    assert [a["id"] for a in response.json()["auctions"]] == [7]


def test_auction_by_id_checks_active_then_ended(client, chain):
    """Test that auction lookup tries active auctions before ended ones"""
    assert client.get("/v1/auctions/1").json()["auction"]["id"] == 1
    assert chain.calls_to("query_ended_auctions") == []

    assert client.get("/v1/auctions/7").json()["auction"]["id"] == 7
    assert client.get("/v1/auctions/99").json() == {"auction": None}


@pytest.mark.parametrize("auction_id", ["-1", "4294967296", "abc"])
def test_auction_id_out_of_range_rejected(client, auction_id):
    """Test that ids outside the u32 range are rejected with 422"""
    assert client.get(f"/v1/auctions/{auction_id}").status_code == 422


def test_bids_by_auction(client, chain):
    """Test that bids are returned in upstream order"""
    chain.bids = {1: [raw_bid(1, max_bid="12345"), raw_bid(2, max_bid="1")]}

    response = client.get("/v1/auctions/1/bids")

    assert response.status_code == 200
    bids = response.json()["bids"]
    assert [b["id"] for b in bids] == [1, 2]
    assert bids[0]["max_bid_in_usomm"] == 12345
    assert bids[0]["fee_token"]["symbol"] == "gravity0xabc"


def test_bids_for_unknown_auction_are_empty(client):
    """Test that an unknown auction has no bids"""
    assert client.get("/v1/auctions/42/bids").json() == {"bids": []}


def test_prices_follow_active_auctions(client, chain):
    """Test that /v1/prices reflects the latest active auctions"""
    chain.active_auctions = [raw_auction(1, price="2.5")]
    client.get("/v1/auctions/active")

    prices = client.get("/v1/prices").json()["prices"]
    assert prices == [
        {
            "auction_id": 1,
            "unit_price_in_usomm": 2_500_000_000_000_000_000,
            "token_decimals": 18,
            "token_contract": "0xabc",
            "token_symbol": "gravity0xabc",
        }
    ]


def test_unreachable_nodes_serve_cached_auctions(client, chain):
    """Test that failed lazy refreshes still answer 200"""
    chain.failing.update({NODE_A, NODE_B})

    response = client.get("/v1/auctions/active")
    assert response.status_code == 200
    assert response.json() == {"auctions": []}


# =============================================================================
# Lifespan
# =============================================================================

def test_startup_sweep_fills_balances(services):
    """Test that startup fetches balances and starts the poll loops"""
    app = create_app(services=services)

    with TestClient(app) as client:
        assert services.scheduler.running
        response = client.get("/v1/circulating-supply")
        assert response.status_code == 200
        assert response.json() == {"circulating_supply": 820}

    assert not services.scheduler.running


def test_startup_survives_unwritable_snapshot_path(settings, chain, no_sleep_retry, tmp_path):
    """Test that a snapshot that cannot be written does not stop startup"""
    settings.snapshot_enabled = True
    settings.snapshot_path = tmp_path / "missing-dir" / "snapshot.json"
    services = build_services(settings, chain.client, no_sleep_retry)

    with TestClient(create_app(services=services)) as client:
        assert services.scheduler.running
        assert client.get("/v1/circulating-supply").json() == {"circulating_supply": 820}

    assert not settings.snapshot_path.exists()


def test_startup_restores_snapshot(settings, chain, no_sleep_retry, tmp_path):
    """Test that a restart serves supply from the snapshot"""
    settings.snapshot_enabled = True
    settings.snapshot_path = tmp_path / "snapshot.json"

    first = build_services(settings, chain.client, no_sleep_retry)
    with TestClient(create_app(services=first)):
        pass
    assert settings.snapshot_path.exists()

    # Nodes are down on restart but the snapshot still answers
    chain.failing.update({NODE_A, NODE_B})
    second = build_services(settings, chain.client, no_sleep_retry)
    with TestClient(create_app(services=second)) as client:
        assert client.get("/v1/circulating-supply").json() == {"circulating_supply": 820}
