import asyncio
import uuid

import aiohttp
import pytest

from slotchain.chain import create_genesis_block, create_new_block
from slotchain.config import Settings
from slotchain.consensus import leader_for_slot, pos_consensus_loop, run_slot, sync_chain
from slotchain.repositories import InMemoryBlockchainRepository
from slotchain.state import AppState
from slotchain.transaction import Transaction

GENESIS = uuid.UUID(int=1)
FAUCET = uuid.UUID(int=2)
USER = uuid.UUID(int=3)
SHARED_KEY = "secret"


class FakeResponse:
    def __init__(self, payload):
        self._payload = payload

    async def json(self):
        return self._payload


class FakeRequest:
    def __init__(self, outcome):
        self._outcome = outcome

    async def __aenter__(self):
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return FakeResponse(self._outcome)

    async def __aexit__(self, *exc_info):
        return False


class FakeClient:
    def __init__(self, responses=None, fail_posts=False):
        self.responses = responses or {}
        self.fail_posts = fail_posts
        self.posts = []

    def post(self, url, json=None):
        self.posts.append((url, json))
        if self.fail_posts:
            return FakeRequest(aiohttp.ClientConnectionError("down"))
        return FakeRequest({})

    def get(self, url):
        return FakeRequest(
            self.responses.get(url, aiohttp.ClientConnectionError("unreachable"))
        )


def make_state(client, node_id="v1", peers=("9001",)):
    settings = Settings(
        node_id=node_id,
        port=9000,
        peers=list(peers),
        shared_key=SHARED_KEY,
        genesis_sender_id=GENESIS,
        faucet_wallet_id=FAUCET,
    )
    state = AppState.create(settings, client)
    create_genesis_block(state.blockchain_repo, SHARED_KEY, GENESIS, FAUCET)
    state.user_state_repo.rebuild_from_blocks(state.blockchain_repo.get_all_blocks(), GENESIS)
    return state


def test_leader_rotates_over_sorted_validators():
    validators = ["v3", "v1", "v2"]
    assert leader_for_slot(validators, 1) == "v1"
    assert leader_for_slot(validators, 2) == "v2"
    assert leader_for_slot(validators, 3) == "v3"
    assert leader_for_slot(validators, 4) == "v1"


def test_each_validator_leads_equally():
    leaders = [leader_for_slot(["v1", "v2", "v3"], slot) for slot in range(1, 7)]
    assert sorted(leaders) == ["v1", "v1", "v2", "v2", "v3", "v3"]


def test_leader_for_slot_rejects_bad_input():
    with pytest.raises(ValueError):
        leader_for_slot([], 1)
    with pytest.raises(ValueError):
        leader_for_slot(["v1"], 0)


@pytest.mark.asyncio
async def test_leader_proposes_block_with_valid_transactions():
    client = FakeClient()
    state = make_state(client)
    good = Transaction.create(FAUCET, USER, 10.0)
    overdrawn = Transaction.create(USER, FAUCET, 1e9)
    state.mempool_repo.add_transaction(good)
    state.mempool_repo.add_transaction(overdrawn)

    block = await run_slot(state, 1)

    assert block.transactions == [good]
    assert block.header.proposer_id == "v1"
    assert block.header.parent_hash == state.blockchain_repo.get_last_block().hash
    assert state.pending_blocks == {block.hash: block}
    assert state.vote_counts == {block.hash: ["v1"]}
    assert state.mempool_repo.get_all_transactions() == []
    assert state.user_state_repo.get_balance(USER) == 10.0
    assert sum(state.user_state_repo.get_balances().values()) == 1000000.0
    assert client.posts == [("http://localhost:9001/block", block.to_dict())]


@pytest.mark.asyncio
async def test_follower_does_nothing():
    client = FakeClient()
    state = make_state(client)
    tx = Transaction.create(FAUCET, USER, 10.0)
    state.mempool_repo.add_transaction(tx)

    assert await run_slot(state, 2) is None
    assert state.mempool_repo.get_all_transactions() == [tx]
    assert state.pending_blocks == {}
    assert client.posts == []


@pytest.mark.asyncio
async def test_leader_skips_slot_without_transactions():
    client = FakeClient()
    state = make_state(client)
    assert await run_slot(state, 1) is None
    assert state.pending_blocks == {}
    assert client.posts == []


@pytest.mark.asyncio
async def test_unreachable_peers_do_not_stop_proposal():
    client = FakeClient(fail_posts=True)
    state = make_state(client, peers=("9001", "9002"))
    state.mempool_repo.add_transaction(Transaction.create(FAUCET, USER, 1.0))

    block = await run_slot(state, 1)

    assert block.hash in state.pending_blocks
    assert [url for url, _ in client.posts] == [
        "http://localhost:9001/block",
        "http://localhost:9002/block",
    ]


@pytest.mark.asyncio
async def test_consensus_loop_runs_slots_until_cancelled():
    state = make_state(FakeClient())
    state.mempool_repo.add_transaction(Transaction.create(FAUCET, USER, 5.0))

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(pos_consensus_loop(state, 0.01), timeout=0.2)

    assert len(state.pending_blocks) == 1
    assert state.mempool_repo.get_all_transactions() == []


def _peer_chain(extra_blocks):
    repo = InMemoryBlockchainRepository()
    create_genesis_block(repo, SHARED_KEY, GENESIS, FAUCET)
    for _ in range(extra_blocks):
        tx = Transaction.create(FAUCET, USER, 25.0)
        repo.add_block(create_new_block(repo, [tx], "v2", SHARED_KEY))
    return repo.get_all_blocks()


@pytest.mark.asyncio
async def test_sync_adopts_longest_peer_chain():
    short = _peer_chain(1)
    long = _peer_chain(2)
    client = FakeClient(
        {
            "http://a:1/blocks": [b.to_dict() for b in short],
            "http://b:2/blocks": [b.to_dict() for b in long],
        }
    )
    state = make_state(client, peers=("a:1", "b:2"))

    assert await sync_chain(state) is True
    assert [b.hash for b in state.blockchain_repo.get_all_blocks()] == [b.hash for b in long]
    assert state.user_state_repo.get_balance(USER) == 50.0
    assert sum(state.user_state_repo.get_balances().values()) == 1000000.0


@pytest.mark.asyncio
async def test_sync_without_reachable_peers_keeps_chain():
    state = make_state(FakeClient(), peers=("a:1",))
    before = state.blockchain_repo.get_all_blocks()

    assert await sync_chain(state) is False
    assert state.blockchain_repo.get_all_blocks() == before


@pytest.mark.asyncio
async def test_sync_ignores_malformed_chains():
    client = FakeClient(
        {
            "http://a:1/blocks": {"error": "nope"},
            "http://b:2/blocks": [{"index": 0}],
        }
    )
    state = make_state(client, peers=("a:1", "b:2"))
    before = state.blockchain_repo.get_all_blocks()

    assert await sync_chain(state) is False
    assert state.blockchain_repo.get_all_blocks() == before