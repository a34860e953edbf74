"""Creating blocks and appending them to the chain."""

from __future__ import annotations

import time
import uuid
from typing import Iterable

from slotchain.block import Block
from slotchain.repositories import BlockchainRepository
from slotchain.state import AppState
from slotchain.transaction import Transaction

GENESIS_AMOUNT = 1_000_000.0
GENESIS_PROPOSER = "GENESIS"
GENESIS_PARENT_HASH = "0"


def add_block_to_chain(state: AppState, block: Block) -> None:
    """Append ``block`` to the state's chain."""
    state.blockchain_repo.add_block(block)


def create_genesis_block(
    repository: BlockchainRepository,
    shared_key: str,
    genesis_sender_id: uuid.UUID,
    faucet_wallet_id: uuid.UUID,
) -> Block:
    """Add the genesis block, which mints the faucet's funds, and return it."""
    genesis_tx = Transaction(
        id=uuid.uuid4(),
        sender=genesis_sender_id,
        receiver=faucet_wallet_id,
        amount=GENESIS_AMOUNT,
        timestamp=0,
    )
    block = Block.create(
        index=0,
        timestamp=0,
        proposer_id=GENESIS_PROPOSER,
        height=0,
        transactions=[genesis_tx],
        previous_hash=GENESIS_PARENT_HASH,
        shared_key=shared_key,
    )
    repository.add_block(block)
    return block


def create_new_block(
    repository: BlockchainRepository,
    transactions: Iterable[Transaction],
    proposer_id: str,
    shared_key: str,
) -> Block:
    """Build a signed block on top of the current last block without adding it."""
    last = repository.get_last_block()
    return Block.create(
        index=last.index + 1,
        timestamp=int(time.time()),
        proposer_id=proposer_id,
        height=last.header.height + 1,
        transactions=transactions,
        previous_hash=last.hash,
        shared_key=shared_key,
    )