"""Shared state of a running node."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from slotchain.block import Block
from slotchain.config import Settings
from slotchain.node import Node
from slotchain.repositories import (
    BlockchainRepository,
    InMemoryBlockchainRepository,
    InMemoryMempoolRepository,
    InMemoryUserStateRepository,
    MempoolRepository,
    UserStateRepository,
)


@dataclass
class AppState:
    """Repositories, node identity, HTTP client and vote bookkeeping."""

    blockchain_repo: BlockchainRepository
    mempool_repo: MempoolRepository
    user_state_repo: UserStateRepository
    node: Node
    shared_key: str
    http_client: Any
    genesis_sender_id: uuid.UUID
    faucet_wallet_id: uuid.UUID
    vote_counts: dict[str, list[str]] = field(default_factory=dict)
    pending_blocks: dict[str, Block] = field(default_factory=dict)

    @classmethod
    def create(cls, settings: Settings, http_client: Any) -> "AppState":
        """Build a fresh state with empty in-memory repositories."""
        return cls(
            blockchain_repo=InMemoryBlockchainRepository(),
            mempool_repo=InMemoryMempoolRepository(),
            user_state_repo=InMemoryUserStateRepository(),
            node=Node(settings.node_id, settings.peers, settings.validator_ids),
            shared_key=settings.shared_key,
            http_client=http_client,
            genesis_sender_id=settings.genesis_sender_id,
            faucet_wallet_id=settings.faucet_wallet_id,
        )