"""Storage for the chain, the mempool and account balances."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections import deque
from typing import Iterable

from slotchain.block import Block
from slotchain.transaction import Transaction

logger = logging.getLogger(__name__)


class EmptyChainError(LookupError):
    """Raised when the last block of an empty chain is requested."""


class BlockchainRepository(ABC):
    @abstractmethod
    def get_all_blocks(self) -> list[Block]: ...

    @abstractmethod
    def add_block(self, block: Block) -> None: ...

    @abstractmethod
    def get_last_block(self) -> Block: ...

    @abstractmethod
    def replace_chain(self, new_chain: Iterable[Block]) -> None: ...


class MempoolRepository(ABC):
    @abstractmethod
    def add_transaction(self, transaction: Transaction) -> None: ...

    @abstractmethod
    def get_all_transactions(self) -> list[Transaction]: ...

    @abstractmethod
    def check_exists_by_id(self, transaction_id: uuid.UUID) -> bool: ...

    @abstractmethod
    def drain_transactions(self) -> list[Transaction]: ...


class UserStateRepository(ABC):
    @abstractmethod
    def get_balances(self) -> dict[uuid.UUID, float]: ...

    @abstractmethod
    def get_balance(self, address: uuid.UUID) -> float: ...

    @abstractmethod
    def set_balance(self, address: uuid.UUID, balance: float) -> None: ...

    @abstractmethod
    def apply_transaction(self, transaction: Transaction) -> bool: ...

    @abstractmethod
    def rebuild_from_blocks(self, blocks: Iterable[Block], genesis_sender_id: uuid.UUID) -> None: ...


class InMemoryBlockchainRepository(BlockchainRepository):
    def __init__(self) -> None:
        self._blocks: list[Block] = []

    def get_all_blocks(self) -> list[Block]:
        return list(self._blocks)

    def add_block(self, block: Block) -> None:
        self._blocks.append(block)

    def get_last_block(self) -> Block:
        if not self._blocks:
            raise EmptyChainError("the chain has no blocks")
        return self._blocks[-1]

    def replace_chain(self, new_chain: Iterable[Block]) -> None:
        self._blocks = list(new_chain)


class InMemoryMempoolRepository(MempoolRepository):
    def __init__(self) -> None:
        self._transactions: deque[Transaction] = deque()

    def add_transaction(self, transaction: Transaction) -> None:
        self._transactions.append(transaction)

    def get_all_transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def check_exists_by_id(self, transaction_id: uuid.UUID) -> bool:
        return any(tx.id == transaction_id for tx in self._transactions)

    def drain_transactions(self) -> list[Transaction]:
        drained = list(self._transactions)
        self._transactions.clear()
        return drained


class InMemoryUserStateRepository(UserStateRepository):
    def __init__(self) -> None:
        self._balances: dict[uuid.UUID, float] = {}

    def get_balances(self) -> dict[uuid.UUID, float]:
        return dict(self._balances)

    def get_balance(self, address: uuid.UUID) -> float:
        return self._balances.get(address, 0.0)

    def set_balance(self, address: uuid.UUID, balance: float) -> None:
        self._balances[address] = balance

    def _transfer(self, transaction: Transaction) -> bool:
        sender_balance = self.get_balance(transaction.sender)
        if sender_balance < transaction.amount:
            return False
        self._balances[transaction.sender] = sender_balance - transaction.amount
        self._balances[transaction.receiver] = (
            self.get_balance(transaction.receiver) + transaction.amount
        )
        return True

    def apply_transaction(self, transaction: Transaction) -> bool:
        """Move funds if the sender can cover them; return whether it happened."""
        logger.debug(
            "sender balance %s, amount %s",
            self.get_balance(transaction.sender),
            transaction.amount,
        )
        if not self._transfer(transaction):
            logger.info("insufficient balance for sender %s", transaction.sender)
            return False
        logger.info("transaction applied: %s -> %s", transaction.sender, transaction.receiver)
        return True

    def rebuild_from_blocks(self, blocks: Iterable[Block], genesis_sender_id: uuid.UUID) -> None:
        """Recompute all balances by replaying the blocks from scratch.

        Transfers from ``genesis_sender_id`` mint funds; other transfers the
        sender cannot cover are skipped.
        """
        self._balances.clear()
        for block in blocks:
            for tx in block.transactions:
                if tx.sender == genesis_sender_id:
                    self._balances[tx.receiver] = self.get_balance(tx.receiver) + tx.amount
                    logger.info("genesis transaction: %s added to %s", tx.amount, tx.receiver)
                elif not self._transfer(tx):
                    logger.warning("rebuild: insufficient funds for %s", tx.sender)