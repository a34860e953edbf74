"""Blocks, their headers, hashing and HMAC signatures."""

from __future__ import annotations

import hashlib
import hmac
import json
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from slotchain.transaction import Transaction

_HEX = re.compile(r"(?:[0-9a-fA-F]{2})*")


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field {key!r}") from None
    except TypeError:
        raise ValueError("expected a mapping") from None


def _unsigned(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field {key!r} must be a non-negative integer")
    return value


def _text(value: Any, key: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _format_amount(value: float) -> str:
    """Shortest decimal form without exponent; integral values lose their fraction."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


@dataclass
class BlockHeader:
    height: int
    parent_hash: str
    proposer_id: str
    tx_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "height": self.height,
            "parent_hash": self.parent_hash,
            "proposer_id": self.proposer_id,
            "tx_count": self.tx_count,
        }

    def to_json(self) -> str:
        """Compact JSON with fields in declaration order, as used for hashing."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlockHeader":
        return cls(
            height=_unsigned(_field(data, "height"), "height"),
            parent_hash=_text(_field(data, "parent_hash"), "parent_hash"),
            proposer_id=_text(_field(data, "proposer_id"), "proposer_id"),
            tx_count=_unsigned(_field(data, "tx_count"), "tx_count"),
        )


@dataclass
class Block:
    index: int
    header: BlockHeader
    timestamp: int
    transactions: list[Transaction] = field(default_factory=list)
    hash: str = ""
    signature: str = ""

    @classmethod
    def create(
        cls,
        index: int,
        timestamp: int,
        proposer_id: str,
        height: int,
        transactions: Iterable[Transaction],
        previous_hash: str,
        shared_key: str,
    ) -> "Block":
        """Build a block, compute its hash and sign the hash with ``shared_key``."""
        txs = list(transactions)
        header = BlockHeader(
            height=height,
            parent_hash=previous_hash,
            proposer_id=proposer_id,
            tx_count=len(txs),
        )
        block = cls(index=index, header=header, timestamp=timestamp, transactions=txs)
        block.hash = block.calculate_hash()
        block.signature = hmac.new(
            shared_key.encode(), block.hash.encode(), hashlib.sha256
        ).hexdigest()
        return block

    def calculate_hash(self) -> str:
        """SHA-256 hex digest over index, timestamp, transfers and header JSON."""
        transfers = "".join(
            f"{tx.sender}{tx.receiver}{_format_amount(tx.amount)}" for tx in self.transactions
        )
        payload = f"{self.index}{self.timestamp}{transfers}{self.header.to_json()}"
        return hashlib.sha256(payload.encode()).hexdigest()

    def verify_signature(self, shared_key: str) -> bool:
        """Check that the signature is the HMAC-SHA256 of the stored hash."""
        if not _HEX.fullmatch(self.signature):
            return False
        received = bytes.fromhex(self.signature)
        expected = hmac.new(shared_key.encode(), self.hash.encode(), hashlib.sha256).digest()
        return hmac.compare_digest(expected, received)

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "header": self.header.to_dict(),
            "timestamp": self.timestamp,
            "transactions": [tx.to_dict() for tx in self.transactions],
            "hash": self.hash,
            "signature": self.signature,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Block":
        raw_txs = _field(data, "transactions")
        if not isinstance(raw_txs, list):
            raise ValueError("field 'transactions' must be a list")
        return cls(
            index=_unsigned(_field(data, "index"), "index"),
            header=BlockHeader.from_dict(_field(data, "header")),
            timestamp=_unsigned(_field(data, "timestamp"), "timestamp"),
            transactions=[Transaction.from_dict(tx) for tx in raw_txs],
            hash=_text(_field(data, "hash"), "hash"),
            signature=_text(_field(data, "signature"), "signature"),
        )