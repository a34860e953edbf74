"""Value transfers between accounts."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any, Mapping


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field {key!r}") from None
    except TypeError:
        raise ValueError("transaction must be a mapping") from None


def _parse_uuid(value: Any, key: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a UUID string")
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValueError(f"field {key!r} is not a valid UUID: {value!r}") from None


def _parse_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    return float(value)


def _parse_unsigned(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"field {key!r} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class Transaction:
    """A transfer of ``amount`` from ``sender`` to ``receiver``."""

    id: uuid.UUID
    sender: uuid.UUID
    receiver: uuid.UUID
    amount: float
    timestamp: int

    @classmethod
    def create(cls, sender: uuid.UUID, receiver: uuid.UUID, amount: float) -> "Transaction":
        """Build a transaction with a fresh id, stamped with the current time in seconds."""
        return cls(
            id=uuid.uuid4(),
            sender=sender,
            receiver=receiver,
            amount=float(amount),
            timestamp=int(time.time()),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "from": str(self.sender),
            "to": str(self.receiver),
            "amount": self.amount,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Transaction":
        """Parse the wire form; raises ValueError on malformed input."""
        return cls(
            id=_parse_uuid(_field(data, "id"), "id"),
            sender=_parse_uuid(_field(data, "from"), "from"),
            receiver=_parse_uuid(_field(data, "to"), "to"),
            amount=_parse_float(_field(data, "amount"), "amount"),
            timestamp=_parse_unsigned(_field(data, "timestamp"), "timestamp"),
        )