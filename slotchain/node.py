"""Node identity and validator votes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass
class Node:
    """This node's id, the peer addresses it talks to and the validator set."""

    id: str
    peers: list[str] = field(default_factory=list)
    validator_ids: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.peers = list(self.peers)
        self.validator_ids = list(self.validator_ids)


@dataclass(frozen=True)
class Vote:
    block_hash: str
    voter_id: str
    decision: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "block_hash": self.block_hash,
            "voter_id": self.voter_id,
            "decision": self.decision,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Vote":
        """Parse the wire form; raises ValueError on malformed input."""
        values = {}
        for key in ("block_hash", "voter_id", "decision"):
            try:
                value = data[key]
            except KeyError:
                raise ValueError(f"missing field {key!r}") from None
            except TypeError:
                raise ValueError("vote must be a mapping") from None
            if not isinstance(value, str):
                raise ValueError(f"field {key!r} must be a string")
            values[key] = value
        return cls(**values)