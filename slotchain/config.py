"""Command-line and environment settings for a node."""

from __future__ import annotations

import argparse
import os
import uuid
from dataclasses import dataclass, field
from typing import Mapping, Sequence

DEFAULT_VALIDATORS = ("v1", "v2", "v3")


class ConfigError(ValueError):
    """Raised when a required environment setting is missing or malformed."""


def _port(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port: {text!r}") from None
    if not 0 <= value <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {value}")
    return value


def _peer_list(text: str) -> list[str]:
    return text.split(",")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slotchain", description="Run a proof-of-stake chain node."
    )
    parser.add_argument("--id", required=True, help="this node's validator id")
    parser.add_argument("--port", required=True, type=_port, help="port to listen on")
    parser.add_argument(
        "--peers",
        type=_peer_list,
        action="append",
        default=[],
        help="comma-separated peer addresses; may be repeated",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the command line; exits with a usage message on bad input."""
    namespace = _build_parser().parse_args(argv)
    namespace.peers = [peer for group in namespace.peers for peer in group]
    return namespace


def _require(environ: Mapping[str, str], name: str) -> str:
    try:
        return environ[name]
    except KeyError:
        raise ConfigError(f"{name} must be set") from None


def _require_uuid(environ: Mapping[str, str], name: str) -> uuid.UUID:
    value = _require(environ, name)
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ConfigError(f"{name} is not a valid UUID: {value!r}") from None


@dataclass
class Settings:
    """Everything a node needs to start."""

    node_id: str
    port: int
    peers: list[str]
    shared_key: str
    genesis_sender_id: uuid.UUID
    faucet_wallet_id: uuid.UUID
    validator_ids: list[str] = field(default_factory=lambda: list(DEFAULT_VALIDATORS))

    @classmethod
    def from_args(
        cls,
        argv: Sequence[str] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "Settings":
        """Combine command-line arguments with SHARED_KEY, GENESIS_SENDER_ID and FAUCET_WALLET_ID."""
        args = parse_args(argv)
        env = os.environ if environ is None else environ
        return cls(
            node_id=args.id,
            port=args.port,
            peers=args.peers,
            shared_key=_require(env, "SHARED_KEY"),
            genesis_sender_id=_require_uuid(env, "GENESIS_SENDER_ID"),
            faucet_wallet_id=_require_uuid(env, "FAUCET_WALLET_ID"),
        )