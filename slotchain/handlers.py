"""HTTP request handlers for the node's API."""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import aiohttp
from aiohttp import web

from slotchain.block import Block
from slotchain.chain import add_block_to_chain
from slotchain.consensus import sync_chain
from slotchain.node import Vote
from slotchain.state import AppState
from slotchain.transaction import Transaction

logger = logging.getLogger(__name__)

STATE_KEY = web.AppKey("state", AppState)

_NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)
_background_tasks: set[asyncio.Task[Any]] = set()

T = TypeVar("T")


def _field(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field {key!r}") from None
    except TypeError:
        raise ValueError("request body must be a JSON object") from None


def _uuid(value: Any, key: str) -> uuid.UUID:
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a UUID string")
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValueError(f"field {key!r} is not a valid UUID: {value!r}") from None


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    return float(value)


@dataclass(frozen=True)
class CreateTransactionRequest:
    sender: uuid.UUID
    receiver: uuid.UUID
    amount: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CreateTransactionRequest":
        return cls(
            sender=_uuid(_field(data, "from"), "from"),
            receiver=_uuid(_field(data, "to"), "to"),
            amount=_number(_field(data, "amount"), "amount"),
        )


@dataclass(frozen=True)
class CreateUserRequest:
    balance: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CreateUserRequest":
        return cls(balance=_number(_field(data, "balance"), "balance"))


def _state(request: web.Request) -> AppState:
    return request.app[STATE_KEY]


async def _parse_body(request: web.Request, parser: Callable[[Any], T]) -> T:
    """Decode the JSON body: 400 on bad syntax, 422 on bad content."""
    try:
        data = await request.json()
    except ValueError as exc:
        raise web.HTTPBadRequest(text=f"Invalid JSON body: {exc}") from None
    try:
        return parser(data)
    except ValueError as exc:
        raise web.HTTPUnprocessableEntity(text=str(exc)) from None


def _text(status: int, message: str) -> web.Response:
    return web.Response(status=status, text=message)


def _spawn(coro: Awaitable[Any]) -> None:
    task = asyncio.ensure_future(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def get_all_blocks(request: web.Request) -> web.Response:
    blocks = _state(request).blockchain_repo.get_all_blocks()
    return web.json_response([block.to_dict() for block in blocks])


async def get_all_transactions(request: web.Request) -> web.Response:
    transactions = _state(request).mempool_repo.get_all_transactions()
    return web.json_response([tx.to_dict() for tx in transactions])


async def get_balance(request: web.Request) -> web.Response:
    raw = request.match_info["address"]
    try:
        address = uuid.UUID(raw)
    except ValueError:
        raise web.HTTPBadRequest(text=f"Invalid address: {raw!r}") from None
    balance = _state(request).user_state_repo.get_balance(address)
    return web.json_response({"balance": balance})


async def get_all_balances(request: web.Request) -> web.Response:
    balances = _state(request).user_state_repo.get_balances()
    return web.json_response({str(address): value for address, value in balances.items()})


async def create_transaction(request: web.Request) -> web.Response:
    payload = await _parse_body(request, CreateTransactionRequest.from_dict)
    if payload.sender == payload.receiver:
        return _text(400, "Sender and receiver addresses cannot be the same")
    if payload.amount <= 0.0:
        return _text(400, "Transaction amount must be positive")
    if math.isnan(payload.amount) or math.isinf(payload.amount):
        return _text(400, "Transaction amount cannot be NaN or infinite")

    state = _state(request)
    balances = state.user_state_repo.get_balances()
    if payload.sender not in balances:
        return _text(404, "Sender not found")
    if payload.receiver not in balances:
        return _text(404, "Receiver not found")
    if state.user_state_repo.get_balance(payload.sender) < payload.amount:
        return _text(400, "Insufficient balance")

    transaction = Transaction.create(payload.sender, payload.receiver, payload.amount)
    if state.mempool_repo.check_exists_by_id(transaction.id):
        return _text(409, "Transaction already exists")
    state.mempool_repo.add_transaction(transaction)
    return web.json_response(transaction.to_dict(), status=201)


async def create_user(request: web.Request) -> web.Response:
    """Register an account and queue a faucet transfer funding the returned id."""
    payload = await _parse_body(request, CreateUserRequest.from_dict)
    state = _state(request)
    state.user_state_repo.set_balance(uuid.uuid4(), payload.balance)

    new_user_id = uuid.uuid4()
    funding = Transaction.create(state.faucet_wallet_id, new_user_id, payload.balance)
    state.mempool_repo.add_transaction(funding)
    logger.info("[api /user] funding transaction created for new user %s", new_user_id)
    return web.json_response({"id": str(new_user_id)})


async def _send_vote(state: AppState, vote: Vote) -> None:
    payload = vote.to_dict()
    for peer in list(state.node.peers):
        url = f"http://{peer}/vote"
        try:
            async with state.http_client.post(url, json=payload):
                pass
        except _NETWORK_ERRORS as exc:
            logger.warning("[api /block] could not send vote to %s: %s", url, exc)


async def accept_block(request: web.Request) -> web.Response:
    block = await _parse_body(request, Block.from_dict)
    logger.info(
        "[api /block] received block #%d from %s",
        block.header.height,
        block.header.proposer_id,
    )
    if block.hash != block.calculate_hash():
        logger.info("[api /block] rejected: wrong hash")
        return _text(400, "Invalid block hash")

    state = _state(request)
    if not block.verify_signature(state.shared_key):
        logger.info("[api /block] rejected: wrong signature")
        return _text(400, "Invalid block signature")

    last = state.blockchain_repo.get_last_block()
    if block.header.parent_hash == last.hash and block.header.height == last.header.height + 1:
        for tx in block.transactions:
            if not state.user_state_repo.apply_transaction(tx):
                logger.info("[api /block] rejected: invalid transaction %s", tx.id)
                return _text(400, "Block contains invalid transactions")
        logger.info("[api /block] block #%d passed all checks", block.header.height)
        state.blockchain_repo.add_block(block)
        vote = Vote(block_hash=block.hash, voter_id=state.node.id, decision="ACK")
        await _send_vote(state, vote)
        return _text(200, "Block accepted, ACK sent")

    if block.header.height > last.header.height:
        logger.info(
            "[api /block] fork: our height %d, received %d",
            last.header.height,
            block.header.height,
        )
        _spawn(sync_chain(state))
        return _text(409, "Fork detected, starting sync")

    logger.info("[api /block] rejected: block is from a shorter chain")
    return _text(400, "Block is from a shorter chain")


async def accept_vote(request: web.Request) -> web.Response:
    vote = await _parse_body(request, Vote.from_dict)
    if vote.decision != "ACK":
        return _text(200, "Vote received (NACK)")

    state = _state(request)
    quorum = len(state.node.validator_ids) // 2 + 1
    voters = state.vote_counts.setdefault(vote.block_hash, [])
    if vote.voter_id not in voters:
        voters.append(vote.voter_id)
    logger.info(
        "[api /vote] (%s) vote from %s: %s for block ...%s",
        state.node.id,
        vote.voter_id,
        vote.decision,
        vote.block_hash[:5],
    )

    if len(voters) >= quorum:
        logger.info("[api /vote] quorum reached for block ...%s", vote.block_hash[:5])
        block = state.pending_blocks.pop(vote.block_hash, None)
        if block is not None:
            add_block_to_chain(state, block)
            logger.info("[api /vote] leader added block #%d", block.header.height)
            state.vote_counts.pop(vote.block_hash, None)
        else:
            logger.info("[api /vote] block ...%s was already added", vote.block_hash[:5])
    return _text(200, "Vote received")