"""Slot-based leader rotation and chain synchronisation with peers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import aiohttp

from slotchain.block import Block
from slotchain.chain import create_new_block
from slotchain.state import AppState

logger = logging.getLogger(__name__)

DEFAULT_SLOT_DURATION = 5.0

_NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


def leader_for_slot(validators: Sequence[str], slot: int) -> str:
    """Return the leader of ``slot`` (counted from 1) by round robin over sorted ids."""
    if not validators:
        raise ValueError("the validator set is empty")
    if slot < 1:
        raise ValueError(f"slots are numbered from 1, got {slot}")
    ordered = sorted(validators)
    return ordered[(slot - 1) % len(ordered)]


async def _broadcast_block(state: AppState, block: Block, slot: int) -> None:
    payload = block.to_dict()
    for peer in state.node.peers:
        url = f"http://localhost:{peer}/block"
        logger.info("[slot %d] sending to %s", slot, url)
        try:
            async with state.http_client.post(url, json=payload):
                pass
        except _NETWORK_ERRORS as exc:
            logger.warning("[slot %d] could not reach %s: %s", slot, url, exc)


async def run_slot(state: AppState, slot: int) -> Block | None:
    """Play one slot; if this node leads it, propose a block and return it."""
    leader = leader_for_slot(state.node.validator_ids, slot)
    logger.info("[slot %d] leader: %s", slot, leader)
    my_id = state.node.id
    if my_id != leader:
        logger.info("[slot %d] validator, waiting for a block from %s", slot, leader)
        return None

    logger.info("[slot %d] leader, forming a block", slot)
    valid = []
    for tx in state.mempool_repo.drain_transactions():
        if state.user_state_repo.apply_transaction(tx):
            valid.append(tx)
        else:
            logger.info("[slot %d] transaction %s rejected (insufficient funds)", slot, tx.id)

    if not valid:
        logger.info("[slot %d] mempool is empty, skipping slot", slot)
        return None

    logger.info("[slot %d] packed %d valid transactions", slot, len(valid))
    block = create_new_block(state.blockchain_repo, valid, my_id, state.shared_key)
    state.pending_blocks[block.hash] = block
    state.vote_counts.setdefault(block.hash, []).append(my_id)
    logger.info("[slot %d] broadcasting block #%d", slot, block.header.height)
    await _broadcast_block(state, block, slot)
    return block


async def pos_consensus_loop(
    state: AppState, slot_duration: float = DEFAULT_SLOT_DURATION
) -> None:
    """Run slots forever, one every ``slot_duration`` seconds."""
    logger.info(
        "[pos] id %s, validators %s", state.node.id, sorted(state.node.validator_ids)
    )
    slot = 0
    while True:
        await asyncio.sleep(slot_duration)
        slot += 1
        await run_slot(state, slot)


def _parse_chain(payload: Any) -> list[Block] | None:
    if not isinstance(payload, list):
        return None
    try:
        return [Block.from_dict(item) for item in payload]
    except ValueError:
        return None


async def sync_chain(state: AppState) -> bool:
    """Adopt the longest chain offered by a peer; return whether one was found."""
    logger.info("[sync] starting chain synchronisation")
    longest: list[Block] = []
    for peer in list(state.node.peers):
        url = f"http://{peer}/blocks"
        try:
            async with state.http_client.get(url) as response:
                try:
                    payload = await response.json()
                except (aiohttp.ContentTypeError, ValueError):
                    continue
        except _NETWORK_ERRORS as exc:
            logger.warning("[sync] could not connect to %s: %s", peer, exc)
            continue
        chain = _parse_chain(payload)
        if chain is not None and len(chain) > len(longest):
            longest = chain

    if not longest:
        logger.info("[sync] no longer chain found among peers")
        return False

    logger.info("[sync] found chain of height %d, replacing local chain", len(longest) - 1)
    state.blockchain_repo.replace_chain(longest)
    state.user_state_repo.rebuild_from_blocks(longest, state.genesis_sender_id)
    logger.info("[sync] synchronisation finished")
    return True