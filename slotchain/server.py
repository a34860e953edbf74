"""Node start-up: routing, genesis bootstrap and the serving loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import Sequence

import aiohttp
from aiohttp import web
from dotenv import load_dotenv

from slotchain.block import Block
from slotchain.chain import create_genesis_block
from slotchain.config import ConfigError, Settings
from slotchain.consensus import pos_consensus_loop
from slotchain.handlers import (
    STATE_KEY,
    accept_block,
    accept_vote,
    create_transaction,
    create_user,
    get_all_balances,
    get_all_blocks,
    get_all_transactions,
    get_balance,
)
from slotchain.state import AppState

logger = logging.getLogger(__name__)

LISTEN_HOST = "0.0.0.0"


async def _hello(request: web.Request) -> web.Response:
    return web.Response(text="Hello, World!")


def build_app(state: AppState) -> web.Application:
    """Create the web application serving the node's API over ``state``."""
    app = web.Application()
    app[STATE_KEY] = state
    app.router.add_get("/", _hello)
    app.router.add_get("/blocks", get_all_blocks)
    app.router.add_post("/user", create_user)
    app.router.add_post("/transactions", create_transaction)
    app.router.add_get("/transactions", get_all_transactions)
    app.router.add_post("/block", accept_block)
    app.router.add_get("/balances", get_all_balances)
    app.router.add_get("/balance/{address}", get_balance)
    app.router.add_post("/vote", accept_vote)
    return app


def bootstrap(state: AppState) -> Block:
    """Add the genesis block and rebuild balances from the chain; return the genesis block."""
    genesis = create_genesis_block(
        state.blockchain_repo,
        state.shared_key,
        state.genesis_sender_id,
        state.faucet_wallet_id,
    )
    logger.info("[startup] rebuilding state from the genesis block")
    blocks = state.blockchain_repo.get_all_blocks()
    logger.debug("all blocks: %s", blocks)
    state.user_state_repo.rebuild_from_blocks(blocks, state.genesis_sender_id)
    logger.info("[startup] state rebuilt, faucet is funded")
    return genesis


async def run(settings: Settings) -> None:
    """Serve the node and run consensus until cancelled."""
    async with aiohttp.ClientSession() as http_client:
        state = AppState.create(settings, http_client)
        bootstrap(state)
        consensus = asyncio.create_task(pos_consensus_loop(state))
        runner = web.AppRunner(build_app(state))
        await runner.setup()
        try:
            site = web.TCPSite(runner, LISTEN_HOST, settings.port)
            await site.start()
            logger.info("node %s listens on %s:%d", state.node.id, LISTEN_HOST, settings.port)
            print("Press Ctrl+C to stop the node.")
            await asyncio.Event().wait()
        finally:
            consensus.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consensus
            await runner.cleanup()


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: read .env and arguments, then run the node."""
    load_dotenv(Path.cwd() / ".env")
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        settings = Settings.from_args(argv)
    except ConfigError as exc:
        raise SystemExit(f"error: {exc}") from None
    print(f"  -> Id: {settings.node_id}")
    print(f"  -> Port: {settings.port}")
    print(f"  -> Peers: {settings.peers}")
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        print("...Received Ctrl+C, shutting down...")
    return 0