# slotchain

A small blockchain node. Nodes take turns producing blocks in fixed time slots, and a majority
of the validators must vote for a block before the leader appends it. Each node keeps its chain,
mempool and account balances in memory and serves a JSON HTTP API built on aiohttp. Blocks are
hashed with SHA-256 and signed with HMAC-SHA256 using a key that all nodes share.

## Installing

```
pip install .
pip install .[test]   # with pytest and pytest-asyncio for the test suite
```

## Configuration

The `slotchain` command loads a `.env` file from the current directory if one exists, then reads
these environment variables:

| Variable            | Meaning                                                           |
|---------------------|-------------------------------------------------------------------|
| `SHARED_KEY`        | HMAC key that signs blocks and checks their signatures            |
| `GENESIS_SENDER_ID` | UUID of the system account that funds the genesis block           |
| `FAUCET_WALLET_ID`  | UUID of the faucet wallet; it receives 1,000,000 at genesis       |

An example `.env`:

```
SHARED_KEY=secret
GENESIS_SENDER_ID=00000000-0000-4000-8000-000000000000
FAUCET_WALLET_ID=11111111-1111-4111-8111-111111111111
```

If a variable is missing, or one of the ids is not a valid UUID, the command stops with an
`error: ...` message.

## Running a node

```
slotchain --id v1 --port 3001 --peers 3002,3003
```

- `--id` (required): the node's validator id. The validator set is fixed to `v1`, `v2` and `v3`.
- `--port` (required): the port to listen on, 0–65535, bound on `0.0.0.0`.
- `--peers`: comma-separated peers. The option may be given more than once; the lists are joined.
  When the node leads a slot it sends its block to `http://localhost:<peer>/block`, so for the
  leader a peer is a port. When it accepts a block it sends its vote to `http://<peer>/vote`, and
  when it sees a fork it fetches `http://<peer>/blocks`.

Start three nodes, `v1`, `v2` and `v3`, each with the other two as peers. Progress is logged to
standard error. Stop a node with Ctrl+C.

## How consensus works

- A slot lasts five seconds. The leader of slot *n* (counted from 1) is the validator at position
  `(n - 1) mod len(validators)` in the sorted validator list (`slotchain.consensus.leader_for_slot`).
- The leader empties the mempool and applies each transaction to its balances, dropping those
  whose sender cannot cover the amount. If none remain, the slot is skipped. Otherwise it builds
  and signs a block on top of its tip, records its own vote, keeps the block pending and sends it
  to its peers.
- A node receiving a block checks the hash and the signature. If the block extends its tip (parent
  hash matches and height is one more), it applies every transaction, appends the block and sends
  an `ACK` vote. If any transaction cannot be applied the block is rejected.
- If the block is higher than the node's tip but does not extend it, the node answers `409` and,
  in the background, replaces its chain with the longest chain offered by a peer and rebuilds its
  balances from it (`slotchain.consensus.sync_chain`). A lower or equal block is rejected.
- When the leader holds `ACK` votes from `len(validators) // 2 + 1` distinct voters for a pending
  block, it appends that block to its own chain.

## HTTP API

| Method | Path                 | Description                                                        |
|--------|----------------------|--------------------------------------------------------------------|
| GET    | `/`                  | Returns `Hello, World!`                                            |
| GET    | `/blocks`            | The whole chain                                                    |
| GET    | `/transactions`      | Transactions waiting in the mempool                                |
| POST   | `/transactions`      | `{"from": uuid, "to": uuid, "amount": number}`: queue a transfer   |
| POST   | `/user`              | `{"balance": number}`: returns `{"id": uuid}` for a new user       |
| GET    | `/balances`          | All known balances, keyed by UUID                                  |
| GET    | `/balance/{address}` | `{"balance": number}`; 0 for an unknown account                    |
| POST   | `/block`             | Receive a block from a peer                                        |
| POST   | `/vote`              | Receive a vote `{"block_hash", "voter_id", "decision"}`            |

`POST /transactions` returns `201` with the queued transaction. It returns `400` when the sender
and receiver are the same, the amount is not positive or not finite, or the sender's balance is
too low; `404` when the sender or receiver has no balance entry; `409` when a transaction with the
same id is already queued.

`POST /user` queues a transfer of the requested amount from the faucet wallet to the returned id;
the new user's balance appears once that transfer is included in a block.

For every POST, a body that is not valid JSON gets `400`, and JSON with missing or mistyped fields
gets `422`. `GET /balance/{address}` with an address that is not a UUID gets `400`.

## Using the pieces from Python

The domain types and the in-memory stores work without the server:

```python
import uuid

from slotchain.block import Block
from slotchain.repositories import InMemoryBlockchainRepository, InMemoryUserStateRepository
from slotchain.transaction import Transaction

chain = InMemoryBlockchainRepository()
genesis = Block.create(0, 0, "GENESIS", 0, [], "0", "secret")
chain.add_block(genesis)
assert genesis.verify_signature("secret")
assert chain.get_last_block() is genesis

alice, bob = uuid.uuid4(), uuid.uuid4()
balances = InMemoryUserStateRepository()
balances.set_balance(alice, 10.0)
assert balances.apply_transaction(Transaction.create(alice, bob, 4.0))
assert balances.get_balance(bob) == 4.0
```

Modules:

- `slotchain.transaction`: `Transaction` (`create`, `to_dict`, `from_dict`; the wire form uses
  `from`/`to` for `sender`/`receiver`).
- `slotchain.block`: `BlockHeader` and `Block` (`create`, `calculate_hash`, `verify_signature`,
  `to_dict`, `from_dict`).
- `slotchain.node`: `Node` and `Vote`.
- `slotchain.repositories`: the abstract `BlockchainRepository`, `MempoolRepository` and
  `UserStateRepository`, their in-memory implementations, and `EmptyChainError`, raised by
  `get_last_block` on an empty chain.
- `slotchain.config`: `parse_args` and `Settings.from_args(argv, environ)`; `ConfigError` for
  missing or malformed environment settings.
- `slotchain.state`: `AppState.create(settings, http_client)`.
- `slotchain.chain`: `create_genesis_block`, `create_new_block`, `add_block_to_chain`.
- `slotchain.consensus`: `leader_for_slot`, `run_slot`, `pos_consensus_loop`, `sync_chain`.
- `slotchain.handlers`: the aiohttp request handlers.
- `slotchain.server`: `build_app(state)`, `bootstrap(state)`, `run(settings)` and `main(argv)`.

## What it does not do

All state lives in memory: nothing is written to disk, and a restarted node begins again from a
fresh genesis block. The validator set cannot be configured, and the shared key is the only
authentication between nodes.