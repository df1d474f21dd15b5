# stargaze

Pure-Python, in-memory models of two chain modules, and two small operator
tools. No third-party libraries are needed.

* **alloc** (`stargaze.alloc`): per-block inflation allocation.
  `Keeper.distribute_inflation` first moves the configured supplement from the
  supplement pool to the fee collector, if the pool holds more than that
  amount. It then splits the fee collector's balance into NFT incentives,
  a community-pool share and developer rewards, using weighted receiver lists,
  and emits an `alloc_distribution` event. Last, it sweeps the fairburn pool
  into the fee collector. The module also handles vesting account creation and
  fairburn pool funding (`MsgServer`), parameter validation, genesis import and
  export, message routing (`stargaze.alloc.module`), parameter migrations
  (`stargaze.alloc.migrations`) and decoding of custom contract messages
  (`stargaze.alloc.wasm.encoder`).
* **cron** (`stargaze.cron`): a set of privileged contracts.
  `stargaze.cron.abci.begin_blocker` and `end_blocker` send a `begin_block` or
  `end_block` sudo message to each of them. A contract that fails is logged and
  its writes are discarded; the others carry on. The governance authority and
  the configured admin addresses can promote and demote contracts; only the
  authority can update the parameters.

Shared building blocks live in `stargaze.core`: fixed-point decimals (`Dec`),
coins (`Coin`, `Coins`, `parse_coins`), bech32 encoding (`bech32_encode`,
`bech32_decode`), account addresses (`AccAddress`, `module_address`,
`random_address`), an ordered in-memory key-value store (`KVStore`), events
(`Event`, `EventManager`) and a block `Context` with branch-and-commit
(`Context.cache_context`). The keepers the modules call on are described as
protocols: `AccountKeeper`, `BankKeeper`, `StakingKeeper`, `DistrKeeper` and
`WasmKeeper`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Library use

```python
from stargaze.core import Dec, parse_coins
from stargaze.alloc.types import default_params

coins = parse_coins("100000ustars")
print(coins.amount_of("ustars"))   # 100000

incentives = Dec.with_prec(45, 2)  # 0.45
default_params().validate()        # raises on invalid parameters
```

A cron keeper needs an object with `has_contract_info(ctx, addr)` and
`sudo(ctx, addr, msg)`, and the governance authority address:

```python
from stargaze.core import Context
from stargaze.cron.keeper import Keeper, MsgServer

keeper = Keeper(wasm_keeper=my_wasm_keeper, authority=gov_address)
ctx = Context()
MsgServer(keeper).promote_to_privileged_contract(ctx, msg)
print(keeper.list_privileged(ctx))
```

Errors are raised, never returned. Invalid addresses, coins and requests raise
`SdkError` subclasses such as `InvalidAddressError`, `InvalidCoinsError`,
`InvalidRequestError` and `UnauthorizedError`. The cron module raises
`ContractDoesNotExistError`, `ContractPrivilegeNotSetError` or
`UnauthorizedOperationError`. Invalid alloc parameters raise `ValueError`.

## Command-line tools

### Chain readiness checker

`stargaze-readiness-checker` polls the `/status` endpoint of one or more RPC
nodes every 5 seconds. It waits until each node reports a latest block height
above the required number of blocks. It is configured through environment
variables:

| Variable            | Meaning                                                   |
|---------------------|-----------------------------------------------------------|
| `PLUGIN_CHAIN_LIST` | comma-separated RPC base URLs (required)                  |
| `PLUGIN_TIMEOUT`    | seconds to wait for each chain (required)                 |
| `PLUGIN_BLOCKS`     | block height to exceed; missing or below 5 means 5        |
| `PLUGIN_CHECK_FILE` | optional path that must exist before checking starts      |

```
PLUGIN_CHAIN_LIST=http://localhost:26657 PLUGIN_TIMEOUT=120 stargaze-readiness-checker
```

It exits with 0 once every chain is ready. It exits with 1 if the
configuration is missing or invalid, or if any chain does not become ready in
time.

### Process watcher

`stargaze-watcher` starts a command and serves HTTP on port 8090 on every
interface. A request to `/kill` kills the child process, answers `OK` and shuts
the server down. The watcher then exits with status 1; it always exits with 1.
If the child exits on its own, the server keeps running until `/kill` is
requested.

```
stargaze-watcher some-node-binary start --home /tmp/node
```

You must pass at least a program and one argument.

## What this package does not do

* It does not run a chain or a node. There is no consensus, no transaction
  signing or broadcasting, no gRPC or REST query service and no command line
  for the modules.
* State is kept only in memory, in `KVStore` objects reached through a
  `Context`. Parameters and genesis state are stored as canonical JSON, not in
  any on-chain binary encoding, and nothing is written to disk.
* No bank, account, staking, distribution or contract execution keeper is
  included. You supply objects that satisfy the protocols in `stargaze.core`.