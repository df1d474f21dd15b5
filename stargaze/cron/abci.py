"""Block hooks and genesis handling of the cron module."""

from __future__ import annotations

import traceback
from typing import Callable

from stargaze.core import AccAddress, Context, WasmKeeper
from stargaze.cron.keeper import Keeper, module_logger
from stargaze.cron.types import GenesisState, SudoMsg, default_genesis


def contract_callback_type(msg: SudoMsg) -> str:
    if msg.begin_block:
        return "begin_blocker"
    if msg.end_block:
        return "end_blocker"
    raise ValueError("unknown sudo msg type")


def _contract_callback(
    parent_ctx: Context, wasm_keeper: WasmKeeper, msg: SudoMsg
) -> Callable[[AccAddress], None]:
    """Return a callback that sends ``msg`` to a contract, keeping its writes only on success."""
    logger = module_logger()
    kind = contract_callback_type(msg)
    payload = msg.to_json()

    def callback(contract_addr: AccAddress) -> None:
        logger.debug("privileged contract callback type=%s msg=%s", kind, payload.decode())
        cache_ctx, commit = parent_ctx.cache_context()
        try:
            wasm_keeper.sudo(cache_ctx, contract_addr, payload)
        except Exception as exc:  # a failing contract must not halt the block
            logger.error(
                "abci callback to privileged contract failed type=%s cause=%s contract-address=%s\n%s",
                kind,
                exc,
                contract_addr,
                traceback.format_exc(),
            )
            return
        if cache_ctx.event_manager is not parent_ctx.event_manager:
            parent_ctx.event_manager.emit(*cache_ctx.event_manager.events)
        commit()

    return callback


def _notify_privileged(ctx: Context, keeper: Keeper, wasm_keeper: WasmKeeper, msg: SudoMsg) -> None:
    callback = _contract_callback(ctx, wasm_keeper, msg)
    for contract_addr in list(keeper.iterate_privileged(ctx)):
        callback(contract_addr)


def begin_blocker(ctx: Context, keeper: Keeper, wasm_keeper: WasmKeeper) -> None:
    """Send a begin-block sudo message to every privileged contract."""
    _notify_privileged(ctx, keeper, wasm_keeper, SudoMsg(begin_block=True))


def end_blocker(ctx: Context, keeper: Keeper, wasm_keeper: WasmKeeper) -> list:
    """Send an end-block sudo message to every privileged contract; no validator updates."""
    _notify_privileged(ctx, keeper, wasm_keeper, SudoMsg(end_block=True))
    return []


def init_genesis(ctx: Context, keeper: Keeper, genesis: GenesisState) -> None:
    """Store the genesis params and mark the listed contracts as privileged."""
    keeper.set_params(ctx, genesis.params)
    for address in genesis.privileged_contract_addresses:
        keeper.set_privileged(ctx, AccAddress.from_bech32(address))


def export_genesis(ctx: Context, keeper: Keeper) -> GenesisState:
    genesis = default_genesis()
    genesis.params = keeper.get_params(ctx)
    genesis.privileged_contract_addresses = keeper.list_privileged(ctx)
    return genesis