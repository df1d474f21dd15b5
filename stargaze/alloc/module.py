"""Block hooks, genesis handling and message routing of the alloc module."""

from __future__ import annotations

from typing import Any, Callable

from stargaze.alloc.keeper import Keeper, MsgServer
from stargaze.alloc.types import (
    FAIRBURN_POOL_NAME,
    MODULE_NAME,
    SUPPLEMENT_POOL_NAME,
    GenesisState,
    MsgCreateVestingAccount,
    MsgFundFairburnPool,
)
from stargaze.core import Context, Event, EventManager, UnknownRequestError


def begin_blocker(ctx: Context, keeper: Keeper) -> None:
    """Distribute the module-specific inflation; failure halts the block."""
    try:
        keeper.distribute_inflation(ctx)
    except Exception as exc:
        raise RuntimeError(f"Error distribute inflation: {exc}") from exc


def init_genesis(ctx: Context, keeper: Keeper, genesis: GenesisState) -> None:
    """Store the genesis params, create the pool accounts and fund the community pool."""
    keeper.set_params(ctx, genesis.params)
    keeper.get_module_account(ctx, FAIRBURN_POOL_NAME)
    keeper.get_module_account(ctx, SUPPLEMENT_POOL_NAME)
    keeper.fund_community_pool(ctx)


def export_genesis(ctx: Context, keeper: Keeper) -> GenesisState:
    return GenesisState(params=keeper.get_params(ctx))


def new_handler(keeper: Keeper) -> Callable[[Context, Any], list[Event]]:
    """Return a function that handles a message and returns the events it emitted."""
    server = MsgServer(keeper)

    def handler(ctx: Context, msg: Any) -> list[Event]:
        ctx = ctx.with_event_manager(EventManager())
        if isinstance(msg, MsgCreateVestingAccount):
            server.create_vesting_account(ctx, msg)
        elif isinstance(msg, MsgFundFairburnPool):
            server.fund_fairburn_pool(ctx, msg)
        else:
            raise UnknownRequestError(
                f"unrecognized {MODULE_NAME} message type: {type(msg).__name__}"
            )
        return ctx.event_manager.events

    return handler