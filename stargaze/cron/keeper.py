"""State keeper, queries and message handling of the cron module."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator

from stargaze.core import AccAddress, Context, Event, KVStore, WasmKeeper
from stargaze.cron.types import (
    EVENT_TYPE_SET_CONTRACT_PRIVILEDGE,
    EVENT_TYPE_UNSET_CONTRACT_PRIVILEDGE,
    MODULE_NAME,
    PARAMS_KEY,
    PRIVILEGED_CONTRACTS_PREFIX,
    STORE_KEY,
    ContractDoesNotExistError,
    ContractPrivilegeNotSetError,
    MsgDemoteFromPrivilegedContract,
    MsgPromoteToPrivilegedContract,
    MsgUpdateParams,
    Params,
    UnauthorizedOperationError,
    privileged_contracts_key,
)

ATTRIBUTE_KEY_CONTRACT_ADDR = "_contract_address"


def module_logger() -> logging.Logger:
    """Return the logger of the cron module."""
    return logging.getLogger(f"x/{MODULE_NAME}")


def _stored_key(store: KVStore, item: Any) -> bytes:
    """Return the full store key of an iterated entry, whether or not the prefix was stripped."""
    key = bytes(item[0] if isinstance(item, tuple) else item)
    if key.startswith(PRIVILEGED_CONTRACTS_PREFIX) and store.has(key):
        return key
    return PRIVILEGED_CONTRACTS_PREFIX + key


@dataclass
class Keeper:
    """Holds the cron module's parameters and the set of privileged contracts."""

    wasm_keeper: WasmKeeper
    authority: str
    store_key: str = STORE_KEY

    # -- params -------------------------------------------------------------

    def get_params(self, ctx: Context) -> Params:
        """Return the stored parameters, or empty ones if none are stored."""
        raw = ctx.kv_store(self.store_key).get(PARAMS_KEY)
        if raw is None:
            return Params()
        return Params.from_bytes(raw)

    def set_params(self, ctx: Context, params: Params) -> None:
        ctx.kv_store(self.store_key).set(PARAMS_KEY, params.to_bytes())

    def query_params(self, ctx: Context) -> Params:
        """Answer a params query."""
        return self.get_params(ctx)

    def is_admin_address(self, ctx: Context, address: str) -> bool:
        return address in self.get_params(ctx).admin_addresses

    # -- privileged contracts -----------------------------------------------

    def set_privileged(self, ctx: Context, contract_addr: AccAddress) -> None:
        """Mark an existing contract as privileged."""
        if not self.wasm_keeper.has_contract_info(ctx, contract_addr):
            raise ContractDoesNotExistError(str(contract_addr))
        if not self.is_privileged(ctx, contract_addr):
            ctx.kv_store(self.store_key).set(privileged_contracts_key(contract_addr), b"\x01")
        ctx.event_manager.emit(
            Event(
                EVENT_TYPE_SET_CONTRACT_PRIVILEDGE,
                ((ATTRIBUTE_KEY_CONTRACT_ADDR, str(contract_addr)),),
            )
        )

    def unset_privileged(self, ctx: Context, contract_addr: AccAddress) -> None:
        """Remove the privilege of an existing, privileged contract."""
        if not self.wasm_keeper.has_contract_info(ctx, contract_addr):
            raise ContractDoesNotExistError(str(contract_addr))
        if not self.is_privileged(ctx, contract_addr):
            raise ContractPrivilegeNotSetError(str(contract_addr))
        ctx.kv_store(self.store_key).delete(privileged_contracts_key(contract_addr))
        ctx.event_manager.emit(
            Event(
                EVENT_TYPE_UNSET_CONTRACT_PRIVILEDGE,
                ((ATTRIBUTE_KEY_CONTRACT_ADDR, str(contract_addr)),),
            )
        )

    def is_privileged(self, ctx: Context, contract_addr: AccAddress) -> bool:
        return ctx.kv_store(self.store_key).has(privileged_contracts_key(contract_addr))

    def iterate_privileged(self, ctx: Context) -> Iterator[AccAddress]:
        """Yield the privileged contracts in key order."""
        store = ctx.kv_store(self.store_key)
        keys = sorted(_stored_key(store, item) for item in store.iterate(PRIVILEGED_CONTRACTS_PREFIX))
        for key in keys:
            yield AccAddress(key[len(PRIVILEGED_CONTRACTS_PREFIX):])

    def list_privileged(self, ctx: Context) -> list[str]:
        """Answer a query for the addresses of all privileged contracts."""
        return [str(addr) for addr in self.iterate_privileged(ctx)]


class MsgServer:
    """Handles the cron module's transaction messages."""

    def __init__(self, keeper: Keeper) -> None:
        self.keeper = keeper

    def _is_authorized(self, ctx: Context, actor: str) -> bool:
        return actor == self.keeper.authority or self.keeper.is_admin_address(ctx, actor)

    def promote_to_privileged_contract(
        self, ctx: Context, msg: MsgPromoteToPrivilegedContract
    ) -> None:
        AccAddress.from_bech32(msg.authority)
        if not self._is_authorized(ctx, msg.authority):
            raise UnauthorizedOperationError(
                "sender address is not authorized address to promote contracts"
            )
        contract = AccAddress.from_bech32(msg.contract)
        self.keeper.set_privileged(ctx, contract)

    def demote_from_privileged_contract(
        self, ctx: Context, msg: MsgDemoteFromPrivilegedContract
    ) -> None:
        AccAddress.from_bech32(msg.authority)
        if not self._is_authorized(ctx, msg.authority):
            raise UnauthorizedOperationError(
                "sender address is not authorized address to demote contracts"
            )
        contract = AccAddress.from_bech32(msg.contract)
        self.keeper.unset_privileged(ctx, contract)

    def update_params(self, ctx: Context, msg: MsgUpdateParams) -> None:
        AccAddress.from_bech32(msg.authority)
        if msg.authority != self.keeper.authority:
            raise UnauthorizedOperationError(
                "sender address is not authorized address to update module params"
            )
        msg.params.validate()
        self.keeper.set_params(ctx, msg.params)