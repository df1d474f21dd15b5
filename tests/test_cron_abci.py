import pytest

from stargaze.core import AccAddress, Context, Event, InvalidAddressError
from stargaze.cron.abci import (
    begin_blocker,
    contract_callback_type,
    end_blocker,
    export_genesis,
    init_genesis,
)
from stargaze.cron.keeper import Keeper
from stargaze.cron.types import (
    ContractDoesNotExistError,
    GenesisState,
    Params,
    SudoMsg,
)

GOV = "cosmos1a48wdtjn3egw7swhfkeshwdtjvs6hq9nlyrwut"
C1 = "cosmos1qyqszqgpqyqszqgpqyqszqgpqyqszqgpjnp7du"
C2 = "cosmos1hfml4tzwlc3mvynsg6vtgywyx00wfkhrtpkx6t"
C3 = "cosmos144sh8vyv5nqfylmg4mlydnpe3l4w780jsrmf4k"


def addr(text):
    return AccAddress.from_bech32(text)


class RecordingWasmKeeper:
    def __init__(self, failing=()):
        self.known = {bytes(addr(a)) for a in (C1, C2, C3)}
        self.failing = {bytes(addr(a)) for a in failing}
        self.calls = []

    def has_contract_info(self, ctx, contract_addr):
        return bytes(contract_addr) in self.known

    def sudo(self, ctx, contract_addr, msg):
        self.calls.append((bytes(contract_addr), msg))
        ctx.kv_store("sudo").set(bytes(contract_addr), msg)
        ctx.event_manager.emit(Event("wasm", (("contract", str(contract_addr)),)))
        if bytes(contract_addr) in self.failing:
            raise RuntimeError("contract failed")
        return None


def make(failing=()):
    wasm = RecordingWasmKeeper(failing)
    keeper = Keeper(wasm, GOV)
    ctx = Context()
    keeper.set_params(ctx, Params())
    for text in (C1, C2):
        keeper.set_privileged(ctx, addr(text))
    return keeper, ctx, wasm


def test_begin_blocker_sends_begin_block_to_privileged():
    keeper, ctx, wasm = make()
    begin_blocker(ctx, keeper, wasm)
    assert {a for a, _ in wasm.calls} == {bytes(addr(C1)), bytes(addr(C2))}
    assert all(msg == b'{"begin_block":{}}' for _, msg in wasm.calls)


def test_end_blocker_sends_end_block_and_no_updates():
    keeper, ctx, wasm = make()
    assert end_blocker(ctx, keeper, wasm) == []
    assert len(wasm.calls) == 2
    assert all(msg == b'{"end_block":{}}' for _, msg in wasm.calls)


def test_successful_callback_commits_writes_and_events():
    keeper, ctx, wasm = make()
    begin_blocker(ctx, keeper, wasm)
    assert ctx.kv_store("sudo").has(bytes(addr(C1)))
    assert Event("wasm", (("contract", str(addr(C1))),)) in ctx.event_manager.events


def test_failing_contract_is_rolled_back_and_others_run():
    keeper, ctx, wasm = make(failing=[C1])
    begin_blocker(ctx, keeper, wasm)
    assert len(wasm.calls) == 2
    assert not ctx.kv_store("sudo").has(bytes(addr(C1)))
    assert ctx.kv_store("sudo").has(bytes(addr(C2)))
    assert Event("wasm", (("contract", str(addr(C1))),)) not in ctx.event_manager.events


def test_unprivileged_contract_not_called():
    keeper, ctx, wasm = make()
    keeper.unset_privileged(ctx, addr(C2))
    end_blocker(ctx, keeper, wasm)
    assert [a for a, _ in wasm.calls] == [bytes(addr(C1))]


def test_contract_callback_type():
    assert contract_callback_type(SudoMsg(begin_block=True)) == "begin_blocker"
    assert contract_callback_type(SudoMsg(end_block=True)) == "end_blocker"
    with pytest.raises(ValueError):
        contract_callback_type(SudoMsg())


def test_genesis_round_trip():
    wasm = RecordingWasmKeeper()
    keeper = Keeper(wasm, GOV)
    ctx = Context()
    genesis = GenesisState(params=Params(admin_addresses=[C3]), privileged_contract_addresses=[C1, C2])
    init_genesis(ctx, keeper, genesis)
    exported = export_genesis(ctx, keeper)
    assert exported.params == genesis.params
    assert sorted(bytes(addr(a)) for a in exported.privileged_contract_addresses) == sorted(
        [bytes(addr(C1)), bytes(addr(C2))]
    )


def test_export_genesis_empty():
    keeper = Keeper(RecordingWasmKeeper(), GOV)
    ctx = Context()
    keeper.set_params(ctx, Params())
    exported = export_genesis(ctx, keeper)
    assert exported.privileged_contract_addresses == []
    assert exported.params == Params()


def test_init_genesis_invalid_address():
    keeper = Keeper(RecordingWasmKeeper(), GOV)
    with pytest.raises(InvalidAddressError):
        init_genesis(Context(), keeper, GenesisState(privileged_contract_addresses=["👻"]))


def test_init_genesis_unknown_contract():
    wasm = RecordingWasmKeeper()
    wasm.known.discard(bytes(addr(C3)))
    keeper = Keeper(wasm, GOV)
    with pytest.raises(ContractDoesNotExistError):
        init_genesis(Context(), keeper, GenesisState(privileged_contract_addresses=[C3]))