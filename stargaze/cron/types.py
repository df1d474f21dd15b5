"""Types of the cron module: keys, errors, events, parameters, genesis and messages."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping

from stargaze.core import AccAddress, InvalidAddressError, SdkError

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

MODULE_NAME = "cron"
STORE_KEY = MODULE_NAME
ROUTER_KEY = MODULE_NAME
MEM_STORE_KEY = "mem_cron"
DEFAULT_INDEX = 1

PRIVILEGED_CONTRACTS_PREFIX = b"\x01"
PARAMS_KEY = b"\x02"

KEY_ADMIN_ADDRESS = b"AdminAddress"


def privileged_contracts_key(contract_addr: AccAddress) -> bytes:
    return PRIVILEGED_CONTRACTS_PREFIX + bytes(contract_addr)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ContractDoesNotExistError(SdkError):
    codespace = MODULE_NAME
    code = 2
    description = "contract does not exist to modify its privilege"


class ContractPrivilegeNotSetError(SdkError):
    codespace = MODULE_NAME
    code = 3
    description = "contract does not have privilege set and therefore cannot unset its privilege"


class UnauthorizedOperationError(SdkError):
    codespace = MODULE_NAME
    code = 4
    description = "sender is unauthorized to perform the operation"


# ---------------------------------------------------------------------------
# Events and message types
# ---------------------------------------------------------------------------

EVENT_TYPE_SET_CONTRACT_PRIVILEDGE = "set_privileged_contract"
EVENT_TYPE_UNSET_CONTRACT_PRIVILEDGE = "unset_privileged_contract"

TYPE_MSG_PROMOTE_TO_PRIVILEGED_CONTRACT = "promote_to_privileged_contract"
TYPE_MSG_DEMOTE_FROM_PRIVILEGED_CONTRACT = "demote_from_privileged_contract"
TYPE_MSG_UPDATE_PARAMS = "update_params"


def _canonical_json(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode()


# ---------------------------------------------------------------------------
# Params
# ---------------------------------------------------------------------------


def validate_admin_addresses(value: Any) -> None:
    """Raise unless the value is a list of valid bech32 addresses."""
    if not isinstance(value, (list, tuple)) or not all(isinstance(a, str) for a in value):
        raise TypeError(f"invalid parameter type: {type(value).__name__}")
    for address in value:
        AccAddress.from_bech32(address)


@dataclass
class Params:
    """Parameters of the cron module."""

    admin_addresses: list[str] = field(default_factory=list)

    def validate(self) -> None:
        validate_admin_addresses(self.admin_addresses)

    def to_dict(self) -> dict[str, Any]:
        return {"admin_addresses": list(self.admin_addresses)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Params:
        return cls(admin_addresses=list(data.get("admin_addresses") or ()))

    def to_bytes(self) -> bytes:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes) -> Params:
        return cls.from_dict(json.loads(data))

    def __str__(self) -> str:
        if not self.admin_addresses:
            return "admin_addresses: []\n"
        return "admin_addresses:\n" + "".join(f"- {a}\n" for a in self.admin_addresses)


def default_params() -> Params:
    return Params(admin_addresses=[])


# ---------------------------------------------------------------------------
# Genesis
# ---------------------------------------------------------------------------


@dataclass
class GenesisState:
    params: Params = field(default_factory=Params)
    privileged_contract_addresses: list[str] = field(default_factory=list)

    def validate(self) -> None:
        """Raise InvalidAddressError if a privileged contract address is malformed."""
        for address in self.privileged_contract_addresses:
            AccAddress.from_bech32(address)

    def to_json(self) -> bytes:
        return _canonical_json(
            {
                "params": self.params.to_dict(),
                "privileged_contract_addresses": list(self.privileged_contract_addresses),
            }
        )

    @classmethod
    def from_json(cls, data: bytes | str | Mapping[str, Any]) -> GenesisState:
        raw = data if isinstance(data, Mapping) else json.loads(data)
        return cls(
            params=Params.from_dict(raw.get("params") or {}),
            privileged_contract_addresses=list(raw.get("privileged_contract_addresses") or ()),
        )


def default_genesis() -> GenesisState:
    return GenesisState(privileged_contract_addresses=[])


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def _check_authority(authority: str) -> None:
    try:
        AccAddress.from_bech32(authority)
    except InvalidAddressError as exc:
        raise InvalidAddressError(f"invalid sender address ({exc})") from exc


def _check_contract(contract: str) -> None:
    try:
        AccAddress.from_bech32(contract)
    except InvalidAddressError as exc:
        raise InvalidAddressError(f"invalid contract address ({exc})") from exc


@dataclass
class MsgPromoteToPrivilegedContract:
    """Give a contract begin- and end-block callbacks."""

    route: ClassVar[str] = ROUTER_KEY
    type: ClassVar[str] = TYPE_MSG_PROMOTE_TO_PRIVILEGED_CONTRACT

    authority: str = ""
    contract: str = ""

    def validate_basic(self) -> None:
        _check_authority(self.authority)
        _check_contract(self.contract)

    def signers(self) -> list[AccAddress]:
        return [AccAddress.from_bech32(self.authority)]

    def sign_bytes(self) -> bytes:
        return _canonical_json({"authority": self.authority, "contract": self.contract})


@dataclass
class MsgDemoteFromPrivilegedContract:
    """Take a contract's block callbacks away."""

    route: ClassVar[str] = ROUTER_KEY
    type: ClassVar[str] = TYPE_MSG_DEMOTE_FROM_PRIVILEGED_CONTRACT

    authority: str = ""
    contract: str = ""

    def validate_basic(self) -> None:
        _check_authority(self.authority)
        _check_contract(self.contract)

    def signers(self) -> list[AccAddress]:
        return [AccAddress.from_bech32(self.authority)]

    def sign_bytes(self) -> bytes:
        return _canonical_json({"authority": self.authority, "contract": self.contract})


@dataclass
class MsgUpdateParams:
    """Replace the module parameters; only the governance authority may send it."""

    route: ClassVar[str] = ROUTER_KEY
    type: ClassVar[str] = TYPE_MSG_UPDATE_PARAMS

    authority: str = ""
    params: Params = field(default_factory=Params)

    def validate_basic(self) -> None:
        _check_authority(self.authority)
        for address in self.params.admin_addresses:
            try:
                AccAddress.from_bech32(address)
            except InvalidAddressError as exc:
                raise InvalidAddressError(f"invalid admin address ({exc})") from exc

    def signers(self) -> list[AccAddress]:
        return [AccAddress.from_bech32(self.authority)]

    def sign_bytes(self) -> bytes:
        return _canonical_json({"authority": self.authority, "params": self.params.to_dict()})


REGISTERED_MSGS: dict[str, type] = {
    "cron/MsgPromoteToPrivilegedContract": MsgPromoteToPrivilegedContract,
    "cron/MsgDemoteFromPrivilegedContract": MsgDemoteFromPrivilegedContract,
    "cron/MsgUpdateParams": MsgUpdateParams,
}


# ---------------------------------------------------------------------------
# Contract callbacks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SudoMsg:
    """Callback message delivered to privileged contracts."""

    begin_block: bool = False
    end_block: bool = False

    def to_json(self) -> bytes:
        body: dict[str, dict] = {}
        if self.begin_block:
            body["begin_block"] = {}
        if self.end_block:
            body["end_block"] = {}
        return json.dumps(body, separators=(",", ":")).encode()