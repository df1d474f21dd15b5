"""Types of the alloc module: keys, events, parameters, genesis state and messages."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Mapping

from stargaze.core import (
    AccAddress,
    Coin,
    Coins,
    Dec,
    InvalidAddressError,
    InvalidCoinsError,
    InvalidRequestError,
)

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

MODULE_NAME = "alloc"
STORE_KEY = MODULE_NAME
FAIRBURN_POOL_NAME = "fairburn_pool"
SUPPLEMENT_POOL_NAME = "supplement_pool"
ROUTER_KEY = MODULE_NAME
QUERIER_ROUTE = MODULE_NAME
MEM_STORE_KEY = "mem_alloc"
DEFAULT_INDEX = 1

PARAMS_KEY = b"\x01"


def key_prefix(prefix: str) -> bytes:
    return prefix.encode()


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

EVENT_TYPE_FUND_FAIRBURN_POOL = "fund_fairburn_pool"
EVENT_TYPE_DISTRIBUTION = "alloc_distribution"
ATTRIBUTE_VALUE_CATEGORY = MODULE_NAME
ATTRIBUTE_KEY_SUPPLEMENT_AMOUNT = "supplement_amount"
ATTRIBUTE_KEY_COMMUNITY_POOL_AMOUNT = "community_pool_amount"
ATTRIBUTE_KEY_INCENTIVES_AMOUNT = "incentives_amount"
ATTRIBUTE_KEY_DEV_REWARDS_AMOUNT = "dev_rewards_amount"
ATTRIBUTE_KEY_FEE_POOL_AMOUNT = "fee_pool_amount"

# ---------------------------------------------------------------------------
# Message types
# ---------------------------------------------------------------------------

TYPE_MSG_CREATE_VESTING_ACCOUNT = "msg_create_vesting_account"
TYPE_MSG_FUND_FAIRBURN_POOL = "fund_fairburn_pool"

# ---------------------------------------------------------------------------
# Parameter store keys
# ---------------------------------------------------------------------------

KEY_DISTRIBUTION_PROPORTIONS = b"DistributionProportions"
KEY_DEVELOPER_REWARDS_RECEIVER = b"DeveloperRewardsReceiver"
KEY_INCENTIVE_REWARDS_RECEIVER = b"IncentiveRewardsReceiver"
KEY_SUPPLEMENT_AMOUNT = b"SupplementAmount"


def _coins_to_list(coins: Coins) -> list[dict[str, str]]:
    return [{"denom": c.denom, "amount": str(c.amount)} for c in coins]


def _coins_from_list(items: Any) -> Coins:
    return Coins(Coin(item["denom"], int(item["amount"])) for item in items or ())


def _canonical_json(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":")).encode()


@dataclass
class DistributionProportions:
    """Shares of the fee pool handed out each block."""

    nft_incentives: Dec = field(default_factory=Dec)
    developer_rewards: Dec = field(default_factory=Dec)
    community_pool: Dec = field(default_factory=Dec)

    def to_dict(self) -> dict[str, str]:
        return {
            "nft_incentives": str(self.nft_incentives),
            "developer_rewards": str(self.developer_rewards),
            "community_pool": str(self.community_pool),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DistributionProportions:
        return cls(
            nft_incentives=Dec.parse(data.get("nft_incentives", "0")),
            developer_rewards=Dec.parse(data.get("developer_rewards", "0")),
            community_pool=Dec.parse(data.get("community_pool", "0")),
        )


@dataclass
class WeightedAddress:
    """A reward receiver and its share; an empty address means the community pool."""

    address: str = ""
    weight: Dec = field(default_factory=Dec)

    def to_dict(self) -> dict[str, str]:
        return {"address": self.address, "weight": str(self.weight)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WeightedAddress:
        return cls(address=data.get("address", ""), weight=Dec.parse(data.get("weight", "0")))


@dataclass
class Params:
    """Parameters of the alloc module."""

    distribution_proportions: DistributionProportions = field(default_factory=DistributionProportions)
    weighted_developer_rewards_receivers: list[WeightedAddress] = field(default_factory=list)
    weighted_incentives_rewards_receivers: list[WeightedAddress] = field(default_factory=list)
    supplement_amount: Coins = field(default_factory=Coins)

    def validate(self) -> None:
        """Raise ValueError if the parameters are inconsistent."""
        validate_distribution_proportions(self.distribution_proportions)
        validate_weighted_rewards_receivers(self.weighted_developer_rewards_receivers)
        validate_weighted_rewards_receivers(self.weighted_incentives_rewards_receivers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "distribution_proportions": self.distribution_proportions.to_dict(),
            "weighted_developer_rewards_receivers": [
                w.to_dict() for w in self.weighted_developer_rewards_receivers
            ],
            "weighted_incentives_rewards_receivers": [
                w.to_dict() for w in self.weighted_incentives_rewards_receivers
            ],
            "supplement_amount": _coins_to_list(self.supplement_amount),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Params:
        return cls(
            distribution_proportions=DistributionProportions.from_dict(
                data.get("distribution_proportions") or {}
            ),
            weighted_developer_rewards_receivers=[
                WeightedAddress.from_dict(w)
                for w in data.get("weighted_developer_rewards_receivers") or ()
            ],
            weighted_incentives_rewards_receivers=[
                WeightedAddress.from_dict(w)
                for w in data.get("weighted_incentives_rewards_receivers") or ()
            ],
            supplement_amount=_coins_from_list(data.get("supplement_amount")),
        )

    def to_bytes(self) -> bytes:
        return _canonical_json(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes) -> Params:
        return cls.from_dict(json.loads(data))


def default_params() -> Params:
    return Params(
        distribution_proportions=DistributionProportions(
            nft_incentives=Dec.with_prec(20, 2),
            developer_rewards=Dec.with_prec(15, 2),
            community_pool=Dec.with_prec(5, 2),
        ),
        weighted_developer_rewards_receivers=[],
        weighted_incentives_rewards_receivers=[],
        supplement_amount=Coins(),
    )


def validate_supplement_amount(value: Any) -> None:
    if not isinstance(value, Coins):
        raise TypeError(f"invalid parameter type: {type(value).__name__}")
    if not value:
        return
    value.validate()


def validate_distribution_proportions(value: Any) -> None:
    if not isinstance(value, DistributionProportions):
        raise TypeError(f"invalid parameter type: {type(value).__name__}")
    if value.nft_incentives.is_negative():
        raise ValueError("NFT incentives distribution ratio should not be negative")
    if value.developer_rewards.is_negative():
        raise ValueError("developer rewards distribution ratio should not be negative")
    if value.community_pool.is_negative():
        raise ValueError("community pool ratio should not be negative")
    total = value.nft_incentives + value.developer_rewards + value.community_pool
    if total > Dec(1):
        raise ValueError("total distributions can not be higher than 100%")


def validate_weighted_rewards_receivers(value: Any) -> None:
    if not isinstance(value, (list, tuple)) or not all(
        isinstance(w, WeightedAddress) for w in value
    ):
        raise TypeError(f"invalid parameter type: {type(value).__name__}")
    if not value:
        return
    weight_sum = Dec(0)
    for index, receiver in enumerate(value):
        if receiver.address:
            try:
                AccAddress.from_bech32(receiver.address)
            except InvalidAddressError:
                raise ValueError(f"invalid address at {index}th") from None
        if not receiver.weight.is_positive():
            raise ValueError(f"non-positive weight at {index}th")
        if receiver.weight > Dec(1):
            raise ValueError(f"more than 1 weight at {index}th")
        weight_sum = weight_sum + receiver.weight
    if weight_sum != Dec(1):
        raise ValueError(f"invalid weight sum: {weight_sum}")


PARAM_SET_PAIRS: dict[bytes, tuple[str, Callable[[Any], None]]] = {
    KEY_DISTRIBUTION_PROPORTIONS: ("distribution_proportions", validate_distribution_proportions),
    KEY_DEVELOPER_REWARDS_RECEIVER: (
        "weighted_developer_rewards_receivers",
        validate_weighted_rewards_receivers,
    ),
    KEY_INCENTIVE_REWARDS_RECEIVER: (
        "weighted_incentives_rewards_receivers",
        validate_weighted_rewards_receivers,
    ),
    KEY_SUPPLEMENT_AMOUNT: ("supplement_amount", validate_supplement_amount),
}
"""Parameter store key -> (Params attribute, validator)."""


# ---------------------------------------------------------------------------
# Genesis
# ---------------------------------------------------------------------------


@dataclass
class GenesisState:
    params: Params = field(default_factory=Params)

    def validate(self) -> None:
        self.params.validate()

    def to_json(self) -> bytes:
        return _canonical_json({"params": self.params.to_dict()})

    @classmethod
    def from_json(cls, data: bytes | str | Mapping[str, Any]) -> GenesisState:
        raw = data if isinstance(data, Mapping) else json.loads(data)
        return cls(params=Params.from_dict(raw.get("params") or {}))


def default_genesis() -> GenesisState:
    return GenesisState(
        params=Params(
            distribution_proportions=DistributionProportions(
                nft_incentives=Dec.with_prec(45, 2),
                developer_rewards=Dec.with_prec(15, 2),
                community_pool=Dec.with_prec(5, 2),
            ),
            weighted_developer_rewards_receivers=[],
            weighted_incentives_rewards_receivers=[],
        )
    )


def get_genesis_state_from_app_state(app_state: Mapping[str, Any]) -> GenesisState:
    """Return this module's genesis from the application state, empty if absent."""
    raw = app_state.get(MODULE_NAME)
    if raw is None:
        return GenesisState()
    return GenesisState.from_json(raw)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def _signer(address: str) -> list[AccAddress]:
    return [AccAddress.from_bech32(address)]


@dataclass
class MsgCreateVestingAccount:
    """Create a vesting account funded from the sender."""

    route: ClassVar[str] = ROUTER_KEY
    type: ClassVar[str] = TYPE_MSG_CREATE_VESTING_ACCOUNT

    from_address: str = ""
    to_address: str = ""
    amount: Coins = field(default_factory=Coins)
    start_time: int = 0
    end_time: int = 0
    delayed: bool = False

    def validate_basic(self) -> None:
        try:
            AccAddress.from_bech32(self.from_address)
        except InvalidAddressError as exc:
            raise InvalidAddressError(f"invalid 'from' address: {exc}") from exc
        try:
            AccAddress.from_bech32(self.to_address)
        except InvalidAddressError as exc:
            raise InvalidAddressError(f"invalid 'to' address: {exc}") from exc
        if not self.amount.is_valid():
            raise InvalidCoinsError(str(self.amount))
        if not self.amount.is_all_positive():
            raise InvalidCoinsError(str(self.amount))
        if self.start_time <= 0:
            raise InvalidRequestError("invalid start time")
        if self.end_time <= 0:
            raise InvalidRequestError("invalid end time")
        if self.start_time >= self.end_time:
            raise InvalidRequestError("invalid start time")

    def signers(self) -> list[AccAddress]:
        return _signer(self.from_address)

    def sign_bytes(self) -> bytes:
        return _canonical_json(
            {
                "from_address": self.from_address,
                "to_address": self.to_address,
                "amount": _coins_to_list(self.amount),
                "start_time": str(self.start_time),
                "end_time": str(self.end_time),
                "delayed": self.delayed,
            }
        )


@dataclass
class MsgFundFairburnPool:
    """Send coins from the sender to the fairburn pool."""

    route: ClassVar[str] = ROUTER_KEY
    type: ClassVar[str] = TYPE_MSG_FUND_FAIRBURN_POOL

    sender: str = ""
    amount: Coins = field(default_factory=Coins)

    def validate_basic(self) -> None:
        try:
            AccAddress.from_bech32(self.sender)
        except InvalidAddressError as exc:
            raise InvalidAddressError(f"invalid sender address ({exc})") from exc

    def signers(self) -> list[AccAddress]:
        return _signer(self.sender)

    def sign_bytes(self) -> bytes:
        return _canonical_json({"sender": self.sender, "amount": _coins_to_list(self.amount)})


REGISTERED_MSGS: dict[str, type] = {
    "alloc/CreateVestingAccount": MsgCreateVestingAccount,
    "alloc/FundFairburnPool": MsgFundFairburnPool,
}