"""State keeper, queries and message handling of the alloc module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from stargaze.alloc.types import (
    ATTRIBUTE_KEY_COMMUNITY_POOL_AMOUNT,
    ATTRIBUTE_KEY_DEV_REWARDS_AMOUNT,
    ATTRIBUTE_KEY_FEE_POOL_AMOUNT,
    ATTRIBUTE_KEY_INCENTIVES_AMOUNT,
    ATTRIBUTE_KEY_SUPPLEMENT_AMOUNT,
    EVENT_TYPE_DISTRIBUTION,
    EVENT_TYPE_FUND_FAIRBURN_POOL,
    FAIRBURN_POOL_NAME,
    MODULE_NAME,
    PARAMS_KEY,
    STORE_KEY,
    SUPPLEMENT_POOL_NAME,
    MsgCreateVestingAccount,
    MsgFundFairburnPool,
    Params,
    WeightedAddress,
)
from stargaze.core import (
    AccAddress,
    AccountKeeper,
    BankKeeper,
    Coin,
    Coins,
    Context,
    Dec,
    DistrKeeper,
    Event,
    InvalidRequestError,
    StakingKeeper,
    UnauthorizedError,
)

FEE_COLLECTOR_NAME = "fee_collector"
EVENT_TYPE_MESSAGE = "message"
ATTRIBUTE_KEY_AMOUNT = "amount"

# Randomly generated address with no key behind it; only funded at genesis.
_COMMUNITY_POOL_FUNDER_HEX = "7C4954EAE77FF15A4C67C5F821C5241008ED966F"


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@dataclass
class BaseAccount:
    """A plain account."""

    address: AccAddress
    pub_key: Any = None
    account_number: int = 0
    sequence: int = 0


@dataclass
class DelayedVestingAccount:
    """An account whose coins all unlock at ``end_time``."""

    base_account: BaseAccount
    original_vesting: Coins = field(default_factory=Coins)
    end_time: int = 0

    @property
    def address(self) -> AccAddress:
        return self.base_account.address


@dataclass
class ContinuousVestingAccount:
    """An account whose coins unlock linearly between ``start_time`` and ``end_time``."""

    base_account: BaseAccount
    original_vesting: Coins = field(default_factory=Coins)
    end_time: int = 0
    start_time: int = 0

    @property
    def address(self) -> AccAddress:
        return self.base_account.address


# ---------------------------------------------------------------------------
# Keeper
# ---------------------------------------------------------------------------


@dataclass
class Keeper:
    """Holds the alloc module's state and distributes block inflation."""

    account_keeper: AccountKeeper
    bank_keeper: BankKeeper
    staking_keeper: StakingKeeper
    distr_keeper: DistrKeeper
    store_key: str = STORE_KEY

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

    def module_account_address(self) -> AccAddress:
        return self.account_keeper.get_module_address(MODULE_NAME)

    def get_module_account(self, ctx: Context, name: str) -> Any:
        return self.account_keeper.get_module_account(ctx, name)

    def _send_to_fairburn_pool(self, ctx: Context, sender: AccAddress, amount: Coins) -> None:
        self.bank_keeper.send_coins_from_account_to_module(ctx, sender, FAIRBURN_POOL_NAME, amount)

    def distribute_inflation(self, ctx: Context) -> None:
        """Share out the fee collector's balance and move fairburn fees into it."""
        bank = self.bank_keeper
        denom = self.staking_keeper.bond_denom(ctx)
        params = self.get_params(ctx)

        supplement_pool = self.account_keeper.get_module_account(ctx, SUPPLEMENT_POOL_NAME).address
        supplement_balance = bank.get_balance(ctx, supplement_pool, denom)
        supplement_amount = params.supplement_amount.amount_of(denom)

        event = Event(EVENT_TYPE_DISTRIBUTION)
        if supplement_amount != 0 and supplement_balance.amount > supplement_amount:
            bank.send_coins_from_module_to_module(
                ctx,
                SUPPLEMENT_POOL_NAME,
                FEE_COLLECTOR_NAME,
                Coins.of(Coin(denom, supplement_amount)),
            )
            event = event.with_attributes((ATTRIBUTE_KEY_SUPPLEMENT_AMOUNT, str(supplement_amount)))

        fee_collector = self.account_keeper.get_module_account(ctx, FEE_COLLECTOR_NAME).address
        block_inflation = bank.get_balance(ctx, fee_collector, denom)
        event = event.with_attributes((ATTRIBUTE_KEY_FEE_POOL_AMOUNT, str(block_inflation)))
        proportions = params.distribution_proportions

        if proportions.nft_incentives > Dec(0):
            incentives = self.get_proportions(block_inflation, proportions.nft_incentives)
            self.distribute_weighted_rewards(
                ctx, fee_collector, incentives, params.weighted_incentives_rewards_receivers
            )
            event = event.with_attributes((ATTRIBUTE_KEY_INCENTIVES_AMOUNT, str(incentives)))

        if proportions.community_pool is not None and proportions.community_pool > Dec(0):
            community_tax = self.get_proportions(block_inflation, proportions.community_pool)
            self.distr_keeper.fund_community_pool(ctx, Coins.of(community_tax), fee_collector)
            event = event.with_attributes((ATTRIBUTE_KEY_COMMUNITY_POOL_AMOUNT, str(community_tax)))

        dev_rewards = self.get_proportions(block_inflation, proportions.developer_rewards)
        event = event.with_attributes((ATTRIBUTE_KEY_DEV_REWARDS_AMOUNT, str(dev_rewards)))
        self.distribute_weighted_rewards(
            ctx, fee_collector, dev_rewards, params.weighted_developer_rewards_receivers
        )

        ctx.event_manager.emit(event)

        fairburn_pool = self.account_keeper.get_module_account(ctx, FAIRBURN_POOL_NAME).address
        collected = bank.get_balance(ctx, fairburn_pool, denom)
        if collected.is_zero():
            return
        bank.send_coins_from_module_to_module(
            ctx, FAIRBURN_POOL_NAME, FEE_COLLECTOR_NAME, Coins.of(collected)
        )

    def get_proportions(self, coin: Coin, ratio: Dec) -> Coin:
        """Return ``coin * ratio``, truncated to an integer amount."""
        return Coin(coin.denom, (Dec(coin.amount) * ratio).truncate())

    def distribute_weighted_rewards(
        self,
        ctx: Context,
        fee_collector: AccAddress,
        total: Coin,
        accounts: list[WeightedAddress],
    ) -> None:
        """Send each receiver its weighted share; empty addresses keep theirs in place."""
        if total.is_zero():
            return
        for receiver in accounts:
            reward = Coins.of(self.get_proportions(total, receiver.weight))
            if receiver.address:
                address = AccAddress.from_bech32(receiver.address)
                self.bank_keeper.send_coins(ctx, fee_collector, address, reward)

    def fund_community_pool(self, ctx: Context) -> None:
        """Move any balance of the genesis funder account into the community pool."""
        funder = AccAddress.from_hex(_COMMUNITY_POOL_FUNDER_HEX)
        balances = self.bank_keeper.get_all_balances(ctx, funder)
        if balances.is_zero():
            return
        self.distr_keeper.fund_community_pool(ctx, balances, funder)


# ---------------------------------------------------------------------------
# Message server
# ---------------------------------------------------------------------------


class MsgServer:
    """Handles the alloc module's transaction messages."""

    def __init__(self, keeper: Keeper) -> None:
        self.keeper = keeper

    def create_vesting_account(self, ctx: Context, msg: MsgCreateVestingAccount) -> None:
        accounts = self.keeper.account_keeper
        bank = self.keeper.bank_keeper

        bank.is_send_enabled_coins(ctx, *msg.amount)
        from_addr = AccAddress.from_bech32(msg.from_address)
        to_addr = AccAddress.from_bech32(msg.to_address)

        if bank.blocked_addr(to_addr):
            raise UnauthorizedError(f"{msg.to_address} is not allowed to receive funds")
        if accounts.get_account(ctx, to_addr) is not None:
            raise InvalidRequestError(f"account {msg.to_address} already exists")

        base = accounts.new_account_with_address(ctx, to_addr)
        if not isinstance(base, BaseAccount):
            raise InvalidRequestError(
                f"invalid account type; expected: BaseAccount, got: {type(base).__name__}"
            )

        vesting = msg.amount.sort()
        account: DelayedVestingAccount | ContinuousVestingAccount
        if msg.delayed:
            account = DelayedVestingAccount(base, vesting, msg.end_time)
        else:
            account = ContinuousVestingAccount(base, vesting, msg.end_time, msg.start_time)
        accounts.set_account(ctx, account)

        bank.send_coins(ctx, from_addr, to_addr, msg.amount)
        ctx.event_manager.emit(Event(EVENT_TYPE_MESSAGE))

    def fund_fairburn_pool(self, ctx: Context, msg: MsgFundFairburnPool) -> None:
        sender = AccAddress.from_bech32(msg.sender)
        self.keeper._send_to_fairburn_pool(ctx, sender, msg.amount)
        ctx.event_manager.emit(
            Event(EVENT_TYPE_MESSAGE),
            Event(EVENT_TYPE_FUND_FAIRBURN_POOL, ((ATTRIBUTE_KEY_AMOUNT, str(msg.amount)),)),
        )