from dataclasses import dataclass

import pytest

from stargaze.alloc.keeper import (
    BaseAccount,
    ContinuousVestingAccount,
    DelayedVestingAccount,
    Keeper,
    MsgServer,
)
from stargaze.alloc.types import (
    EVENT_TYPE_DISTRIBUTION,
    EVENT_TYPE_FUND_FAIRBURN_POOL,
    FAIRBURN_POOL_NAME,
    SUPPLEMENT_POOL_NAME,
    MsgCreateVestingAccount,
    MsgFundFairburnPool,
    Params,
    WeightedAddress,
    default_params,
)
from stargaze.core import (
    AccAddress,
    Coin,
    Coins,
    Context,
    Dec,
    InvalidAddressError,
    InvalidRequestError,
    UnauthorizedError,
    module_address,
    random_address,
)

DENOM = "ustars"
FEE_COLLECTOR = "fee_collector"


@dataclass
class ModuleAccount:
    name: str
    address: AccAddress


class FakeAccountKeeper:
    def __init__(self):
        self.accounts = {}
        self.next_number = 0

    def new_account(self, ctx, account):
        return account

    def new_account_with_address(self, ctx, addr):
        self.next_number += 1
        return BaseAccount(addr, account_number=self.next_number)

    def get_account(self, ctx, addr):
        return self.accounts.get(bytes(addr))

    def set_account(self, ctx, account):
        self.accounts[bytes(account.address)] = account

    def get_module_account(self, ctx, module_name):
        return ModuleAccount(module_name, module_address(module_name))

    def get_module_address(self, name):
        return module_address(name)


class FakeBankKeeper:
    def __init__(self):
        self.balances = {}
        self.blocked = set()

    def mint(self, addr, coins):
        bucket = self.balances.setdefault(bytes(addr), {})
        for coin in coins:
            bucket[coin.denom] = bucket.get(coin.denom, 0) + coin.amount

    def is_send_enabled_coins(self, ctx, *coins):
        return None

    def send_coins(self, ctx, from_addr, to_addr, amount):
        source = self.balances.setdefault(bytes(from_addr), {})
        for coin in amount:
            if source.get(coin.denom, 0) < coin.amount:
                raise ValueError("insufficient funds")
        for coin in amount:
            source[coin.denom] -= coin.amount
        self.mint(to_addr, amount)

    def blocked_addr(self, addr):
        return bytes(addr) in self.blocked

    def send_coins_from_module_to_module(self, ctx, sender_module, recipient_module, amount):
        self.send_coins(ctx, module_address(sender_module), module_address(recipient_module), amount)

    def send_coins_from_account_to_module(self, ctx, sender, recipient_module, amount):
        self.send_coins(ctx, sender, module_address(recipient_module), amount)

    def get_balance(self, ctx, addr, denom):
        return Coin(denom, self.balances.get(bytes(addr), {}).get(denom, 0))

    def get_all_balances(self, ctx, addr):
        bucket = self.balances.get(bytes(addr), {})
        return Coins.of(*(Coin(d, a) for d, a in bucket.items()))


class FakeStakingKeeper:
    def bond_denom(self, ctx):
        return DENOM


class FakeDistrKeeper:
    def __init__(self, bank):
        self.bank = bank
        self.community_pool = {}

    def fund_community_pool(self, ctx, amount, sender):
        self.bank.send_coins(ctx, sender, module_address("distribution"), amount)
        for coin in amount:
            self.community_pool[coin.denom] = self.community_pool.get(coin.denom, 0) + coin.amount


@pytest.fixture
def env():
    accounts = FakeAccountKeeper()
    bank = FakeBankKeeper()
    distr = FakeDistrKeeper(bank)
    keeper = Keeper(accounts, bank, FakeStakingKeeper(), distr)
    ctx = Context(height=1, chain_id="stargaze-1")
    keeper.set_params(ctx, default_params())
    return keeper, ctx, bank, distr, accounts


def _balance(bank, addr):
    return bank.get_balance(None, addr, DENOM).amount


def test_get_params_empty_when_unset():
    bank = FakeBankKeeper()
    keeper = Keeper(FakeAccountKeeper(), bank, FakeStakingKeeper(), FakeDistrKeeper(bank))
    assert keeper.get_params(Context()) == Params()


def test_set_and_query_params_round_trip(env):
    keeper, ctx, *_ = env
    params = default_params()
    params.supplement_amount = Coins.of(Coin(DENOM, 7))
    keeper.set_params(ctx, params)
    assert keeper.query_params(ctx) == params


def test_zero_allocation(env):
    keeper, ctx, bank, distr, _ = env
    params = keeper.get_params(ctx)
    params.distribution_proportions.nft_incentives = Dec(0)
    keeper.set_params(ctx, params)
    keeper.distribute_inflation(ctx)
    assert _balance(bank, module_address(FEE_COLLECTOR)) == 0
    assert distr.community_pool.get(DENOM, 0) == 0


def test_module_account_address():
    acc = AccAddress.from_bech32("stars1mnyrspq208uv5m2krdctan2dkyht0szje9s43h", "stars")
    assert bytes(module_address(SUPPLEMENT_POOL_NAME)) == bytes(acc)


def test_distribution(env):
    keeper, ctx, bank, distr, _ = env
    dev = AccAddress(b"addr1---------------")
    nft = AccAddress(b"addr2---------------")
    params = keeper.get_params(ctx)
    params.supplement_amount = Coins.of(Coin(DENOM, 10_000_000))
    params.distribution_proportions.nft_incentives = Dec.with_prec(45, 2)
    params.distribution_proportions.developer_rewards = Dec.with_prec(15, 2)
    params.weighted_developer_rewards_receivers = [WeightedAddress(str(dev), Dec(1))]
    params.weighted_incentives_rewards_receivers = [WeightedAddress(str(nft), Dec(1))]
    keeper.set_params(ctx, params)

    fee_collector = module_address(FEE_COLLECTOR)
    assert _balance(bank, fee_collector) == 0
    bank.mint(fee_collector, Coins.of(Coin(DENOM, 100_000)))
    assert _balance(bank, fee_collector) == 100_000

    keeper.distribute_inflation(ctx)

    assert _balance(bank, fee_collector) == 35_000
    assert _balance(bank, dev) == 15_000
    assert _balance(bank, nft) == 45_000
    assert distr.community_pool[DENOM] == 5_000

    events = [e for e in ctx.event_manager.events if e.type == EVENT_TYPE_DISTRIBUTION]
    assert len(events) == 1
    event = events[0]
    assert event.attribute("supplement_amount") is None
    assert event.attribute("fee_pool_amount") == "100000ustars"
    assert event.attribute("incentives_amount") == "45000ustars"
    assert event.attribute("community_pool_amount") == "5000ustars"
    assert event.attribute("dev_rewards_amount") == "15000ustars"


def test_fairburn_pool(env):
    keeper, ctx, bank, _, _ = env
    addr1 = random_address()
    dev = AccAddress(b"addr1---------------")
    params = keeper.get_params(ctx)
    params.distribution_proportions.nft_incentives = Dec.with_prec(45, 2)
    params.distribution_proportions.developer_rewards = Dec.with_prec(15, 2)
    params.weighted_developer_rewards_receivers = [WeightedAddress(str(dev), Dec(1))]
    keeper.set_params(ctx, params)
    fund = Coins.of(Coin(DENOM, 100_000_000))

    fairburn = module_address(FAIRBURN_POOL_NAME)
    fee_collector = module_address(FEE_COLLECTOR)
    assert _balance(bank, fairburn) == 0
    assert _balance(bank, fee_collector) == 0
    keeper.distribute_inflation(ctx)
    assert _balance(bank, fairburn) == 0
    assert _balance(bank, fee_collector) == 0

    server = MsgServer(keeper)
    bank.mint(addr1, fund)
    assert _balance(bank, fairburn) == 0
    server.fund_fairburn_pool(ctx, MsgFundFairburnPool(str(addr1), fund))

    assert str(bank.get_balance(ctx, fairburn, DENOM)) == str(fund)
    assert _balance(bank, fee_collector) == 0

    keeper.distribute_inflation(ctx)
    assert str(bank.get_balance(ctx, fee_collector, DENOM)) == str(fund)
    assert _balance(bank, fairburn) == 0


def test_fund_fairburn_pool_emits_events(env):
    keeper, ctx, bank, _, _ = env
    sender = random_address()
    fund = Coins.of(Coin(DENOM, 5))
    bank.mint(sender, fund)
    MsgServer(keeper).fund_fairburn_pool(ctx, MsgFundFairburnPool(str(sender), fund))
    fund_events = [e for e in ctx.event_manager.events if e.type == EVENT_TYPE_FUND_FAIRBURN_POOL]
    assert fund_events[0].attribute("amount") == "5ustars"


def test_fund_fairburn_pool_invalid_sender(env):
    keeper, ctx, *_ = env
    with pytest.raises(InvalidAddressError):
        MsgServer(keeper).fund_fairburn_pool(ctx, MsgFundFairburnPool("bad", Coins()))


def test_distribution_with_supplement(env):
    keeper, ctx, bank, distr, _ = env
    dev = AccAddress(b"addr1---------------")
    nft = AccAddress(b"addr2---------------")
    params = keeper.get_params(ctx)
    params.supplement_amount = Coins.of(Coin(DENOM, 10_000))
    params.distribution_proportions.nft_incentives = Dec.with_prec(20, 2)
    params.distribution_proportions.developer_rewards = Dec.with_prec(15, 2)
    params.weighted_developer_rewards_receivers = [WeightedAddress(str(dev), Dec(1))]
    params.weighted_incentives_rewards_receivers = [WeightedAddress(str(nft), Dec(1))]
    keeper.set_params(ctx, params)
    assert not keeper.get_params(ctx).supplement_amount.is_zero()

    fee_collector = module_address(FEE_COLLECTOR)
    supplement = module_address(SUPPLEMENT_POOL_NAME)
    bank.mint(fee_collector, Coins.of(Coin(DENOM, 100_000)))
    bank.mint(supplement, Coins.of(Coin(DENOM, 100_000)))
    assert _balance(bank, fee_collector) == 100_000
    assert _balance(bank, supplement) == 100_000

    keeper.distribute_inflation(ctx)

    proportions = params.distribution_proportions
    portion = proportions.nft_incentives + proportions.developer_rewards + proportions.community_pool
    assert portion == Dec.with_prec(40, 2)
    assert _balance(bank, fee_collector) == 66_000
    assert _balance(bank, dev) == 16_500
    assert _balance(bank, nft) == 22_000
    assert distr.community_pool[DENOM] == 5_500
    assert _balance(bank, supplement) == 90_000
    event = next(e for e in ctx.event_manager.events if e.type == EVENT_TYPE_DISTRIBUTION)
    assert event.attribute("supplement_amount") == "10000"


def test_get_proportions_truncates(env):
    keeper, *_ = env
    assert keeper.get_proportions(Coin(DENOM, 7), Dec.with_prec(5, 1)) == Coin(DENOM, 3)


def test_weighted_rewards_empty_address_stays(env):
    keeper, ctx, bank, _, _ = env
    fee_collector = module_address(FEE_COLLECTOR)
    bank.mint(fee_collector, Coins.of(Coin(DENOM, 100)))
    receiver = random_address()
    keeper.distribute_weighted_rewards(
        ctx,
        fee_collector,
        Coin(DENOM, 100),
        [WeightedAddress(str(receiver), Dec.with_prec(6, 1)), WeightedAddress("", Dec.with_prec(4, 1))],
    )
    assert _balance(bank, receiver) == 60
    assert _balance(bank, fee_collector) == 40


def test_fund_community_pool_moves_funder_balance(env):
    keeper, ctx, bank, distr, _ = env
    funder = AccAddress.from_hex("7C4954EAE77FF15A4C67C5F821C5241008ED966F")
    bank.mint(funder, Coins.of(Coin(DENOM, 250)))
    keeper.fund_community_pool(ctx)
    assert distr.community_pool[DENOM] == 250
    assert _balance(bank, funder) == 0


def test_fund_community_pool_noop_without_balance(env):
    keeper, ctx, _, distr, _ = env
    keeper.fund_community_pool(ctx)
    assert distr.community_pool == {}


def test_module_account_address_is_module_address(env):
    keeper, *_ = env
    assert bytes(keeper.module_account_address()) == bytes(module_address("alloc"))


def _vesting_msg(from_addr, to_addr, delayed=False):
    return MsgCreateVestingAccount(
        from_address=str(from_addr),
        to_address=str(to_addr),
        amount=Coins.of(Coin(DENOM, 10)),
        start_time=100,
        end_time=200,
        delayed=delayed,
    )


@pytest.mark.parametrize("delayed, kind", [(True, DelayedVestingAccount), (False, ContinuousVestingAccount)])
def test_create_vesting_account(env, delayed, kind):
    keeper, ctx, bank, _, accounts = env
    sender, receiver = random_address(), random_address()
    bank.mint(sender, Coins.of(Coin(DENOM, 15)))
    MsgServer(keeper).create_vesting_account(ctx, _vesting_msg(sender, receiver, delayed))
    account = accounts.get_account(ctx, receiver)
    assert isinstance(account, kind)
    assert account.original_vesting == Coins.of(Coin(DENOM, 10))
    assert account.end_time == 200
    assert _balance(bank, receiver) == 10
    assert _balance(bank, sender) == 5


def test_create_vesting_account_blocked(env):
    keeper, ctx, bank, _, _ = env
    sender, receiver = random_address(), random_address()
    bank.blocked.add(bytes(receiver))
    with pytest.raises(UnauthorizedError):
        MsgServer(keeper).create_vesting_account(ctx, _vesting_msg(sender, receiver))


def test_create_vesting_account_existing(env):
    keeper, ctx, bank, _, accounts = env
    sender, receiver = random_address(), random_address()
    accounts.set_account(ctx, BaseAccount(receiver))
    with pytest.raises(InvalidRequestError, match="already exists"):
        MsgServer(keeper).create_vesting_account(ctx, _vesting_msg(sender, receiver))


def test_create_vesting_account_wrong_account_type(env):
    keeper, ctx, *_ = env

    class OddAccountKeeper(FakeAccountKeeper):
        def new_account_with_address(self, ctx, addr):
            return ModuleAccount("odd", addr)

    keeper.account_keeper = OddAccountKeeper()
    with pytest.raises(InvalidRequestError, match="invalid account type"):
        MsgServer(keeper).create_vesting_account(ctx, _vesting_msg(random_address(), random_address()))