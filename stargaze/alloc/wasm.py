"""Decoding of custom alloc messages sent by contracts."""

from __future__ import annotations

import json
from typing import Any

from stargaze.alloc.types import MsgFundFairburnPool
from stargaze.core import AccAddress, Coin, Coins, InvalidCoinsError, JSONUnmarshalError


def _convert_coin(item: Any) -> Coin:
    if not isinstance(item, dict):
        raise JSONUnmarshalError("coin must be an object")
    denom = str(item.get("denom", ""))
    amount_text = str(item.get("amount", ""))
    try:
        amount = int(amount_text)
    except ValueError:
        raise InvalidCoinsError(amount_text + denom) from None
    coin = Coin(denom, amount)
    coin.validate()
    return coin


def _convert_coins(items: Any) -> Coins:
    if items is None:
        return Coins()
    if not isinstance(items, list):
        raise JSONUnmarshalError("amount must be a list")
    return Coins().add(*(_convert_coin(item) for item in items))


def encoder(contract: AccAddress, data: bytes | str, version: str = "") -> list[MsgFundFairburnPool]:
    """Turn a contract's custom alloc message into chain messages."""
    try:
        raw = json.loads(data)
    except (ValueError, TypeError) as exc:
        raise JSONUnmarshalError(str(exc)) from exc
    if not isinstance(raw, dict):
        raise JSONUnmarshalError("alloc message must be a JSON object")
    fund = raw.get("fund_fairburn_pool")
    if fund is not None:
        if not isinstance(fund, dict):
            raise JSONUnmarshalError("fund_fairburn_pool must be an object")
        amount = _convert_coins(fund.get("amount"))
        return [MsgFundFairburnPool(sender=str(contract), amount=amount)]
    raise ValueError("wasm: invalid custom alloc message")