"""In-place store migrations of the alloc module and the legacy parameter subspace."""

from __future__ import annotations

import json
from typing import Any, Callable, Mapping, Protocol

from stargaze.alloc.types import (
    KEY_INCENTIVE_REWARDS_RECEIVER,
    KEY_SUPPLEMENT_AMOUNT,
    PARAM_SET_PAIRS,
    PARAMS_KEY,
    STORE_KEY,
    DistributionProportions,
    Params,
    default_params,
)
from stargaze.core import Coins, Context, KVStore

KeyTable = Mapping[bytes, tuple[str, Callable[[Any], None]]]


def param_key_table() -> dict[bytes, tuple[str, Callable[[Any], None]]]:
    """Return the key table of the alloc parameters."""
    return dict(PARAM_SET_PAIRS)


def _encode(value: Any) -> Any:
    if isinstance(value, DistributionProportions):
        return value.to_dict()
    if isinstance(value, Coins):
        return [{"denom": c.denom, "amount": str(c.amount)} for c in value]
    return [w.to_dict() for w in value]


class Subspace:
    """A legacy parameter subspace kept under ``<name>/`` in a module store."""

    def __init__(self, store_key: str = STORE_KEY, name: str = STORE_KEY, key_table: KeyTable | None = None) -> None:
        self.store_key = store_key
        self.name = name
        self._key_table: dict[bytes, tuple[str, Callable[[Any], None]]] | None = (
            dict(key_table) if key_table is not None else None
        )

    def has_key_table(self) -> bool:
        return self._key_table is not None

    def with_key_table(self, table: KeyTable) -> Subspace:
        """Register the key table; it may only be set once."""
        if self._key_table is not None:
            raise RuntimeError("key table already set on subspace")
        self._key_table = dict(table)
        return self

    def _store(self, ctx: Context) -> KVStore:
        return ctx.kv_store(self.store_key)

    def _key(self, key: bytes) -> bytes:
        return self.name.encode() + b"/" + bytes(key)

    def has(self, ctx: Context, key: bytes) -> bool:
        return self._store(ctx).has(self._key(key))

    def set(self, ctx: Context, key: bytes, value: Any) -> None:
        """Validate and store a registered parameter."""
        if self._key_table is None or bytes(key) not in self._key_table:
            raise KeyError(f"parameter {bytes(key)!r} not registered")
        _, validator = self._key_table[bytes(key)]
        validator(value)
        raw = json.dumps(_encode(value), sort_keys=True, separators=(",", ":")).encode()
        self._store(ctx).set(self._key(key), raw)

    def get_param_set(self, ctx: Context) -> Params:
        """Read every registered parameter into a Params value."""
        if self._key_table is None:
            raise KeyError("subspace has no key table")
        fields: dict[str, Any] = {}
        for key, (attr, _) in self._key_table.items():
            raw = self._store(ctx).get(self._key(key))
            if raw is None:
                raise KeyError(f"parameter {key!r} is not set")
            fields[attr] = json.loads(raw)
        return Params.from_dict(fields)


class LegacySubspace(Protocol):
    """What the v4 migration needs from the legacy parameter store."""

    def get_param_set(self, ctx: Context) -> Params: ...


def migrate_v3(ctx: Context, subspace: Subspace) -> None:
    """Set the incentive receivers and supplement amount parameters to their defaults."""
    defaults = default_params()
    if not subspace.has_key_table():
        subspace.with_key_table(param_key_table())
    subspace.set(ctx, KEY_INCENTIVE_REWARDS_RECEIVER, defaults.weighted_incentives_rewards_receivers)
    subspace.set(ctx, KEY_SUPPLEMENT_AMOUNT, defaults.supplement_amount)


def migrate_v4(ctx: Context, store_key: str, legacy_subspace: LegacySubspace) -> None:
    """Copy the parameters from the legacy subspace into the module store."""
    params = legacy_subspace.get_param_set(ctx)
    params.validate()
    ctx.kv_store(store_key).set(PARAMS_KEY, params.to_bytes())


class Migrator:
    """Runs the alloc module's consensus-version migrations."""

    def __init__(self, keeper: Any, subspace: Subspace) -> None:
        self.keeper = keeper
        self.subspace = subspace

    def migrate1to2(self, ctx: Context) -> None:
        return None

    def migrate2to3(self, ctx: Context) -> None:
        migrate_v3(ctx, self.subspace)

    def migrate3to4(self, ctx: Context) -> None:
        migrate_v4(ctx, self.keeper.store_key, self.subspace)