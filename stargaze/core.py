"""Core chain primitives: errors, decimals, coins, addresses, stores, events and contexts."""

from __future__ import annotations

import hashlib
import logging
import re
import secrets
from dataclasses import dataclass, field
from functools import total_ordering
from itertools import chain
from typing import Any, Iterable, Iterator, Protocol, runtime_checkable

BECH32_PREFIX = "cosmos"
"""Address prefix used when no other prefix is given."""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SdkError(Exception):
    """Base class of registered chain errors.

    The message is ``"<detail>: <description>"`` when a detail is given.
    """

    codespace = "sdk"
    code = 1
    description = "internal error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(f"{detail}: {self.description}" if detail else self.description)


class UnauthorizedError(SdkError):
    code = 4
    description = "unauthorized"


class UnknownRequestError(SdkError):
    code = 6
    description = "unknown request"


class InvalidAddressError(SdkError):
    code = 7
    description = "invalid address"


class InvalidCoinsError(SdkError):
    code = 10
    description = "invalid coins"


class InvalidRequestError(SdkError):
    code = 18
    description = "invalid request"


class JSONUnmarshalError(SdkError):
    code = 36
    description = "failed to unmarshal JSON bytes"


# ---------------------------------------------------------------------------
# Fixed-point decimals
# ---------------------------------------------------------------------------

_PRECISION = 18
_ONE = 10**_PRECISION
_HALF = _ONE // 2
_DEC_RE = re.compile(r"(-?)(\d*)(?:\.(\d+))?")


def _chop_and_round(value: int) -> int:
    """Divide by the precision factor, rounding half to even."""
    negative = value < 0
    quotient, remainder = divmod(abs(value), _ONE)
    if remainder > _HALF or (remainder == _HALF and quotient % 2 == 1):
        quotient += 1
    return -quotient if negative else quotient


@total_ordering
class Dec:
    """A signed decimal with 18 fractional digits."""

    __slots__ = ("_raw",)

    def __init__(self, value: int | Dec = 0) -> None:
        if isinstance(value, Dec):
            self._raw = value._raw
        elif isinstance(value, int) and not isinstance(value, bool):
            self._raw = value * _ONE
        else:
            raise TypeError(f"cannot make a Dec from {type(value).__name__}")

    @classmethod
    def _from_raw(cls, raw: int) -> Dec:
        dec = cls.__new__(cls)
        dec._raw = raw
        return dec

    @classmethod
    def parse(cls, text: str) -> Dec:
        """Parse a decimal string such as ``"0.45"`` or ``"-3"``."""
        match = _DEC_RE.fullmatch(text)
        if match is None:
            raise ValueError(f"invalid decimal string: {text!r}")
        sign, whole, frac = match.group(1), match.group(2), match.group(3) or ""
        if not whole and not frac:
            raise ValueError(f"invalid decimal string: {text!r}")
        if len(frac) > _PRECISION:
            raise ValueError(
                f"value {text!r} exceeds max precision by {len(frac) - _PRECISION} decimal places"
            )
        raw = int(whole or "0") * _ONE + int(frac.ljust(_PRECISION, "0"))
        return cls._from_raw(-raw if sign else raw)

    @classmethod
    def with_prec(cls, value: int, prec: int) -> Dec:
        """Return ``value * 10**-prec``."""
        if not 0 <= prec <= _PRECISION:
            raise ValueError(f"precision must be between 0 and {_PRECISION}, got {prec}")
        return cls._from_raw(value * 10 ** (_PRECISION - prec))

    @staticmethod
    def _coerce(other: Any) -> Dec | None:
        if isinstance(other, Dec):
            return other
        if isinstance(other, int) and not isinstance(other, bool):
            return Dec(other)
        return None

    def __add__(self, other: Any) -> Dec:
        rhs = self._coerce(other)
        if rhs is None:
            return NotImplemented
        return Dec._from_raw(self._raw + rhs._raw)

    __radd__ = __add__

    def __sub__(self, other: Any) -> Dec:
        rhs = self._coerce(other)
        if rhs is None:
            return NotImplemented
        return Dec._from_raw(self._raw - rhs._raw)

    def __rsub__(self, other: Any) -> Dec:
        lhs = self._coerce(other)
        if lhs is None:
            return NotImplemented
        return Dec._from_raw(lhs._raw - self._raw)

    def __mul__(self, other: Any) -> Dec:
        if isinstance(other, int) and not isinstance(other, bool):
            return Dec._from_raw(self._raw * other)
        if isinstance(other, Dec):
            return Dec._from_raw(_chop_and_round(self._raw * other._raw))
        return NotImplemented

    __rmul__ = __mul__

    def __neg__(self) -> Dec:
        return Dec._from_raw(-self._raw)

    def __abs__(self) -> Dec:
        return Dec._from_raw(abs(self._raw))

    def __eq__(self, other: object) -> bool:
        rhs = self._coerce(other)
        if rhs is None:
            return NotImplemented
        return self._raw == rhs._raw

    def __lt__(self, other: Any) -> bool:
        rhs = self._coerce(other)
        if rhs is None:
            return NotImplemented
        return self._raw < rhs._raw

    def __hash__(self) -> int:
        return hash(self._raw)

    def truncate(self) -> int:
        """Integer part, rounding toward zero."""
        quotient = abs(self._raw) // _ONE
        return -quotient if self._raw < 0 else quotient

    def round(self) -> int:
        """Nearest integer, ties going to the even neighbour."""
        return _chop_and_round(self._raw)

    def is_negative(self) -> bool:
        return self._raw < 0

    def is_positive(self) -> bool:
        return self._raw > 0

    def is_zero(self) -> bool:
        return self._raw == 0

    def __str__(self) -> str:
        quotient, remainder = divmod(abs(self._raw), _ONE)
        sign = "-" if self._raw < 0 else ""
        return f"{sign}{quotient}.{remainder:0{_PRECISION}d}"

    def __repr__(self) -> str:
        return f"Dec('{self}')"


# ---------------------------------------------------------------------------
# Coins
# ---------------------------------------------------------------------------

_DENOM_PATTERN = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"
_DENOM_RE = re.compile(_DENOM_PATTERN)
_COIN_RE = re.compile(rf"\s*(\d+)\s*({_DENOM_PATTERN})\s*")


def _validate_denom(denom: str) -> None:
    if not _DENOM_RE.fullmatch(denom):
        raise InvalidCoinsError(f"invalid denom: {denom}")


@dataclass(frozen=True)
class Coin:
    """An integer amount of one denomination."""

    denom: str
    amount: int = 0

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def validate(self) -> None:
        """Raise InvalidCoinsError if the denom or amount is not acceptable."""
        _validate_denom(self.denom)
        if self.amount < 0:
            raise InvalidCoinsError(f"negative coin amount: {self.amount}")

    def __add__(self, other: Coin) -> Coin:
        if not isinstance(other, Coin):
            return NotImplemented
        if other.denom != self.denom:
            raise InvalidCoinsError(
                f"invalid coin denominations; {self.denom}, {other.denom}"
            )
        return Coin(self.denom, self.amount + other.amount)

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


class Coins(tuple):
    """An ordered collection of coins.

    Constructing from an iterable keeps the coins as given; ``Coins.of``
    builds a normalised, validated set.
    """

    def __new__(cls, coins: Iterable[Coin] = ()) -> Coins:
        return super().__new__(cls, coins)

    @classmethod
    def of(cls, *coins: Coin) -> Coins:
        """Drop zero coins, sort by denom and validate the result."""
        result = cls(sorted((c for c in coins if not c.is_zero()), key=lambda c: c.denom))
        result.validate()
        return result

    def amount_of(self, denom: str) -> int:
        return next((c.amount for c in self if c.denom == denom), 0)

    def validate(self) -> None:
        """Raise InvalidCoinsError unless the coins are sorted, unique and positive."""
        if not self:
            return
        first = self[0]
        _validate_denom(first.denom)
        if not first.is_positive():
            raise InvalidCoinsError(f"coin {first} amount is not positive")
        lowest = first.denom
        for coin in self[1:]:
            _validate_denom(coin.denom)
            if coin.denom == lowest:
                raise InvalidCoinsError(f"duplicate denomination {coin.denom}")
            if coin.denom < lowest:
                raise InvalidCoinsError(f"denomination {coin.denom} is not sorted")
            if not coin.is_positive():
                raise InvalidCoinsError(f"coin {coin} amount is not positive")
            lowest = coin.denom

    def is_valid(self) -> bool:
        try:
            self.validate()
        except InvalidCoinsError:
            return False
        return True

    def is_all_positive(self) -> bool:
        return bool(self) and all(c.is_positive() for c in self)

    def is_zero(self) -> bool:
        return all(c.is_zero() for c in self)

    def add(self, *args: Coin) -> Coins:
        """Return the sum of these coins and the given ones."""
        totals: dict[str, int] = {}
        for coin in chain(self, args):
            totals[coin.denom] = totals.get(coin.denom, 0) + coin.amount
        return Coins.of(*(Coin(denom, amount) for denom, amount in totals.items()))

    def __add__(self, other: Iterable[Coin]) -> Coins:
        return self.add(*other)

    def sort(self) -> Coins:
        return Coins(sorted(self, key=lambda c: c.denom))

    def __str__(self) -> str:
        return ",".join(str(c) for c in self)

    def __repr__(self) -> str:
        return f"Coins({list(self)!r})"


def parse_coins(text: str) -> Coins:
    """Parse ``"10stake,5atom"`` into normalised coins."""
    if not text.strip():
        return Coins()
    coins = []
    for part in text.split(","):
        match = _COIN_RE.fullmatch(part)
        if match is None:
            raise InvalidCoinsError(f"invalid coin expression: {part}")
        coins.append(Coin(match.group(2), int(match.group(1))))
    return Coins.of(*coins)


# ---------------------------------------------------------------------------
# Bech32
# ---------------------------------------------------------------------------

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATOR = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)
_MAX_BECH32_LENGTH = 1023


def _polymod(values: Iterable[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATOR):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]


def _convert_bits(data: Iterable[int], from_bits: int, to_bits: int, pad: bool) -> list[int]:
    acc = 0
    bits = 0
    result = []
    max_value = (1 << to_bits) - 1
    for value in data:
        if value < 0 or value >> from_bits:
            raise ValueError("invalid data range")
        acc = (acc << from_bits) | value
        bits += from_bits
        while bits >= to_bits:
            bits -= to_bits
            result.append((acc >> bits) & max_value)
    if pad:
        if bits:
            result.append((acc << (to_bits - bits)) & max_value)
    elif bits >= from_bits or (acc << (to_bits - bits)) & max_value:
        raise ValueError("invalid padding in bech32 data")
    return result


def bech32_encode(hrp: str, data: bytes) -> str:
    """Encode bytes as a bech32 string with the given human-readable part."""
    if not hrp or any(not 33 <= ord(c) <= 126 for c in hrp):
        raise ValueError(f"invalid human-readable part: {hrp!r}")
    hrp = hrp.lower()
    five_bit = _convert_bits(data, 8, 5, True)
    polymod = _polymod(_hrp_expand(hrp) + five_bit + [0] * 6) ^ 1
    checksum = [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_CHARSET[d] for d in five_bit + checksum)


def bech32_decode(text: str) -> tuple[str, bytes]:
    """Decode a bech32 string into its human-readable part and data bytes."""
    if len(text) > _MAX_BECH32_LENGTH:
        raise ValueError("invalid bech32 string length")
    if any(not 33 <= ord(c) <= 126 for c in text):
        raise ValueError("invalid character in bech32 string")
    if text.lower() != text and text.upper() != text:
        raise ValueError("bech32 string has mixed case")
    text = text.lower()
    separator = text.rfind("1")
    if separator < 1 or separator + 7 > len(text):
        raise ValueError("invalid bech32 separator position")
    hrp, payload = text[:separator], text[separator + 1 :]
    try:
        values = [_CHARSET.index(c) for c in payload]
    except ValueError:
        raise ValueError("invalid character in bech32 data part") from None
    if _polymod(_hrp_expand(hrp) + values) != 1:
        raise ValueError("invalid bech32 checksum")
    return hrp, bytes(_convert_bits(values[:-6], 5, 8, False))


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


class AccAddress(bytes):
    """An account address: raw bytes shown in bech32 form."""

    @classmethod
    def from_bech32(cls, text: str, prefix: str | None = None) -> AccAddress:
        prefix = prefix or BECH32_PREFIX
        if not text.strip():
            raise InvalidAddressError("empty address string is not allowed")
        try:
            hrp, data = bech32_decode(text)
        except ValueError as exc:
            raise InvalidAddressError(f"decoding bech32 failed: {exc}") from exc
        if hrp != prefix:
            raise InvalidAddressError(f"invalid Bech32 prefix; expected {prefix}, got {hrp}")
        _verify_address(data)
        return cls(data)

    @classmethod
    def from_hex(cls, text: str) -> AccAddress:
        if not text:
            raise InvalidAddressError("decoding Bech32 address failed: must provide an address")
        try:
            return cls(bytes.fromhex(text))
        except ValueError as exc:
            raise InvalidAddressError(f"invalid hex address: {text}") from exc

    def to_bech32(self, prefix: str | None = None) -> str:
        if not self:
            return ""
        return bech32_encode(prefix or BECH32_PREFIX, bytes(self))

    def __str__(self) -> str:
        return self.to_bech32()

    def __repr__(self) -> str:
        return f"AccAddress('{self}')"


def _verify_address(data: bytes) -> None:
    if not data:
        raise InvalidAddressError("addresses cannot be empty")
    if len(data) > 255:
        raise InvalidAddressError("address max length is 255")


def module_address(name: str) -> AccAddress:
    """Return the deterministic address of a module account."""
    return AccAddress(hashlib.sha256(name.encode()).digest()[:20])


def random_address() -> AccAddress:
    """Return a fresh random 20-byte account address."""
    return AccAddress(hashlib.sha256(secrets.token_bytes(32)).digest()[:20])


# ---------------------------------------------------------------------------
# Stores, events and context
# ---------------------------------------------------------------------------


class KVStore:
    """An ordered in-memory key/value store."""

    def __init__(self, data: dict[bytes, bytes] | None = None) -> None:
        self._data: dict[bytes, bytes] = dict(data or {})
        self._parent: KVStore | None = None
        self._dirty: dict[bytes, bytes | None] = {}

    def get(self, key: bytes) -> bytes | None:
        return self._data.get(bytes(key))

    def set(self, key: bytes, value: bytes) -> None:
        if not key:
            raise ValueError("key is nil")
        if value is None:
            raise ValueError("value is nil")
        key = bytes(key)
        self._data[key] = bytes(value)
        if self._parent is not None:
            self._dirty[key] = bytes(value)

    def delete(self, key: bytes) -> None:
        key = bytes(key)
        self._data.pop(key, None)
        if self._parent is not None:
            self._dirty[key] = None

    def has(self, key: bytes) -> bool:
        return bytes(key) in self._data

    def iterate(self, prefix: bytes = b"") -> Iterator[tuple[bytes, bytes]]:
        """Yield ``(key, value)`` pairs under a prefix in key order, prefix removed."""
        prefix = bytes(prefix)
        items = sorted((k, v) for k, v in self._data.items() if k.startswith(prefix))
        for key, value in items:
            yield key[len(prefix) :], value

    def __len__(self) -> int:
        return len(self._data)

    def _branch(self) -> KVStore:
        child = KVStore(self._data)
        child._parent = self
        return child

    def _write(self) -> None:
        if self._parent is None:
            return
        for key, value in self._dirty.items():
            if value is None:
                self._parent.delete(key)
            else:
                self._parent.set(key, value)
        self._dirty.clear()


@dataclass(frozen=True)
class Event:
    """A typed event with ordered key/value attributes."""

    type: str
    attributes: tuple[tuple[str, str], ...] = ()

    def with_attributes(self, *pairs: tuple[str, str]) -> Event:
        return Event(self.type, self.attributes + tuple(pairs))

    def attribute(self, key: str) -> str | None:
        return next((v for k, v in self.attributes if k == key), None)


class EventManager:
    """Collects the events emitted while handling a block or message."""

    def __init__(self) -> None:
        self._events: list[Event] = []

    def emit(self, *args: Event) -> None:
        self._events.extend(args)

    @property
    def events(self) -> list[Event]:
        return list(self._events)


@dataclass
class Context:
    """Execution context: block info, stores, events and a logger."""

    height: int = 0
    chain_id: str = ""
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("stargaze"))
    event_manager: EventManager = field(default_factory=EventManager)

    def __post_init__(self) -> None:
        self._stores: dict[str, KVStore] = {}
        self._parent: Context | None = None

    def kv_store(self, key: str) -> KVStore:
        store = self._stores.get(key)
        if store is None:
            if self._parent is not None:
                store = self._parent.kv_store(key)._branch()
            else:
                store = KVStore()
            self._stores[key] = store
        return store

    def with_event_manager(self, manager: EventManager) -> Context:
        """Return a context sharing this one's stores with another event manager."""
        ctx = Context(self.height, self.chain_id, self.logger, manager)
        ctx._stores = self._stores
        ctx._parent = self._parent
        return ctx

    def cache_context(self) -> tuple[Context, Any]:
        """Return a branched context and a function that writes it back."""
        child = Context(self.height, self.chain_id, self.logger, EventManager())
        child._parent = self
        child._stores = {key: store._branch() for key, store in self._stores.items()}

        def commit() -> None:
            for store in child._stores.values():
                store._write()

        return child, commit


# ---------------------------------------------------------------------------
# Keepers the modules rely on
# ---------------------------------------------------------------------------


@runtime_checkable
class AccountKeeper(Protocol):
    """Account storage. Module accounts expose ``address`` and ``name``."""

    def new_account(self, ctx: Context, account: Any) -> Any: ...

    def new_account_with_address(self, ctx: Context, addr: AccAddress) -> Any: ...

    def get_account(self, ctx: Context, addr: AccAddress) -> Any | None: ...

    def set_account(self, ctx: Context, account: Any) -> None: ...

    def get_module_account(self, ctx: Context, module_name: str) -> Any: ...

    def get_module_address(self, name: str) -> AccAddress: ...


@runtime_checkable
class BankKeeper(Protocol):
    """Balances and transfers; failures are raised."""

    def is_send_enabled_coins(self, ctx: Context, *coins: Coin) -> None: ...

    def send_coins(self, ctx: Context, from_addr: AccAddress, to_addr: AccAddress, amount: Coins) -> None: ...

    def blocked_addr(self, addr: AccAddress) -> bool: ...

    def send_coins_from_module_to_module(
        self, ctx: Context, sender_module: str, recipient_module: str, amount: Coins
    ) -> None: ...

    def send_coins_from_account_to_module(
        self, ctx: Context, sender: AccAddress, recipient_module: str, amount: Coins
    ) -> None: ...

    def get_balance(self, ctx: Context, addr: AccAddress, denom: str) -> Coin: ...

    def get_all_balances(self, ctx: Context, addr: AccAddress) -> Coins: ...


@runtime_checkable
class StakingKeeper(Protocol):
    def bond_denom(self, ctx: Context) -> str: ...


@runtime_checkable
class DistrKeeper(Protocol):
    def fund_community_pool(self, ctx: Context, amount: Coins, sender: AccAddress) -> None: ...


@runtime_checkable
class WasmKeeper(Protocol):
    """Contract lookup and privileged execution."""

    def has_contract_info(self, ctx: Context, contract_addr: AccAddress) -> bool: ...

    def sudo(self, ctx: Context, contract_addr: AccAddress, msg: bytes) -> bytes | None: ...