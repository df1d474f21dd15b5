"""Wait until a set of chains report a minimum block height."""

from __future__ import annotations

import json
import logging
import os
import queue
import re
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence

log = logging.getLogger(__name__)

POLL_INTERVAL = 5.0
"""Seconds between two status requests to one chain."""
REQUEST_TIMEOUT = 1.0
"""Seconds a single status request may take."""
MIN_BLOCKS = 5
"""Lowest block count a chain has to pass; also the default."""

_INT_RE = re.compile(r"[+-]?\d+")
_TIME_RE = re.compile(
    r"(\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d)(?:\.(\d+))?(Z|[+-]\d\d:\d\d)"
)


def _atoi(text: str) -> int | None:
    """Parse a plain decimal integer; return None if it is not one."""
    if not _INT_RE.fullmatch(text):
        return None
    return int(text)


def _parse_time(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"invalid time value: {value!r}")
    match = _TIME_RE.fullmatch(value)
    if match is None:
        raise ValueError(f"invalid time value: {value!r}")
    base, fraction, zone = match.groups()
    text = base
    if fraction:
        text += "." + fraction[:6].ljust(6, "0")
    text += "+00:00" if zone == "Z" else zone
    return datetime.fromisoformat(text)


def _field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int and isinstance(value, bool):
        raise ValueError(f"field {key!r} has the wrong type")
    if not isinstance(value, kind):
        raise ValueError(f"field {key!r} has the wrong type")
    return value


def _object(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    return _field(data, key, dict, {})


@dataclass
class ProtocolVersion:
    p2p: str = ""
    block: str = ""
    app: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProtocolVersion:
        return cls(
            p2p=_field(data, "p2p", str, ""),
            block=_field(data, "block", str, ""),
            app=_field(data, "app", str, ""),
        )


@dataclass
class Other:
    tx_index: str = ""
    rpc_address: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Other:
        return cls(
            tx_index=_field(data, "tx_index", str, ""),
            rpc_address=_field(data, "rpc_address", str, ""),
        )


@dataclass
class NodeInfo:
    protocol_version: ProtocolVersion = field(default_factory=ProtocolVersion)
    id: str = ""
    listen_addr: str = ""
    network: str = ""
    version: str = ""
    channels: str = ""
    moniker: str = ""
    other: Other = field(default_factory=Other)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NodeInfo:
        return cls(
            protocol_version=ProtocolVersion.from_dict(_object(data, "protocol_version")),
            id=_field(data, "id", str, ""),
            listen_addr=_field(data, "listen_addr", str, ""),
            network=_field(data, "network", str, ""),
            version=_field(data, "version", str, ""),
            channels=_field(data, "channels", str, ""),
            moniker=_field(data, "moniker", str, ""),
            other=Other.from_dict(_object(data, "other")),
        )


@dataclass
class SyncInfo:
    latest_block_hash: str = ""
    latest_app_hash: str = ""
    latest_block_height: str = ""
    latest_block_time: datetime | None = None
    earliest_block_hash: str = ""
    earliest_app_hash: str = ""
    earliest_block_height: str = ""
    earliest_block_time: datetime | None = None
    catching_up: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SyncInfo:
        return cls(
            latest_block_hash=_field(data, "latest_block_hash", str, ""),
            latest_app_hash=_field(data, "latest_app_hash", str, ""),
            latest_block_height=_field(data, "latest_block_height", str, ""),
            latest_block_time=_parse_time(data.get("latest_block_time")),
            earliest_block_hash=_field(data, "earliest_block_hash", str, ""),
            earliest_app_hash=_field(data, "earliest_app_hash", str, ""),
            earliest_block_height=_field(data, "earliest_block_height", str, ""),
            earliest_block_time=_parse_time(data.get("earliest_block_time")),
            catching_up=_field(data, "catching_up", bool, False),
        )


@dataclass
class PubKey:
    type: str = ""
    value: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PubKey:
        return cls(type=_field(data, "type", str, ""), value=_field(data, "value", str, ""))


@dataclass
class ValidatorInfo:
    address: str = ""
    pub_key: PubKey = field(default_factory=PubKey)
    voting_power: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ValidatorInfo:
        return cls(
            address=_field(data, "address", str, ""),
            pub_key=PubKey.from_dict(_object(data, "pub_key")),
            voting_power=_field(data, "voting_power", str, ""),
        )


@dataclass
class Result:
    node_info: NodeInfo = field(default_factory=NodeInfo)
    sync_info: SyncInfo = field(default_factory=SyncInfo)
    validator_info: ValidatorInfo = field(default_factory=ValidatorInfo)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Result:
        return cls(
            node_info=NodeInfo.from_dict(_object(data, "node_info")),
            sync_info=SyncInfo.from_dict(_object(data, "sync_info")),
            validator_info=ValidatorInfo.from_dict(_object(data, "validator_info")),
        )


@dataclass
class ChainStatus:
    """The answer of a node's ``/status`` endpoint."""

    jsonrpc: str = ""
    id: int = 0
    result: Result = field(default_factory=Result)

    @classmethod
    def from_json(cls, data: bytes | str | Mapping[str, Any]) -> ChainStatus:
        """Decode a status document; raise ValueError if it is malformed."""
        raw = data if isinstance(data, Mapping) else json.loads(data)
        if not isinstance(raw, Mapping):
            raise ValueError("status document must be a JSON object")
        return cls(
            jsonrpc=_field(raw, "jsonrpc", str, ""),
            id=_field(raw, "id", int, 0),
            result=Result.from_dict(_object(raw, "result")),
        )


def _poll(url: str, blocks: int) -> bool:
    """Ask a chain for its status once; return True if it is past ``blocks``."""
    try:
        with urllib.request.urlopen(f"{url}/status", timeout=REQUEST_TIMEOUT) as resp:
            if resp.status != 200:
                return False
            body = resp.read()
    except urllib.error.HTTPError:
        return False
    except (OSError, ValueError) as exc:
        log.info("%s", exc)
        return False

    try:
        status = ChainStatus.from_json(body)
    except ValueError as exc:
        log.info("%s: error decoding response %s", url, exc)
        return False

    height_text = status.result.sync_info.latest_block_height
    height = _atoi(height_text)
    if height is not None and height > blocks:
        log.info("%s: chain is ready", url)
        return True
    log.info("%s latest block: %s", url, height_text)
    return False


def wait_for(timeout: float, blocks: int, url: str) -> None:
    """Poll ``url`` until its latest block exceeds ``blocks``.

    Raises TimeoutError if that does not happen within ``timeout`` seconds.
    """
    start = time.monotonic()
    deadline = start + timeout
    next_tick = start + POLL_INTERVAL
    while True:
        now = time.monotonic()
        if next_tick >= deadline:
            if deadline > now:
                time.sleep(deadline - now)
            raise TimeoutError(f"timed out waiting for {url}")
        if next_tick > now:
            time.sleep(next_tick - now)
        if _poll(url, blocks):
            return
        next_tick = max(next_tick + POLL_INTERVAL, time.monotonic())


def exists(path: str | os.PathLike[str]) -> bool:
    """Return False only if nothing exists at ``path``."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except OSError:
        return True
    return True


def _worker(timeout: float, blocks: int, url: str, results: queue.Queue) -> None:
    try:
        wait_for(timeout, blocks, url)
    except Exception as exc:
        results.put(exc)
    else:
        results.put(None)


def main(argv: Sequence[str] | None = None) -> int:
    """Wait for every chain in PLUGIN_CHAIN_LIST; return the exit code."""
    logging.basicConfig(level=logging.INFO)

    check_file = os.environ.get("PLUGIN_CHECK_FILE", "")
    if check_file and not exists(check_file):
        log.error("check file doesn't exists")
        return 1

    chain_list = os.environ.get("PLUGIN_CHAIN_LIST", "")
    if not chain_list:
        log.error("must provide at least one chain")
        return 1
    chains = chain_list.split(",")

    timeout = _atoi(os.environ.get("PLUGIN_TIMEOUT", ""))
    if timeout is None:
        log.error("must provide a valid timeout")
        return 1

    num_blocks = _atoi(os.environ.get("PLUGIN_BLOCKS", ""))
    if num_blocks is None or num_blocks < MIN_BLOCKS:
        num_blocks = MIN_BLOCKS

    results: queue.Queue = queue.Queue()
    for chain in chains:
        log.info("wait for %s %d", chain, timeout)
        threading.Thread(
            target=_worker, args=(timeout, num_blocks, chain, results), daemon=True
        ).start()

    for _ in chains:
        error = results.get()
        if error is not None:
            log.error("%s", error)
            return 1
    return 0