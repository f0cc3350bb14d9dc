# lazy_farms/services/abi.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Contract ABI loading plus call/result/event/error codecs.

Artifacts are the JSON files Hardhat writes under `artifacts/contracts/...`.
A `ContractAbi` wraps one ABI and provides the four operations every script
needs:

- `encode_call(fn, args)`    → `0x` calldata for the relay or mirror node
- `decode_result(fn, data)`  → tuple of return values
- `decode_log(topics, data)` → `DecodedEvent` for a mirror-node log entry
- `decode_error(data)`       → readable revert reason

Encoding is done with eth-abi directly (no web3 `Contract` object) so that the
same code path serves mirror-node reads, relay writes and offline tests.
"""

import json
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_utils import keccak

from lazy_farms.core.config import settings
from lazy_farms.core.constants import KNOWN_CONTRACTS

log = logging.getLogger(__name__)

#: Selectors of the two built-in Solidity revert payloads.
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")
PANIC_SELECTOR = bytes.fromhex("4e487b71")


# ---------------------------------------------------------------------------
# Type helpers
# ---------------------------------------------------------------------------


def canonical_type(param: dict[str, Any]) -> str:
    """
    Canonical ABI type string for one JSON ABI parameter.

    Tuples expand recursively: `{"type": "tuple[]", "components": [...]}` →
    `(address,uint256[],uint256[])[]`.
    """
    typ = param["type"]
    if typ.startswith("tuple"):
        inner = ",".join(canonical_type(c) for c in param.get("components", []))
        return f"({inner}){typ[len('tuple'):]}"
    return typ


def signature_of(entry: dict[str, Any]) -> str:
    types = ",".join(canonical_type(p) for p in entry.get("inputs", []))
    return f"{entry['name']}({types})"


def _to_bytes(data: str | bytes | None) -> bytes:
    if data is None:
        return b""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    text = data.strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    return bytes.fromhex(text)


def _plain(value: Any) -> Any:
    """Convert decoded eth-abi values into JSON-friendly Python values."""
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class DecodedEvent:
    name: str
    args: dict[str, Any]
    signature: str

    def __str__(self) -> str:
        body = ", ".join(f"{k}: {_plain(v)}" for k, v in self.args.items())
        return f"{self.name}({body})"


# ---------------------------------------------------------------------------
# Human-readable fragments ("function f(address a) view returns (uint256)")
# ---------------------------------------------------------------------------

_HEAD_RE = re.compile(r"^\s*(function|event|error)\s+(\w+)\s*\(")
_MODIFIERS = {"view", "pure", "payable", "nonpayable", "external", "public"}


def _matching_paren(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    raise ValueError(f"Unbalanced parentheses in ABI fragment: {text!r}")


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested inside parentheses."""
    parts: list[str] = []
    depth = 0
    current = ""
    for ch in text:
        if ch == "," and depth == 0:
            parts.append(current)
            current = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        current += ch
    parts.append(current)
    return [p.strip() for p in parts if p.strip()]


def _parse_param(text: str) -> dict[str, Any]:
    if text.startswith("("):
        end = _matching_paren(text, 0)
        components = [_parse_param(p) for p in _split_top_level(text[1:end])]
        rest = text[end + 1 :].split()
        suffix = rest[0] if rest and rest[0].startswith("[") else ""
        words = rest[1:] if suffix else rest
        param: dict[str, Any] = {"type": "tuple" + suffix, "components": components}
    else:
        tokens = text.split()
        param = {"type": tokens[0]}
        words = tokens[1:]
    if param["type"] == "uint":
        param["type"] = "uint256"
    elif param["type"] == "int":
        param["type"] = "int256"
    indexed = "indexed" in words
    names = [w for w in words if w not in ("indexed", "memory", "calldata")]
    param["name"] = names[0] if names else ""
    if indexed:
        param["indexed"] = True
    return param


def parse_fragment(fragment: str) -> dict[str, Any]:
    """
    Parse one human-readable ABI fragment into a JSON ABI entry.

    Supports `function`, `event` and `error` fragments, tuple parameters
    written as `(type a, type b)`, `indexed`, state-mutability keywords and a
    `returns (...)` clause.
    """
    m = _HEAD_RE.match(fragment)
    if not m:
        raise ValueError(f"Unsupported ABI fragment: {fragment!r}")
    kind, name = m.group(1), m.group(2)
    open_at = m.end() - 1
    close_at = _matching_paren(fragment, open_at)
    inputs = [_parse_param(p) for p in _split_top_level(fragment[open_at + 1 : close_at])]
    entry: dict[str, Any] = {"type": kind, "name": name, "inputs": inputs}
    if kind == "event":
        for p in inputs:
            p.setdefault("indexed", False)
        entry["anonymous"] = False
        return entry
    if kind == "error":
        return entry

    tail = fragment[close_at + 1 :]
    outputs: list[dict[str, Any]] = []
    ret = tail.find("returns")
    if ret >= 0:
        out_open = tail.index("(", ret)
        out_close = _matching_paren(tail, out_open)
        outputs = [_parse_param(p) for p in _split_top_level(tail[out_open + 1 : out_close])]
        tail = tail[:ret]
    modifiers = set(tail.split()) & _MODIFIERS
    mutability = next(
        (m for m in ("view", "pure", "payable") if m in modifiers), "nonpayable"
    )
    entry.update(outputs=outputs, stateMutability=mutability)
    return entry


# ---------------------------------------------------------------------------
# ContractAbi
# ---------------------------------------------------------------------------


class ContractAbi:
    """Codec over one contract's ABI entries."""

    def __init__(self, name: str, entries: Iterable[dict[str, Any]]):
        self.name = name
        self.entries = list(entries)
        self._functions: dict[str, list[dict[str, Any]]] = {}
        self._events: dict[bytes, dict[str, Any]] = {}
        self._errors: dict[bytes, dict[str, Any]] = {}
        self._constructor: dict[str, Any] = {}
        for entry in self.entries:
            kind = entry.get("type", "function")
            if kind == "function":
                self._functions.setdefault(entry["name"], []).append(entry)
            elif kind == "event" and not entry.get("anonymous"):
                self._events[keccak(text=signature_of(entry))] = entry
            elif kind == "error":
                self._errors[keccak(text=signature_of(entry))[:4]] = entry
            elif kind == "constructor":
                self._constructor = entry

    @classmethod
    def from_fragments(cls, name: str, fragments: Sequence[str]) -> ContractAbi:
        return cls(name, [parse_fragment(f) for f in fragments])

    def __repr__(self) -> str:
        return f"ContractAbi({self.name!r}, functions={len(self._functions)})"

    # -- lookup ---------------------------------------------------------------

    @property
    def function_names(self) -> list[str]:
        return sorted(self._functions)

    def has_function(self, fn: str) -> bool:
        try:
            self.function(fn)
        except KeyError:
            return False
        return True

    def function(self, fn: str) -> dict[str, Any]:
        """
        Resolve a function by name, or by full signature for overloads
        (`"isAdmin(address)"`).

        Raises:
            KeyError: unknown or ambiguous name.
        """
        if "(" in fn:
            name = fn.split("(", 1)[0]
            for entry in self._functions.get(name, []):
                if signature_of(entry) == fn.replace(" ", ""):
                    return entry
            raise KeyError(f"{self.name} has no function {fn}")
        candidates = self._functions.get(fn, [])
        if not candidates:
            raise KeyError(f"{self.name} has no function {fn}")
        if len(candidates) > 1:
            sigs = ", ".join(signature_of(c) for c in candidates)
            raise KeyError(f"{self.name}.{fn} is overloaded; use one of: {sigs}")
        return candidates[0]

    def selector(self, fn: str) -> bytes:
        return keccak(text=signature_of(self.function(fn)))[:4]

    # -- codecs ---------------------------------------------------------------

    def encode_call(self, fn: str, args: Sequence[Any] = ()) -> str:
        """ABI-encode a call to `fn` with positional `args` → `0x` hex."""
        entry = self.function(fn)
        types = [canonical_type(p) for p in entry.get("inputs", [])]
        if len(types) != len(args):
            raise ValueError(
                f"{self.name}.{entry['name']} expects {len(types)} args, got {len(args)}"
            )
        body = abi_encode(types, list(args)) if types else b""
        return "0x" + (self.selector(fn) + body).hex()

    @property
    def constructor_inputs(self) -> list[dict[str, Any]]:
        return list(self._constructor.get("inputs", []))

    def encode_deploy(self, bytecode: str | bytes, args: Sequence[Any] = ()) -> str:
        """Creation code: `bytecode` followed by the encoded constructor `args`."""
        types = [canonical_type(p) for p in self.constructor_inputs]
        if len(types) != len(args):
            raise ValueError(
                f"{self.name} constructor expects {len(types)} args, got {len(args)}"
            )
        body = abi_encode(types, list(args)) if types else b""
        return "0x" + (_to_bytes(bytecode) + body).hex()

    def decode_result(self, fn: str, data: str | bytes | None) -> tuple[Any, ...]:
        """Decode `fn`'s return data. Empty data decodes to an empty tuple."""
        entry = self.function(fn)
        raw = _to_bytes(data)
        types = [canonical_type(p) for p in entry.get("outputs", [])]
        if not raw or not types:
            return ()
        return tuple(abi_decode(types, raw))

    def output_names(self, fn: str) -> list[str]:
        entry = self.function(fn)
        return [p.get("name") or f"_{i}" for i, p in enumerate(entry.get("outputs", []))]

    def decode_log(
        self, topics: Sequence[str | bytes], data: str | bytes | None
    ) -> DecodedEvent | None:
        """
        Decode a log entry whose topic0 matches an event in this ABI.

        Indexed dynamic values (strings, bytes, arrays) are only available as
        their keccak hash and are returned as `0x` hex.
        """
        if not topics:
            return None
        entry = self._events.get(_to_bytes(topics[0]))
        if entry is None:
            return None
        params = entry.get("inputs", [])
        keys = [p.get("name") or f"_{i}" for i, p in enumerate(params)]
        values: dict[str, Any] = {}

        topic_values = list(topics[1:])
        for key, p in zip(keys, params):
            if not p.get("indexed"):
                continue
            raw = _to_bytes(topic_values.pop(0)) if topic_values else b""
            typ = canonical_type(p)
            dynamic = typ in ("string", "bytes") or typ.endswith("]") or typ.startswith("(")
            values[key] = "0x" + raw.hex() if dynamic else abi_decode([typ], raw)[0]

        plain = [(key, p) for key, p in zip(keys, params) if not p.get("indexed")]
        if plain:
            decoded = abi_decode([canonical_type(p) for _, p in plain], _to_bytes(data))
            for (key, _), value in zip(plain, decoded):
                values[key] = value

        return DecodedEvent(
            entry["name"], {key: values.get(key) for key in keys}, signature_of(entry)
        )

    def decode_error(self, data: str | bytes | None) -> str | None:
        """
        Readable revert reason: `Error(string)`, `Panic(uint256)` or a custom
        error declared in this ABI. None when the payload is not recognised.
        """
        raw = _to_bytes(data)
        if len(raw) < 4:
            return None
        selector, body = raw[:4], raw[4:]
        if selector == ERROR_STRING_SELECTOR:
            return abi_decode(["string"], body)[0]
        if selector == PANIC_SELECTOR:
            return f"Panic(0x{abi_decode(['uint256'], body)[0]:02x})"
        entry = self._errors.get(selector)
        if entry is None:
            return None
        types = [canonical_type(p) for p in entry.get("inputs", [])]
        args = abi_decode(types, body) if types else ()
        return f"{entry['name']}({', '.join(str(_plain(a)) for a in args)})"


# ---------------------------------------------------------------------------
# Artifact loading
# ---------------------------------------------------------------------------

_artifact_cache: dict[tuple[str, str], Any] = {}


def _candidates(name: str, artifacts_dir: Path, abi_dir: Path) -> list[Path]:
    paths = []
    if name in KNOWN_CONTRACTS:
        paths.append(artifacts_dir / KNOWN_CONTRACTS[name])
    standard = artifacts_dir / "contracts" / f"{name}.sol" / f"{name}.json"
    if standard not in paths:
        paths.append(standard)
    paths.append(abi_dir / f"{name}.json")
    return paths


def load_artifact(
    name: str, artifacts_dir: str | Path | None = None, abi_dir: str | Path | None = None
) -> Any:
    """
    Load a compiled artifact (or a bare ABI list) for contract `name`.

    Lookup order: known artifact path, standard Hardhat path, `abi/<name>.json`.

    Raises:
        FileNotFoundError: "Contract artifact not found for: <name>".
    """
    art = Path(artifacts_dir or settings.ARTIFACTS_DIR)
    abi = Path(abi_dir or settings.ABI_DIR)
    key = (name, f"{art}|{abi}")
    if key in _artifact_cache:
        return _artifact_cache[key]
    for path in _candidates(name, art, abi):
        if path.is_file():
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
            log.debug("Loaded %s from %s", name, path)
            _artifact_cache[key] = data
            return data
    raise FileNotFoundError(f"Contract artifact not found for: {name}")


def load_abi(name: str, **dirs: Any) -> list[dict[str, Any]]:
    artifact = load_artifact(name, **dirs)
    return artifact["abi"] if isinstance(artifact, dict) else artifact


def load_contract_abi(name: str, **dirs: Any) -> ContractAbi:
    """`ContractAbi` for `name` built from its artifact."""
    return ContractAbi(name, load_abi(name, **dirs))


def load_bytecode(name: str, **dirs: Any) -> str:
    artifact = load_artifact(name, **dirs)
    bytecode = artifact.get("bytecode") if isinstance(artifact, dict) else None
    if not bytecode:
        raise FileNotFoundError(f"No bytecode found in artifact for: {name}")
    return bytecode


def clear_cache() -> None:
    _artifact_cache.clear()


def known_contracts() -> list[str]:
    return list(KNOWN_CONTRACTS)
