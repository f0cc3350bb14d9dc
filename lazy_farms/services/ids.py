# lazy_farms/services/ids.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Identifier and amount helpers.

Hedera entities are written `shard.realm.num` (e.g. `0.0.1311037`). Contracts
see the same entity as a 20-byte "long-zero" EVM address: 4 bytes shard,
8 bytes realm, 8 bytes num. Accounts created from an ECDSA key may also carry
an *alias* EVM address that cannot be converted locally; `from_evm_address`
returns None for those and callers ask the mirror node.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation

_ENTITY_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_EVM_RE = re.compile(r"^(0x)?[0-9a-fA-F]{40}$")
_TX_ID_RE = re.compile(r"^(\d+\.\d+\.\d+)@(\d+)\.(\d+)$")


@dataclass(frozen=True)
class EntityId:
    shard: int
    realm: int
    num: int

    def __str__(self) -> str:
        return f"{self.shard}.{self.realm}.{self.num}"

    def to_evm_address(self) -> str:
        return "0x" + (
            self.shard.to_bytes(4, "big")
            + self.realm.to_bytes(8, "big")
            + self.num.to_bytes(8, "big")
        ).hex()


def is_evm_address(value: str) -> bool:
    return bool(_EVM_RE.match((value or "").strip()))


def is_long_zero(address: str) -> bool:
    """True when the address encodes a `shard.realm.num` entity (first 12 bytes are zero)."""
    if not is_evm_address(address):
        return False
    raw = address.lower().removeprefix("0x")
    return raw[:24] == "0" * 24


def parse_entity_id(value: str) -> EntityId:
    """
    Parse `0.0.N` (or a long-zero EVM address) into an `EntityId`.

    Raises:
        ValueError: for anything else, including alias EVM addresses.
    """
    text = (value or "").strip()
    m = _ENTITY_RE.match(text)
    if m:
        return EntityId(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    if is_long_zero(text):
        raw = bytes.fromhex(text.lower().removeprefix("0x"))
        return EntityId(
            int.from_bytes(raw[:4], "big"),
            int.from_bytes(raw[4:12], "big"),
            int.from_bytes(raw[12:], "big"),
        )
    raise ValueError(f"Invalid Hedera entity id: {value!r}")


def to_evm_address(value: str | EntityId) -> str:
    """
    Return the lowercase `0x` EVM address for an entity id or address.

    EVM addresses (long-zero or alias) pass through normalized.
    """
    if isinstance(value, EntityId):
        return value.to_evm_address()
    text = (value or "").strip()
    if is_evm_address(text):
        return "0x" + text.lower().removeprefix("0x")
    return parse_entity_id(text).to_evm_address()


def from_evm_address(address: str) -> str | None:
    """`0.0.N` for a long-zero address; None for alias addresses."""
    if not is_long_zero(address):
        return None
    return str(parse_entity_id(address))


# ---------------------------------------------------------------------------
# CLI list parsing
# ---------------------------------------------------------------------------


def parse_comma_list(value: str) -> list[str]:
    """Split `a,b,c` (whitespace tolerated, empties dropped)."""
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def parse_int_list(value: str) -> list[int]:
    try:
        return [int(part) for part in parse_comma_list(value)]
    except ValueError as e:
        raise ValueError(f"Expected a comma separated list of integers, got {value!r}") from e


def parse_nested_list(value: str) -> list[list[int]]:
    """
    Parse per-token serial groups: `1,2,3:4,5,6` → `[[1, 2, 3], [4, 5, 6]]`.

    `:` separates groups, `,` separates serials within a group.
    """
    groups = (value or "").split(":")
    if any(not g.strip() for g in groups):
        raise ValueError(f"Empty serial group in {value!r}")
    return [parse_int_list(group) for group in groups]


def transaction_id_to_mirror(tx_id: str) -> str:
    """
    Convert SDK-style `0.0.x@secs.nanos` to the mirror form `0.0.x-secs-nanos`.

    Hashes and ids already in mirror form are returned unchanged.
    """
    text = (tx_id or "").strip()
    m = _TX_ID_RE.match(text)
    if m:
        return f"{m.group(1)}-{m.group(2)}-{m.group(3)}"
    return text


# ---------------------------------------------------------------------------
# Token amounts
# ---------------------------------------------------------------------------


def format_token_amount(amount: int, decimals: int, symbol: str | None = None) -> str:
    """Render a raw integer amount with `decimals` places, e.g. 125 @1 → `12.5`."""
    value = Decimal(int(amount)).scaleb(-decimals)
    text = f"{value:,.{decimals}f}" if decimals > 0 else f"{int(amount):,}"
    return f"{text} {symbol}" if symbol else text


def parse_token_amount(value: str | float | int, decimals: int) -> int:
    """
    Convert a human amount to raw units, truncating extra precision.

    Raises:
        ValueError: for non-numeric input.
    """
    try:
        dec = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid token amount: {value!r}") from e
    return int(dec.scaleb(decimals).to_integral_value(rounding=ROUND_FLOOR))
