# lazy_farms/scripts/helpers.py
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
# Purpose
# -------
# Console helpers shared by every Lazy Farms CLI:
#   - section headers and ✅/❌/⚠️ markers
#   - the "-** NAME **" script banner with environment/operator/contract
#   - Y/N confirmation before anything that spends gas
#   - argparse scaffolding (common flags, contract-id fallbacks)
#   - turning decoded contract values into something readable
#
# Conventions
# -----------
# * Human output goes through print(); diagnostics go through logging.
# * Any exception escaping a command becomes SystemExit("<cmd> failed: ...").

from __future__ import annotations

import argparse
import json
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from lazy_farms.core.clients import HederaClient, create_hedera_client
from lazy_farms.core.config import configure_logging, settings
from lazy_farms.core.constants import DELAYS
from lazy_farms.services.abi import ContractAbi
from lazy_farms.services.contracts import (
    contract_events,
    log_result,
    set_ft_allowance,
    set_hbar_allowance,
)
from lazy_farms.services.ids import from_evm_address, is_evm_address, to_evm_address

# ---------------------------------------------------------------------------
# Pretty printers
# ---------------------------------------------------------------------------


def print_header(title: str) -> None:
    """Render a section header with an underline."""
    print("\n" + "=" * len(title))
    print(title)
    print("=" * len(title))


def fail(msg: str) -> None:
    print(f"❌ {msg}")


def ok(msg: str) -> None:
    print(f"✅ {msg}")


def warn(msg: str) -> None:
    print(f"⚠️  {msg}")


def print_script_header(
    name: str,
    env: str,
    operator: str | None = None,
    contract: str | None = None,
    extra: Mapping[str, Any] | None = None,
) -> None:
    """Banner printed by every script before it touches the network."""
    print(f"\n-** {name.upper()} **")
    print(f"\n-Using ENVIRONMENT: {env}")
    if operator:
        print(f"-Using Operator: {operator}")
    if contract:
        print(f"-Using Contract: {contract}")
    for key, value in (extra or {}).items():
        print(f"-{key}: {value}")


def dump_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def print_table(rows: Sequence[Mapping[str, Any]], headers: Sequence[str]) -> None:
    """Left-aligned columns sized to the widest cell."""
    if not rows:
        print("No data found.")
        return
    widths = [max([len(h)] + [len(str(r.get(h, ""))) for r in rows]) for h in headers]
    print("  ".join(h.ljust(w) for h, w in zip(headers, widths)))
    print("  ".join("-" * w for w in widths))
    for row in rows:
        print("  ".join(str(row.get(h, "")).ljust(w) for h, w in zip(headers, widths)))


def print_key_values(data: Mapping[str, Any]) -> None:
    width = max((len(k) for k in data), default=0)
    for key, value in data.items():
        print(f"{key.ljust(width)}  {value}")


def readable(value: Any) -> Any:
    """
    Decoded ABI value → display value: long-zero addresses become `0.0.N`,
    other addresses are lowercased, bytes become hex, sequences recurse.
    """
    if isinstance(value, bytes):
        return "0x" + value.hex()
    if isinstance(value, str) and is_evm_address(value) and value.startswith("0x"):
        return from_evm_address(value) or value.lower()
    if isinstance(value, (list, tuple)):
        return [readable(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Interaction
# ---------------------------------------------------------------------------


def confirm_or_exit(
    message: str, abort: str = "User Aborted", assume_yes: bool = False
) -> None:
    """
    Ask a Y/N question; anything but y/yes prints `abort` and exits 0.
    """
    if assume_yes:
        return
    try:
        answer = input(f"{message} (y/N): ")
    except EOFError:
        answer = ""
    if answer.strip().lower() not in ("y", "yes"):
        print(abort)
        raise SystemExit(0)


def wait_for_mirror(seconds: float = DELAYS.MIRROR_NODE) -> None:
    """Give the mirror node time to index a fresh transaction."""
    time.sleep(seconds)


# ---------------------------------------------------------------------------
# argparse scaffolding
# ---------------------------------------------------------------------------


def build_parser(prog: str, description: str) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog=prog,
        description=description,
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument(
        "--env",
        default=None,
        help="Override ENVIRONMENT (TEST, MAIN, PREVIEW, LOCAL)",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def add_command(
    sub: argparse._SubParsersAction,
    name: str,
    help: str,
    *,
    mutating: bool = False,
) -> argparse.ArgumentParser:
    """Subcommand with the shared formatter; mutating ones get `--yes`."""
    p = sub.add_parser(
        name, help=help, formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    if mutating:
        p.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    return p


def resolve_contract(value: str | None, setting: str) -> str:
    """
    Contract id from the CLI, falling back to a `Settings` field.

    Raises:
        SystemExit: when neither is set.
    """
    resolved = value or getattr(settings, setting, "")
    if not resolved:
        raise SystemExit(f"ERROR: Must specify a contract id or {setting} in the .env file")
    return resolved


def run(
    handlers: Mapping[str, Callable[[argparse.Namespace], Any]],
    args: argparse.Namespace,
    prog: str,
) -> None:
    """Configure logging and dispatch `args.cmd`, wrapping failures."""
    configure_logging("DEBUG" if getattr(args, "verbose", False) else None)
    try:
        handlers[args.cmd](args)
    except (KeyboardInterrupt, EOFError):
        raise SystemExit("User Aborted") from None
    except Exception as e:
        raise SystemExit(f"{prog} {args.cmd} failed: {e}") from e


# ---------------------------------------------------------------------------
# Contract views
# ---------------------------------------------------------------------------


def show_views(
    query: Callable[..., tuple[Any, ...]],
    names: Iterable[str],
    labels: Sequence[str] | None = None,
) -> dict[str, Any]:
    """
    Query zero-argument views and print `Label: value` lines.

    `query(fn)` is usually a `functools.partial` of `contracts.query`.
    Returns the readable values keyed by function name.
    """
    out: dict[str, Any] = {}
    names = list(names)
    for i, fn in enumerate(names):
        label = labels[i] if labels else fn
        values = readable(list(query(fn)))
        value = values[0] if len(values) == 1 else values
        out[fn] = value
        if isinstance(value, list) and value and not isinstance(value[0], list):
            print(f"{label}: {', '.join(str(v) for v in value)}")
        else:
            print(f"{label}: {value}")
    return out


# ---------------------------------------------------------------------------
# Client & allowances
# ---------------------------------------------------------------------------


def connect(args: argparse.Namespace, **kwargs: Any) -> HederaClient:
    """`create_hedera_client` honoring the `--env` override."""
    kwargs.setdefault("environment", getattr(args, "env", None))
    return create_hedera_client(**kwargs)


def entity_id(client: HederaClient, value: str) -> str:
    """`0.0.N` for an id or EVM address (aliases resolved on the mirror)."""
    if is_evm_address(value):
        return client.mirror.contract_id_for_evm(value)
    return value


def ensure_ft_allowance(
    client: HederaClient,
    token_id: str,
    spender: str,
    amount: int,
    assume_yes: bool = False,
    label: str = "$LAZY",
) -> bool:
    """
    Make sure the operator allows `spender` at least `amount` of `token_id`,
    offering to set it when missing. Returns False if setting it failed.
    """
    spender_id = entity_id(client, spender)
    print("\nChecking Allowances...")
    for row in client.mirror.ft_allowances(client.operator_id):
        if row.get("token_id") == token_id and row.get("spender") == spender_id:
            if int(row.get("amount", 0)) >= amount:
                print(f"FOUND: Sufficient {label} allowance to {spender_id}", row.get("amount"))
                return True
            print(f"ERROR: Insufficient {label} allowance to {spender_id}")
            break
    else:
        print(f"ERROR: No {label} allowance to {spender_id} found")
    confirm_or_exit("Do you want to set the allowance?", assume_yes=assume_yes)
    result = set_ft_allowance(client, token_id, spender_id, amount)
    if not log_result(result, f"{label} allowance"):
        return False
    print(f"ALLOWANCE SET: {label} allowance to {spender_id}", amount)
    return True


def ensure_hbar_allowance(
    client: HederaClient, spender: str, tinybar: int, assume_yes: bool = False
) -> bool:
    spender_id = entity_id(client, spender)
    for row in client.mirror.hbar_allowances(client.operator_id):
        if row.get("spender") == spender_id and int(row.get("amount", 0)) >= tinybar:
            print(f"FOUND: Sufficient HBAR allowance to {spender_id}")
            return True
    print(f"ERROR: Insufficient HBAR allowance to {spender_id}")
    confirm_or_exit("Do you want to set the allowance?", assume_yes=assume_yes)
    result = set_hbar_allowance(client, spender_id, tinybar)
    if not log_result(result, "HBAR allowance"):
        return False
    print(f"ALLOWANCE SET: {tinybar} tinybar allowance to {spender_id}")
    return True


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------


def event_lines(client: HederaClient, contract: str, abi: ContractAbi) -> list[str]:
    """One readable line per decoded event: `<timestamp> <tx hash> Event(args)`."""
    lines = []
    for entry, event in contract_events(client, contract, abi):
        args = ", ".join(f"{k}: {readable(v)}" for k, v in event.args.items())
        lines.append(
            f"{entry.get('timestamp', '')} {entry.get('transaction_hash', '')} "
            f"{event.name}({args})".strip()
        )
    return lines


def write_log_file(
    prefix: str, contract: str, lines: Sequence[str], directory: str | Path = "logs"
) -> Path:
    """Write `lines` to `<directory>/<prefix>-logs-<contract>-<Y-M-D-H>.txt`."""
    now = datetime.now()
    stamp = f"{now.year}-{now.month}-{now.day}-{now.hour}"
    path = Path(directory) / f"{prefix}-logs-{contract}-{stamp}.txt"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
    print(f"Logs have been written to {path}")
    return path


def account_address(client: HederaClient, value: str | None) -> str:
    """
    EVM address contracts see for an account: the operator's sender address
    when `value` is empty, the mirror's `evm_address` for `0.0.N` ids.
    """
    if not value:
        return client.sender_address
    if is_evm_address(value):
        return to_evm_address(value)
    info = client.mirror.account(value) or {}
    return to_evm_address(info.get("evm_address") or value)
