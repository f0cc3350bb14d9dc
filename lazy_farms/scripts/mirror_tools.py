# lazy_farms/scripts/mirror_tools.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Read-only mirror-node utilities that work with any Lazy Farms contract:
#   - decode a contract transaction result (status, gas, revert reason)
#   - decode every event a contract emitted, optionally into ./logs
#   - map each serial of an NFT collection to its current owner
#
# Usage
# -----
#   lazy-mirror result MissionFactory 0.0.3566849@1708780635.278906242
#   lazy-mirror logs Mission 0.0.MMMM --save
#   lazy-mirror owners 0.0.TOKEN
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST     # no operator needed

from __future__ import annotations

import argparse

from eth_abi.exceptions import DecodingError

from lazy_farms.scripts.helpers import (
    add_command,
    build_parser,
    connect,
    dump_json,
    event_lines,
    print_script_header,
    readable,
    run,
    write_log_file,
)
from lazy_farms.services.abi import known_contracts
from lazy_farms.services.interfaces import contract_abi
from lazy_farms.services.ids import transaction_id_to_mirror

PROG = "lazy-mirror"


def _revert_reason(abi, error: str) -> str:
    if not error.startswith("0x"):
        return error
    try:
        return abi.decode_error(error) or error
    except (ValueError, DecodingError):
        return error


def cmd_result(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = contract_abi(args.contract)
    print_script_header(
        "Get Contract Result", client.network.label, extra={
            "Contract": args.contract,
            "Transaction": args.transaction,
            "Mirror Id": transaction_id_to_mirror(args.transaction),
        },
    )
    record = client.mirror.contract_result(args.transaction)
    if record is None:
        print("ERROR: No contract result found")
        return
    error = record.get("error_message")
    summary = {
        "result": record.get("result"),
        "status": record.get("status"),
        "gas_used": record.get("gas_used"),
        "contract_id": record.get("contract_id"),
        "timestamp": record.get("timestamp"),
    }
    if error:
        summary["error"] = _revert_reason(abi, error)
    dump_json(summary)

    logs = []
    for entry in record.get("logs") or []:
        try:
            event = abi.decode_log(entry.get("topics") or [], entry.get("data") or "0x")
        except DecodingError:
            continue
        if event is not None:
            logs.append(f"{event.name}({', '.join(f'{k}: {readable(v)}' for k, v in event.args.items())})")
    if logs:
        print("\n-Events:")
        for line in logs:
            print(" ", line)


def cmd_logs(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    print_script_header(f"{args.contract} Logs", client.network.label, client.operator_id, args.id)
    lines = event_lines(client, args.id, contract_abi(args.contract))
    if not lines:
        print("ERROR: No logs found")
        return
    for line in lines:
        print(line)
    if args.save:
        write_log_file(args.contract, args.id, lines)


def cmd_owners(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    print_script_header("Token Serial Owner Map", client.network.label, extra={"Token": args.token})
    owners: dict[int, str] = {}
    for nft in client.mirror.token_nfts(args.token):
        if nft.get("deleted"):
            continue
        owners[int(nft["serial_number"])] = nft.get("account_id") or "unknown"
    if args.json:
        dump_json({str(k): v for k, v in sorted(owners.items())})
        return
    print(f"Token {args.token}")
    for serial, owner in sorted(owners.items()):
        print(f"  Serial {serial} - {owner}")
    print("Unique owners:", len(set(owners.values())))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Mirror node utilities for Lazy Farms contracts")
    sub = ap.add_subparsers(dest="cmd", required=True)
    names = ", ".join(known_contracts())

    p = add_command(sub, "result", "Decode a contract transaction result")
    p.add_argument("contract", help=f"Contract name ({names})")
    p.add_argument("transaction", help="Transaction id (0.0.x@s.n) or hash")

    p = add_command(sub, "logs", "Decode every event of a contract")
    p.add_argument("contract", help=f"Contract name ({names})")
    p.add_argument("id", help="Contract id")
    p.add_argument("--save", action="store_true", help="Also write ./logs/<name>-logs-*.txt")

    p = add_command(sub, "owners", "Current owner of each NFT serial")
    p.add_argument("token")
    p.add_argument("--json", action="store_true", help="Print a serial → owner JSON object")

    return ap.parse_args(argv)


HANDLERS = {
    "result": cmd_result,
    "logs": cmd_logs,
    "owners": cmd_owners,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
