# lazy_farms/scripts/gas_station.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# LazyGasStation (LGS) pays $LAZY out to, and collects it from, the farming
# contracts registered as its users. This CLI:
#   - lists LGS admins, authorizers and contract users
#   - registers a new contract user
#   - checks live allowances through a deployed LazyAllowanceUtility
#
# Usage
# -----
#   lazy-gas-station info
#   lazy-gas-station add-user 0.0.MISSIONFACTORY --yes
#   lazy-gas-station check-allowance 0.0.UTIL 0.0.LAZY 0.0.OWNER 0.0.LGS
#   lazy-gas-station check-allowances 0.0.UTIL 0.0.T1,0.0.T2 0.0.O1,0.0.O2 0.0.S1,0.0.S2
#   lazy-gas-station check-nft-allowance 0.0.UTIL 0.0.NFT 0.0.OWNER 0.0.SPENDER
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST
# ACCOUNT_ID / PRIVATE_KEY                 # operator (ECDSA), needed by add-user
# LAZY_GAS_STATION_CONTRACT_ID=0.0.x       # default for --contract

from __future__ import annotations

import argparse

from lazy_farms.core.constants import GAS
from lazy_farms.scripts.helpers import (
    account_address,
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    print_script_header,
    resolve_contract,
    run,
)
from lazy_farms.services.abi import load_contract_abi
from lazy_farms.services.contracts import execute, log_result, query_one
from lazy_farms.services.ids import parse_comma_list, to_evm_address

PROG = "lazy-gas-station"

ROLE_VIEWS = (
    ("getAdmins", "Admins"),
    ("getAuthorizers", "Authorizers"),
    ("getContractUsers", "Contract Users"),
)


def _abi():
    return load_contract_abi("LazyGasStation")


def _utility_abi():
    return load_contract_abi("LazyAllowanceUtility")


def _contract(args: argparse.Namespace) -> str:
    return resolve_contract(args.contract, "LAZY_GAS_STATION_CONTRACT_ID")


def cmd_info(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    print_script_header("LazyGasStation Info", client.network.label, client.operator_id, contract)
    for fn, label in ROLE_VIEWS:
        members = query_one(client, contract, abi, fn)
        print(f"{label}:", ", ".join(client.mirror.account_id_for_evm(m) for m in members) or "none")


def cmd_add_user(args: argparse.Namespace) -> None:
    client = connect(args)
    contract = _contract(args)
    user = client.mirror.contract_evm_address(args.user)
    print_script_header(
        "Add LazyGasStation Contract User", client.network.label, client.operator_id, contract,
        {"Contract User": f"{args.user} ({user})"},
    )
    confirm_or_exit("Do you want to add this contract user?", assume_yes=args.yes)
    result = execute(client, contract, _abi(), "addContractUser", [user], gas=GAS.ADMIN_CALL)
    log_result(result, "Contract user added")


def cmd_check_allowance(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    print_script_header(
        "Check Live FT Allowance", client.network.label, client.operator_id, args.utility,
        {"Token": args.token, "Owner": args.owner, "Spender": args.spender},
    )
    amount = query_one(
        client, args.utility, _utility_abi(), "checkLiveAllowance",
        [
            to_evm_address(args.token),
            account_address(client, args.owner),
            client.mirror.contract_evm_address(args.spender),
        ],
    )
    print("Live Allowance:", amount)


def cmd_check_allowances(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    tokens = parse_comma_list(args.tokens)
    owners = parse_comma_list(args.owners)
    spenders = parse_comma_list(args.spenders)
    if not len(tokens) == len(owners) == len(spenders):
        raise ValueError("Token, owner and spender lists must have the same length")
    print_script_header(
        "Check Live FT Allowances", client.network.label, client.operator_id, args.utility,
        {"Tokens": ", ".join(tokens), "Owners": ", ".join(owners), "Spenders": ", ".join(spenders)},
    )
    amounts = query_one(
        client, args.utility, _utility_abi(), "checkLiveAllowances",
        [
            [to_evm_address(t) for t in tokens],
            [account_address(client, o) for o in owners],
            [client.mirror.contract_evm_address(s) for s in spenders],
        ],
    )
    for token, owner, spender, amount in zip(tokens, owners, spenders, amounts):
        print(f"Token {token}: {owner} -> {spender}: {amount}")


def cmd_check_nft_allowance(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    print_script_header(
        "Check NFT Allowance (All Serials)", client.network.label, client.operator_id, args.utility,
        {"Token": args.token, "Owner": args.owner, "Spender": args.spender},
    )
    approved = query_one(
        client, args.utility, _utility_abi(), "isApprovedForAllSerials",
        [
            to_evm_address(args.token),
            account_address(client, args.owner),
            client.mirror.contract_evm_address(args.spender),
        ],
    )
    print("Approved for all serials:", approved)


def _add_allowance_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("utility", help="LazyAllowanceUtility contract id")
    p.add_argument("token")
    p.add_argument("owner")
    p.add_argument("spender")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Inspect the LazyGasStation and live allowances")
    ap.add_argument(
        "--contract",
        default=None,
        help="LazyGasStation id (defaults to LAZY_GAS_STATION_CONTRACT_ID)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    add_command(sub, "info", "Admins, authorizers and contract users")
    p = add_command(sub, "add-user", "Register a contract user", mutating=True)
    p.add_argument("user", help="Contract id")

    _add_allowance_args(add_command(sub, "check-allowance", "Live FT allowance"))
    p = add_command(sub, "check-allowances", "Live FT allowances in bulk")
    p.add_argument("utility", help="LazyAllowanceUtility contract id")
    p.add_argument("tokens", help="Token ids, comma separated")
    p.add_argument("owners", help="Owner ids, comma separated")
    p.add_argument("spenders", help="Spender ids, comma separated")
    _add_allowance_args(add_command(sub, "check-nft-allowance", "NFT approval for all serials"))

    return ap.parse_args(argv)


HANDLERS = {
    "info": cmd_info,
    "add-user": cmd_add_user,
    "check-allowance": cmd_check_allowance,
    "check-allowances": cmd_check_allowances,
    "check-nft-allowance": cmd_check_nft_allowance,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
