# lazy_farms/scripts/delegate.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Manage NFT delegation in the LazyDelegateRegistry. A delegated serial can be
# used by the target wallet (e.g. a hot wallet) without moving the NFT.
#
# Usage
# -----
#   lazy-delegate delegate 0.0.TOKEN 1,2,3 0.0.TARGET
#   lazy-delegate revoke 0.0.TOKEN 1,2,3 --yes
#   lazy-delegate check 0.0.TOKEN 7
#   lazy-delegate delegated-to 0.0.WALLET
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST
# ACCOUNT_ID / PRIVATE_KEY                     # operator (ECDSA)
# LAZY_DELEGATE_REGISTRY_CONTRACT_ID=0.0.x     # default for --registry

from __future__ import annotations

import argparse

from lazy_farms.core.constants import GAS, ZERO_ADDRESS
from lazy_farms.scripts.helpers import (
    account_address,
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    print_script_header,
    readable,
    resolve_contract,
    run,
)
from lazy_farms.services.abi import load_contract_abi
from lazy_farms.services.contracts import execute, log_result, query, query_one
from lazy_farms.services.ids import parse_int_list, to_evm_address

PROG = "lazy-delegate"


def _abi():
    return load_contract_abi("LazyDelegateRegistry")


def _registry(args: argparse.Namespace) -> str:
    return resolve_contract(args.registry, "LAZY_DELEGATE_REGISTRY_CONTRACT_ID")


def _account(client, address: str) -> str:
    if str(address).lower() == ZERO_ADDRESS:
        return "nobody"
    return client.mirror.account_id_for_evm(address)


def _print_delegated_nfts(client, registry: str, abi, wallet: str) -> None:
    tokens, serials = query(client, registry, abi, "getNFTsDelegatedTo", [wallet])
    if not tokens:
        print("  none")
    for token, group in zip(tokens, serials):
        print(f"  {readable(token)}: {', '.join(str(s) for s in group)}")


def cmd_delegate(args: argparse.Namespace) -> None:
    client = connect(args)
    registry = _registry(args)
    serials = parse_int_list(args.serials)
    target = account_address(client, args.target)
    print_script_header(
        "Delegate NFTs", client.network.label, client.operator_id, registry,
        {"Token": args.token, "Serials": serials, "Delegate To": f"{args.target} ({target})"},
    )
    confirm_or_exit("Do you want to delegate these NFTs?", assume_yes=args.yes)
    result = execute(
        client, registry, _abi(), "delegateNFT",
        [target, to_evm_address(args.token), serials],
        gas=GAS.BOOST_ACTIVATE,
    )
    log_result(result, "Delegation")


def cmd_revoke(args: argparse.Namespace) -> None:
    client = connect(args)
    registry = _registry(args)
    serials = parse_int_list(args.serials)
    print_script_header(
        "Revoke NFT Delegation", client.network.label, client.operator_id, registry,
        {"Token": args.token, "Serials": serials},
    )
    confirm_or_exit("Do you want to revoke delegation of these NFTs?", assume_yes=args.yes)
    result = execute(
        client, registry, _abi(), "revokeDelegateNFT",
        [to_evm_address(args.token), serials],
        gas=GAS.BOOST_ACTIVATE,
    )
    log_result(result, "Revoke delegation")


def cmd_check(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    registry = _registry(args)
    print_script_header(
        "Check NFT Delegation", client.network.label, client.operator_id, registry,
        {"Token": args.token, "Serial": args.serial},
    )
    delegate = query_one(
        client, registry, abi, "getNFTDelegatedTo", [to_evm_address(args.token), args.serial]
    )
    print(f"NFT {args.serial} is delegated to: {_account(client, delegate)}")
    if str(delegate).lower() != ZERO_ADDRESS:
        print(f"NFTs delegated to {_account(client, delegate)}:")
        _print_delegated_nfts(client, registry, abi, delegate)
    print("(Global) Total Serials Delegated:", query_one(client, registry, abi, "totalSerialsDelegated"))


def cmd_delegated_to(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    registry = _registry(args)
    wallet = account_address(client, args.wallet)
    print_script_header(
        "Delegated To", client.network.label, client.operator_id, registry,
        {"Wallet": args.wallet or wallet},
    )
    print("NFTs delegated to wallet:")
    _print_delegated_nfts(client, registry, abi, wallet)
    wallets = query_one(client, registry, abi, "getWalletsDelegatedTo", [wallet])
    print("Wallets delegated to wallet:", ", ".join(_account(client, w) for w in wallets) or "none")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Manage NFT delegation in the LazyDelegateRegistry")
    ap.add_argument(
        "--registry",
        default=None,
        help="Registry id (defaults to LAZY_DELEGATE_REGISTRY_CONTRACT_ID)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = add_command(sub, "delegate", "Delegate NFT serials to a wallet", mutating=True)
    p.add_argument("token")
    p.add_argument("serials", help="Serials, comma separated")
    p.add_argument("target", help="Wallet receiving the delegation")

    p = add_command(sub, "revoke", "Revoke delegation of NFT serials", mutating=True)
    p.add_argument("token")
    p.add_argument("serials", help="Serials, comma separated")

    p = add_command(sub, "check", "Who an NFT serial is delegated to")
    p.add_argument("token")
    p.add_argument("serial", type=int)

    p = add_command(sub, "delegated-to", "NFTs and wallets delegated to a wallet")
    p.add_argument("wallet", nargs="?", help="Account id (defaults to operator)")

    return ap.parse_args(argv)


HANDLERS = {
    "delegate": cmd_delegate,
    "revoke": cmd_revoke,
    "check": cmd_check,
    "delegated-to": cmd_delegated_to,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
