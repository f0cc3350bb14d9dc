# lazy_farms/scripts/boost.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Operate the BoostManager, which shortens a running mission either by
# locking a gem NFT (returned on exit) or by spending $LAZY.
#   - inspect boost configuration, gem collections and gem levels
#   - boost a mission with a gem or with $LAZY
#   - admin: $LAZY boost terms, gem level reductions, gem collections, funds
#
# Usage
# -----
#   lazy-boost info
#   lazy-boost gems --rank SR
#   lazy-boost level 0.0.GEM1,0.0.GEM2 1,2,3
#   lazy-boost boost-gem 0.0.MMMM 0.0.GEM1 42
#   lazy-boost configure-lazy 50 10 25
#   lazy-boost configure-gem UR 30
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST
# ACCOUNT_ID / PRIVATE_KEY              # operator (ECDSA)
# BOOST_MANAGER_CONTRACT_ID=0.0.x       # default for --contract
# LAZY_GAS_STATION_CONTRACT_ID=0.0.x    # $LAZY spender for boost-lazy

from __future__ import annotations

import argparse
import time
from functools import partial

from lazy_farms.core.config import settings
from lazy_farms.core.constants import GAS, GEM_LEVELS
from lazy_farms.scripts.helpers import (
    account_address,
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    ensure_ft_allowance,
    print_script_header,
    readable,
    resolve_contract,
    run,
    show_views,
)
from lazy_farms.services.abi import load_contract_abi
from lazy_farms.services.contracts import (
    execute,
    log_result,
    query,
    query_one,
    set_nft_allowance_all,
)
from lazy_farms.services.farming import format_duration, get_level, lookup_level
from lazy_farms.services.ids import (
    format_token_amount,
    parse_comma_list,
    parse_int_list,
    parse_token_amount,
    to_evm_address,
)

PROG = "lazy-boost"

INFO_VIEWS = (
    "lazyToken",
    "lazyBoostCost",
    "lazyBoostReduction",
    "feeBurnPercentage",
    "missionFactory",
    "liveBoosts",
    "getGemCollections",
)


def _abi():
    return load_contract_abi("BoostManager")


def _contract(args: argparse.Namespace) -> str:
    return resolve_contract(args.contract, "BOOST_MANAGER_CONTRACT_ID")


def _rank(value: str) -> int:
    rank = get_level(value)
    if not 0 <= rank < len(GEM_LEVELS):
        raise ValueError(f"Invalid rank {value}. Must be 0-5 or {'|'.join(GEM_LEVELS)}")
    return rank


def _percent(value: str, low: int = 0) -> int:
    pct = int(value)
    if not low <= pct <= 100:
        raise ValueError(f"Percentage must be {low}-100, got {pct}")
    return pct


def _print_boost_data(data, indent: str = "\t") -> None:
    gems, locked, serials, reduction = data
    for gem, is_locked, group in zip(gems, locked, serials):
        print(f"{indent}Gem:", readable(gem))
        print(f"{indent}\tSerial Locked:", bool(is_locked))
        print(f"{indent}\tSerials:", ", ".join(str(s) for s in group) or "all")
    print(f"{indent}Reduction: {reduction}%")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def cmd_info(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    print_script_header("BoostManager Info", client.network.label, client.operator_id, contract)
    show_views(partial(query, client, contract, abi), [fn for fn in INFO_VIEWS if abi.has_function(fn)])
    for rank in range(len(GEM_LEVELS)):
        print("Boost", lookup_level(rank))
        _print_boost_data(query(client, contract, abi, "getBoostData", [rank]))


def cmd_gems(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    print_script_header("Boost Gems", client.network.label, client.operator_id, contract)
    if args.rank is not None:
        rank = _rank(args.rank)
        print(f"Rank: {rank} ({lookup_level(rank)})")
        _print_boost_data(query(client, contract, abi, "getBoostData", [rank]), indent="")
        return
    gems = readable(list(query_one(client, contract, abi, "getGemCollections")))
    print("Gem Collections:", ", ".join(gems) or "none")


def cmd_level(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    tokens = parse_comma_list(args.tokens)
    serials = parse_int_list(args.serials)
    print_script_header(
        "Gem Level", client.network.label, client.operator_id, contract,
        {"Tokens": ", ".join(tokens), "Serials": serials},
    )
    for token in tokens:
        for serial in serials:
            rank = query_one(client, contract, abi, "getBoostLevel", [to_evm_address(token), serial])
            print(f"{token} #{serial}: {lookup_level(int(rank))}")


def cmd_has_boost(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    contract = _contract(args)
    user = account_address(client, args.user)
    mission = client.mirror.contract_evm_address(args.mission)
    print_script_header(
        "Has Boost", client.network.label, client.operator_id, contract,
        {"User": args.user, "Mission": args.mission},
    )
    print("Has Boost:", query_one(client, contract, _abi(), "hasBoost", [user, mission]))


# ---------------------------------------------------------------------------
# Boosting
# ---------------------------------------------------------------------------


def _boostable_end(client, mission: str) -> int | None:
    """Current mission end for the operator, or None when boosting is pointless."""
    end, boosted = query(
        client, mission, load_contract_abi("Mission"), "getUserEndAndBoost", [client.sender_address]
    )
    end = int(end)
    if end == 0:
        print("ERROR: User is not on this mission. Exiting...")
        return None
    now = int(time.time())
    if end < now:
        print("User has completed this mission. No need to Boost. Exiting...")
        return None
    print("\nUser has Boosted:", bool(boosted))
    if boosted:
        print("Already boosted, exiting...")
        return None
    print("Current end:", end)
    print("Time remaining:", format_duration(end - now))
    return end


def _report_new_end(client, mission: str) -> None:
    end, boosted = query(
        client, mission, load_contract_abi("Mission"), "getUserEndAndBoost", [client.sender_address]
    )
    print("\nUser has Boosted:", bool(boosted))
    print("New end:", int(end))
    print("New time remaining:", format_duration(max(int(end) - int(time.time()), 0)))


def cmd_boost_gem(args: argparse.Namespace) -> None:
    client = connect(args)
    abi = _abi()
    contract = _contract(args)
    print_script_header(
        "Boost Mission With Gem", client.network.label, client.operator_id, contract,
        {"Mission": args.mission, "Gem": f"{args.gem} #{args.serial}"},
    )
    if _boostable_end(client, args.mission) is None:
        return
    rank = int(query_one(client, contract, abi, "getBoostLevel", [to_evm_address(args.gem), args.serial]))
    print("\nGem Boost Level:", lookup_level(rank))
    reduction = query(client, contract, abi, "getBoostData", [rank])[3]
    print("This boost reduces time remaining by:", reduction, "%")

    confirm_or_exit("\nDo you want to Boost with Gem NFT (NFT returned on exit)?", assume_yes=args.yes)
    for result in set_nft_allowance_all(client, [args.gem], contract):
        if not log_result(result, "NFT allowance"):
            return
    result = execute(
        client, contract, abi, "boostWithGemCards",
        [client.mirror.contract_evm_address(args.mission), to_evm_address(args.gem), args.serial],
        gas=GAS.BOOST_ACTIVATE + 300_000,
    )
    if log_result(result, "Boosted!"):
        _report_new_end(client, args.mission)


def cmd_boost_lazy(args: argparse.Namespace) -> None:
    client = connect(args, require_env_vars=("LAZY_GAS_STATION_CONTRACT_ID",))
    abi = _abi()
    contract = _contract(args)
    print_script_header(
        "Boost Mission With $LAZY", client.network.label, client.operator_id, contract,
        {"Mission": args.mission},
    )
    if _boostable_end(client, args.mission) is None:
        return
    cost = int(query_one(client, contract, abi, "lazyBoostCost"))
    lazy_token = client.mirror.account_id_for_evm(query_one(client, contract, abi, "lazyToken"))
    print("\nCost to boost:", format_token_amount(cost, settings.LAZY_DECIMALS, "$LAZY"), f"({lazy_token})")
    print("Consumable boost reduces time remaining by:", query_one(client, contract, abi, "lazyBoostReduction"), "%")

    if not ensure_ft_allowance(
        client, lazy_token, settings.LAZY_GAS_STATION_CONTRACT_ID, cost, args.yes
    ):
        return
    confirm_or_exit("\nDo you want to Boost with $LAZY?", assume_yes=args.yes)
    result = execute(
        client, contract, abi, "boostWithLazy",
        [client.mirror.contract_evm_address(args.mission)],
        gas=GAS.BOOST_ACTIVATE,
    )
    if log_result(result, "Boosted!"):
        _report_new_end(client, args.mission)


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def cmd_configure_lazy(args: argparse.Namespace) -> None:
    client = connect(args)
    abi = _abi()
    contract = _contract(args)
    raw = parse_token_amount(args.amount, settings.LAZY_DECIMALS)
    reduction = _percent(args.reduction, low=1)
    burn = _percent(args.burn)
    print_script_header(
        "Configure $LAZY Boost", client.network.label, client.operator_id, contract,
        {
            "Amount": f"{args.amount} $LAZY ({raw} raw)",
            "Reduction %": f"{reduction}%",
            "Burn %": f"{burn}%",
        },
    )
    confirm_or_exit("Do you want to update the $LAZY boost?", assume_yes=args.yes)
    for fn, value, label in (
        ("setLazyBoostCost", raw, "$LAZY boost cost update"),
        ("setLazyBoostReduction", reduction, "$LAZY boost reduction update"),
        ("setLazyBurnPercentage", burn, "$LAZY burn update"),
    ):
        if not log_result(execute(client, contract, abi, fn, [value]), label):
            return


def cmd_configure_gem(args: argparse.Namespace) -> None:
    client = connect(args)
    contract = _contract(args)
    rank = _rank(args.rank)
    reduction = _percent(args.reduction, low=1)
    print_script_header(
        "Configure Gem Boost", client.network.label, client.operator_id, contract,
        {"Rank": f"{rank} ({lookup_level(rank)})", "Reduction %": f"{reduction}%"},
    )
    confirm_or_exit("Do you want to update the gem boost?", assume_yes=args.yes)
    result = execute(client, contract, _abi(), "setGemBoostReduction", [rank, reduction])
    log_result(result, "Gem Level Boost update")


def cmd_remove_collection(args: argparse.Namespace) -> None:
    client = connect(args)
    abi = _abi()
    contract = _contract(args)
    rank = _rank(args.rank)
    tokens = parse_comma_list(args.tokens)
    print_script_header(
        "Remove Collection from Boost Level", client.network.label, client.operator_id, contract,
        {"Rank": f"{rank} ({lookup_level(rank)})", "Collection(s)": ", ".join(tokens)},
    )
    confirm_or_exit("Do you want to update the Gem Collections?", assume_yes=args.yes)
    for token in tokens:
        result = execute(
            client, contract, abi, "removeCollectionFromBoostLevel",
            [rank, to_evm_address(token)], gas=GAS.ADMIN_CALL,
        )
        if not log_result(result, f"Gem {token} removed from Level {lookup_level(rank)}"):
            return


def cmd_withdraw(args: argparse.Namespace) -> None:
    client = connect(args)
    contract = _contract(args)
    if args.kind == "hbar":
        fn, amount = "transferHbar", parse_token_amount(args.amount, 8)
    else:
        fn, amount = "retrieveLazy", parse_token_amount(args.amount, settings.LAZY_DECIMALS)
    print_script_header(
        "Withdraw from BoostManager", client.network.label, client.operator_id, contract,
        {"Receiver": args.receiver, "Amount": f"{args.amount} {args.kind.upper()}"},
    )
    confirm_or_exit(
        f"Do you want to transfer {args.amount} {args.kind.upper()} to {args.receiver}?",
        assume_yes=args.yes,
    )
    result = execute(
        client, contract, _abi(), fn, [to_evm_address(args.receiver), amount], gas=GAS.ADMIN_CALL
    )
    log_result(result, "Transfer")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Inspect and operate the Lazy Farms BoostManager")
    ap.add_argument(
        "--contract",
        default=None,
        help="BoostManager id (defaults to BOOST_MANAGER_CONTRACT_ID)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    add_command(sub, "info", "Boost configuration and every gem level")
    p = add_command(sub, "gems", "Gem collections, or one level's configuration")
    p.add_argument("--rank", default=None, help="0-5 or C|R|SR|UR|LR|SPE")
    p = add_command(sub, "level", "Gem level of token serials")
    p.add_argument("tokens", help="Gem token ids, comma separated")
    p.add_argument("serials", help="Serials, comma separated")
    p = add_command(sub, "has-boost", "Whether a user boosted a mission")
    p.add_argument("user")
    p.add_argument("mission")

    p = add_command(sub, "boost-gem", "Boost a mission by locking a gem NFT", mutating=True)
    p.add_argument("mission")
    p.add_argument("gem", help="Gem token id")
    p.add_argument("serial", type=int)
    p = add_command(sub, "boost-lazy", "Boost a mission by spending $LAZY", mutating=True)
    p.add_argument("mission")

    p = add_command(sub, "configure-lazy", "Set $LAZY boost cost, reduction and burn", mutating=True)
    p.add_argument("amount", help="Cost in whole $LAZY")
    p.add_argument("reduction", help="Time reduction %% (1-100)")
    p.add_argument("burn", help="Burn %% of the cost (0-100)")
    p = add_command(sub, "configure-gem", "Set the reduction of a gem level", mutating=True)
    p.add_argument("rank", help="0-5 or C|R|SR|UR|LR|SPE")
    p.add_argument("reduction", help="Time reduction %% (1-100)")
    p = add_command(sub, "remove-collection", "Remove gem collections from a level", mutating=True)
    p.add_argument("rank", help="0-5 or C|R|SR|UR|LR|SPE")
    p.add_argument("tokens", help="Gem token ids, comma separated")

    p = add_command(sub, "withdraw", "Transfer HBAR or $LAZY out of the BoostManager", mutating=True)
    p.add_argument("receiver")
    p.add_argument("kind", choices=["hbar", "lazy"])
    p.add_argument("amount", help="Whole HBAR / $LAZY")

    return ap.parse_args(argv)


HANDLERS = {
    "info": cmd_info,
    "gems": cmd_gems,
    "level": cmd_level,
    "has-boost": cmd_has_boost,
    "boost-gem": cmd_boost_gem,
    "boost-lazy": cmd_boost_lazy,
    "configure-lazy": cmd_configure_lazy,
    "configure-gem": cmd_configure_gem,
    "remove-collection": cmd_remove_collection,
    "withdraw": cmd_withdraw,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
