# lazy_farms/scripts/lazy_farm.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Read-only overview of the Lazy Farming system for anyone, no keys needed.
# Uses the published contract ids (mainnet by default, --testnet for the
# ids in .env) and the built-in view ABIs, so no Hardhat build is required.
#
# Usage
# -----
#   lazy-farm info
#   lazy-farm rewards 0.0.12345 --json
#   lazy-farm staked 0.0.12345
#   lazy-farm allowances 0.0.12345 --type ft
#   lazy-farm missions --details 0.0.MMMM
#   lazy-farm boost-levels
#   lazy-farm deployments --verify
#
# Notes
# -----
# - --json prints machine-readable output only (no headers).
# - Every contract read is a free mirror-node simulation.

from __future__ import annotations

import argparse
import logging
from typing import Any

from lazy_farms.core.config import settings
from lazy_farms.core.constants import (
    DECIMALS,
    GEM_LEVELS,
    MAINNET_CONTRACTS,
    TESTNET_CONTRACTS,
)
from lazy_farms.scripts.helpers import (
    add_command,
    build_parser,
    connect,
    dump_json,
    fail,
    print_header,
    print_key_values,
    print_table,
    readable,
    run,
    warn,
)
from lazy_farms.services.contracts import ContractCallError, query, query_one
from lazy_farms.services.farming import lookup_level
from lazy_farms.services.ids import format_token_amount, from_evm_address, to_evm_address
from lazy_farms.services.interfaces import (
    BOOST_MANAGER,
    DELEGATE_REGISTRY,
    GAS_STATION,
    MISSION,
    MISSION_FACTORY,
    NFT_STAKING,
)
from lazy_farms.services.mirror import MirrorNodeError

log = logging.getLogger(__name__)

PROG = "lazy-farm"

#: Testnet contract keys → `.env` settings that provide them.
TESTNET_SETTINGS = {
    "LAZY_TOKEN": "LAZY_TOKEN_ID",
    "LAZY_GAS_STATION": "LAZY_GAS_STATION_CONTRACT_ID",
    "LAZY_DELEGATE_REGISTRY": "LAZY_DELEGATE_REGISTRY_CONTRACT_ID",
    "LAZY_NFT_STAKING": "LAZY_NFT_STAKING_CONTRACT_ID",
    "MISSION_FACTORY": "MISSION_FACTORY_CONTRACT_ID",
    "BOOST_MANAGER": "BOOST_MANAGER_CONTRACT_ID",
}


def _network(args: argparse.Namespace) -> str:
    return "testnet" if args.testnet else "mainnet"


def contracts_for(network: str) -> dict[str, str]:
    """Published ids for `network`; testnet ids come from `.env`."""
    if network == "mainnet":
        return dict(MAINNET_CONTRACTS)
    out = dict(TESTNET_CONTRACTS)
    for key, setting in TESTNET_SETTINGS.items():
        out[key] = getattr(settings, setting, "") or out.get(key, "")
    return out


def contract_label(key: str) -> str:
    """`LAZY_NFT_STAKING` → `Lazy Nft Staking`."""
    return " ".join(word.capitalize() for word in key.split("_"))


def _connect(args: argparse.Namespace):
    return connect(args, require_operator=False, environment=_network(args))


def _require(contracts: dict[str, str], key: str, network: str) -> str:
    contract = contracts.get(key)
    if not contract:
        raise SystemExit(f"No contracts deployed on {network}")
    return contract


def _lazy(amount: int) -> str:
    return format_token_amount(int(amount), DECIMALS.LAZY)


def _token_label(client, address: str) -> tuple[str, str]:
    """(token id, symbol or id) for an HTS token address."""
    token_id = from_evm_address(address) or client.mirror.contract_id_for_evm(address)
    info = client.mirror.token(token_id) or {}
    return token_id, info.get("symbol") or token_id


def _count(client, contract: str, abi, fn: str) -> int | None:
    try:
        return len(query_one(client, contract, abi, fn))
    except (MirrorNodeError, ContractCallError) as e:
        log.warning("%s.%s failed: %s", abi.name, fn, e)
        return None


def _view(client, contract: str, abi, fn: str, args: list) -> Any:
    try:
        return query_one(client, contract, abi, fn, args)
    except (MirrorNodeError, ContractCallError) as e:
        log.warning("%s.%s failed: %s", abi.name, fn, e)
        return None


def _na(value: Any) -> Any:
    return "N/A" if value is None else value


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_info(args: argparse.Namespace) -> None:
    network = _network(args)
    contracts = contracts_for(network)
    lazy_token = _require(contracts, "LAZY_TOKEN", network)
    client = _connect(args)

    lazy = client.mirror.token(lazy_token) or {}
    staking = contracts["LAZY_NFT_STAKING"]
    factory = contracts["MISSION_FACTORY"]
    data = {
        "Network": network,
        "LAZY Token": lazy_token,
        "LAZY Symbol": lazy.get("symbol", "N/A"),
        "LAZY Total Supply": _lazy(int(lazy["total_supply"])) if lazy.get("total_supply") else "N/A",
        "NFT Staking Contract": staking,
        "Stakable Collections": _na(_count(client, staking, NFT_STAKING, "getStakableCollections")),
        "Active Stakers": _na(_count(client, staking, NFT_STAKING, "getStakingUsers")),
        "Mission Factory": factory,
        "Active Missions": _na(_count(client, factory, MISSION_FACTORY, "getDeployedMissions")),
        "Boost Manager": contracts.get("BOOST_MANAGER") or "N/A",
        "Delegate Registry": contracts.get("LAZY_DELEGATE_REGISTRY") or "N/A",
        "Gas Station": contracts.get("LAZY_GAS_STATION") or "N/A",
    }
    gas_station = contracts.get("LAZY_GAS_STATION")
    if gas_station:
        for key in ("MISSION_FACTORY", "LAZY_NFT_STAKING", "BOOST_MANAGER"):
            if contracts.get(key):
                registered = _view(
                    client, gas_station, GAS_STATION, "isContractUser", [to_evm_address(contracts[key])]
                )
                data[f"{contract_label(key)} Uses Gas Station"] = _na(registered)
    if args.json:
        dump_json(data)
        return
    print_header(f"Lazy Farming System - {network}")
    print_key_values(data)


def cmd_rewards(args: argparse.Namespace) -> None:
    network = _network(args)
    staking = _require(contracts_for(network), "LAZY_NFT_STAKING", network)
    client = _connect(args)
    user = to_evm_address(args.account)

    tokens, serials = query(client, staking, NFT_STAKING, "getStakedNFTs", [user])
    total = sum(len(s) for s in serials)
    if total == 0:
        if args.json:
            dump_json({"account": args.account, "totalStaked": 0, "collections": 0})
        else:
            warn("No staked NFTs found for this account")
        return

    base = int(query_one(client, staking, NFT_STAKING, "getBaseRewardRate", [user]))
    boost = int(query_one(client, staking, NFT_STAKING, "getActiveBoostRate", [user]))
    earned, rate, _as_of, last_claimed = query(client, staking, NFT_STAKING, "calculateRewards", [user])
    names = [_token_label(client, t)[1] for t in tokens]

    if args.json:
        dump_json(
            {
                "account": args.account,
                "evmAddress": user,
                "totalStaked": total,
                "collections": len(tokens),
                "collectionNames": names,
                "baseRate": str(base),
                "boostRate": str(boost),
                "pendingRewards": str(earned),
                "currentRate": str(rate),
                "lastClaimed": int(last_claimed),
            }
        )
        return
    print_header(f"Staking Info - {network}")
    print_key_values(
        {
            "Account": args.account,
            "EVM Address": user,
            "Total Staked NFTs": total,
            "Collections Staked": len(tokens),
            "Collection Names": ", ".join(names),
            "Base Reward Rate": f"{_lazy(base)} $LAZY/day",
            "Active Boost Rate": f"{boost}%",
            "Current Rate": f"{_lazy(rate)} $LAZY/day",
            "Pending Rewards": f"{_lazy(earned)} $LAZY",
        }
    )


def _delegate_wallet(client, contracts: dict[str, str], user: str) -> str | None:
    """Wallet `user` delegated to in the registry, or None."""
    registry = contracts.get("LAZY_DELEGATE_REGISTRY")
    if not registry:
        return None
    wallet = _view(client, registry, DELEGATE_REGISTRY, "getDelegateWallet", [user])
    if not wallet or int(wallet, 16) == 0:
        return None
    return readable(wallet)


def cmd_staked(args: argparse.Namespace) -> None:
    network = _network(args)
    contracts = contracts_for(network)
    staking = _require(contracts, "LAZY_NFT_STAKING", network)
    client = _connect(args)
    user = to_evm_address(args.account)
    delegate = _delegate_wallet(client, contracts, user)

    tokens, serials = query(client, staking, NFT_STAKING, "getStakedNFTs", [user])
    if not tokens:
        if args.json:
            dump_json({"account": args.account, "stakedNFTs": []})
        else:
            warn("No staked NFTs found for this account")
        return

    total = sum(len(s) for s in serials)
    if args.json:
        dump_json(
            {
                "account": args.account,
                "network": network,
                "stakedNFTs": [
                    {"token": readable(t), "serials": list(s), "count": len(s)}
                    for t, s in zip(tokens, serials)
                ],
                "totalStaked": total,
                "delegateWallet": delegate,
            }
        )
        return

    rows = []
    for token, group in zip(tokens, serials):
        token_id, symbol = _token_label(client, token)
        shown = ", ".join(str(s) for s in group[:10]) + ("..." if len(group) > 10 else "")
        rows.append({"Collection": symbol, "Token": token_id, "Serials": shown, "Count": len(group)})
    print_header(f"Staked NFTs - {args.account}")
    print_table(rows, ["Collection", "Token", "Serials", "Count"])
    print(f"\nTotal staked: {total} NFTs across {len(tokens)} collection(s)")
    if delegate:
        print(f"Delegate wallet: {delegate}")


def _known_contract(spender: str, contracts: dict[str, str]) -> str:
    for key, contract in contracts.items():
        if contract and contract == spender:
            return contract_label(key)
    return ""


def cmd_allowances(args: argparse.Namespace) -> None:
    network = _network(args)
    contracts = contracts_for(network)
    client = _connect(args)
    results: dict[str, list[dict[str, Any]]] = {}

    if args.type in ("all", "ft"):
        results["ftAllowances"] = [
            {
                "Token": a.get("token_id"),
                "Spender": a.get("spender"),
                "Amount": _lazy(int(a.get("amount", 0))),
                "Is Contract": _known_contract(a.get("spender"), contracts),
            }
            for a in client.mirror.ft_allowances(args.account)
        ]
    if args.type in ("all", "nft"):
        results["nftAllowances"] = [
            {
                "Token": a.get("token_id"),
                "Spender": a.get("spender"),
                "Approved For All": "Yes" if a.get("approved_for_all") else "No",
                "Is Contract": _known_contract(a.get("spender"), contracts),
            }
            for a in client.mirror.nft_allowances(args.account)
        ]
    if args.type in ("all", "hbar"):
        results["hbarAllowances"] = [
            {
                "Spender": a.get("spender"),
                "Amount": format_token_amount(int(a.get("amount", 0)), DECIMALS.HBAR, "HBAR"),
                "Is Contract": _known_contract(a.get("spender"), contracts),
            }
            for a in client.mirror.hbar_allowances(args.account)
        ]

    if args.json:
        dump_json({"account": args.account, "network": network, **results})
        return

    print_header(f"Allowances - {args.account}")
    sections = (
        ("ftAllowances", "Fungible Token Allowances", "FT", ["Token", "Spender", "Amount", "Is Contract"]),
        ("nftAllowances", "NFT Allowances", "NFT", ["Token", "Spender", "Approved For All", "Is Contract"]),
        ("hbarAllowances", "HBAR Allowances", "HBAR", ["Spender", "Amount", "Is Contract"]),
    )
    for key, title, short, headers in sections:
        if key not in results:
            continue
        print(f"\n{title}:")
        if results[key]:
            print_table(results[key], headers)
        else:
            warn(f"No {short} allowances found")


def _mission_details(client, network: str, mission: str, as_json: bool) -> None:
    fee = int(query_one(client, mission, MISSION, "entryFee"))
    slots = int(query_one(client, mission, MISSION, "getSlotsRemaining"))
    _req, _qty, reward_collection, rewards_per_user, duration, max_participants, _tier = query(
        client, mission, MISSION, "getRequirements"
    )
    users = query_one(client, mission, MISSION, "getUsersOnMission")
    if as_json:
        dump_json(
            {
                "mission": mission,
                "network": network,
                "entryFee": fee,
                "slotsRemaining": slots,
                "duration": int(duration),
                "maxParticipants": int(max_participants),
                "rewardsPerUser": int(rewards_per_user),
                "rewardCollection": readable(reward_collection),
                "activeUsers": len(users),
            }
        )
        return
    print_header("Mission Details")
    print_key_values(
        {
            "Mission ID": mission,
            "Entry Fee": f"{_lazy(fee)} $LAZY",
            "Slots Remaining": slots,
            "Duration": f"{int(duration)} seconds ({int(duration) / 3600:.1f} hours)",
            "Max Participants": int(max_participants),
            "Rewards Per User": int(rewards_per_user),
            "Reward Collection": readable(reward_collection),
            "Active Users": len(users),
        }
    )


def cmd_missions(args: argparse.Namespace) -> None:
    network = _network(args)
    factory = _require(contracts_for(network), "MISSION_FACTORY", network)
    client = _connect(args)
    if args.details:
        _mission_details(client, network, args.details, args.json)
        return

    missions, slots, fees = query(client, factory, MISSION_FACTORY, "getAvailableSlots")
    if args.json:
        dump_json(
            {
                "network": network,
                "totalCount": len(missions),
                "missions": [
                    {"index": i, "address": readable(m), "slotsAvailable": int(s), "entryFee": int(f)}
                    for i, (m, s, f) in enumerate(zip(missions, slots, fees))
                ],
            }
        )
        return
    if not missions:
        warn("No missions deployed")
        return
    print_header(f"Missions - {network}")
    print(f"Total missions: {len(missions)}\n")
    print_table(
        [
            {
                "Index": i,
                "Address": readable(m),
                "Slots Available": int(s),
                "Entry Fee": f"{_lazy(f)} $LAZY",
            }
            for i, (m, s, f) in enumerate(zip(missions, slots, fees))
        ],
        ["Index", "Address", "Slots Available", "Entry Fee"],
    )


def cmd_boost_levels(args: argparse.Namespace) -> None:
    network = _network(args)
    boost_manager = _require(contracts_for(network), "BOOST_MANAGER", network)
    client = _connect(args)
    levels = []
    for rank in range(len(GEM_LEVELS)):
        collections, _locked, _serials, reduction = query(
            client, boost_manager, BOOST_MANAGER, "getBoostData", [rank]
        )
        levels.append(
            {
                "level": rank,
                "name": lookup_level(rank),
                "boostReduction": int(reduction),
                "collections": readable(list(collections)),
            }
        )
    if args.json:
        dump_json({"network": network, "boostManager": boost_manager, "levels": levels})
        return
    print_header(f"Boost Levels - {network}")
    print(f"Boost Manager: {boost_manager}\n")
    print_table(
        [
            {
                "Level": lv["level"],
                "Name": lv["name"],
                "Boost Reduction %": f"{lv['boostReduction']}%",
                "Collections": len(lv["collections"]),
            }
            for lv in levels
        ],
        ["Level", "Name", "Boost Reduction %", "Collections"],
    )


def cmd_deployments(args: argparse.Namespace) -> None:
    network = _network(args)
    contracts = contracts_for(network)
    client = _connect(args) if args.verify else None
    rows = []
    for key, contract in contracts.items():
        status = "Configured" if contract else "Not deployed"
        if client is not None and contract:
            if key.endswith("_TOKEN"):
                found = client.mirror.token(contract) is not None
            else:
                found = client.mirror.contract(contract) is not None
            status = "Verified" if found else "Not found"
        rows.append({"Contract": contract_label(key), "Address": contract or "N/A", "Status": status})

    if args.json:
        dump_json(
            {
                "network": network,
                "verified": bool(args.verify),
                "contracts": {
                    r["Contract"]: {
                        "address": None if r["Address"] == "N/A" else r["Address"],
                        "status": r["Status"],
                    }
                    for r in rows
                },
            }
        )
        return
    print_header(f"Deployments - {network}")
    if args.verify:
        print("(Contracts verified against network)\n")
    print_table(rows, ["Contract", "Address", "Status"])
    missing = [r["Contract"] for r in rows if r["Status"] == "Not found"]
    if missing:
        fail(f"Not found on {network}: {', '.join(missing)}")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Read-only Lazy Farming system queries")
    sub = ap.add_subparsers(dest="cmd", required=True)

    add_command(sub, "info", "System information and contract details")
    p = add_command(sub, "rewards", "Staking rates and pending rewards of an account")
    p.add_argument("account", help="Account id (e.g. 0.0.12345) or EVM address")
    p = add_command(sub, "staked", "NFTs staked by an account")
    p.add_argument("account", help="Account id (e.g. 0.0.12345) or EVM address")
    p = add_command(sub, "allowances", "Allowances granted by an account")
    p.add_argument("account", help="Account id (e.g. 0.0.12345)")
    p.add_argument("--type", choices=["all", "ft", "nft", "hbar"], default="all")
    p = add_command(sub, "missions", "Missions with free slots")
    p.add_argument("--details", metavar="MISSION", default=None, help="Show one mission")
    add_command(sub, "boost-levels", "Gem boost levels")
    p = add_command(sub, "deployments", "Published contract ids")
    p.add_argument("--verify", action="store_true", help="Check each contract exists on the network")

    for p in sub.choices.values():
        p.add_argument("--testnet", action="store_true", help="Use testnet instead of mainnet")
        p.add_argument("--json", action="store_true", help="Output as JSON")

    return ap.parse_args(argv)


HANDLERS = {
    "info": cmd_info,
    "rewards": cmd_rewards,
    "staked": cmd_staked,
    "allowances": cmd_allowances,
    "missions": cmd_missions,
    "boost-levels": cmd_boost_levels,
    "deployments": cmd_deployments,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
