# lazy_farms/scripts/staking.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Operate LazyNFTStaking: users stake NFTs and earn $LAZY per day.
#   - inspect configuration, stakable collections, users and their rewards
#   - stake / unstake with a reward proof signed by the system wallet
#   - claim rewards
#   - admin: stakable collections and economic parameters
#   - verify a reward proof against the contract, summarise claims
#
# Usage
# -----
#   lazy-staking info
#   lazy-staking rewards 0.0.USER
#   lazy-staking stake 0.0.C1,0.0.C2 1,2,5:3,4 10,10,10:5,5 100 --yes
#   lazy-staking set burn 25
#   lazy-staking verify-proof 0.0.C1 1,2 10,10 0
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST
# ACCOUNT_ID / PRIVATE_KEY                # operator (ECDSA)
# SIGNING_KEY=0x...                       # system wallet, needed by stake/unstake
# LAZY_NFT_STAKING_CONTRACT_ID=0.0.x      # default for --contract
#
# Notes
# -----
# - The reward proof is generated locally right before submission; the
#   contract rejects stale proofs.

from __future__ import annotations

import argparse
from collections import defaultdict
from functools import partial

from lazy_farms.core.config import settings
from lazy_farms.core.constants import GAS, calculate_stake_gas
from lazy_farms.scripts.helpers import (
    account_address,
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    ensure_hbar_allowance,
    fail,
    ok,
    print_script_header,
    readable,
    resolve_contract,
    run,
    show_views,
)
from lazy_farms.services.abi import load_contract_abi
from lazy_farms.services.contracts import execute, log_result, query, query_one
from lazy_farms.services.economy import build_economy_cache, claimed_by_user
from lazy_farms.services.ids import (
    format_token_amount,
    from_evm_address,
    parse_comma_list,
    parse_int_list,
    parse_nested_list,
    to_evm_address,
)
from lazy_farms.services.staking import (
    build_stakes,
    count_total_nfts,
    generate_reward_proof,
    recover_proof_signer,
    validate_stake,
)

PROG = "lazy-staking"

INFO_VIEWS = (
    "lazyToken",
    "lazyGasStation",
    "lazyDelegateRegistry",
    "totalItemsStaked",
    "burnPercentage",
    "boostRateCap",
    "distributionPeriod",
    "hodlBonusRate",
    "maxBonusTimePeriods",
    "periodForBonus",
    "systemWallet",
)

#: `set` keyword → (setter, label).
SETTERS = {
    "burn": ("setBurnPercentage", "Burn Percentage"),
    "distribution": ("setDistributionPeriod", "Distribution Period (s)"),
    "hodl": ("setHodlBonusRate", "HODL Bonus Rate"),
    "max-periods": ("setMaxBonusTimePeriods", "Max Bonus Time Periods"),
    "period": ("setPeriodForBonus", "Period For Bonus (s)"),
    "boost-cap": ("setBoostRateCap", "Boost Rate Cap"),
    "system-wallet": ("setSystemWallet", "System Wallet"),
}

UNSTAKE_TINYBAR = 10


def _abi():
    return load_contract_abi("LazyNFTStaking")


def _contract(args: argparse.Namespace) -> str:
    return resolve_contract(args.contract, "LAZY_NFT_STAKING_CONTRACT_ID")


def _lazy(amount) -> str:
    return format_token_amount(int(amount), settings.LAZY_DECIMALS, "$LAZY")


def _stakes_from_args(args: argparse.Namespace):
    stakes = build_stakes(
        parse_comma_list(args.tokens),
        parse_nested_list(args.serials),
        parse_nested_list(args.rewards),
    )
    for stake in stakes:
        validate_stake(stake)
    return stakes


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def cmd_info(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    print_script_header("LazyNFTStaking Info", client.network.label, client.operator_id, contract)
    show_views(partial(query, client, contract, abi), [fn for fn in INFO_VIEWS if abi.has_function(fn)])


def cmd_collections(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    print_script_header("Stakable Collections", client.network.label, client.operator_id, contract)
    collections = query_one(client, contract, abi, "getStakableCollections")
    if not collections:
        print("No stakable collections")
        return
    for collection in collections:
        max_rate = query_one(client, contract, abi, "getMaxBaseRate", [collection])
        staked = query_one(client, contract, abi, "getNumStakedNFTs", [collection])
        print(f"{readable(collection)}: max base rate {_lazy(max_rate)}/day, {staked} staked")
        if args.serials:
            serials = query_one(client, contract, abi, "getStakedSerials", [collection])
            print("  Serials:", ", ".join(str(s) for s in serials) or "none")


def cmd_users(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    contract = _contract(args)
    print_script_header("Staking Users", client.network.label, client.operator_id, contract)
    users = query_one(client, contract, _abi(), "getStakingUsers")
    print("Staking Users:", len(users))
    for user in users:
        print(" ", from_evm_address(user) or client.mirror.account_id_for_evm(user))


def cmd_staked(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    contract = _contract(args)
    user = account_address(client, args.user)
    print_script_header(
        "Staked NFTs", client.network.label, client.operator_id, contract,
        {"User": args.user or user},
    )
    collections, serials = query(client, contract, _abi(), "getStakedNFTs", [user])
    if not collections:
        print("No NFTs staked")
        return
    for collection, group in zip(collections, serials):
        print(f"{readable(collection)}: {', '.join(str(s) for s in group)}")
    print("Total NFTs:", sum(len(g) for g in serials))


def cmd_rewards(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    contract = _contract(args)
    user = account_address(client, args.user)
    print_script_header(
        "Staking Rewards", client.network.label, client.operator_id, contract,
        {"User": args.user or user},
    )
    earned, rate, as_of, last_claimed = query(client, contract, abi, "calculateRewards", [user])
    base = query_one(client, contract, abi, "getBaseRewardRate", [user])
    boost = query_one(client, contract, abi, "getActiveBoostRate", [user])
    print("Lazy Earned:", _lazy(earned))
    print("Current Rate:", _lazy(rate), "/ day")
    print("Base Rate:", _lazy(base), "/ day")
    print("Active Boost Rate:", f"{boost}%")
    print("As Of:", as_of)
    print("Last Claimed:", last_claimed or "never")


def cmd_claimed(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    contract = _contract(args)
    print_script_header("Claimed $LAZY", client.network.label, client.operator_id, contract)
    totals: dict[str, int] = defaultdict(int)
    for event in claimed_by_user(client.mirror, contract):
        totals[event["user"]] += event["rewardAmount"]
    if not totals:
        print("No claims found")
        return
    for user, amount in sorted(totals.items(), key=lambda kv: kv[1], reverse=True):
        print(f"{client.mirror.account_id_for_evm(user)}: {_lazy(amount)}")
    print("Total Claimed:", _lazy(sum(totals.values())))


def cmd_economy(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    contract = _contract(args)
    print_script_header("Lazy Staking Economy", client.network.label, client.operator_id, contract)
    cache, _token = build_economy_cache(client.mirror, contract, client.sender_address)
    print(cache.format(client.mirror))


def cmd_verify_proof(args: argparse.Namespace) -> None:
    client = connect(args, require_signing_key=True)
    abi = _abi()
    contract = _contract(args)
    stakes = _stakes_from_args(args)
    signer = client.require_signing_account()
    print_script_header(
        "Verify Staking Proof", client.network.label, client.operator_id, contract,
        {"Stakes": [s.as_abi() for s in stakes], "Boost Rate": args.boost_rate},
    )
    proof = generate_reward_proof(client.sender_address, args.boost_rate, signer, stakes)
    print("Signature:", proof.signature_hex)
    recovered = recover_proof_signer(client.sender_address, stakes, proof)
    if recovered.lower() == signer.address.lower():
        ok(f"Locally recovered signer {recovered}")
    else:
        fail(f"Locally recovered {recovered}, expected {signer.address}")

    if abi.has_function("systemWallet"):
        wallet = query_one(client, contract, abi, "systemWallet")
        if str(wallet).lower() != signer.address.lower():
            fail(f"Contract system wallet is {wallet}, not the signing key")
    valid = query_one(
        client, contract, abi, "isValidSignature",
        [[s.as_abi() for s in stakes], proof.as_abi()],
    )
    (ok if valid else fail)(f"Contract signature check: {valid}")


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def _stake_call(args: argparse.Namespace, fn: str, title: str) -> None:
    client = connect(args, require_signing_key=True)
    contract = _contract(args)
    stakes = _stakes_from_args(args)
    print_script_header(
        title, client.network.label, client.operator_id, contract,
        {
            "Collection(s)": args.tokens,
            "Serials": [s.serials for s in stakes],
            "Reward Rates": [s.rewards for s in stakes],
            "Boost Rate": args.boost_rate,
            "Total NFTs": count_total_nfts(stakes),
        },
    )
    confirm_or_exit(f"Do you want to {fn} these NFTs?", assume_yes=args.yes)
    if fn == "unstake" and not ensure_hbar_allowance(client, contract, UNSTAKE_TINYBAR, args.yes):
        return

    proof = generate_reward_proof(
        client.sender_address, args.boost_rate, client.require_signing_account(), stakes
    )
    result = execute(
        client, contract, _abi(), fn,
        [[s.as_abi() for s in stakes], proof.as_abi()],
        gas=calculate_stake_gas(len(stakes)),
    )
    log_result(result, f"{fn.title()} executed")


def cmd_stake(args: argparse.Namespace) -> None:
    _stake_call(args, "stake", "Staking")


def cmd_unstake(args: argparse.Namespace) -> None:
    _stake_call(args, "unstake", "Unstaking")


def cmd_claim(args: argparse.Namespace) -> None:
    client = connect(args)
    abi = _abi()
    contract = _contract(args)
    print_script_header("Claim Staking Rewards", client.network.label, client.operator_id, contract)
    earned = query(client, contract, abi, "calculateRewards", [client.sender_address])[0]
    print("Claimable:", _lazy(earned))
    confirm_or_exit("Do you want to claim your staking rewards?", assume_yes=args.yes)
    result = execute(client, contract, abi, "claimRewards", [], gas=GAS.BOOST_ACTIVATE)
    log_result(result, "Rewards Claimed")


def _admin(args: argparse.Namespace, title: str, fn: str, fn_args: list, gas: int, extra: dict) -> None:
    client = connect(args)
    contract = _contract(args)
    print_script_header(title, client.network.label, client.operator_id, contract, extra)
    confirm_or_exit(f"Do you want to call {fn}?", assume_yes=args.yes)
    result = execute(client, contract, _abi(), fn, fn_args, gas=gas)
    log_result(result, title)


def _collection_args(args: argparse.Namespace) -> tuple[list[str], list[int]]:
    tokens = parse_comma_list(args.tokens)
    rates = parse_int_list(args.rates)
    if len(tokens) != len(rates):
        raise ValueError(f"{len(tokens)} token(s) but {len(rates)} rate(s)")
    return tokens, rates


def cmd_add_collection(args: argparse.Namespace) -> None:
    tokens, rates = _collection_args(args)
    _admin(
        args, "Add Stakable Collection", "setStakeableCollection",
        [[to_evm_address(t) for t in tokens], rates],
        GAS.ADMIN_CALL + len(tokens) * 1_000_000,
        {"Collections": ", ".join(tokens), "Max Base Rates": rates},
    )


def cmd_update_collection(args: argparse.Namespace) -> None:
    tokens, rates = _collection_args(args)
    _admin(
        args, "Update Stakable Collection", "updateMaxBaseRate",
        [[to_evm_address(t) for t in tokens], rates],
        len(tokens) * 100_000,
        {"Collections": ", ".join(tokens), "Max Base Rates": rates},
    )


def cmd_remove_collection(args: argparse.Namespace) -> None:
    tokens = parse_comma_list(args.tokens)
    _admin(
        args, "Remove Stakable Collection", "removeStakeableCollection",
        [[to_evm_address(t) for t in tokens]],
        len(tokens) * 250_000,
        {"Collections": ", ".join(tokens)},
    )


def cmd_set(args: argparse.Namespace) -> None:
    fn, label = SETTERS[args.setting]
    if args.setting == "system-wallet":
        if args.value:
            value = to_evm_address(args.value)
        else:
            value = connect(args, require_signing_key=True).require_signing_account().address
    else:
        if args.value is None:
            raise ValueError(f"{args.setting} needs a value")
        value = int(args.value)
    _admin(args, f"Set {label}", fn, [value], GAS.ADMIN_CALL, {label: value})


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _add_stake_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("tokens", help="Collection ids, comma separated")
    p.add_argument("serials", help="Serials per collection, e.g. 1,2,5:3,4")
    p.add_argument("rewards", help="Reward rates matching the serials, e.g. 10,10,10:5,5")
    p.add_argument("boost_rate", type=int, help="Boost rate committed in the proof")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Inspect and operate LazyNFTStaking")
    ap.add_argument(
        "--contract",
        default=None,
        help="Staking contract id (defaults to LAZY_NFT_STAKING_CONTRACT_ID)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    add_command(sub, "info", "Contract configuration")
    p = add_command(sub, "collections", "Stakable collections with rates and counts")
    p.add_argument("--serials", action="store_true", help="List staked serials as well")
    add_command(sub, "users", "Accounts with NFTs staked")
    p = add_command(sub, "staked", "NFTs staked by a user")
    p.add_argument("user", nargs="?", help="Account id (defaults to operator)")
    p = add_command(sub, "rewards", "Earned rewards and rates of a user")
    p.add_argument("user", nargs="?", help="Account id (defaults to operator)")

    _add_stake_args(add_command(sub, "stake", "Stake NFTs", mutating=True))
    _add_stake_args(add_command(sub, "unstake", "Unstake NFTs", mutating=True))
    add_command(sub, "claim", "Claim staking rewards", mutating=True)

    p = add_command(sub, "add-collection", "Make collections stakable", mutating=True)
    p.add_argument("tokens", help="Collection ids, comma separated")
    p.add_argument("rates", help="Max base rates, comma separated")
    p = add_command(sub, "update-collection", "Change max base rates", mutating=True)
    p.add_argument("tokens", help="Collection ids, comma separated")
    p.add_argument("rates", help="Max base rates, comma separated")
    p = add_command(sub, "remove-collection", "Stop collections being stakable", mutating=True)
    p.add_argument("tokens", help="Collection ids, comma separated")

    p = add_command(sub, "set", "Update an economic parameter", mutating=True)
    p.add_argument("setting", choices=list(SETTERS))
    p.add_argument(
        "value",
        nargs="?",
        help="New value; system-wallet defaults to the SIGNING_KEY address",
    )

    _add_stake_args(add_command(sub, "verify-proof", "Sign a proof and check it on-chain"))
    add_command(sub, "claimed", "$LAZY claimed per user from ClaimedRewards events")
    add_command(sub, "economy", "Full staking economy snapshot")

    return ap.parse_args(argv)


HANDLERS = {
    "info": cmd_info,
    "collections": cmd_collections,
    "users": cmd_users,
    "staked": cmd_staked,
    "rewards": cmd_rewards,
    "stake": cmd_stake,
    "unstake": cmd_unstake,
    "claim": cmd_claim,
    "add-collection": cmd_add_collection,
    "update-collection": cmd_update_collection,
    "remove-collection": cmd_remove_collection,
    "set": cmd_set,
    "verify-proof": cmd_verify_proof,
    "claimed": cmd_claimed,
    "economy": cmd_economy,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
