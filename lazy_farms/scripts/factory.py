# lazy_farms/scripts/factory.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Operate the MissionFactory: the contract that clones new missions from the
# template and keeps the registry of live missions.
#   - inspect factory wiring, admins, deployers and available slots
#   - deploy a mission
#   - bulk pause / bulk start across many missions
#   - manage admins and deployers, repoint dependencies, withdraw funds
#
# Usage
# -----
#   lazy-factory info
#   lazy-factory deploy 86400 10 0.0.Req1,0.0.Req2 0.0.Rew1 25 1767225600 1 1
#   lazy-factory bulk-pause 0.0.MM1,0.0.MM2 --unpause --yes
#   lazy-factory admin 0.0.AAAA add
#   lazy-factory settings 0.0.NEWBOOST boost
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST
# ACCOUNT_ID / PRIVATE_KEY           # operator (ECDSA)
# MISSION_FACTORY_CONTRACT_ID=0.0.x  # default for --factory

from __future__ import annotations

import argparse
from functools import partial

from lazy_farms.core.config import settings
from lazy_farms.core.constants import GAS
from lazy_farms.scripts.helpers import (
    account_address,
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    event_lines,
    print_script_header,
    readable,
    resolve_contract,
    run,
    show_views,
    wait_for_mirror,
    write_log_file,
)
from lazy_farms.services.abi import load_contract_abi
from lazy_farms.services.contracts import execute, fetch_outputs, log_result, query, query_one
from lazy_farms.services.ids import (
    parse_comma_list,
    parse_token_amount,
    to_evm_address,
)

PROG = "lazy-factory"

INFO_VIEWS = (
    "lazyToken",
    "boostManager",
    "lazyGasStation",
    "prngGenerator",
    "missionTemplate",
    "lazyDelegateRegistry",
    "getAdmins",
    "getDeployers",
    "getDeployedMissions",
)

#: `settings` keyword → factory setter.
SETTING_METHODS = {
    "boost": "updateBoostManager",
    "template": "updateMissionTemplate",
    "prng": "updatePrngContract",
    "lgs": "updateLGS",
    "lazy": "setLazyToken",
}


def _abi():
    return load_contract_abi("MissionFactory")


def _factory(args: argparse.Namespace) -> str:
    return resolve_contract(args.factory, "MISSION_FACTORY_CONTRACT_ID")


def _execute(args, title: str, fn: str, fn_args: list, gas: int | None, prompt: str, extra=None):
    client = connect(args)
    factory = _factory(args)
    print_script_header(title, client.network.label, client.operator_id, factory, extra)
    confirm_or_exit(prompt, assume_yes=args.yes)
    result = execute(client, factory, _abi(), fn, fn_args, gas=gas)
    log_result(result, title)
    return client, result


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def cmd_info(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    factory = _factory(args)
    print_script_header("MissionFactory Info", client.network.label, client.operator_id, factory)
    q = partial(query, client, factory, abi)
    show_views(q, [fn for fn in INFO_VIEWS if abi.has_function(fn)])

    missions, slots, fees = (readable(list(v)) for v in q("getAvailableSlots"))
    print("\nAvailable Slots:")
    if not missions:
        print("  none")
    for mission, slot, fee in zip(missions, slots, fees):
        print(f"  {mission}: {slot} slot(s), entry fee {fee}")


def cmd_user(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    factory = _factory(args)
    user = account_address(client, args.user)
    print_script_header(
        "MissionFactory User State", client.network.label, client.operator_id, factory,
        {"User": args.user or user},
    )
    print("Admin:", query_one(client, factory, abi, "isAdmin", [user]))
    if abi.has_function("isDeployer"):
        print("Deployer:", query_one(client, factory, abi, "isDeployer", [user]))
    missions, ends, boosted = (readable(list(v)) for v in query(client, factory, abi, "getLiveMissions", [user]))
    print("Live Missions:", len(missions))
    for mission, end, boost in zip(missions, ends, boosted):
        print(f"  {mission}: ends {end}, boosted {boost}")


def cmd_logs(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    factory = _factory(args)
    print_script_header("MissionFactory Logs", client.network.label, client.operator_id, factory)
    lines = event_lines(client, factory, _abi())
    if not lines:
        print("ERROR: No logs found")
        return
    for line in lines:
        print(line)
    if args.save:
        write_log_file("MissionFactory", factory, lines)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def cmd_deploy(args: argparse.Namespace) -> None:
    requirements = parse_comma_list(args.requirements)
    rewards = parse_comma_list(args.rewards)
    fee = parse_token_amount(args.fee, settings.LAZY_DECIMALS)
    client, result = _execute(
        args,
        "Deploy Mission",
        "deployMission",
        [
            args.duration,
            fee,
            [to_evm_address(t) for t in requirements],
            [to_evm_address(t) for t in rewards],
            args.burn,
            args.expiry,
            args.num_requirements,
            args.num_rewards,
        ],
        GAS.MISSION_DEPLOY,
        "Do you want to deploy this mission?",
        {
            "Duration": f"{args.duration}s",
            "Fee": f"{args.fee} $LAZY ({fee} base units)",
            "Requirements": ", ".join(requirements),
            "Rewards": ", ".join(rewards),
            "Burn": f"{args.burn}%",
            "Expiry": args.expiry,
            "Requirements per entry": args.num_requirements,
            "Rewards per user": args.num_rewards,
        },
    )
    if result.success:
        wait_for_mirror()
        outputs = fetch_outputs(client, result, _abi(), "deployMission")
        if outputs:
            mission = readable(outputs[0])
            print("Mission deployed:", mission, f"({client.mirror.contract_id_for_evm(outputs[0])})")


def cmd_bulk_pause(args: argparse.Namespace) -> None:
    missions = parse_comma_list(args.missions)
    pause = not args.unpause
    _execute(
        args,
        "Bulk Pause Update",
        "updateMissionPause",
        [[to_evm_address(m) for m in missions], pause],
        None,
        "Do you want to change pause status?",
        {"Missions": ", ".join(missions), "Action": "PAUSE" if pause else "UNPAUSE"},
    )


def cmd_bulk_start(args: argparse.Namespace) -> None:
    missions = parse_comma_list(args.missions)
    _execute(
        args,
        "Bulk Start Time",
        "setMissionStart",
        [[to_evm_address(m) for m in missions], args.timestamp],
        None,
        "Do you want to change the start time?",
        {"Missions": ", ".join(missions), "Start": args.timestamp},
    )


def cmd_admin(args: argparse.Namespace) -> None:
    fn = "addAdmin" if args.action == "add" else "removeAdmin"
    _execute(
        args, f"{args.action.title()} Factory Admin", fn, [to_evm_address(args.account)],
        GAS.ADMIN_CALL, f"Do you want to {args.action} {args.account} as admin?",
        {"Admin": args.account},
    )


def cmd_deployers(args: argparse.Namespace) -> None:
    deployers = parse_comma_list(args.accounts)
    add = args.action == "add"
    _execute(
        args, "Update Factory Deployers", "updateDeployers",
        [[to_evm_address(d) for d in deployers], add],
        GAS.ADMIN_CALL + len(deployers) * 50_000,
        f"Do you want to {args.action} these deployers?",
        {"Deployers": ", ".join(deployers), "Action": args.action.upper()},
    )


def cmd_settings(args: argparse.Namespace) -> None:
    fn = SETTING_METHODS[args.setting]
    _execute(
        args, "Update MissionFactory Settings", fn, [to_evm_address(args.address)],
        GAS.ADMIN_CALL, f"Do you want to update {args.setting} to {args.address}?",
        {"Setting": args.setting, "New Address": args.address},
    )


def cmd_withdraw(args: argparse.Namespace) -> None:
    if args.kind == "hbar":
        fn, amount = "transferHbar", parse_token_amount(args.amount, 8)
    else:
        fn, amount = "retrieveLazy", parse_token_amount(args.amount, settings.LAZY_DECIMALS)
    _execute(
        args, "Withdraw from MissionFactory", fn, [to_evm_address(args.receiver), amount],
        GAS.ADMIN_CALL, f"Do you want to transfer {args.amount} {args.kind.upper()} to {args.receiver}?",
        {"Receiver": args.receiver, "Amount": f"{args.amount} {args.kind.upper()}"},
    )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Inspect and operate the Lazy Farms MissionFactory")
    ap.add_argument(
        "--factory",
        default=None,
        help="MissionFactory id (defaults to MISSION_FACTORY_CONTRACT_ID)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    add_command(sub, "info", "Factory wiring, roles and missions")

    p = add_command(sub, "user", "Admin/deployer flags and live missions of a user")
    p.add_argument("user", nargs="?", help="Account id (defaults to operator)")

    p = add_command(sub, "deploy", "Deploy a new mission", mutating=True)
    p.add_argument("duration", type=int, help="Mission duration in seconds")
    p.add_argument(
        "fee",
        help="Entry fee in $LAZY (e.g. 2.5), converted to base units with LAZY_DECIMALS",
    )
    p.add_argument("requirements", help="Requirement token ids, comma separated")
    p.add_argument("rewards", help="Reward token ids, comma separated")
    p.add_argument("burn", type=int, help="Burn %% of entry fees (0-100)")
    p.add_argument("expiry", type=int, help="Last entry timestamp (unix seconds)")
    p.add_argument("num_requirements", type=int, help="NFTs required to enter")
    p.add_argument("num_rewards", type=int, help="Rewards per user")

    p = add_command(sub, "bulk-pause", "Pause (or unpause) many missions", mutating=True)
    p.add_argument("missions", help="Mission ids, comma separated")
    p.add_argument("--unpause", action="store_true")

    p = add_command(sub, "bulk-start", "Set the start time of many missions", mutating=True)
    p.add_argument("missions", help="Mission ids, comma separated")
    p.add_argument("timestamp", type=int, help="Unix seconds")

    p = add_command(sub, "admin", "Add or remove a factory admin", mutating=True)
    p.add_argument("account")
    p.add_argument("action", choices=["add", "remove"])

    p = add_command(sub, "deployers", "Add or remove mission deployers", mutating=True)
    p.add_argument("accounts", help="Account ids, comma separated")
    p.add_argument("action", choices=["add", "remove"])

    p = add_command(sub, "settings", "Repoint a factory dependency", mutating=True)
    p.add_argument("address", help="New contract/token id")
    p.add_argument("setting", choices=sorted(SETTING_METHODS))

    p = add_command(sub, "withdraw", "Transfer HBAR or $LAZY out of the factory", mutating=True)
    p.add_argument("receiver")
    p.add_argument("kind", choices=["hbar", "lazy"])
    p.add_argument("amount", help="Whole HBAR / $LAZY")

    p = add_command(sub, "logs", "Decoded factory events")
    p.add_argument("--save", action="store_true", help="Also write ./logs/MissionFactory-logs-*.txt")

    return ap.parse_args(argv)


HANDLERS = {
    "info": cmd_info,
    "user": cmd_user,
    "deploy": cmd_deploy,
    "bulk-pause": cmd_bulk_pause,
    "bulk-start": cmd_bulk_start,
    "admin": cmd_admin,
    "deployers": cmd_deployers,
    "settings": cmd_settings,
    "withdraw": cmd_withdraw,
    "logs": cmd_logs,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
