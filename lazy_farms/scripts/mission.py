# lazy_farms/scripts/mission.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Operate on a single Mission contract (one farming mission):
#   - inspect mission state and a user's participation
#   - enter / leave / claim as a participant
#   - admin: pause, close, schedule, fees, requirement and reward pools, funds
#   - dump decoded mission events
#
# Usage
# -----
#   lazy-mission info 0.0.MMMM
#   lazy-mission enter 0.0.MMMM 0.0.Req1,0.0.Req2 1,2,5:2,3,4
#   lazy-mission add-rewards 0.0.MMMM 0.0.TTTT random:10:1-100 --yes
#   lazy-mission withdraw 0.0.MMMM 0.0.RECEIVER lazy 100
#   lazy-mission logs 0.0.MMMM --save
#
# Environment (.env)
# ------------------
# ENVIRONMENT=TEST
# ACCOUNT_ID=0.0.xxxx
# PRIVATE_KEY=302e...                  # ECDSA key of ACCOUNT_ID
# LAZY_TOKEN_ID=0.0.xxxx               # needed by enter
# LAZY_GAS_STATION_CONTRACT_ID=0.0.xx  # needed by enter
# BOOST_MANAGER_CONTRACT_ID=0.0.xx     # needed by leave / claim
#
# Notes
# -----
# - Mutating commands prompt Y/N; pass --yes to skip.
# - The full Mission ABI is read from the Hardhat artifacts (ARTIFACTS_DIR).

from __future__ import annotations

import argparse
import random
import time
from datetime import datetime, timezone
from functools import partial

from lazy_farms.core.config import settings
from lazy_farms.core.constants import GAS
from lazy_farms.scripts.helpers import (
    account_address,
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    ensure_ft_allowance,
    ensure_hbar_allowance,
    event_lines,
    print_script_header,
    readable,
    run,
    show_views,
    write_log_file,
)
from lazy_farms.services.abi import load_contract_abi
from lazy_farms.services.contracts import (
    execute,
    log_result,
    query,
    query_one,
    set_nft_allowance_all,
)
from lazy_farms.services.farming import format_duration, mission_status, time_remaining
from lazy_farms.services.ids import (
    format_token_amount,
    parse_comma_list,
    parse_entity_id,
    parse_int_list,
    parse_nested_list,
    parse_token_amount,
    to_evm_address,
)

PROG = "lazy-mission"

INFO_VIEWS = (
    "isPaused",
    "getSlotsRemaining",
    "entryFee",
    "getUsersOnMission",
    "missionFactory",
    "boostManager",
    "prngGenerator",
    "lazyGasStation",
    "lazyDelegateRegistry",
    "getRequirements",
    "getRewards",
)

#: HBAR dust allowances the mission and boost manager pull on exit.
MISSION_EXIT_TINYBAR = 10
BOOST_EXIT_TINYBAR = 1
#: `getUsersBoostInfo` boost type for gem boosts.
GEM_BOOST = 2

MISSION_STATE_LABELS = (
    "Factory",
    "Creator",
    "Duration (s)",
    "Entry Fee",
    "Fee Burn Percentage",
    "Last Entry Timestamp",
    "Start Timestamp",
    "Min Entry Fee",
    "Decrement Amount",
    "Decrement Interval (s)",
    "Total Serials As Rewards",
    "Number Of Requirements",
    "Number Of Rewards",
)


def _abi():
    return load_contract_abi("Mission")


def _ts(value: int) -> str:
    return datetime.fromtimestamp(int(value), timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def cmd_info(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    print_script_header("Mission Info", client.network.label, client.operator_id, args.mission)
    q = partial(query, client, args.mission, abi)
    show_views(q, [fn for fn in INFO_VIEWS if abi.has_function(fn)])

    if abi.has_function("getDecrementDetails"):
        interval, start = (int(v) for v in q("getDecrementDetails")[:2])
        if start > 0:
            print("**DUTCH AUCTION engaged")
            print("Decrement every:", format_duration(interval))
            print("Decrement Start Time:", _ts(start))
        else:
            print("Fixed Cost Entry")

    if abi.has_function("missionState"):
        state = readable(list(q("missionState")))
        print("Mission State:")
        for label, value in zip(MISSION_STATE_LABELS, state):
            print(f"\t{label}: {value}")


def cmd_user(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    abi = _abi()
    user = account_address(client, args.user)
    print_script_header(
        "Mission User State", client.network.label, client.operator_id, args.mission,
        {"User": args.user or user},
    )
    q = partial(query_one, client, args.mission, abi)
    if abi.has_function("isAdmin"):
        print("Admin:", q("isAdmin", [user]))
    participant = q("isParticipant", [user])
    print("Participant:", participant)
    if not participant:
        return
    entry, end, boosted = query(client, args.mission, abi, "getMissionParticipation", [user])
    print("Entered:", _ts(entry))
    print("Completes:", _ts(end), f"({format_duration(max(time_remaining(end), 0))} remaining)")
    print("Status:", mission_status(entry, end))
    print("Boosted:", boosted)
    if boosted and abi.has_function("getUsersBoostInfo"):
        print("Boost:", readable(list(query(client, args.mission, abi, "getUsersBoostInfo", [user]))))


def cmd_logs(args: argparse.Namespace) -> None:
    client = connect(args, require_operator=False)
    print_script_header("Mission Logs", client.network.label, client.operator_id, args.mission)
    lines = event_lines(client, args.mission, _abi())
    if not lines:
        print("ERROR: No logs found")
        return
    for line in lines:
        print(line)
    if args.save:
        write_log_file("Mission", args.mission, lines)


# ---------------------------------------------------------------------------
# Participant actions
# ---------------------------------------------------------------------------


def cmd_enter(args: argparse.Namespace) -> None:
    client = connect(
        args, require_env_vars=("LAZY_TOKEN_ID", "LAZY_GAS_STATION_CONTRACT_ID")
    )
    abi = _abi()
    tokens = parse_comma_list(args.tokens)
    serials = parse_nested_list(args.serials)
    if len(tokens) != len(serials):
        raise ValueError(f"{len(tokens)} token(s) but {len(serials)} serial group(s)")
    print_script_header(
        "Enter Mission", client.network.label, client.operator_id, args.mission,
        {"Tokens": ", ".join(tokens), "Serials": serials},
    )

    fee = int(query_one(client, args.mission, abi, "entryFee"))
    print("\n-Entry Fee:", format_token_amount(fee, settings.LAZY_DECIMALS, "$LAZY"))
    if fee and not ensure_ft_allowance(
        client, settings.LAZY_TOKEN_ID, settings.LAZY_GAS_STATION_CONTRACT_ID, fee, args.yes
    ):
        return

    confirm_or_exit(
        "Do you want to set NFT allowances and enter the mission?", assume_yes=args.yes
    )
    for result in set_nft_allowance_all(client, tokens, args.mission):
        if not log_result(result, "NFT allowance"):
            return

    result = execute(
        client,
        args.mission,
        abi,
        "enterMission",
        [[to_evm_address(t) for t in tokens], serials],
        gas=GAS.MISSION_ENTER,
    )
    log_result(result, "Mission Entered")


def _exit_allowances(client, abi, mission: str, assume_yes: bool) -> bool:
    """HBAR dust allowances required before leaving or claiming."""
    end, _boosted = query(client, mission, abi, "getUserEndAndBoost", [client.sender_address])
    print("Mission Completes:", int(end), "->", _ts(end))
    print("To withdraw you need an allowance to the Mission for HBAR dust")
    if not ensure_hbar_allowance(client, mission, MISSION_EXIT_TINYBAR, assume_yes):
        return False
    if abi.has_function("getUsersBoostInfo") and settings.BOOST_MANAGER_CONTRACT_ID:
        boost = query(client, mission, abi, "getUsersBoostInfo", [client.sender_address])
        if boost and int(boost[0]) == GEM_BOOST:
            print("Mission has a gem boost, you need an allowance to the boost manager")
            return ensure_hbar_allowance(
                client, settings.BOOST_MANAGER_CONTRACT_ID, BOOST_EXIT_TINYBAR, assume_yes
            )
    return True


def cmd_leave(args: argparse.Namespace) -> None:
    client = connect(args)
    abi = _abi()
    print_script_header("Leave Mission", client.network.label, client.operator_id, args.mission)
    end, _ = query(client, args.mission, abi, "getUserEndAndBoost", [client.sender_address])
    if int(end) < time.time():
        print("Mission completed. Try claiming rewards instead")
        return
    if not _exit_allowances(client, abi, args.mission, args.yes):
        return
    confirm_or_exit("Do you want to exit the mission (no rewards)?", assume_yes=args.yes)
    result = execute(client, args.mission, abi, "leaveMission", gas=GAS.MISSION_LEAVE)
    log_result(result, "Mission Left")


def cmd_claim(args: argparse.Namespace) -> None:
    client = connect(args)
    abi = _abi()
    print_script_header("Claim Rewards", client.network.label, client.operator_id, args.mission)
    end, _ = query(client, args.mission, abi, "getUserEndAndBoost", [client.sender_address])
    if int(end) > time.time():
        print(f"Mission not complete: {format_duration(time_remaining(end))} remaining")
        return
    if not _exit_allowances(client, abi, args.mission, args.yes):
        return
    confirm_or_exit("Do you want to claim your rewards?", assume_yes=args.yes)
    result = execute(client, args.mission, abi, "claimRewards", gas=GAS.MISSION_CLAIM)
    log_result(result, "Rewards Claimed")


# ---------------------------------------------------------------------------
# Admin actions
# ---------------------------------------------------------------------------


def _admin_call(args, title: str, fn: str, fn_args: list, gas: int, prompt: str, extra=None) -> None:
    client = connect(args)
    print_script_header(title, client.network.label, client.operator_id, args.mission, extra)
    confirm_or_exit(prompt, assume_yes=args.yes)
    result = execute(client, args.mission, _abi(), fn, fn_args, gas=gas)
    log_result(result, title)


def cmd_pause(args: argparse.Namespace) -> None:
    paused = args.cmd == "pause"
    _admin_call(
        args,
        "Pause Mission" if paused else "Unpause Mission",
        "updatePauseStatus",
        [paused],
        GAS.CONTRACT_DEPLOY,
        f"Do you want to {'pause' if paused else 'unpause'} the mission?",
    )


def cmd_close(args: argparse.Namespace) -> None:
    _admin_call(
        args, "Close Mission", "closeMission", [], GAS.MISSION_LEAVE,
        "Do you want to close the mission? This cannot be undone",
    )


def cmd_set_start(args: argparse.Namespace) -> None:
    _admin_call(
        args, "Set Mission Start", "setStartTimestamp", [args.timestamp], GAS.ADMIN_CALL,
        "Do you want to set the start time?", {"Start": _ts(args.timestamp)},
    )


def cmd_set_decreasing_fee(args: argparse.Namespace) -> None:
    _admin_call(
        args,
        "Set Decreasing Entry Fee",
        "setDecreasingEntryFee",
        [args.start, args.min_fee, args.decrement, args.interval],
        GAS.BOOST_ACTIVATE,
        "Do you want to set the decreasing entry fee?",
        {
            "Start": _ts(args.start),
            "Min Fee": args.min_fee,
            "Decrement": args.decrement,
            "Interval": format_duration(args.interval),
        },
    )


def _select_serials(selection: str, owned: list[int]) -> list[int]:
    """
    `all`, `random:N`, `random:N:start-end` or a comma list (must be owned).

    Raises:
        ValueError: not enough serials or serials not owned.
    """
    if selection == "all":
        return owned
    if selection.startswith("random:"):
        parts = selection.split(":")
        count = int(parts[1])
        pool = owned
        if len(parts) > 2 and parts[2]:
            start, end = (int(n) for n in parts[2].split("-"))
            pool = [s for s in owned if start <= s <= end]
            print(f"Filtered to range {start}-{end}: {len(pool)} serials")
        if count > len(pool):
            raise ValueError(f"Requested {count} serials but only {len(pool)} available")
        return random.sample(pool, count)
    serials = parse_int_list(selection)
    missing = [s for s in serials if s not in owned]
    if missing:
        raise ValueError(f"The following serials are not owned: {', '.join(map(str, missing))}")
    return serials


def cmd_add_rewards(args: argparse.Namespace) -> None:
    client = connect(args)
    token = client.mirror.token(args.token)
    if not token:
        raise ValueError(f"Token not found: {args.token}")
    owned = sorted(int(n["serial_number"]) for n in client.mirror.nfts_owned(client.operator_id, args.token))
    if not owned:
        raise ValueError(f"No serials found for token {args.token}")
    print("Token Info:", token.get("name"), f"({token.get('symbol')})")
    print("Total owned serials:", len(owned))
    serials = _select_serials(args.serials, owned)
    print_script_header(
        "Add Rewards to Mission", client.network.label, client.operator_id, args.mission,
        {"Token": f"{args.token} - {token.get('name')}", "Serials Count": len(serials),
         "Serials": ", ".join(map(str, serials[:50])) + (" ..." if len(serials) > 50 else "")},
    )
    confirm_or_exit("Do you want to add these reward serials to the mission?", assume_yes=args.yes)
    for result in set_nft_allowance_all(client, [args.token], args.mission):
        if not log_result(result, "NFT allowance"):
            return
    result = execute(
        client,
        args.mission,
        _abi(),
        "addRewardSerials",
        [to_evm_address(args.token), serials],
        gas=GAS.ADMIN_CALL + len(serials) * 100_000,
    )
    log_result(result, "Reward serials added")


def cmd_add_collections(args: argparse.Namespace) -> None:
    requirements = parse_comma_list(args.requirements)
    rewards = parse_comma_list(args.rewards)
    _admin_call(
        args,
        "Add Requirement and Reward Collections",
        "addRequirementAndRewardCollections",
        [[to_evm_address(t) for t in requirements], [to_evm_address(t) for t in rewards]],
        GAS.ADMIN_CALL * 2 + (len(requirements) + len(rewards)) * 500_000,
        "Do you want to add these requirement/reward collections to the mission?",
        {"Requirements": ", ".join(requirements), "Rewards": ", ".join(rewards)},
    )


def cmd_adjust_serials(args: argparse.Namespace) -> None:
    serials = parse_int_list(args.serials)
    fn = "addRequirementSerials" if args.action == "add" else "removeRequirementSerials"
    _admin_call(
        args,
        "Adjust Requirement Serials",
        fn,
        [to_evm_address(args.token), serials],
        GAS.ADMIN_CALL + len(serials) * 50_000,
        f"Do you want to {args.action} these requirement serials?",
        {"Token": args.token, "Serials": serials, "Action": args.action.upper()},
    )


def cmd_withdraw(args: argparse.Namespace) -> None:
    parse_entity_id(args.receiver)
    if args.kind == "hbar":
        fn, amount, shown = "transferHbar", parse_token_amount(args.amount, 8), f"{args.amount} HBAR"
    else:
        fn = "retrieveLazy"
        amount = parse_token_amount(args.amount, settings.LAZY_DECIMALS)
        shown = f"{args.amount} $LAZY"
    _admin_call(
        args, "Withdraw from Mission", fn, [to_evm_address(args.receiver), amount],
        GAS.ADMIN_CALL, f"Do you want to transfer {shown} to {args.receiver}?",
        {"Receiver": args.receiver, "Amount": shown},
    )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "Inspect and operate a Lazy Farms mission contract")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = add_command(sub, "info", "Mission configuration and state")
    p.add_argument("mission", help="Mission contract id")

    p = add_command(sub, "user", "A user's participation in the mission")
    p.add_argument("mission")
    p.add_argument("user", nargs="?", help="Account id (defaults to operator)")

    p = add_command(sub, "enter", "Enter the mission with requirement NFTs", mutating=True)
    p.add_argument("mission")
    p.add_argument("tokens", help="Requirement token ids, comma separated")
    p.add_argument("serials", help="Serials per token, e.g. 1,2,5:2,3,4")

    for name, help_text in (("leave", "Leave the mission early (no rewards)"),
                            ("claim", "Claim rewards once the mission completes"),
                            ("pause", "Pause new entries"),
                            ("unpause", "Resume new entries"),
                            ("close", "Close the mission permanently")):
        p = add_command(sub, name, help_text, mutating=True)
        p.add_argument("mission")

    p = add_command(sub, "set-start", "Set the mission start timestamp", mutating=True)
    p.add_argument("mission")
    p.add_argument("timestamp", type=int, help="Unix seconds")

    p = add_command(sub, "set-decreasing-fee", "Configure a decreasing entry fee", mutating=True)
    p.add_argument("mission")
    p.add_argument("start", type=int, help="Unix seconds the decrease starts")
    p.add_argument("min_fee", type=int, help="Floor fee (raw $LAZY units)")
    p.add_argument("decrement", type=int, help="Decrease per interval (raw units)")
    p.add_argument("interval", type=int, help="Seconds between decrements")

    p = add_command(sub, "add-rewards", "Deposit reward NFT serials", mutating=True)
    p.add_argument("mission")
    p.add_argument("token", help="Reward token id")
    p.add_argument("serials", help="1,2,5 | all | random:N | random:N:start-end")

    p = add_command(sub, "add-collections", "Add requirement and reward collections", mutating=True)
    p.add_argument("mission")
    p.add_argument("requirements", help="Requirement token ids, comma separated")
    p.add_argument("rewards", help="Reward token ids, comma separated")

    p = add_command(sub, "adjust-serials", "Restrict which requirement serials qualify", mutating=True)
    p.add_argument("mission")
    p.add_argument("token")
    p.add_argument("serials", help="Comma separated serials")
    p.add_argument("action", choices=["add", "remove"])

    p = add_command(sub, "withdraw", "Transfer HBAR or $LAZY out of the mission", mutating=True)
    p.add_argument("mission")
    p.add_argument("receiver", help="Receiving account id")
    p.add_argument("kind", choices=["hbar", "lazy"])
    p.add_argument("amount", help="Amount in whole HBAR / $LAZY")

    p = add_command(sub, "logs", "Decoded mission events")
    p.add_argument("mission")
    p.add_argument("--save", action="store_true", help="Also write ./logs/Mission-logs-*.txt")

    return ap.parse_args(argv)


HANDLERS = {
    "info": cmd_info,
    "user": cmd_user,
    "enter": cmd_enter,
    "leave": cmd_leave,
    "claim": cmd_claim,
    "pause": cmd_pause,
    "unpause": cmd_pause,
    "close": cmd_close,
    "set-start": cmd_set_start,
    "set-decreasing-fee": cmd_set_decreasing_fee,
    "add-rewards": cmd_add_rewards,
    "add-collections": cmd_add_collections,
    "adjust-serials": cmd_adjust_serials,
    "withdraw": cmd_withdraw,
    "logs": cmd_logs,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
