# lazy_farms/scripts/deployments.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# View and maintain the deployment manifests in ./deployments/<network>.json:
#   - print the manifest (contracts, dependencies, known issues, roles)
#   - list contract ids
#   - record deployments, roles, stakable collections and missions
#   - create a fresh manifest for a network
#   - deploy a compiled contract and record it in one step
#
# Usage
# -----
#   lazy-deployments show
#   lazy-deployments --network testnet ids --json
#   lazy-deployments record missionFactory MissionFactory 0.0.1234 contracts/MissionFactory.sol \
#       --dependencies lazyGasStation,boostManager
#   lazy-deployments add-role factoryAdmins 0.0.5678 --name "Ops wallet"
#   lazy-deployments init --deployer 0.0.1111
#   lazy-deployments --network testnet deploy LazyGasStation lazyGasStation \
#       0.0.1311037 0.0.1311003 --source contracts/LazyGasStation.sol
#
# Environment (.env)
# ------------------
# ENVIRONMENT=MAIN            # default network when --network is omitted
# DEPLOYMENTS_DIR=deployments
# ACCOUNT_ID=0.0.xxxx        # deploy only
# PRIVATE_KEY=0x...          # deploy only (ECDSA)
#
# Notes
# -----
# - Everything except `deploy` only touches local files.
# - `deploy` reads creation bytecode from the compiled artifact; constructor
#   args are given in ABI order (arrays comma separated).

from __future__ import annotations

import argparse
from collections.abc import Mapping
from typing import Any

from lazy_farms.core.config import NETWORKS, resolve_network, settings
from lazy_farms.core.constants import GAS
from lazy_farms.scripts.helpers import (
    add_command,
    build_parser,
    confirm_or_exit,
    connect,
    dump_json,
    print_script_header,
    run,
    wait_for_mirror,
)
from lazy_farms.services import manifest as mf
from lazy_farms.services.abi import known_contracts, load_bytecode, load_contract_abi
from lazy_farms.services.contracts import deploy, log_result
from lazy_farms.services.ids import is_evm_address, parse_comma_list, to_evm_address

PROG = "lazy-deployments"

RULE = "=" * 70
SECTION = "-" * 70

ROLE_LABELS = {
    "factoryAdmins": "Factory Admins",
    "factoryDeployers": "Factory Deployers",
    "stakingAdmins": "Staking Admins",
}


def _network(args: argparse.Namespace) -> str:
    if args.network:
        return args.network.lower()
    if settings.ENVIRONMENT:
        return resolve_network(settings.ENVIRONMENT).name
    return "mainnet"


def _section(lines: list[str], title: str) -> None:
    lines += ["", SECTION, f"  {title}", SECTION]


def format_manifest(manifest: Mapping[str, Any]) -> str:
    """Human-readable rendering of a deployment manifest."""
    lines = [
        "",
        RULE,
        f"  LAZY FARMS DEPLOYMENT MANIFEST - {str(manifest.get('network', '')).upper()}",
        RULE,
        "",
        f"Network:     {manifest.get('network')} (Chain ID: {manifest.get('chainId')})",
        f"Version:     {manifest.get('version')}",
        f"Deployer:    {manifest.get('deployer') or 'N/A'}",
        f"Description: {manifest.get('description')}",
    ]

    contracts = [
        (key, c)
        for key, c in (manifest.get("contracts") or {}).items()
        if not key.startswith("_") and isinstance(c, dict)
    ]
    _section(lines, "DEPLOYED CONTRACTS")
    if not contracts:
        lines += ["", "  No contracts deployed yet.", ""]
    else:
        width = max([len(c.get("name") or "") for _, c in contracts] + [20])
        lines += [
            "",
            f"  {'Name'.ljust(width)}  {'Contract ID'.ljust(14)}  Source",
            f"  {'-' * width}  {'-' * 14}  {'-' * 30}",
        ]
        for key, c in contracts:
            lines.append(
                f"  {(c.get('name') or key).ljust(width)}  "
                f"{(c.get('contractId') or 'N/A').ljust(14)}  {c.get('sourcePath') or '-'}"
            )

    _section(lines, "CONTRACT DEPENDENCIES")
    lines.append("")
    all_contracts = manifest.get("contracts") or {}
    for key, c in contracts:
        if c.get("dependencies"):
            lines.append(f"  {c.get('name') or key}:")
            for dep in c["dependencies"]:
                dep_id = (all_contracts.get(dep) or {}).get("contractId") or "?"
                lines.append(f"    └─ {dep} ({dep_id})")

    with_issues = [(key, c) for key, c in contracts if c.get("knownIssues")]
    if with_issues:
        _section(lines, "KNOWN ISSUES")
        lines.append("")
        for key, c in with_issues:
            lines.append(f"  {c.get('name') or key}:")
            for issue in c["knownIssues"]:
                lines.append(
                    f"    [{issue.get('severity')}] {issue.get('type')}: {issue.get('description')}"
                )
                if issue.get("workaround"):
                    lines.append(f"      Workaround: {issue['workaround']}")

    roles = manifest.get("roles") or {}
    if any(isinstance(v, list) and v for v in roles.values()):
        _section(lines, "ADMINISTRATIVE ROLES")
        lines.append("")
        for role_type, label in ROLE_LABELS.items():
            members = roles.get(role_type) or []
            if members:
                lines.append(f"  {label}:")
                for m in members:
                    name = f" ({m['name']})" if m.get("name") else ""
                    lines.append(f"    - {m.get('address')}{name}")

    meta = manifest.get("metadata") or {}
    _section(lines, "METADATA")
    lines += [
        "",
        f"  Solidity:     {meta.get('solidityVersion') or 'N/A'}",
        f"  Optimizer:    {meta.get('optimizerRuns') or 'N/A'} runs",
        f"  Last Updated: {meta.get('lastUpdated') or 'N/A'}",
        "",
        RULE,
        "",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_show(args: argparse.Namespace) -> None:
    manifest = mf.load_manifest(_network(args), args.dir)
    if args.json:
        dump_json(manifest)
        return
    print(format_manifest(manifest))


def cmd_ids(args: argparse.Namespace) -> None:
    ids = mf.get_all_contract_ids(_network(args), args.dir)
    if args.json:
        dump_json(ids)
        return
    for key, contract_id in ids.items():
        print(f"{key}: {contract_id}")


def cmd_record(args: argparse.Namespace) -> None:
    entry = mf.record_deployment(
        _network(args),
        name=args.name,
        key=args.key,
        contract_id=args.contract_id,
        source_path=args.source,
        description=args.description,
        dependencies=parse_comma_list(args.dependencies) or None,
        deployment_tx=args.tx,
        root=args.dir,
    )
    print(f"Recorded {args.key}: {entry['contractId']} ({entry['evmAddress']})")


def cmd_add_role(args: argparse.Namespace) -> None:
    role = {"address": args.address}
    if args.name:
        role["name"] = args.name
    mf.add_role(_network(args), args.role_type, role, args.dir)


def cmd_remove_role(args: argparse.Namespace) -> None:
    if not mf.remove_role(_network(args), args.role_type, args.address, args.dir):
        print(f"Role not found: {args.address}")


def cmd_add_collection(args: argparse.Namespace) -> None:
    collection: dict[str, Any] = {"tokenId": args.token_id}
    if args.name:
        collection["name"] = args.name
    if args.max_rate is not None:
        collection["maxBaseRate"] = args.max_rate
    if mf.add_staking_collection(_network(args), collection, args.dir):
        print(f"Added staking collection: {args.token_id}")


def cmd_record_mission(args: argparse.Namespace) -> None:
    mission: dict[str, Any] = {"contractId": args.contract_id}
    if args.name:
        mission["name"] = args.name
    if args.description:
        mission["description"] = args.description
    mf.record_mission(_network(args), mission, args.dir)
    print(f"Recorded mission: {args.contract_id}")


def cmd_init(args: argparse.Namespace) -> None:
    network = _network(args)
    mf.create_manifest(
        network,
        deployer=args.deployer,
        description=args.description or f"Lazy Farms {network} deployment",
        root=args.dir,
    )


def constructor_value(typ: str, raw: str) -> Any:
    """CLI string to the Python value eth-abi expects for `typ`."""
    if typ.endswith("[]"):
        return [constructor_value(typ[:-2], item) for item in parse_comma_list(raw)]
    if typ == "address":
        return to_evm_address(raw)
    if typ.startswith(("uint", "int")):
        return int(raw, 0)
    if typ == "bool":
        if raw.lower() not in ("true", "false", "1", "0"):
            raise ValueError(f"Not a bool: {raw}")
        return raw.lower() in ("true", "1")
    return raw


def cmd_deploy(args: argparse.Namespace) -> None:
    network = _network(args)
    abi = load_contract_abi(args.contract)
    bytecode = load_bytecode(args.contract)
    inputs = abi.constructor_inputs
    if len(inputs) != len(args.args):
        names = ", ".join(f"{p['type']} {p.get('name') or '_'}" for p in inputs) or "none"
        raise SystemExit(f"ERROR: {args.contract} constructor takes: {names}")
    values = [constructor_value(p["type"], raw) for p, raw in zip(inputs, args.args)]

    client = connect(args, environment=network)
    print_script_header(
        f"Deploy {args.contract}", client.network.label, client.operator_id, extra={
            "Manifest Key": args.key,
            "Constructor Args": ", ".join(args.args) or "none",
            "Gas": args.gas,
        },
    )
    confirm_or_exit(f"Deploy {args.contract}?", assume_yes=args.yes)

    result = deploy(client, abi, bytecode, values, gas=args.gas)
    if not log_result(result, f"{args.contract} deploy") or not result.contract_address:
        return
    print(f"EVM address: {result.contract_address}")

    wait_for_mirror()
    contract_id = client.mirror.contract_id_for_evm(result.contract_address)
    if is_evm_address(contract_id):
        print(
            "WARNING: Contract not yet visible on the mirror node; record it later with "
            f"`{PROG} record {args.key} {args.contract} <id> {args.source or '<source>'}`"
        )
        return
    entry = mf.record_deployment(
        network,
        name=args.contract,
        key=args.key,
        contract_id=contract_id,
        source_path=args.source or f"contracts/{args.contract}.sol",
        description=args.description,
        constructor_args={
            p.get("name") or str(i): raw for i, (p, raw) in enumerate(zip(inputs, args.args))
        },
        dependencies=parse_comma_list(args.dependencies) or None,
        deployment_tx=result.transaction_hash,
        root=args.dir,
    )
    print(f"Recorded {args.key}: {entry['contractId']} ({entry['evmAddress']})")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = build_parser(PROG, "View and maintain Lazy Farms deployment manifests")
    ap.add_argument(
        "--network",
        choices=sorted(NETWORKS),
        default=None,
        help="Manifest to use (defaults to ENVIRONMENT, else mainnet)",
    )
    ap.add_argument(
        "--dir",
        default=None,
        help="Manifest directory (defaults to DEPLOYMENTS_DIR)",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)
    names = ", ".join(known_contracts())

    p = add_command(sub, "show", "Print the manifest")
    p.add_argument("--json", action="store_true")
    p = add_command(sub, "ids", "Contract ids by key")
    p.add_argument("--json", action="store_true")

    p = add_command(sub, "record", "Record a deployed contract")
    p.add_argument("key", help="Manifest key, e.g. missionFactory")
    p.add_argument("name", help="Contract name, e.g. MissionFactory")
    p.add_argument("contract_id")
    p.add_argument("source", help="Solidity source path")
    p.add_argument("--description", default="")
    p.add_argument("--dependencies", default="", help="Manifest keys, comma separated")
    p.add_argument("--tx", default=None, help="Deployment transaction id")

    p = add_command(sub, "add-role", "Add an administrative role")
    p.add_argument("role_type", choices=mf.ROLE_TYPES)
    p.add_argument("address")
    p.add_argument("--name", default=None)
    p = add_command(sub, "remove-role", "Remove an administrative role")
    p.add_argument("role_type", choices=mf.ROLE_TYPES)
    p.add_argument("address")

    p = add_command(sub, "add-collection", "Record a stakable collection")
    p.add_argument("token_id")
    p.add_argument("--name", default=None)
    p.add_argument("--max-rate", type=int, default=None, help="Max base rate")

    p = add_command(sub, "record-mission", "Record a deployed mission")
    p.add_argument("contract_id")
    p.add_argument("--name", default=None)
    p.add_argument("--description", default=None)

    p = add_command(sub, "init", "Create an empty manifest for the network")
    p.add_argument("--deployer", default="")
    p.add_argument("--description", default=None)

    p = add_command(sub, "deploy", "Deploy a compiled contract and record it", mutating=True)
    p.add_argument("contract", help=f"Artifact name ({names})")
    p.add_argument("key", help="Manifest key, e.g. lazyGasStation")
    p.add_argument("args", nargs="*", help="Constructor args in ABI order")
    p.add_argument("--source", default=None, help="Solidity source path")
    p.add_argument("--description", default="")
    p.add_argument("--dependencies", default="", help="Manifest keys, comma separated")
    p.add_argument("--gas", type=int, default=GAS.CONTRACT_DEPLOY)

    return ap.parse_args(argv)


HANDLERS = {
    "show": cmd_show,
    "ids": cmd_ids,
    "record": cmd_record,
    "add-role": cmd_add_role,
    "remove-role": cmd_remove_role,
    "add-collection": cmd_add_collection,
    "record-mission": cmd_record_mission,
    "init": cmd_init,
    "deploy": cmd_deploy,
}


def main(argv: list[str] | None = None) -> None:
    run(HANDLERS, _parse_args(argv), PROG)


if __name__ == "__main__":
    main()
