# lazy_farms/services/manifest.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Deployment manifest helpers.

One JSON document per network lives at `deployments/<network>.json`:

    {
      "network": "mainnet", "chainId": 295, "version": "...",
      "deployer": "0.0.x", "description": "...",
      "contracts": {"<key>": {"contractId": "0.0.x", "evmAddress": "0x...", ...}},
      "roles": {"factoryAdmins": [...], "factoryDeployers": [...], "stakingAdmins": [...]},
      "stakingCollections": {"collections": [...]},
      "missions": {"examples": [...]},
      "metadata": {"solidityVersion": "...", "optimizerRuns": 200, "lastUpdated": "..."}
    }

The manifest is a configuration store, read and written wholesale. Every
mutating helper loads, changes and saves in one call; there is no locking.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from lazy_farms.core.config import NETWORKS, settings
from lazy_farms.services.ids import to_evm_address


ROLE_TYPES = ("factoryAdmins", "factoryDeployers", "stakingAdmins")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def manifest_path(network: str, root: str | Path | None = None) -> Path:
    return Path(root or settings.DEPLOYMENTS_DIR) / f"{network.lower()}.json"


def create_manifest(
    network: str,
    deployer: str = "",
    description: str = "",
    version: str = "1.0.0",
    root: str | Path | None = None,
) -> dict[str, Any]:
    """
    Write an empty manifest skeleton for `network`.

    Raises:
        FileExistsError: a manifest already exists for the network.
    """
    path = manifest_path(network, root)
    if path.exists():
        raise FileExistsError(f"Deployment manifest already exists: {path}")
    net = NETWORKS.get(network.lower())
    manifest: dict[str, Any] = {
        "network": network.lower(),
        "chainId": net.chain_id if net else None,
        "version": version,
        "deployer": deployer,
        "description": description,
        "contracts": {},
        "roles": {role: [] for role in ROLE_TYPES},
        "stakingCollections": {"collections": []},
        "missions": {"examples": []},
        "metadata": {},
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    save_manifest(network, manifest, root)
    return manifest


def load_manifest(network: str, root: str | Path | None = None) -> dict[str, Any]:
    """
    Raises:
        FileNotFoundError: "No deployment manifest found for network: <network>".
    """
    path = manifest_path(network, root)
    if not path.is_file():
        raise FileNotFoundError(f"No deployment manifest found for network: {network}")
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def save_manifest(
    network: str, manifest: dict[str, Any], root: str | Path | None = None
) -> Path:
    """Stamp `metadata.lastUpdated` and write the manifest (2-space indent)."""
    path = manifest_path(network, root)
    manifest.setdefault("metadata", {})["lastUpdated"] = _now()
    with path.open("w", encoding="utf-8") as fh:
        json.dump(manifest, fh, indent=2)
        fh.write("\n")
    print(f"Manifest saved: {path}")
    return path


def get_contract(
    network: str, name: str, root: str | Path | None = None
) -> dict[str, Any] | None:
    return load_manifest(network, root).get("contracts", {}).get(name)


def get_contract_id(network: str, name: str, root: str | Path | None = None) -> str | None:
    contract = get_contract(network, name, root)
    return (contract or {}).get("contractId") or None


def update_contract(
    network: str, name: str, info: dict[str, Any], root: str | Path | None = None
) -> dict[str, Any]:
    """Shallow-merge `info` into the named contract entry (creating it if needed)."""
    manifest = load_manifest(network, root)
    contracts = manifest.setdefault("contracts", {})
    contracts[name] = {**contracts.get(name, {}), **info}
    save_manifest(network, manifest, root)
    return contracts[name]


def record_deployment(
    network: str,
    *,
    name: str,
    key: str,
    contract_id: str,
    source_path: str,
    description: str = "",
    constructor_args: dict[str, Any] | None = None,
    dependencies: list[str] | None = None,
    deployment_tx: str | None = None,
    root: str | Path | None = None,
) -> dict[str, Any]:
    """Record a freshly deployed contract under `key`."""
    entry: dict[str, Any] = {
        "name": name,
        "type": "contract",
        "contractId": contract_id,
        "evmAddress": to_evm_address(contract_id),
        "sourcePath": source_path,
        "description": description,
        "deployedAt": _now(),
        "verified": False,
    }
    if constructor_args:
        entry["constructorArgs"] = constructor_args
    if dependencies:
        entry["dependencies"] = dependencies
    if deployment_tx:
        entry["deploymentTx"] = deployment_tx
    return update_contract(network, key, entry, root)


def add_role(
    network: str, role_type: str, role: dict[str, Any], root: str | Path | None = None
) -> bool:
    """
    Append `role` (must carry `address`) to `roles[role_type]`.

    Returns:
        False when the address is already listed (nothing is written).
    """
    if not role.get("address"):
        raise ValueError("Role entry requires an address")
    manifest = load_manifest(network, root)
    roles = manifest.setdefault("roles", {}).setdefault(role_type, [])
    if any(r.get("address") == role["address"] for r in roles):
        print(f"Role already exists: {role['address']}")
        return False
    roles.append({**role, "addedAt": role.get("addedAt") or _now()})
    save_manifest(network, manifest, root)
    print(f"Added {role_type}: {role['address']}")
    return True


def remove_role(
    network: str, role_type: str, address: str, root: str | Path | None = None
) -> bool:
    """Remove `address` from `roles[role_type]`; saves only when something changed."""
    manifest = load_manifest(network, root)
    roles = manifest.get("roles", {}).get(role_type)
    if not roles:
        return False
    kept = [r for r in roles if r.get("address") != address]
    if len(kept) == len(roles):
        return False
    manifest["roles"][role_type] = kept
    save_manifest(network, manifest, root)
    print(f"Removed {role_type}: {address}")
    return True


def add_staking_collection(
    network: str, collection: dict[str, Any], root: str | Path | None = None
) -> bool:
    """Append a stakable collection (deduplicated by `tokenId`)."""
    if not collection.get("tokenId"):
        raise ValueError("Staking collection entry requires a tokenId")
    manifest = load_manifest(network, root)
    section = manifest.setdefault("stakingCollections", {})
    collections = section.setdefault("collections", [])
    if any(c.get("tokenId") == collection["tokenId"] for c in collections):
        print(f"Collection already exists: {collection['tokenId']}")
        return False
    collections.append({**collection, "addedAt": collection.get("addedAt") or _now()})
    save_manifest(network, manifest, root)
    return True


def record_mission(
    network: str, mission: dict[str, Any], root: str | Path | None = None
) -> None:
    manifest = load_manifest(network, root)
    manifest.setdefault("missions", {}).setdefault("examples", []).append(
        {**mission, "deployedAt": mission.get("deployedAt") or _now()}
    )
    save_manifest(network, manifest, root)


def get_all_contract_ids(network: str, root: str | Path | None = None) -> dict[str, str]:
    """`{key: contractId}` for every contract entry that has an id."""
    contracts = load_manifest(network, root).get("contracts", {})
    return {
        key: info["contractId"]
        for key, info in contracts.items()
        if isinstance(info, dict) and info.get("contractId")
    }
