# tests/test_manifest.py
# SPDX-License-Identifier: Apache-2.0
import json
from pathlib import Path

import pytest

from lazy_farms.core.constants import MAINNET_CONTRACTS
from lazy_farms.services import manifest as mf
from lazy_farms.services.ids import to_evm_address

BUNDLED = Path(__file__).resolve().parents[1] / "deployments"


@pytest.fixture
def root(tmp_path):
    mf.create_manifest("testnet", deployer="0.0.1111", description="test farm", root=tmp_path)
    return tmp_path


def test_create_manifest_skeleton(root):
    data = json.loads((root / "testnet.json").read_text())
    assert data["network"] == "testnet"
    assert data["chainId"] == 296
    assert data["deployer"] == "0.0.1111"
    assert data["roles"] == {role: [] for role in mf.ROLE_TYPES}
    assert data["metadata"]["lastUpdated"].endswith("Z")


def test_create_manifest_refuses_overwrite(root):
    with pytest.raises(FileExistsError):
        mf.create_manifest("testnet", root=root)


def test_load_missing_manifest(tmp_path):
    with pytest.raises(FileNotFoundError, match="No deployment manifest found for network: previewnet"):
        mf.load_manifest("previewnet", tmp_path)


def test_record_deployment(root):
    entry = mf.record_deployment(
        "testnet",
        name="MissionFactory",
        key="missionFactory",
        contract_id="0.0.4000",
        source_path="contracts/MissionFactory.sol",
        dependencies=["lazyGasStation"],
        deployment_tx="0.0.1111@1700000000.1",
        root=root,
    )
    assert entry["evmAddress"] == to_evm_address("0.0.4000")
    assert entry["verified"] is False
    assert mf.get_contract_id("testnet", "missionFactory", root) == "0.0.4000"
    stored = mf.get_contract("testnet", "missionFactory", root)
    assert stored["dependencies"] == ["lazyGasStation"]
    assert stored["deploymentTx"] == "0.0.1111@1700000000.1"
    assert mf.get_contract_id("testnet", "boostManager", root) is None


def test_update_contract_merges(root):
    mf.update_contract("testnet", "prng", {"contractId": "0.0.9", "name": "Prng"}, root)
    mf.update_contract("testnet", "prng", {"verified": True}, root)
    assert mf.get_contract("testnet", "prng", root) == {
        "contractId": "0.0.9",
        "name": "Prng",
        "verified": True,
    }


def test_roles(root):
    assert mf.add_role("testnet", "factoryAdmins", {"address": "0.0.5", "name": "ops"}, root)
    assert not mf.add_role("testnet", "factoryAdmins", {"address": "0.0.5"}, root)
    with pytest.raises(ValueError):
        mf.add_role("testnet", "factoryAdmins", {"name": "nobody"}, root)
    roles = mf.load_manifest("testnet", root)["roles"]["factoryAdmins"]
    assert roles[0]["name"] == "ops"
    assert "addedAt" in roles[0]
    assert mf.remove_role("testnet", "factoryAdmins", "0.0.5", root)
    assert not mf.remove_role("testnet", "factoryAdmins", "0.0.5", root)
    assert not mf.remove_role("testnet", "stakingAdmins", "0.0.5", root)


def test_staking_collections_and_missions(root):
    assert mf.add_staking_collection("testnet", {"tokenId": "0.0.70", "maxBaseRate": 5}, root)
    assert not mf.add_staking_collection("testnet", {"tokenId": "0.0.70"}, root)
    mf.record_mission("testnet", {"contractId": "0.0.71", "name": "Sample"}, root)
    data = mf.load_manifest("testnet", root)
    assert [c["tokenId"] for c in data["stakingCollections"]["collections"]] == ["0.0.70"]
    assert data["missions"]["examples"][0]["contractId"] == "0.0.71"


def test_get_all_contract_ids_skips_empty(root):
    mf.update_contract("testnet", "lazyToken", {"contractId": "0.0.1"}, root)
    mf.update_contract("testnet", "pending", {"name": "NotYet"}, root)
    assert mf.get_all_contract_ids("testnet", root) == {"lazyToken": "0.0.1"}


def test_bundled_mainnet_manifest_matches_constants():
    ids = set(mf.get_all_contract_ids("mainnet", BUNDLED).values())
    assert ids == set(MAINNET_CONTRACTS.values())
    for info in mf.load_manifest("mainnet", BUNDLED)["contracts"].values():
        assert info["evmAddress"] == to_evm_address(info["contractId"])


def test_supplied_timestamps_survive(root):
    stamp = "2024-06-01T00:00:00.000Z"
    mf.add_role("testnet", "stakingAdmins", {"address": "0.0.6", "addedAt": stamp}, root)
    mf.add_staking_collection("testnet", {"tokenId": "0.0.72", "addedAt": stamp}, root)
    mf.record_mission("testnet", {"contractId": "0.0.73", "deployedAt": stamp}, root)
    data = mf.load_manifest("testnet", root)
    assert data["roles"]["stakingAdmins"][0]["addedAt"] == stamp
    assert data["stakingCollections"]["collections"][0]["addedAt"] == stamp
    assert data["missions"]["examples"][0]["deployedAt"] == stamp
