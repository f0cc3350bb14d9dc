# tests/test_cli.py
# SPDX-License-Identifier: Apache-2.0
import argparse
import json
from pathlib import Path

import pytest
from eth_abi import decode, encode

from lazy_farms.core.clients import HederaClient
from lazy_farms.core.config import NETWORKS, Settings
from lazy_farms.core.constants import MAINNET_CONTRACTS
from lazy_farms.scripts import (
    boost,
    delegate,
    deployments,
    economy_cache,
    factory,
    gas_station,
    lazy_farm,
    mirror_tools,
    mission,
    staking,
)
from lazy_farms.services import manifest as mf
from lazy_farms.services.abi import ContractAbi, canonical_type
from lazy_farms.services.contracts import SUCCESS, ExecutionResult
from lazy_farms.services.directus import DirectusError
from lazy_farms.services.ids import to_evm_address
from lazy_farms.services.interfaces import (
    DELEGATE_REGISTRY,
    GAS_STATION,
    MISSION_FACTORY,
    NFT_STAKING,
)

from .test_contracts import BYTECODE, STATION, TX_HASH, revert_payload
from .test_economy import COLLECTION, STAKING, StakingMirror, StubDirectus

BUNDLED = Path(__file__).resolve().parents[1] / "deployments"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def test_mission_parser():
    args = mission._parse_args(["enter", "0.0.9", "0.0.1,0.0.2", "1,2:3", "-y"])
    assert (args.cmd, args.mission, args.serials, args.yes) == ("enter", "0.0.9", "1,2:3", True)
    args = mission._parse_args(["set-decreasing-fee", "0.0.9", "100", "5", "1", "60"])
    assert (args.start, args.min_fee, args.decrement, args.interval) == (100, 5, 1, 60)
    with pytest.raises(SystemExit):
        mission._parse_args(["withdraw", "0.0.9", "0.0.2", "gold", "1"])


def test_factory_parser():
    args = factory._parse_args(
        ["--factory", "0.0.5", "deploy", "3600", "10", "0.0.1", "0.0.2", "25", "0", "1", "1"]
    )
    assert args.factory == "0.0.5"
    assert (args.duration, args.burn, args.num_requirements) == (3600, 25, 1)
    args = factory._parse_args(["bulk-pause", "0.0.7,0.0.8", "--unpause"])
    assert args.unpause is True
    assert factory._parse_args(["settings", "0.0.3", "prng"]).setting == "prng"
    assert set(factory.SETTING_METHODS) == {"boost", "template", "prng", "lgs", "lazy"}


def test_staking_parser_and_stakes():
    args = staking._parse_args(["stake", "0.0.1,0.0.2", "1,2:3", "10,10:5", "0", "-y"])
    stakes = staking._stakes_from_args(args)
    assert [s.serials for s in stakes] == [[1, 2], [3]]
    assert args.boost_rate == 0
    bad = argparse.Namespace(tokens="0.0.1", serials="0", rewards="1")
    with pytest.raises(ValueError, match="Invalid serial number"):
        staking._stakes_from_args(bad)
    assert staking._parse_args(["set", "system-wallet"]).value is None


def test_boost_helpers():
    assert boost._rank("SR") == 2
    assert boost._rank("5") == 5
    with pytest.raises(ValueError, match="Invalid rank"):
        boost._rank("7")
    assert boost._percent("50") == 50
    with pytest.raises(ValueError):
        boost._percent("0", low=1)
    args = boost._parse_args(["boost-gem", "0.0.9", "0.0.3", "12"])
    assert args.serial == 12


def test_other_parsers():
    assert delegate._parse_args(["check", "0.0.3", "4"]).serial == 4
    assert delegate._parse_args(["delegated-to"]).wallet is None
    args = gas_station._parse_args(["check-allowance", "0.0.1", "0.0.2", "0.0.3", "0.0.4"])
    assert (args.utility, args.spender) == ("0.0.1", "0.0.4")
    args = mirror_tools._parse_args(["owners", "0.0.3", "--json"])
    assert args.json is True


def test_revert_reason():
    abi = ContractAbi("Any", [])
    assert mirror_tools._revert_reason(abi, "INSUFFICIENT_GAS") == "INSUFFICIENT_GAS"
    assert mirror_tools._revert_reason(abi, revert_payload("Paused")) == "Paused"
    assert mirror_tools._revert_reason(abi, "0xdeadbeef") == "0xdeadbeef"


# ---------------------------------------------------------------------------
# Reward serial selection
# ---------------------------------------------------------------------------


def test_select_serials():
    owned = [1, 5, 6, 9]
    assert mission._select_serials("all", owned) == owned
    assert mission._select_serials("1,9", owned) == [1, 9]
    picked = mission._select_serials("random:2", owned)
    assert len(picked) == 2 and set(picked) <= set(owned)
    assert sorted(mission._select_serials("random:2:5-6", owned)) == [5, 6]
    with pytest.raises(ValueError, match="only 4 available"):
        mission._select_serials("random:5", owned)
    with pytest.raises(ValueError, match="not owned: 2"):
        mission._select_serials("1,2", owned)


# ---------------------------------------------------------------------------
# lazy-farm
# ---------------------------------------------------------------------------


def test_lazy_farm_contracts(monkeypatch):
    assert lazy_farm.contracts_for("mainnet") == MAINNET_CONTRACTS
    monkeypatch.setattr(
        lazy_farm, "settings", Settings.from_env({"LAZY_NFT_STAKING_CONTRACT_ID": "0.0.77"})
    )
    testnet = lazy_farm.contracts_for("testnet")
    assert testnet["LAZY_NFT_STAKING"] == "0.0.77"
    assert testnet["MISSION_FACTORY"] == ""
    with pytest.raises(SystemExit, match="No contracts deployed on testnet"):
        lazy_farm._require(testnet, "MISSION_FACTORY", "testnet")


def test_lazy_farm_labels_and_flags():
    assert lazy_farm.contract_label("LAZY_NFT_STAKING") == "Lazy Nft Staking"
    args = lazy_farm._parse_args(["rewards", "0.0.5", "--json", "--testnet"])
    assert (args.account, args.json, args.testnet) == ("0.0.5", True, True)
    assert lazy_farm._network(args) == "testnet"
    assert lazy_farm._parse_args(["allowances", "0.0.5"]).type == "all"


# ---------------------------------------------------------------------------
# lazy-deployments
# ---------------------------------------------------------------------------


def test_format_bundled_manifest():
    text = deployments.format_manifest(mf.load_manifest("mainnet", BUNDLED))
    assert "LAZY FARMS DEPLOYMENT MANIFEST - MAINNET" in text
    assert "Network:     mainnet (Chain ID: 295)" in text
    assert "    └─ lazyToken (0.0.1311037)" in text
    assert "  Solidity:     0.8.18" in text
    assert "KNOWN ISSUES" not in text


def test_format_manifest_sections():
    manifest = {
        "network": "testnet",
        "contracts": {
            "_comment": "ignored",
            "farm": {
                "name": "Mission",
                "contractId": "0.0.8",
                "knownIssues": [
                    {"severity": "LOW", "type": "gas", "description": "high", "workaround": "raise limit"}
                ],
            },
        },
        "roles": {"factoryAdmins": [{"address": "0.0.2", "name": "ops"}]},
    }
    text = deployments.format_manifest(manifest)
    assert "    [LOW] gas: high" in text
    assert "      Workaround: raise limit" in text
    assert "  Factory Admins:" in text
    assert "    - 0.0.2 (ops)" in text
    empty = deployments.format_manifest({"network": "testnet", "contracts": {}})
    assert "No contracts deployed yet." in empty


def test_deployments_network_default(monkeypatch):
    args = argparse.Namespace(network=None)
    monkeypatch.setattr(deployments, "settings", Settings.from_env({"ENVIRONMENT": "TEST"}))
    assert deployments._network(args) == "testnet"
    monkeypatch.setattr(deployments, "settings", Settings.from_env({}))
    assert deployments._network(args) == "mainnet"
    assert deployments._network(argparse.Namespace(network="PREVIEWNET")) == "previewnet"


def test_deployments_cli_round(tmp_path, capsys):
    base = ["--network", "testnet", "--dir", str(tmp_path)]
    deployments.main(base + ["init", "--deployer", "0.0.1"])
    deployments.main(base + ["record", "lazyToken", "LAZY", "0.0.1311037", "n/a"])
    deployments.main(base + ["add-role", "stakingAdmins", "0.0.3", "--name", "ops"])
    capsys.readouterr()
    deployments.main(base + ["ids", "--json"])
    assert json.loads(capsys.readouterr().out) == {"lazyToken": "0.0.1311037"}
    deployments.main(base + ["show"])
    out = capsys.readouterr().out
    assert "Staking Admins:" in out
    assert "Deployer:    0.0.1" in out



def _deploy_env(monkeypatch, contract_id):
    sent = []
    address = "0x" + "cd" * 20
    client = argparse.Namespace(
        network=NETWORKS["testnet"],
        operator_id="0.0.2",
        mirror=argparse.Namespace(contract_id_for_evm=lambda evm: contract_id),
    )

    def fake_deploy(client, abi, bytecode, args, gas):
        sent.append((abi.name, bytecode, args, gas))
        return ExecutionResult(SUCCESS, TX_HASH, contract_address=address)

    monkeypatch.setattr(deployments, "load_contract_abi", lambda name: STATION)
    monkeypatch.setattr(deployments, "load_bytecode", lambda name: BYTECODE)
    monkeypatch.setattr(deployments, "connect", lambda args, **kwargs: client)
    monkeypatch.setattr(deployments, "deploy", fake_deploy)
    monkeypatch.setattr(deployments, "wait_for_mirror", lambda: None)
    return sent


def test_deployments_deploy_records_contract(tmp_path, monkeypatch, capsys):
    sent = _deploy_env(monkeypatch, "0.0.4242")
    base = ["--network", "testnet", "--dir", str(tmp_path)]
    deployments.main(base + ["init"])
    deployments.main(
        base
        + ["deploy", "LazyGasStation", "lazyGasStation", "0.0.1311037", "25", "-y"]
        + ["--dependencies", "lazyToken", "--gas", "900000"]
    )
    assert sent == [("Station", BYTECODE, [to_evm_address("0.0.1311037"), 25], 900_000)]
    assert "Recorded lazyGasStation: 0.0.4242" in capsys.readouterr().out

    entry = mf.load_manifest("testnet", tmp_path)["contracts"]["lazyGasStation"]
    assert entry["contractId"] == "0.0.4242"
    assert entry["deploymentTx"] == TX_HASH
    assert entry["sourcePath"] == "contracts/LazyGasStation.sol"
    assert entry["dependencies"] == ["lazyToken"]
    assert entry["constructorArgs"] == {"_lazyToken": "0.0.1311037", "_burnPercentage": "25"}


def test_deployments_deploy_waits_for_mirror_index(tmp_path, monkeypatch, capsys):
    _deploy_env(monkeypatch, "0x" + "cd" * 20)
    base = ["--network", "testnet", "--dir", str(tmp_path)]
    deployments.main(base + ["init"])
    deployments.main(base + ["deploy", "LazyGasStation", "lazyGasStation", "0.0.1", "0", "-y"])
    assert "not yet visible on the mirror node" in capsys.readouterr().out
    assert "lazyGasStation" not in mf.get_all_contract_ids("testnet", tmp_path)


def test_deployments_deploy_checks_constructor(monkeypatch):
    sent = _deploy_env(monkeypatch, "0.0.4242")
    with pytest.raises(SystemExit, match="address _lazyToken, uint256 _burnPercentage"):
        deployments.main(["deploy", "LazyGasStation", "lazyGasStation", "0.0.1", "-y"])
    assert sent == []


def test_constructor_value():
    assert deployments.constructor_value("address", "0.0.5") == to_evm_address("0.0.5")
    assert deployments.constructor_value("uint256[]", "1,2") == [1, 2]
    assert deployments.constructor_value("bool", "true") is True
    assert deployments.constructor_value("string", "farm") == "farm"
    with pytest.raises(ValueError):
        deployments.constructor_value("bool", "maybe")

# ---------------------------------------------------------------------------
# lazy-economy-cache
# ---------------------------------------------------------------------------


@pytest.fixture
def economy_env(monkeypatch):
    client = HederaClient(network=NETWORKS["mainnet"], mirror=StakingMirror())
    monkeypatch.setattr(economy_cache, "create_hedera_client", lambda **kwargs: client)
    monkeypatch.setattr(
        economy_cache,
        "settings",
        Settings.from_env(
            {
                "LAZY_STAKING_ENV": "MAIN",
                "DIRECTUS_DB_URL": "https://cms.example.com",
                "STAKING_CACHE_SUPRESS_LOGS": "1",
            }
        ),
    )
    directus = StubDirectus()
    monkeypatch.setattr(economy_cache, "DirectusClient", lambda url, token: directus)
    return directus


def test_economy_cache_needs_contract(monkeypatch):
    monkeypatch.setattr(economy_cache, "settings", Settings.from_env({}))
    with pytest.raises(SystemExit, match="No staking contract provided"):
        economy_cache.main([])
    with pytest.raises(SystemExit, match="DIRECTUS_DB_URL"):
        economy_cache.main([STAKING])


def test_economy_cache_dry_run_writes_nothing(economy_env, capsys):
    result = economy_cache.run_job(STAKING, dry_run=True)
    assert result["cache"]["stakingUsers"] == 2
    assert result["timeseries"]["nftsStaked"] == 3
    assert economy_env.created == []
    assert json.loads(capsys.readouterr().out)["cache"]["totalItemsStaked"] == 3


def test_economy_cache_writes_both_rows(economy_env):
    economy_cache.main([STAKING])
    tables = [table for table, _ in economy_env.created]
    assert tables == ["LazyEconomyCache", "LazyEconomyTimeseries"]
    cache_row = economy_env.created[0][1]
    assert cache_row["environment"] == "mainnet"
    assert cache_row["contractId"] == STAKING


def test_economy_cache_keeps_cache_row_when_timeseries_fails(economy_env, caplog):
    def reject(table, item):
        if table == "LazyEconomyTimeseries":
            raise DirectusError("Directus error: 503", 503)
        economy_env.created.append((table, item))

    economy_env.create_item = reject
    result = economy_cache.run_job(STAKING)
    assert [table for table, _ in economy_env.created] == ["LazyEconomyCache"]
    assert result["cache"]["stakingUsers"] == 2
    assert "Error posting timeseries data" in caplog.text


def test_factory_deploy_fee_in_base_units(monkeypatch, capsys):
    calls = []

    def fake_execute(args, title, fn, fn_args, gas, prompt, extra=None):
        calls.append((fn, fn_args, extra))
        return None, argparse.Namespace(success=False)

    monkeypatch.setattr(factory, "_execute", fake_execute)
    monkeypatch.setattr(factory, "settings", Settings.from_env({"LAZY_DECIMALS": "1"}))
    args = factory._parse_args(
        ["deploy", "3600", "2.5", "0.0.1", "0.0.2", "25", "0", "1", "1", "-y"]
    )
    factory.cmd_deploy(args)
    fn, fn_args, extra = calls[0]
    assert fn == "deployMission"
    assert fn_args[1] == 25
    assert extra["Fee"] == "2.5 $LAZY (25 base units)"
    with pytest.raises(SystemExit):
        factory._parse_args(["deploy", "-h"])
    assert "LAZY_DECIMALS" in capsys.readouterr().out


class FarmMirror(StakingMirror):
    """Adds factory, gas station and delegate registry views to the staking fake."""

    def __init__(self, registered=(), delegate=None):
        super().__init__()
        self.registered = {to_evm_address(c) for c in registered}
        self.delegate = delegate
        self.views = {}
        for iface in (NFT_STAKING, MISSION_FACTORY, GAS_STATION, DELEGATE_REGISTRY):
            self.views.update({iface.selector(fn): (iface, fn) for fn in iface.function_names})

    def _result(self, fn, args):
        if fn == "getDeployedMissions":
            return [[to_evm_address("0.0.9001")]]
        if fn == "isContractUser":
            return [args[0].lower() in self.registered]
        if fn == "getDelegateWallet":
            return [self.delegate or "0x" + "00" * 20]
        if fn == "getStakedNFTs":
            return [[COLLECTION], [[1, 2]]]
        return super()._result(fn, args)

    def contract_call(self, to, data, sender, estimate=False, gas=0):
        iface, fn = self.views[bytes.fromhex(data[2:10])]
        entry = iface.function(fn)
        in_types = [canonical_type(p) for p in entry["inputs"]]
        args = decode(in_types, bytes.fromhex(data[10:])) if in_types else ()
        out_types = [canonical_type(p) for p in entry["outputs"]]
        return "0x" + encode(out_types, self._result(fn, args)).hex()


def _farm_client(monkeypatch, mirror):
    client = HederaClient(network=NETWORKS["mainnet"], mirror=mirror)
    monkeypatch.setattr(lazy_farm, "_connect", lambda args: client)


def test_lazy_farm_info_reports_gas_station_users(monkeypatch, capsys):
    _farm_client(monkeypatch, FarmMirror(registered=[MAINNET_CONTRACTS["MISSION_FACTORY"]]))
    lazy_farm.cmd_info(lazy_farm._parse_args(["info", "--json"]))
    data = json.loads(capsys.readouterr().out)
    assert data["Active Missions"] == 1
    assert data["Mission Factory Uses Gas Station"] is True
    assert data["Lazy Nft Staking Uses Gas Station"] is False


def test_lazy_farm_staked_shows_delegate(monkeypatch, capsys):
    _farm_client(monkeypatch, FarmMirror(delegate=to_evm_address("0.0.4242")))
    lazy_farm.cmd_staked(lazy_farm._parse_args(["staked", "0.0.1001", "--json"]))
    data = json.loads(capsys.readouterr().out)
    assert data["totalStaked"] == 2
    assert data["delegateWallet"] == "0.0.4242"

    _farm_client(monkeypatch, FarmMirror())
    lazy_farm.cmd_staked(lazy_farm._parse_args(["staked", "0.0.1001", "--json"]))
    assert json.loads(capsys.readouterr().out)["delegateWallet"] is None
