# tests/test_abi.py
# SPDX-License-Identifier: Apache-2.0
import json

import pytest
from eth_abi import encode
from eth_utils import keccak

from lazy_farms.core.config import Settings
from lazy_farms.services import abi as abi_module
from lazy_farms.services.abi import (
    ERROR_STRING_SELECTOR,
    PANIC_SELECTOR,
    ContractAbi,
    load_bytecode,
    load_contract_abi,
    parse_fragment,
    signature_of,
)
from lazy_farms.services.interfaces import BUILTIN, GAS_STATION, NFT_STAKING, contract_abi

USER = "0x" + "11" * 20
OTHER = "0x" + "22" * 20

TOKEN = ContractAbi.from_fragments(
    "Token",
    [
        "function transfer(address to, uint256 amount) returns (bool)",
        "function isAdmin(address _wallet) view returns (bool)",
        "function isAdmin(address _wallet, uint256 _role) view returns (bool)",
        "event Transfer(address indexed from, address indexed to, uint256 value)",
        "error NotEnoughSlots(uint256 available)",
    ],
)


def test_parse_fragment_outputs_and_mutability():
    entry = parse_fragment(
        "function getStakedNFTs(address _user) view returns (address[] collections, uint256[][] serials)"
    )
    assert entry["stateMutability"] == "view"
    assert [p["type"] for p in entry["outputs"]] == ["address[]", "uint256[][]"]
    assert entry["outputs"][1]["name"] == "serials"


def test_parse_fragment_tuples():
    entry = parse_fragment(
        "function stake((address collection, uint256[] serials, uint256[] rewards)[] _stakes, "
        "(uint256 boostRate, uint256 validityTimestamp, bytes signature) _rewardProof)"
    )
    assert entry["stateMutability"] == "nonpayable"
    assert signature_of(entry) == "stake((address,uint256[],uint256[])[],(uint256,uint256,bytes))"


def test_parse_fragment_rejects_unknown():
    with pytest.raises(ValueError):
        parse_fragment("constructor(address a)")


def test_encode_call_uses_selector():
    data = TOKEN.encode_call("transfer", [USER, 5])
    assert data.startswith("0xa9059cbb")
    assert len(data) == 2 + 8 + 128


def test_encode_call_checks_arity():
    with pytest.raises(ValueError, match="expects 2 args"):
        TOKEN.encode_call("transfer", [USER])


def test_encode_deploy_appends_constructor_args():
    station = ContractAbi(
        "Station",
        [{"type": "constructor", "inputs": [{"name": "_token", "type": "address"}]}],
    )
    assert station.constructor_inputs == [{"name": "_token", "type": "address"}]
    assert station.encode_deploy("0x6080", [USER]) == "0x6080" + encode(["address"], [USER]).hex()
    assert TOKEN.constructor_inputs == []
    assert TOKEN.encode_deploy(b"\x60\x80") == "0x6080"
    with pytest.raises(ValueError, match="constructor expects 1 args, got 0"):
        station.encode_deploy("0x6080")


def test_overloads_need_signature():
    with pytest.raises(KeyError, match="overloaded"):
        TOKEN.function("isAdmin")
    assert TOKEN.function("isAdmin(address,uint256)")["inputs"][1]["name"] == "_role"
    assert not TOKEN.has_function("mint")


def test_decode_result():
    raw = "0x" + encode(["uint256", "uint256", "uint256", "uint256"], [10, 2, 3, 4]).hex()
    assert NFT_STAKING.decode_result("calculateRewards", raw) == (10, 2, 3, 4)
    assert NFT_STAKING.output_names("calculateRewards")[0] == "lazyEarned"
    assert NFT_STAKING.decode_result("totalItemsStaked", "0x") == ()


def test_decode_log_with_indexed_topics():
    topics = [
        "0x" + keccak(text="Transfer(address,address,uint256)").hex(),
        "0x" + encode(["address"], [USER]).hex(),
        "0x" + encode(["address"], [OTHER]).hex(),
    ]
    event = TOKEN.decode_log(topics, "0x" + encode(["uint256"], [42]).hex())
    assert event.name == "Transfer"
    assert event.args["from"].lower() == USER
    assert event.args["to"].lower() == OTHER
    assert event.args["value"] == 42
    assert str(event).startswith("Transfer(from: ")


def test_decode_log_unindexed():
    topics = ["0x" + keccak(text="ClaimedRewards(address,uint256,uint256)").hex()]
    data = "0x" + encode(["address", "uint256", "uint256"], [USER, 500, 25]).hex()
    event = NFT_STAKING.decode_log(topics, data)
    assert event.args["_user"].lower() == USER
    assert event.args["_rewardAmount"] == 500
    assert event.args["_burnPercentage"] == 25


def test_decode_log_unknown_or_empty():
    assert TOKEN.decode_log([], "0x") is None
    assert TOKEN.decode_log(["0x" + "00" * 32], "0x") is None


def test_decode_error_payloads():
    reason = ERROR_STRING_SELECTOR + encode(["string"], ["Not admin"])
    assert TOKEN.decode_error("0x" + reason.hex()) == "Not admin"
    panic = PANIC_SELECTOR + encode(["uint256"], [0x11])
    assert TOKEN.decode_error(panic) == "Panic(0x11)"
    custom = keccak(text="NotEnoughSlots(uint256)")[:4] + encode(["uint256"], [3])
    assert TOKEN.decode_error(custom) == "NotEnoughSlots(3)"
    assert TOKEN.decode_error("0xdeadbeef") is None
    assert TOKEN.decode_error("0x12") is None


def test_builtin_interfaces_are_registered():
    assert set(BUILTIN) >= {"LazyNFTStaking", "MissionFactory", "Mission", "BoostManager"}
    assert BUILTIN["HederaToken"].has_function("setApprovalForAll")


def test_load_contract_abi_from_artifacts(tmp_path):
    artifact = tmp_path / "artifacts" / "contracts" / "Farm.sol" / "Farm.json"
    artifact.parent.mkdir(parents=True)
    artifact.write_text(
        json.dumps(
            {
                "abi": [parse_fragment("function paused() view returns (bool)")],
                "bytecode": "0x6080",
            }
        )
    )
    dirs = {"artifacts_dir": tmp_path / "artifacts", "abi_dir": tmp_path / "abi"}
    abi = load_contract_abi("Farm", **dirs)
    assert abi.function_names == ["paused"]
    assert load_bytecode("Farm", **dirs) == "0x6080"


def test_bare_abi_file_has_no_bytecode(tmp_path):
    (tmp_path / "abi").mkdir()
    (tmp_path / "abi" / "Util.json").write_text(
        json.dumps([parse_fragment("function version() pure returns (string)")])
    )
    dirs = {"artifacts_dir": tmp_path / "artifacts", "abi_dir": tmp_path / "abi"}
    assert load_contract_abi("Util", **dirs).has_function("version")
    with pytest.raises(FileNotFoundError, match="No bytecode"):
        load_bytecode("Util", **dirs)


def test_missing_artifact(tmp_path):
    with pytest.raises(FileNotFoundError, match="Contract artifact not found for: Nope"):
        load_contract_abi("Nope", artifacts_dir=tmp_path, abi_dir=tmp_path)


def test_contract_abi_falls_back_to_builtin(tmp_path, monkeypatch):
    monkeypatch.setattr(
        abi_module,
        "settings",
        Settings.from_env({"ARTIFACTS_DIR": str(tmp_path), "ABI_DIR": str(tmp_path)}),
    )
    assert contract_abi("LazyGasStation") is GAS_STATION
    with pytest.raises(FileNotFoundError):
        contract_abi("TokenStaker")
    (tmp_path / "LazyGasStation.json").write_text(
        json.dumps([parse_fragment("function getContractUsers() view returns (address[])")])
    )
    assert contract_abi("LazyGasStation").function_names == ["getContractUsers"]
