# tests/test_contracts.py
# SPDX-License-Identifier: Apache-2.0
import pytest
from eth_abi import encode
from eth_account import Account
from eth_utils import keccak

from lazy_farms.core.clients import HederaClient
from lazy_farms.services.abi import ERROR_STRING_SELECTOR, ContractAbi
from lazy_farms.services.contracts import (
    SUCCESS,
    ContractCallError,
    ExecutionResult,
    contract_events,
    deploy,
    estimate_gas,
    execute,
    fetch_outputs,
    is_success,
    log_result,
    query,
    query_one,
)
from lazy_farms.services.ids import to_evm_address
from lazy_farms.services.mirror import MirrorNodeError

FARM = ContractAbi.from_fragments(
    "Farm",
    [
        "function entryFee() view returns (uint256)",
        "function getSlots() view returns (uint256 used, uint256 max)",
        "function enterMission(uint256 _serial) returns (uint256 ticket)",
        "event Entered(address _user, uint256 _serial)",
    ],
)

STATION = ContractAbi(
    "Station",
    [
        {
            "type": "constructor",
            "inputs": [
                {"name": "_lazyToken", "type": "address"},
                {"name": "_burnPercentage", "type": "uint256"},
            ],
        },
        {"type": "function", "name": "burnPercentage", "inputs": [], "outputs": []},
    ],
)
BYTECODE = "0x6080604052"

TX_HASH = "0x" + "12" * 32


def revert_payload(reason: str) -> str:
    return "0x" + (ERROR_STRING_SELECTOR + encode(["string"], [reason])).hex()


class StubMirror:
    def __init__(self, result="0x", error=None, record=None, logs=()):
        self.result = result
        self.error = error
        self.record = record
        self.logs = list(logs)
        self.calls = []

    def contract_evm_address(self, contract):
        return to_evm_address(contract)

    def contract_call(self, to, data, sender, estimate=False, gas=0):
        self.calls.append({"to": to, "data": data, "from": sender, "estimate": estimate})
        if self.error is not None:
            raise self.error
        return self.result

    def contract_result(self, transaction):
        return self.record

    def contract_logs(self, contract, order="asc"):
        return self.logs


class FakeEth:
    gas_price = 100

    def __init__(self, receipt=None, send_error=None):
        self.receipt = receipt or {"status": 1, "gasUsed": 50_000}
        self.send_error = send_error
        self.sent = []

    def get_transaction_count(self, address):
        return 7

    def send_raw_transaction(self, raw):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(raw)
        return bytes.fromhex(TX_HASH[2:])

    def wait_for_transaction_receipt(self, tx_hash, timeout=None):
        return self.receipt


class FakeWeb3:
    def __init__(self, eth):
        self.eth = eth


def make_client(testnet, mirror, eth=None, with_account=True):
    return HederaClient(
        network=testnet,
        mirror=mirror,
        operator_id="0.0.1234",
        account=Account.create() if with_account else None,
        _web3=FakeWeb3(eth or FakeEth()),
    )


def test_query_decodes_outputs(testnet):
    mirror = StubMirror(result="0x" + encode(["uint256", "uint256"], [3, 10]).hex())
    client = make_client(testnet, mirror, with_account=False)
    assert query(client, "0.0.77", FARM, "getSlots") == (3, 10)
    call = mirror.calls[0]
    assert call["to"] == to_evm_address("0.0.77")
    assert call["from"] == to_evm_address("0.0.1234")
    assert call["data"] == FARM.encode_call("getSlots")


def test_query_one_and_explicit_sender(testnet):
    mirror = StubMirror(result="0x" + encode(["uint256"], [42]).hex())
    client = make_client(testnet, mirror)
    assert query_one(client, "0.0.77", FARM, "entryFee", sender="0.0.99") == 42
    assert mirror.calls[0]["from"] == to_evm_address("0.0.99")


def test_query_revert_is_decoded(testnet):
    error = MirrorNodeError("reverted", 400, revert_data=revert_payload("Mission paused"))
    client = make_client(testnet, StubMirror(error=error))
    with pytest.raises(ContractCallError) as err:
        query(client, "0.0.77", FARM, "entryFee")
    assert err.value.reason == "Mission paused"
    assert "Farm.entryFee reverted" in str(err.value)


def test_query_other_mirror_errors_propagate(testnet):
    client = make_client(testnet, StubMirror(error=MirrorNodeError("down", 503)))
    with pytest.raises(MirrorNodeError):
        query(client, "0.0.77", FARM, "entryFee")


def test_estimate_gas(testnet):
    mirror = StubMirror(result="0x5208")
    client = make_client(testnet, mirror)
    assert estimate_gas(client, "0.0.77", FARM, "enterMission", [1]) == 21000
    assert mirror.calls[0]["estimate"] is True


def test_estimate_gas_fallback(testnet):
    client = make_client(testnet, StubMirror(error=MirrorNodeError("bad", 400)))
    assert estimate_gas(client, "0.0.77", FARM, "enterMission", [1], fallback=123) == 123
    with pytest.raises(MirrorNodeError):
        estimate_gas(client, "0.0.77", FARM, "enterMission", [1])


def test_execute_success(testnet):
    eth = FakeEth()
    client = make_client(testnet, StubMirror(), eth)
    result = execute(client, "0.0.77", FARM, "enterMission", [5], gas=300_000)
    assert result.success
    assert result.transaction_hash == TX_HASH
    assert result.gas_used == 50_000
    assert len(eth.sent) == 1


def test_execute_revert_reason_from_mirror(testnet):
    record = {"result": "CONTRACT_REVERT_EXECUTED", "error_message": revert_payload("Not admin")}
    eth = FakeEth(receipt={"status": 0, "gasUsed": 30_000})
    client = make_client(testnet, StubMirror(record=record), eth)
    result = execute(client, "0.0.77", FARM, "enterMission", [5], gas=300_000)
    assert not result.success
    assert result.status == "CONTRACT_REVERT_EXECUTED"
    assert result.error == "Not admin"


def test_execute_keeps_undecodable_error_text(testnet):
    record = {"result": "CONTRACT_REVERT_EXECUTED", "error_message": "INSUFFICIENT_GAS"}
    eth = FakeEth(receipt={"status": 0})
    client = make_client(testnet, StubMirror(record=record), eth)
    result = execute(client, "0.0.77", FARM, "enterMission", [5], gas=300_000)
    assert result.error == "INSUFFICIENT_GAS"


def test_execute_send_failure(testnet):
    eth = FakeEth(send_error=ValueError("nonce too low"))
    client = make_client(testnet, StubMirror(), eth)
    result = execute(client, "0.0.77", FARM, "enterMission", [5], gas=300_000)
    assert result.status == "FAILED"
    assert result.error == "nonce too low"
    assert result.transaction_hash is None


def test_execute_requires_operator(testnet):
    client = make_client(testnet, StubMirror(), with_account=False)
    with pytest.raises(SystemExit):
        execute(client, "0.0.77", FARM, "enterMission", [5], gas=300_000)


def test_deploy_sends_creation_code(testnet):
    new_address = "0x" + "Ab" * 20
    eth = FakeEth(receipt={"status": 1, "gasUsed": 700_000, "contractAddress": new_address})
    client = make_client(testnet, StubMirror(), eth)
    token = to_evm_address("0.0.1311037")
    result = deploy(client, STATION, BYTECODE, [token, 25])
    assert result.success
    assert result.contract_address == new_address.lower()
    assert result.gas_used == 700_000

    raw = eth.sent[0]
    assert Account.recover_transaction(raw) == client.account.address
    assert bytes.fromhex(STATION.encode_deploy(BYTECODE, [token, 25])[2:]) in raw


def test_deploy_reverted_and_send_failure(testnet):
    client = make_client(testnet, StubMirror(), FakeEth(receipt={"status": 0, "gasUsed": 1}))
    result = deploy(client, STATION, BYTECODE, [to_evm_address("0.0.1"), 0])
    assert result.status == "REVERTED"
    assert result.contract_address is None

    client = make_client(testnet, StubMirror(), FakeEth(send_error=ValueError("insufficient")))
    result = deploy(client, STATION, BYTECODE, [to_evm_address("0.0.1"), 0])
    assert result.status == "FAILED"
    assert result.error == "insufficient"


def test_deploy_checks_constructor_arity(testnet):
    client = make_client(testnet, StubMirror())
    with pytest.raises(ValueError, match="constructor expects 2 args"):
        deploy(client, STATION, BYTECODE, [])


def test_fetch_outputs(testnet):
    record = {"call_result": "0x" + encode(["uint256"], [9]).hex()}
    client = make_client(testnet, StubMirror(record=record))
    ok = ExecutionResult(SUCCESS, TX_HASH)
    assert fetch_outputs(client, ok, FARM, "enterMission") == (9,)
    assert fetch_outputs(client, ExecutionResult("FAILED"), FARM, "enterMission") == ()


def test_result_helpers(capsys):
    assert is_success(SUCCESS)
    assert not is_success(None)
    assert log_result(ExecutionResult(SUCCESS, TX_HASH), "Mission entry")
    assert not log_result(ExecutionResult("REVERTED", TX_HASH, error="Paused"), "Mission entry")
    out = capsys.readouterr().out
    assert f"Mission entry successful. Transaction ID: {TX_HASH}" in out
    assert "ERROR: Mission entry failed: REVERTED (Paused)" in out


def test_contract_events_skips_unknown_logs(testnet):
    user = to_evm_address("0.0.55")
    logs = [
        {
            "topics": ["0x" + keccak(text="Entered(address,uint256)").hex()],
            "data": "0x" + encode(["address", "uint256"], [user, 4]).hex(),
            "timestamp": "1700000000.1",
        },
        {"topics": ["0x" + "00" * 32], "data": "0x"},
        {"topics": ["0x" + keccak(text="Entered(address,uint256)").hex()], "data": "0x00"},
    ]
    client = make_client(testnet, StubMirror(logs=logs))
    events = contract_events(client, "0.0.77", FARM)
    assert len(events) == 1
    raw, event = events[0]
    assert raw["timestamp"] == "1700000000.1"
    assert event.args["_serial"] == 4
