# lazy_farms/services/contracts.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Contract reads and writes.

Reads go to the mirror node (`POST /api/v1/contracts/call`): free, no
transaction, no signature. Writes are signed locally with eth-account and
submitted through the JSON-RPC relay with web3.

Writes never raise for an on-chain failure. They return an `ExecutionResult`
whose `status` is `"SUCCESS"` or a failure string, and scripts branch on
`is_success()` / `log_result()` exactly like the operator expects:

    result = execute(client, mission, abi, "leaveMission", gas=GAS.MISSION_LEAVE)
    log_result(result, "Mission left")
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from eth_abi.exceptions import DecodingError
from eth_utils import to_checksum_address
from web3 import Web3
from web3.exceptions import Web3Exception

from lazy_farms.core.clients import HederaClient
from lazy_farms.core.constants import GAS, PRECOMPILES, TINYBAR_TO_WEIBAR
from lazy_farms.services.abi import ContractAbi, DecodedEvent
from lazy_farms.services.ids import to_evm_address
from lazy_farms.services.interfaces import ACCOUNT_SERVICE, HTS_TOKEN
from lazy_farms.services.mirror import MirrorNodeError

log = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
RECEIPT_TIMEOUT = 120
#: Multiplier applied to a mirror-node gas estimate when no limit is given.
ESTIMATE_HEADROOM = 1.2


class ContractCallError(RuntimeError):
    """A read-only call reverted; `reason` holds the decoded revert."""

    def __init__(self, message: str, reason: str | None = None):
        super().__init__(message)
        self.reason = reason


@dataclass
class ExecutionResult:
    status: str
    transaction_hash: str | None = None
    receipt: Any = field(default=None, repr=False)
    error: str | None = None
    gas_used: int | None = None
    contract_address: str | None = None

    @property
    def success(self) -> bool:
        return self.status == SUCCESS


def is_success(result: ExecutionResult | str | None) -> bool:
    if isinstance(result, ExecutionResult):
        return result.success
    return result == SUCCESS


def log_result(result: ExecutionResult, operation: str) -> bool:
    """Print the outcome of a write; returns `is_success(result)`."""
    if result.success:
        print(f"{operation} successful. Transaction ID: {result.transaction_hash}")
        return True
    detail = f" ({result.error})" if result.error else ""
    print(f"ERROR: {operation} failed: {result.status}{detail}")
    if result.transaction_hash:
        print(f"   Transaction ID: {result.transaction_hash}")
    return False


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _sender(client: HederaClient, sender: str | None) -> str:
    return to_evm_address(sender) if sender else client.sender_address


def query(
    client: HederaClient,
    contract: str,
    abi: ContractAbi,
    fn: str,
    args: Sequence[Any] = (),
    sender: str | None = None,
) -> tuple[Any, ...]:
    """
    Run a view/pure function through the mirror node and decode its outputs.

    Raises:
        ContractCallError: the call reverted (reason decoded when possible).
        MirrorNodeError: any other mirror-node failure.
    """
    to = client.mirror.contract_evm_address(contract)
    data = abi.encode_call(fn, args)
    try:
        raw = client.mirror.contract_call(to, data, _sender(client, sender))
    except MirrorNodeError as e:
        if e.revert_data:
            reason = abi.decode_error(e.revert_data)
            raise ContractCallError(
                f"{abi.name}.{fn} reverted: {reason or e.revert_data}", reason
            ) from e
        raise
    return abi.decode_result(fn, raw)


def query_one(
    client: HederaClient,
    contract: str,
    abi: ContractAbi,
    fn: str,
    args: Sequence[Any] = (),
    sender: str | None = None,
) -> Any:
    """`query()` for single-output functions; returns the bare value."""
    out = query(client, contract, abi, fn, args, sender)
    return out[0] if out else None


def estimate_gas(
    client: HederaClient,
    contract: str,
    abi: ContractAbi,
    fn: str,
    args: Sequence[Any] = (),
    value: int = 0,
    fallback: int | None = None,
) -> int:
    """
    Mirror-node gas estimate for a call from the operator.

    When the estimate fails and `fallback` is given, the fallback is logged
    and returned instead of raising.
    """
    to = client.mirror.contract_evm_address(contract)
    data = abi.encode_call(fn, args)
    try:
        raw = client.mirror.contract_call(to, data, client.sender_address, estimate=True)
        return int(raw, 16)
    except (MirrorNodeError, ValueError) as e:
        if fallback is None:
            raise
        log.warning("Gas estimate for %s.%s failed (%s); using %d", abi.name, fn, e, fallback)
        return fallback


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def _send(
    client: HederaClient, tx: dict[str, Any], label: str, value_tinybar: int = 0
) -> tuple[str, Any]:
    """Fill nonce, gas price and chain id, sign, submit and wait for the receipt."""
    account = client.require_account()
    w3 = client.web3
    signed = account.sign_transaction(
        {
            **tx,
            "gasPrice": w3.eth.gas_price,
            "nonce": w3.eth.get_transaction_count(account.address),
            "chainId": client.network.chain_id,
            "value": value_tinybar * TINYBAR_TO_WEIBAR,
        }
    )
    tx_hash = Web3.to_hex(w3.eth.send_raw_transaction(signed.raw_transaction))
    log.info("%s submitted: %s", label, tx_hash)
    return tx_hash, w3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_TIMEOUT)


def execute(
    client: HederaClient,
    contract: str,
    abi: ContractAbi,
    fn: str,
    args: Sequence[Any] = (),
    gas: int | None = None,
    value_tinybar: int = 0,
) -> ExecutionResult:
    """
    Sign and submit a contract call through the relay and wait for the receipt.

    Args:
        gas: gas limit; when None the mirror node estimate plus 20% is used.
        value_tinybar: HBAR to attach, in tinybar.
    """
    client.require_account()
    to = client.mirror.contract_evm_address(contract)
    data = abi.encode_call(fn, args)
    if gas is None:
        gas = int(
            estimate_gas(client, to, abi, fn, args, fallback=GAS.STANDARD) * ESTIMATE_HEADROOM
        )

    try:
        tx_hash, receipt = _send(
            client,
            {"to": to_checksum_address(to), "data": data, "gas": gas},
            f"{abi.name}.{fn}",
            value_tinybar,
        )
    except (ValueError, Web3Exception) as e:
        log.error("%s.%s failed before a receipt: %s", abi.name, fn, e)
        return ExecutionResult(status="FAILED", error=str(e))

    gas_used = receipt.get("gasUsed")
    if receipt.get("status") == 1:
        return ExecutionResult(SUCCESS, tx_hash, receipt, gas_used=gas_used)

    status, error = "REVERTED", None
    record = client.mirror.contract_result(tx_hash)
    if record:
        status = record.get("result") or status
        raw_error = record.get("error_message")
        if raw_error:
            decoded = None
            if raw_error.startswith("0x"):
                try:
                    decoded = abi.decode_error(raw_error)
                except (ValueError, DecodingError):
                    decoded = None
            error = decoded or raw_error
    return ExecutionResult(status, tx_hash, receipt, error=error, gas_used=gas_used)


def deploy(
    client: HederaClient,
    abi: ContractAbi,
    bytecode: str,
    args: Sequence[Any] = (),
    gas: int = GAS.CONTRACT_DEPLOY,
) -> ExecutionResult:
    """
    Create a contract from `bytecode` through the relay.

    On success `contract_address` holds the new contract's EVM address; the
    `0.0.N` id is available from the mirror node once it has been indexed.
    """
    client.require_account()
    data = abi.encode_deploy(bytecode, args)
    try:
        tx_hash, receipt = _send(client, {"data": data, "gas": gas}, f"{abi.name} deploy")
    except (ValueError, Web3Exception) as e:
        log.error("%s deploy failed before a receipt: %s", abi.name, e)
        return ExecutionResult(status="FAILED", error=str(e))

    gas_used = receipt.get("gasUsed")
    if receipt.get("status") != 1:
        return ExecutionResult("REVERTED", tx_hash, receipt, gas_used=gas_used)
    address = receipt.get("contractAddress")
    return ExecutionResult(
        SUCCESS,
        tx_hash,
        receipt,
        gas_used=gas_used,
        contract_address=address.lower() if address else None,
    )


def fetch_outputs(
    client: HederaClient, result: ExecutionResult, abi: ContractAbi, fn: str
) -> tuple[Any, ...]:
    """
    Decode the return values of a successful write from its mirror record.

    Returns an empty tuple when the record (or its `call_result`) is missing.
    """
    if not result.transaction_hash:
        return ()
    record = client.mirror.contract_result(result.transaction_hash)
    if not record or not record.get("call_result"):
        return ()
    return abi.decode_result(fn, record["call_result"])


# ---------------------------------------------------------------------------
# Allowances
# ---------------------------------------------------------------------------


def set_ft_allowance(
    client: HederaClient, token_id: str, spender: str, amount: int
) -> ExecutionResult:
    """Approve `spender` for `amount` raw units of a fungible HTS token."""
    spender_evm = client.mirror.contract_evm_address(spender)
    return execute(
        client,
        to_evm_address(token_id),
        HTS_TOKEN,
        "approve",
        [spender_evm, int(amount)],
        gas=GAS.NFT_ALLOWANCE,
    )


def set_nft_allowance_all(
    client: HederaClient, token_ids: Sequence[str], spender: str
) -> list[ExecutionResult]:
    """Approve `spender` for every serial of each NFT collection."""
    spender_evm = client.mirror.contract_evm_address(spender)
    return [
        execute(
            client,
            to_evm_address(token_id),
            HTS_TOKEN,
            "setApprovalForAll",
            [spender_evm, True],
            gas=GAS.NFT_ALLOWANCE,
        )
        for token_id in token_ids
    ]


def set_hbar_allowance(
    client: HederaClient, spender: str, tinybar: int
) -> ExecutionResult:
    """Approve an HBAR allowance from the operator via the account service."""
    spender_evm = client.mirror.contract_evm_address(spender)
    return execute(
        client,
        PRECOMPILES.HAS,
        ACCOUNT_SERVICE,
        "hbarApprove",
        [client.sender_address, spender_evm, int(tinybar)],
        gas=GAS.STANDARD,
    )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def contract_events(
    client: HederaClient, contract: str, abi: ContractAbi, order: str = "asc"
) -> list[tuple[dict[str, Any], DecodedEvent]]:
    """
    Decode every log of `contract` that matches an event in `abi`.

    Returns `(raw_log, event)` pairs; logs of unknown events are skipped.
    """
    events = []
    for entry in client.mirror.contract_logs(contract, order=order):
        topics = entry.get("topics") or []
        try:
            event = abi.decode_log(topics, entry.get("data") or "0x")
        except DecodingError:
            log.debug("Undecodable log in %s: %s", contract, topics[:1])
            continue
        if event is not None:
            events.append((entry, event))
    log.info("Decoded %d event(s) for %s", len(events), contract)
    return events
