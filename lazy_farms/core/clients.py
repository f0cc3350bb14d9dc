# lazy_farms/core/clients.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Client factory for the Hedera network.

`create_hedera_client()` turns the `.env` configuration into a `HederaClient`
bundle:

- `mirror`          → `MirrorNode` REST client (reads, simulations, logs)
- `web3`            → `Web3` over the JSON-RPC relay (transaction submission)
- `account`         → operator `LocalAccount` used to sign transactions
- `signing_account` → optional ECDSA key that signs staking reward proofs

Keys
----
The relay only accepts ECDSA (secp256k1) signatures, so `PRIVATE_KEY` must be
the operator's ECDSA key. Raw hex (with or without `0x`) and the DER encoding
exported by the Hedera portal are both accepted. ED25519 keys are rejected
with an explicit message.

A raw 32-byte ED25519 key is indistinguishable from a secp256k1 one, so the
key is checked against the account on the mirror node: the address derived
from `PRIVATE_KEY` must be the `evm_address` of `ACCOUNT_ID`. Otherwise
transactions would be sent from some other account.

Failure behavior
----------------
Missing or malformed required credentials raise `SystemExit` with the same
one-line messages operators already know from the scripts, so every CLI can
call the factory without extra handling.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import requests
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from lazy_farms.core.config import Network, Settings, resolve_network
from lazy_farms.core.config import settings as default_settings
from lazy_farms.services.ids import parse_entity_id, to_evm_address
from lazy_farms.services.mirror import MirrorNode, MirrorNodeError

log = logging.getLogger(__name__)

#: DER prefix of a secp256k1 private key as exported by the Hedera portal.
ECDSA_DER_PREFIX = "3030020100300706052b8104000a04220420"
ED25519_DER_PREFIX = "302e020100300506032b657004220420"

RELAY_TIMEOUT = 60


def parse_private_key(raw: str) -> str:
    """
    Normalize an ECDSA private key to `0x` + 64 hex.

    Raises:
        ValueError: for ED25519 keys or anything that is not 32 bytes of hex.
    """
    text = (raw or "").strip().lower().removeprefix("0x")
    if text.startswith(ED25519_DER_PREFIX):
        raise ValueError(
            "ED25519 keys cannot sign EVM transactions; use the account's ECDSA key"
        )
    if text.startswith(ECDSA_DER_PREFIX):
        text = text[len(ECDSA_DER_PREFIX) :]
    if len(text) != 64:
        raise ValueError("Private key must be 32 bytes of hex (raw or DER encoded)")
    try:
        bytes.fromhex(text)
    except ValueError as e:
        raise ValueError("Private key is not valid hex") from e
    return "0x" + text


def load_account(raw: str) -> LocalAccount:
    return Account.from_key(parse_private_key(raw))


@dataclass
class HederaClient:
    """Network handles and credentials shared by one script run."""

    network: Network
    mirror: MirrorNode
    operator_id: str | None = None
    account: LocalAccount | None = field(default=None, repr=False)
    signing_account: LocalAccount | None = field(default=None, repr=False)
    _web3: Web3 | None = field(default=None, repr=False)

    @property
    def web3(self) -> Web3:
        """Web3 over the JSON-RPC relay, created on first use."""
        if self._web3 is None:
            self._web3 = Web3(
                Web3.HTTPProvider(
                    self.network.relay_url, request_kwargs={"timeout": RELAY_TIMEOUT}
                )
            )
        return self._web3

    @property
    def sender_address(self) -> str:
        """
        Address the contracts see as `msg.sender` for this operator.

        With a key this is the ECDSA address `create_hedera_client` verified
        against ACCOUNT_ID; without one, the operator's long-zero address.
        """
        if self.account is not None:
            return self.account.address.lower()
        if self.operator_id:
            return to_evm_address(self.operator_id)
        return "0x" + "0" * 40

    def require_account(self) -> LocalAccount:
        if self.account is None:
            raise SystemExit("ERROR: Must specify PRIVATE_KEY & ACCOUNT_ID in the .env file")
        return self.account

    def require_signing_account(self) -> LocalAccount:
        if self.signing_account is None:
            raise SystemExit("ERROR: Must specify SIGNING_KEY in the .env file")
        return self.signing_account


def verify_operator_key(mirror: MirrorNode, operator_id: str, account: LocalAccount) -> None:
    """
    Exit unless `account` is the ECDSA key of `operator_id`.

    The mirror node reports the account's key type and the EVM address the
    relay attributes its transactions to.
    """
    try:
        info = mirror.account(operator_id)
    except MirrorNodeError as e:
        raise SystemExit(f"ERROR: Could not look up ACCOUNT_ID {operator_id}: {e}") from e
    if info is None:
        raise SystemExit(f"ERROR: ACCOUNT_ID {operator_id} not found on {mirror.network.name}")
    key_type = (info.get("key") or {}).get("_type", "")
    if key_type == "ED25519":
        raise SystemExit(
            f"ERROR: ACCOUNT_ID {operator_id} is an ED25519 account; "
            "EVM transactions need an ECDSA (secp256k1) operator"
        )
    expected = (info.get("evm_address") or "").lower()
    if expected != account.address.lower():
        raise SystemExit(
            f"ERROR: PRIVATE_KEY does not belong to ACCOUNT_ID {operator_id} "
            f"(key address {account.address.lower()}, account address {expected or 'unknown'})"
        )
    log.debug("Operator %s verified as %s", operator_id, expected)


def create_hedera_client(
    config: Settings | None = None,
    *,
    require_operator: bool = True,
    require_signing_key: bool = False,
    require_env_vars: Iterable[str] = (),
    environment: str | None = None,
    session: requests.Session | None = None,
) -> HederaClient:
    """
    Build a `HederaClient` from settings.

    Args:
        config: settings to use (defaults to the process-wide `settings`).
        require_operator: exit unless ACCOUNT_ID and PRIVATE_KEY are usable.
        require_signing_key: exit unless SIGNING_KEY is usable.
        require_env_vars: additional `Settings` field names that must be set.
        environment: override ENVIRONMENT (e.g. the `--testnet` flag).
        session: HTTP session for the mirror node client.

    Raises:
        SystemExit: with an operator-facing message for missing config, an
            unusable key, or a key that does not belong to ACCOUNT_ID.
    """
    cfg = config or default_settings

    missing = [name for name in require_env_vars if not getattr(cfg, name, "")]
    if missing:
        raise SystemExit(f"ERROR: Must specify {', '.join(missing)} in the .env file")

    try:
        network = resolve_network(environment or cfg.ENVIRONMENT, cfg.MIRROR_URL, cfg.RELAY_URL)
    except ValueError as e:
        raise SystemExit(f"ERROR: {e}") from e
    log.info("Using *%s*", network.label)
    mirror = MirrorNode(network, session=session)

    operator_id: str | None = None
    account: LocalAccount | None = None
    if cfg.ACCOUNT_ID:
        try:
            operator_id = str(parse_entity_id(cfg.ACCOUNT_ID))
        except ValueError as e:
            if require_operator:
                raise SystemExit(f"ERROR: Invalid ACCOUNT_ID: {e}") from e
            log.error("Invalid ACCOUNT_ID: %s", e)
    if cfg.PRIVATE_KEY:
        try:
            account = load_account(cfg.PRIVATE_KEY)
        except ValueError as e:
            if require_operator:
                raise SystemExit(f"ERROR: Invalid PRIVATE_KEY: {e}") from e
            log.error("Invalid PRIVATE_KEY: %s", e)
    if require_operator and (operator_id is None or account is None):
        raise SystemExit("ERROR: Must specify PRIVATE_KEY & ACCOUNT_ID in the .env file")
    if operator_id is not None and account is not None:
        verify_operator_key(mirror, operator_id, account)

    signing_account: LocalAccount | None = None
    if cfg.SIGNING_KEY:
        try:
            signing_account = load_account(cfg.SIGNING_KEY)
        except ValueError as e:
            log.error("Invalid SIGNING_KEY: %s", e)
    if require_signing_key and signing_account is None:
        raise SystemExit("ERROR: Must specify SIGNING_KEY in the .env file")

    return HederaClient(
        network=network,
        mirror=mirror,
        operator_id=operator_id,
        account=account,
        signing_account=signing_account,
    )
