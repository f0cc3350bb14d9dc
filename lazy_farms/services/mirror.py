# lazy_farms/services/mirror.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Hedera mirror-node REST client.

The mirror node is the read side of every script: account/token lookups,
allowance listings, contract logs and results, and free read-only contract
execution through `POST /api/v1/contracts/call`.

Conventions
-----------
- `get()` returns None on HTTP 404 ("entity does not exist" is a normal
  answer for lookups); every other failure raises `MirrorNodeError`.
- Listing endpoints are followed through `links.next` until exhausted.
- All ids are passed as strings (`0.0.N` or `0x...`), exactly as the mirror
  node accepts them.
"""

import logging
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from lazy_farms.core.config import Network
from lazy_farms.core.constants import MIRROR_PAGE_LIMIT
from lazy_farms.services.ids import (
    from_evm_address,
    is_evm_address,
    to_evm_address,
    transaction_id_to_mirror,
)

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15
#: gas and gasPrice sent with simulated calls.
SIMULATION_GAS = 15_000_000
SIMULATION_GAS_PRICE = 100_000_000


class MirrorNodeError(RuntimeError):
    """Mirror node returned an unexpected status or was unreachable."""

    def __init__(
        self, message: str, status: int | None = None, revert_data: str | None = None
    ):
        super().__init__(message)
        self.status = status
        #: ABI-encoded revert payload from a failed `contracts/call`.
        self.revert_data = revert_data


def _session() -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=8, pool_maxsize=8)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept": "application/json"})
    return session


class MirrorNode:
    """Thin wrapper over one network's mirror-node REST API."""

    def __init__(
        self,
        network: Network,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.network = network
        self.base_url = network.mirror_url.rstrip("/")
        self.session = session or _session()
        self.timeout = timeout
        self._evm_to_account: dict[str, str] = {}
        self._contract_evm: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        if not path.startswith("/api/"):
            path = "/api/v1/" + path.lstrip("/")
        return self.base_url + path

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any | None:
        """
        GET a mirror path (`accounts/0.0.1`, `/api/v1/...` or an absolute URL).

        Returns:
            Decoded JSON, or None when the mirror node answers 404.
        """
        url = self._url(path)
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise MirrorNodeError(f"Mirror node error: {e}") from e
        if resp.status_code == 404:
            log.debug("404 from %s", url)
            return None
        if not resp.ok:
            raise MirrorNodeError(
                f"Mirror node error: {resp.status_code} {resp.reason} ({url})",
                resp.status_code,
            )
        return resp.json()

    def paginate(
        self, path: str, key: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        Collect `key` items across pages by following `links.next`.

        The first request carries `limit=100` unless the caller sets one.
        """
        query = {"limit": MIRROR_PAGE_LIMIT, **(params or {})}
        items: list[dict[str, Any]] = []
        page = self.get(path, query)
        pages = 0
        while page:
            pages += 1
            items.extend(page.get(key, []))
            nxt = (page.get("links") or {}).get("next")
            if not nxt:
                break
            # `next` is a path relative to the mirror root, query included.
            page = self.get(self.base_url + nxt if nxt.startswith("/") else nxt)
        log.debug("Fetched %d %s across %d page(s) from %s", len(items), key, pages, path)
        return items

    # ------------------------------------------------------------------
    # Accounts & tokens
    # ------------------------------------------------------------------

    def account(self, account_id: str) -> dict[str, Any] | None:
        return self.get(f"accounts/{account_id}")

    def account_id_for_evm(self, address: str) -> str:
        """
        Resolve an EVM address to `0.0.N`.

        Long-zero addresses convert locally; alias addresses are looked up on
        the mirror node and cached for the life of this client. Unknown
        aliases are returned unchanged.
        """
        address = to_evm_address(address)
        local = from_evm_address(address)
        if local:
            return local
        if address in self._evm_to_account:
            return self._evm_to_account[address]
        log.info("Translating EVM address: %s", address)
        info = self.account(address)
        resolved = (info or {}).get("account") or address
        log.info("Got: %s for EVM address: %s", resolved, address)
        self._evm_to_account[address] = resolved
        return resolved

    def token(self, token_id: str) -> dict[str, Any] | None:
        return self.get(f"tokens/{token_id}")

    def token_balance(self, account_id: str, token_id: str) -> int:
        """Raw balance of `token_id` held by `account_id` (0 when not associated)."""
        data = self.get(f"accounts/{account_id}/tokens", {"token.id": token_id})
        for row in (data or {}).get("tokens", []):
            if row.get("token_id") == token_id:
                return int(row.get("balance", 0))
        return 0

    def hbar_balance(self, account_id: str) -> int:
        """Tinybar balance of an account."""
        data = self.get("balances", {"account.id": account_id})
        for row in (data or {}).get("balances", []):
            if row.get("account") == account_id:
                return int(row.get("balance", 0))
        info = self.account(account_id)
        return int(((info or {}).get("balance") or {}).get("balance", 0))

    def nfts_owned(self, account_id: str, token_id: str | None = None) -> list[dict[str, Any]]:
        params = {"token.id": token_id} if token_id else None
        return self.paginate(f"accounts/{account_id}/nfts", "nfts", params)

    def token_nfts(self, token_id: str) -> list[dict[str, Any]]:
        """Every minted serial of an NFT collection."""
        return self.paginate(f"tokens/{token_id}/nfts", "nfts")

    def ft_allowances(self, account_id: str) -> list[dict[str, Any]]:
        return self.paginate(f"accounts/{account_id}/allowances/tokens", "allowances")

    def nft_allowances(self, account_id: str) -> list[dict[str, Any]]:
        return self.paginate(f"accounts/{account_id}/allowances/nfts", "allowances")

    def hbar_allowances(self, account_id: str) -> list[dict[str, Any]]:
        return self.paginate(f"accounts/{account_id}/allowances/crypto", "allowances")

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def contract(self, contract_id: str) -> dict[str, Any] | None:
        return self.get(f"contracts/{contract_id}")

    def contract_evm_address(self, contract_id: str) -> str:
        """
        EVM address of a contract. Contracts deployed via CREATE2 have a
        non long-zero address, so this asks the mirror node (once per id).
        """
        if is_evm_address(contract_id):
            return to_evm_address(contract_id)
        if contract_id not in self._contract_evm:
            info = self.contract(contract_id)
            if info and info.get("evm_address"):
                self._contract_evm[contract_id] = to_evm_address(info["evm_address"])
            else:
                self._contract_evm[contract_id] = to_evm_address(contract_id)
        return self._contract_evm[contract_id]

    def contract_id_for_evm(self, address: str) -> str:
        info = self.contract(address)
        if info and info.get("contract_id"):
            return info["contract_id"]
        return from_evm_address(address) or to_evm_address(address)

    def contract_result(self, transaction: str) -> dict[str, Any] | None:
        """Contract result by transaction hash or SDK id (`0.0.x@s.n`)."""
        return self.get(f"contracts/results/{transaction_id_to_mirror(transaction)}")

    def contract_logs(self, contract_id: str, order: str = "asc") -> list[dict[str, Any]]:
        return self.paginate(
            f"contracts/{contract_id}/results/logs", "logs", {"order": order}
        )

    def contract_call(
        self,
        to: str,
        data: str,
        sender: str,
        estimate: bool = False,
        gas: int = SIMULATION_GAS,
    ) -> str:
        """
        Execute a call against the latest state without a transaction.

        Returns:
            The `result` hex string. With `estimate=True` this is the gas
            estimate as hex.

        Raises:
            MirrorNodeError: on a non-2xx answer; a revert is reported with
            the mirror node's message and the raw revert data.
        """
        body = {
            "block": "latest",
            "data": data,
            "estimate": estimate,
            "from": to_evm_address(sender),
            "gas": gas,
            "gasPrice": SIMULATION_GAS_PRICE,
            "to": to_evm_address(to),
        }
        url = self._url("contracts/call")
        try:
            resp = self.session.post(url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise MirrorNodeError(f"Mirror node error: {e}") from e
        if not resp.ok:
            try:
                messages = resp.json().get("_status", {}).get("messages", [])
            except ValueError:
                messages = [{"message": resp.text[:200]}]
            detail = "; ".join(m.get("detail") or m.get("message", "") for m in messages)
            revert = next((m["data"] for m in messages if m.get("data")), None)
            raise MirrorNodeError(
                f"Mirror node error: {resp.status_code} {detail}".strip(),
                resp.status_code,
                revert_data=revert,
            )
        return resp.json().get("result", "0x")
