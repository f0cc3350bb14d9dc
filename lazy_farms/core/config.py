# lazy_farms/core/config.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Centralized, immutable configuration for the Lazy Farms operator scripts.

This module defines a frozen `Settings` dataclass whose fields are populated
from environment variables (loaded via python-dotenv if a `.env` file is
present), plus the `Network` descriptor used to pick mirror-node and JSON-RPC
relay endpoints for the selected Hedera network.

Design goals
------------
- **Single source of truth**: every script reads `settings` rather than
  calling `os.getenv` directly.
- **Immutability**: `@dataclass(frozen=True)`; tests build fresh instances with
  `Settings.from_env({...})` instead of mutating the singleton.
- **Fast import**: only the dotenv load and dataclass construction happen at
  import time. No network calls.

Security notes
--------------
- `PRIVATE_KEY` and `SIGNING_KEY` are secrets. They are never logged and never
  included in `repr()` output.
- Do not commit a populated `.env`; use `.env.example` as the template.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields

from dotenv import load_dotenv

# Existing process variables take precedence over `.env` values.
load_dotenv()

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


# ---------------------------------------------------------------------------
# Networks
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Network:
    """Endpoints and identifiers for one Hedera network."""

    name: str
    label: str
    chain_id: int
    mirror_url: str
    relay_url: str


NETWORKS: dict[str, Network] = {
    "mainnet": Network(
        "mainnet",
        "MAINNET",
        295,
        "https://mainnet-public.mirrornode.hedera.com",
        "https://mainnet.hashio.io/api",
    ),
    "testnet": Network(
        "testnet",
        "TESTNET",
        296,
        "https://testnet.mirrornode.hedera.com",
        "https://testnet.hashio.io/api",
    ),
    "previewnet": Network(
        "previewnet",
        "PREVIEWNET",
        297,
        "https://previewnet.mirrornode.hedera.com",
        "https://previewnet.hashio.io/api",
    ),
    "local": Network(
        "local",
        "LOCAL",
        298,
        "http://localhost:5551",
        "http://localhost:7546",
    ),
}

#: Accepted spellings of ENVIRONMENT → canonical network name.
ENVIRONMENT_ALIASES: dict[str, str] = {
    "TEST": "testnet",
    "TESTNET": "testnet",
    "MAIN": "mainnet",
    "MAINNET": "mainnet",
    "PREVIEW": "previewnet",
    "PREVIEWNET": "previewnet",
    "LOCAL": "local",
    "LOCALHOST": "local",
}


def resolve_network(
    value: str | None, mirror_url: str = "", relay_url: str = ""
) -> Network:
    """
    Map an ENVIRONMENT value (TEST, MAIN, PREVIEW, LOCAL or the long forms)
    to a `Network`, applying optional endpoint overrides.

    Raises:
        ValueError: when the value is empty or not a known network.
    """
    key = (value or "").strip().upper()
    name = ENVIRONMENT_ALIASES.get(key)
    if name is None:
        raise ValueError(
            "Must specify ENVIRONMENT (TEST, MAIN, PREVIEW, or LOCAL) in .env file"
            + (f" (got {value!r})" if value else "")
        )
    net = NETWORKS[name]
    if mirror_url or relay_url:
        net = Network(
            net.name,
            net.label,
            net.chain_id,
            (mirror_url or net.mirror_url).rstrip("/"),
            relay_url or net.relay_url,
        )
    return net


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _flag(raw: str | None) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings populated from the environment.

    Field names match the environment variable names so that `.env.example`
    doubles as documentation. Unset values fall back to the defaults below.
    """

    # --- Operator / network -------------------------------------------------
    ENVIRONMENT: str = ""
    ACCOUNT_ID: str = ""
    PRIVATE_KEY: str = field(default="", repr=False)
    # ECDSA key used to sign staking reward proofs.
    SIGNING_KEY: str = field(default="", repr=False)
    MIRROR_URL: str = ""
    RELAY_URL: str = ""

    # --- Contracts and token ------------------------------------------------
    LAZY_TOKEN_ID: str = ""
    LAZY_GAS_STATION_CONTRACT_ID: str = ""
    LAZY_NFT_STAKING_CONTRACT_ID: str = ""
    MISSION_FACTORY_CONTRACT_ID: str = ""
    BOOST_MANAGER_CONTRACT_ID: str = ""
    LAZY_DELEGATE_REGISTRY_CONTRACT_ID: str = ""
    LAZY_DECIMALS: int = 1
    LAZY_BURN_PERCENT: int = 25

    # --- Local files --------------------------------------------------------
    ARTIFACTS_DIR: str = "artifacts"
    ABI_DIR: str = "abi"
    DEPLOYMENTS_DIR: str = "deployments"
    LOG_LEVEL: str = "INFO"

    # --- Economy cache service ----------------------------------------------
    LAZY_STAKING_ENV: str = ""
    LAZY_STAKING_CONTRACT_ID: str = ""
    LAZY_STAKING_CACHE_TABLE: str = "LazyEconomyCache"
    LAZY_STAKING_TIMESERIES_TABLE: str = "LazyEconomyTimeseries"
    DIRECTUS_DB_URL: str = ""
    DIRECTUS_TOKEN: str = field(default="", repr=False)
    STAKING_CACHE_SUPRESS_LOGS: bool = False
    LAZY_GAS_STATION_ID: str = "0.0.7221483"
    LAZY_SMART_CONTRACT_TREASURY: str = "0.0.1311003"
    TREASURY_ID: str = "0.0.499869"
    MINT_ID: str = "0.0.697777"
    GEN1_SALES_ID: str = "0.0.662623"
    LSV_GEN2_SALES_ID: str = "0.0.659099"
    GEN2_RAFFLE_ID: str = "0.0.658725"
    GEN1_ROYALTY_ID: str = "0.0.841300"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Build settings from `environ` (defaults to `os.environ`).

        Integer and boolean fields are coerced; a malformed integer raises
        `ValueError` naming the variable.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for f in fields(cls):
            raw = env.get(f.name)
            if raw is None or raw == "":
                continue
            if f.type in ("int", int):
                try:
                    values[f.name] = int(raw)
                except ValueError as e:
                    raise ValueError(f"{f.name} must be an integer, got {raw!r}") from e
            elif f.type in ("bool", bool):
                values[f.name] = _flag(raw)
            else:
                values[f.name] = raw.strip()
        return cls(**values)

    @property
    def network(self) -> Network:
        """Network selected by ENVIRONMENT (raises ValueError when unset)."""
        return resolve_network(self.ENVIRONMENT, self.MIRROR_URL, self.RELAY_URL)

    @property
    def has_operator(self) -> bool:
        return bool(self.ACCOUNT_ID and self.PRIVATE_KEY)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def configure_logging(level: str | None = None, quiet: bool = False) -> None:
    """
    Configure root logging for CLI entry points.

    `quiet` forces WARNING so that long-running jobs (e.g. the economy cache)
    only report problems.
    """
    name = "WARNING" if quiet else (level or settings.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(level=getattr(logging, name, logging.INFO), format=LOG_FORMAT)


# Singleton settings object imported by consumers.
settings = Settings.from_env()
