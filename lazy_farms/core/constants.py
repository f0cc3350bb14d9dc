# lazy_farms/core/constants.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Gas limits, timing, decimals and well-known identifiers for Lazy Farms.

Design notes
------------
- Constants are typed `Final` to communicate immutability and to help static
  analyzers catch accidental reassignment.
- Gas limits are *ceilings* handed to the relay; unused gas is refunded up to
  the network's refund cap, so values err on the generous side.
- Mainnet contract ids mirror the published deployment; testnet ids change
  with every redeploy and live in `deployments/testnet.json` instead.
"""

from typing import Final

# ---------------------------------------------------------------------------
# Gas limits
# ---------------------------------------------------------------------------


class GAS:
    """Gas ceilings per operation family."""

    DEFAULT: Final[int] = 100_000
    STANDARD: Final[int] = 200_000
    QUERY: Final[int] = 100_000
    SIMPLE_CALL: Final[int] = 200_000

    MISSION_ENTER: Final[int] = 2_000_000
    MISSION_LEAVE: Final[int] = 1_500_000
    MISSION_CLAIM: Final[int] = 1_500_000

    #: Staking cost grows with the number of collections in the call.
    STAKE_BASE: Final[int] = 400_000
    STAKE_PER_TOKEN: Final[int] = 400_000

    NFT_TRANSFER: Final[int] = 300_000
    NFT_ALLOWANCE: Final[int] = 200_000
    ADMIN_CALL: Final[int] = 300_000
    BOOST_ACTIVATE: Final[int] = 500_000
    CONTRACT_DEPLOY: Final[int] = 800_000
    MISSION_DEPLOY: Final[int] = 5_000_000


def calculate_stake_gas(token_count: int) -> int:
    """Gas for a stake/unstake call covering `token_count` collections."""
    return GAS.STAKE_BASE + token_count * GAS.STAKE_PER_TOKEN


# ---------------------------------------------------------------------------
# Timing (seconds)
# ---------------------------------------------------------------------------


class DELAYS:
    #: Time for the mirror node to index a freshly executed transaction.
    MIRROR_NODE: Final[float] = 5.0
    SHORT_POLL: Final[float] = 1.0
    LONG_POLL: Final[float] = 10.0


MINUTE: Final[int] = 60
HOUR: Final[int] = 60 * MINUTE
DAY: Final[int] = 24 * HOUR

# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


class DECIMALS:
    LAZY: Final[int] = 1
    HBAR: Final[int] = 8


#: The JSON-RPC relay denominates `value` in weibar (18 decimals) while
#: HBAR amounts are tinybar (8 decimals).
TINYBAR_TO_WEIBAR: Final[int] = 10**10


# ---------------------------------------------------------------------------
# System contracts
# ---------------------------------------------------------------------------


class PRECOMPILES:
    HTS: Final[str] = "0x0000000000000000000000000000000000000167"
    EXCHANGE_RATE: Final[str] = "0x0000000000000000000000000000000000000168"
    PRNG: Final[str] = "0x0000000000000000000000000000000000000169"
    #: Hedera Account Service (HBAR allowances).
    HAS: Final[str] = "0x000000000000000000000000000000000000016a"


ZERO_ADDRESS: Final[str] = "0x" + "0" * 40

# ---------------------------------------------------------------------------
# Game vocabulary
# ---------------------------------------------------------------------------

#: Gem / boost levels, index == on-chain rank.
GEM_LEVELS: Final[tuple[str, ...]] = ("C", "R", "SR", "UR", "LR", "SPE")

#: Contract name → Hardhat artifact path (relative to ARTIFACTS_DIR).
KNOWN_CONTRACTS: Final[dict[str, str]] = {
    name: f"contracts/{name}.sol/{name}.json"
    for name in (
        "Mission",
        "MissionFactory",
        "LazyNFTStaking",
        "BoostManager",
        "LazyGasStation",
        "LazyDelegateRegistry",
        "LazyAllowanceUtility",
        "TokenStaker",
    )
}

#: Published mainnet deployment, used by the read-only CLI as defaults.
MAINNET_CONTRACTS: Final[dict[str, str]] = {
    "LAZY_TOKEN": "0.0.1311037",
    "LAZY_SCT": "0.0.1311003",
    "LAZY_GAS_STATION": "0.0.7221483",
    "LAZY_DELEGATE_REGISTRY": "0.0.7221486",
    "LAZY_NFT_STAKING": "0.0.7221488",
    "MISSION_FACTORY": "0.0.8257122",
    "MISSION_TEMPLATE": "0.0.8257118",
    "BOOST_MANAGER": "0.0.8257105",
    "PRNG": "0.0.8257116",
}

#: Testnet ids are redeployed often; populate from the manifest or `.env`.
TESTNET_CONTRACTS: Final[dict[str, str]] = {key: "" for key in MAINNET_CONTRACTS}

#: Mirror-node page size used by every paginated listing.
MIRROR_PAGE_LIMIT: Final[int] = 100
