# lazy_farms/services/economy.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Lazy staking economy snapshot (ETL for the website dashboards).

Extract
    Read-only calls against LazyNFTStaking through the mirror node, token and
    balance lookups, and `ClaimedRewards` events from the contract logs.
Transform
    Totals, per-collection staked counts and five "top 25" leaderboards.
    All $LAZY amounts are converted to whole tokens exactly once.
Load
    One cache row per (contractId, environment), created or updated in place,
    plus an append-only timeseries row per run. Both go to Directus.
"""

import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from eth_abi.exceptions import DecodingError

from lazy_farms.core.constants import DECIMALS
from lazy_farms.services.directus import DirectusClient
from lazy_farms.services.ids import from_evm_address
from lazy_farms.services.interfaces import NFT_STAKING
from lazy_farms.services.mirror import MirrorNode

log = logging.getLogger(__name__)

TOP_N = 25

LONGEST_STAKED = "LONGEST_STAKED"
HIGHEST_DAILY_RATE = "HIGHEST_DAILY_RATE"
LARGEST_BOOST = "LARGEST_BOOST"
LARGEST_UNCLAIMED = "LARGEST_UNCLAIMED"
MOST_CLAIMED = "MOST_CLAIMED"
TOP25_TYPES = (LONGEST_STAKED, HIGHEST_DAILY_RATE, LARGEST_BOOST, LARGEST_UNCLAIMED, MOST_CLAIMED)

_JESTER_RE = re.compile(r"#(\d+) (Jester)")
#: The Golden Hounds collection was minted with its metadata CID as symbol.
GOLDEN_HH_SYMBOL = "IPFS://bafkreie625ucklhyqwxqvopoc3aa6dmliji3xwagr3tfkziew3m2xdnd3i"


def _whole(amount: int | float, decimals: int) -> float:
    return amount / 10**decimals


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@dataclass
class NftCollection:
    name: str
    symbol: str
    total_supply: int
    num_staked: int

    def __post_init__(self) -> None:
        match = _JESTER_RE.search(self.name)
        if match:
            self.name = match.group(2)
        if self.symbol == GOLDEN_HH_SYMBOL:
            self.symbol = "GoldenHH"
        self.total_supply = max(int(self.total_supply), int(self.num_staked))

    @property
    def percent_staked(self) -> float:
        return self.num_staked / self.total_supply * 100 if self.total_supply else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "totalSupply": self.total_supply,
            "numStaked": self.num_staked,
        }

    def __str__(self) -> str:
        return (
            f"{self.name} [{self.symbol}] has {self.num_staked} NFTs staked "
            f"({self.percent_staked:.2f}%)"
        )


@dataclass
class Top25:
    """Leaderboard of one `TOP25_TYPES` metric; repeat users are summed."""

    type: str
    entries: dict[str, float] = field(default_factory=dict)
    resolved: list[tuple[str, float]] | None = field(default=None, repr=False)

    def add_user(self, user: str, amount: float) -> None:
        key = user.lower() if user.startswith("0x") else user
        self.entries[key] = self.entries.get(key, 0) + amount
        self.resolved = None

    def top(self) -> list[tuple[str, float]]:
        ranked = sorted(self.entries.items(), key=lambda kv: kv[1], reverse=True)
        return ranked[:TOP_N]

    def resolve(self, mirror: MirrorNode | None = None) -> list[tuple[str, float]]:
        """Top entries with EVM addresses translated to `0.0.N`."""
        if self.resolved is None:
            rows = []
            for user, amount in self.top():
                if user.startswith("0x"):
                    if mirror is not None:
                        user = mirror.account_id_for_evm(user)
                    else:
                        user = from_evm_address(user) or user
                rows.append((user, amount))
            self.resolved = rows
        return self.resolved

    def to_dict(self, mirror: MirrorNode | None = None) -> dict[str, Any]:
        return {
            "type": self.type,
            "userList": [{"user": u, "amount": a} for u, a in self.resolve(mirror)],
        }

    def format(self, mirror: MirrorNode | None = None) -> str:
        lines = [self.type]
        lines += [f"{i}: {u} {a}" for i, (u, a) in enumerate(self.resolve(mirror), start=1)]
        return "\n".join(lines)


@dataclass
class EconomyCache:
    staking_users: int
    total_items_staked: int
    total_lazy_earned: float
    total_lazy_claimed: float
    total_earn_rate: float
    collections: list[NftCollection] = field(default_factory=list)
    top25s: list[Top25] = field(default_factory=list)

    def add_collection(self, collection: NftCollection) -> None:
        """Merge collections sharing a symbol (multi-token series)."""
        for existing in self.collections:
            if existing.symbol == collection.symbol:
                existing.num_staked += collection.num_staked
                existing.total_supply += collection.total_supply
                return
        self.collections.append(collection)

    def top25(self, kind: str) -> Top25:
        return next(t for t in self.top25s if t.type == kind)

    def collections_dict(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self.collections]

    def to_dict(self, mirror: MirrorNode | None = None) -> dict[str, Any]:
        return {
            "stakingUsers": self.staking_users,
            "totalItemsStaked": self.total_items_staked,
            "totalLazyEarned": self.total_lazy_earned,
            "totalLazyClaimed": self.total_lazy_claimed,
            "totalEarnRate": self.total_earn_rate,
            "collections": self.collections_dict(),
            "top25s": [t.to_dict(mirror) for t in self.top25s],
        }

    def format(self, mirror: MirrorNode | None = None) -> str:
        lines = [
            f"Total Items Staked: {self.total_items_staked}",
            f"Total Lazy Earned: {self.total_lazy_earned}",
            f"Total Lazy Claimed: {self.total_lazy_claimed}",
            f"Total Earn Rate: {self.total_earn_rate}",
        ]
        lines += [str(c) for c in self.collections]
        lines += [t.format(mirror) for t in self.top25s]
        return "\n".join(lines)


@dataclass
class EconomyTimeseries:
    burnt_supply: float
    circulating_supply: float
    current_stakers: int
    collections_staked: list[NftCollection]
    claimable_lazy: float
    lazy_claimed: float
    nfts_staked: int
    sct_lazy: float
    lgs_lazy: float
    treasury_lazy: float
    mint_lazy: float
    gen1_sales_hbar: float
    lsv_gen2_sales_hbar: float
    gen2_raffle_hbar: float
    gen1_royalty_share: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "burntSupply": self.burnt_supply,
            "circulatingSupply": self.circulating_supply,
            "currentStakers": self.current_stakers,
            "collectionsStaked": [c.to_dict() for c in self.collections_staked],
            "claimableLazy": self.claimable_lazy,
            "lazyClaimed": self.lazy_claimed,
            "nftsStaked": self.nfts_staked,
            "sctLazy": self.sct_lazy,
            "lgsLazy": self.lgs_lazy,
            "treasuryLazy": self.treasury_lazy,
            "mintLazy": self.mint_lazy,
            "gen1SalesHbar": self.gen1_sales_hbar,
            "lsvGen2SalesHbar": self.lsv_gen2_sales_hbar,
            "gen2RaffleHbar": self.gen2_raffle_hbar,
            "gen1RoyaltyShare": self.gen1_royalty_share,
        }


# ---------------------------------------------------------------------------
# Extract
# ---------------------------------------------------------------------------


def _call(mirror: MirrorNode, contract: str, sender: str, fn: str, args: tuple = ()) -> tuple:
    to = mirror.contract_evm_address(contract)
    raw = mirror.contract_call(to, NFT_STAKING.encode_call(fn, args), sender)
    return NFT_STAKING.decode_result(fn, raw)


def claimed_by_user(mirror: MirrorNode, contract: str) -> list[dict[str, Any]]:
    """
    Every `ClaimedRewards` event of the staking contract, oldest first.

    Returns dicts with `user` (lowercase EVM address), `rewardAmount` (raw
    units) and `burnPercentage`.
    """
    events = []
    for entry in mirror.contract_logs(contract, order="asc"):
        if not entry.get("topics") or entry.get("data") in (None, "0x"):
            continue
        try:
            event = NFT_STAKING.decode_log(entry["topics"], entry["data"])
        except DecodingError:
            log.debug("Skipping undecodable log %s", entry["topics"][:1])
            continue
        if event is None or event.name != "ClaimedRewards":
            continue
        events.append(
            {
                "user": str(event.args["_user"]).lower(),
                "rewardAmount": int(event.args["_rewardAmount"]),
                "burnPercentage": int(event.args["_burnPercentage"]),
            }
        )
    log.info("Total claimed events: %d", len(events))
    return events


def build_economy_cache(
    mirror: MirrorNode,
    staking_contract: str,
    sender: str,
    now: int | None = None,
    decimals: int | None = None,
) -> tuple[EconomyCache, dict[str, Any]]:
    """
    Snapshot the staking economy.

    Returns:
        The cache and the $LAZY token record from the mirror node (its
        `decimals`, `max_supply` and `total_supply` feed the timeseries).
    """
    ts = int(time.time()) if now is None else int(now)
    lazy_evm = _call(mirror, staking_contract, sender, "lazyToken")[0]
    lazy_token = from_evm_address(lazy_evm) or mirror.contract_id_for_evm(lazy_evm)
    token = mirror.token(lazy_token) or {}
    if decimals is None:
        decimals = int(token.get("decimals", DECIMALS.LAZY))

    total_staked = int(_call(mirror, staking_contract, sender, "totalItemsStaked")[0])
    users = list(_call(mirror, staking_contract, sender, "getStakingUsers")[0])
    log.info("LazyToken: %s decimals: %d staking users: %d", lazy_token, decimals, len(users))

    top25s = {kind: Top25(kind) for kind in TOP25_TYPES}
    total_earned = 0
    total_rate = 0
    for user in users:
        earned, rate, as_of, last_claimed = _call(
            mirror, staking_contract, sender, "calculateRewards", (user,)
        )
        boost = int(_call(mirror, staking_contract, sender, "getActiveBoostRate", (user,))[0])
        base = int(_call(mirror, staking_contract, sender, "getBaseRewardRate", (user,))[0])
        total_earned += earned
        total_rate += rate
        top25s[LONGEST_STAKED].add_user(user, ts - int(last_claimed))
        top25s[HIGHEST_DAILY_RATE].add_user(user, int(rate))
        top25s[LARGEST_BOOST].add_user(user, boost)
        top25s[LARGEST_UNCLAIMED].add_user(user, _whole(earned, decimals))
        log.debug(
            "User %s earned %s (rate %s/day, base %s/day, boost %d%%, as of %s)",
            from_evm_address(user) or user.lower(),
            _whole(earned, decimals),
            _whole(rate, decimals),
            _whole(base, decimals),
            boost,
            datetime.fromtimestamp(int(as_of), timezone.utc).isoformat(),
        )

    log.info("Looking up staking events")
    total_claimed = 0.0
    for event in claimed_by_user(mirror, staking_contract):
        amount = _whole(event["rewardAmount"], decimals)
        top25s[MOST_CLAIMED].add_user(event["user"], amount)
        total_claimed += amount

    cache = EconomyCache(
        staking_users=len(users),
        total_items_staked=total_staked,
        total_lazy_earned=_whole(total_earned, decimals),
        total_lazy_claimed=total_claimed,
        total_earn_rate=_whole(total_rate, decimals),
        top25s=list(top25s.values()),
    )

    for collection in _call(mirror, staking_contract, sender, "getStakableCollections")[0]:
        num = int(_call(mirror, staking_contract, sender, "getNumStakedNFTs", (collection,))[0])
        token_id = from_evm_address(collection) or mirror.contract_id_for_evm(collection)
        details = mirror.token(token_id) or {}
        nft = NftCollection(
            details.get("name", token_id),
            details.get("symbol", ""),
            int(details.get("total_supply") or 0),
            num,
        )
        log.info("Collection: %s", nft)
        cache.add_collection(nft)

    return cache, token


def build_timeseries(
    mirror: MirrorNode,
    cache: EconomyCache,
    lazy_token: Mapping[str, Any],
    accounts: Mapping[str, str],
    decimals: int | None = None,
) -> EconomyTimeseries:
    """
    Supply and treasury figures for one point in time.

    Args:
        lazy_token: mirror-node token record of $LAZY.
        accounts: ids keyed `lgs`, `sct`, `treasury`, `mint`, `gen1_sales`,
            `lsv_gen2_sales`, `gen2_raffle`, `gen1_royalty`.
    """
    if decimals is None:
        decimals = int(lazy_token.get("decimals", DECIMALS.LAZY))
    token_id = lazy_token.get("token_id", "")

    def lazy(key: str) -> float:
        return _whole(mirror.token_balance(accounts[key], token_id), decimals)

    def hbar(key: str) -> float:
        return _whole(mirror.hbar_balance(accounts[key]), DECIMALS.HBAR)

    lgs, sct = lazy("lgs"), lazy("sct")
    max_supply = _whole(int(lazy_token.get("max_supply") or 0), decimals)
    total_supply = _whole(int(lazy_token.get("total_supply") or 0), decimals)
    log.info("Max Supply: %s Total Supply: %s", max_supply, total_supply)

    return EconomyTimeseries(
        burnt_supply=max_supply - total_supply,
        circulating_supply=total_supply - lgs - sct,
        current_stakers=cache.staking_users,
        collections_staked=cache.collections,
        claimable_lazy=cache.total_lazy_earned,
        lazy_claimed=cache.total_lazy_claimed,
        nfts_staked=cache.total_items_staked,
        sct_lazy=sct,
        lgs_lazy=lgs,
        treasury_lazy=lazy("treasury"),
        mint_lazy=lazy("mint"),
        gen1_sales_hbar=hbar("gen1_sales"),
        lsv_gen2_sales_hbar=hbar("lsv_gen2_sales"),
        gen2_raffle_hbar=hbar("gen2_raffle"),
        gen1_royalty_share=hbar("gen1_royalty"),
    )


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------


def upsert_cache(
    directus: DirectusClient,
    table: str,
    contract_id: str,
    environment: str,
    cache: EconomyCache,
    mirror: MirrorNode | None = None,
) -> str:
    """
    Create or update the single cache row for (contract_id, environment).

    Returns:
        "created" or "updated".
    """
    existing = directus.read_items(
        table,
        fields=["id"],
        filter={"contractId": {"_eq": contract_id}, "environment": {"_eq": environment}},
        limit=1,
    )
    body = cache.to_dict(mirror)
    # The cache row keeps claimed totals in the timeseries only.
    body.pop("totalLazyClaimed")
    if existing:
        directus.update_item(table, existing[0]["id"], body)
        return "updated"
    directus.create_item(table, {"environment": environment, "contractId": contract_id, **body})
    return "created"


def post_timeseries(
    directus: DirectusClient,
    table: str,
    environment: str,
    series: EconomyTimeseries,
    snapshot: datetime | None = None,
) -> None:
    snapshot = snapshot or datetime.now(timezone.utc)
    directus.create_item(
        table,
        {
            "environment": environment,
            "snapshotDate": snapshot.isoformat().replace("+00:00", "Z"),
            **series.to_dict(),
        },
    )


def economy_accounts(config: Any) -> dict[str, str]:
    """Timeseries account ids from `Settings`."""
    return {
        "lgs": config.LAZY_GAS_STATION_ID,
        "sct": config.LAZY_SMART_CONTRACT_TREASURY,
        "treasury": config.TREASURY_ID,
        "mint": config.MINT_ID,
        "gen1_sales": config.GEN1_SALES_ID,
        "lsv_gen2_sales": config.LSV_GEN2_SALES_ID,
        "gen2_raffle": config.GEN2_RAFFLE_ID,
        "gen1_royalty": config.GEN1_ROYALTY_ID,
    }

