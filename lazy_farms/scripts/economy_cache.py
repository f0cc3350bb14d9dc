# lazy_farms/scripts/economy_cache.py
#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
#
#
# Purpose
# -------
# Snapshot the Lazy staking economy and publish it to Directus for the
# website dashboards. Meant to run on a schedule (cron / container job).
#   1) read LazyNFTStaking state, claim events and collection stats
#   2) upsert one LazyEconomyCache row for (contractId, environment)
#   3) append one LazyEconomyTimeseries row (supply and treasury figures)
#
# Usage
# -----
#   lazy-economy-cache                 # LAZY_STAKING_CONTRACT_ID from .env
#   lazy-economy-cache 0.0.7221488
#   lazy-economy-cache --dry-run       # print, write nothing
#
# Environment (.env)
# ------------------
# LAZY_STAKING_ENV=MAIN                # network for this job
# LAZY_STAKING_CONTRACT_ID=0.0.x
# DIRECTUS_DB_URL=https://cms.example.com
# DIRECTUS_TOKEN=...                   # static token with write access
# LAZY_STAKING_CACHE_TABLE=LazyEconomyCache
# LAZY_STAKING_TIMESERIES_TABLE=LazyEconomyTimeseries
# STAKING_CACHE_SUPRESS_LOGS=1         # only warnings and errors
# LAZY_GAS_STATION_ID, LAZY_SMART_CONTRACT_TREASURY, TREASURY_ID, MINT_ID,
# GEN1_SALES_ID, LSV_GEN2_SALES_ID, GEN2_RAFFLE_ID, GEN1_ROYALTY_ID

from __future__ import annotations

import argparse
import logging

from lazy_farms.core.clients import create_hedera_client
from lazy_farms.core.config import configure_logging, settings
from lazy_farms.scripts.helpers import dump_json
from lazy_farms.services.directus import DirectusClient, DirectusError
from lazy_farms.services.economy import (
    build_economy_cache,
    build_timeseries,
    economy_accounts,
    post_timeseries,
    upsert_cache,
)
from lazy_farms.services.mirror import MirrorNodeError

log = logging.getLogger(__name__)

PROG = "lazy-economy-cache"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(
        prog=PROG,
        description="Cache the Lazy staking economy in Directus",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument(
        "contract",
        nargs="?",
        default=None,
        help="Staking contract id (defaults to LAZY_STAKING_CONTRACT_ID)",
    )
    ap.add_argument(
        "--dry-run", action="store_true", help="Print the snapshot without writing to Directus"
    )
    return ap.parse_args(argv)


def run_job(contract: str, dry_run: bool = False) -> dict:
    """
    Build the snapshot and (unless `dry_run`) write both Directus rows.

    The cache row is written before the timeseries is gathered; a mirror or
    Directus failure in the timeseries step is logged and leaves the cache
    row in place (`"timeseries"` is then None).

    Returns the cache and timeseries documents that were (or would be) written.
    """
    client = create_hedera_client(require_operator=False, environment=settings.LAZY_STAKING_ENV)
    environment = client.network.name
    quiet = settings.STAKING_CACHE_SUPRESS_LOGS
    if not quiet:
        print(
            "\n-Using ENVIRONMENT:", environment,
            "operatorId:", client.operator_id or "N/A",
            "contractId:", contract,
        )

    cache, lazy_token = build_economy_cache(client.mirror, contract, client.sender_address)
    if not quiet:
        print(cache.format(client.mirror))
    result = {"cache": cache.to_dict(client.mirror), "timeseries": None}

    directus = None
    if not dry_run:
        directus = DirectusClient(settings.DIRECTUS_DB_URL, settings.DIRECTUS_TOKEN)
        action = upsert_cache(
            directus, settings.LAZY_STAKING_CACHE_TABLE, contract, environment, cache, client.mirror
        )
        log.info("Cache row %s in %s", action, settings.LAZY_STAKING_CACHE_TABLE)

    try:
        series = build_timeseries(client.mirror, cache, lazy_token, economy_accounts(settings))
        result["timeseries"] = series.to_dict()
        if directus is not None:
            post_timeseries(directus, settings.LAZY_STAKING_TIMESERIES_TABLE, environment, series)
            log.info("Timeseries row posted to %s", settings.LAZY_STAKING_TIMESERIES_TABLE)
    except (DirectusError, MirrorNodeError):
        log.exception("Error posting timeseries data")

    if dry_run:
        dump_json(result)
    return result


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    configure_logging(quiet=settings.STAKING_CACHE_SUPRESS_LOGS)

    contract = args.contract or settings.LAZY_STAKING_CONTRACT_ID
    if not contract:
        raise SystemExit("ERROR: No staking contract provided")
    if not args.dry_run and not settings.DIRECTUS_DB_URL:
        raise SystemExit("ERROR: Must specify DIRECTUS_DB_URL in the .env file")

    try:
        run_job(contract, dry_run=args.dry_run)
    except KeyboardInterrupt:
        raise SystemExit("User Aborted") from None
    except Exception as e:
        raise SystemExit(f"{PROG} failed: {e}") from e


if __name__ == "__main__":
    main()
