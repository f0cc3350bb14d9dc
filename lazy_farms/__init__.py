# lazy_farms/__init__.py
# SPDX-License-Identifier: Apache-2.0
# Copyright (c) 2025 Lazy Superheroes.
"""Operational tooling for the Lazy Farms contracts on Hedera."""

__version__ = "0.1.0"
