# lazy_farms/services/staking.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Stake structures and signed reward proofs for LazyNFTStaking.

The staking contract only accepts a `stake()`/`unstake()` call when it carries
a `RewardProof` signed by the configured system wallet. The proof commits to:

    keccak256(abi.encodePacked(
        sender, boostRate,
        [keccak256(abi.encodePacked(collection, serials, rewards)) for each stake],
        validityTimestamp))

signed as an EIP-191 personal message. The contract rejects proofs whose
timestamp is too old, so proofs are generated right before submission.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from web3 import Web3

from lazy_farms.services.ids import is_evm_address, to_evm_address


@dataclass
class Stake:
    """One collection's serials and per-serial reward rates."""

    collection: str
    serials: list[int]
    rewards: list[int]

    def __post_init__(self) -> None:
        # Accept `0.0.N`, bare hex or 0x hex; store as lowercase 0x address.
        self.collection = to_evm_address(self.collection)

    def as_abi(self) -> tuple[str, list[int], list[int]]:
        return (self.collection, list(self.serials), list(self.rewards))


@dataclass
class RewardProof:
    boost_rate: int
    validity_timestamp: int
    signature: bytes = field(repr=False)

    def as_abi(self) -> tuple[int, int, bytes]:
        return (self.boost_rate, self.validity_timestamp, self.signature)

    @property
    def signature_hex(self) -> str:
        return "0x" + self.signature.hex()


def validate_stake(stake: Stake) -> None:
    """
    Check a stake before it is sent.

    Raises:
        ValueError: bad collection address, empty or mismatched lists,
        serials below 1 or negative reward rates.
    """
    if not stake.collection.startswith("0x") or not is_evm_address(stake.collection):
        raise ValueError("Invalid collection address: must be EVM format with 0x prefix")
    if not stake.serials:
        raise ValueError("Serials must be a non-empty list")
    if not stake.rewards:
        raise ValueError("Rewards must be a non-empty list")
    if len(stake.serials) != len(stake.rewards):
        raise ValueError(
            f"Serials length ({len(stake.serials)}) must match rewards length ({len(stake.rewards)})"
        )
    for serial in stake.serials:
        if not isinstance(serial, int) or isinstance(serial, bool) or serial < 1:
            raise ValueError(f"Invalid serial number: {serial}")
    for reward in stake.rewards:
        if not isinstance(reward, int) or isinstance(reward, bool) or reward < 0:
            raise ValueError(f"Invalid reward rate: {reward}")


def count_total_nfts(stakes: Sequence[Stake]) -> int:
    return sum(len(s.serials) for s in stakes)


def build_stakes(
    collections: Sequence[str], serials: Sequence[Sequence[int]], rewards: Sequence[Sequence[int]]
) -> list[Stake]:
    """
    Zip CLI lists into `Stake`s.

    Raises:
        ValueError: when the three lists have different lengths.
    """
    if not len(collections) == len(serials) == len(rewards):
        raise ValueError(
            "Collections, serial groups and reward groups must have the same length "
            f"({len(collections)}/{len(serials)}/{len(rewards)})"
        )
    return [Stake(c, list(s), list(r)) for c, s, r in zip(collections, serials, rewards)]


def stake_hash(stake: Stake) -> bytes:
    return Web3.solidity_keccak(
        ["address", "uint256[]", "uint256[]"],
        [to_checksum_address(stake.collection), list(stake.serials), list(stake.rewards)],
    )


def reward_proof_hash(
    sender: str, boost_rate: int, stakes: Sequence[Stake], timestamp: int
) -> bytes:
    """The 32-byte digest a reward proof signs."""
    return Web3.solidity_keccak(
        ["address", "uint256", "bytes32[]", "uint256"],
        [
            to_checksum_address(to_evm_address(sender)),
            int(boost_rate),
            [stake_hash(s) for s in stakes],
            int(timestamp),
        ],
    )


def generate_reward_proof(
    sender: str,
    boost_rate: int,
    signer: LocalAccount,
    stakes: Sequence[Stake],
    timestamp: int | None = None,
) -> RewardProof:
    """
    Sign a reward proof for `sender` staking `stakes` with `boost_rate`.

    Args:
        sender: address (or `0.0.N`) that will submit the stake call.
        signer: the system wallet the staking contract trusts.
        timestamp: validity timestamp; defaults to now (unix seconds).
    """
    ts = int(time.time()) if timestamp is None else int(timestamp)
    digest = reward_proof_hash(sender, boost_rate, stakes, ts)
    signed = Account.sign_message(encode_defunct(primitive=digest), signer.key)
    return RewardProof(int(boost_rate), ts, bytes(signed.signature))


def recover_proof_signer(
    sender: str, stakes: Sequence[Stake], proof: RewardProof
) -> str:
    """Address that signed `proof` (matches the contract's own check)."""
    digest = reward_proof_hash(sender, proof.boost_rate, stakes, proof.validity_timestamp)
    return Account.recover_message(encode_defunct(primitive=digest), signature=proof.signature)
