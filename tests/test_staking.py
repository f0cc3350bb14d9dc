# tests/test_staking.py
# SPDX-License-Identifier: Apache-2.0
import pytest
from eth_account import Account

from lazy_farms.services.ids import to_evm_address
from lazy_farms.services.staking import (
    Stake,
    build_stakes,
    count_total_nfts,
    generate_reward_proof,
    recover_proof_signer,
    reward_proof_hash,
    validate_stake,
)

SENDER = "0.0.4321"
TS = 1_700_000_000


@pytest.fixture
def stakes():
    return build_stakes(["0.0.5000", "0.0.5001"], [[1, 2], [7]], [[10, 10], [5]])


def test_stake_normalizes_collection():
    stake = Stake("0.0.1311037", [1], [10])
    assert stake.collection == to_evm_address("0.0.1311037")
    assert stake.as_abi() == (stake.collection, [1], [10])


def test_build_stakes_requires_matching_lengths():
    with pytest.raises(ValueError, match="same length"):
        build_stakes(["0.0.1", "0.0.2"], [[1]], [[1]])


def test_count_total_nfts(stakes):
    assert count_total_nfts(stakes) == 3


@pytest.mark.parametrize(
    "serials, rewards, message",
    [
        ([], [], "Serials must be a non-empty list"),
        ([1], [], "Rewards must be a non-empty list"),
        ([1, 2], [5], "must match rewards length"),
        ([0], [5], "Invalid serial number"),
        ([1], [-1], "Invalid reward rate"),
    ],
)
def test_validate_stake_errors(serials, rewards, message):
    with pytest.raises(ValueError, match=message):
        validate_stake(Stake("0.0.5000", serials, rewards))


def test_validate_stake_accepts_good_input(stakes):
    for stake in stakes:
        validate_stake(stake)


def test_proof_hash_commits_to_every_input(stakes):
    base = reward_proof_hash(SENDER, 0, stakes, TS)
    assert len(base) == 32
    assert reward_proof_hash(SENDER, 0, stakes, TS) == base
    assert reward_proof_hash(SENDER, 1, stakes, TS) != base
    assert reward_proof_hash(SENDER, 0, stakes, TS + 1) != base
    assert reward_proof_hash("0.0.4322", 0, stakes, TS) != base
    assert reward_proof_hash(SENDER, 0, stakes[:1], TS) != base


def test_signed_proof_recovers_system_wallet(stakes):
    signer = Account.create()
    proof = generate_reward_proof(SENDER, 15, signer, stakes, timestamp=TS)
    assert proof.validity_timestamp == TS
    assert len(proof.signature) == 65
    assert proof.signature_hex.startswith("0x")
    assert proof.as_abi() == (15, TS, proof.signature)
    assert recover_proof_signer(SENDER, stakes, proof) == signer.address


def test_proof_for_other_stakes_does_not_verify(stakes):
    signer = Account.create()
    proof = generate_reward_proof(SENDER, 15, signer, stakes, timestamp=TS)
    assert recover_proof_signer(SENDER, stakes[:1], proof) != signer.address


def test_proof_defaults_timestamp_to_now(stakes):
    proof = generate_reward_proof(SENDER, 0, Account.create(), stakes)
    assert proof.validity_timestamp > TS
