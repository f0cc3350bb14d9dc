# lazy_farms/services/interfaces.py
# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Minimal built-in ABIs for read-only queries and token allowances.

These fragments match the deployed contracts' public views, so the read-only
CLI and the economy cache job work without a local Hardhat build. Scripts that
submit transactions load the full artifact via `abi.load_contract_abi`;
`contract_abi` prefers the artifact and falls back to these fragments.
"""

import logging

from lazy_farms.services.abi import ContractAbi, load_contract_abi

log = logging.getLogger(__name__)

NFT_STAKING = ContractAbi.from_fragments(
    "LazyNFTStaking",
    [
        "function lazyToken() view returns (address)",
        "function totalItemsStaked() view returns (uint256)",
        "function getStakingUsers() view returns (address[] users)",
        "function getStakableCollections() view returns (address[] collections)",
        "function getStakedNFTs(address _user) view returns (address[] collections, uint256[][] serials)",
        "function getStakedSerials(address _collection) view returns (uint256[])",
        "function getNumStakedNFTs(address _collection) view returns (uint256)",
        "function getBaseRewardRate(address _user) view returns (uint256)",
        "function getActiveBoostRate(address _user) view returns (uint256)",
        "function getMaxBaseRate(address _collection) view returns (uint256)",
        "function calculateRewards(address _user) view returns (uint256 lazyEarned, uint256 rewardRate, uint256 asOfTimestamp, uint256 lastClaimedTimestamp)",
        "event ClaimedRewards(address _user, uint256 _rewardAmount, uint256 _burnPercentage)",
    ],
)

MISSION_FACTORY = ContractAbi.from_fragments(
    "MissionFactory",
    [
        "function getDeployedMissions() view returns (address[])",
        "function getAvailableSlots() view returns (address[], uint256[], uint256[])",
        "function getLiveMissions(address _user) view returns (address[], uint256[], bool[])",
        "function isAdmin(address _wallet) view returns (bool)",
        "function lazyToken() view returns (address)",
        "function lazyGasStation() view returns (address)",
        "function boostManager() view returns (address)",
        "function prngGenerator() view returns (address)",
        "function lazyDelegateRegistry() view returns (address)",
    ],
)

MISSION = ContractAbi.from_fragments(
    "Mission",
    [
        "function getSlotsRemaining() view returns (uint256)",
        "function getUsersOnMission() view returns (address[])",
        "function isParticipant(address _user) view returns (bool)",
        "function entryFee() view returns (uint256)",
        "function getMissionParticipation(address _user) view returns (uint256 _entryTimestamp, uint256 _endOfMissionTimestamp, bool _boosted)",
        "function getUserEndAndBoost(address _user) view returns (uint256 _endOfMissionTimestamp, bool boosted)",
        "function getRequirements() view returns (address[] _requiredCollections, uint256[] _requiredQuantities, address _rewardCollection, uint256 _rewardsPerUser, uint256 _missionDuration, uint256 _maxParticipants, uint256 _minTier)",
        "function getDecrementDetails() view returns (bool, uint256, uint256, uint256)",
    ],
)

BOOST_MANAGER = ContractAbi.from_fragments(
    "BoostManager",
    [
        "function getGemCollections() view returns (address[])",
        "function getBoostLevel(address _collectionAddress, uint256 _tokenId) view returns (uint8)",
        "function getBoostData(uint8 _boostLevel) view returns (address[], bool[], uint256[][], uint256)",
        "function hasBoost(address _missionParticipant, address _mission) view returns (bool)",
        "function getBoostItem(address _mission, address _user) view returns (uint8, address, uint256)",
    ],
)

DELEGATE_REGISTRY = ContractAbi.from_fragments(
    "LazyDelegateRegistry",
    [
        "function getDelegateWallet(address _wallet) view returns (address)",
        "function checkDelegateWallet(address _actualWallet, address _proposedDelegate) view returns (bool)",
        "function getWalletsDelegatedTo(address _delegate) view returns (address[])",
    ],
)

GAS_STATION = ContractAbi.from_fragments(
    "LazyGasStation",
    ["function isContractUser(address _contractAddress) view returns (bool)"],
)

#: HTS token EVM facade (fungible and non-fungible share one address).
HTS_TOKEN = ContractAbi.from_fragments(
    "HederaToken",
    [
        "function approve(address spender, uint256 amount) returns (bool)",
        "function setApprovalForAll(address operator, bool approved)",
        "function allowance(address owner, address spender) view returns (uint256)",
        "function isApprovedForAll(address owner, address operator) view returns (bool)",
    ],
)

#: Hedera Account Service system contract.
ACCOUNT_SERVICE = ContractAbi.from_fragments(
    "HederaAccountService",
    ["function hbarApprove(address owner, address spender, int256 amount) returns (int64 responseCode)"],
)

BUILTIN: dict[str, ContractAbi] = {
    abi.name: abi
    for abi in (
        NFT_STAKING,
        MISSION_FACTORY,
        MISSION,
        BOOST_MANAGER,
        DELEGATE_REGISTRY,
        GAS_STATION,
        HTS_TOKEN,
        ACCOUNT_SERVICE,
    )
}


def contract_abi(name: str) -> ContractAbi:
    """
    Artifact ABI for `name`, else its built-in fragments.

    Raises:
        FileNotFoundError: no artifact and no built-in ABI for `name`.
    """
    try:
        return load_contract_abi(name)
    except FileNotFoundError:
        if name not in BUILTIN:
            raise
        log.warning("No artifact for %s; using built-in view ABI", name)
        return BUILTIN[name]
