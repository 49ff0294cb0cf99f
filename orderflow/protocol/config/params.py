# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict
from ..types.common import LedgerOp
from .economic_model import SCALE

# Global Constants
DENOM = "idxf"

# Metered cost of each ledger step
GAS_PER_OP = {
    LedgerOp.STAKE:             40_000,
    LedgerOp.REQUEST_UNSTAKE:   35_000,
    LedgerOp.WITHDRAW_UNSTAKED: 30_000,
    LedgerOp.RECORD_VOLUME:     20_000,
    LedgerOp.PROCESS_REWARD:    30_000,
    LedgerOp.ADD_TO_STREAM:     25_000,
    LedgerOp.CLAIM_VESTED:      30_000,
    LedgerOp.VERIFY_SIGNATURE:  10_000,
    LedgerOp.VERIFY_PROOF:      60_000,   # Proof checks are deliberately the costliest path
    LedgerOp.CHECK_IDENTITY:     5_000,
    LedgerOp.VERIFY_MERKLE:     15_000,
    LedgerOp.BOND:              40_000,
    LedgerOp.SLASH:             30_000,
    LedgerOp.WITHDRAW_BOND:     30_000,
    LedgerOp.TRANSFER:          21_000,
    LedgerOp.ACCOUNT_UPDATE:     5_000,
}

class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 chain_id: str,
                 # Epoch params
                 epoch_duration_sec: int = 86_400,
                 # Reward params (six-decimal fixed point)
                 reward_rate_per_volume: int = 1 * SCALE,
                 min_volume_threshold: int = 100 * SCALE,
                 # Vesting params
                 vesting_epochs: int = 30,
                 # Unstaking params
                 unstake_cooldown_sec: int = 7 * 86_400,
                 # Metering / rebate params
                 call_gas_limit: int = 1_000_000,
                 max_rebate_gas: int = 150_000,
                 rebate_rate: int = 1,          # minimal units paid per gas unit
                 # Cross-chain mirror
                 mirror_strict_ordering: bool = True,
                 bech32_prefix_acc: str = "idxf"):
        self.network_id = network_id
        self.chain_id = chain_id
        self.epoch_duration_sec = epoch_duration_sec
        self.reward_rate_per_volume = reward_rate_per_volume
        self.min_volume_threshold = min_volume_threshold
        self.vesting_epochs = vesting_epochs
        self.unstake_cooldown_sec = unstake_cooldown_sec
        self.call_gas_limit = call_gas_limit
        self.max_rebate_gas = max_rebate_gas
        self.rebate_rate = rebate_rate
        self.mirror_strict_ordering = mirror_strict_ordering
        self.bech32_prefix_acc = bech32_prefix_acc

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        chain_id="idxf-devnet-1",
        epoch_duration_sec=60,
        vesting_epochs=4,
        unstake_cooldown_sec=120,
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        chain_id="idxf-testnet-1",
        epoch_duration_sec=3_600,
        vesting_epochs=24,
        unstake_cooldown_sec=86_400,
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
        chain_id="idxf-mainnet-1",
        epoch_duration_sec=86_400,
        vesting_epochs=30,
        unstake_cooldown_sec=7 * 86_400,
        rebate_rate=0,  # Rebates disabled until funded
    )
}

CURRENT_NETWORK = NETWORKS[os.environ.get("ORDERFLOW_NETWORK", "devnet")]
