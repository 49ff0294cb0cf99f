# MIT License
# Copyright (c) 2025 Hashborn

"""
OrderFlow Economic Model
Single source of truth for tier and reward-split parameters.

All amounts are six-decimal fixed point (SCALE = 10**6). Every division is
truncating integer division and the order of operations is part of the
contract: changing it changes dust amounts.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..types.common import Tier

DECIMALS = 6
SCALE = 10**DECIMALS


@dataclass
class EconomicConfig:
    """Economic parameters shared by every network."""

    # ═══════════════════════════════════════════════════════
    # TIER TABLE
    # ═══════════════════════════════════════════════════════
    # Lower bound (inclusive) of each tier above Bronze, in scaled units.
    tier_breakpoints: Tuple[Tuple[Tier, int], ...] = (
        (Tier.DIAMOND, 100_000 * SCALE),
        (Tier.PLATINUM, 50_000 * SCALE),
        (Tier.GOLD, 10_000 * SCALE),
        (Tier.SILVER, 1_000 * SCALE),
    )

    # Reward multiplier per tier, in hundredths
    tier_multipliers: Dict[Tier, int] = field(default_factory=lambda: {
        Tier.BRONZE: 100,
        Tier.SILVER: 125,
        Tier.GOLD: 150,
        Tier.PLATINUM: 200,
        Tier.DIAMOND: 300,
    })

    # ═══════════════════════════════════════════════════════
    # REWARD SPLIT
    # ═══════════════════════════════════════════════════════
    immediate_share_pct: int = 25       # Paid (or compounded) now; remainder vests

    # ═══════════════════════════════════════════════════════
    # HELPER METHODS
    # ═══════════════════════════════════════════════════════

    def tier_for_stake(self, staked: int) -> Tier:
        """Map a staked balance to its tier (half-open brackets)."""
        for tier, lower_bound in self.tier_breakpoints:
            if staked >= lower_bound:
                return tier
        return Tier.BRONZE

    def multiplier_for_tier(self, tier: Tier) -> int:
        return self.tier_multipliers[tier]

    def calculate_reward(self, epoch_volume: int, reward_rate: int, tier: Tier) -> int:
        """
        Reward for one epoch of volume.

        base = epoch_volume * reward_rate // SCALE
        reward = base * multiplier // 100
        """
        base_reward = epoch_volume * reward_rate // SCALE
        return base_reward * self.multiplier_for_tier(tier) // 100

    def split_reward(self, reward: int) -> Dict[str, int]:
        """
        Split a reward into the immediate and vesting portions.
        Returns: {'immediate': int, 'vesting': int}
        The vesting portion absorbs rounding so the two always sum to reward.
        """
        immediate = reward * self.immediate_share_pct // 100
        return {
            'immediate': immediate,
            'vesting': reward - immediate,
        }


ECONOMIC_CONFIG = EconomicConfig()
