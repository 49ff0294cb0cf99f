from pydantic import BaseModel, Field
from typing import List, Optional


class VestingStream(BaseModel):
    """Linear release schedule for the deferred part of rewards."""
    total: int = 0                 # Total amount ever added to the stream
    released: int = 0              # Amount already paid out
    start_epoch: int = 0           # Epoch of the first contribution (0 = not started)
    vesting_epochs: int = 0        # Fixed once the stream has started

    @property
    def started(self) -> bool:
        return self.start_epoch > 0


class UnstakeRequest(BaseModel):
    """Pending withdrawal. At most one per account."""
    amount: int                    # Amount already removed from the staked balance
    unlock_time: int               # Unix timestamp when withdrawal becomes possible


class Bond(BaseModel):
    """Collateral locked independently of staking."""
    amount: int
    unlock_time: int


class EpochClock(BaseModel):
    current_epoch: int = 1
    last_reset: int = 0            # Unix timestamp of the last rollover


class LedgerGlobals(BaseModel):
    """Process-wide scalars persisted next to the account records."""
    reward_rate_per_volume: int
    min_volume_threshold: int
    lifetime_distributed: int = 0

    # Precomputed distribution
    merkle_root: Optional[str] = None                                # hex
    merkle_claimed: List[str] = Field(default_factory=list)          # accounts, sorted

    # Cross-chain mirror sequencing
    mirror_outbound_sequence: int = 0
    mirror_inbound_sequence: int = 0


class MirrorPayload(BaseModel):
    """Cross-chain snapshot of the global counters."""
    epoch: int
    lifetime_distributed: int
    sequence: int = 0
    source_chain: str = ""
