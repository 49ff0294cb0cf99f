from pydantic import BaseModel, computed_field
from typing import Optional
from ...protocol.types.common import Tier
from ...protocol.config.economic_model import ECONOMIC_CONFIG

class AccountRecord(BaseModel):
    address: str

    # Staking
    staked: int = 0
    auto_compound: bool = False

    # Volume tracking
    cumulative_volume: int = 0
    epoch_volume: int = 0
    volume_epoch: int = 0          # Epoch the epoch_volume counter belongs to

    # Claims
    last_claimed_epoch: int = 0
    nonce: int = 0                 # Consumed by SIGNED claims

    # Opaque association (NFT-linked wallet), not interpreted by the ledger
    bound_account: Optional[str] = None

    @computed_field
    @property
    def tier(self) -> Tier:
        # Derived on every read so it can never drift from the staked balance
        return ECONOMIC_CONFIG.tier_for_stake(self.staked)

    @property
    def multiplier(self) -> int:
        return ECONOMIC_CONFIG.multiplier_for_tier(self.tier)
