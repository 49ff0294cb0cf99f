import logging
from typing import Dict, TYPE_CHECKING
from ...protocol.config.economic_model import ECONOMIC_CONFIG
from ...protocol.types.common import LedgerOp, AlreadyClaimed, VolumeTooLow, NoReward
from .vesting import add_to_stream

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


def calculate_reward(epoch_volume: int, reward_rate: int, staked: int) -> int:
    """
    Reward for one epoch of volume at the tier implied by `staked`.

    Uses ECONOMIC_CONFIG for:
    - Tier table
    - Multiplier per tier
    """
    tier = ECONOMIC_CONFIG.tier_for_stake(staked)
    return ECONOMIC_CONFIG.calculate_reward(epoch_volume, reward_rate, tier)


def process_reward(ctx: 'ExecutionContext', address: str) -> Dict[str, int]:
    """
    Compute and distribute the current epoch's reward for one account.

    Returns:
        {'reward', 'immediate', 'vesting', 'compounded'}

    Raises:
        AlreadyClaimed, VolumeTooLow, NoReward
    """
    ctx.charge(LedgerOp.PROCESS_REWARD)
    state = ctx.state
    epoch = state.current_epoch
    acc = state.get_account(address)

    if acc.last_claimed_epoch == epoch:
        raise AlreadyClaimed(f"{address} already claimed epoch {epoch}")

    epoch_volume = acc.epoch_volume if acc.volume_epoch == epoch else 0
    if epoch_volume < state.globals.min_volume_threshold:
        raise VolumeTooLow(f"Epoch volume {epoch_volume} below threshold {state.globals.min_volume_threshold}")

    reward = calculate_reward(epoch_volume, state.globals.reward_rate_per_volume, acc.staked)
    if reward == 0:
        raise NoReward(f"Computed reward for {address} is zero")

    acc.last_claimed_epoch = epoch
    state.set_account(acc)
    state.globals.lifetime_distributed += reward

    result = distribute(ctx, address, reward)
    logger.info(f"Reward {reward} for {address} in epoch {epoch} "
                f"(tier {acc.tier.name}, immediate {result['immediate']}, vesting {result['vesting']})")
    return result


def distribute(ctx: 'ExecutionContext', address: str, reward: int) -> Dict[str, int]:
    """Split a reward into the immediate part (paid or re-staked) and the vesting part."""
    split = ECONOMIC_CONFIG.split_reward(reward)
    immediate, vesting = split['immediate'], split['vesting']

    acc = ctx.state.get_account(address)
    compounded = 0
    if acc.auto_compound:
        # Re-stake instead of paying out; tier follows the new balance
        acc.staked += immediate
        compounded = immediate
        ctx.state.set_account(acc)
    else:
        ctx.pay(address, immediate)

    if vesting > 0:
        add_to_stream(ctx, address, vesting)

    return {
        'reward': reward,
        'immediate': immediate,
        'vesting': vesting,
        'compounded': compounded,
    }
