import logging
from typing import TYPE_CHECKING
from .accounts import AccountRecord
from ...protocol.types.common import LedgerOp, InvalidAmount

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


def maybe_advance_epoch(ctx: 'ExecutionContext') -> bool:
    """
    Roll the epoch over if a full epoch duration has elapsed since the last reset.

    Advances by exactly one even when several durations have passed;
    missed epochs are not back-filled.
    """
    clock = ctx.state.clock
    if ctx.now < clock.last_reset + ctx.config.epoch_duration_sec:
        return False

    previous = clock.current_epoch
    clock.current_epoch += 1
    clock.last_reset = ctx.now
    logger.info(f"Epoch {previous} -> {clock.current_epoch} at {ctx.now}")
    ctx.emit("epoch_advanced", epoch=clock.current_epoch, previous=previous, timestamp=ctx.now)
    return True


def record_volume(ctx: 'ExecutionContext', address: str, volume: int) -> AccountRecord:
    """
    Credit trading volume to an account, rolling the epoch first if due.

    Volume is trusted as-is: authenticating it is the claim path's job.
    """
    if volume < 0:
        raise InvalidAmount(f"Volume cannot be negative: {volume}")
    ctx.charge(LedgerOp.RECORD_VOLUME)

    maybe_advance_epoch(ctx)
    epoch = ctx.state.current_epoch

    acc = ctx.state.get_account(address)
    # First volume seen for this account in the current epoch
    if acc.volume_epoch != epoch:
        acc.epoch_volume = 0
        acc.volume_epoch = epoch

    acc.cumulative_volume += volume
    acc.epoch_volume += volume
    ctx.state.set_account(acc)

    logger.debug(f"Recorded volume {volume} for {address} (epoch {epoch} total {acc.epoch_volume})")
    return acc
