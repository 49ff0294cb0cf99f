"""
Vesting streams for the deferred part of rewards.

A stream is anchored on the epoch of its first contribution. Later
contributions join the same schedule instead of starting a new one, so
they vest over whatever remains of the original window.
"""

import logging
from typing import TYPE_CHECKING
from ...protocol.types.common import LedgerOp, NothingVested
from ...protocol.types.ledger import VestingStream

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


def vested_amount(stream: VestingStream, current_epoch: int) -> int:
    """Total unlocked so far: floor(total * min(elapsed, V) / V)."""
    if not stream.started or stream.vesting_epochs == 0:
        return 0
    elapsed = max(current_epoch - stream.start_epoch, 0)
    return stream.total * min(elapsed, stream.vesting_epochs) // stream.vesting_epochs


def claimable_amount(stream: VestingStream, current_epoch: int) -> int:
    return vested_amount(stream, current_epoch) - stream.released


def add_to_stream(ctx: 'ExecutionContext', address: str, amount: int) -> VestingStream:
    ctx.charge(LedgerOp.ADD_TO_STREAM)
    stream = ctx.state.get_vesting(address)

    if not stream.started:
        stream.start_epoch = ctx.state.current_epoch
        stream.vesting_epochs = ctx.config.vesting_epochs
        logger.info(f"Vesting stream for {address} starts at epoch {stream.start_epoch} "
                    f"over {stream.vesting_epochs} epochs")

    stream.total += amount
    ctx.state.set_vesting(address, stream)
    return stream


def claim_vested(ctx: 'ExecutionContext', address: str) -> int:
    """
    Release everything vested so far.

    Returns:
        Amount paid out

    Raises:
        NothingVested: nothing new has unlocked, or the stream is fully released
    """
    ctx.charge(LedgerOp.CLAIM_VESTED)
    stream = ctx.state.get_vesting(address)
    claimable = claimable_amount(stream, ctx.state.current_epoch)

    if claimable <= 0 or stream.total == stream.released:
        raise NothingVested(f"Nothing vested for {address} at epoch {ctx.state.current_epoch}")

    stream.released += claimable
    ctx.state.set_vesting(address, stream)
    ctx.pay(address, claimable)

    logger.info(f"Released {claimable} vested to {address} ({stream.released}/{stream.total})")
    ctx.emit("vested_claimed", account=address, amount=claimable)
    return claimable
