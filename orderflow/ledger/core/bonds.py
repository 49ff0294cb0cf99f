import logging
from typing import TYPE_CHECKING
from ...protocol.types.common import LedgerOp, InvalidAmount, NoBond, BondLocked
from ...protocol.types.ledger import Bond

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


def bond(ctx: 'ExecutionContext', address: str, amount: int, lock_duration: int) -> Bond:
    """Lock collateral until now + lock_duration. An existing bond is overwritten."""
    if amount <= 0:
        raise InvalidAmount(f"Bond amount must be positive, got {amount}")
    if lock_duration < 0:
        raise InvalidAmount(f"Lock duration cannot be negative: {lock_duration}")
    ctx.charge(LedgerOp.BOND)
    ctx.pull(address, amount)

    existing = ctx.state.get_bond(address)
    if existing is not None:
        logger.warning(f"Bond for {address} replaces active bond of {existing.amount}")

    new_bond = Bond(amount=amount, unlock_time=ctx.now + lock_duration)
    ctx.state.set_bond(address, new_bond)
    ctx.emit("bonded", account=address, amount=amount, unlock_time=new_bond.unlock_time)
    return new_bond


def slash(ctx: 'ExecutionContext', address: str, caller: str) -> int:
    """Seize a bond and pay it to the caller. Open to any caller."""
    ctx.charge(LedgerOp.SLASH)
    existing = ctx.state.get_bond(address)
    if existing is None or existing.amount == 0:
        raise NoBond(f"No bond for {address}")

    ctx.state.clear_bond(address)
    ctx.pay(caller, existing.amount)

    logger.info(f"Bond of {address} ({existing.amount}) slashed by {caller}")
    ctx.emit("slashed", account=address, caller=caller, amount=existing.amount)
    return existing.amount


def withdraw_bond(ctx: 'ExecutionContext', address: str) -> int:
    ctx.charge(LedgerOp.WITHDRAW_BOND)
    existing = ctx.state.get_bond(address)
    if existing is None or existing.amount == 0:
        raise NoBond(f"No bond for {address}")
    if ctx.now < existing.unlock_time:
        raise BondLocked(f"Bond locked until {existing.unlock_time} (now {ctx.now})")

    ctx.state.clear_bond(address)
    ctx.pay(address, existing.amount)

    ctx.emit("bond_withdrawn", account=address, amount=existing.amount)
    return existing.amount
