"""
Staking and the unstake queue.

Unstaking is two-phase: request_unstake lowers the staked balance (and the
tier) at once and parks the amount behind a cooldown; withdraw_unstaked
releases it after the unlock time. Only one request is pending per account.
"""

import logging
from typing import Optional, TYPE_CHECKING
from .accounts import AccountRecord
from ...protocol.types.common import (
    LedgerOp, InvalidAmount, InsufficientStaked, NoPendingUnstake, CooldownActive, InvalidBoundAccount,
)
from ...protocol.types.ledger import UnstakeRequest

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


def stake(ctx: 'ExecutionContext', address: str, amount: int) -> AccountRecord:
    if amount <= 0:
        raise InvalidAmount(f"Stake amount must be positive, got {amount}")
    ctx.charge(LedgerOp.STAKE)
    ctx.pull(address, amount)

    acc = ctx.state.get_account(address)
    previous_tier = acc.tier
    acc.staked += amount
    ctx.state.set_account(acc)

    if acc.tier != previous_tier:
        logger.info(f"{address} tier {previous_tier.name} -> {acc.tier.name}")
    ctx.emit("staked", account=address, amount=amount, staked=acc.staked, tier=acc.tier.name)
    return acc


def request_unstake(ctx: 'ExecutionContext', address: str, amount: int) -> UnstakeRequest:
    if amount <= 0:
        raise InvalidAmount(f"Unstake amount must be positive, got {amount}")
    ctx.charge(LedgerOp.REQUEST_UNSTAKE)

    acc = ctx.state.get_account(address)
    if amount > acc.staked:
        raise InsufficientStaked(f"Insufficient stake: have {acc.staked}, trying to unstake {amount}")

    acc.staked -= amount
    ctx.state.set_account(acc)

    existing = ctx.state.get_unstake(address)
    if existing is not None:
        # Overwrite, not queue: the earlier pending amount is no longer withdrawable
        logger.warning(f"Unstake request for {address} replaces pending {existing.amount}")

    request = UnstakeRequest(amount=amount, unlock_time=ctx.now + ctx.config.unstake_cooldown_sec)
    ctx.state.set_unstake(address, request)

    ctx.emit("unstake_requested", account=address, amount=amount, unlock_time=request.unlock_time)
    return request


def withdraw_unstaked(ctx: 'ExecutionContext', address: str) -> int:
    ctx.charge(LedgerOp.WITHDRAW_UNSTAKED)
    request = ctx.state.get_unstake(address)

    if request is None or request.amount == 0:
        raise NoPendingUnstake(f"No pending unstake for {address}")
    if ctx.now < request.unlock_time:
        raise CooldownActive(f"Cooldown active until {request.unlock_time} (now {ctx.now})")

    ctx.state.clear_unstake(address)
    ctx.pay(address, request.amount)

    ctx.emit("unstake_withdrawn", account=address, amount=request.amount)
    return request.amount


def set_auto_compound(ctx: 'ExecutionContext', address: str, enabled: bool) -> AccountRecord:
    ctx.charge(LedgerOp.ACCOUNT_UPDATE)
    acc = ctx.state.get_account(address)
    acc.auto_compound = enabled
    ctx.state.set_account(acc)
    return acc


def bind_account(ctx: 'ExecutionContext', address: str, bound: Optional[str]) -> AccountRecord:
    """Record an opaque bound-account reference. The ledger never follows it."""
    if not bound or bound == address:
        raise InvalidBoundAccount(f"Cannot bind {address} to {bound!r}")
    ctx.charge(LedgerOp.ACCOUNT_UPDATE)

    acc = ctx.state.get_account(address)
    acc.bound_account = bound
    ctx.state.set_account(acc)
    return acc
