"""
Execution-cost metering and claim rebates.

Each ledger call gets a GasMeter with the network's call_gas_limit; every
metered step draws from it at the cost in GAS_PER_OP. A claim remembers
the meter reading on entry and, once the pipeline is done, refunds the
gas it burned if that stayed under the rebate cap.
"""

import logging
from typing import TYPE_CHECKING
from ...protocol.config.params import GAS_PER_OP
from ...protocol.types.common import LedgerOp, OutOfGas

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)


class GasMeter:
    def __init__(self, gas_limit: int):
        self.gas_limit = gas_limit
        self.used = 0

    def remaining(self) -> int:
        return self.gas_limit - self.used

    def consume(self, op: LedgerOp) -> int:
        cost = GAS_PER_OP[op]
        if self.used + cost > self.gas_limit:
            raise OutOfGas(f"{op.value} needs {cost} gas, {self.remaining()} left of {self.gas_limit}")
        self.used += cost
        return cost


def maybe_rebate(ctx: 'ExecutionContext', account: str, cost_at_start: int) -> int:
    """
    Pay back metered cost of a claim.

    Args:
        ctx: Current execution context
        account: Claimant receiving the rebate
        cost_at_start: ctx.meter.remaining() captured when the claim began

    Returns:
        Rebate paid (0 when usage exceeded the cap or the rate is zero)
    """
    used = cost_at_start - ctx.meter.remaining()
    if used > ctx.config.max_rebate_gas:
        logger.debug(f"No rebate for {account}: used {used} > cap {ctx.config.max_rebate_gas}")
        return 0

    rebate = used * ctx.config.rebate_rate
    if rebate == 0:
        return 0

    ctx.state.globals.lifetime_distributed += rebate
    ctx.pay(account, rebate, metered=False)
    ctx.emit("rebate_paid", account=account, amount=rebate, gas_used=used)
    return rebate
