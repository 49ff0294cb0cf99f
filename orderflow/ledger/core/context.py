from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple
from ...protocol.config.params import NetworkConfig
from ...protocol.types.common import LedgerOp, InvalidAmount
from .rebate import GasMeter
from .services import ExternalServices
from .state import LedgerState


@dataclass
class ExecutionContext:
    """
    Everything one atomic ledger call works against.

    `state` is a private clone that only becomes the live state on commit.
    Events are buffered and only published after commit.
    """
    state: LedgerState
    services: ExternalServices
    config: NetworkConfig
    meter: GasMeter
    now: int
    events: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)
    after_commit: List[Callable[[], None]] = field(default_factory=list)

    def charge(self, op: LedgerOp) -> int:
        return self.meter.consume(op)

    def pull(self, payer: str, amount: int):
        """Move tokens from payer into the ledger vault."""
        if amount <= 0:
            raise InvalidAmount(f"Amount must be positive, got {amount}")
        self.charge(LedgerOp.TRANSFER)
        self.services.token.transfer_from(payer, amount)

    def pay(self, recipient: str, amount: int, metered: bool = True):
        """Move tokens from the ledger vault to recipient. Zero is a no-op."""
        if amount <= 0:
            return
        if metered:
            self.charge(LedgerOp.TRANSFER)
        self.services.token.transfer(recipient, amount)

    def emit(self, event_type: str, **data: Any):
        self.events.append((event_type, data))

    def defer(self, action: Callable[[], None]):
        """Run an external side effect only once the transaction has committed."""
        self.after_commit.append(action)
