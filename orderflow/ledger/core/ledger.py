# MIT License
# Copyright (c) 2025 Hashborn

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union
import logging
import threading
import time

from pydantic import TypeAdapter

from ...protocol.config.params import CURRENT_NETWORK, NetworkConfig
from ...protocol.types.claim import ClaimRequest, ClaimResult
from ...protocol.types.common import (
    AuthMethod, InvalidAmount, InvalidProof, InvalidSignature, LedgerError, Unauthorized, UnknownOperation,
)
from ...protocol.types.ledger import Bond, LedgerGlobals, MirrorPayload, UnstakeRequest, VestingStream
from ..storage.db import StorageDB
from . import bonds, mirror, staking, vesting
from .accounts import AccountRecord
from .context import ExecutionContext
from .events import EventBus
from .rebate import GasMeter
from .router import authenticate_operation, consume_nonce, route
from .services import ExternalServices
from .state import LedgerState

logger = logging.getLogger(__name__)

_claim_adapter = TypeAdapter(ClaimRequest)


def _claim_for(ctx: ExecutionContext, address: str, **request: Any) -> ClaimResult:
    claim = _claim_adapter.validate_python(dict(request, account=request.get("account", address)))
    if claim.account != address:
        raise Unauthorized(f"{address} cannot claim on behalf of {claim.account}")
    return route(ctx, claim)


# Operations a caller may batch through multicall, all scoped to the caller
MULTICALL_OPS: Dict[str, Callable] = {
    "stake": lambda ctx, address, amount: staking.stake(ctx, address, amount),
    "request_unstake": lambda ctx, address, amount: staking.request_unstake(ctx, address, amount),
    "withdraw_unstaked": lambda ctx, address: staking.withdraw_unstaked(ctx, address),
    "set_auto_compound": lambda ctx, address, enabled: staking.set_auto_compound(ctx, address, enabled),
    "bind_account": lambda ctx, address, bound: staking.bind_account(ctx, address, bound),
    "claim_vested": lambda ctx, address: vesting.claim_vested(ctx, address),
    "bond": lambda ctx, address, amount, lock_duration: bonds.bond(ctx, address, amount, lock_duration),
    "withdraw_bond": lambda ctx, address: bonds.withdraw_bond(ctx, address),
    "claim": _claim_for,
}

# Operations an account may authorize with its own signature (RPC entry)
SIGNED_OPS = {name: op for name, op in MULTICALL_OPS.items() if name != "claim"}


class RewardLedger:
    """
    Entry point for every ledger operation.

    Operations are serialized behind one lock and run as transactions: the
    state is cloned, the operation mutates the clone, and only a fully
    successful run replaces the live state, gets persisted and publishes
    its events. Any exception restores the token checkpoint and leaves the
    live state untouched.
    """

    def __init__(self, db_path: str, services: ExternalServices, governor: str,
                 config: Optional[NetworkConfig] = None,
                 clock: Optional[Callable[[], int]] = None,
                 event_bus: Optional[EventBus] = None,
                 genesis_time: Optional[int] = None):
        self.db = StorageDB(db_path)
        self.config = config or CURRENT_NETWORK
        self.services = services
        self.governor = governor
        self.events = event_bus or EventBus()
        self._clock = clock or (lambda: int(time.time()))
        self._lock = threading.Lock()

        self.state = LedgerState(self.db)
        defaults = LedgerGlobals(
            reward_rate_per_volume=self.config.reward_rate_per_volume,
            min_volume_threshold=self.config.min_volume_threshold,
        )
        self.state.load_globals(defaults, genesis_time if genesis_time is not None else self._clock())
        self.state.persist()
        logger.info(f"Ledger initialized on {self.config.network_id} at epoch {self.state.current_epoch}")

    # --- Transaction scope ---
    @contextmanager
    def _transaction(self) -> Iterator[ExecutionContext]:
        with self._lock:
            ctx = ExecutionContext(
                state=self.state.clone(),
                services=self.services,
                config=self.config,
                meter=GasMeter(self.config.call_gas_limit),
                now=self._clock(),
            )
            checkpoint = self.services.token.checkpoint()
            try:
                yield ctx
                ctx.state.persist()
            except Exception as e:
                self.services.token.restore(checkpoint)
                if isinstance(e, LedgerError):
                    logger.info(f"Operation reverted: {e.code}: {e.message}")
                    self.events.emit("operation_failed", error=e.code, message=e.message)
                raise

            self.state = ctx.state

        for action in ctx.after_commit:
            action()
        for event_type, data in ctx.events:
            self.events.emit(event_type, **data)

    def _require_governor(self, caller: str):
        if caller != self.governor:
            raise Unauthorized(f"{caller} is not the governor")

    # --- Staking ---
    def stake(self, address: str, amount: int) -> AccountRecord:
        with self._transaction() as ctx:
            return staking.stake(ctx, address, amount)

    def request_unstake(self, address: str, amount: int) -> UnstakeRequest:
        with self._transaction() as ctx:
            return staking.request_unstake(ctx, address, amount)

    def withdraw_unstaked(self, address: str) -> int:
        with self._transaction() as ctx:
            return staking.withdraw_unstaked(ctx, address)

    def set_auto_compound(self, address: str, enabled: bool) -> AccountRecord:
        with self._transaction() as ctx:
            return staking.set_auto_compound(ctx, address, enabled)

    def bind_account(self, address: str, bound: Optional[str]) -> AccountRecord:
        with self._transaction() as ctx:
            return staking.bind_account(ctx, address, bound)

    # --- Bonds ---
    def bond(self, address: str, amount: int, lock_duration: int) -> Bond:
        with self._transaction() as ctx:
            return bonds.bond(ctx, address, amount, lock_duration)

    def slash(self, address: str, caller: str) -> int:
        with self._transaction() as ctx:
            return bonds.slash(ctx, address, caller)

    def withdraw_bond(self, address: str) -> int:
        with self._transaction() as ctx:
            return bonds.withdraw_bond(ctx, address)

    # --- Claims ---
    def claim(self, request: Union[Dict[str, Any], Any]) -> ClaimResult:
        """
        Submit a claim on any path.

        A rejected SIGNED claim still consumes the account's nonce: the
        bump is committed on its own after the claim itself reverts.
        """
        if isinstance(request, dict):
            request = _claim_adapter.validate_python(request)

        try:
            with self._transaction() as ctx:
                return route(ctx, request)
        except InvalidSignature:
            if request.method == AuthMethod.SIGNED:
                with self._transaction() as ctx:
                    consume_nonce(ctx, request.account)
            raise

    def claim_vested(self, address: str) -> int:
        with self._transaction() as ctx:
            return vesting.claim_vested(ctx, address)

    def multicall(self, address: str, calls: Sequence[Tuple[str, Dict[str, Any]]]) -> List[Any]:
        """Run several operations for one account; all of them commit or none does."""
        if not calls:
            raise InvalidAmount("multicall needs at least one call")
        with self._transaction() as ctx:
            results = []
            for name, kwargs in calls:
                op = MULTICALL_OPS.get(name)
                if op is None:
                    raise UnknownOperation(f"Unknown operation: {name}")
                results.append(op(ctx, address, **kwargs))
            return results

    def execute_signed(self, address: str, operation: str, args: Dict[str, Any],
                       signature: str, pub_key: str) -> Any:
        """
        Run one operation on behalf of `address`, authorized by its signature over
        operation_message_hash(operation, args, nonce, address).

        Once the signature checks out the nonce stays consumed, even if the
        operation itself then fails.
        """
        op = SIGNED_OPS.get(operation)
        if op is None:
            raise UnknownOperation(f"Unknown operation: {operation}")

        authenticated = False
        try:
            with self._transaction() as ctx:
                authenticate_operation(ctx, address, operation, args, signature, pub_key)
                authenticated = True
                return op(ctx, address, **args)
        except LedgerError:
            if authenticated:
                with self._transaction() as ctx:
                    consume_nonce(ctx, address)
            raise

    # --- Governance ---
    def set_reward_rate(self, caller: str, rate: int):
        self._require_governor(caller)
        if rate < 0:
            raise InvalidAmount(f"Reward rate cannot be negative: {rate}")
        with self._transaction() as ctx:
            ctx.state.globals.reward_rate_per_volume = rate
        logger.info(f"Reward rate set to {rate}")

    def set_min_volume_threshold(self, caller: str, threshold: int):
        self._require_governor(caller)
        if threshold < 0:
            raise InvalidAmount(f"Threshold cannot be negative: {threshold}")
        with self._transaction() as ctx:
            ctx.state.globals.min_volume_threshold = threshold
        logger.info(f"Minimum volume threshold set to {threshold}")

    def set_merkle_root(self, caller: str, root: str):
        self._require_governor(caller)
        try:
            if len(bytes.fromhex(root)) != 32:
                raise ValueError(root)
        except ValueError:
            raise InvalidProof(f"Merkle root must be 32 bytes of hex: {root!r}")
        with self._transaction() as ctx:
            ctx.state.globals.merkle_root = root
        logger.info(f"Merkle root set to {root[:16]}...")

    # --- Cross-chain mirror ---
    def sync_mirror(self, caller: str) -> MirrorPayload:
        self._require_governor(caller)
        with self._transaction() as ctx:
            return mirror.send_mirror(ctx)

    def receive_mirror(self, sender: str, payload: MirrorPayload):
        with self._transaction() as ctx:
            mirror.receive_mirror(ctx, sender, payload)

    # --- Queries ---
    @property
    def current_epoch(self) -> int:
        return self.state.current_epoch

    @property
    def lifetime_distributed(self) -> int:
        return self.state.globals.lifetime_distributed

    def get_account(self, address: str) -> AccountRecord:
        return self.state.get_account(address).model_copy()

    def get_vesting(self, address: str) -> VestingStream:
        return self.state.get_vesting(address).model_copy()

    def get_unstake(self, address: str) -> Optional[UnstakeRequest]:
        req = self.state.get_unstake(address)
        return req.model_copy() if req else None

    def get_bond(self, address: str) -> Optional[Bond]:
        b = self.state.get_bond(address)
        return b.model_copy() if b else None

    def claimable_vested(self, address: str) -> int:
        return max(vesting.claimable_amount(self.state.get_vesting(address), self.state.current_epoch), 0)

    def close(self):
        self.db.close()
