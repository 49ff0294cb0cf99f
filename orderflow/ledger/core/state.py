from typing import Dict, List, Optional, Set
from .accounts import AccountRecord
from ...protocol.types.ledger import VestingStream, UnstakeRequest, Bond, EpochClock, LedgerGlobals
from ..storage.db import StorageDB

ACCOUNT_PREFIX = "acc:"
VESTING_PREFIX = "vest:"
UNSTAKE_PREFIX = "unstake:"
BOND_PREFIX = "bond:"
CLOCK_KEY = "clock"
GLOBALS_KEY = "globals"

class LedgerState:
    """
    Store for every ledger record, keyed by account address.

    Records are loaded lazily from the DB into a write-back cache. Core
    functions mutate records obtained from here and hand them back with the
    matching set_* call; nothing is written to the DB until persist().
    """

    def __init__(self, db: StorageDB,
                 accounts: Dict[str, AccountRecord] = None,
                 vesting: Dict[str, VestingStream] = None,
                 unstakes: Dict[str, UnstakeRequest] = None,
                 bonds: Dict[str, Bond] = None,
                 deleted: Set[str] = None):
        self.db = db
        self._accounts: Dict[str, AccountRecord] = accounts if accounts is not None else {}
        self._vesting: Dict[str, VestingStream] = vesting if vesting is not None else {}
        self._unstakes: Dict[str, UnstakeRequest] = unstakes if unstakes is not None else {}
        self._bonds: Dict[str, Bond] = bonds if bonds is not None else {}
        # DB keys removed since the last persist
        self._deleted: Set[str] = deleted if deleted is not None else set()

        self.clock = EpochClock()
        self.globals: Optional[LedgerGlobals] = None

    def clone(self) -> 'LedgerState':
        """Creates a copy of the state (one per transaction)."""
        cloned = LedgerState(
            self.db,
            {k: v.model_copy(deep=True) for k, v in self._accounts.items()},
            {k: v.model_copy(deep=True) for k, v in self._vesting.items()},
            {k: v.model_copy(deep=True) for k, v in self._unstakes.items()},
            {k: v.model_copy(deep=True) for k, v in self._bonds.items()},
            set(self._deleted),
        )
        cloned.clock = self.clock.model_copy(deep=True)
        cloned.globals = self.globals.model_copy(deep=True) if self.globals else None
        return cloned

    # --- Globals ---
    def load_globals(self, defaults: LedgerGlobals, genesis_time: int):
        """Loads clock and globals from DB, falling back to genesis values."""
        raw_clock = self.db.get_state(CLOCK_KEY)
        if raw_clock:
            self.clock = EpochClock.model_validate_json(raw_clock)
        else:
            self.clock = EpochClock(current_epoch=1, last_reset=genesis_time)

        raw_globals = self.db.get_state(GLOBALS_KEY)
        if raw_globals:
            self.globals = LedgerGlobals.model_validate_json(raw_globals)
        else:
            self.globals = defaults

    @property
    def current_epoch(self) -> int:
        return self.clock.current_epoch

    def is_merkle_claimed(self, address: str) -> bool:
        return address in self.globals.merkle_claimed

    def mark_merkle_claimed(self, address: str):
        self.globals.merkle_claimed = sorted(set(self.globals.merkle_claimed) | {address})

    # --- Accounts ---
    def get_account(self, address: str) -> AccountRecord:
        if address in self._accounts:
            return self._accounts[address]

        raw_json = self.db.get_state(f"{ACCOUNT_PREFIX}{address}")
        if raw_json:
            acc = AccountRecord.model_validate_json(raw_json)
            self._accounts[address] = acc
            return acc

        # Created lazily, only stored once set_account() is called
        return AccountRecord(address=address)

    def set_account(self, account: AccountRecord):
        self._accounts[account.address] = account

    def get_all_accounts(self) -> List[AccountRecord]:
        """Loads all accounts from DB + cache overlay."""
        final_accounts: Dict[str, AccountRecord] = {}
        for k, v in self.db.get_state_by_prefix(ACCOUNT_PREFIX).items():
            final_accounts[k[len(ACCOUNT_PREFIX):]] = AccountRecord.model_validate_json(v)
        final_accounts.update(self._accounts)
        return [final_accounts[a] for a in sorted(final_accounts)]

    # --- Vesting ---
    def get_vesting(self, address: str) -> VestingStream:
        if address in self._vesting:
            return self._vesting[address]

        raw_json = self.db.get_state(f"{VESTING_PREFIX}{address}")
        if raw_json:
            stream = VestingStream.model_validate_json(raw_json)
            self._vesting[address] = stream
            return stream
        return VestingStream()

    def set_vesting(self, address: str, stream: VestingStream):
        self._vesting[address] = stream

    # --- Unstake queue ---
    def get_unstake(self, address: str) -> Optional[UnstakeRequest]:
        key = f"{UNSTAKE_PREFIX}{address}"
        if key in self._deleted:
            return None
        if address in self._unstakes:
            return self._unstakes[address]

        raw_json = self.db.get_state(key)
        if raw_json:
            req = UnstakeRequest.model_validate_json(raw_json)
            self._unstakes[address] = req
            return req
        return None

    def set_unstake(self, address: str, request: UnstakeRequest):
        self._deleted.discard(f"{UNSTAKE_PREFIX}{address}")
        self._unstakes[address] = request

    def clear_unstake(self, address: str):
        self._unstakes.pop(address, None)
        self._deleted.add(f"{UNSTAKE_PREFIX}{address}")

    # --- Bonds ---
    def get_bond(self, address: str) -> Optional[Bond]:
        key = f"{BOND_PREFIX}{address}"
        if key in self._deleted:
            return None
        if address in self._bonds:
            return self._bonds[address]

        raw_json = self.db.get_state(key)
        if raw_json:
            bond = Bond.model_validate_json(raw_json)
            self._bonds[address] = bond
            return bond
        return None

    def set_bond(self, address: str, bond: Bond):
        self._deleted.discard(f"{BOND_PREFIX}{address}")
        self._bonds[address] = bond

    def clear_bond(self, address: str):
        self._bonds.pop(address, None)
        self._deleted.add(f"{BOND_PREFIX}{address}")

    # --- Persistence ---
    def persist(self):
        """Writes every cached record and pending delete in one DB transaction."""
        updates: Dict[str, str] = {}
        for addr, acc in self._accounts.items():
            updates[f"{ACCOUNT_PREFIX}{addr}"] = acc.model_dump_json()
        for addr, stream in self._vesting.items():
            updates[f"{VESTING_PREFIX}{addr}"] = stream.model_dump_json()
        for addr, req in self._unstakes.items():
            updates[f"{UNSTAKE_PREFIX}{addr}"] = req.model_dump_json()
        for addr, bond in self._bonds.items():
            updates[f"{BOND_PREFIX}{addr}"] = bond.model_dump_json()

        updates[CLOCK_KEY] = self.clock.model_dump_json()
        if self.globals is not None:
            updates[GLOBALS_KEY] = self.globals.model_dump_json()

        self.db.write_batch(updates, self._deleted)
        self._deleted = set()

    def total_staked(self) -> int:
        return sum(acc.staked for acc in self.get_all_accounts())
