"""
External collaborators of the ledger.

Token movements, identity attestation and the cross-chain mirror are owned
by other systems. The ledger talks to them through the interfaces below;
the in-memory implementations back the devnet node and the tests.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ...protocol.types.common import InsufficientAllowance, InsufficientBalance, InvalidAmount
from ...protocol.types.ledger import MirrorPayload
from .verification import (
    SignatureVerifier, ProofVerifier, MerkleVerifier,
    EcdsaSignatureVerifier, SortedPairMerkleVerifier,
)

logger = logging.getLogger(__name__)

VAULT_ADDRESS = "idxf1vault0000000000000000000000000000000000"  # Ledger-held token balance


class TokenService(ABC):
    """
    Fungible token boundary.

    Transfers either fully succeed or raise. checkpoint/restore let the
    token take part in the ledger's transaction scope.
    """

    @abstractmethod
    def transfer_from(self, payer: str, amount: int) -> None:
        """Pull `amount` from payer into the ledger vault."""

    @abstractmethod
    def transfer(self, recipient: str, amount: int) -> None:
        """Pay `amount` from the ledger vault to recipient."""

    @abstractmethod
    def balance_of(self, address: str) -> int:
        ...

    @abstractmethod
    def checkpoint(self) -> Any:
        ...

    @abstractmethod
    def restore(self, checkpoint: Any) -> None:
        ...


class IdentityRegistry(ABC):
    @abstractmethod
    def is_verified(self, account: str) -> bool:
        ...


class MirrorChannel(ABC):
    @abstractmethod
    def send(self, payload: MirrorPayload) -> None:
        ...


class InMemoryToken(TokenService):
    def __init__(self, vault_address: str = VAULT_ADDRESS):
        self.vault_address = vault_address
        self.balances: Dict[str, int] = {}
        # owner -> amount the ledger vault may pull
        self.allowances: Dict[str, int] = {}
        self._lock = threading.RLock()

    def mint(self, address: str, amount: int):
        with self._lock:
            self.balances[address] = self.balances.get(address, 0) + amount

    def approve(self, owner: str, amount: int):
        with self._lock:
            self.allowances[owner] = amount

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def _move(self, sender: str, recipient: str, amount: int):
        if amount <= 0:
            raise InvalidAmount(f"Transfer amount must be positive, got {amount}")
        have = self.balances.get(sender, 0)
        if have < amount:
            raise InsufficientBalance(f"{sender} has {have}, needs {amount}")
        self.balances[sender] = have - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

    def transfer_from(self, payer: str, amount: int) -> None:
        with self._lock:
            allowed = self.allowances.get(payer, 0)
            if allowed < amount:
                raise InsufficientAllowance(f"{payer} approved {allowed}, needs {amount}")
            self._move(payer, self.vault_address, amount)
            self.allowances[payer] = allowed - amount

    def transfer(self, recipient: str, amount: int) -> None:
        with self._lock:
            self._move(self.vault_address, recipient, amount)

    def checkpoint(self) -> Any:
        with self._lock:
            return copy.deepcopy((self.balances, self.allowances))

    def restore(self, checkpoint: Any) -> None:
        with self._lock:
            self.balances, self.allowances = copy.deepcopy(checkpoint)


class InMemoryIdentityRegistry(IdentityRegistry):
    def __init__(self, verified: Optional[Set[str]] = None):
        self.verified: Set[str] = set(verified or ())

    def mark_verified(self, account: str):
        self.verified.add(account)

    def revoke(self, account: str):
        self.verified.discard(account)

    def is_verified(self, account: str) -> bool:
        return account in self.verified


class InMemoryMirrorChannel(MirrorChannel):
    """Outbox that records every payload sent to the remote chain."""

    def __init__(self):
        self.outbox: List[MirrorPayload] = []

    def send(self, payload: MirrorPayload) -> None:
        self.outbox.append(payload)
        logger.debug(f"Mirror payload queued: seq={payload.sequence} epoch={payload.epoch}")


@dataclass
class ExternalServices:
    """Every collaborator the ledger calls into."""
    token: TokenService
    signature_verifier: SignatureVerifier = field(default_factory=EcdsaSignatureVerifier)
    proof_verifier: Optional[ProofVerifier] = None
    identity_registry: IdentityRegistry = field(default_factory=InMemoryIdentityRegistry)
    merkle_verifier: MerkleVerifier = field(default_factory=SortedPairMerkleVerifier)
    mirror_channel: MirrorChannel = field(default_factory=InMemoryMirrorChannel)
    trusted_mirror_sender: Optional[str] = None
