# MIT License
# Copyright (c) 2025 Hashborn

"""
Claim Authentication Verifiers

Black-box verification services the claim router calls into. The ledger
only consumes their boolean / address answers; the algorithms behind them
are replaceable.

- SignatureVerifier: who signed a structured claim message
- ProofVerifier: does a proof vouch for (epoch, account)
- MerkleVerifier: is a leaf part of a committed distribution
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from ...protocol.crypto.addresses import address_from_pubkey
from ...protocol.crypto.hash import verify_merkle_proof
from ...protocol.crypto.keys import verify
from ...protocol.types.claim import proof_statement_hash

logger = logging.getLogger(__name__)


class SignatureVerifier(ABC):
    @abstractmethod
    def recover(self, message_hash: bytes, signature: bytes, pub_key: bytes) -> Optional[str]:
        """Return the signing account address, or None if the signature is invalid."""


class ProofVerifier(ABC):
    @abstractmethod
    def verify(self, proof: bytes, epoch: int, account: str) -> bool:
        ...


class MerkleVerifier(ABC):
    @abstractmethod
    def verify(self, proof: List[bytes], root: bytes, leaf: bytes) -> bool:
        ...


class EcdsaSignatureVerifier(SignatureVerifier):
    """
    secp256k1 signatures over a 32-byte digest.

    The claimant ships its public key next to the signature; the signer is
    the account address derived from that key, once the signature checks out.
    """

    def __init__(self, address_prefix: Optional[str] = None):
        self.address_prefix = address_prefix

    def recover(self, message_hash: bytes, signature: bytes, pub_key: bytes) -> Optional[str]:
        if not verify(message_hash, signature, pub_key):
            logger.debug("Signature rejected")
            return None
        return address_from_pubkey(pub_key, prefix=self.address_prefix)


class AttestorProofVerifier(ProofVerifier):
    """
    Proof-of-volume backed by a trusted attestor.

    A proof is the attestor's secp256k1 signature over
    proof_statement_hash(epoch, account). Swap in a zk verifier by
    implementing ProofVerifier.
    """

    def __init__(self, attestor_pub_key: bytes):
        self.attestor_pub_key = attestor_pub_key

    def verify(self, proof: bytes, epoch: int, account: str) -> bool:
        valid = verify(proof_statement_hash(epoch, account), proof, self.attestor_pub_key)
        if not valid:
            logger.warning(f"Proof for {account} in epoch {epoch} rejected")
        return valid


class SortedPairMerkleVerifier(MerkleVerifier):
    """sha256 tree with sorted sibling pairs (see crypto.hash.merkle_root)."""

    def verify(self, proof: List[bytes], root: bytes, leaf: bytes) -> bool:
        return verify_merkle_proof(proof, root, leaf)
