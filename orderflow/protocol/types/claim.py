"""
Claim requests.

One model per authentication path. `ClaimRequest` is a tagged union on
`method`, so a single router can authenticate per variant and hand every
epoch-based claim to the same pipeline.
"""

from pydantic import BaseModel, Field
from typing import Annotated, List, Literal, Union
from .common import AuthMethod
from ..crypto.hash import canonical_hash


class DirectClaim(BaseModel):
    method: Literal["DIRECT"] = "DIRECT"
    account: str
    volume: int


class SignedClaim(BaseModel):
    method: Literal["SIGNED"] = "SIGNED"
    account: str
    volume: int
    signature: str                 # hex (r || s)
    pub_key: str                   # hex compressed secp256k1 key of the signer


class ProofClaim(BaseModel):
    method: Literal["PROOF_GATED"] = "PROOF_GATED"
    account: str
    volume: int
    proof: str                     # hex, opaque to the ledger


class IdentityClaim(BaseModel):
    method: Literal["IDENTITY_GATED"] = "IDENTITY_GATED"
    account: str
    volume: int


class MerkleClaim(BaseModel):
    method: Literal["MERKLE_BATCH"] = "MERKLE_BATCH"
    account: str
    amount: int
    proof: List[str] = Field(default_factory=list)   # hex sibling hashes


ClaimRequest = Annotated[
    Union[DirectClaim, SignedClaim, ProofClaim, IdentityClaim, MerkleClaim],
    Field(discriminator="method"),
]


def claim_message_hash(epoch: int, volume: int, nonce: int, account: str) -> bytes:
    """Digest a signer authorizes for a SIGNED claim."""
    return canonical_hash({
        "epoch": epoch,
        "volume": volume,
        "nonce": nonce,
        "account": account,
    })


def operation_message_hash(operation: str, args: dict, nonce: int, account: str) -> bytes:
    """Digest an account signs to authorize one ledger operation on itself."""
    return canonical_hash({
        "operation": operation,
        "args": args,
        "nonce": nonce,
        "account": account,
    })


def proof_statement_hash(epoch: int, account: str) -> bytes:
    """Digest an attestor signs to vouch for an account's volume in an epoch."""
    return canonical_hash({"epoch": epoch, "account": account})


class ClaimResult(BaseModel):
    """Outcome of a successful claim on any path."""
    method: AuthMethod
    account: str
    epoch: int
    reward: int = 0                # Epoch reward, or the Merkle amount
    immediate: int = 0
    vesting: int = 0
    compounded: int = 0            # Part of `immediate` re-staked instead of paid
    rebate: int = 0
