"""
Claim Router

Five ways to submit a claim, one pipeline behind them:

    DIRECT          no extra check
    SIGNED          signature over (epoch, volume, nonce, account)
    PROOF_GATED     external proof-of-volume
    IDENTITY_GATED  external identity registry
        └─> record_volume -> process_reward -> maybe_rebate

    MERKLE_BATCH    one-shot precomputed payout, outside the epoch pipeline

Authentication never touches reward state, so whichever path is used the
single-claim-per-epoch rule is enforced by process_reward alone.
"""

import logging
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

from ...protocol.crypto.hash import merkle_leaf
from ...protocol.types.claim import (
    ClaimResult, DirectClaim, SignedClaim, ProofClaim, IdentityClaim, MerkleClaim,
    claim_message_hash, operation_message_hash,
)
from ...protocol.types.common import (
    AuthMethod, LedgerOp, AlreadyClaimedMerkle, InvalidAmount, InvalidProof,
    InvalidSignature, NotVerified, Unauthorized,
)
from .epoch import record_volume
from .rebate import maybe_rebate
from .rewards import process_reward

if TYPE_CHECKING:
    from .context import ExecutionContext

logger = logging.getLogger(__name__)

# Leaves encode the amount as 32 big-endian bytes
MAX_MERKLE_AMOUNT = 2**256


def consume_nonce(ctx: 'ExecutionContext', address: str) -> int:
    """Bump the account's signed-claim nonce and return the value it had."""
    acc = ctx.state.get_account(address)
    nonce = acc.nonce
    acc.nonce += 1
    ctx.state.set_account(acc)
    return nonce


def _authenticate_direct(ctx: 'ExecutionContext', request: DirectClaim):
    pass


def _recover_signer(ctx: 'ExecutionContext', digest: bytes, signature_hex: str, pub_key_hex: str) -> Optional[str]:
    try:
        signature = bytes.fromhex(signature_hex)
        pub_key = bytes.fromhex(pub_key_hex)
    except ValueError:
        return None
    return ctx.services.signature_verifier.recover(digest, signature, pub_key)


def _authenticate_signed(ctx: 'ExecutionContext', request: SignedClaim):
    ctx.charge(LedgerOp.VERIFY_SIGNATURE)
    # Consumed before the comparison so a signature can never be replayed
    nonce = consume_nonce(ctx, request.account)
    digest = claim_message_hash(ctx.state.current_epoch, request.volume, nonce, request.account)

    signer = _recover_signer(ctx, digest, request.signature, request.pub_key)
    if signer != request.account:
        raise InvalidSignature(f"Signer {signer} does not match {request.account} (nonce {nonce})")


def authenticate_operation(ctx: 'ExecutionContext', address: str, operation: str, args: Dict[str, Any],
                           signature: str, pub_key: str):
    """
    Check that `address` itself signed (operation, args, nonce).

    Consumes the nonce like a SIGNED claim does.

    Raises:
        Unauthorized: the signer is not `address`
    """
    ctx.charge(LedgerOp.VERIFY_SIGNATURE)
    nonce = consume_nonce(ctx, address)
    digest = operation_message_hash(operation, args, nonce, address)

    signer = _recover_signer(ctx, digest, signature, pub_key)
    if signer != address:
        raise Unauthorized(f"{operation} for {address} not signed by its owner (signer {signer}, nonce {nonce})")


def _authenticate_proof(ctx: 'ExecutionContext', request: ProofClaim):
    ctx.charge(LedgerOp.VERIFY_PROOF)
    verifier = ctx.services.proof_verifier
    if verifier is None:
        raise InvalidProof("No proof verifier configured")

    try:
        proof = bytes.fromhex(request.proof)
    except ValueError:
        raise InvalidProof("Proof is not valid hex")

    if not verifier.verify(proof, ctx.state.current_epoch, request.account):
        raise InvalidProof(f"Proof rejected for {request.account}")


def _authenticate_identity(ctx: 'ExecutionContext', request: IdentityClaim):
    ctx.charge(LedgerOp.CHECK_IDENTITY)
    if not ctx.services.identity_registry.is_verified(request.account):
        raise NotVerified(f"{request.account} is not identity-verified")


AUTHENTICATORS: Dict[AuthMethod, Callable] = {
    AuthMethod.DIRECT: _authenticate_direct,
    AuthMethod.SIGNED: _authenticate_signed,
    AuthMethod.PROOF_GATED: _authenticate_proof,
    AuthMethod.IDENTITY_GATED: _authenticate_identity,
}


def route(ctx: 'ExecutionContext', request) -> ClaimResult:
    """Authenticate a claim request per its method and run it."""
    if request.method == AuthMethod.MERKLE_BATCH:
        return claim_merkle(ctx, request)

    cost_at_start = ctx.meter.remaining()
    method = AuthMethod(request.method)
    AUTHENTICATORS[method](ctx, request)
    return run_claim_pipeline(ctx, method, request.account, request.volume, cost_at_start)


def run_claim_pipeline(ctx: 'ExecutionContext', method: AuthMethod, address: str,
                       volume: int, cost_at_start: int) -> ClaimResult:
    """The shared volume -> reward -> rebate pipeline."""
    record_volume(ctx, address, volume)
    distribution = process_reward(ctx, address)
    rebate = maybe_rebate(ctx, address, cost_at_start)

    result = ClaimResult(
        method=method,
        account=address,
        epoch=ctx.state.current_epoch,
        reward=distribution['reward'],
        immediate=distribution['immediate'],
        vesting=distribution['vesting'],
        compounded=distribution['compounded'],
        rebate=rebate,
    )
    ctx.emit("reward_claimed", **result.model_dump(mode="json"))
    return result


def claim_merkle(ctx: 'ExecutionContext', request: MerkleClaim) -> ClaimResult:
    """Pay a precomputed amount once per account, independent of epochs and volume."""
    state = ctx.state
    if state.is_merkle_claimed(request.account):
        raise AlreadyClaimedMerkle(f"{request.account} already claimed from the distribution")
    if request.amount <= 0 or request.amount >= MAX_MERKLE_AMOUNT:
        raise InvalidAmount(f"Merkle amount out of range: {request.amount}")
    if not state.globals.merkle_root:
        raise InvalidProof("No distribution root set")

    ctx.charge(LedgerOp.VERIFY_MERKLE)
    try:
        proof = [bytes.fromhex(node) for node in request.proof]
        root = bytes.fromhex(state.globals.merkle_root)
    except ValueError:
        raise InvalidProof("Proof nodes must be hex")

    leaf = merkle_leaf(request.account, request.amount)
    if not ctx.services.merkle_verifier.verify(proof, root, leaf):
        raise InvalidProof(f"Merkle proof rejected for {request.account}")

    state.mark_merkle_claimed(request.account)
    state.globals.lifetime_distributed += request.amount
    ctx.pay(request.account, request.amount)

    logger.info(f"Merkle distribution paid {request.amount} to {request.account}")
    result = ClaimResult(
        method=AuthMethod.MERKLE_BATCH,
        account=request.account,
        epoch=state.current_epoch,
        reward=request.amount,
        immediate=request.amount,
    )
    ctx.emit("merkle_claimed", account=request.account, amount=request.amount)
    return result
