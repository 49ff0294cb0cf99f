import hashlib
import json
from typing import Any, List

def sha256(data: bytes) -> bytes:
    """Returns SHA256 hash of bytes."""
    return hashlib.sha256(data).digest()

def canonical_hash(data: Any) -> bytes:
    """SHA256 over sorted, compact JSON. Used for structured messages."""
    canonical_json = json.dumps(data, sort_keys=True, separators=(',', ':'))
    return sha256(canonical_json.encode("utf-8"))

def merkle_leaf(account: str, amount: int) -> bytes:
    """Leaf of a precomputed distribution: hash(account, amount)."""
    return sha256(account.encode("utf-8") + amount.to_bytes(32, "big"))

def hash_pair(a: bytes, b: bytes) -> bytes:
    """Order-independent node hash (sorted pair)."""
    return sha256(a + b) if a <= b else sha256(b + a)

def merkle_root(leaves: List[bytes]) -> bytes:
    """Calculates sorted-pair Merkle Root. An odd node is promoted unchanged."""
    if not leaves:
        return b'\x00' * 32

    level = list(leaves)
    while len(level) > 1:
        new_level = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                new_level.append(hash_pair(level[i], level[i + 1]))
            else:
                new_level.append(level[i])
        level = new_level
    return level[0]

def merkle_proof(leaves: List[bytes], index: int) -> List[bytes]:
    """Sibling path for leaves[index], bottom-up."""
    if index < 0 or index >= len(leaves):
        raise IndexError(f"Leaf index {index} out of range")

    proof = []
    level = list(leaves)
    while len(level) > 1:
        sibling = index ^ 1
        if sibling < len(level):
            proof.append(level[sibling])

        new_level = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                new_level.append(hash_pair(level[i], level[i + 1]))
            else:
                new_level.append(level[i])
        level = new_level
        index //= 2
    return proof

def verify_merkle_proof(proof: List[bytes], root: bytes, leaf: bytes) -> bool:
    computed = leaf
    for node in proof:
        computed = hash_pair(computed, node)
    return computed == root
