"""
Merkle inclusion proofs.

Hashes are combined in internal byte order (the reverse of the hex shown by
the explorer), exactly as Bitcoin builds the merkle root stored in a block
header. `verify` is a pure fold over the sibling list: bit i of the position
decides whether the running hash is the left or the right child at level i.
"""

import hashlib
from functools import reduce
from typing import List, Sequence, Tuple, Union

from esplora_client.models.chain import BlockHeader, Hash256, MerkleProof

HashLike = Union[Hash256, str]


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def _as_hash(value: HashLike) -> Hash256:
    if isinstance(value, Hash256):
        return value
    return Hash256.from_hex(value)


def _combine(left: bytes, right: bytes) -> bytes:
    return double_sha256(left + right)


def verify(leaf_hash: HashLike, proof: MerkleProof, expected_root: HashLike) -> bool:
    """
    Check that `leaf_hash` is included under `expected_root`.

    Returns False for a proof that does not hash up to the root, including
    one whose position does not fit the number of siblings. A negative
    result is not an error; acting on it is up to the caller.
    """
    if proof.pos < 0 or proof.pos >= 1 << len(proof.merkle):
        return False

    def step(current: bytes, level: Tuple[int, Hash256]) -> bytes:
        index, sibling = level
        if (proof.pos >> index) & 1:
            return _combine(bytes(sibling), current)
        return _combine(current, bytes(sibling))

    root = reduce(step, enumerate(proof.merkle), bytes(_as_hash(leaf_hash)))
    return root == bytes(_as_hash(expected_root))


def verify_tx_inclusion(txid: HashLike, proof: MerkleProof, header: BlockHeader) -> bool:
    """Verify a proof against the merkle root of a trusted block header."""
    if header.height != proof.block_height:
        return False
    return verify(txid, proof, header.merkle_root)


def _next_level(level: List[bytes]) -> List[bytes]:
    if len(level) % 2:
        level = level + [level[-1]]
    return [_combine(level[i], level[i + 1]) for i in range(0, len(level), 2)]


def merkle_root(leaves: Sequence[HashLike]) -> Hash256:
    """
    Merkle root over transaction ids in block order.

    Odd levels duplicate their last node, as Bitcoin does.
    """
    if not leaves:
        raise ValueError("cannot build a merkle root without leaves")
    level = [bytes(_as_hash(leaf)) for leaf in leaves]
    while len(level) > 1:
        level = _next_level(level)
    return Hash256(level[0])


def merkle_branch(leaves: Sequence[HashLike], index: int, block_height: int = 0) -> MerkleProof:
    """Build the inclusion proof for `leaves[index]`."""
    if not 0 <= index < len(leaves):
        raise IndexError(f"leaf index {index} out of range for {len(leaves)} leaves")

    level = [bytes(_as_hash(leaf)) for leaf in leaves]
    siblings = []
    position = index
    while len(level) > 1:
        padded = level + [level[-1]] if len(level) % 2 else level
        siblings.append(Hash256(padded[position ^ 1]))
        level = _next_level(level)
        position >>= 1

    return MerkleProof(block_height=block_height, merkle=tuple(siblings), pos=index)
