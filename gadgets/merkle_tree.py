"""Binary Merkle tree with a cap, using Poseidon over Goldilocks.

Leaves are hashed with hash_or_noop and internal nodes with two_to_one. The
tree stops 2^cap_height nodes below the root: those nodes form the cap, and a
proof for a leaf carries only the siblings up to the cap.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

from gadgets.poseidon import hash_or_noop, two_to_one

# --- Type Aliases ---

HashOut = List[int]
MerkleCap = List[HashOut]


@dataclass
class MerkleProof:
    """Sibling digests from the leaf level up to (excluding) the cap."""

    siblings: List[HashOut] = field(default_factory=list)


class MerkleTree:
    """Merkle tree over rows of field elements, committed to by its cap."""

    def __init__(self, leaves: Sequence[Sequence[int]], cap_height: int):
        n = len(leaves)
        if n == 0 or n & (n - 1):
            raise ValueError(f"number of leaves must be a power of two, got {n}")
        if 1 << cap_height > n:
            raise ValueError(f"cap height {cap_height} exceeds tree height for {n} leaves")

        self.leaves = [list(leaf) for leaf in leaves]
        self.cap_height = cap_height

        layer = [hash_or_noop(leaf) for leaf in self.leaves]
        self.layers: List[List[HashOut]] = [layer]
        while len(layer) > 1 << cap_height:
            layer = [two_to_one(layer[2 * i], layer[2 * i + 1]) for i in range(len(layer) // 2)]
            self.layers.append(layer)

    @property
    def cap(self) -> MerkleCap:
        return self.layers[-1]

    def prove(self, leaf_index: int) -> MerkleProof:
        siblings = []
        index = leaf_index
        for layer in self.layers[:-1]:
            siblings.append(layer[index ^ 1])
            index >>= 1
        return MerkleProof(siblings)
