"""In-circuit Merkle proof verification against a cap."""

from dataclasses import dataclass
from typing import List, Sequence

from circuit.api import ConstraintSystem, Operand
from gadgets.goldilocks import GoldilocksHashOut, GoldilocksVariable
from gadgets.poseidon_chip import PoseidonGoldilocksChip

# --- Type Aliases ---

MerkleCapVariable = List[GoldilocksHashOut]


@dataclass
class MerkleProofVariable:
    siblings: List[GoldilocksHashOut]


class MerkleVerifierChip:
    """Checks that leaf data hashes up to the cap entry selected by its index."""

    def __init__(self, cs: ConstraintSystem, poseidon_chip: PoseidonGoldilocksChip):
        self.cs = cs
        self.poseidon_chip = poseidon_chip

    def verify_merkle_proof_to_cap_with_cap_index(
        self,
        leaf_data: Sequence[GoldilocksVariable],
        leaf_index_bits: Sequence[Operand],
        cap_index_bits: Sequence[Operand],
        merkle_cap: MerkleCapVariable,
        proof: MerkleProofVariable,
    ) -> None:
        """Verify a proof for leaf_data.

        Args:
            leaf_data: Elements of the leaf, hashed with hash_or_noop
            leaf_index_bits: Little-endian leaf index bits; only the lowest
                len(proof.siblings) are used
            cap_index_bits: Little-endian bits selecting the cap entry
            merkle_cap: Committed cap
            proof: Sibling digests from the leaf up to the cap
        """
        if len(leaf_index_bits) < len(proof.siblings):
            raise ValueError(
                f"{len(proof.siblings)} siblings but only {len(leaf_index_bits)} leaf index bits"
            )
        current = self.poseidon_chip.hash_or_noop(leaf_data)
        for bit, sibling in zip(leaf_index_bits, proof.siblings):
            # bit == 1: current node is the right child
            left = [self._select(bit, s, c) for s, c in zip(sibling, current)]
            right = [self._select(bit, c, s) for s, c in zip(sibling, current)]
            current = self.poseidon_chip.two_to_one(left, right)

        expected = self.random_access_hash(cap_index_bits, merkle_cap)
        for got, want in zip(current, expected):
            self.cs.assert_is_equal(got.limb, want.limb, "merkle cap: ")

    def random_access_hash(
        self, index_bits: Sequence[Operand], hashes: MerkleCapVariable
    ) -> GoldilocksHashOut:
        if len(hashes) != 1 << len(index_bits):
            raise ValueError(f"cap of {len(hashes)} digests with {len(index_bits)} index bits")
        layer = list(hashes)
        for bit in index_bits:
            layer = [
                [self._select(bit, hi, lo) for lo, hi in zip(layer[2 * i], layer[2 * i + 1])]
                for i in range(len(layer) // 2)
            ]
        return layer[0]

    def _select(self, bit: Operand, if_true: GoldilocksVariable, if_false: GoldilocksVariable) -> GoldilocksVariable:
        return GoldilocksVariable(self.cs.select(bit, if_true.limb, if_false.limb))
