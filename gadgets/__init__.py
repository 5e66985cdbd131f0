"""Gadgets - Goldilocks arithmetic, Poseidon and Merkle building blocks."""

from gadgets.goldilocks import (
    GoldilocksApi,
    GoldilocksHashOut,
    GoldilocksVariable,
    QuadraticExtensionVariable,
)
from gadgets.merkle_verifier import MerkleCapVariable, MerkleProofVariable, MerkleVerifierChip
from gadgets.poseidon_chip import PoseidonBN254Chip, PoseidonGoldilocksChip

__all__ = [
    "GoldilocksApi",
    "GoldilocksHashOut",
    "GoldilocksVariable",
    "MerkleCapVariable",
    "MerkleProofVariable",
    "MerkleVerifierChip",
    "PoseidonBN254Chip",
    "PoseidonGoldilocksChip",
    "QuadraticExtensionVariable",
]
