"""Recursion - In-circuit verifier for Goldilocks Plonk/FRI proofs."""

from recursion.challenger import ChallengerChip
from recursion.common import (
    CircuitConfig,
    CommonCircuitData,
    FriConfig,
    FriParams,
    SelectorsInfo,
    VerifierOnlyCircuitData,
)
from recursion.fri import FriChip, get_instance, to_openings
from recursion.plonk import PlonkChip
from recursion.proof import Proof, ProofChallenges, validate_proof_shape
from recursion.transcript import Challenger
from recursion.verifier import VerifierChip

__all__ = [
    "Challenger",
    "ChallengerChip",
    "CircuitConfig",
    "CommonCircuitData",
    "FriChip",
    "FriConfig",
    "FriParams",
    "PlonkChip",
    "Proof",
    "ProofChallenges",
    "SelectorsInfo",
    "VerifierChip",
    "VerifierOnlyCircuitData",
    "get_instance",
    "to_openings",
    "validate_proof_shape",
]
