"""Inner proof and verifier challenges as circuit variables.

Every field of a Proof is already allocated in the outer ConstraintSystem;
sizes are fixed by CommonCircuitData and checked by validate_proof_shape
before any constraint is emitted.
"""

from dataclasses import dataclass
from typing import List

from gadgets.goldilocks import GoldilocksVariable, QuadraticExtensionVariable
from gadgets.merkle_verifier import MerkleCapVariable, MerkleProofVariable
from recursion.common import NUM_ORACLES, CommonCircuitData

# --- Openings ---


@dataclass
class OpeningSet:
    """Polynomial evaluations claimed by the prover at zeta (and g * zeta for zs_next)."""

    constants: List[QuadraticExtensionVariable]
    plonk_sigmas: List[QuadraticExtensionVariable]
    wires: List[QuadraticExtensionVariable]
    plonk_zs: List[QuadraticExtensionVariable]
    plonk_zs_next: List[QuadraticExtensionVariable]
    partial_products: List[QuadraticExtensionVariable]
    quotient_polys: List[QuadraticExtensionVariable]

    def all_values(self) -> List[QuadraticExtensionVariable]:
        return (
            self.constants
            + self.plonk_sigmas
            + self.wires
            + self.plonk_zs
            + self.plonk_zs_next
            + self.partial_products
            + self.quotient_polys
        )


# --- FRI Proof ---


@dataclass
class EvalProof:
    """Leaf of one initial oracle at a query index, with its Merkle proof."""

    elements: List[GoldilocksVariable]
    merkle_proof: MerkleProofVariable


@dataclass
class FriInitialTreeProof:
    evals_proofs: List[EvalProof]

    def unsalted_eval(self, oracle_index: int, poly_index: int) -> GoldilocksVariable:
        # Salt, when present, sits after the polynomial values
        return self.evals_proofs[oracle_index].elements[poly_index]


@dataclass
class FriQueryStep:
    """Coset evaluations of one folded codeword and their Merkle proof."""

    evals: List[QuadraticExtensionVariable]
    merkle_proof: MerkleProofVariable


@dataclass
class FriQueryRound:
    initial_trees_proof: FriInitialTreeProof
    steps: List[FriQueryStep]


@dataclass
class PolynomialCoeffs:
    coeffs: List[QuadraticExtensionVariable]


@dataclass
class FriProof:
    commit_phase_merkle_caps: List[MerkleCapVariable]
    query_round_proofs: List[FriQueryRound]
    final_poly: PolynomialCoeffs
    pow_witness: GoldilocksVariable


@dataclass
class Proof:
    wires_cap: MerkleCapVariable
    plonk_zs_partial_products_cap: MerkleCapVariable
    quotient_polys_cap: MerkleCapVariable
    openings: OpeningSet
    opening_proof: FriProof


# --- Challenges ---


@dataclass(frozen=True)
class FriChallenges:
    fri_alpha: QuadraticExtensionVariable
    fri_betas: List[QuadraticExtensionVariable]
    fri_pow_response: GoldilocksVariable
    fri_query_indices: List[GoldilocksVariable]


@dataclass(frozen=True)
class ProofChallenges:
    plonk_betas: List[GoldilocksVariable]
    plonk_gammas: List[GoldilocksVariable]
    plonk_alphas: List[GoldilocksVariable]
    plonk_zeta: QuadraticExtensionVariable
    fri_challenges: FriChallenges


# --- Shape Validation ---


def _check_len(errors: List[str], name: str, actual: int, expected: int) -> None:
    if actual != expected:
        errors.append(f"{name}: expected {expected}, got {actual}")


def _check_cap(errors: List[str], name: str, cap: MerkleCapVariable, cap_height: int) -> None:
    _check_len(errors, f"{name} length", len(cap), 1 << cap_height)
    for i, digest in enumerate(cap):
        _check_len(errors, f"{name}[{i}] digest size", len(digest), 4)


def validate_proof_shape(proof: Proof, common_data: CommonCircuitData) -> List[str]:
    """Check that every component of the proof has the size the circuit implies.

    Returns:
        List of error messages (empty if the shape is valid)
    """
    errors: List[str] = []
    config = common_data.config
    fri_params = common_data.fri_params
    cap_height = fri_params.config.cap_height
    num_challenges = config.num_challenges

    # --- Commitments ---
    _check_cap(errors, "wires_cap", proof.wires_cap, cap_height)
    _check_cap(errors, "plonk_zs_partial_products_cap", proof.plonk_zs_partial_products_cap, cap_height)
    _check_cap(errors, "quotient_polys_cap", proof.quotient_polys_cap, cap_height)

    # --- Openings ---
    openings = proof.openings
    _check_len(errors, "openings.constants", len(openings.constants), common_data.num_constants)
    _check_len(errors, "openings.plonk_sigmas", len(openings.plonk_sigmas), config.num_routed_wires)
    _check_len(errors, "openings.wires", len(openings.wires), config.num_wires)
    _check_len(errors, "openings.plonk_zs", len(openings.plonk_zs), num_challenges)
    _check_len(errors, "openings.plonk_zs_next", len(openings.plonk_zs_next), num_challenges)
    _check_len(
        errors,
        "openings.partial_products",
        len(openings.partial_products),
        num_challenges * common_data.num_partial_products,
    )
    _check_len(errors, "openings.quotient_polys", len(openings.quotient_polys), common_data.num_quotient_polys)

    # --- FRI ---
    fri_proof = proof.opening_proof
    num_rounds = len(fri_params.reduction_arity_bits)
    _check_len(errors, "commit_phase_merkle_caps", len(fri_proof.commit_phase_merkle_caps), num_rounds)
    for i, cap in enumerate(fri_proof.commit_phase_merkle_caps):
        _check_cap(errors, f"commit_phase_merkle_caps[{i}]", cap, cap_height)
    _check_len(errors, "final_poly", len(fri_proof.final_poly.coeffs), fri_params.final_poly_len)
    _check_len(
        errors, "query_round_proofs", len(fri_proof.query_round_proofs), fri_params.config.num_query_rounds
    )

    for q, round_proof in enumerate(fri_proof.query_round_proofs):
        evals_proofs = round_proof.initial_trees_proof.evals_proofs
        _check_len(errors, f"query[{q}] initial oracles", len(evals_proofs), NUM_ORACLES)
        for o, evals_proof in enumerate(evals_proofs[:NUM_ORACLES]):
            _check_len(
                errors,
                f"query[{q}] oracle[{o}] leaf",
                len(evals_proof.elements),
                common_data.oracle_leaf_len(o),
            )
            _check_len(
                errors,
                f"query[{q}] oracle[{o}] siblings",
                len(evals_proof.merkle_proof.siblings),
                fri_params.lde_bits - cap_height,
            )

        _check_len(errors, f"query[{q}] steps", len(round_proof.steps), num_rounds)
        remaining_bits = fri_params.lde_bits
        for i, (step, arity_bits) in enumerate(zip(round_proof.steps, fri_params.reduction_arity_bits)):
            remaining_bits -= arity_bits
            _check_len(errors, f"query[{q}] step[{i}] evals", len(step.evals), 1 << arity_bits)
            _check_len(
                errors,
                f"query[{q}] step[{i}] siblings",
                len(step.merkle_proof.siblings),
                remaining_bits - cap_height,
            )

    return errors
