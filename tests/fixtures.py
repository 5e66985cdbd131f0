"""Inner-circuit data and proof witnesses shared by the tests.

Proofs are generated natively as plain ints (NativeProof), then allocated as
secret inputs of a ConstraintSystem. The native transcript replay mirrors
VerifierChip.get_challenges so the tests can compare the two.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from circuit.api import ConstraintSystem
from gadgets.field import GOLDILOCKS_PRIME, ff2, ff2_coeffs, ff2_inv, ff2_mul
from gadgets.goldilocks import GoldilocksVariable, QuadraticExtensionVariable
from gadgets.merkle_verifier import MerkleProofVariable
from gadgets.poseidon import hash_no_pad
from recursion.common import NUM_ORACLES, CommonCircuitData, VerifierOnlyCircuitData
from recursion.proof import (
    EvalProof,
    FriInitialTreeProof,
    FriProof,
    FriQueryRound,
    FriQueryStep,
    OpeningSet,
    PolynomialCoeffs,
    Proof,
)
from recursion.transcript import Challenger, grind
from recursion.verifier import VerifierChip

P = GOLDILOCKS_PRIME

OPENING_FIELDS = [
    "constants",
    "plonk_sigmas",
    "wires",
    "plonk_zs",
    "plonk_zs_next",
    "partial_products",
    "quotient_polys",
]


# --- Common Circuit Data ---


def common_data_dict(
    num_challenges: int = 2,
    num_query_rounds: int = 1,
    cap_height: int = 0,
    proof_of_work_bits: int = 0,
    degree_bits: int = 3,
    rate_bits: int = 1,
    reduction_arity_bits: Tuple[int, ...] = (1,),
    hiding: bool = False,
) -> Dict[str, Any]:
    """JSON layout of a small circuit: Noop, Constant(2), PublicInput and Arithmetic(1) gates."""
    fri_config = {
        "rate_bits": rate_bits,
        "cap_height": cap_height,
        "proof_of_work_bits": proof_of_work_bits,
        "num_query_rounds": num_query_rounds,
    }
    return {
        "config": {
            "num_wires": 4,
            "num_routed_wires": 4,
            "num_constants": 3,
            "num_challenges": num_challenges,
            "max_quotient_degree_factor": 2,
            "zero_knowledge": hiding,
            "fri_config": fri_config,
        },
        "fri_params": {
            "config": dict(fri_config),
            "hiding": hiding,
            "degree_bits": degree_bits,
            "reduction_arity_bits": list(reduction_arity_bits),
        },
        "gates": [
            "NoopGate",
            "ConstantGate { num_consts: 2 }",
            "PublicInputGate",
            "ArithmeticGate { num_ops: 1 }",
        ],
        "selectors_info": {
            "selector_indices": [0, 0, 0, 0],
            "groups": [{"start": 0, "end": 4}],
        },
        "quotient_degree_factor": 2,
        "num_gate_constraints": 4,
        "num_constants": 3,
        "num_public_inputs": 3,
        "k_is": [pow(7, i, P) for i in range(4)],
        "num_partial_products": 1,
    }


def small_common_data(**kwargs) -> CommonCircuitData:
    return CommonCircuitData.from_dict(common_data_dict(**kwargs))


# --- Native Proofs ---


@dataclass
class NativeQueryRound:
    # (leaf elements, siblings) per initial oracle
    initial: List[Tuple[List[int], List[List[int]]]]
    # (coset evaluations as [c0, c1] pairs, siblings) per reduction round
    steps: List[Tuple[List[List[int]], List[List[int]]]]


@dataclass
class NativeProof:
    wires_cap: List[List[int]]
    plonk_zs_partial_products_cap: List[List[int]]
    quotient_polys_cap: List[List[int]]
    openings: Dict[str, List[List[int]]]
    commit_phase_merkle_caps: List[List[List[int]]]
    query_rounds: List[NativeQueryRound]
    final_poly: List[List[int]]
    pow_witness: int


def random_elements(rng: np.random.Generator, n: int) -> List[int]:
    return [int(x) for x in rng.integers(0, P, size=n, dtype=np.uint64)]


def _random_ext(rng: np.random.Generator, n: int) -> List[List[int]]:
    flat = random_elements(rng, 2 * n)
    return [flat[2 * i:2 * i + 2] for i in range(n)]


def _random_cap(rng: np.random.Generator, cap_height: int) -> List[List[int]]:
    return [random_elements(rng, 4) for _ in range(1 << cap_height)]


def opening_counts(common_data: CommonCircuitData) -> Dict[str, int]:
    config = common_data.config
    return {
        "constants": common_data.num_constants,
        "plonk_sigmas": config.num_routed_wires,
        "wires": config.num_wires,
        "plonk_zs": config.num_challenges,
        "plonk_zs_next": config.num_challenges,
        "partial_products": config.num_challenges * common_data.num_partial_products,
        "quotient_polys": common_data.num_quotient_polys,
    }


def random_native_proof(common_data: CommonCircuitData, seed: int = 0) -> NativeProof:
    """Correctly shaped proof with random canonical values."""
    rng = np.random.default_rng(seed)
    fri_params = common_data.fri_params
    cap_height = fri_params.config.cap_height

    openings = {name: _random_ext(rng, n) for name, n in opening_counts(common_data).items()}

    query_rounds = []
    for _ in range(fri_params.config.num_query_rounds):
        initial = [
            (
                random_elements(rng, common_data.oracle_leaf_len(o)),
                [random_elements(rng, 4) for _ in range(fri_params.lde_bits - cap_height)],
            )
            for o in range(NUM_ORACLES)
        ]
        steps = []
        remaining_bits = fri_params.lde_bits
        for arity_bits in fri_params.reduction_arity_bits:
            remaining_bits -= arity_bits
            steps.append(
                (
                    _random_ext(rng, 1 << arity_bits),
                    [random_elements(rng, 4) for _ in range(remaining_bits - cap_height)],
                )
            )
        query_rounds.append(NativeQueryRound(initial, steps))

    return NativeProof(
        wires_cap=_random_cap(rng, cap_height),
        plonk_zs_partial_products_cap=_random_cap(rng, cap_height),
        quotient_polys_cap=_random_cap(rng, cap_height),
        openings=openings,
        commit_phase_merkle_caps=[_random_cap(rng, cap_height) for _ in fri_params.reduction_arity_bits],
        query_rounds=query_rounds,
        final_poly=_random_ext(rng, fri_params.final_poly_len),
        pow_witness=random_elements(rng, 1)[0],
    )


def random_circuit_digest(seed: int = 0) -> int:
    rng = np.random.default_rng(seed + 1000)
    # 4 x 63 bits keeps the digest below the BN254 scalar modulus
    limbs = [int(x) for x in rng.integers(0, 1 << 63, size=4, dtype=np.uint64)]
    return sum(limb << (63 * i) for i, limb in enumerate(limbs))


# --- Allocation ---


def alloc_element(cs: ConstraintSystem, value: int) -> GoldilocksVariable:
    return GoldilocksVariable(cs.secret_input(value))


def alloc_ext(cs: ConstraintSystem, value: List[int]) -> QuadraticExtensionVariable:
    return QuadraticExtensionVariable(alloc_element(cs, value[0]), alloc_element(cs, value[1]))


def alloc_hash(cs: ConstraintSystem, digest: List[int]) -> List[GoldilocksVariable]:
    return [alloc_element(cs, x) for x in digest]


def alloc_cap(cs: ConstraintSystem, cap: List[List[int]]) -> List[List[GoldilocksVariable]]:
    return [alloc_hash(cs, digest) for digest in cap]


def alloc_merkle_proof(cs: ConstraintSystem, siblings: List[List[int]]) -> MerkleProofVariable:
    return MerkleProofVariable([alloc_hash(cs, s) for s in siblings])


def allocate_proof(cs: ConstraintSystem, native: NativeProof) -> Proof:
    openings = OpeningSet(
        **{name: [alloc_ext(cs, v) for v in native.openings[name]] for name in OPENING_FIELDS}
    )
    query_round_proofs = [
        FriQueryRound(
            initial_trees_proof=FriInitialTreeProof(
                [
                    EvalProof([alloc_element(cs, x) for x in elements], alloc_merkle_proof(cs, siblings))
                    for elements, siblings in round_.initial
                ]
            ),
            steps=[
                FriQueryStep([alloc_ext(cs, e) for e in evals], alloc_merkle_proof(cs, siblings))
                for evals, siblings in round_.steps
            ],
        )
        for round_ in native.query_rounds
    ]
    opening_proof = FriProof(
        commit_phase_merkle_caps=[alloc_cap(cs, cap) for cap in native.commit_phase_merkle_caps],
        query_round_proofs=query_round_proofs,
        final_poly=PolynomialCoeffs([alloc_ext(cs, c) for c in native.final_poly]),
        pow_witness=alloc_element(cs, native.pow_witness),
    )
    return Proof(
        wires_cap=alloc_cap(cs, native.wires_cap),
        plonk_zs_partial_products_cap=alloc_cap(cs, native.plonk_zs_partial_products_cap),
        quotient_polys_cap=alloc_cap(cs, native.quotient_polys_cap),
        openings=openings,
        opening_proof=opening_proof,
    )


def allocate_verifier_data(
    cs: ConstraintSystem, constant_sigmas_cap: List[List[int]], circuit_digest: int
) -> VerifierOnlyCircuitData:
    return VerifierOnlyCircuitData(
        constant_sigmas_cap=alloc_cap(cs, constant_sigmas_cap),
        circuit_digest=cs.secret_input(circuit_digest),
    )


def allocate_public_inputs(cs: ConstraintSystem, public_inputs: List[int]) -> List[GoldilocksVariable]:
    return [GoldilocksVariable(cs.public_input(x)) for x in public_inputs]


# --- Native Transcript ---


def native_fri_openings(native: NativeProof) -> List[List[List[int]]]:
    o = native.openings
    zeta_batch = (
        o["constants"] + o["plonk_sigmas"] + o["wires"] + o["plonk_zs"] + o["partial_products"] + o["quotient_polys"]
    )
    return [zeta_batch, list(o["plonk_zs_next"])]


def transcript_until_pow(
    common_data: CommonCircuitData,
    native: NativeProof,
    public_inputs: List[int],
    circuit_digest: int,
) -> Tuple[Dict[str, Any], Challenger]:
    num_challenges = common_data.config.num_challenges
    challenger = Challenger()
    challenges: Dict[str, Any] = {}

    challenger.observe_bn254_hash(circuit_digest)
    challenger.observe_hash(hash_no_pad(public_inputs))
    challenger.observe_cap(native.wires_cap)
    challenges["plonk_betas"] = challenger.get_n_challenges(num_challenges)
    challenges["plonk_gammas"] = challenger.get_n_challenges(num_challenges)
    challenger.observe_cap(native.plonk_zs_partial_products_cap)
    challenges["plonk_alphas"] = challenger.get_n_challenges(num_challenges)
    challenger.observe_cap(native.quotient_polys_cap)
    challenges["plonk_zeta"] = challenger.get_extension_challenge()
    for batch in native_fri_openings(native):
        challenger.observe_extension_elements(batch)

    challenges["fri_alpha"] = challenger.get_extension_challenge()
    challenges["fri_betas"] = []
    for cap in native.commit_phase_merkle_caps:
        challenger.observe_cap(cap)
        challenges["fri_betas"].append(challenger.get_extension_challenge())
    challenger.observe_extension_elements(native.final_poly)
    return challenges, challenger


def native_challenges(
    common_data: CommonCircuitData,
    native: NativeProof,
    public_inputs: List[int],
    circuit_digest: int,
) -> Dict[str, Any]:
    """Challenges of VerifierChip.get_challenges, computed with the native Challenger."""
    challenges, challenger = transcript_until_pow(common_data, native, public_inputs, circuit_digest)
    challenger.observe_element(native.pow_witness)
    challenges["fri_pow_response"] = challenger.get_challenge()
    challenges["fri_query_indices"] = challenger.get_n_challenges(
        common_data.fri_params.config.num_query_rounds
    )
    return challenges


def grind_pow_witness(
    common_data: CommonCircuitData,
    native: NativeProof,
    public_inputs: List[int],
    circuit_digest: int,
) -> int:
    _, challenger = transcript_until_pow(common_data, native, public_inputs, circuit_digest)
    return grind(challenger, common_data.fri_params.config.proof_of_work_bits)


# --- Challenge Values ---


def challenge_values(cs: ConstraintSystem, challenges) -> Dict[str, Any]:
    """Witness values of a ProofChallenges, keyed like native_challenges()."""
    fri = challenges.fri_challenges

    def ext(e: QuadraticExtensionVariable) -> List[int]:
        return [cs.value_of(e.c0.limb), cs.value_of(e.c1.limb)]

    return {
        "plonk_betas": [cs.value_of(x.limb) for x in challenges.plonk_betas],
        "plonk_gammas": [cs.value_of(x.limb) for x in challenges.plonk_gammas],
        "plonk_alphas": [cs.value_of(x.limb) for x in challenges.plonk_alphas],
        "plonk_zeta": ext(challenges.plonk_zeta),
        "fri_alpha": ext(fri.fri_alpha),
        "fri_betas": [ext(b) for b in fri.fri_betas],
        "fri_pow_response": cs.value_of(fri.fri_pow_response.limb),
        "fri_query_indices": [cs.value_of(x.limb) for x in fri.fri_query_indices],
    }


# --- Plonk-Consistent Proofs ---


def solve_quotient_openings(
    common_data: CommonCircuitData,
    native: NativeProof,
    public_inputs: List[int],
    circuit_digest: int,
    constant_sigmas_cap: List[List[int]],
) -> NativeProof:
    """Copy of native whose quotient openings satisfy the Plonk identity at zeta.

    Quotient openings are observed after zeta is drawn, so they can be solved
    for: chunk 0 of each challenge's quotient is vanishing / Z_H(zeta) and the
    other chunks are zero.
    """
    cs = ConstraintSystem()
    chip = VerifierChip(cs, common_data)
    proof = allocate_proof(cs, native)
    verifier_data = allocate_verifier_data(cs, constant_sigmas_cap, circuit_digest)
    public_inputs_hash = chip.get_public_inputs_hash(allocate_public_inputs(cs, public_inputs))
    challenges = chip.get_challenges(proof, public_inputs_hash, verifier_data)

    gl = chip.gl
    zeta_pow_deg = gl.exp_power_of_2_extension(challenges.plonk_zeta, common_data.degree_bits)
    vanishing = chip.plonk_chip.eval_vanishing_poly(challenges, proof.openings, zeta_pow_deg, public_inputs_hash)

    z_h_inv = ff2_inv(ff2(gl.value_of_extension(zeta_pow_deg)) - ff2([1, 0]))
    quotient: List[List[int]] = []
    for value in vanishing:
        quotient.append(ff2_coeffs(ff2_mul(ff2(gl.value_of_extension(value)), z_h_inv)))
        quotient += [[0, 0] for _ in range(common_data.quotient_degree_factor - 1)]

    solved = copy.deepcopy(native)
    solved.openings["quotient_polys"] = quotient
    return solved


class RecordingFriChip:
    """Stands in for FriChip and records what the verifier hands it."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []

    def verify_fri_proof(self, instance, openings, fri_challenges, initial_merkle_caps, fri_proof) -> None:
        self.calls.append(
            {
                "instance": instance,
                "openings": openings,
                "fri_challenges": fri_challenges,
                "initial_merkle_caps": initial_merkle_caps,
                "fri_proof": fri_proof,
            }
        )


@dataclass
class VerifierCase:
    """A proof with everything needed to verify it."""

    common_data: CommonCircuitData
    native: NativeProof
    public_inputs: List[int]
    circuit_digest: int
    constant_sigmas_cap: List[List[int]]


def plonk_consistent_case(seed: int = 0, wire_override: Optional[int] = None, **kwargs) -> VerifierCase:
    """Proof satisfying range checks, transcript and Plonk identity (not FRI).

    Args:
        seed: Randomness seed
        wire_override: Value forced into component c0 of wire 0 before solving
        **kwargs: Passed to small_common_data
    """
    common_data = small_common_data(**kwargs)
    native = random_native_proof(common_data, seed)
    if wire_override is not None:
        native.openings["wires"][0][0] = wire_override
    rng = np.random.default_rng(seed + 2000)
    public_inputs = random_elements(rng, common_data.num_public_inputs)
    circuit_digest = random_circuit_digest(seed)
    constant_sigmas_cap = _random_cap(rng, common_data.fri_params.config.cap_height)

    solved = solve_quotient_openings(common_data, native, public_inputs, circuit_digest, constant_sigmas_cap)
    # The pow response depends on the quotient openings, so grind last
    if common_data.fri_params.config.proof_of_work_bits:
        solved.pow_witness = grind_pow_witness(common_data, solved, public_inputs, circuit_digest)
    return VerifierCase(common_data, solved, public_inputs, circuit_digest, constant_sigmas_cap)
