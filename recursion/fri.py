"""FRI opening verification as constraints.

The verifier checks, for each query round:
1. Initial trees - every oracle leaf at the query index opens to its cap
2. Initial combination - the leaves and the claimed openings combine into the
   first codeword value, (reduced_evals - reduced_openings) / (x - point)
   summed over opening batches
3. Folding - each reduction round's coset contains the previous value, and
   interpolating the coset at beta gives the next value; the coset opens to
   the round's commit-phase cap
4. Final polynomial - the last value equals final_poly(x)

Proof-of-work is not checked here: it is constrained while the challenges are
derived (recursion.challenger).
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from circuit.api import ConstraintSystem, Operand
from gadgets.field import GOLDILOCKS_PRIME, SHIFT, get_omega, get_omega_inv, reverse_bits
from gadgets.goldilocks import GoldilocksApi, GoldilocksVariable, QuadraticExtensionVariable
from gadgets.merkle_verifier import MerkleCapVariable, MerkleVerifierChip
from gadgets.poseidon_chip import PoseidonGoldilocksChip
from recursion.common import NUM_ORACLES, ZS_PARTIAL_PRODUCTS, CommonCircuitData, FriParams
from recursion.proof import FriChallenges, FriInitialTreeProof, FriProof, FriQueryRound, OpeningSet, PolynomialCoeffs

# --- Openings ---


@dataclass
class FriOpeningBatch:
    values: List[QuadraticExtensionVariable]


@dataclass
class FriOpenings:
    """Opened values grouped by evaluation point, in instance batch order."""

    batches: List[FriOpeningBatch]


def to_openings(openings: OpeningSet) -> FriOpenings:
    """Regroup an OpeningSet into the batch at zeta and the batch at g * zeta."""
    zeta_batch = FriOpeningBatch(
        openings.constants
        + openings.plonk_sigmas
        + openings.wires
        + openings.plonk_zs
        + openings.partial_products
        + openings.quotient_polys
    )
    zeta_next_batch = FriOpeningBatch(list(openings.plonk_zs_next))
    return FriOpenings([zeta_batch, zeta_next_batch])


# --- Instance ---


@dataclass(frozen=True)
class FriOracleInfo:
    num_polys: int
    blinding: bool


@dataclass(frozen=True)
class FriPolynomialInfo:
    oracle_index: int
    polynomial_index: int


@dataclass
class FriBatchInfo:
    point: QuadraticExtensionVariable
    polynomials: List[FriPolynomialInfo]


@dataclass
class FriInstanceInfo:
    oracles: List[FriOracleInfo]
    batches: List[FriBatchInfo]


def _polys_of(oracle_index: int, count: int) -> List[FriPolynomialInfo]:
    return [FriPolynomialInfo(oracle_index, i) for i in range(count)]


def get_instance(
    common_data: CommonCircuitData,
    gl: GoldilocksApi,
    zeta: QuadraticExtensionVariable,
    degree_bits: int,
) -> FriInstanceInfo:
    """Which polynomials are opened at which points.

    Every committed polynomial is opened at zeta; the Z polynomials are also
    opened at g * zeta, g being the generator of the trace domain.
    """
    oracles = [
        FriOracleInfo(common_data.oracle_num_polys(i), common_data.oracle_blinding(i))
        for i in range(NUM_ORACLES)
    ]
    zeta_polys: List[FriPolynomialInfo] = []
    for i, oracle in enumerate(oracles):
        zeta_polys += _polys_of(i, oracle.num_polys)
    zeta_next_polys = _polys_of(ZS_PARTIAL_PRODUCTS, common_data.config.num_challenges)

    g = gl.constant(get_omega(degree_bits))
    zeta_next = gl.scalar_mul(zeta, g)

    return FriInstanceInfo(
        oracles=oracles,
        batches=[FriBatchInfo(zeta, zeta_polys), FriBatchInfo(zeta_next, zeta_next_polys)],
    )


# --- Chip ---


class FriChip:
    def __init__(
        self,
        cs: ConstraintSystem,
        fri_params: FriParams,
        poseidon_chip: Optional[PoseidonGoldilocksChip] = None,
    ):
        self.cs = cs
        self.gl = GoldilocksApi(cs)
        self.fri_params = fri_params
        self.poseidon_chip = poseidon_chip or PoseidonGoldilocksChip(cs)
        self.merkle_chip = MerkleVerifierChip(cs, self.poseidon_chip)

    def verify_fri_proof(
        self,
        instance: FriInstanceInfo,
        openings: FriOpenings,
        fri_challenges: FriChallenges,
        initial_merkle_caps: Sequence[MerkleCapVariable],
        fri_proof: FriProof,
    ) -> None:
        params = self.fri_params
        if len(initial_merkle_caps) != len(instance.oracles):
            raise ValueError(f"{len(initial_merkle_caps)} initial caps for {len(instance.oracles)} oracles")
        if len(openings.batches) != len(instance.batches):
            raise ValueError(f"{len(openings.batches)} opening batches for {len(instance.batches)} points")
        if len(fri_proof.commit_phase_merkle_caps) != len(params.reduction_arity_bits):
            raise ValueError(
                f"{len(fri_proof.commit_phase_merkle_caps)} commit-phase caps for "
                f"{len(params.reduction_arity_bits)} reduction rounds"
            )
        if len(fri_proof.query_round_proofs) != params.config.num_query_rounds:
            raise ValueError(
                f"{len(fri_proof.query_round_proofs)} query rounds, expected {params.config.num_query_rounds}"
            )
        if len(fri_challenges.fri_query_indices) != len(fri_proof.query_round_proofs):
            raise ValueError("one query index is needed per query round")

        reduced_openings = self.precompute_reduced_openings(openings, fri_challenges.fri_alpha)

        for i, (x_index, round_proof) in enumerate(
            zip(fri_challenges.fri_query_indices, fri_proof.query_round_proofs)
        ):
            with self.cs.scope(f"fri query round {i}"):
                self._verify_query_round(
                    instance,
                    fri_challenges,
                    reduced_openings,
                    initial_merkle_caps,
                    fri_proof,
                    x_index,
                    round_proof,
                )

    def precompute_reduced_openings(
        self, openings: FriOpenings, alpha: QuadraticExtensionVariable
    ) -> List[QuadraticExtensionVariable]:
        """Per batch, sum_i values[i] * alpha^i; shared by all query rounds."""
        return [self.gl.reduce_with_powers(batch.values, alpha) for batch in openings.batches]

    # --- Query Round ---

    def _verify_query_round(
        self,
        instance: FriInstanceInfo,
        fri_challenges: FriChallenges,
        reduced_openings: List[QuadraticExtensionVariable],
        initial_merkle_caps: Sequence[MerkleCapVariable],
        fri_proof: FriProof,
        x_index: GoldilocksVariable,
        round_proof: FriQueryRound,
    ) -> None:
        gl = self.gl
        params = self.fri_params
        lde_bits = params.lde_bits
        cap_height = params.config.cap_height

        # Query challenges are canonical, so 64 bits hold them; keep the LDE index bits
        x_index_bits = self.cs.to_binary(x_index.limb, 64)[:lde_bits]
        cap_index_bits = x_index_bits[lde_bits - cap_height:]

        with self.cs.scope("initial trees"):
            self._verify_initial_proof(x_index_bits, cap_index_bits, round_proof.initial_trees_proof, initial_merkle_caps)

        # LDE values are stored bit-reversed: leaf i sits at SHIFT * omega^reverse_bits(i)
        phi = gl.exp_from_bits_const_base(get_omega(lde_bits), list(reversed(x_index_bits)))
        subgroup_x = gl.mul(gl.constant(int(SHIFT)), phi)

        old_eval = self.fri_combine_initial(
            instance, round_proof.initial_trees_proof, fri_challenges.fri_alpha, subgroup_x, reduced_openings
        )

        remaining_bits = x_index_bits
        for i, arity_bits in enumerate(params.reduction_arity_bits):
            with self.cs.scope(f"reduction round {i}"):
                step = round_proof.steps[i]
                coset_index_bits, remaining_bits = remaining_bits[:arity_bits], remaining_bits[arity_bits:]

                new_eval = gl.random_access_extension(coset_index_bits, step.evals)
                gl.assert_is_equal_extension(new_eval, old_eval)

                old_eval = self.compute_evaluation(
                    subgroup_x, coset_index_bits, arity_bits, step.evals, fri_challenges.fri_betas[i]
                )

                leaf = [c for e in step.evals for c in e.components()]
                self.merkle_chip.verify_merkle_proof_to_cap_with_cap_index(
                    leaf, remaining_bits, cap_index_bits, fri_proof.commit_phase_merkle_caps[i], step.merkle_proof
                )

                subgroup_x = gl.exp_power_of_2(subgroup_x, arity_bits)

        with self.cs.scope("final polynomial"):
            final_eval = self.eval_final_poly(fri_proof.final_poly, subgroup_x)
            gl.assert_is_equal_extension(final_eval, old_eval)

    def _verify_initial_proof(
        self,
        x_index_bits: Sequence[Operand],
        cap_index_bits: Sequence[Operand],
        proof: FriInitialTreeProof,
        initial_merkle_caps: Sequence[MerkleCapVariable],
    ) -> None:
        for i, (evals_proof, cap) in enumerate(zip(proof.evals_proofs, initial_merkle_caps)):
            with self.cs.scope(f"oracle {i}"):
                self.merkle_chip.verify_merkle_proof_to_cap_with_cap_index(
                    evals_proof.elements, x_index_bits, cap_index_bits, cap, evals_proof.merkle_proof
                )

    def fri_combine_initial(
        self,
        instance: FriInstanceInfo,
        proof: FriInitialTreeProof,
        alpha: QuadraticExtensionVariable,
        subgroup_x: GoldilocksVariable,
        reduced_openings: Sequence[QuadraticExtensionVariable],
    ) -> QuadraticExtensionVariable:
        gl = self.gl
        subgroup_x_ext = gl.to_extension(subgroup_x)
        total = gl.zero_extension()
        for batch, reduced_opening in zip(instance.batches, reduced_openings):
            evals = [proof.unsalted_eval(p.oracle_index, p.polynomial_index) for p in batch.polynomials]
            reduced_evals = gl.reduce_base_with_powers(evals, alpha)
            numerator = gl.sub_extension(reduced_evals, reduced_opening)
            denominator = gl.sub_extension(subgroup_x_ext, batch.point)
            # Earlier batches are shifted past the alpha powers used by this one
            total = gl.mul_extension(total, gl.exp_u64_extension(alpha, len(evals)))
            total = gl.add_extension(gl.div_extension(numerator, denominator), total)
        return total

    # --- Folding ---

    def compute_evaluation(
        self,
        x: GoldilocksVariable,
        x_index_within_coset_bits: Sequence[Operand],
        arity_bits: int,
        evals: Sequence[QuadraticExtensionVariable],
        beta: QuadraticExtensionVariable,
    ) -> QuadraticExtensionVariable:
        """Value at beta of the polynomial interpolating the coset containing x."""
        arity = 1 << arity_bits
        # Coset evaluations are stored bit-reversed
        permuted_evals = [evals[reverse_bits(i, arity_bits)] for i in range(arity)]
        start = self.gl.exp_from_bits_const_base(
            get_omega_inv(arity_bits), list(reversed(x_index_within_coset_bits))
        )
        coset_start = self.gl.mul(start, x)
        return self.interpolate_coset(coset_start, arity_bits, permuted_evals, beta)

    def interpolate_coset(
        self,
        coset_start: GoldilocksVariable,
        arity_bits: int,
        values: Sequence[QuadraticExtensionVariable],
        point: QuadraticExtensionVariable,
    ) -> QuadraticExtensionVariable:
        """Barycentric interpolation over {coset_start * g^i}, evaluated at point.

        With s = coset_start, n = 2^arity_bits and Z(X) = X^n - s^n:
        L_i(point) = Z(point) * x_i / (n * s^n * (point - x_i)).
        """
        gl = self.gl
        n = 1 << arity_bits
        g = get_omega(arity_bits)

        shift_pow_n = gl.exp_power_of_2(coset_start, arity_bits)
        point_pow_n = gl.exp_power_of_2_extension(point, arity_bits)
        vanishing = gl.sub_extension(point_pow_n, gl.to_extension(shift_pow_n))

        acc = gl.zero_extension()
        for i, value in enumerate(values):
            x_i = gl.mul(coset_start, gl.constant(pow(g, i, GOLDILOCKS_PRIME)))
            term = gl.div_extension(gl.scalar_mul(value, x_i), gl.sub_extension(point, gl.to_extension(x_i)))
            acc = gl.add_extension(acc, term)

        scale = gl.scalar_mul(vanishing, gl.inverse(gl.mul(gl.constant(n), shift_pow_n)))
        return gl.mul_extension(acc, scale)

    def eval_final_poly(self, poly: PolynomialCoeffs, x: GoldilocksVariable) -> QuadraticExtensionVariable:
        gl = self.gl
        acc = gl.zero_extension()
        for coeff in reversed(poly.coeffs):
            acc = gl.add_extension(gl.scalar_mul(acc, x), coeff)
        return acc
