"""In-circuit Fiat-Shamir challenger.

The challenger is a duplex sponge over the Goldilocks Poseidon chip. Observed
elements are buffered and absorbed (overwrite mode, SPONGE_RATE at a time);
challenges are popped from the end of the buffered permutation output.
Observing anything invalidates the output buffer, so every challenge depends
on everything observed before it.

recursion.transcript.Challenger is the native twin of this class.
"""

from typing import List, Sequence

from circuit.api import ConstraintSystem, Operand
from gadgets.goldilocks import (
    GoldilocksApi,
    GoldilocksHashOut,
    GoldilocksVariable,
    QuadraticExtensionVariable,
)
from gadgets.merkle_verifier import MerkleCapVariable
from gadgets.poseidon import SPONGE_RATE, SPONGE_WIDTH
from gadgets.poseidon_chip import PoseidonBN254Chip, PoseidonGoldilocksChip
from recursion.common import FriConfig
from recursion.fri import FriOpenings
from recursion.proof import FriChallenges, PolynomialCoeffs


class ChallengerChip:
    def __init__(
        self,
        cs: ConstraintSystem,
        poseidon_chip: PoseidonGoldilocksChip,
        poseidon_bn254_chip: PoseidonBN254Chip,
    ):
        self.cs = cs
        self.gl = GoldilocksApi(cs)
        self.poseidon_chip = poseidon_chip
        self.poseidon_bn254_chip = poseidon_bn254_chip
        self.sponge_state: List[GoldilocksVariable] = [self.gl.zero()] * SPONGE_WIDTH
        self.input_buffer: List[GoldilocksVariable] = []
        self.output_buffer: List[GoldilocksVariable] = []

    # --- Observation ---

    def observe_element(self, element: GoldilocksVariable) -> None:
        self.output_buffer = []
        self.input_buffer.append(element)
        if len(self.input_buffer) == SPONGE_RATE:
            self._duplexing()

    def observe_elements(self, elements: Sequence[GoldilocksVariable]) -> None:
        for element in elements:
            self.observe_element(element)

    def observe_hash(self, digest: GoldilocksHashOut) -> None:
        self.observe_elements(digest)

    def observe_cap(self, cap: MerkleCapVariable) -> None:
        for digest in cap:
            self.observe_hash(digest)

    def observe_bn254_hash(self, digest: Operand) -> None:
        self.observe_elements(self.poseidon_bn254_chip.to_vec(digest))

    def observe_extension_element(self, element: QuadraticExtensionVariable) -> None:
        self.observe_elements(element.components())

    def observe_extension_elements(self, elements: Sequence[QuadraticExtensionVariable]) -> None:
        for element in elements:
            self.observe_extension_element(element)

    def observe_openings(self, openings: FriOpenings) -> None:
        for batch in openings.batches:
            self.observe_extension_elements(batch.values)

    # --- Challenges ---

    def get_challenge(self) -> GoldilocksVariable:
        if self.input_buffer or not self.output_buffer:
            self._duplexing()
        return self.output_buffer.pop()

    def get_n_challenges(self, n: int) -> List[GoldilocksVariable]:
        return [self.get_challenge() for _ in range(n)]

    def get_extension_challenge(self) -> QuadraticExtensionVariable:
        c0 = self.get_challenge()
        c1 = self.get_challenge()
        return QuadraticExtensionVariable(c0, c1)

    def get_hash(self) -> GoldilocksHashOut:
        return self.get_n_challenges(4)

    def get_fri_challenges(
        self,
        commit_phase_merkle_caps: Sequence[MerkleCapVariable],
        final_poly: PolynomialCoeffs,
        pow_witness: GoldilocksVariable,
        degree_bits: int,
        fri_config: FriConfig,
    ) -> FriChallenges:
        """Derive the FRI challenges and constrain the proof-of-work response.

        Query indices are returned as raw challenges; the FRI checker keeps the
        low bits it needs.
        """
        if len(final_poly.coeffs) > 1 << degree_bits:
            raise ValueError(
                f"final polynomial has {len(final_poly.coeffs)} coefficients, degree bound is {1 << degree_bits}"
            )
        fri_alpha = self.get_extension_challenge()

        fri_betas = []
        for cap in commit_phase_merkle_caps:
            self.observe_cap(cap)
            fri_betas.append(self.get_extension_challenge())

        self.observe_extension_elements(final_poly.coeffs)

        self.observe_element(pow_witness)
        fri_pow_response = self.get_challenge()
        with self.cs.scope("proof of work"):
            # Leading proof_of_work_bits bits of the 64-bit response must be zero
            self.cs.assert_is_less_or_equal(
                fri_pow_response.limb, (1 << (64 - fri_config.proof_of_work_bits)) - 1
            )

        fri_query_indices = self.get_n_challenges(fri_config.num_query_rounds)

        return FriChallenges(
            fri_alpha=fri_alpha,
            fri_betas=fri_betas,
            fri_pow_response=fri_pow_response,
            fri_query_indices=fri_query_indices,
        )

    def _duplexing(self) -> None:
        if len(self.input_buffer) > SPONGE_RATE:
            raise ValueError(f"input buffer holds {len(self.input_buffer)} elements, rate is {SPONGE_RATE}")
        for i, element in enumerate(self.input_buffer):
            self.sponge_state[i] = self.gl.reduce(element)
        self.input_buffer = []
        self.sponge_state = self.poseidon_chip.poseidon(self.sponge_state)
        self.output_buffer = list(self.sponge_state[:SPONGE_RATE])
