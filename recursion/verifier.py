"""Recursive verification of a Goldilocks Plonk/FRI proof.

VerifierChip turns the inner verifier into constraints of the outer system.
verify() runs its phases in a fixed order:
1. Shape validation - sizes must match CommonCircuitData (ValueError otherwise)
2. Range checks - openings, query leaves and evaluations, final polynomial and
   pow witness must be canonical Goldilocks elements
3. Public input hash - Poseidon hash_no_pad over the public inputs
4. Challenges - Fiat-Shamir transcript replay (see get_challenges for the order)
5. Plonk identity at zeta
6. FRI opening proof against the four initial caps

Nothing is returned: a bad proof leaves unsatisfied constraints in the
ConstraintSystem, reported by cs.is_satisfied() / cs.check().
"""

from typing import Optional, Sequence

from circuit.api import ConstraintSystem
from gadgets.goldilocks import GoldilocksApi, GoldilocksHashOut, GoldilocksVariable
from gadgets.poseidon_chip import PoseidonBN254Chip, PoseidonGoldilocksChip
from recursion.challenger import ChallengerChip
from recursion.common import NUM_ORACLES, CommonCircuitData, VerifierOnlyCircuitData
from recursion.fri import FriChip, get_instance, to_openings
from recursion.plonk import PlonkChip
from recursion.proof import Proof, ProofChallenges, validate_proof_shape


class VerifierChip:
    """Verifier for proofs of one inner circuit.

    Args:
        cs: Outer constraint system receiving the constraints
        common_data: Shape and parameters of the inner circuit
        plonk_chip: Plonk checker (built from common_data when omitted)
        fri_chip: FRI checker (built from common_data when omitted)
        range_check_all_oracles: Also range-check the initial-tree leaves of
            the wires, zs/partial-products and quotient oracles, not only the
            constants/sigmas oracle
    """

    def __init__(
        self,
        cs: ConstraintSystem,
        common_data: CommonCircuitData,
        plonk_chip: Optional[PlonkChip] = None,
        fri_chip: Optional[FriChip] = None,
        range_check_all_oracles: bool = False,
    ):
        self.cs = cs
        self.common_data = common_data
        self.gl = GoldilocksApi(cs)
        self.poseidon_chip = PoseidonGoldilocksChip(cs)
        self.poseidon_bn254_chip = PoseidonBN254Chip(cs)
        self.plonk_chip = plonk_chip or PlonkChip(cs, common_data)
        self.fri_chip = fri_chip or FriChip(cs, common_data.fri_params, self.poseidon_chip)
        self.range_check_all_oracles = range_check_all_oracles

    def get_public_inputs_hash(self, public_inputs: Sequence[GoldilocksVariable]) -> GoldilocksHashOut:
        return self.poseidon_chip.hash_no_pad(public_inputs)

    def get_challenges(
        self,
        proof: Proof,
        public_inputs_hash: GoldilocksHashOut,
        verifier_data: VerifierOnlyCircuitData,
    ) -> ProofChallenges:
        """Replay the transcript on a fresh challenger.

        Order: circuit digest, public inputs hash, wires cap -> betas, gammas,
        zs/partial-products cap -> alphas, quotient cap -> zeta, openings,
        then the FRI challenges.
        """
        config = self.common_data.config
        num_challenges = config.num_challenges
        challenger = ChallengerChip(self.cs, self.poseidon_chip, self.poseidon_bn254_chip)

        challenger.observe_bn254_hash(verifier_data.circuit_digest)
        challenger.observe_hash(public_inputs_hash)

        challenger.observe_cap(proof.wires_cap)
        plonk_betas = challenger.get_n_challenges(num_challenges)
        plonk_gammas = challenger.get_n_challenges(num_challenges)

        challenger.observe_cap(proof.plonk_zs_partial_products_cap)
        plonk_alphas = challenger.get_n_challenges(num_challenges)

        challenger.observe_cap(proof.quotient_polys_cap)
        plonk_zeta = challenger.get_extension_challenge()

        challenger.observe_openings(to_openings(proof.openings))

        fri_challenges = challenger.get_fri_challenges(
            proof.opening_proof.commit_phase_merkle_caps,
            proof.opening_proof.final_poly,
            proof.opening_proof.pow_witness,
            self.common_data.degree_bits,
            config.fri_config,
        )

        return ProofChallenges(
            plonk_betas=plonk_betas,
            plonk_gammas=plonk_gammas,
            plonk_alphas=plonk_alphas,
            plonk_zeta=plonk_zeta,
            fri_challenges=fri_challenges,
        )

    def range_check_proof(self, proof: Proof) -> None:
        """Constrain prover-supplied Goldilocks values to [0, p).

        Initial-tree leaves of the other oracles only feed Poseidon and the
        FRI combination, whose reductions bound them below 2^64 and use them
        modulo p; range_check_all_oracles covers them as well.
        """
        gl = self.gl

        for value in proof.openings.all_values():
            gl.range_check_qe(value)

        num_checked_oracles = NUM_ORACLES if self.range_check_all_oracles else 1
        fri_proof = proof.opening_proof
        for round_proof in fri_proof.query_round_proofs:
            for evals_proof in round_proof.initial_trees_proof.evals_proofs[:num_checked_oracles]:
                for element in evals_proof.elements:
                    gl.range_check(element)
            for step in round_proof.steps:
                for value in step.evals:
                    gl.range_check_qe(value)

        for coeff in fri_proof.final_poly.coeffs:
            gl.range_check_qe(coeff)

        gl.range_check(fri_proof.pow_witness)

    def verify(
        self,
        proof: Proof,
        public_inputs: Sequence[GoldilocksVariable],
        verifier_data: VerifierOnlyCircuitData,
    ) -> None:
        common = self.common_data
        cs = self.cs

        errors = validate_proof_shape(proof, common)
        if len(public_inputs) != common.num_public_inputs:
            errors.append(f"public_inputs: expected {common.num_public_inputs}, got {len(public_inputs)}")
        cap_len = 1 << common.fri_params.config.cap_height
        if len(verifier_data.constant_sigmas_cap) != cap_len:
            errors.append(
                f"constant_sigmas_cap length: expected {cap_len}, got {len(verifier_data.constant_sigmas_cap)}"
            )
        if errors:
            raise ValueError("Invalid proof shape:\n  " + "\n  ".join(errors))

        print("Range checking proof")
        with cs.scope("range check"):
            self.range_check_proof(proof)

        print("Hashing public inputs")
        with cs.scope("public inputs hash"):
            public_inputs_hash = self.get_public_inputs_hash(public_inputs)

        print("Deriving challenges")
        with cs.scope("challenges"):
            challenges = self.get_challenges(proof, public_inputs_hash, verifier_data)

        print("Verifying Plonk identity")
        with cs.scope("plonk"):
            self.plonk_chip.verify(challenges, proof.openings, public_inputs_hash)

        print("Verifying FRI proof")
        initial_merkle_caps = [
            verifier_data.constant_sigmas_cap,
            proof.wires_cap,
            proof.plonk_zs_partial_products_cap,
            proof.quotient_polys_cap,
        ]
        with cs.scope("fri"):
            self.fri_chip.verify_fri_proof(
                get_instance(common, self.gl, challenges.plonk_zeta, common.degree_bits),
                to_openings(proof.openings),
                challenges.fri_challenges,
                initial_merkle_caps,
                proof.opening_proof,
            )
