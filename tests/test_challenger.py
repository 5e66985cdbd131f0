"""Tests for the Fiat-Shamir transcript, native and in-circuit."""

import copy

import pytest

from circuit.api import ConstraintSystem
from gadgets.poseidon_chip import PoseidonBN254Chip, PoseidonGoldilocksChip
from recursion.challenger import ChallengerChip
from recursion.proof import PolynomialCoeffs
from recursion.transcript import Challenger, grind, pow_response_is_valid
from recursion.verifier import VerifierChip
from tests.fixtures import (
    P,
    alloc_cap,
    alloc_element,
    alloc_ext,
    allocate_proof,
    allocate_public_inputs,
    allocate_verifier_data,
    challenge_values,
    native_challenges,
    plonk_consistent_case,
    random_circuit_digest,
    random_native_proof,
    small_common_data,
    transcript_until_pow,
)


def make_chip(cs: ConstraintSystem) -> ChallengerChip:
    return ChallengerChip(cs, PoseidonGoldilocksChip(cs), PoseidonBN254Chip(cs))


def circuit_challenges(case_common, native, public_inputs, circuit_digest, constant_sigmas_cap):
    cs = ConstraintSystem()
    chip = VerifierChip(cs, case_common)
    proof = allocate_proof(cs, native)
    verifier_data = allocate_verifier_data(cs, constant_sigmas_cap, circuit_digest)
    public_inputs_hash = chip.get_public_inputs_hash(allocate_public_inputs(cs, public_inputs))
    challenges = chip.get_challenges(proof, public_inputs_hash, verifier_data)
    return cs, challenges


class TestNativeChallenger:
    def test_same_observations_same_challenges(self) -> None:
        a, b = Challenger(), Challenger()
        for c in (a, b):
            c.observe_elements([1, 2, 3])
        assert a.get_n_challenges(3) == b.get_n_challenges(3)

    def test_order_matters(self) -> None:
        a, b = Challenger(), Challenger()
        a.observe_elements([1, 2])
        b.observe_elements([2, 1])
        assert a.get_challenge() != b.get_challenge()

    def test_output_buffer_pops_from_end(self) -> None:
        c = Challenger()
        c.observe_element(5)
        first = c.get_challenge()
        assert first == c.sponge_state[7]
        assert c.get_challenge() == c.sponge_state[6]

    def test_observe_clears_output_buffer(self) -> None:
        c = Challenger()
        c.observe_element(1)
        c.get_challenge()
        assert c.output_buffer
        c.observe_element(2)
        assert c.output_buffer == []

    def test_absorbs_at_rate(self) -> None:
        c = Challenger()
        c.observe_elements(range(7))
        assert len(c.input_buffer) == 7
        c.observe_element(7)
        assert c.input_buffer == []
        assert len(c.output_buffer) == 8

    def test_copy_is_independent(self) -> None:
        c = Challenger()
        c.observe_element(3)
        other = c.copy()
        other.observe_element(4)
        assert c.input_buffer == [3]

    @pytest.mark.parametrize("response,bits,ok", [(0, 8, True), ((1 << 56) - 1, 8, True), (1 << 56, 8, False)])
    def test_pow_response_is_valid(self, response: int, bits: int, ok: bool) -> None:
        assert pow_response_is_valid(response, bits) == ok

    def test_grind(self) -> None:
        c = Challenger()
        c.observe_elements([9, 9, 9])
        witness = grind(c, 4)
        trial = c.copy()
        trial.observe_element(witness)
        assert pow_response_is_valid(trial.get_challenge(), 4)
        assert c.input_buffer == [9, 9, 9]

    def test_grind_limit(self) -> None:
        """No 63-bit response is likely within a handful of tries."""
        with pytest.raises(ValueError):
            grind(Challenger(), 63, limit=4)


class TestChallengerChip:
    """The circuit challenger reproduces the native one."""

    def test_elements_and_challenges(self, cs: ConstraintSystem) -> None:
        native = Challenger()
        chip = make_chip(cs)
        inputs = list(range(100, 111))
        native.observe_elements(inputs)
        chip.observe_elements([alloc_element(cs, x) for x in inputs])

        expected = native.get_n_challenges(10)
        got = [cs.value_of(x.limb) for x in chip.get_n_challenges(10)]
        assert got == expected
        assert cs.is_satisfied()

    def test_caps_hashes_and_extensions(self, cs: ConstraintSystem) -> None:
        native = Challenger()
        chip = make_chip(cs)
        cap = [[1, 2, 3, 4], [5, 6, 7, 8]]
        native.observe_cap(cap)
        chip.observe_cap(alloc_cap(cs, cap))
        native.observe_extension_element([11, 12])
        chip.observe_extension_element(alloc_ext(cs, [11, 12]))

        assert [cs.value_of(x.limb) for x in chip.get_extension_challenge().components()] == (
            native.get_extension_challenge()
        )
        assert [cs.value_of(x.limb) for x in chip.get_hash()] == native.get_hash()

    def test_bn254_hash(self, cs: ConstraintSystem) -> None:
        digest = random_circuit_digest(5)
        native = Challenger()
        chip = make_chip(cs)
        native.observe_bn254_hash(digest)
        chip.observe_bn254_hash(cs.secret_input(digest))
        assert cs.value_of(chip.get_challenge().limb) == native.get_challenge()
        assert cs.is_satisfied()

    def test_observe_clears_output_buffer(self, cs: ConstraintSystem) -> None:
        chip = make_chip(cs)
        chip.observe_element(alloc_element(cs, 1))
        chip.get_challenge()
        chip.observe_element(alloc_element(cs, 2))
        assert chip.output_buffer == []

    def test_final_poly_too_long(self, cs: ConstraintSystem) -> None:
        common_data = small_common_data()
        chip = make_chip(cs)
        coeffs = [alloc_ext(cs, [i, 0]) for i in range(9)]
        with pytest.raises(ValueError):
            chip.get_fri_challenges(
                [], PolynomialCoeffs(coeffs), alloc_element(cs, 0), 3, common_data.fri_params.config
            )


class TestProofChallenges:
    """VerifierChip.get_challenges follows the transcript order."""

    def test_matches_native(self) -> None:
        common_data = small_common_data(num_query_rounds=2, reduction_arity_bits=(1, 1))
        native = random_native_proof(common_data, seed=3)
        public_inputs = [1, 2, 3]
        digest = random_circuit_digest(3)
        cs, challenges = circuit_challenges(common_data, native, public_inputs, digest, [[0, 0, 0, 0]])

        assert challenge_values(cs, challenges) == native_challenges(common_data, native, public_inputs, digest)
        assert len(challenges.plonk_betas) == 2
        assert len(challenges.plonk_gammas) == 2
        assert len(challenges.plonk_alphas) == 2
        assert len(challenges.fri_challenges.fri_betas) == 2
        assert len(challenges.fri_challenges.fri_query_indices) == 2
        assert cs.is_satisfied()

    def test_quotient_cap_only_affects_later_challenges(self) -> None:
        common_data = small_common_data()
        native = random_native_proof(common_data, seed=4)
        digest = random_circuit_digest(4)
        before = native_challenges(common_data, native, [1, 2, 3], digest)

        changed = copy.deepcopy(native)
        changed.quotient_polys_cap[0][0] = (changed.quotient_polys_cap[0][0] + 1) % P
        after = native_challenges(common_data, changed, [1, 2, 3], digest)

        for key in ("plonk_betas", "plonk_gammas", "plonk_alphas"):
            assert after[key] == before[key]
        assert after["plonk_zeta"] != before["plonk_zeta"]
        assert after["fri_alpha"] != before["fri_alpha"]

    def test_quotient_cap_only_affects_later_challenges_in_circuit(self) -> None:
        common_data = small_common_data()
        native = random_native_proof(common_data, seed=4)
        digest = random_circuit_digest(4)
        changed = copy.deepcopy(native)
        changed.quotient_polys_cap[0][0] = (changed.quotient_polys_cap[0][0] + 1) % P

        cs_before, challenges_before = circuit_challenges(common_data, native, [1, 2, 3], digest, [[0, 0, 0, 0]])
        cs_after, challenges_after = circuit_challenges(common_data, changed, [1, 2, 3], digest, [[0, 0, 0, 0]])
        before = challenge_values(cs_before, challenges_before)
        after = challenge_values(cs_after, challenges_after)

        for key in ("plonk_betas", "plonk_gammas", "plonk_alphas"):
            assert after[key] == before[key]
        assert after["plonk_zeta"] != before["plonk_zeta"]
        assert after["fri_alpha"] != before["fri_alpha"]
        assert after["fri_betas"] != before["fri_betas"]
        assert cs_before.is_satisfied()
        assert cs_after.is_satisfied()

    def test_public_inputs_affect_betas(self) -> None:
        common_data = small_common_data()
        native = random_native_proof(common_data, seed=5)
        digest = random_circuit_digest(5)
        a = native_challenges(common_data, native, [1, 2, 3], digest)
        b = native_challenges(common_data, native, [1, 2, 4], digest)
        assert a["plonk_betas"] != b["plonk_betas"]


class TestProofOfWork:
    def test_ground_witness_accepted(self) -> None:
        case = plonk_consistent_case(seed=6, proof_of_work_bits=6)
        cs, challenges = circuit_challenges(
            case.common_data, case.native, case.public_inputs, case.circuit_digest, case.constant_sigmas_cap
        )
        assert pow_response_is_valid(cs.value_of(challenges.fri_challenges.fri_pow_response.limb), 6)
        assert cs.is_satisfied()

    def test_bad_witness_rejected(self) -> None:
        common_data = small_common_data(proof_of_work_bits=6)
        native = random_native_proof(common_data, seed=7)
        public_inputs = [4, 5, 6]
        digest = random_circuit_digest(7)

        _, challenger = transcript_until_pow(common_data, native, public_inputs, digest)
        witness = 0
        while True:
            trial = challenger.copy()
            trial.observe_element(witness)
            if not pow_response_is_valid(trial.get_challenge(), 6):
                break
            witness += 1
        native.pow_witness = witness

        cs, _ = circuit_challenges(common_data, native, public_inputs, digest, [[0, 0, 0, 0]])
        assert not cs.is_satisfied()
        assert {f.scope for f in cs.failures} == {"proof of work"}
