"""In-circuit Poseidon over Goldilocks and the outer-digest splitter.

PoseidonGoldilocksChip mirrors gadgets.poseidon round for round, so that a
circuit hash and a native hash of the same elements agree.
PoseidonBN254Chip only carries what the verifier needs from the outer hash:
splitting an outer-field digest into Goldilocks elements for the transcript.
"""

from typing import List, Sequence

from circuit.api import ConstraintSystem, Operand
from gadgets.goldilocks import GoldilocksApi, GoldilocksHashOut, GoldilocksVariable
from gadgets.poseidon import (
    ALL_ROUND_CONSTANTS,
    HALF_N_FULL_ROUNDS,
    MDS_MATRIX,
    MDS_MAX_BITS,
    N_PARTIAL_ROUNDS,
    NUM_HASH_OUT_ELTS,
    SPONGE_RATE,
    SPONGE_WIDTH,
)

# Outer digests are decomposed into 254 bits and regrouped in 56-bit chunks,
# each of which is a canonical Goldilocks element
BN254_DIGEST_BITS = 254
BN254_CHUNK_BITS = 56


class PoseidonGoldilocksChip:
    """Poseidon permutation and sponge hashes as constraints."""

    def __init__(self, cs: ConstraintSystem):
        self.cs = cs
        self.gl = GoldilocksApi(cs)

    # --- Permutation ---

    def poseidon(self, input_state: Sequence[GoldilocksVariable]) -> List[GoldilocksVariable]:
        if len(input_state) != SPONGE_WIDTH:
            raise ValueError(f"state must have {SPONGE_WIDTH} elements, got {len(input_state)}")

        state = list(input_state)
        round_ctr = 0

        for _ in range(HALF_N_FULL_ROUNDS):
            state = self._constant_layer(state, round_ctr)
            state = [self._sbox(s) for s in state]
            state = self._mds_layer(state)
            round_ctr += 1

        for _ in range(N_PARTIAL_ROUNDS):
            state = self._constant_layer(state, round_ctr)
            state[0] = self._sbox(state[0])
            state = self._mds_layer(state)
            round_ctr += 1

        for _ in range(HALF_N_FULL_ROUNDS):
            state = self._constant_layer(state, round_ctr)
            state = [self._sbox(s) for s in state]
            state = self._mds_layer(state)
            round_ctr += 1

        return state

    def _constant_layer(self, state: List[GoldilocksVariable], round_ctr: int) -> List[GoldilocksVariable]:
        offset = round_ctr * SPONGE_WIDTH
        return [self.gl.add(s, self.gl.constant(ALL_ROUND_CONSTANTS[offset + i])) for i, s in enumerate(state)]

    def _sbox(self, x: GoldilocksVariable) -> GoldilocksVariable:
        x2 = self.gl.mul(x, x)
        x3 = self.gl.mul(x, x2)
        x4 = self.gl.mul(x2, x2)
        return self.gl.mul(x3, x4)

    def _mds_layer(self, state: List[GoldilocksVariable]) -> List[GoldilocksVariable]:
        cs = self.cs
        result = []
        for r in range(SPONGE_WIDTH):
            # Small constant coefficients: accumulate natively, reduce once per row
            acc = cs.add(*[cs.mul(s.limb, int(MDS_MATRIX[r][c])) for c, s in enumerate(state)])
            result.append(self.gl.reduce_with_max_bits(acc, MDS_MAX_BITS))
        return result

    # --- Sponge Hashes ---

    def hash_n_to_m_no_pad(
        self, inputs: Sequence[GoldilocksVariable], num_outputs: int
    ) -> List[GoldilocksVariable]:
        state = [self.gl.zero()] * SPONGE_WIDTH
        for start in range(0, len(inputs), SPONGE_RATE):
            for j, x in enumerate(inputs[start:start + SPONGE_RATE]):
                state[j] = x
            state = self.poseidon(state)

        outputs: List[GoldilocksVariable] = []
        while True:
            for x in state[:SPONGE_RATE]:
                outputs.append(x)
                if len(outputs) == num_outputs:
                    return outputs
            state = self.poseidon(state)

    def hash_no_pad(self, inputs: Sequence[GoldilocksVariable]) -> GoldilocksHashOut:
        return self.hash_n_to_m_no_pad(inputs, NUM_HASH_OUT_ELTS)

    def hash_or_noop(self, inputs: Sequence[GoldilocksVariable]) -> GoldilocksHashOut:
        if len(inputs) <= NUM_HASH_OUT_ELTS:
            return list(inputs) + [self.gl.zero()] * (NUM_HASH_OUT_ELTS - len(inputs))
        return self.hash_no_pad(inputs)

    def two_to_one(self, left: GoldilocksHashOut, right: GoldilocksHashOut) -> GoldilocksHashOut:
        return self.hash_no_pad(list(left) + list(right))


class PoseidonBN254Chip:
    """Outer-field digest handling needed by the transcript."""

    def __init__(self, cs: ConstraintSystem):
        self.cs = cs

    def to_vec(self, digest: Operand) -> List[GoldilocksVariable]:
        """Split an outer digest into 56-bit little-endian chunks (5 elements)."""
        bits = self.cs.to_binary(digest, BN254_DIGEST_BITS)
        return [
            GoldilocksVariable(self.cs.from_binary(bits[start:start + BN254_CHUNK_BITS]))
            for start in range(0, BN254_DIGEST_BITS, BN254_CHUNK_BITS)
        ]


def bn254_digest_to_elements(digest: int) -> List[int]:
    """Native counterpart of PoseidonBN254Chip.to_vec."""
    mask = (1 << BN254_CHUNK_BITS) - 1
    return [(digest >> start) & mask for start in range(0, BN254_DIGEST_BITS, BN254_CHUNK_BITS)]
