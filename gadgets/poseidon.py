"""
Poseidon hash over the Goldilocks field.

Width-12 permutation with 4 + 4 full rounds around 22 partial rounds, x^7
S-box and a circulant-plus-diagonal MDS layer. The sponge functions below
work in overwrite mode (absorbed elements replace the rate portion of the
state) and are what both the transcript and Merkle trees are built from.

Round constants are expanded deterministically from SHAKE-256 over a fixed
seed by rejection sampling into [0, p). Native and in-circuit code share the
tables defined here.
"""

import hashlib
from typing import List, Sequence

import numpy as np

from gadgets.field import GOLDILOCKS_PRIME

# --- Parameters ---

SPONGE_WIDTH = 12
SPONGE_RATE = 8
NUM_HASH_OUT_ELTS = 4

HALF_N_FULL_ROUNDS = 4
N_FULL_ROUNDS_TOTAL = 2 * HALF_N_FULL_ROUNDS
N_PARTIAL_ROUNDS = 22
N_ROUNDS = N_FULL_ROUNDS_TOTAL + N_PARTIAL_ROUNDS

MDS_MATRIX_CIRC = [17, 15, 41, 16, 2, 28, 13, 13, 39, 18, 34, 20]
MDS_MATRIX_DIAG = [8, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0, 0]

# Dense MDS matrix: M[r][c] = circ[(c - r) mod 12] + diag[r] * (r == c)
MDS_MATRIX = np.array(
    [
        [MDS_MATRIX_CIRC[(c - r) % SPONGE_WIDTH] + (MDS_MATRIX_DIAG[r] if r == c else 0) for c in range(SPONGE_WIDTH)]
        for r in range(SPONGE_WIDTH)
    ],
    dtype=object,
)

# Every row sums to 264 < 2^9, so an MDS output over canonical inputs fits in 73 bits
MDS_MAX_BITS = 64 + int(max(sum(row) for row in MDS_MATRIX)).bit_length()

_ROUND_CONSTANT_SEED = b"goldilocks-poseidon-w12-round-constants"


def _generate_round_constants(n: int) -> List[int]:
    constants: List[int] = []
    counter = 0
    while len(constants) < n:
        digest = hashlib.shake_256(_ROUND_CONSTANT_SEED + counter.to_bytes(8, "little")).digest(8)
        counter += 1
        candidate = int.from_bytes(digest, "little")
        if candidate < GOLDILOCKS_PRIME:
            constants.append(candidate)
    return constants


ALL_ROUND_CONSTANTS: List[int] = _generate_round_constants(N_ROUNDS * SPONGE_WIDTH)


# --- Permutation ---


def _sbox(x: int) -> int:
    """x^7, computed as x^3 * x^4."""
    x2 = (x * x) % GOLDILOCKS_PRIME
    x3 = (x * x2) % GOLDILOCKS_PRIME
    x4 = (x2 * x2) % GOLDILOCKS_PRIME
    return (x3 * x4) % GOLDILOCKS_PRIME


def _constant_layer(state: List[int], round_ctr: int) -> List[int]:
    offset = round_ctr * SPONGE_WIDTH
    return [(s + ALL_ROUND_CONSTANTS[offset + i]) % GOLDILOCKS_PRIME for i, s in enumerate(state)]


def _mds_layer(state: List[int]) -> List[int]:
    product = MDS_MATRIX.dot(np.array(state, dtype=object))
    return [int(v) % GOLDILOCKS_PRIME for v in product]


def poseidon_permutation(input_state: Sequence[int]) -> List[int]:
    """
    Apply the Poseidon permutation to a full sponge state.

    Args:
        input_state: SPONGE_WIDTH field elements (as integers)

    Returns:
        SPONGE_WIDTH field elements after the permutation
    """
    if len(input_state) != SPONGE_WIDTH:
        raise ValueError(f"state must have {SPONGE_WIDTH} elements, got {len(input_state)}")

    state = [int(x) % GOLDILOCKS_PRIME for x in input_state]
    round_ctr = 0

    for _ in range(HALF_N_FULL_ROUNDS):
        state = _constant_layer(state, round_ctr)
        state = [_sbox(s) for s in state]
        state = _mds_layer(state)
        round_ctr += 1

    for _ in range(N_PARTIAL_ROUNDS):
        state = _constant_layer(state, round_ctr)
        state[0] = _sbox(state[0])
        state = _mds_layer(state)
        round_ctr += 1

    for _ in range(HALF_N_FULL_ROUNDS):
        state = _constant_layer(state, round_ctr)
        state = [_sbox(s) for s in state]
        state = _mds_layer(state)
        round_ctr += 1

    return state


# --- Sponge Hashes ---


def hash_n_to_m_no_pad(inputs: Sequence[int], num_outputs: int) -> List[int]:
    """
    Overwrite-mode sponge without padding.

    Args:
        inputs: Field elements to absorb, SPONGE_RATE at a time
        num_outputs: Number of field elements to squeeze

    Returns:
        num_outputs field elements
    """
    state = [0] * SPONGE_WIDTH
    for start in range(0, len(inputs), SPONGE_RATE):
        for j, x in enumerate(inputs[start:start + SPONGE_RATE]):
            state[j] = int(x) % GOLDILOCKS_PRIME
        state = poseidon_permutation(state)

    outputs: List[int] = []
    while True:
        for x in state[:SPONGE_RATE]:
            outputs.append(x)
            if len(outputs) == num_outputs:
                return outputs
        state = poseidon_permutation(state)


def hash_no_pad(inputs: Sequence[int]) -> List[int]:
    return hash_n_to_m_no_pad(inputs, NUM_HASH_OUT_ELTS)


def hash_or_noop(inputs: Sequence[int]) -> List[int]:
    """Zero-padded inputs when they fit in a digest, hash_no_pad otherwise."""
    if len(inputs) <= NUM_HASH_OUT_ELTS:
        return [int(x) % GOLDILOCKS_PRIME for x in inputs] + [0] * (NUM_HASH_OUT_ELTS - len(inputs))
    return hash_no_pad(inputs)


def two_to_one(left: Sequence[int], right: Sequence[int]) -> List[int]:
    """Compress two digests into one (Merkle internal node)."""
    return hash_no_pad(list(left) + list(right))
