"""
Native Fiat-Shamir challenger over the Goldilocks Poseidon sponge.

Mirrors recursion.challenger.ChallengerChip element for element: a prover (or
a test) running this class over the same observations obtains the same
challenges the circuit derives. It also provides proof-of-work grinding.
"""

from typing import List, Optional, Sequence

from gadgets.field import GOLDILOCKS_PRIME
from gadgets.poseidon import SPONGE_RATE, SPONGE_WIDTH, poseidon_permutation
from gadgets.poseidon_chip import bn254_digest_to_elements


class Challenger:
    """
    Duplex sponge transcript.

    Attributes:
        sponge_state: Full Poseidon state (SPONGE_WIDTH elements)
        input_buffer: Observed elements not yet absorbed
        output_buffer: Squeezed elements not yet handed out (popped from the end)
    """

    def __init__(self):
        self.sponge_state = [0] * SPONGE_WIDTH
        self.input_buffer: List[int] = []
        self.output_buffer: List[int] = []

    def copy(self) -> "Challenger":
        other = Challenger()
        other.sponge_state = list(self.sponge_state)
        other.input_buffer = list(self.input_buffer)
        other.output_buffer = list(self.output_buffer)
        return other

    # --- Observation ---

    def observe_element(self, element: int) -> None:
        # Any buffered output is stale once new input arrives
        self.output_buffer = []
        self.input_buffer.append(element)
        if len(self.input_buffer) == SPONGE_RATE:
            self._duplexing()

    def observe_elements(self, elements: Sequence[int]) -> None:
        for element in elements:
            self.observe_element(element)

    def observe_hash(self, digest: Sequence[int]) -> None:
        self.observe_elements(digest)

    def observe_cap(self, cap: Sequence[Sequence[int]]) -> None:
        for digest in cap:
            self.observe_hash(digest)

    def observe_bn254_hash(self, digest: int) -> None:
        self.observe_elements(bn254_digest_to_elements(digest))

    def observe_extension_element(self, element: Sequence[int]) -> None:
        self.observe_elements(element)

    def observe_extension_elements(self, elements: Sequence[Sequence[int]]) -> None:
        for element in elements:
            self.observe_extension_element(element)

    # --- Challenges ---

    def get_challenge(self) -> int:
        if self.input_buffer or not self.output_buffer:
            self._duplexing()
        return self.output_buffer.pop()

    def get_n_challenges(self, n: int) -> List[int]:
        return [self.get_challenge() for _ in range(n)]

    def get_extension_challenge(self) -> List[int]:
        return [self.get_challenge(), self.get_challenge()]

    def get_hash(self) -> List[int]:
        return self.get_n_challenges(4)

    def _duplexing(self) -> None:
        """Overwrite the rate with buffered input, permute, refill the output buffer."""
        if len(self.input_buffer) > SPONGE_RATE:
            raise ValueError(f"input buffer holds {len(self.input_buffer)} elements, rate is {SPONGE_RATE}")
        for i, element in enumerate(self.input_buffer):
            self.sponge_state[i] = element % GOLDILOCKS_PRIME
        self.input_buffer = []
        self.sponge_state = poseidon_permutation(self.sponge_state)
        self.output_buffer = list(self.sponge_state[:SPONGE_RATE])


# --- Proof of Work ---


def pow_response_is_valid(response: int, proof_of_work_bits: int) -> bool:
    """True if the 64-bit response has at least proof_of_work_bits leading zeros."""
    return response <= (1 << (64 - proof_of_work_bits)) - 1


def grind(challenger: Challenger, proof_of_work_bits: int, start: int = 0, limit: Optional[int] = None) -> int:
    """
    Find a pow witness for the current transcript state.

    The challenger itself is left untouched; each candidate is tried on a copy.

    Args:
        challenger: Transcript positioned right before the witness is observed
        proof_of_work_bits: Required leading zero bits of the response
        start: First candidate witness
        limit: Give up (ValueError) after this many candidates

    Returns:
        The first witness >= start whose response satisfies the bound
    """
    candidate = start
    while limit is None or candidate < start + limit:
        trial = challenger.copy()
        trial.observe_element(candidate)
        if pow_response_is_valid(trial.get_challenge(), proof_of_work_bits):
            return candidate
        candidate += 1
    raise ValueError(f"no pow witness for {proof_of_work_bits} bits in [{start}, {start + limit})")
