"""Witness-carrying constraint system over the BN254 scalar field.

Circuits in this project are built against an eager builder: every variable
carries its assigned value and every assertion is evaluated the moment it is
emitted. A failed assertion is recorded together with the scope path active at
the time instead of being raised, so a circuit always builds completely and
the caller decides what an unsatisfied witness means (see `is_satisfied` and
`check`).

Constants are plain Python ints. Operations whose operands are all constants
fold to ints and emit nothing; anything touching a Variable allocates a new
Variable.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Sequence, Union

# --- Constants ---

BN254_SCALAR_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Failures printed by is_satisfied() before the summary line
MAX_REPORTED_FAILURES = 10


class UnsatisfiedConstraintError(Exception):
    """Raised by ConstraintSystem.check() when the witness violates a constraint."""


# --- Variables ---


@dataclass(frozen=True)
class Variable:
    """Wire of the constraint system together with its assigned value."""

    index: int
    value: int


Operand = Union[Variable, int]


@dataclass(frozen=True)
class Failure:
    """A violated constraint and where it was emitted."""

    kind: str
    scope: str
    detail: str

    def __str__(self) -> str:
        where = f"[{self.scope}] " if self.scope else ""
        return f"{where}{self.kind}: {self.detail}"


# --- Constraint System ---


class ConstraintSystem:
    """Eager constraint builder over a prime modulus.

    Attributes:
        modulus: Native field modulus (BN254 scalar field by default)
        num_variables: Variables allocated so far (inputs, hints and intermediates)
        num_public_inputs: Variables allocated through public_input()
        num_constraints: Multiplicative constraints and assertions emitted so far
        failures: Violated constraints in emission order
    """

    def __init__(self, modulus: int = BN254_SCALAR_MODULUS):
        self.modulus = modulus
        self.num_variables = 0
        self.num_public_inputs = 0
        self.num_constraints = 0
        self.failures: List[Failure] = []
        self._scopes: List[str] = []

    # --- Allocation ---

    def _allocate(self, value: int) -> Variable:
        var = Variable(self.num_variables, value % self.modulus)
        self.num_variables += 1
        return var

    def public_input(self, value: int) -> Variable:
        self.num_public_inputs += 1
        return self._allocate(value)

    def secret_input(self, value: int) -> Variable:
        return self._allocate(value)

    def hint(
        self,
        fn: Callable[..., Sequence[int]],
        inputs: Sequence[Operand],
        n_outputs: int,
    ) -> List[Variable]:
        """Allocate outputs computed natively from the values of `inputs`.

        Hint outputs are unconstrained: the caller must constrain them.
        """
        outputs = list(fn(*[self.value_of(x) for x in inputs]))
        if len(outputs) != n_outputs:
            raise ValueError(
                f"hint {getattr(fn, '__name__', fn)} returned {len(outputs)} values, expected {n_outputs}"
            )
        return [self._allocate(v) for v in outputs]

    def value_of(self, x: Operand) -> int:
        if isinstance(x, Variable):
            return x.value
        return x % self.modulus

    # --- Arithmetic ---

    def add(self, *terms: Operand) -> Operand:
        total = sum(self.value_of(t) for t in terms) % self.modulus
        if all(isinstance(t, int) for t in terms):
            return total
        return self._allocate(total)

    def sub(self, a: Operand, b: Operand) -> Operand:
        diff = (self.value_of(a) - self.value_of(b)) % self.modulus
        if isinstance(a, int) and isinstance(b, int):
            return diff
        return self._allocate(diff)

    def neg(self, a: Operand) -> Operand:
        return self.sub(0, a)

    def mul(self, *factors: Operand) -> Operand:
        product = 1
        for f in factors:
            product = product * self.value_of(f) % self.modulus
        n_vars = sum(isinstance(f, Variable) for f in factors)
        if n_vars == 0:
            return product
        self.num_constraints += n_vars - 1
        return self._allocate(product)

    def select(self, cond: Operand, if_true: Operand, if_false: Operand) -> Operand:
        """Return `if_true` when cond is 1 and `if_false` when cond is 0."""
        if isinstance(cond, Variable):
            self.assert_is_boolean(cond)
        return self.add(if_false, self.mul(cond, self.sub(if_true, if_false)))

    def is_zero(self, x: Operand) -> Operand:
        """Return 1 if x == 0 else 0."""
        if isinstance(x, int):
            return int(x % self.modulus == 0)
        (inv,) = self.hint(self._inverse_or_zero, [x], 1)
        out = self.sub(1, self.mul(x, inv))
        self.assert_is_equal(self.mul(x, out), 0, "is_zero: ")
        return out

    def _inverse_or_zero(self, v: int) -> List[int]:
        return [pow(v, -1, self.modulus) if v else 0]

    def to_binary(self, x: Operand, n_bits: int) -> List[Operand]:
        """Little-endian decomposition of x into n_bits constrained bits."""
        if isinstance(x, int):
            v = x % self.modulus
            if v >> n_bits:
                raise ValueError(f"constant {v} does not fit in {n_bits} bits")
            return [(v >> i) & 1 for i in range(n_bits)]
        bits = self.hint(lambda v: [(v >> i) & 1 for i in range(n_bits)], [x], n_bits)
        self.assert_binary_decomposition(bits, x)
        return bits

    def assert_binary_decomposition(self, bits: Sequence[Operand], x: Operand) -> None:
        """Constrain `bits` to be the little-endian binary form of x.

        When the bits are wide enough to encode the modulus they are also
        bounded by modulus - 1, otherwise x and x + modulus would both decompose.
        """
        for b in bits:
            self.assert_is_boolean(b)
        if len(bits) >= self.modulus.bit_length():
            self.assert_bits_at_most(bits, self.modulus - 1)
        self.assert_is_equal(self.from_binary(bits), x, f"to_binary({len(bits)}): ")

    def assert_bits_at_most(self, bits: Sequence[Operand], bound: int) -> None:
        """Constrain the number formed by boolean little-endian bits to be <= bound.

        Scans from the most significant bit, tracking whether the bits so far
        equal the bound's prefix. A 1 where the bound has a 0 is only allowed
        once that prefix is already smaller.
        """
        label = f"bits <= {bound}: "
        prefix_equal: Operand = 1
        for i in reversed(range(len(bits))):
            b = bits[i]
            if (bound >> i) & 1:
                prefix_equal = self.mul(prefix_equal, b)
            else:
                # b * (1 - prefix_equal - b) == 0
                self.assert_is_equal(self.mul(b, self.sub(self.sub(1, prefix_equal), b)), 0, label)

    def from_binary(self, bits: Sequence[Operand]) -> Operand:
        if not bits:
            return 0
        return self.add(*[self.mul(b, 1 << i) for i, b in enumerate(bits)])

    # --- Assertions ---

    def _fail(self, kind: str, detail: str) -> None:
        self.failures.append(Failure(kind, "/".join(self._scopes), detail))

    def assert_is_equal(self, a: Operand, b: Operand, label: str = "") -> None:
        va, vb = self.value_of(a), self.value_of(b)
        self.num_constraints += 1
        if va != vb:
            self._fail("assert_is_equal", f"{label}{va} != {vb}")

    def assert_is_boolean(self, a: Operand) -> None:
        v = self.value_of(a)
        self.num_constraints += 1
        if v not in (0, 1):
            self._fail("assert_is_boolean", f"{v} is not a bit")

    def range_check(self, a: Operand, n_bits: int) -> None:
        """Constrain 0 <= a < 2^n_bits."""
        v = self.value_of(a)
        self.num_constraints += 1
        if v >> n_bits:
            self._fail("range_check", f"{v} does not fit in {n_bits} bits")

    def assert_is_less_or_equal(self, a: Operand, bound: int) -> None:
        v = self.value_of(a)
        self.num_constraints += 1
        if v > bound:
            self._fail("assert_is_less_or_equal", f"{v} > {bound}")

    # --- Scopes and Satisfiability ---

    @contextmanager
    def scope(self, name: str) -> Iterator[None]:
        """Label every constraint emitted inside the block with `name`."""
        self._scopes.append(name)
        try:
            yield
        finally:
            self._scopes.pop()

    def is_satisfied(self) -> bool:
        if not self.failures:
            return True
        for failure in self.failures[:MAX_REPORTED_FAILURES]:
            print(f"ERROR: {failure}")
        if len(self.failures) > MAX_REPORTED_FAILURES:
            print(f"ERROR: ... {len(self.failures) - MAX_REPORTED_FAILURES} more unsatisfied constraints")
        return False

    def check(self) -> None:
        if self.failures:
            raise UnsatisfiedConstraintError(
                f"{len(self.failures)} unsatisfied constraint(s), first: {self.failures[0]}"
            )
