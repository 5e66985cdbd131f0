"""In-circuit Goldilocks arithmetic over a larger native modulus.

A Goldilocks element is carried in one native variable (a "limb"). Additions
and products are computed exactly in the native field, which is far larger
than any intermediate value used here, and brought back to [0, p) by
`reduce_with_max_bits`: a hint supplies quotient and remainder, the quotient is
bounded by the known size of the input and the remainder is range-checked to
be canonical.

Values coming from outside (proof openings, witnesses) are not canonical until
`range_check` has been applied to them. Two different native values that are
congruent mod p are different witnesses, which is why the verifier runs its
range-check pass before using any opening.
"""

from dataclasses import dataclass
from typing import List, Sequence

from circuit.api import ConstraintSystem, Operand
from gadgets.field import EXT_W, GOLDILOCKS_PRIME, ff2, ff2_coeffs, ff2_inv

# p - 1 = (2^32 - 1) * 2^32: a canonical element with an all-ones high limb has a zero low limb
_LIMB_BITS = 32
_LIMB_MAX = (1 << _LIMB_BITS) - 1

# Bit bounds of unreduced intermediates, for canonical operands
ADD_MAX_BITS = 65
MUL_MAX_BITS = 128
MUL_ADD_MAX_BITS = 129
EXT_MUL_C0_MAX_BITS = 131
EXT_MUL_C1_MAX_BITS = 129


# --- Variables ---


@dataclass(frozen=True)
class GoldilocksVariable:
    """Goldilocks element held in a single native limb."""

    limb: Operand


@dataclass(frozen=True)
class QuadraticExtensionVariable:
    """Element c0 + c1*X of GF(p)[X] / (X^2 - 7)."""

    c0: GoldilocksVariable
    c1: GoldilocksVariable

    def components(self) -> List[GoldilocksVariable]:
        return [self.c0, self.c1]


# 4-element Poseidon digest
GoldilocksHashOut = List[GoldilocksVariable]


# --- Hints ---


def _divmod_hint(x: int) -> List[int]:
    return list(divmod(x, GOLDILOCKS_PRIME))


def _split_limbs_hint(x: int) -> List[int]:
    return [x & _LIMB_MAX, x >> _LIMB_BITS]


def _inverse_hint(x: int) -> List[int]:
    x %= GOLDILOCKS_PRIME
    return [pow(x, -1, GOLDILOCKS_PRIME) if x else 0]


def _inverse_extension_hint(c0: int, c1: int) -> List[int]:
    return ff2_coeffs(ff2_inv(ff2([c0, c1])))


# --- Chip ---


class GoldilocksApi:
    """Goldilocks and quadratic-extension arithmetic on a ConstraintSystem."""

    def __init__(self, cs: ConstraintSystem):
        self.cs = cs

    # --- Constants ---

    @staticmethod
    def constant(x: int) -> GoldilocksVariable:
        return GoldilocksVariable(x % GOLDILOCKS_PRIME)

    def zero(self) -> GoldilocksVariable:
        return self.constant(0)

    def one(self) -> GoldilocksVariable:
        return self.constant(1)

    def constant_extension(self, c0: int, c1: int = 0) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(self.constant(c0), self.constant(c1))

    def zero_extension(self) -> QuadraticExtensionVariable:
        return self.constant_extension(0)

    def one_extension(self) -> QuadraticExtensionVariable:
        return self.constant_extension(1)

    def to_extension(self, a: GoldilocksVariable) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(a, self.zero())

    def value_of(self, a: GoldilocksVariable) -> int:
        return self.cs.value_of(a.limb)

    # --- Reduction and Range Checks ---

    def reduce_with_max_bits(self, x: Operand, max_bits: int) -> GoldilocksVariable:
        """Reduce a native value known to be below 2^max_bits into [0, p)."""
        cs = self.cs
        if isinstance(x, int):
            return self.constant(x)
        quotient, remainder = cs.hint(_divmod_hint, [x], 2)
        # p > 2^63, so x < 2^max_bits bounds the quotient below 2^(max_bits - 63)
        cs.range_check(quotient, max(max_bits - 63, 1))
        reduced = GoldilocksVariable(remainder)
        self.range_check(reduced)
        cs.assert_is_equal(x, cs.add(cs.mul(quotient, GOLDILOCKS_PRIME), remainder), "reduce: ")
        return reduced

    def reduce(self, x: GoldilocksVariable) -> GoldilocksVariable:
        """Canonical representative of a value below 2^64."""
        return self.reduce_with_max_bits(x.limb, 64)

    def range_check(self, x: GoldilocksVariable) -> None:
        """Constrain x to the canonical range [0, p)."""
        cs = self.cs
        if isinstance(x.limb, int):
            cs.assert_is_less_or_equal(x.limb, GOLDILOCKS_PRIME - 1)
            return
        lo, hi = cs.hint(_split_limbs_hint, [x.limb], 2)
        cs.range_check(lo, _LIMB_BITS)
        cs.range_check(hi, _LIMB_BITS)
        cs.assert_is_equal(x.limb, cs.add(lo, cs.mul(hi, 1 << _LIMB_BITS)), "limbs: ")
        hi_is_max = cs.is_zero(cs.sub(hi, _LIMB_MAX))
        cs.assert_is_equal(cs.mul(hi_is_max, lo), 0, "non-canonical: ")

    def range_check_qe(self, x: QuadraticExtensionVariable) -> None:
        self.range_check(x.c0)
        self.range_check(x.c1)

    # --- Base Field ---

    def add(self, a: GoldilocksVariable, b: GoldilocksVariable) -> GoldilocksVariable:
        return self.reduce_with_max_bits(self.cs.add(a.limb, b.limb), ADD_MAX_BITS)

    def sub(self, a: GoldilocksVariable, b: GoldilocksVariable) -> GoldilocksVariable:
        # a + p - b stays non-negative for canonical b
        cs = self.cs
        return self.reduce_with_max_bits(cs.sub(cs.add(a.limb, GOLDILOCKS_PRIME), b.limb), ADD_MAX_BITS)

    def neg(self, a: GoldilocksVariable) -> GoldilocksVariable:
        return self.sub(self.zero(), a)

    def mul(self, a: GoldilocksVariable, b: GoldilocksVariable) -> GoldilocksVariable:
        return self.reduce_with_max_bits(self.cs.mul(a.limb, b.limb), MUL_MAX_BITS)

    def mul_add(
        self, a: GoldilocksVariable, b: GoldilocksVariable, c: GoldilocksVariable
    ) -> GoldilocksVariable:
        """a * b + c with a single reduction."""
        cs = self.cs
        return self.reduce_with_max_bits(cs.add(cs.mul(a.limb, b.limb), c.limb), MUL_ADD_MAX_BITS)

    def inverse(self, a: GoldilocksVariable) -> GoldilocksVariable:
        """Inverse of a non-zero element; unsatisfiable for zero."""
        (inv_limb,) = self.cs.hint(_inverse_hint, [a.limb], 1)
        inv = GoldilocksVariable(inv_limb)
        self.range_check(inv)
        self.assert_is_equal(self.mul(a, inv), self.one())
        return inv

    def exp_power_of_2(self, a: GoldilocksVariable, k: int) -> GoldilocksVariable:
        for _ in range(k):
            a = self.mul(a, a)
        return a

    def exp_from_bits_const_base(self, base: int, bits: Sequence[Operand]) -> GoldilocksVariable:
        """base^(sum bits[i] * 2^i) for a constant base and little-endian bits."""
        result = self.one()
        for i, bit in enumerate(bits):
            power = pow(base, 1 << i, GOLDILOCKS_PRIME)
            result = self.mul(result, GoldilocksVariable(self.cs.select(bit, power, 1)))
        return result

    def select(self, cond: Operand, if_true: GoldilocksVariable, if_false: GoldilocksVariable) -> GoldilocksVariable:
        return GoldilocksVariable(self.cs.select(cond, if_true.limb, if_false.limb))

    def assert_is_equal(self, a: GoldilocksVariable, b: GoldilocksVariable) -> None:
        self.cs.assert_is_equal(a.limb, b.limb)

    # --- Quadratic Extension ---

    def add_extension(
        self, a: QuadraticExtensionVariable, b: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(self.add(a.c0, b.c0), self.add(a.c1, b.c1))

    def sub_extension(
        self, a: QuadraticExtensionVariable, b: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(self.sub(a.c0, b.c0), self.sub(a.c1, b.c1))

    def neg_extension(self, a: QuadraticExtensionVariable) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(self.neg(a.c0), self.neg(a.c1))

    def mul_extension(
        self, a: QuadraticExtensionVariable, b: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        # (a0 + a1 X)(b0 + b1 X) = a0 b0 + 7 a1 b1 + (a0 b1 + a1 b0) X
        cs = self.cs
        c0 = cs.add(cs.mul(a.c0.limb, b.c0.limb), cs.mul(a.c1.limb, b.c1.limb, EXT_W))
        c1 = cs.add(cs.mul(a.c0.limb, b.c1.limb), cs.mul(a.c1.limb, b.c0.limb))
        return QuadraticExtensionVariable(
            self.reduce_with_max_bits(c0, EXT_MUL_C0_MAX_BITS),
            self.reduce_with_max_bits(c1, EXT_MUL_C1_MAX_BITS),
        )

    def mul_add_extension(
        self,
        a: QuadraticExtensionVariable,
        b: QuadraticExtensionVariable,
        c: QuadraticExtensionVariable,
    ) -> QuadraticExtensionVariable:
        return self.add_extension(self.mul_extension(a, b), c)

    def scalar_mul(self, a: QuadraticExtensionVariable, s: GoldilocksVariable) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(self.mul(a.c0, s), self.mul(a.c1, s))

    def square_extension(self, a: QuadraticExtensionVariable) -> QuadraticExtensionVariable:
        return self.mul_extension(a, a)

    def exp_power_of_2_extension(self, a: QuadraticExtensionVariable, k: int) -> QuadraticExtensionVariable:
        for _ in range(k):
            a = self.square_extension(a)
        return a

    def exp_u64_extension(self, a: QuadraticExtensionVariable, exponent: int) -> QuadraticExtensionVariable:
        """a^exponent for a constant exponent, square-and-multiply."""
        result = self.one_extension()
        for bit in bin(exponent)[2:]:
            result = self.square_extension(result)
            if bit == "1":
                result = self.mul_extension(result, a)
        return result

    def inverse_extension(self, a: QuadraticExtensionVariable) -> QuadraticExtensionVariable:
        """Inverse of a non-zero extension element; unsatisfiable for zero."""
        c0, c1 = self.cs.hint(_inverse_extension_hint, [a.c0.limb, a.c1.limb], 2)
        inv = QuadraticExtensionVariable(GoldilocksVariable(c0), GoldilocksVariable(c1))
        self.range_check_qe(inv)
        self.assert_is_equal_extension(self.mul_extension(a, inv), self.one_extension())
        return inv

    def div_extension(
        self, a: QuadraticExtensionVariable, b: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        return self.mul_extension(a, self.inverse_extension(b))

    def reduce_with_powers(
        self, terms: Sequence[QuadraticExtensionVariable], scalar: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        """sum_i terms[i] * scalar^i, by Horner's rule."""
        acc = self.zero_extension()
        for term in reversed(terms):
            acc = self.mul_add_extension(acc, scalar, term)
        return acc

    def reduce_base_with_powers(
        self, terms: Sequence[GoldilocksVariable], scalar: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        return self.reduce_with_powers([self.to_extension(t) for t in terms], scalar)

    def select_extension(
        self, cond: Operand, if_true: QuadraticExtensionVariable, if_false: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        return QuadraticExtensionVariable(
            self.select(cond, if_true.c0, if_false.c0),
            self.select(cond, if_true.c1, if_false.c1),
        )

    def random_access_extension(
        self, index_bits: Sequence[Operand], values: Sequence[QuadraticExtensionVariable]
    ) -> QuadraticExtensionVariable:
        """values[index] for a little-endian bit decomposition of index."""
        if len(values) != 1 << len(index_bits):
            raise ValueError(f"random access over {len(values)} values with {len(index_bits)} index bits")
        layer = list(values)
        for bit in index_bits:
            layer = [self.select_extension(bit, layer[2 * i + 1], layer[2 * i]) for i in range(len(layer) // 2)]
        return layer[0]

    def assert_is_equal_extension(
        self, a: QuadraticExtensionVariable, b: QuadraticExtensionVariable
    ) -> None:
        self.assert_is_equal(a.c0, b.c0)
        self.assert_is_equal(a.c1, b.c1)

    def value_of_extension(self, a: QuadraticExtensionVariable) -> List[int]:
        return [self.value_of(a.c0), self.value_of(a.c1)]
