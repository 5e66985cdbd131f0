"""Goldilocks field GF(p) and its quadratic extension GF(p^2).

Uses galois for base field arithmetic. The extension is GF(p)[X] / (X^2 - 7);
its elements are length-2 FF arrays [c0, c1] (ascending order) and the few
operations native code needs are written out below rather than building a
second galois field.
"""

from typing import List, Sequence

import galois

# --- Field Construction ---

GOLDILOCKS_PRIME = 0xFFFFFFFF00000001

FF = galois.GF(GOLDILOCKS_PRIME)
"""Base field GF(p) - Goldilocks prime field."""

EXTENSION_DEGREE = 2

# Non-residue W with X^2 = W in the extension
EXT_W = 7

# Multiplicative group generator, used as the LDE coset shift
SHIFT = FF(7)
SHIFT_INV = SHIFT ** -1

# --- Roots of Unity ---

# W[n] is a primitive 2^n-th root of unity, W[n]^2 == W[n-1]
W: List[int] = [
    1,
    18446744069414584320,
    281474976710656,
    16777216,
    4096,
    64,
    8,
    2198989700608,
    4404853092538523347,
    6434636298004421797,
    4255134452441852017,
    9113133275150391358,
    4355325209153869931,
    4308460244895131701,
    7126024226993609386,
    1873558160482552414,
    8167150655112846419,
    5718075921287398682,
    3411401055030829696,
    8982441859486529725,
    1971462654193939361,
    6553637399136210105,
    8124823329697072476,
    5936499541590631774,
    2709866199236980323,
    8877499657461974390,
    3757607247483852735,
    4969973714567017225,
    2147253751702802259,
    2530564950562219707,
    1905180297017055339,
    3524815499551269279,
    7277203076849721926,
]

# W_INV[n] = W[n]^(-1) mod p
W_INV: List[int] = [
    1,
    18446744069414584320,
    18446462594437873665,
    18446742969902956801,
    18442240469788262401,
    18158513693329981441,
    16140901060737761281,
    274873712576,
    9171943329124577373,
    5464760906092500108,
    4088309022520035137,
    6141391951880571024,
    386651765402340522,
    11575992183625933494,
    2841727033376697931,
    8892493137794983311,
    9071788333329385449,
    15139302138664925958,
    14996013474702747840,
    5708508531096855759,
    6451340039662992847,
    5102364342718059185,
    10420286214021487819,
    13945510089405579673,
    17538441494603169704,
    16784649996768716373,
    8974194941257008806,
    16194875529212099076,
    5506647088734794298,
    7731871677141058814,
    16558868196663692994,
    9896756522253134970,
    1644488454024429189,
]


def get_omega(n_bits: int) -> int:
    """Return primitive 2^n_bits-th root of unity."""
    return W[n_bits]


def get_omega_inv(n_bits: int) -> int:
    """Return inverse of primitive 2^n_bits-th root of unity."""
    return W_INV[n_bits]


def reverse_bits(x: int, n_bits: int) -> int:
    """Reverse the lowest n_bits bits of x."""
    result = 0
    for _ in range(n_bits):
        result = (result << 1) | (x & 1)
        x >>= 1
    return result


# --- Quadratic Extension ---


def ff2(coeffs: Sequence[int]) -> FF:
    """Construct an extension element from ascending-order coefficients [c0, c1]."""
    return FF([int(c) % GOLDILOCKS_PRIME for c in coeffs])


def ff2_coeffs(elem: FF) -> List[int]:
    """Extract ascending-order coefficients [c0, c1] from an extension element."""
    return [int(elem[0]), int(elem[1])]


def ff2_mul(a: FF, b: FF) -> FF:
    c0 = a[0] * b[0] + FF(EXT_W) * a[1] * b[1]
    c1 = a[0] * b[1] + a[1] * b[0]
    return ff2([c0, c1])


def ff2_scalar_mul(a: FF, s: int) -> FF:
    return a * FF(int(s) % GOLDILOCKS_PRIME)


def ff2_inv(a: FF) -> FF:
    """Inverse via the norm a0^2 - W*a1^2; the inverse of zero is taken as zero."""
    if int(a[0]) == 0 and int(a[1]) == 0:
        return ff2([0, 0])
    norm_inv = (a[0] * a[0] - FF(EXT_W) * a[1] * a[1]) ** -1
    return ff2([a[0] * norm_inv, -a[1] * norm_inv])


def ff2_exp_power_of_2(a: FF, k: int) -> FF:
    for _ in range(k):
        a = ff2_mul(a, a)
    return a


def ff2_eval_poly(coeffs: Sequence[FF], x: FF) -> FF:
    """Horner evaluation of a polynomial with extension coefficients at x."""
    acc = ff2([0, 0])
    for c in reversed(coeffs):
        acc = ff2_mul(acc, x) + c
    return acc
