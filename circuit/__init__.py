"""Circuit - Outer constraint system the verifier is expressed in."""

from circuit.api import (
    BN254_SCALAR_MODULUS,
    ConstraintSystem,
    Failure,
    Operand,
    UnsatisfiedConstraintError,
    Variable,
)

__all__ = [
    "BN254_SCALAR_MODULUS",
    "ConstraintSystem",
    "Failure",
    "Operand",
    "UnsatisfiedConstraintError",
    "Variable",
]
