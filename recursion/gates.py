"""Gates whose constraints the Plonk checker evaluates at zeta.

Each gate reads the opened wire and constant values of a single row and
returns its constraint polynomials evaluated there; the checker multiplies
them by the gate's selector filter and sums them slot-wise.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

from gadgets.goldilocks import GoldilocksApi, GoldilocksHashOut, QuadraticExtensionVariable

# --- Evaluation Context ---


@dataclass
class EvaluationVars:
    local_constants: List[QuadraticExtensionVariable]
    local_wires: List[QuadraticExtensionVariable]
    public_inputs_hash: GoldilocksHashOut

    def remove_prefix(self, num_selectors: int) -> "EvaluationVars":
        """Drop the selector polynomials from the front of local_constants."""
        return EvaluationVars(
            self.local_constants[num_selectors:], self.local_wires, self.public_inputs_hash
        )


# --- Gates ---


class Gate(ABC):
    @abstractmethod
    def id(self) -> str:
        ...

    def num_constants(self) -> int:
        return 0

    @abstractmethod
    def num_constraints(self) -> int:
        ...

    @abstractmethod
    def eval_unfiltered(
        self, gl: GoldilocksApi, vars: EvaluationVars
    ) -> List[QuadraticExtensionVariable]:
        ...

    def eval_filtered(
        self, gl: GoldilocksApi, vars: EvaluationVars, selector_filter: QuadraticExtensionVariable
    ) -> List[QuadraticExtensionVariable]:
        return [gl.mul_extension(c, selector_filter) for c in self.eval_unfiltered(gl, vars)]

    def __repr__(self) -> str:
        return self.id()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Gate) and self.id() == other.id()

    def __hash__(self) -> int:
        return hash(self.id())


class NoopGate(Gate):
    def id(self) -> str:
        return "NoopGate"

    def num_constraints(self) -> int:
        return 0

    def eval_unfiltered(self, gl, vars):
        return []


class ConstantGate(Gate):
    """Pins wire i to constant i."""

    def __init__(self, num_consts: int):
        self.num_consts = num_consts

    def id(self) -> str:
        return f"ConstantGate {{ num_consts: {self.num_consts} }}"

    def num_constants(self) -> int:
        return self.num_consts

    def num_constraints(self) -> int:
        return self.num_consts

    def eval_unfiltered(self, gl, vars):
        return [
            gl.sub_extension(vars.local_constants[i], vars.local_wires[i])
            for i in range(self.num_consts)
        ]


class PublicInputGate(Gate):
    """Exposes the public-input hash on wires 0..3."""

    def id(self) -> str:
        return "PublicInputGate"

    def num_constraints(self) -> int:
        return len(self.wires_public_inputs_hash())

    @staticmethod
    def wires_public_inputs_hash() -> range:
        return range(4)

    def eval_unfiltered(self, gl, vars):
        return [
            gl.sub_extension(vars.local_wires[w], gl.to_extension(h))
            for w, h in zip(self.wires_public_inputs_hash(), vars.public_inputs_hash)
        ]


class ArithmeticGate(Gate):
    """num_ops copies of output = c0 * m0 * m1 + c1 * addend.

    Operation i uses wires 4i (m0), 4i + 1 (m1), 4i + 2 (addend), 4i + 3 (output).
    """

    def __init__(self, num_ops: int):
        self.num_ops = num_ops

    def id(self) -> str:
        return f"ArithmeticGate {{ num_ops: {self.num_ops} }}"

    def num_constants(self) -> int:
        return 2

    def num_constraints(self) -> int:
        return self.num_ops

    def eval_unfiltered(self, gl, vars):
        const_0, const_1 = vars.local_constants[0], vars.local_constants[1]
        constraints = []
        for i in range(self.num_ops):
            multiplicand_0 = vars.local_wires[4 * i]
            multiplicand_1 = vars.local_wires[4 * i + 1]
            addend = vars.local_wires[4 * i + 2]
            output = vars.local_wires[4 * i + 3]
            computed = gl.add_extension(
                gl.mul_extension(gl.mul_extension(multiplicand_0, multiplicand_1), const_0),
                gl.mul_extension(addend, const_1),
            )
            constraints.append(gl.sub_extension(output, computed))
        return constraints


# --- Parsing ---

_GATE_ID = re.compile(r"^\s*(\w+)\s*(?:\{\s*(\w+)\s*:\s*(\d+)\s*\})?\s*$")


def gate_from_id(gate_id: str) -> Gate:
    """Build a gate from its id, e.g. "ArithmeticGate { num_ops: 20 }"."""
    match = _GATE_ID.match(gate_id)
    if match is None:
        raise ValueError(f"Malformed gate id: {gate_id!r}")
    name, field_name, field_value = match.groups()

    if name == "NoopGate" and field_name is None:
        return NoopGate()
    if name == "PublicInputGate" and field_name is None:
        return PublicInputGate()
    if name == "ConstantGate" and field_name == "num_consts":
        return ConstantGate(int(field_value))
    if name == "ArithmeticGate" and field_name == "num_ops":
        return ArithmeticGate(int(field_value))
    raise ValueError(f"Unsupported gate: {gate_id!r}")
