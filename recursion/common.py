"""Circuit-level configuration of the inner proof system.

CommonCircuitData describes the shape of every proof for one inner circuit:
how many wires, constants and challenges it uses, which gates it contains,
and the FRI parameters of its polynomial commitments. It is immutable,
built once (usually from JSON) and shared by reference between chips.
"""

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from circuit.api import Operand
from gadgets.field import GOLDILOCKS_PRIME, W
from gadgets.merkle_verifier import MerkleCapVariable
from recursion.gates import Gate, gate_from_id

# Salt leaves appended to each blinded oracle when the commitment is hiding
SALT_SIZE = 4

# Oracle order of the initial FRI trees
CONSTANTS_SIGMAS = 0
WIRES = 1
ZS_PARTIAL_PRODUCTS = 2
QUOTIENT = 3
NUM_ORACLES = 4

MAX_LDE_BITS = len(W) - 1


# --- FRI Configuration ---


@dataclass(frozen=True)
class FriConfig:
    """Query-phase parameters shared by every FRI proof of a circuit.

    Attributes:
        rate_bits: Log2 of the LDE blow-up factor
        cap_height: Log2 of the number of digests in every Merkle cap
        proof_of_work_bits: Leading zero bits required of the grinding response
        num_query_rounds: Number of FRI query rounds
    """

    rate_bits: int
    cap_height: int
    proof_of_work_bits: int
    num_query_rounds: int

    def __post_init__(self):
        if self.rate_bits < 1:
            raise ValueError(f"rate_bits must be positive, got {self.rate_bits}")
        if self.cap_height < 0:
            raise ValueError(f"cap_height must be non-negative, got {self.cap_height}")
        if not 0 <= self.proof_of_work_bits < 64:
            raise ValueError(f"proof_of_work_bits must be in [0, 64), got {self.proof_of_work_bits}")
        if self.num_query_rounds < 1:
            raise ValueError(f"num_query_rounds must be positive, got {self.num_query_rounds}")

    @classmethod
    def from_dict(cls, j: Dict[str, Any]) -> "FriConfig":
        return cls(
            rate_bits=j["rate_bits"],
            cap_height=j["cap_height"],
            proof_of_work_bits=j["proof_of_work_bits"],
            num_query_rounds=j["num_query_rounds"],
        )


@dataclass(frozen=True)
class FriParams:
    config: FriConfig
    hiding: bool
    degree_bits: int
    reduction_arity_bits: Tuple[int, ...]

    def __post_init__(self):
        object.__setattr__(self, "reduction_arity_bits", tuple(self.reduction_arity_bits))
        if any(bits < 1 for bits in self.reduction_arity_bits):
            raise ValueError(f"reduction arities must be at least 2, got bits {self.reduction_arity_bits}")
        if self.total_arity_bits > self.degree_bits:
            raise ValueError(
                f"reduction arity bits {self.reduction_arity_bits} exceed degree_bits {self.degree_bits}"
            )
        if self.lde_bits > MAX_LDE_BITS:
            raise ValueError(f"lde_bits {self.lde_bits} exceeds the two-adicity {MAX_LDE_BITS}")
        if self.config.cap_height > self.lde_bits - self.total_arity_bits:
            raise ValueError(
                f"cap_height {self.config.cap_height} exceeds the height of the last commit-phase tree"
            )

    @property
    def total_arity_bits(self) -> int:
        return sum(self.reduction_arity_bits)

    @property
    def lde_bits(self) -> int:
        return self.degree_bits + self.config.rate_bits

    @property
    def final_poly_bits(self) -> int:
        return self.degree_bits - self.total_arity_bits

    @property
    def final_poly_len(self) -> int:
        return 1 << self.final_poly_bits

    @classmethod
    def from_dict(cls, j: Dict[str, Any]) -> "FriParams":
        return cls(
            config=FriConfig.from_dict(j["config"]),
            hiding=j["hiding"],
            degree_bits=j["degree_bits"],
            reduction_arity_bits=tuple(j["reduction_arity_bits"]),
        )


# --- Circuit Configuration ---


@dataclass(frozen=True)
class CircuitConfig:
    num_wires: int
    num_routed_wires: int
    num_constants: int
    num_challenges: int
    max_quotient_degree_factor: int
    fri_config: FriConfig
    zero_knowledge: bool = False

    def __post_init__(self):
        if self.num_routed_wires > self.num_wires:
            raise ValueError(
                f"num_routed_wires ({self.num_routed_wires}) exceeds num_wires ({self.num_wires})"
            )
        if self.num_challenges < 1:
            raise ValueError(f"num_challenges must be positive, got {self.num_challenges}")

    @classmethod
    def from_dict(cls, j: Dict[str, Any]) -> "CircuitConfig":
        return cls(
            num_wires=j["num_wires"],
            num_routed_wires=j["num_routed_wires"],
            num_constants=j["num_constants"],
            num_challenges=j["num_challenges"],
            max_quotient_degree_factor=j["max_quotient_degree_factor"],
            fri_config=FriConfig.from_dict(j["fri_config"]),
            zero_knowledge=j.get("zero_knowledge", False),
        )


@dataclass(frozen=True)
class SelectorsInfo:
    """Grouping of gates into selector polynomials.

    Attributes:
        selector_indices: Selector polynomial used by each gate
        groups: Half-open ranges of gate indices sharing a selector polynomial
    """

    selector_indices: Tuple[int, ...]
    groups: Tuple[Tuple[int, int], ...]

    def __post_init__(self):
        object.__setattr__(self, "selector_indices", tuple(self.selector_indices))
        object.__setattr__(self, "groups", tuple(tuple(g) for g in self.groups))

    @property
    def num_selectors(self) -> int:
        return len(self.groups)

    @classmethod
    def from_dict(cls, j: Dict[str, Any]) -> "SelectorsInfo":
        groups = [(g["start"], g["end"]) if isinstance(g, dict) else tuple(g) for g in j["groups"]]
        return cls(selector_indices=tuple(j["selector_indices"]), groups=tuple(groups))


# --- Common Circuit Data ---


@dataclass(frozen=True)
class CommonCircuitData:
    config: CircuitConfig
    fri_params: FriParams
    gates: Tuple[Gate, ...]
    selectors_info: SelectorsInfo
    quotient_degree_factor: int
    num_gate_constraints: int
    num_constants: int
    num_public_inputs: int
    k_is: Tuple[int, ...]
    num_partial_products: int

    def __post_init__(self):
        object.__setattr__(self, "gates", tuple(self.gates))
        object.__setattr__(self, "k_is", tuple(k % GOLDILOCKS_PRIME for k in self.k_is))
        self._validate()

    def _validate(self) -> None:
        config = self.config
        if config.fri_config != self.fri_params.config:
            raise ValueError("config.fri_config and fri_params.config disagree")
        if len(self.k_is) != config.num_routed_wires:
            raise ValueError(f"expected {config.num_routed_wires} k_is, got {len(self.k_is)}")
        if len(self.selectors_info.selector_indices) != len(self.gates):
            raise ValueError(
                f"{len(self.selectors_info.selector_indices)} selector indices for {len(self.gates)} gates"
            )
        if self.quotient_degree_factor < 1:
            raise ValueError(f"quotient_degree_factor must be positive, got {self.quotient_degree_factor}")
        expected_partials = math.ceil(config.num_routed_wires / self.quotient_degree_factor) - 1
        if self.num_partial_products != expected_partials:
            raise ValueError(
                f"num_partial_products {self.num_partial_products} does not match "
                f"{config.num_routed_wires} routed wires in chunks of {self.quotient_degree_factor}"
            )
        for gate in self.gates:
            if gate.num_constraints() > self.num_gate_constraints:
                raise ValueError(f"{gate.id()} has more constraints than num_gate_constraints")
            if self.selectors_info.num_selectors + gate.num_constants() > self.num_constants:
                raise ValueError(f"{gate.id()} needs more constants than num_constants")

    # --- Derived Counts ---

    @property
    def degree_bits(self) -> int:
        return self.fri_params.degree_bits

    @property
    def degree(self) -> int:
        return 1 << self.degree_bits

    @property
    def num_preprocessed_polys(self) -> int:
        return self.num_constants + self.config.num_routed_wires

    @property
    def num_zs_partial_products_polys(self) -> int:
        return self.config.num_challenges * (1 + self.num_partial_products)

    @property
    def num_quotient_polys(self) -> int:
        return self.config.num_challenges * self.quotient_degree_factor

    @property
    def salt_size(self) -> int:
        return SALT_SIZE if self.fri_params.hiding else 0

    def oracle_num_polys(self, oracle_index: int) -> int:
        return [
            self.num_preprocessed_polys,
            self.config.num_wires,
            self.num_zs_partial_products_polys,
            self.num_quotient_polys,
        ][oracle_index]

    def oracle_blinding(self, oracle_index: int) -> bool:
        """Only the witness-dependent oracles are salted."""
        return oracle_index != CONSTANTS_SIGMAS

    def oracle_leaf_len(self, oracle_index: int) -> int:
        salt = self.salt_size if self.oracle_blinding(oracle_index) else 0
        return self.oracle_num_polys(oracle_index) + salt

    # --- Loading ---

    @classmethod
    def from_dict(cls, j: Dict[str, Any]) -> "CommonCircuitData":
        return cls(
            config=CircuitConfig.from_dict(j["config"]),
            fri_params=FriParams.from_dict(j["fri_params"]),
            gates=tuple(gate_from_id(g) for g in j["gates"]),
            selectors_info=SelectorsInfo.from_dict(j["selectors_info"]),
            quotient_degree_factor=j["quotient_degree_factor"],
            num_gate_constraints=j["num_gate_constraints"],
            num_constants=j["num_constants"],
            num_public_inputs=j["num_public_inputs"],
            k_is=tuple(j["k_is"]),
            num_partial_products=j["num_partial_products"],
        )

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "CommonCircuitData":
        """Load CommonCircuitData from a common_circuit_data.json file."""
        with open(path) as f:
            j = json.load(f)
        return cls.from_dict(j)


# --- Verifier-Only Data ---


@dataclass
class VerifierOnlyCircuitData:
    """Circuit commitments known to the verifier but not part of the proof.

    Attributes:
        constant_sigmas_cap: Cap of the preprocessed constants/sigmas oracle
        circuit_digest: Outer-field digest binding the circuit description
    """

    constant_sigmas_cap: MerkleCapVariable
    circuit_digest: Operand
