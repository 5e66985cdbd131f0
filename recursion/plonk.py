"""Plonk identity check at zeta.

Given the openings at zeta (and Z at g * zeta), the checker recomputes the
vanishing polynomial combination for each alpha and compares it with
Z_H(zeta) times the quotient reconstructed from its opened chunks:

    vanishing_i(zeta) == (zeta^n - 1) * sum_j quotient_{i,j}(zeta) * zeta^(n*j)

The vanishing terms are, in order: L_0(zeta) * (Z(zeta) - 1) per challenge,
the partial-product transitions of the permutation argument, then the
selector-filtered gate constraints.
"""

import math
from typing import List, Sequence, Tuple

from circuit.api import ConstraintSystem
from gadgets.goldilocks import GoldilocksApi, GoldilocksHashOut, QuadraticExtensionVariable
from recursion.common import CommonCircuitData
from recursion.gates import EvaluationVars
from recursion.proof import OpeningSet, ProofChallenges

# Selector value marking rows whose selector group is unused
UNUSED_SELECTOR = (1 << 32) - 1


class PlonkChip:
    def __init__(self, cs: ConstraintSystem, common_data: CommonCircuitData):
        self.cs = cs
        self.gl = GoldilocksApi(cs)
        self.common_data = common_data

    def verify(
        self,
        challenges: ProofChallenges,
        openings: OpeningSet,
        public_inputs_hash: GoldilocksHashOut,
    ) -> None:
        gl = self.gl
        common = self.common_data
        zeta_pow_deg = gl.exp_power_of_2_extension(challenges.plonk_zeta, common.degree_bits)

        vanishing_polys_zeta = self.eval_vanishing_poly(challenges, openings, zeta_pow_deg, public_inputs_hash)

        z_h_zeta = gl.sub_extension(zeta_pow_deg, gl.one_extension())
        qdf = common.quotient_degree_factor
        for i, vanishing in enumerate(vanishing_polys_zeta):
            chunk = openings.quotient_polys[i * qdf:(i + 1) * qdf]
            reconstructed = gl.reduce_with_powers(chunk, zeta_pow_deg)
            with self.cs.scope(f"quotient check {i}"):
                gl.assert_is_equal_extension(vanishing, gl.mul_extension(z_h_zeta, reconstructed))

    def eval_vanishing_poly(
        self,
        challenges: ProofChallenges,
        openings: OpeningSet,
        zeta_pow_deg: QuadraticExtensionVariable,
        public_inputs_hash: GoldilocksHashOut,
    ) -> List[QuadraticExtensionVariable]:
        """One combined vanishing value per challenge, alpha-reduced over all terms."""
        gl = self.gl
        common = self.common_data
        config = common.config
        zeta = challenges.plonk_zeta
        npp = common.num_partial_products

        constraint_terms = self.evaluate_gate_constraints(
            EvaluationVars(openings.constants, openings.wires, public_inputs_hash)
        )

        l_0_zeta = self.eval_l_0(zeta, zeta_pow_deg)
        one = gl.one_extension()

        vanishing_z_1_terms = []
        vanishing_partial_products_terms = []
        for i in range(config.num_challenges):
            z_x = openings.plonk_zs[i]
            z_gx = openings.plonk_zs_next[i]
            vanishing_z_1_terms.append(gl.mul_extension(l_0_zeta, gl.sub_extension(z_x, one)))

            beta = challenges.plonk_betas[i]
            gamma = gl.to_extension(challenges.plonk_gammas[i])
            numerator_values = []
            denominator_values = []
            for j in range(config.num_routed_wires):
                wire_value = openings.wires[j]
                s_id = gl.scalar_mul(zeta, gl.constant(common.k_is[j]))
                numerator_values.append(
                    gl.add_extension(gl.add_extension(wire_value, gl.scalar_mul(s_id, beta)), gamma)
                )
                s_sigma = openings.plonk_sigmas[j]
                denominator_values.append(
                    gl.add_extension(gl.add_extension(wire_value, gl.scalar_mul(s_sigma, beta)), gamma)
                )

            partial_products = openings.partial_products[i * npp:(i + 1) * npp]
            vanishing_partial_products_terms += self.check_partial_products(
                numerator_values, denominator_values, partial_products, z_x, z_gx
            )

        vanishing_terms = vanishing_z_1_terms + vanishing_partial_products_terms + constraint_terms
        return [gl.reduce_with_powers(vanishing_terms, gl.to_extension(alpha)) for alpha in challenges.plonk_alphas]

    def eval_l_0(
        self, x: QuadraticExtensionVariable, x_pow_n: QuadraticExtensionVariable
    ) -> QuadraticExtensionVariable:
        """First Lagrange basis polynomial of the trace domain, (x^n - 1) / (n * (x - 1))."""
        gl = self.gl
        one = gl.one_extension()
        denominator = gl.scalar_mul(gl.sub_extension(x, one), gl.constant(self.common_data.degree))
        return gl.div_extension(gl.sub_extension(x_pow_n, one), denominator)

    def check_partial_products(
        self,
        numerators: Sequence[QuadraticExtensionVariable],
        denominators: Sequence[QuadraticExtensionVariable],
        partials: Sequence[QuadraticExtensionVariable],
        z_x: QuadraticExtensionVariable,
        z_gx: QuadraticExtensionVariable,
    ) -> List[QuadraticExtensionVariable]:
        """prev * prod(numerator chunk) - next * prod(denominator chunk) for each chunk.

        The accumulators run z_x, partials..., z_gx, one step per chunk of
        quotient_degree_factor routed wires.
        """
        gl = self.gl
        max_degree = self.common_data.quotient_degree_factor
        product_accs = [z_x] + list(partials) + [z_gx]
        num_chunks = math.ceil(len(numerators) / max_degree)
        if len(product_accs) != num_chunks + 1:
            raise ValueError(f"{len(partials)} partial products for {num_chunks} chunks")

        constraints = []
        for k, (num_chunk, den_chunk) in enumerate(
            zip(_chunks(numerators, max_degree), _chunks(denominators, max_degree))
        ):
            num_product = _product(gl, num_chunk)
            den_product = _product(gl, den_chunk)
            constraints.append(
                gl.sub_extension(
                    gl.mul_extension(product_accs[k], num_product),
                    gl.mul_extension(product_accs[k + 1], den_product),
                )
            )
        return constraints

    # --- Gate Constraints ---

    def evaluate_gate_constraints(self, vars: EvaluationVars) -> List[QuadraticExtensionVariable]:
        """Sum of every gate's filtered constraints, slot by slot."""
        gl = self.gl
        common = self.common_data
        selectors_info = common.selectors_info
        num_selectors = selectors_info.num_selectors

        constraints = [gl.zero_extension()] * common.num_gate_constraints
        for row, gate in enumerate(common.gates):
            selector_index = selectors_info.selector_indices[row]
            selector_filter = self.compute_filter(
                row,
                selectors_info.groups[selector_index],
                vars.local_constants[selector_index],
                num_selectors > 1,
            )
            gate_constraints = gate.eval_filtered(gl, vars.remove_prefix(num_selectors), selector_filter)
            for j, constraint in enumerate(gate_constraints):
                constraints[j] = gl.add_extension(constraints[j], constraint)
        return constraints

    def compute_filter(
        self,
        row: int,
        group_range: Tuple[int, int],
        s: QuadraticExtensionVariable,
        many_selector: bool,
    ) -> QuadraticExtensionVariable:
        """Product of (j - s) over the other gates of the group, vanishing on their rows."""
        gl = self.gl
        start, end = group_range
        roots = [j for j in range(start, end) if j != row]
        if many_selector:
            roots.append(UNUSED_SELECTOR)
        selector_filter = gl.one_extension()
        for j in roots:
            selector_filter = gl.mul_extension(selector_filter, gl.sub_extension(gl.constant_extension(j), s))
        return selector_filter


def _chunks(values: Sequence[QuadraticExtensionVariable], size: int) -> List[Sequence[QuadraticExtensionVariable]]:
    return [values[i:i + size] for i in range(0, len(values), size)]


def _product(gl: GoldilocksApi, values: Sequence[QuadraticExtensionVariable]) -> QuadraticExtensionVariable:
    acc = gl.one_extension()
    for v in values:
        acc = gl.mul_extension(acc, v)
    return acc
