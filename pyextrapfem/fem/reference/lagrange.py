"""pyextrapfem.fem.reference.lagrange
Symbolic nodal basis construction shared by all cell families.
"""
from typing import Sequence, Tuple
import sympy as sp

SYMBOLS = sp.symbols("r s t")


def nodal_basis(nodes: Sequence[Tuple], monomial_powers: Sequence[Tuple[int, ...]]):
    """
    Return lambdified shape functions and their first derivatives for the
    nodal basis spanned by *monomial_powers* and interpolating at *nodes*.

    Args:
        nodes: Reference coordinates of the nodes (exact numbers).
        monomial_powers: Exponent tuples, one per monomial; must match the
            number of nodes.

    Returns:
        tuple: (shape_lambda, grad_lambda)
            - shape_lambda(*xi) -> (n, 1) array [phi_1, ..., phi_n]
            - grad_lambda(*xi)  -> (n, dim) array of d phi_i / d xi_j
    """
    num_nodes = len(nodes)
    dim = len(nodes[0])
    if len(monomial_powers) != num_nodes:
        raise RuntimeError(f"Mismatch between number of nodes ({num_nodes}) "
                           f"and number of monomials ({len(monomial_powers)}).")
    xs = SYMBOLS[:dim]
    monomials = [sp.Mul(*[x**p for x, p in zip(xs, powers)]) for powers in monomial_powers]

    # Vandermonde-like matrix V[i, j] = m_j(node_i)
    V = sp.zeros(num_nodes, num_nodes)
    for i, node in enumerate(nodes):
        subs = {x: sp.nsimplify(c) for x, c in zip(xs, node)}
        for j, m in enumerate(monomials):
            V[i, j] = m.subs(subs)
    try:
        coeffs = (V.T).inv()
    except ValueError as e:
        raise RuntimeError(f"Vandermonde matrix is singular for a {num_nodes}-node basis.") from e

    m_col = sp.Matrix(monomials)
    basis = [sp.expand((coeffs.row(k) * m_col)[0, 0]) for k in range(num_nodes)]
    grads = sp.Matrix([[sp.diff(phi, x) for x in xs] for phi in basis])

    shape_lambda = sp.lambdify(xs, sp.Matrix(basis), "numpy")
    grad_lambda = sp.lambdify(xs, grads, "numpy")
    return shape_lambda, grad_lambda
