from functools import lru_cache
import sympy as sp

from .lagrange import nodal_basis

_h = sp.Rational(1, 2)

# reference triangle (0,0)-(1,0)-(0,1); quadratic nodes on edges 01, 12, 20
TRI_NODES = {
    'tri3': ((0, 0), (1, 0), (0, 1)),
    'tri6': ((0, 0), (1, 0), (0, 1), (_h, 0), (_h, _h), (0, _h)),
}


def _complete_powers(degree: int):
    return [(px, total - px) for total in range(degree + 1) for px in range(total, -1, -1)]


@lru_cache(maxsize=None)
def tri_pn(element_type: str):
    """Lagrange P1/P2 triangles."""
    nodes = TRI_NODES[element_type]
    degree = 1 if element_type == 'tri3' else 2
    shape, grad = nodal_basis(nodes, _complete_powers(degree))
    return nodes, shape, grad
