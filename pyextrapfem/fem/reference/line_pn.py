from functools import lru_cache
import sympy as sp

from .lagrange import nodal_basis

_R = sp.Rational

# end nodes first, then the mid node
LINE_NODES = {
    'line2': ((-1,), (1,)),
    'line3': ((-1,), (1,), (0,)),
}


@lru_cache(maxsize=None)
def line_pn(element_type: str):
    """Lagrange P1/P2 on [-1, 1]."""
    nodes = LINE_NODES[element_type]
    powers = [(k,) for k in range(len(nodes))]
    shape, grad = nodal_basis(nodes, powers)
    return nodes, shape, grad
