from functools import lru_cache

from .lagrange import nodal_basis

# triangle (0,0)-(1,0)-(0,1) extruded over t in [-1, 1]; VTK wedge order, the
# base (0,1,2) is oriented with its normal pointing away from the top (3,4,5)
PRISM_NODES = {
    'prism6': ((0, 0, -1), (0, 1, -1), (1, 0, -1),
               (0, 0, 1), (0, 1, 1), (1, 0, 1)),
}


@lru_cache(maxsize=None)
def prism_p1(element_type: str = 'prism6'):
    """Linear wedge: P1(triangle) x P1(line)."""
    nodes = PRISM_NODES[element_type]
    powers = [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1), (1, 0, 1), (0, 1, 1)]
    shape, grad = nodal_basis(nodes, powers)
    return nodes, shape, grad
