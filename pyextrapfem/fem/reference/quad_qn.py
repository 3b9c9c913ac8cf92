from functools import lru_cache

from .lagrange import nodal_basis

_CORNERS = ((-1, -1), (1, -1), (1, 1), (-1, 1))
_MIDS = ((0, -1), (1, 0), (0, 1), (-1, 0))

QUAD_NODES = {
    'quad4': _CORNERS,
    'quad8': _CORNERS + _MIDS,
    'quad9': _CORNERS + _MIDS + ((0, 0),),
}

_POWERS = {
    'quad4': [(0, 0), (1, 0), (0, 1), (1, 1)],
    # serendipity: complete P2 plus r^2 s, r s^2
    'quad8': [(0, 0), (1, 0), (0, 1), (2, 0), (1, 1), (0, 2), (2, 1), (1, 2)],
    'quad9': [(i, j) for j in range(3) for i in range(3)],
}


@lru_cache(maxsize=None)
def quad_qn(element_type: str):
    """Bilinear, serendipity and biquadratic quadrilaterals on [-1,1]^2."""
    nodes = QUAD_NODES[element_type]
    shape, grad = nodal_basis(nodes, _POWERS[element_type])
    return nodes, shape, grad
