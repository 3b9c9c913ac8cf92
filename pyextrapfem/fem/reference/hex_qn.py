from functools import lru_cache

from .lagrange import nodal_basis

_CORNERS = ((-1, -1, -1), (1, -1, -1), (1, 1, -1), (-1, 1, -1),
            (-1, -1, 1), (1, -1, 1), (1, 1, 1), (-1, 1, 1))
# VTK quadratic hexahedron edge order
_EDGES = ((0, 1), (1, 2), (2, 3), (3, 0),
          (4, 5), (5, 6), (6, 7), (7, 4),
          (0, 4), (1, 5), (2, 6), (3, 7))

HEX_NODES = {
    'hex8': _CORNERS,
    'hex20': _CORNERS + tuple(tuple((_CORNERS[a][k] + _CORNERS[b][k]) // 2 for k in range(3))
                              for a, b in _EDGES),
}


def _serendipity_powers():
    # complete P2 (10), the six cubic terms r^2 s, ... with one squared
    # variable (6), rst, and the quartic r^2 st, r s^2 t, r s t^2
    powers = [(i, j, k) for total in range(3)
              for i in range(total, -1, -1) for j in range(total - i, -1, -1)
              for k in [total - i - j]]
    powers += [(2, 1, 0), (2, 0, 1), (1, 2, 0), (0, 2, 1), (1, 0, 2), (0, 1, 2)]
    powers += [(1, 1, 1), (2, 1, 1), (1, 2, 1), (1, 1, 2)]
    return powers


_POWERS = {
    'hex8': [(i, j, k) for k in range(2) for j in range(2) for i in range(2)],
    'hex20': _serendipity_powers(),
}


@lru_cache(maxsize=None)
def hex_qn(element_type: str):
    """Trilinear and 20-node serendipity hexahedra on [-1,1]^3."""
    nodes = HEX_NODES[element_type]
    shape, grad = nodal_basis(nodes, _POWERS[element_type])
    return nodes, shape, grad
