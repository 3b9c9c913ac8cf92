from functools import lru_cache
import sympy as sp

from .lagrange import nodal_basis

_h = sp.Rational(1, 2)
_VERTS = ((0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1))
# VTK quadratic tetra edge order: 01, 12, 20, 03, 13, 23
_EDGES = ((0, 1), (1, 2), (2, 0), (0, 3), (1, 3), (2, 3))

TET_NODES = {
    'tet4': _VERTS,
    'tet10': _VERTS + tuple(tuple((_VERTS[a][k] + _VERTS[b][k]) * _h for k in range(3))
                            for a, b in _EDGES),
}


def _complete_powers(degree: int):
    return [(i, j, k) for total in range(degree + 1)
            for i in range(total, -1, -1) for j in range(total - i, -1, -1)
            for k in [total - i - j]]


@lru_cache(maxsize=None)
def tet_pn(element_type: str):
    """Lagrange P1/P2 tetrahedra on the unit simplex."""
    nodes = TET_NODES[element_type]
    degree = 1 if element_type == 'tet4' else 2
    shape, grad = nodal_basis(nodes, _complete_powers(degree))
    return nodes, shape, grad
