# pyextrapfem.fem.reference
"""
Cell-type keyed reference-element factory.
"""
from functools import lru_cache
from importlib import import_module
import numpy as np

from pyextrapfem.core.topology import CELL_TYPES

# cell family -> (module, builder)
_FAMILIES = {
    'line': ("pyextrapfem.fem.reference.line_pn", "line_pn"),
    'tri': ("pyextrapfem.fem.reference.tri_pn", "tri_pn"),
    'quad': ("pyextrapfem.fem.reference.quad_qn", "quad_qn"),
    'tet': ("pyextrapfem.fem.reference.tet_pn", "tet_pn"),
    'hex': ("pyextrapfem.fem.reference.hex_qn", "hex_qn"),
    'prism': ("pyextrapfem.fem.reference.prism_p1", "prism_p1"),
}


def _family(element_type: str) -> str:
    return element_type.rstrip("0123456789")


class Ref:
    def __init__(self, element_type, nodes, shape_lambda, grad_lambda):
        self.element_type = element_type
        self.dim, self.n_nodes = CELL_TYPES[element_type]
        self.nodes = np.array([[float(c) for c in node] for node in nodes]).reshape(self.n_nodes, self.dim)
        self.shape_lambda = shape_lambda
        self.grad_lambda = grad_lambda

    @lru_cache(maxsize=None)
    def shape(self, *xi):
        N = np.asarray(self.shape_lambda(*xi), dtype=float).ravel()
        N.flags.writeable = False
        return N

    @lru_cache(maxsize=None)
    def grad(self, *xi):
        dN = np.asarray(self.grad_lambda(*xi), dtype=float).reshape(self.n_nodes, self.dim)
        dN.flags.writeable = False
        return dN

    def __repr__(self):
        return f"<Ref {self.element_type} dim={self.dim} nodes={self.n_nodes}>"


@lru_cache(maxsize=None)
def get_reference(element_type: str) -> Ref:
    if element_type not in CELL_TYPES:
        raise KeyError(element_type)
    module, builder = _FAMILIES[_family(element_type)]
    nodes, shape_l, grad_l = getattr(import_module(module), builder)(element_type)
    return Ref(element_type, nodes, shape_l, grad_l)
