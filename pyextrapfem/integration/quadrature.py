"""pyextrapfem.integration.quadrature
Quadrature provider for lines, triangles, quads, tetrahedra, prisms and
hexahedra. An integration order ``p`` means ``p`` Gauss points per
reference direction.
"""
# pyextrapfem.integration.quadrature
import numpy as np
from functools import lru_cache
from numpy.polynomial.legendre import leggauss

from pyextrapfem.core.topology import CELL_TYPES


# -------------------------------------------------------------------------
# 1‑D Gauss–Legendre
# -------------------------------------------------------------------------
def gauss_legendre(order: int):
    if order < 1:
        raise ValueError(f"Integration order must be a positive integer, got {order}.")
    return leggauss(order)  # (points, weights)

def _gl01(order: int):
    """Gauss–Legendre nodes and weights mapped to [0,1]."""
    xi, w = gauss_legendre(int(order))
    lam = 0.5*(xi + 1.0)
    wl  = 0.5*w
    return lam, wl

# -------------------------------------------------------------------------
# Tensor‑product construction helpers
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def line_rule(order: int):
    xi, wi = gauss_legendre(order)
    return xi[:, None].copy(), wi.copy()

@lru_cache(maxsize=None)
def quad_rule(order: int):
    xi, wi = gauss_legendre(order)
    # eta outer, xi inner
    pts = np.array([[x, y] for y in xi for x in xi])
    wts = np.array([wx * wy for wy in wi for wx in wi])
    return pts, wts

@lru_cache(maxsize=None)
def hex_rule(order: int):
    xi, wi = gauss_legendre(order)
    pts = np.array([[x, y, z] for z in xi for y in xi for x in xi])
    wts = np.array([wx * wy * wz for wz in wi for wy in wi for wx in wi])
    return pts, wts

@lru_cache(maxsize=None)
def tri_rule(order: int):
    """Collapsed (Duffy) Gauss rule on the triangle (0,0)-(1,0)-(0,1)."""
    u, w_u = _gl01(order)
    pts = []
    wts = []
    for i, ui in enumerate(u):
        for j, vj in enumerate(u):
            pts.append([ui, vj * (1.0 - ui)])
            wts.append(w_u[i] * w_u[j] * (1.0 - ui))
    return np.array(pts), np.array(wts)

@lru_cache(maxsize=None)
def tet_rule(order: int):
    """Collapsed Gauss rule on the unit tetrahedron."""
    u, w_u = _gl01(order)
    pts = []
    wts = []
    for i, ui in enumerate(u):
        for j, vj in enumerate(u):
            for k, wk in enumerate(u):
                pts.append([ui, vj * (1.0 - ui), wk * (1.0 - ui) * (1.0 - vj)])
                wts.append(w_u[i] * w_u[j] * w_u[k] * (1.0 - ui)**2 * (1.0 - vj))
    return np.array(pts), np.array(wts)

@lru_cache(maxsize=None)
def prism_rule(order: int):
    """Triangle rule times Gauss–Legendre rule along t in [-1, 1]."""
    tp, tw = tri_rule(order)
    zp, zw = gauss_legendre(order)
    pts = np.array([[p[0], p[1], z] for z in zp for p in tp])
    wts = np.array([w * wz for wz in zw for w in tw])
    return pts, wts

# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
_RULES = {
    'line': line_rule,
    'tri': tri_rule,
    'quad': quad_rule,
    'tet': tet_rule,
    'prism': prism_rule,
    'hex': hex_rule,
}

def volume(element_type: str, order: int = 2):
    """Reference points ``(m, dim)`` and weights ``(m,)`` for a cell type."""
    if element_type not in CELL_TYPES:
        raise KeyError(element_type)
    rule = _RULES[element_type.rstrip("0123456789")]
    pts, wts = rule(int(order))
    return pts, wts

def integration_point_count(element_type: str, order: int) -> int:
    return len(volume(element_type, order)[1])
