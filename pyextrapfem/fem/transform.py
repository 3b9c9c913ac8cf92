"""pyextrapfem.fem.transform
Reference -> physical mapping and per-integration-point shape matrices.
"""
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from pyextrapfem.fem.reference import Ref
from pyextrapfem.integration.quadrature import volume


@dataclass(slots=True, frozen=True)
class ShapeMatrices:
    N: np.ndarray          # (n,)            shape functions
    dNdr: np.ndarray       # (n, dim)        reference derivatives
    J: np.ndarray          # (dim, gdim)     dx_j / dr_i
    detJ: float
    dNdx: np.ndarray       # (n, gdim)       physical derivatives
    xi: np.ndarray         # (dim,)          reference point
    x: np.ndarray          # (gdim,)         physical point
    integration_weight: float


def x_mapping(ref: Ref, coords: np.ndarray, xi: Sequence[float]) -> np.ndarray:
    return ref.shape(*xi) @ coords

def jacobian(ref: Ref, coords: np.ndarray, xi: Sequence[float]) -> np.ndarray:
    return ref.grad(*xi).T @ coords

def det_jacobian(J: np.ndarray) -> float:
    """Determinant, or the area/length measure sqrt(det(J J^T)) for embedded cells."""
    if J.shape[0] == J.shape[1]:
        return float(np.linalg.det(J))
    return float(np.sqrt(np.linalg.det(J @ J.T)))

def _map_grad(dNdr: np.ndarray, J: np.ndarray) -> np.ndarray:
    if J.shape[0] == J.shape[1]:
        return dNdr @ np.linalg.inv(J).T
    # pseudo-inverse of J^T for cells embedded in a higher dimension
    return dNdr @ np.linalg.solve(J @ J.T, J)


def init_shape_matrices(ref: Ref,
                        coords: np.ndarray,
                        integration_order: int,
                        global_dim: int,
                        element_id: int = -1) -> List[ShapeMatrices]:
    """
    Shape matrices at every integration point of one element.

    ``coords`` holds the element's node coordinates; only the first
    ``global_dim`` columns are used.
    """
    coords = np.asarray(coords, dtype=float)[:, :global_dim]
    if coords.shape[0] != ref.n_nodes:
        raise ValueError(f"Element {element_id}: got {coords.shape[0]} node coordinates "
                         f"for a {ref.n_nodes}-node {ref.element_type}.")
    if ref.dim > global_dim:
        raise ValueError(f"Element {element_id}: a {ref.dim}D {ref.element_type} cannot live "
                         f"in a {global_dim}D mesh.")
    pts, wts = volume(ref.element_type, integration_order)
    out: List[ShapeMatrices] = []
    for xi, w in zip(pts, wts):
        N = ref.shape(*xi)
        dNdr = ref.grad(*xi)
        J = jacobian(ref, coords, xi)
        detJ = det_jacobian(J)
        if not detJ > 0.0:
            raise ValueError(f"Element {element_id}: non-positive Jacobian determinant "
                             f"{detJ:g} at reference point {tuple(xi)}.")
        out.append(ShapeMatrices(
            N=N,
            dNdr=dNdr,
            J=J,
            detJ=detJ,
            dNdx=_map_grad(dNdr, J),
            xi=np.asarray(xi, dtype=float),
            x=x_mapping(ref, coords, xi),
            integration_weight=float(w) * detJ,
        ))
    return out
