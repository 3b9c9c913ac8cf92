"""pyextrapfem.utils.meshgen
Structured mesh generators on axis-aligned boxes.

Every generator works on a fine node lattice (spacing h/2 for quadratic
cells) and places the element nodes through the reference coordinates of
the cell type, so node ordering always matches the reference elements.
"""
from itertools import permutations
from typing import Sequence, Tuple

import numba
import numpy as np

from pyextrapfem.core.mesh import Mesh
from pyextrapfem.core.topology import CELL_TYPES
from pyextrapfem.fem.reference import get_reference

__all__ = ["structured_line", "structured_quad", "structured_triangles", "structured_hex",
           "structured_mesh", "generate_regular_hex_mesh"]

_QUADRATIC = {'line3', 'tri6', 'quad8', 'quad9', 'tet10', 'hex20'}

# sub-cells of the unit square / cube, as vertex positions in cell units
_SQUARE_TRIANGLES = (((0, 0), (1, 0), (1, 1)),
                     ((0, 0), (1, 1), (0, 1)))


def _cube_tetrahedra():
    """Freudenthal (Kuhn) split of the unit cube into 6 positively oriented tets."""
    tets = []
    eye = np.eye(3, dtype=int)
    for perm in permutations(range(3)):
        v0 = np.zeros(3, dtype=int)
        v1 = eye[perm[0]]
        v2 = v1 + eye[perm[1]]
        v3 = np.ones(3, dtype=int)
        if np.linalg.det(np.array([v1 - v0, v2 - v0, v3 - v0], dtype=float)) < 0:
            v1, v2 = v2, v1
        tets.append((v0, v1, v2, v3))
    return tets


def _local_offsets(element_type: str, order: int) -> np.ndarray:
    """Lattice offsets ``(n_sub, n_local, 3)`` of every element node within one cell."""
    ref = get_reference(element_type)
    family = element_type.rstrip("0123456789")
    subs = []
    if family in ('line', 'quad', 'hex'):
        off = np.zeros((ref.n_nodes, 3))
        off[:, :ref.dim] = 0.5 * (ref.nodes + 1.0)
        subs.append(off)
    elif family == 'tri':
        for verts in _SQUARE_TRIANGLES:
            V = np.array(verts, dtype=float)
            off = np.zeros((ref.n_nodes, 3))
            off[:, :2] = V[0] + ref.nodes @ (V[1:] - V[0])
            subs.append(off)
    elif family == 'prism':
        for verts in _SQUARE_TRIANGLES:
            V = np.array(verts, dtype=float)
            off = np.zeros((ref.n_nodes, 3))
            off[:, :2] = V[0] + ref.nodes[:, :2] @ (V[1:] - V[0])
            off[:, 2] = 0.5 * (ref.nodes[:, 2] + 1.0)
            subs.append(off)
    elif family == 'tet':
        for verts in _cube_tetrahedra():
            V = np.array(verts, dtype=float)
            subs.append(V[0] + ref.nodes @ (V[1:] - V[0]))
    else:
        raise KeyError(element_type)
    scaled = np.array(subs) * order
    offsets = np.rint(scaled).astype(np.int64)
    if not np.allclose(scaled, offsets):
        raise RuntimeError(f"Nodes of {element_type} do not fall on the order-{order} lattice.")
    return offsets


@numba.jit(nopython=True, parallel=True, cache=True)
def _connectivity_numba(nx: int, ny: int, nz: int, order: int,
                        lat_x: int, lat_y: int, offsets: np.ndarray) -> np.ndarray:
    n_sub = offsets.shape[0]
    n_loc = offsets.shape[1]
    n_cells = nx * ny * nz
    conn = np.empty((n_cells * n_sub, n_loc), dtype=np.int64)
    for cell in numba.prange(n_cells):
        ci = cell % nx
        cj = (cell // nx) % ny
        ck = cell // (nx * ny)
        for s in range(n_sub):
            e = cell * n_sub + s
            for a in range(n_loc):
                i = order * ci + offsets[s, a, 0]
                j = order * cj + offsets[s, a, 1]
                k = order * ck + offsets[s, a, 2]
                conn[e, a] = i + j * lat_x + k * lat_x * lat_y
    return conn


def _compact(coords: np.ndarray, conn: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Drop lattice nodes no element references (quad8/hex20 centres)."""
    used = np.unique(conn)
    if used.size == coords.shape[0]:
        return coords, conn
    remap = -np.ones(coords.shape[0], dtype=np.int64)
    remap[used] = np.arange(used.size)
    return coords[used], remap[conn]


def _structured(element_type: str, lengths: Sequence[float], divisions: Sequence[int],
                origin: Sequence[float] = None) -> Tuple[np.ndarray, np.ndarray]:
    if element_type not in CELL_TYPES:
        raise KeyError(element_type)
    dim = CELL_TYPES[element_type][0]
    if len(lengths) != dim or len(divisions) != dim:
        raise ValueError(f"{element_type} needs {dim} lengths and {dim} divisions.")
    if any(int(n) < 1 for n in divisions):
        raise ValueError(f"Divisions must be positive, got {tuple(divisions)}.")
    order = 2 if element_type in _QUADRATIC else 1

    n = [int(d) for d in divisions] + [1] * (3 - dim)
    L = [float(x) for x in lengths] + [0.0] * (3 - dim)
    lat = [order * n[a] + 1 if a < dim else 1 for a in range(3)]

    axes = [np.linspace(0.0, L[a], lat[a]) for a in range(3)]
    Z, Y, X = np.meshgrid(axes[2], axes[1], axes[0], indexing='ij')
    coords = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])[:, :dim]
    if origin is not None:
        coords = coords + np.asarray(origin, dtype=float)[:dim]

    offsets = _local_offsets(element_type, order)
    conn = _connectivity_numba(n[0], n[1], n[2], order, lat[0], lat[1], offsets)
    return _compact(coords, conn)


# ---------------------------------------------------------------------------
def structured_line(L: float, *, nx: int, element_type: str = 'line2', origin: float = 0.0):
    return _structured(element_type, (L,), (nx,), (origin,))

def structured_quad(Lx: float, Ly: float, *, nx: int, ny: int, element_type: str = 'quad4',
                    origin: Tuple[float, float] = None):
    """
    Quadrilateral mesh of quad4/quad8/quad9 cells.
    Returns (nodes_coords, elements).
    """
    return _structured(element_type, (Lx, Ly), (nx, ny), origin)

def structured_triangles(Lx: float, Ly: float, *, nx_quads: int, ny_quads: int,
                         element_type: str = 'tri3', origin: Tuple[float, float] = None):
    """Every lattice square split into two triangles along its diagonal."""
    return _structured(element_type, (Lx, Ly), (nx_quads, ny_quads), origin)

def structured_hex(Lx: float, Ly: float, Lz: float, *, nx: int, ny: int, nz: int,
                   element_type: str = 'hex8', origin: Tuple[float, float, float] = None):
    """Box mesh of hex8/hex20 cells, or of tet4/tet10 (6 per cube) or prism6 (2 per cube)."""
    return _structured(element_type, (Lx, Ly, Lz), (nx, ny, nz), origin)

def structured_mesh(element_type: str, lengths: Sequence[float], divisions: Sequence[int],
                    *, name: str = 'structured') -> Mesh:
    coords, conn = _structured(element_type, lengths, divisions)
    return Mesh(coords, conn, element_type=element_type, name=name)

def generate_regular_hex_mesh(length: float, n_per_edge: int, element_type: str = 'hex8') -> Mesh:
    """Cube of edge *length* with *n_per_edge* cells along every edge."""
    n = int(n_per_edge)
    return structured_mesh(element_type, (length,) * 3, (n,) * 3, name='regular_hex')
