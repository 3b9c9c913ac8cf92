import logging
import numpy as np
from typing import Dict, Iterable, List, Optional, Sequence, Union

from pyextrapfem.core.topology import Element, CELL_TYPES

logger = logging.getLogger(__name__)


class Mesh:
    """
    Ordered collection of nodes and elements.

    Node coordinates are always stored as ``(n_nodes, 3)``; lower dimensional
    input is padded with zeros. Elements may be of mixed type. The mesh
    dimension is the largest topological dimension among its elements and
    selects which family of local assemblers gets instantiated.
    """

    def __init__(self,
                 nodes: np.ndarray,
                 element_connectivity: Sequence[Sequence[int]],
                 *,
                 element_type: Union[str, Sequence[str]] = 'hex8',
                 name: str = 'mesh'):
        coords = np.asarray(nodes, dtype=float)
        if coords.ndim != 2 or coords.shape[1] > 3:
            raise ValueError(f"Node array must have shape (n, 1..3), got {coords.shape}")
        self.name = name
        self.nodes_xyz = np.zeros((coords.shape[0], 3), dtype=float)
        self.nodes_xyz[:, :coords.shape[1]] = coords
        self.nodes = np.arange(coords.shape[0])

        n_el = len(element_connectivity)
        if isinstance(element_type, str):
            types = [element_type] * n_el
        else:
            types = list(element_type)
            if len(types) != n_el:
                raise ValueError(f"Got {len(types)} element types for {n_el} elements.")

        self.elements_list: List[Element] = []
        for eid, (conn, et) in enumerate(zip(element_connectivity, types)):
            if et not in CELL_TYPES:
                raise KeyError(et)
            conn = tuple(int(n) for n in conn)
            if len(conn) != CELL_TYPES[et][1]:
                raise ValueError(f"Element {eid} of type '{et}' has {len(conn)} nodes, "
                                 f"expected {CELL_TYPES[et][1]}.")
            if conn and (min(conn) < 0 or max(conn) >= self.n_nodes):
                raise IndexError(f"Element {eid} references a node outside [0, {self.n_nodes}).")
            self.elements_list.append(Element(id=eid, nodes=conn, element_type=et))

        # node-based property vectors, keyed by name
        self.properties: Dict[str, np.ndarray] = {}
        logger.debug(f"Mesh '{name}': {self.n_nodes} nodes, {self.n_elements} elements, dim={self.dimension}")

    # ------------------------------------------------------------------
    @property
    def n_nodes(self) -> int:
        return self.nodes_xyz.shape[0]

    @property
    def n_elements(self) -> int:
        return len(self.elements_list)

    @property
    def dimension(self) -> int:
        if not self.elements_list:
            return 0
        return max(el.dim for el in self.elements_list)

    @property
    def element_types(self) -> List[str]:
        return sorted({el.element_type for el in self.elements_list})

    def element(self, eid: int) -> Element:
        if not 0 <= eid < self.n_elements:
            raise IndexError(f"Element id {eid} outside [0, {self.n_elements}).")
        return self.elements_list[eid]

    def element_coords(self, eid: int, global_dim: Optional[int] = None) -> np.ndarray:
        """Node coordinates of element *eid*, truncated to *global_dim* columns."""
        gd = 3 if global_dim is None else int(global_dim)
        return self.nodes_xyz[list(self.element(eid).nodes), :gd]

    def __repr__(self) -> str:
        return f"<Mesh '{self.name}' nodes={self.n_nodes} elements={self.n_elements} dim={self.dimension}>"


class MeshSubset:
    """A set of mesh nodes on which one DOF component lives."""

    def __init__(self, mesh: Mesh, node_ids: Optional[Iterable[int]] = None):
        self.mesh = mesh
        if node_ids is None:
            ids = np.arange(mesh.n_nodes)
        else:
            ids = np.asarray(list(node_ids), dtype=np.int64)
        if ids.size and (ids.min() < 0 or ids.max() >= mesh.n_nodes):
            raise IndexError(f"Mesh subset references a node outside [0, {mesh.n_nodes}).")
        if len(np.unique(ids)) != len(ids):
            raise ValueError("Mesh subset contains duplicate node ids.")
        self.node_ids = ids
        self._position = {int(n): i for i, n in enumerate(ids)}

    @property
    def n_nodes(self) -> int:
        return len(self.node_ids)

    def position(self, node_id: int) -> int:
        """Position of *node_id* inside the subset."""
        return self._position[int(node_id)]

    def __contains__(self, node_id) -> bool:
        return int(node_id) in self._position

    def __len__(self) -> int:
        return self.n_nodes

    def __repr__(self) -> str:
        return f"<MeshSubset {self.n_nodes}/{self.mesh.n_nodes} nodes>"
