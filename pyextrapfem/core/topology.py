"""pyextrapfem.core.topology
Cell-type table and the element record shared by mesh, reference elements
and the local assembler factory.
"""
from dataclasses import dataclass
from typing import Dict, Tuple


# name -> (topological dimension, number of nodes)
CELL_TYPES: Dict[str, Tuple[int, int]] = {
    'line2':  (1, 2),
    'line3':  (1, 3),
    'tri3':   (2, 3),
    'tri6':   (2, 6),
    'quad4':  (2, 4),
    'quad8':  (2, 8),
    'quad9':  (2, 9),
    'tet4':   (3, 4),
    'tet10':  (3, 10),
    'prism6': (3, 6),
    'hex8':   (3, 8),
    'hex20':  (3, 20),
}

# (dimension, number of nodes) -> name; the factory's selection key
_CELL_BY_SHAPE: Dict[Tuple[int, int], str] = {v: k for k, v in CELL_TYPES.items()}


def cell_dimension(element_type: str) -> int:
    if element_type not in CELL_TYPES:
        raise KeyError(element_type)
    return CELL_TYPES[element_type][0]


def cell_type_for(dim: int, n_nodes: int) -> str:
    """Resolve the cell type from topological dimension and node count."""
    try:
        return _CELL_BY_SHAPE[(int(dim), int(n_nodes))]
    except KeyError:
        raise KeyError(f"No cell type with dimension {dim} and {n_nodes} nodes.") from None


@dataclass(slots=True, frozen=True)
class Element:
    id: int                     # position in the mesh's element collection
    nodes: Tuple[int, ...]      # global node ids in reference (VTK) order
    element_type: str = "hex8"

    @property
    def n_nodes(self) -> int:
        return len(self.nodes)

    @property
    def dim(self) -> int:
        return cell_dimension(self.element_type)

    def contains_node(self, node_id: int) -> bool:
        """Check if the element contains a specific node."""
        return node_id in self.nodes
