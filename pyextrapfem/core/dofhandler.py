# dofhandler.py

from __future__ import annotations

import enum
import logging
import os
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np

from pyextrapfem.core.mesh import Mesh, MeshSubset

logger = logging.getLogger(__name__)


class ComponentOrder(enum.Enum):
    """Global DOF ordering convention."""
    BY_COMPONENT = "by_component"   # all nodes of component 0, then component 1, ...
    BY_LOCATION = "by_location"     # node after node, components contiguous

    @classmethod
    def parse(cls, value: Union["ComponentOrder", str]) -> "ComponentOrder":
        if isinstance(value, cls):
            return value
        key = str(value).lower()
        if key == "by_node":
            key = "by_location"
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown component order '{value}'; "
                             "use 'by_component' or 'by_location'/'by_node'.") from None


# -----------------------------------------------------------------------------
#  Main class
# -----------------------------------------------------------------------------
class DofHandler:
    """Local-to-global DOF index map over one mesh subset per component."""

    def __init__(self,
                 mesh_subsets: Sequence[MeshSubset],
                 order: Union[ComponentOrder, str] = ComponentOrder.BY_COMPONENT,
                 DEBUG: bool | None = None):
        """
        Build the index map.

        Parameters
        ----------
        mesh_subsets : sequence of MeshSubset
            One subset per component; component ``c`` lives on the nodes of
            ``mesh_subsets[c]``. All subsets must belong to the same mesh.
        order : ComponentOrder | str
            ``BY_COMPONENT`` numbers every DOF of component 0 first, then
            component 1 and so on. ``BY_LOCATION`` walks the nodes in
            ascending id and keeps the components of one node contiguous.
        DEBUG : bool, optional
            Verify the bijection onto ``[0, total_dofs)`` after construction.
            Defaults to the ``PYEXTRAPFEM_DEBUG`` environment variable.

        Attributes set
        --------------
        dof_map : dict[tuple[int, int], int]
            ``(node_id, component) -> global index``.
        element_maps : list[list[int] | None]
            Element-local index sequence (component-major) for each mesh
            element, ``None`` for elements outside every subset.
        total_dofs : int
            Size ``N`` of the contiguous global range.
        """
        if len(mesh_subsets) == 0:
            raise ValueError("At least one mesh subset (component) is required.")
        mesh = mesh_subsets[0].mesh
        if any(ms.mesh is not mesh for ms in mesh_subsets):
            raise ValueError("All mesh subsets of a DOF table must reference the same mesh.")
        if DEBUG is None:
            DEBUG = os.getenv("PYEXTRAPFEM_DEBUG", "").lower() in {"1", "true", "yes"}

        self.mesh: Mesh = mesh
        self.mesh_subsets: List[MeshSubset] = list(mesh_subsets)
        self.order: ComponentOrder = ComponentOrder.parse(order)
        self.DEBUG: bool = bool(DEBUG)

        self.dof_map: Dict[Tuple[int, int], int] = {}
        self._dof_to_node_map: Dict[int, Tuple[int, int]] = {}
        if self.order is ComponentOrder.BY_COMPONENT:
            self._build_by_component()
        else:
            self._build_by_location()
        self.total_dofs: int = len(self.dof_map)
        for key, dof in self.dof_map.items():
            self._dof_to_node_map[dof] = key

        self.element_maps: List[List[int] | None] = [self._element_indices(el)
                                                     for el in mesh.elements_list]
        if self.DEBUG:
            self._check_bijection()
        logger.debug(f"DofHandler: {self.num_components} component(s), {self.total_dofs} DOFs, "
                     f"order={self.order.value}")

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------
    def _build_by_component(self) -> None:
        offset = 0
        for comp, subset in enumerate(self.mesh_subsets):
            for pos, nid in enumerate(subset.node_ids):
                self.dof_map[(int(nid), comp)] = offset + pos
            offset += subset.n_nodes

    def _build_by_location(self) -> None:
        all_nodes = np.unique(np.concatenate([ms.node_ids for ms in self.mesh_subsets]))
        dof = 0
        for nid in all_nodes:
            for comp, subset in enumerate(self.mesh_subsets):
                if nid in subset:
                    self.dof_map[(int(nid), comp)] = dof
                    dof += 1

    def _element_indices(self, element) -> List[int] | None:
        idx: List[int] = []
        for comp in range(self.num_components):
            for nid in element.nodes:
                dof = self.dof_map.get((nid, comp))
                if dof is not None:
                    idx.append(dof)
        return idx if idx else None

    def _check_bijection(self) -> None:
        dofs = np.fromiter(self.dof_map.values(), dtype=np.int64, count=len(self.dof_map))
        if not np.array_equal(np.sort(dofs), np.arange(self.total_dofs)):
            raise RuntimeError("DOF map is not a bijection onto [0, total_dofs).")

    # ------------------------------------------------------------------
    #  Public helpers
    # ------------------------------------------------------------------
    @property
    def num_components(self) -> int:
        return len(self.mesh_subsets)

    @property
    def n_elements(self) -> int:
        return len(self.element_maps)

    def global_size(self) -> int:
        return self.total_dofs

    def indices(self, element_id: int) -> List[int]:
        """Global indices of element *element_id*, component-major."""
        if not 0 <= element_id < self.n_elements:
            raise IndexError(f"Element id {element_id} outside [0, {self.n_elements}).")
        idx = self.element_maps[element_id]
        if idx is None:
            raise KeyError(f"Element {element_id} is not covered by any mesh subset of the DOF table.")
        return list(idx)

    def global_index(self, node_id: int, component: int = 0) -> int:
        return self.dof_map[(int(node_id), int(component))]

    def node_component(self, dof: int) -> Tuple[int, int]:
        """Reverse lookup: global index -> (node_id, component)."""
        return self._dof_to_node_map[int(dof)]

    def component_dofs(self, component: int) -> np.ndarray:
        """Sorted global indices of all DOFs of one component."""
        if not 0 <= component < self.num_components:
            raise IndexError(f"Component {component} outside [0, {self.num_components}).")
        return np.array(sorted(dof for (_, c), dof in self.dof_map.items() if c == component),
                        dtype=np.int64)

    def __repr__(self) -> str:
        return (f"<DofHandler components={self.num_components} dofs={self.total_dofs} "
                f"order={self.order.value}>")


def get_indices(element_id: int, dof_table: DofHandler) -> List[int]:
    return dof_table.indices(element_id)
