"""pyextrapfem.assembly.local_assembler
Per-element numerical kernels.
"""
from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np

from pyextrapfem.core.mesh import Mesh
from pyextrapfem.core.topology import Element
from pyextrapfem.fem.reference import Ref
from pyextrapfem.fem.transform import ShapeMatrices, init_shape_matrices


class ExtrapolatableElement(ABC):
    """What an element has to offer to take part in extrapolation."""

    @abstractmethod
    def shape_matrix(self, integration_point: int) -> np.ndarray:
        """Shape function values ``(n,)`` at one integration point."""


class LocalAssemblerInterface(ExtrapolatableElement):
    @abstractmethod
    def interpolate_nodal_values_to_integration_points(self, local_nodal_values: Sequence[float]) -> None:
        ...

    @abstractmethod
    def get_stored_quantity(self, cache: List[float]) -> np.ndarray:
        ...

    @abstractmethod
    def get_integration_point_coordinates(self) -> np.ndarray:
        ...

    @property
    @abstractmethod
    def num_integration_points(self) -> int:
        ...


class LocalAssemblerData(LocalAssemblerInterface):
    """
    Generic local assembler holding shape matrices and one stored quantity.

    The cell family (``shape_function``) and ``global_dim`` are bound by the
    :class:`~pyextrapfem.assembly.initializer.LocalDataInitializer`; the
    integration rule follows from the cell type and ``integration_order``.
    Integration point values are stored integration-point-major:
    ``[ip0 c0, ip0 c1, ..., ip1 c0, ...]``.
    """

    def __init__(self,
                 element: Element,
                 mesh: Mesh,
                 local_matrix_size: int,
                 integration_order: int,
                 *,
                 shape_function: Ref,
                 global_dim: int):
        n = shape_function.n_nodes
        if local_matrix_size % n != 0:
            raise ValueError(f"Element {element.id}: local matrix size {local_matrix_size} "
                             f"is not a multiple of {n} nodes.")
        self.element_id = element.id
        self.num_components = local_matrix_size // n
        self._shape_matrices: List[ShapeMatrices] = init_shape_matrices(
            shape_function, mesh.element_coords(element.id, global_dim),
            integration_order, global_dim, element.id)
        self._int_pt_values = np.zeros(len(self._shape_matrices) * self.num_components)

    @property
    def num_integration_points(self) -> int:
        return len(self._shape_matrices)

    @property
    def shape_matrices(self) -> List[ShapeMatrices]:
        return self._shape_matrices

    def shape_matrix(self, integration_point: int) -> np.ndarray:
        return self._shape_matrices[integration_point].N

    def interpolate_nodal_values_to_integration_points(self, local_nodal_values: Sequence[float]) -> None:
        n = len(self._shape_matrices[0].N)
        x = np.asarray(local_nodal_values, dtype=float)
        if x.size != n * self.num_components:
            raise ValueError(f"Element {self.element_id}: expected {n * self.num_components} "
                             f"local nodal values, got {x.size}.")
        # local nodal values are component-major, see DofHandler.indices
        x = x.reshape(self.num_components, n)
        for ip, sm in enumerate(self._shape_matrices):
            for c in range(self.num_components):
                self._int_pt_values[ip * self.num_components + c] = np.dot(sm.N, x[c])

    def get_stored_quantity(self, cache: List[float]) -> np.ndarray:
        return self._int_pt_values

    def get_integration_point_coordinates(self) -> np.ndarray:
        return np.array([sm.x for sm in self._shape_matrices])

    def __repr__(self) -> str:
        return (f"<{type(self).__name__} element={self.element_id} "
                f"ips={self.num_integration_points} components={self.num_components}>")
