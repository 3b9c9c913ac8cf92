"""pyextrapfem.assembly.initializer
Chooses the concrete local assembler for every element once, keyed by the
element's (topological dimension, node count).
"""
import logging
from functools import partial
from typing import Callable, Dict, List, Optional

from pyextrapfem.assembly.executor import GlobalExecutor
from pyextrapfem.core.dofhandler import DofHandler
from pyextrapfem.core.mesh import Mesh
from pyextrapfem.core.topology import CELL_TYPES, Element, cell_type_for
from pyextrapfem.fem.reference import get_reference

logger = logging.getLogger(__name__)


class LocalDataInitializer:
    """
    Factory building one local assembler per element.

    For every cell type whose dimension fits into ``global_dim`` a builder is
    bound once: ``local_assembler_type`` with the cell's reference element
    and the global dimension. Calling the initializer resolves the builder
    from the element's dimension and node count; unsupported combinations
    raise immediately.
    """

    def __init__(self, dof_table: DofHandler, local_assembler_type: type, global_dim: int):
        if global_dim not in (1, 2, 3):
            raise ValueError(f"Global dimension must be 1, 2 or 3, got {global_dim}.")
        self.dof_table = dof_table
        self.global_dim = global_dim
        self._builders: Dict[str, Callable] = {
            name: partial(local_assembler_type, shape_function=get_reference(name),
                          global_dim=global_dim)
            for name, (dim, _) in CELL_TYPES.items() if dim <= global_dim
        }

    def __call__(self, element_id: int, element: Element, integration_order: int):
        try:
            name = cell_type_for(element.dim, element.n_nodes)
        except KeyError:
            raise KeyError(f"Element {element_id}: no local assembler for a {element.dim}D element "
                           f"with {element.n_nodes} nodes.") from None
        builder = self._builders.get(name)
        if builder is None:
            raise ValueError(f"Element {element_id}: {name} does not fit into a "
                             f"{self.global_dim}D mesh.")
        local_matrix_size = len(self.dof_table.indices(element_id))
        return builder(element, self.dof_table.mesh, local_matrix_size, integration_order)


def create_local_assemblers(mesh: Mesh,
                            dof_table: DofHandler,
                            local_assembler_type: type,
                            integration_order: int,
                            executor: Optional[GlobalExecutor] = None) -> List:
    if integration_order < 1:
        raise ValueError(f"Integration order must be a positive integer, got {integration_order}.")
    dim = mesh.dimension
    if dim not in (1, 2, 3):
        raise ValueError(f"Cannot create local assemblers for a mesh of dimension {dim}.")
    executor = executor or GlobalExecutor()
    initializer = LocalDataInitializer(dof_table, local_assembler_type, dim)

    local_assemblers: List = [None] * mesh.n_elements
    logger.debug("Calling local assembler builder for all mesh elements.")
    executor.transform_dereferenced(initializer, mesh.elements_list, local_assemblers,
                                    integration_order)
    return local_assemblers
