"""pyextrapfem.process.process
Higher-level driver tying together the DOF table, the local assemblers and
the extrapolator for a set of process variables on one mesh.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from pyextrapfem.assembly.executor import GlobalExecutor
from pyextrapfem.assembly.initializer import create_local_assemblers
from pyextrapfem.assembly.local_assembler import LocalAssemblerData
from pyextrapfem.core.dofhandler import ComponentOrder, DofHandler
from pyextrapfem.core.mesh import Mesh, MeshSubset
from pyextrapfem.extrapolation.extrapolatable import IntegrationPointValuesMethod, make_extrapolatable
from pyextrapfem.extrapolation.extrapolator import LocalLinearLeastSquaresExtrapolator
from pyextrapfem.process.process_variable import ProcessVariable

logger = logging.getLogger(__name__)


class Process:
    def __init__(self,
                 mesh: Mesh,
                 process_variables: Sequence[ProcessVariable],
                 integration_order: int,
                 *,
                 local_assembler_type: type = LocalAssemblerData,
                 component_order: Union[ComponentOrder, str] = ComponentOrder.BY_COMPONENT,
                 executor: Optional[GlobalExecutor] = None,
                 residual_norm: str = "rms"):
        if not process_variables:
            raise ValueError("A process needs at least one process variable.")
        for pv in process_variables:
            if pv.mesh is not mesh:
                raise ValueError(f"Process variable '{pv.name}' lives on a different mesh.")
        self.mesh = mesh
        self.process_variables: List[ProcessVariable] = list(process_variables)
        self.integration_order = int(integration_order)
        self.component_order = ComponentOrder.parse(component_order)
        self.residual_norm = residual_norm
        self._executor = executor or GlobalExecutor()

        # first global component of every variable
        self._component_offsets: Dict[str, int] = {}
        offset = 0
        for pv in self.process_variables:
            self._component_offsets[pv.name] = offset
            offset += pv.n_components

        self._mesh_subset_all_nodes = MeshSubset(mesh)
        self.dof_table = DofHandler([self._mesh_subset_all_nodes] * offset, self.component_order)
        self.local_assemblers = create_local_assemblers(mesh, self.dof_table, local_assembler_type,
                                                        self.integration_order, self._executor)
        self._extrapolators: Dict[int, LocalLinearLeastSquaresExtrapolator] = {}
        logger.debug(f"Process: {len(self.process_variables)} variable(s), {mesh.n_nodes} nodes, "
                     f"{mesh.n_elements} elements, integration order {self.integration_order}")

    # ------------------------------------------------------------------
    def _variable(self, variable: Union[ProcessVariable, str]) -> ProcessVariable:
        name = variable if isinstance(variable, str) else variable.name
        for pv in self.process_variables:
            if pv.name == name:
                return pv
        raise KeyError(f"Unknown process variable '{name}'.")

    def new_global_vector(self) -> np.ndarray:
        return np.zeros(self.dof_table.total_dofs)

    def extrapolator(self, num_components: int = 1) -> LocalLinearLeastSquaresExtrapolator:
        """Extrapolator over all mesh nodes for a quantity with *num_components*."""
        if num_components not in self._extrapolators:
            dof_table = DofHandler([self._mesh_subset_all_nodes] * num_components, self.component_order)
            self._extrapolators[num_components] = LocalLinearLeastSquaresExtrapolator(
                dof_table, executor=self._executor, residual_norm=self.residual_norm)
        return self._extrapolators[num_components]

    # ------------------------------------------------------------------
    def set_initial_conditions(self, x: np.ndarray) -> np.ndarray:
        """Write the initial condition of every variable that has one into *x*."""
        for pv in self.process_variables:
            ic = pv.initial_condition
            if ic is None:
                continue
            first = self._component_offsets[pv.name]
            for node_id in range(self.mesh.n_nodes):
                value = ic.get_value(node_id)
                for c in range(pv.n_components):
                    x[self.dof_table.global_index(node_id, first + c)] = value[c]
        return x

    def interpolate_nodal_values_to_integration_points(self, global_nodal_values: np.ndarray) -> None:
        if global_nodal_values.size != self.dof_table.total_dofs:
            raise ValueError(f"Global vector has {global_nodal_values.size} entries, "
                             f"expected {self.dof_table.total_dofs}.")

        def cb(element_id, loc_asm, dof_table, x):
            local_x = x[dof_table.indices(element_id)]
            loc_asm.interpolate_nodal_values_to_integration_points(local_x)

        self._executor.execute_dereferenced(cb, self.local_assemblers, self.dof_table,
                                            global_nodal_values)

    def extrapolate(self, method: IntegrationPointValuesMethod,
                    num_components: int = 1) -> Tuple[np.ndarray, np.ndarray]:
        """Nodal values and element residuals of the quantity selected by *method*."""
        extrapolator = self.extrapolator(num_components)
        extrapolatables = make_extrapolatable(self.local_assemblers, method)
        result = extrapolator.extrapolate(extrapolatables)
        extrapolator.calculate_residuals(extrapolatables, result)
        return extrapolator.get_nodal_values(), extrapolator.get_element_residuals()

    def copy_to_mesh_property(self, x: np.ndarray, variable: Union[ProcessVariable, str]) -> np.ndarray:
        """Copy one variable's part of *x* into its node property vector."""
        pv = self._variable(variable)
        prop = pv.get_or_create_mesh_property()
        first = self._component_offsets[pv.name]
        for node_id in range(self.mesh.n_nodes):
            for c in range(pv.n_components):
                prop[node_id * pv.n_components + c] = x[self.dof_table.global_index(node_id, first + c)]
        return prop
