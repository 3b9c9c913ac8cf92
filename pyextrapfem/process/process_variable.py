import logging
from typing import Optional, Sequence, Union

import numpy as np

from pyextrapfem.core.mesh import Mesh

logger = logging.getLogger(__name__)


class UniformInitialCondition:
    """Same value(s) at every node."""

    def __init__(self, values: Union[float, Sequence[float]]):
        self.values = np.atleast_1d(np.asarray(values, dtype=float))

    @property
    def n_components(self) -> int:
        return self.values.size

    def get_value(self, node_id: int) -> np.ndarray:
        return self.values


class MeshPropertyInitialCondition:
    """Values read from a node property vector of the mesh."""

    def __init__(self, mesh: Mesh, property_name: str, n_components: int = 1):
        if property_name not in mesh.properties:
            raise KeyError(f"Mesh '{mesh.name}' has no property '{property_name}'.")
        prop = np.asarray(mesh.properties[property_name], dtype=float)
        if prop.size != mesh.n_nodes * n_components:
            raise ValueError(f"Property '{property_name}' has {prop.size} values, expected "
                             f"{mesh.n_nodes} nodes x {n_components} component(s).")
        self.property_name = property_name
        self._values = prop.reshape(mesh.n_nodes, n_components)

    @property
    def n_components(self) -> int:
        return self._values.shape[1]

    def get_value(self, node_id: int) -> np.ndarray:
        return self._values[node_id]


class ProcessVariable:
    """A named nodal field with a fixed number of components."""

    def __init__(self, name: str, mesh: Mesh, n_components: int = 1,
                 initial_condition=None):
        if n_components < 1:
            raise ValueError(f"Process variable '{name}' needs at least one component.")
        logger.debug(f"Constructing process variable {name}")
        self.name = name
        self.mesh = mesh
        self.n_components = int(n_components)
        if initial_condition is None:
            logger.info(f"No initial condition found for process variable '{name}'.")
        elif initial_condition.n_components != self.n_components:
            raise ValueError(f"Initial condition of '{name}' has {initial_condition.n_components} "
                             f"component(s), the variable has {self.n_components}.")
        self.initial_condition: Optional[object] = initial_condition

    def get_or_create_mesh_property(self) -> np.ndarray:
        """Node property vector named after the variable (``n_nodes * n_components``)."""
        size = self.mesh.n_nodes * self.n_components
        prop = self.mesh.properties.get(self.name)
        if prop is None:
            prop = np.zeros(size)
            self.mesh.properties[self.name] = prop
        elif prop.size != size:
            raise ValueError(f"Existing property '{self.name}' has {prop.size} values, expected {size}.")
        return prop

    def __repr__(self) -> str:
        return f"<ProcessVariable '{self.name}' components={self.n_components}>"
