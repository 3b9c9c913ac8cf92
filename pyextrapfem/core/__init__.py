from .topology import Element, CELL_TYPES, cell_type_for
from .mesh import Mesh, MeshSubset
from .dofhandler import DofHandler, ComponentOrder, get_indices
__all__ = ["Element", "CELL_TYPES", "cell_type_for", "Mesh", "MeshSubset", "DofHandler",
           "ComponentOrder", "get_indices"]
