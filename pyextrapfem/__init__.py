from .core import Mesh, MeshSubset, DofHandler, ComponentOrder, get_indices
from .assembly import GlobalExecutor, LocalAssemblerData, create_local_assemblers
from .extrapolation import LocalLinearLeastSquaresExtrapolator, make_extrapolatable

__version__ = "0.1.0"

__all__ = ["Mesh", "MeshSubset", "DofHandler", "ComponentOrder", "get_indices",
           "GlobalExecutor", "LocalAssemblerData", "create_local_assemblers",
           "LocalLinearLeastSquaresExtrapolator", "make_extrapolatable"]
