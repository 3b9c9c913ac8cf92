from .process_variable import ProcessVariable, UniformInitialCondition, MeshPropertyInitialCondition
from .process import Process
__all__ = ["ProcessVariable", "UniformInitialCondition", "MeshPropertyInitialCondition", "Process"]
