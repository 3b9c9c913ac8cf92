from .executor import GlobalExecutor
from .local_assembler import ExtrapolatableElement, LocalAssemblerInterface, LocalAssemblerData
from .initializer import LocalDataInitializer, create_local_assemblers
__all__ = ["GlobalExecutor", "ExtrapolatableElement", "LocalAssemblerInterface",
           "LocalAssemblerData", "LocalDataInitializer", "create_local_assemblers"]
