"""pyextrapfem.extrapolation.extrapolatable
Adapters exposing a collection of local assemblers to the extrapolator.
"""
from abc import ABC, abstractmethod
from typing import Callable, List, Sequence

import numpy as np

from pyextrapfem.assembly.local_assembler import ExtrapolatableElement

# method(local_assembler, cache) -> integration point values
IntegrationPointValuesMethod = Callable[[ExtrapolatableElement, List[float]], Sequence[float]]


class ExtrapolatableElementCollection(ABC):
    @abstractmethod
    def shape_matrix(self, element_id: int, integration_point: int) -> np.ndarray:
        ...

    @abstractmethod
    def integration_point_values(self, element_id: int, cache: List[float]) -> np.ndarray:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...


class ExtrapolatableLocalAssemblerCollection(ExtrapolatableElementCollection):
    """
    Local assemblers plus the selector of the quantity to extrapolate.

    The selector is any callable ``method(local_assembler, cache)``; an
    unbound method such as ``LocalAssemblerData.get_stored_quantity`` works
    as well as a function computing a derived quantity.
    """

    def __init__(self, local_assemblers: Sequence[ExtrapolatableElement],
                 integration_point_values_method: IntegrationPointValuesMethod):
        self._local_assemblers = local_assemblers
        self._method = integration_point_values_method

    def shape_matrix(self, element_id: int, integration_point: int) -> np.ndarray:
        return self._local_assemblers[element_id].shape_matrix(integration_point)

    def integration_point_values(self, element_id: int, cache: List[float]) -> np.ndarray:
        values = self._method(self._local_assemblers[element_id], cache)
        return np.asarray(values, dtype=float)

    def __len__(self) -> int:
        return len(self._local_assemblers)


def make_extrapolatable(local_assemblers: Sequence[ExtrapolatableElement],
                        integration_point_values_method: IntegrationPointValuesMethod
                        ) -> ExtrapolatableLocalAssemblerCollection:
    return ExtrapolatableLocalAssemblerCollection(local_assemblers, integration_point_values_method)
