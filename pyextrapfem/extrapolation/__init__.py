from .extrapolatable import (ExtrapolatableElementCollection, ExtrapolatableLocalAssemblerCollection,
                             make_extrapolatable)
from .extrapolator import (Extrapolator, ExtrapolationResult, LocalFactorization,
                           LocalLinearLeastSquaresExtrapolator)
__all__ = ["ExtrapolatableElementCollection", "ExtrapolatableLocalAssemblerCollection",
           "make_extrapolatable", "Extrapolator", "ExtrapolationResult", "LocalFactorization",
           "LocalLinearLeastSquaresExtrapolator"]
