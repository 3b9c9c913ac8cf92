"""pyextrapfem.extrapolation.extrapolator
Integration point -> node extrapolation by element-local least squares.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from hashlib import blake2b
from typing import Dict, List, Optional, Tuple

import numpy as np
import scipy.linalg

from pyextrapfem.assembly.executor import GlobalExecutor
from pyextrapfem.core.dofhandler import DofHandler
from pyextrapfem.extrapolation.extrapolatable import ExtrapolatableElementCollection

logger = logging.getLogger(__name__)


def _rms(r: np.ndarray) -> float:
    return float(np.sqrt(np.mean(r * r))) if r.size else 0.0

def _max_abs(r: np.ndarray) -> float:
    return float(np.max(np.abs(r))) if r.size else 0.0

_NORMS = {"rms": _rms, "max": _max_abs}


def _matrix_fingerprint(A: np.ndarray) -> Tuple[Tuple[int, ...], bytes]:
    arr = np.ascontiguousarray(A, dtype=np.float64)
    return arr.shape, blake2b(arr.tobytes(), digest_size=16).digest()


@dataclass(slots=True, frozen=True)
class LocalFactorization:
    """Cached solver of one design matrix: economic QR, or the pseudo-inverse when m < n."""
    Q: Optional[np.ndarray] = None
    R: Optional[np.ndarray] = None
    pinv: Optional[np.ndarray] = None

    @property
    def underdetermined(self) -> bool:
        return self.pinv is not None

    def solve(self, B: np.ndarray) -> np.ndarray:
        if self.pinv is not None:
            return self.pinv @ B
        return scipy.linalg.solve_triangular(self.R, self.Q.T @ B, check_finite=False)


@dataclass
class ExtrapolationResult:
    nodal_values: np.ndarray            # (total_dofs,)
    local_solutions: List[np.ndarray]   # per element, (n_nodes, n_components)

    @property
    def n_elements(self) -> int:
        return len(self.local_solutions)


class Extrapolator(ABC):
    @abstractmethod
    def extrapolate(self, extrapolatables: ExtrapolatableElementCollection) -> ExtrapolationResult:
        ...

    @abstractmethod
    def calculate_residuals(self, extrapolatables: ExtrapolatableElementCollection,
                            result: ExtrapolationResult) -> np.ndarray:
        ...

    @abstractmethod
    def get_nodal_values(self) -> np.ndarray:
        ...

    @abstractmethod
    def get_element_residuals(self) -> np.ndarray:
        ...


class LocalLinearLeastSquaresExtrapolator(Extrapolator):
    """
    Fits, element by element, the nodal values whose interpolation best
    matches the integration point values, then scatters them into a global
    nodal vector.

    For an element with ``m`` integration points and ``n`` nodes the design
    matrix ``A`` stacks the ``m`` shape function rows. For ``m >= n`` the
    local solution is the least-squares fit from an economic QR
    factorization, ``R X = Q^T B``; for ``m < n`` it is the minimum-norm fit
    ``A^+ B``. Factorizations are cached per distinct design matrix.

    Nodes shared by several elements receive the value of the element that
    comes last in the collection; contributions are not averaged. The local
    solves may run on several threads, the scatter is always sequential in
    element order.

    Parameters
    ----------
    dof_table : DofHandler
        Index map of the extrapolated quantity; its component count fixes
        how integration point values are grouped.
    executor : GlobalExecutor, optional
        Runs the per-element solves and residuals.
    residual_norm : {'rms', 'max'}
        Per-element residual measure over all integration points and
        components.
    """

    def __init__(self, dof_table: DofHandler, *,
                 executor: Optional[GlobalExecutor] = None,
                 residual_norm: str = "rms"):
        if residual_norm not in _NORMS:
            raise ValueError(f"Unknown residual norm '{residual_norm}'; use one of {sorted(_NORMS)}.")
        self._dof_table = dof_table
        self._executor = executor or GlobalExecutor()
        self._residual_norm = residual_norm
        self._nodal_values = np.zeros(dof_table.total_dofs)
        self._residuals = np.zeros(dof_table.n_elements)
        self._factor_cache: Dict[Tuple, LocalFactorization] = {}
        self._cache_lock = threading.Lock()

    @property
    def dof_table(self) -> DofHandler:
        return self._dof_table

    # ------------------------------------------------------------------
    def extrapolate(self, extrapolatables: ExtrapolatableElementCollection) -> ExtrapolationResult:
        n_el = self._check_size(extrapolatables)
        local_solutions: List[Optional[np.ndarray]] = [None] * n_el
        self._executor.transform_dereferenced(self._extrapolate_element, range(n_el),
                                              local_solutions, extrapolatables)

        nodal_values = np.zeros(self._dof_table.total_dofs)
        for element_id, x in enumerate(local_solutions):
            # component-major, matching DofHandler.indices
            nodal_values[self._dof_table.indices(element_id)] = x.T.ravel()

        self._nodal_values = nodal_values
        logger.debug(f"Extrapolated {n_el} elements to {nodal_values.size} nodal values")
        return ExtrapolationResult(nodal_values=nodal_values, local_solutions=local_solutions)

    def calculate_residuals(self, extrapolatables: ExtrapolatableElementCollection,
                            result: ExtrapolationResult) -> np.ndarray:
        """Per-element misfit of ``result`` against the integration point values."""
        n_el = self._check_size(extrapolatables)
        if result.n_elements != n_el:
            raise ValueError(f"Extrapolation result covers {result.n_elements} elements, "
                             f"the collection has {n_el}.")
        residuals = np.zeros(n_el)
        self._executor.transform_dereferenced(self._residual_element, result.local_solutions,
                                              residuals, extrapolatables)
        bad = np.flatnonzero(~np.isfinite(residuals))
        if bad.size:
            logger.warning(f"Non-finite extrapolation residual in {bad.size} element(s), "
                           f"first one is element {bad[0]}.")
        self._residuals = residuals
        return residuals

    def get_nodal_values(self) -> np.ndarray:
        return self._nodal_values

    def get_element_residuals(self) -> np.ndarray:
        return self._residuals

    # ------------------------------------------------------------------
    def _check_size(self, extrapolatables: ExtrapolatableElementCollection) -> int:
        n_el = len(extrapolatables)
        if n_el != self._dof_table.n_elements:
            raise ValueError(f"Collection has {n_el} elements, the DOF table indexes "
                             f"{self._dof_table.n_elements}.")
        return n_el

    def _local_system(self, element_id: int, extrapolatables: ExtrapolatableElementCollection):
        nc = self._dof_table.num_components
        values = extrapolatables.integration_point_values(element_id, [])
        if values.size == 0 or values.size % nc != 0:
            raise ValueError(f"Element {element_id}: {values.size} integration point values "
                             f"cannot be split into {nc} component(s).")
        m = values.size // nc
        A = np.vstack([extrapolatables.shape_matrix(element_id, ip) for ip in range(m)])
        n_dofs = len(self._dof_table.indices(element_id))
        if n_dofs != A.shape[1] * nc:
            raise ValueError(f"Element {element_id}: DOF table has {n_dofs} entries, "
                             f"expected {A.shape[1]} nodes x {nc} component(s).")
        return A, values.reshape(m, nc)

    def _factorization(self, element_id: int, A: np.ndarray) -> LocalFactorization:
        key = _matrix_fingerprint(A)
        with self._cache_lock:
            fact = self._factor_cache.get(key)
        if fact is None:
            m, n = A.shape
            if m >= n:
                Q, R = scipy.linalg.qr(A, mode='economic')
                fact = LocalFactorization(Q=Q, R=R)
            else:
                logger.debug(f"Element {element_id}: {m} integration points for {n} nodes, "
                             "using the minimum-norm solution")
                fact = LocalFactorization(pinv=scipy.linalg.pinv(A))
            with self._cache_lock:
                fact = self._factor_cache.setdefault(key, fact)
        return fact

    def _extrapolate_element(self, element_id: int, _, extrapolatables) -> np.ndarray:
        A, B = self._local_system(element_id, extrapolatables)
        return self._factorization(element_id, A).solve(B)

    def _residual_element(self, element_id: int, x: np.ndarray, extrapolatables) -> float:
        A, B = self._local_system(element_id, extrapolatables)
        return _NORMS[self._residual_norm](A @ x - B)
