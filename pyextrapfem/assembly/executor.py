"""pyextrapfem.assembly.executor
Element-wise execution over collections of local assemblers.

Work is split into contiguous, disjoint index batches. With more than one
thread the batches run on a ``ThreadPoolExecutor``; result slot ``i``
always belongs to input ``i``, so the outcome does not depend on the
scheduling.
"""
import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, MutableSequence, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


def default_num_threads() -> int:
    raw = os.getenv("PYEXTRAPFEM_NUM_THREADS", "").strip()
    if not raw:
        return 1
    try:
        n = int(raw)
    except ValueError:
        raise ValueError(f"PYEXTRAPFEM_NUM_THREADS must be an integer, got '{raw}'.") from None
    if n < 0:
        raise ValueError(f"PYEXTRAPFEM_NUM_THREADS must be >= 0, got {n}.")
    return n or (os.cpu_count() or 1)


def _batches(n: int, num_workers: int) -> List[Tuple[int, int]]:
    size = max(1, math.ceil(n / max(1, num_workers)))
    return [(start, min(start + size, n)) for start in range(0, n, size)]


class GlobalExecutor:
    """
    Stateless element loop driver.

    Parameters
    ----------
    num_threads : int, optional
        Worker threads; ``None`` reads ``PYEXTRAPFEM_NUM_THREADS`` (default
        1, ``0`` means one per CPU). With one thread every operation is a
        plain sequential loop.
    """

    def __init__(self, num_threads: Optional[int] = None):
        self.num_threads = default_num_threads() if num_threads is None else int(num_threads)
        if self.num_threads < 1:
            raise ValueError(f"num_threads must be >= 1, got {self.num_threads}.")

    # ------------------------------------------------------------------
    def _run(self, n: int, body: Callable[[int], None]) -> None:
        if n == 0:
            return
        if self.num_threads == 1 or n == 1:
            for i in range(n):
                body(i)
            return

        batches = _batches(n, self.num_threads)
        logger.debug(f"Running {n} items in {len(batches)} batches on {self.num_threads} threads")

        def run_batch(bounds: Tuple[int, int]) -> None:
            for i in range(*bounds):
                body(i)

        with ThreadPoolExecutor(max_workers=self.num_threads) as executor:
            futures = [executor.submit(run_batch, b) for b in batches]
        # leaving the context waited for every batch; report the first
        # failure in index order
        for future in futures:
            exc = future.exception()
            if exc is not None:
                raise exc

    # ------------------------------------------------------------------
    def execute_dereferenced(self, fn: Callable[..., Any], objects: Sequence[Any], *args) -> None:
        """Call ``fn(i, objects[i], *args)`` for every element."""
        self._run(len(objects), lambda i: fn(i, objects[i], *args))

    def execute_member_dereferenced(self, method_name: str, objects: Sequence[Any], *args) -> None:
        """Call ``objects[i].<method_name>(*args)`` for every element."""
        self._run(len(objects), lambda i: getattr(objects[i], method_name)(*args))

    def transform_dereferenced(self, fn: Callable[..., Any], inputs: Sequence[Any],
                               outputs: MutableSequence[Any], *args) -> MutableSequence[Any]:
        """Store ``fn(i, inputs[i], *args)`` in the preallocated ``outputs[i]``."""
        if len(outputs) != len(inputs):
            raise ValueError(f"Output collection has {len(outputs)} slots for {len(inputs)} inputs.")

        def body(i: int) -> None:
            outputs[i] = fn(i, inputs[i], *args)

        self._run(len(inputs), body)
        return outputs

    def __repr__(self) -> str:
        return f"<GlobalExecutor threads={self.num_threads}>"
