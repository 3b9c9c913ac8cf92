import os

import numpy as np
import pytest

from pyextrapfem.assembly.executor import GlobalExecutor, _batches, default_num_threads


def test_batches_cover_range_once():
    for n in (1, 7, 10, 64):
        for workers in (1, 3, 4, 16):
            covered = [i for lo, hi in _batches(n, workers) for i in range(lo, hi)]
            assert covered == list(range(n))


@pytest.mark.parametrize("num_threads", [1, 2, 4, 8])
def test_transform_matches_sequential(num_threads):
    rng = np.random.default_rng(1234)
    inputs = [rng.random((3, 3)) for _ in range(37)]

    def fn(i, a, scale):
        return scale * i * np.linalg.det(a)

    expected = [None] * len(inputs)
    GlobalExecutor(1).transform_dereferenced(fn, inputs, expected, 2.0)
    out = [None] * len(inputs)
    returned = GlobalExecutor(num_threads).transform_dereferenced(fn, inputs, out, 2.0)
    assert returned is out
    # bit-identical, slot i belongs to input i
    assert out == expected


def test_transform_into_numpy_buffer():
    out = np.zeros(5)
    GlobalExecutor(3).transform_dereferenced(lambda i, x: x * x, [1.0, 2.0, 3.0, 4.0, 5.0], out)
    np.testing.assert_array_equal(out, [1, 4, 9, 16, 25])


def test_transform_output_size_mismatch():
    with pytest.raises(ValueError):
        GlobalExecutor(1).transform_dereferenced(lambda i, x: x, [1, 2, 3], [None] * 2)


def test_execute_dereferenced_passes_index_object_and_args():
    calls = []
    objects = ["a", "b", "c"]
    GlobalExecutor(1).execute_dereferenced(lambda i, obj, tag: calls.append((i, obj, tag)), objects, "x")
    assert calls == [(0, "a", "x"), (1, "b", "x"), (2, "c", "x")]


def test_execute_member_dereferenced():
    class Counter:
        def __init__(self):
            self.total = 0

        def add(self, value):
            self.total += value

    counters = [Counter() for _ in range(9)]
    GlobalExecutor(3).execute_member_dereferenced("add", counters, 5)
    assert [c.total for c in counters] == [5] * 9


@pytest.mark.parametrize("num_threads", [1, 4])
def test_first_failure_in_index_order_propagates(num_threads):
    def fn(i, _):
        if i in (3, 7):
            raise RuntimeError(f"element {i} failed")
        return i

    with pytest.raises(RuntimeError, match="element 3 failed"):
        GlobalExecutor(num_threads).transform_dereferenced(fn, list(range(10)), [None] * 10)


def test_empty_collection():
    out = []
    assert GlobalExecutor(4).transform_dereferenced(lambda i, x: x, [], out) == []


def test_thread_count_from_environment(monkeypatch):
    assert default_num_threads() == 1
    monkeypatch.setenv("PYEXTRAPFEM_NUM_THREADS", "3")
    assert GlobalExecutor().num_threads == 3
    monkeypatch.setenv("PYEXTRAPFEM_NUM_THREADS", "0")
    assert GlobalExecutor().num_threads == (os.cpu_count() or 1)
    monkeypatch.setenv("PYEXTRAPFEM_NUM_THREADS", "many")
    with pytest.raises(ValueError):
        GlobalExecutor()
    with pytest.raises(ValueError):
        GlobalExecutor(0)
