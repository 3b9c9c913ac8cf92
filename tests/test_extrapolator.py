import logging

import numpy as np
import pytest

from pyextrapfem.assembly.executor import GlobalExecutor
from pyextrapfem.assembly.initializer import create_local_assemblers
from pyextrapfem.assembly.local_assembler import LocalAssemblerData
from pyextrapfem.core.dofhandler import DofHandler
from pyextrapfem.core.mesh import Mesh, MeshSubset
from pyextrapfem.extrapolation.extrapolatable import (ExtrapolatableElementCollection,
                                                      make_extrapolatable)
from pyextrapfem.extrapolation.extrapolator import LocalLinearLeastSquaresExtrapolator
from pyextrapfem.utils.meshgen import generate_regular_hex_mesh, structured_mesh

EPS = np.finfo(float).eps
# bounds for the regular hex mesh: nodal deviation and residual
DEV_TOL = 20 * EPS
RES_TOL = 5 * EPS

stored = LocalAssemblerData.get_stored_quantity


def _setup(mesh, order, num_components=1, component_order="by_component"):
    dh = DofHandler([MeshSubset(mesh)] * num_components, component_order)
    las = create_local_assemblers(mesh, dh, LocalAssemblerData, order)
    return dh, las


def _interpolate(dh, las, x):
    for eid, la in enumerate(las):
        la.interpolate_nodal_values_to_integration_points(x[dh.indices(eid)])


def _fit_tol(las, scale=1.0):
    """20 eps, scaled by the design matrix condition and the value magnitude."""
    la = las[0]
    A = np.vstack([la.shape_matrix(ip) for ip in range(la.num_integration_points)])
    return DEV_TOL * max(1.0, np.linalg.cond(A)) * scale


class TestRoundTrip:
    @pytest.mark.parametrize("seed", [0, 1, 42])
    @pytest.mark.parametrize("order", [2, 3, 4])
    def test_regular_hex_mesh(self, order, seed):
        mesh = generate_regular_hex_mesh(1.0, 5)
        dh, las = _setup(mesh, order)
        x = np.random.default_rng(seed).random(dh.total_dofs)
        _interpolate(dh, las, x)

        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        extrapolatables = make_extrapolatable(las, stored)
        result = extrapolator.extrapolate(extrapolatables)
        residuals = extrapolator.calculate_residuals(extrapolatables, result)

        assert np.max(np.abs(result.nodal_values - x)) < DEV_TOL
        assert extrapolator.get_nodal_values() is result.nodal_values
        assert residuals.shape == (mesh.n_elements,)
        assert np.max(residuals) < RES_TOL
        assert extrapolator.get_element_residuals() is residuals
        # every element of the regular mesh shares one QR factorization
        assert len(extrapolator._factor_cache) == 1
        assert not next(iter(extrapolator._factor_cache.values())).underdetermined

    @pytest.mark.parametrize("order", [2, 3, 4])
    def test_regular_hex_mesh_derived_quantity(self, order):
        mesh = generate_regular_hex_mesh(1.0, 5)
        dh, las = _setup(mesh, order)
        x = np.random.default_rng(order).random(dh.total_dofs)
        _interpolate(dh, las, x)

        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        doubled = make_extrapolatable(las, lambda la, cache: 2.0 * la.get_stored_quantity(cache))
        result = extrapolator.extrapolate(doubled)
        residuals = extrapolator.calculate_residuals(doubled, result)

        # bounds scale with the magnitude of the data
        assert np.max(np.abs(result.nodal_values - 2.0 * x)) < 2 * DEV_TOL
        assert np.max(residuals) < 2 * RES_TOL

    @pytest.mark.parametrize("element_type,order", [
        ('line2', 2), ('line3', 3), ('tri3', 2), ('tri6', 3), ('quad4', 2), ('quad8', 3),
        ('quad9', 3), ('tet4', 2), ('tet10', 3), ('prism6', 2), ('hex20', 3),
    ])
    def test_exact_fit_per_cell_type(self, element_type, order):
        dim = 1 if element_type.startswith('line') else 3 if element_type in (
            'tet4', 'tet10', 'prism6', 'hex20') else 2
        mesh = structured_mesh(element_type, (1.0, 2.0, 1.5)[:dim], (2, 1, 2)[:dim])
        dh, las = _setup(mesh, order)
        x = np.random.default_rng(3).random(dh.total_dofs)
        _interpolate(dh, las, x)

        extrapolator = LocalLinearLeastSquaresExtrapolator(dh, residual_norm="max")
        extrapolatables = make_extrapolatable(las, stored)
        result = extrapolator.extrapolate(extrapolatables)
        tol = _fit_tol(las)
        assert np.max(np.abs(result.nodal_values - x)) < tol
        assert np.max(extrapolator.calculate_residuals(extrapolatables, result)) < tol

    def test_derived_quantity_scales(self):
        mesh = structured_mesh('quad9', (1.0, 1.0), (3, 2))
        dh, las = _setup(mesh, 3)
        x = np.random.default_rng(11).random(dh.total_dofs)
        _interpolate(dh, las, x)

        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        plain = extrapolator.extrapolate(make_extrapolatable(las, stored)).nodal_values.copy()
        doubled = make_extrapolatable(las, lambda la, cache: 2.0 * la.get_stored_quantity(cache))
        result = extrapolator.extrapolate(doubled)
        tol = _fit_tol(las, scale=2.0)
        assert np.max(np.abs(result.nodal_values - 2.0 * plain)) < tol
        assert np.max(np.abs(result.nodal_values - 2.0 * x)) < tol

    @pytest.mark.parametrize("component_order", ["by_component", "by_location"])
    def test_multi_component(self, component_order):
        mesh = structured_mesh('quad4', (2.0, 1.0), (3, 3))
        dh, las = _setup(mesh, 2, num_components=2, component_order=component_order)
        assert all(la.num_components == 2 for la in las)
        x = np.random.default_rng(5).random(dh.total_dofs)
        _interpolate(dh, las, x)

        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        extrapolatables = make_extrapolatable(las, stored)
        result = extrapolator.extrapolate(extrapolatables)
        tol = _fit_tol(las)
        assert np.max(np.abs(result.nodal_values - x)) < tol
        assert result.local_solutions[0].shape == (4, 2)
        assert np.max(extrapolator.calculate_residuals(extrapolatables, result)) < tol

    def test_threaded_is_bit_identical(self):
        mesh = structured_mesh('tet4', (1.0, 1.0, 1.0), (2, 2, 2))
        dh, las = _setup(mesh, 2)
        _interpolate(dh, las, np.random.default_rng(8).random(dh.total_dofs))
        extrapolatables = make_extrapolatable(las, stored)

        seq = LocalLinearLeastSquaresExtrapolator(dh, executor=GlobalExecutor(1))
        par = LocalLinearLeastSquaresExtrapolator(dh, executor=GlobalExecutor(4))
        r_seq = seq.extrapolate(extrapolatables)
        r_par = par.extrapolate(extrapolatables)
        np.testing.assert_array_equal(r_seq.nodal_values, r_par.nodal_values)
        np.testing.assert_array_equal(seq.calculate_residuals(extrapolatables, r_seq),
                                      par.calculate_residuals(extrapolatables, r_par))


class TestLocalFit:
    @pytest.fixture
    def two_lines(self):
        # 0 ---- 1 ---- 2, node 1 shared
        mesh = Mesh(np.array([[0.0], [1.0], [2.0]]), [[0, 1], [1, 2]], element_type='line2')
        return _setup(mesh, 2)

    def test_shared_node_last_write_wins(self, two_lines):
        dh, las = two_lines
        # inconsistent data on the two sides of node 1
        las[0].interpolate_nodal_values_to_integration_points([0.0, 1.0])
        las[1].interpolate_nodal_values_to_integration_points([5.0, 7.0])

        result = LocalLinearLeastSquaresExtrapolator(dh).extrapolate(make_extrapolatable(las, stored))
        tol = _fit_tol(las, scale=7.0)
        np.testing.assert_allclose(result.local_solutions[0].ravel(), [0.0, 1.0], atol=tol)
        np.testing.assert_allclose(result.nodal_values, [0.0, 5.0, 7.0], atol=tol)

    def test_underdetermined_minimum_norm(self):
        mesh = generate_regular_hex_mesh(1.0, 1)
        dh, las = _setup(mesh, 1)
        assert las[0].num_integration_points == 1
        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        extrapolatables = make_extrapolatable(las, lambda la, cache: [3.0])
        result = extrapolator.extrapolate(extrapolatables)
        # N = 1/8 at the centre, the minimum-norm solution is constant
        tol = _fit_tol(las, scale=3.0)
        np.testing.assert_allclose(result.nodal_values, 3.0, atol=tol)
        assert extrapolator.calculate_residuals(extrapolatables, result)[0] < tol
        assert next(iter(extrapolator._factor_cache.values())).underdetermined

    def test_underdetermined_quadratic_matches_lstsq(self):
        mesh = structured_mesh('line3', (1.0,), (1,))
        dh, las = _setup(mesh, 2)
        b = np.array([1.0, -2.0])
        result = LocalLinearLeastSquaresExtrapolator(dh).extrapolate(
            make_extrapolatable(las, lambda la, cache: b))
        A = np.vstack([las[0].shape_matrix(ip) for ip in range(2)])
        expected = np.linalg.lstsq(A, b, rcond=None)[0]
        np.testing.assert_allclose(result.nodal_values[dh.indices(0)], expected, atol=1e-12)

    @pytest.mark.parametrize("norm", ["rms", "max"])
    def test_residual_norms(self, norm):
        mesh = structured_mesh('line2', (1.0,), (1,))
        dh, las = _setup(mesh, 3)
        b = np.array([0.0, 1.0, 0.0])
        extrapolator = LocalLinearLeastSquaresExtrapolator(dh, residual_norm=norm)
        extrapolatables = make_extrapolatable(las, lambda la, cache: b)
        result = extrapolator.extrapolate(extrapolatables)

        A = np.vstack([las[0].shape_matrix(ip) for ip in range(3)])
        r = A @ np.linalg.lstsq(A, b, rcond=None)[0] - b
        expected = np.sqrt(np.mean(r ** 2)) if norm == "rms" else np.max(np.abs(r))
        residuals = extrapolator.calculate_residuals(extrapolatables, result)
        assert expected > 0.1
        assert np.isclose(residuals[0], expected, rtol=1e-12)


class TestErrors:
    @pytest.fixture
    def quads(self):
        mesh = structured_mesh('quad4', (1.0, 1.0), (2, 1))
        return _setup(mesh, 2)

    def test_unknown_norm(self, quads):
        dh, _ = quads
        with pytest.raises(ValueError):
            LocalLinearLeastSquaresExtrapolator(dh, residual_norm="l1")

    def test_collection_size_mismatch(self, quads):
        dh, las = quads
        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        with pytest.raises(ValueError):
            extrapolator.extrapolate(make_extrapolatable(las[:1], stored))
        result = extrapolator.extrapolate(make_extrapolatable(las, stored))
        result.local_solutions.pop()
        with pytest.raises(ValueError):
            extrapolator.calculate_residuals(make_extrapolatable(las, stored), result)

    def test_values_not_divisible_by_components(self, quads):
        dh, las = quads
        dh2 = DofHandler([MeshSubset(dh.mesh)] * 2)
        extrapolator = LocalLinearLeastSquaresExtrapolator(dh2)
        with pytest.raises(ValueError):
            extrapolator.extrapolate(make_extrapolatable(las, lambda la, cache: [1.0, 2.0, 3.0]))

    def test_dof_count_mismatch(self, quads):
        dh, las = quads
        # second component only on the middle nodes: 6 DOFs per element instead of 8
        partial = DofHandler([MeshSubset(dh.mesh), MeshSubset(dh.mesh, [1, 4])])
        assert len(partial.indices(0)) == 6
        extrapolator = LocalLinearLeastSquaresExtrapolator(partial)
        with pytest.raises(ValueError):
            extrapolator.extrapolate(make_extrapolatable(las, lambda la, cache: np.ones(8)))

    def test_non_finite_residual_is_logged(self, quads, caplog):
        dh, las = quads
        extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
        extrapolatables = make_extrapolatable(las, lambda la, cache: [np.nan, 0.0, 0.0, 0.0])
        result = extrapolator.extrapolate(extrapolatables)
        with caplog.at_level(logging.WARNING, logger="pyextrapfem.extrapolation.extrapolator"):
            residuals = extrapolator.calculate_residuals(extrapolatables, result)
        assert np.all(np.isnan(residuals))
        assert "Non-finite extrapolation residual" in caplog.text


class _ConstantCollection(ExtrapolatableElementCollection):
    """Hand-written collection: every element sees the same constant."""

    def __init__(self, local_assemblers, value):
        self._las = local_assemblers
        self._value = value

    def shape_matrix(self, element_id, integration_point):
        return self._las[element_id].shape_matrix(integration_point)

    def integration_point_values(self, element_id, cache):
        return np.full(self._las[element_id].num_integration_points, self._value)

    def __len__(self):
        return len(self._las)


def test_custom_collection():
    mesh = structured_mesh('prism6', (1.0, 1.0, 1.0), (1, 2, 1))
    dh, las = _setup(mesh, 2)
    result = LocalLinearLeastSquaresExtrapolator(dh).extrapolate(_ConstantCollection(las, -4.0))
    np.testing.assert_allclose(result.nodal_values, -4.0, atol=_fit_tol(las, scale=4.0))


def test_overdetermined_fit_uses_qr():
    mesh = generate_regular_hex_mesh(1.0, 1)
    dh, las = _setup(mesh, 3)
    A = np.vstack([las[0].shape_matrix(ip) for ip in range(27)])
    B = np.random.default_rng(17).random((27, 2))
    extrapolator = LocalLinearLeastSquaresExtrapolator(dh)
    fact = extrapolator._factorization(0, A)
    assert not fact.underdetermined
    assert fact.Q.shape == (27, 8) and fact.R.shape == (8, 8)
    np.testing.assert_allclose(fact.R, np.triu(fact.R))
    np.testing.assert_allclose(fact.solve(B), np.linalg.lstsq(A, B, rcond=None)[0], atol=1e-13)
    # the same design matrix is factorized once
    assert extrapolator._factorization(5, A.copy()) is fact
