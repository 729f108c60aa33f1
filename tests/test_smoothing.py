import logging
import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sample_meshes import bumpy_grid, empty_mesh, hexagon_fan

from core.exceptions import SolverConvergenceError
from runtime import linear_system
from runtime.smoothing import IterationMethod, relax


def test_iteration_method_parse_accepts_aliases():
    assert IterationMethod.parse("uniform") is IterationMethod.UNIFORM_LAPLACIAN
    assert IterationMethod.parse("cot") is IterationMethod.COTANGENT_WEIGHTS
    assert IterationMethod.parse("cotangent-area") is IterationMethod.COTANGENT_WITH_AREA
    assert IterationMethod.parse("SPARSE") is IterationMethod.SPARSE_GLOBAL_SOLVE
    with pytest.raises(ValueError, match="Unknown iteration method"):
        IterationMethod.parse("newton")


@pytest.mark.parametrize("method", ["uniform", "cotangent"])
def test_one_step_moves_center_halfway(method):
    mesh = hexagon_fan(height=0.5)
    report = relax(mesh, 1, 0.5, method)
    np.testing.assert_allclose(mesh.positions[0], [0.0, 0.0, 0.25], atol=1e-12)
    assert report.iterations == 1
    assert report.max_displacement == pytest.approx(0.25)


@pytest.mark.parametrize("method", list(IterationMethod))
def test_boundary_vertices_never_move(method):
    mesh = bumpy_grid()
    before = mesh.positions.copy()
    relax(mesh, 3, 0.5, method)
    boundary = mesh.boundary_mask
    np.testing.assert_array_equal(mesh.positions[boundary], before[boundary])


def test_repeated_cotangent_steps_flatten_the_bump():
    mesh = bumpy_grid()
    start = np.abs(mesh.positions[:, 2]).max()
    relax(mesh, 100, 0.5, "cotangent")
    assert np.abs(mesh.positions[:, 2]).max() < 0.1 * start


def test_sparse_solve_reaches_the_planar_minimal_surface():
    mesh = bumpy_grid()
    report = relax(mesh, 1, 0.5, IterationMethod.SPARSE_GLOBAL_SOLVE)
    assert report.solver_info == [0, 0, 0]
    np.testing.assert_allclose(mesh.positions[:, 2], 0.0, atol=1e-8)
    assert np.all((mesh.positions[:, :2] >= -1e-9) & (mesh.positions[:, :2] <= 1 + 1e-9))
    # normals are refreshed to the plane's normal
    inner = mesh.interior_mask
    np.testing.assert_allclose(np.abs(mesh.normals[inner, 2]), 1.0, atol=1e-6)


def test_sparse_solve_ignores_iterations_and_lambda():
    a = bumpy_grid()
    b = bumpy_grid()
    relax(a, 1, 0.1, "sparse")
    relax(b, 7, 0.9, "sparse")
    np.testing.assert_allclose(a.positions, b.positions, atol=1e-9)


def test_convergence_failure_keeps_failed_axis(monkeypatch):
    real = linear_system.spla.bicgstab
    calls = []

    def flaky(A, b, **kwargs):
        calls.append(1)
        if len(calls) == 2:
            return np.zeros_like(b), 50
        return real(A, b, **kwargs)

    monkeypatch.setattr(linear_system.spla, "bicgstab", flaky)
    mesh = bumpy_grid()
    before = mesh.positions.copy()
    mesh.curvature[:] = -1.0
    with pytest.raises(SolverConvergenceError) as excinfo:
        relax(mesh, method="sparse")
    assert excinfo.value.axes == ("y",)
    assert excinfo.value.info == (50,)
    np.testing.assert_array_equal(mesh.positions[:, 1], before[:, 1])
    np.testing.assert_allclose(mesh.positions[:, 2], 0.0, atol=1e-8)
    # curvature was refreshed before the error surfaced
    assert np.all(mesh.curvature >= 0.0)


def test_area_step_not_taken_on_large_triangles():
    a = hexagon_fan(height=0.5)
    b = hexagon_fan(height=0.5)
    report = relax(a, 1, 0.5, "cotangent_area")
    relax(b, 1, 0.5, "cotangent")
    assert report.area_weighted_vertices == 0
    np.testing.assert_allclose(a.positions, b.positions)


def test_area_step_taken_on_tiny_triangles():
    mesh = hexagon_fan(height=0.005, radius=0.01)
    report = relax(mesh, 1, 0.5, "cotangent_area", area_threshold=200.0)
    assert report.area_weighted_vertices == 1


def test_zero_iterations_only_refreshes():
    mesh = hexagon_fan(height=0.5)
    before = mesh.positions.copy()
    report = relax(mesh, 0, 0.5, "uniform")
    np.testing.assert_array_equal(mesh.positions, before)
    assert report.iterations == 0
    assert np.linalg.norm(mesh.normals[0]) == pytest.approx(1.0)


def test_invalid_arguments_raise():
    mesh = hexagon_fan()
    with pytest.raises(ValueError):
        relax(mesh, -1)
    with pytest.raises(ValueError):
        relax(mesh, 1, -0.5)


def test_empty_mesh_is_a_no_op(caplog):
    mesh = empty_mesh()
    with caplog.at_level(logging.WARNING, logger="ddg_engine"):
        report = relax(mesh, 5, 0.5, "sparse")
    assert report.iterations == 0
    assert "empty mesh" in caplog.text
