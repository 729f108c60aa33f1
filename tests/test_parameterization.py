import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sample_meshes import (
    annulus,
    bumpy_grid,
    empty_mesh,
    flat_grid,
    octahedron,
    single_triangle,
)

from core.exceptions import FactorizationError, InvalidBoundaryError
from runtime import linear_system
from runtime.parameterization import (
    RECTANGLE_CORNERS,
    BoundaryShape,
    map_boundary_to_circle,
    map_boundary_to_rectangle,
    parameterize,
    rectangle_corner_offsets,
)


def test_boundary_shape_parse():
    assert BoundaryShape.parse("Circle") is BoundaryShape.CIRCLE
    assert BoundaryShape.parse("square") is BoundaryShape.RECTANGLE
    with pytest.raises(ValueError, match="Unknown boundary shape"):
        BoundaryShape.parse("hexagon")


def test_circle_boundary_by_arc_length():
    positions = np.array(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
    )
    uv = map_boundary_to_circle(positions, [0, 1, 2, 3])
    np.testing.assert_allclose(
        uv, [[1.0, 0.0], [0.0, -1.0], [-1.0, 0.0], [0.0, 1.0]], atol=1e-12
    )


def test_rectangle_corner_offsets():
    assert rectangle_corner_offsets(24) == [0, 6, 12, 18]
    assert rectangle_corner_offsets(7) == [0, 1, 2, 3]


def test_rectangle_boundary_pins_corners():
    positions = np.zeros((10, 3))
    positions[:, 0] = np.arange(10)
    uv = map_boundary_to_rectangle(positions, list(range(10)))
    for k, offset in enumerate(rectangle_corner_offsets(10)):
        np.testing.assert_allclose(uv[offset], RECTANGLE_CORNERS[k])
    on_edge = np.min(np.column_stack([uv, 1.0 - uv]), axis=1)
    np.testing.assert_allclose(on_edge, 0.0, atol=1e-12)


def test_rectangle_needs_four_boundary_vertices():
    with pytest.raises(InvalidBoundaryError):
        parameterize(single_triangle(), "rectangle")


def test_circle_parameterization_of_grid():
    mesh = flat_grid(6)
    result = parameterize(mesh, BoundaryShape.CIRCLE)
    loop = result.boundary_loop
    assert len(loop) == 24
    np.testing.assert_allclose(np.linalg.norm(result.raw_uv[loop], axis=1), 1.0)
    np.testing.assert_allclose(result.raw_uv[loop[0]], [1.0, 0.0])
    inner = mesh.interior_mask
    assert np.all(np.linalg.norm(result.raw_uv[inner], axis=1) < 1.0)
    assert mesh.texcoords is result.texcoords
    assert np.all((mesh.texcoords >= 0.0) & (mesh.texcoords <= 1.0))


def test_rectangle_parameterization_reproduces_flat_grid():
    mesh = flat_grid(6)
    result = parameterize(mesh, "rectangle")
    offsets = rectangle_corner_offsets(len(result.boundary_loop))
    for k, offset in enumerate(offsets):
        np.testing.assert_allclose(
            mesh.texcoords[result.boundary_loop[offset]], RECTANGLE_CORNERS[k]
        )
    # a planar grid is already harmonic, so the map is the identity
    np.testing.assert_allclose(mesh.texcoords, mesh.positions[:, :2], atol=1e-9)


def test_bumpy_surface_gets_valid_texcoords():
    mesh = bumpy_grid()
    before = mesh.positions.copy()
    parameterize(mesh, "circle")
    assert mesh.texcoords.shape == (mesh.n_vertices, 2)
    assert np.all(np.isfinite(mesh.texcoords))
    np.testing.assert_array_equal(mesh.positions, before)


def test_flatten_replaces_positions():
    mesh = bumpy_grid()
    result = parameterize(mesh, "circle", flatten=True)
    np.testing.assert_allclose(mesh.positions[:, 2], 0.0)
    extent = mesh.positions[:, :2].max(axis=0) - mesh.positions[:, :2].min(axis=0)
    assert extent.max() == pytest.approx(2.0)
    radii = np.linalg.norm(mesh.positions[result.boundary_loop, :2], axis=1)
    np.testing.assert_allclose(radii, radii[0])
    inner = mesh.interior_mask
    np.testing.assert_allclose(np.abs(mesh.normals[inner, 2]), 1.0, atol=1e-9)


def test_annulus_is_rejected_before_any_change():
    mesh = annulus()
    with pytest.raises(InvalidBoundaryError) as excinfo:
        parameterize(mesh)
    assert excinfo.value.loop_count == 2
    assert mesh.texcoords is None


def test_closed_surface_is_rejected():
    with pytest.raises(InvalidBoundaryError) as excinfo:
        parameterize(octahedron())
    assert excinfo.value.loop_count == 0


def test_factorization_failure_leaves_mesh_untouched(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("Factor is exactly singular")

    monkeypatch.setattr(linear_system.spla, "splu", boom)
    mesh = flat_grid(4)
    before = mesh.positions.copy()
    with pytest.raises(FactorizationError):
        parameterize(mesh, "circle", flatten=True)
    assert mesh.texcoords is None
    np.testing.assert_array_equal(mesh.positions, before)


def test_all_boundary_triangle_maps_onto_circle():
    mesh = single_triangle()
    result = parameterize(mesh, "circle")
    np.testing.assert_allclose(np.linalg.norm(result.raw_uv, axis=1), 1.0)
    assert mesh.texcoords.min() == pytest.approx(0.0)
    assert mesh.texcoords.max() == pytest.approx(1.0)


def test_empty_mesh_returns_empty_result():
    result = parameterize(empty_mesh())
    assert result.boundary_loop == []
    assert result.texcoords.shape == (0, 2)
