"""Boundary-constrained harmonic parameterization of disk-topology meshes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List

import numpy as np

from core.exceptions import InvalidBoundaryError
from geometry.curvature import estimate_curvatures
from geometry.entities import Mesh
from runtime.linear_system import constrained_laplacian_system, cotangent_weights

logger = logging.getLogger("ddg_engine")

# Square corners in the order the boundary loop visits them (clockwise).
RECTANGLE_CORNERS = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 1.0], [1.0, 0.0]])


class BoundaryShape(Enum):
    CIRCLE = "circle"
    RECTANGLE = "rectangle"

    @classmethod
    def parse(cls, value) -> "BoundaryShape":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key == "square":
            key = "rectangle"
        try:
            return cls(key)
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Unknown boundary shape '{value}'; expected one of: {choices}"
            ) from None


@dataclass
class ParameterizationResult:
    shape: BoundaryShape
    boundary_loop: List[int]
    raw_uv: np.ndarray
    texcoords: np.ndarray


def _cumulative_lengths(points: np.ndarray) -> np.ndarray:
    """Arc length from ``points[0]`` to each point, plus the closing length."""
    steps = np.linalg.norm(np.roll(points, -1, axis=0) - points, axis=1)
    return np.concatenate([[0.0], np.cumsum(steps)])


def map_boundary_to_circle(positions: np.ndarray, loop: List[int]) -> np.ndarray:
    """Place loop vertices on the unit circle by cumulative arc length.

    Boundary loops run against the face winding, so the circle is walked
    clockwise to keep texture triangles oriented like their faces.
    """
    s = _cumulative_lengths(positions[loop])
    total = s[-1]
    if total > 0:
        theta = 2.0 * np.pi * s[:-1] / total
    else:
        theta = 2.0 * np.pi * np.arange(len(loop)) / len(loop)
    return np.column_stack([np.cos(theta), -np.sin(theta)])


def rectangle_corner_offsets(n: int) -> List[int]:
    """Loop offsets of the four corners: runs of n//4, n//4, n//4 and the rest."""
    quarter = n // 4
    return [0, quarter, 2 * quarter, 3 * quarter]


def map_boundary_to_rectangle(positions: np.ndarray, loop: List[int]) -> np.ndarray:
    """Place loop vertices on the unit square's edges.

    Corner vertices are pinned to the exact corners; vertices inside a run
    are spread by arc-length fraction along their side.
    """
    n = len(loop)
    if n < 4:
        raise InvalidBoundaryError(
            1,
            f"Rectangle boundary needs at least 4 boundary vertices, found {n}.",
        )
    s = _cumulative_lengths(positions[loop])
    offsets = rectangle_corner_offsets(n) + [n]
    uv = np.zeros((n, 2), dtype=float)
    for side in range(4):
        start, stop = offsets[side], offsets[side + 1]
        a = RECTANGLE_CORNERS[side]
        b = RECTANGLE_CORNERS[(side + 1) % 4]
        run = s[start : stop + 1] - s[start]
        length = run[-1]
        count = stop - start
        if length > 0:
            t = run[:-1] / length
        else:
            t = np.arange(count) / count
        uv[start:stop] = a + t[:, None] * (b - a)
    return uv


def map_boundary(positions: np.ndarray, loop: List[int], shape: BoundaryShape) -> np.ndarray:
    if shape is BoundaryShape.CIRCLE:
        return map_boundary_to_circle(positions, loop)
    return map_boundary_to_rectangle(positions, loop)


def _normalize_unit_box(uv: np.ndarray, used: np.ndarray, eps: float) -> np.ndarray:
    lo = uv[used].min(axis=0)
    span = uv[used].max(axis=0) - lo
    span = np.where(span > eps, span, 1.0)
    tex = (uv - lo) / span
    tex[~used] = 0.0
    return np.clip(tex, 0.0, 1.0)


def _flatten_into_positions(mesh: Mesh, uv: np.ndarray, used: np.ndarray):
    lo = uv[used].min(axis=0)
    hi = uv[used].max(axis=0)
    center = 0.5 * (lo + hi)
    extent = float((hi - lo).max())
    scale = 2.0 / extent if extent > 0 else 1.0
    flat = np.zeros_like(mesh.positions)
    flat[:, :2] = (uv - center) * scale
    flat[~used] = mesh.positions[~used]
    mesh.positions[:] = flat


def parameterize(
    mesh: Mesh,
    shape=BoundaryShape.CIRCLE,
    *,
    flatten: bool = False,
    curvature_kind="mean",
    eps: float = 1e-10,
) -> ParameterizationResult:
    """Compute texture coordinates in [0, 1]^2 for a disk-topology mesh.

    The boundary loop is mapped to ``shape`` and the interior follows from
    one cotangent-weighted harmonic system factorized once for both axes.
    Nothing on the mesh changes unless the solve succeeds.
    """
    shape = BoundaryShape.parse(shape)
    if mesh.is_empty:
        logger.warning("Parameterization requested on an empty mesh; nothing to do.")
        return ParameterizationResult(shape, [], np.zeros((0, 2)), np.zeros((0, 2)))

    loops = mesh.boundary_loops()
    if len(loops) != 1:
        raise InvalidBoundaryError(len(loops))
    loop = loops[0]

    n = mesh.n_vertices
    boundary_uv = map_boundary(mesh.positions, loop, shape)
    fixed = ~mesh.interior_mask
    fixed_values = np.zeros((n, 2), dtype=float)
    fixed_values[loop] = boundary_uv

    W = cotangent_weights(mesh.positions, mesh.faces, n_verts=n, eps=eps)
    system = constrained_laplacian_system(W, fixed, fixed_values)
    logger.info(
        "Parameterizing %d vertices (%d on the %s boundary).",
        n,
        len(loop),
        shape.value,
    )
    raw_uv = system.solve_direct()
    raw_uv[fixed] = fixed_values[fixed]

    used = mesh.vertex_halfedge >= 0
    texcoords = _normalize_unit_box(raw_uv, used, eps)
    mesh.texcoords = texcoords

    if flatten:
        _flatten_into_positions(mesh, raw_uv, used)
        mesh.update_normals()
        estimate_curvatures(mesh, curvature_kind, eps=eps)
        logger.info("Flattened mesh onto its parameter domain.")

    return ParameterizationResult(shape, loop, raw_uv, texcoords)
