# geometry/curvature.py
"""Per-vertex discrete curvature.

References: Meyer et al. (2003) 'Discrete Differential-Geometry Operators for
Triangulated 2-Manifolds'.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import numpy as np

from geometry.entities import Mesh
from geometry.triangle_ops import (
    triangle_corner_angles,
    triangle_corner_cotangents,
    triangle_edge_vectors,
)

logger = logging.getLogger("ddg_engine")


class CurvatureKind(Enum):
    GAUSSIAN = "gaussian"
    MEAN = "mean"
    # Gaussian + mean; a cheap stand-in for the larger principal curvature.
    MAX = "max"

    @classmethod
    def parse(cls, value) -> "CurvatureKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(k.value for k in cls)
            raise ValueError(
                f"Unknown curvature kind '{value}'; expected one of: {choices}"
            ) from None


@dataclass
class CurvatureFields:
    """Raw (un-normalized) curvature quantities for every vertex."""

    gaussian: np.ndarray
    mean: np.ndarray
    max: np.ndarray
    mixed_area: np.ndarray
    mean_curvature_normal: np.ndarray
    interior: np.ndarray

    def select(self, kind: CurvatureKind) -> np.ndarray:
        if kind is CurvatureKind.GAUSSIAN:
            return self.gaussian
        if kind is CurvatureKind.MEAN:
            return self.mean
        return self.max


def mixed_voronoi_areas(
    positions: np.ndarray,
    tri_rows: np.ndarray,
    *,
    n_verts: int,
    eps: float = 1e-10,
) -> np.ndarray:
    """Mixed Voronoi area of every vertex.

    Non-obtuse triangles contribute the Voronoi region through cotangents;
    obtuse triangles give half their area to the obtuse corner and a quarter
    to each of the other two. Degenerate triangles contribute nothing.
    """
    vertex_areas = np.zeros(n_verts, dtype=float)
    if tri_rows.size == 0:
        return vertex_areas

    cots, area_doubled = triangle_corner_cotangents(positions, tri_rows, eps=eps)
    c0, c1, c2 = cots[:, 0], cots[:, 1], cots[:, 2]
    e0, e1, e2 = triangle_edge_vectors(positions, tri_rows)
    l0_sq = np.einsum("ij,ij->i", e0, e0)
    l1_sq = np.einsum("ij,ij->i", e1, e1)
    l2_sq = np.einsum("ij,ij->i", e2, e2)
    tri_areas = np.where(area_doubled > eps, 0.5 * area_doubled, 0.0)

    # cot < 0 means the corner angle exceeds 90 degrees
    is_obtuse_v0 = c0 < 0
    is_obtuse_v1 = c1 < 0
    is_obtuse_v2 = c2 < 0
    any_obtuse = is_obtuse_v0 | is_obtuse_v1 | is_obtuse_v2

    va0 = np.where(~any_obtuse, (l1_sq * c1 + l2_sq * c2) / 8.0, 0.0)
    va1 = np.where(~any_obtuse, (l2_sq * c2 + l0_sq * c0) / 8.0, 0.0)
    va2 = np.where(~any_obtuse, (l0_sq * c0 + l1_sq * c1) / 8.0, 0.0)

    va0 = np.where(is_obtuse_v0, tri_areas / 2.0, va0)
    va0 = np.where(is_obtuse_v1 | is_obtuse_v2, tri_areas / 4.0, va0)

    va1 = np.where(is_obtuse_v1, tri_areas / 2.0, va1)
    va1 = np.where(is_obtuse_v0 | is_obtuse_v2, tri_areas / 4.0, va1)

    va2 = np.where(is_obtuse_v2, tri_areas / 2.0, va2)
    va2 = np.where(is_obtuse_v0 | is_obtuse_v1, tri_areas / 4.0, va2)

    np.add.at(vertex_areas, tri_rows[:, 0], va0)
    np.add.at(vertex_areas, tri_rows[:, 1], va1)
    np.add.at(vertex_areas, tri_rows[:, 2], va2)
    return vertex_areas


def vertex_angle_sums(
    positions: np.ndarray, tri_rows: np.ndarray, *, n_verts: int
) -> np.ndarray:
    """Sum of incident face angles at each vertex."""
    sums = np.zeros(n_verts, dtype=float)
    if tri_rows.size == 0:
        return sums
    angles = triangle_corner_angles(positions, tri_rows)
    np.add.at(sums, tri_rows[:, 0], angles[:, 0])
    np.add.at(sums, tri_rows[:, 1], angles[:, 1])
    np.add.at(sums, tri_rows[:, 2], angles[:, 2])
    return sums


def cotangent_laplacian_sums(
    positions: np.ndarray, tri_rows: np.ndarray, *, n_verts: int, eps: float = 1e-10
) -> np.ndarray:
    """Return ``sum_j (cot a_ij + cot b_ij) (p_i - p_j)`` for every vertex."""
    sums = np.zeros((n_verts, 3), dtype=float)
    if tri_rows.size == 0:
        return sums
    cots, _ = triangle_corner_cotangents(positions, tri_rows, eps=eps)
    e0, e1, e2 = triangle_edge_vectors(positions, tri_rows)
    c0 = cots[:, [0]]
    c1 = cots[:, [1]]
    c2 = cots[:, [2]]
    # The cotangent at each corner weights the opposite edge.
    np.add.at(sums, tri_rows[:, 0], c1 * e1 - c2 * e2)
    np.add.at(sums, tri_rows[:, 1], c2 * e2 - c0 * e0)
    np.add.at(sums, tri_rows[:, 2], c0 * e0 - c1 * e1)
    return sums


def compute_curvature_fields(mesh: Mesh, *, eps: float = 1e-10) -> CurvatureFields:
    """Compute raw Gaussian, mean and max curvature for every vertex.

    Boundary and isolated vertices, and vertices whose mixed area is below
    ``eps``, get zero for every field.
    """
    n = mesh.n_vertices
    positions = mesh.positions
    tri_rows = mesh.faces

    areas = mixed_voronoi_areas(positions, tri_rows, n_verts=n, eps=eps)
    angle_sums = vertex_angle_sums(positions, tri_rows, n_verts=n)
    lap = cotangent_laplacian_sums(positions, tri_rows, n_verts=n, eps=eps)

    interior = mesh.interior_mask
    usable = interior & (areas > eps)
    safe_areas = np.where(usable, areas, 1.0)

    gaussian = np.where(usable, (2.0 * np.pi - angle_sums) / safe_areas, 0.0)
    h_vec = np.where(usable[:, None], lap / (2.0 * safe_areas[:, None]), 0.0)
    mean = 0.5 * np.linalg.norm(h_vec, axis=1)

    skipped = int(np.count_nonzero(interior & ~usable))
    if skipped:
        logger.debug(
            "Curvature: %d interior vertices have near-zero mixed area; using 0.",
            skipped,
        )

    return CurvatureFields(
        gaussian=gaussian,
        mean=mean,
        max=gaussian + mean,
        mixed_area=areas,
        mean_curvature_normal=h_vec,
        interior=interior,
    )


def normalize_interior(
    values: np.ndarray, interior: np.ndarray, *, eps: float = 1e-10
) -> np.ndarray:
    """Min-max rescale interior values to [0, 1]; everything else is 0."""
    out = np.zeros_like(values, dtype=float)
    if not np.any(interior):
        return out
    inner = values[interior]
    lo = float(inner.min())
    span = float(inner.max()) - lo
    if span > eps:
        out[interior] = (inner - lo) / span
    return out


def estimate_curvatures(
    mesh: Mesh, kind, *, eps: float = 1e-10
) -> CurvatureFields:
    """Write normalized curvature of ``kind`` into ``mesh.curvature``.

    Returns the raw fields so callers can inspect un-normalized values.
    """
    kind = CurvatureKind.parse(kind)
    if mesh.is_empty:
        logger.warning("Curvature requested on an empty mesh; nothing to do.")
        zeros = np.zeros(mesh.n_vertices, dtype=float)
        return CurvatureFields(
            zeros,
            zeros.copy(),
            zeros.copy(),
            zeros.copy(),
            np.zeros((mesh.n_vertices, 3)),
            np.zeros(mesh.n_vertices, dtype=bool),
        )

    fields = compute_curvature_fields(mesh, eps=eps)
    mesh.curvature = normalize_interior(fields.select(kind), fields.interior, eps=eps)
    logger.debug(
        "Estimated %s curvature for %d interior vertices.",
        kind.value,
        int(np.count_nonzero(fields.interior)),
    )
    return fields
