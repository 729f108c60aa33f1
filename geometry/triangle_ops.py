"""Vectorized triangle geometry helpers shared by the mesh operators."""

from __future__ import annotations

import numpy as np


def _fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Compute cross products for arrays of 3D vectors."""
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]
    out = np.empty(x.shape + (3,), dtype=x.dtype)
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


def triangle_normals_and_areas(
    positions: np.ndarray, tri_rows: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Return unnormalized triangle normals and triangle areas."""
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]
    normals = _fast_cross(v1 - v0, v2 - v0)
    areas = 0.5 * np.linalg.norm(normals, axis=1)
    return normals, areas


def vertex_unit_normals_from_triangles(
    *,
    n_verts: int,
    tri_rows: np.ndarray,
    tri_normals: np.ndarray,
    eps: float = 1e-12,
) -> np.ndarray:
    """Accumulate triangle normals to vertices and normalize to unit length."""
    normals = np.zeros((n_verts, 3), dtype=float)
    if tri_rows.size == 0:
        return normals
    np.add.at(normals, tri_rows[:, 0], tri_normals)
    np.add.at(normals, tri_rows[:, 1], tri_normals)
    np.add.at(normals, tri_rows[:, 2], tri_normals)
    lens = np.linalg.norm(normals, axis=1)
    mask = lens >= eps
    normals[mask] /= lens[mask][:, None]
    return normals


def triangle_edge_vectors(
    positions: np.ndarray, tri_rows: np.ndarray
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return the edge vectors opposite corners 0, 1 and 2."""
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]
    e0 = v2 - v1  # opposite v0
    e1 = v0 - v2  # opposite v1
    e2 = v1 - v0  # opposite v2
    return e0, e1, e2


def triangle_corner_angles(positions: np.ndarray, tri_rows: np.ndarray) -> np.ndarray:
    """Return the interior angle at each triangle corner, shape ``(M, 3)``.

    ``atan2(|a x b|, a . b)`` stays accurate for nearly flat corners where
    ``arccos`` of a normalized dot product loses precision.
    """
    if tri_rows.size == 0:
        return np.zeros((0, 3), dtype=float)
    e0, e1, e2 = triangle_edge_vectors(positions, tri_rows)
    pairs = ((-e1, e2), (-e2, e0), (-e0, e1))
    angles = np.empty((tri_rows.shape[0], 3), dtype=float)
    for k, (a, b) in enumerate(pairs):
        sin_term = np.linalg.norm(_fast_cross(a, b), axis=1)
        cos_term = np.einsum("ij,ij->i", a, b)
        angles[:, k] = np.arctan2(sin_term, cos_term)
    return angles


def triangle_corner_cotangents(
    positions: np.ndarray, tri_rows: np.ndarray, *, eps: float = 1e-12
) -> tuple[np.ndarray, np.ndarray]:
    """Return per-corner cotangents ``(M, 3)`` and doubled triangle areas.

    Triangles whose doubled area falls below ``eps`` get zero cotangents so
    degenerate faces drop out of every operator built from them.
    """
    if tri_rows.size == 0:
        return np.zeros((0, 3), dtype=float), np.zeros(0, dtype=float)
    e0, e1, e2 = triangle_edge_vectors(positions, tri_rows)
    area_doubled = np.linalg.norm(_fast_cross(e1, e2), axis=1)
    valid = area_doubled > eps
    safe = np.where(valid, area_doubled, 1.0)

    cots = np.empty((tri_rows.shape[0], 3), dtype=float)
    cots[:, 0] = np.einsum("ij,ij->i", -e1, e2) / safe
    cots[:, 1] = np.einsum("ij,ij->i", -e2, e0) / safe
    cots[:, 2] = np.einsum("ij,ij->i", -e0, e1) / safe
    cots[~valid] = 0.0
    return cots, area_doubled
