"""Laplacian-family relaxation toward a minimal surface.

Boundary vertices are always pinned. Local methods update every interior
vertex from the previous iterate (Jacobi style); the sparse method solves one
global harmonic system per axis.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import numpy as np

from core.exceptions import SolverConvergenceError
from geometry.curvature import estimate_curvatures, mixed_voronoi_areas
from geometry.entities import Mesh
from runtime.linear_system import (
    constrained_laplacian_system,
    cotangent_weights,
    uniform_adjacency,
    with_uniform_fallback,
)

logger = logging.getLogger("ddg_engine")

AXES = ("x", "y", "z")


class IterationMethod(Enum):
    UNIFORM_LAPLACIAN = "uniform"
    COTANGENT_WEIGHTS = "cotangent"
    COTANGENT_WITH_AREA = "cotangent_area"
    SPARSE_GLOBAL_SOLVE = "sparse"

    @classmethod
    def parse(cls, value) -> "IterationMethod":
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        key = _METHOD_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(
                f"Unknown iteration method '{value}'; expected one of: {choices}"
            ) from None


_METHOD_ALIASES = {
    "uniform_laplacian": "uniform",
    "umbrella": "uniform",
    "cot": "cotangent",
    "cotangent_weights": "cotangent",
    "cotangent_with_area": "cotangent_area",
    "area": "cotangent_area",
    "sparse_solve": "sparse",
    "sparse_global_solve": "sparse",
    "global": "sparse",
}


@dataclass
class RelaxReport:
    """Summary of one ``relax`` call."""

    method: IterationMethod
    iterations: int = 0
    max_displacement: float = 0.0
    uniform_fallback_vertices: int = 0
    area_weighted_vertices: int = 0
    solver_info: List[int] = field(default_factory=list)


def _uniform_targets(positions: np.ndarray, adjacency) -> np.ndarray:
    degree = np.asarray(adjacency.sum(axis=1)).ravel()
    safe = np.where(degree > 0, degree, 1.0)
    return (adjacency @ positions) / safe[:, None]


def _weighted_targets(positions: np.ndarray, weights) -> np.ndarray:
    totals = np.asarray(weights.sum(axis=1)).ravel()
    safe = np.where(totals > 0, totals, 1.0)
    return (weights @ positions) / safe[:, None]


def _clamped_cotangent_operator(mesh: Mesh, adjacency, eps: float):
    W = cotangent_weights(
        mesh.positions, mesh.faces, n_verts=mesh.n_vertices, eps=eps, clamp=True
    )
    return with_uniform_fallback(W, adjacency, eps=eps)


def _local_step(
    mesh: Mesh,
    method: IterationMethod,
    lam: float,
    adjacency,
    movable: np.ndarray,
    report: RelaxReport,
    *,
    area_threshold: float,
    eps: float,
) -> np.ndarray:
    """Return the next iterate for every vertex (pinned rows unchanged)."""
    positions = mesh.positions
    if method is IterationMethod.UNIFORM_LAPLACIAN:
        delta = lam * (_uniform_targets(positions, adjacency) - positions)
    else:
        W, fallback = _clamped_cotangent_operator(mesh, adjacency, eps)
        report.uniform_fallback_vertices = int(np.count_nonzero(fallback & movable))
        delta = lam * (_weighted_targets(positions, W) - positions)

        if method is IterationMethod.COTANGENT_WITH_AREA:
            areas = mixed_voronoi_areas(
                positions, mesh.faces, n_verts=mesh.n_vertices, eps=eps
            )
            big_enough = areas > 10.0 * eps
            ratio = np.divide(
                lam, areas, out=np.zeros_like(areas), where=big_enough
            )
            area_step = movable & ~fallback & big_enough & (ratio > area_threshold)
            report.area_weighted_vertices = int(np.count_nonzero(area_step))
            if np.any(area_step):
                delta[area_step] /= 4.0 * areas[area_step][:, None]

    delta[~movable] = 0.0
    return positions + delta


def _global_solve(
    mesh: Mesh,
    adjacency,
    movable: np.ndarray,
    report: RelaxReport,
    *,
    eps: float,
    tol: float,
    maxiter: int,
) -> List[str]:
    """Solve the harmonic system per axis; return the axes that failed."""
    W, fallback = _clamped_cotangent_operator(mesh, adjacency, eps)
    report.uniform_fallback_vertices = int(np.count_nonzero(fallback & movable))

    system = constrained_laplacian_system(W, ~movable, mesh.positions)
    solution, infos = system.solve_iterative(
        tol=tol, maxiter=maxiter, x0=mesh.positions
    )
    report.solver_info = infos

    failed = []
    for k, info in enumerate(infos):
        if info != 0:
            failed.append(AXES[k])
            continue
        column = mesh.positions[:, k].copy()
        column[movable] = solution[movable, k]
        shift = np.abs(column - mesh.positions[:, k])
        report.max_displacement = max(report.max_displacement, float(shift.max()))
        mesh.positions[:, k] = column
    return failed


def relax(
    mesh: Mesh,
    iterations: int = 1,
    lam: float = 0.5,
    method=IterationMethod.COTANGENT_WEIGHTS,
    *,
    curvature_kind="mean",
    area_threshold: float = 200.0,
    eps: float = 1e-10,
    tol: float = 1e-10,
    maxiter: int = 2000,
) -> RelaxReport:
    """Relax interior vertex positions with the selected Laplacian.

    Every call ends by refreshing vertex normals and the curvature field of
    ``curvature_kind``. For the sparse method ``iterations`` and ``lam`` are
    ignored; an axis whose solve fails is left untouched and
    ``SolverConvergenceError`` is raised once normals and curvature are
    refreshed.
    """
    method = IterationMethod.parse(method)
    iterations = int(iterations)
    lam = float(lam)
    if iterations < 0:
        raise ValueError(f"iterations must be non-negative, got {iterations}")
    if lam < 0:
        raise ValueError(f"lambda must be non-negative, got {lam}")

    report = RelaxReport(method=method)
    if mesh.is_empty:
        logger.warning("Relax requested on an empty mesh; nothing to do.")
        return report

    movable = mesh.interior_mask
    adjacency = uniform_adjacency(mesh.n_vertices, mesh.faces)
    logger.info(
        "Relaxing %d interior vertices with %s.",
        int(np.count_nonzero(movable)),
        method.value,
    )

    failed: List[str] = []
    if method is IterationMethod.SPARSE_GLOBAL_SOLVE:
        failed = _global_solve(
            mesh, adjacency, movable, report, eps=eps, tol=tol, maxiter=maxiter
        )
        report.iterations = 1
    else:
        for i in range(iterations):
            new_positions = _local_step(
                mesh,
                method,
                lam,
                adjacency,
                movable,
                report,
                area_threshold=area_threshold,
                eps=eps,
            )
            step = float(np.abs(new_positions - mesh.positions).max())
            report.max_displacement = max(report.max_displacement, step)
            mesh.positions[:] = new_positions
            report.iterations = i + 1
            logger.debug("Relax iteration %d: max displacement %.3e", i + 1, step)

    if report.uniform_fallback_vertices:
        logger.debug(
            "%d vertices had no positive cotangent weight; used uniform weights.",
            report.uniform_fallback_vertices,
        )

    mesh.update_normals()
    estimate_curvatures(mesh, curvature_kind, eps=eps)
    logger.info(
        "Relax completed: %d iteration(s), max displacement %.3e.",
        report.iterations,
        report.max_displacement,
    )

    if failed:
        raise SolverConvergenceError(
            failed, info=[i for i in report.solver_info if i != 0]
        )
    return report
