"""Sparse Laplacian operators and solves shared by smoothing and parameterization."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as spla

from core.exceptions import FactorizationError
from geometry.triangle_ops import triangle_corner_cotangents

logger = logging.getLogger("ddg_engine")


def _edge_triplets(tri_rows: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Rows/cols for both directions of the edge opposite each corner.

    Block k of the result holds the edge opposite corner k, so per-corner data
    laid out as ``[c0, c1, c2, c0, c1, c2]`` lines up with it.
    """
    rows = np.concatenate(
        [tri_rows[:, 1], tri_rows[:, 2], tri_rows[:, 0],
         tri_rows[:, 2], tri_rows[:, 0], tri_rows[:, 1]]
    )
    cols = np.concatenate(
        [tri_rows[:, 2], tri_rows[:, 0], tri_rows[:, 1],
         tri_rows[:, 1], tri_rows[:, 2], tri_rows[:, 0]]
    )
    return rows, cols


def uniform_adjacency(n_verts: int, tri_rows: np.ndarray) -> sparse.csr_matrix:
    """Binary symmetric vertex adjacency matrix."""
    rows, cols = _edge_triplets(tri_rows)
    A = sparse.coo_matrix(
        (np.ones(len(rows)), (rows, cols)), shape=(n_verts, n_verts)
    ).tocsr()
    A.sum_duplicates()
    A.data[:] = 1.0
    return A


def cotangent_weights(
    positions: np.ndarray,
    tri_rows: np.ndarray,
    *,
    n_verts: int,
    eps: float = 1e-10,
    clamp: bool = False,
) -> sparse.csr_matrix:
    """Symmetric matrix of edge weights ``w_ij = cot a_ij + cot b_ij``.

    Boundary edges carry a single cotangent. With ``clamp`` negative weights
    are dropped to zero and removed from the sparsity pattern.
    """
    cots, _ = triangle_corner_cotangents(positions, tri_rows, eps=eps)
    rows, cols = _edge_triplets(tri_rows)
    data = np.concatenate([cots[:, 0], cots[:, 1], cots[:, 2]] * 2)
    W = sparse.coo_matrix((data, (rows, cols)), shape=(n_verts, n_verts)).tocsr()
    W.sum_duplicates()
    if clamp:
        W.data = np.where(W.data > 0.0, W.data, 0.0)
    W.eliminate_zeros()
    return W


def with_uniform_fallback(
    weights: sparse.csr_matrix,
    adjacency: sparse.csr_matrix,
    *,
    eps: float = 1e-10,
) -> Tuple[sparse.csr_matrix, np.ndarray]:
    """Replace rows whose weight sum is not positive by adjacency rows.

    Returns the patched matrix and the mask of rows that fell back.
    """
    row_sums = np.asarray(weights.sum(axis=1)).ravel()
    degree = np.asarray(adjacency.sum(axis=1)).ravel()
    fallback = (row_sums <= eps) & (degree > 0)
    if not np.any(fallback):
        return weights, fallback
    keep = sparse.diags((~fallback).astype(float))
    swap = sparse.diags(fallback.astype(float))
    patched = (keep @ weights + swap @ adjacency).tocsr()
    patched.eliminate_zeros()
    return patched, fallback


@dataclass
class LinearSystem:
    """Sparse square system ``matrix @ x = rhs`` with one column per axis."""

    matrix: sparse.csr_matrix
    rhs: np.ndarray

    @property
    def size(self) -> int:
        return int(self.matrix.shape[0])

    def solve_direct(self) -> np.ndarray:
        """Solve every right-hand side with one sparse LU factorization."""
        try:
            lu = spla.splu(self.matrix.tocsc())
        except RuntimeError as exc:
            raise FactorizationError(
                f"Sparse LU factorization failed: {exc}", size=self.size
            ) from exc
        solution = lu.solve(np.asarray(self.rhs, dtype=float))
        if not np.all(np.isfinite(solution)):
            raise FactorizationError(
                "Sparse LU solve produced non-finite values.", size=self.size
            )
        return solution

    def solve_iterative(
        self,
        *,
        tol: float = 1e-10,
        maxiter: int = 2000,
        x0: Optional[np.ndarray] = None,
    ) -> Tuple[np.ndarray, List[int]]:
        """Solve each column with BiCGSTAB and a Jacobi preconditioner.

        Returns the solution columns and the solver ``info`` code per column;
        a column is usable only when its code is 0. The residual target is
        ``tol * max(|b|, 1)``; a column whose true residual meets it counts as
        converged whatever BiCGSTAB reported.
        """
        rhs = np.asarray(self.rhs, dtype=float)
        diag = self.matrix.diagonal()
        safe = np.where(np.abs(diag) > 0.0, diag, 1.0)
        M = sparse.diags(1.0 / safe)

        solution = np.zeros_like(rhs)
        infos: List[int] = []
        for k in range(rhs.shape[1]):
            b = rhs[:, k]
            target = tol * max(float(np.linalg.norm(b)), 1.0)
            guess = None if x0 is None else x0[:, k]
            x, info = spla.bicgstab(
                self.matrix, b, x0=guess, rtol=tol, atol=target,
                maxiter=maxiter, M=M,
            )
            if not np.all(np.isfinite(x)):
                info = -1
            elif info != 0 and self.residual(x, k) <= target:
                logger.debug(
                    "BiCGSTAB column %d returned info=%d but meets the residual target.",
                    k,
                    info,
                )
                info = 0
            if info != 0:
                logger.debug("BiCGSTAB column %d returned info=%d", k, info)
            solution[:, k] = x
            infos.append(int(info))
        return solution, infos

    def residual(self, x: np.ndarray, column: int = 0) -> float:
        """Euclidean norm of ``matrix @ x - rhs[:, column]``."""
        rhs = np.asarray(self.rhs, dtype=float).reshape(self.size, -1)
        return float(np.linalg.norm(self.matrix @ x - rhs[:, column]))


def constrained_laplacian_system(
    weights: sparse.csr_matrix,
    fixed_mask: np.ndarray,
    fixed_values: np.ndarray,
) -> LinearSystem:
    """Assemble ``sum_j w_ij (x_j - x_i) = 0`` with identity rows for fixed vertices.

    ``fixed_values`` holds one column per axis; free rows get a zero
    right-hand side.
    """
    n = weights.shape[0]
    fixed_mask = np.asarray(fixed_mask, dtype=bool)
    row_sums = np.asarray(weights.sum(axis=1)).ravel()
    L = (weights - sparse.diags(row_sums)).tocsr()

    free = sparse.diags((~fixed_mask).astype(float))
    pin = sparse.diags(fixed_mask.astype(float))
    A = (free @ L + pin).tocsr()
    A.eliminate_zeros()

    values = np.asarray(fixed_values, dtype=float).reshape(n, -1)
    rhs = np.where(fixed_mask[:, None], values, 0.0)
    return LinearSystem(A, rhs)
