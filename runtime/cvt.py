"""Centroidal Voronoi tessellation of a rectangle.

The point set always starts with the four domain corners (bottom-left,
bottom-right, top-left, top-right); they anchor the triangulation and are
never relaxed. Voronoi cells are derived from the Delaunay triangulation,
clipped to the rectangle with Sutherland-Hodgman and indexed by site.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial import Delaunay

logger = logging.getLogger("ddg_engine")

N_CORNERS = 4


@dataclass(frozen=True)
class DomainRect:
    left: float = -1.0
    right: float = 1.0
    bottom: float = -1.0
    top: float = 1.0

    def __post_init__(self):
        if not (self.right > self.left and self.top > self.bottom):
            raise ValueError(f"Degenerate domain rectangle: {self}")

    @classmethod
    def default(cls) -> "DomainRect":
        return cls()

    @classmethod
    def for_image(
        cls,
        image_width: float,
        image_height: float,
        viewport_width: float,
        viewport_height: float,
    ) -> "DomainRect":
        """Aspect-correct rectangle of an image drawn inside the viewport.

        The rectangle is centred at the origin; the image fills the width
        when it is relatively wider than the viewport and the height
        otherwise.
        """
        if min(image_width, image_height, viewport_width, viewport_height) <= 0:
            raise ValueError("Image and viewport sizes must be positive.")
        aspect = viewport_width / viewport_height
        image_aspect = image_width / image_height
        if image_aspect > aspect:
            width = 2.0 * aspect
            height = width / image_aspect
        else:
            height = 2.0
            width = height * image_aspect
        return cls(-width / 2, width / 2, -height / 2, height / 2)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.top - self.bottom

    @property
    def diagonal(self) -> float:
        return float(np.hypot(self.width, self.height))

    @property
    def center(self) -> np.ndarray:
        return np.array(
            [0.5 * (self.left + self.right), 0.5 * (self.bottom + self.top)]
        )

    def corners(self) -> np.ndarray:
        return np.array(
            [
                [self.left, self.bottom],
                [self.right, self.bottom],
                [self.left, self.top],
                [self.right, self.top],
            ]
        )

    def contains(self, points: np.ndarray, tol: float = 0.0) -> np.ndarray:
        pts = np.atleast_2d(points)
        return (
            (pts[:, 0] >= self.left - tol)
            & (pts[:, 0] <= self.right + tol)
            & (pts[:, 1] >= self.bottom - tol)
            & (pts[:, 1] <= self.top + tol)
        )

    def clamp(self, points: np.ndarray) -> np.ndarray:
        out = np.array(points, dtype=float).reshape(-1, 2)
        out[:, 0] = np.clip(out[:, 0], self.left, self.right)
        out[:, 1] = np.clip(out[:, 1], self.bottom, self.top)
        return out


def load_image_size(path: str) -> Tuple[int, int]:
    """Return ``(width, height)`` of a raster image in pixels."""
    import matplotlib.image as mpimg

    image = mpimg.imread(path)
    height, width = image.shape[:2]
    return int(width), int(height)


def polygon_area_centroid(polygon: np.ndarray) -> Tuple[float, Optional[np.ndarray]]:
    """Signed shoelace area and centroid of an implicitly closed polygon.

    The centroid is ``None`` when the area is exactly zero.
    """
    pts = np.asarray(polygon, dtype=float).reshape(-1, 2)
    if len(pts) < 3:
        return 0.0, None
    x, y = pts[:, 0], pts[:, 1]
    xn, yn = np.roll(x, -1), np.roll(y, -1)
    cross = x * yn - xn * y
    area = 0.5 * float(cross.sum())
    if area == 0.0:
        return 0.0, None
    cx = float(((x + xn) * cross).sum()) / (6.0 * area)
    cy = float(((y + yn) * cross).sum()) / (6.0 * area)
    return area, np.array([cx, cy])


def _dedupe_ring(points: List[np.ndarray], tol: float = 1e-12) -> List[np.ndarray]:
    out: List[np.ndarray] = []
    for p in points:
        if not out or np.max(np.abs(p - out[-1])) > tol:
            out.append(p)
    while len(out) > 1 and np.max(np.abs(out[0] - out[-1])) <= tol:
        out.pop()
    return out


def _clip_half_plane(points, axis: int, bound: float, keep_greater: bool):
    """One Sutherland-Hodgman pass against the line ``p[axis] == bound``."""

    def inside(p):
        return p[axis] >= bound if keep_greater else p[axis] <= bound

    def crossing(p, q):
        t = (bound - p[axis]) / (q[axis] - p[axis])
        hit = p + t * (q - p)
        hit[axis] = bound
        return hit

    out = []
    n = len(points)
    for k in range(n):
        cur = points[k]
        prev = points[k - 1]
        if inside(cur):
            if not inside(prev):
                out.append(crossing(prev, cur))
            out.append(cur)
        elif inside(prev):
            out.append(crossing(prev, cur))
    return out


def clip_polygon_to_rect(polygon: np.ndarray, rect: DomainRect) -> np.ndarray:
    """Clip a convex or concave polygon to ``rect`` edge by edge."""
    points = [np.asarray(p, dtype=float) for p in np.asarray(polygon).reshape(-1, 2)]
    for axis, bound, keep_greater in (
        (0, rect.left, True),
        (0, rect.right, False),
        (1, rect.bottom, True),
        (1, rect.top, False),
    ):
        if not points:
            break
        points = _clip_half_plane(points, axis, bound, keep_greater)
    points = _dedupe_ring(points)
    if not points:
        return np.zeros((0, 2))
    return np.array(points)


def circumcenters(points: np.ndarray, simplices: np.ndarray) -> np.ndarray:
    a = points[simplices[:, 0]]
    b = points[simplices[:, 1]]
    c = points[simplices[:, 2]]
    d = 2.0 * (
        a[:, 0] * (b[:, 1] - c[:, 1])
        + b[:, 0] * (c[:, 1] - a[:, 1])
        + c[:, 0] * (a[:, 1] - b[:, 1])
    )
    a2 = np.einsum("ij,ij->i", a, a)
    b2 = np.einsum("ij,ij->i", b, b)
    c2 = np.einsum("ij,ij->i", c, c)
    ok = np.abs(d) > 1e-300
    safe = np.where(ok, d, 1.0)
    ux = (a2 * (b[:, 1] - c[:, 1]) + b2 * (c[:, 1] - a[:, 1]) + c2 * (a[:, 1] - b[:, 1])) / safe
    uy = (a2 * (c[:, 0] - b[:, 0]) + b2 * (a[:, 0] - c[:, 0]) + c2 * (b[:, 0] - a[:, 0])) / safe
    centers = np.column_stack([ux, uy])
    if not np.all(ok):
        centers[~ok] = (a[~ok] + b[~ok] + c[~ok]) / 3.0
    return centers


@dataclass
class VoronoiCell:
    """Counter-clockwise cell polygon of one site; closure is implicit."""

    site_index: int
    vertices: np.ndarray

    @property
    def is_empty(self) -> bool:
        return len(self.vertices) < 3

    @property
    def area(self) -> float:
        return polygon_area_centroid(self.vertices)[0]

    @property
    def centroid(self) -> Optional[np.ndarray]:
        return polygon_area_centroid(self.vertices)[1]

    def ring(self) -> np.ndarray:
        """Vertices with the first one repeated at the end."""
        if len(self.vertices) == 0:
            return self.vertices
        return np.vstack([self.vertices, self.vertices[:1]])


class CVTEngine:
    """Point set, Delaunay triangulation and clipped Voronoi cells."""

    area_eps = 1e-7

    def __init__(self, domain: Optional[DomainRect] = None, *, rng=None):
        self.domain = domain or DomainRect.default()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.points = np.zeros((0, 2), dtype=float)
        self.triangulation: Optional[Delaunay] = None
        self.cells: List[VoronoiCell] = []
        self._cells_valid = False

    @property
    def is_empty(self) -> bool:
        return len(self.points) == 0

    @property
    def n_sites(self) -> int:
        return len(self.points)

    @property
    def interior_points(self) -> np.ndarray:
        return self.points[N_CORNERS:]

    @property
    def cells_valid(self) -> bool:
        return self._cells_valid

    def generate_random_points(self, n: int) -> np.ndarray:
        """Reset to the domain corners plus ``n`` uniform samples."""
        n = int(n)
        if n < 0:
            raise ValueError(f"Point count must be non-negative, got {n}")
        d = self.domain
        samples = np.column_stack(
            [
                self.rng.uniform(d.left, d.right, n),
                self.rng.uniform(d.bottom, d.top, n),
            ]
        )
        self._replace_points(samples)
        logger.info("Generated %d random sites inside %s.", n, self.domain)
        return self.points

    def set_points(self, interior: np.ndarray) -> np.ndarray:
        """Use explicit interior sites; corners come from the domain."""
        interior = np.asarray(interior, dtype=float).reshape(-1, 2)
        outside = ~self.domain.contains(interior)
        if np.any(outside):
            raise ValueError(
                f"{int(outside.sum())} site(s) lie outside the domain {self.domain}."
            )
        self._replace_points(interior)
        return self.points

    def set_domain(self, domain: DomainRect) -> None:
        """Move the corners to ``domain`` and clamp existing sites into it."""
        self.domain = domain
        if self.is_empty:
            return
        self._replace_points(domain.clamp(self.interior_points))
        logger.info("CVT domain set to %s.", domain)

    def _replace_points(self, interior: np.ndarray) -> None:
        self.points = np.vstack([self.domain.corners(), interior])
        self.rebuild_triangulation()

    def rebuild_triangulation(self) -> None:
        self._cells_valid = False
        self.cells = []
        if self.is_empty:
            self.triangulation = None
            return
        self.triangulation = Delaunay(self.points)

    def delaunay_edges(self, include_corners: bool = True) -> np.ndarray:
        """Unique triangulation edges as sorted ``(i, j)`` rows."""
        if self.triangulation is None:
            return np.zeros((0, 2), dtype=int)
        s = self.triangulation.simplices
        pairs = np.concatenate([s[:, [0, 1]], s[:, [1, 2]], s[:, [2, 0]]])
        pairs.sort(axis=1)
        edges = np.unique(pairs, axis=0)
        if not include_corners:
            edges = edges[(edges >= N_CORNERS).all(axis=1)]
        return edges

    def _site_fans(self) -> List[List[int]]:
        fans: List[List[int]] = [[] for _ in range(self.n_sites)]
        for t, simplex in enumerate(self.triangulation.simplices):
            for v in simplex:
                fans[int(v)].append(t)
        return fans

    def _walk_site(self, site: int, incident: List[int], centers: np.ndarray):
        """Collect circumcentres around ``site`` by crossing shared edges.

        Returns the ordered centres plus the far points closing an unbounded
        cell (empty for interior sites).
        """
        simplices = self.triangulation.simplices
        neighbors = self.triangulation.neighbors

        def local(t, v):
            return int(np.flatnonzero(simplices[t] == v)[0])

        def others(t):
            return [int(v) for v in simplices[t] if v != site]

        # Prefer entering through a hull edge so open fans are walked whole.
        start_t, start_in = incident[0], others(incident[0])[0]
        hull_start = False
        for t in incident:
            for w in others(t):
                third = [u for u in others(t) if u != w][0]
                if neighbors[t][local(t, third)] == -1:
                    start_t, start_in, hull_start = t, w, True
                    break
            if hull_start:
                break

        ordered: List[int] = []
        t, w_in = start_t, start_in
        end_edge = None
        for _ in range(len(incident) + 1):
            ordered.append(t)
            w_out = [u for u in others(t) if u != w_in][0]
            nb = int(neighbors[t][local(t, w_in)])
            if nb == -1:
                end_edge = (t, w_out)
                break
            t, w_in = nb, w_out
            if t == start_t:
                break

        ring = [centers[t] for t in ordered]
        if not hull_start:
            return ring
        start_edge = (start_t, start_in)
        return (
            [self._far_point(site, *start_edge, centers)]
            + ring
            + [self._far_point(site, *end_edge, centers)]
        )

    def _far_point(self, site: int, t: int, w: int, centers: np.ndarray) -> np.ndarray:
        """Point far along the outward Voronoi ray of hull edge (site, w)."""
        p = self.points[site]
        q = self.points[w]
        third = [int(v) for v in self.triangulation.simplices[t] if v not in (site, w)][0]
        edge = q - p
        normal = np.array([edge[1], -edge[0]])
        normal /= np.linalg.norm(normal)
        if np.dot(normal, self.points[third] - p) > 0:
            normal = -normal
        center = centers[t]
        reach = 10.0 * self.domain.diagonal + np.linalg.norm(center - self.domain.center)
        return center + reach * normal

    def compute_voronoi(self) -> List[VoronoiCell]:
        """Rebuild one clipped cell per site from the current triangulation."""
        if self.triangulation is None:
            logger.warning("Voronoi requested with no sites; nothing to do.")
            return []

        centers = circumcenters(self.points, self.triangulation.simplices)
        fans = self._site_fans()
        cells: List[VoronoiCell] = []
        for site in range(self.n_sites):
            incident = fans[site]
            if not incident:
                # Duplicate sites are dropped by the triangulation.
                cells.append(VoronoiCell(site, np.zeros((0, 2))))
                continue
            ring = _dedupe_ring(self._walk_site(site, incident, centers))
            polygon = np.array(ring)
            if len(polygon) >= 3 and polygon_area_centroid(polygon)[0] < 0:
                polygon = polygon[::-1]
            cells.append(VoronoiCell(site, clip_polygon_to_rect(polygon, self.domain)))

        self.cells = cells
        self._cells_valid = True
        logger.debug("Computed %d Voronoi cells.", len(cells))
        return cells

    def lloyd_relax(self, iterations: int = 1) -> float:
        """Move every non-corner site to its cell centroid ``iterations`` times.

        Returns the centroid residual of the final diagram.
        """
        iterations = int(iterations)
        if iterations < 0:
            raise ValueError(f"iterations must be non-negative, got {iterations}")
        if self.is_empty:
            logger.warning("Lloyd relaxation requested with no sites; nothing to do.")
            return 0.0

        for it in range(iterations):
            if not self._cells_valid:
                self.compute_voronoi()
            new_points = self.points.copy()
            moved = 0
            for i in range(N_CORNERS, self.n_sites):
                area, centroid = polygon_area_centroid(self.cells[i].vertices)
                if abs(area) <= self.area_eps or centroid is None:
                    continue
                new_points[i] = centroid
                moved += 1
            self.points = new_points
            self.rebuild_triangulation()
            self.compute_voronoi()
            logger.debug("Lloyd iteration %d moved %d sites.", it + 1, moved)

        residual = self.centroid_residual()
        logger.info(
            "Lloyd relaxation: %d iteration(s), centroid residual %.3e.",
            iterations,
            residual,
        )
        return residual

    def centroid_residual(self) -> float:
        """Sum of squared distances from non-corner sites to their centroids."""
        if self.is_empty:
            return 0.0
        if not self._cells_valid:
            self.compute_voronoi()
        total = 0.0
        for i in range(N_CORNERS, self.n_sites):
            area, centroid = polygon_area_centroid(self.cells[i].vertices)
            if abs(area) <= self.area_eps or centroid is None:
                continue
            total += float(np.sum((self.points[i] - centroid) ** 2))
        return total

    def cvt_energy(self) -> float:
        """Sum over cells of the integral of ``|x - site|^2`` over the cell."""
        if self.is_empty:
            return 0.0
        if not self._cells_valid:
            self.compute_voronoi()
        energy = 0.0
        for cell in self.cells:
            if cell.is_empty:
                continue
            a = cell.vertices - self.points[cell.site_index]
            b = np.roll(a, -1, axis=0)
            tri_area = 0.5 * (a[:, 0] * b[:, 1] - a[:, 1] * b[:, 0])
            second = (
                np.einsum("ij,ij->i", a, a)
                + np.einsum("ij,ij->i", b, b)
                + np.einsum("ij,ij->i", a, b)
            )
            energy += float(np.sum(tri_area * second) / 6.0)
        return energy
