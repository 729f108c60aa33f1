# entities.py

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

import numpy as np

from core.exceptions import MeshTopologyError
from geometry.triangle_ops import (
    triangle_normals_and_areas,
    vertex_unit_normals_from_triangles,
)

logger = logging.getLogger("ddg_engine")


@dataclass
class HalfEdgeArena:
    """Directed half-edges stored as parallel integer arrays.

    Half-edge ``h`` points at vertex ``target[h]`` and belongs to face
    ``face[h]``. Boundary half-edges carry ``face == -1`` and are chained into
    boundary loops through ``next``/``prev``, so every relation is defined for
    every index.
    """

    target: np.ndarray
    face: np.ndarray
    next: np.ndarray
    prev: np.ndarray
    opposite: np.ndarray

    def __len__(self) -> int:
        return int(self.target.size)

    def source(self, h: int) -> int:
        return int(self.target[self.prev[h]])

    def is_boundary(self, h: int) -> bool:
        return bool(self.face[h] < 0)


def build_halfedges(faces: np.ndarray, n_verts: int) -> tuple[HalfEdgeArena, np.ndarray]:
    """Build the half-edge arena and one outgoing half-edge per vertex.

    Raises ``MeshTopologyError`` when a directed edge repeats (non-manifold
    edge or inconsistent orientation) or when a vertex has more than one
    outgoing boundary half-edge (two fans touching at a single vertex).
    """
    n_faces = int(faces.shape[0])
    n_inner = 3 * n_faces

    tails = faces.reshape(-1)
    heads = np.roll(faces, -1, axis=1).reshape(-1)

    directed: dict[tuple[int, int], int] = {}
    for h in range(n_inner):
        key = (int(tails[h]), int(heads[h]))
        if key in directed:
            raise MeshTopologyError(
                f"Directed edge {key} is used by more than one face; the surface "
                "is non-manifold or inconsistently oriented."
            )
        directed[key] = h

    local = np.arange(n_inner) % 3
    base = np.arange(n_inner) - local
    target = list(heads.astype(int))
    face = list(np.repeat(np.arange(n_faces), 3))
    nxt = list(base + (local + 1) % 3)
    prv = list(base + (local + 2) % 3)
    opposite = [-1] * n_inner

    boundary_out: dict[int, int] = {}
    for h in range(n_inner):
        a, b = int(tails[h]), int(heads[h])
        twin = directed.get((b, a))
        if twin is not None:
            opposite[h] = twin
            continue
        # Boundary half-edge b -> a paired with the interior half-edge a -> b.
        bh = len(target)
        target.append(a)
        face.append(-1)
        nxt.append(-1)
        prv.append(-1)
        opposite.append(h)
        opposite[h] = bh
        if b in boundary_out:
            raise MeshTopologyError(
                f"Vertex {b} joins more than one boundary fan; the surface is "
                "non-manifold at that vertex."
            )
        boundary_out[b] = bh

    for tail, bh in boundary_out.items():
        follower = boundary_out.get(target[bh])
        if follower is None:
            raise MeshTopologyError(
                f"Boundary starting at vertex {tail} does not close into a loop."
            )
        nxt[bh] = follower
        prv[follower] = bh

    arena = HalfEdgeArena(
        np.asarray(target, dtype=int),
        np.asarray(face, dtype=int),
        np.asarray(nxt, dtype=int),
        np.asarray(prv, dtype=int),
        np.asarray(opposite, dtype=int),
    )

    vertex_halfedge = np.full(n_verts, -1, dtype=int)
    if n_inner:
        vertex_halfedge[tails] = np.arange(n_inner)
    for tail, bh in boundary_out.items():
        vertex_halfedge[tail] = bh
    return arena, vertex_halfedge


@dataclass
class Mesh:
    """Triangle mesh with half-edge connectivity and per-vertex attributes.

    Connectivity is fixed at construction. Operators mutate ``positions``,
    ``normals``, ``curvature`` and ``texcoords`` in place.
    """

    positions: np.ndarray
    faces: np.ndarray
    normals: Optional[np.ndarray] = None
    curvature: Optional[np.ndarray] = None
    texcoords: Optional[np.ndarray] = None

    halfedges: HalfEdgeArena = field(init=False, repr=False)
    vertex_halfedge: np.ndarray = field(init=False, repr=False)
    boundary_mask: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        self.positions = np.array(self.positions, dtype=float).reshape(-1, 3)
        self.faces = np.array(self.faces, dtype=int).reshape(-1, 3)
        self.validate_triangles()

        n = self.n_vertices
        if self.normals is None:
            self.normals = np.zeros((n, 3), dtype=float)
        else:
            self.normals = np.array(self.normals, dtype=float).reshape(n, 3)
        if self.curvature is None:
            self.curvature = np.zeros(n, dtype=float)
        else:
            self.curvature = np.array(self.curvature, dtype=float).reshape(n)
        if self.texcoords is not None:
            self.texcoords = np.array(self.texcoords, dtype=float).reshape(n, 2)

        self.build_connectivity()

    @property
    def n_vertices(self) -> int:
        return int(self.positions.shape[0])

    @property
    def n_faces(self) -> int:
        return int(self.faces.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.n_vertices == 0 or self.n_faces == 0

    def validate_triangles(self):
        """Check face indices are in range and name three distinct vertices."""
        if self.faces.size == 0:
            return
        if self.faces.min() < 0 or self.faces.max() >= self.n_vertices:
            raise MeshTopologyError(
                f"Face indices must lie in [0, {self.n_vertices}); "
                f"found range [{self.faces.min()}, {self.faces.max()}]."
            )
        f = self.faces
        repeated = (f[:, 0] == f[:, 1]) | (f[:, 1] == f[:, 2]) | (f[:, 0] == f[:, 2])
        if np.any(repeated):
            bad = int(np.flatnonzero(repeated)[0])
            raise MeshTopologyError(f"Face {bad} repeats a vertex: {f[bad].tolist()}")

    def build_connectivity(self):
        self.halfedges, self.vertex_halfedge = build_halfedges(
            self.faces, self.n_vertices
        )
        self.boundary_mask = np.zeros(self.n_vertices, dtype=bool)
        boundary_he = np.flatnonzero(self.halfedges.face < 0)
        if boundary_he.size:
            self.boundary_mask[self.halfedges.target[boundary_he]] = True
        self._check_vertex_fans()
        logger.debug(
            "Built %d half-edges (%d on the boundary) for %d faces.",
            len(self.halfedges),
            int(boundary_he.size),
            self.n_faces,
        )

    def _check_vertex_fans(self):
        """Every outgoing half-edge of a vertex must lie on its single fan."""
        he = self.halfedges
        if len(he) == 0:
            return
        out_degree = np.bincount(he.target[he.prev], minlength=self.n_vertices)
        for v in range(self.n_vertices):
            if self.vertex_halfedge[v] < 0:
                continue
            ring = sum(1 for _ in self.outgoing_halfedges(v))
            if ring != out_degree[v]:
                raise MeshTopologyError(
                    f"Vertex {v} has {out_degree[v]} outgoing half-edges but its "
                    f"fan only reaches {ring}; the surface is non-manifold there."
                )

    def copy(self):
        return Mesh(
            self.positions.copy(),
            self.faces.copy(),
            normals=self.normals.copy(),
            curvature=self.curvature.copy(),
            texcoords=None if self.texcoords is None else self.texcoords.copy(),
        )

    @property
    def boundary_vertex_ids(self) -> np.ndarray:
        return np.flatnonzero(self.boundary_mask)

    @property
    def interior_mask(self) -> np.ndarray:
        """Vertices that are neither on the boundary nor isolated."""
        return (~self.boundary_mask) & (self.vertex_halfedge >= 0)

    def outgoing_halfedges(self, v: int) -> Iterator[int]:
        """Yield the half-edges leaving ``v`` in fan order.

        For a boundary vertex the rotation starts at its outgoing boundary
        half-edge. The walk is bounded by the arena size.
        """
        start = int(self.vertex_halfedge[v])
        if start < 0:
            return
        he = self.halfedges
        h = start
        for _ in range(len(he)):
            yield h
            h = int(he.next[he.opposite[h]])
            if h == start:
                return
        raise MeshTopologyError(f"One-ring walk around vertex {v} did not close.")

    def one_ring(self, v: int) -> List[int]:
        """Neighbour vertex ids of ``v`` in fan order."""
        targets = self.halfedges.target
        return [int(targets[h]) for h in self.outgoing_halfedges(v)]

    def edges(self) -> np.ndarray:
        """Unique undirected edges as sorted ``(i, j)`` rows with ``i < j``."""
        if self.n_faces == 0:
            return np.zeros((0, 2), dtype=int)
        pairs = np.concatenate(
            [self.faces[:, [0, 1]], self.faces[:, [1, 2]], self.faces[:, [2, 0]]]
        )
        pairs.sort(axis=1)
        return np.unique(pairs, axis=0)

    def boundary_loops(self) -> List[List[int]]:
        """Return each boundary loop as an ordered vertex list.

        Every loop starts at its lowest-indexed vertex and follows the boundary
        half-edge direction.
        """
        he = self.halfedges
        boundary_he = np.flatnonzero(he.face < 0)
        visited = np.zeros(len(he), dtype=bool)
        loops: List[List[int]] = []
        for start in boundary_he:
            if visited[start]:
                continue
            loop = []
            h = int(start)
            for _ in range(len(he) + 1):
                if visited[h]:
                    break
                visited[h] = True
                loop.append(he.source(h))
                h = int(he.next[h])
            else:
                raise MeshTopologyError("Boundary loop traversal did not terminate.")
            if h != start:
                raise MeshTopologyError("Boundary loop does not close on itself.")
            pivot = loop.index(min(loop))
            loops.append(loop[pivot:] + loop[:pivot])
        loops.sort(key=lambda lp: lp[0])
        return loops

    def face_normals_and_areas(self) -> tuple[np.ndarray, np.ndarray]:
        return triangle_normals_and_areas(self.positions, self.faces)

    def update_normals(self):
        """Recompute area-weighted unit vertex normals."""
        tri_normals, _ = self.face_normals_and_areas()
        self.normals = vertex_unit_normals_from_triangles(
            n_verts=self.n_vertices, tri_rows=self.faces, tri_normals=tri_normals
        )
        return self.normals

    def compute_total_surface_area(self) -> float:
        _, areas = self.face_normals_and_areas()
        return float(areas.sum())

    def bounding_box(self) -> tuple[np.ndarray, np.ndarray]:
        if self.n_vertices == 0:
            return np.zeros(3), np.zeros(3)
        return self.positions.min(axis=0), self.positions.max(axis=0)

    def __str__(self):
        return (
            f"Mesh with {self.n_vertices} vertices, {self.n_faces} faces, "
            f"{len(self.edges())} edges, {len(self.boundary_loops())} boundary loop(s)"
        )
