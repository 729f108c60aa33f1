import math

import numpy as np

from geometry.entities import Mesh


def hexagon_fan(height: float = 0.0, radius: float = 1.0) -> Mesh:
    """Six triangles around vertex 0, which sits at ``(0, 0, height)``."""
    ring = [
        [radius * math.cos(k * math.pi / 3), radius * math.sin(k * math.pi / 3), 0.0]
        for k in range(6)
    ]
    positions = [[0.0, 0.0, height]] + ring
    faces = [[0, 1 + k, 1 + (k + 1) % 6] for k in range(6)]
    return Mesh(np.array(positions), np.array(faces))


def grid_vertices(n: int, bump: float = 0.0) -> np.ndarray:
    xs = np.linspace(0.0, 1.0, n + 1)
    positions = []
    for y in xs:
        for x in xs:
            z = bump * math.sin(math.pi * x) * math.sin(math.pi * y)
            positions.append([x, y, z])
    return np.array(positions)


def grid_faces(n: int) -> np.ndarray:
    faces = []
    for i in range(n):
        for j in range(n):
            a = i * (n + 1) + j
            b = a + 1
            c = a + (n + 1) + 1
            d = a + (n + 1)
            faces.append([a, b, c])
            faces.append([a, c, d])
    return np.array(faces)


def flat_grid(n: int = 6) -> Mesh:
    """Unit square in the xy-plane split into ``2 n^2`` right triangles."""
    return Mesh(grid_vertices(n), grid_faces(n))


def bumpy_grid(n: int = 8, bump: float = 0.2) -> Mesh:
    """Unit square with a sine bump; the boundary stays at ``z = 0``."""
    return Mesh(grid_vertices(n, bump), grid_faces(n))


def annulus(k: int = 12, inner: float = 0.5, outer: float = 1.0) -> Mesh:
    """Planar ring with two boundary loops."""
    positions = []
    for r in (outer, inner):
        for i in range(k):
            theta = 2.0 * math.pi * i / k
            positions.append([r * math.cos(theta), r * math.sin(theta), 0.0])
    faces = []
    for i in range(k):
        j = (i + 1) % k
        faces.append([i, j, k + j])
        faces.append([i, k + j, k + i])
    return Mesh(np.array(positions), np.array(faces))


def octahedron() -> Mesh:
    positions = [
        [1.0, 0.0, 0.0],
        [-1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, -1.0, 0.0],
        [0.0, 0.0, 1.0],
        [0.0, 0.0, -1.0],
    ]
    faces = [
        [0, 2, 4],
        [2, 1, 4],
        [1, 3, 4],
        [3, 0, 4],
        [2, 0, 5],
        [1, 2, 5],
        [3, 1, 5],
        [0, 3, 5],
    ]
    return Mesh(np.array(positions), np.array(faces))


def icosphere(subdivisions: int = 2, radius: float = 1.0) -> Mesh:
    """Subdivided icosahedron with every vertex projected onto the sphere."""
    t = (1.0 + math.sqrt(5.0)) / 2.0
    verts = [
        [-1, t, 0], [1, t, 0], [-1, -t, 0], [1, -t, 0],
        [0, -1, t], [0, 1, t], [0, -1, -t], [0, 1, -t],
        [t, 0, -1], [t, 0, 1], [-t, 0, -1], [-t, 0, 1],
    ]
    faces = [
        [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
        [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
        [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
        [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
    ]
    verts = [list(np.array(v, dtype=float) / np.linalg.norm(v)) for v in verts]

    for _ in range(subdivisions):
        cache = {}

        def midpoint(a, b):
            key = (min(a, b), max(a, b))
            if key not in cache:
                m = (np.array(verts[a]) + np.array(verts[b])) / 2.0
                verts.append(list(m / np.linalg.norm(m)))
                cache[key] = len(verts) - 1
            return cache[key]

        refined = []
        for a, b, c in faces:
            ab = midpoint(a, b)
            bc = midpoint(b, c)
            ca = midpoint(c, a)
            refined.extend([[a, ab, ca], [b, bc, ab], [c, ca, bc], [ab, bc, ca]])
        faces = refined

    return Mesh(radius * np.array(verts), np.array(faces))


def single_triangle() -> Mesh:
    return Mesh(
        np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]]),
        np.array([[0, 1, 2]]),
    )


def empty_mesh() -> Mesh:
    return Mesh(np.zeros((0, 3)), np.zeros((0, 3), dtype=int))


BOWTIE_POSITIONS = np.array(
    [
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [1.0, 1.0, 0.0],
        [-1.0, 0.0, 0.0],
        [-1.0, -1.0, 0.0],
    ]
)
# Two triangles touching only at vertex 0.
BOWTIE_FACES = np.array([[0, 1, 2], [0, 3, 4]])
