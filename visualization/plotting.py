import logging

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.collections import LineCollection, PolyCollection
from mpl_toolkits.mplot3d.art3d import Line3DCollection, Poly3DCollection

from geometry.entities import Mesh
from runtime.cvt import CVTEngine

logger = logging.getLogger("ddg_engine")


def plot_mesh(
    mesh: Mesh,
    *,
    ax=None,
    color_by_curvature: bool = True,
    draw_edges: bool = False,
    cmap: str = "viridis",
    no_axes: bool = False,
    show: bool = True,
):
    """
    Visualize a mesh in 3D, coloured by its normalized curvature field.

    Parameters
    ----------
    mesh :
        The :class:`~geometry.entities.Mesh` to draw.
    ax : mpl_toolkits.mplot3d.Axes3D, optional
        Axis to draw into. A new figure and 3D axis are created if omitted.
    color_by_curvature : bool, optional
        Colour each face by the mean of its vertices' ``mesh.curvature``
        values (already in [0, 1]). Otherwise faces are light blue.
    draw_edges : bool, optional
        Draw the unique edge list as a wireframe overlay.
    show : bool, optional
        Call :func:`matplotlib.pyplot.show` after drawing. Pass ``False``
        to save the figure or when running headless.

    Returns the axis, or ``None`` when the mesh is empty.
    """
    if mesh.is_empty:
        logger.warning("Mesh has no faces to visualize.")
        return None

    if ax is None:
        fig = plt.figure()
        ax = fig.add_subplot(111, projection="3d")

    positions = mesh.positions
    triangles = positions[mesh.faces]
    if color_by_curvature:
        face_values = mesh.curvature[mesh.faces].mean(axis=1)
        face_colors = matplotlib.colormaps[cmap](face_values)
    else:
        face_colors = [(0.6, 0.8, 1.0, 1.0)] * len(triangles)

    tri_collection = Poly3DCollection(
        list(triangles),
        edgecolor="k" if draw_edges else "none",
        linewidths=0.3 if draw_edges else 0.0,
    )
    tri_collection.set_facecolor(face_colors)
    ax.add_collection3d(tri_collection)

    if draw_edges:
        segments = positions[mesh.edges()]
        ax.add_collection3d(Line3DCollection(list(segments), colors="k", linewidths=0.3))

    ax.set_xlabel("X")
    ax.set_ylabel("Y")
    ax.set_zlabel("Z")
    ax.set_title("Curvature" if color_by_curvature else "Mesh")

    lo, hi = mesh.bounding_box()
    mid = 0.5 * (lo + hi)
    max_range = float((hi - lo).max()) or 1.0
    ax.set_xlim(mid[0] - max_range / 2, mid[0] + max_range / 2)
    ax.set_ylim(mid[1] - max_range / 2, mid[1] + max_range / 2)
    ax.set_zlim(mid[2] - max_range / 2, mid[2] + max_range / 2)

    if no_axes:
        ax.set_axis_off()

    plt.tight_layout()

    if show:
        plt.show()
    return ax


def plot_parameterization(mesh: Mesh, *, ax=None, show: bool = True):
    """Draw the texture-coordinate layout in the unit square."""
    if mesh.texcoords is None:
        logger.warning("Mesh has no texture coordinates to visualize.")
        return None

    if ax is None:
        _, ax = plt.subplots()

    uv = mesh.texcoords
    ax.triplot(uv[:, 0], uv[:, 1], mesh.faces, color="k", linewidth=0.4)
    boundary = mesh.boundary_vertex_ids
    if boundary.size:
        ax.scatter(uv[boundary, 0], uv[boundary, 1], color="r", s=6)
    ax.set_xlim(-0.05, 1.05)
    ax.set_ylim(-0.05, 1.05)
    ax.set_aspect("equal")
    ax.set_title("Parameterization (u, v)")

    if show:
        plt.show()
    return ax


def plot_cvt(
    engine: CVTEngine,
    *,
    ax=None,
    draw_delaunay: bool = True,
    draw_voronoi: bool = True,
    include_corner_edges: bool = False,
    show: bool = True,
):
    """Draw sites, the Delaunay wireframe and the clipped Voronoi cells."""
    if engine.is_empty:
        logger.warning("CVT engine has no sites to visualize.")
        return None

    if ax is None:
        _, ax = plt.subplots()

    d = engine.domain
    ax.add_patch(
        plt.Rectangle(
            (d.left, d.bottom), d.width, d.height, fill=False, edgecolor="0.5"
        )
    )

    if draw_voronoi:
        if not engine.cells_valid:
            engine.compute_voronoi()
        polygons = [cell.vertices for cell in engine.cells if not cell.is_empty]
        ax.add_collection(
            PolyCollection(polygons, facecolors="none", edgecolors="tab:blue", linewidths=1.0)
        )

    if draw_delaunay:
        edges = engine.delaunay_edges(include_corners=include_corner_edges)
        if len(edges):
            segments = engine.points[edges]
            ax.add_collection(LineCollection(segments, colors="0.6", linewidths=0.6))

    sites = engine.interior_points
    ax.scatter(sites[:, 0], sites[:, 1], color="k", s=8)
    pad = 0.05 * max(d.width, d.height)
    ax.set_xlim(d.left - pad, d.right + pad)
    ax.set_ylim(d.bottom - pad, d.top + pad)
    ax.set_aspect("equal")
    ax.set_title(f"CVT ({len(sites)} sites)")

    if show:
        plt.show()
    return ax
