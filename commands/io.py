import logging

import numpy as np

from commands.base import Command, require_mesh
from geometry.curvature import compute_curvature_fields
from geometry.geom_io import save_obj

logger = logging.getLogger("ddg_engine")


class SaveCommand(Command):
    def execute(self, context, args):
        mesh = require_mesh(context)
        if mesh is None:
            return
        filename = args[0] if args else "interactive.obj"
        try:
            save_obj(mesh, filename)
        except OSError as exc:
            print(f"Could not save to '{filename}': {exc}")


class VisualizeCommand(Command):
    """visualize [mesh|uv|cvt] [PATH]"""

    def execute(self, context, args):
        import matplotlib.pyplot as plt

        from visualization.plotting import plot_cvt, plot_mesh, plot_parameterization

        target = args[0].lower() if args else ("mesh" if context.mesh is not None else "cvt")
        save_path = args[1] if len(args) > 1 else None
        show = save_path is None

        if target == "cvt":
            if context.cvt.is_empty:
                print("No CVT sites; run 'cvt N' first.")
                return
            ax = plot_cvt(context.cvt, show=show)
        elif target in {"mesh", "uv"}:
            mesh = require_mesh(context)
            if mesh is None:
                return
            if target == "uv":
                if mesh.texcoords is None:
                    print("Mesh has no texture coordinates; run 'param' first.")
                    return
                ax = plot_parameterization(mesh, show=show)
            else:
                ax = plot_mesh(mesh, show=show)
        else:
            print("Usage: visualize [mesh|uv|cvt] [PATH]")
            return

        if save_path:
            ax.figure.savefig(save_path, bbox_inches="tight")
            plt.close(ax.figure)
            logger.info("Saved visualization to %s", save_path)


class PropertiesCommand(Command):
    def execute(self, context, args):
        mesh = context.mesh
        if mesh is not None:
            loops = mesh.boundary_loops()
            print("=== Mesh Properties ===")
            print(f"Vertices: {mesh.n_vertices}")
            print(f"Edges   : {len(mesh.edges())}")
            print(f"Faces   : {mesh.n_faces}")
            print(f"Boundary loops: {len(loops)}")
            print(f"Total surface area: {mesh.compute_total_surface_area():.6f}")
            if not mesh.is_empty:
                fields = compute_curvature_fields(
                    mesh, eps=context.global_parameters.epsilon
                )
                if np.any(fields.interior):
                    inner = fields.interior
                    total_k = float(np.sum(fields.gaussian[inner] * fields.mixed_area[inner]))
                    print(f"Mean curvature (interior avg): {float(fields.mean[inner].mean()):.6f}")
                    print(f"Integrated Gaussian curvature: {total_k:.6f}")
            has_uv = mesh.texcoords is not None
            print(f"Texture coordinates: {'yes' if has_uv else 'no'}")

        cvt = context.cvt
        if not cvt.is_empty:
            print("=== CVT Properties ===")
            print(f"Sites   : {cvt.n_sites} ({cvt.n_sites - 4} free)")
            print(f"Domain  : {cvt.domain}")
            print(f"Centroid residual: {cvt.centroid_residual():.6e}")
            print(f"CVT energy       : {cvt.cvt_energy():.6e}")

        if mesh is None and cvt.is_empty:
            print("Nothing loaded.")
        if context.last_error:
            print(f"Last error: {context.last_error}")
