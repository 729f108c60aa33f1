import logging

from commands.base import Command, parse_count
from runtime.cvt import DomainRect, load_image_size

logger = logging.getLogger("ddg_engine")


class GenerateSitesCommand(Command):
    """cvt [N]: corners plus N random sites."""

    def execute(self, context, args):
        count = context.global_parameters.cvt_point_count
        try:
            if args:
                count = parse_count(args[0], "point count")
            context.cvt.generate_random_points(int(count))
        except ValueError as exc:
            print(exc)
            print("Usage: cvt [N]")


class VoronoiCommand(Command):
    def execute(self, context, args):
        cells = context.cvt.compute_voronoi()
        if cells:
            logger.info(
                "Voronoi diagram: %d cells, %d Delaunay edges.",
                len(cells),
                len(context.cvt.delaunay_edges()),
            )


class LloydCommand(Command):
    """lloyd [N]: N Lloyd relaxation passes."""

    def execute(self, context, args):
        iterations = context.global_parameters.lloyd_iterations
        try:
            if args:
                iterations = parse_count(args[0], "iterations")
            context.cvt.lloyd_relax(int(iterations))
        except ValueError as exc:
            print(exc)
            print("Usage: lloyd [N]")


def refresh_domain(context) -> DomainRect:
    """Recompute the CVT rectangle from the loaded image and viewport."""
    params = context.global_parameters
    if context.image_size is None:
        domain = DomainRect.default()
    else:
        width, height = context.image_size
        domain = DomainRect.for_image(
            width,
            height,
            float(params.viewport_width),
            float(params.viewport_height),
        )
    context.cvt.set_domain(domain)
    return domain


class DomainCommand(Command):
    """domain default | image PATH | viewport W H"""

    usage = "Usage: domain default | domain image PATH | domain viewport W H"

    def execute(self, context, args):
        if not args:
            print(f"Current domain: {context.cvt.domain}")
            return
        mode = args[0].lower()
        if mode == "default":
            context.image_path = None
            context.image_size = None
        elif mode == "image" and len(args) == 2:
            try:
                context.image_size = load_image_size(args[1])
            except (OSError, ValueError) as exc:
                print(f"Could not read image '{args[1]}': {exc}")
                return
            context.image_path = args[1]
        elif mode == "viewport" and len(args) == 3:
            try:
                width, height = float(args[1]), float(args[2])
            except ValueError:
                print(self.usage)
                return
            if width <= 0 or height <= 0:
                print("Viewport size must be positive.")
                return
            context.global_parameters.set("viewport_width", width)
            context.global_parameters.set("viewport_height", height)
        else:
            print(self.usage)
            return
        domain = refresh_domain(context)
        print(f"CVT domain: {domain}")
