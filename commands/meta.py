from commands.base import Command
from commands.cvt_ops import refresh_domain


class QuitCommand(Command):
    def execute(self, context, args):
        context.should_exit = True
        print("Exiting interactive mode.")


class HelpCommand(Command):
    def execute(self, context, args):
        print("Interactive commands:")
        print("  curvature / k [gaussian|mean|max]   Recompute the curvature field")
        print("  relax / m [N] [lambda] [method]     Minimal-surface relaxation")
        print("        method: uniform | cotangent | cotangent_area | sparse")
        print("  mN                                  Relax N iterations (e.g. m10)")
        print("  param [circle|rectangle] [flatten]  Harmonic parameterization")
        print("  reset                               Restore the loaded mesh")
        print("  cvt [N]                             Corners plus N random sites")
        print("  voronoi                             Build clipped Voronoi cells")
        print("  lloyd [N] / lN                      Lloyd relaxation passes")
        print("  domain default|image PATH|viewport W H  Set the CVT rectangle")
        print("  visualize / s [mesh|uv|cvt] [PATH]  Plot (or save) a view")
        print("  properties / i                      Print mesh and CVT statistics")
        print("  save [PATH]                         Write the mesh as OBJ")
        print(
            "  set [param] [value]                 Set global parameter (e.g. set relax_lambda 0.25)"
        )
        print("  history                             Show executed commands")
        print("  quit / exit / q                     Leave interactive mode")


def _parse_value(text: str):
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered in {"none", "null"}:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


class SetCommand(Command):
    def execute(self, context, args):
        if len(args) < 2:
            print("Usage: set [param] [value]")
            return
        param = args[0]
        val = _parse_value(args[1])
        params = context.global_parameters
        if param not in params:
            print(f"Unknown parameter '{param}'; adding it anyway.")
        params.set(param, val)
        print(f"Global parameter '{param}' set to {val}")
        if param in {"viewport_width", "viewport_height"} and context.image_size:
            print(f"CVT domain: {refresh_domain(context)}")


class HistoryCommand(Command):
    def execute(self, context, args):
        history = getattr(context, "history", [])
        if not history:
            print("No commands executed yet.")
            return
        for i, line in enumerate(history, start=1):
            print(f"{i:4d}  {line}")
