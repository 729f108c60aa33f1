import argparse
import logging
import os
import sys

import numpy as np

from commands.context import CommandContext
from commands.executor import execute_command_line
from commands.registry import get_command
from core.exceptions import DDGEngineError
from geometry.curvature import estimate_curvatures
from geometry.geom_io import Session, load_session, save_obj
from runtime.cvt import CVTEngine
from runtime.logging_config import setup_logging

logger = logging.getLogger("ddg_engine")


def resolve_input_path(path: str) -> str:
    """Return a valid input path, allowing an OBJ path without extension."""
    if os.path.isfile(path):
        return path
    if not path.lower().endswith(".obj"):
        alt = path + ".obj"
        if os.path.isfile(alt):
            return alt
    raise FileNotFoundError(f"Cannot find file '{path}' or '{path}.obj'")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Discrete geometry engine: curvature, smoothing, parameterization and CVT"
    )
    parser.add_argument(
        "-i", "--input", help="Input OBJ mesh or YAML/JSON session file"
    )
    parser.add_argument(
        "-o", "--output", default=None, help="Write the final mesh as OBJ to PATH"
    )
    parser.add_argument(
        "--instructions", help="Optional instruction file (one command per line)"
    )
    parser.add_argument(
        "--method",
        choices=["uniform", "cotangent", "cotangent_area", "sparse"],
        default=None,
        help="Default smoothing method for 'relax'.",
    )
    parser.add_argument(
        "--boundary",
        choices=["circle", "rectangle"],
        default=None,
        help="Default boundary shape for 'param'.",
    )
    parser.add_argument(
        "--points",
        type=int,
        default=None,
        help="Generate N random CVT sites before running instructions.",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="Random seed for CVT sampling"
    )
    parser.add_argument(
        "--viz",
        action="store_true",
        help="Visualize the input (mesh, or CVT sites) and exit.",
    )
    parser.add_argument(
        "--viz-save",
        default=None,
        help="Save the visualization image to PATH instead of only showing it.",
    )
    parser.add_argument("--log", default=None, help="Optional log file")
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Suppress console output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable verbose debug logging"
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Skip interactive mode after executing instructions",
    )
    parser.add_argument(
        "--properties",
        action="store_true",
        help="Print mesh/CVT properties and exit",
    )
    return parser


def build_context(session: Session, args) -> CommandContext:
    params = session.global_parameters
    if args.method:
        params.set("iteration_method", args.method)
    if args.boundary:
        params.set("boundary_shape", args.boundary)
    if args.seed is not None:
        params.set("random_seed", args.seed)

    seed = params.get("random_seed")
    rng = np.random.default_rng(None if seed is None else int(seed))
    context = CommandContext(
        mesh=session.mesh,
        global_parameters=params,
        cvt=CVTEngine(rng=rng),
        macros=dict(session.macros),
    )
    if session.mesh is not None:
        estimate_curvatures(
            session.mesh, params.curvature_kind, eps=params.epsilon
        )
        context.original_mesh = session.mesh.copy()
    return context


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    global logger
    logger = setup_logging(args.log, quiet=args.quiet, debug=args.debug)

    if args.input:
        try:
            args.input = resolve_input_path(args.input)
        except FileNotFoundError as exc:
            print(exc, file=sys.stderr)
            sys.exit(1)
        try:
            session = load_session(args.input)
        except (OSError, ValueError, DDGEngineError) as exc:
            logger.error("Could not load '%s': %s", args.input, exc)
            sys.exit(1)
    else:
        session = Session()
        logger.info("No input mesh; starting a CVT-only session.")

    context = build_context(session, args)

    if args.points is not None:
        context.cvt.generate_random_points(args.points)

    if args.viz or args.viz_save:
        target = "mesh" if context.mesh is not None else "cvt"
        if target == "cvt" and context.cvt.is_empty:
            context.cvt.generate_random_points(
                int(context.global_parameters.cvt_point_count)
            )
        cmd, _ = get_command("visualize")
        cmd.execute(context, [target] + ([args.viz_save] if args.viz_save else []))
        return context

    if args.properties:
        cmd, _ = get_command("properties")
        cmd.execute(context, [])
        return context

    # Load instructions from file or session
    if args.instructions:
        with open(args.instructions, "r") as f:
            lines = f.readlines()
    else:
        lines = session.instructions

    logger.debug(f"Executing {len(lines)} initial instructions.")
    for line in lines:
        execute_command_line(context, line)
        if context.should_exit:
            break

    if not args.non_interactive:
        while not context.should_exit:
            try:
                line = input("> ").strip()
            except EOFError:
                break
            if not line:
                continue
            try:
                execute_command_line(context, line)
            except (DDGEngineError, ValueError, RuntimeError, OSError) as e:
                logger.error(f"Error executing command '{line}': {e}")

    if args.output:
        if context.mesh is None:
            logger.warning("No mesh to write to %s.", args.output)
        else:
            save_obj(context.mesh, args.output)
            logger.info(f"Session complete. Output saved to {args.output}")
    else:
        logger.info("Session complete. No output file written.")
    return context


if __name__ == "__main__":
    main()
