import logging

import numpy as np

from commands.base import Command, parse_count, report_failure, require_mesh
from core.exceptions import DDGEngineError
from geometry.curvature import CurvatureKind, estimate_curvatures
from runtime.parameterization import BoundaryShape, parameterize
from runtime.smoothing import IterationMethod, relax

logger = logging.getLogger("ddg_engine")


def _is_number(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


def _is_integer(token: str) -> bool:
    try:
        int(token)
    except ValueError:
        return False
    return True


class CurvatureCommand(Command):
    """Recompute the curvature field shown on the mesh."""

    def execute(self, context, args):
        mesh = require_mesh(context)
        if mesh is None:
            return
        params = context.global_parameters
        try:
            kind = CurvatureKind.parse(args[0] if args else params.curvature_kind)
        except ValueError as exc:
            print(exc)
            print("Usage: curvature [gaussian|mean|max]")
            return

        fields = estimate_curvatures(mesh, kind, eps=params.epsilon)
        params.set("curvature_kind", kind.value)
        context.last_error = None
        raw = fields.select(kind)[fields.interior]
        if raw.size:
            logger.info(
                "Curvature (%s): raw range [%.6g, %.6g] over %d interior vertices.",
                kind.value,
                float(raw.min()),
                float(raw.max()),
                raw.size,
            )
        else:
            logger.info("Curvature (%s): mesh has no interior vertices.", kind.value)


class RelaxCommand(Command):
    """relax [N] [lambda] [method]"""

    def execute(self, context, args):
        mesh = require_mesh(context)
        if mesh is None:
            return
        params = context.global_parameters
        iterations = params.relax_iterations
        lam = params.relax_lambda
        method = params.iteration_method

        numbers = [token for token in args if _is_number(token)]
        words = [token for token in args if not _is_number(token)]
        try:
            if len(numbers) > 2:
                raise ValueError(f"relax takes at most two numbers, got {numbers}")
            if numbers and not _is_integer(numbers[0]):
                if len(numbers) > 1:
                    raise ValueError(
                        f"iterations must be an integer, got '{numbers[0]}'"
                    )
                # a lone fraction is the step size
                lam = float(numbers[0])
            elif numbers:
                iterations = parse_count(numbers[0], "iterations")
                if len(numbers) > 1:
                    lam = float(numbers[1])
            if words:
                method = words[0]
            method = IterationMethod.parse(method)
        except ValueError as exc:
            print(exc)
            print("Usage: relax [N] [lambda] [uniform|cotangent|cotangent_area|sparse]")
            return

        try:
            relax(
                mesh,
                iterations,
                lam,
                method,
                curvature_kind=params.curvature_kind,
                area_threshold=params.area_step_threshold,
                eps=params.epsilon,
                tol=params.solver_tolerance,
                maxiter=int(params.solver_max_iterations),
            )
        except DDGEngineError as exc:
            report_failure(context, "Relax", exc)
            return
        except ValueError as exc:
            print(exc)
            return
        context.last_error = None


class ParameterizeCommand(Command):
    """param [circle|rectangle] [flatten]"""

    def execute(self, context, args):
        mesh = require_mesh(context)
        if mesh is None:
            return
        params = context.global_parameters
        shape = params.boundary_shape
        flatten = bool(params.flatten_parameterization)
        for token in args:
            if token.lower() in {"flatten", "flat"}:
                flatten = True
            else:
                shape = token
        try:
            shape = BoundaryShape.parse(shape)
        except ValueError as exc:
            print(exc)
            print("Usage: param [circle|rectangle] [flatten]")
            return

        try:
            result = parameterize(
                mesh,
                shape,
                flatten=flatten,
                curvature_kind=params.curvature_kind,
                eps=params.epsilon,
            )
        except DDGEngineError as exc:
            report_failure(context, "Parameterization", exc)
            return
        context.last_error = None
        uv = result.texcoords
        logger.info(
            "Parameterization (%s) done: %d boundary vertices, uv range [%.3f, %.3f].",
            shape.value,
            len(result.boundary_loop),
            float(np.min(uv)) if uv.size else 0.0,
            float(np.max(uv)) if uv.size else 0.0,
        )


class ResetCommand(Command):
    """Restore the mesh snapshot taken when it was loaded."""

    def execute(self, context, args):
        if context.original_mesh is None:
            print("No original mesh to restore.")
            return
        context.mesh = context.original_mesh.copy()
        context.last_error = None
        logger.info("Mesh reset to its loaded state.")
