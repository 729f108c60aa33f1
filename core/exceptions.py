"""Custom exception types for the geometry processing engine."""

from __future__ import annotations

from typing import Sequence


class DDGEngineError(Exception):
    """Base class for domain-specific errors."""


class MeshTopologyError(DDGEngineError):
    """Raised when the input cannot be represented as a manifold half-edge mesh."""


class InvalidBoundaryError(MeshTopologyError):
    """Raised when a mesh does not have the single boundary loop a solver needs."""

    def __init__(self, loop_count: int, message: str | None = None) -> None:
        if message is None:
            message = (
                f"Mesh has {loop_count} boundary loop(s); "
                "parameterization requires a disk with exactly one boundary loop."
            )
        super().__init__(message)
        self.loop_count = loop_count


class NumericalError(DDGEngineError):
    """Base class for sparse solver failures."""


class FactorizationError(NumericalError):
    """Raised when a direct sparse factorization is singular or non-finite."""

    def __init__(self, message: str, *, size: int | None = None) -> None:
        super().__init__(message)
        self.size = size


class SolverConvergenceError(NumericalError):
    """Raised when an iterative solve does not converge on one or more axes."""

    def __init__(
        self,
        axes: Sequence[str],
        *,
        info: Sequence[int] = (),
        message: str | None = None,
    ) -> None:
        if message is None:
            message = (
                "Iterative solver did not converge for axis "
                f"{', '.join(axes)}; those coordinates were left unchanged."
            )
        super().__init__(message)
        self.axes = tuple(axes)
        self.info = tuple(info)


class MacroExpansionError(DDGEngineError, RuntimeError):
    """Raised when a macro calls itself or nests deeper than allowed."""

    def __init__(self, chain: Sequence[str], message: str) -> None:
        super().__init__(f"{message}: {' -> '.join(chain)}")
        self.chain = tuple(chain)


__all__ = [
    "DDGEngineError",
    "MeshTopologyError",
    "InvalidBoundaryError",
    "NumericalError",
    "FactorizationError",
    "SolverConvergenceError",
    "MacroExpansionError",
]
