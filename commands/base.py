import logging
from abc import ABC, abstractmethod
from typing import List

logger = logging.getLogger("ddg_engine")


class Command(ABC):
    """Abstract base class for all session commands."""

    @abstractmethod
    def execute(self, context, args: List[str]) -> None:
        """
        Execute the command.

        Args:
            context: The CommandContext object holding shared state.
            args: A list of string arguments passed to the command.
        """
        pass


def require_mesh(context):
    """Return the session mesh, or print a notice and return None."""
    mesh = getattr(context, "mesh", None)
    if mesh is None or mesh.is_empty:
        print("No mesh loaded.")
        return None
    return mesh


def report_failure(context, action: str, exc: Exception) -> None:
    """Record and log a failed operation without leaving the session."""
    context.last_error = f"{action} failed: {exc}"
    logger.error(context.last_error)


def parse_count(token: str, name: str = "count") -> int:
    try:
        value = int(token)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{token}'") from None
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value
