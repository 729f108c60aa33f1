"""Turn instruction lines into command calls, expanding session macros."""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from commands.registry import get_command
from core.exceptions import MacroExpansionError

logger = logging.getLogger("ddg_engine")


def split_instructions(line: str) -> List[str]:
    """Drop a trailing ``#`` comment and split on ``;`` into single commands.

    ``"relax 5 ; curvature max  # smooth"`` gives
    ``["relax 5", "curvature max"]``.
    """
    body = (line or "").split("#", 1)[0]
    return [part.strip() for part in body.split(";") if part.strip()]


def execute_command_line(
    context,
    line: str,
    *,
    get_command_fn=get_command,
    macro_stack: Tuple[str, ...] = (),
    max_macro_depth: int = 20,
) -> None:
    """Run every command on ``line``; names found in ``context.macros`` expand.

    Each executed command is appended to ``context.history`` as it reads
    after macro expansion.
    """
    for instruction in split_instructions(line):
        _execute_one(
            context,
            instruction,
            get_command_fn=get_command_fn,
            macro_stack=macro_stack,
            max_macro_depth=max_macro_depth,
        )


def _execute_one(
    context,
    instruction: str,
    *,
    get_command_fn,
    macro_stack: Tuple[str, ...],
    max_macro_depth: int,
) -> None:
    name, *args = instruction.split()

    command, preset_args = get_command_fn(name)
    if command is not None:
        command.execute(context, preset_args + args)
        context.history.append(instruction)
        return

    if name not in context.macros:
        logger.warning("Unknown instruction: %s", name)
        return

    chain = macro_stack + (name,)
    if name in macro_stack:
        raise MacroExpansionError(chain, "Recursive macro call detected")
    if len(macro_stack) >= max_macro_depth:
        raise MacroExpansionError(
            chain, f"Macro expansion exceeded max depth ({max_macro_depth})"
        )
    if args:
        logger.warning("Macro '%s' does not accept arguments; ignoring %s", name, args)

    logger.debug("Expanding macro '%s' (depth %d).", name, len(chain))
    for macro_line in _macro_lines(context.macros[name]):
        execute_command_line(
            context,
            macro_line,
            get_command_fn=get_command_fn,
            macro_stack=chain,
            max_macro_depth=max_macro_depth,
        )


def _macro_lines(lines: Iterable[str]) -> Iterable[str]:
    if isinstance(lines, str):
        lines = lines.splitlines()
    for line in lines:
        if line and line.strip():
            yield line
