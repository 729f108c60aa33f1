from commands.cvt_ops import (
    DomainCommand,
    GenerateSitesCommand,
    LloydCommand,
    VoronoiCommand,
)
from commands.io import PropertiesCommand, SaveCommand, VisualizeCommand
from commands.mesh_ops import (
    CurvatureCommand,
    ParameterizeCommand,
    RelaxCommand,
    ResetCommand,
)
from commands.meta import HelpCommand, HistoryCommand, QuitCommand, SetCommand

COMMAND_REGISTRY = {
    "curvature": CurvatureCommand(),
    "k": CurvatureCommand(),
    "relax": RelaxCommand(),
    "m": RelaxCommand(),
    "param": ParameterizeCommand(),
    "parameterize": ParameterizeCommand(),
    "reset": ResetCommand(),
    "cvt": GenerateSitesCommand(),
    "voronoi": VoronoiCommand(),
    "lloyd": LloydCommand(),
    "domain": DomainCommand(),
    "save": SaveCommand(),
    "s": VisualizeCommand(),
    "visualize": VisualizeCommand(),
    "p": PropertiesCommand(),
    "props": PropertiesCommand(),
    "i": PropertiesCommand(),
    "properties": PropertiesCommand(),
    "q": QuitCommand(),
    "quit": QuitCommand(),
    "exit": QuitCommand(),
    "help": HelpCommand(),
    "h": HelpCommand(),
    "set": SetCommand(),
    "history": HistoryCommand(),
}


def get_command(name):
    # Handle m10, l5, etc.
    lowered = name.lower()
    if lowered.startswith("m") and lowered[1:].isdigit():
        return COMMAND_REGISTRY["m"], [lowered[1:]]
    if lowered.startswith("l") and lowered[1:].isdigit():
        return COMMAND_REGISTRY["lloyd"], [lowered[1:]]

    cmd = COMMAND_REGISTRY.get(lowered)
    return cmd, []
