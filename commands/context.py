from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from geometry.entities import Mesh
from parameters.global_parameters import GlobalParameters
from runtime.cvt import CVTEngine


@dataclass
class CommandContext:
    """Holds the shared state for an interactive session.

    ``original_mesh`` is the snapshot taken at load time for ``reset``;
    ``last_error`` carries the diagnostic of the last failed operation.
    """

    mesh: Optional[Mesh]
    global_parameters: GlobalParameters = field(default_factory=GlobalParameters)
    cvt: CVTEngine = field(default_factory=CVTEngine)
    original_mesh: Optional[Mesh] = None
    macros: Dict[str, List[str]] = field(default_factory=dict)
    image_path: Optional[str] = None
    image_size: Optional[Tuple[int, int]] = None
    last_error: Optional[str] = None
    should_exit: bool = False
    history: List[str] = field(default_factory=list)
