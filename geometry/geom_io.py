# geom_io.py
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import yaml

from geometry.entities import Mesh
from parameters.global_parameters import GlobalParameters

logger = logging.getLogger("ddg_engine")


@dataclass
class Session:
    """Everything a session file describes: mesh, parameters and scripts."""

    mesh: Optional[Mesh] = None
    global_parameters: GlobalParameters = field(default_factory=GlobalParameters)
    instructions: List[str] = field(default_factory=list)
    macros: Dict[str, List[str]] = field(default_factory=dict)
    source: Optional[str] = None


def fan_triangulate(polygon: List[int]) -> List[List[int]]:
    """Split a polygon into triangles sharing its first vertex."""
    return [
        [polygon[0], polygon[i], polygon[i + 1]] for i in range(1, len(polygon) - 1)
    ]


def normalize_positions(positions: np.ndarray) -> np.ndarray:
    """Centre on the bounding-box centre and scale the largest extent to 2."""
    if len(positions) == 0:
        return positions
    lo = positions.min(axis=0)
    hi = positions.max(axis=0)
    center = 0.5 * (lo + hi)
    max_size = float((hi - lo).max())
    scale = 2.0 / max_size if max_size > 0 else 1.0
    return (positions - center) * scale


def build_mesh(vertices, polygons, *, normalize: bool = False) -> Mesh:
    """Create a mesh from vertex rows and polygon index lists."""
    positions = np.array(vertices, dtype=float).reshape(-1, 3)
    triangles: List[List[int]] = []
    for k, polygon in enumerate(polygons):
        if len(polygon) < 3:
            logger.warning("Face %d has fewer than 3 vertices; skipping.", k)
            continue
        triangles.extend(fan_triangulate(list(polygon)))
    if normalize:
        positions = normalize_positions(positions)
    mesh = Mesh(positions, np.array(triangles, dtype=int).reshape(-1, 3))
    mesh.update_normals()
    return mesh


def _obj_index(token: str, n_verts: int, line_no: int) -> int:
    ref = token.split("/")[0]
    try:
        idx = int(ref)
    except ValueError:
        raise ValueError(f"Line {line_no}: bad face index '{token}'") from None
    if idx == 0:
        raise ValueError(f"Line {line_no}: OBJ indices are 1-based, got 0")
    return idx - 1 if idx > 0 else n_verts + idx


def read_obj(path: str):
    """Parse ``v`` and ``f`` records of a Wavefront OBJ file."""
    vertices: List[List[float]] = []
    polygons: List[List[int]] = []
    with open(path, "r") as f:
        for line_no, raw in enumerate(f, start=1):
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            parts = line.split()
            tag = parts[0]
            if tag == "v":
                if len(parts) < 4:
                    raise ValueError(f"Line {line_no}: vertex needs 3 coordinates")
                try:
                    vertices.append([float(x) for x in parts[1:4]])
                except ValueError:
                    raise ValueError(f"Line {line_no}: bad vertex '{line}'") from None
            elif tag == "f":
                polygons.append(
                    [_obj_index(tok, len(vertices), line_no) for tok in parts[1:]]
                )
    return vertices, polygons


def load_obj(path: str, *, normalize: bool = True) -> Mesh:
    """Load an OBJ file into a half-edge mesh.

    Polygons are fan-triangulated. With ``normalize`` the mesh is centred and
    scaled so its largest extent spans [-1, 1].
    """
    vertices, polygons = read_obj(path)
    if not vertices:
        raise ValueError(f"No vertices found in {path}")
    mesh = build_mesh(vertices, polygons, normalize=normalize)
    logger.info("Loaded %s: %s", path, mesh)
    return mesh


def save_obj(mesh: Mesh, path: str) -> None:
    """Write positions, texture coordinates (if any), normals and faces."""
    has_uv = mesh.texcoords is not None
    with open(path, "w") as f:
        f.write(f"# {mesh}\n")
        for p in mesh.positions:
            f.write(f"v {p[0]:.9g} {p[1]:.9g} {p[2]:.9g}\n")
        if has_uv:
            for uv in mesh.texcoords:
                f.write(f"vt {uv[0]:.9g} {uv[1]:.9g}\n")
        for n in mesh.normals:
            f.write(f"vn {n[0]:.9g} {n[1]:.9g} {n[2]:.9g}\n")
        for tri in mesh.faces + 1:
            if has_uv:
                f.write("f " + " ".join(f"{i}/{i}/{i}" for i in tri) + "\n")
            else:
                f.write("f " + " ".join(f"{i}//{i}" for i in tri) + "\n")
    logger.info("Saved mesh to %s", path)


def load_data(filename):
    """Load a session description from a YAML or JSON file.

    Expected format:
    {
        "mesh": "model.obj",              # or inline "vertices"/"faces"
        "normalize": true,
        "global_parameters": {"relax_lambda": 0.25, ...},
        "instructions": ["curvature mean", "relax 10", ...],
        "macros": {"smooth": ["relax 5", "curvature max"]}
    }"""
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise ValueError(f"Unsupported file format for: {filename_str}")

    return data or {}


def parse_session(data: dict, base_dir: str = ".") -> Session:
    session = Session()
    session.global_parameters.update(data.get("global_parameters") or {})

    normalize = bool(data.get("normalize", True))
    if data.get("mesh"):
        mesh_path = os.path.join(base_dir, str(data["mesh"]))
        session.mesh = load_obj(mesh_path, normalize=normalize)
        session.source = mesh_path
    elif data.get("vertices") is not None:
        session.mesh = build_mesh(
            data["vertices"], data.get("faces") or [], normalize=normalize
        )

    instructions = data.get("instructions") or []
    if isinstance(instructions, str):
        instructions = instructions.splitlines()
    session.instructions = [str(line) for line in instructions]

    macros = data.get("macros") or {}
    for name, lines in macros.items():
        if isinstance(lines, str):
            lines = [part.strip() for part in lines.split(";")]
        session.macros[str(name)] = [str(line) for line in lines if str(line).strip()]
    return session


def load_session(path: str) -> Session:
    """Open an OBJ mesh or a YAML/JSON session file."""
    if str(path).lower().endswith(".obj"):
        session = Session(mesh=load_obj(path), source=str(path))
        return session
    data = load_data(path)
    return parse_session(data, base_dir=os.path.dirname(os.path.abspath(path)))
