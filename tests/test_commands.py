import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sample_meshes import annulus, bumpy_grid, hexagon_fan

from commands.context import CommandContext
from commands.cvt_ops import DomainCommand, GenerateSitesCommand, LloydCommand
from commands.io import PropertiesCommand, SaveCommand, VisualizeCommand
from commands.mesh_ops import (
    CurvatureCommand,
    ParameterizeCommand,
    RelaxCommand,
    ResetCommand,
)
from commands.meta import HelpCommand, HistoryCommand, QuitCommand, SetCommand
from commands.registry import get_command
from runtime import linear_system
from runtime.cvt import CVTEngine


def _context(mesh=None):
    ctx = CommandContext(mesh, cvt=CVTEngine(rng=np.random.default_rng(0)))
    if mesh is not None:
        ctx.original_mesh = mesh.copy()
    return ctx


def test_get_command_parsing():
    cmd, args = get_command("m5")
    assert isinstance(cmd, RelaxCommand)
    assert args == ["5"]

    cmd, args = get_command("l3")
    assert isinstance(cmd, LloydCommand)
    assert args == ["3"]


def test_get_command_aliases():
    cmd, _ = get_command("i")
    assert isinstance(cmd, PropertiesCommand)
    cmd, _ = get_command("PROPS")
    assert isinstance(cmd, PropertiesCommand)
    cmd, _ = get_command("k")
    assert isinstance(cmd, CurvatureCommand)
    cmd, _ = get_command("s")
    assert isinstance(cmd, VisualizeCommand)
    assert get_command("nope") == (None, [])


def test_mesh_commands_without_mesh_print_notice(capsys):
    ctx = _context()
    for cmd in (CurvatureCommand(), RelaxCommand(), ParameterizeCommand(), SaveCommand()):
        cmd.execute(ctx, [])
    out = capsys.readouterr().out
    assert out.count("No mesh loaded.") == 4


def test_curvature_command_switches_kind():
    ctx = _context(bumpy_grid())
    CurvatureCommand().execute(ctx, ["max"])
    assert ctx.global_parameters.curvature_kind == "max"
    assert ctx.mesh.curvature.max() == pytest.approx(1.0)


def test_curvature_command_rejects_unknown_kind(capsys):
    ctx = _context(bumpy_grid())
    CurvatureCommand().execute(ctx, ["weird"])
    out = capsys.readouterr().out
    assert "Usage: curvature" in out
    assert ctx.global_parameters.curvature_kind == "mean"


def test_relax_command_parses_count_lambda_and_method():
    ctx = _context(hexagon_fan(height=0.5))
    RelaxCommand().execute(ctx, ["1", "0.5", "uniform"])
    assert ctx.mesh.positions[0, 2] == pytest.approx(0.25)


def test_relax_command_accepts_method_first():
    ctx = _context(hexagon_fan(height=0.5))
    RelaxCommand().execute(ctx, ["sparse"])
    assert ctx.mesh.positions[0, 2] == pytest.approx(0.0, abs=1e-9)


def test_relax_command_bad_arguments_print_usage(capsys):
    ctx = _context(hexagon_fan(height=0.5))
    before = ctx.mesh.positions.copy()
    RelaxCommand().execute(ctx, ["2", "0.5", "newton"])
    RelaxCommand().execute(ctx, ["-3"])
    out = capsys.readouterr().out
    assert out.count("Usage: relax") == 2
    np.testing.assert_array_equal(ctx.mesh.positions, before)


def test_relax_command_takes_a_lone_fraction_as_lambda():
    ctx = _context(hexagon_fan(height=0.5))
    ctx.global_parameters.set("relax_iterations", 1)
    RelaxCommand().execute(ctx, ["0.25", "uniform"])
    assert ctx.mesh.positions[0, 2] == pytest.approx(0.375)


def test_relax_command_rejects_fractional_iterations(capsys):
    ctx = _context(hexagon_fan(height=0.5))
    RelaxCommand().execute(ctx, ["2.5", "0.5"])
    assert "iterations must be an integer" in capsys.readouterr().out
    assert ctx.mesh.positions[0, 2] == pytest.approx(0.5)


def test_relax_command_records_solver_failure(monkeypatch):
    def never(A, b, **kwargs):
        return np.zeros_like(b), 10

    monkeypatch.setattr(linear_system.spla, "bicgstab", never)
    ctx = _context(bumpy_grid())
    RelaxCommand().execute(ctx, ["sparse"])
    assert ctx.last_error.startswith("Relax failed")


def test_param_command_sets_texcoords_and_flattens():
    ctx = _context(bumpy_grid())
    ParameterizeCommand().execute(ctx, ["rectangle", "flatten"])
    assert ctx.mesh.texcoords is not None
    np.testing.assert_allclose(ctx.mesh.positions[:, 2], 0.0)
    assert ctx.last_error is None


def test_param_command_reports_invalid_boundary():
    ctx = _context(annulus())
    ParameterizeCommand().execute(ctx, [])
    assert ctx.last_error.startswith("Parameterization failed")
    assert "2 boundary loop" in ctx.last_error
    assert ctx.mesh.texcoords is None


def test_reset_restores_loaded_mesh(capsys):
    ctx = _context(hexagon_fan(height=0.5))
    RelaxCommand().execute(ctx, ["3", "0.5", "uniform"])
    ResetCommand().execute(ctx, [])
    assert ctx.mesh.positions[0, 2] == pytest.approx(0.5)

    ResetCommand().execute(_context(), [])
    assert "No original mesh" in capsys.readouterr().out


def test_cvt_voronoi_and_lloyd_commands():
    ctx = _context()
    GenerateSitesCommand().execute(ctx, ["10"])
    assert ctx.cvt.n_sites == 14
    cmd, args = get_command("voronoi")
    cmd.execute(ctx, args)
    assert ctx.cvt.cells_valid
    residual = ctx.cvt.centroid_residual()
    LloydCommand().execute(ctx, ["4"])
    assert ctx.cvt.centroid_residual() < residual


def test_cvt_command_uses_default_count_and_rejects_garbage(capsys):
    ctx = _context()
    ctx.global_parameters.set("cvt_point_count", 6)
    GenerateSitesCommand().execute(ctx, [])
    assert ctx.cvt.n_sites == 10
    GenerateSitesCommand().execute(ctx, ["many"])
    assert "Usage: cvt" in capsys.readouterr().out


def test_domain_command_with_image(tmp_path, capsys):
    import matplotlib.pyplot as plt

    image = tmp_path / "wide.png"
    plt.imsave(str(image), np.zeros((50, 100, 3)))
    ctx = _context()
    GenerateSitesCommand().execute(ctx, ["5"])
    DomainCommand().execute(ctx, ["image", str(image)])
    assert ctx.image_size == (100, 50)
    d = ctx.cvt.domain
    assert (d.width, d.height) == (pytest.approx(2.0), pytest.approx(1.0))
    assert ctx.cvt.domain.contains(ctx.cvt.points).all()

    DomainCommand().execute(ctx, ["viewport", "400", "800"])
    d = ctx.cvt.domain
    assert (d.width, d.height) == (pytest.approx(1.0), pytest.approx(0.5))

    DomainCommand().execute(ctx, ["default"])
    assert ctx.cvt.domain.width == 2.0
    out = capsys.readouterr().out
    assert "CVT domain:" in out


def test_domain_command_bad_image(capsys):
    ctx = _context()
    DomainCommand().execute(ctx, ["image", "/nonexistent/picture.png"])
    assert "Could not read image" in capsys.readouterr().out
    assert ctx.image_size is None


def test_save_command_writes_obj(tmp_path):
    ctx = _context(hexagon_fan())
    path = tmp_path / "saved.obj"
    SaveCommand().execute(ctx, [str(path)])
    assert path.read_text().count("\nf ") == 6


def test_properties_command_output(capsys):
    ctx = _context(bumpy_grid())
    GenerateSitesCommand().execute(ctx, ["3"])
    ctx.last_error = "Relax failed: boom"
    PropertiesCommand().execute(ctx, [])
    out = capsys.readouterr().out
    assert "=== Mesh Properties ===" in out
    assert "Boundary loops: 1" in out
    assert "Texture coordinates: no" in out
    assert "=== CVT Properties ===" in out
    assert "Sites   : 7 (3 free)" in out
    assert "Last error: Relax failed: boom" in out


def test_properties_with_nothing_loaded(capsys):
    PropertiesCommand().execute(_context(), [])
    assert "Nothing loaded." in capsys.readouterr().out


def test_visualize_command_saves_figures(tmp_path, capsys):
    ctx = _context(bumpy_grid())
    VisualizeCommand().execute(ctx, ["uv", str(tmp_path / "uv.png")])
    assert "run 'param' first" in capsys.readouterr().out
    VisualizeCommand().execute(ctx, ["cvt"])
    assert "run 'cvt N' first" in capsys.readouterr().out

    ParameterizeCommand().execute(ctx, [])
    GenerateSitesCommand().execute(ctx, ["8"])
    for target in ("mesh", "uv", "cvt"):
        path = tmp_path / f"{target}.png"
        VisualizeCommand().execute(ctx, [target, str(path)])
        assert path.exists()


def test_set_command_parses_values(capsys):
    ctx = _context()
    SetCommand().execute(ctx, ["relax_lambda", "0.25"])
    SetCommand().execute(ctx, ["flatten_parameterization", "true"])
    SetCommand().execute(ctx, ["custom_thing", "abc"])
    SetCommand().execute(ctx, ["only_one"])
    out = capsys.readouterr().out
    assert ctx.global_parameters.relax_lambda == 0.25
    assert ctx.global_parameters.flatten_parameterization is True
    assert ctx.global_parameters.get("custom_thing") == "abc"
    assert "Unknown parameter 'custom_thing'" in out
    assert "Usage: set" in out


def test_help_history_and_quit(capsys):
    ctx = _context()
    HistoryCommand().execute(ctx, [])
    ctx.history.extend(["cvt 5", "lloyd"])
    HistoryCommand().execute(ctx, [])
    HelpCommand().execute(ctx, [])
    QuitCommand().execute(ctx, [])
    out = capsys.readouterr().out
    assert "No commands executed yet." in out
    assert "   2  lloyd" in out
    assert "Interactive commands:" in out
    assert ctx.should_exit


def test_set_viewport_refits_image_domain(tmp_path, capsys):
    import matplotlib.pyplot as plt

    image = tmp_path / "square.png"
    plt.imsave(str(image), np.zeros((40, 40, 3)))
    ctx = _context()
    DomainCommand().execute(ctx, ["image", str(image)])
    SetCommand().execute(ctx, ["viewport_width", "1600"])
    # a wide viewport leaves a square image at full height
    assert ctx.cvt.domain.height == pytest.approx(2.0)
    SetCommand().execute(ctx, ["viewport_height", "3200"])
    assert ctx.cvt.domain.width == pytest.approx(1.0)
    assert capsys.readouterr().out.count("CVT domain:") == 3
