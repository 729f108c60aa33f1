"""Package utilities for ddg-engine.

The engine lives in top-level packages like `geometry/`, `runtime/` and
`commands/`. This package exposes the installed version and the
`python -m ddg_engine` entry point.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("ddg-engine")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
