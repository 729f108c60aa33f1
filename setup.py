from __future__ import annotations

from setuptools import find_namespace_packages, setup

setup(
    name="ddg-engine",
    version="0.1.0",
    description=(
        "Discrete differential geometry on triangle meshes: curvature, "
        "minimal-surface smoothing, harmonic parameterization and CVT."
    ),
    python_requires=">=3.9",
    packages=find_namespace_packages(
        include=[
            "core*",
            "geometry*",
            "runtime*",
            "commands*",
            "parameters*",
            "visualization*",
            "ddg_engine*",
        ]
    ),
    py_modules=["main"],
    install_requires=[
        "numpy",
        "scipy>=1.12",
        "matplotlib",
        "pyyaml",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["ddg-engine=main:main"]},
)
