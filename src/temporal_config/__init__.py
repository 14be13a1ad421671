"""temporal-config: scoped, effective-dated configuration with rollback."""

import tomllib
from pathlib import Path

try:
    # Development checkout: read the version straight from pyproject.toml
    pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
    with open(pyproject_path, "rb") as f:
        data = tomllib.load(f)
    __version__ = data["project"]["version"]
except (OSError, KeyError, tomllib.TOMLDecodeError):
    # Installed (non-editable): fall back to package metadata
    try:
        from importlib.metadata import PackageNotFoundError, version

        __version__ = version("temporal-config")
    except PackageNotFoundError:
        __version__ = "0.0.0-dev"
