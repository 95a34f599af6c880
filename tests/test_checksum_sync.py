"""Package-level tests."""

import tomllib
from pathlib import Path

import checksum_sync


def test_version():
    """Test version is set in project src code and pyproject.toml"""
    pyproject = Path(__file__).parent.parent / "pyproject.toml"
    with pyproject.open("rb") as f:
        project_version = tomllib.load(f)["project"]["version"]

    assert checksum_sync.__version__ == project_version
