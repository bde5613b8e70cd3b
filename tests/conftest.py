"""
pytest configuration and shared fixtures for stencilforge tests.

Fixtures defined here are automatically available to all tests.

Fixtures
--------
template_root : Path
    An empty template directory inside ``tmp_path``.

output_root : Path
    Output directory inside ``tmp_path`` (not created).

write_template : Callable
    Write a file under the template root and return its path.

config : GenerationConfig
    Default configuration for the two roots above.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from stencilforge.evaluator import Evaluator
from stencilforge.helpers import HelperRegistry
from stencilforge.models import GenerationConfig


@pytest.fixture
def template_root(tmp_path: Path) -> Path:
    root = tmp_path / "templates"
    root.mkdir()
    return root


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    return tmp_path / "out"


@pytest.fixture
def write_template(template_root: Path) -> Callable[[str, str], Path]:
    """
    Return a writer for template files.

    Returns
    -------
    Callable[[str, str], Path]
        ``write(relative_path, content)`` creating parent directories.
    """

    def write(relative: str, content: str) -> Path:
        path = template_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return write


@pytest.fixture
def config(template_root: Path, output_root: Path) -> GenerationConfig:
    return GenerationConfig(template_root=template_root, output_root=output_root)


@pytest.fixture
def evaluator() -> Evaluator:
    """Evaluator with the built-in helpers and no partial loader."""
    return Evaluator(HelperRegistry())


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks end-to-end pipeline tests that touch the filesystem"
    )
