"""
Tests for stencilforge.paths
============================

Test Organization
-----------------
- TestSuffixStripping: template suffix removal
- TestResolve: interpolation and output root containment
"""

from pathlib import Path

import pytest

from stencilforge.errors import PathEscapeError
from stencilforge.evaluator import Evaluator
from stencilforge.paths import OutputPathResolver


@pytest.fixture
def resolver(output_root: Path, evaluator: Evaluator) -> OutputPathResolver:
    return OutputPathResolver(output_root, evaluator)


# =============================================================================
# Suffix Tests
# =============================================================================

class TestSuffixStripping:
    """Tests for strip_suffix."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("README.md.hbs", "README.md"),
            ("index.ts.mustache", "index.ts"),
            ("config.json.template", "config.json"),
            ("config.template.json", "config.json"),
            ("LICENSE", "LICENSE"),
            ("double.hbs.hbs", "double.hbs"),
            (".hbs", ".hbs"),
        ],
    )
    def test_strip_suffix(self, resolver: OutputPathResolver, name: str, expected: str) -> None:
        assert resolver.strip_suffix(name) == expected

    def test_custom_suffixes(self, output_root: Path, evaluator: Evaluator) -> None:
        resolver = OutputPathResolver(output_root, evaluator, [".tpl"])

        assert resolver.strip_suffix("a.txt.tpl") == "a.txt"
        assert resolver.strip_suffix("a.txt.hbs") == "a.txt.hbs"


# =============================================================================
# Resolve Tests
# =============================================================================

class TestResolve:
    """Tests for resolve."""

    def test_joins_output_root(self, resolver: OutputPathResolver, output_root: Path) -> None:
        assert resolver.resolve("src/app.ts.hbs", {}) == output_root.resolve() / "src" / "app.ts"

    def test_interpolates_directories_and_names(
        self, resolver: OutputPathResolver, output_root: Path
    ) -> None:
        path = resolver.resolve("src/{{module}}/{{name}}.py.hbs", {"module": "billing", "name": "api"})
        assert path == output_root.resolve() / "src" / "billing" / "api.py"

    def test_dot_path_variables(self, resolver: OutputPathResolver, output_root: Path) -> None:
        path = resolver.resolve("{{project.slug}}.md.hbs", {"project": {"slug": "intro"}})
        assert path.name == "intro.md"

    def test_unresolved_variable_warns(self, resolver: OutputPathResolver) -> None:
        resolved = resolver.resolve_with_warnings("{{missing}}.txt.hbs", {})

        assert resolved.path.name == "{{missing}}.txt"
        assert resolved.warnings == ("Path: Unresolved variable 'missing'",)

    def test_empty_variable_keeps_path_relative(
        self, resolver: OutputPathResolver, output_root: Path
    ) -> None:
        path = resolver.resolve("{{prefix}}/app.txt", {"prefix": ""})
        assert path == output_root.resolve() / "app.txt"

    @pytest.mark.parametrize("name", ["../escape", "a/../../escape", ".."])
    def test_escape_rejected(self, resolver: OutputPathResolver, name: str) -> None:
        with pytest.raises(PathEscapeError):
            resolver.resolve("{{name}}/file.txt.hbs", {"name": name})

    def test_absolute_value_stays_inside(
        self, resolver: OutputPathResolver, output_root: Path
    ) -> None:
        path = resolver.resolve("{{name}}.txt", {"name": "/etc/passwd"})
        assert path == output_root.resolve() / "etc" / "passwd.txt"

    def test_symlink_escape_rejected(
        self, resolver: OutputPathResolver, output_root: Path, tmp_path: Path
    ) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        output_root.mkdir()
        (output_root / "link").symlink_to(outside, target_is_directory=True)

        with pytest.raises(PathEscapeError):
            resolver.resolve("link/file.txt.hbs", {})
