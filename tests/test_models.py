"""
Tests for stencilforge.models
=============================

This module contains tests for the configuration and result models.
Tests cover validation, TOML serialization and result aggregation.

Test Organization
-----------------
- TestEnums: Tests for the string enumerations
- TestTemplateMetadata: Tests for metadata aliases and defaults
- TestGenerationConfig: Tests for the main config model
- TestConfigToml: Tests for save_toml / from_toml
- TestSummary: Tests for result aggregation
- TestResultUtilities: Tests for merge / filter / group helpers
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from stencilforge.models import (
    ConflictResolution,
    FileState,
    GenerationConfig,
    GenerationResult,
    Summary,
    TemplateMetadata,
    filter_results,
    group_results_by_template,
    merge_results,
)


def result(template_id: str, **kwargs) -> GenerationResult:
    kwargs.setdefault("success", True)
    return GenerationResult(file_path=Path("/out") / template_id, template_id=template_id, **kwargs)


# =============================================================================
# Enum Tests
# =============================================================================

class TestEnums:
    """Tests for the string enumerations."""

    def test_conflict_resolution_from_string(self) -> None:
        """Hook answers may be plain strings."""
        assert ConflictResolution("rename") is ConflictResolution.RENAME

    def test_terminal_states(self) -> None:
        assert FileState.SKIPPED.value == "skipped"
        assert FileState.FAILED.value == "failed"


# =============================================================================
# TemplateMetadata Tests
# =============================================================================

class TestTemplateMetadata:
    """Tests for TemplateMetadata."""

    def test_defaults(self) -> None:
        metadata = TemplateMetadata()

        assert metadata.required_keys == []
        assert metadata.optional_keys == []
        assert metadata.context == {}
        assert metadata.category == "general"

    @pytest.mark.parametrize("key", ["required_keys", "requiredKeys", "requiredContext"])
    def test_required_aliases(self, key: str) -> None:
        metadata = TemplateMetadata.model_validate({key: ["title", "author.name"]})
        assert metadata.required_keys == ["title", "author.name"]

    def test_optional_alias(self) -> None:
        metadata = TemplateMetadata.model_validate({"optionalContext": ["subtitle"]})
        assert metadata.optional_keys == ["subtitle"]

    def test_unknown_keys_ignored(self) -> None:
        metadata = TemplateMetadata.model_validate({"description": "Doc", "author": "x"})
        assert metadata.description == "Doc"

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            TemplateMetadata().description = "changed"


# =============================================================================
# GenerationConfig Tests
# =============================================================================

class TestGenerationConfig:
    """Tests for GenerationConfig validation."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Test the permissive defaults."""
        config = GenerationConfig(template_root=tmp_path, output_root=tmp_path / "out")

        assert config.overwrite is False
        assert config.backup is True
        assert config.validate_output is True
        assert config.fail_fast is False
        assert config.strict is False
        assert config.template_suffixes == [".hbs", ".mustache", ".template"]
        assert config.partial_dir == "partials"
        assert config.global_context == {}

    def test_roots_required(self) -> None:
        with pytest.raises(ValidationError):
            GenerationConfig(template_root="templates")

    def test_validate_alias(self, tmp_path: Path) -> None:
        """Config files may spell validate_output as validate."""
        config = GenerationConfig(template_root=tmp_path, output_root=tmp_path, validate=False)
        assert config.validate_output is False

    def test_suffixes_get_dots(self, tmp_path: Path) -> None:
        config = GenerationConfig(
            template_root=tmp_path,
            output_root=tmp_path,
            template_suffixes=["tpl", ".j2", "  "],
        )
        assert config.template_suffixes == [".tpl", ".j2"]

    def test_empty_suffixes_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError, match="template suffix"):
            GenerationConfig(template_root=tmp_path, output_root=tmp_path, template_suffixes=[])

    @pytest.mark.parametrize("partial_dir", ["", "/", "../up", "a/../.."])
    def test_invalid_partial_dir(self, tmp_path: Path, partial_dir: str) -> None:
        with pytest.raises(ValidationError, match="partial directory"):
            GenerationConfig(template_root=tmp_path, output_root=tmp_path, partial_dir=partial_dir)

    def test_partial_dir_trailing_slash(self, tmp_path: Path) -> None:
        config = GenerationConfig(template_root=tmp_path, output_root=tmp_path, partial_dir="shared/")
        assert config.partial_dir == "shared"


# =============================================================================
# TOML Tests
# =============================================================================

class TestConfigToml:
    """Tests for TOML round trips."""

    def test_round_trip(self, tmp_path: Path) -> None:
        config = GenerationConfig(
            name="web",
            template_root=tmp_path / "templates",
            output_root=tmp_path / "out",
            overwrite=True,
            global_context={"author": {"name": "Ada"}, "year": 2024},
        )
        path = config.save_toml(tmp_path / "stencilforge.toml")

        loaded = GenerationConfig.from_toml(path)
        assert loaded.model_dump() == config.model_dump()

    def test_file_is_commented(self, tmp_path: Path) -> None:
        config = GenerationConfig(template_root="t", output_root="o")
        text = config.save_toml(tmp_path / "conf" / "stencilforge.toml").read_text()

        assert text.startswith("# stencilforge generation settings")
        assert "[global_context]" in text

    def test_relative_roots_resolve_against_file(self, tmp_path: Path) -> None:
        path = tmp_path / "project" / "stencilforge.toml"
        path.parent.mkdir()
        path.write_text('template_root = "templates"\noutput_root = "/abs/out"\nvalidate = false\n')

        config = GenerationConfig.from_toml(path)

        assert config.template_root == tmp_path / "project" / "templates"
        assert config.output_root == Path("/abs/out")
        assert config.validate_output is False

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            GenerationConfig.from_toml(tmp_path / "nope.toml")


# =============================================================================
# Summary Tests
# =============================================================================

class TestSummary:
    """Tests for Summary aggregation."""

    def test_counts(self) -> None:
        summary = Summary.from_results([
            result("a", written=True),
            result("b", skipped=True, state=FileState.SKIPPED),
            result("c", success=False, error="bad", written=True, state=FileState.FAILED),
            result("d", success=False, error="worse", state=FileState.FAILED),
        ])

        assert (summary.generated, summary.skipped, summary.failed) == (1, 1, 2)
        assert summary.files == [Path("/out/a"), Path("/out/c")]
        assert not summary.success

    def test_empty_is_success(self) -> None:
        assert Summary().success

    def test_warnings_prefixed(self) -> None:
        summary = Summary.from_results([result("doc.md.hbs", warnings=("Missing required context key 'title'",))])
        assert summary.warnings == ["doc.md.hbs: Missing required context key 'title'"]

    def test_merge_concatenates(self) -> None:
        first = Summary.from_results([result("a", written=True)])
        second = Summary.from_results([result("b", skipped=True)])

        merged = first.merge(second)
        assert [r.template_id for r in merged.results] == ["a", "b"]
        assert (merged.generated, merged.skipped) == (1, 1)
        assert merged.files == [Path("/out/a")]

    def test_generated_property(self) -> None:
        assert result("a").generated
        assert not result("a", skipped=True).generated


# =============================================================================
# Result Utility Tests
# =============================================================================

class TestResultUtilities:
    """Tests for merge_results, filter_results and group_results_by_template."""

    def test_merge_results(self) -> None:
        merged = merge_results([[result("a")], [], [result("b"), result("c")]])
        assert [r.template_id for r in merged] == ["a", "b", "c"]

    def test_filter_results(self) -> None:
        results = [result("a"), result("b", success=False), result("c")]
        assert [r.template_id for r in filter_results(results, lambda r: r.success)] == ["a", "c"]

    def test_group_results(self) -> None:
        results = [result("a"), result("b"), result("a", skipped=True)]
        grouped = group_results_by_template(results)

        assert list(grouped) == ["a", "b"]
        assert len(grouped["a"]) == 2
