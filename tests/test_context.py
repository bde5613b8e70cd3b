"""
Tests for stencilforge.context
==============================

Test Organization
-----------------
- TestResolvePath: dot-path lookup
- TestContextLayers: layering and copy-on-write scopes
- TestContextInput: context files and command-line assignments
"""

from pathlib import Path

import pytest

from stencilforge.context import (
    MISSING,
    Context,
    load_context_file,
    parse_assignment,
    resolve_path,
    set_path,
)


# =============================================================================
# Path Resolution Tests
# =============================================================================

class TestResolvePath:
    """Tests for resolve_path."""

    def test_nested_mapping(self) -> None:
        data = {"project": {"author": {"name": "Ada"}}}
        assert resolve_path(data, "project.author.name") == "Ada"

    def test_numeric_segment_indexes_list(self) -> None:
        data = {"items": [{"title": "first"}, {"title": "second"}]}
        assert resolve_path(data, "items.1.title") == "second"

    def test_missing_segment(self) -> None:
        assert resolve_path({"a": {}}, "a.b") is MISSING

    def test_index_out_of_range(self) -> None:
        assert resolve_path({"items": [1]}, "items.3") is MISSING

    def test_cannot_walk_into_string(self) -> None:
        assert resolve_path({"name": "abc"}, "name.0") is MISSING

    def test_none_is_a_value(self) -> None:
        assert resolve_path({"value": None}, "value") is None

    def test_missing_is_falsy(self) -> None:
        assert not MISSING


# =============================================================================
# Layering Tests
# =============================================================================

class TestContextLayers:
    """Tests for Context layering and scoping."""

    def test_later_layers_win(self) -> None:
        ctx = Context.layered({"name": "global", "env": "dev"}, {"name": "caller"})

        assert ctx["name"] == "caller"
        assert ctx["env"] == "dev"

    def test_none_layers_ignored(self) -> None:
        ctx = Context.layered(None, {"a": 1}, None)
        assert ctx.to_dict() == {"a": 1}

    def test_child_does_not_mutate_parent(self) -> None:
        parent = Context.layered({"item": "outer"})
        child = parent.child({"item": "inner", "index": 0})

        assert child["item"] == "inner"
        assert parent["item"] == "outer"
        assert "index" not in parent

    def test_layers_are_copied(self) -> None:
        source = {"a": 1}
        ctx = Context.layered(source)
        source["a"] = 2

        assert ctx["a"] == 1

    def test_resolve_through_layers(self) -> None:
        ctx = Context.layered({"user": {"name": "Ada"}}).child({"index": 2})

        assert ctx.resolve("user.name") == "Ada"
        assert ctx.resolve("index") == 2
        assert ctx.has("user.name")
        assert not ctx.has("user.email")

    def test_coerce_keeps_context(self) -> None:
        ctx = Context.layered({"a": 1})
        assert Context.coerce(ctx) is ctx
        assert Context.coerce({"b": 2})["b"] == 2
        assert len(Context.coerce(None)) == 0


# =============================================================================
# Context Input Tests
# =============================================================================

class TestContextInput:
    """Tests for loading context from files and assignments."""

    def test_load_json(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.json"
        path.write_text('{"name": "app", "tags": ["a"]}')

        assert load_context_file(path) == {"name": "app", "tags": ["a"]}

    def test_load_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.toml"
        path.write_text('name = "app"\n[project]\nversion = "1.0"\n')

        assert load_context_file(path)["project"]["version"] == "1.0"

    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.yaml"
        path.write_text("name: app\nfeatures:\n  auth: true\n")

        assert load_context_file(path) == {"name": "app", "features": {"auth": True}}

    def test_empty_yaml_is_empty_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.yml"
        path.write_text("")

        assert load_context_file(path) == {}

    def test_unsupported_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.ini"
        path.write_text("[x]")

        with pytest.raises(ValueError, match="Unsupported context file"):
            load_context_file(path)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError, match="mapping"):
            load_context_file(path)

    @pytest.mark.parametrize(
        ("assignment", "expected"),
        [
            ("name=app", ("name", "app")),
            ("count=3", ("count", 3)),
            ("flags.debug=true", ("flags.debug", True)),
            ("tags=[a, b]", ("tags", ["a", "b"])),
            ("empty=", ("empty", "")),
        ],
    )
    def test_parse_assignment(self, assignment: str, expected: tuple) -> None:
        assert parse_assignment(assignment) == expected

    def test_parse_assignment_requires_equals(self) -> None:
        with pytest.raises(ValueError, match="key=value"):
            parse_assignment("name")

    def test_set_path_creates_nested(self) -> None:
        data: dict = {"a": {"keep": 1}}
        set_path(data, "a.b.c", 2)

        assert data == {"a": {"keep": 1, "b": {"c": 2}}}
