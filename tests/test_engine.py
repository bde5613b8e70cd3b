"""
Tests for stencilforge.engine
=============================

Test Organization
-----------------
- TestEngine: wiring of store, helpers, evaluator and feature switches
"""

from datetime import datetime
from pathlib import Path

import pytest

from stencilforge import __version__
from stencilforge.engine import Engine
from stencilforge.errors import TemplateNotFoundError
from stencilforge.evaluator import IssueKind
from stencilforge.models import GenerationConfig


class TestEngine:
    """Tests for Engine."""

    def test_helpers_are_per_engine(self, config: GenerationConfig) -> None:
        """Registering a helper on one engine leaves another untouched."""
        first, second = Engine(config), Engine(config)
        first.register_helper("shout", lambda ctx, s: f"{s}!")

        assert first.render_string("{{shout 'hi'}}").text == "hi!"
        assert second.render_string("{{shout 'hi'}}").text == "{{shout 'hi'}}"

    def test_variables_over_global_context(self, template_root: Path, output_root: Path) -> None:
        config = GenerationConfig(
            template_root=template_root,
            output_root=output_root,
            global_context={"name": "global", "year": 2024},
        )
        result = Engine(config).render_string("{{name}} {{year}}", {"name": "local"})

        assert result.text == "local 2024"

    def test_render_from_store(self, config: GenerationConfig, write_template) -> None:
        write_template("partials/footer.hbs", "-- {{team}}")
        write_template("note.txt.hbs", "{{title}}\n{{> footer}}")

        result = Engine(config).render("note.txt.hbs", {"title": "Hi", "team": "core"})
        assert result.text == "Hi\n-- core"
        assert result.ok

    def test_render_static_file(self, config: GenerationConfig, write_template) -> None:
        write_template("LICENSE", "MIT {{year}}")
        assert Engine(config).render("LICENSE").text == "MIT {{year}}"

    def test_render_missing(self, config: GenerationConfig) -> None:
        with pytest.raises(TemplateNotFoundError):
            Engine(config).render("nope.hbs")

    def test_registered_partial(self, config: GenerationConfig, write_template) -> None:
        write_template("partials/banner.hbs", "from disk")
        engine = Engine(config)
        engine.register_partial("banner", "from memory {{who}}", {"who": "partial"})

        assert engine.render_string("{{> banner}}", {"who": "caller"}).text == "from memory partial"

    def test_helpers_disabled(self, template_root: Path, output_root: Path) -> None:
        config = GenerationConfig(
            template_root=template_root, output_root=output_root, enable_helpers=False
        )
        result = Engine(config).render_string("{{uppercase name}}", {"name": "x"})

        assert result.text == "{{uppercase name}}"
        assert [issue.kind for issue in result.issues] == [IssueKind.DISABLED]

    def test_partials_disabled(self, template_root: Path, output_root: Path) -> None:
        config = GenerationConfig(
            template_root=template_root, output_root=output_root, enable_partials=False
        )
        result = Engine(config).render_string("{{> header}}")

        assert result.text == "{{> header}}"
        assert not result.ok

    def test_clear_cache_sees_edits(self, config: GenerationConfig, write_template) -> None:
        path = write_template("a.txt.hbs", "one")
        engine = Engine(config)
        assert engine.render("a.txt.hbs").text == "one"

        path.write_text("two")
        assert engine.render("a.txt.hbs").text == "one"

        engine.clear_cache()
        assert engine.render("a.txt.hbs").text == "two"

    def test_run_metadata_under_variables(self, template_root: Path, output_root: Path) -> None:
        config = GenerationConfig(name="api", template_root=template_root, output_root=output_root)
        engine = Engine(config)

        context = engine.build_context({"version": "9.9"})
        assert context["generator"] == "api"
        assert context["version"] == "9.9"
        assert datetime.fromisoformat(context["timestamp"]).tzinfo is not None
        assert engine.render_string("{{generator}}@{{version}}").text == f"api@{__version__}"
