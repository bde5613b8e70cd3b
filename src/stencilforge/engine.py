"""
stencilforge.engine - Rendering Engine
======================================

An ``Engine`` ties together the pieces one configuration needs: its own
helper registry, a template store, an evaluator that loads partials through
that store, and an output path resolver. Engines share nothing, so two
engines in one process can register different helpers under the same name.

Usage Example
-------------
>>> config = GenerationConfig(template_root="templates", output_root="out")
>>> engine = Engine(config)
>>> engine.register_helper("shout", lambda ctx, s: f"{s}!")
>>> engine.render_string("{{shout name}}", {"name": "hi"}).text
'hi!'
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from stencilforge import __version__
from stencilforge.context import Context
from stencilforge.evaluator import Evaluator, RenderResult
from stencilforge.helpers import Helper, HelperRegistry
from stencilforge.models import GenerationConfig
from stencilforge.paths import OutputPathResolver
from stencilforge.store import TemplateStore


class Engine:
    """
    Rendering services for one ``GenerationConfig``.

    Parameters
    ----------
    config : GenerationConfig
        Roots, suffixes and feature switches.

    helpers : HelperRegistry | None
        Registry to use. A new one with the built-ins when omitted.
    """

    def __init__(self, config: GenerationConfig, *, helpers: HelperRegistry | None = None) -> None:
        self.config = config
        self.helpers = helpers if helpers is not None else HelperRegistry()
        self.store = TemplateStore.from_config(config)
        self.evaluator = Evaluator(
            self.helpers,
            self.store.load_partial,
            enable_helpers=config.enable_helpers,
            enable_partials=config.enable_partials,
        )
        self.paths = OutputPathResolver(config.output_root, self.evaluator, config.template_suffixes)

    def register_helper(self, name: str, fn: Helper) -> None:
        self.helpers.register(name, fn)

    def register_partial(
        self,
        name: str,
        content: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.store.register_partial(name, content, context)

    def run_metadata(self) -> dict[str, Any]:
        """Stamp for one run: ``timestamp`` (UTC, ISO 8601), ``generator`` and ``version``."""
        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "generator": self.config.name,
            "version": __version__,
        }

    def build_context(self, variables: Mapping[str, Any] | None = None) -> Context:
        """
        Layer caller variables over the configured global context.

        Both sit over a fresh ``run_metadata()`` layer, so a ``timestamp``
        pinned in either one wins. Build the context once per run to give
        every file the same stamp.
        """
        return Context.layered(self.run_metadata(), self.config.global_context, variables)

    def render(self, template_id: str, variables: Mapping[str, Any] | None = None) -> RenderResult:
        """
        Render one template from the store.

        Non-template files are returned unrendered.

        Raises
        ------
        TemplateNotFoundError
            If the template does not exist.
        """
        template = self.store.load(template_id)
        if not template.is_template:
            content = template.raw_content
            text = content.decode("utf-8", errors="replace") if isinstance(content, bytes) else content
            return RenderResult(text)
        return self.evaluator.render(template.raw_content, self.build_context(variables))

    def render_string(self, text: str, variables: Mapping[str, Any] | None = None) -> RenderResult:
        return self.evaluator.render(text, self.build_context(variables))

    def clear_cache(self) -> None:
        self.store.clear_cache()
