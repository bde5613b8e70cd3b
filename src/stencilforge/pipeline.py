"""
stencilforge.pipeline - Generation Pipeline
===========================================

Runs every template under a template root through render, path resolution,
conflict check, backup, write, validation and hooks, and records one
``GenerationResult`` per file.

Per-File States
---------------
::

    DISCOVERED -> RENDERED -> PATH_RESOLVED -> CONFLICT_CHECKED
        -> SKIPPED
        -> [BACKED_UP] -> WRITTEN -> VALIDATED -> HOOK_NOTIFIED -> RECORDED

Any stage may end in FAILED instead. A failed file does not stop the run
unless ``fail_fast`` is set. Fatal errors (unusable template root, bad
metadata, partial cycle) propagate out of ``run()``; files written so far
stay on disk until ``cleanup()`` is called.

Usage Example
-------------
>>> config = GenerationConfig(template_root="templates", output_root="out")
>>> pipeline = GenerationPipeline(config)
>>> summary = pipeline.run({"name": "app"})
>>> if not summary.success:
...     pipeline.cleanup()
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from stencilforge.conflicts import ConflictDecision, ConflictResolver, create_backup
from stencilforge.context import Context
from stencilforge.engine import Engine
from stencilforge.errors import (
    FailFastError,
    GeneratedFileError,
    MetadataError,
    PartialCycleError,
    StrictRenderError,
    TemplateRootError,
)
from stencilforge.hooks import GenerationHooks, HookEvent
from stencilforge.logger import get_logger
from stencilforge.models import (
    ConflictResolution,
    FileMetrics,
    FileState,
    GenerationConfig,
    GenerationResult,
    Summary,
)
from stencilforge.store import Template
from stencilforge.validation import validate_generated_file


logger = get_logger(__name__)

FATAL_ERRORS = (TemplateRootError, MetadataError, PartialCycleError)


class GenerationPipeline:
    """
    One configured generation run over a template root.

    Parameters
    ----------
    config : GenerationConfig
        Roots and behavior switches.

    hooks : GenerationHooks | None
        Lifecycle hooks.

    engine : Engine | None
        Rendering engine; built from ``config`` when omitted. Pass one to
        share registered helpers and partials.

    Attributes
    ----------
    results : list[GenerationResult]
        Results of the latest run, in processing order.

    written : list[Path]
        Paths written by the latest run, in write order.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        hooks: GenerationHooks | None = None,
        engine: Engine | None = None,
    ) -> None:
        self.config = config
        self.hooks = hooks if hooks is not None else GenerationHooks()
        self.engine = engine if engine is not None else Engine(config)
        self.conflicts = ConflictResolver(overwrite=config.overwrite, hooks=self.hooks)
        self.results: list[GenerationResult] = []
        self.written: list[Path] = []

    @property
    def name(self) -> str:
        return self.config.name

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self, variables: Mapping[str, Any] | None = None) -> Summary:
        """
        Generate every file under the template root.

        Parameters
        ----------
        variables : Mapping[str, Any] | None
            Caller context, layered over ``config.global_context``.

        Returns
        -------
        Summary
            Counts, written paths and ordered results.

        Raises
        ------
        TemplateRootError
            If the template root is unusable.
        MetadataError
            If a metadata sidecar is malformed.
        PartialCycleError
            If a partial includes itself.
        HookError
            If a ``before_generate`` or ``after_generate`` hook raises.
        FailFastError
            If ``fail_fast`` is set and a file fails.
        """
        self.results = []
        self.written = []
        self.conflicts.reset()

        context = self.engine.build_context(variables)
        self.hooks.fire(HookEvent.BEFORE_GENERATE, context)

        template_ids = self.engine.store.list_all()
        logger.debug(f"{self.name}: {len(template_ids)} templates to process")

        for template_id in template_ids:
            result = self._process(template_id, context)
            self.results.append(result)
            if not result.success and self.config.fail_fast:
                raise FailFastError(list(self.results))

        self.hooks.fire(HookEvent.AFTER_GENERATE, list(self.results))

        summary = Summary.from_results(self.results)
        logger.info(
            f"{self.name}: {summary.generated} generated, "
            f"{summary.skipped} skipped, {summary.failed} failed"
        )
        return summary

    def cleanup(self) -> list[Path]:
        """
        Delete every file written by the latest run.

        Skipped destinations and backups are left alone. Files that are
        already gone are ignored; deletion errors are logged.

        Returns
        -------
        list[Path]
            Paths actually removed.
        """
        removed: list[Path] = []
        for path in reversed(self.written):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"Could not remove {path}: {e}")
                continue
            removed.append(path)

        logger.info(f"{self.name}: removed {len(removed)} generated files")
        self.written = []
        return removed

    def get_summary(self) -> Summary:
        """Summary of the latest run."""
        return Summary.from_results(self.results)

    # -------------------------------------------------------------------------
    # Per-file processing
    # -------------------------------------------------------------------------

    def _process(self, template_id: str, context: Context) -> GenerationResult:
        started = time.perf_counter()
        state = FileState.DISCOVERED
        warnings: list[str] = []
        destination = self.config.output_root / template_id
        written = False
        backup: Path | None = None

        def elapsed() -> float:
            return (time.perf_counter() - started) * 1000

        try:
            template = self.engine.store.load(template_id)
            content = self._render(template, context, warnings)
            state = FileState.RENDERED

            resolved = self.engine.paths.resolve_with_warnings(template_id, context)
            warnings.extend(resolved.warnings)
            if self.config.strict and resolved.warnings:
                msg = f"Unresolved variables in output path of {template_id}"
                raise StrictRenderError(msg)
            destination = resolved.path
            state = FileState.PATH_RESOLVED

            decision = self._check_conflict(template, destination, context, warnings)
            state = FileState.CONFLICT_CHECKED
            if not decision.write:
                logger.debug(f"Skipped {template_id} -> {destination}")
                return GenerationResult(
                    file_path=destination,
                    template_id=template_id,
                    success=True,
                    skipped=True,
                    warnings=tuple(warnings),
                    metrics=FileMetrics(duration_ms=elapsed()),
                    state=FileState.SKIPPED,
                )

            destination = decision.path
            self.conflicts.claim(destination)

            if isinstance(content, str):
                content = self.hooks.transform(destination, content, context)

            if (
                decision.resolution is ConflictResolution.OVERWRITE
                and self.config.backup
                and destination.exists()
            ):
                backup = create_backup(destination)
                if backup is not None:
                    state = FileState.BACKED_UP
                else:
                    warnings.append(f"Backup of {destination.name} failed")

            data = content.encode("utf-8") if isinstance(content, str) else content
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
            written = True
            self.written.append(destination)
            state = FileState.WRITTEN

            if self.config.validate_output and isinstance(content, str):
                issues = validate_generated_file(destination, content)
                if issues:
                    raise GeneratedFileError("; ".join(issues))
            state = FileState.VALIDATED

            self.hooks.fire(HookEvent.AFTER_FILE_WRITE, destination, content, context)
            state = FileState.HOOK_NOTIFIED

            logger.debug(f"Generated {template_id} -> {destination}")
            return GenerationResult(
                file_path=destination,
                template_id=template_id,
                success=True,
                warnings=tuple(warnings),
                metrics=FileMetrics(size=len(data), duration_ms=elapsed()),
                state=FileState.RECORDED,
                written=True,
                backup_path=backup,
            )

        except FATAL_ERRORS:
            raise

        except Exception as e:
            logger.warning(f"{template_id} failed after {state.value}: {e}")
            self.hooks.notify_error(e, template_id)
            return GenerationResult(
                file_path=destination,
                template_id=template_id,
                success=False,
                error=str(e),
                warnings=tuple(warnings),
                metrics=FileMetrics(duration_ms=elapsed()),
                state=FileState.FAILED,
                written=written,
                backup_path=backup,
            )

    def _render(self, template: Template, context: Context, warnings: list[str]) -> str | bytes:
        if not template.is_template:
            return template.raw_content

        missing = self.engine.store.validate_context(context, template.metadata)
        warnings.extend(f"Missing required context key '{key}'" for key in missing)

        rendered = self.engine.evaluator.render(template.raw_content, context)
        warnings.extend(rendered.warnings)
        if self.config.strict and rendered.issues:
            msg = f"{len(rendered.issues)} unresolved directive(s) in {template.id}"
            raise StrictRenderError(msg)
        return rendered.text

    def _check_conflict(
        self,
        template: Template,
        destination: Path,
        context: Context,
        warnings: list[str],
    ) -> ConflictDecision:
        if self.conflicts.is_claimed(destination):
            decision = self.conflicts.resolve(destination, context)
            if not decision.write:
                warnings.append(f"Duplicate destination {destination} already written in this run")
            return decision

        # Static files are only copied into free destinations
        if not template.is_template and destination.exists() and not self.config.overwrite:
            return ConflictDecision(False, ConflictResolution.SKIP, destination)

        return self.conflicts.resolve(destination, context)


class StagedPipeline:
    """
    Several independently configured pipelines run in sequence.

    Every stage receives the same variables. Results concatenate in stage
    order; a fatal error in one stage stops the remaining ones.

    Parameters
    ----------
    stages : list[GenerationPipeline] | None
        Initial stages.
    """

    def __init__(self, stages: list[GenerationPipeline] | None = None) -> None:
        self.stages: list[GenerationPipeline] = list(stages or [])
        self.stage_summaries: dict[str, Summary] = {}

    def add_stage(self, stage: GenerationPipeline) -> StagedPipeline:
        self.stages.append(stage)
        return self

    @classmethod
    def from_configs(
        cls,
        configs: list[GenerationConfig],
        *,
        hooks: GenerationHooks | None = None,
    ) -> StagedPipeline:
        return cls([GenerationPipeline(config, hooks=hooks) for config in configs])

    def run(self, variables: Mapping[str, Any] | None = None) -> Summary:
        """
        Run every stage and merge their summaries.

        Each stage's own summary is also kept in ``stage_summaries`` under the
        stage name. Stages that share a name share one entry.
        """
        self.stage_summaries = {}
        summary = Summary()
        for stage in self.stages:
            logger.debug(f"Running stage {stage.name}")
            stage_summary = stage.run(variables)
            previous = self.stage_summaries.get(stage.name)
            self.stage_summaries[stage.name] = (
                previous.merge(stage_summary) if previous is not None else stage_summary
            )
            summary = summary.merge(stage_summary)
        return summary

    def cleanup(self) -> list[Path]:
        """Remove the files written by every stage, last stage first."""
        removed: list[Path] = []
        for stage in reversed(self.stages):
            removed.extend(stage.cleanup())
        return removed
