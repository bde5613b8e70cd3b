"""
stencilforge.models - Configuration and Result Models
=====================================================

This module defines the data models shared across stencilforge. Configuration
and metadata use Pydantic for validation; per-file results use frozen
dataclasses because they are produced internally and never parsed from input.

Architecture Notes
------------------
The models are organized as:

    GenerationConfig (pydantic, one per pipeline)
    TemplateMetadata (pydantic, one per template or partial sidecar)
    ConflictResolution (enum, answer of an on_conflict hook)
    FileState (enum, per-file state machine)
    GenerationResult (frozen dataclass, one per processed file)
    └── FileMetrics
    Summary (dataclass, aggregate of one run or several stages)

Usage Example
-------------
>>> from stencilforge.models import GenerationConfig
>>> config = GenerationConfig(template_root="templates", output_root="out")
>>> config.template_suffixes
['.hbs', '.mustache', '.template']
"""

from __future__ import annotations

import tomllib
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import tomlkit
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enumerations
# =============================================================================

class ConflictResolution(str, Enum):
    """
    Answer to an existing-destination collision.

    Attributes
    ----------
    OVERWRITE : str
        Replace the existing file (after an optional backup).

    SKIP : str
        Leave the existing file untouched and record the file as skipped.

    RENAME : str
        Write next to the existing file under a numbered name
        (``name-1.ext``, ``name-2.ext``, ...).
    """

    OVERWRITE = "overwrite"
    SKIP = "skip"
    RENAME = "rename"


class FileState(str, Enum):
    """
    States a file passes through during a pipeline run.

    A file moves forward through the states in declaration order. ``SKIPPED``
    and ``FAILED`` are terminal; ``RECORDED`` is the terminal state of a
    successful write.
    """

    DISCOVERED = "discovered"
    RENDERED = "rendered"
    PATH_RESOLVED = "path_resolved"
    CONFLICT_CHECKED = "conflict_checked"
    SKIPPED = "skipped"
    BACKED_UP = "backed_up"
    WRITTEN = "written"
    VALIDATED = "validated"
    HOOK_NOTIFIED = "hook_notified"
    RECORDED = "recorded"
    FAILED = "failed"


# =============================================================================
# Template Metadata
# =============================================================================

class TemplateMetadata(BaseModel):
    """
    Declared metadata for a template or partial.

    Metadata lives in a sidecar file next to the template
    (``component.tsx.hbs.meta.json`` or ``.meta.toml``). Both snake_case keys
    and the camelCase keys used by older template packs are accepted.

    Attributes
    ----------
    required_keys : list[str]
        Dot paths the context must provide. Missing keys become warnings.

    optional_keys : list[str]
        Dot paths the template reads when present.

    description : str
        Human-readable summary shown by ``stencilforge list``.

    context : dict[str, Any]
        Default-context overlay. Only meaningful for partials, where it wins
        over the ambient context on key collision.

    Examples
    --------
    >>> TemplateMetadata.model_validate({"requiredContext": ["title"]}).required_keys
    ['title']
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(default="", description="Template name")
    description: str = Field(default="", description="Short description")
    category: str = Field(default="general", description="Grouping for listings")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    version: str = Field(default="1.0.0", description="Template version")
    required_keys: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("required_keys", "requiredKeys", "requiredContext"),
        description="Context paths that must be present",
    )
    optional_keys: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("optional_keys", "optionalKeys", "optionalContext"),
        description="Context paths read when present",
    )
    context: dict[str, Any] = Field(
        default_factory=dict,
        description="Default context overlay (partials only)",
    )


# =============================================================================
# Generation Configuration
# =============================================================================

DEFAULT_TEMPLATE_SUFFIXES = [".hbs", ".mustache", ".template"]
DEFAULT_EXCLUDE = [".git", "__pycache__", ".DS_Store"]


class GenerationConfig(BaseModel):
    """
    Configuration for one generation pipeline.

    Hooks are not part of this model (they are callables); pass them to
    ``GenerationPipeline`` alongside the config.

    Attributes
    ----------
    name : str
        Pipeline name, used in logs and stage summaries.

    template_root : Path
        Directory tree holding the templates.

    output_root : Path
        Directory the rendered tree is written into.

    overwrite : bool
        Overwrite existing destinations without consulting conflict hooks.

    backup : bool
        Copy an existing destination to a timestamped sibling before
        overwriting it.

    validate_output : bool
        Run post-write validation on every written file. Also accepted as
        ``validate`` in config files.

    fail_fast : bool
        Stop the run at the first failed file.

    strict : bool
        Fail a file whose render left any directive unresolved. The default
        (permissive) leaves such directives verbatim and records warnings.

    template_suffixes : list[str]
        File suffixes that mark a file as a template. Exactly one is stripped
        from the output name.

    partial_dir : str
        Directory under ``template_root`` holding partials. It is excluded
        from discovery.

    global_context : dict[str, Any]
        Lowest-priority context layer, under caller variables.
    """

    name: str = Field(default="generator", description="Pipeline name")
    template_root: Path = Field(description="Directory containing templates")
    output_root: Path = Field(description="Directory receiving generated files")
    overwrite: bool = Field(default=False, description="Overwrite existing files")
    backup: bool = Field(default=True, description="Back up files before overwriting")
    validate_output: bool = Field(
        default=True,
        validation_alias=AliasChoices("validate_output", "validate"),
        description="Validate files after writing",
    )
    fail_fast: bool = Field(default=False, description="Stop on the first failed file")
    strict: bool = Field(default=False, description="Fail files with unresolved directives")
    enable_caching: bool = Field(default=True, description="Cache loaded templates")
    enable_partials: bool = Field(default=True, description="Resolve {{> partial}} directives")
    enable_helpers: bool = Field(default=True, description="Resolve helper calls")
    template_suffixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEMPLATE_SUFFIXES),
        description="Suffixes that mark template files",
    )
    partial_dir: str = Field(default="partials", description="Partials directory")
    exclude: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE),
        description="File or directory names skipped during discovery",
    )
    global_context: dict[str, Any] = Field(
        default_factory=dict,
        description="Default context values",
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("template_suffixes")
    @classmethod
    def normalize_suffixes(cls, v: list[str]) -> list[str]:
        """
        Ensure every suffix starts with a dot.

        Raises
        ------
        ValueError
            If no suffix is left after normalization.
        """
        normalized = []
        for suffix in v:
            suffix = suffix.strip()
            if not suffix:
                continue
            normalized.append(suffix if suffix.startswith(".") else f".{suffix}")

        if not normalized:
            msg = "At least one template suffix is required."
            raise ValueError(msg)
        return normalized

    @field_validator("partial_dir")
    @classmethod
    def validate_partial_dir(cls, v: str) -> str:
        """Partials must live in a relative directory under the template root."""
        v = v.strip().strip("/")
        if not v or Path(v).is_absolute() or ".." in Path(v).parts:
            msg = f"Invalid partial directory '{v}'. Use a relative path under the template root."
            raise ValueError(msg)
        return v

    # -------------------------------------------------------------------------
    # Serialization Methods
    # -------------------------------------------------------------------------

    def to_toml_dict(self) -> dict[str, Any]:
        """
        Convert the config to a TOML-compatible dictionary.

        Returns
        -------
        dict[str, Any]
            Nested dictionary with paths stored as strings.
        """
        data = self.model_dump(mode="json")
        data["template_root"] = str(self.template_root)
        data["output_root"] = str(self.output_root)
        return data

    def save_toml(self, path: Path) -> Path:
        """
        Write the config to a commented TOML file.

        Parameters
        ----------
        path : Path
            Destination file, typically ``stencilforge.toml``.

        Returns
        -------
        Path
            The path that was written.
        """
        data = self.to_toml_dict()
        global_context = data.pop("global_context")

        doc = tomlkit.document()
        doc.add(tomlkit.comment("stencilforge generation settings"))
        doc.add(tomlkit.nl())
        for key, value in data.items():
            doc.add(key, value)

        doc.add(tomlkit.nl())
        doc.add(tomlkit.comment("Lowest-priority template variables"))
        context_table = tomlkit.table()
        for key, value in global_context.items():
            context_table.add(key, value)
        doc.add("global_context", context_table)

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(tomlkit.dumps(doc), encoding="utf-8")
        return path

    @classmethod
    def from_toml(cls, path: Path) -> GenerationConfig:
        """
        Load a config from a TOML file.

        Relative ``template_root`` and ``output_root`` values are resolved
        against the directory containing the file.

        Raises
        ------
        FileNotFoundError
            If the config file doesn't exist.
        pydantic.ValidationError
            If the file has invalid values.
        """
        with open(path, "rb") as f:
            data = tomllib.load(f)

        base = Path(path).parent
        for key in ("template_root", "output_root"):
            if key in data and not Path(data[key]).is_absolute():
                data[key] = base / data[key]

        return cls(**data)


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class FileMetrics:
    """Size in bytes of the written content and wall time spent on the file."""

    size: int = 0
    duration_ms: float = 0.0


@dataclass(frozen=True)
class GenerationResult:
    """
    Outcome of processing one template file.

    Attributes
    ----------
    file_path : Path
        Destination path (after any rename).

    template_id : str
        Template id relative to the template root.

    success : bool
        False when the file ended in ``FileState.FAILED``.

    skipped : bool
        True when the destination was left untouched.

    error : str | None
        Failure message for failed files.

    warnings : tuple[str, ...]
        Non-fatal issues: missing required keys, unresolved directives, ...

    metrics : FileMetrics
        Written size and processing time.

    state : FileState
        Terminal state of the file.

    written : bool
        True when content reached the disk. A file can be written and still
        fail (validation or after-write hook), in which case it is still
        removed by ``cleanup()``.

    backup_path : Path | None
        Backup of the previous destination content, when one was made.
    """

    file_path: Path
    template_id: str
    success: bool
    skipped: bool = False
    error: str | None = None
    warnings: tuple[str, ...] = ()
    metrics: FileMetrics = field(default_factory=FileMetrics)
    state: FileState = FileState.RECORDED
    written: bool = False
    backup_path: Path | None = None

    @property
    def generated(self) -> bool:
        """Whether the file was written and finished successfully."""
        return self.success and not self.skipped


@dataclass
class Summary:
    """
    Aggregate of the results of one run, or of several stages.

    Attributes
    ----------
    generated : int
        Files written successfully.

    skipped : int
        Files left untouched.

    failed : int
        Files that ended in ``FileState.FAILED``.

    files : list[Path]
        Every path written, including written-then-failed ones.

    results : list[GenerationResult]
        All results, in processing order.
    """

    generated: int = 0
    skipped: int = 0
    failed: int = 0
    files: list[Path] = field(default_factory=list)
    results: list[GenerationResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True when no file failed."""
        return self.failed == 0

    @property
    def warnings(self) -> list[str]:
        """Every warning of every result, prefixed with the template id."""
        return [
            f"{result.template_id}: {warning}"
            for result in self.results
            for warning in result.warnings
        ]

    @classmethod
    def from_results(cls, results: Iterable[GenerationResult]) -> Summary:
        """Build a summary by counting results."""
        summary = cls()
        for result in results:
            summary.results.append(result)
            if not result.success:
                summary.failed += 1
            elif result.skipped:
                summary.skipped += 1
            else:
                summary.generated += 1
            if result.written:
                summary.files.append(result.file_path)
        return summary

    def merge(self, other: Summary) -> Summary:
        """Concatenate two summaries (used for multi-stage runs)."""
        return Summary(
            generated=self.generated + other.generated,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            files=[*self.files, *other.files],
            results=[*self.results, *other.results],
        )


# =============================================================================
# Result Utilities
# =============================================================================

def merge_results(result_lists: Iterable[Iterable[GenerationResult]]) -> list[GenerationResult]:
    """Flatten per-stage result lists, preserving order."""
    return [result for results in result_lists for result in results]


def filter_results(
    results: Iterable[GenerationResult],
    predicate: Callable[[GenerationResult], bool],
) -> list[GenerationResult]:
    """Return the results matching ``predicate``, preserving order."""
    return [result for result in results if predicate(result)]


def group_results_by_template(
    results: Iterable[GenerationResult],
) -> dict[str, list[GenerationResult]]:
    """Group results by template id, in first-seen order."""
    grouped: dict[str, list[GenerationResult]] = defaultdict(list)
    for result in results:
        grouped[result.template_id].append(result)
    return dict(grouped)
