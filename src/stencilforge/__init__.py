"""
stencilforge - Template-Driven Code Generator
=============================================

Renders a tree of parameterized template files against a context and writes
the result to an output tree, with conflict handling, backups, post-write
validation, lifecycle hooks and rollback.

Features
--------
- **Small template language**: variables, ``if``/``unless``/``each`` blocks,
  partials and helpers, parsed once and cached
- **Safe writes**: existing files are skipped, overwritten with a backup, or
  renamed, as configured or as a hook decides
- **Validation**: generated JSON, TOML, YAML and Python must parse
- **Rollback**: ``cleanup()`` removes everything a run wrote

Quick Start
-----------
```bash
stencilforge generate templates/ out/ --var name=billing
```

Example
-------
>>> from stencilforge import GenerationConfig, GenerationPipeline
>>> config = GenerationConfig(template_root="templates", output_root="out")
>>> summary = GenerationPipeline(config).run({"name": "billing"})

Architecture
------------
- ``parser``: directive parser producing a node tree
- ``evaluator``: renders node trees against a context
- ``helpers``: per-engine helper registry and built-in helpers
- ``store``: template, partial and metadata loading
- ``paths``: output path resolution
- ``conflicts``: conflict decisions and backups
- ``validation``: post-write checks
- ``hooks``: lifecycle hooks
- ``pipeline``: the generation run and multi-stage runs
- ``cli``: Typer command line interface
"""

# =============================================================================
# Package Metadata
# =============================================================================
__version__ = "0.1.0"
__license__ = "MIT"

from stencilforge.context import Context
from stencilforge.engine import Engine
from stencilforge.errors import (
    FailFastError,
    GeneratedFileError,
    HookError,
    MetadataError,
    PartialCycleError,
    PathEscapeError,
    StencilError,
    StrictRenderError,
    TemplateNotFoundError,
    TemplateRootError,
)
from stencilforge.evaluator import Evaluator, RenderResult
from stencilforge.helpers import HelperRegistry
from stencilforge.hooks import GenerationHooks, HookEvent
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
from stencilforge.paths import OutputPathResolver
from stencilforge.pipeline import GenerationPipeline, StagedPipeline
from stencilforge.store import TemplateStore

__all__ = [
    "__version__",
    "ConflictResolution",
    "Context",
    "Engine",
    "Evaluator",
    "FailFastError",
    "FileState",
    "GeneratedFileError",
    "GenerationConfig",
    "GenerationHooks",
    "GenerationPipeline",
    "GenerationResult",
    "HelperRegistry",
    "HookError",
    "HookEvent",
    "MetadataError",
    "OutputPathResolver",
    "PartialCycleError",
    "PathEscapeError",
    "RenderResult",
    "StagedPipeline",
    "StencilError",
    "StrictRenderError",
    "Summary",
    "TemplateMetadata",
    "TemplateNotFoundError",
    "TemplateRootError",
    "TemplateStore",
    "filter_results",
    "group_results_by_template",
    "merge_results",
]
