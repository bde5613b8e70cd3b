"""
stencilforge.errors - Exception Hierarchy
=========================================

All exceptions raised by stencilforge derive from ``StencilError``. Each one
also inherits from the closest builtin exception, so callers that already
catch ``FileNotFoundError`` or ``ValueError`` keep working.

Severity
--------
Fatal (abort the whole run):
    - TemplateRootError
    - MetadataError
    - PartialCycleError

Per file (recorded as a failed GenerationResult):
    - TemplateNotFoundError
    - PathEscapeError
    - StrictRenderError
    - GeneratedFileError
    - HookError

FailFastError is raised by the pipeline itself when ``fail_fast`` is set and a
file fails.
"""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from stencilforge.models import GenerationResult


class StencilError(Exception):
    """Base class for every stencilforge error."""


class TemplateRootError(StencilError, FileNotFoundError):
    """The configured template root is missing or not a readable directory."""


class TemplateNotFoundError(StencilError, FileNotFoundError):
    """A template id does not exist under the template root."""


class MetadataError(StencilError, ValueError):
    """A template metadata sidecar could not be parsed or validated."""


class PartialCycleError(StencilError, RecursionError):
    """
    A partial includes itself, directly or through other partials.

    Attributes
    ----------
    chain : tuple[str, ...]
        Partial names from the outermost include to the repeated one.
    """

    def __init__(self, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__(f"Partial cycle detected: {' -> '.join(chain)}")


class PathEscapeError(StencilError, ValueError):
    """A resolved output path points outside the output root."""


class StrictRenderError(StencilError, ValueError):
    """Strict mode rejected a render that left directives unresolved."""


class GeneratedFileError(StencilError, ValueError):
    """A written file failed post-write validation."""


class HookError(StencilError, RuntimeError):
    """
    A lifecycle hook raised.

    Attributes
    ----------
    event : str
        Name of the lifecycle event whose hook failed.
    """

    def __init__(self, event: str, original: BaseException) -> None:
        self.event = event
        self.original = original
        super().__init__(f"{event} hook failed: {original}")


class FailFastError(StencilError, RuntimeError):
    """
    A file failed while ``fail_fast`` was enabled.

    Attributes
    ----------
    results : list[GenerationResult]
        Every result recorded before the run stopped, the failed one last.
    """

    def __init__(self, results: list[GenerationResult]) -> None:
        self.results = results
        failed = results[-1]
        super().__init__(
            f"Generation stopped after {failed.template_id} failed: {failed.error}"
        )
