"""Map template ids to destination paths under the output root."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from stencilforge.context import Context
from stencilforge.errors import PathEscapeError
from stencilforge.evaluator import Evaluator
from stencilforge.models import DEFAULT_TEMPLATE_SUFFIXES


@dataclass(frozen=True)
class ResolvedPath:
    path: Path
    warnings: tuple[str, ...] = ()


class OutputPathResolver:
    """
    Compute where a template's output goes.

    ``src/{{name}}.ts.hbs`` with ``name=user`` becomes
    ``<output_root>/src/user.ts``. Exactly one template suffix is stripped;
    ``config.template.json`` becomes ``config.json``.

    Parameters
    ----------
    output_root : Path
        Directory every destination must stay inside.

    evaluator : Evaluator
        Used for the variable-only interpolation pass.

    suffixes : list[str] | None
        Recognized template suffixes.
    """

    def __init__(
        self,
        output_root: Path,
        evaluator: Evaluator,
        suffixes: list[str] | None = None,
    ) -> None:
        self.output_root = Path(output_root)
        self.evaluator = evaluator
        self.suffixes = tuple(suffixes or DEFAULT_TEMPLATE_SUFFIXES)

    def strip_suffix(self, name: str) -> str:
        """Remove one template suffix, or the ``.template.`` infix, from a file name."""
        for suffix in self.suffixes:
            if name.endswith(suffix) and len(name) > len(suffix):
                return name[: -len(suffix)]
        if ".template." in name:
            return name.replace(".template.", ".", 1)
        return name

    def resolve(
        self,
        template_id: str,
        context: Context | Mapping[str, Any] | None = None,
    ) -> Path:
        """
        Resolve the destination of ``template_id``.

        Raises
        ------
        PathEscapeError
            If the interpolated path leaves the output root.
        """
        return self.resolve_with_warnings(template_id, context).path

    def resolve_with_warnings(
        self,
        template_id: str,
        context: Context | Mapping[str, Any] | None = None,
    ) -> ResolvedPath:
        """Like ``resolve()``, also returning unresolved-variable warnings."""
        relative = PurePosixPath(template_id)
        stripped = relative.with_name(self.strip_suffix(relative.name)).as_posix()

        rendered = self.evaluator.interpolate(stripped, context)
        # Empty variables can leave a leading or doubled slash; keep the path relative
        parts = [part for part in PurePosixPath(rendered.text).parts if part not in ("", ".", "/")]
        if not parts or ".." in parts:
            msg = f"Output path '{rendered.text}' escapes {self.output_root}"
            raise PathEscapeError(msg)

        root = self.output_root.resolve()
        destination = root.joinpath(*parts)
        if not destination.resolve().is_relative_to(root):
            msg = f"Output path '{rendered.text}' escapes {self.output_root}"
            raise PathEscapeError(msg)

        warnings = tuple(f"Path: {warning}" for warning in rendered.warnings)
        return ResolvedPath(destination, warnings)
