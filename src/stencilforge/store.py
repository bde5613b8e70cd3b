"""
stencilforge.store - Template Store
===================================

Discovers, loads and caches templates, partials and their metadata from a
template root directory.

Layout
------
::

    templates/
    ├── README.md.hbs                  template (suffix stripped on output)
    ├── README.md.hbs.meta.json        metadata sidecar for README.md.hbs
    ├── src/{{name}}.ts.hbs            template with an interpolated path
    ├── LICENSE                        non-template file, copied through
    └── partials/
        ├── header.hbs                 used as {{> header}}
        └── header.hbs.meta.json       default context overlay for header

A sidecar may also be named after the output file (``README.md.meta.json``).
Sidecars use JSON or TOML.

Templates are immutable once loaded and stay cached until ``clear_cache()``.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import ValidationError

from stencilforge.context import Context
from stencilforge.errors import MetadataError, TemplateNotFoundError, TemplateRootError
from stencilforge.logger import get_logger
from stencilforge.models import (
    DEFAULT_EXCLUDE,
    DEFAULT_TEMPLATE_SUFFIXES,
    GenerationConfig,
    TemplateMetadata,
)


logger = get_logger(__name__)

METADATA_SUFFIXES = (".meta.json", ".meta.toml")


@dataclass(frozen=True)
class Template:
    """
    A file under the template root.

    Attributes
    ----------
    id : str
        POSIX path relative to the template root.

    raw_content : str | bytes
        File text. Non-template files that are not valid UTF-8 are kept as
        bytes and copied through unchanged.

    source_path : Path
        Absolute path of the file.

    is_template : bool
        Whether the file carries a template suffix and gets rendered.

    metadata : TemplateMetadata
        Declared metadata, empty when there is no sidecar.
    """

    id: str
    raw_content: str | bytes
    source_path: Path
    is_template: bool
    metadata: TemplateMetadata = field(default_factory=TemplateMetadata)

    @property
    def is_binary(self) -> bool:
        return isinstance(self.raw_content, bytes)


@dataclass(frozen=True)
class Partial:
    """A reusable template fragment included with ``{{> name}}``."""

    name: str
    content: str
    context: Mapping[str, Any] = field(default_factory=dict)


class TemplateStore:
    """
    Template loader with per-instance caches.

    Parameters
    ----------
    root : Path
        Template root directory.

    suffixes : list[str] | None
        Suffixes marking template files.

    partial_dir : str
        Partials directory, relative to ``root``.

    exclude : list[str] | None
        File and directory names ignored during discovery.

    enable_caching : bool
        Cache loaded templates, partials and metadata.
    """

    def __init__(
        self,
        root: Path,
        *,
        suffixes: list[str] | None = None,
        partial_dir: str = "partials",
        exclude: list[str] | None = None,
        enable_caching: bool = True,
    ) -> None:
        self.root = Path(root)
        self.suffixes = tuple(suffixes or DEFAULT_TEMPLATE_SUFFIXES)
        self.partial_dir = partial_dir
        self.exclude = frozenset(exclude if exclude is not None else DEFAULT_EXCLUDE)
        self.enable_caching = enable_caching

        self._templates: dict[str, Template] = {}
        self._metadata: dict[str, TemplateMetadata] = {}
        self._partials: dict[str, Partial] = {}
        self._registered: dict[str, Partial] = {}

    @classmethod
    def from_config(cls, config: GenerationConfig) -> TemplateStore:
        return cls(
            config.template_root,
            suffixes=config.template_suffixes,
            partial_dir=config.partial_dir,
            exclude=config.exclude,
            enable_caching=config.enable_caching,
        )

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def ensure_root(self) -> None:
        """
        Check that the template root is a readable directory.

        Raises
        ------
        TemplateRootError
            If the root is missing, not a directory, or not readable.
        """
        if not self.root.exists():
            msg = f"Template root not found: {self.root}"
            raise TemplateRootError(msg)
        if not self.root.is_dir():
            msg = f"Template root is not a directory: {self.root}"
            raise TemplateRootError(msg)
        if not os.access(self.root, os.R_OK | os.X_OK):
            msg = f"Template root is not readable: {self.root}"
            raise TemplateRootError(msg)

    def is_template_id(self, template_id: str) -> bool:
        """Whether a file name marks a template (suffix or ``.template.`` infix)."""
        name = PurePosixPath(template_id).name
        return name.endswith(self.suffixes) or ".template." in name

    def list_all(self) -> list[str]:
        """
        List every file under the root, depth-first in sorted order.

        Metadata sidecars, the partials directory and excluded names are
        left out. Non-template files are included; they are copied through.

        Raises
        ------
        TemplateRootError
            If the root is unusable.
        """
        self.ensure_root()
        ids: list[str] = []
        self._walk(self.root, ids)
        logger.debug(f"Discovered {len(ids)} files under {self.root}")
        return ids

    def _walk(self, directory: Path, ids: list[str]) -> None:
        for entry in sorted(directory.iterdir(), key=lambda p: p.name):
            if entry.name in self.exclude:
                continue
            relative = entry.relative_to(self.root).as_posix()
            if entry.is_dir():
                if relative != self.partial_dir:
                    self._walk(entry, ids)
            elif not entry.name.endswith(METADATA_SUFFIXES):
                ids.append(relative)

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    def _source_path(self, template_id: str) -> Path:
        relative = PurePosixPath(template_id)
        if relative.is_absolute() or ".." in relative.parts:
            msg = f"Template id must be relative to the template root: {template_id}"
            raise TemplateNotFoundError(msg)
        return self.root.joinpath(*relative.parts)

    def load(self, template_id: str) -> Template:
        """
        Load a template by id.

        Raises
        ------
        TemplateNotFoundError
            If no file with that id exists under the root.
        MetadataError
            If the template's sidecar is malformed.
        """
        if self.enable_caching and template_id in self._templates:
            return self._templates[template_id]

        path = self._source_path(template_id)
        if not path.is_file():
            msg = f"Template not found: {template_id}"
            raise TemplateNotFoundError(msg)

        is_template = self.is_template_id(template_id)
        data = path.read_bytes()
        content: str | bytes
        if is_template:
            content = data.decode("utf-8")
        else:
            try:
                content = data.decode("utf-8")
            except UnicodeDecodeError:
                content = data

        template = Template(
            id=template_id,
            raw_content=content,
            source_path=path,
            is_template=is_template,
            metadata=self.load_metadata(template_id),
        )
        if self.enable_caching:
            self._templates[template_id] = template
        return template

    def _sidecar_candidates(self, template_id: str) -> list[Path]:
        path = self._source_path(template_id)
        stems = [path.name]
        for suffix in self.suffixes:
            if path.name.endswith(suffix) and len(path.name) > len(suffix):
                stems.append(path.name[: -len(suffix)])
                break
        return [path.with_name(stem + meta) for stem in stems for meta in METADATA_SUFFIXES]

    def load_metadata(self, template_id: str) -> TemplateMetadata:
        """
        Load the metadata sidecar of a template.

        Returns empty metadata when there is no sidecar.

        Raises
        ------
        MetadataError
            If the sidecar cannot be parsed or fails validation.
        """
        if self.enable_caching and template_id in self._metadata:
            return self._metadata[template_id]

        metadata = TemplateMetadata()
        for candidate in self._sidecar_candidates(template_id):
            if candidate.is_file():
                metadata = _read_metadata(candidate)
                break

        if self.enable_caching:
            self._metadata[template_id] = metadata
        return metadata

    # -------------------------------------------------------------------------
    # Partials
    # -------------------------------------------------------------------------

    def register_partial(
        self,
        name: str,
        content: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Register an in-memory partial. It takes precedence over files."""
        self._registered[name] = Partial(name, content, dict(context or {}))
        self._partials.pop(name, None)

    def load_partial(self, name: str) -> Partial | None:
        """
        Find a partial by name.

        ``{{> header}}`` matches ``partials/header`` or ``partials/header``
        followed by any template suffix. Returns ``None`` when nothing matches.
        """
        if name in self._registered:
            return self._registered[name]
        if self.enable_caching and name in self._partials:
            return self._partials[name]

        relative = PurePosixPath(name)
        if relative.is_absolute() or ".." in relative.parts:
            return None

        base = self.root.joinpath(self.partial_dir, *relative.parts)
        for candidate in [base, *(base.with_name(base.name + s) for s in self.suffixes)]:
            if not candidate.is_file():
                continue
            context: dict[str, Any] = {}
            for meta in METADATA_SUFFIXES:
                sidecar = candidate.with_name(candidate.name + meta)
                if sidecar.is_file():
                    context = _read_metadata(sidecar).context
                    break
            partial = Partial(name, candidate.read_text(encoding="utf-8"), context)
            if self.enable_caching:
                self._partials[name] = partial
            return partial

        logger.debug(f"Partial '{name}' not found under {self.root / self.partial_dir}")
        return None

    def clear_cache(self) -> None:
        """Drop every cached template, partial and metadata entry."""
        self._templates.clear()
        self._metadata.clear()
        self._partials.clear()

    # -------------------------------------------------------------------------
    # Context checks
    # -------------------------------------------------------------------------

    @staticmethod
    def validate_context(
        context: Context | Mapping[str, Any],
        metadata: TemplateMetadata,
    ) -> list[str]:
        """
        Return the required keys that ``context`` does not provide.

        Missing keys are reported, never raised: the template still renders
        and the unresolved directives stay verbatim.
        """
        ctx = Context.coerce(context)
        return [key for key in metadata.required_keys if not ctx.has(key)]


def _read_metadata(path: Path) -> TemplateMetadata:
    try:
        if path.name.endswith(".meta.toml"):
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        else:
            data = json.loads(path.read_text(encoding="utf-8"))
        return TemplateMetadata.model_validate(data)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError, ValidationError) as e:
        msg = f"Invalid metadata in {path}: {e}"
        raise MetadataError(msg) from e
