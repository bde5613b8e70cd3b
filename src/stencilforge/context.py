"""
stencilforge.context - Layered Render Context
=============================================

A ``Context`` is the key/value data a template is rendered against. It is an
ordered, read-only mapping built from layers, where later layers win:

    run metadata < global defaults < caller variables < loop bindings < partial overlay

Layers are stacked with ``collections.ChainMap``. ``Context.child()`` returns
a new context with one more layer on top, so loop and partial scopes never
mutate the context they were created from.

Values are addressed with dot paths (``project.author.name``). A numeric
segment indexes into a list (``items.0.title``).

Usage Example
-------------
>>> ctx = Context.layered({"name": "app"}, {"flags": {"debug": True}})
>>> ctx.resolve("flags.debug")
True
>>> ctx.child({"name": "inner"})["name"]
'inner'
>>> ctx["name"]
'app'
"""

from __future__ import annotations

import json
import tomllib
from collections import ChainMap
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def resolve_path(data: Any, path: str) -> Any:
    """
    Walk a dot path through nested mappings and sequences.

    Parameters
    ----------
    data : Any
        Root value, usually a mapping.

    path : str
        Dot-separated path such as ``"a.b.0.c"``.

    Returns
    -------
    Any
        The value at ``path``, or ``MISSING`` when any segment is absent.
    """
    if not path:
        return MISSING

    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return current


def stringify(value: Any) -> str:
    """
    Convert a context value to output text.

    Examples
    --------
    >>> [stringify(v) for v in (True, None, 3.0, 2.5, ["a", 1])]
    ['true', '', '3', '2.5', 'a,1']
    """
    if value is None or value is MISSING:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(dict(value), default=str)
    return str(value)


class Context(Mapping[str, Any]):
    """
    Read-only layered mapping with dot-path lookup.

    Parameters
    ----------
    layers : ChainMap[str, Any] | None
        Layers to wrap. ``ChainMap`` looks up its first map first, so the
        most specific layer is at index 0.
    """

    __slots__ = ("_layers",)

    def __init__(self, layers: ChainMap[str, Any] | None = None) -> None:
        self._layers: ChainMap[str, Any] = layers if layers is not None else ChainMap()

    @classmethod
    def layered(cls, *layers: Mapping[str, Any] | None) -> Context:
        """
        Build a context from layers ordered lowest priority first.

        ``None`` layers are ignored, so optional inputs can be passed as-is.
        """
        maps = [dict(layer) for layer in reversed(layers) if layer is not None]
        return cls(ChainMap(*maps))

    @classmethod
    def coerce(cls, value: Context | Mapping[str, Any] | None) -> Context:
        """Return ``value`` unchanged if it is a Context, else wrap it."""
        if isinstance(value, Context):
            return value
        return cls.layered(value)

    # -------------------------------------------------------------------------
    # Mapping protocol
    # -------------------------------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self._layers[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)

    def __repr__(self) -> str:
        return f"Context({self.to_dict()!r})"

    # -------------------------------------------------------------------------
    # Scoping and lookup
    # -------------------------------------------------------------------------

    def child(self, bindings: Mapping[str, Any]) -> Context:
        """
        Return a new context with ``bindings`` layered on top.

        The receiver is left unchanged.
        """
        return Context(self._layers.new_child(dict(bindings)))

    def resolve(self, path: str) -> Any:
        """
        Resolve a dot path.

        The first segment is looked up through the layers, so a loop binding
        named ``item`` hides a global ``item``; later segments walk into the
        value found.

        Returns
        -------
        Any
            The value, or ``MISSING``.
        """
        return resolve_path(self._layers, path)

    def has(self, path: str) -> bool:
        """Whether ``path`` resolves to a value (``None`` counts as a value)."""
        return self.resolve(path) is not MISSING

    def to_dict(self) -> dict[str, Any]:
        """Flatten the layers into a plain dict (top layer wins)."""
        return dict(self._layers)


# =============================================================================
# Context Input
# =============================================================================

def load_context_file(path: Path) -> dict[str, Any]:
    """
    Load context variables from a JSON, TOML or YAML file.

    Parameters
    ----------
    path : Path
        File to read. The format is chosen from the extension.

    Returns
    -------
    dict[str, Any]
        Top-level mapping of variables.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist.
    ValueError
        If the extension is unsupported, the file cannot be parsed, or the
        top level is not a mapping.
    """
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix == ".json":
        data = json.loads(text)
    elif suffix == ".toml":
        data = tomllib.loads(text)
    elif suffix in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            msg = f"Invalid YAML in {path.name}: {e}"
            raise ValueError(msg) from e
    else:
        msg = f"Unsupported context file '{path.name}'. Use .json, .toml, .yaml or .yml."
        raise ValueError(msg)

    if not isinstance(data, dict):
        msg = f"Context file '{path.name}' must contain a mapping at the top level."
        raise ValueError(msg)
    return data


def parse_assignment(assignment: str) -> tuple[str, Any]:
    """
    Parse a ``key.path=value`` assignment from the command line.

    The value is read as YAML so ``true``, ``3`` and ``[a, b]`` become a bool,
    an int and a list; anything else stays a string.

    Raises
    ------
    ValueError
        If there is no ``=`` or the key is empty.
    """
    key, sep, raw = assignment.partition("=")
    key = key.strip()
    if not sep or not key:
        msg = f"Invalid assignment '{assignment}'. Expected key=value."
        raise ValueError(msg)

    try:
        value = yaml.safe_load(raw) if raw.strip() else ""
    except yaml.YAMLError:
        value = raw
    return key, value


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Set ``value`` at a dot path in ``data``, creating nested dicts."""
    *parents, leaf = path.split(".")
    current = data
    for segment in parents:
        nested = current.get(segment)
        if not isinstance(nested, dict):
            nested = {}
            current[segment] = nested
        current = nested
    current[leaf] = value
