"""Post-write checks for generated files."""

from __future__ import annotations

import json
import re
import tomllib
from enum import Enum
from pathlib import Path

import yaml


# Text that still looks like an unrendered directive: {{name}}, {{#if x}}, {{> p}}
LEFTOVER_DIRECTIVE = re.compile(r"\{\{\s*[#/>]?\s*[\w.$@-]+(\s[^{}]*)?\}\}")


class FileKind(str, Enum):
    JSON = "json"
    TOML = "toml"
    YAML = "yaml"
    PYTHON = "python"
    SOURCE = "source"
    OTHER = "other"


_KINDS_BY_SUFFIX = {
    ".json": FileKind.JSON,
    ".toml": FileKind.TOML,
    ".yaml": FileKind.YAML,
    ".yml": FileKind.YAML,
    ".py": FileKind.PYTHON,
    ".pyi": FileKind.PYTHON,
    ".js": FileKind.SOURCE,
    ".jsx": FileKind.SOURCE,
    ".mjs": FileKind.SOURCE,
    ".cjs": FileKind.SOURCE,
    ".ts": FileKind.SOURCE,
    ".tsx": FileKind.SOURCE,
    ".css": FileKind.SOURCE,
    ".scss": FileKind.SOURCE,
    ".go": FileKind.SOURCE,
    ".rs": FileKind.SOURCE,
    ".java": FileKind.SOURCE,
    ".kt": FileKind.SOURCE,
    ".cs": FileKind.SOURCE,
    ".rb": FileKind.SOURCE,
    ".sh": FileKind.SOURCE,
}


def detect_kind(path: Path) -> FileKind:
    return _KINDS_BY_SUFFIX.get(path.suffix.lower(), FileKind.OTHER)


def validate_generated_file(path: Path, content: str | None = None) -> list[str]:
    """
    Check that a generated file is well-formed for its type.

    Parameters
    ----------
    path : Path
        Written file. Its suffix selects the checks.

    content : str | None
        File text. Read from ``path`` when omitted.

    Returns
    -------
    list[str]
        Problems found; empty when the file is valid.

    Checks Performed
    ----------------
    1. JSON, TOML and YAML files parse
    2. Python files compile
    3. Other source files contain no leftover ``{{ ... }}`` directives
    """
    kind = detect_kind(path)
    if kind is FileKind.OTHER:
        return []

    if content is None:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return [f"Could not read {path.name}: {e}"]

    issues: list[str] = []
    if kind is FileKind.JSON:
        try:
            json.loads(content)
        except json.JSONDecodeError as e:
            issues.append(f"Invalid JSON in {path.name}: {e}")
    elif kind is FileKind.TOML:
        try:
            tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            issues.append(f"Invalid TOML in {path.name}: {e}")
    elif kind is FileKind.YAML:
        try:
            list(yaml.safe_load_all(content))
        except yaml.YAMLError as e:
            issues.append(f"Invalid YAML in {path.name}: {e}")
    elif kind is FileKind.PYTHON:
        try:
            compile(content, str(path), "exec")
        except (SyntaxError, ValueError) as e:
            issues.append(f"Syntax error in {path.name}: {e}")

    # Python compiles with a directive inside a string literal, so scan it too
    if kind in (FileKind.PYTHON, FileKind.SOURCE):
        match = LEFTOVER_DIRECTIVE.search(content)
        if match:
            issues.append(f"Unrendered directive in {path.name}: {match.group(0)}")

    return issues
