"""
stencilforge.helpers - Template Helper Registry
===============================================

Helpers are named functions callable from templates with
``{{helperName arg1 arg2}}``. Every helper receives the render context first,
followed by the parsed arguments, and returns the text to insert.

Each ``Engine`` owns its own ``HelperRegistry``; there is no process-wide
table. A registry starts with the built-in helpers. Registering a name that
already exists shadows the previous helper (last write wins). Built-ins can be
shadowed but never removed: unregistering a shadowing helper brings the
built-in back.

Built-in Helpers
----------------
Case:
    uppercase, lowercase, capitalize, camelCase, pascalCase, kebabCase,
    snakeCase

Arrays:
    join, first, last, length, includes

Comparison and logic (return ``"true"`` or ``""``):
    eq, ne, gt, lt, and, or

Dates:
    formatDate

Locale:
    rtl, langCode

Compliance annotations:
    nsmClassification, gdprNotice, wcagLevel

Files:
    fileName, fileExt

Usage
-----
>>> registry = HelperRegistry()
>>> registry.lookup("kebabCase")({}, "UserProfile")
'user-profile'
>>> registry.register("shout", lambda ctx, s: f"{s}!")
>>> "shout" in registry
True
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from datetime import UTC, date, datetime
from pathlib import PurePosixPath
from typing import Any

from stencilforge.context import stringify
from stencilforge.logger import get_logger


logger = get_logger(__name__)

Helper = Callable[..., Any]


# =============================================================================
# String Case Helpers
# =============================================================================

_WORD_BOUNDARY = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])|\d+")


def _words(value: Any) -> list[str]:
    """Split ``userProfile``, ``user-profile`` or ``User Profile`` into words."""
    return _WORD_BOUNDARY.findall(str(value))


def uppercase(context: Mapping[str, Any], value: Any) -> str:
    return str(value).upper()


def lowercase(context: Mapping[str, Any], value: Any) -> str:
    return str(value).lower()


def capitalize(context: Mapping[str, Any], value: Any) -> str:
    """Uppercase the first character, leave the rest as-is."""
    text = str(value)
    return text[:1].upper() + text[1:]


def pascal_case(context: Mapping[str, Any], value: Any) -> str:
    return "".join(word.capitalize() for word in _words(value))


def camel_case(context: Mapping[str, Any], value: Any) -> str:
    pascal = pascal_case(context, value)
    return pascal[:1].lower() + pascal[1:]


def kebab_case(context: Mapping[str, Any], value: Any) -> str:
    return "-".join(word.lower() for word in _words(value))


def snake_case(context: Mapping[str, Any], value: Any) -> str:
    return "_".join(word.lower() for word in _words(value))


# =============================================================================
# Array Helpers
# =============================================================================

def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def join(context: Mapping[str, Any], items: Any, separator: str = ", ") -> str:
    if not _is_list(items):
        return ""
    return str(separator).join(stringify(item) for item in items)


def first(context: Mapping[str, Any], items: Any) -> Any:
    return items[0] if _is_list(items) and items else ""


def last(context: Mapping[str, Any], items: Any) -> Any:
    return items[-1] if _is_list(items) and items else ""


def length(context: Mapping[str, Any], items: Any) -> int:
    if _is_list(items) or isinstance(items, (str, Mapping)):
        return len(items)
    return 0


def includes(context: Mapping[str, Any], items: Any, value: Any) -> str:
    return "true" if _is_list(items) and value in items else ""


# =============================================================================
# Comparison Helpers
# =============================================================================

def _flag(condition: bool) -> str:
    return "true" if condition else ""


def eq(context: Mapping[str, Any], a: Any, b: Any) -> str:
    return _flag(a == b)


def ne(context: Mapping[str, Any], a: Any, b: Any) -> str:
    return _flag(a != b)


def gt(context: Mapping[str, Any], a: Any, b: Any) -> str:
    try:
        return _flag(a > b)
    except TypeError:
        return ""


def lt(context: Mapping[str, Any], a: Any, b: Any) -> str:
    try:
        return _flag(a < b)
    except TypeError:
        return ""


def and_(context: Mapping[str, Any], *values: Any) -> str:
    return _flag(all(values))


def or_(context: Mapping[str, Any], *values: Any) -> str:
    return _flag(any(values))


# =============================================================================
# Date Helpers
# =============================================================================

_DATE_TOKENS = re.compile(r"YYYY|MM|DD|HH|mm|ss")


def _coerce_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=UTC)
    return datetime.fromisoformat(str(value))


def format_date(
    context: Mapping[str, Any],
    value: Any = None,
    fmt: str = "YYYY-MM-DD",
) -> str:
    """
    Format a date with the tokens ``YYYY MM DD HH mm ss``.

    Without a date argument the context's ``timestamp`` is used, so a run that
    pins ``timestamp`` renders the same output every time. Only when neither
    is present does the helper fall back to the current UTC time.

    Examples
    --------
    >>> format_date({}, "2024-03-05T07:08:09", "DD/MM/YYYY HH:mm")
    '05/03/2024 07:08'
    """
    if value is None:
        value = context.get("timestamp")
    moment = _coerce_datetime(value) if value is not None else datetime.now(UTC)

    tokens = {
        "YYYY": f"{moment.year:04d}",
        "MM": f"{moment.month:02d}",
        "DD": f"{moment.day:02d}",
        "HH": f"{moment.hour:02d}",
        "mm": f"{moment.minute:02d}",
        "ss": f"{moment.second:02d}",
    }
    return _DATE_TOKENS.sub(lambda m: tokens[m.group(0)], str(fmt))


# =============================================================================
# Locale Helpers
# =============================================================================

RTL_LANGUAGES = ("ar", "he", "fa", "ur")


def lang_code(context: Mapping[str, Any], locale: Any) -> str:
    """Return the language subtag: ``nb-NO`` -> ``nb``."""
    return re.split(r"[-_]", str(locale), maxsplit=1)[0].lower()


def rtl(context: Mapping[str, Any], locale: Any) -> str:
    return _flag(lang_code(context, locale) in RTL_LANGUAGES)


# =============================================================================
# Compliance Annotation Helpers
# =============================================================================

NSM_CLASSIFICATIONS = {
    "OPEN": "NSM Classification: OPEN",
    "RESTRICTED": "NSM Classification: RESTRICTED",
    "CONFIDENTIAL": "NSM Classification: CONFIDENTIAL",
    "SECRET": "NSM Classification: SECRET",
}


def nsm_classification(context: Mapping[str, Any], level: Any = "OPEN") -> str:
    """Unknown levels fall back to OPEN."""
    return NSM_CLASSIFICATIONS.get(str(level).upper(), NSM_CLASSIFICATIONS["OPEN"])


def gdpr_notice(context: Mapping[str, Any]) -> str:
    return (
        "// GDPR Compliance: This component handles personal data "
        "according to GDPR requirements"
    )


def wcag_level(context: Mapping[str, Any], level: Any = "AAA") -> str:
    return f"// WCAG {level} Compliance: This component meets accessibility standards"


# =============================================================================
# File Helpers
# =============================================================================

def file_name(context: Mapping[str, Any], path: Any) -> str:
    return PurePosixPath(str(path)).name


def file_ext(context: Mapping[str, Any], path: Any) -> str:
    return PurePosixPath(str(path)).suffix


BUILTIN_HELPERS: dict[str, Helper] = {
    "uppercase": uppercase,
    "lowercase": lowercase,
    "capitalize": capitalize,
    "camelCase": camel_case,
    "pascalCase": pascal_case,
    "kebabCase": kebab_case,
    "snakeCase": snake_case,
    "join": join,
    "first": first,
    "last": last,
    "length": length,
    "includes": includes,
    "eq": eq,
    "ne": ne,
    "gt": gt,
    "lt": lt,
    "and": and_,
    "or": or_,
    "formatDate": format_date,
    "rtl": rtl,
    "langCode": lang_code,
    "nsmClassification": nsm_classification,
    "gdprNotice": gdpr_notice,
    "wcagLevel": wcag_level,
    "fileName": file_name,
    "fileExt": file_ext,
}


# =============================================================================
# Registry
# =============================================================================

class HelperRegistry:
    """
    Named helper table owned by one engine.

    Parameters
    ----------
    include_builtins : bool, default=True
        Start with the built-in helpers. An empty registry is mostly useful
        in tests.
    """

    def __init__(self, *, include_builtins: bool = True) -> None:
        self._builtins: dict[str, Helper] = dict(BUILTIN_HELPERS) if include_builtins else {}
        self._custom: dict[str, Helper] = {}

    def register(self, name: str, fn: Helper) -> None:
        """
        Register ``fn`` under ``name``, shadowing any existing helper.

        Raises
        ------
        ValueError
            If ``name`` is not a single identifier-like word.
        TypeError
            If ``fn`` is not callable.
        """
        if not re.fullmatch(r"[A-Za-z_][\w-]*", name):
            msg = f"Invalid helper name '{name}'."
            raise ValueError(msg)
        if not callable(fn):
            msg = f"Helper '{name}' must be callable."
            raise TypeError(msg)

        if name in self:
            logger.debug(f"Helper '{name}' shadowed by a new registration")
        self._custom[name] = fn

    def register_many(self, helpers: Mapping[str, Helper]) -> None:
        for name, fn in helpers.items():
            self.register(name, fn)

    def unregister(self, name: str) -> None:
        """
        Remove a registered helper.

        If the helper shadowed a built-in, the built-in becomes visible again.

        Raises
        ------
        ValueError
            If ``name`` only exists as a built-in.
        KeyError
            If ``name`` is not registered at all.
        """
        if name in self._custom:
            del self._custom[name]
            return
        if name in self._builtins:
            msg = f"Built-in helper '{name}' cannot be removed; register a replacement instead."
            raise ValueError(msg)
        raise KeyError(name)

    def lookup(self, name: str) -> Helper | None:
        """Return the helper registered under ``name``, or ``None``."""
        if name in self._custom:
            return self._custom[name]
        return self._builtins.get(name)

    def is_builtin(self, name: str) -> bool:
        return name in self._builtins

    def names(self) -> list[str]:
        """Sorted names of every visible helper."""
        return sorted({*self._builtins, *self._custom})

    def __contains__(self, name: object) -> bool:
        return name in self._custom or name in self._builtins

    def __len__(self) -> int:
        return len(self.names())
