"""
stencilforge.hooks - Generation Lifecycle Hooks
===============================================

Observers registered per lifecycle event, called synchronously in
registration order.

Events and Signatures
---------------------
before_generate(context)
    Once per run, before discovery.

before_file_write(path, content, context) -> str | None
    Per file. Hooks are chained: each receives the previous hook's content.
    Returning ``None`` keeps the content unchanged. Raising vetoes the write
    and fails the file.

after_file_write(path, content, context)
    Per written file.

after_generate(results)
    Once per run, with every result in order.

on_error(error, template_id)
    Per failed file. Errors raised here are logged, never propagated.

on_conflict(path, context) -> ConflictResolution | str | None
    Per existing destination when overwrite is off. The first hook returning
    something other than ``None`` decides.

Usage
-----
>>> hooks = GenerationHooks()
>>> @hooks.on(HookEvent.BEFORE_FILE_WRITE)
... def banner(path, content, context):
...     return "// generated\\n" + content
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from stencilforge.errors import HookError
from stencilforge.logger import get_logger
from stencilforge.models import ConflictResolution


logger = get_logger(__name__)

Hook = Callable[..., Any]


class HookEvent(str, Enum):
    BEFORE_GENERATE = "before_generate"
    BEFORE_FILE_WRITE = "before_file_write"
    AFTER_FILE_WRITE = "after_file_write"
    AFTER_GENERATE = "after_generate"
    ON_ERROR = "on_error"
    ON_CONFLICT = "on_conflict"


class GenerationHooks:
    """Ordered observer lists, one per ``HookEvent``."""

    def __init__(self) -> None:
        self._hooks: dict[HookEvent, list[Hook]] = {event: [] for event in HookEvent}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Hook | list[Hook]]) -> GenerationHooks:
        """
        Build hooks from ``{"before_generate": fn, "on_error": [fn1, fn2]}``.

        Raises
        ------
        ValueError
            If a key is not a known event name.
        """
        hooks = cls()
        for name, value in mapping.items():
            for fn in value if isinstance(value, (list, tuple)) else [value]:
                hooks.register(name, fn)
        return hooks

    def register(self, event: HookEvent | str, fn: Hook) -> None:
        try:
            event = HookEvent(event)
        except ValueError:
            msg = f"Unknown hook event '{event}'. Expected one of: {', '.join(e.value for e in HookEvent)}"
            raise ValueError(msg) from None
        if not callable(fn):
            msg = f"Hook for '{event.value}' must be callable."
            raise TypeError(msg)
        self._hooks[event].append(fn)

    def on(self, event: HookEvent | str) -> Callable[[Hook], Hook]:
        """Decorator form of ``register()``."""

        def decorator(fn: Hook) -> Hook:
            self.register(event, fn)
            return fn

        return decorator

    def get(self, event: HookEvent | str) -> list[Hook]:
        return list(self._hooks[HookEvent(event)])

    def __bool__(self) -> bool:
        return any(self._hooks.values())

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def fire(self, event: HookEvent, *args: Any) -> None:
        """
        Call every hook for ``event``.

        Raises
        ------
        HookError
            Wrapping the first exception raised by a hook. Later hooks are
            not called.
        """
        for fn in self._hooks[event]:
            try:
                fn(*args)
            except Exception as e:
                raise HookError(event.value, e) from e

    def transform(self, path: Path, content: str, context: Any) -> str:
        """Run the ``before_file_write`` chain and return the final content."""
        for fn in self._hooks[HookEvent.BEFORE_FILE_WRITE]:
            try:
                result = fn(path, content, context)
            except Exception as e:
                raise HookError(HookEvent.BEFORE_FILE_WRITE.value, e) from e
            if result is not None:
                content = str(result)
        return content

    def ask_conflict(self, path: Path, context: Any) -> ConflictResolution | None:
        """
        Ask the ``on_conflict`` hooks how to handle an existing destination.

        Returns
        -------
        ConflictResolution | None
            The first non-``None`` answer, or ``None`` when no hook answers.

        Raises
        ------
        HookError
            If a hook raises or answers with an unknown resolution.
        """
        for fn in self._hooks[HookEvent.ON_CONFLICT]:
            try:
                answer = fn(path, context)
                if answer is not None:
                    return ConflictResolution(answer)
            except Exception as e:
                raise HookError(HookEvent.ON_CONFLICT.value, e) from e
        return None

    def notify_error(self, error: BaseException, template_id: str) -> None:
        """Call the ``on_error`` hooks; their own failures are only logged."""
        for fn in self._hooks[HookEvent.ON_ERROR]:
            try:
                fn(error, template_id)
            except Exception as e:
                logger.warning(f"on_error hook failed for {template_id}: {e}")
