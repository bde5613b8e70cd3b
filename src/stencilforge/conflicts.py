"""
stencilforge.conflicts - Destination Conflict Handling
======================================================

Decides whether a rendered file may be written to its destination, and
makes backups of files about to be overwritten.

Decision Order
--------------
1. Destination already written earlier in this run: rename if an
   ``on_conflict`` hook answers ``rename``, otherwise skip. Global overwrite
   does not apply here.
2. Destination does not exist: write.
3. Global overwrite is on: overwrite.
4. Ask the ``on_conflict`` hooks; the first answer wins. No answer: skip.

Renamed files get the first free numbered name: ``app.ts`` becomes
``app-1.ts``, then ``app-2.ts``.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from stencilforge.hooks import GenerationHooks
from stencilforge.logger import get_logger
from stencilforge.models import ConflictResolution


logger = get_logger(__name__)


@dataclass(frozen=True)
class ConflictDecision:
    """
    Outcome of a conflict check.

    Attributes
    ----------
    write : bool
        Whether to write at all.

    resolution : ConflictResolution | None
        How a collision was settled; ``None`` when there was no collision.

    path : Path
        Where to write. Differs from the requested path after a rename.
    """

    write: bool
    resolution: ConflictResolution | None
    path: Path


class ConflictResolver:
    """
    Per-run conflict policy.

    Parameters
    ----------
    overwrite : bool
        Overwrite existing files without asking hooks.

    hooks : GenerationHooks | None
        Source of ``on_conflict`` answers.
    """

    def __init__(self, *, overwrite: bool = False, hooks: GenerationHooks | None = None) -> None:
        self.overwrite = overwrite
        self.hooks = hooks if hooks is not None else GenerationHooks()
        self._claimed: set[Path] = set()

    def reset(self) -> None:
        """Forget the destinations claimed by the previous run."""
        self._claimed.clear()

    def claim(self, path: Path) -> None:
        self._claimed.add(path)

    def is_claimed(self, path: Path) -> bool:
        return path in self._claimed

    def should_write(self, path: Path, context: Any = None) -> bool:
        return self.resolve(path, context).write

    def resolve(self, path: Path, context: Any = None) -> ConflictDecision:
        """
        Decide how to handle ``path``.

        Raises
        ------
        HookError
            If an ``on_conflict`` hook raises.
        """
        if self.is_claimed(path):
            answer = self.hooks.ask_conflict(path, context)
            if answer is ConflictResolution.RENAME:
                return ConflictDecision(True, answer, self.next_available(path))
            return ConflictDecision(False, ConflictResolution.SKIP, path)

        if not path.exists():
            return ConflictDecision(True, None, path)

        if self.overwrite:
            return ConflictDecision(True, ConflictResolution.OVERWRITE, path)

        answer = self.hooks.ask_conflict(path, context)
        if answer is ConflictResolution.OVERWRITE:
            return ConflictDecision(True, answer, path)
        if answer is ConflictResolution.RENAME:
            return ConflictDecision(True, answer, self.next_available(path))
        return ConflictDecision(False, ConflictResolution.SKIP, path)

    def next_available(self, path: Path) -> Path:
        """First ``name-N.ext`` that neither exists nor is claimed in this run."""
        counter = 1
        while True:
            candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
            if not candidate.exists() and not self.is_claimed(candidate):
                return candidate
            counter += 1


def backup_path_for(path: Path, now: datetime | None = None) -> Path:
    """
    Sibling backup name: ``app.ts.backup.2024-03-05T07-08-09-123456+00-00``.
    """
    stamp = (now or datetime.now(UTC)).isoformat().replace(":", "-").replace(".", "-")
    return path.with_name(f"{path.name}.backup.{stamp}")


def create_backup(path: Path) -> Path | None:
    """
    Copy an existing file to a timestamped sibling.

    Parameters
    ----------
    path : Path
        File about to be overwritten.

    Returns
    -------
    Path | None
        The backup path, or ``None`` when there was nothing to back up or the
        copy failed. A failed backup is logged and does not stop the write.
    """
    if not path.is_file():
        return None

    backup = backup_path_for(path)
    try:
        shutil.copy2(path, backup)
    except OSError as e:
        logger.warning(f"Could not back up {path}: {e}")
        return None

    logger.debug(f"Backed up {path} to {backup.name}")
    return backup
