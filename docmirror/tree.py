"""Tree entries and the filesystem side of a mirror pass.

Maps entries of a remote tree listing onto local paths, filters them by the
configured prefixes and materializes directories and files.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from .errors import FilesystemError

logger = logging.getLogger(__name__)


class EntryKind(enum.Enum):
    FILE = "blob"
    DIRECTORY = "tree"

    @classmethod
    def from_git_type(cls, git_type: Optional[str]) -> Optional[EntryKind]:
        """Map a git object type to an entry kind, None for anything else."""
        try:
            return cls(git_type)
        except ValueError:
            return None


@dataclass(frozen=True)
class TreeEntry:
    """One row of a recursive tree listing."""

    path: str
    kind: EntryKind

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


def matches_prefixes(path: str, prefixes: Optional[Sequence[str]]) -> bool:
    """Return True when ``path`` falls under the allow-list.

    This is a plain string prefix test, so ``"docs"`` also admits
    ``"docs-old/x.md"``. No prefixes means everything matches.
    """
    if prefixes is None:
        return True
    return any(path.startswith(prefix) for prefix in prefixes)


def filter_entries(
    entries: Iterable[TreeEntry], prefixes: Optional[Sequence[str]]
) -> list[TreeEntry]:
    """Keep the entries that match ``prefixes``, in listing order."""
    kept = []
    for entry in entries:
        if matches_prefixes(entry.path, prefixes):
            kept.append(entry)
        else:
            logger.debug(f"Skipping {entry.path} (outside content prefixes)")
    return kept


def destination_for(root: Path, path: str) -> Path:
    """Return the local path of a repository path under ``root``.

    Raises:
        FilesystemError: If the path is absolute or climbs out of ``root``
    """
    relative = PurePosixPath(path)
    if relative.is_absolute() or ".." in relative.parts or not relative.parts:
        raise FilesystemError(path, "path escapes the destination directory")
    return root.joinpath(*relative.parts)


def directory_skeleton(entries: Iterable[TreeEntry]) -> list[str]:
    """Return every directory a set of entries needs, parents first.

    Covers the directory entries themselves and the parent directories of
    file entries, so a listing that omits a parent tree still materializes.
    """
    seen: set[str] = set()
    ordered: list[str] = []

    def add(directory: PurePosixPath) -> None:
        for parent in reversed(directory.parents):
            if parent.parts and str(parent) not in seen:
                seen.add(str(parent))
                ordered.append(str(parent))
        if str(directory) not in seen:
            seen.add(str(directory))
            ordered.append(str(directory))

    for entry in entries:
        path = PurePosixPath(entry.path)
        if entry.is_directory:
            add(path)
        elif path.parent.parts:
            add(path.parent)

    return ordered


def ensure_directory(path: Path) -> None:
    """Create ``path`` and any missing ancestors; no-op if it exists."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(str(path), str(e)) from e


def write_file(content: bytes, output_path: Path) -> None:
    """Write ``content`` to ``output_path``, replacing any existing file.

    Creates parent directories if they don't exist.

    Raises:
        FilesystemError: If the directory or file cannot be written
    """
    ensure_directory(output_path.parent)
    try:
        with output_path.open("wb") as f:
            f.write(content)
    except OSError as e:
        raise FilesystemError(str(output_path), str(e)) from e
