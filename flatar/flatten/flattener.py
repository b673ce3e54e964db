#!/usr/bin/env python3
"""
Directory Flattener

Moves every regular file found below a root directory up to the root itself,
then removes the emptied subdirectories.

Flattening runs in two passes over the same tree:

1. Copy pass: walk the tree and copy each file to the root. A file whose name
   is already taken (on disk or earlier in the same run) is renamed to
   ``<stem>_<parent directory name><ext>``, unless it already lives directly
   in the root, in which case it keeps its name.
2. Cleanup pass: walk the tree again and remove every subdirectory, deepest
   first. Removal failures are logged and do not stop the cleanup.

Usage:
    python flattener.py /path/to/folder
    python flattener.py /path/to/folder --dry-run
"""

import argparse
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Tuple
from loguru import logger

sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
from flatar.flatten.copy_utils import PathLike, copy_file


class FlattenError(Exception):
    """Raised when the copy pass of a flatten fails. The cleanup pass has not run."""


@dataclass
class WalkEntry:
    """A file or directory met while walking a tree."""
    path: Path
    rel_path: Path
    is_dir: bool

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def parent_name(self) -> str:
        return self.path.parent.name

    @property
    def is_top_level(self) -> bool:
        """True if the entry is a direct child of the walked root."""
        return len(self.rel_path.parts) == 1


@dataclass
class FlattenResult:
    """Report of one flatten invocation."""
    root: Path
    dry_run: bool = False
    copied: List[Tuple[Path, Path]] = field(default_factory=list)
    kept: List[Path] = field(default_factory=list)
    removed_dirs: List[Path] = field(default_factory=list)
    removal_failures: List[Tuple[Path, OSError]] = field(default_factory=list)
    walk_errors: List[OSError] = field(default_factory=list)

    @property
    def renamed(self) -> List[Tuple[Path, Path]]:
        return [(src, dst) for src, dst in self.copied if src.name != dst.name]


class NameRegistry:
    """Filenames already claimed at the flat level during one flatten."""

    def __init__(self):
        self._names = set()

    def __contains__(self, name: str) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def claim(self, name: str) -> None:
        self._names.add(name)


def walk_tree(root: PathLike, errors: Optional[List[OSError]] = None) -> Iterator[WalkEntry]:
    """
    Walk a tree depth-first, yielding each directory before its children.

    Entries of a directory are listed once, before descending into any of
    them, and visited in lexical name order. The root itself is not yielded.
    Symlinks are reported as files and never followed.

    Args:
        root: Directory to walk
        errors: If given, listing errors are appended here and the walk goes
            on with the next entry. If None, they are raised.
    """
    root = Path(root)
    yield from _walk_level(root, root, errors)


def _walk_level(root: Path, directory: Path, errors: Optional[List[OSError]]) -> Iterator[WalkEntry]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        if errors is None:
            raise
        errors.append(e)
        return

    for entry in entries:
        path = Path(entry.path)
        is_dir = entry.is_dir(follow_symlinks=False)
        yield WalkEntry(path=path, rel_path=path.relative_to(root), is_dir=is_dir)
        if is_dir:
            yield from _walk_level(root, path, errors)


def split_extension(file_name: str) -> Tuple[str, str]:
    """Split a filename at its last dot: 'a.tar.gz' -> ('a.tar', '.gz'), '.env' -> ('', '.env')."""
    dot = file_name.rfind('.')
    if dot == -1:
        return file_name, ''
    return file_name[:dot], file_name[dot:]


def disambiguated_name(file_name: str, parent_name: str) -> str:
    base, ext = split_extension(file_name)
    return f"{base}_{parent_name}{ext}"


def resolve_target(root: Path, entry: WalkEntry, registry: NameRegistry) -> Path:
    """
    Pick the flat-level path for a file and claim its name in the registry.

    The synthesized name of a nested file is not checked again: a later file
    with the same name and the same parent directory name overwrites it.
    """
    target = root / entry.name

    if not (target.exists() or entry.name in registry):
        registry.claim(entry.name)
        return target

    if entry.is_top_level:
        # Already in place
        registry.claim(entry.name)
        return target

    new_name = disambiguated_name(entry.name, entry.parent_name)
    if new_name in registry:
        logger.debug(f"{new_name} already claimed, {entry.rel_path} will overwrite it")
    registry.claim(new_name)
    return root / new_name


def flatten_directory(root: PathLike, dry_run: bool = False) -> FlattenResult:
    """
    Flatten a directory tree so that every file becomes a direct child of root.

    Args:
        root: Directory to flatten
        dry_run: If True, only log what would be done

    Returns:
        FlattenResult describing the copies and the directory cleanup

    Raises:
        FlattenError: if the tree cannot be walked or a file cannot be copied.
            Files copied before the failure stay where they are.
    """
    root = Path(root)
    result = FlattenResult(root=root, dry_run=dry_run)
    registry = NameRegistry()

    # First pass: copy files up to the root
    try:
        for entry in walk_tree(root):
            if entry.is_dir:
                continue

            target = resolve_target(root, entry, registry)
            if target == entry.path:
                result.kept.append(target)
                continue

            if dry_run:
                logger.info(f"Would copy: {entry.rel_path} -> {target.name}")
            else:
                try:
                    copy_file(entry.path, target)
                except OSError as e:
                    raise FlattenError(f"failed to copy file from {entry.path} to {target}: {e}") from e
                logger.debug(f"Copied: {entry.rel_path} -> {target.name}")
            result.copied.append((entry.path, target))
    except OSError as e:
        raise FlattenError(f"error accessing path under {root}: {e}") from e

    # Second pass: remove directories, deepest first
    directories = [entry.path for entry in walk_tree(root, errors=result.walk_errors) if entry.is_dir]
    for error in result.walk_errors:
        logger.warning(f"Skipped unreadable path during cleanup: {error}")

    for directory in reversed(directories):
        if dry_run:
            logger.info(f"Would remove directory: {directory.relative_to(root)}")
            result.removed_dirs.append(directory)
            continue
        if not os.path.lexists(directory):
            continue
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.warning(f"Failed to remove directory {directory}: {e}")
            result.removal_failures.append((directory, e))
            continue
        result.removed_dirs.append(directory)

    logger.info(
        f"Flattened {root}: {len(result.copied)} copied "
        f"({len(result.renamed)} renamed), {len(result.kept)} kept, "
        f"{len(result.removed_dirs)} directories removed"
    )
    return result


def main():
    parser = argparse.ArgumentParser(description="Flatten a directory tree into its root directory")
    parser.add_argument('folder', help='Directory to flatten')
    parser.add_argument('--dry-run', action='store_true', help='Preview changes only')

    args = parser.parse_args()

    try:
        flatten_directory(args.folder, dry_run=args.dry_run)
    except FlattenError as e:
        logger.error(f"Failed to flatten directory: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
