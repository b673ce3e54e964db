#!/usr/bin/env python3
"""
Tar Archive

Packs every regular file under a directory into an uncompressed tar archive,
storing each file under its path relative to the directory.

Usage:
    python tar_archive.py /path/to/folder
    python tar_archive.py /path/to/folder --output /path/to/archive.tar
"""

import argparse
import os
import sys
import tarfile
from pathlib import Path
from typing import Optional
from loguru import logger

sys.path.append(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))
from flatar.flatten.copy_utils import PathLike
from flatar.flatten.flattener import walk_tree


class ArchiveError(Exception):
    """Raised when the archive file itself cannot be written."""


def default_archive_path(source_dir: PathLike) -> Path:
    """'<parent>/<name>' -> '<parent>/<name>.tar'"""
    source_dir = Path(source_dir)
    return source_dir.parent / f"{source_dir.name}.tar"


def create_archive(source_dir: PathLike, output_file: Optional[PathLike] = None) -> int:
    """
    Create a tar archive containing every regular file under source_dir.

    Directory entries and symlinks are not stored. A file that cannot be
    opened is logged and left out of the archive. A read error after its
    header has been written raises ArchiveError, since the archive is then
    incomplete.

    Args:
        source_dir: Directory to archive
        output_file: Archive path (default: '<source_dir>.tar' next to source_dir)

    Returns:
        Number of files added to the archive
    """
    source_dir = Path(source_dir)
    output_file = Path(output_file) if output_file else default_archive_path(source_dir)

    try:
        tar = tarfile.open(output_file, 'w')
    except OSError as e:
        raise ArchiveError(f"failed to create archive {output_file}: {e}") from e

    added = 0
    walk_errors = []
    try:
        with tar:
            for entry in walk_tree(source_dir, errors=walk_errors):
                if entry.is_dir or entry.path.is_symlink() or not entry.path.is_file():
                    continue
                try:
                    tarinfo = tar.gettarinfo(str(entry.path), arcname=entry.rel_path.as_posix())
                    source_file = open(entry.path, 'rb')
                except OSError as e:
                    logger.warning(f"Could not add {entry.path} to {output_file.name}: {e}")
                    continue
                # Header is written before the data: a read error here leaves the archive incomplete
                with source_file:
                    tar.addfile(tarinfo, source_file)
                added += 1
    except OSError as e:
        raise ArchiveError(f"failed to write archive {output_file}: {e}") from e

    for error in walk_errors:
        logger.warning(f"Skipped unreadable path while archiving: {error}")

    logger.info(f"Archived {added} files from {source_dir} into {output_file}")
    return added


def main():
    parser = argparse.ArgumentParser(description="Pack a directory into a tar archive")
    parser.add_argument('folder', help='Directory to archive')
    parser.add_argument('--output', '-o', help="Archive path (default: '<folder>.tar')")

    args = parser.parse_args()

    try:
        create_archive(args.folder, args.output)
    except ArchiveError as e:
        logger.error(f"Failed to create archive: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
