#!/usr/bin/env python3
"""
Batch Flatten Script

Flattens every immediate subdirectory of a root directory, then optionally
packs each flattened subdirectory into '<subdirectory>.tar' and/or deletes it.

A failure on one subdirectory is logged and the remaining steps for that
subdirectory are skipped; the script always goes on with the next one.

Usage:
    python batch_flatten.py                      # Flatten subdirectories of the current directory
    python batch_flatten.py /path/to/root -a     # Flatten and archive
    python batch_flatten.py /path/to/root -a -d  # Flatten, archive, then delete
    python batch_flatten.py /path/to/root --dry-run
    python batch_flatten.py /path/to/root --config flatar.yml
"""

import argparse
import os
import shutil
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List
from loguru import logger
from tqdm import tqdm

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from flatar.archive.tar_archive import ArchiveError, create_archive, default_archive_path
from flatar.config import ConfigError, load_config
from flatar.flatten.flattener import FlattenError, flatten_directory

DONE_MESSAGE = "All tasks completed!"


@dataclass
class ProcessSummary:
    processed: int = 0
    flattened: int = 0
    archived: int = 0
    deleted: int = 0
    failed: List[Path] = field(default_factory=list)


def configure_logging(level: str = "INFO", log_file: str = None) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, level=level, encoding='utf-8')


def list_subdirectories(work_dir: Path) -> List[Path]:
    """Immediate subdirectories of work_dir, in name order. Symlinks are skipped."""
    with os.scandir(work_dir) as it:
        return sorted(Path(e.path) for e in it if e.is_dir(follow_symlinks=False))


def process_subdirectory(dir_path: Path, archive: bool, delete: bool, dry_run: bool,
                         summary: ProcessSummary) -> bool:
    """Flatten, archive and delete one subdirectory. Returns False on the first failed step."""
    logger.info(f"Processing: {dir_path}")

    try:
        flatten_directory(dir_path, dry_run=dry_run)
    except FlattenError as e:
        logger.error(f"Failed to flatten directory: {e}")
        return False
    summary.flattened += 1

    if archive:
        tar_file = default_archive_path(dir_path)
        if dry_run:
            logger.info(f"Would create archive: {tar_file}")
        else:
            try:
                create_archive(dir_path, tar_file)
            except ArchiveError as e:
                logger.error(f"Failed to create archive: {e}")
                return False
            summary.archived += 1

    if delete:
        if dry_run:
            logger.info(f"Would remove directory: {dir_path}")
        else:
            try:
                shutil.rmtree(dir_path)
            except OSError as e:
                logger.error(f"Failed to remove directory {dir_path}: {e}")
                return False
            summary.deleted += 1

    return True


def process_directory(work_dir, archive: bool = False, delete: bool = False,
                      dry_run: bool = False, show_progress: bool = True) -> ProcessSummary:
    """
    Run flatten (then archive, then delete) on every immediate subdirectory of work_dir.

    Args:
        work_dir: Directory whose subdirectories are processed
        archive: Write '<subdirectory>.tar' after flattening
        delete: Remove the subdirectory once flattened (and archived)
        dry_run: Only log what would be done
        show_progress: Display a progress bar

    Returns:
        ProcessSummary with per-step counts and the subdirectories that failed
    """
    work_dir = Path(work_dir)
    summary = ProcessSummary()

    subdirectories = list_subdirectories(work_dir)
    if not subdirectories:
        logger.warning(f"No subdirectories found in {work_dir}")

    for dir_path in tqdm(subdirectories, desc="Directories", unit="dir", disable=not show_progress):
        summary.processed += 1
        if not process_subdirectory(dir_path, archive, delete, dry_run, summary):
            summary.failed.append(dir_path)

    return summary


def print_summary(summary: ProcessSummary, dry_run: bool = False) -> None:
    print(f"\n{'DRY RUN ' if dry_run else ''}Summary:")
    print(f"  Directories processed: {summary.processed}")
    print(f"  Flattened: {summary.flattened}")
    print(f"  Archived: {summary.archived}")
    print(f"  Deleted: {summary.deleted}")
    if summary.failed:
        print(f"  Failed: {len(summary.failed)}")
        for dir_path in summary.failed:
            print(f"    - {dir_path}")


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="flatar",
        description="Flatten every subdirectory of a root directory, then optionally archive and delete it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  flatar                      # Flatten subdirectories of the current directory
  flatar data -a              # Flatten and create data/<subdirectory>.tar
  flatar data -a -d           # Flatten, archive, then delete each subdirectory
  flatar data --dry-run       # Preview what would be done
        """
    )

    parser.add_argument(
        'root_directory',
        nargs='?',
        default='.',
        help='Directory whose subdirectories are flattened (default: current directory)'
    )

    parser.add_argument(
        '-a', '--archive',
        action='store_true',
        help='Create <subdirectory>.tar after flattening'
    )

    parser.add_argument(
        '-d', '--delete',
        action='store_true',
        help='Delete each subdirectory after processing'
    )

    parser.add_argument(
        '-n', '--dry-run',
        action='store_true',
        help='Show what would be done without changing anything'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='store_true',
        help='Reduce log output (only show warnings and errors)'
    )

    parser.add_argument(
        '-c', '--config',
        help='YAML configuration file'
    )

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    archive = args.archive or config["archive"]
    delete = args.delete or config["delete"]
    dry_run = args.dry_run or config["dry_run"]

    # Configure logging
    try:
        configure_logging("WARNING" if args.quiet else config["log_level"], config["log_file"])
    except (ValueError, OSError) as e:
        logger.remove()
        logger.add(sys.stderr)
        logger.error(f"Failed to configure logging: {e}")
        sys.exit(1)

    root_dir = Path(args.root_directory)
    if not root_dir.exists():
        logger.error(f"Error accessing directory: {root_dir} does not exist")
        sys.exit(1)

    if not root_dir.is_dir():
        logger.error(f"Specified path is not a directory: {root_dir}")
        sys.exit(1)

    if dry_run:
        print("*** DRY RUN MODE - No files will be changed ***")

    try:
        summary = process_directory(root_dir, archive=archive, delete=delete,
                                    dry_run=dry_run, show_progress=not args.quiet)
    except OSError as e:
        logger.error(f"Failed to read root directory: {e}")
        sys.exit(1)

    print_summary(summary, dry_run)
    print(DONE_MESSAGE)


if __name__ == '__main__':
    main()
