import os
import shutil
import stat
from pathlib import Path
from typing import Union
from loguru import logger

PathLike = Union[str, Path]


class CopyError(OSError):
    """Raised when a file could not be read, created or written during a copy."""


def mode_bits(path: PathLike) -> int:
    """Return the permission bits of a file (what chmod accepts)."""
    return stat.S_IMODE(os.stat(path).st_mode)


def copy_file(src: PathLike, dst: PathLike) -> None:
    """
    Copy a file's content, then its permission bits.

    The destination is created or truncated. Failing to open the source,
    create the destination or stream the bytes raises CopyError. Failing to
    replicate the permission bits is only logged.

    Args:
        src: Source file path
        dst: Destination file path
    """
    src, dst = Path(src), Path(dst)

    try:
        source_file = open(src, 'rb')
    except OSError as e:
        raise CopyError(f"failed to open source file {src}: {e}") from e

    with source_file:
        try:
            dest_file = open(dst, 'wb')
        except OSError as e:
            raise CopyError(f"failed to create destination file {dst}: {e}") from e

        with dest_file:
            try:
                shutil.copyfileobj(source_file, dest_file)
            except OSError as e:
                raise CopyError(f"failed to copy file content {src} -> {dst}: {e}") from e

    try:
        os.chmod(dst, mode_bits(src))
    except OSError as e:
        logger.warning(f"Could not set permissions for {dst}: {e}")
