"""
File helpers for preparing image folders.

**Conceptual**: The `<>` file name template resolves a row's image as its CSV
line number, i.e. the first beneficiary (CSV line 2) uses `2.png`. Images
usually come with arbitrary names, so rename_files() renumbers a folder into
that scheme.
"""

import uuid
from pathlib import Path
from typing import List, Tuple

import structlog

from giftflow.errors import ConfigurationError

logger = structlog.get_logger(__name__)

DEFAULT_START_INDEX = 2


def rename_files(folder: Path | str, ext: str, start_index: int = DEFAULT_START_INDEX) -> List[Tuple[Path, Path]]:
    """
    Rename the folder's `*.<ext>` files to `<n>.<ext>`, n counting from start_index.

    Files are taken in name order. The rename is done in two phases (first to
    unique temporary names, then to the final names) so a file is never
    overwritten, even when some files already carry numeric names.

    Args:
        folder: Folder holding the files.
        ext: Extension to rename, with or without the leading dot.
        start_index: Number given to the first file (default 2).

    Returns:
        (old path, new path) pairs in rename order.

    Raises:
        ConfigurationError: If the folder does not exist, the extension is
                            empty or start_index is negative.

    Example:
        >>> rename_files("images", "png")
        [(PosixPath('images/a.png'), PosixPath('images/2.png')),
         (PosixPath('images/b.png'), PosixPath('images/3.png'))]
    """
    folder = Path(folder)
    ext = ext.lstrip(".")
    if not folder.is_dir():
        raise ConfigurationError(f"The input folder does not exist: {folder}")
    if not ext:
        raise ConfigurationError("Please provide a file extension, e.g. --ext png")
    if start_index < 0:
        raise ConfigurationError(f"The start index must be >= 0, got: {start_index}")

    files = sorted(p for p in folder.iterdir() if p.is_file() and p.suffix == f".{ext}")
    renames = [(path, folder / f"{start_index + n}.{ext}") for n, path in enumerate(files)]

    token = uuid.uuid4().hex
    staged = []
    for n, (source, target) in enumerate(renames):
        temp = folder / f".{token}.{n}.{ext}"
        source.rename(temp)
        staged.append((temp, target))
    for temp, target in staged:
        temp.rename(target)

    logger.info("files_renamed", folder=str(folder), count=len(renames), ext=ext)
    return renames
