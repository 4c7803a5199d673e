"""
CSV checkpoint readers and writers.

**Conceptual**: This module is the only I/O boundary for tabular checkpoint
data. The data table, the class record and the batch record are all stored as
small CSV files (header row first, data rows below) and every one of them is
read and written through the two functions here:
  - read_table_csv: load a header and rows, every value kept as a string.
  - write_table_csv: write a header and rows, replacing the target atomically.

**Format on disk**:
  - First line is the header, one line per row after it. Lines end with
    "\r\n".
  - Values containing a comma, a double quote or a line break ("\n" or
    "\r") are wrapped in double quotes with internal quotes doubled; all
    other values are written verbatim.
  - Reading never converts values: "", "0", "NA" and "null" all come back as
    the same strings that were written.

**Rule**: Never call pd.read_csv or DataFrame.to_csv directly on checkpoint
files. Go through these functions so the round trip
read_table_csv(write_table_csv(h, r)) == (h, r) holds everywhere.
"""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from giftflow.errors import StateConsistencyError

Header = List[str]
Rows = List[List[str]]


def _to_cell(value: Any) -> str:
    """Render one value for the CSV file (None becomes an empty field)."""
    if value is None:
        return ""
    return str(value)


def read_table_csv(path: Path | str) -> Optional[Tuple[Header, Rows]]:
    """
    Read a checkpoint table from disk.

    **Functionally**:
      - Returns None if no file exists at path (a missing checkpoint is the
        normal state before the first run, not an error).
      - Returns ([], []) for an empty file.
      - Otherwise returns (header, rows) where header is the first line and
        rows are the remaining non-blank lines, all values as strings.
      - Rows shorter than the header are padded with "".

    Args:
        path: Path of the CSV file.

    Returns:
        (header, rows) tuple, or None when the file does not exist.

    Raises:
        OSError: If the file exists but can't be read.
        StateConsistencyError: If the file is not valid UTF-8 CSV.

    Example:
        >>> write_table_csv("t.csv", ["name", "note"], [["Ann", 'says "hi", twice']])
        >>> read_table_csv("t.csv")
        (['name', 'note'], [['Ann', 'says "hi", twice']])
    """
    path = Path(path)
    if not path.exists():
        return None

    try:
        # header=None keeps pandas from renaming blank or duplicate titles
        df = pd.read_csv(
            path,
            header=None,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        return [], []
    except (pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise StateConsistencyError(f"Can not read {path}: it is not a valid UTF-8 CSV file ({exc}).") from exc

    records = df.fillna("").values.tolist()
    if not records:
        return [], []

    # Short rows come back from pandas as NaN, filled with "" above
    header = [str(title) for title in records[0]]
    rows = [[str(value) for value in record] for record in records[1:]]
    return header, rows


@contextmanager
def _atomic_target(path: Path) -> Iterator[Path]:
    """
    Yield a temporary path next to `path`; move it over `path` on success.

    The temporary file is removed if the body raises, leaving any previous
    content of `path` untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def write_table_csv(
    path: Path | str,
    header: Sequence[Any],
    rows: Sequence[Sequence[Any]],
) -> None:
    """
    Write a checkpoint table to disk, fully replacing any previous content.

    **Functionally**:
      - Writes the header as the first line and each row below it.
      - None values are written as empty fields; other values via str().
      - Quotes only the values that need it (separator, quote, line break).
      - Writes to a temporary file in the same directory first and renames it
        over the target, so a crash mid-write leaves the previous checkpoint
        intact instead of a truncated one.

    Args:
        path: Destination path. Parent directories are created if missing.
        header: Column titles.
        rows: Rows of values, each aligned to header.

    Raises:
        ValueError: If a row's length differs from the header's.
        OSError: If the file can't be written.
    """
    path = Path(path)
    header_cells = [_to_cell(title) for title in header]
    row_cells = []
    for row_number, row in enumerate(rows):
        if len(row) != len(header_cells):
            raise ValueError(
                f"{path}: row {row_number} has {len(row)} values, "
                f"header has {len(header_cells)} columns."
            )
        row_cells.append([_to_cell(value) for value in row])

    with _atomic_target(path) as tmp_path:
        if not header_cells:
            tmp_path.write_text("", encoding="utf-8")
            return
        # The header is written as a data row so titles go through the same quoting
        df = pd.DataFrame([header_cells] + row_cells)
        df.to_csv(tmp_path, index=False, header=False, lineterminator="\r\n", encoding="utf-8")
