"""
Column-oriented view over the beneficiary data table.

**Conceptual**: The workflow's main state is one CSV table with a row per
beneficiary. Steps read and write it column by column: "give me the address
column", "write these image CIDs". DataTable keeps the header and rows loaded
from the data checkpoint and offers that column projection on top of them.

**Invariants**:
  - The row count never changes after load.
  - Every row is exactly as long as the header.
  - Columns are appended (new title, new index = old header length) but never
    removed or reordered.
  - start_record_no <= end_record_no <= row count, fixed at load time.

**Templates**: Per-row strings (image file names, descriptions) are built from
templates where `<<Column Title>>` is replaced by that row's value. File name
templates may instead contain `<>`, replaced by the row's CSV line number.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from giftflow.data.io import read_table_csv, write_table_csv
from giftflow.errors import ColumnLengthMismatch, ConfigurationError, StateConsistencyError

TEMPLATE_TOKEN = re.compile(r"<<[^<>]+>>")
ROW_NUMBER_TOKEN = "<>"

# Row index 0 is CSV line 2 (line 1 is the header)
FIRST_ROW_LINE_NUMBER = 2


@dataclass
class Column:
    """
    A titled sequence of values aligned 1:1 with the table's rows.

    Attributes:
        title: Column title (header entry).
        values: One value per table row, in row order.
    """
    title: str
    values: List[Any] = field(default_factory=list)

    @classmethod
    def blank(cls, title: str, length: int) -> "Column":
        """Return a column of `length` empty strings."""
        return cls(title=title, values=[""] * length)


def column_index(header: Sequence[str], title: str) -> Optional[int]:
    """Return the position of `title` in `header`, or None if absent."""
    if not title:
        return None
    try:
        return list(header).index(title)
    except ValueError:
        return None


def read_source_table(path: Path) -> Tuple[List[str], List[List[str]]]:
    """
    Read the beneficiary source CSV.

    Raises:
        ConfigurationError: If the file is not valid UTF-8 CSV.
    """
    try:
        return read_table_csv(path) or ([], [])
    except StateConsistencyError as exc:
        raise ConfigurationError(f"The configured data file can not be used. {exc}") from exc


def fill_template(template: str, header: Sequence[str], row: Sequence[Any]) -> str:
    """
    Replace every `<<Column Title>>` token with the row's value for that column.

    Unknown titles are replaced with an empty string.

    Example:
        >>> fill_template("Gift for <<name>>", ["name"], ["Ann"])
        'Gift for Ann'
    """
    def _substitute(match: "re.Match[str]") -> str:
        idx = column_index(header, match.group(0).strip("<>"))
        if idx is None or idx >= len(row):
            return ""
        value = row[idx]
        return "" if value is None else str(value)

    return TEMPLATE_TOKEN.sub(_substitute, template)


def format_file_name(
    template: str,
    row_number: int,
    header: Sequence[str],
    row: Sequence[Any],
) -> str:
    """
    Resolve a per-row file name.

    If the template contains `<>`, its first occurrence is replaced with
    row_number (the CSV line number of the row). Otherwise the template is
    filled from the row's values with fill_template().

    Example:
        >>> format_file_name("<>.png", 2, [], [])
        '2.png'
        >>> format_file_name("<<id>>.png", 2, ["id"], ["ab12"])
        'ab12.png'
    """
    if ROW_NUMBER_TOKEN in template:
        return template.replace(ROW_NUMBER_TOKEN, str(row_number), 1)
    return fill_template(template, header, row)


class DataTable:
    """
    In-memory header + rows with column projection and checkpointing.

    **Responsibilities**:
      - Look up columns by title (get_columns never raises).
      - Write whole columns back (set_columns is all-or-nothing).
      - Persist itself to its checkpoint path (checkpoint).
      - Track the configured row range [start_record_no, end_record_no).

    **NOT responsible for**: deciding when to checkpoint (steps do that, and
    skip it in dry-run).

    Example:
        >>> table = DataTable(["name"], [["Ann"], ["Bob"]])
        >>> [address] = table.get_columns(["address"])
        >>> address is None
        True
        >>> table.set_columns([Column("address", ["a1", "b2"])])
        >>> table.header
        ['name', 'address']
    """

    def __init__(
        self,
        header: Sequence[str],
        rows: Sequence[Sequence[Any]],
        start_record_no: int = 0,
        end_record_no: Optional[int] = None,
        path: Optional[Path] = None,
    ):
        self.header: List[str] = list(header)
        self.rows: List[List[Any]] = [self._fit_row(list(row)) for row in rows]
        end = len(self.rows) if end_record_no is None else end_record_no
        if not 0 <= start_record_no <= end <= len(self.rows):
            raise ConfigurationError(
                f"Invalid record range [{start_record_no}, {end}) for a table "
                f"with {len(self.rows)} rows."
            )
        self.start_record_no = start_record_no
        self.end_record_no = end
        self.path = Path(path) if path is not None else None

    @classmethod
    def load(
        cls,
        source_file: Path,
        checkpoint_file: Path,
        offset: Optional[int] = None,
        count: Optional[int] = None,
        copy_source: bool = True,
    ) -> "DataTable":
        """
        Load the table from its checkpoint, seeding the checkpoint from the
        source CSV the first time.

        **Functionally**:
          - Rows are read from the checkpoint if it exists, otherwise from
            the source CSV.
          - offset is 1-based (first data row = 1, default 1); count defaults
            to every remaining row. The end is clamped to the row count.
          - If the rows came from the source and copy_source is True, they are
            written to checkpoint_file once the range is known to be valid.

        Raises:
            ConfigurationError: If the source file is missing or unreadable, or
                the offset is past the last row.
            StateConsistencyError: If the checkpoint file is unreadable.
        """
        source_file = Path(source_file)
        checkpoint_file = Path(checkpoint_file)
        if not source_file.exists():
            raise ConfigurationError(
                f"The configured data file does not exist. Please check if path: {source_file} exists"
            )

        from_source = not checkpoint_file.exists()
        if from_source:
            header, rows = read_source_table(source_file)
        else:
            header, rows = read_table_csv(checkpoint_file) or ([], [])

        start = offset - 1 if offset else 0
        if start > len(rows):
            raise ConfigurationError(
                f"instance.data.offset ({offset}) is past the last data row ({len(rows)})."
            )
        end = len(rows) if count is None else min(start + count, len(rows))

        table = cls(header, rows, start_record_no=start, end_record_no=end, path=checkpoint_file)
        if from_source and copy_source:
            table.checkpoint()
        return table

    def _fit_row(self, row: List[Any]) -> List[Any]:
        if len(row) < len(self.header):
            row.extend([""] * (len(self.header) - len(row)))
        return row

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_index(self, title: str) -> Optional[int]:
        return column_index(self.header, title)

    def get_columns(self, titles: Sequence[str]) -> List[Optional[Column]]:
        """
        Project the table onto the given titles.

        Returns one Column per title (values copied, in row order), or None in
        that position when the title is not in the header. Never raises.
        """
        columns: List[Optional[Column]] = []
        for title in titles:
            idx = self.column_index(title)
            if idx is None:
                columns.append(None)
            else:
                columns.append(Column(title, [row[idx] for row in self.rows]))
        return columns

    def get_column_or_blank(self, title: str) -> Column:
        """Return the column for `title`, or a blank one if it doesn't exist yet."""
        [column] = self.get_columns([title])
        return column if column is not None else Column.blank(title, self.row_count)

    def set_columns(self, columns: Sequence[Column]) -> None:
        """
        Write whole columns into the table.

        Every column's value count must equal the row count; if any column
        fails that check, ColumnLengthMismatch is raised before anything is
        written. Unknown titles are appended to the header.

        Raises:
            ColumnLengthMismatch: If a column has the wrong number of values.
        """
        for column in columns:
            if len(column.values) != len(self.rows):
                raise ColumnLengthMismatch(column.title, len(column.values), len(self.rows))

        indexes: Dict[str, int] = {}
        for column in columns:
            idx = self.column_index(column.title)
            if idx is None:
                self.header.append(column.title)
                idx = len(self.header) - 1
            indexes[column.title] = idx

        for row in self.rows:
            self._fit_row(row)

        for column in columns:
            idx = indexes[column.title]
            for row, value in zip(self.rows, column.values):
                row[idx] = value

    def checkpoint(self) -> None:
        """Persist header and rows to the table's checkpoint path."""
        if self.path is None:
            raise ConfigurationError("This data table has no checkpoint path.")
        write_table_csv(self.path, self.header, self.rows)

    def write_final_result(self, output_file: Path) -> None:
        """Write the table to the workflow's output CSV."""
        write_table_csv(output_file, self.header, self.rows)
