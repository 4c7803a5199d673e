"""
Single-row checkpoint records: the class record and the batch progress record.

**Conceptual**: Besides the data table, the workflow keeps two tiny pieces of
state: which ledger class the gifts are minted in (plus its metadata CID), and
how many batches of each batched operation have fully completed. Each is stored
as a one-row CSV through the same read_table_csv / write_table_csv boundary as
the data table, so all checkpoints share one format.

Both records are plain key-value holders. Steps mutate their attributes and
call checkpoint(); the records have no business logic of their own.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar, Dict, Optional, Tuple

from giftflow.data.io import read_table_csv, write_table_csv
from giftflow.data.table import column_index
from giftflow.errors import StateConsistencyError


@dataclass
class SingletonRecord:
    """
    Base for a fixed set of named fields persisted as exactly one row.

    Subclasses declare FIELDS as (attribute name, column title) pairs and may
    override _parse() to convert the stored strings.
    """
    path: Path
    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = ()

    @property
    def header(self) -> Tuple[str, ...]:
        return tuple(title for _, title in self.FIELDS)

    def load(self) -> bool:
        """
        Populate fields from the checkpoint file, if there is one.

        Missing files, missing columns and empty values leave the defaults in
        place.

        Returns:
            True if a checkpoint file was found.
        """
        table = read_table_csv(self.path)
        if table is None:
            return False
        header, rows = table
        if not rows:
            return True
        row = rows[0]
        for attr, title in self.FIELDS:
            idx = column_index(header, title)
            if idx is not None and idx < len(row) and row[idx] != "":
                setattr(self, attr, self._parse(attr, row[idx]))
        return True

    def _parse(self, attr: str, raw: str) -> Any:
        return raw

    def as_dict(self) -> Dict[str, Any]:
        return {attr: getattr(self, attr) for attr, _ in self.FIELDS}

    def checkpoint(self) -> None:
        """Write the current field values as the record's only row."""
        write_table_csv(self.path, self.header, [[getattr(self, attr) for attr, _ in self.FIELDS]])


@dataclass
class ClassRecord(SingletonRecord):
    """
    The ledger class the instances are minted in.

    Attributes:
        id: Class id on the ledger, None until the class step has run.
        meta_cid: CID of the pinned class metadata, None until it has been set.
    """
    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("id", "classId"),
        ("meta_cid", "classMetadata"),
    )

    id: Optional[str] = None
    meta_cid: Optional[str] = None


@dataclass
class BatchRecord(SingletonRecord):
    """
    Progress counters for the three batched ledger operations.

    Each counter is the number of fully completed batches of that kind. It only
    ever grows, and grows only after the batch call returned successfully.
    """
    FIELDS: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("last_mint_batch", "lastMintBatch"),
        ("last_metadata_batch", "lastMetadataBatch"),
        ("last_balance_tx_batch", "lastBalanceTxBatch"),
    )

    last_mint_batch: int = 0
    last_metadata_batch: int = 0
    last_balance_tx_batch: int = 0

    def _parse(self, attr: str, raw: str) -> Any:
        try:
            value = int(raw)
        except ValueError:
            raise StateConsistencyError(
                f"The batch checkpoint {self.path} holds a non-integer value for {attr}: {raw!r}"
            )
        if value < 0:
            raise StateConsistencyError(
                f"The batch checkpoint {self.path} holds a negative value for {attr}: {value}"
            )
        return value
