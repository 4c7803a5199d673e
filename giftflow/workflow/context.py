"""
The state a workflow run operates on.

**Conceptual**: A WorkflowContext bundles everything a step needs: the two
external clients, the decision provider, the data table and the two singleton
records, plus where their checkpoints live and whether this is a dry run. It is
built once per run by WorkflowContext.load() and handed to every step; nothing
is kept at module level, so two runs (e.g. two tests) never share state.

**Checkpoint layout** (under the base directory, default: current directory):
    .checkpoint/
        .class.cp    ClassRecord  [classId, classMetadata]
        .batch.cp    BatchRecord  [lastMintBatch, lastMetadataBatch, lastBalanceTxBatch]
        .data.cp     DataTable    source CSV + appended workflow columns

**Lifecycle**:
  - load(): reads (or seeds) the checkpoints. A data checkpoint that already
    exists means an earlier run was interrupted; the run resumes from it.
  - steps mutate the table and records and checkpoint them.
  - clean(): deletes the checkpoints after the final result was written.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

from giftflow.config.settings import WorkflowConfig
from giftflow.data.records import BatchRecord, ClassRecord
from giftflow.data.table import DataTable, read_source_table
from giftflow.errors import StateConsistencyError
from giftflow.venues.base import LedgerClient, PinningClient
from giftflow.workflow.decisions import DecisionProvider, ProgrammaticDecisionProvider

logger = structlog.get_logger(__name__)

CHECKPOINT_FOLDER_NAME = ".checkpoint"

# Columns the workflow appends to the beneficiary table
SECRET_COLUMN = "gift account secret"
ADDRESS_COLUMN = "gift account address"
IMAGE_CID_COLUMN = "image cid"
METADATA_CID_COLUMN = "metadata cid"
INSTANCE_ID_COLUMN = "instanceId"


@dataclass(frozen=True)
class CheckpointPaths:
    """Locations of the checkpoint folder and its three files."""
    folder: Path

    @classmethod
    def under(cls, base_dir: Path | str = ".") -> "CheckpointPaths":
        return cls(folder=Path(base_dir).resolve() / CHECKPOINT_FOLDER_NAME)

    @property
    def class_file(self) -> Path:
        return self.folder / ".class.cp"

    @property
    def batch_file(self) -> Path:
        return self.folder / ".batch.cp"

    @property
    def data_file(self) -> Path:
        return self.folder / ".data.cp"

    def files(self):
        return (self.class_file, self.batch_file, self.data_file)


@dataclass
class WorkflowContext:
    """
    Explicit per-run state passed to every workflow step.

    Attributes:
        ledger: Ledger client (LedgerClient protocol).
        pinning: Pinning client (PinningClient protocol).
        data: Beneficiary table, loaded from the data checkpoint.
        class_record: Class id and class metadata CID.
        batch_record: Completed batch counters.
        paths: Checkpoint file locations.
        decisions: Answers the yes/no questions steps may ask.
        dry_run: If True, no checkpoint is written and only preflight runs.
        resumed: True if a data checkpoint from an earlier run was found.
    """
    ledger: LedgerClient
    pinning: PinningClient
    data: DataTable
    class_record: ClassRecord
    batch_record: BatchRecord
    paths: CheckpointPaths
    decisions: DecisionProvider = field(default_factory=ProgrammaticDecisionProvider)
    dry_run: bool = False
    resumed: bool = False

    @classmethod
    def load(
        cls,
        config: WorkflowConfig,
        ledger: LedgerClient,
        pinning: PinningClient,
        decisions: Optional[DecisionProvider] = None,
        paths: Optional[CheckpointPaths] = None,
        dry_run: bool = False,
        seed: bool = True,
    ) -> "WorkflowContext":
        """
        Build the context for one run from the config and the checkpoints.

        **Functionally**:
          - Creates the checkpoint folder (not in dry-run, not without seed).
          - Loads the class and batch records (defaults when absent).
          - Loads the data table; the first run copies the source CSV to the
            data checkpoint. A dry run, or a load with seed=False, reads the
            source without copying it (see seed_checkpoints).
          - When resuming, checks that the data checkpoint still has as many
            rows as the source CSV.

        Raises:
            ConfigurationError: Missing or unreadable source CSV, or an invalid
                                row range.
            StateConsistencyError: The data checkpoint does not match the
                                   source CSV, or a record holds bad values.
        """
        paths = paths or CheckpointPaths.under()
        resumed = paths.data_file.exists()
        persist = seed and not dry_run
        if persist:
            paths.folder.mkdir(parents=True, exist_ok=True)

        class_record = ClassRecord(paths.class_file)
        class_record.load()
        batch_record = BatchRecord(paths.batch_file)
        batch_record.load()

        data_config = config.instance_data
        data = DataTable.load(
            data_config.csv_file,
            paths.data_file,
            offset=data_config.offset,
            count=data_config.count,
            copy_source=persist,
        )

        if resumed:
            _, source_rows = read_source_table(data_config.csv_file)
            if len(source_rows) != data.row_count:
                raise StateConsistencyError(
                    f"The data checkpoint {paths.data_file} has {data.row_count} rows but "
                    f"{data_config.csv_file} has {len(source_rows)}. Restore the source file "
                    f"or delete {paths.folder} to start over."
                )
            logger.info(
                "resuming_from_checkpoint",
                folder=str(paths.folder),
                class_id=class_record.id,
                **batch_record.as_dict(),
            )

        return cls(
            ledger=ledger,
            pinning=pinning,
            data=data,
            class_record=class_record,
            batch_record=batch_record,
            paths=paths,
            decisions=decisions or ProgrammaticDecisionProvider(),
            dry_run=dry_run,
            resumed=resumed,
        )

    def seed_checkpoints(self) -> None:
        """
        Create the checkpoint folder and the data checkpoint if they are missing.

        Called after a load with seed=False once the preflight has passed.
        """
        if self.dry_run:
            return
        self.paths.folder.mkdir(parents=True, exist_ok=True)
        if not self.paths.data_file.exists():
            self.data.checkpoint()

    def clean(self) -> None:
        """Delete the checkpoint files, and the folder if nothing else is in it."""
        for path in self.paths.files():
            path.unlink(missing_ok=True)
        folder = self.paths.folder
        if folder.is_dir() and not any(folder.iterdir()):
            folder.rmdir()
