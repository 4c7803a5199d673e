"""
Error taxonomy for the gift workflow.

**Conceptual**: Every failure the workflow expects to hit (bad configuration,
inconsistent checkpoints, failed preflight checks, failed ledger or pinning
calls, a refused confirmation) is raised as a subclass of WorkflowError. The CLI
prints these as a one-line message; anything else is treated as a bug and shown
with a full traceback.

**Recovery**: None of these errors is retried automatically. Fix the cause and
re-run the same command; the checkpoint files make the re-run skip completed
work.
"""


class WorkflowError(Exception):
    """
    Base class for all expected workflow failures.

    Catch this to handle every domain error in one place (the CLI does).
    """
    pass


class ConfigurationError(WorkflowError):
    """
    Raised when the workflow configuration is missing or invalid.

    Raised before any external call is made.
    """
    pass


class StateConsistencyError(WorkflowError):
    """
    Raised when a checkpointed value required by a step is missing or invalid.

    Examples: no class id recorded before minting, no address for the first row
    of the range, a non-numeric instance id. Never retried.
    """
    pass


class ColumnLengthMismatch(StateConsistencyError):
    """
    Raised when a column's value count differs from the table's row count.

    **Conceptual**: The data table has a fixed row count. A column that would
    leave some rows without a value (or add rows) is rejected as a whole.
    """

    def __init__(self, title: str, value_count: int, row_count: int):
        self.title = title
        self.value_count = value_count
        self.row_count = row_count
        super().__init__(
            f"Can not add the column '{title}' to the data table: it has "
            f"{value_count} values but the table has {row_count} rows."
        )


class ValidationError(WorkflowError):
    """
    Raised when a preflight check fails (missing image files, fund amount
    below the ledger's minimum deposit, missing metadata files).
    """
    pass


class ExternalOperationError(WorkflowError):
    """
    Raised when a ledger or pinning call fails.

    The checkpoint is left at the last fully completed batch. The batch that
    was in flight may have partially reached the ledger and is resubmitted on
    the next run.
    """
    pass


class UserDeclinedError(WorkflowError):
    """Raised when the operator answers "no" to a required confirmation."""
    pass
