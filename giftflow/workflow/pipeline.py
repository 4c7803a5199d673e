"""
End-to-end workflows built from the steps.

**Conceptual**: run_workflow() is the gift workflow as a fixed, strictly
sequential state machine:

    INIT -> VALIDATED -> CLASS_ENSURED -> CLASS_METADATA_SET -> SECRETS_GENERATED
         -> INSTANCES_MINTED -> IMAGES_PINNED -> INSTANCE_METADATA_SET
         -> FUNDS_SENT -> FINALIZED

Every step is idempotent over the checkpointed state, so a failed run is
resumed by simply running it again. FINALIZED writes the output CSV and deletes
the checkpoints; it is only reached by a complete, non-dry run.

update_metadata_workflow() re-pins images and re-sets instance metadata for
instances minted by an earlier run.

**Dry-run**: both workflows stop after VALIDATED. Nothing is written to disk and
no mutating ledger or pinning call is made.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Tuple

import structlog

from giftflow.config.settings import WorkflowConfig
from giftflow.errors import ConfigurationError, ValidationError
from giftflow.venues.base import LedgerClient, PinningClient
from giftflow.workflow import steps
from giftflow.workflow.context import (
    IMAGE_CID_COLUMN,
    METADATA_CID_COLUMN,
    CheckpointPaths,
    WorkflowContext,
)
from giftflow.workflow.decisions import DecisionProvider

logger = structlog.get_logger(__name__)


class WorkflowStage(str, Enum):
    """Stages of the gift workflow, in execution order."""
    INIT = "init"
    VALIDATED = "validated"
    CLASS_ENSURED = "class_ensured"
    CLASS_METADATA_SET = "class_metadata_set"
    SECRETS_GENERATED = "secrets_generated"
    INSTANCES_MINTED = "instances_minted"
    IMAGES_PINNED = "images_pinned"
    INSTANCE_METADATA_SET = "instance_metadata_set"
    FUNDS_SENT = "funds_sent"
    FINALIZED = "finalized"


Step = Callable[[WorkflowContext, WorkflowConfig], None]

# (stage reached on success, title, step)
GIFT_STEPS: Tuple[Tuple[WorkflowStage, str, Step], ...] = (
    (WorkflowStage.CLASS_ENSURED, "Creating the class", steps.ensure_class),
    (WorkflowStage.CLASS_METADATA_SET, "Setting class metadata", steps.set_class_metadata),
    (WorkflowStage.SECRETS_GENERATED, "Generating gift secrets", steps.generate_secrets),
    (WorkflowStage.INSTANCES_MINTED, "Minting instances", steps.mint_instances),
    (WorkflowStage.IMAGES_PINNED, "Pinning images and metadata", steps.pin_images),
    (WorkflowStage.INSTANCE_METADATA_SET, "Setting instance metadata", steps.set_instance_metadata),
    (WorkflowStage.FUNDS_SENT, "Sending initial funds", steps.send_initial_funds),
)

UPDATE_METADATA_STEPS: Tuple[Tuple[WorkflowStage, str, Step], ...] = (
    (WorkflowStage.IMAGES_PINNED, "Pinning images and metadata", steps.pin_images),
    (WorkflowStage.INSTANCE_METADATA_SET, "Setting instance metadata", steps.set_instance_metadata),
)


@dataclass(frozen=True)
class WorkflowResult:
    """
    Outcome of a workflow run.

    Attributes:
        stage: Last stage reached (VALIDATED for a dry run, FINALIZED otherwise).
        dry_run: Whether this was a dry run.
        resumed: Whether the run resumed from existing checkpoints.
        start_record_no: First row of the processed range (0-based).
        end_record_no: End of the processed range (exclusive).
        output_file: Final CSV, None for a dry run.
    """
    stage: WorkflowStage
    dry_run: bool
    resumed: bool
    start_record_no: int
    end_record_no: int
    output_file: Optional[Path] = None

    @property
    def row_count(self) -> int:
        return self.end_record_no - self.start_record_no


def run_steps(
    context: WorkflowContext,
    config: WorkflowConfig,
    sequence: Tuple[Tuple[WorkflowStage, str, Step], ...] = GIFT_STEPS,
) -> WorkflowStage:
    """
    Run a step sequence in order and return the last stage reached.

    A step that raises stops the sequence; the error propagates.
    """
    stage = WorkflowStage.VALIDATED
    for next_stage, title, step in sequence:
        logger.info("step_started", step=step.__name__, title=title)
        step(context, config)
        stage = next_stage
    return stage


def _result(context: WorkflowContext, stage: WorkflowStage, output_file: Optional[Path] = None) -> WorkflowResult:
    return WorkflowResult(
        stage=stage,
        dry_run=context.dry_run,
        resumed=context.resumed,
        start_record_no=context.data.start_record_no,
        end_record_no=context.data.end_record_no,
        output_file=output_file,
    )


def run_workflow(
    config: WorkflowConfig,
    ledger: LedgerClient,
    pinning: PinningClient,
    decisions: Optional[DecisionProvider] = None,
    paths: Optional[CheckpointPaths] = None,
    dry_run: bool = False,
) -> WorkflowResult:
    """
    Run the gift workflow: preflight, the seven steps, then finalize.

    Args:
        config: Validated workflow config.
        ledger: Ledger client.
        pinning: Pinning client.
        decisions: Answers for the confirmations steps may ask (default:
                   decline everything).
        paths: Checkpoint locations (default: ./.checkpoint).
        dry_run: Run the preflight only.

    Returns:
        WorkflowResult describing where the run stopped.

    Raises:
        WorkflowError: Any domain failure; checkpoints are left in place so the
                       run can be resumed.

    Example:
        >>> result = run_workflow(config, LedgerGatewayClient(config.network),
        ...                       PinataClient(config.pinata), InteractiveDecisionProvider())
        >>> result.stage
        <WorkflowStage.FINALIZED: 'finalized'>
    """
    context = WorkflowContext.load(
        config, ledger, pinning, decisions=decisions, paths=paths, dry_run=dry_run, seed=False
    )
    logger.info(
        "workflow_loaded",
        class_id=config.class_id,
        rows=f"[{context.data.start_record_no}, {context.data.end_record_no})",
        resumed=context.resumed,
        dry_run=dry_run,
    )

    steps.validate_workflow(context, config)
    if dry_run:
        logger.info("dry_run_finished")
        return _result(context, WorkflowStage.VALIDATED)

    context.seed_checkpoints()
    run_steps(context, config, GIFT_STEPS)
    output_file = steps.finalize(context, config)
    return _result(context, WorkflowStage.FINALIZED, output_file)


def update_metadata_workflow(
    config: WorkflowConfig,
    ledger: LedgerClient,
    pinning: PinningClient,
    decisions: Optional[DecisionProvider] = None,
    paths: Optional[CheckpointPaths] = None,
    dry_run: bool = False,
) -> WorkflowResult:
    """
    Re-pin instance images and re-set instance metadata of an existing class.

    **Functionally**:
      - Requires instance.metadata in the config and the configured class to
        exist on the ledger.
      - The source CSV must carry the instanceId column, typically the output
        of an earlier run.
      - On a fresh start (no data checkpoint) the image cid and metadata cid
        columns are cleared and the metadata batch counter is reset, so every
        row in range is pinned and set again. A resumed run continues where it
        stopped.

    Raises:
        ConfigurationError: No instance metadata configured.
        ValidationError: The class does not exist, or an image is missing.
    """
    if config.instance_metadata is None:
        raise ConfigurationError(
            "No instance metadata is configured. Please configure instance.metadata in your workflow config."
        )

    context = WorkflowContext.load(
        config, ledger, pinning, decisions=decisions, paths=paths, dry_run=dry_run, seed=False
    )
    if not ledger.class_exists(config.class_id):
        raise ValidationError(f"The class with classId:{config.class_id} does not exist.")

    steps.check_instance_images(context, config)
    if dry_run:
        logger.info("dry_run_finished")
        return _result(context, WorkflowStage.VALIDATED)

    if not context.resumed:
        table = context.data
        columns = [table.get_column_or_blank(IMAGE_CID_COLUMN), table.get_column_or_blank(METADATA_CID_COLUMN)]
        for column in columns:
            for row in range(table.start_record_no, table.end_record_no):
                column.values[row] = ""
        table.set_columns(columns)
        context.seed_checkpoints()
        context.batch_record.last_metadata_batch = 0
        context.batch_record.checkpoint()
        logger.info("instance_metadata_cleared", rows=f"[{table.start_record_no}, {table.end_record_no})")

    record = context.class_record
    if record.id != config.class_id:
        record.id = config.class_id
        record.checkpoint()

    run_steps(context, config, UPDATE_METADATA_STEPS)
    output_file = steps.finalize(context, config)
    return _result(context, WorkflowStage.FINALIZED, output_file)
