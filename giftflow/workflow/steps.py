"""
The individual workflow steps.

**Conceptual**: Each step is a plain function taking the WorkflowContext and the
WorkflowConfig. Every step first looks at the checkpointed state and does
nothing (no external call) when its goal is already met for the configured row
range, so the whole step sequence can be re-run after a failure:

    step                    done when
    ----------------------  ------------------------------------------------
    ensure_class            recorded class id == configured class id
    set_class_metadata      a class metadata CID is recorded
    generate_secrets        every row in range has a secret
    mint_instances          lastMintBatch covers the range
    pin_images              every row in range has a metadata CID
    set_instance_metadata   lastMetadataBatch covers the range
    send_initial_funds      lastBalanceTxBatch covers the range

Checkpoints are written right after the state they record changed, and never
in dry-run.

**Preflight**: validate_workflow() runs before any of them and only reads
(local files and the ledger's minimum deposit).
"""

from pathlib import Path
from typing import Optional

import structlog

from giftflow.config.settings import InstanceMetadataConfig, WorkflowConfig
from giftflow.data.table import (
    FIRST_ROW_LINE_NUMBER,
    Column,
    DataTable,
    fill_template,
    format_file_name,
)
from giftflow.errors import StateConsistencyError, UserDeclinedError, ValidationError
from giftflow.venues.base import BatchKind, MetadataItem, MintItem, TransferItem
from giftflow.workflow.batching import BatchRunner
from giftflow.workflow.context import (
    ADDRESS_COLUMN,
    IMAGE_CID_COLUMN,
    INSTANCE_ID_COLUMN,
    METADATA_CID_COLUMN,
    SECRET_COLUMN,
    WorkflowContext,
)
from giftflow.workflow.decisions import APPEND_TO_CLASS, CONTINUE_WITHOUT_CLASS_METADATA
from giftflow.workflow.metadata import generate_and_set_class_metadata, generate_metadata, require_file

logger = structlog.get_logger(__name__)


def _require_class_id(context: WorkflowContext) -> str:
    if context.class_record.id is None:
        raise StateConsistencyError(
            "No class id checkpoint is recorded or the checkpoint is not in a correct state."
        )
    return context.class_record.id


def _require_range_values(table: DataTable, title: str, what: str) -> Column:
    """
    Return the column `title`, checking it has values at both ends of the range.

    Raises:
        StateConsistencyError: If the column is missing or the first or last
                               row of the range has no value.
    """
    column = table.get_column_or_blank(title)
    start, end = table.start_record_no, table.end_record_no
    if start < end and (not column.values[start] or not column.values[end - 1]):
        raise StateConsistencyError(
            f"No {what} checkpoint is recorded or the checkpoint is not in a correct state."
        )
    return column


def _instance_id(value: str, row: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise StateConsistencyError(
            f"The instanceId of row {row + FIRST_ROW_LINE_NUMBER} is not an integer: {value!r}"
        )


def instance_image_file(table: DataTable, metadata: InstanceMetadataConfig, row: int) -> Path:
    """Resolve the image file of a table row from the file name template."""
    name = format_file_name(
        metadata.file_name_template,
        row + FIRST_ROW_LINE_NUMBER,
        table.header,
        table.rows[row],
    )
    return metadata.image_folder / name


# ---------------------------------------------------------------------------
# Preflight
# ---------------------------------------------------------------------------


def check_initial_fund(context: WorkflowContext, config: WorkflowConfig) -> None:
    """Reject an initial fund below the ledger's minimum deposit."""
    if not config.initial_fund:
        return
    minimum = context.ledger.minimum_deposit()
    if config.initial_fund < minimum:
        raise ValidationError(
            f"instance.initialFund ({config.initial_fund}) should be at least the "
            f"ledger's minimum deposit ({minimum})."
        )


def check_instance_images(context: WorkflowContext, config: WorkflowConfig) -> None:
    """Reject a range where any row's image file is missing."""
    metadata = config.instance_metadata
    if metadata is None:
        return
    table = context.data
    for row in range(table.start_record_no, table.end_record_no):
        image_file = instance_image_file(table, metadata, row)
        if not image_file.is_file():
            raise ValidationError(
                f"imageFile: {image_file} does not exist to be minted for row: "
                f"{row + FIRST_ROW_LINE_NUMBER}"
            )


def check_class_media(context: WorkflowContext, config: WorkflowConfig) -> None:
    """Reject missing class image/video files while class metadata is still to be set."""
    metadata = config.class_metadata
    if metadata is None or context.class_record.meta_cid:
        return
    require_file(metadata.image_file, "class image")
    if metadata.video_file is not None:
        require_file(metadata.video_file, "class video")


def validate_workflow(context: WorkflowContext, config: WorkflowConfig) -> None:
    """
    Preflight checks, run before any mutating call.

    Raises:
        ValidationError: On the first failed check.
    """
    check_initial_fund(context, config)
    check_instance_images(context, config)
    check_class_media(context, config)
    logger.info("preflight_passed", rows=f"[{context.data.start_record_no}, {context.data.end_record_no})")


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def ensure_class(context: WorkflowContext, config: WorkflowConfig) -> None:
    """
    Make sure the configured class exists and is recorded.

    An already existing class on the ledger is only used after the operator
    agreed to mint into it.

    Switching to a different class id is refused while batches of the
    recorded class are checkpointed.

    Raises:
        UserDeclinedError: The operator refused to mint into an existing class.
        StateConsistencyError: The class id changed after batches were
                               submitted for the recorded one.
    """
    record = context.class_record
    if record.id is not None and record.id == config.class_id:
        logger.info("step_skipped", step="ensure_class", class_id=record.id)
        return
    if record.id is not None and any(context.batch_record.as_dict().values()):
        raise StateConsistencyError(
            f"The checkpoint records batches for classId:{record.id} but the workflow config "
            f"uses classId:{config.class_id}. Restore the class id or delete "
            f"{context.paths.folder} to start over."
        )

    class_id = config.class_id
    if context.ledger.class_exists(class_id):
        append = context.decisions.confirm(
            APPEND_TO_CLASS,
            f"A class with classId:{class_id} already exists, do you want to create "
            f"the instances in the same class?",
            default=False,
        )
        if not append:
            raise UserDeclinedError("Please set a different class id in your workflow config.")
    else:
        context.ledger.create_class(class_id, dry_run=context.dry_run)
        logger.info("class_created", class_id=class_id)

    if record.id != class_id:
        record.meta_cid = None
    record.id = class_id
    if not context.dry_run:
        record.checkpoint()


def set_class_metadata(context: WorkflowContext, config: WorkflowConfig) -> None:
    """
    Pin and set the class metadata unless a class metadata CID is recorded.

    Raises:
        StateConsistencyError: No class id is recorded.
        UserDeclinedError: No class metadata is configured and the operator
                           did not want to continue without it.
    """
    class_id = _require_class_id(context)
    record = context.class_record
    if record.meta_cid:
        logger.info("step_skipped", step="set_class_metadata", meta_cid=record.meta_cid)
        return

    if config.class_metadata is None:
        proceed = context.decisions.confirm(
            CONTINUE_WITHOUT_CLASS_METADATA,
            "No class metadata is configured in the workflow config, do you want to "
            "continue without setting class metadata?",
            default=False,
        )
        if not proceed:
            raise UserDeclinedError("Please configure a class metadata in your workflow config.")
        logger.info("class_metadata_skipped", class_id=class_id)
        return

    record.meta_cid = generate_and_set_class_metadata(
        context.ledger,
        context.pinning,
        class_id,
        config.class_metadata,
        dry_run=context.dry_run,
    )
    if not context.dry_run:
        record.checkpoint()


def generate_secrets(context: WorkflowContext, config: WorkflowConfig) -> None:
    """Generate a gift account for every row in range that has no secret yet."""
    table = context.data
    secrets = table.get_column_or_blank(SECRET_COLUMN)
    addresses = table.get_column_or_blank(ADDRESS_COLUMN)

    generated = 0
    for row in range(table.start_record_no, table.end_record_no):
        if secrets.values[row]:
            continue
        secrets.values[row], addresses.values[row] = context.ledger.generate_account()
        generated += 1

    if not generated:
        logger.info("step_skipped", step="generate_secrets")
        return
    table.set_columns([secrets, addresses])
    if not context.dry_run:
        table.checkpoint()
    logger.info("secrets_generated", count=generated)


def mint_instances(context: WorkflowContext, config: WorkflowConfig) -> None:
    """
    Mint one instance per row in range, then record the instance ids.

    Instance ids are the row's position within the range (0, 1, 2, ...).

    Raises:
        StateConsistencyError: No class id, or no address at the first or
                               last row of the range.
    """
    class_id = _require_class_id(context)
    table = context.data
    start, end = table.start_record_no, table.end_record_no
    owners = _require_range_values(table, ADDRESS_COLUMN, "address").values

    def mint_batch(batch_index: int, batch_start: int, batch_end: int) -> None:
        items = [
            MintItem(class_id=class_id, instance_id=row - start, owner=owners[row])
            for row in range(batch_start, batch_end)
        ]
        context.ledger.submit_batch(BatchKind.MINT, items, dry_run=context.dry_run)

    runner = BatchRunner(context.batch_record, config.batch_size, dry_run=context.dry_run)
    runner.run("last_mint_batch", start, end, mint_batch)

    instance_ids = table.get_column_or_blank(INSTANCE_ID_COLUMN)
    for row in range(start, end):
        instance_ids.values[row] = str(row - start)
    table.set_columns([instance_ids])
    if not context.dry_run:
        table.checkpoint()


def pin_images(context: WorkflowContext, config: WorkflowConfig) -> None:
    """Pin image and metadata document for every row in range without a metadata CID."""
    metadata = config.instance_metadata
    if metadata is None:
        logger.info("step_skipped", step="pin_images", reason="no instance metadata configured")
        return

    table = context.data
    image_cids = table.get_column_or_blank(IMAGE_CID_COLUMN)
    meta_cids = table.get_column_or_blank(METADATA_CID_COLUMN)

    pinned = 0
    for row in range(table.start_record_no, table.end_record_no):
        if meta_cids.values[row]:
            continue
        result = generate_metadata(
            context.pinning,
            metadata.name,
            fill_template(metadata.description, table.header, table.rows[row]),
            instance_image_file(table, metadata, row),
        )
        image_cids.values[row] = result.image_cid
        meta_cids.values[row] = result.meta_cid
        pinned += 1

    if not pinned:
        logger.info("step_skipped", step="pin_images")
        return
    table.set_columns([image_cids, meta_cids])
    if not context.dry_run:
        table.checkpoint()
    logger.info("images_pinned", count=pinned)


def set_instance_metadata(context: WorkflowContext, config: WorkflowConfig) -> None:
    """
    Point every instance in range at its pinned metadata, in batches.

    Raises:
        StateConsistencyError: No class id, or no metadata CID or integer
                               instance id at the first or last row.
    """
    if config.instance_metadata is None:
        logger.info("step_skipped", step="set_instance_metadata", reason="no instance metadata configured")
        return

    class_id = _require_class_id(context)
    table = context.data
    start, end = table.start_record_no, table.end_record_no
    meta_cids = _require_range_values(table, METADATA_CID_COLUMN, "metadata").values
    instance_ids = _require_range_values(table, INSTANCE_ID_COLUMN, "instanceId").values
    if start < end:
        _instance_id(instance_ids[start], start)
        _instance_id(instance_ids[end - 1], end - 1)

    def metadata_batch(batch_index: int, batch_start: int, batch_end: int) -> None:
        items = [
            MetadataItem(
                class_id=class_id,
                instance_id=_instance_id(instance_ids[row], row),
                metadata_cid=meta_cids[row],
            )
            for row in range(batch_start, batch_end)
        ]
        context.ledger.submit_batch(BatchKind.SET_METADATA, items, dry_run=context.dry_run)

    runner = BatchRunner(context.batch_record, config.batch_size, dry_run=context.dry_run)
    runner.run("last_metadata_batch", start, end, metadata_batch)


def send_initial_funds(context: WorkflowContext, config: WorkflowConfig) -> None:
    """
    Transfer the initial fund to every gift account in range, in batches.

    Raises:
        StateConsistencyError: No address at the first or last row of the range.
    """
    amount: Optional[int] = config.initial_fund
    if not amount:
        logger.info("step_skipped", step="send_initial_funds", reason="no initialFund configured")
        return

    table = context.data
    start, end = table.start_record_no, table.end_record_no
    addresses = _require_range_values(table, ADDRESS_COLUMN, "address").values

    def transfer_batch(batch_index: int, batch_start: int, batch_end: int) -> None:
        items = [TransferItem(address=addresses[row], amount=amount) for row in range(batch_start, batch_end)]
        context.ledger.submit_batch(BatchKind.TRANSFER, items, dry_run=context.dry_run)

    runner = BatchRunner(context.batch_record, config.batch_size, dry_run=context.dry_run)
    runner.run("last_balance_tx_batch", start, end, transfer_batch)


def finalize(context: WorkflowContext, config: WorkflowConfig) -> Path:
    """Write the final table to the output CSV and delete the checkpoints."""
    output_file = config.instance_data.output_csv_file
    context.data.write_final_result(output_file)
    context.clean()
    logger.info("final_result_written", output_file=str(output_file))
    return output_file
