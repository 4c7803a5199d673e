"""
Tests for WorkflowContext loading and cleanup.
"""

from giftflow.data.io import read_table_csv
from giftflow.workflow.context import CheckpointPaths, WorkflowContext


def test_checkpoint_paths_layout(tmp_path):
    paths = CheckpointPaths.under(tmp_path)

    assert paths.folder == tmp_path.resolve() / ".checkpoint"
    assert [p.name for p in paths.files()] == [".class.cp", ".batch.cp", ".data.cp"]


def test_fresh_load_seeds_data_checkpoint(make_config, ledger, pinning, checkpoint_paths):
    config = make_config(rows=3)

    context = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths)

    assert context.resumed is False
    assert context.class_record.id is None
    assert context.batch_record.last_mint_batch == 0
    assert read_table_csv(checkpoint_paths.data_file) == read_table_csv(config.instance_data.csv_file)
    assert not checkpoint_paths.class_file.exists()


def test_load_picks_up_records(make_config, ledger, pinning, checkpoint_paths):
    config = make_config(rows=3)
    first = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths)
    first.class_record.id = "42"
    first.class_record.checkpoint()
    first.batch_record.last_mint_batch = 2
    first.batch_record.checkpoint()

    second = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths)

    assert second.resumed is True
    assert second.class_record.id == "42"
    assert second.batch_record.last_mint_batch == 2


def test_dry_run_load_creates_nothing(make_config, ledger, pinning, checkpoint_paths):
    config = make_config(rows=3)

    context = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths, dry_run=True)

    assert context.dry_run is True
    assert context.data.row_count == 3
    assert not checkpoint_paths.folder.exists()


def test_unseeded_load_writes_nothing_until_seeded(make_config, ledger, pinning, checkpoint_paths):
    config = make_config(rows=3)

    context = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths, seed=False)
    assert not checkpoint_paths.folder.exists()

    context.seed_checkpoints()

    assert read_table_csv(checkpoint_paths.data_file) == read_table_csv(config.instance_data.csv_file)
    assert WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths).resumed is True


def test_clean_removes_files_and_empty_folder(make_config, ledger, pinning, checkpoint_paths):
    config = make_config(rows=3)
    context = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths)
    context.batch_record.checkpoint()

    context.clean()

    assert not checkpoint_paths.folder.exists()


def test_clean_keeps_folder_with_foreign_files(make_config, ledger, pinning, checkpoint_paths):
    config = make_config(rows=3)
    context = WorkflowContext.load(config, ledger, pinning, paths=checkpoint_paths)
    (checkpoint_paths.folder / "notes.txt").write_text("keep me")

    context.clean()

    assert [p.name for p in checkpoint_paths.folder.iterdir()] == ["notes.txt"]
