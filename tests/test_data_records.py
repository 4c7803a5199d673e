"""
Tests for the class and batch checkpoint records.
"""

import pytest

from giftflow.data.io import read_table_csv, write_table_csv
from giftflow.data.records import BatchRecord, ClassRecord
from giftflow.errors import StateConsistencyError


def test_load_without_file_keeps_defaults(tmp_path):
    record = BatchRecord(tmp_path / ".batch.cp")

    assert record.load() is False
    assert record.as_dict() == {"last_mint_batch": 0, "last_metadata_batch": 0, "last_balance_tx_batch": 0}


def test_class_record_checkpoint_format(tmp_path):
    path = tmp_path / ".class.cp"
    record = ClassRecord(path, id="42")

    record.checkpoint()

    assert read_table_csv(path) == (["classId", "classMetadata"], [["42", ""]])


def test_class_record_round_trip(tmp_path):
    path = tmp_path / ".class.cp"
    ClassRecord(path, id="42", meta_cid="QmMeta").checkpoint()

    record = ClassRecord(path)

    assert record.load() is True
    assert (record.id, record.meta_cid) == ("42", "QmMeta")


def test_empty_values_leave_defaults(tmp_path):
    path = tmp_path / ".class.cp"
    ClassRecord(path, id="7").checkpoint()

    record = ClassRecord(path)
    record.load()

    assert record.meta_cid is None


def test_batch_record_round_trip(tmp_path):
    path = tmp_path / ".batch.cp"
    BatchRecord(path, last_mint_batch=3, last_metadata_batch=1).checkpoint()

    record = BatchRecord(path)
    record.load()

    assert read_table_csv(path)[0] == ["lastMintBatch", "lastMetadataBatch", "lastBalanceTxBatch"]
    assert (record.last_mint_batch, record.last_metadata_batch, record.last_balance_tx_batch) == (3, 1, 0)


def test_batch_record_columns_are_found_by_title(tmp_path):
    path = tmp_path / ".batch.cp"
    write_table_csv(path, ["lastBalanceTxBatch", "lastMintBatch"], [["2", "5"]])

    record = BatchRecord(path)
    record.load()

    assert (record.last_mint_batch, record.last_metadata_batch, record.last_balance_tx_batch) == (5, 0, 2)


@pytest.mark.parametrize("value", ["two", "1.5", "-1"])
def test_batch_record_rejects_bad_counters(tmp_path, value):
    path = tmp_path / ".batch.cp"
    write_table_csv(path, ["lastMintBatch", "lastMetadataBatch", "lastBalanceTxBatch"], [[value, "0", "0"]])

    with pytest.raises(StateConsistencyError):
        BatchRecord(path).load()
