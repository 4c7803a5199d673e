"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import giftflow...' works, and
provides in-memory ledger and pinning fakes plus a small workflow workspace.
"""
import sys
from pathlib import Path

import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from giftflow.config.settings import WorkflowConfig  # noqa: E402
from giftflow.data.io import write_table_csv  # noqa: E402
from giftflow.errors import ExternalOperationError  # noqa: E402
from giftflow.workflow.context import CheckpointPaths  # noqa: E402


class FakeLedger:
    """
    In-memory LedgerClient.

    Records every call in `calls` as (method, args) tuples. Set `fail_on` to
    {kind: n} to make the n-th (1-based) submit_batch of that kind raise.
    """

    MUTATING = ("create_class", "set_class_metadata", "submit_batch")

    def __init__(self, existing_classes=(), min_deposit=100):
        self.classes = set(existing_classes)
        self.min_deposit = min_deposit
        self.calls = []
        self.batches = []
        self.fail_on = {}
        self._submitted = {}
        self._accounts = 0

    def class_exists(self, class_id):
        self.calls.append(("class_exists", (class_id,)))
        return class_id in self.classes

    def create_class(self, class_id, dry_run=False):
        self.calls.append(("create_class", (class_id, dry_run)))
        self.classes.add(class_id)

    def set_class_metadata(self, class_id, metadata_cid, dry_run=False):
        self.calls.append(("set_class_metadata", (class_id, metadata_cid, dry_run)))

    def submit_batch(self, kind, items, dry_run=False):
        self.calls.append(("submit_batch", (kind, len(items), dry_run)))
        count = self._submitted.get(kind, 0) + 1
        self._submitted[kind] = count
        if self.fail_on.get(kind) == count:
            raise ExternalOperationError(f"{kind.value} batch {count} failed")
        self.batches.append((kind, list(items)))

    def minimum_deposit(self):
        self.calls.append(("minimum_deposit", ()))
        return self.min_deposit

    def generate_account(self):
        self.calls.append(("generate_account", ()))
        self._accounts += 1
        return f"secret-{self._accounts}", f"address-{self._accounts}"

    def mutating_calls(self):
        return [call for call in self.calls if call[0] in self.MUTATING]

    def batches_of(self, kind):
        return [items for batch_kind, items in self.batches if batch_kind == kind]


class FakePinning:
    """In-memory PinningClient returning `cid-<name>` for every pin."""

    def __init__(self):
        self.pinned = []

    def pin(self, file, name):
        self.pinned.append((Path(file), name))
        return f"cid-{name}"


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def pinning():
    return FakePinning()


@pytest.fixture
def checkpoint_paths(tmp_path):
    return CheckpointPaths.under(tmp_path)


def write_people_csv(path, count):
    """Write a beneficiary CSV with `count` rows (name, email)."""
    rows = [[f"Person {i}", f"person{i}@example.com"] for i in range(count)]
    write_table_csv(path, ["name", "email"], rows)
    return path


def write_images(folder, line_numbers, ext="png"):
    folder.mkdir(parents=True, exist_ok=True)
    for line in line_numbers:
        (folder / f"{line}.{ext}").write_bytes(b"\x89PNG fake")
    return folder


@pytest.fixture
def make_config(tmp_path):
    """
    Build a WorkflowConfig over a fresh workspace in tmp_path.

    Writes people.csv (default 5 rows), images for every row and a class
    image. Keyword arguments override sections of the raw config.
    """

    def _make(rows=5, batch_size=2, initial_fund=1000, instance_metadata=True,
              class_metadata=True, offset=None, count=None, write_images_for=None):
        write_people_csv(tmp_path / "people.csv", rows)
        lines = range(2, rows + 2) if write_images_for is None else write_images_for
        write_images(tmp_path / "images", lines)
        (tmp_path / "class.png").write_bytes(b"\x89PNG class")

        raw = {
            "network": {"url": "http://ledger.test"},
            "pinata": {"jwt": "test-jwt"},
            "class": {"id": 42},
            "instance": {
                "batchSize": batch_size,
                "initialFund": initial_fund,
                "data": {"csvFile": "people.csv", "offset": offset, "count": count},
            },
        }
        if class_metadata:
            raw["class"]["metadata"] = {
                "name": "Gifts",
                "description": "A class of gifts",
                "imageFile": "class.png",
            }
        if instance_metadata:
            raw["instance"]["metadata"] = {
                "name": "Gift",
                "description": "A gift for <<name>>",
                "imageFolder": "images",
                "fileNameTemplate": "<>.png",
            }
        return WorkflowConfig.from_dict(raw, base_dir=tmp_path)

    return _make
