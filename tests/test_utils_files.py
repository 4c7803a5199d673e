"""
Tests for rename_files.
"""

import pytest

from giftflow.errors import ConfigurationError
from giftflow.utils.files import rename_files


def _touch(folder, *names):
    for name in names:
        (folder / name).write_text(name)


def test_renames_in_name_order_from_two(tmp_path):
    _touch(tmp_path, "b.png", "a.png", "c.png")

    renames = rename_files(tmp_path, "png")

    assert [(old.name, new.name) for old, new in renames] == [("a.png", "2.png"), ("b.png", "3.png"), ("c.png", "4.png")]
    assert (tmp_path / "2.png").read_text() == "a.png"
    assert (tmp_path / "4.png").read_text() == "c.png"


def test_other_extensions_are_untouched(tmp_path):
    _touch(tmp_path, "a.png", "notes.txt", "a.meta")

    rename_files(tmp_path, ".png", start_index=10)

    assert sorted(p.name for p in tmp_path.iterdir()) == ["10.png", "a.meta", "notes.txt"]


def test_numeric_names_never_collide(tmp_path):
    _touch(tmp_path, "3.png", "2.png", "10.png")

    rename_files(tmp_path, "png", start_index=2)

    # name order is 10.png, 2.png, 3.png
    assert (tmp_path / "2.png").read_text() == "10.png"
    assert (tmp_path / "3.png").read_text() == "2.png"
    assert (tmp_path / "4.png").read_text() == "3.png"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["2.png", "3.png", "4.png"]


def test_empty_folder(tmp_path):
    assert rename_files(tmp_path, "png") == []


@pytest.mark.parametrize(
    "kwargs",
    [{"ext": ""}, {"ext": "png", "start_index": -1}],
)
def test_invalid_arguments(tmp_path, kwargs):
    with pytest.raises(ConfigurationError):
        rename_files(tmp_path, **kwargs)


def test_missing_folder(tmp_path):
    with pytest.raises(ConfigurationError, match="does not exist"):
        rename_files(tmp_path / "missing", "png")
