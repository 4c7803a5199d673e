"""
Tests for metadata document building and pinning.
"""

import json

import pytest

from giftflow.config.settings import ClassMetadataConfig
from giftflow.errors import ValidationError
from giftflow.workflow.metadata import (
    build_metadata_document,
    generate_and_set_class_metadata,
    generate_metadata,
)


def test_document_without_video():
    document = build_metadata_document("Gift", "For Ann", "QmImage")

    assert document == {"name": "Gift", "image": "ipfs://ipfs/QmImage", "description": "For Ann"}


def test_document_with_video_keeps_field_order():
    document = build_metadata_document("Gift", "For Ann", "QmImage", "QmVideo")

    assert list(document) == ["name", "image", "animation_url", "description"]
    assert document["animation_url"] == "ipfs://ipfs/QmVideo"


def test_generate_metadata_pins_image_then_document(tmp_path, pinning):
    image = tmp_path / "2.png"
    image.write_bytes(b"png")

    result = generate_metadata(pinning, "Gift", "For Ann", image)

    assert result.image_cid == "cid-2.image"
    assert result.meta_cid == "cid-2.meta"
    assert result.video_cid is None
    assert [name for _, name in pinning.pinned] == ["2.image", "2.meta"]

    meta_file = tmp_path / "2.meta"
    assert json.loads(meta_file.read_text()) == {
        "name": "Gift",
        "image": "ipfs://ipfs/cid-2.image",
        "description": "For Ann",
    }
    assert meta_file.read_text().startswith('{\n  "name"')


def test_generate_metadata_with_video(tmp_path, pinning):
    image = tmp_path / "cover.png"
    video = tmp_path / "clip.mp4"
    image.write_bytes(b"png")
    video.write_bytes(b"mp4")

    result = generate_metadata(pinning, "Gift", "", image, video)

    assert result.video_cid == "cid-clip.video"
    assert [name for _, name in pinning.pinned] == ["cover.image", "clip.video", "cover.meta"]
    assert json.loads((tmp_path / "cover.meta").read_text())["animation_url"] == "ipfs://ipfs/cid-clip.video"


def test_missing_files_fail_before_any_pin(tmp_path, pinning):
    image = tmp_path / "cover.png"
    image.write_bytes(b"png")

    with pytest.raises(ValidationError, match="does not exist"):
        generate_metadata(pinning, "Gift", "", tmp_path / "missing.png")
    with pytest.raises(ValidationError, match="video"):
        generate_metadata(pinning, "Gift", "", image, tmp_path / "missing.mp4")
    with pytest.raises(ValidationError, match="is not a file"):
        generate_metadata(pinning, "Gift", "", tmp_path)

    assert pinning.pinned == []


def test_generate_and_set_class_metadata(tmp_path, ledger, pinning):
    image = tmp_path / "class.png"
    image.write_bytes(b"png")
    config = ClassMetadataConfig(name="Gifts", description="All gifts", image_file=image)

    meta_cid = generate_and_set_class_metadata(ledger, pinning, "42", config)

    assert meta_cid == "cid-class.meta"
    assert ledger.calls == [("set_class_metadata", ("42", "cid-class.meta", False))]
