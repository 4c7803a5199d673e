"""
Building and pinning metadata documents.

**Conceptual**: Both the class and every instance get a small JSON metadata
document that points at a pinned image (and optionally a video):

    {
      "name": "Gift",
      "image": "ipfs://ipfs/<image cid>",
      "animation_url": "ipfs://ipfs/<video cid>",
      "description": "For Ann"
    }

generate_metadata() pins the media, writes the document next to the image as
`<image stem>.meta`, pins the document and returns the three CIDs. Pins are
named after the image stem (`<stem>.image`, `<stem>.video`, `<stem>.meta`) so
they are easy to find in the pinning service's dashboard.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from giftflow.config.settings import ClassMetadataConfig
from giftflow.errors import ValidationError
from giftflow.venues.base import LedgerClient, PinningClient

logger = structlog.get_logger(__name__)

IPFS_URI_PREFIX = "ipfs://ipfs/"


@dataclass(frozen=True)
class PinnedMetadata:
    """CIDs produced by generate_metadata()."""
    meta_cid: str
    image_cid: str
    video_cid: Optional[str] = None


def require_file(path: Path, what: str) -> Path:
    """
    Return `path` if it is an existing regular file.

    Raises:
        ValidationError: If it does not exist or is not a file.
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"The configured {what} path: {path} does not exist")
    if not path.is_file():
        raise ValidationError(f"The configured {what} path: {path} is not a file")
    return path


def build_metadata_document(
    name: str,
    description: str,
    image_cid: str,
    video_cid: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Return the metadata document for a pinned image (and optional video).

    animation_url is only present when a video was pinned.

    Example:
        >>> build_metadata_document("Gift", "For Ann", "QmImage")
        {'name': 'Gift', 'image': 'ipfs://ipfs/QmImage', 'description': 'For Ann'}
    """
    document: Dict[str, Any] = {"name": name, "image": f"{IPFS_URI_PREFIX}{image_cid}"}
    if video_cid:
        document["animation_url"] = f"{IPFS_URI_PREFIX}{video_cid}"
    document["description"] = description
    return document


def generate_metadata(
    pinning: PinningClient,
    name: str,
    description: str,
    image_file: Path,
    video_file: Optional[Path] = None,
) -> PinnedMetadata:
    """
    Pin the media, then write and pin their metadata document.

    Args:
        pinning: Pinning client.
        name: Metadata name.
        description: Metadata description (already filled from any template).
        image_file: Image to pin; the document is written next to it.
        video_file: Optional video to pin as animation_url.

    Returns:
        PinnedMetadata with the document, image and video CIDs.

    Raises:
        ValidationError: If a media file is missing (checked before any pin).
        ExternalOperationError: If a pin fails.
    """
    image_file = require_file(image_file, "image")
    if video_file is not None:
        video_file = require_file(video_file, "video")

    stem = image_file.stem
    image_cid = pinning.pin(image_file, f"{stem}.image")

    video_cid = None
    if video_file is not None:
        video_cid = pinning.pin(video_file, f"{video_file.stem}.video")

    document = build_metadata_document(name, description, image_cid, video_cid)
    meta_file = image_file.with_name(f"{stem}.meta")
    meta_file.write_text(json.dumps(document, indent=2), encoding="utf-8")

    meta_cid = pinning.pin(meta_file, f"{stem}.meta")
    logger.debug("metadata_pinned", image=str(image_file), meta_cid=meta_cid)
    return PinnedMetadata(meta_cid=meta_cid, image_cid=image_cid, video_cid=video_cid)


def generate_and_set_class_metadata(
    ledger: LedgerClient,
    pinning: PinningClient,
    class_id: str,
    metadata: ClassMetadataConfig,
    dry_run: bool = False,
) -> str:
    """Pin the class metadata, point the class at it and return its CID."""
    pinned = generate_metadata(
        pinning,
        metadata.name,
        metadata.description,
        metadata.image_file,
        metadata.video_file,
    )
    ledger.set_class_metadata(class_id, pinned.meta_cid, dry_run=dry_run)
    return pinned.meta_cid
