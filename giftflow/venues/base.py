"""
Capability interfaces for the external services the workflow talks to.

**Conceptual**: The workflow needs two outside services:
  - a ledger, where the class is created, instances are minted, metadata is set
    and initial funds are transferred;
  - a pinning service, where images and metadata documents are uploaded and
    addressed by content id (CID).

The pipeline only ever depends on the two Protocols defined here. Concrete
clients (LedgerGatewayClient, PinataClient) satisfy them structurally, and
tests pass small in-memory fakes instead.

**Batched submissions**: Minting, instance metadata and fund transfers are sent
as batches of items. One submit_batch() call is one ledger transaction (an
all-or-nothing batch on the ledger side): it returns on success and raises an
ExternalOperationError subclass on failure.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, Sequence, Tuple, Union


class BatchKind(str, Enum):
    """The three batched operations the workflow submits."""
    MINT = "mint"
    SET_METADATA = "setMetadata"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class MintItem:
    """Mint instance `instance_id` of class `class_id` owned by `owner`."""
    class_id: str
    instance_id: int
    owner: str


@dataclass(frozen=True)
class MetadataItem:
    """Point instance `instance_id` of class `class_id` at `metadata_cid`."""
    class_id: str
    instance_id: int
    metadata_cid: str


@dataclass(frozen=True)
class TransferItem:
    """Transfer `amount` (smallest ledger unit) to `address`."""
    address: str
    amount: int


BatchItem = Union[MintItem, MetadataItem, TransferItem]


class LedgerClient(Protocol):
    """
    Protocol for the ledger operations the workflow performs.

    Every mutating call takes a dry_run flag; with dry_run=True the ledger
    validates the call without applying it.
    """

    def class_exists(self, class_id: str) -> bool:
        """Return True if a class with this id already exists on the ledger."""
        ...

    def create_class(self, class_id: str, dry_run: bool = False) -> None:
        """Create a new class owned by the workflow's signing account."""
        ...

    def set_class_metadata(self, class_id: str, metadata_cid: str, dry_run: bool = False) -> None:
        """Point the class's metadata at a pinned document."""
        ...

    def submit_batch(self, kind: BatchKind, items: Sequence[BatchItem], dry_run: bool = False) -> None:
        """Submit one batch of items as a single transaction."""
        ...

    def minimum_deposit(self) -> int:
        """Return the smallest balance an account may hold (existential deposit)."""
        ...

    def generate_account(self) -> Tuple[str, str]:
        """Create a fresh beneficiary keypair; returns (secret, address)."""
        ...


class PinningClient(Protocol):
    """Protocol for a content-addressed pinning service."""

    def pin(self, file: Path, name: str) -> str:
        """Upload and pin `file` under a display `name`; returns its CID."""
        ...
