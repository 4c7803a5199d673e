"""
HTTP client for the ledger gateway.

**Conceptual**: Signing and encoding ledger transactions is done by a separate
gateway service that holds the workflow's signing key. This client is the thin
HTTP layer in front of it: it turns LedgerClient protocol calls into JSON
requests, checks the status codes and returns plain Python values. It does not
retry; a failed call raises and the workflow stops at its last checkpoint.

**Gateway endpoints**:
  - GET  /classes/{id}                 -> 200 if the class exists, 404 if not
  - POST /classes                      {classId, dryRun, proxiedAddress}
  - POST /classes/{id}/metadata        {metadataCid, dryRun, proxiedAddress}
  - POST /batches                      {kind, items, dryRun, proxiedAddress}
  - GET  /constants/minimum-deposit    -> {"value": "<integer>"}
  - POST /accounts                     -> {"secret": "...", "address": "..."}

Mutating calls answer {"success": true, ...} once the transaction is included;
{"success": false, "error": "..."} means the ledger rejected it.
"""

from dataclasses import asdict
from typing import Any, Dict, Optional, Sequence, Tuple

import requests
import structlog

from giftflow.config.settings import NetworkSettings
from giftflow.errors import ExternalOperationError
from giftflow.venues.base import BatchItem, BatchKind

logger = structlog.get_logger(__name__)


class LedgerClientError(ExternalOperationError):
    """Base exception for ledger gateway errors."""
    pass


class LedgerAuthenticationError(LedgerClientError):
    """
    Raised when the gateway rejects the api token (401/403).

    **Recovery**: Check network.apiToken or LEDGER_GATEWAY_TOKEN.
    """
    pass


class LedgerServerError(LedgerClientError):
    """Raised when the gateway answers with a 5xx status."""
    pass


class LedgerTransactionError(LedgerClientError):
    """Raised when the ledger rejected a submitted transaction."""
    pass


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _item_payload(item: BatchItem) -> Dict[str, Any]:
    return {_camel(key): value for key, value in asdict(item).items()}


class LedgerGatewayClient:
    """
    Thin HTTP client for the ledger gateway; satisfies the LedgerClient protocol.

    Example:
        >>> client = LedgerGatewayClient(NetworkSettings(url="http://localhost:8080"))
        >>> client.class_exists("42")
        False
        >>> client.create_class("42")
    """

    def __init__(self, settings: NetworkSettings):
        self.settings = settings
        self.session = requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "giftflow/1.0",
        })
        if settings.api_token:
            self.session.headers.update({"Authorization": f"Bearer {settings.api_token}"})

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Send one request and return its decoded JSON body.

        Returns None for a 404 when allow_not_found is set.
        """
        url = f"{self.settings.url.rstrip('/')}{path}"
        try:
            response = self.session.request(
                method,
                url,
                json=payload,
                timeout=self.settings.timeout_seconds,
            )
        except requests.Timeout as e:
            raise LedgerClientError(
                f"Request to the ledger gateway timed out after {self.settings.timeout_seconds}s: "
                f"{method} {path}"
            ) from e
        except requests.ConnectionError as e:
            raise LedgerClientError(
                f"Failed to connect to the ledger gateway at {self.settings.url}. "
                f"Check network connection and network.url."
            ) from e
        except requests.RequestException as e:
            raise LedgerClientError(f"Ledger gateway request failed: {e}") from e

        if response.status_code == 404 and allow_not_found:
            return None
        if response.status_code in (401, 403):
            raise LedgerAuthenticationError(
                f"Ledger gateway authentication failed (status {response.status_code}). "
                f"Response: {response.text}"
            )
        if response.status_code >= 500:
            raise LedgerServerError(
                f"Ledger gateway server error (status {response.status_code}) on {method} {path}. "
                f"Response: {response.text}"
            )
        if response.status_code >= 400:
            raise LedgerClientError(
                f"Ledger gateway rejected {method} {path} (status {response.status_code}). "
                f"Response: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LedgerClientError(
                f"Failed to parse ledger gateway response: {e}. Response: {response.text}"
            )
        if not isinstance(data, dict):
            raise LedgerClientError(f"Unexpected ledger gateway response: {data!r}")
        return data

    def _submit(self, path: str, payload: Dict[str, Any], what: str) -> None:
        payload = dict(payload, proxiedAddress=self.settings.proxied_address)
        data = self._request("POST", path, payload)
        if not data.get("success"):
            raise LedgerTransactionError(f"{what} failed: {data.get('error') or 'unknown error'}")
        logger.debug("ledger_tx_included", what=what, tx_hash=data.get("txHash"))

    def class_exists(self, class_id: str) -> bool:
        return self._request("GET", f"/classes/{class_id}", allow_not_found=True) is not None

    def create_class(self, class_id: str, dry_run: bool = False) -> None:
        self._submit("/classes", {"classId": class_id, "dryRun": dry_run}, f"Creating class {class_id}")

    def set_class_metadata(self, class_id: str, metadata_cid: str, dry_run: bool = False) -> None:
        self._submit(
            f"/classes/{class_id}/metadata",
            {"metadataCid": metadata_cid, "dryRun": dry_run},
            f"Setting metadata of class {class_id}",
        )

    def submit_batch(self, kind: BatchKind, items: Sequence[BatchItem], dry_run: bool = False) -> None:
        self._submit(
            "/batches",
            {
                "kind": BatchKind(kind).value,
                "items": [_item_payload(item) for item in items],
                "dryRun": dry_run,
            },
            f"{BatchKind(kind).value} batch of {len(items)} items",
        )

    def minimum_deposit(self) -> int:
        data = self._request("GET", "/constants/minimum-deposit")
        try:
            return int(data["value"])
        except (KeyError, TypeError, ValueError):
            raise LedgerClientError(f"Unexpected minimum deposit response: {data!r}")

    def generate_account(self) -> Tuple[str, str]:
        data = self._request("POST", "/accounts", {})
        secret, address = data.get("secret"), data.get("address")
        if not secret or not address:
            raise LedgerClientError("The ledger gateway returned an account without secret or address.")
        return secret, address

    def close(self):
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
