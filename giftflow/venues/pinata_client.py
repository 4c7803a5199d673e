"""
HTTP client for the Pinata pinning API.

**Conceptual**: A thin wrapper around Pinata's pinFileToIPFS endpoint. It
uploads one file, asks Pinata to pin it, and returns the content id (CID). It
knows nothing about metadata documents or the data table; building and pinning
metadata is done in giftflow.workflow.metadata on top of pin().

**Authentication**: Either a JWT (Authorization: Bearer ...) or an API key pair
(pinata_api_key / pinata_secret_api_key headers), taken from PinataSettings.

**Errors**: Every failure is raised as a PinningClientError subclass, which is
an ExternalOperationError, so the workflow stops and leaves its checkpoints at
the last completed step.
"""

import json
from pathlib import Path

import requests

from giftflow.config.settings import PinataSettings
from giftflow.errors import ExternalOperationError


class PinningClientError(ExternalOperationError):
    """Base exception for pinning service errors."""
    pass


class PinataAuthenticationError(PinningClientError):
    """
    Raised when Pinata rejects the credentials (401/403).

    **Recovery**: Check PINATA_JWT or PINATA_API_KEY / PINATA_SECRET_API_KEY.
    """
    pass


class PinataRateLimitError(PinningClientError):
    """Raised when Pinata answers 429 Too Many Requests."""
    pass


class PinataServerError(PinningClientError):
    """Raised when Pinata answers with a 5xx status."""
    pass


class PinataClient:
    """
    Thin HTTP client for Pinata; satisfies the PinningClient protocol.

    Example:
        >>> client = PinataClient(PinataSettings(jwt="..."))
        >>> client.pin(Path("images/2.png"), "2.image")
        'QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG'
    """

    PIN_FILE_PATH = "/pinning/pinFileToIPFS"

    def __init__(self, settings: PinataSettings):
        self.settings = settings
        self.session = requests.Session()
        if settings.jwt:
            self.session.headers.update({"Authorization": f"Bearer {settings.jwt}"})
        else:
            self.session.headers.update({
                "pinata_api_key": settings.api_key,
                "pinata_secret_api_key": settings.secret_api_key,
            })
        self.session.headers.update({"Accept": "application/json"})

    def pin(self, file: Path, name: str) -> str:
        """
        Upload `file` and pin it under the display name `name`.

        Args:
            file: Local file to upload.
            name: Name stored with the pin in Pinata (pinataMetadata.name).

        Returns:
            The CID (IpfsHash) of the pinned file.

        Raises:
            PinataAuthenticationError: On 401/403.
            PinataRateLimitError: On 429.
            PinataServerError: On 5xx.
            PinningClientError: On any other failure, including a response
                                without an IpfsHash.
        """
        file = Path(file)
        url = f"{self.settings.base_url.rstrip('/')}{self.PIN_FILE_PATH}"

        try:
            with file.open("rb") as fh:
                response = self.session.post(
                    url,
                    files={"file": (file.name, fh)},
                    data={"pinataMetadata": json.dumps({"name": name})},
                    timeout=self.settings.timeout_seconds,
                )
        except requests.RequestException as e:
            # RequestException is an OSError, so it has to be caught first
            raise PinningClientError(f"Failed to pin {file}: {e}") from e
        except OSError as e:
            raise PinningClientError(f"Failed to read {file} for pinning: {e}") from e

        if response.status_code in (401, 403):
            raise PinataAuthenticationError(
                f"Pinata authentication failed (status {response.status_code}). "
                f"Response: {response.text}"
            )
        if response.status_code == 429:
            raise PinataRateLimitError(f"Pinata rate limit exceeded. Response: {response.text}")
        if response.status_code >= 500:
            raise PinataServerError(
                f"Pinata server error (status {response.status_code}). Response: {response.text}"
            )
        if response.status_code >= 400:
            raise PinningClientError(
                f"Pinata rejected the upload of {file} (status {response.status_code}). "
                f"Response: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PinningClientError(f"Failed to parse Pinata response: {e}. Response: {response.text}")

        cid = data.get("IpfsHash") if isinstance(data, dict) else None
        if not cid:
            raise PinningClientError(f"Failed to pin {file}: the response has no IpfsHash.")
        return cid

    def close(self):
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
