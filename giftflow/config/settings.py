"""
Workflow configuration loading and validation.

**Conceptual**: A workflow run is described by one JSON file (the "workflow
config"): which ledger gateway and pinning account to use, which class to mint
into, where the beneficiary CSV lives, which rows to process, and how instance
metadata is built. This module turns that file into strongly-typed, frozen
settings objects and validates them up front, so a typo fails at startup rather
than halfway through minting.

**Secrets**: Credentials (gateway token, Pinata keys) may be left out of the
JSON file and supplied through environment variables instead, loaded from a
.env file via python-dotenv:
  - LEDGER_GATEWAY_URL, LEDGER_GATEWAY_TOKEN
  - PINATA_API_KEY, PINATA_SECRET_API_KEY, PINATA_JWT

**Paths**: Relative file paths inside the config are resolved against the
directory holding the config file.

Example workflow.json:
    {
      "network": {"url": "http://localhost:8080", "proxiedAddress": null},
      "pinata": {"jwt": "..."},
      "class": {
        "id": 42,
        "metadata": {"name": "Gifts", "description": "A gift", "imageFile": "class.png"}
      },
      "instance": {
        "batchSize": 100,
        "initialFund": 1000000000000,
        "data": {"csvFile": "people.csv", "offset": 1, "count": 250,
                 "outputCsvFile": "people_final.csv"},
        "metadata": {"name": "Gift", "description": "For <<name>>",
                     "imageFolder": "images", "fileNameTemplate": "<>.png"}
      }
    }
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from giftflow.errors import ConfigurationError

DEFAULT_BATCH_SIZE = 100
DEFAULT_PINATA_BASE_URL = "https://api.pinata.cloud"


def _section(raw: Mapping[str, Any], key: str, context: str) -> Dict[str, Any]:
    """Return raw[key] as a dict ({} when absent or null)."""
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{context}.{key} must be an object, got: {value!r}")
    return value


def _optional_int(value: Any, name: str, minimum: int = 0) -> Optional[int]:
    """Parse an optional integer setting (JSON number or numeric string)."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got: {value!r}")
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got: {value!r}")
    if isinstance(value, float) and value != parsed:
        raise ConfigurationError(f"{name} must be an integer, got: {value!r}")
    if parsed < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got: {parsed}")
    return parsed


def _resolve(base_dir: Path, value: Optional[str]) -> Optional[Path]:
    if not value:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


@dataclass(frozen=True)
class NetworkSettings:
    """
    Connection settings for the ledger gateway.

    Attributes:
        url: Base URL of the ledger gateway (e.g. "http://localhost:8080").
        api_token: Optional bearer token for the gateway.
        proxied_address: If set, every call is wrapped in a proxy call on
                         behalf of this address.
        timeout_seconds: HTTP request timeout in seconds (default 60).
    """
    url: str
    api_token: Optional[str] = None
    proxied_address: Optional[str] = None
    timeout_seconds: int = 60

    def __post_init__(self):
        if not self.url:
            raise ConfigurationError(
                "The ledger gateway url is not configured. Please set network.url in "
                "your workflow config or LEDGER_GATEWAY_URL in your .env file."
            )
        if self.timeout_seconds <= 0:
            raise ConfigurationError(
                f"network.timeoutSeconds must be positive, got: {self.timeout_seconds}"
            )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "NetworkSettings":
        """Build from the `network` config section, falling back to env vars."""
        timeout = _optional_int(raw.get("timeoutSeconds"), "network.timeoutSeconds", minimum=1)
        return cls(
            url=raw.get("url") or os.getenv("LEDGER_GATEWAY_URL", ""),
            api_token=raw.get("apiToken") or os.getenv("LEDGER_GATEWAY_TOKEN") or None,
            proxied_address=raw.get("proxiedAddress") or None,
            timeout_seconds=timeout if timeout is not None else 60,
        )


@dataclass(frozen=True)
class PinataSettings:
    """
    Credentials for the Pinata pinning service.

    Either a JWT or an API key + secret pair is required.

    Attributes:
        api_key: Pinata API key.
        secret_api_key: Pinata secret API key.
        jwt: Pinata JWT (used instead of the key pair when present).
        base_url: Pinata API base URL.
        timeout_seconds: HTTP request timeout for uploads (default 120).
    """
    api_key: Optional[str] = None
    secret_api_key: Optional[str] = None
    jwt: Optional[str] = None
    base_url: str = DEFAULT_PINATA_BASE_URL
    timeout_seconds: int = 120

    def __post_init__(self):
        if not self.jwt and not (self.api_key and self.secret_api_key):
            raise ConfigurationError(
                "Pinata credentials are not configured. Please set pinata.jwt or "
                "pinata.apiKey and pinata.secretApiKey in your workflow config "
                "(or PINATA_JWT / PINATA_API_KEY and PINATA_SECRET_API_KEY in your .env file)."
            )

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PinataSettings":
        """Build from the `pinata` config section, falling back to env vars."""
        timeout = _optional_int(raw.get("timeoutSeconds"), "pinata.timeoutSeconds", minimum=1)
        return cls(
            api_key=raw.get("apiKey") or os.getenv("PINATA_API_KEY") or None,
            secret_api_key=raw.get("secretApiKey") or os.getenv("PINATA_SECRET_API_KEY") or None,
            jwt=raw.get("jwt") or os.getenv("PINATA_JWT") or None,
            base_url=raw.get("baseUrl") or DEFAULT_PINATA_BASE_URL,
            timeout_seconds=timeout if timeout is not None else 120,
        )


@dataclass(frozen=True)
class ClassMetadataConfig:
    """Metadata pinned and attached to the class itself."""
    name: str
    description: str
    image_file: Path
    video_file: Optional[Path] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], base_dir: Path) -> Optional["ClassMetadataConfig"]:
        if not raw:
            return None
        image_file = _resolve(base_dir, raw.get("imageFile"))
        if image_file is None:
            raise ConfigurationError("class.metadata.imageFile is required when class.metadata is set.")
        return cls(
            name=str(raw.get("name") or ""),
            description=str(raw.get("description") or ""),
            image_file=image_file,
            video_file=_resolve(base_dir, raw.get("videoFile")),
        )


@dataclass(frozen=True)
class InstanceDataConfig:
    """
    Where the beneficiary rows come from and where the result goes.

    Attributes:
        csv_file: Source CSV, one row per beneficiary.
        output_csv_file: Destination of the final table.
        offset: 1-based first row to process (None = first row).
        count: Number of rows to process, at least 1 (None = all remaining rows).
    """
    csv_file: Path
    output_csv_file: Path
    offset: Optional[int] = None
    count: Optional[int] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], base_dir: Path) -> "InstanceDataConfig":
        csv_file = _resolve(base_dir, raw.get("csvFile"))
        if csv_file is None:
            raise ConfigurationError(
                "The data source is not configured. Please configure instance.data.csvFile "
                "in your workflow config."
            )
        output = _resolve(base_dir, raw.get("outputCsvFile"))
        if output is None:
            output = csv_file.with_name(f"{csv_file.stem}_final{csv_file.suffix or '.csv'}")
        return cls(
            csv_file=csv_file,
            output_csv_file=output,
            offset=_optional_int(raw.get("offset"), "instance.data.offset"),
            count=_optional_int(raw.get("count"), "instance.data.count", minimum=1),
        )


@dataclass(frozen=True)
class InstanceMetadataConfig:
    """
    How per-row instance metadata is built.

    Attributes:
        name: Name written into every instance's metadata document.
        description: Description template; `<<Column Title>>` tokens are
                     replaced with the row's values.
        image_folder: Folder holding the instance images.
        file_name_template: Image file name template; `<>` is replaced with
                            the row's CSV line number, `<<Column Title>>`
                            tokens with the row's values.
    """
    name: str
    description: str
    image_folder: Path
    file_name_template: str

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], base_dir: Path) -> Optional["InstanceMetadataConfig"]:
        if not raw:
            return None
        image_folder = _resolve(base_dir, raw.get("imageFolder"))
        if image_folder is None:
            raise ConfigurationError("instance.metadata.imageFolder is required when instance.metadata is set.")
        template = raw.get("fileNameTemplate")
        if not template:
            raise ConfigurationError(
                "instance.metadata.fileNameTemplate is required when instance.metadata is set."
            )
        return cls(
            name=str(raw.get("name") or ""),
            description=str(raw.get("description") or ""),
            image_folder=image_folder,
            file_name_template=str(template),
        )


@dataclass(frozen=True)
class WorkflowConfig:
    """
    Complete, validated workflow configuration.

    Attributes:
        network: Ledger gateway settings.
        pinata: Pinning service credentials.
        class_id: Id of the class to mint into (kept as a string).
        class_metadata: Class metadata, or None to skip it (after confirmation).
        instance_data: Source/destination CSV and row range.
        instance_metadata: Instance metadata settings, or None to skip pinning
                           and on-chain metadata.
        batch_size: Items per batched ledger transaction (default 100).
        initial_fund: Amount sent to every beneficiary, or None/0 to skip.
    """
    network: NetworkSettings
    pinata: PinataSettings
    class_id: str
    instance_data: InstanceDataConfig
    class_metadata: Optional[ClassMetadataConfig] = None
    instance_metadata: Optional[InstanceMetadataConfig] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    initial_fund: Optional[int] = None

    def __post_init__(self):
        if not self.class_id:
            raise ConfigurationError("class.id is required in your workflow config.")
        if self.batch_size <= 0:
            raise ConfigurationError(f"instance.batchSize must be positive, got: {self.batch_size}")

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], base_dir: Path | str = ".") -> "WorkflowConfig":
        """
        Build a validated config from the parsed JSON document.

        Raises:
            ConfigurationError: On missing required fields or invalid values.
        """
        if not isinstance(raw, dict):
            raise ConfigurationError("The workflow config must be a JSON object.")
        base_dir = Path(base_dir)
        class_section = _section(raw, "class", "config")
        instance_section = _section(raw, "instance", "config")

        class_id = class_section.get("id")
        batch_size = _optional_int(instance_section.get("batchSize"), "instance.batchSize", minimum=1)

        return cls(
            network=NetworkSettings.from_dict(_section(raw, "network", "config")),
            pinata=PinataSettings.from_dict(_section(raw, "pinata", "config")),
            class_id="" if class_id is None else str(class_id),
            class_metadata=ClassMetadataConfig.from_dict(
                _section(class_section, "metadata", "class"), base_dir
            ),
            instance_data=InstanceDataConfig.from_dict(
                _section(instance_section, "data", "instance"), base_dir
            ),
            instance_metadata=InstanceMetadataConfig.from_dict(
                _section(instance_section, "metadata", "instance"), base_dir
            ),
            batch_size=batch_size if batch_size is not None else DEFAULT_BATCH_SIZE,
            initial_fund=_optional_int(instance_section.get("initialFund"), "instance.initialFund"),
        )


def load_workflow_config(path: Path | str) -> WorkflowConfig:
    """
    Load and validate a workflow config file.

    Environment variables from a .env file (searched from the current
    directory upwards) are loaded first so credentials can be omitted from the
    JSON file.

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON, or
                            fails validation.

    Example:
        >>> config = load_workflow_config("workflow.json")
        >>> config.batch_size
        100
    """
    load_dotenv(find_dotenv(usecwd=True))

    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(f"The workflow config file does not exist: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"The workflow config {path} is not valid JSON: {e}")

    return WorkflowConfig.from_dict(raw, base_dir=path.resolve().parent)
