"""
Upload task documents.

An upload task can be described as data in a YAML document, which is how a
task is handed to another process or machine: the receiver loads the
document and combines it with its own connection settings.

Example task file (tasks/report.yaml):
    ```yaml
    version: "1.0"
    upload:
      destination: s3://build-artifacts/jobs/42/report.txt
      dest_filename: out/report.txt
      produced: true
      gzip: true
      storage_class: STANDARD_IA
      server_side_encryption: true
      metadata:
        Cache-Control: max-age=3600
        owner: ci
    ```

Usage:
    >>> from artifact_uploader.utils.config_loader import (
    ...     load_task_document, validate_task_document, task_from_document,
    ... )
    >>> document = load_task_document("tasks/report.yaml")
    >>> if not validate_task_document(document):
    ...     task = task_from_document(document, get_settings())
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from artifact_uploader.uploader.models import Destination, UploadTaskConfig
from artifact_uploader.utils.config import UploaderSettings
from artifact_uploader.utils.logging import get_logger

logger = get_logger(__name__)

SUPPORTED_VERSIONS = ["1.0"]

_BOOLEAN_FIELDS = ["produced", "gzip", "server_side_encryption"]


@dataclass
class ConfigError:
    """Validation error in a task document."""

    field: str
    message: str
    value: Optional[Any] = None

    def __str__(self) -> str:
        if self.value is not None:
            return f"{self.field}: {self.message} (got: {self.value})"
        return f"{self.field}: {self.message}"


def load_task_document(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load an upload task document from YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the path is not a file or the document is empty
        yaml.YAMLError: If the YAML is malformed
    """
    path = Path(config_path)
    logger.info(f"Loading task document from: {path}")

    if not path.exists():
        raise FileNotFoundError(f"Task document not found: {path}")

    if not path.is_file():
        raise ValueError(f"Task document path is not a file: {path}")

    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML: {e}")
        raise

    if document is None:
        raise ValueError("Task document is empty")
    if not isinstance(document, dict):
        raise ValueError(f"Task document must be a mapping, got {type(document).__name__}")

    return dict(document)


def validate_task_document(document: Dict[str, Any]) -> List[ConfigError]:
    """
    Validate a task document.

    Returns:
        List of validation errors (empty if valid)
    """
    errors: List[ConfigError] = []

    if "version" not in document:
        errors.append(ConfigError("version", "Missing required field"))
    elif str(document["version"]) not in SUPPORTED_VERSIONS:
        errors.append(
            ConfigError(
                "version",
                f"Unsupported version (supported: {SUPPORTED_VERSIONS})",
                document["version"],
            )
        )

    upload = document.get("upload")
    if upload is None:
        errors.append(ConfigError("upload", "Missing required field"))
    elif not isinstance(upload, dict):
        errors.append(ConfigError("upload", "Must be a mapping", type(upload).__name__))
    else:
        errors.extend(_validate_upload_section(upload))

    if errors:
        logger.warning(f"Task document validation failed with {len(errors)} errors")
    return errors


def _validate_upload_section(upload: Dict[str, Any]) -> List[ConfigError]:
    errors: List[ConfigError] = []

    destination = upload.get("destination")
    if destination is None:
        errors.append(ConfigError("upload.destination", "Missing required field"))
    elif not isinstance(destination, str):
        errors.append(
            ConfigError("upload.destination", "Must be a string", type(destination).__name__)
        )
    else:
        try:
            Destination.from_uri(destination)
        except ValueError:
            errors.append(
                ConfigError("upload.destination", "Must look like scheme://bucket/key", destination)
            )

    for name in _BOOLEAN_FIELDS:
        if name in upload and not isinstance(upload[name], bool):
            errors.append(
                ConfigError(f"upload.{name}", "Must be true or false", upload[name])
            )

    metadata = upload.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        errors.append(
            ConfigError("upload.metadata", "Must be a mapping", type(metadata).__name__)
        )

    storage_class = upload.get("storage_class")
    if storage_class is not None and not isinstance(storage_class, str):
        errors.append(
            ConfigError("upload.storage_class", "Must be a string", type(storage_class).__name__)
        )

    return errors


def task_from_document(document: Dict[str, Any], settings: UploaderSettings) -> UploadTaskConfig:
    """
    Build an UploadTaskConfig from a validated document.

    Connection parameters come from the local settings, never from the
    document.

    Raises:
        ValueError: If the document does not validate
    """
    errors = validate_task_document(document)
    if errors:
        raise ValueError("Invalid task document: " + "; ".join(str(e) for e in errors))

    upload = document["upload"]
    destination = Destination.from_uri(upload["destination"])

    return UploadTaskConfig(
        produced=upload.get("produced", True),
        dest_filename=upload.get("dest_filename") or destination.object_name,
        bucket_name=upload.get("bucket_name") or destination.bucket_name,
        destination=destination,
        user_metadata={str(k): str(v) for k, v in (upload.get("metadata") or {}).items()},
        storage_class=upload.get("storage_class"),
        use_server_side_encryption=upload.get("server_side_encryption", False),
        gzip_files=upload.get("gzip", False),
        credentials=settings.credentials(),
        region=settings.region,
        proxy=settings.proxy(),
    )
