"""
Data types shared by the upload task.

Example usage:
    >>> from artifact_uploader.uploader import Destination, UploadTaskConfig
    >>> task = UploadTaskConfig(
    ...     produced=True,
    ...     dest_filename="dist/app.tar",
    ...     bucket_name="build-artifacts",
    ...     destination=Destination("build-artifacts", "jobs/42/app.tar"),
    ...     gzip_files=True,
    ... )
    >>> task.to_dict()["destination"]
    {'bucket_name': 'build-artifacts', 'object_name': 'jobs/42/app.tar'}
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, BinaryIO, Dict, Optional, Protocol, Union, runtime_checkable
from urllib.parse import quote

from artifact_uploader.uploader.errors import SourceReadError

SUPPORTED_PROVIDERS = ("s3", "gcs")
DEFAULT_TRANSFER_TIMEOUT_SECONDS = 300


@dataclass(frozen=True)
class Destination:
    """
    Where the uploaded bytes land.

    Attributes:
        bucket_name: Target bucket
        object_name: Object key inside the bucket
    """

    bucket_name: str
    object_name: str

    @classmethod
    def from_uri(cls, uri: str) -> "Destination":
        """
        Parse a `scheme://bucket/key` string.

        Raises:
            ValueError: If the URI has no bucket or no object key
        """
        _, sep, rest = uri.partition("://")
        if not sep:
            rest = uri
        bucket, _, key = rest.partition("/")
        if not bucket or not key:
            raise ValueError(f"Destination URI needs a bucket and a key: {uri!r}")
        return cls(bucket_name=bucket, object_name=key)

    def __str__(self) -> str:
        return f"{self.bucket_name}/{self.object_name}"


@dataclass(frozen=True)
class ProxySettings:
    """HTTP(S) proxy used by the storage transport."""

    host: str
    port: int = 8080
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    def to_url(self) -> str:
        auth = ""
        if self.username:
            auth = quote(self.username, safe="")
            if self.password:
                auth += ":" + quote(self.password, safe="")
            auth += "@"
        return f"http://{auth}{self.host}:{self.port}"

    def as_proxies(self) -> Dict[str, str]:
        """Proxy mapping in the form botocore and requests expect."""
        url = self.to_url()
        return {"http": url, "https": url}


@dataclass(frozen=True)
class TransportCredentials:
    """
    Connection parameters handed to the transport factory.

    Attributes:
        provider: Storage service, "s3" or "gcs"
        access_key: Static access key id (S3)
        secret_key: Static secret key (S3), never shown in repr
        use_role: Ignore static keys and use the ambient credential chain
        endpoint_url: Custom S3-compatible endpoint
        project: GCS project id
        timeout_seconds: Upper bound for one transfer request
    """

    provider: str = "s3"
    access_key: Optional[str] = None
    secret_key: Optional[str] = field(default=None, repr=False)
    use_role: bool = False
    endpoint_url: Optional[str] = None
    project: Optional[str] = None
    timeout_seconds: int = DEFAULT_TRANSFER_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported storage provider {self.provider!r} "
                f"(supported: {', '.join(SUPPORTED_PROVIDERS)})"
            )


@dataclass(frozen=True)
class FingerprintRecord:
    """
    What was uploaded and the MD5 of the bytes that were sent.

    Attributes:
        produced: Whether the file was produced by the build
        bucket: Bucket name recorded for the upload
        file_name: Logical destination file name
        md5: Lower-case hex MD5 of the transmitted payload
    """

    produced: bool
    bucket: str
    file_name: str
    md5: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "produced": self.produced,
            "bucket": self.bucket,
            "fileName": self.file_name,
            "md5": self.md5,
        }


@dataclass(frozen=True)
class UploadTaskConfig:
    """
    Everything one upload invocation needs, besides the source file itself.

    Attributes:
        produced: Whether the artifact is a build output (vs. pre-existing)
        dest_filename: Logical file name recorded in the fingerprint
        bucket_name: Bucket name recorded in the fingerprint
        destination: Bucket and key the bytes are sent to
        user_metadata: Caller-supplied headers and metadata
        storage_class: Storage class hint (ignored when empty)
        use_server_side_encryption: Request encryption at rest
        gzip_files: Gzip the payload before sending
        credentials: Connection parameters for the transport factory
        region: Storage region
        proxy: Optional HTTP proxy
    """

    produced: bool
    dest_filename: str
    bucket_name: str
    destination: Destination
    user_metadata: Dict[str, str] = field(default_factory=dict)
    storage_class: Optional[str] = None
    use_server_side_encryption: bool = False
    gzip_files: bool = False
    credentials: TransportCredentials = field(default_factory=TransportCredentials)
    region: Optional[str] = None
    proxy: Optional[ProxySettings] = None

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        """
        Plain-data form of the task, e.g. for handing it to another process.

        Args:
            include_secrets: Keep the secret key and proxy password
        """
        credentials = {
            "provider": self.credentials.provider,
            "access_key": self.credentials.access_key,
            "use_role": self.credentials.use_role,
            "endpoint_url": self.credentials.endpoint_url,
            "project": self.credentials.project,
            "timeout_seconds": self.credentials.timeout_seconds,
        }
        if include_secrets:
            credentials["secret_key"] = self.credentials.secret_key

        proxy = None
        if self.proxy is not None:
            proxy = {
                "host": self.proxy.host,
                "port": self.proxy.port,
                "username": self.proxy.username,
            }
            if include_secrets:
                proxy["password"] = self.proxy.password

        return {
            "produced": self.produced,
            "dest_filename": self.dest_filename,
            "bucket_name": self.bucket_name,
            "destination": {
                "bucket_name": self.destination.bucket_name,
                "object_name": self.destination.object_name,
            },
            "user_metadata": dict(self.user_metadata),
            "storage_class": self.storage_class,
            "use_server_side_encryption": self.use_server_side_encryption,
            "gzip_files": self.gzip_files,
            "credentials": credentials,
            "region": self.region,
            "proxy": proxy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadTaskConfig":
        """Inverse of to_dict()."""
        proxy_data = data.get("proxy")
        return cls(
            produced=bool(data["produced"]),
            dest_filename=data["dest_filename"],
            bucket_name=data["bucket_name"],
            destination=Destination(**data["destination"]),
            user_metadata={
                str(k): str(v) for k, v in (data.get("user_metadata") or {}).items()
            },
            storage_class=data.get("storage_class"),
            use_server_side_encryption=bool(data.get("use_server_side_encryption", False)),
            gzip_files=bool(data.get("gzip_files", False)),
            credentials=TransportCredentials(**(data.get("credentials") or {})),
            region=data.get("region"),
            proxy=ProxySettings(**proxy_data) if proxy_data else None,
        )


@runtime_checkable
class SourceFile(Protocol):
    """
    Readable file the upload task consumes.

    The task only reads from it; it never writes, moves or deletes it.
    """

    def read(self) -> BinaryIO: ...

    def length(self) -> int: ...

    def last_modified(self) -> datetime: ...

    def name(self) -> str: ...


class LocalSourceFile:
    """SourceFile backed by a path on the local filesystem."""

    def __init__(self, path: Union[str, "os.PathLike[str]"]) -> None:
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"LocalSourceFile({str(self.path)!r})"

    def _stat(self) -> os.stat_result:
        try:
            return self.path.stat()
        except OSError as e:
            raise SourceReadError(f"Cannot stat source file {self.path}: {e}") from e

    def read(self) -> BinaryIO:
        if self.path.is_dir():
            raise SourceReadError(f"Source path is a directory: {self.path}")
        try:
            return open(self.path, "rb")
        except OSError as e:
            raise SourceReadError(f"Cannot open source file {self.path}: {e}") from e

    def length(self) -> int:
        return self._stat().st_size

    def last_modified(self) -> datetime:
        return datetime.fromtimestamp(self._stat().st_mtime, tz=timezone.utc)

    def name(self) -> str:
        return self.path.name
