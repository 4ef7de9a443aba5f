"""
Storage transports.

The upload task talks to object storage through two narrow contracts:

    transport = acquire_transport(credentials, region, proxy)
    pending = transport.upload(bucket, key, stream, metadata)
    pending.wait_for_completion()

Two services are supported: Amazon S3 (and S3-compatible endpoints) through
boto3's managed transfers, and Google Cloud Storage through
google-cloud-storage. Retries are left to the client libraries.
"""

import concurrent.futures
from typing import Any, BinaryIO, Callable, Optional, Protocol

import boto3
import google.auth
from boto3.s3.transfer import TransferConfig, create_transfer_manager
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.cloud import storage
from s3transfer.subscribers import BaseSubscriber

from artifact_uploader.uploader.errors import TransferError, UploadCancelledError, UploadError
from artifact_uploader.uploader.metadata import ObjectMetadata
from artifact_uploader.uploader.models import (
    DEFAULT_TRANSFER_TIMEOUT_SECONDS,
    ProxySettings,
    TransportCredentials,
)
from artifact_uploader.utils.logging import get_logger

logger = get_logger(__name__)

S3_MAX_ATTEMPTS = 8


class PendingTransfer(Protocol):
    def wait_for_completion(self) -> None: ...


class TransportHandle(Protocol):
    def upload(
        self, bucket: str, key: str, stream: BinaryIO, metadata: ObjectMetadata
    ) -> PendingTransfer: ...

    def close(self) -> None: ...


TransportFactory = Callable[
    [TransportCredentials, Optional[str], Optional[ProxySettings]], TransportHandle
]


class FuturePendingTransfer:
    """
    PendingTransfer backed by a future.

    Works with concurrent.futures futures and s3transfer TransferFutures,
    which both expose result() and cancel().
    """

    def __init__(self, future: Any, description: str) -> None:
        self._future = future
        self.description = description

    def wait_for_completion(self) -> None:
        """
        Block until the transfer finishes.

        Raises:
            TransferError: If the transfer failed
            UploadCancelledError: If the wait was interrupted or the transfer cancelled
        """
        try:
            self._future.result()
        except KeyboardInterrupt as e:
            self._future.cancel()
            raise UploadCancelledError(f"Upload to {self.description} interrupted") from e
        except concurrent.futures.CancelledError as e:
            raise UploadCancelledError(f"Upload to {self.description} cancelled") from e
        except UploadError:
            raise
        except Exception as e:
            raise TransferError(f"Upload to {self.description} failed: {e}") from e


class _ProvideSizeSubscriber(BaseSubscriber):
    """Tells s3transfer the payload size so it never seeks to measure it."""

    def __init__(self, size: int) -> None:
        self.size = size

    def on_queued(self, future: Any, **kwargs: Any) -> None:
        future.meta.provide_transfer_size(self.size)


class S3Transport:
    """TransportHandle for Amazon S3 and S3-compatible endpoints."""

    def __init__(self, client: Any, transfer_config: Optional[TransferConfig] = None) -> None:
        self.client = client
        self._manager = create_transfer_manager(client, transfer_config or TransferConfig())

    def upload(
        self, bucket: str, key: str, stream: BinaryIO, metadata: ObjectMetadata
    ) -> PendingTransfer:
        extra_args = metadata.to_s3_extra_args()
        subscribers = []
        if metadata.content_length is not None:
            subscribers.append(_ProvideSizeSubscriber(metadata.content_length))

        logger.info(
            f"Uploading to s3://{bucket}/{key} "
            f"({metadata.content_length} bytes, encoding={metadata.content_encoding})"
        )
        future = self._manager.upload(
            stream, bucket, key, extra_args=extra_args, subscribers=subscribers
        )
        return FuturePendingTransfer(future, f"s3://{bucket}/{key}")

    def close(self) -> None:
        self._manager.shutdown()


class GCSTransport:
    """
    TransportHandle for Google Cloud Storage.

    google-cloud-storage uploads synchronously, so each upload runs on a
    single worker thread and the caller blocks in wait_for_completion().
    """

    def __init__(
        self, client: storage.Client, timeout: int = DEFAULT_TRANSFER_TIMEOUT_SECONDS
    ) -> None:
        self.client = client
        self.timeout = timeout
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="gcs-upload"
        )

    def _prepare_blob(self, bucket: str, key: str, metadata: ObjectMetadata) -> storage.Blob:
        blob = self.client.bucket(bucket).blob(key)
        blob.content_type = metadata.content_type
        if metadata.cache_control is not None:
            blob.cache_control = metadata.cache_control
        if metadata.content_encoding is not None:
            blob.content_encoding = metadata.content_encoding
        if metadata.storage_class:
            blob.storage_class = metadata.storage_class
        if metadata.http_expires is not None:
            blob.custom_time = metadata.http_expires
        if metadata.user_metadata:
            blob.metadata = dict(metadata.user_metadata)
        if metadata.sse_algorithm:
            # Objects in GCS are always encrypted at rest with Google-managed keys
            logger.debug(f"Server-side encryption requested for gs://{bucket}/{key}")
        return blob

    def upload(
        self, bucket: str, key: str, stream: BinaryIO, metadata: ObjectMetadata
    ) -> PendingTransfer:
        blob = self._prepare_blob(bucket, key, metadata)
        logger.info(
            f"Uploading to gs://{bucket}/{key} "
            f"({metadata.content_length} bytes, timeout: {self.timeout}s)"
        )
        future = self._executor.submit(
            blob.upload_from_file,
            stream,
            size=metadata.content_length,
            content_type=metadata.content_type,
            timeout=self.timeout,
        )
        return FuturePendingTransfer(future, f"gs://{bucket}/{key}")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


def _create_s3_transport(
    credentials: TransportCredentials,
    region: Optional[str],
    proxy: Optional[ProxySettings],
) -> S3Transport:
    config = Config(
        region_name=region,
        proxies=proxy.as_proxies() if proxy else None,
        retries={"max_attempts": S3_MAX_ATTEMPTS, "mode": "standard"},
        read_timeout=credentials.timeout_seconds,
    )
    client_kwargs = {}
    if credentials.endpoint_url:
        client_kwargs["endpoint_url"] = credentials.endpoint_url
    if not credentials.use_role and credentials.access_key:
        client_kwargs["aws_access_key_id"] = credentials.access_key
        client_kwargs["aws_secret_access_key"] = credentials.secret_key

    try:
        client = boto3.client("s3", config=config, **client_kwargs)
    except (BotoCoreError, ClientError) as e:
        raise TransferError(f"Cannot create S3 client: {e}") from e
    return S3Transport(client)


def _create_gcs_transport(
    credentials: TransportCredentials,
    region: Optional[str],
    proxy: Optional[ProxySettings],
) -> GCSTransport:
    try:
        if proxy is None:
            client = storage.Client(project=credentials.project)
        else:
            google_credentials, default_project = google.auth.default()
            session = AuthorizedSession(google_credentials)
            session.proxies.update(proxy.as_proxies())
            client = storage.Client(
                project=credentials.project or default_project,
                credentials=google_credentials,
                _http=session,
            )
    except (GoogleAuthError, GoogleAPIError) as e:
        raise TransferError(f"Cannot create GCS client: {e}") from e

    if region:
        # Bucket location is fixed at bucket creation; uploads do not need it
        logger.debug(f"Ignoring region {region} for GCS transport")
    return GCSTransport(client, timeout=credentials.timeout_seconds)


def acquire_transport(
    credentials: TransportCredentials,
    region: Optional[str] = None,
    proxy: Optional[ProxySettings] = None,
) -> TransportHandle:
    """
    Create a fresh transport for one upload.

    Args:
        credentials: Provider and credentials to connect with
        region: Storage region (S3)
        proxy: Optional HTTP proxy

    Returns:
        TransportHandle; call close() when done with it

    Raises:
        TransferError: If the client cannot be constructed
    """
    logger.debug(
        f"Acquiring {credentials.provider} transport "
        f"(region={region}, proxy={proxy.host if proxy else None}, role={credentials.use_role})"
    )
    if credentials.provider == "gcs":
        return _create_gcs_transport(credentials, region, proxy)
    return _create_s3_transport(credentials, region, proxy)
