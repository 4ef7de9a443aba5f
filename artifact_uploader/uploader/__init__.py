"""
Object storage upload task.

Uploads a single file to an S3 or GCS bucket, optionally gzip-compressed,
with derived metadata, and returns an MD5 fingerprint of the bytes sent.
"""

from .errors import (
    CompressionError,
    SourceReadError,
    TransferError,
    UploadCancelledError,
    UploadError,
)
from .hashing import md5_of_file, md5_of_source, md5_of_stream
from .metadata import MetadataKey, ObjectMetadata, build_metadata
from .models import (
    Destination,
    FingerprintRecord,
    LocalSourceFile,
    ProxySettings,
    SourceFile,
    TransportCredentials,
    UploadTaskConfig,
)
from .transport import acquire_transport
from .uploader import upload_file

__all__ = [
    "CompressionError",
    "Destination",
    "FingerprintRecord",
    "LocalSourceFile",
    "MetadataKey",
    "ObjectMetadata",
    "ProxySettings",
    "SourceFile",
    "SourceReadError",
    "TransferError",
    "TransportCredentials",
    "UploadCancelledError",
    "UploadError",
    "UploadTaskConfig",
    "acquire_transport",
    "build_metadata",
    "md5_of_file",
    "md5_of_source",
    "md5_of_stream",
    "upload_file",
]
