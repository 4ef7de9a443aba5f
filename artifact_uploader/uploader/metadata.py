"""
Object metadata for uploaded artifacts.

Derives content type, length, timestamps and storage directives from the
source file and the task settings, then folds in caller-supplied headers.
A few header names are recognized and become first-class directives; all
other entries travel as opaque user metadata.

Example usage:
    >>> from artifact_uploader.uploader import LocalSourceFile, build_metadata
    >>> metadata = build_metadata(
    ...     LocalSourceFile("report.txt"),
    ...     {"Cache-Control": "max-age=60", "owner": "ci"},
    ... )
    >>> metadata.content_type, metadata.cache_control, metadata.user_metadata
    ('text/plain', 'max-age=60', {'owner': 'ci'})
"""

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from artifact_uploader.uploader.models import SourceFile
from artifact_uploader.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
AES_256_SERVER_SIDE_ENCRYPTION = "AES256"
GZIP_CONTENT_ENCODING = "gzip"


class MetadataKey(Enum):
    """Recognized user metadata keys; everything else is OTHER."""

    CACHE_CONTROL = "cache-control"
    EXPIRES = "expires"
    CONTENT_ENCODING = "content-encoding"
    OTHER = "other"

    @classmethod
    def classify(cls, key: str) -> "MetadataKey":
        lowered = key.lower()
        for member in cls:
            if member is not cls.OTHER and member.value == lowered:
                return member
        return cls.OTHER


@dataclass
class ObjectMetadata:
    """
    Metadata sent along with an uploaded object.

    Attributes:
        content_type: MIME type of the payload
        content_length: Payload size in bytes
        last_modified: Source modification time
        cache_control: Cache-Control directive
        content_encoding: Content-Encoding directive
        http_expires: Expires directive
        storage_class: Storage class directive
        sse_algorithm: Server-side encryption algorithm
        user_metadata: Opaque key/value entries
    """

    content_type: str = DEFAULT_CONTENT_TYPE
    content_length: Optional[int] = None
    last_modified: Optional[datetime] = None
    cache_control: Optional[str] = None
    content_encoding: Optional[str] = None
    http_expires: Optional[datetime] = None
    storage_class: Optional[str] = None
    sse_algorithm: Optional[str] = None
    user_metadata: Dict[str, str] = field(default_factory=dict)

    def add_user_metadata(self, key: str, value: str) -> None:
        self.user_metadata[key] = value

    def to_s3_extra_args(self) -> Dict[str, Any]:
        """
        Render as boto3 `ExtraArgs`.

        Content length is not an upload argument in boto3; the transfer is
        given the size separately.
        """
        extra_args: Dict[str, Any] = {"ContentType": self.content_type}
        if self.cache_control is not None:
            extra_args["CacheControl"] = self.cache_control
        if self.content_encoding is not None:
            extra_args["ContentEncoding"] = self.content_encoding
        if self.http_expires is not None:
            extra_args["Expires"] = self.http_expires
        if self.storage_class:
            extra_args["StorageClass"] = self.storage_class
        if self.sse_algorithm:
            extra_args["ServerSideEncryption"] = self.sse_algorithm
        if self.user_metadata:
            extra_args["Metadata"] = dict(self.user_metadata)
        return extra_args


def guess_content_type(file_name: str) -> str:
    content_type, _ = mimetypes.guess_type(file_name, strict=False)
    return content_type or DEFAULT_CONTENT_TYPE


def parse_http_date(value: str) -> Optional[datetime]:
    """
    Parse an HTTP date such as `Thu, 01 Jan 2026 00:00:00 GMT`.

    Returns:
        Timezone-aware datetime, or None when the value is not a date
    """
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_metadata(
    source: SourceFile,
    user_metadata: Mapping[str, str],
    storage_class: Optional[str] = None,
    use_server_side_encryption: bool = False,
) -> ObjectMetadata:
    """
    Build the object metadata for one upload.

    Reads the source's attributes, so call it before consuming the stream.

    Args:
        source: File being uploaded
        user_metadata: Caller-supplied headers; names are case-insensitive
        storage_class: Storage class hint, ignored when empty
        use_server_side_encryption: Request AES-256 encryption at rest

    Returns:
        ObjectMetadata for the uncompressed source
    """
    metadata = ObjectMetadata(
        content_type=guess_content_type(source.name()),
        content_length=source.length(),
        last_modified=source.last_modified(),
    )
    if storage_class:
        metadata.storage_class = storage_class
    if use_server_side_encryption:
        metadata.sse_algorithm = AES_256_SERVER_SIDE_ENCRYPTION

    for key, value in user_metadata.items():
        kind = MetadataKey.classify(key)
        if kind is MetadataKey.CACHE_CONTROL:
            metadata.cache_control = value
        elif kind is MetadataKey.EXPIRES:
            expires = parse_http_date(value)
            if expires is None:
                logger.warning(
                    f"Unparseable {key} value {value!r}; "
                    "storing it as user metadata"
                )
                metadata.add_user_metadata(key, value)
            else:
                metadata.http_expires = expires
        elif kind is MetadataKey.CONTENT_ENCODING:
            metadata.content_encoding = value
        else:
            metadata.add_user_metadata(key, value)

    logger.debug(
        f"Built metadata for {source.name()}: type={metadata.content_type}, "
        f"length={metadata.content_length}, "
        f"user keys={sorted(metadata.user_metadata)}"
    )
    return metadata
