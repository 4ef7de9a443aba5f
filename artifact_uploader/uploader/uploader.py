"""
Single-file upload task.

Sends one source file to object storage, optionally gzip-compressed, and
returns a FingerprintRecord holding the MD5 of the bytes that were sent.

Example usage:
    >>> from artifact_uploader.uploader import (
    ...     Destination, LocalSourceFile, UploadTaskConfig, upload_file,
    ... )
    >>> task = UploadTaskConfig(
    ...     produced=True,
    ...     dest_filename="report.txt",
    ...     bucket_name="build-artifacts",
    ...     destination=Destination("build-artifacts", "jobs/42/report.txt"),
    ...     user_metadata={"Cache-Control": "no-cache"},
    ...     gzip_files=True,
    ... )
    >>> record = upload_file(LocalSourceFile("out/report.txt"), task)
    >>> record.file_name, record.bucket
    ('report.txt', 'build-artifacts')
"""

import time
from contextlib import ExitStack
from pathlib import Path
from typing import Optional, Union

from artifact_uploader.uploader.compression import gzip_spill
from artifact_uploader.uploader.errors import CompressionError, UploadCancelledError
from artifact_uploader.uploader.hashing import md5_of_file, md5_of_source
from artifact_uploader.uploader.metadata import GZIP_CONTENT_ENCODING, build_metadata
from artifact_uploader.uploader.models import FingerprintRecord, SourceFile, UploadTaskConfig
from artifact_uploader.uploader.transport import TransportFactory, acquire_transport
from artifact_uploader.utils.logging import get_logger, log_function_call
from artifact_uploader.utils.metrics import get_metrics

logger = get_logger(__name__)


@log_function_call
def upload_file(
    source: SourceFile,
    task: UploadTaskConfig,
    transport_factory: TransportFactory = acquire_transport,
    spill_dir: Optional[Union[str, Path]] = None,
) -> FingerprintRecord:
    """
    Upload one file and fingerprint what was sent.

    Stages run in order: acquire transport, build metadata, open the source,
    optionally compress into a spill file, transfer, wait, hash the bytes
    that were sent. The source stream, the spill file and the transport are
    released on every exit path.

    Args:
        source: File to upload; read, never modified
        task: Destination, metadata and connection settings
        transport_factory: Builds the storage transport for this attempt
        spill_dir: Directory for the gzip spill file (system temp dir if None)

    Returns:
        FingerprintRecord for the uploaded payload

    Raises:
        SourceReadError: If the source cannot be read
        CompressionError: If the gzip spill file cannot be written or read
        TransferError: If the transport cannot be created or the transfer fails
        UploadCancelledError: If interrupted while waiting for the transfer
    """
    metrics = get_metrics()
    destination = task.destination
    start_time = time.time()

    try:
        with metrics.track_upload(), ExitStack() as stack:
            transport = transport_factory(task.credentials, task.region, task.proxy)
            stack.callback(transport.close)

            metadata = build_metadata(
                source,
                task.user_metadata,
                storage_class=task.storage_class,
                use_server_side_encryption=task.use_server_side_encryption,
            )

            source_stream = stack.enter_context(source.read())

            spill = None
            if task.gzip_files:
                original_length = metadata.content_length
                spill = stack.enter_context(gzip_spill(source_stream, directory=spill_dir))
                metadata.content_encoding = GZIP_CONTENT_ENCODING
                metadata.content_length = spill.length
                payload = stack.enter_context(spill.open())
                logger.info(
                    f"Compressed {source.name()}: {original_length} -> {spill.length} bytes"
                )
            else:
                payload = source_stream

            pending = transport.upload(
                destination.bucket_name, destination.object_name, payload, metadata
            )
            pending.wait_for_completion()

            if spill is not None:
                try:
                    md5 = md5_of_file(spill.path)
                except OSError as e:
                    raise CompressionError(f"Cannot hash spill file {spill.path}: {e}") from e
            else:
                md5 = md5_of_source(source)
            bytes_sent = metadata.content_length or 0

    except UploadCancelledError as e:
        metrics.record_upload_failure(type(e).__name__, task.gzip_files, cancelled=True)
        logger.warning(f"Upload of {source.name()} to {destination} cancelled")
        raise
    except Exception as e:
        metrics.record_upload_failure(type(e).__name__, task.gzip_files)
        logger.error(f"Upload of {source.name()} to {destination} failed: {e}", exc_info=True)
        raise

    duration = time.time() - start_time
    metrics.record_upload_success(bytes_sent=bytes_sent, compressed=task.gzip_files)
    logger.info(
        f"Upload successful: {destination} "
        f"({bytes_sent} bytes in {duration:.2f}s, md5={md5})"
    )

    return FingerprintRecord(
        produced=task.produced,
        bucket=task.bucket_name,
        file_name=task.dest_filename,
        md5=md5,
    )
