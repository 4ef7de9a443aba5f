"""
Gzip spill files.

Object storage wants the content length before the transfer starts, and the
compressed length is only known once every compressed byte exists. The
payload is therefore compressed into a temporary "spill" file first.

Example usage:
    >>> with open("app.tar", "rb") as source, gzip_spill(source) as spill:
    ...     with spill.open() as payload:
    ...         send(payload, length=spill.length)
    >>> spill.path.exists()
    False
"""

import gzip
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Union

from artifact_uploader.uploader.errors import CompressionError, SourceReadError
from artifact_uploader.utils.logging import get_logger
from artifact_uploader.utils.metrics import get_metrics

logger = get_logger(__name__)

SPILL_PREFIX = "artifact-upload-"
SPILL_SUFFIX = ".gz"
COPY_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class SpillFile:
    """
    A gzip-compressed copy of the payload on local disk.

    Attributes:
        path: Location of the temporary file
        length: Compressed size in bytes
    """

    path: Path
    length: int

    def open(self) -> BinaryIO:
        """Fresh read handle positioned at the first byte."""
        try:
            return open(self.path, "rb")
        except OSError as e:
            raise CompressionError(f"Cannot reopen spill file {self.path}: {e}") from e


def _remove(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"Failed to delete spill file {path}: {e}")
        get_metrics().record_cleanup_failure()
        return False
    return True


def _read_source(stream: BinaryIO) -> bytes:
    try:
        return stream.read(COPY_CHUNK_SIZE)
    except OSError as e:
        raise SourceReadError(f"Failed to read source while compressing: {e}") from e


def compress_to_spill(
    stream: BinaryIO,
    directory: Optional[Union[str, Path]] = None,
    compresslevel: int = 9,
) -> SpillFile:
    """
    Gzip a readable stream into a new, uniquely named temporary file.

    The gzip writer is closed before the file, so the trailer is complete
    when this returns. The caller owns the returned file and must remove it
    with discard_spill().

    Args:
        stream: Source bytes, read to EOF
        directory: Where to create the spill file (system temp dir if None)
        compresslevel: Gzip compression level

    Returns:
        SpillFile describing the compressed copy

    Raises:
        SourceReadError: If reading the source fails
        CompressionError: If writing the spill fails
    """
    try:
        fd, name = tempfile.mkstemp(prefix=SPILL_PREFIX, suffix=SPILL_SUFFIX, dir=directory)
    except OSError as e:
        raise CompressionError(f"Cannot create spill file in {directory or tempfile.gettempdir()}: {e}") from e

    path = Path(name)
    try:
        with os.fdopen(fd, "wb") as raw:
            # No file name or timestamp in the header: same input, same bytes
            with gzip.GzipFile(
                filename="", mode="wb", compresslevel=compresslevel, fileobj=raw, mtime=0
            ) as gz:
                for chunk in iter(lambda: _read_source(stream), b""):
                    gz.write(chunk)
        length = path.stat().st_size
    except OSError as e:
        _remove(path)
        raise CompressionError(f"Failed to compress payload into {path}: {e}") from e
    except BaseException:
        _remove(path)
        raise

    logger.debug(f"Compressed payload into {path} ({length} bytes)")
    return SpillFile(path=path, length=length)


def discard_spill(spill: SpillFile) -> bool:
    """
    Delete a spill file. Never raises.

    Returns:
        True if the file is gone afterwards
    """
    removed = _remove(spill.path)
    if removed:
        logger.debug(f"Deleted spill file {spill.path}")
    return removed


@contextmanager
def gzip_spill(
    stream: BinaryIO,
    directory: Optional[Union[str, Path]] = None,
    compresslevel: int = 9,
) -> Iterator[SpillFile]:
    """Context manager around compress_to_spill() that always discards the file."""
    spill = compress_to_spill(stream, directory=directory, compresslevel=compresslevel)
    try:
        yield spill
    finally:
        discard_spill(spill)
