"""
MD5 fingerprints of uploaded payloads.

Files are read in bounded chunks, so arbitrarily large payloads hash in
constant memory. The digest is for integrity checks, not for security.
"""

import hashlib
from pathlib import Path
from typing import BinaryIO, Union

from artifact_uploader.uploader.errors import SourceReadError
from artifact_uploader.uploader.models import SourceFile

HASH_CHUNK_SIZE = 64 * 1024


def md5_of_stream(stream: BinaryIO, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """
    Hash a readable binary stream from its current position to EOF.

    Returns:
        Lower-case hex MD5 digest
    """
    digest = hashlib.md5(usedforsecurity=False)
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        digest.update(chunk)
    return digest.hexdigest()


def md5_of_file(path: Union[str, Path], chunk_size: int = HASH_CHUNK_SIZE) -> str:
    with open(path, "rb") as stream:
        return md5_of_stream(stream, chunk_size)


def md5_of_source(source: SourceFile, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Hash a source file by re-reading it from the start."""
    with source.read() as stream:
        try:
            return md5_of_stream(stream, chunk_size)
        except OSError as e:
            raise SourceReadError(f"Failed to re-read {source.name()} for hashing: {e}") from e
