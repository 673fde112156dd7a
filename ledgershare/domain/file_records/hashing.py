"""Streaming content hashing."""

import hashlib
from typing import BinaryIO

CHUNK_SIZE = 64 * 1024


def sha256_stream(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    """
    Hash a binary stream with SHA-256 without loading it into memory.

    Args:
        stream: Readable binary stream, read to exhaustion
        chunk_size: Bytes read per iteration

    Returns:
        Lower-case hex digest (64 characters)
    """
    digest = hashlib.sha256()
    for chunk in iter(lambda: stream.read(chunk_size), b""):
        digest.update(chunk)
    return digest.hexdigest()
