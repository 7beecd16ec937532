"""
Content hashing for uploaded streams
"""

import base64
import hashlib
from typing import BinaryIO

CHUNK_SIZE = 1024 * 1024


def compute_hash(
    stream: BinaryIO,
    algorithm: str = "sha256",
    chunk_size: int = CHUNK_SIZE,
) -> str:
    """
    Compute the base64 encoded digest of the full contents of `stream`.

    The stream is read from its start and rewound afterwards so the caller
    can read the same bytes again.

    Args:
        stream: Seekable binary stream
        algorithm: Name of a ``hashlib`` algorithm
        chunk_size: Number of bytes read per iteration

    Returns:
        Base64 encoded digest

    Raises:
        ValueError: If the stream cannot be rewound
    """
    if not stream.seekable():
        raise ValueError("Stream must be seekable to be hashed and stored")

    digest = hashlib.new(algorithm)
    stream.seek(0)
    while True:
        data = stream.read(chunk_size)
        if not data:
            break
        digest.update(data)
    stream.seek(0)

    return base64.b64encode(digest.digest()).decode("ascii")
