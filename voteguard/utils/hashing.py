"""
Content and perceptual hashing helpers.
"""

from __future__ import annotations

import hashlib
import io
from pathlib import Path
from typing import Union

import imagehash
from PIL import Image

ImageSource = Union[Path, str, bytes]


def sha256_file(path: Path, chunk_size: int = 64 * 1024) -> str:
    """SHA-256 hex digest of a file, streamed in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _open(source: ImageSource) -> Image.Image:
    if isinstance(source, bytes):
        return Image.open(io.BytesIO(source))
    return Image.open(source)


def perceptual_hash(source: ImageSource, hash_size: int = 8) -> imagehash.ImageHash:
    """DCT perceptual hash (hash_size**2 bits). Raises on undecodable input."""
    with _open(source) as img:
        return imagehash.phash(img, hash_size=hash_size)


def average_hash(source: ImageSource, hash_size: int = 8) -> imagehash.ImageHash:
    """Grayscale average hash (hash_size**2 bits). Raises on undecodable input."""
    with _open(source) as img:
        return imagehash.average_hash(img, hash_size=hash_size)


def hash_bit_length(value: imagehash.ImageHash) -> int:
    return int(value.hash.size)


def similarity_percent(a: imagehash.ImageHash, b: imagehash.ImageHash) -> float:
    """(bits - hamming distance) / bits * 100."""
    bits = hash_bit_length(a)
    distance = a - b
    return (bits - distance) / bits * 100.0
