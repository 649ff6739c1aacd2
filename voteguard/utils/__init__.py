"""
Utility functions for the VoteGuard verification core.
"""

from .file_utils import (
    iter_images,
    safe_filename,
    unique_filename,
    ensure_dir,
    temporary_file,
    atomic_write_bytes,
)

from .image_utils import (
    load_image,
    decode_image_bytes,
    save_image,
    preprocess_for_id_ocr,
)

from .hashing import (
    sha256_file,
    perceptual_hash,
    average_hash,
    similarity_percent,
)

from .locks import KeyedLock

from .timing import (
    timed_operation,
    utc_now_iso,
)

__all__ = [
    # File utilities
    "iter_images",
    "safe_filename",
    "unique_filename",
    "ensure_dir",
    "temporary_file",
    "atomic_write_bytes",

    # Image utilities
    "load_image",
    "decode_image_bytes",
    "save_image",
    "preprocess_for_id_ocr",

    # Hashing
    "sha256_file",
    "perceptual_hash",
    "average_hash",
    "similarity_percent",

    # Concurrency
    "KeyedLock",

    # Timing utilities
    "timed_operation",
    "utc_now_iso",
]
