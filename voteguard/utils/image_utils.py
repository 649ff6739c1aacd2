"""
Image processing utility functions.

Common operations for ID document images and voting-session frames.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np


def load_image(path: Path, flags: int = cv2.IMREAD_COLOR) -> Optional[np.ndarray]:
    """
    Load image from file with proper Unicode path handling.

    Args:
        path: Path to image file
        flags: OpenCV imread flags

    Returns:
        Loaded image as numpy array, or None if the file is missing or undecodable
    """
    path = Path(path)
    if not path.exists():
        return None

    # cv2.imdecode handles Unicode paths that cv2.imread cannot open on Windows
    data = np.fromfile(str(path), dtype=np.uint8)
    if data.size == 0:
        return None
    return cv2.imdecode(data, flags)


def decode_image_bytes(data: bytes, flags: int = cv2.IMREAD_COLOR) -> Optional[np.ndarray]:
    """Decode an in-memory encoded image (JPEG/PNG/...). None if undecodable."""
    if not data:
        return None
    buffer = np.frombuffer(data, dtype=np.uint8)
    return cv2.imdecode(buffer, flags)


def save_image(
    image: np.ndarray,
    path: Path,
    quality: int = 95,
    compression: int = 3
) -> bool:
    """
    Save image to file with proper Unicode path handling.

    Returns:
        True if successful, False otherwise
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    ext = path.suffix.lower()
    if ext == ".png":
        params = [cv2.IMWRITE_PNG_COMPRESSION, compression]
    elif ext in (".jpg", ".jpeg"):
        params = [cv2.IMWRITE_JPEG_QUALITY, quality]
    else:
        params = []

    success, data = cv2.imencode(ext, image, params)
    if not success:
        return False
    data.tofile(str(path))
    return True


def to_grayscale(image: np.ndarray) -> np.ndarray:
    if len(image.shape) == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image.copy()


def resize_to_max_width(image: np.ndarray, max_width: int) -> np.ndarray:
    """Shrink to `max_width` keeping aspect ratio; never enlarges."""
    h, w = image.shape[:2]
    if max_width <= 0 or w <= max_width:
        return image
    scale = max_width / float(w)
    return cv2.resize(image, (max_width, max(1, int(round(h * scale)))), interpolation=cv2.INTER_AREA)


def sharpen(gray: np.ndarray, amount: float = 1.0) -> np.ndarray:
    """Unsharp mask."""
    blurred = cv2.GaussianBlur(gray, (0, 0), sigmaX=1.0)
    return cv2.addWeighted(gray, 1.0 + amount, blurred, -amount, 0)


def preprocess_for_id_ocr(image: np.ndarray, max_width: int = 2000) -> np.ndarray:
    """
    Preprocess an ID document photo for OCR.

    Pipeline:
    1. Bound width (no enlargement)
    2. Convert to grayscale
    3. Normalize contrast
    4. Sharpen

    Returns:
        Preprocessed grayscale image
    """
    resized = resize_to_max_width(image, max_width)
    gray = to_grayscale(resized)
    gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX)
    return sharpen(gray)
