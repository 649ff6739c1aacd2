"""
Face counting in voting-session frames using OpenCV's Haar cascade.
"""

from __future__ import annotations

import threading
from typing import Optional

import cv2
import numpy as np

from ..config import Config
from ..models import PersonDetectionResult
from ..utils.image_utils import decode_image_bytes, to_grayscale
from ..verification.base import BaseComponent

CASCADE_FILE = "haarcascade_frontalface_default.xml"


class PersonDetector(BaseComponent):
    """Counts frontal faces in a frame. Detection problems mean "no data"."""

    name = "voteguard.person_detection"

    def __init__(
        self,
        config: Optional[Config] = None,
        scale_factor: float = 1.1,
        min_neighbors: int = 5,
        min_size: tuple[int, int] = (50, 50),
    ):
        super().__init__(config)
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size
        self._cascade: Optional[cv2.CascadeClassifier] = None
        # CascadeClassifier is not safe to share across threads
        self._lock = threading.Lock()

    @property
    def cascade(self) -> cv2.CascadeClassifier:
        if self._cascade is None:
            cascade = cv2.CascadeClassifier(cv2.data.haarcascades + CASCADE_FILE)
            if cascade.empty():
                raise RuntimeError(f"Could not load face cascade {CASCADE_FILE}")
            self._cascade = cascade
            self.log_debug("Face detection cascade loaded")
        return self._cascade

    def count_in_image(self, image: np.ndarray) -> PersonDetectionResult:
        try:
            gray = to_grayscale(image)
            with self._lock:
                faces = self.cascade.detectMultiScale(
                    gray,
                    scaleFactor=self.scale_factor,
                    minNeighbors=self.min_neighbors,
                    minSize=self.min_size,
                )
        except Exception as e:
            self.log_warning("Face detection failed", error=e)
            return PersonDetectionResult(success=False, error=str(e) or type(e).__name__)
        return PersonDetectionResult(success=True, person_count=len(faces))

    def count_people(self, data: bytes) -> PersonDetectionResult:
        """Count faces in an encoded frame (JPEG/PNG bytes)."""
        image = decode_image_bytes(data)
        if image is None:
            return PersonDetectionResult(success=False, error="Could not decode frame")
        return self.count_in_image(image)
