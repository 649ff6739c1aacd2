"""
Image similarity comparison between two ID document photos.

Two steps:
1. SHA-256 of the full file content; identical digests are an EXACT match.
2. Perceptual hash (DCT pHash); similarity is the share of equal bits and
   reaching the threshold is a PERCEPTUAL match.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .base import BaseComponent
from ..config import Config
from ..models import (
    ImageComparisonResult,
    MatchMethod,
    ShaComparison,
    PerceptualComparison,
)
from ..utils.hashing import sha256_file, perceptual_hash, hash_bit_length, similarity_percent


class ImageComparator(BaseComponent):
    """Compares two document images; `compare()` never raises."""

    name = "voteguard.image_comparison"

    def __init__(self, config: Optional[Config] = None):
        super().__init__(config)
        self.comparison_config = self.config.comparison

    def sha_compare(self, path_a: Path, path_b: Path) -> ShaComparison:
        chunk = self.comparison_config.chunk_size
        digest_a = sha256_file(path_a, chunk)
        digest_b = sha256_file(path_b, chunk)
        return ShaComparison(digest_a=digest_a, digest_b=digest_b, identical=digest_a == digest_b)

    def perceptual_compare(self, path_a: Path, path_b: Path) -> PerceptualComparison:
        size = self.comparison_config.hash_size
        hash_a = perceptual_hash(path_a, hash_size=size)
        hash_b = perceptual_hash(path_b, hash_size=size)
        return PerceptualComparison(
            hash_a=str(hash_a),
            hash_b=str(hash_b),
            distance=int(hash_a - hash_b),
            bit_length=hash_bit_length(hash_a),
            similarity=round(similarity_percent(hash_a, hash_b), 2),
        )

    def compare(
        self,
        path_a: Path,
        path_b: Path,
        perceptual_threshold: Optional[float] = None,
    ) -> ImageComparisonResult:
        """
        Compare two images.

        Args:
            path_a: First image (registered document)
            path_b: Second image (resubmitted document)
            perceptual_threshold: Minimum similarity percent (default from config)

        Returns:
            ImageComparisonResult; matched=False with an error if a file is
            missing or cannot be decoded
        """
        threshold = (
            self.comparison_config.perceptual_threshold
            if perceptual_threshold is None else perceptual_threshold
        )
        path_a, path_b = Path(path_a), Path(path_b)

        try:
            sha = self.sha_compare(path_a, path_b)
        except OSError as e:
            self.log_warning("SHA-256 comparison failed", error=e)
            return ImageComparisonResult(matched=False, error=f"SHA-256 comparison failed: {e}")

        if sha.identical:
            self.log_info("Images are identical (SHA-256 match)")
            return ImageComparisonResult(
                matched=True, match_method=MatchMethod.EXACT, similarity=100.0, sha=sha
            )

        try:
            perceptual = self.perceptual_compare(path_a, path_b)
        except Exception as e:
            # PIL raises UnidentifiedImageError / OSError / ValueError for bad files
            self.log_warning("Perceptual hash comparison failed", error=e)
            return ImageComparisonResult(
                matched=False, sha=sha, error=f"Perceptual hash comparison failed: {e}"
            )

        matched = perceptual.similarity >= threshold
        self.log_info(
            "Images are similar" if matched else "Images do not match",
            similarity=f"{perceptual.similarity:.1f}%",
            threshold=threshold,
        )
        return ImageComparisonResult(
            matched=matched,
            match_method=MatchMethod.PERCEPTUAL if matched else None,
            similarity=perceptual.similarity,
            sha=sha,
            perceptual=perceptual,
        )
