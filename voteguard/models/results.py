"""
Ephemeral result models produced by the verification layers.

None of these are persisted on their own; the orchestrator consumes them and
copies the relevant parts into a VerificationCase when one is created.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Any


@dataclass
class IdentifierMatch:
    """Outcome of scanning OCR text for one identifier kind."""
    found: bool = False
    number: Optional[str] = None
    formatted: Optional[str] = None
    confidence: int = 0

    @classmethod
    def not_found(cls) -> "IdentifierMatch":
        return cls()


@dataclass
class IdentifierExtractionResult:
    """Identifiers read from one ID document image."""
    success: bool
    aadhaar: IdentifierMatch = field(default_factory=IdentifierMatch)
    voter_id: IdentifierMatch = field(default_factory=IdentifierMatch)
    ocr_confidence: int = 0
    extracted_text: str = ""  # First 500 characters, for logs and audit
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "IdentifierExtractionResult":
        return cls(success=False, error=error)

    @property
    def any_found(self) -> bool:
        return self.aadhaar.found or self.voter_id.found

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class MatchMethod(str, Enum):
    """How two ID images were found to match."""
    EXACT = "EXACT"
    PERCEPTUAL = "PERCEPTUAL"


@dataclass
class ShaComparison:
    digest_a: Optional[str] = None
    digest_b: Optional[str] = None
    identical: bool = False


@dataclass
class PerceptualComparison:
    hash_a: str
    hash_b: str
    distance: int
    bit_length: int
    similarity: float


@dataclass
class ImageComparisonResult:
    """
    Result of the layer 2 comparison.

    `matched` is True iff the digests are identical (EXACT) or the perceptual
    similarity reached the threshold (PERCEPTUAL).
    """
    matched: bool
    match_method: Optional[MatchMethod] = None
    similarity: float = 0.0
    sha: ShaComparison = field(default_factory=ShaComparison)
    perceptual: Optional[PerceptualComparison] = None
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["match_method"] = self.match_method.value if self.match_method else None
        return data


@dataclass
class VerificationOutcome:
    """
    What the 3-layer orchestrator reports for one submission.

    Layer 3 is not a failure: it means the case waits for an admin.
    """
    verified: bool
    layer: int
    method: str
    message: str
    case_id: Optional[str] = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def pending_review(self) -> bool:
        return not self.verified and self.layer == 3

    def to_dict(self) -> dict[str, Any]:
        data = {
            "success": True,
            "verified": self.verified,
            "layer": self.layer,
            "method": self.method,
            "message": self.message,
            "details": self.details,
        }
        if self.case_id:
            data["case_id"] = self.case_id
            data["requires_admin_review"] = True
        return data
