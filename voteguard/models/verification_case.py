"""
Verification case models.

A case is parked for admin review when both automatic layers fail. It is
created pending and receives exactly one admin decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional, Any

from .voter import StoredDocument


class CaseStatus(str, Enum):
    """Review state of a verification case."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ExtractedNumbers:
    """Identifier numbers read from one document (None when not found)."""
    aadhaar: Optional[str] = None
    voter_id: Optional[str] = None


@dataclass
class OCRAudit:
    """Both OCR attempts, kept for the reviewing admin even when partial."""
    step1: ExtractedNumbers = field(default_factory=ExtractedNumbers)
    step2: ExtractedNumbers = field(default_factory=ExtractedNumbers)
    matched: bool = False
    aadhaar_match: bool = False
    voter_id_match: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "OCRAudit":
        data = data or {}
        return cls(
            step1=ExtractedNumbers(**(data.get("step1") or {})),
            step2=ExtractedNumbers(**(data.get("step2") or {})),
            matched=bool(data.get("matched", False)),
            aadhaar_match=bool(data.get("aadhaar_match", False)),
            voter_id_match=bool(data.get("voter_id_match", False)),
        )


@dataclass
class ImageComparisonAudit:
    """Summary of the layer 2 comparison stored on the case."""
    sha_match: bool = False
    similarity: float = 0.0
    passed: bool = False
    method: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ImageComparisonAudit":
        data = data or {}
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class AdminReview:
    """The single admin decision on a case."""
    reviewed_by: str
    reviewed_at: str
    decision: CaseStatus
    reason: str

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["decision"] = self.decision.value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["AdminReview"]:
        if not data:
            return None
        return cls(
            reviewed_by=data["reviewed_by"],
            reviewed_at=data["reviewed_at"],
            decision=CaseStatus(data["decision"]),
            reason=data.get("reason", ""),
        )


@dataclass
class VerificationCase:
    """Manual review case for a voter whose ID could not be auto-verified."""

    case_id: str
    voter_id: str
    original_id_document: StoredDocument
    step2_id_document: StoredDocument
    status: CaseStatus = CaseStatus.PENDING
    ocr_results: OCRAudit = field(default_factory=OCRAudit)
    image_comparison: ImageComparisonAudit = field(default_factory=ImageComparisonAudit)
    admin_review: Optional[AdminReview] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status is CaseStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "case_id": self.case_id,
            "voter_id": self.voter_id,
            "status": self.status.value,
            "original_id_document": self.original_id_document.to_dict(),
            "step2_id_document": self.step2_id_document.to_dict(),
            "ocr_results": asdict(self.ocr_results),
            "image_comparison": asdict(self.image_comparison),
            "admin_review": self.admin_review.to_dict() if self.admin_review else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VerificationCase":
        """Create VerificationCase from dictionary."""
        return cls(
            case_id=data["case_id"],
            voter_id=data["voter_id"],
            status=CaseStatus(data.get("status", CaseStatus.PENDING.value)),
            original_id_document=StoredDocument.from_dict(data["original_id_document"]),
            step2_id_document=StoredDocument.from_dict(data["step2_id_document"]),
            ocr_results=OCRAudit.from_dict(data.get("ocr_results")),
            image_comparison=ImageComparisonAudit.from_dict(data.get("image_comparison")),
            admin_review=AdminReview.from_dict(data.get("admin_review")),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )
