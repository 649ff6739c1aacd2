"""
Voter data models.

Only the fields the verification core reads or mutates are modelled; the
rest of the voter profile lives with the surrounding application.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Any


class VerificationStatus(str, Enum):
    """Identity verification state of a voter."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass
class StoredDocument:
    """An uploaded ID document as kept by document storage."""
    filename: str
    path: str
    uploaded_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["StoredDocument"]:
        if not data:
            return None
        return cls(
            filename=data.get("filename", ""),
            path=data.get("path", ""),
            uploaded_at=data.get("uploaded_at", ""),
        )


@dataclass
class Voter:
    """
    Voter record as seen by the verification and liveness components.

    `vote_status` True means the vote is counted; it is forced to True when a
    vote is invalidated so the voter cannot try again.
    """

    voter_id: str
    name: str = ""
    verification_status: VerificationStatus = VerificationStatus.PENDING
    pending_id_case_id: Optional[str] = None
    vote_status: bool = False
    is_blocked: bool = False

    # Registration-time ID document (step 1)
    id_document: Optional[StoredDocument] = None

    # KYC audit trail
    kyc_approved_at: Optional[str] = None
    kyc_approved_by: Optional[str] = None
    kyc_rejected_at: Optional[str] = None
    kyc_rejection_reason: Optional[str] = None

    def __post_init__(self):
        self.voter_id = str(self.voter_id).strip()
        if not isinstance(self.verification_status, VerificationStatus):
            self.verification_status = VerificationStatus(self.verification_status)

    @property
    def verified(self) -> bool:
        return self.verification_status is VerificationStatus.VERIFIED

    @property
    def has_open_case(self) -> bool:
        return bool(self.pending_id_case_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["verification_status"] = self.verification_status.value
        data["id_document"] = self.id_document.to_dict() if self.id_document else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Voter":
        """Create Voter from dictionary."""
        values = {
            k: v for k, v in data.items()
            if k in cls.__dataclass_fields__ and k != "id_document"
        }
        values["id_document"] = StoredDocument.from_dict(data.get("id_document"))
        return cls(**values)
