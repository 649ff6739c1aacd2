"""
Invalid vote records.

Append-only: a record is written once per escalation and never updated.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional, Any


class ViolationType(str, Enum):
    """Reason a vote was invalidated."""
    MULTIPLE_FACES = "multiple_faces"
    MULTIPLE_VOICES = "multiple_voices"
    FRAUD_DETECTION = "fraud_detection"
    OTHER = "other"


@dataclass(frozen=True)
class InvalidVote:
    invalid_vote_id: str
    voter_id: str
    candidate_id: str
    violation_type: ViolationType
    violation_details: str
    timestamp: str
    evidence_data: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["violation_type"] = self.violation_type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InvalidVote":
        return cls(
            invalid_vote_id=data["invalid_vote_id"],
            voter_id=data["voter_id"],
            candidate_id=data.get("candidate_id", "unknown"),
            violation_type=ViolationType(data.get("violation_type", ViolationType.OTHER.value)),
            violation_details=data.get("violation_details", ""),
            timestamp=data.get("timestamp", ""),
            evidence_data=data.get("evidence_data"),
        )
