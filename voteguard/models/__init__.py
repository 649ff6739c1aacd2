"""
Data models for the VoteGuard verification core.

These models represent the core data structures and are designed
to be easily serializable to JSON.
"""

from .voter import Voter, VerificationStatus, StoredDocument
from .verification_case import (
    VerificationCase,
    CaseStatus,
    AdminReview,
    OCRAudit,
    ExtractedNumbers,
    ImageComparisonAudit,
)
from .invalid_vote import InvalidVote, ViolationType
from .results import (
    IdentifierMatch,
    IdentifierExtractionResult,
    MatchMethod,
    ShaComparison,
    PerceptualComparison,
    ImageComparisonResult,
    VerificationOutcome,
)
from .liveness import (
    Observation,
    PatternAnalysis,
    MultiPersonWarning,
    WarningTrackerEntry,
    ObservationResult,
    PersonDetectionResult,
    VoiceDetectionResult,
)

__all__ = [
    # Voter models
    "Voter",
    "VerificationStatus",
    "StoredDocument",

    # Case models
    "VerificationCase",
    "CaseStatus",
    "AdminReview",
    "OCRAudit",
    "ExtractedNumbers",
    "ImageComparisonAudit",

    # Invalid votes
    "InvalidVote",
    "ViolationType",

    # Layer results
    "IdentifierMatch",
    "IdentifierExtractionResult",
    "MatchMethod",
    "ShaComparison",
    "PerceptualComparison",
    "ImageComparisonResult",
    "VerificationOutcome",

    # Liveness
    "Observation",
    "PatternAnalysis",
    "MultiPersonWarning",
    "WarningTrackerEntry",
    "ObservationResult",
    "PersonDetectionResult",
    "VoiceDetectionResult",
]
