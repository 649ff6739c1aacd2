"""
Voting-session liveness models.

Observations stream in from the session monitor or from client reports;
the detector and warning tracker turn them into results.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Any

from .invalid_vote import ViolationType


@dataclass(frozen=True)
class Observation:
    """One person/face (or voice) count at a point in time (epoch seconds)."""
    timestamp: float
    person_count: int
    source: str = "video"


@dataclass
class PatternAnalysis:
    """Signals computed over the observation window."""
    rapid_changes: int = 0
    rapid_change_flag: bool = False
    disappearances: int = 0
    disappearance_flag: bool = False
    alternating_flag: bool = False
    suspicious_score: int = 0
    window_size: int = 0

    def flags(self) -> List[str]:
        names = []
        if self.rapid_change_flag:
            names.append("rapid_count_changes")
        if self.disappearance_flag:
            names.append("periodic_disappearance")
        if self.alternating_flag:
            names.append("alternating_pattern")
        return names


@dataclass
class MultiPersonWarning:
    """Warning issued to the voter for a multi-person (or multi-voice) report."""
    type: str
    severity: str
    message: str
    person_count: int
    timestamp: float
    violation_type: ViolationType = ViolationType.MULTIPLE_FACES

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["violation_type"] = self.violation_type.value
        return data


@dataclass
class WarningTrackerEntry:
    """Per-voter warning state for the current voting session."""
    count: int = 0
    last_warning_at: Optional[float] = None
    candidate_id: Optional[str] = None
    violation_type: ViolationType = ViolationType.MULTIPLE_FACES
    warnings: List[MultiPersonWarning] = field(default_factory=list)
    invalidated: bool = False


@dataclass
class ObservationResult:
    """Answer to one observation report."""
    success: bool = True
    invalidated: bool = False
    already_invalidated: bool = False
    fraud_detected: bool = False
    suspicious_patterns: float = 0.0
    warnings_count: int = 0
    warning: Optional[MultiPersonWarning] = None
    analysis: Optional[PatternAnalysis] = None
    reason: Optional[str] = None
    message: str = ""
    invalid_vote_id: Optional[str] = None
    evidence: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["warning"] = self.warning.to_dict() if self.warning else None
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class PersonDetectionResult:
    success: bool
    person_count: int = 0
    error: Optional[str] = None


@dataclass
class VoiceDetectionResult:
    success: bool
    multiple_voices_detected: bool = False
    confidence: float = 0.0
    energy_variance: float = 0.0
    normalized_transitions: float = 0.0
    error: Optional[str] = None
