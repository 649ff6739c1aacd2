"""
Voting session state.

Each active voting session owns its pattern detector; warnings live in the
service-wide tracker so they outlast a reconnect, and the session holds a
reference to its voter's entry.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Any

from ..config import LivenessConfig
from ..models import WarningTrackerEntry
from .pattern_detector import PatternDetector


def default_recording_id(voter_id: str, started_at: float) -> str:
    return f"liveness_{voter_id}_{int(started_at * 1000)}"


@dataclass
class VotingSession:
    voter_id: str
    candidate_id: Optional[str] = None
    recording_id: Optional[str] = None
    started_at: float = field(default_factory=time.time)
    detector: PatternDetector = field(default_factory=PatternDetector)
    warnings: WarningTrackerEntry = field(default_factory=WarningTrackerEntry)
    observations: int = 0
    ended_at: Optional[float] = None

    def __post_init__(self):
        if not self.recording_id:
            self.recording_id = default_recording_id(self.voter_id, self.started_at)

    @classmethod
    def start(
        cls,
        voter_id: str,
        config: LivenessConfig,
        warnings: WarningTrackerEntry,
        candidate_id: Optional[str] = None,
        recording_id: Optional[str] = None,
    ) -> "VotingSession":
        return cls(
            voter_id=voter_id,
            candidate_id=candidate_id,
            recording_id=recording_id,
            detector=PatternDetector(config),
            warnings=warnings,
        )

    @property
    def active(self) -> bool:
        return self.ended_at is None

    @property
    def evidence_file(self) -> str:
        return f"{self.recording_id}.webm"

    def end(self) -> None:
        if self.ended_at is None:
            self.ended_at = time.time()

    def summary(self) -> dict[str, Any]:
        return {
            "voter_id": self.voter_id,
            "candidate_id": self.candidate_id,
            "recording_id": self.recording_id,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "observations": self.observations,
            "suspicious_patterns": self.detector.suspicious_patterns,
            "fraud_detected": self.detector.fraud_detected,
            "warnings_count": self.warnings.count,
            "invalidated": self.warnings.invalidated,
        }
