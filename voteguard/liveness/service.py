"""
Liveness service: turns voting-session reports into warnings, fraud flags
and, when warnings pile up, an invalidated vote.

Reports for one voter are serialised on that voter's lock. Detection
failures (undecodable frame or audio) are "no data" and never abort voting.
"""

from __future__ import annotations

import time
import uuid
from typing import Optional, Any

from ..config import Config
from ..exceptions import ValidationError, NotFoundError
from ..models import (
    InvalidVote,
    Observation,
    ObservationResult,
    ViolationType,
    WarningTrackerEntry,
)
from ..persistence import JSONStore, VoterRepository, InvalidVoteRepository
from ..utils.locks import KeyedLock
from ..utils.timing import utc_now_iso
from ..verification.base import BaseComponent
from .person_detection import PersonDetector
from .session import VotingSession
from .voice_analysis import VoiceAnalyzer
from .warning_tracker import WarningTracker

REASON_MULTIPLE_PEOPLE = "MULTIPLE_PEOPLE_DETECTED"
REASON_MULTIPLE_VOICES = "MULTIPLE_VOICES_DETECTED"
REASON_FRAUD_PATTERN = "FRAUD_PATTERN_DETECTED"

_VIOLATION_REASONS = {
    ViolationType.MULTIPLE_FACES: REASON_MULTIPLE_PEOPLE,
    ViolationType.MULTIPLE_VOICES: REASON_MULTIPLE_VOICES,
}

_VIOLATION_DETAILS = {
    ViolationType.MULTIPLE_FACES: "Detected multiple people {count} times during voting.",
    ViolationType.MULTIPLE_VOICES: "Detected multiple voices {count} times during voting.",
}


class LivenessService(BaseComponent):
    """Owns the voting sessions and the warning tracker."""

    name = "voteguard.liveness"

    def __init__(
        self,
        store: JSONStore,
        voters: VoterRepository,
        invalid_votes: InvalidVoteRepository,
        locks: Optional[KeyedLock] = None,
        person_detector: Optional[PersonDetector] = None,
        voice_analyzer: Optional[VoiceAnalyzer] = None,
        config: Optional[Config] = None,
    ):
        super().__init__(config)
        self.liveness_config = self.config.liveness
        self.store = store
        self.voters = voters
        self.invalid_votes = invalid_votes
        self.locks = locks or KeyedLock()
        self.person_detector = person_detector or PersonDetector(self.config)
        self.voice_analyzer = voice_analyzer or VoiceAnalyzer(self.config)
        self.tracker = WarningTracker(self.liveness_config)
        self._sessions: dict[str, VotingSession] = {}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(
        self,
        voter_id: str,
        candidate_id: Optional[str] = None,
        recording_id: Optional[str] = None,
    ) -> VotingSession:
        """Start (or restart) the voter's voting session."""
        voter_id = self._require_voter(voter_id)
        with self.locks.hold(voter_id):
            session = VotingSession.start(
                voter_id,
                self.liveness_config,
                warnings=self.tracker.current(voter_id),
                candidate_id=candidate_id,
                recording_id=recording_id,
            )
            self._sessions[voter_id] = session
        self.log_info("Voting session started", voter_id=voter_id, recording=session.recording_id)
        return session

    def get_session(self, voter_id: str) -> Optional[VotingSession]:
        return self._sessions.get(voter_id)

    def end_session(self, voter_id: str) -> Optional[VotingSession]:
        with self.locks.hold(voter_id):
            session = self._sessions.pop(voter_id, None)
            if session:
                session.end()
        return session

    def _session_for(
        self,
        voter_id: str,
        candidate_id: Optional[str],
        recording_id: Optional[str],
    ) -> VotingSession:
        session = self._sessions.get(voter_id)
        if session is None or not session.active:
            session = VotingSession.start(
                voter_id,
                self.liveness_config,
                warnings=self.tracker.current(voter_id),
                candidate_id=candidate_id,
                recording_id=recording_id,
            )
            self._sessions[voter_id] = session
        else:
            # The tracker drops decayed entries; follow its current one
            session.warnings = self.tracker.current(voter_id)
            session.candidate_id = candidate_id or session.candidate_id
        return session

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def on_observation(
        self,
        voter_id: str,
        observation: Observation,
        candidate_id: Optional[str] = None,
        recording_id: Optional[str] = None,
    ) -> ObservationResult:
        """
        Process one person-count observation for a voter.

        Raises:
            ValidationError: missing voter id or negative count
            NotFoundError: unknown voter
        """
        voter_id = self._require_voter(voter_id)
        if observation.person_count < 0:
            raise ValidationError(
                "Person count must not be negative",
                field_name="person_count",
                field_value=observation.person_count,
            )

        with self.locks.hold(voter_id):
            session = self._session_for(voter_id, candidate_id, recording_id)
            if self._already_invalidated(voter_id, session.warnings):
                return self._already_invalidated_result(session)

            session.observations += 1
            analysis = session.detector.observe(observation.person_count, observation.timestamp)
            if analysis is not None and analysis.suspicious_score:
                self.log_warning(
                    "Suspicious pattern in voting session",
                    voter_id=voter_id,
                    flags=",".join(analysis.flags()),
                    score=session.detector.suspicious_patterns,
                )

            if observation.person_count > 1:
                result = self._warn(
                    session, observation.person_count, ViolationType.MULTIPLE_FACES, observation.timestamp
                )
            else:
                if observation.person_count == 1:
                    self.tracker.note_single_person(voter_id, observation.timestamp)
                    session.warnings = self.tracker.current(voter_id)
                result = ObservationResult(
                    warnings_count=session.warnings.count,
                    message="Single person detected" if observation.person_count == 1 else "No person detected",
                )

            result.analysis = analysis
            result.suspicious_patterns = session.detector.suspicious_patterns
            result.fraud_detected = session.detector.fraud_detected
            if result.fraud_detected and not result.invalidated:
                result.reason = result.reason or REASON_FRAUD_PATTERN
            return result

    def report_count(
        self,
        voter_id: str,
        person_count: int,
        candidate_id: Optional[str] = None,
        recording_id: Optional[str] = None,
        timestamp: Optional[float] = None,
    ) -> ObservationResult:
        """Client-side detection report: how many people the camera saw."""
        observation = Observation(
            timestamp=time.time() if timestamp is None else timestamp,
            person_count=int(person_count),
        )
        return self.on_observation(voter_id, observation, candidate_id, recording_id)

    def report_frame(
        self,
        voter_id: str,
        frame: bytes,
        candidate_id: Optional[str] = None,
        recording_id: Optional[str] = None,
        timestamp: Optional[float] = None,
    ) -> ObservationResult:
        """Count faces in a camera frame and report the count."""
        detection = self.person_detector.count_people(frame)
        if not detection.success:
            return ObservationResult(success=False, error=detection.error, message="No detection data")
        return self.report_count(voter_id, detection.person_count, candidate_id, recording_id, timestamp)

    def report_audio(
        self,
        voter_id: str,
        audio: bytes,
        candidate_id: Optional[str] = None,
        recording_id: Optional[str] = None,
        timestamp: Optional[float] = None,
    ) -> ObservationResult:
        """Analyze a WAV snippet; several voices count as a warning."""
        voter_id = self._require_voter(voter_id)
        detection = self.voice_analyzer.detect_multiple_voices(audio)
        if not detection.success:
            return ObservationResult(success=False, error=detection.error, message="No detection data")

        now = time.time() if timestamp is None else timestamp
        with self.locks.hold(voter_id):
            session = self._session_for(voter_id, candidate_id, recording_id)
            if self._already_invalidated(voter_id, session.warnings):
                return self._already_invalidated_result(session)

            if not detection.multiple_voices_detected:
                return ObservationResult(
                    warnings_count=session.warnings.count,
                    message="Single voice detected",
                    evidence={"confidence": detection.confidence},
                )

            result = self._warn(session, 2, ViolationType.MULTIPLE_VOICES, now)
            result.evidence.setdefault("confidence", detection.confidence)
            return result

    # ------------------------------------------------------------------
    # Validation summary
    # ------------------------------------------------------------------

    def validate_session(self, voter_id: str) -> dict[str, Any]:
        """
        Summarise whether the voter's session passes liveness requirements.
        """
        validation: dict[str, Any] = {"passed": True, "errors": [], "warnings": [], "details": {}}
        session = self._sessions.get(voter_id)
        entry = self.tracker.get(voter_id)

        if session is None:
            validation["passed"] = False
            validation["errors"].append("No recording found")
        else:
            validation["details"] = session.summary()

        if entry is not None:
            validation["warnings"] = [w.to_dict() for w in entry.warnings]
            if entry.invalidated or entry.count >= self.liveness_config.max_warnings:
                validation["passed"] = False
                validation["errors"].append(
                    f"Multiple people detected {self.liveness_config.max_warnings} or more times "
                    "- vote marked as invalid"
                )
                validation["details"]["invalid_reason"] = _VIOLATION_REASONS.get(
                    entry.violation_type, REASON_MULTIPLE_PEOPLE
                )

        if session is not None and session.detector.fraud_detected:
            validation["passed"] = False
            validation["errors"].append("Suspicious activity patterns detected during voting")
            validation["details"].setdefault("invalid_reason", REASON_FRAUD_PATTERN)

        return validation

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_voter(self, voter_id: Optional[str]) -> str:
        voter_id = str(voter_id or "").strip()
        if not voter_id:
            raise ValidationError("Missing voterId", field_name="voter_id")
        if self.voters.find(voter_id) is None:
            raise NotFoundError("Voter not found", resource="voter", identifier=voter_id)
        return voter_id

    def _already_invalidated(self, voter_id: str, entry: WarningTrackerEntry) -> bool:
        if entry.invalidated:
            return True
        voter = self.voters.find(voter_id)
        return bool(voter and voter.is_blocked)

    @staticmethod
    def _already_invalidated_result(session: VotingSession) -> ObservationResult:
        return ObservationResult(
            invalidated=True,
            already_invalidated=True,
            warnings_count=session.warnings.count,
            reason=_VIOLATION_REASONS.get(session.warnings.violation_type, REASON_MULTIPLE_PEOPLE),
            message="Vote has already been invalidated",
        )

    def _warn(
        self,
        session: VotingSession,
        person_count: int,
        violation_type: ViolationType,
        timestamp: float,
    ) -> ObservationResult:
        entry, warning = self.tracker.record_warning(
            session.voter_id,
            person_count,
            candidate_id=session.candidate_id,
            violation_type=violation_type,
            timestamp=timestamp,
        )
        session.warnings = entry
        self.log_warning(
            "Multi-person warning",
            voter_id=session.voter_id,
            count=entry.count,
            type=violation_type.value,
        )

        if self.tracker.should_invalidate(entry):
            return self._invalidate(session, entry, violation_type)

        return ObservationResult(
            warning=warning,
            warnings_count=entry.count,
            message="Multiple persons detected; voter warned"
            if violation_type is ViolationType.MULTIPLE_FACES
            else "Multiple voices detected; voter warned",
        )

    def _invalidate(
        self,
        session: VotingSession,
        entry: WarningTrackerEntry,
        violation_type: ViolationType,
    ) -> ObservationResult:
        record = InvalidVote(
            invalid_vote_id=str(uuid.uuid4()),
            voter_id=session.voter_id,
            candidate_id=entry.candidate_id or "unknown",
            violation_type=violation_type,
            violation_details=_VIOLATION_DETAILS[violation_type].format(count=entry.count),
            timestamp=utc_now_iso(),
            evidence_data=session.evidence_file,
        )

        with self.store.transaction():
            self.invalid_votes.add(record)
            self.voters.update(session.voter_id, vote_status=True, is_blocked=True)
        entry.invalidated = True

        reason = _VIOLATION_REASONS[violation_type]
        self.log_warning(
            "Vote invalidated",
            voter_id=session.voter_id,
            reason=reason,
            invalid_vote_id=record.invalid_vote_id,
        )
        return ObservationResult(
            invalidated=True,
            warnings_count=entry.count,
            warning=entry.warnings[-1] if entry.warnings else None,
            reason=reason,
            message="Vote marked invalid due to repeated multiple-person detection",
            invalid_vote_id=record.invalid_vote_id,
            evidence={
                "count": entry.count,
                "violation_type": violation_type.value,
                "recording": session.evidence_file,
                "warnings": [w.to_dict() for w in entry.warnings],
            },
        )
