"""
Multi-person warning tracking.

Each report with more than one person (or with several voices) counts as a
warning against the voter. Reaching `max_warnings` means the vote must be
invalidated. A single-person report clears the count only once the last
warning is older than the decay period.
"""

from __future__ import annotations

import time
from typing import Optional

from ..config import LivenessConfig
from ..models import MultiPersonWarning, WarningTrackerEntry, ViolationType

WARNING_MULTIPLE_PERSON = "MULTIPLE_PERSON_DETECTED"
WARNING_MULTIPLE_VOICES = "MULTIPLE_VOICES_DETECTED"


def generate_warning(
    person_count: int,
    violation_type: ViolationType = ViolationType.MULTIPLE_FACES,
    timestamp: Optional[float] = None,
) -> MultiPersonWarning:
    """Warning shown to the voter; HIGH severity for more than two people."""
    if violation_type is ViolationType.MULTIPLE_VOICES:
        kind = WARNING_MULTIPLE_VOICES
        message = "Multiple voices detected. Only the voter should be speaking during voting."
    else:
        kind = WARNING_MULTIPLE_PERSON
        message = (
            f"{person_count} people detected in frame. "
            "Only one person should be present during voting."
        )
    return MultiPersonWarning(
        type=kind,
        severity="HIGH" if person_count > 2 else "MEDIUM",
        message=message,
        person_count=person_count,
        timestamp=time.time() if timestamp is None else timestamp,
        violation_type=violation_type,
    )


class WarningTracker:
    """Warning entries keyed by voter id."""

    def __init__(self, config: Optional[LivenessConfig] = None):
        self.config = config or LivenessConfig()
        self._entries: dict[str, WarningTrackerEntry] = {}

    def __contains__(self, voter_id: str) -> bool:
        return voter_id in self._entries

    def get(self, voter_id: str) -> Optional[WarningTrackerEntry]:
        return self._entries.get(voter_id)

    def entry(self, voter_id: str) -> WarningTrackerEntry:
        """Existing entry or a fresh one (stored). Only warnings create entries."""
        return self._entries.setdefault(voter_id, WarningTrackerEntry())

    def current(self, voter_id: str) -> WarningTrackerEntry:
        """Stored entry, or an unstored empty one for a voter with no warnings."""
        entry = self._entries.get(voter_id)
        return entry if entry is not None else WarningTrackerEntry()

    def __len__(self) -> int:
        return len(self._entries)

    def record_warning(
        self,
        voter_id: str,
        person_count: int,
        candidate_id: Optional[str] = None,
        violation_type: ViolationType = ViolationType.MULTIPLE_FACES,
        timestamp: Optional[float] = None,
    ) -> tuple[WarningTrackerEntry, MultiPersonWarning]:
        now = time.time() if timestamp is None else timestamp
        warning = generate_warning(person_count, violation_type, now)

        entry = self.entry(voter_id)
        entry.count += 1
        entry.last_warning_at = now
        entry.candidate_id = candidate_id or entry.candidate_id
        entry.violation_type = violation_type
        entry.warnings.append(warning)
        return entry, warning

    def should_invalidate(self, entry: WarningTrackerEntry) -> bool:
        return not entry.invalidated and entry.count >= self.config.max_warnings

    def note_single_person(self, voter_id: str, timestamp: Optional[float] = None) -> bool:
        """
        Clear a voter's warnings if the last one has decayed.

        Invalidated entries are never cleared.

        Returns:
            True if the entry was removed
        """
        entry = self._entries.get(voter_id)
        if entry is None or entry.invalidated:
            return False
        now = time.time() if timestamp is None else timestamp
        age = now - (entry.last_warning_at or 0.0)
        if age > self.config.warning_decay_sec:
            del self._entries[voter_id]
            return True
        return False
