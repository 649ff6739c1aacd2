"""
Suspicious-pattern detection over a sliding window of person counts.

Every few seconds the window is scored on three signals:
    rapid changes     consecutive samples differ in more than 30% of the window
    disappearance     the count drops to zero and comes back, at least twice
    alternating       the latest samples read a,b,a,b,a,b with a != b

A window with any signal raises the running suspicion by 1; a clean window
lowers it by 0.5 (never below 0). Fraud is flagged once suspicion reaches 3.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Deque, Optional, Sequence, Tuple

from ..config import LivenessConfig
from ..models import PatternAnalysis


def count_changes(counts: Sequence[int]) -> int:
    return sum(1 for prev, cur in zip(counts, counts[1:]) if cur != prev)


def count_disappearances(counts: Sequence[int]) -> int:
    """Number of zero runs that are followed by a nonzero count."""
    disappearances = 0
    in_gap = False
    for count in counts:
        if count == 0:
            in_gap = True
        elif in_gap:
            disappearances += 1
            in_gap = False
    return disappearances


def is_alternating(counts: Sequence[int], window: int = 6) -> bool:
    """True if the last `window` samples strictly alternate between two values."""
    if window < 2 or len(counts) < window:
        return False
    tail = list(counts[-window:])
    a, b = tail[0], tail[1]
    if a == b:
        return False
    return all(value == (a if i % 2 == 0 else b) for i, value in enumerate(tail))


def analyze_window(
    counts: Sequence[int],
    rapid_change_ratio: float = 0.3,
    disappearance_threshold: int = 2,
    alternating_window: int = 6,
) -> PatternAnalysis:
    changes = count_changes(counts)
    disappearances = count_disappearances(counts)

    analysis = PatternAnalysis(
        rapid_changes=changes,
        rapid_change_flag=changes > len(counts) * rapid_change_ratio,
        disappearances=disappearances,
        disappearance_flag=disappearances >= disappearance_threshold,
        alternating_flag=is_alternating(counts, alternating_window),
        window_size=len(counts),
    )
    analysis.suspicious_score = len(analysis.flags())
    return analysis


class PatternDetector:
    """
    Per-session suspicion accumulator.

    Timestamps are epoch seconds; callers may pass their own for replay and
    tests, otherwise the current time is used.
    """

    def __init__(self, config: Optional[LivenessConfig] = None):
        self.config = config or LivenessConfig()
        self.history: Deque[Tuple[float, int]] = deque(maxlen=self.config.history_size)
        self.suspicious_patterns: float = 0.0
        self.last_analysis_at: Optional[float] = None
        self.last_analysis: Optional[PatternAnalysis] = None

    @property
    def fraud_detected(self) -> bool:
        return self.suspicious_patterns >= self.config.fraud_threshold

    def _analysis_due(self, now: float) -> bool:
        if len(self.history) < self.config.min_samples:
            return False
        if self.last_analysis_at is None:
            return True
        return now - self.last_analysis_at > self.config.analysis_interval_sec

    def observe(self, person_count: int, timestamp: Optional[float] = None) -> Optional[PatternAnalysis]:
        """
        Add one sample and re-score the window if an analysis is due.

        Returns:
            The analysis if one ran, else None
        """
        now = time.time() if timestamp is None else timestamp
        self.history.append((now, int(person_count)))

        if not self._analysis_due(now):
            return None

        self.last_analysis_at = now
        analysis = analyze_window(
            [count for _, count in self.history],
            rapid_change_ratio=self.config.rapid_change_ratio,
            disappearance_threshold=self.config.disappearance_threshold,
            alternating_window=self.config.alternating_window,
        )
        if analysis.suspicious_score >= 1:
            self.suspicious_patterns += self.config.score_increment
        else:
            self.suspicious_patterns = max(0.0, self.suspicious_patterns - self.config.score_decay)

        self.last_analysis = analysis
        return analysis

    def reset(self) -> None:
        self.history.clear()
        self.suspicious_patterns = 0.0
        self.last_analysis_at = None
        self.last_analysis = None
