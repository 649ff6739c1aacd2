from voteguard.config import LivenessConfig
from voteguard.liveness.pattern_detector import (
    PatternDetector,
    analyze_window,
    count_changes,
    count_disappearances,
    is_alternating,
)


def _detector(**overrides):
    settings = dict(history_size=5, min_samples=5, analysis_interval_sec=3.0)
    settings.update(overrides)
    return PatternDetector(LivenessConfig(**settings))


def test_count_changes():
    assert count_changes([1, 1, 2, 2, 1]) == 2
    assert count_changes([]) == 0


def test_count_disappearances_needs_return():
    assert count_disappearances([1, 0, 1, 0, 0, 1, 0]) == 2
    assert count_disappearances([0, 0, 0]) == 0
    assert count_disappearances([1, 1, 1]) == 0


def test_is_alternating():
    assert is_alternating([1, 2, 1, 2, 1, 2])
    assert is_alternating([5, 5, 0, 1, 0, 1, 0, 1])
    assert not is_alternating([1, 1, 1, 1, 1, 1])
    assert not is_alternating([1, 2, 1, 2, 1, 1])
    assert not is_alternating([1, 2, 1])


def test_clean_window_scores_zero():
    analysis = analyze_window([1] * 10)
    assert analysis.suspicious_score == 0
    assert analysis.flags() == []


def test_disappearance_window():
    analysis = analyze_window([1, 0, 1, 1, 1, 1, 0, 1, 1, 1])
    assert analysis.disappearance_flag
    assert "periodic_disappearance" in analysis.flags()


def test_no_analysis_before_min_samples():
    detector = _detector()
    for t in range(4):
        assert detector.observe(1, timestamp=float(t)) is None
    assert detector.observe(1, timestamp=4.0) is not None


def test_analysis_is_rate_limited():
    detector = _detector()
    for t in range(5):
        detector.observe(1, timestamp=float(t))
    assert detector.last_analysis_at == 4.0

    # Exactly one interval later is not yet due
    for t in (5.0, 6.0, 7.0):
        assert detector.observe(1, timestamp=t) is None
    assert detector.observe(1, timestamp=8.0) is not None
    assert detector.last_analysis_at == 8.0


def test_score_rises_fast_and_decays_slowly():
    detector = _detector()
    for t, count in enumerate([1, 2, 1, 2, 1]):
        detector.observe(count, timestamp=float(t))
    assert detector.last_analysis.rapid_change_flag
    assert detector.suspicious_patterns == 1.0

    for t in range(5, 9):
        detector.observe(1, timestamp=float(t))
    assert detector.last_analysis.suspicious_score == 0
    assert detector.suspicious_patterns == 0.5

    for t in range(9, 13):
        detector.observe(1, timestamp=float(t))
    assert detector.suspicious_patterns == 0.0

    # Never below zero
    for t in range(13, 17):
        detector.observe(1, timestamp=float(t))
    assert detector.suspicious_patterns == 0.0


def test_fraud_after_three_suspicious_windows():
    detector = _detector()
    for t in range(9):
        detector.observe(1 if t % 2 == 0 else 2, timestamp=float(t))
    assert detector.suspicious_patterns == 2.0
    assert not detector.fraud_detected

    for t in range(9, 13):
        detector.observe(1 if t % 2 == 0 else 2, timestamp=float(t))
    assert detector.suspicious_patterns == 3.0
    assert detector.fraud_detected


def test_history_is_bounded_and_reset_clears():
    detector = _detector()
    for t in range(20):
        detector.observe(1, timestamp=float(t))
    assert len(detector.history) == 5

    detector.reset()
    assert len(detector.history) == 0
    assert detector.suspicious_patterns == 0.0
    assert detector.last_analysis_at is None
