"""
Voting-session liveness and anomaly detection.
"""

from .pattern_detector import PatternDetector, analyze_window
from .warning_tracker import WarningTracker, generate_warning
from .voice_analysis import VoiceAnalyzer
from .person_detection import PersonDetector
from .session import VotingSession
from .service import LivenessService
from .monitor import SessionMonitor, observation_stream

__all__ = [
    "PatternDetector",
    "analyze_window",
    "WarningTracker",
    "generate_warning",
    "VoiceAnalyzer",
    "PersonDetector",
    "VotingSession",
    "LivenessService",
    "SessionMonitor",
    "observation_stream",
]
