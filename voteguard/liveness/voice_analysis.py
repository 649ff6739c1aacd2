"""
Multiple-voice detection from a short WAV recording.

Heuristic only: high variance of per-frame energy, or frequent sharp energy
jumps between frames, suggest more than one speaker.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.io import wavfile

from ..config import Config
from ..models import VoiceDetectionResult
from ..verification.base import BaseComponent

# Avoids division by zero between silent frames
_ENERGY_EPSILON = 1e-4


@dataclass
class VoicePatterns:
    energy_variance: float
    normalized_transitions: float
    frame_count: int


def decode_wav(data: bytes) -> np.ndarray:
    """
    Decode WAV bytes to mono float samples scaled to [-1, 1] by peak.

    Raises:
        ValueError: empty, undecodable or silent audio
    """
    if not data:
        raise ValueError("No audio data")
    _, samples = wavfile.read(io.BytesIO(data))

    samples = np.asarray(samples)
    if samples.ndim > 1:
        samples = samples[:, 0]  # first channel
    samples = samples.astype(np.float64)
    if samples.size == 0:
        raise ValueError("Audio contains no samples")

    peak = float(np.max(np.abs(samples)))
    if peak == 0:
        raise ValueError("Audio is silent")
    return samples / peak


def frame_energies(samples: np.ndarray, frame_size: int = 1024) -> np.ndarray:
    """Mean squared amplitude of each full frame."""
    frame_count = len(samples) // frame_size
    if frame_count == 0:
        return np.empty(0)
    frames = samples[: frame_count * frame_size].reshape(frame_count, frame_size)
    return np.mean(frames ** 2, axis=1)


def analyze_voice_patterns(samples: np.ndarray, frame_size: int = 1024) -> VoicePatterns:
    energies = frame_energies(samples, frame_size)
    if energies.size == 0:
        return VoicePatterns(energy_variance=0.0, normalized_transitions=0.0, frame_count=0)

    ratios = energies[1:] / (energies[:-1] + _ENERGY_EPSILON)
    transitions = int(np.count_nonzero((ratios > 2.0) | (ratios < 0.5)))
    return VoicePatterns(
        energy_variance=float(np.var(energies)),
        normalized_transitions=transitions / energies.size,
        frame_count=int(energies.size),
    )


class VoiceAnalyzer(BaseComponent):
    """Flags recordings that look like several people speaking."""

    name = "voteguard.voice"

    def __init__(self, config: Optional[Config] = None):
        super().__init__(config)
        self.voice_config = self.config.voice

    def detect_multiple_voices(self, data: bytes) -> VoiceDetectionResult:
        """
        Analyze a WAV recording.

        Returns:
            VoiceDetectionResult; success=False when the audio cannot be used
        """
        try:
            samples = decode_wav(data)
        except Exception as e:
            # scipy raises ValueError for malformed RIFF data
            self.log_warning("Voice analysis skipped", error=e)
            return VoiceDetectionResult(success=False, error=str(e) or type(e).__name__)

        patterns = analyze_voice_patterns(samples, self.voice_config.frame_size)
        if patterns.frame_count == 0:
            return VoiceDetectionResult(success=False, error="Audio shorter than one frame")

        variance_threshold = self.voice_config.energy_variance_threshold
        transitions_threshold = self.voice_config.transitions_threshold
        detected = (
            patterns.energy_variance > variance_threshold
            or patterns.normalized_transitions > transitions_threshold
        )
        confidence = max(
            min(1.0, patterns.energy_variance / variance_threshold),
            min(1.0, patterns.normalized_transitions / transitions_threshold),
        )

        self.log_debug(
            "Voice analysis",
            variance=f"{patterns.energy_variance:.4f}",
            transitions=f"{patterns.normalized_transitions:.3f}",
            multiple=detected,
        )
        return VoiceDetectionResult(
            success=True,
            multiple_voices_detected=detected,
            confidence=confidence,
            energy_variance=patterns.energy_variance,
            normalized_transitions=patterns.normalized_transitions,
        )
