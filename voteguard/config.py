"""
Centralized configuration management.

Configuration is loaded from:
1. Environment variables
2. .env file (if present)
3. Default values

Usage:
    from voteguard.config import get_config
    config = get_config()
    print(config.comparison.perceptual_threshold)  # 90.0 unless overridden
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Does not override variables already present in the environment
load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)


def _get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key, "").strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return default


def _get_int_env(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.getenv(key, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass
class OCRConfig:
    """OCR (Tesseract) configuration for ID documents."""
    languages: str = field(default_factory=lambda: os.getenv("OCR_LANGUAGES", "eng"))
    tesseract_path: str = field(default_factory=lambda: os.getenv("TESSERACT_PATH", ""))
    tesseract_config: str = field(default_factory=lambda: os.getenv("OCR_TESSERACT_CONFIG", "--oem 1 --psm 6"))

    # Preprocessing: documents wider than this are shrunk, never enlarged
    max_width: int = field(default_factory=lambda: _get_int_env("OCR_MAX_WIDTH", 2000))

    # Words below this Tesseract confidence are dropped from the text
    min_word_confidence: int = field(default_factory=lambda: _get_int_env("OCR_MIN_WORD_CONF", 0))


@dataclass
class ComparisonConfig:
    """Image similarity (layer 2) configuration."""
    perceptual_threshold: float = field(
        default_factory=lambda: _get_float_env("PERCEPTUAL_THRESHOLD", 90.0)
    )
    hash_size: int = field(default_factory=lambda: _get_int_env("PERCEPTUAL_HASH_SIZE", 8))
    chunk_size: int = 64 * 1024


@dataclass
class LivenessConfig:
    """Voting-session anomaly detection configuration."""
    history_size: int = field(default_factory=lambda: _get_int_env("LIVENESS_HISTORY_SIZE", 30))
    analysis_interval_sec: float = field(
        default_factory=lambda: _get_float_env("LIVENESS_ANALYSIS_INTERVAL_SEC", 3.0)
    )
    min_samples: int = field(default_factory=lambda: _get_int_env("LIVENESS_MIN_SAMPLES", 5))

    # Pattern thresholds
    rapid_change_ratio: float = 0.3
    disappearance_threshold: int = 2
    alternating_window: int = 6

    # Suspicion score
    fraud_threshold: float = field(default_factory=lambda: _get_float_env("LIVENESS_FRAUD_THRESHOLD", 3.0))
    score_increment: float = 1.0
    score_decay: float = 0.5

    # Multi-person warning tracker
    max_warnings: int = field(default_factory=lambda: _get_int_env("LIVENESS_MAX_WARNINGS", 2))
    warning_decay_sec: float = field(
        default_factory=lambda: _get_float_env("LIVENESS_WARNING_DECAY_SEC", 300.0)
    )

    # Monitoring loop
    monitor_interval_sec: float = field(
        default_factory=lambda: _get_float_env("LIVENESS_MONITOR_INTERVAL_SEC", 0.5)
    )
    monitor_max_duration_sec: float = field(
        default_factory=lambda: _get_float_env("LIVENESS_MONITOR_MAX_DURATION_SEC", 300.0)
    )


@dataclass
class VoiceConfig:
    """Multiple-voice detection configuration."""
    frame_size: int = field(default_factory=lambda: _get_int_env("VOICE_FRAME_SIZE", 1024))
    energy_variance_threshold: float = field(
        default_factory=lambda: _get_float_env("VOICE_ENERGY_VARIANCE_THRESHOLD", 0.05)
    )
    transitions_threshold: float = field(
        default_factory=lambda: _get_float_env("VOICE_TRANSITIONS_THRESHOLD", 0.15)
    )


@dataclass
class WhitelistConfig:
    """Template whitelist configuration."""
    templates_dir: str = field(default_factory=lambda: os.getenv("WHITELIST_DIR", ""))
    hamming_threshold: int = field(
        default_factory=lambda: _get_int_env("WHITELIST_HAMMING_THRESHOLD", 10)
    )
    patterns_file: str = "patterns.json"


@dataclass
class WorkerConfig:
    """Worker pool for CPU-bound OCR and hashing."""
    max_workers: int = field(default_factory=lambda: _get_int_env("VERIFICATION_MAX_WORKERS", 4))
    ocr_timeout_sec: float = field(default_factory=lambda: _get_float_env("OCR_TIMEOUT_SEC", 120.0))


@dataclass
class Config:
    """
    Main application configuration.

    All settings are loaded from environment variables with sensible defaults.
    Set DEBUG=1 in environment to enable debug mode.
    """

    # Base directory (project root)
    base_dir: Path = field(default_factory=lambda: Path(__file__).resolve().parent.parent)

    # Directory paths
    data_dir: Path = field(default=None)
    uploads_dir: Path = field(default=None)
    logs_dir: Path = field(default=None)
    whitelist_dir: Path = field(default=None)

    # Debug mode (enables verbose logging)
    debug: bool = field(default_factory=lambda: _get_bool_env("DEBUG", False))
    log_to_file: bool = field(default_factory=lambda: _get_bool_env("LOG_TO_FILE", True))

    # JSON database file name inside data_dir
    db_filename: str = field(default_factory=lambda: os.getenv("DB_FILENAME", "voteguard.json"))

    # Sub-configurations
    ocr: OCRConfig = field(default_factory=OCRConfig)
    comparison: ComparisonConfig = field(default_factory=ComparisonConfig)
    liveness: LivenessConfig = field(default_factory=LivenessConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    whitelist: WhitelistConfig = field(default_factory=WhitelistConfig)
    workers: WorkerConfig = field(default_factory=WorkerConfig)

    def __post_init__(self):
        """Resolve paths after initialization."""
        self.base_dir = Path(self.base_dir)
        if self.data_dir is None:
            self.data_dir = self.base_dir / os.getenv("DATA_DIR", "data")
        if self.uploads_dir is None:
            self.uploads_dir = self.base_dir / os.getenv("UPLOADS_DIR", "uploads")
        if self.logs_dir is None:
            self.logs_dir = self.base_dir / os.getenv("LOG_DIR", "logs")
        if self.whitelist_dir is None:
            configured = self.whitelist.templates_dir
            self.whitelist_dir = Path(configured) if configured else self.base_dir / "whitelist"

        self.data_dir = Path(self.data_dir)
        self.uploads_dir = Path(self.uploads_dir)
        self.logs_dir = Path(self.logs_dir)
        self.whitelist_dir = Path(self.whitelist_dir)

        # Ensure directories exist
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    @property
    def db_path(self) -> Path:
        """Location of the JSON database file."""
        return self.data_dir / self.db_filename

    def validate(self) -> None:
        """
        Check settings that would make the checks meaningless.

        Raises:
            ConfigurationError: a threshold or limit is out of range
        """
        if not 0 <= self.comparison.perceptual_threshold <= 100:
            raise ConfigurationError(
                "Perceptual threshold must be between 0 and 100", config_key="PERCEPTUAL_THRESHOLD"
            )
        if self.liveness.max_warnings < 1:
            raise ConfigurationError("max_warnings must be at least 1", config_key="LIVENESS_MAX_WARNINGS")
        if self.liveness.min_samples < 2:
            raise ConfigurationError("min_samples must be at least 2", config_key="LIVENESS_MIN_SAMPLES")
        if self.workers.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1", config_key="VERIFICATION_MAX_WORKERS")


# Global config instance (lazily initialized)
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Config) -> None:
    """Install an explicit configuration (CLI overrides, tests)."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
