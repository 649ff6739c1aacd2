import os
import tempfile

# Keep import-time config and logging out of the source tree
_SESSION_DIR = tempfile.mkdtemp(prefix="voteguard-tests-")
os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("DATA_DIR", os.path.join(_SESSION_DIR, "data"))
os.environ.setdefault("UPLOADS_DIR", os.path.join(_SESSION_DIR, "uploads"))

import io
import wave
from pathlib import Path

import cv2
import numpy as np
import pytest

from voteguard.config import Config, set_config, reset_config
from voteguard.context import AppContext
from voteguard.models import IdentifierExtractionResult
from voteguard.verification.identifier_extractor import (
    IdentifierExtractor,
    extract_aadhaar_number,
    extract_voter_id_number,
)


@pytest.fixture
def config(tmp_path):
    cfg = Config(
        base_dir=tmp_path,
        data_dir=tmp_path / "data",
        uploads_dir=tmp_path / "uploads",
        logs_dir=tmp_path / "logs",
        whitelist_dir=tmp_path / "whitelist",
        log_to_file=False,
    )
    cfg.workers.max_workers = 2
    set_config(cfg)
    yield cfg
    reset_config()


@pytest.fixture
def ctx(config):
    context = AppContext.build(config, in_memory=True)
    yield context
    context.close()


def document_image(seed: int = 0, width: int = 480, height: int = 300) -> np.ndarray:
    """Synthetic ID-card-like image: gradient background, blocks and text."""
    rng = np.random.default_rng(seed)
    x = np.linspace(0, 255, width, dtype=np.float32)
    background = np.tile(x, (height, 1))
    img = cv2.merge([background, background[::-1], np.full_like(background, 128)]).astype(np.uint8)
    for _ in range(6):
        x1, y1 = int(rng.integers(0, width - 80)), int(rng.integers(0, height - 60))
        color = tuple(int(c) for c in rng.integers(0, 255, size=3))
        cv2.rectangle(img, (x1, y1), (x1 + 70, y1 + 50), color, -1)
    cv2.putText(img, f"ID {seed:04d}", (20, height - 30), cv2.FONT_HERSHEY_SIMPLEX, 1.2, (0, 0, 0), 3)
    return img


def noise_image(seed: int = 0, width: int = 480, height: int = 300) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 255, size=(height, width, 3), dtype=np.uint8)


def encode(img: np.ndarray, ext: str = ".png", quality: int = 95) -> bytes:
    params = [cv2.IMWRITE_JPEG_QUALITY, quality] if ext in (".jpg", ".jpeg") else []
    ok, buf = cv2.imencode(ext, img, params)
    assert ok
    return buf.tobytes()


def write_image(path: Path, img: np.ndarray, quality: int = 95) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode(img, path.suffix.lower(), quality))
    return path


def wav_bytes(samples: np.ndarray, rate: int = 16000) -> bytes:
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype(np.int16)
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(pcm.tobytes())
    return buf.getvalue()


@pytest.fixture
def fake_ocr(monkeypatch):
    """
    Replace OCR with canned text chosen by the image file name.

    Usage: fake_ocr({"original.png": "EPIC ABC1234567", ...}); files whose
    name ends with no registered key raise a Tesseract-missing failure.
    """
    texts = {}
    calls = []

    def extract(self, image_path):
        image_path = Path(image_path)
        calls.append(image_path.name)
        for suffix, text in texts.items():
            if image_path.name.endswith(suffix):
                return IdentifierExtractionResult(
                    success=True,
                    aadhaar=extract_aadhaar_number(text),
                    voter_id=extract_voter_id_number(text),
                    ocr_confidence=80,
                    extracted_text=text[:500],
                )
        return IdentifierExtractionResult.failed("Tesseract OCR not found")

    monkeypatch.setattr(IdentifierExtractor, "extract", extract)

    def register(mapping):
        texts.update(mapping)
        return calls

    return register
