"""
Identifier extraction from ID document photos.

Reads the 12-digit (Aadhaar-style) number and the 3-letter + 7-digit
(EPIC/Voter ID style) number from a photographed ID document using
OpenCV preprocessing and Tesseract OCR.

The 12-digit check is structural only; no Verhoeff checksum is applied.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, List, Tuple, Any

import pytesseract
from pytesseract import Output

from .base import BaseComponent
from ..config import Config
from ..exceptions import ExtractionFailure, TesseractNotFoundError
from ..models import IdentifierMatch, IdentifierExtractionResult
from ..utils.file_utils import temporary_file
from ..utils.image_utils import load_image, save_image, preprocess_for_id_ocr
from ..utils.timing import timed_operation

AADHAAR_CONFIDENCE = 90
VOTER_ID_LABELLED_CONFIDENCE = 90
VOTER_ID_BARE_CONFIDENCE = 85

# Tried in order; the first candidate with exactly 12 digits wins
AADHAAR_PATTERNS: List[re.Pattern] = [
    re.compile(r"(?<!\d)(\d{4} \d{4} \d{4})(?!\d)"),
    re.compile(r"(?<!\d)(\d{12})(?!\d)"),
    re.compile(r"(?i:aadhaar)\s*(?i:number|no\.?)?\s*:?\s*(\d{4} ?\d{4} ?\d{4})(?!\d)"),
]

# Labels are case-insensitive, the number itself must be upper case.
# `(?!\d)` drops candidates whose digit run continues (12-digit collision).
VOTER_ID_LABELLED_PATTERNS: List[re.Pattern] = [
    re.compile(r"(?i:epic)\s*(?i:no\.?)?\s*[:\-]?\s*([A-Z]{3}\d{7})(?!\d)"),
    re.compile(r"(?i:voter)\s*(?i:id)\s*(?i:no\.?)?\s*[:\-]?\s*([A-Z]{3}\d{7})(?!\d)"),
]
VOTER_ID_BARE_PATTERN = re.compile(r"([A-Z]{3}\d{7})(?!\d)")

VOTER_ID_FORMAT = re.compile(r"^[A-Z]{3}\d{7}$")


def format_aadhaar(digits: str) -> str:
    return f"{digits[0:4]} {digits[4:8]} {digits[8:12]}"


def extract_aadhaar_number(text: str) -> IdentifierMatch:
    """
    Find a 12-digit identifier in OCR text.

    Patterns are tried grouped (dddd dddd dddd), contiguous, then labelled.
    """
    if not text:
        return IdentifierMatch.not_found()

    clean_text = re.sub(r"\s+", " ", text)
    for pattern in AADHAAR_PATTERNS:
        for match in pattern.finditer(clean_text):
            digits = re.sub(r"\D", "", match.group(1))
            if len(digits) == 12:
                return IdentifierMatch(
                    found=True,
                    number=digits,
                    formatted=format_aadhaar(digits),
                    confidence=AADHAAR_CONFIDENCE,
                )
    return IdentifierMatch.not_found()


def extract_voter_id_number(text: str) -> IdentifierMatch:
    """
    Find a 3-letter + 7-digit identifier in OCR text.

    Labelled forms ("EPIC No: ...", "Voter ID ...") are tried first, then any
    bare occurrence in the text with whitespace removed.
    """
    if not text:
        return IdentifierMatch.not_found()

    collapsed = re.sub(r"\s+", " ", text)
    for pattern in VOTER_ID_LABELLED_PATTERNS:
        for match in pattern.finditer(collapsed):
            number = match.group(1)
            if VOTER_ID_FORMAT.match(number):
                return IdentifierMatch(
                    found=True,
                    number=number,
                    formatted=number,
                    confidence=VOTER_ID_LABELLED_CONFIDENCE,
                )

    stripped = re.sub(r"\s+", "", text)
    for match in VOTER_ID_BARE_PATTERN.finditer(stripped):
        number = match.group(1)
        return IdentifierMatch(
            found=True,
            number=number,
            formatted=number,
            confidence=VOTER_ID_BARE_CONFIDENCE,
        )
    return IdentifierMatch.not_found()


def lines_from_tesseract(data: dict[str, Any], min_confidence: int = 0) -> Tuple[str, int]:
    """
    Rebuild text lines from `image_to_data` output.

    Returns:
        (text with one OCR line per row, mean word confidence 0-100)
    """
    words = data.get("text", [])
    n = len(words)
    confs = data.get("conf") or [-1] * n
    blocks = data.get("block_num") or [0] * n
    pars = data.get("par_num") or [0] * n
    line_nums = data.get("line_num") or [0] * n

    lines: List[str] = []
    confidences: List[float] = []
    current_key = None
    current_words: List[str] = []

    for i in range(n):
        word = (words[i] or "").strip()
        if not word:
            continue

        conf = float(confs[i])
        if conf != -1 and conf < min_confidence:
            continue
        if conf >= 0:
            confidences.append(conf)

        key = (blocks[i], pars[i], line_nums[i])
        if key != current_key:
            if current_words:
                lines.append(" ".join(current_words))
            current_words = [word]
            current_key = key
        else:
            current_words.append(word)

    if current_words:
        lines.append(" ".join(current_words))

    mean_conf = int(round(sum(confidences) / len(confidences))) if confidences else 0
    return "\n".join(lines), mean_conf


def ocr_image_to_text(
    image_path: Path,
    languages: str = "eng",
    tesseract_config: str = "--oem 1 --psm 6",
    min_confidence: int = 0,
) -> Tuple[str, int]:
    """
    Run Tesseract on an image file.

    Raises:
        TesseractNotFoundError: Tesseract binary is missing
        ExtractionFailure: Tesseract failed on the image
    """
    try:
        data = pytesseract.image_to_data(
            str(image_path),
            lang=languages,
            config=tesseract_config,
            output_type=Output.DICT,
        )
    except pytesseract.TesseractNotFoundError as e:
        raise TesseractNotFoundError(pytesseract.pytesseract.tesseract_cmd) from e
    except pytesseract.TesseractError as e:
        raise ExtractionFailure(f"Tesseract failed: {e}", image_path=str(image_path), stage="ocr") from e

    return lines_from_tesseract(data, min_confidence)


class IdentifierExtractor(BaseComponent):
    """
    Extracts identifier numbers from ID document photos.

    `extract()` never raises: OCR problems come back as a failed result so
    the caller can treat them as a failed verification layer.
    """

    name = "voteguard.ocr"

    def __init__(self, config: Optional[Config] = None):
        super().__init__(config)
        self.ocr_config = self.config.ocr
        if self.ocr_config.tesseract_path:
            pytesseract.pytesseract.tesseract_cmd = self.ocr_config.tesseract_path
            self.log_debug(f"Using Tesseract from: {self.ocr_config.tesseract_path}")

    def _read_text(self, image_path: Path) -> Tuple[str, int]:
        image = load_image(image_path)
        if image is None:
            raise ExtractionFailure("Could not read image", image_path=str(image_path), stage="load")

        prepared = preprocess_for_id_ocr(image, max_width=self.ocr_config.max_width)

        with temporary_file(suffix=".png") as tmp_path:
            if not save_image(prepared, tmp_path):
                raise ExtractionFailure(
                    "Could not write preprocessed image", image_path=str(image_path), stage="preprocess"
                )
            return ocr_image_to_text(
                tmp_path,
                languages=self.ocr_config.languages,
                tesseract_config=self.ocr_config.tesseract_config,
                min_confidence=self.ocr_config.min_word_confidence,
            )

    def extract(self, image_path: Path) -> IdentifierExtractionResult:
        """
        Extract both identifier kinds from one document image.

        Args:
            image_path: Path to the document photo

        Returns:
            IdentifierExtractionResult; success=False with an error on failure
        """
        image_path = Path(image_path)
        try:
            with timed_operation(f"OCR {image_path.name}", self.logger):
                text, confidence = self._read_text(image_path)
        except ExtractionFailure as e:
            self.log_warning("ID extraction failed", image=image_path.name, error=e.message)
            return IdentifierExtractionResult.failed(e.message)
        except Exception as e:
            self.log_error(f"ID extraction error for {image_path.name}", error=e)
            return IdentifierExtractionResult.failed(str(e) or type(e).__name__)

        result = IdentifierExtractionResult(
            success=True,
            aadhaar=extract_aadhaar_number(text),
            voter_id=extract_voter_id_number(text),
            ocr_confidence=confidence,
            extracted_text=text[:500],
        )
        if not result.any_found:
            self.log_warning("No identifier number found in document", image=image_path.name)
        self.log_debug(
            "ID extraction done",
            image=image_path.name,
            aadhaar=result.aadhaar.found,
            voter_id=result.voter_id.found,
            confidence=confidence,
        )
        return result
