from pathlib import Path

from voteguard.exceptions import TesseractNotFoundError
from voteguard.verification import identifier_extractor
from voteguard.verification.identifier_extractor import (
    IdentifierExtractor,
    extract_aadhaar_number,
    extract_voter_id_number,
    lines_from_tesseract,
)

from conftest import document_image, write_image


def test_aadhaar_grouped_format():
    match = extract_aadhaar_number("Government of India\n1234 5678 9012\nDOB: 01/01/1990")
    assert match.found
    assert match.number == "123456789012"
    assert match.formatted == "1234 5678 9012"
    assert match.confidence == 90


def test_aadhaar_contiguous_format():
    match = extract_aadhaar_number("UID 987654321098 issued")
    assert match.found
    assert match.number == "987654321098"
    assert match.formatted == "9876 5432 1098"


def test_aadhaar_grouped_across_line_breaks():
    match = extract_aadhaar_number("Aadhaar No:\n4321\n8765\n2109")
    assert match.number == "432187652109"


def test_aadhaar_rejects_longer_digit_runs():
    assert not extract_aadhaar_number("Account 12345678901234").found
    assert not extract_aadhaar_number("PIN 560001").found


def test_aadhaar_empty_text():
    match = extract_aadhaar_number("")
    assert not match.found
    assert match.number is None
    assert match.confidence == 0


def test_voter_id_labelled():
    match = extract_voter_id_number("ELECTION COMMISSION\nEPIC No: XYZ7654321\nName: A Voter")
    assert match.found
    assert match.number == "XYZ7654321"
    assert match.confidence == 90


def test_voter_id_label_is_case_insensitive():
    match = extract_voter_id_number("voter id ABC1234567")
    assert match.number == "ABC1234567"
    assert match.confidence == 90


def test_voter_id_bare():
    match = extract_voter_id_number("Identity Card ABC1234567 Elector")
    assert match.found
    assert match.number == "ABC1234567"
    assert match.confidence == 85


def test_voter_id_split_by_ocr_whitespace():
    match = extract_voter_id_number("Card No ABC 1234567")
    assert match.number == "ABC1234567"


def test_voter_id_bare_scan_is_case_sensitive():
    assert not extract_voter_id_number("card abc1234567").found
    assert not extract_voter_id_number("Abc1234567").found


def test_voter_id_discards_twelve_digit_collision():
    # "AAR" + the first 7 digits of a 12-digit number must not be taken
    assert not extract_voter_id_number("AADHAAR 123456789012").found


def test_voter_id_not_found():
    assert not extract_voter_id_number("Name: A Voter\nDOB 01/01/1990").found


def test_both_kinds_in_one_text():
    text = "EPIC ABC1234567\n1234 5678 9012"
    assert extract_aadhaar_number(text).number == "123456789012"
    assert extract_voter_id_number(text).number == "ABC1234567"


def test_lines_from_tesseract_groups_words_and_confidence():
    data = {
        "text": ["EPIC", "No:", "", "ABC1234567", "noise"],
        "conf": [90, 80, -1, 70, 10],
        "block_num": [1, 1, 1, 1, 2],
        "par_num": [1, 1, 1, 1, 1],
        "line_num": [1, 1, 1, 2, 1],
    }
    text, confidence = lines_from_tesseract(data, min_confidence=20)
    assert text == "EPIC No:\nABC1234567"
    assert confidence == 80


def test_extract_runs_preprocessing_and_removes_temp_file(config, tmp_path, monkeypatch):
    image_path = write_image(tmp_path / "card.png", document_image(3))
    seen = []

    def fake_ocr(path, **kwargs):
        seen.append(Path(path))
        assert Path(path).exists()
        return "EPIC No: ABC1234567\n1234 5678 9012", 77

    monkeypatch.setattr(identifier_extractor, "ocr_image_to_text", fake_ocr)

    result = IdentifierExtractor(config).extract(image_path)

    assert result.success
    assert result.aadhaar.number == "123456789012"
    assert result.voter_id.number == "ABC1234567"
    assert result.ocr_confidence == 77
    assert seen and not seen[0].exists()


def test_extract_missing_tesseract_is_a_failed_result(config, tmp_path, monkeypatch):
    image_path = write_image(tmp_path / "card.png", document_image(4))

    def missing(path, **kwargs):
        raise TesseractNotFoundError()

    monkeypatch.setattr(identifier_extractor, "ocr_image_to_text", missing)

    result = IdentifierExtractor(config).extract(image_path)
    assert not result.success
    assert "Tesseract" in result.error
    assert not result.aadhaar.found
    assert not result.voter_id.found


def test_extract_unreadable_image(config, tmp_path):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")

    result = IdentifierExtractor(config).extract(bad)
    assert not result.success
    assert result.error


def test_extract_missing_file(config, tmp_path):
    result = IdentifierExtractor(config).extract(tmp_path / "missing.png")
    assert not result.success
