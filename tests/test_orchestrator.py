import pytest

from voteguard.exceptions import InfrastructureError, InvalidStateError, NotFoundError, ValidationError
from voteguard.models import (
    CaseStatus,
    IdentifierExtractionResult,
    IdentifierMatch,
    VerificationStatus,
)
from voteguard.verification.orchestrator import match_identifiers

from conftest import document_image, encode, noise_image


def _register(ctx, voter_id="V1", filename="original.png", seed=1):
    return ctx.register_voter(voter_id, name="Voter", document=encode(document_image(seed)), filename=filename)


def _found(aadhaar=None, voter_id=None):
    return IdentifierExtractionResult(
        success=True,
        aadhaar=IdentifierMatch(found=True, number=aadhaar) if aadhaar else IdentifierMatch(),
        voter_id=IdentifierMatch(found=True, number=voter_id) if voter_id else IdentifierMatch(),
    )


# ----------------------------------------------------------------------
# Identifier matching
# ----------------------------------------------------------------------

def test_match_prefers_aadhaar():
    audit = match_identifiers(
        _found("123456789012", "ABC1234567"),
        _found("123456789012", "XYZ7654321"),
    )
    assert audit.matched
    assert audit.aadhaar_match
    assert not audit.voter_id_match


def test_match_falls_back_to_voter_id():
    audit = match_identifiers(_found(voter_id="ABC1234567"), _found("111122223333", "ABC1234567"))
    assert audit.matched
    assert audit.voter_id_match
    assert audit.step2.aadhaar == "111122223333"


def test_no_match_when_either_extraction_failed():
    failed = IdentifierExtractionResult.failed("Tesseract OCR not found")
    audit = match_identifiers(_found("123456789012"), failed)
    assert not audit.matched
    assert audit.step1.aadhaar == "123456789012"
    assert audit.step2.aadhaar is None


# ----------------------------------------------------------------------
# Input validation
# ----------------------------------------------------------------------

def test_missing_voter_id(ctx, tmp_path):
    with pytest.raises(ValidationError) as exc_info:
        ctx.orchestrator.verify("  ", tmp_path / "x.png")
    assert exc_info.value.message == "Voter ID is required"


def test_missing_image(ctx, tmp_path):
    _register(ctx)
    with pytest.raises(ValidationError) as exc_info:
        ctx.orchestrator.verify("V1", None)
    assert exc_info.value.message == "ID image is required"

    with pytest.raises(ValidationError):
        ctx.orchestrator.verify("V1", tmp_path / "does-not-exist.png")


def test_unknown_voter(ctx):
    with pytest.raises(NotFoundError):
        ctx.orchestrator.verify_upload("ghost", encode(document_image(1)), "new.png")


def test_voter_without_registered_document(ctx):
    ctx.register_voter("V9")
    with pytest.raises(ValidationError) as exc_info:
        ctx.orchestrator.verify_upload("V9", encode(document_image(1)), "new.png")
    assert "complete registration" in exc_info.value.message


def test_registered_document_deleted_from_disk(ctx):
    voter = _register(ctx)
    ctx.documents.delete(voter.id_document)

    with pytest.raises(InfrastructureError) as exc_info:
        ctx.orchestrator.verify_upload("V1", encode(document_image(1)), "new.png")
    assert exc_info.value.message == "Original ID document file not found"
    assert ctx.case_manager.get_statistics()["total"] == 0


# ----------------------------------------------------------------------
# Layers
# ----------------------------------------------------------------------

def test_layer1_ocr_match_stops_before_comparison(ctx, fake_ocr, monkeypatch):
    fake_ocr({
        "original.png": "EPIC No: ABC1234567",
        "resubmitted.jpg": "Voter ID ABC1234567\nsome noise",
    })

    def no_compare(*args, **kwargs):
        raise AssertionError("image comparison must not run after an OCR match")

    monkeypatch.setattr(ctx.orchestrator.comparator, "compare", no_compare)
    _register(ctx)

    outcome = ctx.orchestrator.verify_upload("V1", encode(noise_image(3), ".jpg"), "resubmitted.jpg")

    assert outcome.verified
    assert outcome.layer == 1
    assert outcome.method == "OCR"
    assert outcome.details["matched_on"] == "voter_id"
    assert outcome.details["voter_id_match"]

    voter = ctx.voters.find("V1")
    assert voter.verified
    assert voter.kyc_approved_by == "system_ocr"
    assert ctx.case_manager.get_statistics()["total"] == 0


def test_layer1_grouped_and_contiguous_aadhaar_match(ctx, fake_ocr):
    fake_ocr({
        "original.png": "Government of India\n1234 5678 9012",
        "resubmitted.png": "Aadhaar 123456789012",
    })
    _register(ctx)

    outcome = ctx.orchestrator.verify_upload("V1", encode(noise_image(9)), "resubmitted.png")

    assert outcome.verified
    assert outcome.layer == 1
    assert outcome.details["matched_on"] == "aadhaar"
    assert ctx.case_manager.get_statistics()["total"] == 0
    assert ctx.voters.find("V1").verification_status is VerificationStatus.VERIFIED


def test_layer2_exact_match(ctx, fake_ocr):
    calls = fake_ocr({})  # every OCR attempt fails
    data = encode(document_image(4))
    ctx.register_voter("V1", document=data, filename="original.png")

    outcome = ctx.orchestrator.verify_upload("V1", data, "again.png")

    assert len(calls) == 2
    assert outcome.verified
    assert outcome.layer == 2
    assert outcome.method == "EXACT"
    assert outcome.details["sha256_match"]
    assert ctx.voters.find("V1").kyc_approved_by == "system_exact"
    assert ctx.case_manager.get_statistics()["total"] == 0


def test_layer2_perceptual_match(ctx, fake_ocr):
    fake_ocr({})
    img = document_image(5)
    ctx.register_voter("V1", document=encode(img), filename="original.png")

    outcome = ctx.orchestrator.verify_upload("V1", encode(img, ".jpg", quality=95), "photo.jpg")

    assert outcome.verified
    assert outcome.layer == 2
    assert outcome.method == "PERCEPTUAL"
    assert ctx.voters.find("V1").kyc_approved_by == "system_perceptual"
    assert ctx.case_manager.get_statistics()["total"] == 0


def test_layer3_creates_case_then_admin_approves(ctx, fake_ocr):
    fake_ocr({"original.png": "1234 5678 9012"})
    _register(ctx)

    outcome = ctx.orchestrator.verify_upload("V1", encode(noise_image(6)), "unrelated.png")

    assert not outcome.verified
    assert outcome.pending_review
    assert outcome.method == "ADMIN_REVIEW"
    assert outcome.message == "Automatic verification failed. Case is pending admin review."
    assert outcome.details["ocr_results"]["step1"]["aadhaar"] == "1234 5678 9012"
    assert outcome.details["ocr_results"]["step2"]["aadhaar"] == "Not found"
    assert outcome.to_dict()["requires_admin_review"]

    case = ctx.case_manager.get_case(outcome.case_id)
    assert case.status is CaseStatus.PENDING
    assert case.ocr_results.step1.aadhaar == "123456789012"
    assert not case.image_comparison.passed

    voter = ctx.voters.find("V1")
    assert voter.verification_status is VerificationStatus.PENDING
    assert voter.pending_id_case_id == outcome.case_id

    # A second submission while the case is open is refused
    with pytest.raises(InvalidStateError):
        ctx.orchestrator.verify_upload("V1", encode(noise_image(7)), "again.png")
    assert ctx.case_manager.get_statistics()["total"] == 1

    ctx.approve_case(outcome.case_id, "admin1")
    voter = ctx.voters.find("V1")
    assert voter.verified
    assert voter.pending_id_case_id is None


def test_submit_runs_in_background(ctx, fake_ocr):
    fake_ocr({"original.png": "EPIC ABC1234567", "later.png": "EPIC ABC1234567"})
    _register(ctx)
    document = ctx.documents.save(encode(document_image(8)), "later.png")

    future = ctx.orchestrator.submit("V1", document)
    outcome = future.result(timeout=30)

    assert outcome.verified
    assert outcome.layer == 1


def _uploads(ctx):
    return sorted(p.name for p in ctx.documents.uploads_dir.iterdir())


def test_refused_uploads_are_removed(ctx, fake_ocr):
    fake_ocr({"original.png": "1234 5678 9012"})
    _register(ctx)
    ctx.register_voter("V9")
    outcome = ctx.orchestrator.verify_upload("V1", encode(noise_image(10)), "first.png")
    assert outcome.pending_review
    before = _uploads(ctx)
    assert len(before) == 2

    with pytest.raises(InvalidStateError):
        ctx.orchestrator.verify_upload("V1", encode(noise_image(11)), "refused.png")
    with pytest.raises(NotFoundError):
        ctx.orchestrator.verify_upload("ghost", encode(noise_image(12)), "ghost.png")
    with pytest.raises(ValidationError):
        ctx.orchestrator.verify_upload("V9", encode(noise_image(13)), "unregistered.png")

    assert _uploads(ctx) == before


def test_upload_removed_when_original_is_missing(ctx):
    voter = _register(ctx)
    ctx.documents.delete(voter.id_document)

    with pytest.raises(InfrastructureError):
        ctx.orchestrator.verify_upload("V1", encode(document_image(1)), "new.png")
    assert _uploads(ctx) == []
