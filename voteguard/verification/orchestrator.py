"""
3-layer ID verification.

Compares the ID document a voter registered with against the document
re-submitted at voting time:

    Layer 1: OCR both documents and match the 12-digit number, then the
             Voter ID number. A match verifies the voter.
    Layer 2: Exact (SHA-256) or perceptual image match verifies the voter.
    Layer 3: Open a case for admin review; the voter stays pending.

A failure inside layer 1 or 2 is not an error, it only moves verification on
to the next layer.
"""

from __future__ import annotations

import concurrent.futures
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union, Tuple

from .base import BaseComponent
from .case_manager import CaseManager
from .identifier_extractor import IdentifierExtractor
from .image_comparison import ImageComparator
from ..config import Config
from ..exceptions import ValidationError, NotFoundError, InvalidStateError
from ..logger import log_timing
from ..models import (
    IdentifierExtractionResult,
    ImageComparisonResult,
    OCRAudit,
    ExtractedNumbers,
    ImageComparisonAudit,
    StoredDocument,
    VerificationOutcome,
    VerificationStatus,
)
from ..persistence import DocumentStorage, VoterRepository
from ..utils.locks import KeyedLock
from ..utils.timing import utc_now_iso

DocumentInput = Union[StoredDocument, Path, str]

METHOD_OCR = "OCR"
METHOD_ADMIN_REVIEW = "ADMIN_REVIEW"


def match_identifiers(
    original: IdentifierExtractionResult,
    resubmitted: IdentifierExtractionResult,
) -> OCRAudit:
    """
    Compare the numbers read from both documents.

    The 12-digit number is checked before the Voter ID number. Nothing
    matches unless both extractions succeeded.
    """
    audit = OCRAudit(
        step1=ExtractedNumbers(aadhaar=original.aadhaar.number, voter_id=original.voter_id.number),
        step2=ExtractedNumbers(aadhaar=resubmitted.aadhaar.number, voter_id=resubmitted.voter_id.number),
    )
    if not (original.success and resubmitted.success):
        return audit

    audit.aadhaar_match = (
        original.aadhaar.found and resubmitted.aadhaar.found
        and original.aadhaar.number == resubmitted.aadhaar.number
    )
    audit.voter_id_match = (
        original.voter_id.found and resubmitted.voter_id.found
        and original.voter_id.number == resubmitted.voter_id.number
    )
    audit.matched = audit.aadhaar_match or audit.voter_id_match
    return audit


def _display_numbers(result: IdentifierExtractionResult) -> dict[str, str]:
    return {
        "aadhaar": result.aadhaar.formatted if result.aadhaar.found else "Not found",
        "voter_id": result.voter_id.number if result.voter_id.found else "Not found",
    }


class VerificationOrchestrator(BaseComponent):
    """
    Runs the three verification layers for one voter at a time.

    OCR of the two documents runs concurrently on a worker pool. `submit()`
    runs a whole verification in the background and returns a Future.
    """

    name = "voteguard.verification"

    def __init__(
        self,
        voters: VoterRepository,
        documents: DocumentStorage,
        case_manager: CaseManager,
        extractor: Optional[IdentifierExtractor] = None,
        comparator: Optional[ImageComparator] = None,
        locks: Optional[KeyedLock] = None,
        config: Optional[Config] = None,
    ):
        super().__init__(config)
        self.voters = voters
        self.documents = documents
        self.case_manager = case_manager
        self.extractor = extractor or IdentifierExtractor(self.config)
        self.comparator = comparator or ImageComparator(self.config)
        self.locks = locks or case_manager.locks

        workers = max(1, self.config.workers.max_workers)
        # Separate pools: a background verification waits on OCR jobs
        self._ocr_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="voteguard-ocr")
        self._job_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="voteguard-verify")

    def close(self) -> None:
        """Shut down the worker pools, cancelling queued work."""
        self._job_pool.shutdown(wait=True, cancel_futures=True)
        self._ocr_pool.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> "VerificationOrchestrator":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def verify_upload(self, voter_id: str, data: bytes, filename: str) -> VerificationOutcome:
        """
        Store an uploaded document, then verify it.

        A refused or failed verification deletes the stored upload.
        """
        self._require_voter_id(voter_id)
        document = self.documents.save(data, filename)
        try:
            return self.verify(voter_id, document)
        except Exception:
            self.documents.delete(document)
            raise

    def submit(self, voter_id: str, step2_document: DocumentInput) -> Future:
        """
        Run `verify` on the worker pool.

        The returned Future may be cancelled while it is still queued, for
        example when the client disconnects.
        """
        return self._job_pool.submit(self.verify, voter_id, step2_document)

    def verify(self, voter_id: str, step2_document: Optional[DocumentInput]) -> VerificationOutcome:
        """
        Verify a re-submitted ID document against the registered one.

        Raises:
            ValidationError: missing voter id or document, or no registered document
            NotFoundError: unknown voter
            InvalidStateError: voter already has a pending review case
            InfrastructureError: registered document file is missing
        """
        voter_id = self._require_voter_id(voter_id)
        step2 = self._as_document(step2_document)
        step2_path = Path(step2.path)

        with self.locks.hold(voter_id):
            voter = self.voters.find(voter_id)
            if voter is None:
                raise NotFoundError("Voter not found", resource="voter", identifier=voter_id)
            if voter.id_document is None:
                raise ValidationError(
                    "No original ID document found. Please complete registration first.",
                    field_name="id_document",
                )
            if voter.has_open_case:
                raise InvalidStateError(
                    "Verification is already pending admin review",
                    current_state=VerificationStatus.PENDING.value,
                    identifier=voter.pending_id_case_id,
                )
            original_path = self.documents.resolve(voter.id_document)

            self.log_info(f"Starting 3-layer verification for voter {voter_id}")

            # Layer 1: OCR
            original_ocr, step2_ocr = self._extract_pair(original_path, step2_path)
            ocr_audit = match_identifiers(original_ocr, step2_ocr)
            if ocr_audit.matched:
                matched_on = "aadhaar" if ocr_audit.aadhaar_match else "voter_id"
                self._mark_verified(voter_id, approved_by="system_ocr")
                self.log_info(f"Layer 1 passed: {matched_on} numbers match", voter_id=voter_id)
                return VerificationOutcome(
                    verified=True,
                    layer=1,
                    method=METHOD_OCR,
                    message="ID verified successfully via OCR matching",
                    details={
                        "ocr_matched": True,
                        "matched_on": matched_on,
                        "aadhaar_match": ocr_audit.aadhaar_match,
                        "voter_id_match": ocr_audit.voter_id_match,
                    },
                )
            self.log_info("Layer 1 failed: OCR numbers do not match or extraction failed")

            # Layer 2: image comparison
            comparison = self.comparator.compare(original_path, step2_path)
            if comparison.matched:
                method = comparison.match_method.value
                self._mark_verified(voter_id, approved_by=f"system_{method.lower()}")
                self.log_info(
                    f"Layer 2 passed: {method} match",
                    voter_id=voter_id,
                    similarity=f"{comparison.similarity:.1f}%",
                )
                return VerificationOutcome(
                    verified=True,
                    layer=2,
                    method=method,
                    message=f"ID verified successfully via {method} matching",
                    details={
                        "similarity": comparison.similarity,
                        "sha256_match": comparison.sha.identical,
                        "perceptual_similarity": (
                            comparison.perceptual.similarity if comparison.perceptual else 0.0
                        ),
                    },
                )
            self.log_info(f"Layer 2 failed: image similarity too low ({comparison.similarity:.1f}%)")

            # Layer 3: admin review
            case = self.case_manager.create_case(
                voter_id,
                original_document=voter.id_document,
                step2_document=step2,
                ocr_results=ocr_audit,
                image_comparison=self._comparison_audit(comparison),
            )
            return VerificationOutcome(
                verified=False,
                layer=3,
                method=METHOD_ADMIN_REVIEW,
                message="Automatic verification failed. Case is pending admin review.",
                case_id=case.case_id,
                details={
                    "ocr_results": {
                        "step1": _display_numbers(original_ocr),
                        "step2": _display_numbers(step2_ocr),
                        "matched": ocr_audit.matched,
                    },
                    "image_comparison": {
                        "similarity": comparison.similarity,
                        "method": comparison.match_method.value if comparison.match_method else None,
                        "error": comparison.error,
                    },
                },
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_voter_id(voter_id: Optional[str]) -> str:
        voter_id = str(voter_id or "").strip()
        if not voter_id:
            raise ValidationError("Voter ID is required", field_name="voter_id")
        return voter_id

    @staticmethod
    def _as_document(document: Optional[DocumentInput]) -> StoredDocument:
        if document is None or document == "":
            raise ValidationError("ID image is required", field_name="image")
        if not isinstance(document, StoredDocument):
            path = Path(document)
            document = StoredDocument(filename=path.name, path=str(path), uploaded_at=utc_now_iso())
        if not document.path or not Path(document.path).is_file():
            raise ValidationError("ID image is required", field_name="image", field_value=document.path)
        return document

    def _extract_pair(
        self, original_path: Path, step2_path: Path
    ) -> Tuple[IdentifierExtractionResult, IdentifierExtractionResult]:
        started = time.perf_counter()
        futures = [
            self._ocr_pool.submit(self.extractor.extract, original_path),
            self._ocr_pool.submit(self.extractor.extract, step2_path),
        ]
        results = self._ocr_result(futures[0]), self._ocr_result(futures[1])
        log_timing(self.logger, "OCR of both documents", time.perf_counter() - started)
        return results

    def _ocr_result(self, future: Future) -> IdentifierExtractionResult:
        timeout = self.config.workers.ocr_timeout_sec
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            self.log_warning("OCR timed out", timeout=f"{timeout}s")
            return IdentifierExtractionResult.failed("OCR timed out")
        except Exception as e:
            self.log_error("OCR extraction error", error=e)
            return IdentifierExtractionResult.failed(str(e) or type(e).__name__)

    def _mark_verified(self, voter_id: str, approved_by: str) -> None:
        self.voters.update(
            voter_id,
            verification_status=VerificationStatus.VERIFIED,
            kyc_approved_at=utc_now_iso(),
            kyc_approved_by=approved_by,
        )

    @staticmethod
    def _comparison_audit(comparison: ImageComparisonResult) -> ImageComparisonAudit:
        return ImageComparisonAudit(
            sha_match=comparison.sha.identical,
            similarity=comparison.similarity,
            passed=comparison.matched,
            method=comparison.match_method.value if comparison.match_method else None,
            error=comparison.error,
        )
