"""
Verification case management for admin review.

A case is opened when both automatic verification layers fail and is
decided exactly once by an admin. Every case change and the matching voter
change are written in one store transaction while the voter's lock is held.
"""

from __future__ import annotations

import uuid
from typing import Optional, List

from .base import BaseComponent
from ..config import Config
from ..exceptions import NotFoundError, InvalidStateError, ValidationError
from ..models import (
    VerificationCase,
    CaseStatus,
    AdminReview,
    OCRAudit,
    ImageComparisonAudit,
    StoredDocument,
    VerificationStatus,
)
from ..persistence import JSONStore, VoterRepository, CaseRepository
from ..utils.locks import KeyedLock
from ..utils.timing import utc_now_iso

DEFAULT_APPROVAL_REASON = "Approved by admin"


class CaseManager(BaseComponent):
    """Creates verification cases and applies admin decisions."""

    name = "voteguard.cases"

    def __init__(
        self,
        store: JSONStore,
        voters: VoterRepository,
        cases: CaseRepository,
        locks: Optional[KeyedLock] = None,
        config: Optional[Config] = None,
    ):
        super().__init__(config)
        self.store = store
        self.voters = voters
        self.cases = cases
        self.locks = locks or KeyedLock()

    def create_case(
        self,
        voter_id: str,
        original_document: StoredDocument,
        step2_document: StoredDocument,
        ocr_results: Optional[OCRAudit] = None,
        image_comparison: Optional[ImageComparisonAudit] = None,
    ) -> VerificationCase:
        """
        Open a pending review case and link it to the voter.

        The voter must not already have an open case.

        Raises:
            NotFoundError: voter does not exist
            InvalidStateError: voter already has a pending case
        """
        with self.locks.hold(voter_id), self.store.transaction():
            voter = self.voters.find(voter_id)
            if voter is None:
                raise NotFoundError("Voter not found", resource="voter", identifier=voter_id)
            if voter.has_open_case:
                raise InvalidStateError(
                    "Voter already has a pending verification case",
                    current_state=VerificationStatus.PENDING.value,
                    identifier=voter.pending_id_case_id,
                )

            now = utc_now_iso()
            case = VerificationCase(
                case_id=str(uuid.uuid4()),
                voter_id=voter.voter_id,
                original_id_document=original_document,
                step2_id_document=step2_document,
                status=CaseStatus.PENDING,
                ocr_results=ocr_results or OCRAudit(),
                image_comparison=image_comparison or ImageComparisonAudit(),
                created_at=now,
                updated_at=now,
            )
            self.cases.add(case)
            self.voters.update(
                voter.voter_id,
                verification_status=VerificationStatus.PENDING,
                pending_id_case_id=case.case_id,
            )

        self.log_info("Verification case created", case_id=case.case_id, voter_id=voter_id)
        return case

    def get_case(self, case_id: str) -> VerificationCase:
        case = self.cases.get(case_id)
        if case is None:
            raise NotFoundError("Case not found", resource="verification_case", identifier=case_id)
        return case

    def list_pending(self) -> List[VerificationCase]:
        return self.cases.list_by_status(CaseStatus.PENDING)

    def cases_for_voter(self, voter_id: str) -> List[VerificationCase]:
        return self.cases.list_by_voter(voter_id)

    def _decide(
        self,
        case_id: str,
        admin_id: str,
        decision: CaseStatus,
        reason: Optional[str],
    ) -> VerificationCase:
        voter_id = self.get_case(case_id).voter_id

        with self.locks.hold(voter_id), self.store.transaction():
            # Re-read under the lock; another admin may have decided meanwhile
            case = self.get_case(case_id)
            if not case.is_pending:
                raise InvalidStateError(
                    "Case is not pending", current_state=case.status.value, identifier=case_id
                )
            if decision is CaseStatus.REJECTED and not (reason or "").strip():
                raise ValidationError("Rejection reason is required", field_name="reason")

            now = utc_now_iso()
            case.status = decision
            case.admin_review = AdminReview(
                reviewed_by=admin_id,
                reviewed_at=now,
                decision=decision,
                reason=reason,
            )
            case.updated_at = now
            self.cases.update(case)

            voter = self.voters.find(voter_id)
            if voter is None:
                self.log_warning("Case refers to a missing voter", case_id=case_id, voter_id=voter_id)
            elif decision is CaseStatus.APPROVED:
                self.voters.update(
                    voter_id,
                    verification_status=VerificationStatus.VERIFIED,
                    pending_id_case_id=None,
                    kyc_approved_at=now,
                    kyc_approved_by=admin_id,
                )
            else:
                self.voters.update(
                    voter_id,
                    verification_status=VerificationStatus.REJECTED,
                    pending_id_case_id=None,
                    kyc_rejected_at=now,
                    kyc_rejection_reason=reason,
                )

        return case

    def approve(self, case_id: str, admin_id: str, reason: Optional[str] = None) -> VerificationCase:
        """
        Approve a pending case; the voter becomes verified.

        Raises:
            NotFoundError: unknown case
            InvalidStateError: case already decided
        """
        case = self._decide(case_id, admin_id, CaseStatus.APPROVED, reason or DEFAULT_APPROVAL_REASON)
        self.log_info(f"Case {case_id} approved by {admin_id}")
        return case

    def reject(self, case_id: str, admin_id: str, reason: str) -> VerificationCase:
        """
        Reject a pending case; the voter becomes rejected.

        Raises:
            NotFoundError: unknown case
            InvalidStateError: case already decided
            ValidationError: empty reason
        """
        case = self._decide(case_id, admin_id, CaseStatus.REJECTED, (reason or "").strip())
        self.log_info(f"Case {case_id} rejected by {admin_id}: {reason}")
        return case

    def get_statistics(self) -> dict[str, int]:
        """Case counts by status."""
        cases = self.cases.list_all()
        stats = {"total": len(cases)}
        for status in CaseStatus:
            stats[status.value] = sum(1 for c in cases if c.status is status)
        return stats
