"""
Application wiring.

Builds the store, repositories, document storage and services from one
Config and shares a single per-voter lock table between them, so case
decisions, verification and liveness reports for a voter never interleave.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import Config, get_config
from .exceptions import ValidationError, InvalidStateError
from .logger import get_logger
from .models import Voter, VerificationCase
from .persistence import (
    JSONStore,
    DocumentStorage,
    JSONVoterRepository,
    JSONCaseRepository,
    JSONInvalidVoteRepository,
)
from .utils.locks import KeyedLock
from .verification import CaseManager, VerificationOrchestrator, WhitelistChecker
from .liveness import LivenessService

logger = get_logger(__name__)


@dataclass
class AppContext:
    config: Config
    store: JSONStore
    locks: KeyedLock
    voters: JSONVoterRepository
    cases: JSONCaseRepository
    invalid_votes: JSONInvalidVoteRepository
    documents: DocumentStorage
    case_manager: CaseManager
    orchestrator: VerificationOrchestrator
    liveness: LivenessService
    whitelist: WhitelistChecker

    @classmethod
    def build(cls, config: Optional[Config] = None, in_memory: bool = False) -> "AppContext":
        """
        Wire all components.

        Args:
            config: Configuration (default: global config)
            in_memory: Keep the database in memory only (tests, dry runs)

        Raises:
            ConfigurationError: invalid settings
        """
        config = config or get_config()
        config.validate()
        store = JSONStore(None if in_memory else config.db_path)
        locks = KeyedLock()
        voters = JSONVoterRepository(store)
        cases = JSONCaseRepository(store)
        invalid_votes = JSONInvalidVoteRepository(store)
        documents = DocumentStorage(config.uploads_dir)

        case_manager = CaseManager(store, voters, cases, locks=locks, config=config)
        orchestrator = VerificationOrchestrator(
            voters, documents, case_manager, locks=locks, config=config
        )
        liveness = LivenessService(store, voters, invalid_votes, locks=locks, config=config)
        whitelist = WhitelistChecker(config.whitelist_dir, config=config)

        logger.debug(f"Context built (db={'memory' if in_memory else config.db_path})")
        return cls(
            config=config,
            store=store,
            locks=locks,
            voters=voters,
            cases=cases,
            invalid_votes=invalid_votes,
            documents=documents,
            case_manager=case_manager,
            orchestrator=orchestrator,
            liveness=liveness,
            whitelist=whitelist,
        )

    def close(self) -> None:
        self.orchestrator.close()

    def __enter__(self) -> "AppContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Registration and admin boundary
    # ------------------------------------------------------------------

    def register_voter(
        self,
        voter_id: str,
        name: str = "",
        document: Optional[bytes] = None,
        filename: str = "id_document",
    ) -> Voter:
        """
        Create a voter, optionally with the registration ID document.

        Raises:
            ValidationError: missing voter id
            InvalidStateError: voter already exists
        """
        voter_id = str(voter_id or "").strip()
        if not voter_id:
            raise ValidationError("Voter ID is required", field_name="voter_id")

        with self.locks.hold(voter_id):
            if self.voters.find(voter_id) is not None:
                raise InvalidStateError("Voter already registered", identifier=voter_id)
            stored = self.documents.save(document, filename) if document is not None else None
            voter = self.voters.save(Voter(voter_id=voter_id, name=name, id_document=stored))

        logger.info(f"Registered voter {voter_id}")
        return voter

    def approve_case(self, case_id: str, admin_id: str, reason: Optional[str] = None) -> VerificationCase:
        return self.case_manager.approve(case_id, admin_id, reason)

    def reject_case(self, case_id: str, admin_id: str, reason: str) -> VerificationCase:
        return self.case_manager.reject(case_id, admin_id, reason)
