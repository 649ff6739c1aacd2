"""
Repository pattern for voter, case and invalid-vote persistence.

Defines abstract interfaces and JSON-store implementations. The
interfaces are database-agnostic so a SQL backend can be swapped in.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import fields
from typing import Optional, List, Any

from ..exceptions import NotFoundError
from ..models import Voter, VerificationCase, CaseStatus, InvalidVote
from .json_store import JSONStore


class VoterRepository(ABC):
    """Voter store: find by id and partial update."""

    @abstractmethod
    def find(self, voter_id: str) -> Optional[Voter]:
        """Return the voter, or None if absent."""

    @abstractmethod
    def save(self, voter: Voter) -> Voter:
        """Insert or replace a voter record."""

    @abstractmethod
    def update(self, voter_id: str, **changes: Any) -> Voter:
        """
        Apply field changes to an existing voter.

        Raises:
            NotFoundError: voter does not exist
        """

    @abstractmethod
    def list_all(self) -> List[Voter]:
        """All voters."""


class CaseRepository(ABC):
    """Verification case store: create, find by id, in-place status update."""

    @abstractmethod
    def add(self, case: VerificationCase) -> VerificationCase:
        pass

    @abstractmethod
    def get(self, case_id: str) -> Optional[VerificationCase]:
        pass

    @abstractmethod
    def update(self, case: VerificationCase) -> VerificationCase:
        pass

    @abstractmethod
    def list_all(self) -> List[VerificationCase]:
        pass

    def list_by_status(self, status: CaseStatus) -> List[VerificationCase]:
        return [c for c in self.list_all() if c.status is status]

    def list_by_voter(self, voter_id: str) -> List[VerificationCase]:
        return [c for c in self.list_all() if c.voter_id == voter_id]


class InvalidVoteRepository(ABC):
    """Append-only invalid vote store."""

    @abstractmethod
    def add(self, record: InvalidVote) -> InvalidVote:
        pass

    @abstractmethod
    def list_all(self) -> List[InvalidVote]:
        pass

    def list_by_voter(self, voter_id: str) -> List[InvalidVote]:
        return [r for r in self.list_all() if r.voter_id == voter_id]


class JSONVoterRepository(VoterRepository):
    """Voters kept in the `voters` collection of a JSONStore."""

    collection = "voters"

    def __init__(self, store: JSONStore):
        self.store = store
        self._field_names = {f.name for f in fields(Voter)}

    def find(self, voter_id: str) -> Optional[Voter]:
        data = self.store.get(self.collection, str(voter_id))
        return Voter.from_dict(data) if data else None

    def save(self, voter: Voter) -> Voter:
        self.store.put(self.collection, voter.voter_id, voter.to_dict())
        return voter

    def update(self, voter_id: str, **changes: Any) -> Voter:
        unknown = set(changes) - self._field_names
        if unknown:
            raise ValueError(f"Unknown voter fields: {sorted(unknown)}")

        with self.store.transaction():
            voter = self.find(voter_id)
            if voter is None:
                raise NotFoundError("Voter not found", resource="voter", identifier=voter_id)
            for name, value in changes.items():
                setattr(voter, name, value)
            # Re-run normalisation (enum coercion) after assignment
            voter.__post_init__()
            self.save(voter)
        return voter

    def list_all(self) -> List[Voter]:
        return [Voter.from_dict(d) for d in self.store.values(self.collection)]


class JSONCaseRepository(CaseRepository):
    """Verification cases kept in the `verification_cases` collection."""

    collection = "verification_cases"

    def __init__(self, store: JSONStore):
        self.store = store

    def add(self, case: VerificationCase) -> VerificationCase:
        with self.store.transaction() as data:
            if case.case_id in data[self.collection]:
                raise ValueError(f"Duplicate case id {case.case_id}")
            self.store.put(self.collection, case.case_id, case.to_dict())
        return case

    def get(self, case_id: str) -> Optional[VerificationCase]:
        data = self.store.get(self.collection, str(case_id))
        return VerificationCase.from_dict(data) if data else None

    def update(self, case: VerificationCase) -> VerificationCase:
        with self.store.transaction() as data:
            if case.case_id not in data[self.collection]:
                raise NotFoundError("Case not found", resource="verification_case", identifier=case.case_id)
            self.store.put(self.collection, case.case_id, case.to_dict())
        return case

    def list_all(self) -> List[VerificationCase]:
        cases = [VerificationCase.from_dict(d) for d in self.store.values(self.collection)]
        return sorted(cases, key=lambda c: c.created_at)


class JSONInvalidVoteRepository(InvalidVoteRepository):
    """Invalid votes kept in the append-only `invalid_votes` list."""

    collection = "invalid_votes"

    def __init__(self, store: JSONStore):
        self.store = store

    def add(self, record: InvalidVote) -> InvalidVote:
        self.store.append(self.collection, record.to_dict())
        return record

    def list_all(self) -> List[InvalidVote]:
        return [InvalidVote.from_dict(d) for d in self.store.values(self.collection)]
