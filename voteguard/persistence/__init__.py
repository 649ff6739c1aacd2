"""
Data persistence layer.

Provides abstract repository pattern and JSON-backed implementations,
plus filesystem storage for uploaded documents.
"""

from .json_store import JSONStore
from .repository import (
    VoterRepository,
    CaseRepository,
    InvalidVoteRepository,
    JSONVoterRepository,
    JSONCaseRepository,
    JSONInvalidVoteRepository,
)
from .document_storage import DocumentStorage

__all__ = [
    "JSONStore",
    "VoterRepository",
    "CaseRepository",
    "InvalidVoteRepository",
    "JSONVoterRepository",
    "JSONCaseRepository",
    "JSONInvalidVoteRepository",
    "DocumentStorage",
]
