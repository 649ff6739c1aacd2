import json

import pytest

from voteguard.exceptions import DataPersistenceError, InfrastructureError, NotFoundError, ValidationError
from voteguard.models import InvalidVote, StoredDocument, Voter, ViolationType
from voteguard.persistence import (
    DocumentStorage,
    JSONStore,
    JSONInvalidVoteRepository,
    JSONVoterRepository,
)
from voteguard.utils.locks import KeyedLock


def test_keyed_lock_is_reentrant_and_drops_idle_keys():
    locks = KeyedLock()
    with locks.hold("V1"):
        with locks.hold("V1"):
            assert len(locks) == 1
        with locks.hold("V2"):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0

    with pytest.raises(RuntimeError):
        with locks.hold("V1"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_transaction_rolls_back_on_error():
    store = JSONStore()
    voters = JSONVoterRepository(store)
    voters.save(Voter(voter_id="V1", name="Before"))

    with pytest.raises(RuntimeError):
        with store.transaction():
            voters.update("V1", name="After")
            voters.save(Voter(voter_id="V2"))
            raise RuntimeError("boom")

    assert voters.find("V1").name == "Before"
    assert voters.find("V2") is None


def test_nested_transaction_joins_outer(tmp_path):
    db = tmp_path / "db.json"
    store = JSONStore(db)
    voters = JSONVoterRepository(store)

    with pytest.raises(ValueError):
        with store.transaction():
            voters.save(Voter(voter_id="V1"))
            with store.transaction():
                voters.save(Voter(voter_id="V2"))
            raise ValueError("outer fails")

    assert voters.list_all() == []
    assert not db.exists()


def test_store_persists_and_reloads(tmp_path):
    db = tmp_path / "db.json"
    store = JSONStore(db)
    JSONVoterRepository(store).save(Voter(voter_id="V1", name="Saved"))
    JSONInvalidVoteRepository(store).add(
        InvalidVote(
            invalid_vote_id="iv1",
            voter_id="V1",
            candidate_id="C1",
            violation_type=ViolationType.MULTIPLE_FACES,
            violation_details="Detected multiple people 2 times during voting.",
            timestamp="2024-01-01T00:00:00+00:00",
        )
    )

    reloaded = JSONStore(db)
    assert JSONVoterRepository(reloaded).find("V1").name == "Saved"
    records = JSONInvalidVoteRepository(reloaded).list_by_voter("V1")
    assert len(records) == 1
    assert records[0].violation_type is ViolationType.MULTIPLE_FACES
    assert json.loads(db.read_text(encoding="utf-8"))["voters"]["V1"]["name"] == "Saved"


def test_corrupt_database_file(tmp_path):
    db = tmp_path / "db.json"
    db.write_text("{not json", encoding="utf-8")
    with pytest.raises(DataPersistenceError):
        JSONStore(db)


def test_returned_records_are_copies():
    store = JSONStore()
    voters = JSONVoterRepository(store)
    voters.save(Voter(voter_id="V1"))

    voter = voters.find("V1")
    voter.name = "changed without save"
    assert voters.find("V1").name == ""


def test_update_unknown_voter():
    voters = JSONVoterRepository(JSONStore())
    with pytest.raises(NotFoundError):
        voters.update("missing", name="x")
    with pytest.raises(ValueError):
        voters.update("missing", not_a_field=1)


def test_append_only_collection_rejects_keyed_append():
    store = JSONStore()
    with pytest.raises(ValueError):
        store.append("voters", {"voter_id": "x"})


def test_document_storage_unique_names(tmp_path):
    storage = DocumentStorage(tmp_path / "uploads")
    first = storage.save(b"first", "../../etc/passwd")
    second = storage.save(b"second", "../../etc/passwd")

    assert first.filename != second.filename
    assert "/" not in first.filename
    assert storage.resolve(first).read_bytes() == b"first"
    assert storage.resolve(second).read_bytes() == b"second"
    assert storage.exists(first)


def test_document_storage_rejects_empty_upload(tmp_path):
    storage = DocumentStorage(tmp_path / "uploads")
    with pytest.raises(ValidationError) as exc_info:
        storage.save(b"", "id.png")
    assert exc_info.value.http_status == 400


def test_document_storage_missing_file(tmp_path):
    storage = DocumentStorage(tmp_path / "uploads")
    ghost = StoredDocument(filename="ghost.png", path=str(tmp_path / "uploads" / "ghost.png"))

    assert not storage.exists(ghost)
    with pytest.raises(InfrastructureError) as exc_info:
        storage.resolve(ghost)
    assert exc_info.value.http_status == 500
