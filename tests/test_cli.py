from voteguard.cli import main
from voteguard.context import AppContext

from conftest import document_image, write_image


def _reopen(config):
    return AppContext.build(config)


def test_register_and_duplicate(config, tmp_path):
    document = write_image(tmp_path / "id.png", document_image(1))

    assert main(["register", "V1", "--name", "A Voter", "--document", str(document)]) == 0
    assert main(["register", "V1"]) == 1

    with _reopen(config) as ctx:
        voter = ctx.voters.find("V1")
        assert voter.name == "A Voter"
        assert ctx.documents.exists(voter.id_document)


def test_missing_input_file_is_usage_error(config, tmp_path):
    assert main(["register", "V1"]) == 0
    assert main(["verify", "V1", str(tmp_path / "missing.jpg")]) == 2


def test_report_count_invalidates(config):
    assert main(["register", "V1"]) == 0
    assert main(["report-count", "V1", "1", "2", "3", "--candidate", "C1", "--start", "1000"]) == 0

    with _reopen(config) as ctx:
        records = ctx.invalid_votes.list_by_voter("V1")
        assert len(records) == 1
        assert records[0].candidate_id == "C1"
        assert ctx.voters.find("V1").is_blocked


def test_reject_unknown_case(config):
    assert main(["reject", "nope", "--admin", "a1", "--reason", "bad"]) == 1


def test_stats_and_cases_on_empty_database(config):
    assert main(["stats"]) == 0
    assert main(["--json", "cases", "--status", "pending"]) == 0


def test_whitelist_check_exit_code(config, tmp_path):
    template = write_image(tmp_path / "aadhaar.png", document_image(2))

    assert main(["whitelist-check", str(template)]) == 1
    assert main(["whitelist-add", str(template)]) == 0
    assert main(["whitelist-check", str(template)]) == 0
