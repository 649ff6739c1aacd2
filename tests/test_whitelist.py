import numpy as np
import pytest

from voteguard.exceptions import NotFoundError, ValidationError
from voteguard.verification import WhitelistChecker
from voteguard.verification.whitelist import matches_allowed_patterns, split_patterns

from conftest import document_image, encode


@pytest.fixture
def checker(config, tmp_path):
    return WhitelistChecker(tmp_path / "templates", config=config)


@pytest.fixture
def template(checker):
    data = encode(document_image(1))
    checker.add_template(data, "aadhaar_front.png")
    return data


def test_empty_whitelist(checker):
    decision = checker.is_image_allowed(encode(document_image(1)))
    assert not decision.allowed
    assert decision.reason == "WHITELIST_EMPTY"


def test_same_image_is_allowed(checker, template):
    decision = checker.is_image_allowed(template)
    assert decision.allowed
    assert decision.distance == 0
    assert decision.best_match.endswith("aadhaar_front.png")
    assert decision.threshold == 10


def test_blank_image_is_not_allowed(checker, template):
    blank = encode(np.zeros((300, 480, 3), dtype=np.uint8))
    decision = checker.is_image_allowed(blank)
    assert not decision.allowed
    assert decision.distance > 10


def test_pattern_must_match_best_template(checker, template):
    decision = checker.is_image_allowed(template, allowed_patterns="voter, epic")
    assert not decision.allowed
    assert decision.reason == "NO_ALLOWED_PATTERN_MATCH"
    assert decision.allowed_patterns == ["voter", "epic"]

    assert checker.is_image_allowed(template, allowed_patterns=["AADHAAR"]).allowed


def test_regex_pattern(checker, template):
    assert checker.is_image_allowed(template, allowed_patterns="/-aadhaar_\\w+\\.png$/i").allowed
    assert not checker.is_image_allowed(template, allowed_patterns="/^aadhaar/").allowed


def test_stored_patterns_by_id_type(checker, template):
    assert checker.set_patterns("voter_id", ["epic"]) == ["epic"]
    assert checker.get_patterns("voter_id") == ["epic"]
    assert checker.get_patterns() == {"voter_id": ["epic"]}

    decision = checker.is_image_allowed(template, id_type="voter_id")
    assert decision.reason == "NO_ALLOWED_PATTERN_MATCH"

    # Explicit patterns take precedence over stored ones
    assert checker.is_image_allowed(template, allowed_patterns="aadhaar", id_type="voter_id").allowed


def test_set_patterns_requires_input(checker):
    with pytest.raises(ValidationError):
        checker.set_patterns("", ["x"])
    with pytest.raises(ValidationError):
        checker.set_patterns("aadhaar", " , ")


def test_unhashable_upload_is_an_error(checker, template):
    decision = checker.is_image_allowed(b"not an image")
    assert not decision.allowed
    assert decision.error


def test_add_and_remove_templates(checker, template):
    assert len(checker.list_templates()) == 1

    with pytest.raises(ValidationError):
        checker.add_template(b"", "x.png")
    with pytest.raises(ValidationError):
        checker.add_template(b"junk", "x.png")

    filename = checker.list_templates()[0].filename
    with pytest.raises(NotFoundError):
        checker.remove_template("missing.png")

    checker.remove_template(filename)
    assert checker.list_templates() == []


def test_load_skips_unreadable_files(checker, template):
    (checker.templates_dir / "broken.png").write_bytes(b"garbage")
    assert checker.load() == 1


def test_pattern_helpers():
    assert split_patterns("a, ,b") == ["a", "b"]
    assert split_patterns(None) == []
    assert matches_allowed_patterns("a.png", [])
    assert matches_allowed_patterns("a.png", ["/(/", "A.P"])
    assert not matches_allowed_patterns("a.png", ["/(/"])
