import shutil

from voteguard.models import MatchMethod
from voteguard.utils.hashing import perceptual_hash, similarity_percent
from voteguard.verification import ImageComparator

from conftest import document_image, encode, noise_image, write_image


def test_identical_files_are_exact_match(config, tmp_path):
    original = write_image(tmp_path / "a.png", document_image(1))
    copy = tmp_path / "b.png"
    shutil.copy(original, copy)

    result = ImageComparator(config).compare(original, copy)

    assert result.matched
    assert result.match_method is MatchMethod.EXACT
    assert result.similarity == 100.0
    assert result.sha.identical
    assert result.perceptual is None


def test_file_compared_with_itself(config, tmp_path):
    path = write_image(tmp_path / "a.jpg", document_image(2))
    result = ImageComparator(config).compare(path, path)
    assert result.matched
    assert result.match_method is MatchMethod.EXACT


def test_reencoded_copy_is_perceptual_match(config, tmp_path):
    img = document_image(5)
    original = write_image(tmp_path / "original.png", img)
    reencoded = write_image(tmp_path / "reencoded.jpg", img, quality=95)

    result = ImageComparator(config).compare(original, reencoded)

    assert not result.sha.identical
    assert result.matched
    assert result.match_method is MatchMethod.PERCEPTUAL
    assert result.similarity >= 90
    assert result.perceptual.bit_length == 64


def test_reencoded_copy_is_closer_than_unrelated_image(config, tmp_path):
    img = document_image(6)
    original = write_image(tmp_path / "original.png", img)
    reencoded = write_image(tmp_path / "reencoded.jpg", img, quality=95)
    unrelated = write_image(tmp_path / "noise.png", noise_image(7))

    comparator = ImageComparator(config)
    near = comparator.compare(original, reencoded)
    far = comparator.compare(original, unrelated)

    assert near.similarity > far.similarity
    assert not far.matched
    assert far.match_method is None


def test_threshold_override(config, tmp_path):
    a = write_image(tmp_path / "a.png", document_image(8))
    b = write_image(tmp_path / "b.png", noise_image(9))

    result = ImageComparator(config).compare(a, b, perceptual_threshold=0)
    assert result.matched
    assert result.match_method is MatchMethod.PERCEPTUAL


def test_corrupt_file_does_not_raise(config, tmp_path):
    good = write_image(tmp_path / "good.png", document_image(10))
    corrupt = tmp_path / "corrupt.png"
    corrupt.write_bytes(b"\x89PNG\r\n\x1a\n broken")

    result = ImageComparator(config).compare(good, corrupt)
    assert not result.matched
    assert result.error
    assert result.match_method is None


def test_missing_file_does_not_raise(config, tmp_path):
    good = write_image(tmp_path / "good.png", document_image(11))
    result = ImageComparator(config).compare(good, tmp_path / "nope.png")
    assert not result.matched
    assert "SHA-256" in result.error


def test_similarity_percent_of_same_hash():
    img = document_image(12)
    h = perceptual_hash(encode(img))
    assert similarity_percent(h, h) == 100.0


def test_similarity_rises_with_jpeg_quality():
    img = document_image(5)
    original = perceptual_hash(encode(img))

    similarities = [
        similarity_percent(original, perceptual_hash(encode(img, ".jpg", quality=q)))
        for q in (50, 70, 90, 100)
    ]

    assert similarities == sorted(similarities)
    assert similarities[-1] >= 90
    assert similarity_percent(original, perceptual_hash(encode(img))) == 100.0
