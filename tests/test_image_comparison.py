import hashlib

import pytest

from voting_guard.services.image_comparison import (
    EXACT_MATCH_CONFIDENCE,
    RECOMMEND_DIFFERENT,
    RECOMMEND_EXACT,
    RECOMMEND_FAILED,
    RECOMMEND_SIMILAR,
    HashLengthMismatchError,
    ImageDecodeError,
    batch_compare_images,
    calculate_buffer_hash,
    calculate_file_hash,
    calculate_perceptual_hash,
    compare_images,
    comparison_summary,
    hamming_distance,
    hamming_distance_to_similarity,
    is_similar,
)
from tests.conftest import encode, gradient_image


@pytest.fixture
def horizontal_png():
    return encode(gradient_image())


@pytest.fixture
def horizontal_bmp():
    return encode(gradient_image(), ".bmp")


@pytest.fixture
def vertical_png():
    return encode(gradient_image(vertical=True))


class TestHashes:

    def test_buffer_hash_is_sha256(self):
        assert calculate_buffer_hash(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_file_hash_matches_buffer_hash(self, tmp_path, horizontal_png):
        path = tmp_path / "doc.png"
        path.write_bytes(horizontal_png)
        assert calculate_file_hash(path) == calculate_buffer_hash(horizontal_png)

    def test_perceptual_hash_of_gradient(self, horizontal_png, vertical_png):
        assert calculate_perceptual_hash(horizontal_png) == "00001111" * 8
        assert calculate_perceptual_hash(vertical_png) == "0" * 32 + "1" * 32

    def test_perceptual_hash_ignores_encoding(self, horizontal_png, horizontal_bmp):
        assert horizontal_png != horizontal_bmp
        assert calculate_perceptual_hash(horizontal_png) == calculate_perceptual_hash(horizontal_bmp)

    def test_perceptual_hash_survives_resize(self):
        large = encode(gradient_image(size=128), ".jpg")
        assert calculate_perceptual_hash(large) == "00001111" * 8

    def test_perceptual_hash_rejects_garbage(self):
        with pytest.raises(ImageDecodeError):
            calculate_perceptual_hash(b"definitely not an image")


class TestHamming:

    def test_distance(self):
        assert hamming_distance("0000", "0000") == 0
        assert hamming_distance("0101", "1100") == 2

    def test_distance_is_symmetric(self, horizontal_png, vertical_png):
        first = calculate_perceptual_hash(horizontal_png)
        second = calculate_perceptual_hash(vertical_png)
        assert hamming_distance(first, second) == hamming_distance(second, first) == 32

    def test_length_mismatch(self):
        with pytest.raises(HashLengthMismatchError):
            hamming_distance("0101", "01")

    @pytest.mark.parametrize("distance, length, expected", [
        (0, 64, 100),
        (64, 64, 0),
        (9, 64, 86),
        (10, 64, 84),
        (32, 64, 50),
        (1, 8, 88),
        (3, 8, 63),
    ])
    def test_similarity_rounds_half_up(self, distance, length, expected):
        assert hamming_distance_to_similarity(distance, length) == expected

    def test_threshold_is_inclusive(self):
        assert is_similar(85)
        assert not is_similar(84)


class TestCompareImages:

    def test_identical_bytes_are_exact_match(self, horizontal_png):
        result = compare_images(horizontal_png, bytes(horizontal_png))

        assert result.success
        assert result.is_exact_match
        assert result.is_match
        assert result.similarity == 100
        assert result.method == "exact_file_hash"
        assert result.confidence == EXACT_MATCH_CONFIDENCE
        assert result.recommendation == RECOMMEND_EXACT
        assert result.hamming_distance is None

    def test_identical_files_by_path(self, tmp_path, horizontal_png):
        first = tmp_path / "a.png"
        second = tmp_path / "b.png"
        first.write_bytes(horizontal_png)
        second.write_bytes(horizontal_png)

        result = compare_images(str(first), str(second))
        assert result.is_exact_match

    def test_reencoded_document_is_perceptual_match(self, horizontal_png, horizontal_bmp):
        result = compare_images(horizontal_png, horizontal_bmp)

        assert result.success
        assert not result.is_exact_match
        assert result.is_match
        assert result.method == "perceptual_hash"
        assert result.similarity == 100
        assert result.confidence == result.similarity
        assert result.hamming_distance == 0
        assert result.recommendation == RECOMMEND_SIMILAR
        assert result.details["image1Dimensions"] == "64x64"
        assert result.details["format1"] == "png"
        assert result.details["format2"] == "bmp"

    def test_different_documents_need_review(self, horizontal_png, vertical_png):
        result = compare_images(horizontal_png, vertical_png)

        assert result.success
        assert not result.is_match
        assert result.hamming_distance == 32
        assert result.similarity == 50
        assert result.recommendation == RECOMMEND_DIFFERENT

    def test_custom_threshold(self, horizontal_png, vertical_png):
        result = compare_images(horizontal_png, vertical_png, threshold=50)
        assert result.is_match

    def test_unreadable_image_is_reported_not_raised(self, horizontal_png):
        result = compare_images(horizontal_png, b"not an image")

        assert not result.success
        assert not result.is_match
        assert result.similarity == 0
        assert result.method is None
        assert result.recommendation == RECOMMEND_FAILED
        assert result.error

    def test_missing_file_is_reported(self, tmp_path, horizontal_png):
        result = compare_images(str(tmp_path / "missing.png"), horizontal_png)

        assert not result.success
        assert result.recommendation == RECOMMEND_FAILED

    def test_wire_format_uses_camel_case(self, horizontal_png, horizontal_bmp):
        payload = compare_images(horizontal_png, horizontal_bmp).model_dump(by_alias=True)

        assert payload["isExactMatch"] is False
        assert payload["isMatch"] is True
        assert payload["hammingDistance"] == 0


class TestBatch:

    def test_each_pair_is_isolated(self, horizontal_png, horizontal_bmp, vertical_png):
        results = batch_compare_images([
            ("v1", horizontal_png, horizontal_png),
            ("v2", "/nonexistent/document.png", horizontal_png),
            {"voterId": "v3", "image1": horizontal_png, "image2": horizontal_bmp},
            ("v4", horizontal_png, vertical_png),
        ])

        assert [r.voter_id for r in results] == ["v1", "v2", "v3", "v4"]
        assert results[0].is_exact_match
        assert not results[1].success
        assert results[1].recommendation == RECOMMEND_FAILED
        assert results[2].is_match and results[2].method == "perceptual_hash"
        assert results[3].success and not results[3].is_match

    def test_malformed_pair_fails_alone(self, horizontal_png):
        results = batch_compare_images([
            ("v1", horizontal_png),
            ("v2", horizontal_png, horizontal_png),
        ])

        assert not results[0].success
        assert results[0].error
        assert results[1].is_exact_match

    def test_summary(self, horizontal_png, horizontal_bmp):
        results = batch_compare_images([
            ("v1", horizontal_png, horizontal_png),
            ("v2", horizontal_png, horizontal_bmp),
            ("v3", b"junk", horizontal_png),
        ])

        assert comparison_summary(results) == {"total": 3, "exact": 1, "matched": 2, "failed": 1}
