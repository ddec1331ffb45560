"""Document image comparison.

Compares two ID document images in two layers:

1. SHA-256 of the raw bytes, to detect the exact same file uploaded twice.
2. Average hash (8x8 grayscale perceptual hash) compared by Hamming distance,
   to detect the same document after re-encoding or resizing.

``compare_images`` never raises: every failure is reported in the returned
``ComparisonResult`` with ``success=False``.
"""

import hashlib
import io
import logging
import os
from typing import Iterable, List, Mapping, Sequence, Tuple, Union

import cv2
import numpy as np
from PIL import Image

from voting_guard.schemas.comparison import BatchComparisonResult, ComparisonResult

logger = logging.getLogger(__name__)

ImageInput = Union[str, os.PathLike, bytes, bytearray, memoryview]

HASH_SIZE = 8  # Grille 8x8 -> empreinte de 64 bits
SIMILARITY_THRESHOLD = 85
EXACT_MATCH_CONFIDENCE = 99

RECOMMEND_EXACT = "APPROVE - Identical ID documents (exact file match)"
RECOMMEND_SIMILAR = "APPROVE - High similarity detected (likely same ID document)"
RECOMMEND_DIFFERENT = "REVIEW - Low similarity - may be different IDs or heavily edited"
RECOMMEND_FAILED = "REVIEW - Image comparison failed, requires manual check"


class ImageComparisonError(Exception):
    """Base exception for image comparison errors."""
    pass


class ImageLoadError(ImageComparisonError):
    """Exception raised when an image input cannot be read."""
    pass


class ImageDecodeError(ImageComparisonError):
    """Exception raised when image bytes cannot be decoded."""
    pass


class HashLengthMismatchError(ImageComparisonError):
    """Exception raised when comparing hashes of different lengths."""
    pass


def load_image_bytes(image: ImageInput) -> bytes:
    """Resolve a file path or an in-memory buffer to raw bytes.

    Raises:
        ImageLoadError: If the path cannot be read or the input type is unsupported.
    """
    if isinstance(image, (bytes, bytearray, memoryview)):
        return bytes(image)

    if isinstance(image, (str, os.PathLike)):
        try:
            with open(image, "rb") as f:
                return f.read()
        except OSError as e:
            raise ImageLoadError(f"Cannot read image file {image!r}: {e}")

    raise ImageLoadError(f"Unsupported image input type: {type(image).__name__}")


def calculate_buffer_hash(buffer: bytes) -> str:
    """SHA-256 hex digest of a buffer."""
    return hashlib.sha256(buffer).hexdigest()


def calculate_file_hash(file_path: Union[str, os.PathLike], chunk_size: int = 65536) -> str:
    """SHA-256 hex digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()


def decode_grayscale(buffer: bytes) -> np.ndarray:
    """Decode image bytes into a grayscale OpenCV array.

    Raises:
        ImageDecodeError: If the bytes are not a supported image.
    """
    nparr = np.frombuffer(buffer, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_GRAYSCALE) if nparr.size else None
    if image is None:
        raise ImageDecodeError("Failed to decode image data")
    return image


def calculate_perceptual_hash(buffer: bytes, hash_size: int = HASH_SIZE) -> str:
    """Average hash of an image.

    The image is reduced to a ``hash_size`` x ``hash_size`` grayscale grid; each
    bit is ``1`` when the corresponding pixel is strictly brighter than the mean
    of the grid.

    Returns:
        Binary string of ``hash_size ** 2`` characters.
    """
    gray = decode_grayscale(buffer)
    small = cv2.resize(gray, (hash_size, hash_size), interpolation=cv2.INTER_AREA)
    pixels = small.astype(np.float64).flatten()
    average = pixels.mean()
    return "".join("1" if pixel > average else "0" for pixel in pixels)


def hamming_distance(hash1: str, hash2: str) -> int:
    """Number of positions at which two hashes differ.

    Raises:
        HashLengthMismatchError: If the hashes have different lengths.
    """
    if len(hash1) != len(hash2):
        raise HashLengthMismatchError(
            f"Hashes must be same length ({len(hash1)} != {len(hash2)})"
        )
    return sum(1 for a, b in zip(hash1, hash2) if a != b)


def hamming_distance_to_similarity(distance: int, hash_length: int = HASH_SIZE * HASH_SIZE) -> int:
    """Convert a Hamming distance to a 0-100 similarity percentage.

    Rounds half up: ``round((1 - distance / hash_length) * 100)``.
    """
    if hash_length <= 0:
        raise ValueError("hash_length must be positive")
    remaining = hash_length - distance
    return (remaining * 200 + hash_length) // (2 * hash_length)


def is_similar(similarity: int, threshold: int = SIMILARITY_THRESHOLD) -> bool:
    """Match decision for a perceptual similarity score."""
    return similarity >= threshold


def _image_metadata(buffer: bytes) -> Tuple[str, str]:
    """Dimensions ("WxH") and format of an image, from its header."""
    with Image.open(io.BytesIO(buffer)) as img:
        width, height = img.size
        fmt = (img.format or "unknown").lower()
    return f"{width}x{height}", fmt


def _format_size(buffer: bytes) -> str:
    return f"{len(buffer) / 1024:.2f} KB"


def compare_images(
    image1: ImageInput,
    image2: ImageInput,
    threshold: int = SIMILARITY_THRESHOLD
) -> ComparisonResult:
    """Compare two images (file paths or byte buffers).

    Args:
        image1: First image, path or bytes.
        image2: Second image, path or bytes.
        threshold: Minimum perceptual similarity (percent) counted as a match.

    Returns:
        ComparisonResult. Identical bytes short-circuit with
        ``method="exact_file_hash"``; otherwise the perceptual hashes decide.
        Failures are returned with ``success=False`` rather than raised.
    """
    try:
        buffer1 = load_image_bytes(image1)
        buffer2 = load_image_bytes(image2)

        # Couche 1: empreinte exacte du fichier
        file_hash1 = calculate_buffer_hash(buffer1)
        file_hash2 = calculate_buffer_hash(buffer2)

        if file_hash1 == file_hash2:
            logger.info("Identical documents (SHA-256 match)")
            return ComparisonResult(
                success=True,
                is_exact_match=True,
                is_match=True,
                similarity=100,
                method="exact_file_hash",
                confidence=EXACT_MATCH_CONFIDENCE,
                recommendation=RECOMMEND_EXACT,
                details={
                    "message": "File hashes are identical - same document uploaded",
                    "fileHash": file_hash1[:16] + "...",
                    "size1": len(buffer1),
                    "size2": len(buffer2),
                },
            )

        # Couche 2: empreinte perceptuelle
        perceptual_hash1 = calculate_perceptual_hash(buffer1)
        perceptual_hash2 = calculate_perceptual_hash(buffer2)
        distance = hamming_distance(perceptual_hash1, perceptual_hash2)
        similarity = hamming_distance_to_similarity(distance, len(perceptual_hash1))
        matched = is_similar(similarity, threshold)

        dimensions1, format1 = _image_metadata(buffer1)
        dimensions2, format2 = _image_metadata(buffer2)

        logger.info(
            f"Perceptual comparison: distance={distance}, similarity={similarity}% "
            f"({'match' if matched else 'no match'})"
        )

        return ComparisonResult(
            success=True,
            is_exact_match=False,
            is_match=matched,
            similarity=similarity,
            method="perceptual_hash",
            confidence=similarity,
            hamming_distance=distance,
            recommendation=RECOMMEND_SIMILAR if matched else RECOMMEND_DIFFERENT,
            details={
                "fileHash1": file_hash1[:16] + "...",
                "fileHash2": file_hash2[:16] + "...",
                "perceptualHash1": perceptual_hash1,
                "perceptualHash2": perceptual_hash2,
                "image1Dimensions": dimensions1,
                "image2Dimensions": dimensions2,
                "image1Size": _format_size(buffer1),
                "image2Size": _format_size(buffer2),
                "format1": format1,
                "format2": format2,
            },
        )

    except Exception as e:
        logger.error(f"Error comparing images: {e}")
        return ComparisonResult(
            success=False,
            is_exact_match=False,
            is_match=False,
            similarity=0,
            recommendation=RECOMMEND_FAILED,
            error=str(e),
        )


ImagePair = Union[Tuple[str, ImageInput, ImageInput], Mapping[str, ImageInput]]


def _unpack_pair(pair: ImagePair) -> Tuple[str, ImageInput, ImageInput]:
    if isinstance(pair, Mapping):
        return pair.get("voterId", pair.get("voter_id")), pair["image1"], pair["image2"]
    voter_id, image1, image2 = pair
    return voter_id, image1, image2


def batch_compare_images(
    pairs: Iterable[ImagePair],
    threshold: int = SIMILARITY_THRESHOLD
) -> List[BatchComparisonResult]:
    """Compare several image pairs, in order.

    Each pair is either ``(voter_id, image1, image2)`` or a mapping with
    ``voterId``, ``image1`` and ``image2`` keys. A failing pair produces a
    failed result and does not stop the batch.
    """
    results: List[BatchComparisonResult] = []

    for pair in pairs:
        voter_id = None
        try:
            voter_id, image1, image2 = _unpack_pair(pair)
            result = compare_images(image1, image2, threshold=threshold)
            results.append(BatchComparisonResult(
                voter_id=None if voter_id is None else str(voter_id),
                **result.model_dump()
            ))
        except Exception as e:
            logger.warning(f"Batch comparison failed for voter {voter_id}: {e}")
            results.append(BatchComparisonResult(
                voter_id=None if voter_id is None else str(voter_id),
                success=False,
                recommendation=RECOMMEND_FAILED,
                error=str(e),
            ))

    return results


def comparison_summary(results: Sequence[ComparisonResult]) -> dict:
    """Counts of exact, perceptual and failed results in a batch."""
    return {
        "total": len(results),
        "exact": sum(1 for r in results if r.is_exact_match),
        "matched": sum(1 for r in results if r.is_match),
        "failed": sum(1 for r in results if not r.success),
    }
