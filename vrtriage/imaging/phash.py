"""Perceptual hashing (dHash / aHash) for fast screenshot similarity.

dHash works by:
1. Converting the image to grayscale
2. Resizing to 9x8 (8 horizontal gradients per row)
3. Setting a bit when the left pixel is darker than its right neighbour
4. Packing the 64 bits into 16 hex characters

It is cheaper than a DCT pHash and still robust to recompression and
anti-aliasing noise.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from vrtriage.errors import HashLengthMismatch
from vrtriage.imaging.image_utils import ImageSource, resize_bilinear, rgba_array, to_grayscale
from vrtriage.models.comparison import PerceptualHashResult

logger = logging.getLogger(__name__)

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE


def _bits_to_hex(bits: np.ndarray) -> str:
    flat = "".join("1" if b else "0" for b in bits.ravel())
    return "".join(f"{int(flat[i:i + 4], 2):x}" for i in range(0, len(flat), 4))


def compute_difference_hash(image: ImageSource) -> str:
    """Compute the 64-bit difference hash of an image as a hex string."""
    grayscale = to_grayscale(rgba_array(image))
    resized = resize_bilinear(grayscale, HASH_SIZE + 1, HASH_SIZE)
    bits = resized[:, :-1] < resized[:, 1:]
    return _bits_to_hex(bits)


def compute_average_hash(image: ImageSource) -> str:
    """Compute the 64-bit average hash (less robust than dHash)."""
    grayscale = to_grayscale(rgba_array(image))
    resized = resize_bilinear(grayscale, HASH_SIZE, HASH_SIZE)
    bits = resized >= resized.mean()
    return _bits_to_hex(bits)


def hamming_distance(hash1: str, hash2: str) -> int:
    """Number of differing bits between two hex fingerprints."""
    if len(hash1) != len(hash2):
        raise HashLengthMismatch(len(hash1), len(hash2))
    return sum(bin(int(a, 16) ^ int(b, 16)).count("1") for a, b in zip(hash1, hash2))


def hash_similarity(hash1: str, hash2: str) -> float:
    """Similarity in [0, 1]; 1.0 means identical fingerprints."""
    return 1 - hamming_distance(hash1, hash2) / HASH_BITS


def compare_hashes(baseline_path: str | Path, test_path: str | Path) -> PerceptualHashResult:
    """Fingerprint two screenshots and compare them."""
    baseline_hash = compute_difference_hash(baseline_path)
    test_hash = compute_difference_hash(test_path)
    distance = hamming_distance(baseline_hash, test_hash)
    similarity = 1 - distance / HASH_BITS
    logger.debug("dHash %s vs %s: distance=%d similarity=%.3f",
                 baseline_hash, test_hash, distance, similarity)
    return PerceptualHashResult(
        baseline_hash=baseline_hash,
        test_hash=test_hash,
        hamming_distance=distance,
        similarity=similarity,
    )
