"""Vertical chunking and alignment of long screenshots for vision models.

A full-page screenshot is usually far taller than what a vision model can
inspect at useful resolution. The baseline is split into horizontal bands,
and each band is paired with the matching band of the test image after
correcting for a global vertical offset (content pushed down by a banner,
a taller header, and so on).
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Iterator, Optional

import numpy as np
from PIL import Image

from vrtriage.imaging.image_utils import open_rgba
from vrtriage.models.chunk import ChunkPlan, VisionChunk
from vrtriage.models.config import VisionCompareConfig

logger = logging.getLogger(__name__)

SIGNATURE_COLUMNS = 256
REC709_WEIGHTS = (0.2126, 0.7152, 0.0722)
LUMA_WEIGHT = 0.85
ALPHA_WEIGHT = 0.15
MAX_SHIFT_RATIO = 0.2
MIN_OVERLAP_ROWS = 120
MIN_OVERLAP_RATIO = 0.35


def row_signature(rgba: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Mean alpha-weighted luma and mean alpha per row, both in [0, 1].

    Luma uses Rec. 709 weights and is premultiplied by alpha, so transparent
    pixels contribute nothing whatever their colour channels hold.
    """
    width = rgba.shape[1]
    stride = max(1, width // SIGNATURE_COLUMNS)
    sampled = rgba[:, ::stride, :].astype(np.float64) / 255.0
    alpha = sampled[..., 3]
    pixel_luma = sampled[..., :3] @ np.asarray(REC709_WEIGHTS)
    row_luma = (pixel_luma * alpha).mean(axis=1)
    row_alpha = alpha.mean(axis=1)
    return row_luma, row_alpha


def _shift_cost(
    base: tuple[np.ndarray, np.ndarray],
    test: tuple[np.ndarray, np.ndarray],
    shift: int,
) -> tuple[float, int]:
    base_luma, base_alpha = base
    test_luma, test_alpha = test
    start = max(0, -shift)
    end = min(len(base_luma), len(test_luma) - shift)
    overlap = end - start
    if overlap <= 0:
        return float("inf"), 0
    luma_cost = np.abs(base_luma[start:end] - test_luma[start + shift:end + shift]).mean()
    alpha_cost = np.abs(base_alpha[start:end] - test_alpha[start + shift:end + shift]).mean()
    return float(LUMA_WEIGHT * luma_cost + ALPHA_WEIGHT * alpha_cost), overlap


def estimate_vertical_offset(
    baseline: np.ndarray,
    test: np.ndarray,
    max_shift: int,
) -> int:
    """Find the shift that best lines the test rows up with the baseline rows.

    Returns ``s`` such that baseline row ``y`` corresponds to test row ``y + s``.
    """
    min_height = min(baseline.shape[0], test.shape[0])
    limit = max(0, min(max_shift, int(min_height * MAX_SHIFT_RATIO)))
    min_overlap = max(MIN_OVERLAP_ROWS, int(min_height * MIN_OVERLAP_RATIO))

    base_sig = row_signature(baseline)
    test_sig = row_signature(test)

    best_shift = 0
    best_cost = float("inf")
    # Smallest |shift| first so ties keep the more conservative offset
    for shift in sorted(range(-limit, limit + 1), key=lambda s: (abs(s), s)):
        cost, overlap = _shift_cost(base_sig, test_sig, shift)
        if overlap < min_overlap:
            continue
        if cost < best_cost:
            best_cost = cost
            best_shift = shift

    logger.debug("Vertical alignment: offset=%d cost=%.5f (searched +/-%d rows)",
                 best_shift, best_cost, limit)
    return best_shift


def partition_bands(height: int, chunks: int) -> list[tuple[int, int]]:
    """Split ``height`` rows into near-equal (start, height) bands."""
    base, remainder = divmod(height, chunks)
    bands = []
    y = 0
    for i in range(chunks):
        band_height = base + (1 if i < remainder else 0)
        bands.append((y, band_height))
        y += band_height
    return bands


def align_bands(
    bands: list[tuple[int, int]],
    offset: int,
    baseline_height: int,
    test_height: int,
) -> list[tuple[int, int, int, int, int]]:
    """Apply the offset to each band, trimming rows that fall off either image.

    Returns (source_y, source_height, baseline_y, test_y, height) tuples for the
    bands that keep a positive height.
    """
    aligned = []
    for source_y, source_height in bands:
        baseline_y = source_y
        test_y = source_y + offset
        height = source_height
        if test_y < 0:
            baseline_y -= test_y
            height += test_y
            test_y = 0
        height = min(height, test_height - test_y, baseline_height - baseline_y)
        if height <= 0:
            continue
        aligned.append((source_y, source_height, baseline_y, test_y, height))
    return aligned


def _unchunked(
    baseline_path: str,
    test_path: str,
    diff_path: Optional[str],
    reason: str,
    baseline_height: int = 0,
    test_height: int = 0,
) -> ChunkPlan:
    height = min(baseline_height, test_height)
    chunk = VisionChunk(
        index=0,
        source_y=0,
        source_height=height,
        baseline_y=0,
        test_y=0,
        height=height,
        baseline_path=baseline_path,
        test_path=test_path,
        diff_path=diff_path,
    )
    return ChunkPlan(
        chunked=False,
        chunks=[chunk],
        reason=reason,
        baseline_height=baseline_height,
        test_height=test_height,
    )


def _header_heights(baseline_path: str, test_path: str) -> tuple[int, int]:
    """Read both heights from the image headers without decoding pixels."""
    try:
        with Image.open(baseline_path) as baseline, Image.open(test_path) as test:
            return baseline.size[1], test.size[1]
    except (OSError, ValueError) as e:
        logger.debug("Cannot read image sizes: %s", e)
        return 0, 0


def _crop(img: Image.Image, y: int, height: int, dest: Path) -> str:
    img.crop((0, y, img.width, y + height)).save(dest, format="PNG")
    return str(dest)


def prepare_vision_chunks(
    baseline_path: str | Path,
    test_path: str | Path,
    diff_path: str | Path | None,
    config: VisionCompareConfig | None = None,
    scratch_root: str | Path | None = None,
) -> ChunkPlan:
    """Plan (and physically crop) aligned chunks for a baseline/test pair.

    Bad inputs never raise: they degrade to a single unchunked pseudo-chunk
    with a recorded reason. Only I/O faults while writing crops propagate.
    The caller owns ``plan.scratch_dir``; prefer :func:`vision_chunks`.
    """
    config = config or VisionCompareConfig()
    baseline_path = str(baseline_path)
    test_path = str(test_path)
    diff_path = str(diff_path) if diff_path else None

    if not config.enabled:
        return _unchunked(
            baseline_path, test_path, diff_path, "Vision chunking is disabled",
            *_header_heights(baseline_path, test_path),
        )

    try:
        baseline_img = open_rgba(baseline_path)
        test_img = open_rgba(test_path)
    except (OSError, ValueError) as e:
        logger.warning("Cannot decode images for chunking, analyzing whole images: %s", e)
        return _unchunked(baseline_path, test_path, diff_path, f"Unable to decode images for chunking: {e}")

    baseline_height = baseline_img.height
    test_height = test_img.height
    tallest = max(baseline_height, test_height)

    if tallest < config.min_image_height:
        return _unchunked(
            baseline_path, test_path, diff_path,
            f"Image height {tallest}px is below the {config.min_image_height}px chunking threshold",
            baseline_height, test_height,
        )
    if config.chunks <= 1:
        return _unchunked(
            baseline_path, test_path, diff_path,
            "Chunk count is 1; analyzing whole images",
            baseline_height, test_height,
        )

    baseline_rgba = np.asarray(baseline_img, dtype=np.uint8)
    test_rgba = np.asarray(test_img, dtype=np.uint8)
    offset = estimate_vertical_offset(baseline_rgba, test_rgba, config.max_vertical_align_shift)

    aligned = align_bands(
        partition_bands(baseline_height, config.chunks), offset, baseline_height, test_height
    )
    if not aligned:
        return _unchunked(
            baseline_path, test_path, diff_path,
            f"No overlapping rows left after applying offset {offset}px",
            baseline_height, test_height,
        )

    diff_img = None
    if config.include_diff_image and diff_path:
        try:
            diff_img = open_rgba(diff_path)
        except (OSError, ValueError) as e:
            logger.debug("Skipping diff crops, diff image unreadable: %s", e)

    scratch_dir = Path(tempfile.mkdtemp(prefix="vrtriage-chunks-", dir=scratch_root))
    chunks: list[VisionChunk] = []
    try:
        for index, (source_y, source_height, baseline_y, test_y, height) in enumerate(aligned):
            stem = f"chunk-{index:02d}"
            chunk_diff = None
            if diff_img is not None and baseline_y < diff_img.height:
                diff_height = min(height, diff_img.height - baseline_y)
                chunk_diff = _crop(diff_img, baseline_y, diff_height, scratch_dir / f"{stem}-diff.png")
            chunks.append(VisionChunk(
                index=index,
                source_y=source_y,
                source_height=source_height,
                baseline_y=baseline_y,
                test_y=test_y,
                height=height,
                baseline_path=_crop(baseline_img, baseline_y, height, scratch_dir / f"{stem}-baseline.png"),
                test_path=_crop(test_img, test_y, height, scratch_dir / f"{stem}-test.png"),
                diff_path=chunk_diff,
            ))
    except Exception:
        shutil.rmtree(scratch_dir, ignore_errors=True)
        raise

    logger.info("Split %dpx baseline into %d aligned chunks (offset %+dpx)",
                baseline_height, len(chunks), offset)
    return ChunkPlan(
        chunked=True,
        offset=offset,
        chunks=chunks,
        scratch_dir=str(scratch_dir),
        baseline_height=baseline_height,
        test_height=test_height,
    )


def cleanup_scratch(plan: ChunkPlan) -> None:
    """Remove a plan's scratch directory; failures are logged, never raised."""
    if not plan.scratch_dir:
        return
    try:
        shutil.rmtree(plan.scratch_dir)
    except OSError as e:
        logger.debug("Failed to remove chunk scratch dir %s: %s", plan.scratch_dir, e)


@contextlib.contextmanager
def vision_chunks(
    baseline_path: str | Path,
    test_path: str | Path,
    diff_path: str | Path | None,
    config: VisionCompareConfig | None = None,
    scratch_root: str | Path | None = None,
) -> Iterator[ChunkPlan]:
    """Yield a chunk plan and delete its scratch files on every exit path."""
    plan = prepare_vision_chunks(baseline_path, test_path, diff_path, config, scratch_root)
    try:
        yield plan
    finally:
        cleanup_scratch(plan)
