"""Image loading and resampling helpers built on Pillow and numpy."""

from __future__ import annotations

import base64
import io
import logging
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, Image.Image]

# Largest edge accepted by the vision providers we target
MAX_IMAGE_DIMENSION = 7500

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def open_rgba(source: ImageSource) -> Image.Image:
    """Open an image (or take an already-open one) as RGBA."""
    if isinstance(source, Image.Image):
        return source if source.mode == "RGBA" else source.convert("RGBA")
    with Image.open(source) as img:
        img.load()
        return img.convert("RGBA")


def rgba_array(source: ImageSource) -> np.ndarray:
    """Return an (height, width, 4) uint8 array."""
    return np.asarray(open_rgba(source), dtype=np.uint8)


def luma(rgba: np.ndarray) -> np.ndarray:
    r, g, b = (rgba[..., c].astype(np.float64) for c in range(3))
    return r * LUMA_WEIGHTS[0] + g * LUMA_WEIGHTS[1] + b * LUMA_WEIGHTS[2]


def to_grayscale(rgba: np.ndarray) -> np.ndarray:
    """Integer grayscale plane, rounded half-up like an 8-bit store."""
    return np.floor(luma(rgba) + 0.5)


def _sample_positions(src: int, dst: int) -> np.ndarray:
    if dst <= 1:
        return np.zeros(max(dst, 1))
    return np.arange(dst) * (src - 1) / (dst - 1)


def resize_bilinear(plane: np.ndarray, dst_width: int, dst_height: int) -> np.ndarray:
    """Corner-aligned bilinear resize of a 2-D plane.

    Source neighbours are clamped to the last row/column, so 1-pixel wide or
    tall inputs still resize.
    """
    src_height, src_width = plane.shape
    xs = _sample_positions(src_width, dst_width)
    ys = _sample_positions(src_height, dst_height)

    x0 = np.floor(xs).astype(int)
    y0 = np.floor(ys).astype(int)
    x1 = np.minimum(x0 + 1, src_width - 1)
    y1 = np.minimum(y0 + 1, src_height - 1)
    xf = (xs - x0)[np.newaxis, :]
    yf = (ys - y0)[:, np.newaxis]

    v00 = plane[y0[:, None], x0[None, :]]
    v10 = plane[y0[:, None], x1[None, :]]
    v01 = plane[y1[:, None], x0[None, :]]
    v11 = plane[y1[:, None], x1[None, :]]

    value = (
        v00 * (1 - xf) * (1 - yf)
        + v10 * xf * (1 - yf)
        + v01 * (1 - xf) * yf
        + v11 * xf * yf
    )
    return np.floor(value + 0.5)


def resize_if_needed(img: Image.Image, max_dimension: int = MAX_IMAGE_DIMENSION) -> Image.Image:
    width, height = img.size
    if width <= max_dimension and height <= max_dimension:
        return img
    scale = min(max_dimension / width, max_dimension / height)
    new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
    logger.debug("Downscaling %dx%d image to %dx%d for vision input", width, height, *new_size)
    return img.resize(new_size, Image.Resampling.BILINEAR)


def image_to_base64(path: str | Path, max_dimension: int = MAX_IMAGE_DIMENSION) -> str:
    """PNG-encode an image as base64, downscaling oversized inputs first."""
    path = Path(path)
    with Image.open(path) as img:
        img.load()
        if img.width <= max_dimension and img.height <= max_dimension and img.format == "PNG":
            return base64.b64encode(path.read_bytes()).decode()
        resized = resize_if_needed(img, max_dimension)
        buffer = io.BytesIO()
        resized.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode()
