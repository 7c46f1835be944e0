"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Callable, Optional

import numpy as np
import pytest
from PIL import Image

from vrtriage.ai.providers import AnalysisRequest, AnalysisResponse
from vrtriage.models.analysis import AIAnalysisResult
from vrtriage.models.chunk import VisionChunk
from vrtriage.models.comparison import ComparisonItem, DomDiffResult, DomFinding, PerceptualHashResult
from vrtriage.models.config import TriageConfig, VisionCompareConfig
from vrtriage.triage.store import TriageStore


# ============================================================================
# Image Fixtures
# ============================================================================


def striped_rows(height: int, width: int, seed: int = 7) -> np.ndarray:
    """RGBA array where every row has its own random colour."""
    rng = np.random.default_rng(seed)
    rows = rng.integers(0, 256, size=(height, 1, 3), dtype=np.uint8)
    rgb = np.broadcast_to(rows, (height, width, 3))
    alpha = np.full((height, width, 1), 255, dtype=np.uint8)
    return np.concatenate([rgb, alpha], axis=2)


def shift_down(rgba: np.ndarray, rows: int) -> np.ndarray:
    """Push content down by ``rows`` white rows, keeping the height."""
    pad = np.full((rows, rgba.shape[1], 4), 255, dtype=np.uint8)
    return np.concatenate([pad, rgba[:-rows]], axis=0)


@pytest.fixture
def save_png(tmp_path: Path) -> Callable[[np.ndarray, str], Path]:
    """Write an RGBA array to a PNG under tmp_path."""
    def _save(rgba: np.ndarray, name: str) -> Path:
        path = tmp_path / name
        Image.fromarray(np.ascontiguousarray(rgba)).save(path)
        return path
    return _save


@pytest.fixture
def gradient_png(save_png) -> Path:
    """Horizontal left-to-right gradient, 64x32."""
    row = np.linspace(0, 255, 64, dtype=np.uint8)
    gray = np.tile(row, (32, 1))
    rgba = np.dstack([gray, gray, gray, np.full_like(gray, 255)])
    return save_png(rgba, "gradient.png")


@pytest.fixture
def reversed_gradient_png(save_png) -> Path:
    """Right-to-left gradient, 64x32."""
    row = np.linspace(255, 0, 64).astype(np.uint8)
    gray = np.tile(row, (32, 1))
    rgba = np.dstack([gray, gray, gray, np.full_like(gray, 255)])
    return save_png(rgba, "reversed.png")


@pytest.fixture
def tall_pair(save_png) -> tuple[Path, Path]:
    """Two identical 1280x2000 screenshots."""
    rgba = striped_rows(2000, 1280)
    return save_png(rgba, "baseline.png"), save_png(rgba, "test.png")


@pytest.fixture
def small_pair(save_png) -> tuple[Path, Path]:
    """Two identical 200x300 screenshots, below any chunking threshold."""
    rgba = striped_rows(300, 200)
    return save_png(rgba, "small-baseline.png"), save_png(rgba, "small-test.png")


@pytest.fixture
def chunking_config() -> VisionCompareConfig:
    return VisionCompareConfig(enabled=True, chunks=6, min_image_height=1800, max_vertical_align_shift=220)


# ============================================================================
# AI Fixtures
# ============================================================================


def make_ai_result(
    recommendation: str = "approve",
    confidence: float = 0.9,
    category: str = "cosmetic",
    severity: str = "info",
    tokens_used: Optional[int] = 100,
    summary: str = "Minor anti-aliasing differences",
) -> AIAnalysisResult:
    return AIAnalysisResult(
        category=category,
        severity=severity,
        confidence=confidence,
        summary=summary,
        details=["Font smoothing differs in the header"],
        recommendation=recommendation,
        reasoning="Differences are sub-pixel rendering noise",
        provider="anthropic",
        model="claude-haiku-4-5",
        tokens_used=tokens_used,
    )


def make_chunk(index: int, y: int = 0, height: int = 100) -> VisionChunk:
    return VisionChunk(
        index=index,
        source_y=y,
        source_height=height,
        baseline_y=y,
        test_y=y,
        height=height,
        baseline_path=f"/tmp/chunk-{index}-baseline.png",
        test_path=f"/tmp/chunk-{index}-test.png",
    )


AI_JSON = (
    '{"category": "cosmetic", "severity": "info", "confidence": 0.92, '
    '"summary": "Font rendering differs", "details": ["Header text is bolder"], '
    '"recommendation": "approve", "reasoning": "Sub-pixel rendering only"}'
)


class FakeProvider:
    """Provider double that replays canned response texts in order."""

    name = "fake"

    def __init__(self, texts: Optional[list[str]] = None, tokens_used: Optional[int] = 50):
        self.texts = list(texts or [AI_JSON])
        self.tokens_used = tokens_used
        self.requests: list[AnalysisRequest] = []

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        self.requests.append(request)
        text = self.texts[min(len(self.requests), len(self.texts)) - 1]
        return AnalysisResponse(text=text, tokens_used=self.tokens_used)


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# ============================================================================
# Triage Fixtures
# ============================================================================


def make_item(
    scenario: str = "homepage",
    viewport: str = "desktop",
    reason: str = "diff",
    diff_percentage: float = 12.0,
    phash_similarity: Optional[float] = 0.95,
    ssim_score: Optional[float] = None,
) -> ComparisonItem:
    phash = None
    if phash_similarity is not None:
        phash = PerceptualHashResult(
            baseline_hash="0f0f0f0f0f0f0f0f",
            test_hash="0f0f0f0f0f0f0f0e",
            hamming_distance=round((1 - phash_similarity) * 64),
            similarity=phash_similarity,
        )
    return ComparisonItem(
        name=f"{scenario}-{viewport}",
        scenario=scenario,
        viewport=viewport,
        baseline=f"baselines/{scenario}-{viewport}.png",
        test=f"output/{scenario}-{viewport}.png",
        diff=f"diffs/{scenario}-{viewport}.png" if reason == "diff" else None,
        match=reason == "match",
        reason=reason,
        diff_percentage=diff_percentage,
        pixel_diff=int(diff_percentage * 1000),
        ssim_score=ssim_score,
        phash=phash,
    )


def layout_only_dom_diff(layout_shifts: int = 100) -> DomDiffResult:
    findings = [
        DomFinding(type="layout_shift", path=f"body > div:nth-child({i})", tag="div",
                   severity="info", description="Element moved 2px")
        for i in range(3)
    ]
    return DomDiffResult(findings=findings, summary={"layout_shift": layout_shifts}, similarity=0.9)


@pytest.fixture
def triage_store(tmp_path: Path) -> TriageStore:
    return TriageStore(tmp_path / ".vrt" / "acceptances" / "triage.json")


@pytest.fixture
def triage_config() -> TriageConfig:
    return TriageConfig()
