"""Fuse pixel-diff, SSIM, pHash and AI signals into one confidence score.

Pure functions, no I/O.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from vrtriage.models.scoring import (
    ComparisonSignals,
    ConfidenceInputs,
    ConfidenceResult,
    ScoreFactor,
    ScoringConfig,
    ScoringFactors,
    VerdictThresholds,
)

logger = logging.getLogger(__name__)

DEFAULT_SCORING_CONFIG = ScoringConfig()

AI_APPROVE_BOOST = 0.1
AI_REJECT_PENALTY = 0.2


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def pixel_diff_to_score(diff_percent: float, decay_factor: float) -> float:
    """Map a pixel diff percentage to (0, 1] with exponential decay."""
    return math.exp(-diff_percent / decay_factor)


def calculate_ai_score(confidence: float, recommendation: Optional[str] = None) -> float:
    score = confidence
    if recommendation == "approve":
        score += AI_APPROVE_BOOST
    elif recommendation == "reject":
        score -= AI_REJECT_PENALTY
    return clamp01(score)


def calculate_weighted_score(
    signals: ComparisonSignals,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> tuple[float, ScoringFactors]:
    """Weighted mean of the present signals, then the AI category adjustment."""
    factors = ScoringFactors()
    total_weight = 0.0
    weighted_sum = 0.0

    has_ai = signals.ai_confidence is not None
    weights = config.weights if has_ai else config.weights_no_ai

    if signals.ssim_score is not None:
        factors.ssim = ScoreFactor(
            value=signals.ssim_score,
            contribution=signals.ssim_score * weights.ssim,
        )
        weighted_sum += factors.ssim.contribution
        total_weight += weights.ssim

    if signals.phash_similarity is not None:
        factors.phash = ScoreFactor(
            value=signals.phash_similarity,
            contribution=signals.phash_similarity * weights.phash,
        )
        weighted_sum += factors.phash.contribution
        total_weight += weights.phash

    pixel_score = pixel_diff_to_score(signals.pixel_diff_percent, config.pixel_decay_factor)
    factors.pixel = ScoreFactor(value=pixel_score, contribution=pixel_score * weights.pixel)
    weighted_sum += factors.pixel.contribution
    total_weight += weights.pixel

    if has_ai:
        ai_score = calculate_ai_score(signals.ai_confidence, signals.ai_recommendation)
        factors.ai = ScoreFactor(
            value=ai_score,
            contribution=ai_score * config.weights.ai,
            category=signals.ai_category,
        )
        weighted_sum += factors.ai.contribution
        total_weight += config.weights.ai

    score = weighted_sum / total_weight if total_weight > 0 else 0.0

    if signals.ai_category:
        adjustment = config.category_adjustments.get(signals.ai_category, 0.0)
        score += adjustment

    return clamp01(score), factors


def determine_verdict(
    score: float,
    thresholds: VerdictThresholds = DEFAULT_SCORING_CONFIG.verdict_thresholds,
) -> str:
    if score >= thresholds.pass_:
        return "pass"
    if score >= thresholds.likely_pass:
        return "likely-pass"
    if score >= thresholds.needs_review:
        return "needs-review"
    if score >= thresholds.likely_fail:
        return "likely-fail"
    return "fail"


def build_explanation(signals: ComparisonSignals, factors: ScoringFactors) -> str:
    parts = []

    if factors.ssim:
        value = factors.ssim.value
        quality = "excellent" if value >= 0.95 else "good" if value >= 0.85 else "low"
        parts.append(f"SSIM {value * 100:.0f}% ({quality})")

    if factors.phash:
        value = factors.phash.value
        quality = "near-identical" if value >= 0.95 else "similar" if value >= 0.85 else "different"
        parts.append(f"pHash {value * 100:.0f}% ({quality})")

    if signals.pixel_diff_percent > 0:
        parts.append(f"{signals.pixel_diff_percent:.2f}% pixel diff")

    if factors.ai and factors.ai.category:
        parts.append(f"AI: {factors.ai.category}")

    return ", ".join(parts)


def score_signals(
    signals: ComparisonSignals,
    config: Optional[ScoringConfig] = None,
) -> ConfidenceResult:
    config = config or DEFAULT_SCORING_CONFIG
    score, factors = calculate_weighted_score(signals, config)
    verdict = determine_verdict(score, config.verdict_thresholds)
    explanation = build_explanation(signals, factors)
    logger.debug("Confidence %.3f -> %s (%s)", score, verdict, explanation)
    return ConfidenceResult(score=score, verdict=verdict, explanation=explanation, factors=factors)


def calculate_confidence(
    inputs: ConfidenceInputs,
    config: Optional[ScoringConfig] = None,
) -> ConfidenceResult:
    """Calculate a unified confidence score from multiple signals."""
    return score_signals(inputs.to_signals(), config)
