"""Merge per-chunk AI verdicts into one analysis result."""

from __future__ import annotations

import logging

from vrtriage.models.analysis import SEVERITY_RANK, AIAnalysisResult
from vrtriage.models.chunk import VisionChunk

logger = logging.getLogger(__name__)

RECOMMENDATION_SCORE: dict[str, int] = {
    "approve": 1,
    "review": 0,
    "reject": -1,
}

APPROVE_THRESHOLD = 0.35
REJECT_THRESHOLD = -0.35


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def weighted_recommendation_score(results: list[AIAnalysisResult]) -> float:
    """Confidence-weighted mean of approve=+1 / review=0 / reject=-1."""
    total_weight = 0.0
    weighted_sum = 0.0
    for result in results:
        weight = _clamp01(result.confidence)
        weighted_sum += RECOMMENDATION_SCORE[result.recommendation] * weight
        total_weight += weight
    return weighted_sum / total_weight if total_weight > 0 else 0.0


def _vote(results: list[AIAnalysisResult], weighted_average: float) -> str:
    rejects = sum(1 for r in results if r.recommendation == "reject")
    if weighted_average >= APPROVE_THRESHOLD and rejects == 0:
        recommendation = "approve"
    elif weighted_average <= REJECT_THRESHOLD or rejects > len(results) // 2:
        recommendation = "reject"
    else:
        recommendation = "review"

    if recommendation == "approve" and any(r.severity == "critical" for r in results):
        recommendation = "review"
    return recommendation


def _dominant_category(results: list[AIAnalysisResult]) -> str:
    # dicts keep insertion order, so exact ties resolve to the first-seen category
    weights: dict[str, float] = {}
    for result in results:
        weights[result.category] = weights.get(result.category, 0.0) + _clamp01(result.confidence)
    best, best_weight = results[0].category, -1.0
    for category, weight in weights.items():
        if weight > best_weight:
            best, best_weight = category, weight
    return best


def aggregate_chunk_results(
    pairs: list[tuple[VisionChunk, AIAnalysisResult]],
    provider: str,
    model: str,
    offset: int = 0,
) -> AIAnalysisResult:
    """Combine ordered (chunk, result) pairs into a single result.

    A single pair is returned unchanged.
    """
    if not pairs:
        raise ValueError("Cannot aggregate an empty list of chunk results")
    if len(pairs) == 1:
        return pairs[0][1]

    results = [result for _, result in pairs]
    total = len(results)
    weighted_average = weighted_recommendation_score(results)
    recommendation = _vote(results, weighted_average)

    severity = max((r.severity for r in results), key=lambda s: SEVERITY_RANK[s])
    confidence = round(sum(r.confidence for r in results) / total, 2)
    tokens_used = sum(r.tokens_used or 0 for r in results)

    counts = {key: sum(1 for r in results if r.recommendation == key) for key in RECOMMENDATION_SCORE}
    critical = sum(1 for r in results if r.severity == "critical")

    details = []
    for chunk, result in pairs:
        span = f"rows {chunk.baseline_y}-{chunk.baseline_y + chunk.height}"
        details.append(
            f"Chunk {chunk.index + 1}/{total} ({span}): {result.recommendation}, "
            f"{result.category}/{result.severity} - {result.summary}"
        )
        details.extend(f"Chunk {chunk.index + 1}: {d}" for d in result.details)

    summary = (
        f"Analyzed {total} aligned chunks (offset {offset:+d}px): "
        f"{counts['approve']} approve, {counts['review']} review, {counts['reject']} reject"
    )
    reasoning = (
        f"Confidence-weighted recommendation score {weighted_average:.2f} across {total} chunks "
        f"({counts['reject']} reject, {critical} critical)."
    )
    if recommendation == "review" and weighted_average >= APPROVE_THRESHOLD and counts["reject"] == 0:
        reasoning += " Downgraded from approve because a chunk reported critical severity."

    logger.debug("Aggregated %d chunks: score=%.2f -> %s", total, weighted_average, recommendation)
    return AIAnalysisResult(
        category=_dominant_category(results),
        severity=severity,
        confidence=confidence,
        summary=summary,
        details=details,
        recommendation=recommendation,
        reasoning=reasoning,
        provider=provider,
        model=model,
        tokens_used=tokens_used,
    )
