"""Smart pass: treat visually different but equivalent screenshots as passing."""

from __future__ import annotations

import logging
from typing import Optional

from vrtriage.models.analysis import AIAnalysisResult
from vrtriage.models.comparison import ComparisonItem, DomDiffResult
from vrtriage.models.config import SmartPassConfig
from vrtriage.models.ledger import SmartPassDecision
from vrtriage.models.scoring import ComparisonSignals, ScoringConfig
from vrtriage.scoring.confidence import score_signals
from vrtriage.triage.classification import dom_category

logger = logging.getLogger(__name__)

ELIGIBLE_REASONS = ("match", "diff")
PASSING_VERDICTS = ("pass", "likely-pass")
# DOM findings that mean the page content really changed
BLOCKING_FINDINGS = ("text_changed", "element_added", "element_removed")


def build_signals(
    item: ComparisonItem,
    ai_analysis: Optional[AIAnalysisResult] = None,
    dom_diff: Optional[DomDiffResult] = None,
    use_dom_category: bool = True,
) -> ComparisonSignals:
    """Scorer signals for a comparison item, folding in a DOM-derived category."""
    category = ai_analysis.category if ai_analysis else None
    if category is None and use_dom_category:
        category = dom_category(dom_diff)
    return ComparisonSignals(
        pixel_diff_percent=item.diff_percentage,
        ssim_score=item.ssim_score,
        phash_similarity=item.phash.similarity if item.phash else None,
        ai_confidence=ai_analysis.confidence if ai_analysis else None,
        ai_recommendation=ai_analysis.recommendation if ai_analysis else None,
        ai_category=category,
    )


def _cross_browser_failures(
    item: ComparisonItem,
    ai_analysis: Optional[AIAnalysisResult],
    dom_diff: Optional[DomDiffResult],
    config: SmartPassConfig,
) -> list[str]:
    failures = []
    if ai_analysis and ai_analysis.recommendation == "reject":
        failures.append("AI recommends reject")
    if dom_diff is None:
        failures.append("no DOM diff available")
    else:
        blocking = [t for t in BLOCKING_FINDINGS if dom_diff.count(t) > 0]
        if blocking:
            failures.append(f"DOM shows {', '.join(blocking)}")
        layout_shifts = dom_diff.count("layout_shift")
        if layout_shifts > config.max_layout_shift_count:
            failures.append(f"{layout_shifts} layout shifts > {config.max_layout_shift_count}")
    if item.phash is None:
        failures.append("no pHash similarity")
    elif item.phash.similarity < config.min_phash_similarity:
        failures.append(f"pHash {item.phash.similarity:.2f} < {config.min_phash_similarity:.2f}")
    if item.diff_percentage > config.max_diff_percentage:
        failures.append(f"diff {item.diff_percentage:.2f}% > {config.max_diff_percentage:g}%")
    return failures


def evaluate_smart_pass(
    item: ComparisonItem,
    ai_analysis: Optional[AIAnalysisResult] = None,
    dom_diff: Optional[DomDiffResult] = None,
    config: Optional[SmartPassConfig] = None,
    scoring: Optional[ScoringConfig] = None,
) -> SmartPassDecision:
    """Decide whether a differing item should count as passing."""
    config = config or SmartPassConfig()

    if item.reason not in ELIGIBLE_REASONS:
        return SmartPassDecision(smart_pass=False, reason=f"Not eligible: comparison {item.reason}")
    if item.diff_percentage <= 0:
        return SmartPassDecision(smart_pass=False, reason="Not eligible: no pixel difference")

    signals = build_signals(item, ai_analysis, dom_diff, config.use_dom_category)
    confidence = score_signals(signals, scoring)
    if confidence.verdict in PASSING_VERDICTS:
        return SmartPassDecision(
            smart_pass=True,
            via="confidence",
            reason=f"Confidence {confidence.verdict} ({confidence.score:.2f}): {confidence.explanation}",
            confidence=confidence,
        )

    failures = _cross_browser_failures(item, ai_analysis, dom_diff, config)
    if not failures:
        layout_shifts = dom_diff.count("layout_shift")
        reason = (
            f"Cross-browser heuristic: pHash {item.phash.similarity * 100:.0f}%, "
            f"{item.diff_percentage:.2f}% pixel diff, {layout_shifts} layout shifts, "
            "no text or structural DOM changes"
        )
        logger.debug("Smart pass for %s: %s", item.resolved_key, reason)
        return SmartPassDecision(smart_pass=True, via="cross_browser", reason=reason, confidence=confidence)

    return SmartPassDecision(
        smart_pass=False,
        reason=f"Confidence {confidence.verdict} ({confidence.score:.2f}); "
               f"cross-browser heuristic failed: {'; '.join(failures)}",
        confidence=confidence,
    )
