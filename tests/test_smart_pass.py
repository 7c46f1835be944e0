"""Tests for smart pass decisions and DOM classification."""

from conftest import layout_only_dom_diff, make_ai_result, make_item
from vrtriage.models.comparison import DomDiffResult, DomFinding
from vrtriage.models.config import SmartPassConfig
from vrtriage.triage.classification import (
    classification_to_category,
    classify_findings,
    dom_category,
)
from vrtriage.triage.smart_pass import build_signals, evaluate_smart_pass


def _finding(type_, severity="info"):
    return DomFinding(type=type_, path="body > main", tag="main", severity=severity)


class TestClassification:
    """Tests for mapping DOM findings to categories."""

    def test_no_diff(self):
        """Test a missing DOM diff implies no category."""
        assert dom_category(None) is None

    def test_no_findings(self):
        """Test a clean DOM diff implies no category."""
        assert dom_category(DomDiffResult()) is None

    def test_layout_findings(self):
        """Test layout shifts map to the layout_shift category."""
        assert dom_category(layout_only_dom_diff()) == "layout_shift"

    def test_style_only_is_cosmetic(self):
        """Test style and background changes are cosmetic."""
        diff = DomDiffResult(findings=[_finding("style_change"), _finding("background_change")])
        assert dom_category(diff) == "cosmetic"

    def test_severity_beats_count(self):
        """Test the most severe class is primary even when outnumbered."""
        diff = DomDiffResult(findings=[
            _finding("style_change"), _finding("style_change"), _finding("style_change"),
            _finding("text_changed", severity="warning"),
        ])
        result = classify_findings(diff)
        assert result.primary_class == "text"
        assert result.overall_severity == "warning"
        assert classification_to_category(result) == "content_change"

    def test_count_breaks_severity_ties(self):
        """Test the larger class wins among equally severe classes."""
        diff = DomDiffResult(findings=[
            _finding("spacing_change"), _finding("style_change"), _finding("style_change"),
        ])
        result = classify_findings(diff)
        assert result.primary_class == "style"
        assert [c.change_class for c in result.classifications] == ["style", "spacing"]


class TestBuildSignals:
    """Tests for build_signals."""

    def test_dom_category_folded_in(self):
        """Test the DOM category stands in for a missing AI category."""
        signals = build_signals(make_item(), None, layout_only_dom_diff())
        assert signals.ai_category == "layout_shift"
        assert signals.ai_confidence is None
        assert signals.phash_similarity == 0.95

    def test_dom_category_disabled(self):
        """Test the DOM category can be switched off."""
        signals = build_signals(make_item(), None, layout_only_dom_diff(), use_dom_category=False)
        assert signals.ai_category is None

    def test_ai_category_wins(self):
        """Test an AI category is never overridden by the DOM."""
        ai = make_ai_result(category="noise")
        signals = build_signals(make_item(), ai, layout_only_dom_diff())
        assert signals.ai_category == "noise"
        assert signals.ai_recommendation == "approve"


class TestEvaluateSmartPass:
    """Tests for evaluate_smart_pass."""

    def test_error_not_eligible(self):
        """Test failed comparisons never smart pass."""
        decision = evaluate_smart_pass(make_item(reason="error"))
        assert decision.smart_pass is False
        assert decision.reason == "Not eligible: comparison error"
        assert decision.via == "none"

    def test_missing_baseline_not_eligible(self):
        """Test new screenshots without a baseline never smart pass."""
        assert evaluate_smart_pass(make_item(reason="no-baseline")).smart_pass is False

    def test_zero_diff_not_eligible(self):
        """Test an exact match is not a smart pass."""
        decision = evaluate_smart_pass(make_item(reason="match", diff_percentage=0.0))
        assert decision.smart_pass is False
        assert "no pixel difference" in decision.reason

    def test_confidence_path(self):
        """Test a high-confidence near-match passes via the scorer."""
        item = make_item(diff_percentage=0.5, phash_similarity=0.99, ssim_score=0.99)
        decision = evaluate_smart_pass(item)
        assert decision.smart_pass is True
        assert decision.via == "confidence"
        assert decision.confidence.verdict == "pass"
        assert decision.reason.startswith("Confidence pass")

    def test_cross_browser_fallback(self):
        """Test rendering drift with only layout shifts passes via the heuristic."""
        decision = evaluate_smart_pass(make_item(), dom_diff=layout_only_dom_diff(100))
        assert decision.smart_pass is True
        assert decision.via == "cross_browser"
        assert "Cross-browser heuristic" in decision.reason
        assert decision.reason == (
            "Cross-browser heuristic: pHash 95%, 12.00% pixel diff, 100 layout shifts, "
            "no text or structural DOM changes"
        )
        assert decision.confidence.verdict not in ("pass", "likely-pass")

    def test_fallback_needs_dom_diff(self):
        """Test the heuristic is off without a DOM diff."""
        decision = evaluate_smart_pass(make_item())
        assert decision.smart_pass is False
        assert "no DOM diff available" in decision.reason

    def test_text_change_blocks(self):
        """Test changed text is never rendering drift."""
        dom = layout_only_dom_diff()
        dom.findings.append(_finding("text_changed"))
        decision = evaluate_smart_pass(make_item(), dom_diff=dom)
        assert decision.smart_pass is False
        assert "DOM shows text_changed" in decision.reason

    def test_structural_change_blocks(self):
        """Test added or removed elements block the heuristic."""
        dom = DomDiffResult(summary={"layout_shift": 5, "element_removed": 1})
        decision = evaluate_smart_pass(make_item(), dom_diff=dom)
        assert decision.smart_pass is False
        assert "element_removed" in decision.reason

    def test_too_many_layout_shifts(self):
        """Test a wholesale re-layout blocks the heuristic."""
        decision = evaluate_smart_pass(make_item(), dom_diff=layout_only_dom_diff(451))
        assert decision.smart_pass is False
        assert "451 layout shifts > 450" in decision.reason

    def test_low_phash_blocks(self):
        """Test perceptually different images block the heuristic."""
        decision = evaluate_smart_pass(make_item(phash_similarity=0.9), dom_diff=layout_only_dom_diff())
        assert decision.smart_pass is False
        assert "pHash 0.90 < 0.93" in decision.reason

    def test_missing_phash_blocks(self):
        """Test the heuristic needs a pHash similarity."""
        decision = evaluate_smart_pass(make_item(phash_similarity=None), dom_diff=layout_only_dom_diff())
        assert decision.smart_pass is False
        assert "no pHash similarity" in decision.reason

    def test_large_diff_blocks(self):
        """Test a large pixel diff blocks the heuristic."""
        decision = evaluate_smart_pass(make_item(diff_percentage=25.0), dom_diff=layout_only_dom_diff())
        assert decision.smart_pass is False
        assert "diff 25.00% > 18%" in decision.reason

    def test_ai_reject_blocks(self):
        """Test an AI rejection blocks the heuristic."""
        ai = make_ai_result("reject", 0.9, category="regression", severity="critical")
        decision = evaluate_smart_pass(make_item(), ai, layout_only_dom_diff())
        assert decision.smart_pass is False
        assert "AI recommends reject" in decision.reason

    def test_custom_thresholds(self):
        """Test the heuristic thresholds are configurable."""
        config = SmartPassConfig(max_diff_percentage=10.0)
        decision = evaluate_smart_pass(make_item(), dom_diff=layout_only_dom_diff(), config=config)
        assert decision.smart_pass is False
        assert "diff 12.00% > 10%" in decision.reason
