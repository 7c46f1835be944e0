"""Triage orchestration: smart pass, auto rules and run summaries."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from vrtriage.models.analysis import AIAnalysisResult
from vrtriage.models.comparison import ComparisonItem, DomDiffResult
from vrtriage.models.config import TriageConfig
from vrtriage.models.ledger import SmartPassDecision, TriageSummary
from vrtriage.models.scoring import ConfidenceInputs, ConfidenceResult
from vrtriage.scoring.confidence import calculate_confidence
from vrtriage.scoring.rules import RuleMatch, evaluate_auto_rules
from vrtriage.triage.smart_pass import evaluate_smart_pass
from vrtriage.triage.store import TriageStore

logger = logging.getLogger(__name__)

AIOutcome = Union[AIAnalysisResult, Exception]


class TriageOrchestrator:
    """Combines scorer, rules and the ledger into per-item triage decisions."""

    def __init__(self, store: TriageStore, config: Optional[TriageConfig] = None):
        self.store = store
        self.config = config or TriageConfig()

    @classmethod
    def from_config(cls, config: TriageConfig, root: Path = Path(".")) -> "TriageOrchestrator":
        return cls(TriageStore(root / config.ledger_path), config)

    def decide(
        self,
        item: ComparisonItem,
        ai_analysis: Optional[AIOutcome] = None,
        dom_diff: Optional[DomDiffResult] = None,
    ) -> SmartPassDecision:
        """Smart-pass decision for one item.

        A failed AI analysis (an exception value) is treated as no AI signal.
        """
        if isinstance(ai_analysis, Exception):
            logger.warning("Ignoring failed AI analysis for %s: %s", item.resolved_key, ai_analysis)
            ai_analysis = None
        return evaluate_smart_pass(
            item,
            ai_analysis,
            dom_diff,
            config=self.config.smart_pass,
            scoring=self.config.scoring,
        )

    def auto_action(self, inputs: ConfidenceInputs) -> tuple[ConfidenceResult, RuleMatch]:
        """Score a comparison and, when auto-approve is on, run the rules."""
        confidence = calculate_confidence(inputs, self.config.scoring)
        if not self.config.auto_approve.enabled:
            return confidence, RuleMatch()
        return confidence, evaluate_auto_rules(inputs, confidence, self.config.auto_approve.rules)

    def summarize(
        self,
        pair_key: str,
        items: list[ComparisonItem],
        ai_results: Optional[dict[str, AIOutcome]] = None,
        dom_diffs: Optional[dict[str, DomDiffResult]] = None,
    ) -> TriageSummary:
        """Count each visible item into exactly one bucket.

        Precedence: deleted (excluded), accepted, smart pass, match, diff,
        other issue. AI results and DOM diffs are keyed by item key.
        """
        ai_results = ai_results or {}
        dom_diffs = dom_diffs or {}
        ledger = self.store.load()
        acceptances = ledger.acceptances.get(pair_key, {})
        deletions = ledger.deletions.get(pair_key, {})

        summary = TriageSummary()
        for item in items:
            key = item.resolved_key
            if key in deletions:
                continue
            summary.item_count += 1

            if key in acceptances:
                summary.approved_count += 1
                continue

            decision = self.decide(item, ai_results.get(key), dom_diffs.get(key))
            if decision.smart_pass:
                summary.smart_pass_count += 1
            elif item.reason == "match":
                summary.match_count += 1
            elif item.reason == "diff":
                summary.diff_count += 1
            else:
                summary.issue_count += 1

        logger.info(
            "Triage %s: %d items, %d approved, %d smart pass, %d match, %d diff, %d issues",
            pair_key, summary.item_count, summary.approved_count, summary.smart_pass_count,
            summary.match_count, summary.diff_count, summary.issue_count,
        )
        return summary
