"""Ordered auto-action rules: the first fully satisfied rule wins."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from vrtriage.models.analysis import SEVERITY_RANK
from vrtriage.models.scoring import (
    AutoRule,
    ConfidenceInputs,
    ConfidenceResult,
    RuleCondition,
    RuleInputs,
)

logger = logging.getLogger(__name__)

Predicate = Callable[[RuleInputs], bool]


@dataclass
class RuleMatch:
    action: Optional[str] = None
    matched_rule: Optional[AutoRule] = None


def _category_in(categories: list[str]) -> Predicate:
    allowed = set(categories)
    return lambda i: i.ai_category is None or i.ai_category in allowed


def _severity_at_most(max_severity: str) -> Predicate:
    ceiling = SEVERITY_RANK[max_severity]
    return lambda i: i.ai_severity is None or SEVERITY_RANK[i.ai_severity] <= ceiling


def _confidence_at_least(minimum: float) -> Predicate:
    return lambda i: i.confidence_score >= minimum


def _pixel_diff_at_most(maximum: float) -> Predicate:
    return lambda i: i.pixel_diff_percent <= maximum


def _ssim_at_least(minimum: float) -> Predicate:
    return lambda i: i.ssim_score is None or i.ssim_score >= minimum


def _phash_at_least(minimum: float) -> Predicate:
    return lambda i: i.phash_similarity is None or i.phash_similarity >= minimum


def condition_predicates(condition: RuleCondition) -> list[Predicate]:
    """Compile a condition into its conjunctive predicate list.

    Predicates on signals the inputs do not carry are always satisfied.
    """
    predicates: list[Predicate] = []
    if condition.categories is not None:
        predicates.append(_category_in(condition.categories))
    if condition.max_severity is not None:
        predicates.append(_severity_at_most(condition.max_severity))
    if condition.min_confidence is not None:
        predicates.append(_confidence_at_least(condition.min_confidence))
    if condition.max_pixel_diff is not None:
        predicates.append(_pixel_diff_at_most(condition.max_pixel_diff))
    if condition.min_ssim is not None:
        predicates.append(_ssim_at_least(condition.min_ssim))
    if condition.min_phash is not None:
        predicates.append(_phash_at_least(condition.min_phash))
    return predicates


def matches_rule_condition(inputs: RuleInputs, condition: RuleCondition) -> bool:
    return all(predicate(inputs) for predicate in condition_predicates(condition))


def evaluate_rules(inputs: RuleInputs, rules: list[AutoRule]) -> RuleMatch:
    for index, rule in enumerate(rules):
        if matches_rule_condition(inputs, rule.condition):
            logger.debug("Auto rule #%d %s matched -> %s", index + 1, rule.name or "", rule.action)
            return RuleMatch(action=rule.action, matched_rule=rule)
    return RuleMatch()


def build_rule_inputs(inputs: ConfidenceInputs, confidence: ConfidenceResult) -> RuleInputs:
    ai = inputs.ai_analysis
    return RuleInputs(
        ssim_score=inputs.ssim_score,
        phash_similarity=inputs.phash_similarity,
        pixel_diff_percent=inputs.pixel_diff_percent,
        confidence_score=confidence.score,
        ai_category=ai.category if ai else None,
        ai_severity=ai.severity if ai else None,
    )


def evaluate_auto_rules(
    inputs: ConfidenceInputs,
    confidence: ConfidenceResult,
    rules: list[AutoRule],
) -> RuleMatch:
    """Check whether a comparison should be auto-approved, flagged or rejected."""
    return evaluate_rules(build_rule_inputs(inputs, confidence), rules)


DEFAULT_AUTO_RULES: list[AutoRule] = [
    AutoRule(
        name="cosmetic-or-noise",
        condition=RuleCondition(
            categories=["cosmetic", "noise"],
            max_severity="info",
            min_confidence=0.85,
        ),
        action="approve",
    ),
    AutoRule(
        name="confident-regression",
        condition=RuleCondition(categories=["regression"], min_confidence=0.7),
        action="reject",
    ),
    AutoRule(
        name="perceptually-identical",
        condition=RuleCondition(min_phash=0.98, min_ssim=0.98),
        action="approve",
    ),
]
