"""Confidence scoring and auto-rule data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

from vrtriage.models.analysis import AIAnalysisResult, ChangeCategory, Recommendation, Severity

Verdict = Literal["pass", "likely-pass", "needs-review", "likely-fail", "fail"]
RuleAction = Literal["approve", "flag", "reject"]


class ScoringWeights(BaseModel):
    ssim: float = 0.25
    phash: float = 0.2
    pixel: float = 0.15
    ai: float = 0.4


class ScoringWeightsNoAI(BaseModel):
    ssim: float = 0.45
    phash: float = 0.3
    pixel: float = 0.25


class VerdictThresholds(BaseModel):
    pass_: float = Field(default=0.9, alias="pass")
    likely_pass: float = 0.75
    needs_review: float = 0.5
    likely_fail: float = 0.3

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_descending(self) -> "VerdictThresholds":
        ordered = [self.pass_, self.likely_pass, self.needs_review, self.likely_fail]
        if any(a < b for a, b in zip(ordered, ordered[1:])):
            raise ValueError(
                "Verdict thresholds must descend: pass >= likely_pass >= needs_review >= likely_fail"
            )
        return self


def _default_category_adjustments() -> dict[str, float]:
    return {
        "cosmetic": 0.15,
        "noise": 0.2,
        "content_change": -0.05,
        "layout_shift": -0.1,
        "regression": -0.25,
    }


class ScoringConfig(BaseModel):
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    weights_no_ai: ScoringWeightsNoAI = Field(default_factory=ScoringWeightsNoAI)
    category_adjustments: dict[str, float] = Field(default_factory=_default_category_adjustments)
    verdict_thresholds: VerdictThresholds = Field(default_factory=VerdictThresholds)
    pixel_decay_factor: float = Field(default=10.0, gt=0)


class ComparisonSignals(BaseModel):
    """Signals fused by the confidence scorer."""
    pixel_diff_percent: float = Field(ge=0.0, le=100.0)
    ssim_score: Optional[float] = None
    phash_similarity: Optional[float] = None
    ai_confidence: Optional[float] = None
    ai_recommendation: Optional[Recommendation] = None
    ai_category: Optional[ChangeCategory] = None


class ConfidenceInputs(BaseModel):
    """Raw comparison outputs plus an optional AI verdict."""
    pixel_diff_percent: float = Field(ge=0.0, le=100.0)
    ssim_score: Optional[float] = None
    phash_similarity: Optional[float] = None
    ai_analysis: Optional[AIAnalysisResult] = None

    def to_signals(self) -> ComparisonSignals:
        ai = self.ai_analysis
        return ComparisonSignals(
            pixel_diff_percent=self.pixel_diff_percent,
            ssim_score=self.ssim_score,
            phash_similarity=self.phash_similarity,
            ai_confidence=ai.confidence if ai else None,
            ai_recommendation=ai.recommendation if ai else None,
            ai_category=ai.category if ai else None,
        )


class ScoreFactor(BaseModel):
    value: float
    contribution: float
    category: Optional[ChangeCategory] = None


class ScoringFactors(BaseModel):
    ssim: Optional[ScoreFactor] = None
    phash: Optional[ScoreFactor] = None
    pixel: Optional[ScoreFactor] = None
    ai: Optional[ScoreFactor] = None


class ConfidenceResult(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    verdict: Verdict
    explanation: str = ""
    factors: ScoringFactors = Field(default_factory=ScoringFactors)


class RuleCondition(BaseModel):
    categories: Optional[list[ChangeCategory]] = None
    max_severity: Optional[Severity] = None
    min_confidence: Optional[float] = None
    max_pixel_diff: Optional[float] = None
    min_ssim: Optional[float] = None
    min_phash: Optional[float] = None


class AutoRule(BaseModel):
    condition: RuleCondition = Field(default_factory=RuleCondition)
    action: RuleAction
    name: str = ""


class RuleInputs(BaseModel):
    pixel_diff_percent: float
    confidence_score: float
    ssim_score: Optional[float] = None
    phash_similarity: Optional[float] = None
    ai_category: Optional[ChangeCategory] = None
    ai_severity: Optional[Severity] = None
