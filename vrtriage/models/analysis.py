"""AI vision analysis data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

ChangeCategory = Literal["regression", "cosmetic", "content_change", "layout_shift", "noise"]
Severity = Literal["info", "warning", "critical"]
Recommendation = Literal["approve", "review", "reject"]

SEVERITY_RANK: dict[str, int] = {
    "info": 0,
    "warning": 1,
    "critical": 2,
}


class RawAIResponse(BaseModel):
    """The JSON object an AI provider must answer with."""
    category: ChangeCategory
    severity: Severity
    confidence: float = Field(ge=0.0, le=1.0)
    summary: str
    details: list[str] = Field(default_factory=list)
    recommendation: Recommendation
    reasoning: str


class AIAnalysisResult(RawAIResponse):
    provider: str
    model: str
    tokens_used: Optional[int] = None


class AnalysisItem(BaseModel):
    """One image pair queued for batch analysis."""
    name: str
    baseline: str
    test: str
    diff: Optional[str] = None
