"""Comparison run data structures consumed by triage."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

ComparisonReason = Literal["match", "diff", "no-baseline", "no-test", "error"]

FindingType = Literal[
    "text_changed",
    "text_moved",
    "layout_shift",
    "spacing_change",
    "style_change",
    "background_change",
    "element_added",
    "element_removed",
]


def build_item_key(scenario: str, viewport: str) -> str:
    return f"{scenario}__{viewport}"


class PerceptualHashResult(BaseModel):
    baseline_hash: str
    test_hash: str
    hamming_distance: int
    similarity: float


class DomFinding(BaseModel):
    type: FindingType
    path: str = ""
    tag: str = ""
    severity: Literal["info", "warning", "critical"] = "info"
    description: str = ""


class DomDiffResult(BaseModel):
    """Output of the DOM-diff collaborator for one screenshot pair."""
    findings: list[DomFinding] = Field(default_factory=list)
    summary: dict[str, int] = Field(default_factory=dict)
    similarity: float = 1.0

    def count(self, finding_type: str) -> int:
        """Number of findings of a type, preferring the collaborator's own tally."""
        if finding_type in self.summary:
            return self.summary[finding_type]
        return sum(1 for f in self.findings if f.type == finding_type)


class ComparisonItem(BaseModel):
    """One compared screenshot pair inside a comparison run."""
    item_key: Optional[str] = None
    name: str = ""
    scenario: str
    viewport: str
    baseline: str = ""
    test: str = ""
    diff: Optional[str] = None
    match: bool = False
    reason: ComparisonReason = "diff"
    diff_percentage: float = 0.0
    pixel_diff: int = 0
    ssim_score: Optional[float] = None
    phash: Optional[PerceptualHashResult] = None
    error: Optional[str] = None

    @property
    def resolved_key(self) -> str:
        return self.item_key or build_item_key(self.scenario, self.viewport)
