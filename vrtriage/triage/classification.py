"""Map DOM-diff findings onto change categories. Pure functions, no I/O."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from vrtriage.models.analysis import SEVERITY_RANK
from vrtriage.models.comparison import DomDiffResult, DomFinding

FINDING_TO_CLASS: dict[str, str] = {
    "text_changed": "text",
    "text_moved": "text",
    "layout_shift": "layout",
    "element_added": "layout",
    "element_removed": "layout",
    "spacing_change": "spacing",
    "style_change": "style",
    "background_change": "background",
}

CLASS_TO_CATEGORY: dict[str, str] = {
    "text": "content_change",
    "layout": "layout_shift",
    "spacing": "layout_shift",
    "style": "cosmetic",
    "background": "cosmetic",
}


@dataclass
class ClassificationEntry:
    change_class: str
    findings: list[DomFinding]
    max_severity: str


@dataclass
class ClassificationResult:
    classifications: list[ClassificationEntry] = field(default_factory=list)
    primary_class: Optional[str] = None
    overall_severity: str = "info"


def _max_severity(a: str, b: str) -> str:
    return a if SEVERITY_RANK[a] >= SEVERITY_RANK[b] else b


def classify_findings(diff: DomDiffResult) -> ClassificationResult:
    """Group findings by change class, most severe (then most numerous) first."""
    grouped: dict[str, list[DomFinding]] = {}
    for finding in diff.findings:
        grouped.setdefault(FINDING_TO_CLASS[finding.type], []).append(finding)

    classifications = []
    overall = "info"
    for change_class, findings in grouped.items():
        severity = "info"
        for f in findings:
            severity = _max_severity(severity, f.severity)
        findings.sort(key=lambda f: SEVERITY_RANK[f.severity], reverse=True)
        classifications.append(ClassificationEntry(change_class, findings, severity))
        overall = _max_severity(overall, severity)

    classifications.sort(key=lambda c: (SEVERITY_RANK[c.max_severity], len(c.findings)), reverse=True)
    primary = classifications[0].change_class if classifications else None
    return ClassificationResult(classifications, primary, overall)


def classification_to_category(classification: ClassificationResult) -> Optional[str]:
    if classification.primary_class is None:
        return None
    return CLASS_TO_CATEGORY[classification.primary_class]


def dom_category(diff: Optional[DomDiffResult]) -> Optional[str]:
    """Category implied by a DOM diff, or None when there is nothing to go on."""
    if diff is None:
        return None
    return classification_to_category(classify_findings(diff))
