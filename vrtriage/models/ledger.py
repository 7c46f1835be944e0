"""Triage ledger data structures."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from vrtriage.models.scoring import ConfidenceResult


class AcceptanceRecord(BaseModel):
    accepted_at: str  # ISO timestamp
    reason: Optional[str] = None


class FlagRecord(BaseModel):
    flagged_at: str  # ISO timestamp
    reason: Optional[str] = None


class DeletionRecord(BaseModel):
    deleted_at: str  # ISO timestamp


class TriageLedger(BaseModel):
    last_updated: str = ""
    # pair key -> item key ("{scenario}__{viewport}") -> record
    acceptances: dict[str, dict[str, AcceptanceRecord]] = Field(default_factory=dict)
    flags: dict[str, dict[str, FlagRecord]] = Field(default_factory=dict)
    deletions: dict[str, dict[str, DeletionRecord]] = Field(default_factory=dict)


class SmartPassDecision(BaseModel):
    smart_pass: bool
    reason: str
    via: Literal["confidence", "cross_browser", "none"] = "none"
    confidence: Optional[ConfidenceResult] = None


class TriageSummary(BaseModel):
    item_count: int = 0
    approved_count: int = 0
    smart_pass_count: int = 0
    match_count: int = 0
    diff_count: int = 0
    issue_count: int = 0
