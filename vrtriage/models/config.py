"""Configuration models for the triage engine."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from vrtriage.models.scoring import AutoRule, ScoringConfig
from vrtriage.scoring.rules import DEFAULT_AUTO_RULES


class VisionCompareConfig(BaseModel):
    """Chunking and vertical alignment for long pages sent to a vision model."""
    enabled: bool = True
    chunks: int = Field(default=6, ge=1, le=12)
    min_image_height: int = Field(default=1800, ge=400, le=12000)
    max_vertical_align_shift: int = Field(default=220, ge=0, le=2000)
    include_diff_image: bool = False


class AIConfig(BaseModel):
    enabled: bool = True
    provider: str = "anthropic"
    model: Optional[str] = None
    api_key: Optional[str] = None
    auth_token: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 1024
    concurrency: int = Field(default=3, ge=1, le=16)

    @field_validator("api_key", "auth_token", mode="before")
    @classmethod
    def resolve_env_secret(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str) and v.startswith("env:"):
            env_var = v[4:]
            resolved = os.environ.get(env_var)
            if resolved is None:
                raise ValueError(f"Environment variable '{env_var}' not set")
            return resolved
        return v


class SmartPassConfig(BaseModel):
    # Empirically tuned for chromium-vs-webkit drift; change only with product sign-off
    min_phash_similarity: float = Field(default=0.93, ge=0.0, le=1.0)
    max_diff_percentage: float = Field(default=18.0, ge=0.0, le=100.0)
    max_layout_shift_count: int = Field(default=450, ge=0)
    use_dom_category: bool = True


def _default_rules() -> list[AutoRule]:
    return [rule.model_copy(deep=True) for rule in DEFAULT_AUTO_RULES]


class AutoApproveConfig(BaseModel):
    enabled: bool = False
    rules: list[AutoRule] = Field(default_factory=_default_rules)


class TriageConfig(BaseModel):
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    vision_compare: VisionCompareConfig = Field(default_factory=VisionCompareConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    smart_pass: SmartPassConfig = Field(default_factory=SmartPassConfig)
    auto_approve: AutoApproveConfig = Field(default_factory=AutoApproveConfig)

    # Ledger
    ledger_path: str = ".vrt/acceptances/triage.json"

    @classmethod
    def load(cls, path: str | Path) -> "TriageConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(by_alias=True), f, indent=2)
