"""Vision chunk data structures for long-page AI analysis."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class VisionChunk(BaseModel):
    index: int
    source_y: int  # band start in the baseline before alignment
    source_height: int
    baseline_y: int
    test_y: int
    height: int  # aligned height, identical in both crops
    baseline_path: str
    test_path: str
    diff_path: Optional[str] = None


class ChunkPlan(BaseModel):
    chunked: bool
    offset: int = 0  # positive: test content sits lower than baseline
    chunks: list[VisionChunk] = Field(default_factory=list)
    scratch_dir: Optional[str] = None
    reason: Optional[str] = None
    baseline_height: int = 0
    test_height: int = 0
