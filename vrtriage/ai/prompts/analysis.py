"""Prompt for the visual-regression vision analysis."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from vrtriage.models.chunk import VisionChunk


class PromptContext(BaseModel):
    url: Optional[str] = None
    scenario_name: Optional[str] = None
    pixel_diff: Optional[int] = None
    diff_percentage: Optional[float] = None
    ssim_score: Optional[float] = None


ANALYSIS_PROMPT = """You are a visual regression testing assistant analyzing UI screenshots for changes.

You are comparing:
- IMAGE 1: Baseline (the approved/expected state)
- IMAGE 2: Current test (the new screenshot to evaluate)
- IMAGE 3: Pixel diff (highlights where pixels differ, if provided)

{context}Analyze the differences and respond with ONLY a valid JSON object (no markdown, no explanation outside JSON):

{{
  "category": "regression" | "cosmetic" | "content_change" | "layout_shift" | "noise",
  "severity": "critical" | "warning" | "info",
  "confidence": <number between 0.0 and 1.0>,
  "summary": "<one sentence describing the key change>",
  "details": ["<specific change 1>", "<specific change 2>", ...],
  "recommendation": "approve" | "review" | "reject",
  "reasoning": "<why you made this recommendation>"
}}

Category definitions:
- regression: Unintended visual bug (broken layout, missing elements, rendering errors)
- cosmetic: Minor visual difference unlikely to affect UX (font rendering, anti-aliasing, subpixel differences)
- content_change: Text or image content that changed (may be intentional)
- layout_shift: Spacing, positioning, or size changes (may be intentional redesign)
- noise: Non-deterministic differences (animation frames, timestamps, cursors, loading states)

Severity guidelines:
- critical: Broken functionality, missing important elements, major layout issues
- warning: Noticeable changes that may or may not be intentional
- info: Minor changes unlikely to impact user experience

Recommendation guidelines:
- approve: Safe to auto-approve (cosmetic/noise with high confidence)
- review: Human should look at this (content changes, uncertain cases)
- reject: Likely a regression that needs fixing"""


def build_context_lines(ctx: PromptContext) -> list[str]:
    lines = []
    if ctx.url:
        lines.append(f"URL: {ctx.url}")
    if ctx.scenario_name:
        lines.append(f"Scenario: {ctx.scenario_name}")
    if ctx.pixel_diff is not None:
        lines.append(f"Pixel diff: {ctx.pixel_diff} pixels")
    if ctx.diff_percentage is not None:
        lines.append(f"Diff percentage: {ctx.diff_percentage:.2f}%")
    if ctx.ssim_score is not None:
        lines.append(f"SSIM score: {ctx.ssim_score * 100:.1f}%")
    return lines


def build_chunk_lines(chunk: VisionChunk, total: int, offset: int) -> list[str]:
    return [
        f"Section: {chunk.index + 1} of {total} (vertical slice of a long page)",
        f"Baseline rows {chunk.baseline_y}-{chunk.baseline_y + chunk.height}, "
        f"test rows {chunk.test_y}-{chunk.test_y + chunk.height}",
        f"The test page was aligned with a {offset:+d}px vertical offset; "
        "ignore differences caused only by content entering or leaving the slice edges.",
    ]


def build_analysis_prompt(
    ctx: PromptContext,
    chunk: Optional[VisionChunk] = None,
    total_chunks: int = 1,
    offset: int = 0,
) -> str:
    """Build the full analysis prompt, optionally describing the chunk being sent."""
    lines = build_context_lines(ctx)
    if chunk is not None and total_chunks > 1:
        lines.extend(build_chunk_lines(chunk, total_chunks, offset))
    context = "Context:\n" + "\n".join(lines) + "\n\n" if lines else ""
    return ANALYSIS_PROMPT.format(context=context)
