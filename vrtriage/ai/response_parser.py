"""Strict validation of AI analysis responses."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from vrtriage.errors import AIResponseParseError
from vrtriage.models.analysis import AIAnalysisResult, RawAIResponse

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


@dataclass
class ParseResult:
    """Tagged outcome of parsing one AI response."""
    ok: bool
    value: Optional[RawAIResponse] = None
    error: Optional[str] = None


def extract_json_from_response(text: str) -> str:
    """Return the body of the first fenced code block, or the trimmed text."""
    trimmed = text.strip()
    match = _FENCE_RE.search(trimmed)
    return match.group(1) if match else trimmed


def parse_ai_response(text: str) -> RawAIResponse:
    """Parse and validate a provider's text; raise AIResponseParseError on any mismatch."""
    json_text = extract_json_from_response(text)
    try:
        data = json.loads(json_text)
    except json.JSONDecodeError as e:
        raise AIResponseParseError(
            f"Failed to parse AI response as JSON: {json_text[:200]}...", raw_text=text
        ) from e

    if not isinstance(data, dict):
        raise AIResponseParseError(
            f"AI response must be a JSON object, got {type(data).__name__}", raw_text=text
        )

    try:
        return RawAIResponse.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise AIResponseParseError(f"AI response failed schema validation: {errors}", raw_text=text) from e


def try_parse_ai_response(text: str) -> ParseResult:
    try:
        return ParseResult(ok=True, value=parse_ai_response(text))
    except AIResponseParseError as e:
        logger.debug("AI response rejected: %s", e)
        return ParseResult(ok=False, error=str(e))


def build_analysis_result(
    raw: RawAIResponse,
    provider: str,
    model: str,
    tokens_used: Optional[int] = None,
) -> AIAnalysisResult:
    return AIAnalysisResult(
        **raw.model_dump(),
        provider=provider,
        model=model,
        tokens_used=tokens_used,
    )
