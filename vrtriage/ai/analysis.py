"""AI vision analysis of screenshot pairs, with transparent chunking."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field

from vrtriage.ai.aggregator import aggregate_chunk_results
from vrtriage.ai.prompts.analysis import PromptContext, build_analysis_prompt
from vrtriage.ai.providers import AIProvider, AnalysisRequest, ImageInput, create_provider, resolve_model
from vrtriage.ai.response_parser import build_analysis_result, parse_ai_response
from vrtriage.imaging.chunk_aligner import vision_chunks
from vrtriage.models.analysis import AIAnalysisResult, AnalysisItem
from vrtriage.models.config import AIConfig, VisionCompareConfig

logger = logging.getLogger(__name__)


class AIAnalysisOptions(BaseModel):
    provider: str = "anthropic"
    api_key: Optional[str] = None
    auth_token: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    max_tokens: int = 1024
    scenario_name: Optional[str] = None
    url: Optional[str] = None
    pixel_diff: Optional[int] = None
    diff_percentage: Optional[float] = None
    ssim_score: Optional[float] = None
    vision_compare: VisionCompareConfig = Field(default_factory=VisionCompareConfig)
    scratch_root: Optional[str] = None

    @classmethod
    def from_config(cls, ai: AIConfig, vision_compare: VisionCompareConfig) -> "AIAnalysisOptions":
        return cls(
            provider=ai.provider,
            api_key=ai.api_key,
            auth_token=ai.auth_token,
            model=ai.model,
            base_url=ai.base_url,
            max_tokens=ai.max_tokens,
            vision_compare=vision_compare,
        )

    def prompt_context(self) -> PromptContext:
        return PromptContext(
            url=self.url,
            scenario_name=self.scenario_name,
            pixel_diff=self.pixel_diff,
            diff_percentage=self.diff_percentage,
            ssim_score=self.ssim_score,
        )


def _ensure_file_exists(path: str | Path, label: str) -> None:
    if not Path(path).exists():
        raise FileNotFoundError(f"{label} image not found: {path}")


def _provider_for(options: AIAnalysisOptions) -> AIProvider:
    return create_provider(
        options.provider,
        api_key=options.api_key,
        auth_token=options.auth_token,
        base_url=options.base_url,
        max_tokens=options.max_tokens,
    )


def analyze_with_ai(
    baseline_path: str | Path,
    test_path: str | Path,
    diff_path: str | Path | None,
    options: AIAnalysisOptions,
    provider: Optional[AIProvider] = None,
) -> AIAnalysisResult:
    """Analyze the visual difference between two screenshots.

    Tall pages are split into aligned chunks, each chunk is sent to the
    provider in order, and the chunk verdicts are merged. Scratch crops are
    removed before returning or raising.
    """
    _ensure_file_exists(baseline_path, "Baseline")
    _ensure_file_exists(test_path, "Test")
    if diff_path and not Path(diff_path).exists():
        diff_path = None

    provider = provider or _provider_for(options)
    model = resolve_model(options.provider, options.model)
    context = options.prompt_context()

    with vision_chunks(
        baseline_path, test_path, diff_path, options.vision_compare, options.scratch_root
    ) as plan:
        if not plan.chunked:
            logger.debug("Analyzing %s without chunking: %s", options.scenario_name or test_path, plan.reason)
            response = provider.analyze(AnalysisRequest(
                images=ImageInput(baseline=str(baseline_path), test=str(test_path),
                                  diff=str(diff_path) if diff_path else None),
                prompt=build_analysis_prompt(context),
                model=model,
            ))
            raw = parse_ai_response(response.text)
            return build_analysis_result(raw, provider.name, model, response.tokens_used)

        pairs = []
        total = len(plan.chunks)
        for chunk in plan.chunks:
            response = provider.analyze(AnalysisRequest(
                images=ImageInput(baseline=chunk.baseline_path, test=chunk.test_path, diff=chunk.diff_path),
                prompt=build_analysis_prompt(context, chunk=chunk, total_chunks=total, offset=plan.offset),
                model=model,
            ))
            raw = parse_ai_response(response.text)
            pairs.append((chunk, build_analysis_result(raw, provider.name, model, response.tokens_used)))
            logger.debug("Chunk %d/%d: %s (%.2f)", chunk.index + 1, total,
                         raw.recommendation, raw.confidence)

        return aggregate_chunk_results(pairs, provider.name, model, plan.offset)


def analyze_multiple(
    items: list[AnalysisItem],
    options: AIAnalysisOptions,
    concurrency: int = 3,
    provider: Optional[AIProvider] = None,
) -> dict[str, Union[AIAnalysisResult, Exception]]:
    """Analyze many pairs on a bounded thread pool.

    Per-item failures are recorded as exception values instead of aborting
    the batch. Results keep the input order.
    """
    results: dict[str, Union[AIAnalysisResult, Exception]] = {}
    if not items:
        return results

    if provider is None:
        try:
            provider = _provider_for(options)
        except (EnvironmentError, ValueError) as e:
            logger.error("AI provider unavailable for batch analysis: %s", e)
            for item in items:
                results[item.name] = e
            return results

    def _run(item: AnalysisItem) -> AIAnalysisResult:
        item_options = options.model_copy(update={"scenario_name": item.name})
        return analyze_with_ai(item.baseline, item.test, item.diff, item_options, provider)

    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        futures = [(item, pool.submit(_run, item)) for item in items]
        for item, future in futures:
            try:
                results[item.name] = future.result()
            except Exception as e:
                logger.warning("AI analysis failed for %s: %s", item.name, e)
                results[item.name] = e

    logger.info("Batch AI analysis: %d/%d succeeded",
                sum(1 for r in results.values() if not isinstance(r, Exception)), len(results))
    return results
