"""AI vision provider capability and the per-vendor adapters."""

from __future__ import annotations

import base64
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

import anthropic
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from vrtriage.errors import AIProviderError
from vrtriage.imaging.image_utils import image_to_base64

logger = logging.getLogger(__name__)

DEFAULT_MODELS: dict[str, str] = {
    "anthropic": "claude-haiku-4-5",
    "openai": "gpt-4o-mini",
    "openrouter": "google/gemini-3-flash-preview",
    "google": "gemini-3-flash",
}

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://vrtini.dev",
    "X-Title": "VRT AI Analysis",
}


@dataclass
class ImageInput:
    baseline: str
    test: str
    diff: Optional[str] = None

    def paths(self) -> list[str]:
        return [p for p in (self.baseline, self.test, self.diff) if p]


@dataclass
class AnalysisRequest:
    images: ImageInput
    prompt: str
    model: str


@dataclass
class AnalysisResponse:
    text: str
    tokens_used: Optional[int] = None


class AIProvider(Protocol):
    """Anything that can look at a screenshot pair and answer in text."""

    name: str

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        ...


@dataclass
class _Completion:
    text: Optional[str]
    tokens_used: Optional[int]
    truncated: bool = False


class _VisionProvider:
    """Shared call bookkeeping for the vendor adapters.

    Subclasses implement ``_complete``; this class numbers the calls, times
    them, warns on truncation and writes the optional exchange log. One
    instance is shared by the batch worker threads, so the call counter is
    guarded by a lock.
    """

    name = "base"
    api_errors: tuple[type[Exception], ...] = ()

    def __init__(self, max_tokens: int = 1024, debug_dir: Optional[Path] = None):
        self.max_tokens = max_tokens
        self.debug_dir = debug_dir
        self._call_count = 0
        self._count_lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return self._call_count

    def _next_call(self) -> int:
        with self._count_lock:
            self._call_count += 1
            return self._call_count

    def _complete(self, request: AnalysisRequest) -> _Completion:
        raise NotImplementedError

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        call_no = self._next_call()
        logger.info("Calling %s vision model (call #%d, model=%s, %d images)...",
                    self.name, call_no, request.model, len(request.images.paths()))
        call_start = time.time()
        try:
            completion = self._complete(request)
        except self.api_errors as e:
            logger.error("%s API error: %s", self.name, e)
            self._save_exchange_log(call_no, request, "", str(e))
            raise

        if not completion.text:
            self._save_exchange_log(call_no, request, "", "no text in response")
            raise AIProviderError(f"No text response from {self.name}")

        logger.info("Vision response received in %.1fs (%d chars)",
                    time.time() - call_start, len(completion.text))
        if completion.truncated:
            logger.warning("Vision response hit max_tokens (%d); JSON may be truncated",
                           self.max_tokens)
        self._save_exchange_log(call_no, request, completion.text, None)
        return AnalysisResponse(text=completion.text, tokens_used=completion.tokens_used)

    def _save_exchange_log(
        self, call_no: int, request: AnalysisRequest, response_text: str, error: str | None
    ) -> None:
        """Dump the prompt/response exchange when a debug directory is configured."""
        if self.debug_dir is None:
            return
        try:
            self.debug_dir.mkdir(parents=True, exist_ok=True)
            ts = time.strftime("%Y%m%d_%H%M%S")
            log_file = self.debug_dir / f"vision_call_{ts}_{call_no:03d}.log"
            with open(log_file, "w", encoding="utf-8") as f:
                f.write(f"=== VISION CALL #{call_no} provider={self.name} model={request.model} ===\n")
                f.write(f"Images: {request.images.baseline}, {request.images.test}, {request.images.diff}\n\n")
                f.write(f"=== PROMPT ({len(request.prompt)} chars) ===\n{request.prompt}\n\n")
                f.write(f"=== RESPONSE ({len(response_text)} chars) ===\n")
                f.write(response_text if response_text else "(empty)")
                if error:
                    f.write(f"\n\n=== ERROR ===\n{error}\n")
            logger.debug("Vision exchange logged to %s", log_file)
        except OSError as log_err:
            logger.debug("Failed to save vision exchange log: %s", log_err)


class AnthropicProvider(_VisionProvider):
    """Vision analysis through the Anthropic Messages API."""

    name = "anthropic"
    api_errors = (anthropic.APIError,)

    def __init__(
        self,
        api_key: Optional[str] = None,
        auth_token: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: int = 1024,
        debug_dir: Optional[Path] = None,
    ):
        super().__init__(max_tokens=max_tokens, debug_dir=debug_dir)
        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        auth_token = auth_token or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        if not api_key and not auth_token:
            raise EnvironmentError(
                "Anthropic credentials not provided. Set ANTHROPIC_API_KEY or "
                "ANTHROPIC_AUTH_TOKEN, or pass api_key/auth_token."
            )
        self.client = anthropic.Anthropic(
            api_key=api_key or None,
            auth_token=auth_token or None,
            base_url=base_url or None,
        )

    def _complete(self, request: AnalysisRequest) -> _Completion:
        content: list[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/png",
                    "data": image_to_base64(path),
                },
            }
            for path in request.images.paths()
        ]
        content.append({"type": "text", "text": request.prompt})

        response = self.client.messages.create(
            model=request.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": content}],
        )
        text = next(
            (block.text for block in response.content if getattr(block, "type", None) == "text"),
            None,
        )
        usage = response.usage
        return _Completion(
            text=text,
            tokens_used=usage.input_tokens + usage.output_tokens if usage else None,
            truncated=response.stop_reason == "max_tokens",
        )


class OpenAIProvider(_VisionProvider):
    """Vision analysis through an OpenAI-compatible Chat Completions API."""

    name = "openai"
    api_errors = (openai.APIError,)
    api_key_env = "OPENAI_API_KEY"
    vendor = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        default_headers: Optional[dict[str, str]] = None,
        max_tokens: int = 1024,
        debug_dir: Optional[Path] = None,
    ):
        super().__init__(max_tokens=max_tokens, debug_dir=debug_dir)
        api_key = api_key or os.environ.get(self.api_key_env)
        if not api_key:
            raise EnvironmentError(
                f"{self.vendor} API key not provided. Set {self.api_key_env} or pass api_key."
            )
        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url or None,
            default_headers=default_headers,
        )

    def _complete(self, request: AnalysisRequest) -> _Completion:
        content: list[dict] = [
            {
                "type": "image_url",
                "image_url": {
                    "url": f"data:image/png;base64,{image_to_base64(path)}",
                    "detail": "high",
                },
            }
            for path in request.images.paths()
        ]
        content.append({"type": "text", "text": request.prompt})

        response = self.client.chat.completions.create(
            model=request.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": content}],
        )
        choice = response.choices[0] if response.choices else None
        usage = response.usage
        return _Completion(
            text=choice.message.content if choice else None,
            tokens_used=usage.total_tokens if usage else None,
            truncated=choice is not None and choice.finish_reason == "length",
        )


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter speaks the OpenAI protocol behind its own base URL."""

    name = "openrouter"
    api_key_env = "OPENROUTER_API_KEY"
    vendor = "OpenRouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        max_tokens: int = 1024,
        debug_dir: Optional[Path] = None,
    ):
        super().__init__(
            api_key=api_key,
            base_url=base_url or OPENROUTER_BASE_URL,
            default_headers=OPENROUTER_HEADERS,
            max_tokens=max_tokens,
            debug_dir=debug_dir,
        )


class GoogleProvider(_VisionProvider):
    """Vision analysis through the Gemini API."""

    name = "google"
    api_errors = (genai_errors.APIError,)

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_tokens: int = 1024,
        debug_dir: Optional[Path] = None,
    ):
        super().__init__(max_tokens=max_tokens, debug_dir=debug_dir)
        api_key = api_key or os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            raise EnvironmentError(
                "Google API key not provided. Set GOOGLE_API_KEY or pass api_key."
            )
        self.client = genai.Client(api_key=api_key)

    def _complete(self, request: AnalysisRequest) -> _Completion:
        contents: list = [
            genai_types.Part.from_bytes(
                data=base64.b64decode(image_to_base64(path)),
                mime_type="image/png",
            )
            for path in request.images.paths()
        ]
        contents.append(request.prompt)

        response = self.client.models.generate_content(
            model=request.model,
            contents=contents,
            config=genai_types.GenerateContentConfig(max_output_tokens=self.max_tokens),
        )
        usage = response.usage_metadata
        candidates = response.candidates or []
        return _Completion(
            text=response.text,
            tokens_used=usage.total_token_count if usage else None,
            truncated=any(c.finish_reason == genai_types.FinishReason.MAX_TOKENS for c in candidates),
        )


def create_provider(
    name: str,
    api_key: Optional[str] = None,
    auth_token: Optional[str] = None,
    base_url: Optional[str] = None,
    max_tokens: int = 1024,
    debug_dir: Optional[Path] = None,
) -> AIProvider:
    """Build the provider adapter registered under ``name``.

    ``auth_token`` only applies to Anthropic; ``base_url`` is ignored by Google.
    """
    if name == "anthropic":
        return AnthropicProvider(
            api_key=api_key,
            auth_token=auth_token,
            base_url=base_url,
            max_tokens=max_tokens,
            debug_dir=debug_dir,
        )
    if name == "openai":
        return OpenAIProvider(api_key=api_key, base_url=base_url, max_tokens=max_tokens, debug_dir=debug_dir)
    if name == "openrouter":
        return OpenRouterProvider(api_key=api_key, base_url=base_url, max_tokens=max_tokens, debug_dir=debug_dir)
    if name == "google":
        return GoogleProvider(api_key=api_key, max_tokens=max_tokens, debug_dir=debug_dir)
    raise ValueError(f"Unsupported AI provider: {name}")


def resolve_model(provider: str, model: Optional[str] = None) -> str:
    if model:
        return model
    try:
        return DEFAULT_MODELS[provider]
    except KeyError:
        raise ValueError(f"No default model for AI provider: {provider}") from None
