"""Content generation: anomaly dialogue and change explanations from a text model.

The engine calls a content generator matching the protocol:

    async def __call__(self, anomaly, context, player_text) -> ContentResponse: ...

`context` is the template context built by haunted_debug.prompts.build_context().
When it carries a "prompt" key, that text is sent as-is instead of rendering
the dialogue template.

Two implementations are provided:

    HttpContentGenerator        real HTTP client, supports KoboldCpp and
                                OpenAI-compatible backends.
    FallbackContentGenerator    deterministic local responses rendered from
                                the anomaly's own dialogue lines and hints.

Generation is never fatal: generate_with_fallback() swaps in the local
fallback whenever the backend fails.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

from haunted_debug.config import EngineConfig
from haunted_debug.models import Anomaly, ContentResponse
from haunted_debug.prompts import DIALOGUE_PROMPT, FALLBACK_DIALOGUE, render_prompt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class ContentGenerator(Protocol):
    async def __call__(self, anomaly: Anomaly, context: dict[str, Any], player_text: str) -> ContentResponse: ...


# ---------------------------------------------------------------------------
# HttpContentGenerator
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai"]


class HttpContentGenerator:
    """Async HTTP client for text-completion backends.

    Supported formats:
      "koboldcpp"    POST /api/v1/generate  {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}
      "openai"       POST /v1/completions   {"model": ..., "prompt": ...}
                     Response: {"choices": [{"text": "..."}]}
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 30.0,
        template: str = DIALOGUE_PROMPT,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._template = template

    @classmethod
    def from_config(cls, config: EngineConfig) -> HttpContentGenerator | None:
        """Build a client from config, or None when no backend is configured."""
        if not config.content_url:
            return None
        return cls(
            provider_url=config.content_url,
            api_key=config.content_api_key,
            provider_format=config.content_format,
            model=config.content_model,
            timeout=config.content_timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        if self._format == "openai":
            body: dict = {"prompt": prompt}
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/completions", body
        return f"{self._base_url}/api/v1/generate", {"prompt": prompt}

    def _parse_response(self, data: dict) -> str:
        key = "choices" if self._format == "openai" else "results"
        items = data.get(key)
        if not items or "text" not in items[0]:
            raise ContentError(f"Unexpected response format from {self._format} backend")
        return items[0]["text"]

    async def __call__(self, anomaly: Anomaly, context: dict[str, Any], player_text: str) -> ContentResponse:
        prompt = context.get("prompt") or render_prompt(self._template, {**context, "message": player_text})
        url, body = self._build_request(prompt)
        logger.debug("content call anomaly=%s url=%s prompt_len=%d", anomaly.id, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise ContentError(f"Cannot connect to content backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise ContentError(f"Content backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise ContentError(f"Content backend timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json()).strip()
        if not text:
            raise ContentError("Content backend returned an empty completion")
        return ContentResponse(content=text, hints=list(context.get("hints", [])))


# ---------------------------------------------------------------------------
# FallbackContentGenerator
# ---------------------------------------------------------------------------

class FallbackContentGenerator:
    """Answers with the anomaly's scripted lines. No network calls."""

    async def __call__(self, anomaly: Anomaly, context: dict[str, Any], player_text: str) -> ContentResponse:
        text = render_prompt(FALLBACK_DIALOGUE, context)
        return ContentResponse(content=text.strip(), hints=list(context.get("hints", [])))


async def generate_with_fallback(
    generator: ContentGenerator | None,
    anomaly: Anomaly,
    context: dict[str, Any],
    player_text: str,
    fallback: ContentGenerator | None = None,
) -> tuple[ContentResponse, bool]:
    """Call the generator, substituting the fallback on any failure.

    Returns (response, used_fallback).
    """
    fallback = fallback or FallbackContentGenerator()
    if generator is not None:
        try:
            return await generator(anomaly, context, player_text), False
        except Exception as e:
            logger.warning("content generation failed for %s, using fallback: %s", anomaly.id, e)
    return await fallback(anomaly, context, player_text), True


# ---------------------------------------------------------------------------
# ContentError
# ---------------------------------------------------------------------------

class ContentError(RuntimeError):
    """Raised when the content backend cannot be reached or returns an error."""
