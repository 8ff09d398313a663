"""
Gemini adapter using the google-genai SDK.
"""

import asyncio
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import errors as genai_errors

from shared.config import settings
from shared.errors import InvalidCredentialError, ProviderError, RateLimitError
from shared.models.generation import FinishReason, GenerationRequest, GenerationResponse, TokenUsage

from .base import BaseAdapter, classify_message

_FINISH_REASONS: Dict[str, FinishReason] = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
    "BLOCKLIST": "content_filter",
    "PROHIBITED_CONTENT": "content_filter",
    "SPII": "content_filter",
}


def format_sources(response: Any) -> str:
    """Markdown list of web citations from search grounding, or ""."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ""
    metadata = getattr(candidates[0], "grounding_metadata", None)
    chunks = getattr(metadata, "grounding_chunks", None) or []

    lines: List[str] = []
    for i, chunk in enumerate(chunks, start=1):
        web = getattr(chunk, "web", None)
        if web is not None and web.uri and web.title:
            lines.append(f"{i}. [{web.title}]({web.uri})")

    if not lines:
        return ""
    return "\n\n---\n**Sources:**\n" + "\n".join(lines) + "\n"


def _finish_reason(response: Any) -> FinishReason:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].finish_reason is None:
        return "stop"
    reason = candidates[0].finish_reason
    name = getattr(reason, "name", str(reason))
    return _FINISH_REASONS.get(name, "stop")


class GeminiAdapter(BaseAdapter):
    """Google Gemini models, with optional Google Search grounding."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._clients: Dict[str, genai.Client] = {}

    def _client_for(self, api_key: str) -> genai.Client:
        if api_key not in self._clients:
            self._clients[api_key] = genai.Client(api_key=api_key)
        return self._clients[api_key]

    async def _call(self, request: GenerationRequest, api_key: str) -> GenerationResponse:
        use_search = request.use_search and self.profile.supports_search

        config: Dict[str, Any] = {
            "system_instruction": request.system_instruction,
            "temperature": request.temperature if request.temperature is not None else settings.provider_temperature,
            "max_output_tokens": request.max_tokens or self.profile.max_output_tokens,
        }
        if use_search:
            config["tools"] = [{"google_search": {}}]

        client = self._client_for(api_key)
        response = await asyncio.wait_for(
            client.aio.models.generate_content(
                model=self.profile.api_model_id,
                contents=request.user_message,
                config=config
            ),
            timeout=settings.provider_timeout_seconds
        )

        content = (response.text or "").strip()
        if use_search:
            content += format_sources(response)

        usage: Optional[TokenUsage] = None
        if response.usage_metadata:
            usage = TokenUsage(
                prompt_tokens=response.usage_metadata.prompt_token_count or 0,
                completion_tokens=response.usage_metadata.candidates_token_count or 0,
                total_tokens=response.usage_metadata.total_token_count or 0
            )

        return GenerationResponse(
            content=content,
            model=self.model_id,
            usage=usage,
            finish_reason=_finish_reason(response)
        )

    def _classify(self, error: BaseException) -> ProviderError:
        provider, model_id = self.provider, self.model_id

        if isinstance(error, asyncio.TimeoutError):
            return ProviderError(
                f"Gemini request timed out after {settings.provider_timeout_seconds}s",
                provider=provider,
                model_id=model_id,
                is_retryable=True,
                original_error=error
            )

        if isinstance(error, genai_errors.APIError):
            message = f"Gemini API error {error.code}: {error.message or error}"
            if error.code == 429:
                return RateLimitError(message, provider=provider, model_id=model_id, original_error=error)
            if error.code in (401, 403):
                return InvalidCredentialError(message, provider=provider, model_id=model_id, original_error=error)
            # Gemini reports a bad key as 400 INVALID_ARGUMENT
            if error.code == 400 and "api key" in str(error).lower():
                return InvalidCredentialError(message, provider=provider, model_id=model_id, original_error=error)
            if error.code and error.code >= 500:
                return ProviderError(message, provider=provider, model_id=model_id, is_retryable=True, original_error=error)
            return classify_message(message, provider, model_id, original_error=error)

        return classify_message(str(error), provider, model_id, original_error=error)
