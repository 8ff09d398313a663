"""
OpenAI-compatible adapter.

Serves OpenAI directly and OpenRouter through its OpenAI-compatible
endpoint. The SDK's own retries are disabled; BaseAdapter retries with
credential rotation instead.
"""

from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI

from shared.config import settings
from shared.errors import InvalidCredentialError, ProviderError, RateLimitError
from shared.models.generation import FinishReason, GenerationRequest, GenerationResponse, TokenUsage

from .base import BaseAdapter, classify_message
from .registry import OPENROUTER_BASE_URL

_FINISH_REASONS: Dict[str, FinishReason] = {
    "stop": "stop",
    "length": "length",
    "content_filter": "content_filter",
}


def _retry_after(error: openai.APIStatusError) -> Optional[float]:
    value = error.response.headers.get("retry-after") if error.response is not None else None
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class OpenAICompatAdapter(BaseAdapter):
    """OpenAI chat completions, for OpenAI and OpenRouter models."""

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._clients: Dict[str, AsyncOpenAI] = {}

    def _default_headers(self) -> Optional[Dict[str, str]]:
        if self.provider != "openrouter":
            return None
        # OpenRouter attribution headers
        headers = {}
        if settings.openrouter_referer:
            headers["HTTP-Referer"] = settings.openrouter_referer
        if settings.openrouter_title:
            headers["X-Title"] = settings.openrouter_title
        return headers or None

    def _client_for(self, api_key: str) -> AsyncOpenAI:
        if api_key not in self._clients:
            base_url = self.profile.base_url
            if base_url is None and self.provider == "openrouter":
                base_url = OPENROUTER_BASE_URL
            self._clients[api_key] = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                default_headers=self._default_headers(),
                max_retries=0,
                timeout=settings.provider_timeout_seconds
            )
        return self._clients[api_key]

    async def _call(self, request: GenerationRequest, api_key: str) -> GenerationResponse:
        client = self._client_for(api_key)
        response = await client.chat.completions.create(
            model=self.profile.api_model_id,
            messages=[
                {"role": "system", "content": request.system_instruction},
                {"role": "user", "content": request.user_message},
            ],
            temperature=request.temperature if request.temperature is not None else settings.provider_temperature,
            max_tokens=request.max_tokens or min(settings.provider_max_tokens, self.profile.max_output_tokens)
        )

        choice = response.choices[0]
        usage: Optional[TokenUsage] = None
        if response.usage:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens
            )

        return GenerationResponse(
            content=(choice.message.content or "").strip(),
            model=self.model_id,
            usage=usage,
            finish_reason=_FINISH_REASONS.get(choice.finish_reason or "stop", "stop")
        )

    def _classify(self, error: BaseException) -> ProviderError:
        provider, model_id = self.provider, self.model_id
        message = f"{provider} API error: {error}"

        if isinstance(error, openai.RateLimitError):
            return RateLimitError(
                message,
                provider=provider,
                model_id=model_id,
                retry_after=_retry_after(error),
                original_error=error
            )
        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return InvalidCredentialError(message, provider=provider, model_id=model_id, original_error=error)
        if isinstance(error, (openai.APITimeoutError, openai.APIConnectionError)):
            return ProviderError(message, provider=provider, model_id=model_id, is_retryable=True, original_error=error)
        if isinstance(error, openai.APIStatusError) and error.status_code >= 500:
            return ProviderError(message, provider=provider, model_id=model_id, is_retryable=True, original_error=error)

        return classify_message(message, provider, model_id, original_error=error)
