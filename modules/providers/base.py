"""
Provider adapter contract.

BaseAdapter owns the per-call credential loop: take a key, call, report
the outcome to the pool, classify failures and back off. Concrete
adapters only implement the wire call and error classification.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Tuple

from modules.credential_pool.pool import CredentialPool, mask_key
from shared.errors import (
    InvalidCredentialError,
    NoCredentialAvailableError,
    ProviderError,
    RateLimitError
)
from shared.logging import get_logger
from shared.models.generation import GenerationRequest, GenerationResponse, ModelProfile
from shared.retry import RetryPolicy

from .json_parser import ParseResult, parse_structured

logger = get_logger("providers")

JSON_ONLY_INSTRUCTION = "\n\nIMPORTANT: Respond with valid JSON only. No markdown, no explanations."

_RATE_LIMIT_MARKERS = ("429", "rate limit", "quota", "resource exhausted", "resource_exhausted")
_CREDENTIAL_MARKERS = ("401", "403", "api key not valid", "invalid api key", "permission denied", "unauthorized")
_TRANSIENT_MARKERS = (
    "network", "timeout", "timed out", "connection", "500", "502", "503", "504",
    "overloaded", "capacity", "unavailable",
)

SleepFunc = Callable[[float], Awaitable[Any]]


def classify_message(
    message: str,
    provider: str,
    model_id: str,
    original_error: Optional[BaseException] = None
) -> ProviderError:
    """Fallback classification from an error message alone."""
    text = (message or "").lower()
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return RateLimitError(message, provider=provider, model_id=model_id, original_error=original_error)
    if any(marker in text for marker in _CREDENTIAL_MARKERS):
        return InvalidCredentialError(message, provider=provider, model_id=model_id, original_error=original_error)
    return ProviderError(
        message,
        provider=provider,
        model_id=model_id,
        is_retryable=any(marker in text for marker in _TRANSIENT_MARKERS),
        original_error=original_error
    )


class BaseAdapter(ABC):
    """One model behind one provider, with credential rotation and retry."""

    def __init__(
        self,
        profile: ModelProfile,
        pool: Optional[CredentialPool] = None,
        fallback_key: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep
    ):
        self.profile = profile
        self.pool = pool
        self.fallback_key = fallback_key
        self.policy = policy or RetryPolicy.for_providers()
        self._sleep = sleep

    @property
    def provider(self) -> str:
        return self.profile.provider

    @property
    def model_id(self) -> str:
        return self.profile.id

    @abstractmethod
    async def _call(self, request: GenerationRequest, api_key: str) -> GenerationResponse:
        """Execute one wire call with the given credential."""

    @abstractmethod
    def _classify(self, error: BaseException) -> ProviderError:
        """Map a client library exception onto the ProviderError taxonomy."""

    def set_fallback_key(self, key: Optional[str]) -> None:
        self.fallback_key = key or None

    def is_available(self) -> bool:
        """True if a credential can currently be obtained."""
        if self.pool is not None and self.pool.has_available():
            return True
        return bool(self.fallback_key)

    def _acquire_key(self) -> Tuple[str, bool]:
        """Next credential and whether it came from the pool."""
        if self.pool is not None:
            key = self.pool.next()
            if key is not None:
                return key, True
        if self.fallback_key:
            return self.fallback_key, False
        raise NoCredentialAvailableError(provider=self.provider, model_id=self.model_id)

    def _report_failure(self, key: str, error: ProviderError) -> None:
        # The error type decides the pool status, not the message text
        if isinstance(error, InvalidCredentialError):
            kind = "invalid"
        elif isinstance(error, RateLimitError):
            kind = "rate_limited"
        else:
            kind = "other"
        self.pool.report_failure(key, str(error), kind=kind)

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """
        Run a generation call with credential rotation and backoff.

        Returns:
            GenerationResponse from the first successful call

        Raises:
            NoCredentialAvailableError: If no credential can be obtained
            InvalidCredentialError: If every available credential was rejected
            ProviderError: Non-retryable failure, or the last retryable
                failure once attempts are exhausted
        """
        attempt = 0
        while True:
            key, from_pool = self._acquire_key()
            try:
                response = await self._call(request, key)
            except ProviderError as e:
                error = e
            except Exception as e:
                error = self._classify(e)
            else:
                if from_pool:
                    self.pool.report_success(key)
                return response

            if from_pool:
                self._report_failure(key, error)

            log_extra = {
                "provider": self.provider,
                "model_id": self.model_id,
                "key": mask_key(key),
                "attempt": attempt + 1,
                "error": str(error)[:300],
            }

            if isinstance(error, InvalidCredentialError):
                if from_pool and self.pool.has_available():
                    logger.warning("Credential rejected, rotating to next credential", extra=log_extra)
                    continue
                logger.error("Credential rejected and no other credential available", extra=log_extra)
                raise error

            if not error.is_retryable:
                logger.error("Provider call failed with non-retryable error", extra=log_extra)
                raise error

            attempt += 1
            if attempt >= self.policy.max_attempts:
                logger.error(
                    f"Provider call failed after {self.policy.max_attempts} attempts",
                    extra=log_extra
                )
                raise error

            delay = self.policy.delay_for(attempt - 1)
            if isinstance(error, RateLimitError) and error.retry_after:
                delay = max(delay, error.retry_after)
                if self.policy.max_delay is not None:
                    delay = min(delay, self.policy.max_delay)

            logger.warning(
                f"Retrying provider call in {delay}s",
                extra={**log_extra, "delay": delay}
            )
            await self._sleep(delay)

    async def generate_structured(self, request: GenerationRequest) -> ParseResult:
        """
        Generate and parse a JSON response.

        A response that is not valid JSON is returned as a ParseResult
        with error set; provider failures still raise.
        """
        structured = request.model_copy(
            update={"user_message": request.user_message + JSON_ONLY_INSTRUCTION}
        )
        response = await self.generate(structured)
        result = parse_structured(response.content)
        if not result.ok:
            logger.warning(
                "Structured response could not be parsed",
                extra={"model_id": self.model_id, "parse_stage": result.stage, "error": result.error.message}
            )
        return result
