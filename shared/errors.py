"""
Error taxonomy for the generation pipeline.

Every error carries an optional job_id so entry points can surface
enough context to resume or diagnose a failed job.
"""

from typing import Any, Optional
from uuid import UUID


class PipelineError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, message: str, job_id: Optional[UUID] = None):
        super().__init__(message)
        self.message = message
        self.job_id = job_id

    def __str__(self) -> str:
        return self.message


class ConfigError(PipelineError):
    """Raised when configuration is missing or invalid."""


class ValidationError(PipelineError):
    """Raised when caller-supplied input is invalid."""


class QueueFullError(ValidationError):
    """Raised when enqueuing would exceed the queue size limit."""


class GenerationError(PipelineError):
    """Raised when content generation fails terminally."""


class RetryableError(PipelineError):
    """Raised for transient failures that are safe to retry."""


class ProviderError(GenerationError):
    """
    Failure of a single provider call.

    is_retryable is decided by the adapter that raised it: network,
    timeout, 5xx and overload failures are retryable.
    """

    def __init__(
        self,
        message: str,
        provider: str = "",
        model_id: str = "",
        is_retryable: bool = False,
        original_error: Optional[BaseException] = None,
        job_id: Optional[UUID] = None
    ):
        super().__init__(message, job_id=job_id)
        self.provider = provider
        self.model_id = model_id
        self.is_retryable = is_retryable
        self.original_error = original_error


class RateLimitError(ProviderError):
    """Provider rejected the call for quota reasons."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model_id: str = "",
        retry_after: Optional[float] = None,
        original_error: Optional[BaseException] = None,
        job_id: Optional[UUID] = None
    ):
        super().__init__(
            message,
            provider=provider,
            model_id=model_id,
            is_retryable=True,
            original_error=original_error,
            job_id=job_id
        )
        self.retry_after = retry_after


class InvalidCredentialError(ProviderError):
    """Credential was rejected (401/403). Not retryable with the same credential."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        model_id: str = "",
        original_error: Optional[BaseException] = None,
        job_id: Optional[UUID] = None
    ):
        super().__init__(
            message,
            provider=provider,
            model_id=model_id,
            is_retryable=False,
            original_error=original_error,
            job_id=job_id
        )


class NoCredentialAvailableError(ProviderError):
    """Neither the pool nor the fallback key can supply a credential."""

    def __init__(self, provider: str = "", model_id: str = ""):
        super().__init__(
            f"No API key available for provider '{provider}'",
            provider=provider,
            model_id=model_id,
            is_retryable=False
        )


class CheckpointError(PipelineError):
    """Raised when persisting or reading a checkpoint fails."""


class JobFailedError(PipelineError):
    """A job exhausted its retry budget or hit a terminal error."""

    def __init__(
        self,
        message: str,
        job_id: Optional[UUID] = None,
        step: Optional[int] = None,
        attempts: int = 0,
        last_error: Optional[str] = None
    ):
        super().__init__(message, job_id=job_id)
        self.step = step
        self.attempts = attempts
        self.last_error = last_error


class CircuitBreakerOpenError(PipelineError):
    """Scheduler halted after consecutive groups failed entirely."""

    def __init__(
        self,
        message: str,
        consecutive_failures: int,
        report: Optional[Any] = None
    ):
        super().__init__(message)
        self.consecutive_failures = consecutive_failures
        self.report = report
