"""
Configuration management.

Centralized environment variable management and validation.
Every field has a default so the pipeline can be imported (and tested)
without an environment; credentials are only required at call time.
"""

from typing import Literal, Optional
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from shared.errors import ConfigError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow case-insensitive env var matching
        extra="ignore"
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # Provider credentials
    # *_API_KEY is the operator fallback used when the pool is empty.
    # *_API_KEYS accepts free-form text (newline, comma or semicolon separated).
    gemini_api_key: Optional[str] = None
    gemini_api_keys: str = ""
    openai_api_key: Optional[str] = None
    openai_api_keys: str = ""
    openrouter_api_key: Optional[str] = None
    openrouter_api_keys: str = ""
    openrouter_referer: str = ""
    openrouter_title: str = "Script Factory"

    # Model selection
    # SAFE_MODE forces every step onto SAFE_MODE_MODEL regardless of bindings
    safe_mode: bool = False
    safe_mode_model: str = "gemini-2.5-flash"

    # Content generation
    language: Literal["vi", "en"] = "vi"
    scene_count: int = 30
    target_words: int = 20
    word_tolerance: int = 3
    scenes_per_batch: int = 3
    batch_max_retries: int = 5
    outline_context_chars: int = 2000
    recovery_context_chars: int = 1500
    metadata_max_chars: int = 30000

    # Auto-fix
    auto_fix_enabled: bool = True
    auto_fix_max_passes: int = 3
    auto_fix_timeout_seconds: float = 30.0
    auto_fix_max_scenes: int = 5

    # Provider retry / request defaults
    provider_max_attempts: int = 3
    provider_base_delay: float = 1.0
    provider_max_delay: float = 10.0
    provider_backoff_multiplier: float = 2.0
    provider_temperature: float = 0.7
    provider_max_tokens: int = 4096
    provider_timeout_seconds: float = 120.0

    # Credential pool health
    credential_recovery_seconds: int = 300  # 5 minutes
    credential_max_errors: int = 3

    # Job scheduler
    job_max_attempts: int = 3
    job_backoff_base: float = 2.0  # 2s, 4s, 8s between job attempts
    max_concurrent_jobs: int = 3
    inter_chunk_delay_seconds: float = 0.0
    circuit_breaker_threshold: int = 2
    max_queue_size: int = 20

    # Checkpointing
    checkpoint_path: str = "checkpoints/queue_state.json"
    checkpoint_max_age_hours: int = 24

    # Plan mode
    plan_max_keywords: int = 50
    plan_keyword_delay_seconds: float = 2.0

    # Prompt library
    # PROMPT_LIBRARY_PATH: optional JSON file mapping prompt ids to system prompts
    prompt_library_path: Optional[str] = None

    @field_validator("scene_count")
    @classmethod
    def validate_scene_count(cls, v: int) -> int:
        """Validate scene count."""
        if v < 1:
            raise ConfigError("SCENE_COUNT must be at least 1")
        return v

    @field_validator("target_words")
    @classmethod
    def validate_target_words(cls, v: int) -> int:
        """Validate voiceover target length."""
        if v < 1:
            raise ConfigError("TARGET_WORDS must be at least 1")
        return v

    @field_validator("word_tolerance")
    @classmethod
    def validate_word_tolerance(cls, v: int) -> int:
        """Validate word tolerance."""
        if v < 0:
            raise ConfigError("WORD_TOLERANCE cannot be negative")
        return v

    @field_validator("scenes_per_batch", "batch_max_retries", "max_concurrent_jobs", "job_max_attempts", "provider_max_attempts")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Counts that drive loops must be positive."""
        if v < 1:
            raise ConfigError(f"Value must be at least 1 (got {v})")
        return v

    @field_validator("max_queue_size")
    @classmethod
    def validate_max_queue_size(cls, v: int) -> int:
        """Validate queue size limit."""
        if v < 1:
            raise ConfigError("MAX_QUEUE_SIZE must be at least 1")
        return v

    @field_validator("openrouter_referer")
    @classmethod
    def validate_openrouter_referer(cls, v: str) -> str:
        """Validate OpenRouter referer URL format."""
        if v and not v.startswith(("http://", "https://")):
            raise ConfigError("OPENROUTER_REFERER must be a valid HTTP/HTTPS URL")
        return v

    @model_validator(mode="after")
    def validate_word_window(self) -> "Settings":
        """Tolerance window must stay above zero words."""
        if self.word_tolerance >= self.target_words:
            raise ConfigError(
                f"WORD_TOLERANCE ({self.word_tolerance}) must be smaller than "
                f"TARGET_WORDS ({self.target_words})"
            )
        return self

    @property
    def word_min(self) -> int:
        """Lower bound of the voiceover tolerance window."""
        return self.target_words - self.word_tolerance

    @property
    def word_max(self) -> int:
        """Upper bound of the voiceover tolerance window."""
        return self.target_words + self.word_tolerance

    def fallback_key_for(self, provider: str) -> Optional[str]:
        """Operator-supplied fallback key for a provider, if configured."""
        return {
            "google": self.gemini_api_key,
            "openai": self.openai_api_key,
            "openrouter": self.openrouter_api_key,
        }.get(provider)

    def pool_input_for(self, provider: str) -> str:
        """Raw delimited key list for a provider's credential pool."""
        return {
            "google": self.gemini_api_keys,
            "openai": self.openai_api_keys,
            "openrouter": self.openrouter_api_keys,
        }.get(provider, "")


# Global settings instance
try:
    settings = Settings()
except Exception as e:
    # Convert Pydantic validation errors to ConfigError
    if isinstance(e, ConfigError):
        raise
    raise ConfigError(f"Failed to load configuration: {str(e)}") from e
