"""
Adapter factory.

Binds models to pipeline steps and caches one adapter per model. Each
factory instance owns its cache, bindings and fallback keys; the
credential pools are shared with whoever else holds them.
"""

import asyncio
from typing import Dict, Iterable, List, Optional, Type

from modules.credential_pool.pool import CredentialPools
from shared.config import settings
from shared.errors import ValidationError
from shared.logging import get_logger
from shared.models.generation import StepBinding
from shared.retry import RetryPolicy

from .base import BaseAdapter, SleepFunc
from .gemini import GeminiAdapter
from .openai_compat import OpenAICompatAdapter
from .registry import GOLDEN_BASELINE_ID, default_step_bindings, get_model

logger = get_logger("providers.factory")

ADAPTER_TYPES: Dict[str, Type[BaseAdapter]] = {
    "google": GeminiAdapter,
    "openai": OpenAICompatAdapter,
    "openrouter": OpenAICompatAdapter,
}


class AdapterFactory:
    """Resolves pipeline steps to ready-to-use adapters."""

    def __init__(
        self,
        pools: Optional[CredentialPools] = None,
        fallback_keys: Optional[Dict[str, str]] = None,
        safe_mode: bool = False,
        safe_mode_model: str = GOLDEN_BASELINE_ID,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = asyncio.sleep
    ):
        self.pools = pools or CredentialPools()
        self._fallback_keys: Dict[str, str] = {k: v for k, v in (fallback_keys or {}).items() if v}
        self._safe_mode = safe_mode
        self._safe_mode_model = safe_mode_model
        self._policy = policy
        self._sleep = sleep
        self._bindings: Dict[int, StepBinding] = default_step_bindings()
        self._cache: Dict[str, BaseAdapter] = {}

    @classmethod
    def from_settings(cls, pools: Optional[CredentialPools] = None) -> "AdapterFactory":
        """Factory seeded with pools, fallback keys and safe mode from settings."""
        fallback_keys = {
            provider: settings.fallback_key_for(provider)
            for provider in ADAPTER_TYPES
            if settings.fallback_key_for(provider)
        }
        return cls(
            pools=pools or CredentialPools.from_settings(),
            fallback_keys=fallback_keys,
            safe_mode=settings.safe_mode,
            safe_mode_model=settings.safe_mode_model
        )

    @property
    def safe_mode(self) -> bool:
        return self._safe_mode

    def set_safe_mode(self, enabled: bool) -> None:
        self._safe_mode = enabled
        logger.info(f"Safe mode {'enabled' if enabled else 'disabled'}")

    def get_adapter(self, model_id: str) -> BaseAdapter:
        """
        Cached adapter for a registered model.

        Raises:
            ValidationError: If the model is not in the registry
        """
        if model_id in self._cache:
            return self._cache[model_id]

        profile = get_model(model_id)
        if profile is None:
            raise ValidationError(f"Unknown model: {model_id}")

        adapter_type = ADAPTER_TYPES[profile.provider]
        adapter = adapter_type(
            profile,
            pool=self.pools.get(profile.provider),
            fallback_key=self._fallback_keys.get(profile.provider),
            policy=self._policy,
            sleep=self._sleep
        )
        self._cache[model_id] = adapter
        return adapter

    def model_id_for_step(self, step: int) -> str:
        """
        Model that will serve a step right now.

        Safe mode pins every step to the safe-mode model. Otherwise a bound
        model without credentials is swapped for the binding's fallback,
        when the fallback has credentials.
        """
        if self._safe_mode:
            return self._safe_mode_model

        binding = self._bindings.get(step)
        if binding is None:
            raise ValidationError(f"No model bound to step {step}")

        if self.get_adapter(binding.model_id).is_available():
            return binding.model_id

        if binding.fallback_model_id and self.get_adapter(binding.fallback_model_id).is_available():
            logger.warning(
                f"Step {step} model unavailable, using fallback",
                extra={"model_id": binding.model_id, "fallback_model_id": binding.fallback_model_id}
            )
            return binding.fallback_model_id

        return binding.model_id

    def adapter_for_step(self, step: int) -> BaseAdapter:
        return self.get_adapter(self.model_id_for_step(step))

    def set_step_binding(self, step: int, model_id: str, fallback_model_id: Optional[str] = None) -> None:
        for candidate in filter(None, (model_id, fallback_model_id)):
            if get_model(candidate) is None:
                raise ValidationError(f"Unknown model: {candidate}")
        self._bindings[step] = StepBinding(step_id=step, model_id=model_id, fallback_model_id=fallback_model_id)

    def reset_bindings(self) -> None:
        self._bindings = default_step_bindings()

    def step_bindings(self) -> List[StepBinding]:
        return [self._bindings[step] for step in sorted(self._bindings)]

    def set_fallback_key(self, provider: str, key: Optional[str]) -> None:
        """Set the operator key for a provider, including already cached adapters."""
        if key:
            self._fallback_keys[provider] = key
        else:
            self._fallback_keys.pop(provider, None)
        for adapter in self._cache.values():
            if adapter.provider == provider:
                adapter.set_fallback_key(key)

    def add_provider_keys(self, provider: str, keys: Iterable[str]) -> int:
        return self.pools.get(provider).add_keys(keys)

    def clear_cache(self) -> None:
        self._cache.clear()

    def pinned_adapter_for_step(self, step: int, api_key: str) -> BaseAdapter:
        """
        Uncached adapter for the step's model that only ever uses `api_key`.

        The caller owns reporting the key's outcome to its pool.
        """
        profile = get_model(self.model_id_for_step(step))
        return ADAPTER_TYPES[profile.provider](
            profile,
            pool=None,
            fallback_key=api_key,
            policy=self._policy,
            sleep=self._sleep
        )
