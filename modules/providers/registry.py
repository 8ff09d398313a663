"""
Model registry and default step bindings.
"""

from typing import Dict, List, Optional

from shared.models.credential import Provider
from shared.models.generation import ModelProfile, ModelStrength, StepBinding

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

GOLDEN_BASELINE_ID = "gemini-2.5-flash"

MODELS: Dict[str, ModelProfile] = {
    # Google
    "gemini-2.5-flash": ModelProfile(
        id="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        provider="google",
        api_model_id="gemini-2.5-flash",
        context_window=1_000_000,
        max_output_tokens=8192,
        strengths=["json", "creative", "logic", "fast", "long-context"],
        supports_search=True,
    ),
    "gemini-2.0-flash": ModelProfile(
        id="gemini-2.0-flash",
        name="Gemini 2.0 Flash",
        provider="google",
        api_model_id="gemini-2.0-flash",
        context_window=1_000_000,
        max_output_tokens=8192,
        strengths=["json", "fast", "long-context"],
        supports_search=True,
    ),
    # OpenAI
    "gpt-4o": ModelProfile(
        id="gpt-4o",
        name="GPT-4o",
        provider="openai",
        api_model_id="gpt-4o",
        context_window=128_000,
        max_output_tokens=4096,
        strengths=["json", "creative", "logic", "vision"],
    ),
    "gpt-4o-mini": ModelProfile(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        provider="openai",
        api_model_id="gpt-4o-mini",
        context_window=128_000,
        max_output_tokens=4096,
        strengths=["json", "fast"],
    ),
    # OpenRouter
    "deepseek-chat": ModelProfile(
        id="deepseek-chat",
        name="DeepSeek Chat",
        provider="openrouter",
        api_model_id="deepseek/deepseek-chat",
        context_window=64_000,
        max_output_tokens=8192,
        strengths=["json", "logic", "fast"],
        base_url=OPENROUTER_BASE_URL,
    ),
    "deepseek-r1": ModelProfile(
        id="deepseek-r1",
        name="DeepSeek R1",
        provider="openrouter",
        api_model_id="deepseek/deepseek-r1",
        context_window=64_000,
        max_output_tokens=8192,
        strengths=["logic", "creative"],
        base_url=OPENROUTER_BASE_URL,
    ),
    "minimax-01": ModelProfile(
        id="minimax-01",
        name="Minimax 01",
        provider="openrouter",
        api_model_id="minimax/minimax-01",
        context_window=1_000_000,
        max_output_tokens=16384,
        strengths=["long-context", "creative"],
        base_url=OPENROUTER_BASE_URL,
    ),
    "minimax-moa-01": ModelProfile(
        id="minimax-moa-01",
        name="Minimax MoA 01",
        provider="openrouter",
        api_model_id="minimax/moa-01",
        context_window=100_000,
        max_output_tokens=8192,
        strengths=["creative", "fast"],
        base_url=OPENROUTER_BASE_URL,
    ),
}

_PROVIDER_NAMES: Dict[str, str] = {
    "google": "Google AI",
    "openai": "OpenAI",
    "openrouter": "OpenRouter",
}


def default_step_bindings() -> Dict[int, StepBinding]:
    """Every step on the golden baseline; prompt extraction falls back to GPT-4o."""
    bindings = {step: StepBinding(step_id=step, model_id=GOLDEN_BASELINE_ID) for step in range(1, 7)}
    bindings[4] = StepBinding(step_id=4, model_id=GOLDEN_BASELINE_ID, fallback_model_id="gpt-4o")
    return bindings


def get_model(model_id: str) -> Optional[ModelProfile]:
    return MODELS.get(model_id)


def models_by_provider(provider: Provider) -> List[ModelProfile]:
    return [m for m in MODELS.values() if m.provider == provider]


def models_by_strength(strength: ModelStrength) -> List[ModelProfile]:
    return [m for m in MODELS.values() if strength in m.strengths]


def supports_search(model_id: str) -> bool:
    model = get_model(model_id)
    return model.supports_search if model else False


def golden_baseline() -> ModelProfile:
    return MODELS[GOLDEN_BASELINE_ID]


def all_model_ids() -> List[str]:
    return list(MODELS)


def provider_display_name(provider: str) -> str:
    return _PROVIDER_NAMES.get(provider, provider)
