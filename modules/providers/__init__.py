"""
Providers module exports.

Public API for model adapters, the model registry and the adapter factory.
"""

from .base import BaseAdapter, JSON_ONLY_INSTRUCTION, classify_message
from .json_parser import ParseError, ParseResult, parse_structured
from .gemini import GeminiAdapter
from .openai_compat import OpenAICompatAdapter
from .registry import (
    MODELS,
    GOLDEN_BASELINE_ID,
    all_model_ids,
    default_step_bindings,
    get_model,
    golden_baseline,
    models_by_provider,
    models_by_strength,
    provider_display_name,
    supports_search
)
from .factory import AdapterFactory

__all__ = [
    "BaseAdapter",
    "JSON_ONLY_INSTRUCTION",
    "classify_message",
    "ParseError",
    "ParseResult",
    "parse_structured",
    "GeminiAdapter",
    "OpenAICompatAdapter",
    "MODELS",
    "GOLDEN_BASELINE_ID",
    "all_model_ids",
    "default_step_bindings",
    "get_model",
    "golden_baseline",
    "models_by_provider",
    "models_by_strength",
    "provider_display_name",
    "supports_search",
    "AdapterFactory",
]
