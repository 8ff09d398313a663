"""
System prompt lookup.

Each step asks the library for its system prompt by id. The default
library ships one prompt per step; a JSON file mapping ids to prompt
text can override any of them.
"""

import json
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Union

from shared.config import settings
from shared.errors import ConfigError, ValidationError
from shared.logging import get_logger

logger = get_logger("batch_orchestrator.prompts")

DEFAULT_SYSTEM_PROMPTS: Dict[str, str] = {
    "step1_research": (
        "You are a research assistant for a video script studio. Search for recent, verifiable "
        "news and events about the given topic. Summarize the key facts, people, dates and "
        "angles, then propose a working title and a short story outline."
    ),
    "step2_outline": (
        "You are a senior scriptwriter. Turn the input material into a scene-by-scene outline. "
        "Every scene has a title, a concrete visual description and a voiceover of the "
        "requested length. Follow the format rules exactly and never skip a scene."
    ),
    "step3_script": (
        "You are a scriptwriter expanding an approved outline into a full script. Keep the "
        "scene numbering of the outline, keep each scene's visual and voiceover, and write "
        "only the scenes you are asked for."
    ),
    "step4_prompts": (
        "You convert script scenes into image and video generation prompts. Extract the visual "
        "description of each scene verbatim and return JSON only."
    ),
    "step5_voiceover": (
        "You extract voiceover text from a script verbatim, scene by scene, without changing "
        "a single word."
    ),
    "step6_metadata": (
        "You write publishing metadata for a video: a title, a description, hashtags and "
        "keywords that match the script."
    ),
}

STEP_PROMPT_IDS: Dict[int, str] = {
    1: "step1_research",
    2: "step2_outline",
    3: "step3_script",
    4: "step4_prompts",
    5: "step5_voiceover",
    6: "step6_metadata",
}


class PromptLibrary(Protocol):
    def get_prompt_content(self, prompt_id: str) -> str:
        ...


class StaticPromptLibrary:
    """In-memory prompt library, optionally overlaid with prompts from a JSON file."""

    def __init__(self, prompts: Optional[Mapping[str, str]] = None):
        self._prompts: Dict[str, str] = dict(DEFAULT_SYSTEM_PROMPTS)
        if prompts:
            self._prompts.update(prompts)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticPromptLibrary":
        """
        Load overrides from a JSON object of {prompt_id: text}.

        Raises:
            ConfigError: If the file is missing or malformed
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to load prompt library from {path}: {e}") from e

        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            raise ConfigError(f"Prompt library {path} must be a JSON object of strings")

        logger.info(f"Loaded {len(data)} prompt overrides", extra={"path": str(path)})
        return cls(data)

    @classmethod
    def from_settings(cls) -> "StaticPromptLibrary":
        if settings.prompt_library_path:
            return cls.from_file(settings.prompt_library_path)
        return cls()

    def get_prompt_content(self, prompt_id: str) -> str:
        try:
            return self._prompts[prompt_id]
        except KeyError:
            raise ValidationError(f"Unknown prompt id: {prompt_id}") from None

    def prompt_for_step(self, step: int) -> str:
        return self.get_prompt_content(STEP_PROMPT_IDS[step])

    def prompt_ids(self) -> List[str]:
        return sorted(self._prompts)


def system_prompt_for_step(library: PromptLibrary, step: int) -> str:
    """System prompt for a step from any PromptLibrary implementation."""
    return library.get_prompt_content(STEP_PROMPT_IDS[step])
