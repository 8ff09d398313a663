"""
Pytest fixtures for scene validator tests.
"""
import pytest

from modules.scene_validator.language import ENGLISH, VIETNAMESE
from modules.scene_validator.validator import SceneValidator


@pytest.fixture
def en_validator():
    """Validator for English scenes."""
    return SceneValidator(ENGLISH)


@pytest.fixture
def vi_validator():
    """Validator for Vietnamese scenes."""
    return SceneValidator(VIETNAMESE)
