"""Shared pytest fixtures for PortraitForge tests."""

import random
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from portraitforge.core.cache import TemplateCache
from portraitforge.core.config import EngineConfig
from portraitforge.core.generators import GeneratorRegistry
from portraitforge.core.models import (
    RuntimeContext,
    StyleDefinition,
    TemplateDefinition,
    ThemeConfiguration,
    VariableSpec,
)
from portraitforge.core.prompt_builder import PromptBuilder
from portraitforge.core.themes import ThemeRegistry


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> EngineConfig:
    """Create an engine configuration isolated from the environment.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        EngineConfig writing into the temporary directory
    """
    return EngineConfig(_env_file=None, data_dir=temp_dir / "data")


@pytest.fixture
def debug_config(temp_dir: Path) -> EngineConfig:
    """Engine configuration with advanced parsing enabled globally."""
    return EngineConfig(_env_file=None, data_dir=temp_dir / "data", enable_debug_mode=True)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for deterministic selection tests."""
    return random.Random(1234)


@pytest.fixture
def empty_themes() -> ThemeRegistry:
    return ThemeRegistry()


@pytest.fixture
def seeded_themes(rng: random.Random) -> ThemeRegistry:
    """Theme registry holding the default style catalogue."""
    return ThemeRegistry.with_defaults(rng=rng)


@pytest.fixture
def sample_style() -> StyleDefinition:
    """A style exercising every modifier type."""
    return StyleDefinition.model_validate(
        {
            "id": "golden-hour-garden",
            "name": "Golden Hour Garden",
            "category": "outdoor",
            "mood": ["warm", "romantic"],
            "tags": ["garden", "sunset"],
            "popularity": 7,
            "setting": "Flower garden at sunset",
            "prompt_modifiers": [
                {"type": "prepend", "content": "Bathed in golden light,"},
                {"type": "append", "content": "with long soft shadows"},
            ],
            "style_variations": [
                {
                    "name": "Rose Arbour",
                    "modifiers": [
                        {"type": "inject", "target": "setting", "content": "under a rose arbour"}
                    ],
                }
            ],
        }
    )


@pytest.fixture
def sample_template() -> TemplateDefinition:
    """A valid couple template declaring one custom variable."""
    return TemplateDefinition(
        id="couple-portrait",
        portrait_type="couple",
        name="Couple portrait",
        template=(
            "A romantic {style} portrait of the couple, wearing {attire}. "
            "Keep both faces unchanged. {customPrompt}"
        ),
        variables={
            "attire": VariableSpec(
                id="attire",
                name="Attire",
                type="text",
                default_value="formal wedding attire",
            )
        },
        theme_config=ThemeConfiguration(supported_styles=[], default_style=""),
    )


@pytest.fixture
def sample_context() -> RuntimeContext:
    return RuntimeContext(style="Rustic Barn Wedding", photo_type="couple")


@pytest.fixture
def builder(test_config: EngineConfig, fake_clock: FakeClock) -> Generator[PromptBuilder, None, None]:
    """PromptBuilder with an empty style registry and a fake-clock cache."""
    engine = PromptBuilder(
        test_config,
        themes=ThemeRegistry(),
        cache=TemplateCache(test_config, clock=fake_clock),
        generators=GeneratorRegistry.with_defaults(rng=random.Random(42)),
    )
    try:
        yield engine
    finally:
        engine.close()


@pytest.fixture
def styled_builder(
    test_config: EngineConfig, seeded_themes: ThemeRegistry, fake_clock: FakeClock
) -> Generator[PromptBuilder, None, None]:
    """PromptBuilder with the default style catalogue."""
    engine = PromptBuilder(
        test_config,
        themes=seeded_themes,
        cache=TemplateCache(test_config, clock=fake_clock),
        generators=GeneratorRegistry.with_defaults(rng=random.Random(42)),
    )
    try:
        yield engine
    finally:
        engine.close()
