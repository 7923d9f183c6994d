"""PortraitForge - prompt template compilation for wedding portrait generation."""

__version__ = "1.0.0"

from portraitforge.core.config import EngineConfig, config
from portraitforge.core.prompt_builder import PromptBuilder, create_builder

__all__ = [
    "EngineConfig",
    "config",
    "PromptBuilder",
    "create_builder",
]
