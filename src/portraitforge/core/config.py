"""Configuration management for the Portraitforge template engine.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the PORTRAITFORGE_
prefix, allowing the engine to be tuned without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (PORTRAITFORGE_* prefix)
2. .env file in the project root
3. Default values defined in EngineConfig

Example .env file:
    PORTRAITFORGE_ENABLE_CACHING=true
    PORTRAITFORGE_VALIDATION_LEVEL=strict
    PORTRAITFORGE_MAX_TEMPLATE_SIZE=20000
    PORTRAITFORGE_DATA_DIR=data

Global Configuration Instance
------------------------------
A global `config` instance is created at module import time for the HTTP
layer.  Engine components never read it implicitly: every component takes an
``EngineConfig`` in its constructor so tests and embedding applications can
run several independently configured engines side by side.

Usage Example
-------------
    from portraitforge.core.config import EngineConfig

    strict = EngineConfig(validation_level="strict", enable_debug_mode=True)
    builder = create_builder(strict)

Engine Limits
-------------
- max_template_size: hard ceiling on raw template length (characters)
- max_variable_count: hard ceiling on distinct variables per template
- Both limits raise CompilationError when exceeded; nothing is truncated.

Cache Settings
--------------
- cache_default_ttl: TTL for templates without their own cache settings
- cache_preload_ttl: TTL applied to warm-start preloaded entries
- cache_max_entries: LRU ceiling
- cache_sweep_interval: seconds between background sweeps of expired entries
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Main configuration for the Portraitforge template engine.

    Attributes
    ----------
    Compilation:
        enable_caching : bool
            Memoize compiled prompts in the TemplateCache
        validation_level : Literal["strict", "normal", "permissive"]
            How aggressively validator findings are treated as errors
        allow_unsafe_variables : bool
            Skip stripping of script-like content from resolved strings
        max_template_size : int
            Maximum template length in characters
        max_variable_count : int
            Maximum number of distinct variables per template
        enable_debug_mode : bool
            Enable conditional/dynamic parsing and verbose compile logging

    Cache:
        cache_default_ttl : int
            Default TTL in seconds
        cache_preload_ttl : int
            TTL in seconds for preloaded entries
        cache_max_entries : int
            Maximum number of cached compilations
        cache_sweep_interval : float
            Seconds between background sweeps

    Paths:
        data_dir : Path
            Directory holding templates.json

    Server:
        server_host : str
            Server bind address
        server_port : int
            Server port (1024-65535)

    Examples
    --------
        >>> cfg = EngineConfig(enable_caching=False, max_template_size=500)
        >>> cfg.validation_level
        'normal'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PORTRAITFORGE_",
        case_sensitive=False,
    )

    # Compilation settings
    enable_caching: bool = Field(
        default=True,
        description="Memoize compiled prompts",
    )
    validation_level: Literal["strict", "normal", "permissive"] = Field(
        default="normal",
        description="strict promotes more validator findings to errors",
    )
    allow_unsafe_variables: bool = Field(
        default=False,
        description="Keep script-like content in resolved string variables",
    )
    max_template_size: int = Field(
        default=10000,
        description="Maximum template length in characters",
        ge=1,
    )
    max_variable_count: int = Field(
        default=50,
        description="Maximum distinct variables per template",
        ge=1,
    )
    enable_debug_mode: bool = Field(
        default=False,
        description="Enable conditional/dynamic segments and verbose logging",
    )

    # Cache settings
    cache_default_ttl: int = Field(default=3600, ge=1)
    cache_preload_ttl: int = Field(default=7200, ge=1)
    cache_max_entries: int = Field(default=1000, ge=1)
    cache_sweep_interval: float = Field(
        default=300.0,
        description="Seconds between sweeps of expired cache entries",
        gt=0,
    )

    # Paths
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory for the JSON template store",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create the data directory.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def templates_file(self) -> Path:
        """Path of the JSON template store."""
        return self.data_dir / "templates.json"


# Global configuration instance for the HTTP layer.
# Loads values from environment variables (PORTRAITFORGE_* prefix) and .env file.
config = EngineConfig()
