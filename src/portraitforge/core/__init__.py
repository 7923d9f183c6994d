"""Core prompt template engine.

This module provides the components that turn a stored prompt template and a
runtime context into the final text sent to an image provider:

- **EngineConfig**: Configuration management using Pydantic Settings
- **PromptBuilder**: Compiler orchestrating parse, resolve, style and cache
- **ThemeRegistry**: Wedding style catalogue and selection
- **TemplateValidator**: Scored structural validation of templates
- **TemplateCache**: TTL + LRU memoisation of compiled prompts
- **TemplateStore**: JSON file repository with legacy record upgrades

Architecture Overview
---------------------
The engine is layered bottom-up:

1. **Configuration Layer** (config.py):
   - Environment-based configuration using Pydantic Settings
   - All settings prefixed with PORTRAITFORGE_ in .env files

2. **Data Model Layer** (models.py, segments.py, errors.py):
   - Pydantic definition models for anything crossing a JSON boundary
   - Dataclasses for parse results and validation reports
   - Typed engine errors carrying template and variable ids

3. **Template Processing Layer**:
   - conditions.py: Condition parsing and evaluation
   - parser.py: Template text to segment tree
   - variables.py: Variable resolution, validation and formatting
   - generators.py: Dynamic segment and value generators
   - themes.py, default_styles.py: Style registry and seed catalogue
   - validator.py: Template scoring

4. **Compilation Layer** (prompt_builder.py, cache.py, hooks.py):
   - Cache lookup, validation, style application and segment walk
   - Compile observers for statistics

5. **Persistence Layer** (template_store.py, migration.py):
   - File-backed templates, legacy records upgraded on read

Usage Example
-------------
    from portraitforge.core import config, create_builder
    from portraitforge.core.models import RuntimeContext

    builder = create_builder(config)
    template = builder.import_template(payload)
    result = builder.compile(
        template,
        RuntimeContext(style="Rustic Barn Wedding", custom_prompt="golden hour"),
    )
    print(result.prompt)
    builder.close()
"""

from portraitforge.core.cache import TemplateCache
from portraitforge.core.config import EngineConfig, config
from portraitforge.core.errors import (
    CompilationError,
    TemplateEngineError,
    TemplateNotFoundError,
    ValidationError,
    VariableError,
)
from portraitforge.core.prompt_builder import PromptBuilder, create_builder
from portraitforge.core.template_store import TemplateStore
from portraitforge.core.themes import ThemeRegistry
from portraitforge.core.validator import TemplateValidator

__all__ = [
    "CompilationError",
    "EngineConfig",
    "PromptBuilder",
    "TemplateCache",
    "TemplateEngineError",
    "TemplateNotFoundError",
    "TemplateStore",
    "TemplateValidator",
    "ThemeRegistry",
    "ValidationError",
    "VariableError",
    "config",
    "create_builder",
]
