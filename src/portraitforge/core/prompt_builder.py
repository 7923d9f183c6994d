"""Prompt builder: compiles templates into final prompt strings.

The PromptBuilder ties the engine components together.  Given a template
definition and a runtime context it produces a ``CompiledResult``:

1. Derive a cache key from the template identity, the context and the
   options; return the cached result on a hit
2. Validate the template (optional); an invalid template raises
   ``ValidationError`` and is never compiled
3. Parse the raw template text
4. Resolve the declared variables
5. Apply the selected style's prompt modifiers to the raw text
6. Re-parse the styled text and walk its segments
7. Trim, wrap in a ``CompiledResult`` and store it in the cache

Styles are looked up by a normalised id derived from the human-readable
style name, so ``"Rustic Barn Wedding"`` selects ``rustic-barn-wedding``.

Error Handling
--------------
Template engine errors (``ValidationError``, ``CompilationError``,
``VariableError``) propagate unchanged.  Any other exception raised inside the
pipeline is wrapped in ``CompilationError``.  Cache writes and compile hooks
never raise past ``compile``: their failures are logged and ignored.

Usage Example
-------------
    >>> from portraitforge.core.config import EngineConfig
    >>> from portraitforge.core.models import CompileOptions, RuntimeContext, TemplateDefinition
    >>> from portraitforge.core.prompt_builder import PromptBuilder
    >>>
    >>> builder = PromptBuilder(EngineConfig())
    >>> template = TemplateDefinition(
    ...     id="couple-default",
    ...     portrait_type="couple",
    ...     name="Couple portrait",
    ...     template="A {style} portrait. {customPrompt}",
    ... )
    >>> context = RuntimeContext(style="Rustic Barn Wedding", photo_type="couple")
    >>> builder.compile(template, context, CompileOptions(validation=False)).prompt
    'A Rustic Barn Wedding portrait.'

For applications, ``create_builder`` wires the seeded style catalogue, the
built-in generators, a started cache sweeper and a statistics hook.
"""

import hashlib
import json
import logging
import time
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from portraitforge import __version__

from .cache import CacheStats, TemplateCache
from .conditions import evaluate_condition, normalize_style_id
from .config import EngineConfig
from .errors import CompilationError, TemplateEngineError, ValidationError
from .generators import GeneratorRegistry
from .hooks import CompileHook, CompileStatsHook, notify_complete, notify_error
from .models import (
    CompilationMetadata,
    CompiledResult,
    CompileOptions,
    PromptModifier,
    RuntimeContext,
    TemplateDefinition,
    VariableSpec,
)
from .parser import TemplateParser
from .segments import (
    ConditionalSegment,
    DynamicSegment,
    Segment,
    TextSegment,
    ValidationResult,
    VariableSegment,
)
from .themes import ThemeRegistry
from .validator import TemplateValidator
from .variables import VariableProcessor

logger = logging.getLogger(__name__)

ESTIMATED_COMPILE_MS = {"simple": 5, "moderate": 15, "complex": 30}
REQUIRED_IMPORT_FIELDS = ("id", "portrait_type", "name", "template")


class PromptBuilder:
    """Compile prompt templates against runtime contexts.

    Every collaborator is injected; omitted ones get isolated defaults (an
    empty theme registry, an unstarted cache, the built-in generators and no
    hooks), so several independently configured builders can coexist.

    Attributes
    ----------
    config : EngineConfig
        Engine configuration
    themes : ThemeRegistry
        Style registry supplying prompt modifiers
    cache : TemplateCache
        Compilation cache
    generators : GeneratorRegistry
        Dynamic segment generators
    hooks : list[CompileHook]
        Compile observers
    parser : TemplateParser
    variables : VariableProcessor
    validator : TemplateValidator
    """

    def __init__(
        self,
        config: EngineConfig,
        themes: ThemeRegistry | None = None,
        cache: TemplateCache | None = None,
        generators: GeneratorRegistry | None = None,
        hooks: list[CompileHook] | None = None,
    ):
        """
        Initialize the prompt builder.

        Args:
            config: Engine configuration
            themes: Style registry (defaults to an empty registry)
            cache: Compilation cache (defaults to a new, unstarted cache)
            generators: Dynamic segment generators (defaults to the built-ins)
            hooks: Compile observers
        """
        self.config = config
        self.themes = themes if themes is not None else ThemeRegistry()
        self.cache = cache if cache is not None else TemplateCache(config)
        self.generators = generators if generators is not None else GeneratorRegistry.with_defaults()
        self.hooks = list(hooks or [])

        self.parser = TemplateParser(config)
        self.variables = VariableProcessor(config)
        self.validator = TemplateValidator(config)

        logger.info(
            f"Initialized PromptBuilder (caching={config.enable_caching}, "
            f"validation_level={config.validation_level}, debug={config.enable_debug_mode})"
        )

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    def compile(
        self,
        template: TemplateDefinition,
        context: RuntimeContext | None = None,
        options: CompileOptions | None = None,
    ) -> CompiledResult:
        """Compile a template into a prompt.

        Args:
            template: Template definition
            context: Runtime context (defaults to an empty context)
            options: Compile options

        Returns:
            CompiledResult with the prompt and compilation metadata

        Raises:
            ValidationError: If validation is enabled and the template is invalid
            CompilationError: On parse or segment-walk failure
            VariableError: If a required variable cannot be resolved
        """
        started = time.perf_counter()
        context = context or RuntimeContext()
        options = options or CompileOptions()
        cache_settings = template.advanced_options.cache_settings
        use_cache = (
            options.use_cache
            and self.config.enable_caching
            and (cache_settings is None or cache_settings.enabled)
        )

        try:
            cache_key = self.cache_key(template, context, options)
            if use_cache:
                cached = self.cache.get(cache_key)
                if cached is not None:
                    notify_complete(self.hooks, cached)
                    return cached

            result = self._compile(template, context, options, started)
        except TemplateEngineError as e:
            notify_error(self.hooks, template.id, e)
            raise
        except Exception as e:
            error = CompilationError(
                f"Template compilation failed: {e}", template_id=template.id
            )
            notify_error(self.hooks, template.id, error)
            raise error from e

        if use_cache:
            try:
                self.cache.set(cache_key, result, cache_settings)
            except Exception as e:
                logger.warning(f"Failed to cache compilation of '{template.id}': {e}", exc_info=True)

        notify_complete(self.hooks, result)

        summary = (
            f"Compiled template '{template.id}' v{template.version} in "
            f"{result.metadata.compilation_time_ms:.2f}ms ({len(result.prompt)} chars, "
            f"{len(result.metadata.variables)} variables)"
        )
        if self.config.enable_debug_mode:
            logger.info(summary)
        else:
            logger.debug(summary)
        return result

    def _compile(
        self,
        template: TemplateDefinition,
        context: RuntimeContext,
        options: CompileOptions,
        started: float,
    ) -> CompiledResult:
        warnings: list[str] = []

        if options.validation:
            validation = self.validator.validate(template)
            if not validation.is_valid:
                raise ValidationError(
                    f"Template validation failed: {'; '.join(validation.errors)}",
                    template_id=template.id,
                    result=validation,
                )
            warnings.extend(validation.warnings)

        advanced = self._advanced_enabled(template)
        parsed = self.parser.parse(template.template, advanced=advanced, template_id=template.id)
        warnings.extend(parsed.metadata.warnings)

        variables = self.variables.resolve(
            template.variables, context, include_dynamic=advanced, template_id=template.id
        )

        styled_text = self._apply_style(template, context, options, variables)
        if styled_text != template.template:
            final = self.parser.parse(
                styled_text, advanced=advanced, template_id=template.id, enforce_limits=False
            )
            warnings.extend(w for w in final.metadata.warnings if w not in warnings)
        else:
            final = parsed

        prompt = self._walk(final.segments, variables, context, template).strip()

        metadata = CompilationMetadata(
            template_id=template.id,
            version=template.version,
            variables=variables,
            style=context.style,
            compiled_at=datetime.now(timezone.utc),
            compilation_time_ms=(time.perf_counter() - started) * 1000,
            cache_hit=False,
            complexity=parsed.metadata.complexity,
        )
        return CompiledResult(prompt=prompt, metadata=metadata, warnings=warnings, errors=[])

    def _advanced_enabled(self, template: TemplateDefinition) -> bool:
        options = template.advanced_options
        return (
            self.config.enable_debug_mode
            or options.enable_conditionals
            or options.enable_dynamic_variables
        )

    def _style_modifiers(
        self, template: TemplateDefinition, style_id: str, variation: str | None
    ) -> list[PromptModifier]:
        if not template.advanced_options.enable_style_variations:
            variation = None

        modifiers = self.themes.modifiers_for(style_id, variation)
        if variation and not any(v.name == variation for v in self.themes.variations(style_id)):
            theme_config = template.theme_config
            local = theme_config.style_variations.get(variation) if theme_config else None
            if local is not None:
                modifiers = modifiers + list(local.modifiers)
        return modifiers

    def _apply_style(
        self,
        template: TemplateDefinition,
        context: RuntimeContext,
        options: CompileOptions,
        variables: dict[str, Any],
    ) -> str:
        if not context.style:
            return template.template
        modifiers = self._style_modifiers(
            template, normalize_style_id(context.style), options.style_variation
        )
        if not modifiers:
            return template.template
        return self.themes.apply(template.template, modifiers, variables)

    def _walk(
        self,
        segments: list[Segment],
        variables: dict[str, Any],
        context: RuntimeContext,
        template: TemplateDefinition,
    ) -> str:
        parts: list[str] = []
        for segment in segments:
            if isinstance(segment, TextSegment):
                parts.append(segment.content)
            elif isinstance(segment, VariableSegment):
                spec = template.variables.get(segment.variable_id)
                parts.append(
                    self.variables.substitute(
                        segment.variable_id,
                        variables,
                        formatting=segment.formatting,
                        fallback=segment.fallback,
                        declared=spec.formatting if spec else None,
                    )
                )
            elif isinstance(segment, ConditionalSegment):
                branch = (
                    segment.true_content
                    if evaluate_condition(segment.condition, variables)
                    else segment.false_content
                )
                parts.append(self._walk(branch, variables, context, template))
            elif isinstance(segment, DynamicSegment):
                parts.append(
                    self.generators.generate(segment.generator, segment.parameters, variables, context)
                )
            else:
                raise CompilationError(
                    f"Unknown segment type: {type(segment).__name__}", template_id=template.id
                )
        return "".join(parts)

    @staticmethod
    def cache_key(
        template: TemplateDefinition, context: RuntimeContext, options: CompileOptions
    ) -> str:
        """Derive a deterministic cache key.

        The key is ``prompt:<template id>:<digest>`` where the digest covers
        the template version and text, the context and the options, hashed
        over canonical (key-sorted) JSON.
        """
        payload = {
            "template_id": template.id,
            "version": template.version,
            "template": template.template,
            "context": {
                "style": context.style,
                "custom_prompt": context.custom_prompt,
                "family_member_count": context.family_member_count,
                "photo_type": context.photo_type,
                "user_preferences": context.user_preferences,
                "session_data": context.session_data,
                "dynamic_variables": context.dynamic_variables,
            },
            "options": options.model_dump(),
        }
        canonical = json.dumps(payload, sort_keys=True, default=str, separators=(",", ":"))
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:24]
        return f"prompt:{template.id}:{digest}"

    # ------------------------------------------------------------------
    # Introspection and administration
    # ------------------------------------------------------------------

    def validate(self, template: TemplateDefinition) -> ValidationResult:
        """Validate a template without compiling it."""
        return self.validator.validate(template)

    def analyze_complexity(self, template: TemplateDefinition) -> dict[str, Any]:
        """Parse a template and report its complexity.

        Returns:
            Dictionary with complexity, variable/conditional/dynamic counts and
            a rough compile-time estimate in milliseconds

        Raises:
            CompilationError: If the template does not parse
        """
        parsed = self.parser.parse(
            template.template, advanced=self._advanced_enabled(template), template_id=template.id
        )
        complexity = parsed.metadata.complexity
        return {
            "complexity": complexity,
            "variable_count": len(parsed.variables),
            "conditional_count": parsed.metadata.conditional_count,
            "dynamic_segment_count": parsed.metadata.dynamic_count,
            "estimated_compilation_time_ms": ESTIMATED_COMPILE_MS[complexity],
        }

    def available_variables(self, template: TemplateDefinition) -> list[VariableSpec]:
        """Return the variables a template declares, in declaration order."""
        return list(template.variables.values())

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> CacheStats:
        return self.cache.get_stats()

    def invalidate_template(self, template_id: str) -> int:
        """Drop every cached compilation of a template."""
        return self.cache.invalidate(f"prompt:{template_id}:")

    @property
    def stats_hook(self) -> CompileStatsHook | None:
        """The first registered CompileStatsHook, if any."""
        return next((h for h in self.hooks if isinstance(h, CompileStatsHook)), None)

    def export_template(self, template: TemplateDefinition) -> str:
        """Serialise a template to portable JSON."""
        data = template.model_dump(mode="json")
        data["exported_at"] = datetime.now(timezone.utc).isoformat()
        data["engine_version"] = __version__
        return json.dumps(data, indent=2)

    def import_template(self, payload: str) -> TemplateDefinition:
        """Load a template from portable JSON.

        A legacy ``type`` key is accepted in place of ``portrait_type``.

        Raises:
            ValidationError: If the payload is not JSON, lacks a required field
                or does not describe a template
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid template format: {e}") from e
        if not isinstance(data, dict):
            raise ValidationError("Invalid template format: expected a JSON object")

        if "portrait_type" not in data and "type" in data:
            data["portrait_type"] = data.pop("type")
        for field_name in REQUIRED_IMPORT_FIELDS:
            if not data.get(field_name):
                raise ValidationError(
                    f"Invalid template format: Missing required field: {field_name}",
                    template_id=data.get("id"),
                )

        data.pop("exported_at", None)
        data.pop("engine_version", None)
        data["kind"] = "enhanced"
        try:
            return TemplateDefinition.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Invalid template format: {e}", template_id=data.get("id")
            ) from e

    def close(self) -> None:
        """Stop the cache sweeper."""
        self.cache.stop()


def create_builder(config: EngineConfig, **kwargs: Any) -> PromptBuilder:
    """Create a PromptBuilder wired with application defaults.

    Uses the seeded style catalogue, the built-in generators, a started
    cache sweeper and a ``CompileStatsHook``.  Keyword arguments override any
    of these collaborators.

    Args:
        config: Engine configuration
        **kwargs: ``themes``, ``cache``, ``generators`` or ``hooks`` overrides

    Returns:
        Ready-to-use PromptBuilder; call ``close()`` when done
    """
    themes = kwargs.get("themes")
    if themes is None:
        themes = ThemeRegistry.with_defaults()
    cache = kwargs.get("cache")
    if cache is None:
        cache = TemplateCache(config)
    generators = kwargs.get("generators")
    if generators is None:
        generators = GeneratorRegistry.with_defaults()
    hooks = kwargs.get("hooks")
    if hooks is None:
        hooks = [CompileStatsHook()]

    if config.enable_caching:
        cache.start()
    return PromptBuilder(config, themes=themes, cache=cache, generators=generators, hooks=hooks)
