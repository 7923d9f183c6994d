"""Pydantic definition models for templates, variables and styles.

These models describe everything that crosses a JSON boundary: records in the
template store, request bodies of the HTTP layer, and compiled results in a
cache export.  Pydantic gives us parsing, defaults and serialisation for free.

Models are intentionally lenient about *content* (ids may be empty, template
types are plain strings) because reporting structural defects is the
validator's job, not the parser's.  Anything that must be well-typed for the
engine to run at all (modifier types, dependency operators) is a ``Literal``.

Built-in template variables keep their camelCase names (``customPrompt``,
``photoType``, ``familyMemberCount``) because they are written literally inside
template text; Python-side fields are snake_case.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer

VariableType = Literal[
    "text",
    "number",
    "boolean",
    "select",
    "multiselect",
    "style",
    "theme",
    "conditional",
    "dynamic",
]
VARIABLE_TYPES: tuple[str, ...] = (
    "text",
    "number",
    "boolean",
    "select",
    "multiselect",
    "style",
    "theme",
    "conditional",
    "dynamic",
)

PORTRAIT_TYPES: tuple[str, ...] = ("single", "couple", "family")

ConditionOperator = Literal[
    "equals", "not_equals", "contains", "in", "not_in", "greater_than", "less_than"
]
DependencyAction = Literal["show", "hide", "enable", "disable", "require"]
ModifierType = Literal["prepend", "append", "replace", "inject"]
TransformType = Literal["uppercase", "lowercase", "capitalize", "title_case"]
RuleType = Literal["required_variables", "variable_combination", "template_structure", "custom"]

# Names every template may reference without declaring them.
BUILTIN_VARIABLES: tuple[str, ...] = (
    "style",
    "customPrompt",
    "familyMemberCount",
    "photoType",
    "timestamp",
    "userId",
    "sessionId",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DefinitionModel(BaseModel):
    """Common configuration for definition models."""

    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True)


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------


class VariableValidation(DefinitionModel):
    """Validation constraints for a single variable.

    ``custom`` is a predicate returning ``True`` on success, or ``False`` / an
    error message on failure.  It is never serialised.
    """

    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    min: float | None = None
    max: float | None = None
    custom: Callable[[Any], bool | str] | None = Field(default=None, exclude=True)


class VariableOption(DefinitionModel):
    """One selectable option of a select/multiselect variable."""

    value: str
    label: str = ""
    description: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class VariableDependency(DefinitionModel):
    """Dependency of one variable on another variable's value."""

    variable_id: str
    condition: ConditionOperator = "equals"
    value: Any = None
    action: DependencyAction = "show"


class VariableFormatting(DefinitionModel):
    """Formatting applied to a value at substitution time."""

    transform: TransformType | None = None
    prefix: str | None = None
    suffix: str | None = None
    template: str | None = None


class VariableSpec(DefinitionModel):
    """Declaration of a template variable.

    Attributes:
        id: Variable identifier referenced as ``{id}`` in template text.
        name: Human-readable display name.
        type: One of ``VARIABLE_TYPES``. Left as a plain string so the
            validator can report unknown or missing types.
        default_value: Value used when nothing else resolves.
        required: Whether an empty resolution is an error.
        validation: Optional constraints.
        options: Declared options for select types.
        dependencies: Conditions on other variables.
        formatting: Declared formatting, applied at substitution time.
        generator: Dynamic-value generator name (defaults to ``id``).
    """

    id: str
    name: str = ""
    type: str | None = None
    description: str | None = None
    default_value: Any = None
    required: bool = False
    validation: VariableValidation | None = None
    options: list[VariableOption] = Field(default_factory=list)
    dependencies: list[VariableDependency] = Field(default_factory=list)
    formatting: VariableFormatting | None = None
    generator: str | None = None

    @property
    def option_values(self) -> list[str]:
        """Values of the declared options, in declaration order."""
        return [option.value for option in self.options]


# ---------------------------------------------------------------------------
# Styles and themes
# ---------------------------------------------------------------------------


class ConditionalRule(DefinitionModel):
    """A ``variable operator value`` comparison."""

    variable: str
    operator: ConditionOperator = "equals"
    value: Any = True


class PromptModifier(DefinitionModel):
    """A single text transformation contributed by a style."""

    type: ModifierType
    content: str = ""
    target: str | None = None
    condition: ConditionalRule | None = None


class StyleVariation(DefinitionModel):
    """A named variation of a style, itself a list of modifiers."""

    name: str
    description: str = ""
    modifiers: list[PromptModifier] = Field(default_factory=list)


class StyleDefinition(DefinitionModel):
    """A named visual style (theme) with its prompt modifiers."""

    id: str
    name: str
    description: str = ""
    category: str = "traditional"
    tags: list[str] = Field(default_factory=list)
    popularity: float = 5.0

    # Visual attributes
    color_palette: list[str] = Field(default_factory=list)
    mood: list[str] = Field(default_factory=list)
    setting: str = ""

    prompt_modifiers: list[PromptModifier] = Field(default_factory=list)
    style_variations: list[StyleVariation] = Field(default_factory=list)
    preview_image: str | None = None

    enabled: bool = True
    featured: bool = False
    premium_only: bool = False
    seasonal: bool = False

    def variation(self, name: str) -> StyleVariation | None:
        """Return the variation called ``name``, if declared."""
        return next((v for v in self.style_variations if v.name == name), None)


class CustomTheme(DefinitionModel):
    """A user-defined theme layered on top of a base style."""

    id: str
    name: str
    description: str = ""
    base_style: str
    overrides: list[PromptModifier] = Field(default_factory=list)
    variables: dict[str, Any] = Field(default_factory=dict)


class StylePreset(DefinitionModel):
    """A saved combination of style and variable values."""

    id: str
    name: str
    description: str = ""
    style: str
    variables: dict[str, Any] = Field(default_factory=dict)
    preview: str | None = None


class StylePreferences(DefinitionModel):
    """User preferences used to score style recommendations."""

    mood: list[str] = Field(default_factory=list)
    setting: str | None = None
    category: str | None = None
    tags: list[str] = Field(default_factory=list)


class ThemeConfiguration(DefinitionModel):
    """Theme settings attached to a template."""

    supported_styles: list[str] | None = Field(default_factory=list)
    style_variations: dict[str, StyleVariation] = Field(default_factory=dict)
    default_style: str = ""
    custom_themes: list[CustomTheme] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class CacheSettings(DefinitionModel):
    """Per-template cache policy."""

    enabled: bool = True
    ttl: int = 3600
    invalidate_on_variable_change: bool = True


class ValidationRule(DefinitionModel):
    """A custom validation rule executed by the validator.

    ``rule`` is rule-type specific: a ``{"variables": [...]}`` mapping for
    ``required_variables``, ``{"combinations": [...]}`` for
    ``variable_combination``, ``{"min_length": .., "max_length": ..}`` for
    ``template_structure`` and a callable taking the template for ``custom``.
    """

    id: str
    type: RuleType
    rule: Any = None
    message: str = ""

    @field_serializer("rule")
    def _serialize_rule(self, rule: Any) -> Any:
        return None if callable(rule) else rule


class AdvancedOptions(DefinitionModel):
    """Advanced compilation options for a template."""

    enable_conditionals: bool = False
    enable_dynamic_variables: bool = False
    enable_style_variations: bool = True
    cache_settings: CacheSettings | None = None
    validation_rules: list[ValidationRule] = Field(default_factory=list)


class TemplateDefinition(DefinitionModel):
    """A prompt template as consumed by the engine."""

    kind: Literal["enhanced"] = "enhanced"
    id: str = ""
    portrait_type: str = "single"
    name: str = ""
    template: str = ""
    is_default: bool = False
    last_modified: datetime = Field(default_factory=_utcnow)
    version: int = 1

    variables: dict[str, VariableSpec] = Field(default_factory=dict)
    theme_config: ThemeConfiguration | None = Field(default_factory=ThemeConfiguration)
    style_presets: list[StylePreset] = Field(default_factory=list)
    advanced_options: AdvancedOptions = Field(default_factory=AdvancedOptions)

    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    author: str | None = None
    description: str | None = None


class LegacyTemplate(DefinitionModel):
    """A template record from before the template engine existed."""

    kind: Literal["legacy"] = "legacy"
    id: str
    portrait_type: str = "single"
    name: str = ""
    template: str = ""
    is_default: bool = False
    last_modified: datetime = Field(default_factory=_utcnow)
    version: int = 1


StoredTemplate = Annotated[Union[LegacyTemplate, TemplateDefinition], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------------


class RuntimeContext(DefinitionModel):
    """Per-call input to a compilation."""

    style: str = ""
    custom_prompt: str = ""
    photo_type: str = "single"
    family_member_count: int | None = None
    user_preferences: dict[str, Any] = Field(default_factory=dict)
    session_data: dict[str, Any] = Field(default_factory=dict)
    dynamic_variables: dict[str, Any] = Field(default_factory=dict)

    def builtin_values(self) -> dict[str, Any]:
        """Return the built-in template variables seeded from this context."""
        values: dict[str, Any] = {
            "style": self.style,
            "customPrompt": self.custom_prompt or "",
            "photoType": self.photo_type,
        }
        if self.family_member_count is not None:
            values["familyMemberCount"] = self.family_member_count
        return values


class CompileOptions(DefinitionModel):
    """Options for a single compile call."""

    use_cache: bool = True
    validation: bool = True
    style_variation: str | None = None


class CompilationMetadata(DefinitionModel):
    """Metadata describing how a prompt was produced."""

    template_id: str
    version: int
    variables: dict[str, Any] = Field(default_factory=dict)
    style: str = ""
    compiled_at: datetime = Field(default_factory=_utcnow)
    compilation_time_ms: float = 0.0
    cache_hit: bool = False
    complexity: str = "simple"


class CompiledResult(DefinitionModel):
    """Final output of a compilation."""

    prompt: str
    metadata: CompilationMetadata
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
