"""Variable resolution and substitution.

``VariableProcessor.resolve`` turns a template's declared variables plus a
``RuntimeContext`` into a map of concrete, typed values.  Formatting is *not*
applied there: the raw value is stored and ``substitute`` formats it once per
occurrence, so ``{name|uppercase}`` and ``{name}`` can appear side by side.

Resolution Order
----------------
1. Built-in context fields (``style``, ``customPrompt``, ``photoType``,
   ``familyMemberCount``) are seeded into the map.
2. ``user_preferences`` then ``session_data`` are merged over them.
3. Each declared variable is resolved in declaration order and may read any
   value already in the map as a dependency target.
4. With advanced parsing on, ``dynamic_variables`` fill in keys that are still
   missing.
5. Unless ``allow_unsafe_variables`` is set, string values are stripped of
   script tags, ``javascript:`` and inline ``on*=`` handlers.  Declared
   variables are stripped before validation, so a required value that is
   only script content counts as empty.

Failure Handling
----------------
- A required variable that fails coercion or validation, or resolves empty,
  raises ``VariableError``.
- An optional variable that fails coercion or validation falls back to its
  declared default.
- A ``require`` dependency whose condition is not met raises ``VariableError``
  when the value is still empty.  Other dependency actions are advisory.
"""

import logging
import re
from typing import Any

from .conditions import compare, is_empty, truthy
from .config import EngineConfig
from .errors import VariableError
from .generators import VALUE_GENERATORS, ValueGenerator
from .models import RuntimeContext, VariableFormatting, VariableSpec, VariableValidation

logger = logging.getLogger(__name__)

_SCRIPT_TAG = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+\s*=", re.IGNORECASE)
_TITLE_WORD = re.compile(r"\w\S*")


def sanitize(value: str) -> str:
    """Strip script-like content from a string value."""
    value = _SCRIPT_TAG.sub("", value)
    value = _JAVASCRIPT_URL.sub("", value)
    return _EVENT_HANDLER.sub("", value)


def to_text(value: Any) -> str:
    """Render a resolved value as template text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set)):
        return ", ".join(to_text(item) for item in value)
    return str(value)


def apply_formatting(value: str, formatting: VariableFormatting) -> str:
    """Apply case transform, prefix, suffix and wrapper template, in that order."""
    formatted = value

    if formatting.transform == "uppercase":
        formatted = formatted.upper()
    elif formatting.transform == "lowercase":
        formatted = formatted.lower()
    elif formatting.transform == "capitalize":
        formatted = formatted.capitalize()
    elif formatting.transform == "title_case":
        formatted = _TITLE_WORD.sub(lambda m: m.group(0).capitalize(), formatted)

    if formatting.prefix:
        formatted = formatting.prefix + formatted
    if formatting.suffix:
        formatted = formatted + formatting.suffix
    if formatting.template:
        formatted = formatting.template.replace("{value}", formatted, 1)

    return formatted


def merge_formatting(
    declared: VariableFormatting | None, inline: VariableFormatting | None
) -> VariableFormatting | None:
    """Overlay inline format-chain entries on a variable's declared formatting."""
    if declared is None or inline is None:
        return inline or declared
    return VariableFormatting(
        transform=inline.transform or declared.transform,
        prefix=inline.prefix if inline.prefix is not None else declared.prefix,
        suffix=inline.suffix if inline.suffix is not None else declared.suffix,
        template=inline.template or declared.template,
    )


class VariableProcessor:
    """Resolve declared template variables against a runtime context.

    Attributes
    ----------
    config : EngineConfig
        Supplies ``allow_unsafe_variables`` and the ``enable_debug_mode``
        default for merging dynamic variables
    value_generators : dict[str, ValueGenerator]
        Generators backing ``type: "dynamic"`` variables

    Examples
    --------
        >>> processor = VariableProcessor(EngineConfig())
        >>> specs = {"mood": VariableSpec(id="mood", type="text", default_value="joyful")}
        >>> processor.resolve(specs, RuntimeContext(style="Rustic Barn Wedding"))["mood"]
        'joyful'
    """

    def __init__(
        self,
        config: EngineConfig,
        value_generators: dict[str, ValueGenerator] | None = None,
    ):
        self.config = config
        self.value_generators = (
            dict(VALUE_GENERATORS) if value_generators is None else value_generators
        )

    def resolve(
        self,
        specs: dict[str, VariableSpec],
        context: RuntimeContext,
        *,
        include_dynamic: bool | None = None,
        template_id: str | None = None,
    ) -> dict[str, Any]:
        """Resolve every declared variable.

        Args:
            specs: Declared variables keyed by id, in declaration order
            context: Runtime context for this compilation
            include_dynamic: Merge ``context.dynamic_variables`` into the
                result. Defaults to ``config.enable_debug_mode``.
            template_id: Template id attached to raised errors

        Returns:
            Map of variable id to raw (unformatted) value

        Raises:
            VariableError: If a required variable cannot be resolved
        """
        resolved: dict[str, Any] = context.builtin_values()
        resolved.update(context.user_preferences)
        resolved.update(context.session_data)

        for variable_id, spec in specs.items():
            resolved[variable_id] = self._resolve_variable(
                variable_id, spec, context, resolved, template_id
            )

        if include_dynamic is None:
            include_dynamic = self.config.enable_debug_mode
        if include_dynamic:
            for key, value in context.dynamic_variables.items():
                resolved.setdefault(key, value)

        if not self.config.allow_unsafe_variables:
            resolved = {
                key: sanitize(value) if isinstance(value, str) else value
                for key, value in resolved.items()
            }
        return resolved

    def _resolve_variable(
        self,
        variable_id: str,
        spec: VariableSpec,
        context: RuntimeContext,
        resolved: dict[str, Any],
        template_id: str | None,
    ) -> Any:
        try:
            value = self._raw_value(variable_id, spec, context, resolved)
            if isinstance(value, str) and not self.config.allow_unsafe_variables:
                value = sanitize(value)
            if spec.validation is not None:
                problem = self.validate_value(value, spec.validation)
                if problem:
                    raise ValueError(problem)
        except ValueError as e:
            if spec.required:
                raise VariableError(
                    f"Required variable '{variable_id}' could not be resolved: {e}",
                    variable_id,
                    template_id=template_id,
                ) from e
            logger.debug(f"Variable '{variable_id}' fell back to its default: {e}")
            value = spec.default_value

        self._check_dependencies(variable_id, spec, value, resolved, template_id)

        if spec.required and is_empty(value):
            raise VariableError(
                f"Required variable '{variable_id}' has no value",
                variable_id,
                template_id=template_id,
            )
        return value

    # ------------------------------------------------------------------
    # Type coercion
    # ------------------------------------------------------------------

    @staticmethod
    def lookup(variable_id: str, context: RuntimeContext) -> Any:
        """Find a runtime value for ``variable_id``.

        Checks built-in context fields, then user preferences, session data
        and dynamic variables. Returns None when nothing is set.
        """
        sources = (
            context.builtin_values(),
            context.user_preferences,
            context.session_data,
            context.dynamic_variables,
        )
        for source in sources:
            value = source.get(variable_id)
            if value is not None:
                return value
        return None

    def _raw_value(
        self,
        variable_id: str,
        spec: VariableSpec,
        context: RuntimeContext,
        resolved: dict[str, Any],
    ) -> Any:
        kind = spec.type
        default = spec.default_value

        if kind == "text":
            value = self.lookup(variable_id, context)
            if is_empty(value):
                value = default
            return "" if value is None else value

        if kind == "number":
            value = self.lookup(variable_id, context)
            if is_empty(value):
                value = default
            if is_empty(value):
                return 0
            return self._to_int(value)

        if kind == "boolean":
            value = self.lookup(variable_id, context)
            if value is None:
                value = default if default is not None else False
            return truthy(value)

        if kind == "select":
            value = self.lookup(variable_id, context)
            if is_empty(value):
                value = default
            options = spec.option_values
            if options and (value is None or str(value) not in options):
                return options[0]
            return value

        if kind == "multiselect":
            value = self.lookup(variable_id, context)
            if is_empty(value):
                value = default
            if is_empty(value):
                return []
            if isinstance(value, (list, tuple, set)):
                return list(value)
            return [value]

        if kind in ("style", "theme"):
            return context.style or default or ""

        if kind == "conditional":
            if not spec.dependencies:
                return None
            dependency = spec.dependencies[0]
            actual = resolved.get(dependency.variable_id)
            if actual is None:
                actual = self.lookup(dependency.variable_id, context)
            if compare(actual, dependency.condition, dependency.value):
                return default
            return None

        if kind == "dynamic":
            generator = self.value_generators.get(spec.generator or variable_id)
            if generator is None:
                return default
            value = generator(context, resolved)
            return default if value is None else value

        return default

    @staticmethod
    def _to_int(value: Any) -> int:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            return value
        try:
            if isinstance(value, float):
                return int(value)
            return int(float(str(value).strip()))
        except (ValueError, OverflowError):
            raise ValueError(f"'{value}' is not a number") from None

    # ------------------------------------------------------------------
    # Validation and dependencies
    # ------------------------------------------------------------------

    @staticmethod
    def validate_value(value: Any, validation: VariableValidation) -> str | None:
        """Check a value against its constraints.

        Returns:
            An error message, or None if the value passes
        """
        if isinstance(value, str):
            if validation.min_length is not None and len(value) < validation.min_length:
                return f"Value must be at least {validation.min_length} characters long"
            if validation.max_length is not None and len(value) > validation.max_length:
                return f"Value must be no more than {validation.max_length} characters long"
            if validation.pattern:
                try:
                    matched = re.search(validation.pattern, value)
                except re.error as e:
                    return f"Invalid validation pattern: {e}"
                if not matched:
                    return "Value does not match required pattern"

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if validation.min is not None and value < validation.min:
                return f"Value must be at least {validation.min:g}"
            if validation.max is not None and value > validation.max:
                return f"Value must be no more than {validation.max:g}"

        if validation.custom is not None:
            try:
                outcome = validation.custom(value)
            except Exception as e:
                return f"Validation error: {e}"
            if outcome is not True:
                return outcome if isinstance(outcome, str) else "Custom validation failed"

        return None

    def _check_dependencies(
        self,
        variable_id: str,
        spec: VariableSpec,
        value: Any,
        resolved: dict[str, Any],
        template_id: str | None,
    ) -> None:
        for dependency in spec.dependencies:
            if compare(resolved.get(dependency.variable_id), dependency.condition, dependency.value):
                continue
            if dependency.action == "require" and is_empty(value):
                raise VariableError(
                    f"Variable '{variable_id}' is required when "
                    f"'{dependency.variable_id}' is not {dependency.condition} {dependency.value!r}",
                    variable_id,
                    template_id=template_id,
                )

    # ------------------------------------------------------------------
    # Substitution
    # ------------------------------------------------------------------

    def substitute(
        self,
        variable_id: str,
        variables: dict[str, Any],
        formatting: VariableFormatting | None = None,
        fallback: str | None = None,
        declared: VariableFormatting | None = None,
    ) -> str:
        """Render one variable occurrence.

        Args:
            variable_id: Variable to render
            variables: Resolved variable map
            formatting: Inline format chain from the segment
            fallback: Literal fallback from the segment
            declared: Formatting declared on the VariableSpec

        Returns:
            Formatted value, the fallback, or an empty string
        """
        value = variables.get(variable_id)
        if is_empty(value):
            return fallback or ""

        effective = merge_formatting(declared, formatting)
        text = to_text(value)
        if effective is not None:
            text = apply_formatting(text, effective)
        return text
