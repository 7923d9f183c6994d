"""Static template validation and quality scoring.

The validator inspects a ``TemplateDefinition`` without compiling it and
returns a ``ValidationResult``.  The score starts at 100 and each finding
subtracts a fixed penalty; the score is floored at 0.  Warnings only lower
the score, errors also make the template invalid.

Checks
------
Structure
    id (20), name (15), template content (25), portrait type (20) are errors;
    id charset (5), name longer than 100 characters (3), version below 1 (2)
    are warnings.
Content
    size ceiling (25), invalid variable syntax (15), mismatched braces (20)
    are errors; very short templates (5), a missing ``{style}`` (5) and
    problematic patterns (3 each) are warnings.
Variables
    count ceiling (30), id charset (10), missing name (8), missing type (10),
    select without options (10), invalid regex (8), min > max (10),
    min_length > max_length (10), dependency on a variable that is neither
    declared nor built in (12) and dependency cycles (25) are errors.
Theme and cache
    missing theme configuration (2), missing supported styles (3), default
    style not supported (5), cache TTL outside 60-86400 s (2) are warnings.
Cross-references
    an undeclared, non-built-in variable (5) and a declared but unused
    variable (3) are warnings.
Custom rules
    ``required_variables`` failures are errors (15), other rule failures are
    warnings (5), rules that raise are warnings (3).

Validation Levels
-----------------
``strict`` promotes undeclared variables, a missing ``{style}`` and
non-``required_variables`` rule failures to errors.  ``permissive`` demotes
``required_variables`` failures to warnings.  Penalties do not change.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from .config import EngineConfig
from .models import BUILTIN_VARIABLES, PORTRAIT_TYPES, TemplateDefinition, ValidationRule, VariableSpec
from .parser import find_double_close
from .segments import ValidationResult

logger = logging.getLogger(__name__)

_TEMPLATE_ID = re.compile(r"^[a-zA-Z0-9_-]+$")
_VARIABLE_ID = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
_BRACED = re.compile(r"\{[^}]*\}")
_VARIABLE_BODY = re.compile(r"\{([^{}]+)\}")

_PROBLEMATIC_PATTERNS: list[tuple[re.Pattern, str]] = [
    (
        re.compile(r"\b(unsafe|dangerous|harmful)\b", re.IGNORECASE),
        "Template contains potentially problematic language",
    ),
    (re.compile(r"\{[^}]*\{[^}]*\}"), "Nested brackets detected, may cause parsing issues"),
    (re.compile(r"\{\s*\}"), "Empty variable brackets found"),
]

MIN_USEFUL_LENGTH = 50
MAX_NAME_LENGTH = 100
CACHE_TTL_RANGE = (60, 86400)


@dataclass
class _Findings:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    penalty: int = 0

    def error(self, message: str, points: int) -> None:
        self.errors.append(message)
        self.penalty += points

    def warning(self, message: str, points: int) -> None:
        self.warnings.append(message)
        self.penalty += points

    def add(self, message: str, points: int, *, as_error: bool) -> None:
        if as_error:
            self.error(message, points)
        else:
            self.warning(message, points)


def split_advanced_tokens(text: str) -> tuple[str, list[str]]:
    """Separate ``{{...}}`` tokens from template text.

    Returns:
        The text with double-brace tokens removed, and the token bodies
    """
    kept: list[str] = []
    bodies: list[str] = []
    pos = 0
    while True:
        start = text.find("{{", pos)
        if start == -1:
            break
        close = find_double_close(text, start + 2, len(text))
        if close == -1:
            break
        kept.append(text[pos:start])
        bodies.append(text[start + 2 : close].strip())
        pos = close + 2
    kept.append(text[pos:])
    return "".join(kept), bodies


def extract_variable_names(text: str) -> list[str]:
    """Return variable names referenced by a template, in order of appearance.

    Includes the variables tested by ``{{#if}}`` conditions. Tolerates
    malformed text, unlike the parser.
    """
    plain, bodies = split_advanced_tokens(text or "")
    names: list[str] = []
    for body in bodies:
        if body.startswith("#if"):
            condition = body[3:].split()
            if condition:
                names.append(condition[0])
    for match in _VARIABLE_BODY.finditer(plain):
        head = match.group(1).partition("|")[0]
        name = head.partition(":")[0].strip()
        if name:
            names.append(name)
    return names


def find_dependency_cycle(variables: dict[str, VariableSpec]) -> list[str]:
    """Find a dependency cycle among declared variables.

    Returns:
        The cycle path with the first node repeated at the end (for example
        ``["a", "b", "a"]``), or an empty list
    """
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    def visit(variable_id: str) -> list[str]:
        if variable_id in on_stack:
            return path[path.index(variable_id) :] + [variable_id]
        if variable_id in visited:
            return []
        visited.add(variable_id)
        on_stack.add(variable_id)
        path.append(variable_id)

        spec = variables.get(variable_id)
        for dependency in spec.dependencies if spec else []:
            cycle = visit(dependency.variable_id)
            if cycle:
                return cycle

        on_stack.discard(variable_id)
        path.pop()
        return []

    for variable_id in variables:
        if variable_id not in visited:
            cycle = visit(variable_id)
            if cycle:
                return cycle
    return []


class TemplateValidator:
    """Validate template definitions and score their quality.

    Attributes
    ----------
    config : EngineConfig
        Supplies size and variable-count ceilings and the validation level

    Examples
    --------
        >>> validator = TemplateValidator(EngineConfig())
        >>> result = validator.validate(TemplateDefinition(id="t", name="T", template=""))
        >>> result.is_valid
        False
    """

    def __init__(self, config: EngineConfig):
        self.config = config

    @property
    def strict(self) -> bool:
        return self.config.validation_level == "strict"

    @property
    def permissive(self) -> bool:
        return self.config.validation_level == "permissive"

    def validate(self, template: TemplateDefinition) -> ValidationResult:
        """Validate a template definition.

        Args:
            template: Template to check

        Returns:
            ValidationResult with errors, warnings and a 0-100 score
        """
        findings = _Findings()
        used = extract_variable_names(template.template)

        self._check_structure(template, findings)
        self._check_content(template.template or "", used, findings)
        self._check_variables(template.variables, findings)
        self._check_theme_config(template, findings)
        self._check_cache_settings(template, findings)
        self._check_cross_references(template, used, findings)
        for rule in template.advanced_options.validation_rules:
            self._check_rule(rule, template, used, findings)

        result = ValidationResult(
            is_valid=not findings.errors,
            errors=findings.errors,
            warnings=findings.warnings,
            score=max(0, 100 - findings.penalty),
        )
        logger.debug(
            f"Validated template '{template.id}': valid={result.is_valid}, "
            f"score={result.score}, {len(result.errors)} errors, {len(result.warnings)} warnings"
        )
        return result

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_structure(self, template: TemplateDefinition, findings: _Findings) -> None:
        if not template.id or not template.id.strip():
            findings.error("Template ID is required", 20)
        if not template.name or not template.name.strip():
            findings.error("Template name is required", 15)
        if not template.template or not template.template.strip():
            findings.error("Template content is required", 25)
        if template.portrait_type not in PORTRAIT_TYPES:
            findings.error("Template type must be single, couple, or family", 20)

        if template.id and not _TEMPLATE_ID.match(template.id):
            findings.warning(
                "Template ID should only contain letters, numbers, underscores, and hyphens", 5
            )
        if template.name and len(template.name) > MAX_NAME_LENGTH:
            findings.warning(
                f"Template name is longer than recommended ({MAX_NAME_LENGTH} characters)", 3
            )
        if template.version < 1:
            findings.warning("Template version should be 1 or higher", 2)

    def _check_content(self, text: str, used: list[str], findings: _Findings) -> None:
        if len(text) > self.config.max_template_size:
            findings.error(
                f"Template exceeds maximum size of {self.config.max_template_size} characters", 25
            )
        if len(text) < MIN_USEFUL_LENGTH:
            findings.warning("Template is very short, consider adding more detailed instructions", 5)

        plain, _ = split_advanced_tokens(text)

        invalid = [
            match.group(0)
            for match in _BRACED.finditer(plain)
            if not match.group(0)[1:-1].strip() or "{" in match.group(0)[1:-1]
        ]
        if invalid:
            findings.error(f"Invalid variable syntax found: {', '.join(invalid)}", 15)

        if text.count("{") != text.count("}"):
            findings.error("Mismatched brackets in template", 20)

        if "style" not in used:
            findings.add("Template missing recommended variable: {style}", 5, as_error=self.strict)

        for pattern, message in _PROBLEMATIC_PATTERNS:
            if pattern.search(plain):
                findings.warning(message, 3)

    def _check_variables(self, variables: dict[str, VariableSpec], findings: _Findings) -> None:
        if len(variables) > self.config.max_variable_count:
            findings.error(
                f"Too many variables ({len(variables)}), maximum allowed: "
                f"{self.config.max_variable_count}",
                30,
            )

        for variable_id, spec in variables.items():
            if not _VARIABLE_ID.match(variable_id):
                findings.error(
                    f"Invalid variable ID '{variable_id}': must start with letter and contain "
                    "only letters, numbers, and underscores",
                    10,
                )
            if not spec.name or not spec.name.strip():
                findings.error(f"Variable '{variable_id}' missing name", 8)
            if not spec.type:
                findings.error(f"Variable '{variable_id}' missing type", 10)
            if spec.type in ("select", "multiselect") and not spec.options:
                findings.error(f"Variable '{variable_id}' of type {spec.type} must have options", 10)

            validation = spec.validation
            if validation is not None:
                if validation.pattern:
                    try:
                        re.compile(validation.pattern)
                    except re.error:
                        findings.error(f"Variable '{variable_id}' has invalid regex pattern", 8)
                if (
                    validation.min is not None
                    and validation.max is not None
                    and validation.min > validation.max
                ):
                    findings.error(
                        f"Variable '{variable_id}' min value ({validation.min:g}) is greater "
                        f"than max value ({validation.max:g})",
                        10,
                    )
                if (
                    validation.min_length is not None
                    and validation.max_length is not None
                    and validation.min_length > validation.max_length
                ):
                    findings.error(
                        f"Variable '{variable_id}' min_length ({validation.min_length}) is "
                        f"greater than max_length ({validation.max_length})",
                        10,
                    )

            for dependency in spec.dependencies:
                target = dependency.variable_id
                if target not in variables and target not in BUILTIN_VARIABLES:
                    findings.error(
                        f"Variable '{variable_id}' depends on non-existent variable "
                        f"'{dependency.variable_id}'",
                        12,
                    )

        cycle = find_dependency_cycle(variables)
        if cycle:
            findings.error(f"Circular dependencies detected: {' -> '.join(cycle)}", 25)

    def _check_theme_config(self, template: TemplateDefinition, findings: _Findings) -> None:
        theme_config = template.theme_config
        if theme_config is None:
            findings.warning("No theme configuration provided", 2)
            return
        if theme_config.supported_styles is None:
            findings.warning("Theme configuration missing supported styles array", 3)
        elif theme_config.default_style and theme_config.default_style not in theme_config.supported_styles:
            findings.warning("Default style is not in supported styles list", 5)

    def _check_cache_settings(self, template: TemplateDefinition, findings: _Findings) -> None:
        settings = template.advanced_options.cache_settings
        low, high = CACHE_TTL_RANGE
        if settings is not None and settings.ttl and not low <= settings.ttl <= high:
            findings.warning("Cache TTL should be between 60 seconds and 24 hours", 2)

    def _check_cross_references(
        self, template: TemplateDefinition, used: list[str], findings: _Findings
    ) -> None:
        declared = template.variables
        reported: set[str] = set()
        for name in used:
            if name in declared or name in BUILTIN_VARIABLES or name in reported:
                continue
            reported.add(name)
            findings.add(
                f"Template uses undefined variable: {{{name}}}", 5, as_error=self.strict
            )

        for variable_id in declared:
            if variable_id not in used:
                findings.warning(f"Defined variable '{variable_id}' is not used in template", 3)

    # ------------------------------------------------------------------
    # Custom rules
    # ------------------------------------------------------------------

    def _check_rule(
        self,
        rule: ValidationRule,
        template: TemplateDefinition,
        used: list[str],
        findings: _Findings,
    ) -> None:
        try:
            passed, detail = self._execute_rule(rule, template, used)
        except Exception as e:
            logger.warning(f"Validation rule '{rule.id}' raised: {e}")
            findings.warning(f"Custom validation rule '{rule.id}' failed to execute", 3)
            return

        if passed:
            return
        if rule.type == "required_variables":
            findings.add(
                rule.message or detail or "Required variables validation failed",
                15,
                as_error=not self.permissive,
            )
        else:
            findings.add(
                rule.message or detail or "Custom validation warning", 5, as_error=self.strict
            )

    @staticmethod
    def _execute_rule(
        rule: ValidationRule, template: TemplateDefinition, used: list[str]
    ) -> tuple[bool, str | None]:
        spec: Any = rule.rule

        if rule.type == "required_variables":
            for required in (spec or {}).get("variables", []):
                if required not in used:
                    return False, f"Required variable '{required}' not found"
            return True, None

        if rule.type == "variable_combination":
            for combination in (spec or {}).get("combinations", []):
                names = combination.get("variables", [])
                if combination.get("required") and not all(n in template.variables for n in names):
                    return False, f"Required variable combination not met: {', '.join(names)}"
            return True, None

        if rule.type == "template_structure":
            spec = spec or {}
            length = len(template.template or "")
            if spec.get("min_length") and length < spec["min_length"]:
                return False, f"Template too short (minimum {spec['min_length']} characters)"
            if spec.get("max_length") and length > spec["max_length"]:
                return False, f"Template too long (maximum {spec['max_length']} characters)"
            return True, None

        if rule.type == "custom" and callable(spec):
            return bool(spec(template)), None

        return True, None
