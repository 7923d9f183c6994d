"""Dynamic text generators.

Two kinds of generator live here:

Segment generators
    Invoked by ``{{name:params}}`` dynamic segments during the segment walk.
    Each is a callable ``(params, variables, context) -> str`` held in a
    ``GeneratorRegistry``.  Unknown generator names produce an empty string.

Value generators
    Back variables declared with ``type: "dynamic"``.  Each is a callable
    ``(context, variables) -> value`` looked up by the variable's
    ``generator`` field (or its id).  Unknown names fall back to the declared
    default value.

Built-in Segment Generators
---------------------------
- randomPhrase: pick one of ``params["phrases"]``
- conditionalText: first ``params["conditions"][i]["text"]`` whose
  ``condition`` holds, else ``params["defaultText"]``
- styleSpecificText: ``params["styleTexts"]`` keyed by normalised style id,
  else ``params["defaultText"]``
- numberToWord: ``variables[params["variable"]]`` (or
  ``params["defaultValue"]``) written as a word

Usage Example
-------------
    >>> registry = GeneratorRegistry.with_defaults(rng=random.Random(7))
    >>> registry.generate("numberToWord", {"variable": "n"}, {"n": 3}, RuntimeContext())
    'three'
"""

import logging
import random
from collections.abc import Callable
from typing import Any

from .conditions import evaluate_condition, normalize_style_id, parse_condition
from .models import ConditionalRule, RuntimeContext

logger = logging.getLogger(__name__)

SegmentGenerator = Callable[[dict[str, Any], dict[str, Any], RuntimeContext], str]
ValueGenerator = Callable[[RuntimeContext, dict[str, Any]], Any]

NUMBER_WORDS = ("", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten")

# Phrases keyed by normalised style id
STYLE_PHRASES: dict[str, str] = {
    "classic-timeless-wedding": "with timeless elegance",
    "rustic-barn-wedding": "with rustic charm",
    "bohemian-beach-wedding": "with free-spirited beauty",
    "fairytale-castle-wedding": "with magical enchantment",
}
DEFAULT_STYLE_PHRASE = "with beautiful styling"


def number_to_word(value: Any) -> str:
    """Spell out 1-10; anything else is returned as its string form."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return str(value)
    if 0 < number < len(NUMBER_WORDS):
        return NUMBER_WORDS[number]
    return str(number)


# ---------------------------------------------------------------------------
# Value generators (type "dynamic" variables)
# ---------------------------------------------------------------------------


def dynamic_style_text(context: RuntimeContext, variables: dict[str, Any]) -> str:
    """Style-keyed descriptive phrase."""
    return STYLE_PHRASES.get(normalize_style_id(context.style), DEFAULT_STYLE_PHRASE)


def member_count_word(context: RuntimeContext, variables: dict[str, Any]) -> str | None:
    """Family member count in words, or None when no count is known."""
    count = variables.get("familyMemberCount", context.family_member_count)
    if count is None:
        return None
    return number_to_word(count)


VALUE_GENERATORS: dict[str, ValueGenerator] = {
    "dynamicStyleText": dynamic_style_text,
    "memberCountWord": member_count_word,
}


# ---------------------------------------------------------------------------
# Segment generators
# ---------------------------------------------------------------------------


def _conditional_text(params: dict[str, Any], variables: dict[str, Any], context: RuntimeContext) -> str:
    for entry in params.get("conditions") or []:
        condition = entry.get("condition")
        if isinstance(condition, str):
            rule = parse_condition(condition)
        else:
            rule = ConditionalRule.model_validate(condition)
        if evaluate_condition(rule, variables):
            return str(entry.get("text", ""))
    return str(params.get("defaultText", ""))


def _style_specific_text(
    params: dict[str, Any], variables: dict[str, Any], context: RuntimeContext
) -> str:
    style_texts = params.get("styleTexts") or {}
    text = style_texts.get(normalize_style_id(context.style))
    return str(text or params.get("defaultText", ""))


def _number_to_word(params: dict[str, Any], variables: dict[str, Any], context: RuntimeContext) -> str:
    value = variables.get(params.get("variable", "")) if params.get("variable") else None
    if value is None or value == "":
        value = params.get("defaultValue", 0)
    return number_to_word(value)


class GeneratorRegistry:
    """Registry of segment generators available to dynamic segments.

    Each ``PromptBuilder`` owns one registry so generators can be added per
    engine instance without affecting others.

    Attributes
    ----------
    rng : random.Random
        Random source used by ``randomPhrase``; inject a seeded instance for
        deterministic output

    Examples
    --------
        >>> registry = GeneratorRegistry()
        >>> registry.register("shout", lambda params, variables, ctx: params["text"].upper())
        >>> registry.list_available()
        ['shout']
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        """Initialize an empty registry.

        Args:
            rng: Random source for randomised generators
        """
        self.rng = rng or random.Random()
        self._generators: dict[str, SegmentGenerator] = {}

    @classmethod
    def with_defaults(cls, rng: random.Random | None = None) -> "GeneratorRegistry":
        """Create a registry holding the built-in generators."""
        registry = cls(rng=rng)
        registry.register("randomPhrase", registry._random_phrase)
        registry.register("conditionalText", _conditional_text)
        registry.register("styleSpecificText", _style_specific_text)
        registry.register("numberToWord", _number_to_word)
        return registry

    def _random_phrase(
        self, params: dict[str, Any], variables: dict[str, Any], context: RuntimeContext
    ) -> str:
        phrases = params.get("phrases") or []
        if not phrases:
            return ""
        return str(self.rng.choice(phrases))

    def register(self, name: str, generator: SegmentGenerator) -> None:
        """Register a segment generator.

        Args:
            name: Name used in ``{{name:...}}`` segments
            generator: Callable ``(params, variables, context) -> str``
        """
        if name in self._generators:
            logger.warning(f"Generator '{name}' is already registered, overwriting")
        self._generators[name] = generator
        logger.debug(f"Registered generator: {name}")

    def get(self, name: str) -> SegmentGenerator | None:
        """Return the generator registered under ``name``, if any."""
        return self._generators.get(name)

    def list_available(self) -> list[str]:
        """List registered generator names."""
        return list(self._generators.keys())

    def generate(
        self,
        name: str,
        params: dict[str, Any],
        variables: dict[str, Any],
        context: RuntimeContext,
    ) -> str:
        """Run a generator; unknown names yield an empty string."""
        generator = self._generators.get(name)
        if generator is None:
            logger.debug(f"Unknown generator '{name}', emitting empty text")
            return ""
        result = generator(params, variables, context)
        return "" if result is None else str(result)
