"""Tests for portraitforge.core.generators - dynamic text generators."""

import random

import pytest

from portraitforge.core.generators import (
    DEFAULT_STYLE_PHRASE,
    GeneratorRegistry,
    dynamic_style_text,
    member_count_word,
    number_to_word,
)
from portraitforge.core.models import RuntimeContext


@pytest.fixture
def registry() -> GeneratorRegistry:
    return GeneratorRegistry.with_defaults(rng=random.Random(3))


class TestRegistry:
    """Registration and lookup."""

    def test_builtins_registered(self, registry):
        assert set(registry.list_available()) == {
            "randomPhrase",
            "conditionalText",
            "styleSpecificText",
            "numberToWord",
        }

    def test_register_custom(self):
        registry = GeneratorRegistry()
        registry.register("shout", lambda params, variables, ctx: params["text"].upper())
        assert registry.generate("shout", {"text": "hi"}, {}, RuntimeContext()) == "HI"

    def test_unknown_generator_is_empty(self, registry):
        assert registry.generate("sparkle", {}, {}, RuntimeContext()) == ""
        assert registry.get("sparkle") is None

    def test_registries_are_independent(self):
        first = GeneratorRegistry.with_defaults()
        second = GeneratorRegistry.with_defaults()
        first.register("extra", lambda params, variables, ctx: "x")
        assert "extra" not in second.list_available()


class TestBuiltinSegmentGenerators:
    """Behaviour of the built-in segment generators."""

    def test_random_phrase_picks_member(self, registry):
        phrases = ["soft light", "warm glow", "misty morning"]
        for _ in range(10):
            assert registry.generate("randomPhrase", {"phrases": phrases}, {}, RuntimeContext()) in phrases

    def test_random_phrase_deterministic_with_seed(self):
        phrases = ["a", "b", "c", "d"]
        first = GeneratorRegistry.with_defaults(rng=random.Random(9))
        second = GeneratorRegistry.with_defaults(rng=random.Random(9))
        picks_a = [first.generate("randomPhrase", {"phrases": phrases}, {}, RuntimeContext()) for _ in range(5)]
        picks_b = [second.generate("randomPhrase", {"phrases": phrases}, {}, RuntimeContext()) for _ in range(5)]
        assert picks_a == picks_b

    def test_random_phrase_empty(self, registry):
        assert registry.generate("randomPhrase", {}, {}, RuntimeContext()) == ""

    def test_conditional_text(self, registry):
        params = {
            "conditions": [
                {"condition": "photoType equals family", "text": "the whole family"},
                {"condition": {"variable": "photoType", "value": "couple"}, "text": "the couple"},
            ],
            "defaultText": "the subject",
        }
        assert registry.generate("conditionalText", params, {"photoType": "couple"}, RuntimeContext()) == "the couple"
        assert registry.generate("conditionalText", params, {"photoType": "family"}, RuntimeContext()) == "the whole family"
        assert registry.generate("conditionalText", params, {"photoType": "single"}, RuntimeContext()) == "the subject"

    def test_style_specific_text(self, registry):
        params = {"styleTexts": {"rustic-barn-wedding": "hay bales"}, "defaultText": "flowers"}
        barn = RuntimeContext(style="Rustic Barn Wedding")
        beach = RuntimeContext(style="Beach")
        assert registry.generate("styleSpecificText", params, {}, barn) == "hay bales"
        assert registry.generate("styleSpecificText", params, {}, beach) == "flowers"

    def test_number_to_word(self, registry):
        params = {"variable": "familyMemberCount", "defaultValue": 2}
        assert registry.generate("numberToWord", params, {"familyMemberCount": 4}, RuntimeContext()) == "four"
        assert registry.generate("numberToWord", params, {}, RuntimeContext()) == "two"


class TestValueGenerators:
    """Generators backing ``type: "dynamic"`` variables."""

    @pytest.mark.parametrize("value, expected", [(1, "one"), (10, "ten"), (11, "11"), ("3", "three"), ("x", "x")])
    def test_number_to_word(self, value, expected):
        assert number_to_word(value) == expected

    def test_dynamic_style_text(self):
        assert dynamic_style_text(RuntimeContext(style="Classic & Timeless Wedding"), {}) == "with timeless elegance"
        assert dynamic_style_text(RuntimeContext(style="Moon Base"), {}) == DEFAULT_STYLE_PHRASE

    def test_member_count_word(self):
        assert member_count_word(RuntimeContext(family_member_count=3), {}) == "three"
        assert member_count_word(RuntimeContext(), {}) is None
