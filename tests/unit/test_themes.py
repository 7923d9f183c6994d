"""Tests for portraitforge.core.themes - style registry and selection.

Tests cover:
- Registration, lookup and filtered listing of styles.
- Modifier lookup for styles, variations and custom themes.
- Modifier application (prepend, append, replace, inject, conditions).
- Random selection with and without the featured bias.
- Preference-based recommendation.
- Presets and config export/import.
"""

import random

import pytest

from portraitforge.core.models import (
    ConditionalRule,
    CustomTheme,
    PromptModifier,
    StyleDefinition,
    StylePreset,
)
from portraitforge.core.themes import ThemeRegistry


def make_style(style_id: str, **kwargs) -> StyleDefinition:
    kwargs.setdefault("name", style_id.replace("-", " ").title())
    return StyleDefinition(id=style_id, **kwargs)


class TestRegistration:
    """Registering and listing styles."""

    def test_empty_registry(self, empty_themes):
        assert empty_themes.list_styles() == []

    def test_seeded_registry(self, seeded_themes):
        styles = seeded_themes.list_styles()
        assert len(styles) == 8
        assert styles[0].id == "classic-timeless-wedding"
        popularity = [s.popularity for s in styles]
        assert popularity == sorted(popularity, reverse=True)

    def test_featured_filter(self, seeded_themes):
        featured = {s.id for s in seeded_themes.list_styles(featured=True)}
        assert featured == {
            "classic-timeless-wedding",
            "rustic-barn-wedding",
            "bohemian-beach-wedding",
        }

    def test_premium_and_category_filters(self, seeded_themes):
        assert [s.id for s in seeded_themes.list_styles(premium_only=True)] == ["fairytale-castle-wedding"]
        assert [s.id for s in seeded_themes.list_styles(category="modern")] == [
            "bohemian-beach-wedding",
            "modern-minimalist-wedding",
        ]

    def test_register_overwrites(self, empty_themes):
        empty_themes.register(make_style("a", popularity=1))
        empty_themes.register(make_style("a", popularity=9))
        assert empty_themes.get("a").popularity == 9
        assert len(empty_themes.list_styles()) == 1

    def test_get_unknown(self, empty_themes):
        assert empty_themes.get("nope") is None

    def test_invalid_featured_ratio(self):
        with pytest.raises(ValueError):
            ThemeRegistry(featured_ratio=1.5)


class TestModifiers:
    """Modifier lookup and application."""

    def test_modifiers_for_style_and_variation(self, empty_themes, sample_style):
        empty_themes.register(sample_style)
        base = empty_themes.modifiers_for("golden-hour-garden")
        assert [m.type for m in base] == ["prepend", "append"]
        with_variation = empty_themes.modifiers_for("golden-hour-garden", "Rose Arbour")
        assert [m.type for m in with_variation] == ["prepend", "append", "inject"]

    def test_unknown_variation_ignored(self, empty_themes, sample_style):
        empty_themes.register(sample_style)
        assert len(empty_themes.modifiers_for("golden-hour-garden", "Moon")) == 2

    def test_unknown_style_has_no_modifiers(self, empty_themes):
        assert empty_themes.modifiers_for("nope") == []

    def test_apply_order(self):
        modifiers = [
            PromptModifier(type="prepend", content="First,"),
            PromptModifier(type="append", content="last."),
            PromptModifier(type="inject", target="setting", content="a garden"),
        ]
        result = ThemeRegistry.apply("portrait in {setting}", modifiers)
        assert result == "First, portrait in a garden last."

    def test_inject_replaces_first_occurrence(self):
        modifiers = [PromptModifier(type="inject", target="setting", content="a barn")]
        assert ThemeRegistry.apply("{setting} and {setting}", modifiers) == "a barn and {setting}"

    def test_replace_is_case_insensitive_and_literal(self):
        modifiers = [PromptModifier(type="replace", target="portrait", content=r"photo \1")]
        assert ThemeRegistry.apply("A Portrait, a portrait", modifiers) == r"A photo \1, a photo \1"

    def test_modifier_without_target_is_skipped(self):
        modifiers = [PromptModifier(type="inject", content="x")]
        assert ThemeRegistry.apply("text", modifiers) == "text"

    def test_conditional_modifier(self):
        modifiers = [
            PromptModifier(
                type="append",
                content="with all generations",
                condition=ConditionalRule(variable="photoType", value="family"),
            )
        ]
        assert ThemeRegistry.apply("Portrait", modifiers, {"photoType": "family"}) == (
            "Portrait with all generations"
        )
        assert ThemeRegistry.apply("Portrait", modifiers, {"photoType": "single"}) == "Portrait"


class TestCustomThemes:
    """Custom themes layered on a base style."""

    def test_custom_theme_modifiers(self, empty_themes, sample_style):
        empty_themes.register(sample_style)
        empty_themes.create_custom_theme(
            CustomTheme(
                id="our-garden",
                name="Our Garden",
                base_style="golden-hour-garden",
                overrides=[PromptModifier(type="append", content="with our dog")],
            )
        )
        modifiers = empty_themes.modifiers_for("our-garden")
        assert [m.content for m in modifiers][-1] == "with our dog"
        assert len(modifiers) == 3
        assert empty_themes.get_custom_theme("our-garden").name == "Our Garden"
        assert [t.id for t in empty_themes.list_custom_themes()] == ["our-garden"]

    def test_presets(self, empty_themes, sample_style):
        empty_themes.register(sample_style)
        preset = StylePreset(id="p1", name="Sunset", style="golden-hour-garden", variables={"light": "dusk"})
        empty_themes.add_preset("golden-hour-garden", preset)
        assert empty_themes.presets_for("golden-hour-garden") == [preset]
        assert empty_themes.presets_for("other") == []


class TestRandomSelection:
    """Random selection without replacement."""

    def test_distinct_and_bounded(self, seeded_themes):
        picks = seeded_themes.random_selection(5)
        assert len(picks) == 5
        assert len({s.id for s in picks}) == 5

    def test_count_larger_than_pool(self, seeded_themes):
        picks = seeded_themes.random_selection(100, favor_featured=True)
        assert len(picks) == 8
        assert len({s.id for s in picks}) == 8

    def test_excludes(self, seeded_themes):
        picks = seeded_themes.random_selection(8, exclude_ids=["rustic-barn-wedding"])
        assert "rustic-barn-wedding" not in {s.id for s in picks}
        assert len(picks) == 7

    def test_disabled_styles_skipped(self, empty_themes):
        empty_themes.register(make_style("on"))
        empty_themes.register(make_style("off", enabled=False))
        assert [s.id for s in empty_themes.random_selection(5)] == ["on"]

    def test_seeded_rng_is_deterministic(self):
        first = ThemeRegistry.with_defaults(rng=random.Random(5))
        second = ThemeRegistry.with_defaults(rng=random.Random(5))
        assert [s.id for s in first.random_selection(3)] == [s.id for s in second.random_selection(3)]

    def test_featured_bias(self):
        registry = ThemeRegistry(rng=random.Random(2024))
        for i in range(2):
            registry.register(make_style(f"featured-{i}", featured=True))
        for i in range(8):
            registry.register(make_style(f"regular-{i}"))

        draws = 2000
        featured = sum(
            1 for _ in range(draws) if registry.random_selection(1, favor_featured=True)[0].featured
        )
        assert 0.62 <= featured / draws <= 0.78

    def test_featured_ratio_parameter(self):
        registry = ThemeRegistry(rng=random.Random(1), featured_ratio=0.0)
        registry.register(make_style("featured", featured=True))
        registry.register(make_style("regular"))
        picks = [registry.random_selection(1, favor_featured=True)[0].id for _ in range(50)]
        assert set(picks) == {"regular"}


class TestRecommendations:
    """Preference scoring."""

    def test_mood_and_category_rank_first(self, seeded_themes):
        result = seeded_themes.recommend({"mood": ["mystical", "magical"], "category": "fantasy"}, count=2)
        assert result[0].category == "fantasy"
        assert len(result) == 2

    def test_no_preferences_falls_back_to_popularity(self, seeded_themes):
        result = seeded_themes.recommend({}, count=3)
        assert [s.id for s in result][0] == "classic-timeless-wedding"

    def test_setting_words_score(self, empty_themes):
        empty_themes.register(make_style("barn", setting="Old wooden barn", popularity=5))
        empty_themes.register(make_style("beach", setting="Sandy beach", popularity=5))
        result = empty_themes.recommend({"setting": "a sandy beach at dusk"}, count=1)
        assert result[0].id == "beach"


class TestExportImport:
    """Registry configuration round trip."""

    def test_export_import(self, empty_themes, sample_style):
        empty_themes.register(sample_style)
        empty_themes.add_preset(
            "golden-hour-garden", StylePreset(id="p1", name="Sunset", style="golden-hour-garden")
        )
        payload = empty_themes.export_config()

        restored = ThemeRegistry()
        restored.import_config(payload)
        assert restored.get("golden-hour-garden") == sample_style
        assert [p.id for p in restored.presets_for("golden-hour-garden")] == ["p1"]
