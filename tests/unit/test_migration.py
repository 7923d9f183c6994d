"""Tests for portraitforge.core.migration - legacy template upgrade."""

from datetime import datetime, timezone

import pytest

from portraitforge.core.migration import DEFAULT_STYLE_NAME, humanize, upgrade_legacy
from portraitforge.core.models import CompileOptions, LegacyTemplate, RuntimeContext


@pytest.fixture
def legacy() -> LegacyTemplate:
    return LegacyTemplate(
        id="family-classic",
        portrait_type="family",
        name="Family classic",
        template="A {style} family portrait at {eventVenue} in {dress_colour}. {customPrompt}",
        is_default=True,
        last_modified=datetime(2024, 5, 1, tzinfo=timezone.utc),
        version=3,
    )


class TestHumanize:
    """Display names from identifiers."""

    @pytest.mark.parametrize(
        "variable_id, expected",
        [
            ("eventVenue", "Event Venue"),
            ("dress_colour", "Dress Colour"),
            ("venue", "Venue"),
            ("hair-style", "Hair Style"),
        ],
    )
    def test_humanize(self, variable_id, expected):
        assert humanize(variable_id) == expected


class TestUpgradeLegacy:
    """Legacy records become full definitions."""

    def test_identity_preserved(self, legacy, seeded_themes):
        template = upgrade_legacy(legacy, seeded_themes)
        assert template.kind == "enhanced"
        assert template.id == "family-classic"
        assert template.portrait_type == "family"
        assert template.version == 3
        assert template.is_default is True
        assert template.last_modified == legacy.last_modified
        assert template.template == legacy.template

    def test_custom_variables_declared(self, legacy, seeded_themes):
        template = upgrade_legacy(legacy, seeded_themes)
        assert list(template.variables) == ["eventVenue", "dress_colour"]
        venue = template.variables["eventVenue"]
        assert venue.name == "Event Venue"
        assert venue.type == "text"
        assert venue.required is False
        assert venue.default_value == ""

    def test_theme_and_cache_defaults(self, legacy, seeded_themes):
        template = upgrade_legacy(legacy, seeded_themes)
        assert template.theme_config.default_style == DEFAULT_STYLE_NAME
        assert DEFAULT_STYLE_NAME in template.theme_config.supported_styles
        assert len(template.theme_config.supported_styles) == 8
        assert template.advanced_options.enable_style_variations is True
        assert template.advanced_options.cache_settings.ttl == 3600
        assert template.tags == ["migrated", "family"]
        assert template.category == "legacy"

    def test_upgraded_template_validates_and_compiles(self, legacy, seeded_themes, builder):
        template = upgrade_legacy(legacy, seeded_themes)
        assert builder.validate(template).is_valid
        context = RuntimeContext(
            style="Boho",
            user_preferences={"eventVenue": "the lake house", "dress_colour": "ivory"},
        )
        result = builder.compile(template, context, CompileOptions(validation=False))
        assert result.prompt == "A Boho family portrait at the lake house in ivory."

    def test_empty_registry_gives_no_supported_styles(self, legacy, empty_themes):
        assert upgrade_legacy(legacy, empty_themes).theme_config.supported_styles == []
