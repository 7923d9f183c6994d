"""Upgrade pre-engine template records to full template definitions.

Legacy records carry only an id, portrait type, name and raw template text.
The upgrade declares every custom ``{variable}`` the text references as an
optional text variable and fills in theme, cache and tagging defaults so the
result compiles exactly like the legacy text did.
"""

import logging
import re

from .models import (
    BUILTIN_VARIABLES,
    AdvancedOptions,
    CacheSettings,
    LegacyTemplate,
    TemplateDefinition,
    ThemeConfiguration,
    VariableSpec,
)
from .themes import ThemeRegistry
from .validator import extract_variable_names

logger = logging.getLogger(__name__)

DEFAULT_STYLE_NAME = "Classic & Timeless Wedding"
MIGRATED_CACHE_TTL = 3600

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|[_\-\s]+")


def humanize(variable_id: str) -> str:
    """Turn an identifier into a display name.

    >>> humanize("eventVenue")
    'Event Venue'
    >>> humanize("dress_colour")
    'Dress Colour'
    """
    words = [w for w in _WORD_BOUNDARY.split(variable_id) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def upgrade_legacy(legacy: LegacyTemplate, themes: ThemeRegistry) -> TemplateDefinition:
    """Convert a legacy record into a TemplateDefinition.

    Args:
        legacy: The stored legacy record
        themes: Registry whose enabled styles become the supported styles

    Returns:
        Equivalent template definition, keeping id, version and timestamps
    """
    variables: dict[str, VariableSpec] = {}
    for name in extract_variable_names(legacy.template):
        if name in BUILTIN_VARIABLES or name in variables:
            continue
        variables[name] = VariableSpec(
            id=name,
            name=humanize(name),
            type="text",
            required=False,
            default_value="",
        )

    supported = [style.name for style in themes.list_styles(enabled=True)]

    template = TemplateDefinition(
        id=legacy.id,
        portrait_type=legacy.portrait_type,
        name=legacy.name,
        template=legacy.template,
        is_default=legacy.is_default,
        last_modified=legacy.last_modified,
        version=legacy.version,
        variables=variables,
        theme_config=ThemeConfiguration(
            supported_styles=supported,
            default_style=DEFAULT_STYLE_NAME,
        ),
        advanced_options=AdvancedOptions(
            enable_style_variations=True,
            cache_settings=CacheSettings(enabled=True, ttl=MIGRATED_CACHE_TTL),
        ),
        tags=["migrated", legacy.portrait_type],
        category="legacy",
    )
    logger.debug(
        f"Upgraded legacy template '{legacy.id}' ({len(variables)} custom variables)"
    )
    return template
