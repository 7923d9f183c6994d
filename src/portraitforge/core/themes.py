"""Theme registry: named styles and their prompt modifiers.

The registry holds ``StyleDefinition`` records, user-defined custom themes
and saved style presets.  It answers queries (list, filter, recommend,
random selection) and applies a style's prompt modifiers to template text.

Modifier Fold
-------------
``apply`` folds modifiers left to right over the text:

- prepend: ``content + " " + text``
- append: ``text + " " + content``
- replace: case-insensitive regex substitution of ``target`` by ``content``
- inject: replace the first ``{target}`` placeholder with ``content``

The result is trimmed.  A modifier carrying a ``condition`` is skipped when
the condition does not hold against the supplied variables.

Random Selection
----------------
With ``favor_featured`` each pick independently draws from the featured pool
with probability ``featured_ratio`` (0.7 by default) and from the regular
pool otherwise, falling back to whichever pool still has styles.  Picks are
removed from the pools, so a selection never repeats a style.

Thread Safety
-------------
Mutations and reads are guarded by a re-entrant lock so a registry can be
shared by concurrent request handlers.

Usage Example
-------------
    >>> themes = ThemeRegistry.with_defaults()
    >>> mods = themes.modifiers_for("rustic-barn-wedding")
    >>> themes.apply("A couple portrait", mods)
    'In a cozy, rustic barn setting with natural wooden elements, A couple portrait with warm ...'
"""

import logging
import random
import re
import threading
from typing import Any

from .conditions import evaluate_condition
from .models import (
    CustomTheme,
    PromptModifier,
    StyleDefinition,
    StylePreferences,
    StylePreset,
    StyleVariation,
)

logger = logging.getLogger(__name__)

DEFAULT_FEATURED_RATIO = 0.7


class ThemeRegistry:
    """In-memory registry of styles, custom themes and presets.

    Attributes
    ----------
    rng : random.Random
        Random source for ``random_selection``
    featured_ratio : float
        Probability of drawing from the featured pool when favouring featured
        styles

    Examples
    --------
    An empty registry for tests, and a seeded one for applications:

        >>> ThemeRegistry().list_styles()
        []
        >>> len(ThemeRegistry.with_defaults().list_styles(featured=True))
        3
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        featured_ratio: float = DEFAULT_FEATURED_RATIO,
    ) -> None:
        """Initialize an empty registry.

        Args:
            rng: Random source for selection (seed it for deterministic tests)
            featured_ratio: Featured-pool probability, between 0 and 1

        Raises:
            ValueError: If featured_ratio is outside [0, 1]
        """
        if not 0.0 <= featured_ratio <= 1.0:
            raise ValueError(f"featured_ratio must be between 0 and 1, got {featured_ratio}")
        self.rng = rng or random.Random()
        self.featured_ratio = featured_ratio
        self._styles: dict[str, StyleDefinition] = {}
        self._custom_themes: dict[str, CustomTheme] = {}
        self._presets: dict[str, list[StylePreset]] = {}
        self._lock = threading.RLock()

    @classmethod
    def with_defaults(cls, **kwargs: Any) -> "ThemeRegistry":
        """Create a registry seeded with the default style catalogue."""
        from .default_styles import default_styles

        registry = cls(**kwargs)
        for style in default_styles():
            registry.register(style)
        return registry

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------

    def register(self, style: StyleDefinition) -> None:
        """Insert or overwrite a style by id."""
        with self._lock:
            if style.id in self._styles:
                logger.warning(f"Style '{style.id}' is already registered, overwriting")
            self._styles[style.id] = style
        logger.info(f"Registered style: {style.id}")

    def get(self, style_id: str) -> StyleDefinition | None:
        """Return a style by id, or None."""
        with self._lock:
            return self._styles.get(style_id)

    def list_styles(
        self,
        *,
        category: str | None = None,
        enabled: bool | None = None,
        featured: bool | None = None,
        premium_only: bool | None = None,
    ) -> list[StyleDefinition]:
        """List styles by descending popularity.

        All given filters must match; ``None`` means "don't filter".

        Args:
            category: Exact category
            enabled: Enabled flag
            featured: Featured flag
            premium_only: Premium flag

        Returns:
            Matching styles, most popular first
        """
        with self._lock:
            styles = list(self._styles.values())

        if category is not None:
            styles = [s for s in styles if s.category == category]
        if enabled is not None:
            styles = [s for s in styles if s.enabled == enabled]
        if featured is not None:
            styles = [s for s in styles if s.featured == featured]
        if premium_only is not None:
            styles = [s for s in styles if s.premium_only == premium_only]

        return sorted(styles, key=lambda s: -s.popularity)

    def variations(self, style_id: str) -> list[StyleVariation]:
        """Return the named variations declared by a style."""
        style = self.get(style_id)
        return list(style.style_variations) if style else []

    def modifiers_for(self, style_id: str, variation: str | None = None) -> list[PromptModifier]:
        """Return the modifiers for a style or custom theme.

        Base modifiers come first, followed by the named variation's modifiers
        in declaration order.  For a custom theme the base style's modifiers
        (and variation) are followed by the theme's overrides.

        Args:
            style_id: Registered style id or custom theme id
            variation: Optional variation name

        Returns:
            Ordered modifier list (empty for unknown ids)
        """
        style = self.get(style_id)
        if style is not None:
            modifiers = list(style.prompt_modifiers)
            if variation:
                found = style.variation(variation)
                if found is not None:
                    modifiers.extend(found.modifiers)
            return modifiers

        theme = self.get_custom_theme(style_id)
        if theme is not None:
            return self.modifiers_for(theme.base_style, variation) + list(theme.overrides)

        return []

    @staticmethod
    def apply(
        text: str,
        modifiers: list[PromptModifier],
        variables: dict[str, Any] | None = None,
    ) -> str:
        """Fold modifiers over text, left to right, and trim the result."""
        result = text
        for modifier in modifiers:
            if modifier.condition is not None and not evaluate_condition(
                modifier.condition, variables or {}
            ):
                continue

            if modifier.type == "prepend":
                result = f"{modifier.content} {result}"
            elif modifier.type == "append":
                result = f"{result} {modifier.content}"
            elif modifier.type == "replace":
                if modifier.target:
                    result = re.sub(
                        modifier.target,
                        lambda _match, content=modifier.content: content,
                        result,
                        flags=re.IGNORECASE,
                    )
            elif modifier.type == "inject":
                if modifier.target:
                    result = result.replace(f"{{{modifier.target}}}", modifier.content, 1)

        return result.strip()

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def random_selection(
        self,
        count: int = 3,
        *,
        exclude_ids: list[str] | None = None,
        favor_featured: bool = False,
        only_enabled: bool = True,
    ) -> list[StyleDefinition]:
        """Pick up to ``count`` distinct styles at random.

        Args:
            count: Number of styles wanted
            exclude_ids: Style ids never to pick
            favor_featured: Bias each pick towards featured styles
            only_enabled: Only consider enabled styles

        Returns:
            Distinct styles, at most ``count`` and at most the eligible pool size
        """
        excluded = set(exclude_ids or ())
        pool = [
            s
            for s in self.list_styles(enabled=True if only_enabled else None)
            if s.id not in excluded
        ]

        if not favor_featured:
            self.rng.shuffle(pool)
            return pool[: max(count, 0)]

        featured = [s for s in pool if s.featured]
        regular = [s for s in pool if not s.featured]
        selected: list[StyleDefinition] = []

        for _ in range(count):
            if not featured and not regular:
                break
            wants_featured = self.rng.random() < self.featured_ratio
            if (wants_featured and featured) or not regular:
                source = featured
            else:
                source = regular
            selected.append(source.pop(self.rng.randrange(len(source))))

        return selected

    def recommend(
        self, preferences: StylePreferences | dict[str, Any], count: int = 5
    ) -> list[StyleDefinition]:
        """Rank enabled styles against user preferences.

        Scoring: +3 per matching mood, +5 for the exact category, +2 per
        matching tag, +1 per setting word shared with the style's setting, and
        half the style's popularity.  Ties keep popularity order.

        Args:
            preferences: Mood, setting, category and tags to match
            count: Maximum number of styles to return

        Returns:
            Best-scoring styles first
        """
        if isinstance(preferences, dict):
            preferences = StylePreferences.model_validate(preferences)

        setting_words = preferences.setting.lower().split() if preferences.setting else []
        scored: list[tuple[float, StyleDefinition]] = []

        for style in self.list_styles(enabled=True):
            score = 0.0
            score += 3 * sum(1 for mood in preferences.mood if mood in style.mood)
            if preferences.category and style.category == preferences.category:
                score += 5
            score += 2 * sum(1 for tag in preferences.tags if tag in style.tags)
            if setting_words:
                style_words = set(style.setting.lower().split())
                score += sum(1 for word in setting_words if word in style_words)
            score += style.popularity * 0.5
            scored.append((score, style))

        scored.sort(key=lambda item: -item[0])
        return [style for _, style in scored[: max(count, 0)]]

    # ------------------------------------------------------------------
    # Custom themes and presets
    # ------------------------------------------------------------------

    def create_custom_theme(self, theme: CustomTheme) -> None:
        """Register a custom theme layered on a base style."""
        with self._lock:
            self._custom_themes[theme.id] = theme
        logger.info(f"Created custom theme '{theme.id}' based on '{theme.base_style}'")

    def get_custom_theme(self, theme_id: str) -> CustomTheme | None:
        with self._lock:
            return self._custom_themes.get(theme_id)

    def list_custom_themes(self) -> list[CustomTheme]:
        with self._lock:
            return list(self._custom_themes.values())

    def add_preset(self, style_id: str, preset: StylePreset) -> None:
        """Attach a saved preset to a style."""
        with self._lock:
            self._presets.setdefault(style_id, []).append(preset)

    def presets_for(self, style_id: str) -> list[StylePreset]:
        with self._lock:
            return list(self._presets.get(style_id, []))

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def export_config(self) -> dict[str, Any]:
        """Export styles, custom themes and presets as JSON-ready data."""
        with self._lock:
            return {
                "styles": [s.model_dump(mode="json") for s in self._styles.values()],
                "custom_themes": [t.model_dump(mode="json") for t in self._custom_themes.values()],
                "style_presets": {
                    style_id: [p.model_dump(mode="json") for p in presets]
                    for style_id, presets in self._presets.items()
                },
            }

    def import_config(self, payload: dict[str, Any]) -> None:
        """Import data produced by ``export_config``.

        Styles and custom themes overwrite by id; preset lists replace the
        existing list for their style.

        Raises:
            pydantic.ValidationError: If a record is malformed
        """
        styles = [StyleDefinition.model_validate(s) for s in payload.get("styles") or []]
        themes = [CustomTheme.model_validate(t) for t in payload.get("custom_themes") or []]
        presets = {
            style_id: [StylePreset.model_validate(p) for p in items]
            for style_id, items in (payload.get("style_presets") or {}).items()
        }

        with self._lock:
            for style in styles:
                self._styles[style.id] = style
            for theme in themes:
                self._custom_themes[theme.id] = theme
            self._presets.update(presets)

        logger.info(
            f"Imported {len(styles)} styles, {len(themes)} custom themes "
            f"and presets for {len(presets)} styles"
        )
