"""Seed catalogue of wedding portrait styles.

Style ids are the normalised form of the style names (see
``normalize_style_id``), so a context carrying the human-readable name
"Rustic Barn Wedding" selects the ``rustic-barn-wedding`` modifiers.

Each style's variations inject a description into a ``{setting}``
placeholder; templates that want variation support include ``{setting}``.
"""

from .models import StyleDefinition

_DEFAULT_STYLES: list[dict] = [
    {
        "id": "classic-timeless-wedding",
        "name": "Classic & Timeless Wedding",
        "description": "Elegant, sophisticated, and eternally beautiful",
        "category": "traditional",
        "tags": ["elegant", "sophisticated", "traditional", "formal"],
        "popularity": 9,
        "color_palette": ["#FFFFFF", "#F8F8FF", "#E6E6FA", "#D3D3D3"],
        "mood": ["elegant", "sophisticated", "romantic", "refined"],
        "setting": "Traditional church or elegant venue with classical architecture",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In an elegant, sophisticated style with classical elements,",
            },
            {
                "type": "append",
                "content": "with timeless elegance, perfect lighting, and refined composition",
            },
        ],
        "style_variations": [
            {
                "name": "Formal Cathedral",
                "description": "Grand cathedral setting with dramatic lighting",
                "modifiers": [
                    {
                        "type": "inject",
                        "target": "setting",
                        "content": "magnificent cathedral with stained glass windows and dramatic lighting",
                    }
                ],
            },
            {
                "name": "Garden Elegance",
                "description": "Classic style in sophisticated garden setting",
                "modifiers": [
                    {
                        "type": "inject",
                        "target": "setting",
                        "content": "manicured garden with classical fountains and topiaries",
                    }
                ],
            },
        ],
        "preview_image": "/themes/classic-timeless-preview.jpg",
        "featured": True,
    },
    {
        "id": "rustic-barn-wedding",
        "name": "Rustic Barn Wedding",
        "description": "Cozy, natural, and charmingly rustic",
        "category": "traditional",
        "tags": ["rustic", "natural", "cozy", "country"],
        "popularity": 8,
        "color_palette": ["#8B4513", "#DEB887", "#F5DEB3", "#D2691E"],
        "mood": ["cozy", "natural", "warm", "intimate"],
        "setting": "Rustic barn with wooden beams, string lights, and natural elements",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In a cozy, rustic barn setting with natural wooden elements,",
            },
            {
                "type": "append",
                "content": "with warm lighting, natural textures, and countryside charm",
            },
        ],
        "style_variations": [
            {
                "name": "Country Farmhouse",
                "description": "Traditional farmhouse with vintage elements",
                "modifiers": [
                    {
                        "type": "inject",
                        "target": "setting",
                        "content": "vintage farmhouse with weathered wood and antique decorations",
                    }
                ],
            }
        ],
        "preview_image": "/themes/rustic-barn-preview.jpg",
        "featured": True,
    },
    {
        "id": "bohemian-beach-wedding",
        "name": "Bohemian Beach Wedding",
        "description": "Free-spirited, natural, and oceanside romance",
        "category": "modern",
        "tags": ["bohemian", "beach", "natural", "free-spirited"],
        "popularity": 7,
        "color_palette": ["#87CEEB", "#F0E68C", "#DDA0DD", "#98FB98"],
        "mood": ["free-spirited", "natural", "romantic", "relaxed"],
        "setting": "Beautiful beach with flowing fabrics, natural flowers, and ocean views",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In a free-spirited bohemian beach setting with flowing elements,",
            },
            {
                "type": "append",
                "content": "with ocean breeze, natural lighting, and ethereal atmosphere",
            },
        ],
        "style_variations": [
            {
                "name": "Sunset Ceremony",
                "description": "Golden hour beach ceremony with dramatic skies",
                "modifiers": [
                    {
                        "type": "inject",
                        "target": "setting",
                        "content": "beach at golden hour with dramatic sunset and silhouettes",
                    }
                ],
            }
        ],
        "preview_image": "/themes/bohemian-beach-preview.jpg",
        "featured": True,
    },
    {
        "id": "fairytale-castle-wedding",
        "name": "Fairytale Castle Wedding",
        "description": "Magical, grand, and storybook romance",
        "category": "fantasy",
        "tags": ["fairytale", "magical", "grand", "princess"],
        "popularity": 6,
        "color_palette": ["#FFB6C1", "#E6E6FA", "#FFD700", "#F0F8FF"],
        "mood": ["magical", "grand", "romantic", "enchanting"],
        "setting": "Majestic castle with towers, grand staircases, and magical atmosphere",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In a magical fairytale castle with grand architecture,",
            },
            {
                "type": "append",
                "content": "with enchanting atmosphere, regal elegance, and storybook magic",
            },
        ],
        "style_variations": [
            {
                "name": "Royal Ballroom",
                "description": "Grand ballroom with crystal chandeliers",
                "modifiers": [
                    {
                        "type": "inject",
                        "target": "setting",
                        "content": "opulent ballroom with crystal chandeliers and marble floors",
                    }
                ],
            }
        ],
        "preview_image": "/themes/fairytale-castle-preview.jpg",
        "premium_only": True,
    },
    {
        "id": "vintage-victorian-wedding",
        "name": "Vintage Victorian Wedding",
        "description": "Ornate Victorian-era inspired wedding with elaborate details and antique charm",
        "category": "vintage",
        "tags": ["victorian", "antique", "ornate", "lace"],
        "popularity": 5,
        "color_palette": ["deep burgundy", "gold", "ivory", "forest green"],
        "mood": ["ornate", "romantic", "elegant"],
        "setting": "Ornate Victorian mansion with antique furniture and elaborate moldings",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In an ornate Victorian mansion with rich fabrics and antique details,",
            },
            {
                "type": "append",
                "content": "with warm candlelight and old-world elegance",
            },
        ],
        "style_variations": [
            {
                "name": "Tea Room",
                "description": "Intimate Victorian sitting room",
                "modifiers": [
                    {
                        "type": "inject",
                        "target": "setting",
                        "content": "Victorian sitting room with lace curtains and a fireplace",
                    }
                ],
            }
        ],
    },
    {
        "id": "modern-minimalist-wedding",
        "name": "Modern Minimalist Wedding",
        "description": "Clean contemporary wedding with geometric elements and sophisticated simplicity",
        "category": "modern",
        "tags": ["modern", "minimalist", "geometric", "contemporary"],
        "popularity": 6,
        "color_palette": ["white", "black", "grey", "soft blush"],
        "mood": ["sophisticated", "clean", "contemporary"],
        "setting": "Sleek modern venue with clean lines and floor-to-ceiling windows",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In a sleek modern venue with clean geometric lines,",
            },
            {
                "type": "append",
                "content": "with bright natural light and sophisticated simplicity",
            },
        ],
    },
    {
        "id": "enchanted-forest-wedding",
        "name": "Enchanted Forest Wedding",
        "description": "Mystical woodland wedding with natural magic and organic elements",
        "category": "fantasy",
        "tags": ["forest", "woodland", "mystical", "natural"],
        "popularity": 5,
        "color_palette": ["forest green", "earth brown", "soft gold", "moss green"],
        "mood": ["mystical", "magical", "natural", "enchanting"],
        "setting": "Magical forest with ancient trees, dappled sunlight, and fairy lights",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In a mystical forest with ancient trees and moss-covered stones,",
            },
            {
                "type": "append",
                "content": "with dappled forest light, fairy lights, and woodland magic",
            },
        ],
        "seasonal": True,
    },
    {
        "id": "japanese-cherry-blossom-wedding",
        "name": "Japanese Cherry Blossom Wedding",
        "description": "Serene Japanese-inspired wedding with cherry blossoms and zen elements",
        "category": "cultural",
        "tags": ["japanese", "cherry blossom", "zen", "garden"],
        "popularity": 4,
        "color_palette": ["soft pink", "white", "sage green", "warm grey"],
        "mood": ["serene", "peaceful", "romantic"],
        "setting": "Peaceful Japanese garden with blooming cherry blossom trees and koi ponds",
        "prompt_modifiers": [
            {
                "type": "prepend",
                "content": "In a peaceful Japanese garden beneath blooming cherry blossoms,",
            },
            {
                "type": "append",
                "content": "with soft natural light and falling pink petals",
            },
        ],
        "seasonal": True,
    },
]


def default_styles() -> list[StyleDefinition]:
    """Return fresh copies of the seed styles."""
    return [StyleDefinition.model_validate(style) for style in _DEFAULT_STYLES]
