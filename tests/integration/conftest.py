"""Fixtures for API integration tests."""

from __future__ import annotations

import json
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from portraitforge.api.main import create_app
from portraitforge.core.config import EngineConfig


@pytest.fixture
def stored_templates(test_config: EngineConfig) -> list[dict]:
    """Write a template store with one enhanced and one legacy record."""
    records = [
        {
            "kind": "enhanced",
            "id": "couple-default",
            "portrait_type": "couple",
            "name": "Couple default",
            "is_default": True,
            "template": (
                "A romantic {style} portrait of the couple, wearing {attire}. "
                "Keep both faces unchanged. {customPrompt}"
            ),
            "variables": {
                "attire": {
                    "id": "attire",
                    "name": "Attire",
                    "type": "text",
                    "default_value": "formal wedding attire",
                }
            },
            "theme_config": {"supported_styles": [], "default_style": ""},
        },
        {
            "id": "family-legacy",
            "type": "family",
            "name": "Family legacy",
            "template": "A {style} portrait of the whole family at {venue}. {customPrompt}",
        },
    ]
    test_config.templates_file.write_text(json.dumps(records), encoding="utf-8")
    return records


@pytest.fixture
def test_client(test_config: EngineConfig, stored_templates: list[dict]) -> Generator[TestClient, None, None]:
    """TestClient running the application lifespan against a temporary store."""
    with TestClient(create_app(test_config)) as client:
        yield client
