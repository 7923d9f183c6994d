"""Tests for portraitforge.core.template_store - JSON template storage.

Tests cover:
- Forgiving reads (missing, corrupt and non-list files, malformed records).
- Record kind inference and legacy upgrade on read.
- Lookup and default selection.
- Saving (version bump, default flag handling) and deletion.
"""

import json

import pytest

from portraitforge.core.errors import TemplateNotFoundError
from portraitforge.core.models import TemplateDefinition
from portraitforge.core.template_store import TemplateStore, infer_kind


@pytest.fixture
def store_path(temp_dir):
    return temp_dir / "data" / "templates.json"


@pytest.fixture
def store(store_path, seeded_themes) -> TemplateStore:
    return TemplateStore(store_path, themes=seeded_themes)


def write_records(path, records) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(records), encoding="utf-8")


def enhanced(template_id: str, portrait_type: str = "couple", **kwargs) -> dict:
    record = {
        "kind": "enhanced",
        "id": template_id,
        "portrait_type": portrait_type,
        "name": template_id.title(),
        "template": "A {style} portrait. {customPrompt}",
    }
    record.update(kwargs)
    return record


class TestInferKind:
    """Classification of records without an explicit kind."""

    def test_engine_fields_mean_enhanced(self):
        assert infer_kind({"id": "a", "variables": {}}) == "enhanced"
        assert infer_kind({"id": "a", "advanced_options": {}}) == "enhanced"

    def test_plain_record_is_legacy(self):
        assert infer_kind({"id": "a", "type": "single", "template": "x"}) == "legacy"


class TestReading:
    """Reads never fail on bad files."""

    def test_missing_file_is_empty(self, store):
        assert store.list_templates() == []

    def test_corrupt_file_is_empty(self, store, store_path, caplog):
        store_path.parent.mkdir(parents=True)
        store_path.write_text("{not json", encoding="utf-8")
        assert store.list_templates() == []
        assert "Could not read template store" in caplog.text

    def test_non_list_file_is_empty(self, store, store_path):
        write_records(store_path, {"id": "a"})
        assert store.list_templates() == []

    def test_malformed_record_skipped(self, store, store_path, caplog):
        write_records(
            store_path,
            [
                enhanced("good"),
                {"kind": "enhanced", "id": "bad", "version": "not-a-number"},
                "not a record",
            ],
        )
        assert [t.id for t in store.list_templates()] == ["good"]
        assert "Skipping malformed template record 'bad'" in caplog.text

    def test_legacy_record_upgraded(self, store, store_path):
        write_records(
            store_path,
            [{"id": "old", "type": "family", "name": "Old", "template": "A {style} photo at {venue}"}],
        )
        template = store.get("old")
        assert isinstance(template, TemplateDefinition)
        assert template.portrait_type == "family"
        assert template.category == "legacy"
        assert "venue" in template.variables

    def test_filter_by_portrait_type(self, store, store_path):
        write_records(store_path, [enhanced("a", "couple"), enhanced("b", "family")])
        assert [t.id for t in store.list_templates("family")] == ["b"]


class TestLookup:
    """get and get_default."""

    def test_get_unknown_raises(self, store):
        with pytest.raises(TemplateNotFoundError, match="Template not found: ghost") as exc_info:
            store.get("ghost")
        assert exc_info.value.template_id == "ghost"

    def test_default_flag_wins(self, store, store_path):
        write_records(
            store_path,
            [enhanced("first", "single"), enhanced("chosen", "single", is_default=True)],
        )
        assert store.get_default("single").id == "chosen"

    def test_first_of_type_without_flag(self, store, store_path):
        write_records(store_path, [enhanced("first", "single"), enhanced("second", "single")])
        assert store.get_default("single").id == "first"

    def test_no_templates_for_type(self, store):
        with pytest.raises(TemplateNotFoundError):
            store.get_default("family")


class TestMutations:
    """save and delete."""

    def test_save_new(self, store, store_path, sample_template):
        saved = store.save(sample_template)
        assert saved.version == 1
        assert store_path.exists()
        assert store.get("couple-portrait").template == sample_template.template

    def test_overwrite_bumps_version(self, store, sample_template):
        store.save(sample_template)
        updated = sample_template.model_copy(update={"name": "Renamed"})
        saved = store.save(updated)
        assert saved.version == 2
        assert store.get("couple-portrait").name == "Renamed"
        assert len(store.list_templates()) == 1

    def test_save_does_not_mutate_argument(self, store, sample_template):
        store.save(sample_template)
        store.save(sample_template)
        assert sample_template.version == 1

    def test_new_default_clears_others(self, store, store_path):
        write_records(
            store_path,
            [
                enhanced("old-default", "couple", is_default=True),
                enhanced("family", "family", is_default=True),
            ],
        )
        store.save(
            TemplateDefinition(
                id="new-default",
                portrait_type="couple",
                name="New",
                template="A {style} portrait",
                is_default=True,
            )
        )
        assert store.get("old-default").is_default is False
        assert store.get("family").is_default is True
        assert store.get_default("couple").id == "new-default"

    def test_delete(self, store, sample_template):
        store.save(sample_template)
        assert store.delete("couple-portrait") is True
        assert store.delete("couple-portrait") is False
        assert store.list_templates() == []

    def test_default_themes(self, store_path):
        assert len(TemplateStore(store_path).themes.list_styles()) == 8
