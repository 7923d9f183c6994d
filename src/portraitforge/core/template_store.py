"""JSON file storage for prompt templates.

Templates live in a single ``templates.json`` file holding a list of records.
Two record shapes are accepted, discriminated on ``kind``:

- ``enhanced``: a full ``TemplateDefinition``
- ``legacy``: the pre-engine shape (id, portrait type, name, raw text)

Records written before ``kind`` existed are classified by their keys: a record
with any engine-only field (``variables``, ``theme_config``,
``advanced_options``, ``style_presets``) is enhanced, anything else is legacy.
Legacy records are upgraded on read, so callers only ever see
``TemplateDefinition`` objects.

The store is forgiving on read and strict on lookup:

- a missing or unparsable file reads as an empty store
- a malformed record is skipped with a warning
- looking up an unknown id raises ``TemplateNotFoundError``
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import TemplateNotFoundError
from .migration import upgrade_legacy
from .models import LegacyTemplate, StoredTemplate, TemplateDefinition
from .themes import ThemeRegistry

logger = logging.getLogger(__name__)

ENHANCED_ONLY_FIELDS = ("variables", "theme_config", "advanced_options", "style_presets")

_stored_template = TypeAdapter(StoredTemplate)


def infer_kind(record: dict[str, Any]) -> str:
    """Classify a record that has no explicit ``kind``."""
    if any(field in record for field in ENHANCED_ONLY_FIELDS):
        return "enhanced"
    return "legacy"


class TemplateStore:
    """File-backed template repository.

    Attributes
    ----------
    path : Path
        Location of the JSON file
    themes : ThemeRegistry
        Registry used when upgrading legacy records
    """

    def __init__(self, path: Path, themes: ThemeRegistry | None = None):
        self.path = Path(path)
        self.themes = themes if themes is not None else ThemeRegistry.with_defaults()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _read_records(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read template store {self.path}: {e}")
            return []

        if not isinstance(raw, list):
            logger.warning(f"Template store {self.path} does not hold a list, ignoring it")
            return []
        return [record for record in raw if isinstance(record, dict)]

    def _write_records(self, records: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            json.dump(records, handle, indent=2)

    def _load(self, record: dict[str, Any]) -> TemplateDefinition | None:
        data = dict(record)
        if "portrait_type" not in data and "type" in data:
            data["portrait_type"] = data.pop("type")
        data.setdefault("kind", infer_kind(data))

        try:
            stored = _stored_template.validate_python(data)
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed template record {record.get('id')!r}: {e}")
            return None

        if isinstance(stored, LegacyTemplate):
            return upgrade_legacy(stored, self.themes)
        return stored

    def _load_all(self) -> list[TemplateDefinition]:
        templates = []
        for record in self._read_records():
            template = self._load(record)
            if template is not None:
                templates.append(template)
        return templates

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_templates(self, portrait_type: str | None = None) -> list[TemplateDefinition]:
        """List stored templates, optionally for one portrait type."""
        with self._lock:
            templates = self._load_all()
        if portrait_type:
            templates = [t for t in templates if t.portrait_type == portrait_type]
        return templates

    def get(self, template_id: str) -> TemplateDefinition:
        """Return one template.

        Raises:
            TemplateNotFoundError: If no valid record has this id
        """
        for template in self.list_templates():
            if template.id == template_id:
                return template
        raise TemplateNotFoundError(
            f"Template not found: {template_id}", template_id=template_id
        )

    def get_default(self, portrait_type: str) -> TemplateDefinition:
        """Return the default template for a portrait type.

        Falls back to the first template of that type when none is flagged
        as default.

        Raises:
            TemplateNotFoundError: If the portrait type has no templates
        """
        candidates = self.list_templates(portrait_type)
        for template in candidates:
            if template.is_default:
                return template
        if candidates:
            return candidates[0]
        raise TemplateNotFoundError(f"No templates for portrait type: {portrait_type}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def save(self, template: TemplateDefinition) -> TemplateDefinition:
        """Insert or overwrite a template by id.

        Overwriting increments the stored version.  Saving a default template
        clears the default flag on the other templates of its portrait type.

        Returns:
            The stored template with its final version and timestamp
        """
        with self._lock:
            records = self._read_records()
            existing_version = None
            for record in records:
                if record.get("id") == template.id:
                    existing_version = record.get("version", 1)

            stored = template.model_copy(deep=True)
            stored.last_modified = datetime.now(timezone.utc)
            if isinstance(existing_version, int):
                stored.version = max(existing_version, template.version) + 1

            updated = []
            for record in records:
                if record.get("id") == template.id:
                    continue
                if (
                    stored.is_default
                    and record.get("is_default")
                    and record.get("portrait_type", record.get("type")) == stored.portrait_type
                ):
                    record = {**record, "is_default": False}
                updated.append(record)
            updated.append(stored.model_dump(mode="json"))
            self._write_records(updated)

        logger.info(f"Saved template '{stored.id}' (version {stored.version})")
        return stored

    def delete(self, template_id: str) -> bool:
        """Delete a template; returns whether it existed."""
        with self._lock:
            records = self._read_records()
            remaining = [r for r in records if r.get("id") != template_id]
            if len(remaining) == len(records):
                return False
            self._write_records(remaining)

        logger.info(f"Deleted template '{template_id}'")
        return True
