"""Tests for portraitforge.api.models - Pydantic request models.

Tests cover:
- CompileRequest template source rules and defaults.
- RecommendRequest count bounds.
- InvalidateRequest defaults.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from portraitforge.api.models import (
    CompileRequest,
    InvalidateRequest,
    RecommendRequest,
    ValidateRequest,
)


class TestCompileRequest:
    """Test CompileRequest Pydantic model."""

    def test_template_id_only(self):
        """A stored template id alone should validate with default context."""
        req = CompileRequest(template_id="couple-default")
        assert req.template is None
        assert req.context.style == ""
        assert req.options.use_cache is True
        assert req.options.validation is True

    def test_inline_template_only(self):
        """An inline template is parsed into a TemplateDefinition."""
        req = CompileRequest.model_validate(
            {"template": {"id": "t", "name": "T", "template": "A {style} portrait"}}
        )
        assert req.template.id == "t"
        assert req.template.kind == "enhanced"

    def test_neither_source_raises(self):
        """Omitting both template sources should raise ValidationError."""
        with pytest.raises(ValidationError, match="exactly one"):
            CompileRequest()

    def test_both_sources_raise(self):
        """Giving both template sources should raise ValidationError."""
        with pytest.raises(ValidationError):
            CompileRequest.model_validate(
                {"template_id": "t", "template": {"id": "t", "template": "x"}}
            )

    def test_context_and_options(self):
        """Context and options are parsed into engine models."""
        req = CompileRequest.model_validate(
            {
                "template_id": "t",
                "context": {"style": "Boho", "family_member_count": 4},
                "options": {"use_cache": False, "style_variation": "Sunset"},
            }
        )
        assert req.context.family_member_count == 4
        assert req.options.use_cache is False
        assert req.options.style_variation == "Sunset"


class TestOtherRequests:
    """Test the smaller request models."""

    def test_validate_request_requires_template(self):
        with pytest.raises(ValidationError):
            ValidateRequest()

    def test_recommend_defaults(self):
        req = RecommendRequest()
        assert req.count == 5
        assert req.preferences.mood == []

    @pytest.mark.parametrize("count", [0, 21])
    def test_recommend_count_bounds(self, count):
        with pytest.raises(ValidationError):
            RecommendRequest(count=count)

    def test_invalidate_defaults(self):
        req = InvalidateRequest()
        assert req.pattern is None
        assert req.regex is False
