"""Pydantic request models for the PortraitForge API.

These models define the JSON schema for the API endpoints that take a body.
FastAPI uses them for automatic request validation, serialisation, and
OpenAPI documentation generation.

Models
------
CompileRequest
    Payload for ``POST /api/prompt/compile``: a stored template id or an
    inline template, plus the runtime context and compile options.
ValidateRequest
    Payload for ``POST /api/templates/validate``.
RecommendRequest
    Payload for ``POST /api/styles/recommend``.
InvalidateRequest
    Payload for ``POST /api/cache/invalidate``.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from portraitforge.core.models import (
    CompileOptions,
    RuntimeContext,
    StylePreferences,
    TemplateDefinition,
)


class CompileRequest(BaseModel):
    """Request body for the ``POST /api/prompt/compile`` endpoint.

    Exactly one of ``template_id`` and ``template`` must be given.

    Attributes:
        template_id: Identifier of a stored template.
        template: Inline template definition.
        context: Runtime context (style, custom prompt, preferences...).
        options: Compile options (cache, validation, style variation).
    """

    template_id: str | None = Field(
        default=None,
        description="Identifier of a stored template.",
    )
    template: TemplateDefinition | None = Field(
        default=None,
        description="Inline template definition.",
    )
    context: RuntimeContext = Field(
        default_factory=RuntimeContext,
        description="Runtime context for the compilation.",
    )
    options: CompileOptions = Field(
        default_factory=CompileOptions,
        description="Compile options.",
    )

    @model_validator(mode="after")
    def _one_template_source(self) -> CompileRequest:
        if (self.template_id is None) == (self.template is None):
            raise ValueError("Provide exactly one of 'template_id' or 'template'")
        return self


class ValidateRequest(BaseModel):
    """Request body for the ``POST /api/templates/validate`` endpoint.

    Attributes:
        template: Template definition to validate.
    """

    template: TemplateDefinition = Field(
        ...,
        description="Template definition to validate.",
    )


class RecommendRequest(BaseModel):
    """Request body for the ``POST /api/styles/recommend`` endpoint.

    Attributes:
        preferences: Mood, setting, category and tag preferences.
        count: Maximum number of recommendations (1-20).
    """

    preferences: StylePreferences = Field(
        default_factory=StylePreferences,
        description="Style preferences to score against.",
    )
    count: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum number of recommendations.",
    )


class InvalidateRequest(BaseModel):
    """Request body for the ``POST /api/cache/invalidate`` endpoint.

    Attributes:
        pattern: Key substring, or a regular expression when ``regex`` is set.
            ``None`` clears the whole cache.
        regex: Treat ``pattern`` as a regular expression.
    """

    pattern: str | None = Field(
        default=None,
        description="Key substring or regex; None clears everything.",
    )
    regex: bool = Field(
        default=False,
        description="Treat pattern as a regular expression.",
    )
