"""Exception hierarchy for the template engine.

Every error raised across the compile boundary derives from
``TemplateEngineError`` and carries a machine-readable ``code`` plus the
template and variable ids involved, so callers can tell "fix the template"
apart from "fix the runtime input" and drive their own fallback chain:

- ``ValidationError``: the template failed static checks and was never compiled
- ``CompilationError``: parsing or the segment walk failed
- ``VariableError``: a required variable could not be resolved
- ``TemplateNotFoundError``: the template store has no such record

Messages are written to be displayed to an end user directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .segments import ValidationResult


class TemplateEngineError(Exception):
    """Base exception for all template engine errors."""

    code = "TEMPLATE_ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        template_id: str | None = None,
        variable_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.template_id = template_id
        self.variable_id = variable_id

    def to_dict(self) -> dict:
        """Serialise the error for API responses and telemetry."""
        return {
            "detail": self.message,
            "code": self.code,
            "template_id": self.template_id,
            "variable_id": self.variable_id,
        }


class ValidationError(TemplateEngineError):
    """Raised when a template fails structural or variable checks."""

    code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        template_id: str | None = None,
        result: ValidationResult | None = None,
    ) -> None:
        super().__init__(message, template_id=template_id)
        self.result = result


class CompilationError(TemplateEngineError):
    """Raised on parse failures, limit overflows and segment-walk failures."""

    code = "COMPILATION_ERROR"


class VariableError(TemplateEngineError):
    """Raised when a required variable cannot be resolved."""

    code = "VARIABLE_ERROR"

    def __init__(self, message: str, variable_id: str, *, template_id: str | None = None) -> None:
        super().__init__(message, template_id=template_id, variable_id=variable_id)


class TemplateNotFoundError(TemplateEngineError):
    """Raised by the template store when a template id is unknown."""

    code = "TEMPLATE_NOT_FOUND"
