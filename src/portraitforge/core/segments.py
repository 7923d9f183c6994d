"""Ephemeral data structures produced while parsing and validating.

Parsed templates are recomputed on every cache miss and never serialised, so
they are plain dataclasses rather than pydantic models.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from .models import ConditionalRule, VariableFormatting

Complexity = Literal["simple", "moderate", "complex"]


@dataclass
class TextSegment:
    """Literal text, emitted verbatim."""

    content: str
    type: Literal["text"] = "text"


@dataclass
class VariableSegment:
    """A ``{name[:fallback][|format...]}`` reference."""

    variable_id: str
    formatting: VariableFormatting | None = None
    fallback: str | None = None
    type: Literal["variable"] = "variable"


@dataclass
class ConditionalSegment:
    """A ``{{#if ...}}...{{else}}...{{/if}}`` block."""

    condition: ConditionalRule
    true_content: list["Segment"] = field(default_factory=list)
    false_content: list["Segment"] = field(default_factory=list)
    type: Literal["conditional"] = "conditional"


@dataclass
class DynamicSegment:
    """A ``{{generator:params}}`` call."""

    generator: str
    parameters: dict[str, Any] = field(default_factory=dict)
    type: Literal["dynamic"] = "dynamic"


Segment = Union[TextSegment, VariableSegment, ConditionalSegment, DynamicSegment]


@dataclass
class ParseMetadata:
    """Information about a parse run. Purely informational."""

    parse_time_ms: float = 0.0
    complexity: Complexity = "simple"
    conditional_count: int = 0
    dynamic_count: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class ParsedTemplate:
    """Result of ``TemplateParser.parse``."""

    segments: list[Segment]
    variables: set[str]
    metadata: ParseMetadata

    def iter_segments(self):
        """Yield every segment, descending into conditional branches."""
        stack = list(reversed(self.segments))
        while stack:
            segment = stack.pop()
            yield segment
            if isinstance(segment, ConditionalSegment):
                stack.extend(reversed(segment.false_content))
                stack.extend(reversed(segment.true_content))


@dataclass
class ValidationResult:
    """Outcome of ``TemplateValidator.validate``.

    ``is_valid`` is true iff there are no errors; warnings only lower the
    0-100 quality ``score``.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    score: int = 100

    def to_dict(self) -> dict:
        """Serialise for API responses."""
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "score": self.score,
        }
