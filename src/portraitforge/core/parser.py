"""Template parser: lexes template text into typed segments.

Grammar
-------
The parser performs a single left-to-right scan and recognises four kinds of
segment:

    text          anything outside braces
    variable      {name}, {name:fallback}, {name|uppercase|prefix:X}
    conditional   {{#if condition}}...{{else}}...{{/if}}
    dynamic       {{generator:key=value,key2=value2}} or {{generator:{json}}}

Variable bodies are split at the first ``|``: the part before it is
``name[:fallback]`` and the part after it is the format chain.  Hence
``{name:default|uppercase}`` carries both a fallback and a format, fallbacks
cannot contain ``|``, and ``prefix:``/``suffix:`` arguments may contain ``:``.

Conditions take the form ``variable operator value`` where operator is one of
``equals``, ``not_equals``, ``contains``, ``in``, ``not_in``,
``greater_than`` or ``less_than``.  A bare ``variable`` means "is truthy".
``{{#if}}`` blocks nest; only a top-level ``{{else}}`` splits a block.

Conditional and dynamic segments are only recognised when advanced parsing is
enabled; otherwise ``{{...}}`` tokens are kept as literal text and a warning is
recorded.

Errors
------
Malformed input is never silently repaired.  An unmatched ``{``, a stray
``}``, a stray ``{{else}}`` or ``{{/if}}``, an unterminated ``{{#if`` and an
empty or invalid variable reference all raise ``CompilationError`` naming the
character position, as do templates exceeding the configured size or
distinct-variable limits.

Usage Example
-------------
    >>> parser = TemplateParser(EngineConfig())
    >>> parsed = parser.parse("A {style} portrait. {customPrompt}")
    >>> sorted(parsed.variables)
    ['customPrompt', 'style']
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any

from .conditions import coerce_literal, parse_condition
from .config import EngineConfig
from .errors import CompilationError
from .models import ConditionalRule, VariableFormatting
from .segments import (
    ConditionalSegment,
    DynamicSegment,
    ParsedTemplate,
    ParseMetadata,
    Segment,
    TextSegment,
    VariableSegment,
)

logger = logging.getLogger(__name__)

IF_OPEN = "{{#if"
ELSE_TOKEN = "{{else}}"

TRANSFORM_FORMATS = ("uppercase", "lowercase", "capitalize", "title_case")

_BRACE = re.compile(r"[{}]")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class _ParseState:
    advanced: bool
    template_id: str | None
    variables: set[str] = field(default_factory=set)
    warnings: list[str] = field(default_factory=list)
    conditional_count: int = 0
    dynamic_count: int = 0


def classify_complexity(variable_count: int, conditional_count: int, dynamic_count: int) -> str:
    """Classify a template as simple, moderate or complex."""
    if variable_count > 10 or conditional_count > 3 or dynamic_count > 2:
        return "complex"
    if variable_count > 5 or conditional_count > 1 or dynamic_count > 0:
        return "moderate"
    return "simple"


def find_double_close(text: str, start: int, end: int) -> int:
    """Return the index of the ``}}`` closing a double-brace token, or -1.

    Braces opened inside the token (JSON payloads) are tracked by depth.
    """
    depth = 0
    i = start
    while i < end:
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return i if i + 1 < end and text[i + 1] == "}" else -1
            depth -= 1
        i += 1
    return -1


class TemplateParser:
    """Parse template text into segments.

    The parser is stateless between calls; limits come from the injected
    ``EngineConfig``.

    Attributes
    ----------
    config : EngineConfig
        Supplies ``max_template_size``, ``max_variable_count`` and the
        ``enable_debug_mode`` default for advanced parsing
    """

    def __init__(self, config: EngineConfig):
        self.config = config

    def parse(
        self,
        text: str,
        *,
        advanced: bool | None = None,
        template_id: str | None = None,
        enforce_limits: bool = True,
    ) -> ParsedTemplate:
        """Parse a template string.

        Args:
            text: Raw template text
            advanced: Recognise conditional and dynamic segments. Defaults to
                ``config.enable_debug_mode``.
            template_id: Template id attached to raised errors
            enforce_limits: Apply the size and variable-count ceilings. Text
                produced by style modifiers is re-parsed with this off.

        Returns:
            ParsedTemplate with segments, referenced variables and metadata

        Raises:
            CompilationError: On malformed syntax or exceeded limits
        """
        started = time.perf_counter()
        text = text or ""

        if enforce_limits and len(text) > self.config.max_template_size:
            raise CompilationError(
                f"Template exceeds maximum size of {self.config.max_template_size} "
                f"characters ({len(text)})",
                template_id=template_id,
            )

        if advanced is None:
            advanced = self.config.enable_debug_mode
        state = _ParseState(advanced=advanced, template_id=template_id)

        segments = self._parse_range(text, 0, len(text), state)

        if enforce_limits and len(state.variables) > self.config.max_variable_count:
            raise CompilationError(
                f"Template references {len(state.variables)} variables, "
                f"maximum is {self.config.max_variable_count}",
                template_id=template_id,
            )

        metadata = ParseMetadata(
            parse_time_ms=(time.perf_counter() - started) * 1000,
            complexity=classify_complexity(
                len(state.variables), state.conditional_count, state.dynamic_count
            ),
            conditional_count=state.conditional_count,
            dynamic_count=state.dynamic_count,
            warnings=state.warnings,
        )
        return ParsedTemplate(segments=segments, variables=state.variables, metadata=metadata)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def _fail(self, state: _ParseState, message: str) -> CompilationError:
        return CompilationError(message, template_id=state.template_id)

    def _parse_range(self, text: str, pos: int, end: int, state: _ParseState) -> list[Segment]:
        segments: list[Segment] = []
        buffer: list[str] = []

        def flush() -> None:
            if buffer:
                segments.append(TextSegment("".join(buffer)))
                buffer.clear()

        while pos < end:
            match = _BRACE.search(text, pos, end)
            if match is None:
                buffer.append(text[pos:end])
                break
            if match.start() > pos:
                buffer.append(text[pos : match.start()])
                pos = match.start()

            if text[pos] == "}":
                raise self._fail(state, f"Unmatched '}}' at position {pos}")

            if text.startswith("{{", pos, end):
                close = find_double_close(text, pos + 2, end)
                if close == -1:
                    raise self._fail(state, f"Unmatched '{{{{' at position {pos}")
                body = text[pos + 2 : close].strip()

                if not state.advanced:
                    state.warnings.append(
                        f"Advanced syntax '{text[pos:close + 2]}' at position {pos} "
                        "kept as text (conditionals and dynamic variables are disabled)"
                    )
                    buffer.append(text[pos : close + 2])
                    pos = close + 2
                    continue

                if body.startswith("#if"):
                    flush()
                    segment, pos = self._parse_conditional(text, pos, close, body, end, state)
                    segments.append(segment)
                    continue
                if body in ("else", "/if"):
                    raise self._fail(state, f"Unexpected '{{{{{body}}}}}' at position {pos}")

                flush()
                segments.append(self._parse_dynamic(body, pos, state))
                pos = close + 2
                continue

            # Single-brace variable reference
            close = text.find("}", pos + 1, end)
            if close == -1:
                raise self._fail(state, f"Unmatched '{{' at position {pos}")
            nested = text.find("{", pos + 1, close)
            if nested != -1:
                raise self._fail(state, f"Nested '{{' at position {nested}")
            flush()
            segments.append(self._parse_variable(text[pos + 1 : close], pos, state))
            pos = close + 1

        flush()
        return segments

    # ------------------------------------------------------------------
    # Variables
    # ------------------------------------------------------------------

    def _parse_variable(self, body: str, position: int, state: _ParseState) -> VariableSegment:
        if not body.strip():
            raise self._fail(state, f"Empty variable reference at position {position}")

        head, has_chain, chain = body.partition("|")
        name, has_fallback, fallback = head.partition(":")
        name = name.strip()
        if not _IDENTIFIER.match(name):
            raise self._fail(
                state, f"Invalid variable reference '{{{body}}}' at position {position}"
            )

        formatting = None
        if has_chain:
            formatting = self._parse_format_chain(name, chain, state)

        state.variables.add(name)
        return VariableSegment(
            variable_id=name,
            formatting=formatting,
            fallback=fallback if has_fallback else None,
        )

    def _parse_format_chain(
        self, variable_id: str, chain: str, state: _ParseState
    ) -> VariableFormatting:
        formatting = VariableFormatting()
        for token in chain.split("|"):
            format_name, _, argument = token.partition(":")
            format_name = format_name.strip()
            if format_name in TRANSFORM_FORMATS:
                formatting.transform = format_name
            elif format_name == "prefix":
                formatting.prefix = argument
            elif format_name == "suffix":
                formatting.suffix = argument
            elif format_name:
                state.warnings.append(f"Unknown format '{format_name}' for variable '{variable_id}'")
        return formatting

    # ------------------------------------------------------------------
    # Conditionals
    # ------------------------------------------------------------------

    def _parse_conditional(
        self,
        text: str,
        open_pos: int,
        open_close: int,
        body: str,
        end: int,
        state: _ParseState,
    ) -> tuple[ConditionalSegment, int]:
        condition = self._parse_condition(body[3:].strip(), open_pos, state)
        state.variables.add(condition.variable)
        state.conditional_count += 1

        content_start = open_close + 2
        else_span, endif_span = self._find_block_end(text, content_start, end, open_pos, state)

        if else_span is not None:
            true_content = self._parse_range(text, content_start, else_span[0], state)
            false_content = self._parse_range(text, else_span[1], endif_span[0], state)
        else:
            true_content = self._parse_range(text, content_start, endif_span[0], state)
            false_content = []

        segment = ConditionalSegment(
            condition=condition, true_content=true_content, false_content=false_content
        )
        return segment, endif_span[1]

    def _find_block_end(
        self, text: str, pos: int, end: int, open_pos: int, state: _ParseState
    ) -> tuple[tuple[int, int] | None, tuple[int, int]]:
        """Locate the top-level ``{{else}}`` (if any) and matching ``{{/if}}``."""
        depth = 0
        else_span: tuple[int, int] | None = None
        while True:
            start = text.find("{{", pos, end)
            if start == -1:
                raise self._fail(state, f"Unterminated '{IF_OPEN}' block opened at position {open_pos}")
            close = find_double_close(text, start + 2, end)
            if close == -1:
                raise self._fail(state, f"Unmatched '{{{{' at position {start}")
            token = text[start + 2 : close].strip()
            if token.startswith("#if"):
                depth += 1
            elif token == "/if":
                if depth == 0:
                    return else_span, (start, close + 2)
                depth -= 1
            elif token == "else" and depth == 0:
                if else_span is not None:
                    raise self._fail(state, f"Duplicate '{ELSE_TOKEN}' at position {start}")
                else_span = (start, close + 2)
            pos = close + 2

    def _parse_condition(self, expression: str, position: int, state: _ParseState) -> ConditionalRule:
        try:
            return parse_condition(expression)
        except ValueError as e:
            raise self._fail(state, f"{e} at position {position}") from e

    # ------------------------------------------------------------------
    # Dynamic segments
    # ------------------------------------------------------------------

    def _parse_dynamic(self, body: str, position: int, state: _ParseState) -> DynamicSegment:
        generator, _, payload = body.partition(":")
        generator = generator.strip()
        if not _IDENTIFIER.match(generator):
            raise self._fail(state, f"Invalid dynamic generator '{generator}' at position {position}")
        state.dynamic_count += 1
        return DynamicSegment(
            generator=generator, parameters=self._parse_parameters(payload, position, state)
        )

    def _parse_parameters(self, payload: str, position: int, state: _ParseState) -> dict[str, Any]:
        payload = payload.strip()
        if not payload:
            return {}

        if payload.startswith("{"):
            try:
                parsed = json.loads(payload)
            except json.JSONDecodeError as e:
                raise self._fail(
                    state, f"Invalid dynamic parameters at position {position}: {e}"
                ) from e
            if not isinstance(parsed, dict):
                raise self._fail(state, f"Dynamic parameters must be an object at position {position}")
            return parsed

        # JSON object body without its outer braces
        if payload.startswith('"'):
            try:
                parsed = json.loads("{" + payload + "}")
            except json.JSONDecodeError:
                parsed = None
            if isinstance(parsed, dict):
                return parsed

        params: dict[str, Any] = {}
        for pair in payload.split(","):
            key, has_value, value = pair.partition("=")
            key = key.strip()
            if not key:
                continue
            params[key] = coerce_literal(value) if has_value else True
        return params
