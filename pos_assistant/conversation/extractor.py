"""
Best-effort recovery of tool calls from free-text model output.

Text-only backends are taught to write directives such as

    TOOL_CALL: add_item_to_transaction(item_description="Latte", quantity=2)

but they are conversational, so the extractor tolerates prose around the
directives, a missing marker, loose quoting, and broken parentheses. How
cleanly a directive matched the grammar decides its confidence, through
an explicit and versioned ConfidencePolicy. Directives that cannot be
parsed at all are reported as MalformedToolCall diagnostics and never
become invocations.

Extraction is a pure function of the input text: the same text always
yields the same invocations in the same order.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

from pos_assistant.prompts.system_prompts import DIRECTIVE_GRAMMAR_VERSION
from pos_assistant.schemas.tool_schema import (
    InvocationOrigin,
    MalformedToolCall,
    ToolInvocation,
    ToolSchema,
)

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(r"TOOL_CALL\s*:[ \t]*", re.IGNORECASE)
_NAME_RE = re.compile(r"[A-Za-z_]\w*")
_KEY_RE = re.compile(r"\s*([A-Za-z_]\w*)\s*[=:]")


class MatchQuality(IntEnum):
    """How closely a directive followed the taught grammar. Lower is worse."""

    FUZZY = 1
    PARTIAL = 2
    WELL_FORMED = 3


@dataclass(frozen=True)
class ConfidencePolicy:
    """Maps match quality to invocation confidence.

    v1 scores:
      well_formed       marker, balanced parens, clean values, required args present
      partial           bare known_function(...) call, or unquoted text values
      fuzzy             unbalanced parens or positional values with unclear boundaries
      missing_required  parsed, but a required argument is absent
    """

    version: str = DIRECTIVE_GRAMMAR_VERSION
    well_formed: float = 0.9
    partial: float = 0.6
    fuzzy: float = 0.4
    missing_required: float = 0.35

    def score(self, quality: MatchQuality, required_present: bool) -> float:
        if not required_present:
            return self.missing_required
        if quality == MatchQuality.WELL_FORMED:
            return self.well_formed
        if quality == MatchQuality.PARTIAL:
            return self.partial
        return self.fuzzy


DEFAULT_POLICY = ConfidencePolicy()


@dataclass
class ExtractionResult:
    invocations: list[ToolInvocation] = field(default_factory=list)
    diagnostics: list[MalformedToolCall] = field(default_factory=list)


@dataclass
class _Candidate:
    start: int
    end: int
    name: Optional[str]
    args_text: str
    quality: MatchQuality
    malformed_reason: Optional[str] = None


class ToolCallExtractor:
    """Scans model prose for directive-shaped tool calls."""

    def __init__(
        self,
        tools: list[ToolSchema],
        policy: ConfidencePolicy = DEFAULT_POLICY,
    ) -> None:
        self._tools = {tool.name: tool for tool in tools}
        self._policy = policy
        names = sorted(self._tools, key=len, reverse=True)
        self._bare_re = (
            re.compile(r"(?<![\w:])(" + "|".join(map(re.escape, names)) + r")\s*\(")
            if names else None
        )

    @property
    def policy(self) -> ConfidencePolicy:
        return self._policy

    def extract(self, text: str) -> ExtractionResult:
        """Return invocations in first-occurrence order plus diagnostics."""
        result = ExtractionResult()
        for candidate in self._find_candidates(text):
            if candidate.malformed_reason is not None:
                fragment = text[candidate.start:candidate.end].strip()
                logger.warning("Dropping malformed tool call %r: %s", fragment, candidate.malformed_reason)
                result.diagnostics.append(
                    MalformedToolCall(fragment=fragment, reason=candidate.malformed_reason)
                )
                continue

            parsed = self._parse_arguments(candidate)
            if parsed is None:
                fragment = text[candidate.start:candidate.end].strip()
                logger.warning("Dropping tool call with unparsable arguments: %r", fragment)
                result.diagnostics.append(
                    MalformedToolCall(fragment=fragment, reason="arguments could not be parsed")
                )
                continue

            arguments, quality = parsed
            confidence = self._policy.score(
                quality, self._required_present(candidate.name, arguments)
            )
            result.invocations.append(ToolInvocation(
                call_id=f"extracted-{len(result.invocations) + 1}",
                name=candidate.name,
                raw_arguments=candidate.args_text,
                arguments=arguments,
                confidence=confidence,
                origin=InvocationOrigin.EXTRACTED,
            ))

        if result.invocations or result.diagnostics:
            logger.debug(
                "Extracted %d invocation(s), %d malformed (policy v%s)",
                len(result.invocations), len(result.diagnostics), self._policy.version,
            )
        return result

    def strip_directives(self, text: str) -> str:
        """Remove directive text, leaving only the prose meant for the customer."""
        spans = [(c.start, c.end) for c in self._find_candidates(text)]
        if not spans:
            return text.strip()
        pieces: list[str] = []
        cursor = 0
        for start, end in spans:
            pieces.append(text[cursor:start])
            cursor = end
        pieces.append(text[cursor:])
        lines = [line.strip() for line in "".join(pieces).splitlines()]
        return "\n".join(line for line in lines if line).strip()

    # ------------------------------------------------------------------ #
    # Candidate discovery
    # ------------------------------------------------------------------ #

    def _find_candidates(self, text: str) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        covered: list[tuple[int, int]] = []

        for marker in _MARKER_RE.finditer(text):
            candidate = self._read_directive(text, marker.start(), marker.end(), marked=True)
            candidates.append(candidate)
            covered.append((candidate.start, candidate.end))

        if self._bare_re is not None:
            for match in self._bare_re.finditer(text):
                if any(start <= match.start() < end for start, end in covered):
                    continue
                candidate = self._read_directive(text, match.start(), match.start(), marked=False)
                candidates.append(candidate)
                covered.append((candidate.start, candidate.end))

        candidates.sort(key=lambda c: c.start)
        return candidates

    def _read_directive(self, text: str, start: int, name_pos: int, marked: bool) -> _Candidate:
        line_end = text.find("\n", name_pos)
        if line_end == -1:
            line_end = len(text)

        name_match = _NAME_RE.match(text, name_pos)
        if name_match is None:
            return _Candidate(
                start=start, end=line_end, name=None, args_text="",
                quality=MatchQuality.FUZZY, malformed_reason="no function name after marker",
            )

        name = name_match.group(0)
        quality = MatchQuality.WELL_FORMED if marked else MatchQuality.PARTIAL
        cursor = name_match.end()
        while cursor < len(text) and text[cursor] in " \t":
            cursor += 1

        if cursor < len(text) and text[cursor] == "(":
            close = _find_closing_paren(text, cursor)
            if close is not None:
                return _Candidate(start, close + 1, name, text[cursor + 1:close], quality)
            # Unbalanced: take the rest of the line as the argument list.
            return _Candidate(start, line_end, name, text[cursor + 1:line_end], MatchQuality.FUZZY)

        rest = text[cursor:line_end]
        if not rest.strip():
            return _Candidate(start, line_end, name, "", MatchQuality.PARTIAL)
        if _KEY_RE.match(rest) or rest.lstrip().startswith("{"):
            return _Candidate(start, line_end, name, rest, MatchQuality.FUZZY)
        # Marker followed by a name and unrelated prose; keep the call, ignore the prose.
        return _Candidate(start, cursor, name, "", MatchQuality.PARTIAL)

    # ------------------------------------------------------------------ #
    # Argument parsing
    # ------------------------------------------------------------------ #

    def _parse_arguments(self, candidate: _Candidate) -> Optional[tuple[dict[str, Any], MatchQuality]]:
        quality = candidate.quality
        body = candidate.args_text.strip()
        if not body:
            return {}, quality

        if body.startswith("{"):
            try:
                value = json.loads(body)
            except ValueError:
                return None
            if not isinstance(value, dict):
                return None
            return value, quality

        arguments: dict[str, Any] = {}
        last_key: Optional[str] = None
        last_loose = False
        for segment in _split_top_level(body):
            if not segment.strip():
                continue
            key_match = _KEY_RE.match(segment)
            if key_match is not None:
                key = key_match.group(1)
                value, clean = _convert_value(segment[key_match.end():])
                arguments[key] = value
                last_key, last_loose = key, not clean
                if not clean:
                    quality = min(quality, MatchQuality.PARTIAL)
                continue

            # Positional segment: the argument boundaries are ambiguous.
            quality = MatchQuality.FUZZY
            value, clean = _convert_value(segment)
            if last_key is not None and last_loose:
                arguments[last_key] = f"{arguments[last_key]}, {str(value).strip()}"
                continue
            target = self._next_unfilled(candidate.name, arguments)
            arguments[target] = value
            last_key, last_loose = target, not clean

        return arguments, quality

    def _next_unfilled(self, name: Optional[str], arguments: dict[str, Any]) -> str:
        tool = self._tools.get(name or "")
        if tool is not None:
            ordered = list(tool.required) + [p for p in tool.parameter_names if p not in tool.required]
            for param in ordered:
                if param not in arguments:
                    return param
        return f"arg{len(arguments) + 1}"

    def _required_present(self, name: Optional[str], arguments: dict[str, Any]) -> bool:
        tool = self._tools.get(name or "")
        if tool is None:
            return True
        return all(arguments.get(req) not in (None, "") for req in tool.required)


def _find_closing_paren(text: str, open_index: int) -> Optional[int]:
    depth = 0
    quote: Optional[str] = None
    index = open_index
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        elif char == "\n" and depth == 1 and quote is None:
            # Directives are single-line; a newline inside parens means they never closed.
            return None
        index += 1
    return None


def _split_top_level(body: str) -> list[str]:
    """Split on commas that are outside quotes and brackets."""
    segments: list[str] = []
    depth = 0
    quote: Optional[str] = None
    current: list[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if quote:
            current.append(char)
            if char == "\\" and index + 1 < len(body):
                current.append(body[index + 1])
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "\"'" and _opens_quote(current):
            quote = char
            current.append(char)
        elif char in "[{(":
            depth += 1
            current.append(char)
        elif char in "]})":
            depth -= 1
            current.append(char)
        elif char == "," and depth <= 0:
            segments.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    segments.append("".join(current))
    return segments


def _opens_quote(current: list[str]) -> bool:
    """A quote opens a string only at the start of a value, not inside a word (e.g. that's)."""
    stripped = "".join(current).rstrip()
    return not stripped or stripped[-1] in "=:[{(,"


def _convert_value(raw: str) -> tuple[Any, bool]:
    """Convert a textual value. Returns (value, was_cleanly_typed)."""
    value = raw.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        try:
            return json.loads(value), True
        except ValueError:
            return value[1:-1], True
    if len(value) >= 2 and value[0] == value[-1] == "'":
        return value[1:-1], True
    if not value:
        return "", False
    try:
        return json.loads(value), True
    except ValueError:
        return value, False
