"""
Line-level segmentation of a complete assistant message.

Runs once on a final message string (after the stream ends, or on a cached
message) and partitions it into typed ``Line`` values for a renderer. It is
stateless between calls.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional

from langchain_gotama.citation import CitationFields, parse_citation
from langchain_gotama.pause import pause_duration_from_block

CODE_FENCE = "```"
CITATION_OPEN = "<citation>"
CITATION_CLOSE = "</citation>"
PAUSE_OPEN = "<pause>"
PAUSE_CLOSE = "</pause>"

_ORDERED_ITEM_RE = re.compile(r"^(\d+)\.\s+(.*)$")
_UNORDERED_PREFIXES = ("- ", "* ")


class LineKind(str, Enum):
    TEXT = "text"
    EMPTY_LINE = "empty_line"
    CODE = "code"
    CITATION = "citation"
    PAUSE = "pause"
    UNORDERED_LIST = "unordered_list"
    ORDERED_LIST = "ordered_list"
    STYLE_INDICATOR = "style_indicator"


@dataclass(frozen=True, slots=True)
class Line:
    content: str
    kind: LineKind
    # Position of the (opening) source line in the message.
    index: int
    indent_level: int = 0
    # Only set for ORDERED_LIST.
    number: Optional[int] = None

    def citation(self) -> CitationFields | None:
        if self.kind is not LineKind.CITATION:
            return None
        return parse_citation(self.content)

    def pause_seconds(self) -> float | None:
        if self.kind is not LineKind.PAUSE:
            return None
        return pause_duration_from_block(self.content)


_SPAN_CLOSERS = {
    LineKind.CITATION: CITATION_CLOSE,
    LineKind.PAUSE: PAUSE_CLOSE,
}


def _indent_level(raw: str) -> int:
    return (len(raw) - len(raw.lstrip(" "))) // 2


def _is_single_line_span(trimmed: str, open_tag: str, close_tag: str) -> bool:
    return len(trimmed) >= len(open_tag) + len(close_tag) and trimmed.startswith(open_tag) and trimmed.endswith(close_tag)


def segment_message(text: str) -> list[Line]:
    """
    Partition a message into ordered typed lines.

    Rules per line, in priority order:
      - inside a code/citation/pause span, lines (blank ones too) are absorbed
        until the closing fence/tag;
      - blank line -> EMPTY_LINE;
      - first line wrapped in ``*`` -> STYLE_INDICATOR (asterisks stripped);
      - ``<citation>`` / ``<pause>`` open a span, single-line spans emit at once;
      - a line starting with three backticks opens a code block;
      - anything else -> TEXT with the trimmed content.

    A span still open at the end is flushed as a final line of its kind.
    """
    lines: list[Line] = []
    open_kind: LineKind | None = None
    open_index = 0
    open_indent = 0
    buffer: list[str] = []

    for index, raw in enumerate(text.split("\n")):
        raw = raw.rstrip("\r")
        trimmed = raw.strip()
        indent = _indent_level(raw)

        if open_kind is LineKind.CODE:
            if trimmed.startswith(CODE_FENCE):
                lines.append(Line("\n".join(buffer), LineKind.CODE, open_index, open_indent))
                open_kind = None
                buffer = []
            else:
                buffer.append(raw)
            continue

        if open_kind is not None:
            buffer.append(raw)
            if trimmed == _SPAN_CLOSERS[open_kind]:
                lines.append(Line("\n".join(buffer), open_kind, open_index, open_indent))
                open_kind = None
                buffer = []
            continue

        if not trimmed:
            lines.append(Line("", LineKind.EMPTY_LINE, index, indent))
            continue

        if index == 0 and len(trimmed) >= 2 and trimmed.startswith("*") and trimmed.endswith("*"):
            lines.append(Line(trimmed.strip("*").strip(), LineKind.STYLE_INDICATOR, index, indent))
            continue

        if _is_single_line_span(trimmed, CITATION_OPEN, CITATION_CLOSE):
            lines.append(Line(trimmed, LineKind.CITATION, index, indent))
            continue
        if _is_single_line_span(trimmed, PAUSE_OPEN, PAUSE_CLOSE):
            lines.append(Line(trimmed, LineKind.PAUSE, index, indent))
            continue

        if trimmed in (CITATION_OPEN, PAUSE_OPEN) or trimmed.startswith(CODE_FENCE):
            if trimmed == CITATION_OPEN:
                open_kind = LineKind.CITATION
                buffer = [raw]
            elif trimmed == PAUSE_OPEN:
                open_kind = LineKind.PAUSE
                buffer = [raw]
            else:
                open_kind = LineKind.CODE
                buffer = []
            open_index = index
            open_indent = indent
            continue

        lines.append(Line(trimmed, LineKind.TEXT, index, indent))

    if open_kind is not None:
        lines.append(Line("\n".join(buffer), open_kind, open_index, open_indent))

    return lines


def classify_list_items(lines: Iterable[Line]) -> list[Line]:
    """
    Render-pass refinement: turn TEXT lines with list markers into list items.

    ``"- x"`` / ``"* x"`` become UNORDERED_LIST, ``"3. x"`` becomes ORDERED_LIST
    with ``number=3``. Bullets that follow a numbered item (blank lines and
    sibling bullets in between) are nested under it with indent level >= 1.
    """
    out: list[Line] = []
    under_numbered = False

    for line in lines:
        if line.kind is not LineKind.TEXT:
            if line.kind is not LineKind.EMPTY_LINE:
                under_numbered = False
            out.append(line)
            continue

        m = _ORDERED_ITEM_RE.match(line.content)
        if m:
            out.append(replace(line, kind=LineKind.ORDERED_LIST, content=m.group(2), number=int(m.group(1))))
            under_numbered = True
            continue

        if line.content.startswith(_UNORDERED_PREFIXES):
            indent = max(line.indent_level, 1) if under_numbered else line.indent_level
            out.append(replace(line, kind=LineKind.UNORDERED_LIST, content=line.content[2:].strip(), indent_level=indent))
            continue

        under_numbered = False
        out.append(line)

    return out


def render_lines(text: str) -> list[Line]:
    """Segment a message and apply the list refinement in one call."""
    return classify_list_items(segment_message(text))
