from __future__ import annotations

from langchain_gotama.blocks import BlockBuffer, BlockKind, BufferMode, CompletedBlock, PlainText, UnterminatedBlock
from langchain_gotama.chat import ChatGotama, GotamaRequestConfig
from langchain_gotama.citation import CitationFields, parse_citation
from langchain_gotama.pause import parse_pause_duration, parse_pause_spec
from langchain_gotama.segmenter import Line, LineKind, classify_list_items, render_lines, segment_message
from langchain_gotama.stream import AsyncReleaseStream, ReleaseStream, StreamOutcome
from langchain_gotama._errors import DecodeError, GotamaAPIError, GotamaError, ProtocolError

__all__ = [
    "AsyncReleaseStream",
    "BlockBuffer",
    "BlockKind",
    "BufferMode",
    "ChatGotama",
    "CitationFields",
    "CompletedBlock",
    "DecodeError",
    "GotamaAPIError",
    "GotamaError",
    "GotamaRequestConfig",
    "Line",
    "LineKind",
    "PlainText",
    "ProtocolError",
    "ReleaseStream",
    "StreamOutcome",
    "UnterminatedBlock",
    "classify_list_items",
    "parse_citation",
    "parse_pause_duration",
    "parse_pause_spec",
    "render_lines",
    "segment_message",
]

__version__ = "0.1.0"
