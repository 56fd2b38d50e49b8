"""
Block-aware chunk buffer.

Sits between the delta extractor and the consumer. Text deltas arrive in
arbitrary pieces; ``<citation>...</citation>`` (and optionally
``<pause>...</pause>``) spans are held back until closed and released whole,
everything else is passed through as soon as it is known not to start a
marker.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

logger = logging.getLogger(__name__)


class BlockKind(str, Enum):
    CITATION = "citation"
    PAUSE = "pause"

    @property
    def open_tag(self) -> str:
        return f"<{self.value}>"

    @property
    def close_tag(self) -> str:
        return f"</{self.value}>"


class BufferMode(str, Enum):
    PLAIN = "plain"
    IN_CITATION = "in_citation"
    IN_PAUSE = "in_pause"


_MODE_FOR_KIND = {
    BlockKind.CITATION: BufferMode.IN_CITATION,
    BlockKind.PAUSE: BufferMode.IN_PAUSE,
}

# Pause tags normally arrive as whole lines and are handled by the segmenter.
DEFAULT_LIVE_BLOCK_KINDS: tuple[BlockKind, ...] = (BlockKind.CITATION,)


@dataclass(frozen=True, slots=True)
class PlainText:
    """Pass-through text, safe to render immediately."""

    text: str


@dataclass(frozen=True, slots=True)
class CompletedBlock:
    """A full block span, opening and closing tags included."""

    kind: BlockKind
    text: str


ReleaseUnit = Union[PlainText, CompletedBlock]


@dataclass(frozen=True, slots=True)
class UnterminatedBlock:
    """Partial block left open when a stream ended."""

    kind: BlockKind
    text: str


class BlockBuffer:
    """
    Stateful scanner over text fragments of one stream.

    State is the ``mode`` plus one accumulator for the open block. While in
    ``PLAIN`` mode a trailing piece that could begin an opening tag (``"<cita"``)
    is held back until the next fragment proves or disproves it.

    Invariant: everything fed so far equals the concatenation of all released
    unit texts, then ``held``, then ``accumulated``.
    """

    def __init__(self, block_kinds: Iterable[BlockKind] = DEFAULT_LIVE_BLOCK_KINDS) -> None:
        kinds = tuple(dict.fromkeys(BlockKind(k) for k in block_kinds))
        if not kinds:
            raise ValueError("BlockBuffer needs at least one block kind to track")
        self._kinds = kinds
        self._mode = BufferMode.PLAIN
        self._kind: BlockKind | None = None
        self._accumulated = ""
        self._held = ""
        # Offset in _accumulated where the closing-tag search resumes.
        self._scan_from = 0

    @property
    def block_kinds(self) -> tuple[BlockKind, ...]:
        return self._kinds

    @property
    def mode(self) -> BufferMode:
        return self._mode

    @property
    def accumulated(self) -> str:
        return self._accumulated

    @property
    def held(self) -> str:
        return self._held

    def feed(self, fragment: str) -> list[ReleaseUnit]:
        """
        Absorb one fragment and return the units it makes releasable, in order.

        Args:
            fragment: The next text delta. Empty fragments release nothing.

        Returns:
            Zero or more release units.
        """
        out: list[ReleaseUnit] = []
        if not fragment:
            return out

        if self._mode is BufferMode.PLAIN:
            text = self._held + fragment
            self._held = ""
            self._consume_plain(text, out)
        else:
            self._accumulated += fragment
            rest = self._try_close(out)
            if rest:
                self._consume_plain(rest, out)
        return out

    def flush(self) -> list[ReleaseUnit]:
        """Release held-back plain text at the end of a stream."""
        if self._mode is not BufferMode.PLAIN or not self._held:
            return []
        text, self._held = self._held, ""
        return [PlainText(text)]

    def unterminated_block(self) -> UnterminatedBlock | None:
        if self._mode is BufferMode.PLAIN or self._kind is None:
            return None
        return UnterminatedBlock(kind=self._kind, text=self._accumulated)

    def reset(self) -> None:
        self._mode = BufferMode.PLAIN
        self._kind = None
        self._accumulated = ""
        self._held = ""
        self._scan_from = 0

    def _consume_plain(self, text: str, out: list[ReleaseUnit]) -> None:
        while text:
            found = self._find_open(text)
            if found is None:
                keep = self._partial_open_len(text)
                cut = len(text) - keep
                if cut:
                    out.append(PlainText(text[:cut]))
                self._held = text[cut:]
                return

            start, kind = found
            if start:
                out.append(PlainText(text[:start]))
            self._open(kind, text[start:])
            text = self._try_close(out)

    def _find_open(self, text: str) -> tuple[int, BlockKind] | None:
        best: tuple[int, BlockKind] | None = None
        for kind in self._kinds:
            idx = text.find(kind.open_tag)
            if idx >= 0 and (best is None or idx < best[0]):
                best = (idx, kind)
        return best

    def _partial_open_len(self, text: str) -> int:
        """Length of the longest suffix of `text` that is a proper prefix of a tracked opening tag."""
        longest = 0
        for kind in self._kinds:
            tag = kind.open_tag
            for size in range(min(len(tag) - 1, len(text)), longest, -1):
                if text.endswith(tag[:size]):
                    longest = size
                    break
        return longest

    def _open(self, kind: BlockKind, text: str) -> None:
        logger.debug("Opening %s block", kind.value)
        self._mode = _MODE_FOR_KIND[kind]
        self._kind = kind
        self._accumulated = text
        self._scan_from = len(kind.open_tag)

    def _try_close(self, out: list[ReleaseUnit]) -> str:
        """Release the open block if its closing tag is in view; return the text after it."""
        kind = self._kind
        assert kind is not None
        close_tag = kind.close_tag
        end = self._accumulated.find(close_tag, self._scan_from)
        if end < 0:
            # A torn closing tag may straddle the next fragment.
            self._scan_from = max(len(kind.open_tag), len(self._accumulated) - len(close_tag) + 1)
            return ""

        end += len(close_tag)
        block, rest = self._accumulated[:end], self._accumulated[end:]
        logger.debug("Completed %s block (%d chars)", kind.value, len(block))
        out.append(CompletedBlock(kind=kind, text=block))
        self._mode = BufferMode.PLAIN
        self._kind = None
        self._accumulated = ""
        self._scan_from = 0
        return rest
