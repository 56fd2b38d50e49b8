"""
Field extraction for completed citation blocks.

Citation format::

    <citation>
    <verse>Snp 4.2</verse>
    <pali>Pali text</pali>
    <translation>English translation</translation>
    </citation>
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_VERSE_RE = re.compile(r"<verse>([\s\S]*?)</verse>")
_PALI_RE = re.compile(r"<pali>([\s\S]*?)</pali>")
_TRANSLATION_RE = re.compile(r"<translation>([\s\S]*?)</translation>")


@dataclass(frozen=True, slots=True)
class CitationFields:
    verse: str | None = None
    pali: str | None = None
    translation: str | None = None

    @property
    def is_valid(self) -> bool:
        """A citation needs a verse reference plus Pali text or a translation."""
        return self.verse is not None and (self.pali is not None or self.translation is not None)


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def parse_citation(text: str) -> CitationFields:
    """
    Extract verse, Pali and translation from a raw citation block.

    Only the first occurrence of each tag is used. Missing tags are left as
    None; a malformed block simply comes back with ``is_valid == False``.
    """
    verse: str | None = None
    pali: str | None = None
    translation: str | None = None

    m = _VERSE_RE.search(text)
    if m:
        verse = m.group(1).strip()

    m = _PALI_RE.search(text)
    if m:
        pali = _collapse_whitespace(m.group(1))

    m = _TRANSLATION_RE.search(text)
    if m:
        translation = _collapse_whitespace(m.group(1))

    return CitationFields(verse=verse, pali=pali, translation=translation)
