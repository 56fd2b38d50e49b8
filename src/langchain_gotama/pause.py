"""
Parser for the duration instruction inside ``<pause>...</pause>`` blocks,
e.g. ``<pause>2 minutes</pause>``.

Malformed instructions never raise: they degrade to ``DEFAULT_PAUSE_SECONDS``
so a bad instruction from the model cannot break the reveal sequence.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_PAUSE_SECONDS = 30.0

_UNIT_SECONDS = {
    "second": 1.0,
    "seconds": 1.0,
    "minute": 60.0,
    "minutes": 60.0,
}


@dataclass(frozen=True, slots=True)
class PauseSpec:
    seconds: float
    # True when the instruction could not be parsed and the default was used.
    defaulted: bool = False


def parse_pause_spec(text: str) -> PauseSpec:
    """
    Parse ``"<number> <unit>"`` into seconds.

    Args:
        text: Inner text of a pause block (tags already stripped).

    Returns:
        The parsed duration, or the 30 second default with ``defaulted=True``.
    """
    tokens = text.split()
    if len(tokens) != 2:
        return PauseSpec(seconds=DEFAULT_PAUSE_SECONDS, defaulted=True)

    number, unit = tokens
    try:
        value = float(number)
    except ValueError:
        return PauseSpec(seconds=DEFAULT_PAUSE_SECONDS, defaulted=True)

    if not math.isfinite(value) or value < 0:
        return PauseSpec(seconds=DEFAULT_PAUSE_SECONDS, defaulted=True)

    factor = _UNIT_SECONDS.get(unit.lower())
    if factor is None:
        return PauseSpec(seconds=DEFAULT_PAUSE_SECONDS, defaulted=True)

    return PauseSpec(seconds=value * factor)


def parse_pause_duration(text: str) -> float:
    return parse_pause_spec(text).seconds


def strip_pause_tags(block: str) -> str:
    inner = block.strip()
    if inner.startswith("<pause>"):
        inner = inner[len("<pause>"):]
    if inner.endswith("</pause>"):
        inner = inner[: -len("</pause>")]
    return inner.strip()


def pause_duration_from_block(block: str) -> float:
    """Duration in seconds of a whole ``<pause>...</pause>`` span."""
    return parse_pause_duration(strip_pause_tags(block))
